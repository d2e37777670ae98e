"""
Shared fixtures for owner resolution tests.

Provides an in-memory cluster: a discovery client serving a configurable
set of API resources and a resource accessor backed by a dict of payloads.
"""

import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest
from kubernetes.client.rest import ApiException

from workload_idler.models.resources import GroupVersionResource
from workload_idler.models.scale_targets import DEFAULT_SCALE_TARGETS
from workload_idler.utils.resource_cache import APIResource, APIResourceList


NAMESPACE = "test-namespace"

AAP_GROUP_VERSION = "aap.ansible.com/v1alpha1"


def resource_lists(with_aap: bool = True) -> List[APIResourceList]:
    """Discovery response for a cluster serving the built-in scale targets."""
    lists = [
        APIResourceList(group_version="v1", resources=[
            APIResource(name="pods", kind="Pod", namespaced=True),
            APIResource(name="pods/log", kind="Pod", namespaced=True),
            APIResource(name="nodes", kind="Node", namespaced=False),
            APIResource(name="replicationcontrollers", kind="ReplicationController", namespaced=True),
        ]),
        APIResourceList(group_version="toolchain.dev.openshift.com/v1alpha1", resources=[
            APIResource(name="idlers", kind="Idler", namespaced=True),
        ]),
    ]
    for target in DEFAULT_SCALE_TARGETS:
        if target.gvk.group in ("", "aap.ansible.com"):
            continue
        lists.append(APIResourceList(
            group_version=target.gvr.group_version,
            resources=[APIResource(name=target.gvr.resource, kind=target.gvk.kind, namespaced=True)],
        ))
    if with_aap:
        lists.append(APIResourceList(group_version=AAP_GROUP_VERSION, resources=[
            APIResource(name="ansibleautomationplatforms", kind="AnsibleAutomationPlatform"),
            APIResource(name="ansibleautomationplatformbackups", kind="AnsibleAutomationPlatformBackup"),
        ]))
    return lists


class FakeDiscoveryClient:
    """Discovery client returning a fixed resource list, or failing on demand."""

    def __init__(self, lists: List[APIResourceList], delay: float = 0) -> None:
        self.lists = lists
        self.error: Optional[Exception] = None
        self.delay = delay
        self.calls = 0

    async def server_preferred_resources(self) -> List[APIResourceList]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.lists


class FakeResourceAccessor:
    """Accessor serving payloads from memory, with injectable errors and delays."""

    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, Optional[str], str], Dict[str, Any]] = {}
        self.errors: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}
        self.calls: List[Tuple[GroupVersionResource, Optional[str], str]] = []

    def add(self, resource: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        metadata = payload["metadata"]
        self.objects[(resource, metadata.get("namespace"), metadata["name"])] = payload
        return payload

    async def get(self,
                  gvr: GroupVersionResource,
                  namespace: Optional[str],
                  name: str) -> Dict[str, Any]:
        self.calls.append((gvr, namespace, name))
        if gvr.resource in self.delays:
            await asyncio.sleep(self.delays[gvr.resource])
        if gvr.resource in self.errors:
            raise self.errors[gvr.resource]
        try:
            return copy.deepcopy(self.objects[(gvr.resource, namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None


def make_object(api_version: str,
                kind: str,
                name: str,
                namespace: Optional[str] = NAMESPACE,
                labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Build a minimal object payload."""
    metadata: Dict[str, Any] = {"name": name, "uid": f"uid-{kind.lower()}-{name}"}
    if namespace:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = labels
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata}


def set_owner(obj: Dict[str, Any], owner: Dict[str, Any], controller: bool = False) -> Dict[str, Any]:
    """Append an owner reference pointing at ``owner`` to ``obj``."""
    reference = {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": owner["metadata"]["name"],
        "uid": owner["metadata"]["uid"],
    }
    if controller:
        reference["controller"] = True
        reference["blockOwnerDeletion"] = True
    obj["metadata"].setdefault("ownerReferences", []).append(reference)
    return obj


class Builders:
    """Object builders exposed to tests through the ``k8s`` fixture."""

    namespace = NAMESPACE
    make_object = staticmethod(make_object)
    set_owner = staticmethod(set_owner)
    resource_lists = staticmethod(resource_lists)

    @staticmethod
    def pod(name: str = "test-pod") -> Dict[str, Any]:
        return make_object("v1", "Pod", name)

    @staticmethod
    def replica_set(name: str = "test-replica") -> Dict[str, Any]:
        return make_object("apps/v1", "ReplicaSet", name)

    @staticmethod
    def deployment(name: str = "test-deployment") -> Dict[str, Any]:
        return make_object("apps/v1", "Deployment", name)

    @staticmethod
    def daemon_set(name: str = "test-daemonset") -> Dict[str, Any]:
        return make_object("apps/v1", "DaemonSet", name)

    @staticmethod
    def stateful_set(name: str = "test-statefulset") -> Dict[str, Any]:
        return make_object("apps/v1", "StatefulSet", name)

    @staticmethod
    def job(name: str = "test-job") -> Dict[str, Any]:
        return make_object("batch/v1", "Job", name)

    @staticmethod
    def deployment_config(name: str = "test-deploymentconfig") -> Dict[str, Any]:
        return make_object("apps.openshift.io/v1", "DeploymentConfig", name)

    @staticmethod
    def replication_controller(name: str = "test-rc") -> Dict[str, Any]:
        return make_object("v1", "ReplicationController", name)

    @staticmethod
    def virtual_machine(name: str = "test-vm") -> Dict[str, Any]:
        vm = make_object("kubevirt.io/v1", "VirtualMachine", name)
        vm["spec"] = {"runStrategy": "Always"}
        return vm

    @staticmethod
    def virtual_machine_instance(name: str = "test-vm") -> Dict[str, Any]:
        vmi = make_object("kubevirt.io/v1", "VirtualMachineInstance", name)
        vmi["status"] = {"phase": "Running"}
        return vmi

    @staticmethod
    def aap(name: str = "test-aap") -> Dict[str, Any]:
        aap = make_object(AAP_GROUP_VERSION, "AnsibleAutomationPlatform", name)
        aap["spec"] = {"idle_aap": False}
        return aap

    @staticmethod
    def idler(name: str = "test-idler") -> Dict[str, Any]:
        return make_object("toolchain.dev.openshift.com/v1alpha1", "Idler", name)


RESOURCE_BY_KIND = {
    "Pod": "pods",
    "Node": "nodes",
    "ReplicaSet": "replicasets",
    "Deployment": "deployments",
    "DaemonSet": "daemonsets",
    "StatefulSet": "statefulsets",
    "Job": "jobs",
    "DeploymentConfig": "deploymentconfigs",
    "ReplicationController": "replicationcontrollers",
    "VirtualMachine": "virtualmachines",
    "VirtualMachineInstance": "virtualmachineinstances",
    "AnsibleAutomationPlatform": "ansibleautomationplatforms",
    "AnsibleAutomationPlatformBackup": "ansibleautomationplatformbackups",
    "Idler": "idlers",
}


class FakeCluster:
    """Discovery client and accessor sharing one in-memory cluster."""

    def __init__(self, with_aap: bool = True) -> None:
        self.discovery = FakeDiscoveryClient(resource_lists(with_aap))
        self.accessor = FakeResourceAccessor()

    def add(self, *objects: Dict[str, Any]) -> None:
        for obj in objects:
            self.accessor.add(RESOURCE_BY_KIND[obj["kind"]], obj)


@pytest.fixture
def k8s() -> Builders:
    """Object builders."""
    return Builders()


@pytest.fixture
def cluster() -> FakeCluster:
    """In-memory cluster serving every built-in scale target, AAP included."""
    return FakeCluster(with_aap=True)


@pytest.fixture
def cluster_without_aap() -> FakeCluster:
    """In-memory cluster whose discovery does not serve the AAP operator kinds."""
    return FakeCluster(with_aap=False)
