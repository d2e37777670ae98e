"""
Scale target registry.

The registry enumerates every kind the idling subsystem knows how to pause
and resume, with the resource coordinates used to address it and the
strategy the pause/resume logic applies to it. Adding idling support for a
new workload type means adding one entry here.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict

from ..errors import NotScaleTargetError
from .resources import GroupKind, GroupVersionKind, GroupVersionResource, OwnerEntry


class ScaleStrategy(str, Enum):
    """
    How the pause/resume logic mutates a scale target.
    """

    REPLICAS = "replicas"           # Patch the replica count to zero
    DELETE = "delete"               # Delete the object, its controller recreates it
    RUN_STRATEGY = "run_strategy"   # Stop a virtual machine through its run strategy
    IDLE_FLAG = "idle_flag"         # Set an operator-specific idle flag in the spec


class ScaleTarget(BaseModel):
    """A kind that can be paused, with its addressable coordinates."""

    model_config = ConfigDict(frozen=True)

    gvk: GroupVersionKind
    gvr: GroupVersionResource
    strategy: ScaleStrategy = ScaleStrategy.REPLICAS

    @classmethod
    def of(cls, group: str, version: str, kind: str, resource: str,
           strategy: ScaleStrategy = ScaleStrategy.REPLICAS) -> ScaleTarget:
        return cls(
            gvk=GroupVersionKind(group, version, kind),
            gvr=GroupVersionResource(group, version, resource),
            strategy=strategy,
        )


DEFAULT_SCALE_TARGETS: List[ScaleTarget] = [
    ScaleTarget.of("apps", "v1", "Deployment", "deployments"),
    ScaleTarget.of("apps", "v1", "ReplicaSet", "replicasets"),
    ScaleTarget.of("apps", "v1", "DaemonSet", "daemonsets", ScaleStrategy.DELETE),
    ScaleTarget.of("apps", "v1", "StatefulSet", "statefulsets"),
    ScaleTarget.of("batch", "v1", "Job", "jobs", ScaleStrategy.DELETE),
    ScaleTarget.of("apps.openshift.io", "v1", "DeploymentConfig", "deploymentconfigs"),
    ScaleTarget.of("", "v1", "ReplicationController", "replicationcontrollers"),
    ScaleTarget.of("kubevirt.io", "v1", "VirtualMachine", "virtualmachines",
                   ScaleStrategy.RUN_STRATEGY),
    ScaleTarget.of("kubevirt.io", "v1", "VirtualMachineInstance", "virtualmachineinstances",
                   ScaleStrategy.DELETE),
    ScaleTarget.of("aap.ansible.com", "v1alpha1", "AnsibleAutomationPlatform",
                   "ansibleautomationplatforms", ScaleStrategy.IDLE_FLAG),
    ScaleTarget.of("aap.ansible.com", "v1alpha1", "AnsibleAutomationPlatformBackup",
                   "ansibleautomationplatformbackups", ScaleStrategy.DELETE),
]

# Owner references are matched against this order, highest first, when an
# object has no controller reference. DaemonSet stays last: it owns pods on
# every node and is the least likely to be the workload's real tier.
DEFAULT_OWNER_PRIORITY: List[GroupKind] = [
    GroupKind("aap.ansible.com", "AnsibleAutomationPlatform"),
    GroupKind("kubevirt.io", "VirtualMachine"),
    GroupKind("kubevirt.io", "VirtualMachineInstance"),
    GroupKind("apps", "Deployment"),
    GroupKind("apps.openshift.io", "DeploymentConfig"),
    GroupKind("apps", "StatefulSet"),
    GroupKind("apps", "ReplicaSet"),
    GroupKind("", "ReplicationController"),
    GroupKind("batch", "Job"),
    GroupKind("aap.ansible.com", "AnsibleAutomationPlatformBackup"),
    GroupKind("apps", "DaemonSet"),
]


class ScaleTargetRegistry:
    """
    Immutable table of pausable kinds.

    Lookups match on group and kind so that an owner reference naming another
    served version of a registered kind still resolves to the same entry.
    """

    def __init__(self, targets: Optional[Iterable[ScaleTarget]] = None) -> None:
        entries: Dict[GroupKind, ScaleTarget] = {}
        for target in DEFAULT_SCALE_TARGETS if targets is None else targets:
            key = target.gvk.group_kind
            if key in entries:
                raise ValueError(f"duplicate scale target {target.gvk}")
            entries[key] = target
        self._targets = entries

    @classmethod
    def with_extra(cls, extra: Iterable[ScaleTarget]) -> ScaleTargetRegistry:
        """Build the default registry extended with additional targets."""
        return cls([*DEFAULT_SCALE_TARGETS, *extra])

    def is_scale_target(self, gvk: GroupVersionKind) -> bool:
        return gvk.group_kind in self._targets

    def get(self, gvk: GroupVersionKind) -> ScaleTarget:
        try:
            return self._targets[gvk.group_kind]
        except KeyError:
            raise NotScaleTargetError(gvk) from None

    def coordinates_for(self, gvk: GroupVersionKind) -> GroupVersionResource:
        return self.get(gvk).gvr

    def strategy_for(self, gvk: GroupVersionKind) -> ScaleStrategy:
        return self.get(gvk).strategy

    def scale_targets_in(self, owners: Optional[Iterable[OwnerEntry]]) -> List[OwnerEntry]:
        """Return the entries of an owner chain that are scale targets, in chain order."""
        return [entry for entry in owners or [] if self.is_scale_target(entry.gvk)]

    def group_kinds(self) -> List[GroupKind]:
        return list(self._targets)

    def __iter__(self) -> Iterator[ScaleTarget]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, gvk: object) -> bool:
        return isinstance(gvk, GroupVersionKind) and self.is_scale_target(gvk)
