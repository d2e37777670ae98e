"""
Kubernetes client wrappers for the owner chain resolver.

This module provides the two cluster-facing collaborators the resolver
needs: API discovery and a generic object fetch that works for any
resource, built-in or custom, without typed models.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..errors import DiscoveryError, FetchError
from ..models.resources import GroupVersionResource
from .resource_cache import APIResource, APIResourceList


def load_kubernetes_configuration(logger: Any = None) -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    logger = logger or structlog.get_logger()
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Loaded local Kubernetes configuration")


class KubernetesDiscoveryClient:
    """
    Discovery client listing the resources served by the cluster.

    Returns the core group plus the preferred version of every API group,
    mirroring what ``kubectl api-resources`` reports.
    """

    def __init__(self,
                 api_client: Optional[client.ApiClient] = None,
                 request_timeout: Optional[float] = None,
                 logger: Any = None) -> None:
        """
        Initialize discovery client.

        Args:
            api_client: Configured Kubernetes API client (default client if omitted)
            request_timeout: Timeout for each discovery request in seconds
            logger: Structured logger instance
        """
        self.api_client = api_client or client.ApiClient()
        self.request_timeout = request_timeout
        self.logger = (logger or structlog.get_logger()).bind(component="k8s_discovery")

        self.core_v1 = client.CoreV1Api(self.api_client)
        self.apis = client.ApisApi(self.api_client)

    async def server_preferred_resources(self) -> List[APIResourceList]:
        """
        List the API resources served by the cluster.

        Raises:
            DiscoveryError: If any discovery request fails
        """
        try:
            return await asyncio.to_thread(self._discover)
        except ApiException as e:
            self.logger.error(
                "Kubernetes API error during discovery",
                status_code=e.status,
                reason=e.reason
            )
            raise DiscoveryError(f"API discovery failed: {e.status} {e.reason}") from e
        except HTTPError as e:
            # Connection refused, read timeouts and exhausted retries
            self.logger.error(
                "Kubernetes API unreachable during discovery",
                error_type=type(e).__name__,
                error=str(e)
            )
            raise DiscoveryError(f"API discovery failed: {e}") from e

    def _discover(self) -> List[APIResourceList]:
        resource_lists = [
            self._convert(self.core_v1.get_api_resources(_request_timeout=self.request_timeout))
        ]

        groups = self.apis.get_api_versions(_request_timeout=self.request_timeout)
        for group in groups.groups or []:
            preferred = group.preferred_version or (group.versions[0] if group.versions else None)
            if preferred is None:
                continue
            response = self.api_client.call_api(
                f"/apis/{preferred.group_version}",
                "GET",
                header_params={"Accept": "application/json"},
                response_type="V1APIResourceList",
                auth_settings=["BearerToken"],
                _return_http_data_only=True,
                _request_timeout=self.request_timeout,
            )
            resource_lists.append(self._convert(response))

        self.logger.debug("Discovery completed", group_versions=len(resource_lists))
        return resource_lists

    @staticmethod
    def _convert(response: Any) -> APIResourceList:
        return APIResourceList(
            group_version=response.group_version,
            resources=[
                APIResource(name=r.name, kind=r.kind, namespaced=bool(r.namespaced))
                for r in response.resources or []
            ],
        )


class KubernetesResourceAccessor:
    """
    Generic object fetch for any resource the cluster serves.

    Objects come back as their raw JSON payload; a not-found response is
    left as the original ``ApiException`` so callers can tag it.
    """

    def __init__(self,
                 api_client: Optional[client.ApiClient] = None,
                 request_timeout: Optional[float] = None,
                 logger: Any = None) -> None:
        self.api_client = api_client or client.ApiClient()
        self.request_timeout = request_timeout
        self.logger = (logger or structlog.get_logger()).bind(component="k8s_accessor")

        self._operation_counts: Dict[str, int] = {}

    async def get(self,
                  gvr: GroupVersionResource,
                  namespace: Optional[str],
                  name: str) -> Dict[str, Any]:
        """
        Fetch an object by resource coordinates.

        Args:
            gvr: Resource coordinates
            namespace: Namespace of the object, None for cluster-scoped resources
            name: Object name

        Returns:
            Object payload as served by the API

        Raises:
            ApiException: If the object does not exist (status 404)
            FetchError: If the API returned any other error
        """
        path = self.resource_path(gvr, namespace, name)
        try:
            payload = await asyncio.to_thread(self._get, path)
        except ApiException as e:
            self._operation_counts["get_failure"] = self._operation_counts.get("get_failure", 0) + 1
            if e.status == 404:
                raise
            self.logger.error(
                "Kubernetes API error getting object",
                path=path,
                status_code=e.status,
                reason=e.reason
            )
            raise FetchError(
                f"failed to get {gvr.resource} {namespace or ''}/{name}: {e.status} {e.reason}",
                status=e.status
            ) from e

        self._operation_counts["get"] = self._operation_counts.get("get", 0) + 1
        return payload

    def _get(self, path: str) -> Dict[str, Any]:
        return self.api_client.call_api(
            path,
            "GET",
            header_params={"Accept": "application/json"},
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _request_timeout=self.request_timeout,
        )

    @staticmethod
    def resource_path(gvr: GroupVersionResource, namespace: Optional[str], name: str) -> str:
        """Build the REST path of an object, e.g. ``/apis/apps/v1/namespaces/ns/deployments/web``."""
        path = f"/apis/{gvr.group}/{gvr.version}" if gvr.group else f"/api/{gvr.version}"
        if namespace:
            path = f"{path}/namespaces/{namespace}"
        return f"{path}/{gvr.resource}/{name}"

    def get_operation_stats(self) -> Dict[str, int]:
        """Get operation statistics for monitoring."""
        return self._operation_counts.copy()
