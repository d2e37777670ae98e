"""
Kind resolution backed by a once-populated discovery cache.

Translates a (group, version, kind) into the resource plural and scope
needed to fetch objects of that kind generically. Discovery runs lazily on
the first lookup and, once it has succeeded, is never repeated for the
lifetime of the cache.
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol, Tuple

import structlog
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field

from ..errors import UnknownKindError
from ..models.resources import GroupVersionKind, GroupVersionResource


DISCOVERY_CALLS = Counter(
    "workload_idler_discovery_calls_total",
    "Total API discovery calls",
    ["result"]
)


class APIResource(BaseModel):
    """A resource served under a group/version."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: str
    namespaced: bool = True


class APIResourceList(BaseModel):
    """Discovery response for one group/version."""

    model_config = ConfigDict(frozen=True)

    group_version: str
    resources: List[APIResource] = Field(default_factory=list)


class DiscoveryClient(Protocol):
    """Lists every API resource the cluster currently serves."""

    async def server_preferred_resources(self) -> List[APIResourceList]:
        ...


class APIResourceCache:
    """
    Discovery-backed GVK index owned by a single owner fetcher.

    Population happens at most once. A failed first discovery leaves the
    cache empty and is retried on the next lookup; a successful one makes
    the cache authoritative, so later discovery outages cannot affect
    resolution.
    """

    def __init__(self, discovery: DiscoveryClient, logger: Optional[Any] = None) -> None:
        self.discovery = discovery
        self.logger = (logger or structlog.get_logger()).bind(component="api_resource_cache")

        self._resources: Optional[Dict[GroupVersionKind, Tuple[str, bool]]] = None
        self._lock = asyncio.Lock()

    @property
    def populated(self) -> bool:
        return self._resources is not None

    def __len__(self) -> int:
        return len(self._resources or {})

    async def resolve(self, gvk: GroupVersionKind) -> Tuple[str, bool]:
        """
        Resolve a kind to its resource plural and scope.

        Args:
            gvk: Kind to resolve

        Returns:
            Tuple of (resource plural, namespaced)

        Raises:
            UnknownKindError: If the populated cache has no entry for the kind
            Exception: Whatever the discovery client raised, unchanged, when
                the cache could not be populated
        """
        resources = self._resources
        if resources is None:
            resources = await self._populate()

        try:
            return resources[gvk]
        except KeyError:
            raise UnknownKindError(gvk) from None

    async def resolve_resource(self, gvk: GroupVersionKind) -> Tuple[GroupVersionResource, bool]:
        resource, namespaced = await self.resolve(gvk)
        return GroupVersionResource(gvk.group, gvk.version, resource), namespaced

    async def _populate(self) -> Dict[GroupVersionKind, Tuple[str, bool]]:
        async with self._lock:
            # Another coroutine may have finished discovery while we waited
            if self._resources is not None:
                return self._resources

            try:
                resource_lists = await self.discovery.server_preferred_resources()
            except Exception as e:
                DISCOVERY_CALLS.labels(result="failure").inc()
                self.logger.warning("API discovery failed", error=str(e))
                raise

            DISCOVERY_CALLS.labels(result="success").inc()
            self._resources = self._index(resource_lists)
            self.logger.info(
                "API resources discovered",
                group_versions=len(resource_lists),
                kinds=len(self._resources)
            )
            return self._resources

    @staticmethod
    def _index(resource_lists: List[APIResourceList]) -> Dict[GroupVersionKind, Tuple[str, bool]]:
        index: Dict[GroupVersionKind, Tuple[str, bool]] = {}
        for resource_list in resource_lists:
            group, _, version = resource_list.group_version.rpartition("/")
            for resource in resource_list.resources:
                # Sub-resources such as "deployments/scale" are not fetchable objects
                if "/" in resource.name:
                    continue
                gvk = GroupVersionKind(group, version, resource.kind)
                index.setdefault(gvk, (resource.name, resource.namespaced))
        return index
