"""
Owner chain resolution for the workload idler.

Given a pod, or any object carrying owner references, this module climbs
the ownership graph one hop at a time and returns the ordered chain of
ancestors (nearest first). Owner kinds are resolved through cluster API
discovery, so custom resources are handled the same way as built-in
workloads.
"""

import asyncio
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Protocol, TypeVar

import structlog
from kubernetes.client.rest import ApiException
from prometheus_client import Counter

from ..errors import ChainTooDeepError, NotFoundError, ResolutionTimeoutError
from ..models.config import ResolverConfiguration
from ..models.resources import (
    GroupKind,
    GroupVersionResource,
    OwnerChain,
    OwnerEntry,
    OwnerReference,
    ResourceObject,
)
from ..models.scale_targets import DEFAULT_OWNER_PRIORITY, ScaleTargetRegistry
from ..utils.resource_cache import APIResourceCache, DiscoveryClient


DEFAULT_MAX_DEPTH = 10

# Prometheus metrics for owner resolution
OWNER_HOPS = Counter(
    "workload_idler_owner_hops_total",
    "Total ownership hops resolved",
    ["kind"]
)
OWNER_RESOLUTIONS = Counter(
    "workload_idler_owner_resolutions_total",
    "Total owner chain resolutions",
    ["outcome", "error"]
)

T = TypeVar("T")


async def with_deadline(awaitable: Awaitable[T], deadline: Optional[float], step: str) -> T:
    """
    Await a call bounded by an absolute event loop deadline.

    Raises:
        ResolutionTimeoutError: If the deadline has passed or expires while waiting
    """
    if deadline is None:
        return await awaitable

    remaining = deadline - asyncio.get_running_loop().time()
    if remaining <= 0:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise ResolutionTimeoutError(step)
    try:
        return await asyncio.wait_for(awaitable, remaining)
    except asyncio.TimeoutError:
        raise ResolutionTimeoutError(step) from None


class ResourceAccessor(Protocol):
    """Fetches an arbitrary object by its resource coordinates."""

    async def get(self,
                  gvr: GroupVersionResource,
                  namespace: Optional[str],
                  name: str) -> Dict[str, Any]:
        ...


class OwnerFetcher:
    """
    Resolves the chain of objects owning a given object.

    Each fetcher owns its own discovery cache: the first resolution triggers
    a discovery call, later resolutions reuse its result. Instances are safe
    to share between concurrently running reconciles.

    When an object has a controller reference it is always followed. When it
    only has plain owner references, the one whose kind ranks highest in the
    owner priority order is followed; references to kinds outside that order
    end the chain.
    """

    def __init__(self,
                 discovery: DiscoveryClient,
                 accessor: ResourceAccessor,
                 registry: Optional[ScaleTargetRegistry] = None,
                 owner_priority: Optional[Iterable[GroupKind]] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH,
                 logger: Any = None) -> None:
        """
        Initialize the owner fetcher.

        Args:
            discovery: Client listing the API resources served by the cluster
            accessor: Generic object fetch capability
            registry: Scale target registry (built-in targets if omitted)
            owner_priority: Kinds followed through non-controller references,
                highest first
            max_depth: Maximum number of hops before giving up

        Raises:
            ValueError: If max_depth is not positive
        """
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")

        self.logger = (logger or structlog.get_logger()).bind(component="owner_fetcher")
        self.cache = APIResourceCache(discovery, logger=self.logger)
        self.accessor = accessor
        self.registry = registry or ScaleTargetRegistry()
        self.max_depth = max_depth

        priority = list(DEFAULT_OWNER_PRIORITY if owner_priority is None else owner_priority)
        self.owner_priority: Dict[GroupKind, int] = {}
        for rank, group_kind in enumerate(priority):
            self.owner_priority.setdefault(group_kind, rank)

    @classmethod
    def from_configuration(cls,
                           configuration: ResolverConfiguration,
                           discovery: DiscoveryClient,
                           accessor: ResourceAccessor,
                           logger: Any = None) -> "OwnerFetcher":
        return cls(
            discovery,
            accessor,
            registry=configuration.build_registry(),
            owner_priority=configuration.build_owner_priority(),
            max_depth=configuration.max_depth,
            logger=logger,
        )

    async def get_owners(self, obj: Any, timeout: Optional[float] = None) -> OwnerChain:
        """
        Resolve the owners of an object, nearest first.

        Resolution stops successfully at an object with no owner references,
        or with no reference the fetcher recognizes. When a hop fails, the
        ancestors resolved before it are returned together with the error;
        if nothing was resolved yet, ``owners`` is None.

        Args:
            obj: Starting object: a payload dict, a ResourceObject or a
                kubernetes client model such as V1Pod
            timeout: Optional deadline for the whole resolution in seconds

        Returns:
            OwnerChain with the resolved ancestors and the error, if any
        """
        current = ResourceObject.from_kubernetes(obj)
        logger = self.logger.bind(object=str(current))
        owners: List[OwnerEntry] = []

        deadline = None
        if timeout is not None:
            deadline = asyncio.get_running_loop().time() + timeout

        while True:
            reference = self.select_owner_reference(current)
            if reference is None:
                return self._finish(logger, owners, None)

            if len(owners) >= self.max_depth:
                return self._finish(logger, owners, ChainTooDeepError(self.max_depth, str(current)))

            try:
                entry = await self._fetch_owner(current, reference, deadline)
            except Exception as e:
                return self._finish(logger, owners, e)

            logger.debug(
                "Resolved owner",
                depth=len(owners),
                owner_kind=entry.gvk.kind,
                owner_name=entry.name
            )
            OWNER_HOPS.labels(kind=entry.gvk.kind).inc()
            owners.append(entry)
            current = entry.object

    def select_owner_reference(self, obj: ResourceObject) -> Optional[OwnerReference]:
        """
        Pick the owner reference to follow from an object.

        The controller reference wins unconditionally. Otherwise the
        reference with the highest ranked kind is chosen, with declaration
        order breaking ties between references of the same kind.
        """
        controller = obj.controller_reference
        if controller is not None:
            return controller

        best: Optional[OwnerReference] = None
        best_rank = len(self.owner_priority)
        for reference in obj.owner_references:
            rank = self.owner_priority.get(reference.gvk.group_kind)
            if rank is not None and rank < best_rank:
                best, best_rank = reference, rank
        return best

    def scale_targets(self, chain: OwnerChain) -> List[OwnerEntry]:
        """Return the resolved owners that the idler can pause, nearest first."""
        return self.registry.scale_targets_in(chain.owners)

    async def _fetch_owner(self,
                           owned: ResourceObject,
                           reference: OwnerReference,
                           deadline: Optional[float]) -> OwnerEntry:
        gvk = reference.gvk
        gvr, namespaced = await with_deadline(
            self.cache.resolve_resource(gvk), deadline, f"resolving kind {gvk.kind}"
        )
        namespace = owned.namespace if namespaced else None

        try:
            payload = await with_deadline(
                self.accessor.get(gvr, namespace, reference.name),
                deadline,
                f"fetching {gvr.resource} {reference.name}"
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(gvr.resource, reference.name, gvr.group) from e
            raise

        # Some servers omit type metadata on single-object reads
        payload = {"apiVersion": gvk.group_version, "kind": gvk.kind, **payload}
        return OwnerEntry(object=ResourceObject.from_dict(payload), gvr=gvr)

    def _finish(self,
                logger: Any,
                owners: List[OwnerEntry],
                error: Optional[BaseException]) -> OwnerChain:
        if error is None:
            OWNER_RESOLUTIONS.labels(outcome="success", error="").inc()
            logger.debug("Owner chain resolved", owners=len(owners))
            return OwnerChain(owners, None)

        outcome = "partial" if owners else "failure"
        OWNER_RESOLUTIONS.labels(outcome=outcome, error=type(error).__name__).inc()
        logger.warning(
            "Owner chain resolution failed",
            resolved=len(owners),
            error_type=type(error).__name__,
            error=str(error)
        )
        return OwnerChain(owners or None, error)
