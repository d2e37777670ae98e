"""
Workload idler owner resolution for multi-tenant Kubernetes clusters.

Given a running pod, discovers the chain of objects that own it so the
idling subsystem can find the nearest ancestor it is able to pause and
later resume.

This package implements:
- Discovery-backed kind resolution for built-in and custom resources
- Deterministic owner reference selection
- Partial owner chains when an ancestor cannot be fetched
- The registry of kinds the idler can pause
"""

__version__ = "0.1.0"

from .controllers.owner_fetcher import OwnerFetcher
from .errors import (
    ChainTooDeepError,
    DiscoveryError,
    FetchError,
    NotFoundError,
    NotScaleTargetError,
    OwnerResolutionError,
    ResolutionTimeoutError,
    UnknownKindError,
    is_not_found,
)
from .models.resources import (
    GroupVersionKind,
    GroupVersionResource,
    OwnerChain,
    OwnerEntry,
    OwnerReference,
    ResourceObject,
)
from .models.scale_targets import ScaleStrategy, ScaleTarget, ScaleTargetRegistry

__all__ = [
    "OwnerFetcher",
    "OwnerChain",
    "OwnerEntry",
    "OwnerReference",
    "ResourceObject",
    "GroupVersionKind",
    "GroupVersionResource",
    "ScaleStrategy",
    "ScaleTarget",
    "ScaleTargetRegistry",
    "OwnerResolutionError",
    "DiscoveryError",
    "UnknownKindError",
    "NotFoundError",
    "FetchError",
    "ChainTooDeepError",
    "ResolutionTimeoutError",
    "NotScaleTargetError",
    "is_not_found",
]
