"""
Error types raised while resolving workload owner chains.

Every error carries enough context (kind, resource, name) for the idling
reconciler to log it and decide whether to act on a partial chain.
"""

from typing import Any, Optional

from kubernetes.client.rest import ApiException


class OwnerResolutionError(Exception):
    """Base class for owner chain resolution failures."""
    pass


class DiscoveryError(OwnerResolutionError):
    """Raised when the cluster API discovery call fails; the transport error is chained."""
    pass


class UnknownKindError(OwnerResolutionError, LookupError):
    """Raised when a populated discovery cache has no entry for a kind."""

    def __init__(self, gvk: Any) -> None:
        super().__init__(
            f"no resource found for kind {gvk.kind} in {gvk.group_version}"
        )
        self.gvk = gvk


class NotFoundError(OwnerResolutionError):
    """Raised when an ancestor object does not exist in the cluster."""

    def __init__(self, resource: str, name: str, group: str = "") -> None:
        qualified = f"{resource}.{group}" if group else resource
        super().__init__(f'{qualified} "{name}" not found')
        self.resource = resource
        self.group = group
        self.name = name


class FetchError(OwnerResolutionError):
    """Raised when fetching an object fails for a reason other than not-found."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ChainTooDeepError(OwnerResolutionError):
    """Raised when an owner chain exceeds the configured maximum depth."""

    def __init__(self, max_depth: int, last_object: str = "") -> None:
        message = f"owner chain exceeds maximum depth of {max_depth}"
        if last_object:
            message = f"{message} (stopped at {last_object})"
        super().__init__(message)
        self.max_depth = max_depth


class ResolutionTimeoutError(OwnerResolutionError, TimeoutError):
    """Raised when the resolution deadline expires during a hop."""

    def __init__(self, step: str) -> None:
        super().__init__(f"deadline exceeded while {step}")
        self.step = step


class NotScaleTargetError(OwnerResolutionError, LookupError):
    """Raised when a kind is looked up in the scale target registry but is not there."""

    def __init__(self, gvk: Any) -> None:
        super().__init__(
            f"kind {gvk.kind} in {gvk.group_version} is not a scale target"
        )
        self.gvk = gvk


def is_not_found(error: Optional[BaseException]) -> bool:
    """Check whether an error means the requested object does not exist."""
    if isinstance(error, NotFoundError):
        return True
    if isinstance(error, ApiException):
        return error.status == 404
    return False
