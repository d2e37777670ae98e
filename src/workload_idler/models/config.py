"""
Owner resolver configuration models.

Configuration is loaded from YAML by the CLI and validated here before any
fetcher is built from it.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt, field_validator, model_validator

from .resources import GroupKind
from .scale_targets import (
    DEFAULT_OWNER_PRIORITY,
    ScaleStrategy,
    ScaleTarget,
    ScaleTargetRegistry,
)


class KindSelector(BaseModel):
    """A version-independent kind, e.g. ``{group: apps, kind: Deployment}``."""

    model_config = ConfigDict(extra="forbid")

    group: str = Field(default="", description="API group, empty for the core group")
    kind: str = Field(..., min_length=1, description="Object kind")

    def to_group_kind(self) -> GroupKind:
        return GroupKind(self.group, self.kind)


class ScaleTargetSpec(BaseModel):
    """
    Additional scale target declared in configuration.

    Used to extend idling support to custom resources the cluster serves.
    """

    model_config = ConfigDict(extra="forbid")

    group: str = Field(default="", description="API group, empty for the core group")
    version: str = Field(..., min_length=1, description="API version")
    kind: str = Field(..., min_length=1, description="Object kind")
    resource: str = Field(
        ...,
        pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$",
        description="Plural resource name"
    )
    strategy: ScaleStrategy = Field(
        default=ScaleStrategy.REPLICAS,
        description="How the pause/resume logic mutates this kind"
    )

    def to_scale_target(self) -> ScaleTarget:
        return ScaleTarget.of(self.group, self.version, self.kind, self.resource, self.strategy)


class ResolverConfiguration(BaseModel):
    """
    Main owner resolver configuration.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    max_depth: PositiveInt = Field(
        default=10,
        le=50,
        description="Maximum number of ownership hops before giving up"
    )
    request_timeout: PositiveFloat = Field(
        default=30.0,
        description="Timeout for a single Kubernetes API call (seconds)"
    )
    resolution_timeout: Optional[PositiveFloat] = Field(
        default=None,
        description="Overall deadline for one owner chain resolution (seconds)"
    )
    owner_priority: List[KindSelector] = Field(
        default_factory=lambda: [
            KindSelector(group=gk.group, kind=gk.kind) for gk in DEFAULT_OWNER_PRIORITY
        ],
        description="Kinds considered for non-controller owner references, highest first"
    )
    intermediate_kinds: List[KindSelector] = Field(
        default_factory=list,
        description="Extra kinds recognized as ownership links, ranked just above DaemonSet"
    )
    extra_scale_targets: List[ScaleTargetSpec] = Field(
        default_factory=list,
        description="Scale targets added to the built-in registry"
    )
    log_level: str = Field(
        default="INFO",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        pattern=r"^(json|console)$",
        description="Log renderer"
    )
    metrics_textfile: Optional[str] = Field(
        default=None,
        description="Write Prometheus metrics to this file after each run (textfile collector format)"
    )

    @field_validator("owner_priority")
    @classmethod
    def validate_owner_priority(cls, v: List[KindSelector]) -> List[KindSelector]:
        """Reject duplicate kinds, which would make the order ambiguous."""
        seen = set()
        for selector in v:
            key = selector.to_group_kind()
            if key in seen:
                raise ValueError(f"kind {selector.kind} in group '{selector.group}' listed twice")
            seen.add(key)
        return v

    @model_validator(mode="after")
    def validate_scale_targets(self) -> ResolverConfiguration:
        """Ensure extra scale targets do not collide with built-in ones."""
        self.build_registry()
        return self

    def build_registry(self) -> ScaleTargetRegistry:
        return ScaleTargetRegistry.with_extra(
            spec.to_scale_target() for spec in self.extra_scale_targets
        )

    def build_owner_priority(self) -> List[GroupKind]:
        """
        Resolve the effective priority order.

        Intermediate kinds and extra scale targets not already ranked are
        inserted just before DaemonSet, which always stays last if present.
        """
        order = [selector.to_group_kind() for selector in self.owner_priority]
        daemonset = GroupKind("apps", "DaemonSet")
        tail = [daemonset] if daemonset in order else []
        order = [gk for gk in order if gk != daemonset]

        extra = [selector.to_group_kind() for selector in self.intermediate_kinds]
        extra += [GroupKind(spec.group, spec.kind) for spec in self.extra_scale_targets]
        for gk in extra:
            if gk not in order and gk not in tail:
                order.append(gk)
        return order + tail
