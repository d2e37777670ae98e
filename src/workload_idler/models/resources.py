"""
Generic resource models used by the owner chain resolver.

This module defines type identities (GVK/GVR), owner references and a
generic object handle that works the same way for built-in kinds and
custom resources, without any static schema registration.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from kubernetes.client import ApiClient
from pydantic import BaseModel, ConfigDict, Field


class GroupVersionKind(NamedTuple):
    """Schema-level type identity of an object."""

    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        """Build a GVK from an ``apiVersion`` string such as ``apps/v1`` or ``v1``."""
        group, _, version = api_version.rpartition("/")
        return cls(group=group, version=version, kind=kind)

    @property
    def group_version(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @property
    def group_kind(self) -> GroupKind:
        return GroupKind(group=self.group, kind=self.kind)

    def __str__(self) -> str:
        return f"{self.kind}.{self.group_version}"


class GroupVersionResource(NamedTuple):
    """Addressable collection identity of an object."""

    group: str
    version: str
    resource: str

    @property
    def group_version(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    def __str__(self) -> str:
        if not self.group:
            return f"{self.resource}.{self.version}"
        return f"{self.resource}.{self.version}.{self.group}"


class GroupKind(NamedTuple):
    """Version-independent kind identity, used for priority and registry matching."""

    group: str
    kind: str


class OwnerReference(BaseModel):
    """An entry of ``metadata.ownerReferences``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_version: str = Field(..., alias="apiVersion")
    kind: str
    name: str
    uid: str = ""
    controller: bool = False

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind.from_api_version(self.api_version, self.kind)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> OwnerReference:
        return cls(
            apiVersion=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            uid=data.get("uid") or "",
            controller=bool(data.get("controller")),
        )


class ResourceObject(BaseModel):
    """
    Generic handle for any cluster object.

    Carries the identity and ownership metadata the resolver needs, plus the
    full payload so callers can inspect kind-specific fields without the
    resolver knowing their schema.
    """

    model_config = ConfigDict(frozen=True)

    gvk: GroupVersionKind
    name: str
    namespace: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    owner_references: List[OwnerReference] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> ResourceObject:
        """Build a handle from a raw JSON payload as served by the API."""
        metadata = payload.get("metadata") or {}
        return cls(
            gvk=GroupVersionKind.from_api_version(
                payload.get("apiVersion", ""), payload.get("kind", "")
            ),
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace") or None,
            labels=dict(metadata.get("labels") or {}),
            owner_references=[
                OwnerReference.from_dict(ref)
                for ref in metadata.get("ownerReferences") or []
            ],
            payload=payload,
        )

    @classmethod
    def from_kubernetes(cls, obj: Any) -> ResourceObject:
        """
        Build a handle from a dict, a handle or a ``kubernetes`` client model.

        Typed models (``V1Pod`` and friends) are serialized to their
        camelCase wire form first.
        """
        if isinstance(obj, ResourceObject):
            return obj
        if isinstance(obj, dict):
            return cls.from_dict(obj)
        return cls.from_dict(ApiClient().sanitize_for_serialization(obj))

    @property
    def controller_reference(self) -> Optional[OwnerReference]:
        for ref in self.owner_references:
            if ref.controller:
                return ref
        return None

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.gvk.kind}/{self.namespace}/{self.name}"
        return f"{self.gvk.kind}/{self.name}"


class OwnerEntry(BaseModel):
    """A resolved ancestor together with the resource it was fetched through."""

    model_config = ConfigDict(frozen=True)

    object: ResourceObject
    gvr: GroupVersionResource

    @property
    def gvk(self) -> GroupVersionKind:
        return self.object.gvk

    @property
    def name(self) -> str:
        return self.object.name

    @property
    def namespace(self) -> Optional[str]:
        return self.object.namespace

    @property
    def labels(self) -> Dict[str, str]:
        return self.object.labels

    def to_summary(self) -> Dict[str, Any]:
        return {
            "kind": self.gvk.kind,
            "apiVersion": self.gvk.group_version,
            "resource": self.gvr.resource,
            "namespace": self.namespace,
            "name": self.name,
        }


class OwnerChain:
    """
    Outcome of an owner chain resolution.

    Resolution may fail part-way up the chain; the ancestors resolved before
    the failing hop are still returned so the caller can act on them.

    Attributes:
        owners: Resolved ancestors, nearest first. ``None`` when an error
            happened before any ancestor was resolved.
        error: The error that stopped resolution, or ``None`` on success.
    """

    __slots__ = ("owners", "error")

    def __init__(self, owners: Optional[List[OwnerEntry]],
                 error: Optional[BaseException] = None) -> None:
        self.owners = owners
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> List[OwnerEntry]:
        """Return the owners, or raise the error that stopped resolution."""
        if self.error is not None:
            raise self.error
        return self.owners or []

    def __iter__(self) -> Iterator[Any]:
        # Allows ``owners, error = chain``
        yield self.owners
        yield self.error

    def __repr__(self) -> str:
        names = [str(entry.object) for entry in self.owners or []]
        return f"OwnerChain(owners={names!r}, error={self.error!r})"
