"""
Utility modules for the owner resolver.

This package contains the discovery-backed kind cache and the Kubernetes
client wrappers used to discover and fetch arbitrary resources.
"""

from .resource_cache import APIResource, APIResourceCache, APIResourceList
from .kubernetes_client import KubernetesDiscoveryClient, KubernetesResourceAccessor

__all__ = [
    "APIResource",
    "APIResourceCache",
    "APIResourceList",
    "KubernetesDiscoveryClient",
    "KubernetesResourceAccessor",
]
