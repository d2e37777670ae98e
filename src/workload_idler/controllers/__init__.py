"""
Owner resolution controllers.

This package contains the owner fetcher that climbs the ownership graph
of a workload.
"""

from .owner_fetcher import OwnerFetcher

__all__ = ["OwnerFetcher"]
