"""
Bundle caching package.

Content addresses, cache store backends and the coalescing build
orchestrator. A cache key is fully determined by its inputs, so stored
bundles are written once and never rewritten.
"""

from .keys import derive_key, bundle_name, canonical_request
from .store import BundleArtifact, CacheStore, InMemoryCacheStore, RedisCacheStore, create_cache_store
from .orchestrator import BuildInputs, BundleOrchestrator, InFlightBuild, InFlightRegistry

__all__ = [
    "derive_key",
    "bundle_name",
    "canonical_request",
    "BundleArtifact",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "create_cache_store",
    "BuildInputs",
    "BundleOrchestrator",
    "InFlightBuild",
    "InFlightRegistry",
]
