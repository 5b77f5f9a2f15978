"""
Adapters package for the bundle service.

HTTP client wrappers for the two upstreams: the package registry and the
remote bundle builder. Adapters encapsulate base URLs, request shapes,
retry policies and circuit breakers, and map transport failures onto the
shared error taxonomy.
"""

from .registry_client import RegistryClient
from .bundle_builder import BundleBuilder, HttpBundleBuilder

__all__ = [
    "RegistryClient",
    "BundleBuilder",
    "HttpBundleBuilder",
]
