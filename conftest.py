"""
Shared pytest fixtures for the bundle service test suites.
"""

import pytest

from shared.config import get_config
from shared.test_helpers import FakeBundleBuilder, FakeRegistryClient, RecordingCacheStore
from service_bundler.app.caching import InFlightRegistry, InMemoryCacheStore


@pytest.fixture
def registry_client():
    """Registry client serving the test packuments."""
    return FakeRegistryClient()


@pytest.fixture
def builder():
    """Bundle builder that succeeds immediately."""
    return FakeBundleBuilder()


@pytest.fixture
def memory_store():
    """Empty in-memory cache store."""
    return InMemoryCacheStore()


@pytest.fixture
def cache_store(memory_store):
    """Call-counting wrapper around the in-memory store."""
    return RecordingCacheStore(memory_store)


@pytest.fixture
def in_flight():
    """Empty in-flight build registry."""
    return InFlightRegistry()


@pytest.fixture
def service_config():
    """Service configuration isolated from the environment's backends."""
    return get_config(
        "bundler",
        8000,
        cache_backend="memory",
        build_timeout=5.0,
        additional_bundle_headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
