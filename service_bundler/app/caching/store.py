"""
Cache store backends for built bundles.

Stores hold the uncompressed bundle so other representations can be derived
later. Writes are append-once: a bundle name that already exists is never
overwritten, since its content is fully determined by the name's inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import CacheStoreError
from shared.logging import get_logger


@dataclass(frozen=True)
class BundleArtifact:
    """A stored, uncompressed bundle."""

    raw_content: bytes
    created_at: datetime


def _to_bytes(content: Union[str, bytes]) -> bytes:
    if isinstance(content, bytes):
        return content
    return content.encode("utf-8")


class CacheStore:
    """Interface every cache backend implements."""

    async def has(self, bundle_name: str, package_name: str, version: str, ecosystem: str) -> Tuple[bool, Any]:  # pragma: no cover - interface
        raise NotImplementedError

    async def get(self, handle: Any) -> bytes:  # pragma: no cover - interface
        raise NotImplementedError

    async def set(self, bundle_name: str, content: Union[str, bytes], package_name: str, version: str, ecosystem: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryCacheStore(CacheStore):
    """Process-local store, used for local runs and tests."""

    def __init__(self):
        self.logger = get_logger("bundler.cache.memory")
        self._artifacts: Dict[Tuple[str, str, str, str], BundleArtifact] = {}

    def _make_handle(self, bundle_name: str, package_name: str, version: str, ecosystem: str) -> Tuple[str, str, str, str]:
        return (ecosystem, package_name, version, bundle_name)

    async def has(self, bundle_name: str, package_name: str, version: str, ecosystem: str) -> Tuple[bool, Any]:
        handle = self._make_handle(bundle_name, package_name, version, ecosystem)
        if handle in self._artifacts:
            return True, handle
        return False, None

    async def get(self, handle: Any) -> bytes:
        artifact = self._artifacts.get(handle)
        if artifact is None:
            raise CacheStoreError("Bundle missing from cache store", details={"handle": list(handle or ())})
        return artifact.raw_content

    async def set(self, bundle_name: str, content: Union[str, bytes], package_name: str, version: str, ecosystem: str) -> None:
        handle = self._make_handle(bundle_name, package_name, version, ecosystem)
        if handle in self._artifacts:
            self.logger.debug("Bundle already stored", bundle=bundle_name)
            return
        self._artifacts[handle] = BundleArtifact(
            raw_content=_to_bytes(content),
            created_at=datetime.now(timezone.utc),
        )

    def artifact(self, bundle_name: str, package_name: str, version: str, ecosystem: str) -> Optional[BundleArtifact]:
        """Return the stored artifact, if any."""
        return self._artifacts.get(self._make_handle(bundle_name, package_name, version, ecosystem))

    def __len__(self) -> int:
        return len(self._artifacts)


class RedisCacheStore(CacheStore):
    """Redis-backed store; each bundle is a hash with content and created_at."""

    def __init__(self, redis_url: str, prefix: str = "bundles"):
        self.redis_url = redis_url
        self.prefix = prefix
        self.logger = get_logger("bundler.cache.redis")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, bundle_name: str, ecosystem: str) -> str:
        return f"{self.prefix}:{ecosystem}:{bundle_name}"

    async def has(self, bundle_name: str, package_name: str, version: str, ecosystem: str) -> Tuple[bool, Any]:
        key = self._make_key(bundle_name, ecosystem)
        try:
            redis_client = await self._get_redis()
            found = await redis_client.exists(key)
        except RedisError as exc:
            self.logger.error("Cache lookup error", key=key, error=str(exc))
            raise CacheStoreError("Cache lookup failed", details={"bundle": bundle_name}) from exc
        return (True, key) if found else (False, None)

    async def get(self, handle: Any) -> bytes:
        try:
            redis_client = await self._get_redis()
            content = await redis_client.hget(handle, "content")
        except RedisError as exc:
            self.logger.error("Cache read error", key=handle, error=str(exc))
            raise CacheStoreError("Cache read failed", details={"key": handle}) from exc
        if content is None:
            raise CacheStoreError("Bundle missing from cache store", details={"key": handle})
        return _to_bytes(content)

    async def set(self, bundle_name: str, content: Union[str, bytes], package_name: str, version: str, ecosystem: str) -> None:
        key = self._make_key(bundle_name, ecosystem)
        try:
            redis_client = await self._get_redis()
            written = await redis_client.hsetnx(key, "content", _to_bytes(content))
            if written:
                await redis_client.hset(key, mapping={
                    "created_at": datetime.now(timezone.utc).isoformat(),
                    "package": package_name,
                    "version": version,
                })
        except RedisError as exc:
            self.logger.error("Cache write error", key=key, error=str(exc))
            raise CacheStoreError("Cache write failed", details={"bundle": bundle_name}) from exc
        self.logger.debug("Cached bundle", key=key, written=bool(written))

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_cache_store(backend: str, redis_url: Optional[str] = None) -> CacheStore:
    """Build the configured cache store backend."""
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis cache backend requires a redis_url")
        return RedisCacheStore(redis_url)
    raise ValueError(f"Unknown cache backend: {backend}")
