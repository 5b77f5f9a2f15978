"""
Coalescing build orchestrator.

Per cache key a bundle moves Absent -> Building -> Cached, or back to Absent
when the build fails. Concurrent requests for a key that is Building join
the running build instead of starting another one; every joined request
receives the same bytes or the same error.
"""

from __future__ import annotations

import asyncio
import gzip
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Optional, Tuple, Union

from shared.errors import BuildError, BundlerException
from shared.logging import get_logger
from service_bundler.app.specifier import QueryParams

from .store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from service_bundler.app.adapters.bundle_builder import BundleBuilder
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class BuildInputs:
    """Everything the builder and the cache store need for one bundle."""

    name: str
    version: str
    subpath: Optional[str]
    query: QueryParams
    bundle_name: str


@dataclass
class InFlightBuild:
    """A build that has started and not yet resolved."""

    key: str
    task: "asyncio.Task[bytes]"
    started_at: float
    waiters: int = 1


class InFlightRegistry:
    """Maps cache keys to their running build. Single process, in memory."""

    def __init__(self):
        self._builds: Dict[str, InFlightBuild] = {}

    def get(self, key: str) -> Optional[InFlightBuild]:
        return self._builds.get(key)

    def get_or_create(self, key: str, start: Callable[[], Awaitable[bytes]]) -> Tuple[InFlightBuild, bool]:
        """
        Join the build running for `key`, or start one with `start`.

        Returns the entry and whether it was created by this call. There is
        no await between the lookup and the insert, so two requests on the
        same event loop can never both start a build for one key.
        """
        entry = self._builds.get(key)
        if entry is not None:
            entry.waiters += 1
            return entry, False

        entry = InFlightBuild(
            key=key,
            task=asyncio.ensure_future(start()),
            started_at=time.monotonic(),
        )
        self._builds[key] = entry
        return entry, True

    def discard(self, key: str, task: Optional[asyncio.Task] = None) -> None:
        """Remove the entry for `key`; with `task`, only if it still owns the key."""
        entry = self._builds.get(key)
        if entry is None:
            return
        if task is not None and entry.task is not task:
            return
        del self._builds[key]

    def __contains__(self, key: object) -> bool:
        return key in self._builds

    def __len__(self) -> int:
        return len(self._builds)


class BundleOrchestrator:
    """Serves bundles from the cache store, building each missing key once."""

    def __init__(
        self,
        cache_store: CacheStore,
        builder: "BundleBuilder",
        in_flight: Optional[InFlightRegistry] = None,
        *,
        ecosystem: str = "npm",
        gzip_level: int = 6,
        build_timeout: Optional[float] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache_store = cache_store
        self.builder = builder
        self.in_flight = in_flight if in_flight is not None else InFlightRegistry()
        self.ecosystem = ecosystem
        self.gzip_level = gzip_level
        self.build_timeout = build_timeout if build_timeout and build_timeout > 0 else None
        self.metrics = metrics
        self.logger = get_logger("bundler.orchestrator")

    def compress(self, content: Union[str, bytes]) -> bytes:
        """Gzip with a fixed mtime so equal content always yields equal bytes."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        return gzip.compress(content, compresslevel=self.gzip_level, mtime=0)

    async def obtain(self, key: str, inputs: BuildInputs) -> bytes:
        """Return the gzip-compressed bundle for `key`."""
        self.logger.info("Bundle requested", package=inputs.name, version=inputs.version, key=key)

        found, handle = await self.cache_store.has(
            inputs.bundle_name, inputs.name, inputs.version, self.ecosystem
        )
        if found:
            self.logger.info("Bundle is cached", package=inputs.name, key=key)
            self._count("bundle_cache_hits_total", ecosystem=self.ecosystem)
            raw = await self.cache_store.get(handle)
            return self.compress(raw)

        self._count("bundle_cache_misses_total", ecosystem=self.ecosystem)

        entry, created = self.in_flight.get_or_create(key, lambda: self._build(key, inputs))
        if created:
            self.logger.info("Bundle is not cached, starting build", package=inputs.name, key=key)
            entry.task.add_done_callback(_retrieve_exception)
            self._update_in_flight_gauge()
        else:
            self.logger.info(
                "Build already in progress, joining",
                package=inputs.name,
                key=key,
                waiters=entry.waiters,
            )
            self._count("bundle_coalesced_total", ecosystem=self.ecosystem)

        # A cancelled request must not cancel the build other requests share
        return await asyncio.shield(entry.task)

    async def _build(self, key: str, inputs: BuildInputs) -> bytes:
        started = time.monotonic()
        try:
            try:
                # A build that finished while this request's cache lookup was
                # pending has stored its artifact before leaving the registry
                found, handle = await self.cache_store.has(
                    inputs.bundle_name, inputs.name, inputs.version, self.ecosystem
                )
                if found:
                    self.logger.info("Bundle stored by an earlier build", package=inputs.name, key=key)
                    return self.compress(await self.cache_store.get(handle))

                source = await self._run_builder(key, inputs)
                zipped = self.compress(source)
                await self.cache_store.set(
                    inputs.bundle_name, source, inputs.name, inputs.version, self.ecosystem
                )
            finally:
                self.in_flight.discard(key, asyncio.current_task())
                self._update_in_flight_gauge()
        except BundlerException as exc:
            self._record_build("failure", started)
            self.logger.error(
                "Bundle build failed",
                package=inputs.name,
                version=inputs.version,
                key=key,
                code=exc.code,
                error=exc.message,
            )
            raise
        except Exception as exc:
            self._record_build("failure", started)
            self.logger.error(
                "Bundle build failed",
                package=inputs.name,
                version=inputs.version,
                key=key,
                error=str(exc),
                exc_info=True,
            )
            raise BuildError(
                str(exc) or f"Failed in building the bundle {inputs.name}",
                details={"package": inputs.name, "version": inputs.version, "key": key},
            ) from exc

        self._record_build("success", started)
        self.logger.info(
            "Bundle built",
            package=inputs.name,
            version=inputs.version,
            key=key,
            size=len(zipped),
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return zipped

    async def _run_builder(self, key: str, inputs: BuildInputs) -> Union[str, bytes]:
        call = self.builder.build(key, inputs.name, inputs.version, inputs.subpath, dict(inputs.query))
        if self.build_timeout is None:
            return await call

        try:
            return await asyncio.wait_for(call, timeout=self.build_timeout)
        except asyncio.TimeoutError as exc:
            raise BuildError(
                f"Bundle build timed out after {self.build_timeout:g}s",
                details={"package": inputs.name, "version": inputs.version, "key": key},
            ) from exc

    def _record_build(self, outcome: str, started: float) -> None:
        self._count("bundle_builds_total", outcome=outcome)
        if self.metrics:
            self.metrics.observe_histogram(
                "bundle_build_duration_seconds", time.monotonic() - started, outcome=outcome
            )

    def _update_in_flight_gauge(self) -> None:
        if self.metrics:
            self.metrics.set_gauge("bundle_builds_in_flight", len(self.in_flight))

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)


def _retrieve_exception(task: asyncio.Task) -> None:
    # Waiters may all be gone; mark the outcome as seen either way
    if not task.cancelled():
        task.exception()
