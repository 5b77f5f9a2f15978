"""
Bundle service for npm-style package specifiers.
"""

from typing import Any, Dict, Optional

from fastapi import Request, Response
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import BundlerException
from shared.logging import set_package_context
from shared.resilience import RetryConfig
from service_bundler.app.adapters import BundleBuilder, HttpBundleBuilder, RegistryClient
from service_bundler.app.caching import (
    BuildInputs,
    BundleOrchestrator,
    CacheStore,
    InFlightRegistry,
    bundle_name,
    create_cache_store,
    derive_key,
)
from service_bundler.app.domain import ResponseAssembler
from service_bundler.app.resolution import VersionResolver, canonical_url
from service_bundler.app.specifier import parse_specifier


BUNDLE_ROUTE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class BundlerService(BaseService):
    """Bundle service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        registry_client: Optional[RegistryClient] = None,
        builder: Optional[BundleBuilder] = None,
        cache_store: Optional[CacheStore] = None,
        in_flight: Optional[InFlightRegistry] = None,
    ):
        super().__init__("bundler", 8000, config=config)

        self.registry_client = registry_client or RegistryClient(
            self.config.registry_url,
            timeout=self.config.registry_timeout,
            retry_config=RetryConfig(
                max_attempts=self.config.registry_retry_attempts,
                base_delay=self.config.registry_retry_base_delay,
                max_delay=5.0,
            ),
        )
        self.builder = builder or HttpBundleBuilder(
            self.config.builder_url,
            timeout=self.config.builder_timeout,
        )
        self.cache_store = cache_store or create_cache_store(
            self.config.cache_backend,
            self.config.redis_url,
        )
        self.resolver = VersionResolver(self.registry_client)
        self.orchestrator = BundleOrchestrator(
            self.cache_store,
            self.builder,
            in_flight,
            ecosystem=self.config.ecosystem,
            gzip_level=self.config.gzip_level,
            build_timeout=self.config.build_timeout,
            metrics=self.metrics,
        )
        self.assembler = ResponseAssembler(self.config.additional_bundle_headers)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.cache_store.close()

        # Registered last so /_health and /_metrics win over the catch-all
        self._setup_bundle_routes()
        self.app.add_exception_handler(StarletteHTTPException, self._http_exception)

        self.app.state.bundler_service = self

    def _setup_bundle_routes(self):
        """Set up the catch-all bundle route."""

        @self.app.api_route("/{path:path}", methods=BUNDLE_ROUTE_METHODS, include_in_schema=False)
        async def bundle(request: Request):
            return await self.handle_request(request)

    async def handle_request(self, request: Request) -> Response:
        """Answer one bundle request: preflight, redirect, bundle or error."""
        if request.method == "OPTIONS":
            return self.assembler.preflight()

        if request.method != "GET":
            self.logger.info("Rejected method", method=request.method, path=request.url.path)
            return self.assembler.invalid_method()

        qualified = None
        try:
            specifier = parse_specifier(request.url.path, request.url.query)
            qualified = specifier.qualified_name
            set_package_context(qualified)

            resolved = await self.resolver.resolve(specifier)

            # Floating tags are never built; send the client to the concrete version
            if not resolved.is_canonical_request:
                url = canonical_url(resolved.package_name, resolved.version, specifier)
                self.logger.info("Redirecting to canonical version", tag=specifier.tag, location=url)
                self.metrics.increment_counter("registry_redirects_total")
                return self.assembler.redirect(url)

            key = derive_key(qualified, resolved.version, specifier.subpath, specifier.query)
            inputs = BuildInputs(
                name=qualified,
                version=resolved.version,
                subpath=specifier.subpath,
                query=specifier.query,
                bundle_name=bundle_name(key, qualified, resolved.version),
            )
            zipped = await self.orchestrator.obtain(key, inputs)

        except BundlerException as exc:
            log = self.logger.warning if exc.status_code < 500 else self.logger.error
            log(
                "Bundle request failed",
                package=qualified,
                code=exc.code,
                error=exc.message,
                details=exc.details,
            )
            self.metrics.record_error(exc.code)
            return self.assembler.error(exc.status_code, exc.message)

        self.logger.info("Serving bundle", package=qualified, size=len(zipped))
        return self.assembler.bundle(zipped)

    async def _http_exception(self, request: Request, exc: StarletteHTTPException) -> Response:
        # Methods outside the route list are rejected by the router before
        # handle_request runs
        if exc.status_code == 405:
            self.logger.info("Rejected method", method=request.method, path=request.url.path)
            return self.assembler.invalid_method()
        return await http_exception_handler(request, exc)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check registry and cache store reachability."""
        registry_ok = await self.registry_client.ping()
        cache_ok = await self.cache_store.ping()
        return {
            "registry": "ok" if registry_ok else "error",
            "cache_store": "ok" if cache_ok else "error",
        }

    def _health_details(self) -> Dict[str, Any]:
        return {"builds_in_flight": len(self.orchestrator.in_flight)}


def create_app(config: Optional[ServiceConfig] = None, **collaborators):
    """Create the FastAPI application."""
    service = BundlerService(config, **collaborators)
    return service.app


if __name__ == "__main__":
    BundlerService().run()
