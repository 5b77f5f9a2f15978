"""
FastAPI service scaffolding: request ids, request logging and metrics, and
the `/_health` and `/_metrics` operational endpoints.

Operational paths start with an underscore, which npm package names never
do, so they cannot shadow a package served by a catch-all route.
"""

import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shared.config import ServiceConfig, get_config
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

SERVICE_VERSION = "1.0.0"


class BaseService:
    """Common wiring shared by the service entry points."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._started = time.monotonic()

        configure_logging(service_name, self.config.log_level)

        local = self.config.env == "local"
        self.app = FastAPI(
            title=f"{service_name.title()} Service",
            version=SERVICE_VERSION,
            docs_url="/_docs" if local else None,
            redoc_url=None,
            openapi_url="/_openapi.json" if local else None,
        )
        self.app.middleware("http")(self._observe_request)
        self.app.add_exception_handler(Exception, self._unhandled_exception)
        self.app.add_api_route("/_health", self._health, methods=["GET"])
        self.app.add_api_route("/_metrics", self._metrics_endpoint, methods=["GET"])

    async def _observe_request(self, request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_context()
        duration = time.perf_counter() - started

        # Label by route template so every package does not become its own series
        route = request.scope.get("route")
        self.metrics.record_http_request(
            method=request.method,
            endpoint=getattr(route, "path", "unmatched"),
            status_code=response.status_code,
            duration=duration,
        )
        self.logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
            request_id=request_id,
        )

        response.headers["X-Request-ID"] = request_id
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
        return response

    async def _health(self):
        """Report dependency status; 503 when a check itself blows up."""
        try:
            dependencies = await self._check_dependencies()
        except Exception as exc:
            self.logger.error("Health check failed", error=str(exc), exc_info=True)
            self.metrics.record_health_check("error")
            return JSONResponse(
                status_code=503,
                content={"service": self.service_name, "status": "error", "error": str(exc)},
            )

        self.metrics.record_health_check("ok")
        return {
            "service": self.service_name,
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - self._started, 3),
            "dependencies": dependencies,
            **self._health_details(),
            "version": SERVICE_VERSION,
            "commit": os.getenv("GIT_COMMIT", "unknown"),
        }

    async def _metrics_endpoint(self):
        return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    async def _unhandled_exception(self, request: Request, exc: Exception):
        self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        self.metrics.record_error(type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
            headers={"Access-Control-Allow-Origin": "*"},
        )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Dependency name -> "ok" or "error". Override in subclasses."""
        return {}

    def _health_details(self) -> Dict[str, Any]:
        """Extra fields for the health payload. Override in subclasses."""
        return {}

    def run(self):
        import uvicorn

        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
