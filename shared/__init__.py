"""
Cross-cutting pieces of the bundle service.

- config: settings from BUNDLER_* environment variables
- logging: structlog JSON logging with request and package context
- metrics: per-service Prometheus registry
- errors: error types carrying their HTTP status
- resilience: retries and circuit breaking for upstream calls
- base_service: FastAPI app with request observation and ops endpoints

Nothing here imports from service_bundler.
"""
