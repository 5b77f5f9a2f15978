"""
Structured JSON logging for the bundle service.

Every event carries the service name, the request id and, once the specifier
has been parsed, the package being served. Trace ids are attached when an
OpenTelemetry span is active.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
package_var: ContextVar[Optional[str]] = ContextVar("package", default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structlog to render JSON lines on stdout."""

    def add_service(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service,
            add_request_context,
            add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def add_request_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the request id and requested package from the current context."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    package = package_var.get()
    if package:
        event_dict.setdefault("package", package)

    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach trace and span ids of the active span, if it is recording."""
    span = trace.get_current_span()
    if not span.is_recording():
        return event_dict

    context = span.get_span_context()
    if context.trace_id:
        event_dict["trace_id"] = trace.format_trace_id(context.trace_id)
    if context.span_id:
        event_dict["span_id"] = trace.format_span_id(context.span_id)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Use the caller's request id, or mint one."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_package_context(package: Optional[str] = None) -> None:
    package_var.set(package)


def clear_context() -> None:
    request_id_var.set(None)
    package_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
