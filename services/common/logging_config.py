"""
Centralized logging configuration for the scheduling services.

Provides consistent logging setup including:
- Structured logging (JSON or readable text) via structlog
- Request ID, tenant and user tracking for HTTP requests
- Request/response timing middleware

Usage:
    from services.common.logging_config import setup_service_logging

    # In your service main.py
    setup_service_logging(
        service_name="availability",
        log_level="INFO",
        log_format="json",
    )
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Callable

import structlog
from fastapi import Request, Response

# Context variables for request-specific data
request_id_var: ContextVar[str] = ContextVar("request_id", default="uninitialized")
tenant_id_var: ContextVar[str] = ContextVar("tenant_id", default="unknown")
user_id_var: ContextVar[str] = ContextVar("user_id", default="anonymous")

_RESERVED_KEYS = (
    "timestamp",
    "level",
    "logger",
    "event",
    "service",
    "request_id",
    "tenant_id",
    "user_id",
)


def add_request_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Add request, tenant and user IDs to all log entries."""
    request_id = request_id_var.get()
    tenant_id = tenant_id_var.get()
    user_id = user_id_var.get()
    if request_id != "uninitialized":
        event_dict.setdefault("request_id", request_id)
    if tenant_id != "unknown":
        event_dict.setdefault("tenant_id", tenant_id)
    if user_id != "anonymous":
        event_dict.setdefault("user_id", user_id)
    return event_dict


def add_service_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Derive the service name from logger paths like ``services.availability.api``."""
    logger_name = event_dict.get("logger", "")
    if logger_name.startswith("services."):
        parts = logger_name.split(".")
        if len(parts) >= 2:
            event_dict.setdefault("service", parts[1])
    return event_dict


class EnhancedTextRenderer:
    """Readable single-line renderer for local development."""

    def __init__(self, service_name: str):
        self.service_name = service_name

    def __call__(
        self,
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> str:
        level = str(event_dict.get("level", "info")).upper()
        service = event_dict.get("service", self.service_name)
        logger_name = str(event_dict.get("logger", ""))
        if logger_name.startswith("services."):
            logger_name = logger_name[len("services.") :]

        request_id = str(event_dict.get("request_id", ""))
        request_suffix = f"[{request_id[-4:]}]" if request_id else ""

        parts = [
            str(event_dict.get("timestamp", "")),
            f"[{service}]",
            f"[{level}]",
            request_suffix,
            logger_name,
            f"- {event_dict.get('event', '')}",
        ]

        extra = []
        for key, value in event_dict.items():
            if key in _RESERVED_KEYS:
                continue
            if isinstance(value, (str, int, float, bool)) or value is None:
                extra.append(f"{key}={value}")
            else:
                extra.append(f"{key}={str(value)[:150]}")
        if extra:
            parts.append(f"| {', '.join(extra)}")

        return " ".join(part for part in parts if part)


def setup_service_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Set up logging configuration for a service.

    Args:
        service_name: Name of the service (e.g., "availability")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Format type ("json" or "text")
    """
    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_request_context,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(EnhancedTextRenderer(service_name))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # structlog renders the final line; stdlib only passes it through
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[handler],
        force=True,
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    get_logger(__name__).info(
        f"Logging configured for {service_name}",
        log_level=log_level,
        log_format=log_format,
    )


def create_request_logging_middleware() -> Callable:
    """
    Create HTTP request logging middleware for FastAPI.

    Returns:
        Async middleware function for FastAPI
    """

    async def log_requests(request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        request_id_var.set(request_id)
        tenant_id_var.set(request.headers.get("X-Tenant-Id") or "unknown")
        user_id_var.set(request.headers.get("X-User-Id") or "anonymous")

        start_time = time.time()
        logger = get_logger("http.requests")
        logger.info(
            f"→ {request.method} {request.url.path}",
            method=request.method,
            query_params=str(request.query_params) if request.query_params else None,
            client_ip=request.client.host if request.client else "unknown",
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            f"← {request.method} {request.url.path} → "
            f"{response.status_code} ({process_time:.3f}s)",
            status_code=response.status_code,
            process_time=process_time,
        )
        response.headers["X-Request-Id"] = request_id
        return response

    return log_requests


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_service_startup(service_name: str, **kwargs: Any) -> None:
    """Log service startup with configuration details."""
    get_logger("startup").info(f"Starting {service_name}", service=service_name, **kwargs)


def log_service_shutdown(service_name: str) -> None:
    """Log service shutdown event."""
    get_logger(__name__).info(f"Service {service_name} shutting down")
