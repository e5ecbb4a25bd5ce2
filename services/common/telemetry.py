"""
OpenTelemetry configuration for the scheduling services.
"""

import os
import socket

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter


def setup_telemetry(service_name: str, service_version: str = "0.1.0") -> None:
    """
    Set up OpenTelemetry tracing for a service.

    Spans are only exported when OTEL_CONSOLE_EXPORT is enabled; otherwise
    the provider records them for in-process consumers.

    Args:
        service_name: Name of the service (e.g., "availability")
        service_version: Version of the service
    """
    # Only set up telemetry if not already configured
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": service_version,
            "host.name": socket.gethostname(),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )
    provider = TracerProvider(resource=resource)
    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() in ("1", "true", "yes"):
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer for the given name (typically ``__name__``)."""
    return trace.get_tracer(name)


def add_span_attributes(**attributes) -> None:
    """Add attributes to the current span."""
    span = trace.get_current_span()
    if span and span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)


def record_exception(exception: Exception, escaped: bool = False) -> None:
    """Record an exception in the current span and mark it as failed."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span.record_exception(exception, escaped=escaped)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(exception)))
