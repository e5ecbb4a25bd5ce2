"""
Common utilities and configurations for the scheduling services.
"""

from services.common.telemetry import (
    add_span_attributes,
    get_tracer,
    record_exception,
    setup_telemetry,
)

__all__ = [
    "add_span_attributes",
    "get_tracer",
    "record_exception",
    "setup_telemetry",
]
