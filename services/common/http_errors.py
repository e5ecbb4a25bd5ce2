"""
Shared HTTP error classes and utilities for the scheduling services.

Provides:
- Base exception class for API errors
- Common subclasses (Validation, NotFound, Conflict, CapacityExceeded,
  SlotUnavailable, Service)
- Shared error response model
- Utility to convert exceptions to error responses
- FastAPI exception handler registration

Basic Exception Usage:
>>> from services.common.http_errors import NotFoundError, ValidationError
>>>
>>> # Validation error with field context
>>> error = ValidationError("Invalid time format", field="start", value="9am")
>>>
>>> # Resource not found
>>> error = NotFoundError("Slot", "slot-123")
>>> print(error.message)
Slot slot-123 not found

FastAPI Integration:
>>> from fastapi import FastAPI
>>> from services.common.http_errors import register_scheduling_exception_handlers
>>>
>>> app = FastAPI()
>>> register_scheduling_exception_handlers(app)

Error Code Taxonomy:
===================
- VALIDATION_FAILED : Input validation errors (422)
- NOT_FOUND : Resource not found (404)
- CONFLICT, CAPACITY_EXCEEDED, SLOT_UNAVAILABLE : State conflicts (409)
- INTERNAL_ERROR, SERVICE_ERROR : Server-side failures (500)
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for the scheduling services."""

    # Client errors
    VALIDATION_FAILED = "VALIDATION_FAILED"  # HTTP 422
    NOT_FOUND = "NOT_FOUND"  # HTTP 404

    # State conflicts (HTTP 409)
    CONFLICT = "CONFLICT"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"

    # Server errors
    INTERNAL_ERROR = "INTERNAL_ERROR"  # HTTP 500
    SERVICE_ERROR = "SERVICE_ERROR"  # HTTP 500
    DATABASE_ERROR = "DATABASE_ERROR"  # HTTP 500


class ErrorResponse(BaseModel):
    """
    Standardized error response body.

    Attributes:
        type: Error category (e.g., "validation_error", "conflict")
        message: Human-readable error message
        details: Optional additional context
        timestamp: ISO 8601 timestamp of when the error occurred
        request_id: Identifier for tracing the failing request
    """

    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


def _current_request_id() -> str:
    request_id = request_id_var.get()
    if request_id and request_id != "uninitialized":
        return request_id
    return str(uuid.uuid4())


class SchedulingAPIException(Exception):
    """
    Base exception class for all scheduling API errors.

    Carries everything needed to render a standard ErrorResponse: the error
    category, a specific ErrorCode and the HTTP status to return.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: str = "internal_error",
        error_code: Optional[ErrorCode] = None,
        status_code: int = 500,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_type = error_type
        self.error_code = error_code
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.request_id = request_id or _current_request_id()
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert the exception to an ErrorResponse, adding the error code."""
        details = {
            **self.details,
            **({"code": self.error_code.value} if self.error_code else {}),
        }
        return ErrorResponse(
            type=self.error_type,
            message=self.message,
            details=details or None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )


class ValidationError(SchedulingAPIException):
    """
    Exception for input validation errors (HTTP 422).

    Examples:
        >>> error = ValidationError("Time must be in HH:MM format", field="end", value="25:00")
        >>> error.details["field"]
        'end'
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        validation_details = dict(details or {})
        if field:
            validation_details["field"] = field
        if value is not None:
            validation_details["value"] = str(value)
        super().__init__(
            message=message,
            details=validation_details,
            error_type="validation_error",
            error_code=ErrorCode.VALIDATION_FAILED,
            status_code=422,
        )
        self.field = field
        self.value = value


class NotFoundError(SchedulingAPIException):
    """
    Exception for resource not found errors (HTTP 404).

    Examples:
        >>> NotFoundError("Profile", "p-1").message
        'Profile p-1 not found'
        >>> NotFoundError("Profile").message
        'Profile not found'
    """

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} {identifier} not found" if identifier else f"{resource} not found"
        super().__init__(
            message=message,
            details={**(details or {}), "resource": resource, "identifier": identifier},
            error_type="not_found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
        )
        self.resource = resource
        self.identifier = identifier


class ConflictError(SchedulingAPIException):
    """Exception for requests that conflict with current resource state (HTTP 409)."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.CONFLICT,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="conflict",
            error_code=code,
            status_code=409,
        )


class CapacityExceededError(ConflictError):
    """
    Raised when a booking is attempted on a slot with no remaining capacity.

    Examples:
        >>> error = CapacityExceededError("s-1", max_bookings=1)
        >>> error.status_code
        409
    """

    def __init__(
        self,
        slot_id: str,
        max_bookings: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"Slot {slot_id} is fully booked",
            details={**(details or {}), "slot_id": slot_id, "max_bookings": max_bookings},
            code=ErrorCode.CAPACITY_EXCEEDED,
        )
        self.slot_id = slot_id
        self.max_bookings = max_bookings


class SlotUnavailableError(ConflictError):
    """Raised when a booking targets a blocked or tentative slot."""

    def __init__(self, slot_id: str, status: str):
        super().__init__(
            f"Slot {slot_id} is not available (status: {status})",
            details={"slot_id": slot_id, "status": status},
            code=ErrorCode.SLOT_UNAVAILABLE,
        )
        self.slot_id = slot_id
        self.status = status


class ServiceError(SchedulingAPIException):
    """Exception for internal inconsistencies and storage failures (HTTP 500)."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.SERVICE_ERROR,
        status_code: int = 500,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="service_error",
            error_code=code,
            status_code=status_code,
        )


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Convert any exception to a standardized ErrorResponse.

    SchedulingAPIException uses its own conversion, HTTPException details are
    normalized, and any other exception becomes a generic internal error that
    only reveals the exception class name.
    """
    if isinstance(exc, SchedulingAPIException):
        return exc.to_error_response()
    if isinstance(exc, HTTPException):
        detail = exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
        return ErrorResponse(
            type="http_error",
            message=detail.get("message", "HTTP error"),
            details=detail,
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=_current_request_id(),
        )
    return ErrorResponse(
        type="internal_error",
        message="Internal server error",
        details={"error_type": type(exc).__name__},
        timestamp=datetime.now(timezone.utc).isoformat(),
        request_id=_current_request_id(),
    )


def register_scheduling_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers that render every error as an ErrorResponse.

    - SchedulingAPIException: the exception's own status code and details
    - HTTPException: the original status code with normalized details
    - Any other exception: 500 with a safe internal error body
    """

    @app.exception_handler(SchedulingAPIException)
    async def scheduling_api_exception_handler(
        request: Request, exc: SchedulingAPIException
    ) -> JSONResponse:
        logger.warning(
            f"HTTP {exc.status_code} {exc.error_type}: {exc.message}",
            path=request.url.path,
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_error_response().model_dump()
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code, content=exception_to_response(exc).model_dump()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500, content=exception_to_response(exc).model_dump()
        )
