"""
Application exceptions and the global handlers that render them.

Every error reaching an HTTP caller has the shape
``{"error_code", "message", "details"}``.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class RuleValidationError(AppException):
    """Raised when an administrative write carries an invalid field."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            message=f"Invalid {field}: {reason}",
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"field": field, "reason": reason},
        )
        self.field = field
        self.reason = reason


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id},
        )


class ConfirmationRequired(AppException):
    """Raised when a version activation is attempted without confirm=true."""

    def __init__(self, version_id: Optional[str] = None):
        super().__init__(
            message="Activation confirmation is required",
            error_code="ERR_CONFIRM_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": version_id, "confirm": False},
        )


class VersionStateError(AppException):
    """Raised when a version's status does not allow the requested change."""

    def __init__(self, version_id: str, current_status: str, message: str):
        super().__init__(
            message=message,
            error_code="ERR_VERSION_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": version_id, "status": current_status},
        )


class StoreUnavailable(AppException):
    """Raised when the backing pricing store cannot be reached."""

    def __init__(self, operation: str):
        super().__init__(
            message="Pricing store is unavailable",
            error_code="ERR_STORE_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"operation": operation},
        )
        self.operation = operation


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code_map.get(exc.status_code, "ERR_UNKNOWN"),
            "message": exc.detail,
            "details": {},
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Pydantic validation errors keep their field locations for the admin UI."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    errors = []
    for err in exc.errors():
        errors.append({
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "reason": err.get("msg"),
            "type": err.get("type"),
        })
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {},
        },
    )
