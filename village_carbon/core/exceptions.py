"""
Custom exception classes and error handling utilities.
"""
from typing import Optional, Dict, Any
import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from village_carbon.core.settings import settings

logger = structlog.get_logger(__name__)


class VillageCarbonException(Exception):
    """Base exception class for the carbon ledger service."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(VillageCarbonException):
    """Missing or invalid session."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class AuthorizationError(VillageCarbonException):
    """Caller lacks the required role."""

    def __init__(self, message: str = "Forbidden: Admin access required"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN
        )


class ValidationError(VillageCarbonException):
    """Missing or malformed input."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidAmountError(ValidationError):
    """Amount is zero, NaN or not finite."""

    def __init__(self, amount: Any):
        super().__init__(
            message="Invalid amount",
            details={"amount": str(amount)}
        )


class NotFoundError(VillageCarbonException):
    """Resource not found errors."""

    def __init__(self, resource: str, identifier: str = ""):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND
        )


class UserNotFoundError(NotFoundError):
    """Adjustment target does not resolve to a user."""

    def __init__(self, user_id: Any):
        super().__init__("User", str(user_id))


class InsufficientBalanceError(VillageCarbonException):
    """Adjustment would drive the balance below zero."""

    def __init__(self, amount: Any, available: Any = None):
        details = {"amount": str(amount)}
        if available is not None:
            details["available_balance"] = str(available)
        super().__init__(
            message="Insufficient balance. Adjustment would result in negative balance.",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class LedgerIntegrityError(VillageCarbonException):
    """Attempt to mutate an append-only ledger record."""

    def __init__(self, message: str):
        super().__init__(message=message)


class InternalError(VillageCarbonException):
    """Unexpected failure, e.g. the store is unavailable."""

    def __init__(self, message: str = "Internal server error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)


def _error_body(message: str, error_type: str, status_code: int, details: Optional[Dict[str, Any]] = None) -> dict:
    body = {
        "message": message,
        "type": error_type,
        "status_code": status_code,
    }
    if details is not None:
        body["details"] = details
    return {"error": body}


# Exception handlers
async def village_carbon_exception_handler(request: Request, exc: VillageCarbonException) -> JSONResponse:
    """Global exception handler for service exceptions."""
    details = exc.details
    message = exc.message
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            method=request.method,
            error_type=exc.__class__.__name__,
            error=exc.message,
            details=exc.details,
        )
        if not settings.is_development:
            details = None
            message = "Internal server error"

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, exc.__class__.__name__, exc.status_code, details)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as 400s."""
    logger.warning(
        "Validation error",
        path=request.url.path,
        method=request.method,
        errors=str(exc.errors()),
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Input validation failed",
                "type": "ValidationError",
                "status_code": status.HTTP_400_BAD_REQUEST,
                "details": str(exc.errors()) if settings.is_development else None,
            }
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unexpected exceptions."""
    logger.exception(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "Internal server error",
            "InternalServerError",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    )
