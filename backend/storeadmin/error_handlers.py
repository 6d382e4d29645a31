"""
Error handling for the API

Provides:
- API exception classes
- Exception handlers for FastAPI
- Standardized error responses: {"error": CODE, "message": ..., "path": ...}
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError

from storeadmin.services.errors import TokenIssuanceError, PersistenceError

logger = logging.getLogger(__name__)

# Shown to end users for any failed account e-mail, whatever the cause
GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again later."


class APIError(Exception):
    """Base class for API exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR"
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class BadRequestError(APIError):
    """Request understood but cannot be processed (e.g. invalid token)"""

    def __init__(self, message: str = "Bad request", error_code: str = "BAD_REQUEST"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code
        )


def _error_body(request: Request, error_code: str, message: str) -> dict:
    return {
        "error": error_code,
        "message": message,
        "path": request.url.path
    }


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API exceptions"""
    logger.warning(
        f"API error: {exc.error_code} - {exc.message}",
        extra={"path": request.url.path}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.error_code, exc.message)
    )


async def token_issuance_error_handler(request: Request, exc: TokenIssuanceError) -> JSONResponse:
    """Account e-mail failures: log the cause, show a generic message"""
    stage = "persistence" if isinstance(exc, PersistenceError) else "delivery"
    logger.error(
        f"Account e-mail failed at {stage}: {exc}",
        extra={"path": request.url.path},
        exc_info=exc
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "NOTIFICATION_FAILED", GENERIC_FAILURE_MESSAGE)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors"""
    errors = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]

    logger.warning(
        f"Validation error: {errors}",
        extra={"path": request.url.path}
    )

    content = _error_body(request, "VALIDATION_ERROR", "Request validation failed")
    content["details"] = errors
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content
    )


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy database errors"""
    logger.error(
        f"Database error: {str(exc)}",
        extra={"path": request.url.path},
        exc_info=exc
    )

    if isinstance(exc, IntegrityError):
        status_code, error_code, message = (
            status.HTTP_409_CONFLICT, "INTEGRITY_ERROR", "Database integrity constraint violated"
        )
    elif isinstance(exc, OperationalError):
        status_code, error_code, message = (
            status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_UNAVAILABLE", "Database is currently unavailable"
        )
    else:
        status_code, error_code, message = (
            status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR", "An unexpected database error occurred"
        )

    return JSONResponse(status_code=status_code, content=_error_body(request, error_code, message))


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={"path": request.url.path},
        exc_info=exc
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "INTERNAL_ERROR", "An unexpected error occurred")
    )


def register_error_handlers(app):
    """Register all error handlers with the FastAPI app"""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(TokenIssuanceError, token_issuance_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    logger.info("Error handlers registered")
