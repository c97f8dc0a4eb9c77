"""
Global error handling middleware.

Maps the InventoryHub error taxonomy onto HTTP responses with a uniform
``{"error", "message", "details"}`` body.
"""

import time
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import SQLAlchemyError

from inventory_hub.utils.logger import get_logger
from inventory_hub.utils.exceptions import (
    InventoryHubError,
    ValidationError,
    AuthenticationError,
    NotFoundError,
    DatabaseError,
    TenantResolutionError,
    TenantContextError,
    IsolationViolationError,
    QuotaExceededError,
    TierChangeError,
    AuditRecordingError,
)

logger = get_logger(__name__)

TENANT_REJECTION_MESSAGE = "Tenant not found or subscription expired"


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "details": details or None},
        headers=headers,
    )


def tenant_rejection_response(details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    """400 answer for requests whose tenant is unknown, inactive or expired."""
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        TENANT_REJECTION_MESSAGE,
        TENANT_REJECTION_MESSAGE,
        details,
    )


def exception_response(request: Request, e: Exception) -> JSONResponse:
    """Map an exception raised below the middleware stack to its HTTP answer."""
    if isinstance(e, TenantResolutionError):
        logger.warning(f"Tenant resolution failed: {e}")
        return tenant_rejection_response(e.details)

    if isinstance(e, IsolationViolationError):
        # Already logged at the isolation boundary
        return error_response(
            status.HTTP_403_FORBIDDEN,
            "Isolation Violation",
            "Operation outside the current tenant is not allowed",
        )

    if isinstance(e, QuotaExceededError):
        logger.warning(f"Quota exceeded: {e}")
        return error_response(status.HTTP_403_FORBIDDEN, "Quota Exceeded", e.message, e.details)

    if isinstance(e, ValidationError):
        logger.warning(f"Validation error: {e}")
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", e.message, e.details
        )

    if isinstance(e, TierChangeError):
        logger.warning(f"Rejected tier change: {e}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid Tier Change", e.message, e.details)

    if isinstance(e, NotFoundError):
        return error_response(status.HTTP_404_NOT_FOUND, "Not Found", e.message, e.details)

    if isinstance(e, AuthenticationError):
        logger.warning(f"Authentication error: {e}")
        return error_response(
            status.HTTP_401_UNAUTHORIZED,
            "Authentication Error",
            e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    if isinstance(e, TenantContextError):
        logger.error(f"Tenant context misuse on {request.url.path}: {e}", exc_info=e)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal Error",
            "Tenant context unavailable",
        )

    if isinstance(e, AuditRecordingError):
        logger.error(f"Audit recording failed, change rolled back: {e}", exc_info=e)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Audit Error",
            "The change could not be audited and was not saved",
        )

    if isinstance(e, (DatabaseError, SQLAlchemyError)):
        logger.error(f"Database error: {e}", exc_info=e)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Database Error",
            "A database error occurred",
        )

    if isinstance(e, InventoryHubError):
        logger.error(f"InventoryHub error: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Error", e.message)

    logger.error(f"Unhandled exception: {e}", exc_info=e)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred",
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware for consistent error handling and logging.
    """

    async def dispatch(self, request: Request, call_next):
        """Process request with error handling."""
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            response = exception_response(request, e)

        duration = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} - {duration:.3f}s"
        )

        return response
