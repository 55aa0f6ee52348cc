"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.
"""

import time
import uuid
from typing import Callable, Optional
from datetime import datetime, timezone

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ticket_assist.config import settings
from ticket_assist.core import (
    ApplicationException,
    ValidationException,
    InitializationException,
    ConfigurationException,
    ExternalServiceException,
)
from ticket_assist.shared.infrastructure.logging import get_logger, set_correlation_id

logger = get_logger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    The ID is stored on the request state and bound to the logging context so
    every log line of the request carries it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Tracks request metrics for monitoring.

    Records response times and request counts for observability.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.request_count = 0
        self.total_response_time = 0.0

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        self.request_count += 1

        response = await call_next(request)

        response_time = time.perf_counter() - start_time
        self.total_response_time += response_time

        response.headers["X-Response-Time"] = f"{response_time:.3f}s"
        response.headers["X-Request-Count"] = str(self.request_count)

        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all requests and responses.

    Provides audit trail and debugging information.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        logger.info(
            "Request started",
            extra={
                "method": request.method,
                "url": str(request.url),
                "client": request.client.host if request.client else None
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "url": str(request.url),
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


def error_body(
    message: str,
    exc: Optional[Exception] = None,
    correlation_id: Optional[str] = None
) -> dict:
    """
    Build the structured failure payload.

    The message is meant for humans; ``error`` carries the machine detail.
    """
    error: dict = {}
    if exc is not None:
        error["type"] = type(exc).__name__
        error["detail"] = getattr(exc, "message", str(exc))
    if isinstance(exc, ValidationException):
        error["errors"] = exc.errors
    return {
        "success": False,
        "message": message,
        "error": error,
        "correlation_id": correlation_id,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def status_for(exc: ApplicationException) -> int:
    """Map an application exception to an HTTP status code."""
    if isinstance(exc, ValidationException):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (InitializationException, ConfigurationException)):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, ExternalServiceException):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Return a structured failure for known application errors."""
    correlation_id = getattr(request.state, "correlation_id", None)
    status_code = status_for(exc)

    log = logger.warning if status_code < 500 else logger.error
    log(
        "Request rejected",
        extra={
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "status_code": status_code
        }
    )

    if isinstance(exc, ValidationException):
        message = "Validation failed"
    else:
        message = "Failed to find similar tickets"

    return JSONResponse(
        status_code=status_code,
        content=error_body(message, exc, correlation_id)
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Internal details are only exposed in development.
    """
    correlation_id = getattr(request.state, "correlation_id", None)

    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    body = error_body("Internal server error", correlation_id=correlation_id)
    if settings.environment == "development":
        body["error"] = {"type": type(exc).__name__, "detail": str(exc)}

    return JSONResponse(status_code=500, content=body)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies in the same shape as service validation errors."""
    errors = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    correlation_id = getattr(request.state, "correlation_id", None)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", ValidationException(errors), correlation_id)
    )
