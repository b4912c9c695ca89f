"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for custom exceptions
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..llm.types import (
    ProviderError,
    ProviderValidationError,
    ProviderTimeoutError,
    ProviderTransportError,
    ProviderHTTPError,
    ProviderParseError,
    ProviderResponseError,
    QueryCancelledError,
)
from ..utils.exceptions import APIException, ProviderNotFoundError, NoActiveProviderError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# 499: client closed request (nginx convention)
STATUS_CLIENT_CLOSED = 499


def describe_error(exc: Exception) -> tuple[int, str, str]:
    """
    Classify an exception for API responses and SSE error events.

    Returns:
        (http_status, error_code, detail)
    """
    if isinstance(exc, ProviderValidationError):
        return status.HTTP_400_BAD_REQUEST, exc.code, "Check the prompt and provider configuration"
    if isinstance(exc, ProviderHTTPError):
        return status.HTTP_502_BAD_GATEWAY, "LLM_HTTP_ERROR", f"Provider answered HTTP {exc.status_code}"
    if isinstance(exc, ProviderTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT, "LLM_TIMEOUT", "LLM provider request timed out"
    if isinstance(exc, ProviderTransportError):
        return status.HTTP_503_SERVICE_UNAVAILABLE, "LLM_UNAVAILABLE", "LLM provider is not reachable"
    if isinstance(exc, ProviderParseError):
        return status.HTTP_502_BAD_GATEWAY, "LLM_EMPTY_RESPONSE", "LLM provider returned no recognizable text"
    if isinstance(exc, ProviderResponseError):
        return status.HTTP_502_BAD_GATEWAY, "LLM_BAD_GATEWAY", "LLM provider returned an error payload"
    if isinstance(exc, QueryCancelledError):
        return STATUS_CLIENT_CLOSED, "QUERY_CANCELLED", "Query was cancelled"
    if isinstance(exc, ProviderNotFoundError):
        return status.HTTP_404_NOT_FOUND, exc.code, "Unknown provider id"
    if isinstance(exc, NoActiveProviderError):
        return status.HTTP_409_CONFLICT, exc.code, "Enable a provider and set its API key"
    if isinstance(exc, APIException):
        return status.HTTP_400_BAD_REQUEST, exc.code, exc.message
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Unexpected error"


def error_message(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc)


async def provider_error_handler(request: Request, exc: ProviderError):
    """
    Handle query engine failures.

    WHAT: Validation, transport, HTTP status, parse and cancellation errors
    WHY: The shell shows `message` directly to the user
    HOW: Map through describe_error, include vendor status when known
    """
    status_code, code, detail = describe_error(exc)
    if isinstance(exc, ProviderValidationError):
        logger.warning(f"Query rejected: {exc.code} - {exc.message}")
    else:
        logger.error(f"Query failed: {code} - {exc.message}")

    content = {
        "error": code,
        "message": exc.message,
        "detail": detail,
    }
    if isinstance(exc, ProviderHTTPError):
        content["provider_status"] = exc.status_code
    return JSONResponse(status_code=status_code, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    cleaned_errors = []
    for error in exc.errors():
        cleaned_errors.append({
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": cleaned_errors,
            "timestamp": datetime.now().isoformat()
        }
    )


async def api_exception_handler(request: Request, exc: APIException):
    """
    Handle generic APIException.

    WHAT: Custom API exception
    WHY: Domain-specific error
    HOW: Return appropriate status code based on exception type
    """
    status_code, _, _ = describe_error(exc)
    logger.warning(f"API exception: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
            "timestamp": datetime.now().isoformat()
        }
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(APIException, api_exception_handler)

    logger.info("Exception handlers registered")
