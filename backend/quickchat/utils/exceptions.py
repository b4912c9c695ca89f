"""
Custom business exceptions for API endpoints.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across all API endpoints
HOW: Custom exception classes with error codes and messages
"""

from typing import Optional, Any


class APIException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ProviderNotFoundError(APIException):
    """Raised when a provider id does not exist."""

    def __init__(self, provider_id: str):
        super().__init__(
            message=f"Provider not found: {provider_id}",
            code="PROVIDER_NOT_FOUND",
            details={"provider_id": provider_id}
        )


class NoActiveProviderError(APIException):
    """Raised when no enabled provider with an API key is configured."""

    def __init__(self):
        super().__init__(
            message="No active provider with an API key is configured",
            code="NO_ACTIVE_PROVIDER",
        )
