"""
Custom exceptions for the storefront.

Provides a hierarchy of exceptions for clean error handling in services and routes.
Bad admin passwords are not exceptions: they are recorded by the session guard.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AppException):
    """Raised when input validation fails. No state is mutated."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class AuthenticationRequiredError(AppException):
    """Raised when an admin-only action is attempted without a live session."""

    status_code = 401
    error_code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str = "Admin login required"):
        super().__init__(message)


class ProductNotFoundError(AppException):
    """Raised when a product id is not in the catalog."""

    status_code = 404
    error_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        super().__init__(
            f"Product not found: {product_id}",
            details={"product_id": product_id},
        )


class TransientProviderError(AppException):
    """Raised when an exchange-rate provider fails (network, timeout, bad body)."""

    status_code = 502
    error_code = "RATE_PROVIDER_ERROR"

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message, details={"provider": provider})
        self.provider = provider


class StorageError(AppException):
    """Raised when the persistence substrate cannot be written."""

    status_code = 500
    error_code = "STORAGE_ERROR"
