"""
Custom exceptions
Project: Order Ledger

Domain exceptions translated to HTTP responses by the handlers in main.py.

BadRequestError covers broken business rules (insufficient quantity,
overpayment, invalid transitions). Malformed payloads are still rejected
by pydantic with a 422 before reaching the services.
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "BadRequestError",
    "NotFoundError",
    "DuplicateError",
    "ConflictError",
    "AuthorizationError",
]


class AppException(Exception):
    """
    Base exception for the application.

    Attributes:
        status_code: HTTP status code returned to the client
        error_code: Stable identifier for the frontend
        detail: Human readable message
        extra: Additional data for the frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Internal server error"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.detail = detail if detail is not None else self.default_detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(self.detail)


class BadRequestError(AppException):
    """
    Raised when a request violates a business rule.

    Examples:
        - "Dispatch quantity exceeds remaining quantity"
        - "Payment exceeds the outstanding amount"
        - "Status transition not allowed"
    """

    status_code: int = 400
    error_code: str = "BAD_REQUEST"
    default_detail: str = "Invalid request"


class NotFoundError(AppException):
    """Raised when a referenced entity does not exist."""

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"
    default_detail: str = "Resource not found"


class DuplicateError(AppException):
    """Raised on unique constraint violations (e.g. email already in use)."""

    status_code: int = 409
    error_code: str = "DUPLICATE_RESOURCE"
    default_detail: str = "Resource already exists"


class ConflictError(AppException):
    """Raised when the current state of a resource prevents the operation."""

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"
    default_detail: str = "State conflict"


class AuthorizationError(AppException):
    """Raised when the caller's role lacks the required capability."""

    status_code: int = 403
    error_code: str = "FORBIDDEN"
    default_detail: str = "Access denied"
