"""
Closed set of application error variants.

Every variant carries a fixed HTTP status and a machine-readable code. The
API boundary renders any of them into the standard error envelope; see
``taskgate.core.exceptions.handlers``.
"""

from typing import Any

from fastapi import status


class AppException(Exception):
    """Base application exception."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppException):
    """Malformed input; ``details`` holds field-level errors."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_FAILED"
    default_message = "Request validation failed."


class RateLimited(AppException):
    """Too many OTP issuances/resends or requests."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "TOO_MANY_REQUESTS"
    default_message = "Too many requests. Please try again later."

    def __init__(
        self,
        message: str | None = None,
        retry_after: int | None = None,
        details: Any = None,
    ):
        super().__init__(message, details)
        self.retry_after = retry_after


class InvalidOrExpiredCode(AppException):
    """OTP mismatch, expiry or exhausted attempts, deliberately undifferentiated."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_OTP"
    default_message = "Invalid or expired OTP."


class EmailInUse(AppException):
    """Signup against an already verified email."""

    status_code = status.HTTP_409_CONFLICT
    code = "OCCUPIED_EMAIL"
    default_message = "Email already in use."


class WrongCredentials(AppException):
    """Login failure; unknown email and bad password look the same."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CRED"
    default_message = "Invalid email or password."


class NotFound(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found."


class Forbidden(AppException):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Access denied."


class BadRequest(AppException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    default_message = "Bad request."


class Unauthorized(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    default_message = "Authentication required."


class AuthenticationTokenMissing(Unauthorized):
    code = "AUTHENTICATION_TOKEN_MISSING"
    default_message = "Authentication token missing."


class WrongAuthenticationToken(Unauthorized):
    code = "WRONG_AUTHENTICATION_TOKEN"
    default_message = "Wrong authentication token."


class DeliveryError(AppException):
    """Email dispatch failed. Propagated to the caller, never retried by the OTP engine."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "EMAIL_DELIVERY_FAILED"
    default_message = "Failed to deliver the verification email."


class ExecutionError(AppException):
    """Job payload execution failed or timed out."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "EXECUTION_FAILED"
    default_message = "Job execution failed."


class DatabaseException(AppException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "DATABASE_ERROR"
    default_message = "A database error occurred."


class ServiceUnavailable(AppException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"
    default_message = "Service unavailable."


# Most specific first; the API boundary registers a handler for each entry.
ERROR_VARIANTS: tuple[type[AppException], ...] = (
    ValidationError,
    RateLimited,
    InvalidOrExpiredCode,
    EmailInUse,
    WrongCredentials,
    NotFound,
    Forbidden,
    BadRequest,
    AuthenticationTokenMissing,
    WrongAuthenticationToken,
    Unauthorized,
    DeliveryError,
    ExecutionError,
    DatabaseException,
    ServiceUnavailable,
    AppException,
)


__all__ = [
    "AppException",
    "ValidationError",
    "RateLimited",
    "InvalidOrExpiredCode",
    "EmailInUse",
    "WrongCredentials",
    "NotFound",
    "Forbidden",
    "BadRequest",
    "Unauthorized",
    "AuthenticationTokenMissing",
    "WrongAuthenticationToken",
    "DeliveryError",
    "ExecutionError",
    "DatabaseException",
    "ServiceUnavailable",
    "ERROR_VARIANTS",
]
