"""
Custom Exception Classes for the Back-Office API

This module defines the operational error taxonomy of the auth subsystem.
Each exception carries an HTTP status code and a machine-readable
error code so handlers can render a consistent response envelope.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in every error response."""

    # Authentication
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_INVALID_REFRESH_TOKEN = "AUTH_INVALID_REFRESH_TOKEN"
    AUTH_INVALID_PASSWORD = "AUTH_INVALID_PASSWORD"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"

    # MFA
    MFA_ENROLLMENT_REQUIRED = "MFA_ENROLLMENT_REQUIRED"
    MFA_ALREADY_ENABLED = "MFA_ALREADY_ENABLED"
    MFA_NOT_ENABLED = "MFA_NOT_ENABLED"
    MFA_SECRET_MISSING = "MFA_SECRET_MISSING"
    MFA_INVALID_CODE = "MFA_INVALID_CODE"
    MFA_INVALID_CHALLENGE = "MFA_INVALID_CHALLENGE"
    MFA_VERIFICATION_FAILED = "MFA_VERIFICATION_FAILED"

    # Crypto
    CRYPTO_TAMPER_DETECTED = "CRYPTO_TAMPER_DETECTED"

    # Resources & validation
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_DUPLICATE_RESOURCE = "VALIDATION_DUPLICATE_RESOURCE"

    # Infrastructure
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class BackofficeError(Exception):
    """Base exception class for all back-office exceptions"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)

    @property
    def is_operational(self) -> bool:
        """Client-facing failures (4xx) as opposed to internal faults."""
        return self.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(BackofficeError):
    """Raised when authentication fails"""

    error_code = ErrorCode.AUTH_FAILED

    def __init__(self, message: str = "Authentication failed", details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Raised for an unknown email, an inactive account or a wrong password alike"""

    error_code = ErrorCode.AUTH_INVALID_CREDENTIALS

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message=message)


class InvalidTokenError(AuthenticationError):
    """Raised when an access token is missing, invalid or expired"""

    error_code = ErrorCode.AUTH_INVALID_TOKEN

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message=message)


class InvalidRefreshTokenError(AuthenticationError):
    """Raised when a refresh token fails signature, store or expiry checks"""

    error_code = ErrorCode.AUTH_INVALID_REFRESH_TOKEN

    def __init__(self, message: str = "Invalid or expired refresh token"):
        super().__init__(message=message)


class InvalidPasswordError(AuthenticationError):
    """Raised when password re-entry fails for a sensitive operation"""

    error_code = ErrorCode.AUTH_INVALID_PASSWORD

    def __init__(self, message: str = "Invalid password"):
        super().__init__(message=message)


class AuthorizationError(BackofficeError):
    """Raised when user lacks permission for an action"""

    error_code = ErrorCode.AUTH_PERMISSION_DENIED

    def __init__(
        self, message: str = "You do not have permission to perform this action", required_role: str | None = None
    ):
        details = {"required_role": required_role} if required_role else {}
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN, details=details)


# ============================================================================
# MFA Exceptions
# ============================================================================


class MfaAlreadyEnabledError(BackofficeError):
    """Raised when enrollment is attempted on an account that already uses MFA"""

    error_code = ErrorCode.MFA_ALREADY_ENABLED

    def __init__(self, message: str = "MFA is already enabled"):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST)


class MfaNotEnabledError(BackofficeError):
    """Raised when an MFA operation needs MFA to be on and it is not"""

    error_code = ErrorCode.MFA_NOT_ENABLED

    def __init__(self, message: str = "MFA is not enabled for this account"):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST)


class MfaSecretMissingError(BackofficeError):
    """Raised when MFA confirmation is attempted before a secret was issued"""

    error_code = ErrorCode.MFA_SECRET_MISSING

    def __init__(self, message: str = "Generate a secret before enabling MFA"):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidMfaCodeError(BackofficeError):
    """Raised when a TOTP or backup code does not verify"""

    error_code = ErrorCode.MFA_INVALID_CODE

    def __init__(self, message: str = "Invalid or expired MFA code"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class InvalidChallengeError(BackofficeError):
    """Raised when an MFA challenge token is invalid or expired"""

    error_code = ErrorCode.MFA_INVALID_CHALLENGE

    def __init__(self, message: str = "Invalid or expired MFA challenge"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class MfaVerificationFailedError(BackofficeError):
    """Raised when the stored secret cannot be used to verify a code"""

    error_code = ErrorCode.MFA_VERIFICATION_FAILED

    def __init__(self, message: str = "MFA verification failed"):
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# ============================================================================
# Cryptography Exceptions
# ============================================================================


class CryptoError(BackofficeError):
    """Raised when an encrypted payload is malformed or fails authentication"""

    error_code = ErrorCode.CRYPTO_TAMPER_DETECTED

    def __init__(self, message: str = "Invalid encrypted payload"):
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(BackofficeError):
    """Base class for resource not found errors"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None, message: str | None = None):
        if message is None:
            message = f"{resource_type} not found"
            if resource_id is not None:
                message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a user is not found"""

    def __init__(self, user_id: Any | None = None):
        super().__init__(resource_type="User", resource_id=user_id)


class AdminNotFoundError(ResourceNotFoundError):
    """Raised when an admin-only flow targets a missing, non-admin or inactive account"""

    def __init__(self, message: str = "Admin not found"):
        super().__init__(resource_type="Admin", message=message)


class DuplicateResourceError(BackofficeError):
    """Raised when attempting to create a duplicate resource"""

    error_code = ErrorCode.VALIDATION_DUPLICATE_RESOURCE

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource_type": resource_type, "field": field},
        )


# ============================================================================
# Database & Service Exceptions
# ============================================================================


class DatabaseError(BackofficeError):
    """Raised when a database operation fails"""

    error_code = ErrorCode.DATABASE_ERROR

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)
