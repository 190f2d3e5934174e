"""Constants package for the back-office API."""

from .auth import (
    BACKUP_CODE_BYTES,
    REFRESH_TOKEN_LIFETIME_DAYS,
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_MFA_CHALLENGE,
    TOKEN_TYPE_REFRESH,
    TOTP_DIGITS,
    TOTP_STEP_SECONDS,
)
from .roles import DEFAULT_ROLE, MFA_REQUIRED_ROLES, RoleName, requires_mfa

__all__ = [
    # Role constants
    "RoleName",
    "DEFAULT_ROLE",
    "MFA_REQUIRED_ROLES",
    "requires_mfa",
    # Auth constants
    "TOKEN_TYPE_ACCESS",
    "TOKEN_TYPE_REFRESH",
    "TOKEN_TYPE_MFA_CHALLENGE",
    "REFRESH_TOKEN_LIFETIME_DAYS",
    "TOTP_STEP_SECONDS",
    "TOTP_DIGITS",
    "BACKUP_CODE_BYTES",
]
