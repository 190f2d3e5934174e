"""
Role Constants

Account roles known to the back-office. Only administrators are subject to
mandatory two-factor enrollment.
"""

from enum import Enum


class RoleName(str, Enum):
    """Enumeration of role names in the system."""

    ADMIN = "ADMIN"
    USER = "USER"


# Default role for accounts created through user management
DEFAULT_ROLE = RoleName.USER

# Roles that must complete MFA enrollment before receiving session tokens
MFA_REQUIRED_ROLES = frozenset({RoleName.ADMIN})


def requires_mfa(role: str) -> bool:
    """Check whether accounts with this role must use a second factor."""
    try:
        return RoleName(role) in MFA_REQUIRED_ROLES
    except ValueError:
        return False
