"""
Rate Limiting for FastAPI

Protects the login, MFA and password endpoints against brute force
attempts. Limits are per client address.
"""

from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from backoffice.config import settings

# Named limits for the sensitive route groups
AUTH_LIMIT = "10 per 15 minutes"
MFA_ENROLLMENT_LIMIT = "10 per 15 minutes"
MFA_SETUP_LIMIT = "5 per 15 minutes"
PASSWORD_LIMIT = "5 per 15 minutes"

# Create rate limiter instance
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100 per 15 minutes"],
    storage_uri="memory://",  # Use memory storage (upgrade to Redis for production)
    enabled=settings.rate_limit_enabled,
)


def configure_rate_limiting(app):
    """
    Configure rate limiting for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    # Applies default_limits to routes without their own @limiter.limit
    app.add_middleware(SlowAPIMiddleware)
