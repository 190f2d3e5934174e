import asyncio
import logging
from collections.abc import Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from backoffice.config import settings
from backoffice.constants.roles import RoleName
from backoffice.exceptions import AuthorizationError, InvalidTokenError
from backoffice.services.token_service import TokenService, get_token_service

# Initialize logging
logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

# Bearer scheme for access token validation
bearer_scheme = HTTPBearer(auto_error=False)


# Function to hash a password
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# Function to verify a password
def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


# bcrypt is slow on purpose; keep it off the event loop
async def hash_password_async(password: str) -> str:
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(plain_password: str, hashed_password: str) -> bool:
    return await asyncio.to_thread(verify_password, plain_password, hashed_password)


class CurrentUser:
    """Claims of a verified access token."""

    def __init__(self, user_id: str, email: str, role: str):
        self.user_id = user_id
        self.email = email
        self.role = role

    def __repr__(self) -> str:
        return f"<CurrentUser(user_id={self.user_id}, role={self.role})>"


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    token_service: TokenService = Depends(get_token_service),
) -> CurrentUser:
    """Resolve the caller from the ``Authorization: Bearer`` access token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise InvalidTokenError("Authentication token is required")

    claims = token_service.verify_access(credentials.credentials)
    if claims is None:
        logger.info("Rejected invalid or expired access token")
        raise InvalidTokenError()

    return CurrentUser(user_id=claims["userId"], email=claims["email"], role=claims["role"])


def get_current_user_with_role(required_roles: list[str]) -> Callable[..., CurrentUser]:
    async def _current_user_with_role(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        """
        Verify the current user and ensure they have the required role(s).

        Raises:
            AuthorizationError: If the role is not allowed
        """
        if current_user.role not in required_roles:
            logger.warning(f"Role '{current_user.role}' denied; required one of {required_roles}")
            raise AuthorizationError()
        return current_user

    return _current_user_with_role


require_admin = get_current_user_with_role([RoleName.ADMIN.value])
