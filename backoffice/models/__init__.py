from .refresh_token import RefreshToken
from .user import User

__all__ = [
    "RefreshToken",
    "User",
]
