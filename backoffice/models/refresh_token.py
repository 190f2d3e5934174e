"""
Refresh Token Model

Stores issued refresh tokens. Deleting a row revokes the token.
"""

from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from backoffice.constants.auth import REFRESH_TOKEN_LIFETIME_DAYS
from backoffice.database import Base
from backoffice.models.user import utcnow


class RefreshToken(Base):
    """Model for persisted refresh tokens"""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    token = Column(String(512), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="refresh_tokens", lazy="joined")

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if token is expired"""
        return (now or utcnow()) > self.expires_at

    @staticmethod
    def get_expiry_time(days: int = REFRESH_TOKEN_LIFETIME_DAYS) -> datetime:
        """Get expiry time (default 7 days from now)"""
        return utcnow() + timedelta(days=days)
