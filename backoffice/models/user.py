"""
Account Model

Back-office user accounts, including the administrator MFA fields.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, String
from sqlalchemy.orm import relationship

from backoffice.constants.roles import RoleName
from backoffice.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """
    Back-office account.

    Stores:
    - bcrypt password hash
    - TOTP secret (AES-GCM encrypted, see backoffice.utils.crypto)
    - Backup codes (bcrypt hashed), consumed one at a time
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(RoleName, name="role_name"), nullable=False, default=RoleName.USER)
    is_active = Column(Boolean, nullable=False, default=True)

    # Whether MFA is fully enabled (after the first verified code)
    mfa_enabled = Column(Boolean, nullable=False, default=False)

    # Encrypted TOTP secret, "<nonce-hex>:<ciphertext-hex>:<tag-hex>"
    mfa_secret = Column(String(255), nullable=True)

    # Hashed backup codes, JSON array
    mfa_backup_codes = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role}, mfa_enabled={self.mfa_enabled})>"
