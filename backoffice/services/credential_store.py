"""
Credential Store

Keyed persistence for accounts and refresh tokens. The auth services only
talk to the ``CredentialStore`` protocol; ``SqlAlchemyCredentialStore`` is
the database-backed implementation used by the API.
"""

import logging
from datetime import datetime
from typing import Any, Protocol

from fastapi import Depends
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from backoffice.constants.roles import RoleName
from backoffice.database import get_db
from backoffice.exceptions import DatabaseError, DuplicateResourceError, UserNotFoundError
from backoffice.models.refresh_token import RefreshToken
from backoffice.models.user import User

logger = logging.getLogger(__name__)

# Columns update_account is allowed to touch
UPDATABLE_FIELDS = frozenset(
    {"name", "hashed_password", "role", "is_active", "mfa_enabled", "mfa_secret", "mfa_backup_codes"}
)


class CredentialStore(Protocol):
    """Persistence operations the auth subsystem depends on."""

    async def find_account_by_email(self, email: str) -> User | None: ...

    async def find_account_by_id(self, user_id: str) -> User | None: ...

    async def create_account(
        self, email: str, hashed_password: str, role: RoleName = RoleName.USER, name: str | None = None
    ) -> User: ...

    async def update_account(self, user_id: str, **fields: Any) -> User: ...

    async def create_refresh_token(self, token: str, user_id: str, expires_at: datetime) -> RefreshToken: ...

    async def find_refresh_token_by_value(self, token: str) -> RefreshToken | None: ...

    async def delete_refresh_token(self, token: str) -> int: ...

    async def delete_all_refresh_tokens_for_account(self, user_id: str) -> int: ...


class SqlAlchemyCredentialStore:
    """CredentialStore backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_account_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def find_account_by_id(self, user_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    async def create_account(
        self, email: str, hashed_password: str, role: RoleName = RoleName.USER, name: str | None = None
    ) -> User:
        user = User(
            email=email,
            name=name,
            hashed_password=hashed_password,
            role=RoleName(role),
            is_active=True,
            mfa_enabled=False,
            mfa_secret=None,
            mfa_backup_codes=[],
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateResourceError("User", "email", email) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to create account: {e}")
            raise DatabaseError("Failed to create account", operation="create_account") from e

        await self.db.refresh(user)
        logger.info(f"Account {user.id} created with role {user.role.value}")
        return user

    async def update_account(self, user_id: str, **fields: Any) -> User:
        """
        Apply a partial update to an account in a single commit.

        Raises:
            UserNotFoundError: If no account has this id
            ValueError: If a field is not updatable
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update account fields: {sorted(unknown)}")

        user = await self.find_account_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        for name, value in fields.items():
            # JSON columns need a fresh list to register the change
            setattr(user, name, list(value) if name == "mfa_backup_codes" else value)

        await self._commit("update_account")
        await self.db.refresh(user)
        return user

    async def create_refresh_token(self, token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        refresh_token = RefreshToken(token=token, user_id=user_id, expires_at=expires_at)
        self.db.add(refresh_token)
        await self._commit("create_refresh_token")
        return refresh_token

    async def find_refresh_token_by_value(self, token: str) -> RefreshToken | None:
        result = await self.db.execute(
            select(RefreshToken).options(joinedload(RefreshToken.user)).where(RefreshToken.token == token)
        )
        return result.scalars().first()

    async def delete_refresh_token(self, token: str) -> int:
        result = await self.db.execute(delete(RefreshToken).where(RefreshToken.token == token))
        await self._commit("delete_refresh_token")
        return result.rowcount or 0

    async def delete_all_refresh_tokens_for_account(self, user_id: str) -> int:
        result = await self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        await self._commit("delete_all_refresh_tokens_for_account")
        return result.rowcount or 0

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Credential store {operation} failed: {e}")
            raise DatabaseError(operation=operation) from e


# Dependency for FastAPI
async def get_credential_store(db: AsyncSession = Depends(get_db)) -> SqlAlchemyCredentialStore:
    """FastAPI dependency for the credential store."""
    return SqlAlchemyCredentialStore(db)
