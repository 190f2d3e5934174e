"""
Auth Schemas

Request bodies for the auth and admin MFA endpoints and the account read
model. Field names on the wire are camelCase.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

from backoffice.constants.roles import RoleName

TOTP_CODE_PATTERN = r"^[0-9]{6}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============== Read Model ==============


class AccountView(CamelModel):
    """
    Public view of an account.

    Built explicitly from a User; it has no password hash, MFA secret or
    backup-code fields to leak.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str | None = None
    email: str
    role: RoleName
    is_active: bool
    mfa_enabled: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ============== Requests ==============


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class MfaLoginRequest(CamelModel):
    """Second step of an admin login."""

    challenge_token: str = Field(..., min_length=1)
    token: str | None = Field(None, pattern=TOTP_CODE_PATTERN, description="6-digit TOTP code")
    backup_code: str | None = Field(None, min_length=8, max_length=128)

    @model_validator(mode="after")
    def require_code_or_backup_code(self):
        if not self.token and not self.backup_code:
            raise ValueError("Either token or backupCode is required")
        return self


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: str | None = None


class EnrollSecretRequest(CamelModel):
    user_id: UUID


class EnrollEnableRequest(CamelModel):
    user_id: UUID
    token: str = Field(..., pattern=TOTP_CODE_PATTERN)


class EnableMfaRequest(CamelModel):
    token: str = Field(..., pattern=TOTP_CODE_PATTERN)


class DisableMfaRequest(CamelModel):
    password: str = Field(..., min_length=1)


class PasswordChangeRequest(CamelModel):
    password: str = Field(..., min_length=8, max_length=128)
