"""
Auth Service

Coordinates login, the admin MFA challenge, MFA enrollment and the
refresh-token lifecycle on top of the credential store, the token service,
the TOTP engine, the secret cipher and the backup-code manager.

A login attempt moves through
``CREDENTIALS_PENDING -> PASSWORD_VERIFIED`` and ends in one of
``MFA_ENROLLMENT_REQUIRED``, ``MFA_CHALLENGE_ISSUED`` or ``SESSION_ISSUED``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache

from fastapi import Depends

from backoffice.auth import hash_password, hash_password_async, verify_password_async
from backoffice.constants.roles import DEFAULT_ROLE, RoleName, requires_mfa
from backoffice.exceptions import (
    AdminNotFoundError,
    CryptoError,
    InvalidChallengeError,
    InvalidCredentialsError,
    InvalidMfaCodeError,
    InvalidPasswordError,
    InvalidRefreshTokenError,
    MfaAlreadyEnabledError,
    MfaNotEnabledError,
    MfaSecretMissingError,
    MfaVerificationFailedError,
    UserNotFoundError,
)
from backoffice.models.refresh_token import RefreshToken
from backoffice.models.user import User, utcnow
from backoffice.schemas.auth import AccountView
from backoffice.services.backup_code_service import BackupCodeService
from backoffice.services.credential_store import CredentialStore, get_credential_store
from backoffice.services.token_service import TokenService, get_token_service
from backoffice.services.totp_service import TotpService
from backoffice.utils.crypto import SecretCipher

logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    CREDENTIALS_PENDING = "CREDENTIALS_PENDING"
    PASSWORD_VERIFIED = "PASSWORD_VERIFIED"
    MFA_ENROLLMENT_REQUIRED = "MFA_ENROLLMENT_REQUIRED"
    MFA_CHALLENGE_ISSUED = "MFA_CHALLENGE_ISSUED"
    SESSION_ISSUED = "SESSION_ISSUED"


@dataclass(frozen=True)
class Session:
    user: AccountView
    access_token: str
    refresh_token: str

    def to_response(self) -> dict:
        return {
            "user": self.user.to_response(),
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
        }


@dataclass(frozen=True)
class LoginResult:
    """Terminal state of a login attempt and what it carries."""

    state: LoginState
    user: AccountView
    session: Session | None = None
    challenge_token: str | None = None


@dataclass(frozen=True)
class MfaLoginResult:
    session: Session
    backup_codes_remaining: int


@dataclass(frozen=True)
class MfaSecretResult:
    secret: str
    otpauth_url: str
    qr_data_url: str

    def to_response(self) -> dict:
        return {"secret": self.secret, "otpauthUrl": self.otpauth_url, "qrDataUrl": self.qr_data_url}


@dataclass(frozen=True)
class MfaEnableResult:
    backup_codes: list[str] = field(default_factory=list)


class AuthService:
    """Auth and MFA state machine. Holds no state between calls."""

    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenService | None = None,
        totp: TotpService | None = None,
        cipher: SecretCipher | None = None,
        backup_codes: BackupCodeService | None = None,
    ):
        self.store = store
        self.tokens = tokens or TokenService()
        self.totp = totp or TotpService()
        self.cipher = cipher or SecretCipher()
        self.backup_codes = backup_codes or BackupCodeService()

    # ============== Login ==============

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Verify a password and decide what the caller gets next.

        Raises:
            InvalidCredentialsError: Unknown email, inactive account or wrong
                password (the same error for all three)
        """
        user = await self.store.find_account_by_email(email)

        if user is None or not user.is_active:
            # Unknown and inactive accounts pay the same bcrypt cost as real ones
            await verify_password_async(password, _dummy_password_hash())
            logger.info("Login rejected: unknown or inactive account")
            raise InvalidCredentialsError()

        if not await verify_password_async(password, user.hashed_password):
            logger.info(f"Login rejected: wrong password for account {user.id}")
            raise InvalidCredentialsError()

        view = AccountView.model_validate(user)

        if requires_mfa(user.role):
            if not user.mfa_enabled:
                logger.info(f"Admin {user.id} must enroll in MFA before logging in")
                return LoginResult(state=LoginState.MFA_ENROLLMENT_REQUIRED, user=view)

            challenge_token = self.tokens.issue_mfa_challenge(user.id, user.email)
            logger.info(f"MFA challenge issued for admin {user.id}")
            return LoginResult(state=LoginState.MFA_CHALLENGE_ISSUED, user=view, challenge_token=challenge_token)

        session = await self._issue_session(user)
        return LoginResult(state=LoginState.SESSION_ISSUED, user=view, session=session)

    async def verify_mfa_login(
        self, challenge_token: str, code: str | None = None, backup_code: str | None = None
    ) -> MfaLoginResult:
        """
        Complete an admin login with a TOTP code or a backup code.

        A backup code is tried first, without decrypting the TOTP secret.

        Raises:
            InvalidChallengeError: Challenge token invalid or expired
            AdminNotFoundError: Account missing, not an admin or inactive
            MfaNotEnabledError: Account has no active MFA
            MfaVerificationFailedError: Stored secret could not be decrypted
            InvalidMfaCodeError: Neither code matched
        """
        claims = self.tokens.verify_mfa_challenge(challenge_token)
        if claims is None:
            raise InvalidChallengeError()

        user = await self.store.find_account_by_id(claims["userId"])
        if user is None or user.role != RoleName.ADMIN or not user.is_active:
            raise AdminNotFoundError("Admin not found or inactive")

        if not user.mfa_enabled or not user.mfa_secret:
            raise MfaNotEnabledError()

        stored_codes = list(user.mfa_backup_codes or [])
        remaining_codes = stored_codes
        is_valid = False

        if backup_code:
            outcome = await self.backup_codes.consume_async(backup_code, stored_codes)
            if outcome.matched:
                is_valid = True
                remaining_codes = outcome.remaining

        if not is_valid and code:
            try:
                secret = self.cipher.decrypt(user.mfa_secret)
            except CryptoError as e:
                logger.error(f"Stored MFA secret for admin {user.id} could not be decrypted")
                raise MfaVerificationFailedError() from e
            is_valid = self.totp.check(code, secret)

        if not is_valid:
            logger.info(f"MFA verification failed for admin {user.id}")
            raise InvalidMfaCodeError()

        if len(remaining_codes) != len(stored_codes):
            user = await self.store.update_account(user.id, mfa_backup_codes=remaining_codes)
            logger.warning(f"Backup code consumed for admin {user.id}; {len(remaining_codes)} remaining")

        session = await self._issue_session(user)
        return MfaLoginResult(session=session, backup_codes_remaining=len(remaining_codes))

    # ============== Enrollment (bootstrap, before first login) ==============

    async def issue_enrollment_secret(self, user_id: str) -> MfaSecretResult:
        """
        Issue the pending TOTP secret for a forced enrollment.

        An unconfirmed secret from an earlier call is reused so an
        enrollment in progress is never invalidated.
        """
        admin = await self._get_admin(user_id, message="Admin not found or not authorized")
        if admin.mfa_enabled:
            raise MfaAlreadyEnabledError()

        secret = self._decrypt_pending(admin)
        if secret is None:
            secret = self.totp.generate_secret()
            await self.store.update_account(
                admin.id, mfa_secret=self.cipher.encrypt(secret), mfa_backup_codes=[], mfa_enabled=False
            )
            logger.info(f"Pending MFA secret issued for admin {admin.id}")
        else:
            logger.info(f"Pending MFA secret reused for admin {admin.id}")

        return self._secret_result(admin.email, secret)

    async def confirm_enrollment(self, user_id: str, code: str) -> MfaEnableResult:
        """Confirm a forced enrollment with the first TOTP code."""
        admin = await self._get_admin(user_id)
        return await self._enable(admin, code)

    # ============== Self-service (authenticated admin) ==============

    async def issue_mfa_secret(self, user_id: str) -> MfaSecretResult:
        """Issue a fresh pending secret, replacing any unconfirmed one."""
        admin = await self._get_admin(user_id)
        if admin.mfa_enabled:
            raise MfaAlreadyEnabledError()

        secret = self.totp.generate_secret()
        await self.store.update_account(
            admin.id, mfa_secret=self.cipher.encrypt(secret), mfa_backup_codes=[], mfa_enabled=False
        )
        logger.info(f"MFA secret regenerated for admin {admin.id}")
        return self._secret_result(admin.email, secret)

    async def enable_mfa(self, user_id: str, code: str) -> MfaEnableResult:
        admin = await self._get_admin(user_id)
        return await self._enable(admin, code)

    async def disable_mfa(self, user_id: str, password: str) -> None:
        """
        Turn MFA off after re-checking the current password.

        Raises:
            MfaNotEnabledError: MFA is not on
            InvalidPasswordError: Password does not match; nothing is cleared
        """
        admin = await self._get_admin(user_id)
        if not admin.mfa_enabled:
            raise MfaNotEnabledError("MFA is not enabled")

        if not await verify_password_async(password, admin.hashed_password):
            logger.warning(f"MFA disable rejected for admin {admin.id}: wrong password")
            raise InvalidPasswordError()

        await self.store.update_account(admin.id, mfa_enabled=False, mfa_secret=None, mfa_backup_codes=[])
        logger.warning(f"MFA disabled for admin {admin.id}")

    # ============== Tokens ==============

    async def refresh(self, refresh_token: str) -> str:
        """
        Exchange a stored refresh token for a new access token.

        The refresh token itself is not rotated. Tokens of inactive accounts
        are rejected.
        """
        if self.tokens.verify_refresh(refresh_token) is None:
            raise InvalidRefreshTokenError()

        stored = await self.store.find_refresh_token_by_value(refresh_token)
        if stored is None or stored.is_expired() or stored.user is None:
            raise InvalidRefreshTokenError()

        if not stored.user.is_active:
            logger.info(f"Refresh rejected: account {stored.user_id} is inactive")
            raise InvalidRefreshTokenError()

        user = stored.user
        return self.tokens.issue_access(user.id, user.email, _role_value(user.role))

    async def logout(self, refresh_token: str | None) -> None:
        """Revoke a refresh token. Succeeds even if it is already gone."""
        if refresh_token:
            deleted = await self.store.delete_refresh_token(refresh_token)
            logger.info(f"Logout revoked {deleted} refresh token(s)")

    # ============== Account management ==============

    async def get_profile(self, user_id: str) -> AccountView:
        user = await self.store.find_account_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return AccountView.model_validate(user)

    async def change_password(self, user_id: str, new_password: str) -> None:
        """Set a new password and revoke every refresh token of the account."""
        user = await self.store.find_account_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        hashed = await hash_password_async(new_password)
        await self.store.update_account(user.id, hashed_password=hashed)
        revoked = await self.store.delete_all_refresh_tokens_for_account(user.id)
        logger.info(f"Password changed for account {user.id}; {revoked} refresh token(s) revoked")

    async def create_account(
        self, email: str, password: str, role: RoleName = DEFAULT_ROLE, name: str | None = None
    ) -> AccountView:
        hashed = await hash_password_async(password)
        user = await self.store.create_account(email=email, hashed_password=hashed, role=role, name=name)
        return AccountView.model_validate(user)

    # ============== Private Methods ==============

    async def _get_admin(self, user_id: str, message: str = "Admin not found") -> User:
        admin = await self.store.find_account_by_id(str(user_id))
        if admin is None or admin.role != RoleName.ADMIN:
            raise AdminNotFoundError(message)
        return admin

    def _decrypt_pending(self, admin: User) -> str | None:
        if not admin.mfa_secret or admin.mfa_enabled:
            return None
        try:
            return self.cipher.decrypt(admin.mfa_secret)
        except CryptoError as e:
            logger.error(f"Pending MFA secret for admin {admin.id} could not be decrypted")
            raise MfaVerificationFailedError() from e

    async def _enable(self, admin: User, code: str) -> MfaEnableResult:
        if admin.mfa_enabled:
            raise MfaAlreadyEnabledError()

        if not admin.mfa_secret:
            raise MfaSecretMissingError()

        secret = self._decrypt_pending(admin)
        if not self.totp.check(code, secret):
            raise InvalidMfaCodeError("Invalid or expired verification code")

        backup_codes = self.backup_codes.generate()
        hashed_codes = await self.backup_codes.hash_many_async(backup_codes)

        # Flag, secret and codes change together
        await self.store.update_account(
            admin.id,
            mfa_enabled=True,
            mfa_secret=self.cipher.encrypt(secret),
            mfa_backup_codes=hashed_codes,
        )
        logger.warning(f"MFA enabled for admin {admin.id}")
        return MfaEnableResult(backup_codes=backup_codes)

    def _secret_result(self, email: str, secret: str) -> MfaSecretResult:
        otpauth_url = self.totp.key_uri(email, self.totp.issuer, secret)
        return MfaSecretResult(
            secret=secret,
            otpauth_url=otpauth_url,
            qr_data_url=self.totp.qr_code_data_url(otpauth_url),
        )

    async def _issue_session(self, user: User) -> Session:
        access_token = self.tokens.issue_access(user.id, user.email, _role_value(user.role))
        refresh_token = self.tokens.issue_refresh(user.id)
        await self.store.create_refresh_token(refresh_token, user.id, RefreshToken.get_expiry_time())
        logger.info(f"Session issued for account {user.id}")
        return Session(user=AccountView.model_validate(user), access_token=access_token, refresh_token=refresh_token)


def _role_value(role: RoleName | str) -> str:
    return role.value if isinstance(role, RoleName) else str(role)


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return hash_password("backoffice-login-timing-placeholder")


# Dependency for FastAPI
async def get_auth_service(
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    """FastAPI dependency for AuthService."""
    return AuthService(store=store, tokens=tokens)
