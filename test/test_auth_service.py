"""
Tests for the auth service (login state machine, MFA enrollment and login,
refresh-token lifecycle) against the in-memory credential store
"""

from datetime import timedelta

import pytest

from backoffice.auth import verify_password
from backoffice.constants.roles import RoleName
from backoffice.exceptions import (
    AdminNotFoundError,
    DuplicateResourceError,
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
from backoffice.models.user import utcnow
from backoffice.services import auth_service as auth_service_module
from backoffice.services.auth_service import AuthService, LoginState
from utils.totp import current_code


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass@123"
USER_EMAIL = "user@example.com"
USER_PASSWORD = "UserPass@123"


async def enroll(service: AuthService, user_id: str) -> tuple[str, list[str]]:
    """Run the forced enrollment; returns the plaintext secret and backup codes."""
    secret = (await service.issue_enrollment_secret(user_id)).secret
    result = await service.confirm_enrollment(user_id, current_code(secret))
    return secret, result.backup_codes


@pytest.fixture
async def user(fake_store):
    return await fake_store.add_account(USER_EMAIL, USER_PASSWORD, RoleName.USER)


@pytest.fixture
async def admin(fake_store):
    return await fake_store.add_account(ADMIN_EMAIL, ADMIN_PASSWORD, RoleName.ADMIN)


@pytest.fixture
async def mfa_admin(auth_service, admin):
    secret, backup_codes = await enroll(auth_service, admin.id)
    return admin, secret, backup_codes


@pytest.mark.asyncio
class TestLogin:
    async def test_user_gets_session(self, auth_service, fake_store, user):
        result = await auth_service.login(USER_EMAIL, USER_PASSWORD)

        assert result.state == LoginState.SESSION_ISSUED
        assert result.challenge_token is None
        assert result.session.user.email == USER_EMAIL
        assert auth_service.tokens.verify_access(result.session.access_token)["userId"] == user.id
        assert fake_store.tokens_for(user.id) == [result.session.refresh_token]

    async def test_refresh_token_expires_in_seven_days(self, auth_service, fake_store, user):
        result = await auth_service.login(USER_EMAIL, USER_PASSWORD)
        stored = fake_store.refresh_tokens[result.session.refresh_token]

        assert abs((stored.expires_at - utcnow()) - timedelta(days=7)) < timedelta(minutes=1)

    async def test_wrong_password(self, auth_service, fake_store, user):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(USER_EMAIL, "WrongPass@123")
        assert fake_store.refresh_tokens == {}

    async def test_unknown_email_same_error(self, auth_service):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            await auth_service.login("nobody@example.com", USER_PASSWORD)
        assert exc_info.value.message == "Invalid email or password"

    @pytest.mark.parametrize("email", ["nobody@example.com", "gone@example.com"])
    async def test_rejected_accounts_still_pay_bcrypt(self, auth_service, fake_store, monkeypatch, email):
        await fake_store.add_account("gone@example.com", USER_PASSWORD, is_active=False)
        checked = []

        async def recording_verify(plain_password, hashed_password):
            checked.append(hashed_password)
            return verify_password(plain_password, hashed_password)

        monkeypatch.setattr(auth_service_module, "verify_password_async", recording_verify)

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(email, USER_PASSWORD)

        assert len(checked) == 1
        assert checked[0].startswith("$2")

    async def test_inactive_account_same_error(self, auth_service, fake_store):
        await fake_store.add_account("gone@example.com", USER_PASSWORD, is_active=False)

        with pytest.raises(InvalidCredentialsError) as exc_info:
            await auth_service.login("gone@example.com", USER_PASSWORD)
        assert exc_info.value.message == "Invalid email or password"

    async def test_admin_without_mfa_must_enroll(self, auth_service, fake_store, admin):
        result = await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert result.state == LoginState.MFA_ENROLLMENT_REQUIRED
        assert result.user.id == admin.id
        assert result.session is None
        assert result.challenge_token is None
        assert fake_store.refresh_tokens == {}

    async def test_admin_with_mfa_gets_challenge(self, auth_service, fake_store, mfa_admin):
        admin, _, _ = mfa_admin

        result = await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert result.state == LoginState.MFA_CHALLENGE_ISSUED
        assert result.session is None
        assert auth_service.tokens.verify_mfa_challenge(result.challenge_token)["userId"] == admin.id
        # A challenge is not a session
        assert auth_service.tokens.verify_access(result.challenge_token) is None
        assert fake_store.tokens_for(admin.id) == []


@pytest.mark.asyncio
class TestMfaLogin:
    async def _challenge(self, auth_service) -> str:
        return (await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)).challenge_token

    async def test_totp_code(self, auth_service, fake_store, mfa_admin):
        admin, secret, backup_codes = mfa_admin
        challenge = await self._challenge(auth_service)

        result = await auth_service.verify_mfa_login(challenge, code=current_code(secret))

        assert result.session.user.id == admin.id
        assert result.backup_codes_remaining == len(backup_codes)
        assert fake_store.tokens_for(admin.id) == [result.session.refresh_token]

    async def test_backup_code_is_consumed(self, auth_service, fake_store, mfa_admin):
        admin, _, backup_codes = mfa_admin
        challenge = await self._challenge(auth_service)

        result = await auth_service.verify_mfa_login(challenge, backup_code=backup_codes[0])

        assert result.backup_codes_remaining == len(backup_codes) - 1
        assert len(admin.mfa_backup_codes) == len(backup_codes) - 1

    async def test_backup_code_cannot_be_reused(self, auth_service, mfa_admin):
        admin, _, backup_codes = mfa_admin
        await auth_service.verify_mfa_login(await self._challenge(auth_service), backup_code=backup_codes[0])

        with pytest.raises(InvalidMfaCodeError):
            await auth_service.verify_mfa_login(await self._challenge(auth_service), backup_code=backup_codes[0])
        assert len(admin.mfa_backup_codes) == len(backup_codes) - 1

    async def test_backup_code_tried_before_totp(self, auth_service, mfa_admin):
        _, _, backup_codes = mfa_admin
        challenge = await self._challenge(auth_service)

        result = await auth_service.verify_mfa_login(challenge, code="000000", backup_code=backup_codes[1])

        assert result.backup_codes_remaining == len(backup_codes) - 1

    async def test_totp_fallback_when_backup_code_wrong(self, auth_service, mfa_admin):
        _, secret, backup_codes = mfa_admin
        challenge = await self._challenge(auth_service)

        result = await auth_service.verify_mfa_login(
            challenge, code=current_code(secret), backup_code="ffffffffff"
        )

        assert result.backup_codes_remaining == len(backup_codes)

    async def test_wrong_code_issues_nothing(self, auth_service, fake_store, mfa_admin):
        admin, secret, backup_codes = mfa_admin
        challenge = await self._challenge(auth_service)
        wrong = "000000" if current_code(secret) != "000000" else "111111"

        with pytest.raises(InvalidMfaCodeError):
            await auth_service.verify_mfa_login(challenge, code=wrong)

        assert fake_store.tokens_for(admin.id) == []
        assert len(admin.mfa_backup_codes) == len(backup_codes)

    async def test_no_code_at_all(self, auth_service, mfa_admin):
        with pytest.raises(InvalidMfaCodeError):
            await auth_service.verify_mfa_login(await self._challenge(auth_service))

    async def test_invalid_challenge(self, auth_service, mfa_admin):
        _, secret, _ = mfa_admin
        with pytest.raises(InvalidChallengeError):
            await auth_service.verify_mfa_login("not-a-token", code=current_code(secret))

    async def test_access_token_is_not_a_challenge(self, auth_service, mfa_admin):
        admin, secret, _ = mfa_admin
        access = auth_service.tokens.issue_access(admin.id, admin.email, "ADMIN")

        with pytest.raises(InvalidChallengeError):
            await auth_service.verify_mfa_login(access, code=current_code(secret))

    async def test_deactivated_admin(self, auth_service, mfa_admin):
        admin, secret, _ = mfa_admin
        challenge = await self._challenge(auth_service)
        admin.is_active = False

        with pytest.raises(AdminNotFoundError):
            await auth_service.verify_mfa_login(challenge, code=current_code(secret))

    async def test_mfa_disabled_after_challenge(self, auth_service, fake_store, mfa_admin):
        admin, secret, _ = mfa_admin
        challenge = await self._challenge(auth_service)
        await fake_store.update_account(admin.id, mfa_enabled=False)

        with pytest.raises(MfaNotEnabledError):
            await auth_service.verify_mfa_login(challenge, code=current_code(secret))

    async def test_corrupt_secret(self, auth_service, fake_store, mfa_admin):
        admin, secret, _ = mfa_admin
        challenge = await self._challenge(auth_service)
        await fake_store.update_account(admin.id, mfa_secret="00:11:22")

        with pytest.raises(MfaVerificationFailedError):
            await auth_service.verify_mfa_login(challenge, code=current_code(secret))
        assert fake_store.tokens_for(admin.id) == []


@pytest.mark.asyncio
class TestEnrollment:
    async def test_secret_is_encrypted_at_rest(self, auth_service, admin):
        result = await auth_service.issue_enrollment_secret(admin.id)

        assert admin.mfa_secret != result.secret
        assert auth_service.cipher.decrypt(admin.mfa_secret) == result.secret
        assert admin.mfa_enabled is False
        assert result.otpauth_url.startswith("otpauth://totp/")
        assert result.qr_data_url.startswith("data:image/png;base64,")

    async def test_pending_secret_is_reused(self, auth_service, admin):
        first = await auth_service.issue_enrollment_secret(admin.id)
        second = await auth_service.issue_enrollment_secret(admin.id)

        assert first.secret == second.secret

    async def test_confirm_enables_mfa(self, auth_service, admin):
        secret = (await auth_service.issue_enrollment_secret(admin.id)).secret

        result = await auth_service.confirm_enrollment(admin.id, current_code(secret))

        assert admin.mfa_enabled is True
        assert auth_service.cipher.decrypt(admin.mfa_secret) == secret
        assert len(result.backup_codes) == 8
        assert len(admin.mfa_backup_codes) == 8
        assert all(code not in admin.mfa_backup_codes for code in result.backup_codes)

    async def test_confirm_is_a_single_update(self, auth_service, fake_store, admin):
        secret = (await auth_service.issue_enrollment_secret(admin.id)).secret
        fake_store.update_calls.clear()

        await auth_service.confirm_enrollment(admin.id, current_code(secret))

        assert len(fake_store.update_calls) == 1
        _, fields = fake_store.update_calls[0]
        assert {"mfa_enabled", "mfa_secret", "mfa_backup_codes"} <= set(fields)

    async def test_wrong_code_leaves_state(self, auth_service, admin):
        secret = (await auth_service.issue_enrollment_secret(admin.id)).secret
        pending = admin.mfa_secret
        wrong = "000000" if current_code(secret) != "000000" else "111111"

        with pytest.raises(InvalidMfaCodeError):
            await auth_service.confirm_enrollment(admin.id, wrong)

        assert admin.mfa_enabled is False
        assert admin.mfa_secret == pending
        assert admin.mfa_backup_codes == []

    async def test_confirm_without_secret(self, auth_service, admin):
        with pytest.raises(MfaSecretMissingError):
            await auth_service.confirm_enrollment(admin.id, "123456")

    async def test_already_enabled(self, auth_service, mfa_admin):
        admin, secret, _ = mfa_admin

        with pytest.raises(MfaAlreadyEnabledError):
            await auth_service.issue_enrollment_secret(admin.id)
        with pytest.raises(MfaAlreadyEnabledError):
            await auth_service.confirm_enrollment(admin.id, current_code(secret))

    async def test_non_admin_rejected(self, auth_service, user):
        with pytest.raises(AdminNotFoundError):
            await auth_service.issue_enrollment_secret(user.id)

    async def test_unknown_account_rejected(self, auth_service):
        with pytest.raises(AdminNotFoundError):
            await auth_service.issue_enrollment_secret("00000000-0000-0000-0000-000000000000")

    async def test_corrupt_pending_secret(self, auth_service, fake_store, admin):
        await fake_store.update_account(admin.id, mfa_secret="garbage")

        with pytest.raises(MfaVerificationFailedError):
            await auth_service.issue_enrollment_secret(admin.id)


@pytest.mark.asyncio
class TestSelfService:
    async def test_issue_secret_always_regenerates(self, auth_service, admin):
        first = await auth_service.issue_mfa_secret(admin.id)
        second = await auth_service.issue_mfa_secret(admin.id)

        assert first.secret != second.secret
        assert auth_service.cipher.decrypt(admin.mfa_secret) == second.secret

    async def test_enable(self, auth_service, admin):
        secret = (await auth_service.issue_mfa_secret(admin.id)).secret

        result = await auth_service.enable_mfa(admin.id, current_code(secret))

        assert admin.mfa_enabled is True
        assert len(result.backup_codes) == 8

    async def test_enable_requires_secret(self, auth_service, admin):
        with pytest.raises(MfaSecretMissingError):
            await auth_service.enable_mfa(admin.id, "123456")

    async def test_disable(self, auth_service, mfa_admin):
        admin, _, _ = mfa_admin

        await auth_service.disable_mfa(admin.id, ADMIN_PASSWORD)

        assert admin.mfa_enabled is False
        assert admin.mfa_secret is None
        assert admin.mfa_backup_codes == []

    async def test_disable_wrong_password_keeps_mfa(self, auth_service, mfa_admin):
        admin, _, backup_codes = mfa_admin
        secret_before = admin.mfa_secret

        with pytest.raises(InvalidPasswordError):
            await auth_service.disable_mfa(admin.id, "WrongPass@123")

        assert admin.mfa_enabled is True
        assert admin.mfa_secret == secret_before
        assert len(admin.mfa_backup_codes) == len(backup_codes)

    async def test_disable_when_not_enabled(self, auth_service, admin):
        with pytest.raises(MfaNotEnabledError):
            await auth_service.disable_mfa(admin.id, ADMIN_PASSWORD)


@pytest.mark.asyncio
class TestTokens:
    async def test_refresh(self, auth_service, user):
        session = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session

        access = await auth_service.refresh(session.refresh_token)

        claims = auth_service.tokens.verify_access(access)
        assert claims["userId"] == user.id
        assert claims["role"] == "USER"

    async def test_refresh_not_in_store(self, auth_service, user):
        orphan = auth_service.tokens.issue_refresh(user.id)

        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(orphan)

    async def test_refresh_expired_in_store(self, auth_service, fake_store, user):
        session = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session
        fake_store.refresh_tokens[session.refresh_token].expires_at = utcnow() - timedelta(seconds=1)

        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(session.refresh_token)

    async def test_refresh_rejected_for_inactive_account(self, auth_service, fake_store, user):
        session = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session
        await fake_store.update_account(user.id, is_active=False)

        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(session.refresh_token)

    async def test_access_token_cannot_refresh(self, auth_service, user):
        session = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session

        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(session.access_token)

    async def test_logout_revokes(self, auth_service, fake_store, user):
        session = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session

        await auth_service.logout(session.refresh_token)

        assert fake_store.tokens_for(user.id) == []
        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(session.refresh_token)

    async def test_logout_is_idempotent(self, auth_service, user):
        session = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session

        await auth_service.logout(session.refresh_token)
        await auth_service.logout(session.refresh_token)
        await auth_service.logout(None)


@pytest.mark.asyncio
class TestAccounts:
    async def test_create_account(self, auth_service, fake_store):
        view = await auth_service.create_account("new@example.com", "NewPass@123", name="New")

        stored = await fake_store.find_account_by_id(view.id)
        assert view.role == RoleName.USER
        assert stored.hashed_password != "NewPass@123"
        assert verify_password("NewPass@123", stored.hashed_password)

    async def test_create_duplicate(self, auth_service, user):
        with pytest.raises(DuplicateResourceError):
            await auth_service.create_account(USER_EMAIL, "Other@123")

    async def test_profile_has_no_secrets(self, auth_service, mfa_admin):
        admin, _, _ = mfa_admin

        profile = (await auth_service.get_profile(admin.id)).to_response()

        assert profile["email"] == ADMIN_EMAIL
        assert profile["mfaEnabled"] is True
        for key in ("hashedPassword", "mfaSecret", "mfaBackupCodes", "hashed_password", "mfa_secret"):
            assert key not in profile

    async def test_profile_unknown(self, auth_service):
        with pytest.raises(UserNotFoundError):
            await auth_service.get_profile("missing")

    async def test_change_password_revokes_all_sessions(self, auth_service, fake_store, user):
        first = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session
        second = (await auth_service.login(USER_EMAIL, USER_PASSWORD)).session
        assert len(fake_store.tokens_for(user.id)) == 2

        await auth_service.change_password(user.id, "Changed@12345")

        assert fake_store.tokens_for(user.id) == []
        for session in (first, second):
            with pytest.raises(InvalidRefreshTokenError):
                await auth_service.refresh(session.refresh_token)
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(USER_EMAIL, USER_PASSWORD)
        assert (await auth_service.login(USER_EMAIL, "Changed@12345")).state == LoginState.SESSION_ISSUED

    async def test_change_password_unknown(self, auth_service):
        with pytest.raises(UserNotFoundError):
            await auth_service.change_password("missing", "Changed@12345")
