"""
Token Service

Issues and verifies the signed JWTs used by the auth flows:

- access tokens (short-lived, signed with ``jwt_secret``)
- refresh tokens (7 days, signed with ``jwt_refresh_secret``)
- MFA challenge tokens (minutes, "password verified, second factor pending")

Every token carries a ``type`` claim and each verifier only accepts its own
type. Verifiers never raise; they return None for anything invalid.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from backoffice.config import Settings, settings
from backoffice.constants.auth import TOKEN_TYPE_ACCESS, TOKEN_TYPE_MFA_CHALLENGE, TOKEN_TYPE_REFRESH

logger = logging.getLogger(__name__)


class TokenService:
    """Signs and verifies access, refresh and MFA challenge tokens."""

    def __init__(self, config: Settings | None = None):
        config = config or settings
        self.access_secret = config.jwt_secret
        self.refresh_secret = config.jwt_refresh_secret
        self.algorithm = config.jwt_algorithm
        self.access_expires = timedelta(minutes=config.jwt_expires_in)
        self.refresh_expires = timedelta(days=config.jwt_refresh_expires_in)
        self.challenge_expires = timedelta(minutes=config.mfa_challenge_expires_in)

    # ============== Issuance ==============

    def issue_access(self, user_id: str, email: str, role: str) -> str:
        return self._encode(
            {"userId": user_id, "email": email, "role": role},
            token_type=TOKEN_TYPE_ACCESS,
            secret=self.access_secret,
            expires_delta=self.access_expires,
        )

    def issue_refresh(self, user_id: str) -> str:
        # jti keeps two refresh tokens issued in the same second distinct
        return self._encode(
            {"userId": user_id, "jti": secrets.token_hex(16)},
            token_type=TOKEN_TYPE_REFRESH,
            secret=self.refresh_secret,
            expires_delta=self.refresh_expires,
        )

    def issue_mfa_challenge(self, user_id: str, email: str) -> str:
        return self._encode(
            {"userId": user_id, "email": email},
            token_type=TOKEN_TYPE_MFA_CHALLENGE,
            secret=self.access_secret,
            expires_delta=self.challenge_expires,
        )

    # ============== Verification ==============

    def verify_access(self, token: str | None) -> dict[str, Any] | None:
        return self._decode(token, TOKEN_TYPE_ACCESS, self.access_secret)

    def verify_refresh(self, token: str | None) -> dict[str, Any] | None:
        return self._decode(token, TOKEN_TYPE_REFRESH, self.refresh_secret)

    def verify_mfa_challenge(self, token: str | None) -> dict[str, Any] | None:
        return self._decode(token, TOKEN_TYPE_MFA_CHALLENGE, self.access_secret)

    # ============== Private Methods ==============

    def _encode(self, claims: dict[str, Any], token_type: str, secret: str, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = dict(claims)
        to_encode.update({"type": token_type, "iat": now, "exp": now + expires_delta})
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str | None, expected_type: str, secret: str) -> dict[str, Any] | None:
        if not token or not isinstance(token, str):
            return None

        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.debug(f"Expired {expected_type} token")
            return None
        except JWTError as e:
            logger.debug(f"Rejected {expected_type} token: {e}")
            return None

        if payload.get("type") != expected_type:
            logger.warning(f"Token of type '{payload.get('type')}' presented as '{expected_type}'")
            return None

        if not payload.get("userId"):
            return None

        return payload


def get_token_service() -> TokenService:
    """FastAPI dependency for TokenService."""
    return TokenService()
