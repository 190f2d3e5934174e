import logging

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "change-me-access-secret"
DEFAULT_JWT_REFRESH_SECRET = "change-me-refresh-secret"
DEFAULT_MFA_ENCRYPTION_KEY = "change-me-mfa-encryption-key"


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Invoicing Back-Office API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./backoffice.db"

    # JWT settings (jwt.secret, jwt.expiresIn, jwt.refreshSecret, jwt.refreshExpiresIn)
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_expires_in: int = 15  # minutes
    jwt_refresh_secret: str = DEFAULT_JWT_REFRESH_SECRET
    jwt_refresh_expires_in: int = 7  # days
    jwt_algorithm: str = "HS256"

    # MFA settings (mfa.issuer, mfa.totpWindow, mfa.encryptionKey, mfa.backupCodesCount)
    mfa_issuer: str = "FBR Invoicing"
    mfa_totp_window: int = 1
    mfa_encryption_key: str = DEFAULT_MFA_ENCRYPTION_KEY
    mfa_backup_codes_count: int = 8
    mfa_challenge_expires_in: int = 5  # minutes

    # Password hashing work factor
    bcrypt_rounds: int = 12

    rate_limit_enabled: bool = True

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def validate_security_settings(config: Settings) -> list[str]:
    """
    Check the signing and encryption secrets.

    Returns a list of warning strings (empty list = no issues found).
    Never raises; the caller decides whether to abort or continue.
    """
    warnings: list[str] = []

    if config.jwt_secret == DEFAULT_JWT_SECRET:
        warnings.append("JWT_SECRET uses the default value; set it before deploying")
    if config.jwt_refresh_secret == DEFAULT_JWT_REFRESH_SECRET:
        warnings.append("JWT_REFRESH_SECRET uses the default value; set it before deploying")
    if config.jwt_secret == config.jwt_refresh_secret:
        warnings.append("JWT_SECRET and JWT_REFRESH_SECRET are identical; refresh tokens can be forged from access keys")
    if config.mfa_encryption_key == DEFAULT_MFA_ENCRYPTION_KEY:
        warnings.append("MFA_ENCRYPTION_KEY uses the default value; stored TOTP secrets are not protected")

    for warning in warnings:
        logger.warning(warning)

    return warnings


settings = Settings()
