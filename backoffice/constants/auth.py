"""
Authentication Constants

Token types, lifetimes and TOTP parameters shared by the auth services.
"""

# Token "type" claim values
TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"
TOKEN_TYPE_MFA_CHALLENGE = "mfa_challenge"

# Refresh tokens persisted in the store live exactly this long
REFRESH_TOKEN_LIFETIME_DAYS = 7

# Standard TOTP parameters
TOTP_STEP_SECONDS = 30
TOTP_DIGITS = 6

# Backup codes: random bytes per code, rendered as hex
BACKUP_CODE_BYTES = 5
