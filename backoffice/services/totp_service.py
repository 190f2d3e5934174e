"""
TOTP Service

Generates and checks RFC 6238 time-based one-time codes using pyotp, and
renders provisioning URIs as QR codes for authenticator apps.
"""

import base64
import logging
from datetime import datetime
from io import BytesIO

import pyotp
import qrcode

from backoffice.config import settings
from backoffice.constants.auth import TOTP_DIGITS, TOTP_STEP_SECONDS

logger = logging.getLogger(__name__)


class TotpService:
    """Stateless TOTP engine with a configurable drift window."""

    def __init__(self, window: int | None = None, issuer: str | None = None):
        self.window = settings.mfa_totp_window if window is None else window
        self.issuer = issuer or settings.mfa_issuer

    @staticmethod
    def generate_secret() -> str:
        """Generate a new base32 TOTP secret."""
        return pyotp.random_base32()

    def key_uri(self, account_label: str, issuer: str | None, secret: str) -> str:
        """Build the otpauth:// provisioning URI; a None issuer falls back to the configured one."""
        totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_STEP_SECONDS)
        return totp.provisioning_uri(name=account_label, issuer_name=issuer or self.issuer)

    def check(self, code: str | None, secret: str | None, for_time: datetime | int | float | None = None) -> bool:
        """
        Verify a code against the secret.

        Accepts the current step plus ``window`` steps on either side.

        Args:
            code: Code entered by the user
            secret: Base32 TOTP secret
            for_time: Verification time (defaults to now)

        Returns:
            True if code is valid, False otherwise
        """
        if not secret or not code:
            return False

        code = "".join(str(code).split())
        if len(code) != TOTP_DIGITS or not code.isdigit():
            return False

        totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_STEP_SECONDS)
        if for_time is None:
            return totp.verify(code, valid_window=self.window)
        return totp.verify(code, for_time=for_time, valid_window=self.window)

    @staticmethod
    def qr_code_data_url(provisioning_uri: str) -> str:
        """Render the provisioning URI as a base64 PNG data URL."""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(provisioning_uri)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        buffer.seek(0)

        return "data:image/png;base64," + base64.b64encode(buffer.read()).decode("utf-8")
