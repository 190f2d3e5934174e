"""
Secret Cipher

AES-256-GCM encryption for TOTP secrets stored at rest.

The key is derived from the configured master secret with SHA-256, so no
key material is stored outside configuration. Each payload is encoded as
``<nonce-hex>:<ciphertext-hex>:<tag-hex>``.
"""

import binascii
import hashlib
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from backoffice.config import settings
from backoffice.exceptions import CryptoError

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12  # 96-bit GCM nonce
TAG_LENGTH = 16
DELIMITER = ":"


def derive_key(master_secret: str) -> bytes:
    """Derive the 32-byte AES key from the master secret."""
    return hashlib.sha256(master_secret.encode("utf-8")).digest()


class SecretCipher:
    """Authenticated encryption of short secrets."""

    def __init__(self, master_secret: str | None = None):
        self._aesgcm = AESGCM(derive_key(master_secret or settings.mfa_encryption_key))

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        # AESGCM appends the tag to the ciphertext
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return DELIMITER.join((nonce.hex(), ciphertext.hex(), tag.hex()))

    def decrypt(self, payload: str | None) -> str | None:
        """
        Decrypt a payload produced by ``encrypt``.

        Returns None for an absent payload ("no secret yet").

        Raises:
            CryptoError: If the payload is malformed or fails authentication
        """
        if not payload:
            return None

        parts = payload.split(DELIMITER)
        if len(parts) != 3:
            raise CryptoError("Invalid encrypted payload")

        try:
            nonce, ciphertext, tag = (binascii.unhexlify(part) for part in parts)
        except (binascii.Error, ValueError) as e:
            raise CryptoError("Invalid encrypted payload") from e

        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise CryptoError("Invalid encrypted payload")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            logger.warning("Encrypted payload failed authentication")
            raise CryptoError("Encrypted payload failed authentication") from e

        return plaintext.decode("utf-8")
