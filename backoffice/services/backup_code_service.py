"""
Backup Code Service

One-time recovery codes for administrators who lost their authenticator.
Plaintext codes are shown once at enrollment; only bcrypt hashes of the
normalized codes are stored.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass, field

from backoffice.auth import hash_password, verify_password
from backoffice.config import settings
from backoffice.constants.auth import BACKUP_CODE_BYTES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of a backup-code consumption attempt."""

    matched: bool
    remaining: list[str] = field(default_factory=list)


class BackupCodeService:
    """Generates, hashes and consumes single-use backup codes."""

    def __init__(self, default_count: int | None = None):
        self.default_count = default_count or settings.mfa_backup_codes_count

    def generate(self, count: int | None = None) -> list[str]:
        """Generate ``count`` codes of 10 hex characters (40 bits) each."""
        return [secrets.token_hex(BACKUP_CODE_BYTES) for _ in range(count or self.default_count)]

    @staticmethod
    def normalize(code: str) -> str:
        return str(code).strip().lower()

    def hash(self, code: str) -> str:
        return hash_password(self.normalize(code))

    def hash_many(self, codes: list[str]) -> list[str]:
        return [self.hash(code) for code in codes]

    def consume(self, candidate: str, stored: list[str]) -> ConsumeResult:
        """
        Consume ``candidate`` against the stored hashes.

        Every stored hash is verified so the work done does not depend on
        where the match sits. On a match exactly that entry is removed;
        otherwise ``stored`` is returned unchanged.
        """
        stored = list(stored or [])
        normalized = self.normalize(candidate or "")
        if not normalized or not stored:
            return ConsumeResult(matched=False, remaining=stored)

        matched_index = None
        for index, hashed in enumerate(stored):
            matches = verify_password(normalized, hashed)
            if matches and matched_index is None:
                matched_index = index

        if matched_index is None:
            return ConsumeResult(matched=False, remaining=stored)

        remaining = stored[:matched_index] + stored[matched_index + 1 :]
        return ConsumeResult(matched=True, remaining=remaining)

    # bcrypt work runs in a worker thread when called from request handlers

    async def hash_many_async(self, codes: list[str]) -> list[str]:
        return await asyncio.to_thread(self.hash_many, codes)

    async def consume_async(self, candidate: str, stored: list[str]) -> ConsumeResult:
        return await asyncio.to_thread(self.consume, candidate, stored)
