"""One-time backup codes, stored as bcrypt hashes on the user profile."""

import logging
import re

from sqlalchemy.orm import Session

from stride.config import settings
from stride.services.auth_service import AuthService
from stride.services.errors import ErrorCode, MfaError
from stride.services.mfa_service import MfaService
from stride.services.repositories import UserRepository

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")

# Optimistic swaps retried when another request changed the codes meanwhile
MAX_SWAP_ATTEMPTS = 3


class BackupCodeVault:
    """Generate, verify and consume backup codes.

    Codes are never stored in plaintext. Consuming a code rewrites the hash
    list with a compare-and-swap on backup_codes_version, so two concurrent
    uses of one code cannot both succeed.
    """

    def __init__(
        self,
        db: Session,
        users: UserRepository | None = None,
        count: int | None = None,
        length: int | None = None,
    ):
        self._users = users or UserRepository(db)
        self._count = settings.backup_code_count if count is None else count
        self._length = settings.backup_code_length if length is None else length

    @staticmethod
    def normalize(code: str) -> str:
        return _NON_ALNUM.sub("", (code or "").upper())

    def generate(self, user_id: str) -> list[str]:
        """Issue a fresh set, invalidating every previous code."""
        codes = MfaService.generate_backup_codes(self._count, self._length)
        # bcrypt for backup codes, same as passwords
        self._users.replace_backup_codes(user_id, [AuthService.hash_password(c) for c in codes])
        return codes

    def verify(self, user_id: str, code: str) -> int:
        """Consume a code. Returns the number of codes left."""
        normalized = self.normalize(code)

        for _ in range(MAX_SWAP_ATTEMPTS):
            hashes, version = self._users.get_backup_codes(user_id)
            if not hashes:
                raise MfaError(ErrorCode.NO_BACKUP_CODES, "No backup codes remaining")

            match = None
            if normalized:
                match = next(
                    (h for h in hashes if AuthService.verify_password(normalized, h)), None
                )
            if match is None:
                raise MfaError(ErrorCode.INVALID_CODE, "Invalid backup code")

            remaining = list(hashes)
            remaining.remove(match)
            if self._users.swap_backup_codes(user_id, version, remaining):
                logger.info(f"Backup code used for user {user_id}, {len(remaining)} left")
                return len(remaining)

        logger.warning(f"Backup code swap kept conflicting for user {user_id}")
        raise MfaError(ErrorCode.INVALID_CODE, "Invalid backup code")

    def count(self, user_id: str) -> int:
        hashes, _ = self._users.get_backup_codes(user_id)
        return len(hashes)

    def clear(self, user_id: str) -> None:
        self._users.replace_backup_codes(user_id, [])
