"""User profile data access layer."""

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stride.models import User

from .exceptions import NotFoundError

logger = logging.getLogger(__name__)


class UserRepository:
    """Centralized user and profile data access.

    Naming conventions:
    - find_* : Query that may return None
    - get_* : Query that raises exception if missing
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _write(self, stmt) -> int:
        result = self._db.execute(stmt.execution_options(synchronize_session=False))
        self._db.expire_all()
        return result.rowcount

    def find_by_id(self, user_id: str) -> User | None:
        """Find user by primary key."""
        return self._db.query(User).filter(User.id == user_id).first()

    def find_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        return self._db.query(User).filter(func.lower(User.email) == email.lower()).first()

    def find_active_by_id(self, user_id: str) -> User | None:
        """Find active user by ID."""
        return self._db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()

    def get_backup_codes(self, user_id: str) -> tuple[list[str], int]:
        """Read the stored backup-code digests and their version.

        Raises:
            NotFoundError: If the user does not exist.
        """
        row = self._db.execute(
            select(User.two_factor_backup_codes, User.backup_codes_version).where(
                User.id == user_id
            )
        ).first()
        if row is None:
            raise NotFoundError("User", user_id)
        return list(row.two_factor_backup_codes or []), row.backup_codes_version or 0

    def replace_backup_codes(self, user_id: str, digests: list[str]) -> None:
        """Overwrite the stored digests unconditionally."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                two_factor_backup_codes=digests,
                backup_codes_version=User.backup_codes_version + 1,
            )
        )
        if self._write(stmt) == 0:
            raise NotFoundError("User", user_id)

    def swap_backup_codes(self, user_id: str, expected_version: int, digests: list[str]) -> bool:
        """Store digests only if nobody changed them since expected_version was read."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.backup_codes_version == expected_version)
            .values(two_factor_backup_codes=digests, backup_codes_version=expected_version + 1)
        )
        return self._write(stmt) == 1

    def set_two_factor_enabled(
        self, user_id: str, enabled: bool, verified_at: datetime | None = None
    ) -> None:
        """Flip the profile 2FA flag."""
        values: dict = {"two_factor_enabled": enabled}
        if enabled and verified_at is not None:
            values["two_factor_verified_at"] = verified_at
        if not enabled:
            values["two_factor_verified_at"] = None
            values["last_two_factor_at"] = None
        self._write(update(User).where(User.id == user_id).values(**values))

    def record_two_factor_use(self, user_id: str, now: datetime) -> None:
        """Remember when a second factor was last accepted."""
        self._write(update(User).where(User.id == user_id).values(last_two_factor_at=now))
