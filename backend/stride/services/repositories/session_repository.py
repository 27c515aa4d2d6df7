"""Session record data access layer."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from sqlalchemy import case, delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stride.models import UserSession

from .exceptions import DuplicateError

logger = logging.getLogger(__name__)


class SessionRepository:
    """Persistence for UserSession rows.

    Naming conventions:
    - find_* : Query that may return None or an empty list
    - mark_* / revoke_* / delete_* : Conditional writes returning affected row counts

    Reads skip revoked rows unless include_revoked is set. Writes flush but
    never commit; the calling service owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _write(self, stmt) -> int:
        """Run a bulk UPDATE/DELETE and drop stale copies from the identity map."""
        result = self._db.execute(stmt.execution_options(synchronize_session=False))
        self._db.expire_all()
        return result.rowcount

    def insert(self, record: UserSession) -> UserSession:
        """Insert a new session row.

        Raises:
            DuplicateError: If a row with the same session_id exists. The
                pending transaction is rolled back.
        """
        self._db.add(record)
        try:
            self._db.flush()
        except IntegrityError as e:
            self._db.rollback()
            raise DuplicateError("UserSession", "session_id", record.session_id) from e
        return record

    def find_by_session_id(
        self, session_id: str, include_revoked: bool = False
    ) -> UserSession | None:
        """Find a session by its provider-issued id."""
        query = self._db.query(UserSession).filter(UserSession.session_id == session_id)
        if not include_revoked:
            query = query.filter(UserSession.is_revoked.is_(False))
        return query.first()

    def find_active_by_user(self, user_id: str) -> list[UserSession]:
        """Active sessions for a user, newest first (ties broken by id)."""
        return (
            self._db.query(UserSession)
            .filter(UserSession.user_id == user_id, UserSession.is_revoked.is_(False))
            .order_by(UserSession.created_at.desc(), UserSession.id.desc())
            .all()
        )

    def find_by_device_fingerprint(
        self, user_id: str, user_agent: str, ip_address: str
    ) -> list[UserSession]:
        """Active sessions for a user from one user-agent/IP pair."""
        return (
            self._db.query(UserSession)
            .filter(
                UserSession.user_id == user_id,
                UserSession.user_agent == user_agent,
                UserSession.ip_address == ip_address,
                UserSession.is_revoked.is_(False),
            )
            .order_by(UserSession.created_at.desc(), UserSession.id.desc())
            .all()
        )

    def _revoke(self, *criteria, now: datetime) -> int:
        stmt = (
            update(UserSession)
            .where(UserSession.is_revoked.is_(False), *criteria)
            .values(
                is_revoked=True,
                # last_active_at never moves backwards
                last_active_at=case(
                    (UserSession.last_active_at < now, now),
                    else_=UserSession.last_active_at,
                ),
            )
        )
        return self._write(stmt)

    def mark_revoked(self, record_ids: Iterable[str], now: datetime) -> int:
        """Revoke rows by primary key. Already revoked rows are not counted."""
        ids = list(record_ids)
        if not ids:
            return 0
        return self._revoke(UserSession.id.in_(ids), now=now)

    def mark_revoked_by_session_id(self, session_id: str, now: datetime) -> int:
        """Revoke a session by its provider-issued id."""
        return self._revoke(UserSession.session_id == session_id, now=now)

    def revoke_all_except(self, user_id: str, keep_session_id: str, now: datetime) -> int:
        """Revoke every active session of a user except one."""
        return self._revoke(
            UserSession.user_id == user_id,
            UserSession.session_id != keep_session_id,
            now=now,
        )

    def touch(self, session_id: str, now: datetime) -> int:
        """Advance last_active_at on an active session."""
        stmt = (
            update(UserSession)
            .where(
                UserSession.session_id == session_id,
                UserSession.is_revoked.is_(False),
                UserSession.last_active_at < now,
            )
            .values(last_active_at=now)
        )
        return self._write(stmt)

    def update_location(self, session_id: str, city: str | None, country: str | None) -> int:
        """Store geolocation for a session."""
        stmt = (
            update(UserSession)
            .where(UserSession.session_id == session_id)
            .values(location_city=city, location_country=country)
        )
        return self._write(stmt)

    def delete_expired(
        self, now: datetime, revoked_retention_days: int, inactive_retention_days: int
    ) -> int:
        """Delete revoked rows past retention and rows inactive for too long."""
        revoked_cutoff = now - timedelta(days=revoked_retention_days)
        inactive_cutoff = now - timedelta(days=inactive_retention_days)
        stmt = (
            delete(UserSession)
            .where(
                or_(
                    (UserSession.is_revoked.is_(True))
                    & (UserSession.last_active_at < revoked_cutoff),
                    UserSession.last_active_at < inactive_cutoff,
                )
            )
        )
        return self._write(stmt)

    def delete_all_for_user(self, user_id: str) -> int:
        """Delete every session row of a user (account removal)."""
        stmt = (
            delete(UserSession)
            .where(UserSession.user_id == user_id)
        )
        return self._write(stmt)
