"""Collapse redundant session records per device and cap sessions per user."""

import logging
from collections import defaultdict
from datetime import datetime

from stride.config import settings
from stride.models import UserSession
from stride.services.repositories import SessionRepository
from stride.services.shared.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


def _newest_first(sessions: list[UserSession]) -> list[UserSession]:
    return sorted(sessions, key=lambda s: (as_utc(s.created_at), s.id), reverse=True)


class SessionDeduplicator:
    """Revokes (never deletes) session rows that duplicate a device or exceed the cap."""

    def __init__(self, store: SessionRepository, max_sessions: int | None = None):
        self._store = store
        self._max_sessions = (
            settings.max_sessions_per_user if max_sessions is None else max_sessions
        )

    @property
    def max_sessions(self) -> int:
        return self._max_sessions

    def deduplicate(self, user_id: str, now: datetime | None = None) -> int:
        """Keep the newest session per device fingerprint and at most K overall.

        Returns the number of rows revoked. Running it twice revokes nothing
        the second time.
        """
        now = now or utcnow()
        sessions = self._store.find_active_by_user(user_id)
        if not sessions:
            return 0

        by_device: dict[str, list[UserSession]] = defaultdict(list)
        for session in sessions:
            by_device[session.fingerprint].append(session)

        redundant = []
        for group in by_device.values():
            redundant.extend(_newest_first(group)[1:])

        revoked = self._store.mark_revoked([s.id for s in redundant], now)
        revoked += self.enforce_cap(user_id, now)

        if revoked:
            logger.info(f"Revoked {revoked} redundant session(s) for user {user_id}")
        return revoked

    def deduplicate_device(
        self, user_id: str, user_agent: str, ip_address: str, now: datetime | None = None
    ) -> int:
        """Revoke every active session of the user on one user-agent/IP pair."""
        now = now or utcnow()
        existing = self._store.find_by_device_fingerprint(user_id, user_agent, ip_address)
        return self._store.mark_revoked([s.id for s in existing], now)

    def enforce_cap(self, user_id: str, now: datetime | None = None, reserve: int = 0) -> int:
        """Revoke the oldest active sessions beyond max_sessions - reserve.

        reserve=1 makes room for a session about to be inserted.
        """
        now = now or utcnow()
        limit = max(self._max_sessions - reserve, 0)
        active = _newest_first(self._store.find_active_by_user(user_id))
        excess = active[limit:]
        return self._store.mark_revoked([s.id for s in excess], now)
