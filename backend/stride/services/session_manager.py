"""Session lifecycle: create, track, list, revoke and expire device sessions."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from stride.config import settings
from stride.database import SessionLocal
from stride.models import UserSession
from stride.services.device_fingerprint import (
    LOCAL_LOCATION,
    GeolocationClient,
    is_local_address,
    parse_user_agent,
)
from stride.services.errors import ErrorCode, OperationResult
from stride.services.repositories import DuplicateError, SessionRepository
from stride.services.security_audit_service import SecurityAuditService, SecurityEventType
from stride.services.session_deduplicator import SessionDeduplicator
from stride.services.shared.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Unknown"
DEFAULT_IP_ADDRESS = "127.0.0.1"
DEFAULT_DEVICE_ID = "unknown"


def run_inline(func: Callable[..., Any], *args: Any) -> None:
    """Scheduler that runs work immediately (scripts, DAGs, tests)."""
    func(*args)


@dataclass
class SessionInfo:
    """Client-facing view of one session."""

    session_id: str
    browser: str | None
    os: str | None
    device_type: str | None
    location_city: str | None
    location_country: str | None
    ip_address: str
    created_at: datetime
    last_active_at: datetime
    is_current: bool

    @classmethod
    def from_record(cls, record: UserSession, current_session_id: str | None) -> "SessionInfo":
        return cls(
            session_id=record.session_id,
            browser=record.browser,
            os=record.os,
            device_type=record.device_type,
            location_city=record.location_city,
            location_country=record.location_country,
            ip_address=record.ip_address,
            created_at=as_utc(record.created_at),
            last_active_at=as_utc(record.last_active_at),
            is_current=record.session_id == current_session_id,
        )


class SessionManager:
    """Owns the UserSession lifecycle for one database session.

    Every public method returns an OperationResult instead of raising.
    Location lookup happens after the session is stored and is handed to
    ``schedule`` (FastAPI BackgroundTasks.add_task in requests); it opens
    its own database session from ``session_factory``.
    """

    def __init__(
        self,
        db: Session,
        store: SessionRepository | None = None,
        deduplicator: SessionDeduplicator | None = None,
        geolocator: GeolocationClient | None = None,
        schedule: Callable[..., Any] | None = None,
        session_factory: sessionmaker | None = None,
        max_sessions: int | None = None,
    ):
        self._db = db
        self._store = store or SessionRepository(db)
        self._deduplicator = deduplicator or SessionDeduplicator(self._store, max_sessions)
        self._geolocator = geolocator
        self._schedule = schedule or run_inline
        self._session_factory = session_factory or SessionLocal

    # Identity provider listener

    def on_session_created(
        self,
        session_id: str,
        user_id: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
        device_id: str | None = None,
    ) -> OperationResult:
        return self.create_session(session_id, user_id, user_agent, ip_address, device_id)

    def on_session_deleted(self, session_id: str, user_id: str | None = None) -> OperationResult:
        """Sign-out: mark the record revoked."""
        try:
            revoked = self._store.mark_revoked_by_session_id(session_id, utcnow())
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception(f"Failed to revoke session on sign-out for user {user_id}")
            return OperationResult.store_error()
        return OperationResult.ok(data={"revoked": revoked > 0})

    # Lifecycle

    def create_session(
        self,
        session_id: str,
        user_id: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
        device_id: str | None = None,
    ) -> OperationResult:
        """Record a new sign-in.

        Idempotent per session_id. Older sessions on the same device are
        revoked and the per-user cap is enforced before the insert. Never
        raises: session tracking must not block authentication.
        """
        user_agent = user_agent or DEFAULT_USER_AGENT
        ip_address = ip_address or DEFAULT_IP_ADDRESS
        local = is_local_address(ip_address)

        try:
            if self._store.find_by_session_id(session_id, include_revoked=True):
                logger.debug(f"Session already recorded for user {user_id}")
                return OperationResult.ok(message="Session already exists")

            now = utcnow()
            self._deduplicator.deduplicate_device(user_id, user_agent, ip_address, now)
            self._deduplicator.enforce_cap(user_id, now, reserve=1)
            self._db.commit()

            device = parse_user_agent(user_agent)
            record = UserSession(
                session_id=session_id,
                user_id=user_id,
                device_id=device_id or DEFAULT_DEVICE_ID,
                ip_address=ip_address,
                user_agent=user_agent,
                browser=device.browser,
                os=device.os,
                device_type=device.device_type,
                created_at=now,
                last_active_at=now,
            )
            if local:
                record.location_city = LOCAL_LOCATION.city
                record.location_country = LOCAL_LOCATION.country

            self._store.insert(record)
            SecurityAuditService.log_event(
                db=self._db,
                event_type=SecurityEventType.SESSION_CREATED,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"browser": device.browser, "os": device.os},
            )
            self._db.commit()
        except DuplicateError:
            logger.info(f"Concurrent insert for the same session of user {user_id}")
            return OperationResult.ok(message="Session already exists")
        except Exception:
            self._db.rollback()
            logger.warning(f"Failed to create session for user {user_id}", exc_info=True)
            return OperationResult.store_error()

        if not local:
            try:
                self._schedule(self.backfill_location, session_id, ip_address)
            except Exception:
                logger.warning(f"Could not schedule location lookup for user {user_id}", exc_info=True)

        logger.info(f"Session created for user {user_id} ({device.browser} on {device.os})")
        return OperationResult.ok(message="Session created")

    def backfill_location(self, session_id: str, ip_address: str) -> None:
        """Look up and store the location of a session. Errors are logged only."""
        geolocator = self._geolocator
        try:
            if geolocator is None:
                geolocator = GeolocationClient()
            location = geolocator.locate(ip_address)
            db = self._session_factory()
            try:
                SessionRepository(db).update_location(
                    session_id, location.city, location.country
                )
                db.commit()
            finally:
                db.close()
        except Exception:
            logger.exception("Failed to backfill session location")
        finally:
            if self._geolocator is None and geolocator is not None:
                geolocator.close()

    def update_session_activity(self, session_id: str) -> OperationResult:
        """Bump last_active_at. A revoked or unknown session is not an error."""
        try:
            updated = self._store.touch(session_id, utcnow())
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Failed to update session activity")
            return OperationResult.store_error()
        return OperationResult.ok(data={"updated": updated > 0})

    def get_user_sessions(
        self, user_id: str, current_session_id: str | None = None
    ) -> OperationResult:
        """List active sessions, most recently active first.

        Deduplicates before reading so callers never see redundant rows.
        """
        try:
            self._deduplicator.deduplicate(user_id)
            self._db.commit()
            records = self._store.find_active_by_user(user_id)
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception(f"Failed to list sessions for user {user_id}")
            return OperationResult.store_error()

        sessions = [SessionInfo.from_record(r, current_session_id) for r in records]
        sessions.sort(key=lambda s: s.last_active_at, reverse=True)
        return OperationResult.ok(data=sessions)

    def revoke_session(
        self,
        session_id: str,
        requesting_user_id: str,
        current_session_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> OperationResult:
        """Revoke one of the caller's sessions, but never the current one."""
        if session_id == current_session_id:
            return OperationResult.fail(
                ErrorCode.SELF_REVOKE_DENIED,
                "Cannot revoke the current session. Use sign out instead.",
            )

        try:
            record = self._store.find_by_session_id(session_id, include_revoked=True)
            if record is None or record.user_id != requesting_user_id:
                return OperationResult.fail(
                    ErrorCode.FORBIDDEN, "Session not found or not owned by user"
                )

            revoked = self._store.mark_revoked_by_session_id(session_id, utcnow())
            if revoked:
                SecurityAuditService.log_event(
                    db=self._db,
                    event_type=SecurityEventType.SESSION_REVOKED,
                    user_id=requesting_user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception(f"Failed to revoke session for user {requesting_user_id}")
            return OperationResult.store_error()

        return OperationResult.ok(message="Session revoked")

    def revoke_all_other_sessions(
        self,
        current_session_id: str,
        user_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> OperationResult:
        """Revoke every active session of the user except the current one."""
        try:
            revoked = self._store.revoke_all_except(user_id, current_session_id, utcnow())
            if revoked:
                SecurityAuditService.log_event(
                    db=self._db,
                    event_type=SecurityEventType.OTHER_SESSIONS_REVOKED,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    details={"revoked_count": revoked},
                )
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception(f"Failed to revoke other sessions for user {user_id}")
            return OperationResult.store_error()

        return OperationResult.ok(
            data={"revoked_count": revoked},
            message=f"Revoked {revoked} other session(s)",
        )

    def cleanup_expired_sessions(self, now: datetime | None = None) -> OperationResult:
        """Delete revoked rows past retention and rows inactive for too long."""
        try:
            deleted = self._store.delete_expired(
                now or utcnow(),
                settings.revoked_session_retention_days,
                settings.inactive_session_retention_days,
            )
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Session cleanup failed")
            return OperationResult.store_error()

        logger.info(f"Session cleanup deleted {deleted} row(s)")
        return OperationResult.ok(data={"deleted_count": deleted})

    def remove_all_for_user(self, user_id: str) -> OperationResult:
        """Delete every session row of a user (account deletion)."""
        try:
            deleted = self._store.delete_all_for_user(user_id)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception(f"Failed to remove sessions for user {user_id}")
            return OperationResult.store_error()
        return OperationResult.ok(data={"deleted_count": deleted})
