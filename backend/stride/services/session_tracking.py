"""One-time startup of session tracking (expired-session sweep)."""

import logging

from sqlalchemy.orm import sessionmaker

from stride.database import SessionLocal
from stride.services.session_manager import SessionManager
from stride.services.shared.once import Once

logger = logging.getLogger(__name__)


class SessionTrackingBootstrap:
    """Runs the startup sweep at most once per process."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self._once = Once(self._run, name="session_tracking")

    @property
    def initialized(self) -> bool:
        return self._once.done

    def initialize(self) -> dict | None:
        return self._once()

    def reset(self, session_factory: sessionmaker | None = None) -> None:
        if session_factory is not None:
            self._session_factory = session_factory
        self._once.reset()

    def _run(self) -> dict | None:
        db = self._session_factory()
        try:
            manager = SessionManager(db, session_factory=self._session_factory)
            result = manager.cleanup_expired_sessions()
        finally:
            db.close()
        if not result.success:
            logger.warning("Startup session sweep failed")
            return None
        logger.info("Session tracking initialized")
        return result.data


session_tracking = SessionTrackingBootstrap()
