"""Password sign-in that issues session-bound access tokens.

Session lifecycle listeners (SessionManager) subscribe to sign-in and
sign-out events instead of hooking into the provider's storage.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy.orm import Session

from stride.models import User
from stride.services.auth_service import AuthService
from stride.services.repositories import DuplicateError, UserRepository

logger = logging.getLogger(__name__)


class SessionListener(Protocol):
    def on_session_created(
        self,
        session_id: str,
        user_id: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
        device_id: str | None = None,
    ) -> Any: ...

    def on_session_deleted(self, session_id: str, user_id: str | None = None) -> Any: ...


@dataclass
class IssuedSession:
    access_token: str
    session_id: str


class IdentityProvider:
    """Verifies credentials and notifies listeners about session events."""

    def __init__(self, db: Session, listeners: list[SessionListener] | None = None):
        self._db = db
        self._users = UserRepository(db)
        self._listeners: list[SessionListener] = list(listeners or [])

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def _notify(self, event: str, *args, **kwargs) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, event)(*args, **kwargs)
            except Exception:
                # Listeners are best-effort; a failure must not undo the sign-in
                logger.exception(f"Session listener {event} failed")

    def register(self, email: str, password: str) -> User:
        """Create a password account.

        Raises:
            DuplicateError: If the email is taken.
        """
        email = email.lower()
        if self._users.find_by_email(email):
            raise DuplicateError("User", "email", email)

        user = User(email=email, password_hash=AuthService.hash_password(password))
        self._db.add(user)
        self._db.commit()
        logger.info(f"User registered: {user.id}")
        return user

    def sign_in(self, email: str, password: str) -> User | None:
        """Return the active user for valid credentials, else None."""
        user = self._users.find_by_email(email)
        # Always run bcrypt to prevent timing-based email enumeration
        password_hash = user.password_hash if user else AuthService.get_dummy_hash()
        valid = AuthService.verify_password(password, password_hash)
        if not user or not valid or not user.is_active:
            return None
        return user

    def issue_session(
        self,
        user: User,
        user_agent: str | None = None,
        ip_address: str | None = None,
        device_id: str | None = None,
    ) -> IssuedSession:
        """Mint a session id and access token, then tell listeners."""
        session_id = AuthService.new_session_id()
        token = AuthService.create_access_token(user.id, session_id)
        self._notify(
            "on_session_created",
            session_id,
            user.id,
            user_agent=user_agent,
            ip_address=ip_address,
            device_id=device_id,
        )
        return IssuedSession(access_token=token, session_id=session_id)

    def sign_out(self, user_id: str, session_id: str) -> None:
        self._notify("on_session_deleted", session_id, user_id=user_id)
