"""Authentication dependencies for protected routes."""

from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from stride.database import get_db
from stride.models.user import User
from stride.routers.errors import raise_for_result
from stride.services.auth_service import AuthService
from stride.services.errors import ErrorCode, OperationResult
from stride.services.repositories import SessionRepository, UserRepository

# Missing credentials are reported as 401 NOT_AUTHENTICATED, not FastAPI's default
security = HTTPBearer(auto_error=False)


@dataclass
class CurrentSession:
    """The authenticated user and the session id carried by their token."""

    user: User
    session_id: str


def _not_authenticated(message: str):
    raise_for_result(OperationResult.fail(ErrorCode.NOT_AUTHENTICATED, message))


def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> CurrentSession:
    """
    Resolve the bearer token to a user and session id.

    A token whose session was revoked (from another device, or by
    deduplication) is rejected.

    Usage:
        @router.get("/protected")
        def protected_route(current: CurrentSession = Depends(get_current_session)):
            return {"session_id": current.session_id}
    """
    if not credentials:
        _not_authenticated("Not authenticated")

    payload = AuthService.decode_access_token(credentials.credentials)
    if not payload:
        _not_authenticated("Invalid or expired token")

    if payload.get("type") != "access" or not payload.get("sid"):
        _not_authenticated("Invalid token type")

    user = UserRepository(db).find_by_id(payload.get("sub"))
    if not user:
        _not_authenticated("User not found")

    if not user.is_active:
        _not_authenticated("User account is disabled")

    session_id = payload["sid"]
    record = SessionRepository(db).find_by_session_id(session_id, include_revoked=True)
    if record is not None and record.is_revoked:
        _not_authenticated("Session has been revoked")

    return CurrentSession(user=user, session_id=session_id)


def get_current_user(current: CurrentSession = Depends(get_current_session)) -> User:
    """Get current authenticated user from JWT token."""
    return current.user
