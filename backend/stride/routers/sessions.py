"""Session management router: list, register and revoke signed-in devices."""

import hmac
import logging

from fastapi import APIRouter, Depends, Header, Request

from stride.config import settings
from stride.dependencies.auth import CurrentSession, get_current_session
from stride.dependencies.services import get_session_manager
from stride.routers.errors import raise_for_result
from stride.schemas.auth import MessageResponse
from stride.schemas.sessions import (
    RevokeOthersResponse,
    SessionActivityResponse,
    SessionCleanupResponse,
    SessionCreateRequest,
    SessionListResponse,
    SessionLocation,
    SessionResponse,
)
from stride.services.errors import ErrorCode, OperationResult
from stride.services.security_audit_service import SecurityAuditService
from stride.services.session_manager import SessionInfo, SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _to_response(info: SessionInfo) -> SessionResponse:
    return SessionResponse(
        session_id=info.session_id,
        browser=info.browser,
        os=info.os,
        device_type=info.device_type,
        location=SessionLocation(city=info.location_city, country=info.location_country),
        ip_address=info.ip_address,
        created_at=info.created_at,
        last_active_at=info.last_active_at,
        is_current=info.is_current,
    )


def _verify_cron_secret(authorization: str | None) -> None:
    expected = f"Bearer {settings.cron_secret}"
    if not settings.cron_secret or not authorization or not hmac.compare_digest(
        authorization, expected
    ):
        raise_for_result(OperationResult.fail(ErrorCode.NOT_AUTHENTICATED, "Unauthorized"))


@router.get("", response_model=SessionListResponse)
def list_sessions(
    current: CurrentSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionListResponse:
    """List the caller's active sessions, marking the current one."""
    result = raise_for_result(manager.get_user_sessions(current.user.id, current.session_id))
    return SessionListResponse(sessions=[_to_response(s) for s in result.data])


@router.post("", response_model=MessageResponse)
def register_session(
    request: Request,
    data: SessionCreateRequest | None = None,
    current: CurrentSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
) -> dict:
    """Record the current session if login did not (idempotent)."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    result = raise_for_result(
        manager.create_session(
            current.session_id,
            current.user.id,
            user_agent=user_agent,
            ip_address=ip_address,
            device_id=data.device_id if data else None,
        )
    )
    return {"message": result.message}


@router.post("/activity", response_model=SessionActivityResponse)
def record_activity(
    current: CurrentSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
) -> dict:
    """Heartbeat from the client: bump last_active_at of the current session."""
    result = raise_for_result(manager.update_session_activity(current.session_id))
    return result.data


@router.post("/revoke-others", response_model=RevokeOthersResponse)
def revoke_other_sessions(
    request: Request,
    current: CurrentSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
) -> dict:
    """Sign out everywhere else."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    result = raise_for_result(
        manager.revoke_all_other_sessions(
            current.session_id, current.user.id, ip_address=ip_address, user_agent=user_agent
        )
    )
    return {"message": result.message, "revoked_count": result.data["revoked_count"]}


@router.post("/cleanup", response_model=SessionCleanupResponse)
def cleanup_sessions(
    authorization: str | None = Header(None),
    manager: SessionManager = Depends(get_session_manager),
) -> dict:
    """Scheduled sweep of expired sessions, authenticated with the cron secret."""
    _verify_cron_secret(authorization)
    result = raise_for_result(manager.cleanup_expired_sessions())
    return result.data


@router.delete("/{session_id}", response_model=MessageResponse)
def revoke_session(
    session_id: str,
    request: Request,
    current: CurrentSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
) -> dict:
    """Revoke one of the caller's other sessions."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    result = raise_for_result(
        manager.revoke_session(
            session_id,
            current.user.id,
            current.session_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    return {"message": result.message}
