"""Security audit trail for sign-in, session and two-factor events."""

import json
import logging
from enum import StrEnum

from fastapi import Request
from sqlalchemy.orm import Session

from stride.models.security_audit_log import SecurityAuditLog

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 500


class SecurityEventType(StrEnum):
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_MFA_REQUIRED = "login_mfa_required"
    LOGOUT = "logout"
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"
    OTHER_SESSIONS_REVOKED = "other_sessions_revoked"
    MFA_ENROLLED = "mfa_enrolled"
    MFA_ENABLED = "mfa_enabled"
    MFA_DISABLED = "mfa_disabled"
    MFA_FACTOR_REMOVED = "mfa_factor_removed"
    MFA_VERIFIED = "mfa_verified"
    MFA_FAILED = "mfa_failed"
    BACKUP_CODE_USED = "backup_code_used"
    BACKUP_CODES_REGENERATED = "backup_codes_regenerated"


def _client_ip(request: Request) -> str | None:
    # First hop of X-Forwarded-For is the original client when behind a proxy
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


class SecurityAuditService:
    """Appends rows to security_audit_logs. Callers own the commit."""

    @staticmethod
    def log_event(
        db: Session,
        event_type: SecurityEventType,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict | None = None,
    ) -> None:
        db.add(
            SecurityAuditLog(
                user_id=user_id,
                event_type=str(event_type),
                ip_address=ip_address,
                user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
                details=json.dumps(details, default=str) if details else None,
            )
        )
        logger.info(f"Security event {event_type} for user {user_id} from {ip_address}")

    @staticmethod
    def get_request_info(request: Request | None) -> tuple[str | None, str | None]:
        """Return (client ip, user agent) for a request."""
        if request is None:
            return None, None
        user_agent = request.headers.get("User-Agent", "")[:USER_AGENT_MAX_LENGTH]
        return _client_ip(request), user_agent
