"""SQLAlchemy ORM models."""

from stride.models.mfa_challenge import MfaChallenge
from stride.models.mfa_factor import FactorStatus, MfaFactor
from stride.models.security_audit_log import SecurityAuditLog
from stride.models.session import UserSession
from stride.models.user import User

__all__ = [
    "FactorStatus",
    "MfaChallenge",
    "MfaFactor",
    "SecurityAuditLog",
    "User",
    "UserSession",
]
