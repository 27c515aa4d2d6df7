"""Services layer - session tracking and two-factor authentication.

Common imports for convenience:
    from stride.services import SessionManager, TwoFactorOrchestrator
"""

from .auth_service import AuthService
from .backup_code_vault import BackupCodeVault
from .errors import ErrorCode, MfaError, OperationResult
from .identity_provider import IdentityProvider, IssuedSession
from .mfa_engine import MfaEngine
from .mfa_service import MfaService
from .security_audit_service import SecurityAuditService, SecurityEventType
from .session_deduplicator import SessionDeduplicator
from .session_manager import SessionInfo, SessionManager
from .session_tracking import SessionTrackingBootstrap, session_tracking
from .two_factor import TwoFactorOrchestrator

__all__ = [
    "AuthService",
    "BackupCodeVault",
    "ErrorCode",
    "IdentityProvider",
    "IssuedSession",
    "MfaEngine",
    "MfaError",
    "MfaService",
    "OperationResult",
    "SecurityAuditService",
    "SecurityEventType",
    "SessionDeduplicator",
    "SessionInfo",
    "SessionManager",
    "SessionTrackingBootstrap",
    "TwoFactorOrchestrator",
    "session_tracking",
]
