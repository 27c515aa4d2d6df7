"""Per-client rate limiting for sign-in and two-factor endpoints."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from stride.services.security_audit_service import SecurityAuditService


def client_key(request: Request) -> str:
    """Limit by the same client address recorded in the audit log."""
    ip_address, _ = SecurityAuditService.get_request_info(request)
    return ip_address or get_remote_address(request)


limiter = Limiter(key_func=client_key)
