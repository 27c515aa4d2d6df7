"""Error taxonomy and result objects for session and two-factor operations.

SessionManager and TwoFactorOrchestrator never raise across their public
methods. They return an OperationResult so HTTP handlers can map failures
to status codes in one place (see stride.routers.errors).
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Machine-readable failure codes."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    SELF_REVOKE_DENIED = "SELF_REVOKE_DENIED"
    INVALID_CODE = "INVALID_CODE"
    CHALLENGE_EXPIRED = "CHALLENGE_EXPIRED"
    INVALID_CHALLENGE = "INVALID_CHALLENGE"
    NO_BACKUP_CODES = "NO_BACKUP_CODES"
    FACTOR_NOT_FOUND = "FACTOR_NOT_FOUND"
    MFA_NOT_ENABLED = "MFA_NOT_ENABLED"
    STORE_ERROR = "STORE_ERROR"


# Shown to clients instead of driver messages
STORE_ERROR_MESSAGE = "Something went wrong, please try again"


class MfaError(Exception):
    """Raised by the MFA engine and backup code vault."""

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


@dataclass
class OperationResult:
    """Outcome of a public session or two-factor operation."""

    success: bool
    error: ErrorCode | None = None
    message: str | None = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None) -> "OperationResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: ErrorCode, message: str) -> "OperationResult":
        return cls(success=False, error=error, message=message)

    @classmethod
    def store_error(cls) -> "OperationResult":
        return cls(success=False, error=ErrorCode.STORE_ERROR, message=STORE_ERROR_MESSAGE)
