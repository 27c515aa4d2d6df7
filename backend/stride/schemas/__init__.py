"""Pydantic schemas for API validation."""

from stride.schemas.auth import MessageResponse, TokenResponse, UserInfo, UserLogin, UserRegister
from stride.schemas.mfa import (
    BackupCodesRequest,
    BackupCodesResponse,
    EnrollRequest,
    EnrollResponse,
    EnrollVerifyRequest,
    FactorRemovedResponse,
    FactorResponse,
    MfaDisableRequest,
    MfaEnabledResponse,
    MfaLoginResponse,
    MfaStatusResponse,
    MfaVerifyRequest,
)
from stride.schemas.sessions import (
    RevokeOthersResponse,
    SessionActivityResponse,
    SessionCleanupResponse,
    SessionCreateRequest,
    SessionListResponse,
    SessionLocation,
    SessionResponse,
)

__all__ = [
    "BackupCodesRequest",
    "BackupCodesResponse",
    "EnrollRequest",
    "EnrollResponse",
    "EnrollVerifyRequest",
    "FactorRemovedResponse",
    "FactorResponse",
    "MessageResponse",
    "MfaDisableRequest",
    "MfaEnabledResponse",
    "MfaLoginResponse",
    "MfaStatusResponse",
    "MfaVerifyRequest",
    "RevokeOthersResponse",
    "SessionActivityResponse",
    "SessionCleanupResponse",
    "SessionCreateRequest",
    "SessionListResponse",
    "SessionLocation",
    "SessionResponse",
    "TokenResponse",
    "UserInfo",
    "UserLogin",
    "UserRegister",
]
