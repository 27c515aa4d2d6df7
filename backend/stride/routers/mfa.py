"""MFA router: TOTP enrollment, login challenges, backup codes."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from stride.database import get_db
from stride.dependencies.auth import CurrentSession, get_current_session
from stride.dependencies.services import get_identity_provider, get_two_factor
from stride.rate_limiter import limiter
from stride.routers.errors import raise_for_result
from stride.schemas.auth import MessageResponse, TokenResponse, UserInfo
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
    MfaStatusResponse,
    MfaVerifyRequest,
)
from stride.services.identity_provider import IdentityProvider
from stride.services.repositories import UserRepository
from stride.services.security_audit_service import SecurityAuditService
from stride.services.two_factor import TwoFactorOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/mfa", tags=["mfa"])


@router.get("/status", response_model=MfaStatusResponse)
def get_mfa_status(
    current: CurrentSession = Depends(get_current_session),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> dict:
    """Get the user's 2FA status and factors."""
    result = raise_for_result(two_factor.get_status(current.user.id))
    return {
        **result.data,
        "factors": [FactorResponse.model_validate(f) for f in result.data["factors"]],
    }


@router.post("/enroll", response_model=EnrollResponse)
def enroll_totp(
    data: EnrollRequest | None = None,
    current: CurrentSession = Depends(get_current_session),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> EnrollResponse:
    """Start TOTP enrollment. Returns secret and QR code (not yet active)."""
    result = raise_for_result(
        two_factor.start_enrollment(current.user, data.friendly_name if data else None)
    )
    enrollment = result.data
    return EnrollResponse(
        factor_id=enrollment.factor_id,
        secret=enrollment.secret,
        uri=enrollment.uri,
        qr_code_base64=enrollment.qr_code_base64,
    )


@router.post("/enroll/verify", response_model=MfaEnabledResponse)
@limiter.limit("10/minute")
def verify_enrollment(
    request: Request,
    data: EnrollVerifyRequest,
    current: CurrentSession = Depends(get_current_session),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> dict:
    """Confirm a factor with a code from the authenticator app."""
    result = raise_for_result(
        two_factor.confirm_enrollment(current.user.id, data.factor_id, data.code)
    )
    logger.info(f"TOTP factor verified for user: {current.user.id}")
    return {
        "message": "Two-factor authentication enabled",
        "factor_id": result.data["factor_id"],
        "backup_codes": result.data["backup_codes"],
    }


@router.get("/factors", response_model=list[FactorResponse])
def list_factors(
    current: CurrentSession = Depends(get_current_session),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> list:
    result = raise_for_result(two_factor.list_factors(current.user.id))
    return [FactorResponse.model_validate(f) for f in result.data]


@router.delete("/factors/{factor_id}", response_model=FactorRemovedResponse)
def remove_factor(
    factor_id: str,
    current: CurrentSession = Depends(get_current_session),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> dict:
    """Remove one factor. Removing the last one turns 2FA off."""
    result = raise_for_result(two_factor.unenroll_factor(current.user.id, factor_id))
    return {"message": "Factor removed", **result.data}


@router.delete("", response_model=MessageResponse)
def disable_mfa(
    data: MfaDisableRequest,
    current: CurrentSession = Depends(get_current_session),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> dict:
    """Disable 2FA (requires password or TOTP code)."""
    raise_for_result(two_factor.disable(current.user, password=data.password, code=data.code))
    logger.info(f"MFA disabled for user: {current.user.id}")
    return {"message": "Two-factor authentication disabled"}


@router.post("/backup-codes", response_model=BackupCodesResponse)
def regenerate_backup_codes(
    data: BackupCodesRequest,
    current: CurrentSession = Depends(get_current_session),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> dict:
    """Replace all backup codes (requires a TOTP code)."""
    result = raise_for_result(two_factor.regenerate_backup_codes(current.user.id, data.code))
    return result.data


@router.post("/verify", response_model=TokenResponse)
@limiter.limit("10/minute")
def verify_mfa(
    request: Request,
    data: MfaVerifyRequest,
    db: Session = Depends(get_db),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    """Answer the login challenge and receive an access token."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    result = raise_for_result(
        two_factor.complete_login_challenge(
            data.challenge_id,
            data.temp_token,
            data.code,
            method=data.method,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )

    user = UserRepository(db).find_by_id(result.data["user_id"])
    issued = provider.issue_session(user, user_agent, ip_address, data.device_id)
    logger.info(f"User logged in with MFA: {user.id}")
    return {
        "access_token": issued.access_token,
        "token_type": "bearer",
        "session_id": issued.session_id,
        "user": UserInfo.model_validate(user),
    }
