"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from stride.database import get_db
from stride.dependencies.auth import CurrentSession, get_current_session
from stride.dependencies.services import get_identity_provider, get_two_factor
from stride.rate_limiter import limiter
from stride.routers.errors import raise_for_result
from stride.schemas.auth import MessageResponse, TokenResponse, UserInfo, UserLogin, UserRegister
from stride.schemas.mfa import MfaLoginResponse
from stride.services.errors import ErrorCode
from stride.services.identity_provider import IdentityProvider
from stride.services.repositories import DuplicateError
from stride.services.security_audit_service import SecurityAuditService, SecurityEventType
from stride.services.two_factor import TwoFactorOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=UserInfo, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(
    request: Request,
    data: UserRegister,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> UserInfo:
    """Register a new user."""
    try:
        user = provider.register(data.email, data.password)
    except DuplicateError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )
    return UserInfo.model_validate(user)


@router.post("/login", response_model=TokenResponse | MfaLoginResponse)
@limiter.limit("5/minute")
def login(
    request: Request,
    data: UserLogin,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    two_factor: TwoFactorOrchestrator = Depends(get_two_factor),
) -> dict:
    """Login and get an access token, or an MFA challenge when 2FA is on."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)

    user = provider.sign_in(data.email, data.password)
    if not user:
        SecurityAuditService.log_event(
            db, SecurityEventType.LOGIN_FAILED, ip_address=ip_address,
            user_agent=user_agent, details={"email": data.email}
        )
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if user.two_factor_enabled:
        result = two_factor.begin_login_challenge(user)
        if result.success:
            challenge = result.data
            SecurityAuditService.log_event(
                db, SecurityEventType.LOGIN_MFA_REQUIRED, user_id=user.id,
                ip_address=ip_address, user_agent=user_agent
            )
            db.commit()
            logger.info(f"MFA required for user: {user.id}")
            return {
                "mfa_required": True,
                "temp_token": challenge.token,
                "challenge_id": challenge.challenge_id,
                "factor_id": challenge.factor_id,
                "expires_at": challenge.expires_at,
                "methods": ["totp", "backup"],
            }
        # Flag set but no usable factor left: fall through to password-only login
        if result.error != ErrorCode.FACTOR_NOT_FOUND:
            raise_for_result(result)
        logger.warning(f"2FA flag set without a verified factor for user {user.id}")

    issued = provider.issue_session(user, user_agent, ip_address, data.device_id)
    SecurityAuditService.log_event(
        db, SecurityEventType.LOGIN_SUCCESS, user_id=user.id,
        ip_address=ip_address, user_agent=user_agent
    )
    db.commit()

    logger.info(f"User logged in: {user.id}")
    return {
        "access_token": issued.access_token,
        "token_type": "bearer",
        "session_id": issued.session_id,
        "user": UserInfo.model_validate(user),
    }


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    current: CurrentSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    """Logout and revoke the current session."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    provider.sign_out(current.user.id, current.session_id)
    SecurityAuditService.log_event(
        db, SecurityEventType.LOGOUT, user_id=current.user.id,
        ip_address=ip_address, user_agent=user_agent
    )
    db.commit()
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserInfo)
def get_me(current: CurrentSession = Depends(get_current_session)) -> UserInfo:
    """Get current user info."""
    return UserInfo.model_validate(current.user)
