"""Schemas for MFA endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class EnrollRequest(BaseModel):
    """Request to start TOTP enrollment."""

    friendly_name: str | None = Field(None, max_length=100)


class EnrollResponse(BaseModel):
    """Response for TOTP enrollment; the secret is shown only here."""

    factor_id: str
    secret: str
    uri: str
    qr_code_base64: str


class EnrollVerifyRequest(BaseModel):
    """Request to confirm a new factor with a code from the app."""

    factor_id: str
    code: str = Field(min_length=6, max_length=6)


class MfaEnabledResponse(BaseModel):
    """Response when a factor is verified, includes backup codes when 2FA was just turned on."""

    message: str
    factor_id: str
    backup_codes: list[str] | None = None


class FactorResponse(BaseModel):
    id: str
    factor_type: str
    friendly_name: str
    status: str
    created_at: datetime
    verified_at: datetime | None = None

    model_config = {"from_attributes": True}


class FactorRemovedResponse(BaseModel):
    message: str
    remaining_factors: int
    enabled: bool


class MfaLoginResponse(BaseModel):
    """Response when MFA is required during login."""

    mfa_required: bool = True
    temp_token: str
    challenge_id: str
    factor_id: str
    expires_at: datetime
    methods: list[str] = ["totp", "backup"]


class MfaVerifyRequest(BaseModel):
    """Request to answer a login challenge."""

    temp_token: str
    challenge_id: str
    code: str = Field(min_length=1, max_length=64)
    method: str = Field("totp", pattern="^(totp|backup)$")
    device_id: str | None = Field(None, max_length=255)


class MfaDisableRequest(BaseModel):
    """Request to disable MFA (requires either password or a TOTP code)."""

    password: str | None = None
    code: str | None = None


class BackupCodesRequest(BaseModel):
    """Request to regenerate backup codes (requires MFA verification)."""

    code: str = Field(min_length=6, max_length=6)


class BackupCodesResponse(BaseModel):
    """Response with new backup codes."""

    backup_codes: list[str]


class MfaStatusResponse(BaseModel):
    """Response for GET /auth/mfa/status."""

    enabled: bool
    verified_at: datetime | None = None
    last_used_at: datetime | None = None
    backup_codes_count: int
    factors: list[FactorResponse]
