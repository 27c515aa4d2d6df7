"""TOTP factor enrollment and challenge/verify flows."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from cryptography.fernet import InvalidToken
from sqlalchemy.orm import Session

from stride.config import settings
from stride.models import FactorStatus, MfaChallenge, MfaFactor, User
from stride.services.auth_service import AuthService
from stride.services.errors import ErrorCode, MfaError
from stride.services.mfa_service import MfaService
from stride.services.repositories import MfaRepository
from stride.services.shared.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid verification code"


@dataclass
class EnrollmentResult:
    """Material shown to the user once, while the factor is unverified."""

    factor_id: str
    secret: str
    uri: str
    qr_code_base64: str


@dataclass
class IssuedChallenge:
    challenge_id: str
    factor_id: str
    token: str
    expires_at: datetime


class MfaEngine:
    """TOTP factors and login challenges for one database session.

    Methods raise MfaError and never commit; TwoFactorOrchestrator owns the
    transaction. Each accepted code advances the factor's last_used_step
    through a conditional update, so a code works at most once.
    """

    def __init__(self, db: Session, repository: MfaRepository | None = None):
        self._repo = repository or MfaRepository(db)

    def _match_step(self, factor: MfaFactor, code: str, now: datetime) -> int | None:
        try:
            secret = MfaService.decrypt_secret(factor.secret_encrypted)
        except InvalidToken:
            logger.error(f"Cannot decrypt secret for factor {factor.id}")
            return None
        return MfaService.match_totp_step(secret, code, now)

    def enroll(self, user: User | None, friendly_name: str | None = None) -> EnrollmentResult:
        """Create an unverified TOTP factor and its provisioning material."""
        if user is None:
            raise MfaError(ErrorCode.NOT_AUTHENTICATED, "Not authenticated")

        secret = MfaService.generate_totp_secret()
        uri = MfaService.get_totp_uri(secret, user.email)
        factor = MfaFactor(
            user_id=user.id,
            secret_encrypted=MfaService.encrypt_secret(secret),
            status=FactorStatus.UNVERIFIED,
        )
        if friendly_name:
            factor.friendly_name = friendly_name
        self._repo.add_factor(factor)

        return EnrollmentResult(
            factor_id=factor.id,
            secret=secret,
            uri=uri,
            qr_code_base64=MfaService.generate_qr_code_base64(uri),
        )

    def verify_enrollment(
        self, user_id: str, factor_id: str, code: str, now: datetime | None = None
    ) -> MfaFactor:
        """Prove possession of a new factor; unverified -> verified exactly once."""
        now = now or utcnow()
        factor = self._repo.find_factor(factor_id, user_id)
        if factor is None or factor.status != FactorStatus.UNVERIFIED:
            raise MfaError(ErrorCode.FACTOR_NOT_FOUND, "No pending factor with that id")

        step = self._match_step(factor, code, now)
        if step is None:
            raise MfaError(ErrorCode.INVALID_CODE, INVALID_CODE_MESSAGE)
        if not self._repo.mark_verified(factor_id, step, now):
            raise MfaError(ErrorCode.FACTOR_NOT_FOUND, "Factor was already verified")

        return self._repo.find_factor(factor_id)

    def create_challenge(
        self, user_id: str, factor_id: str | None = None, now: datetime | None = None
    ) -> IssuedChallenge:
        """Open a short-lived challenge against a verified factor.

        The returned token is only stored hashed; the client must present it
        back together with the code.
        """
        now = now or utcnow()
        if factor_id is None:
            verified = self._repo.list_factors(user_id, verified_only=True)
            factor = verified[0] if verified else None
        else:
            factor = self._repo.find_factor(factor_id, user_id)

        if factor is None or not factor.is_verified:
            raise MfaError(ErrorCode.FACTOR_NOT_FOUND, "No verified factor found")

        token = secrets.token_urlsafe(32)
        challenge = MfaChallenge(
            user_id=user_id,
            factor_id=factor.id,
            token_hash=AuthService.hash_token(token),
            expires_at=now + timedelta(seconds=settings.mfa_challenge_ttl_seconds),
        )
        self._repo.add_challenge(challenge)
        return IssuedChallenge(
            challenge_id=challenge.id,
            factor_id=factor.id,
            token=token,
            expires_at=challenge.expires_at,
        )

    def get_pending_challenge(
        self,
        challenge_id: str,
        token: str,
        factor_id: str | None = None,
        now: datetime | None = None,
    ) -> MfaChallenge:
        """Load a challenge that is still open for this token."""
        now = now or utcnow()
        challenge = self._repo.find_challenge(challenge_id)
        if (
            challenge is None
            or not AuthService.verify_token_hash(token, challenge.token_hash)
            or (factor_id is not None and challenge.factor_id != factor_id)
            or challenge.verified_at is not None
        ):
            raise MfaError(ErrorCode.INVALID_CHALLENGE, "Invalid or already used challenge")
        if as_utc(challenge.expires_at) <= now:
            raise MfaError(ErrorCode.CHALLENGE_EXPIRED, "Challenge expired. Please log in again.")
        return challenge

    def consume_challenge(self, challenge_id: str, now: datetime | None = None) -> None:
        if not self._repo.mark_challenge_verified(challenge_id, now or utcnow()):
            raise MfaError(ErrorCode.INVALID_CHALLENGE, "Invalid or already used challenge")

    def verify_challenge(
        self,
        challenge_id: str,
        token: str,
        code: str,
        factor_id: str | None = None,
        now: datetime | None = None,
    ) -> MfaChallenge:
        """Answer a challenge with a TOTP code and consume it."""
        now = now or utcnow()
        challenge = self.get_pending_challenge(challenge_id, token, factor_id, now)
        factor = self._repo.find_factor(challenge.factor_id)
        if factor is None or not factor.is_verified:
            raise MfaError(ErrorCode.INVALID_CHALLENGE, "Factor is no longer active")

        step = self._match_step(factor, code, now)
        if step is None or not self._repo.record_step(factor.id, step):
            raise MfaError(ErrorCode.INVALID_CODE, INVALID_CODE_MESSAGE)

        self.consume_challenge(challenge.id, now)
        return challenge

    def verify_code_for_user(
        self, user_id: str, code: str, now: datetime | None = None
    ) -> MfaFactor:
        """Accept a fresh TOTP code from any verified factor of the user."""
        now = now or utcnow()
        for factor in self._repo.list_factors(user_id, verified_only=True):
            step = self._match_step(factor, code, now)
            if step is not None and self._repo.record_step(factor.id, step):
                return factor
        raise MfaError(ErrorCode.INVALID_CODE, INVALID_CODE_MESSAGE)

    def list_factors(self, user_id: str) -> list[MfaFactor]:
        return self._repo.list_factors(user_id)

    def count_verified(self, user_id: str) -> int:
        return self._repo.count_verified(user_id)

    def unenroll_factor(self, user_id: str, factor_id: str) -> int:
        """Remove one factor. Returns how many verified factors remain."""
        if self._repo.find_factor(factor_id, user_id) is None:
            raise MfaError(ErrorCode.FACTOR_NOT_FOUND, "Factor not found")
        self._repo.delete_challenges_for_factor(factor_id)
        self._repo.delete_factor(factor_id)
        return self._repo.count_verified(user_id)

    def unenroll_all(self, user_id: str) -> int:
        """Remove every factor and challenge of a user."""
        self._repo.delete_challenges_for_user(user_id)
        return self._repo.delete_factors_for_user(user_id)
