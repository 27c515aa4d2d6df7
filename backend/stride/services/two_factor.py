"""User-facing two-factor flows built on the MFA engine and backup code vault."""

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stride.models import User
from stride.services.auth_service import AuthService
from stride.services.backup_code_vault import BackupCodeVault
from stride.services.errors import ErrorCode, MfaError, OperationResult
from stride.services.mfa_engine import MfaEngine
from stride.services.repositories import RepositoryError, UserRepository
from stride.services.security_audit_service import SecurityAuditService, SecurityEventType
from stride.services.shared.clock import utcnow

logger = logging.getLogger(__name__)

METHOD_TOTP = "totp"
METHOD_BACKUP = "backup"


class TwoFactorOrchestrator:
    """Enable, verify and disable two-factor authentication for a user.

    Each public method is one transaction: it commits on success, rolls back
    on failure and reports the outcome as an OperationResult.
    """

    def __init__(
        self,
        db: Session,
        engine: MfaEngine | None = None,
        vault: BackupCodeVault | None = None,
        users: UserRepository | None = None,
    ):
        self._db = db
        self._users = users or UserRepository(db)
        self._engine = engine or MfaEngine(db)
        self._vault = vault or BackupCodeVault(db, users=self._users)

    def _execute(self, operation: str, func: Callable[[], Any]) -> OperationResult:
        try:
            data = func()
            self._db.commit()
            return OperationResult.ok(data)
        except MfaError as e:
            self._db.rollback()
            logger.info(f"{operation} rejected: {e.code}")
            return OperationResult.fail(e.code, e.message)
        except ValueError as e:
            # Missing encryption key
            self._db.rollback()
            logger.error(f"{operation} misconfigured: {e}")
            return OperationResult.store_error()
        except (SQLAlchemyError, RepositoryError):
            self._db.rollback()
            logger.exception(f"{operation} failed")
            return OperationResult.store_error()

    def _audit_failure(self, user_id: str, event: SecurityEventType, details: dict) -> None:
        try:
            SecurityAuditService.log_event(
                db=self._db, event_type=event, user_id=user_id, details=details
            )
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Failed to record security event")

    def get_status(self, user_id: str) -> OperationResult:
        def status() -> dict:
            user = self._users.find_by_id(user_id)
            if user is None:
                raise MfaError(ErrorCode.NOT_AUTHENTICATED, "Not authenticated")
            factors = self._engine.list_factors(user_id)
            verified = [f for f in factors if f.is_verified]
            return {
                "enabled": bool(user.two_factor_enabled and verified),
                "verified_at": user.two_factor_verified_at,
                "last_used_at": user.last_two_factor_at,
                "backup_codes_count": self._vault.count(user_id),
                "factors": factors,
            }

        return self._execute("2FA status", status)

    def start_enrollment(self, user: User | None, friendly_name: str | None = None) -> OperationResult:
        def enroll():
            enrollment = self._engine.enroll(user, friendly_name)
            SecurityAuditService.log_event(
                db=self._db,
                event_type=SecurityEventType.MFA_ENROLLED,
                user_id=user.id,
                details={"factor_id": enrollment.factor_id},
            )
            return enrollment

        return self._execute("MFA enrollment", enroll)

    def confirm_enrollment(self, user_id: str, factor_id: str, code: str) -> OperationResult:
        """Verify a new factor and turn 2FA on.

        Backup codes are issued when 2FA goes from off to on. Adding a
        second factor keeps the existing codes.
        """

        def confirm() -> dict:
            now = utcnow()
            self._engine.verify_enrollment(user_id, factor_id, code, now)
            user = self._users.find_by_id(user_id)
            backup_codes = None
            if not user.two_factor_enabled:
                backup_codes = self._vault.generate(user_id)
                self._users.set_two_factor_enabled(user_id, True, verified_at=now)
                SecurityAuditService.log_event(
                    db=self._db, event_type=SecurityEventType.MFA_ENABLED, user_id=user_id
                )
            return {"factor_id": factor_id, "backup_codes": backup_codes}

        result = self._execute("MFA enrollment verification", confirm)
        if result.error == ErrorCode.INVALID_CODE:
            self._audit_failure(
                user_id, SecurityEventType.MFA_FAILED, {"stage": "enrollment"}
            )
        return result

    def begin_login_challenge(self, user: User) -> OperationResult:
        """Open a challenge for a password-authenticated user with 2FA on."""

        def begin():
            if not user.two_factor_enabled:
                raise MfaError(ErrorCode.MFA_NOT_ENABLED, "Two-factor authentication is not enabled")
            return self._engine.create_challenge(user.id)

        return self._execute("MFA challenge", begin)

    def complete_login_challenge(
        self,
        challenge_id: str,
        token: str,
        code: str,
        method: str = METHOD_TOTP,
        factor_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> OperationResult:
        """Answer a login challenge with a TOTP code or a backup code.

        A backup code also consumes the challenge, so it cannot be answered
        a second time.
        """
        owner: dict = {}

        def complete() -> dict:
            now = utcnow()
            remaining = None
            challenge = self._engine.get_pending_challenge(challenge_id, token, factor_id, now)
            user_id = owner["user_id"] = challenge.user_id
            if method == METHOD_BACKUP:
                remaining = self._vault.verify(user_id, code)
                self._engine.consume_challenge(challenge.id, now)
                event = SecurityEventType.BACKUP_CODE_USED
            else:
                self._engine.verify_challenge(challenge_id, token, code, factor_id, now)
                event = SecurityEventType.MFA_VERIFIED

            self._users.record_two_factor_use(user_id, now)
            SecurityAuditService.log_event(
                db=self._db,
                event_type=event,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"backup_codes_remaining": remaining} if remaining is not None else None,
            )
            return {
                "user_id": user_id,
                "method": method,
                "backup_codes_remaining": remaining,
            }

        result = self._execute("MFA login verification", complete)
        if result.error in (ErrorCode.INVALID_CODE, ErrorCode.NO_BACKUP_CODES) and owner:
            self._audit_failure(
                owner["user_id"], SecurityEventType.MFA_FAILED, {"method": method}
            )
        return result

    def regenerate_backup_codes(self, user_id: str, code: str) -> OperationResult:
        """Replace all backup codes after a fresh TOTP proof."""

        def regenerate() -> dict:
            user = self._users.find_by_id(user_id)
            if user is None or not user.two_factor_enabled:
                raise MfaError(ErrorCode.MFA_NOT_ENABLED, "Two-factor authentication is not enabled")
            self._engine.verify_code_for_user(user_id, code)
            codes = self._vault.generate(user_id)
            SecurityAuditService.log_event(
                db=self._db,
                event_type=SecurityEventType.BACKUP_CODES_REGENERATED,
                user_id=user_id,
            )
            return {"backup_codes": codes}

        return self._execute("Backup code regeneration", regenerate)

    def list_factors(self, user_id: str) -> OperationResult:
        return self._execute("List factors", lambda: self._engine.list_factors(user_id))

    def unenroll_factor(self, user_id: str, factor_id: str) -> OperationResult:
        """Remove one factor; removing the last one turns 2FA off."""

        def unenroll() -> dict:
            remaining = self._engine.unenroll_factor(user_id, factor_id)
            if remaining == 0:
                self._turn_off(user_id)
            SecurityAuditService.log_event(
                db=self._db,
                event_type=SecurityEventType.MFA_FACTOR_REMOVED,
                user_id=user_id,
                details={"factor_id": factor_id, "remaining": remaining},
            )
            return {"remaining_factors": remaining, "enabled": remaining > 0}

        return self._execute("Factor removal", unenroll)

    def _turn_off(self, user_id: str) -> None:
        # Profile flag goes last so a partial failure leaves the account protected
        self._vault.clear(user_id)
        self._users.set_two_factor_enabled(user_id, False)

    def disable(
        self, user: User, password: str | None = None, code: str | None = None
    ) -> OperationResult:
        """Turn 2FA off after re-proving identity with a password or TOTP code."""

        def disable_all() -> dict:
            if not user.two_factor_enabled and self._engine.count_verified(user.id) == 0:
                raise MfaError(ErrorCode.MFA_NOT_ENABLED, "Two-factor authentication is not enabled")
            if password:
                if not AuthService.verify_password(password, user.password_hash):
                    raise MfaError(ErrorCode.INVALID_CODE, "Invalid password")
            elif code:
                self._engine.verify_code_for_user(user.id, code)
            else:
                raise MfaError(ErrorCode.INVALID_CODE, "Password or verification code required")

            removed = self._engine.unenroll_all(user.id)
            self._turn_off(user.id)
            SecurityAuditService.log_event(
                db=self._db,
                event_type=SecurityEventType.MFA_DISABLED,
                user_id=user.id,
                details={"factors_removed": removed},
            )
            return {"factors_removed": removed}

        return self._execute("Disable 2FA", disable_all)

    def remove_all_for_user(self, user_id: str) -> OperationResult:
        """Drop every factor, challenge and backup code (account deletion)."""

        def remove() -> dict:
            removed = self._engine.unenroll_all(user_id)
            self._turn_off(user_id)
            return {"factors_removed": removed}

        return self._execute("Remove 2FA data", remove)
