"""Tests for TwoFactorOrchestrator flows."""

import pytest

from stride.models import User
from stride.services.errors import ErrorCode
from stride.services.two_factor import TwoFactorOrchestrator
from tests.factories import totp_code


@pytest.fixture
def two_factor(db):
    return TwoFactorOrchestrator(db)


def enable(two_factor, user) -> tuple[str, list[str]]:
    """Enroll and verify a factor using the previous time-step's code."""
    enrollment = two_factor.start_enrollment(user).data
    result = two_factor.confirm_enrollment(
        user.id, enrollment.factor_id, totp_code(enrollment.secret, -30)
    )
    assert result.success, result.message
    return enrollment.secret, result.data["backup_codes"]


class TestEnable:
    def test_status_before_enrollment(self, two_factor, user):
        status = two_factor.get_status(user.id).data

        assert status["enabled"] is False
        assert status["backup_codes_count"] == 0
        assert status["factors"] == []

    def test_enable_issues_backup_codes(self, db, two_factor, user):
        _, codes = enable(two_factor, user)

        assert len(codes) == 10
        status = two_factor.get_status(user.id).data
        assert status["enabled"] is True
        assert status["backup_codes_count"] == 10
        assert status["verified_at"] is not None
        assert db.get(User, user.id).two_factor_enabled is True

    def test_second_factor_keeps_existing_codes(self, two_factor, user):
        _, codes = enable(two_factor, user)
        enrollment = two_factor.start_enrollment(user, "Backup phone").data

        result = two_factor.confirm_enrollment(
            user.id, enrollment.factor_id, totp_code(enrollment.secret)
        )

        assert result.data["backup_codes"] is None
        assert two_factor.get_status(user.id).data["backup_codes_count"] == len(codes)

    def test_wrong_code_leaves_factor_unverified(self, two_factor, user):
        enrollment = two_factor.start_enrollment(user).data

        result = two_factor.confirm_enrollment(user.id, enrollment.factor_id, "000000")

        assert result.error == ErrorCode.INVALID_CODE
        assert two_factor.get_status(user.id).data["enabled"] is False


class TestLoginChallenge:
    def test_totp_login(self, two_factor, user):
        secret, _ = enable(two_factor, user)
        challenge = two_factor.begin_login_challenge(user).data

        result = two_factor.complete_login_challenge(
            challenge.challenge_id, challenge.token, totp_code(secret, 30)
        )

        assert result.success is True
        assert result.data["user_id"] == user.id
        assert two_factor.get_status(user.id).data["last_used_at"] is not None

    def test_backup_code_login_consumes_code_and_challenge(self, two_factor, user):
        _, codes = enable(two_factor, user)
        challenge = two_factor.begin_login_challenge(user).data

        result = two_factor.complete_login_challenge(
            challenge.challenge_id, challenge.token, codes[0], method="backup"
        )
        assert result.data["backup_codes_remaining"] == 9

        replay = two_factor.complete_login_challenge(
            challenge.challenge_id, challenge.token, codes[1], method="backup"
        )
        assert replay.error == ErrorCode.INVALID_CHALLENGE
        assert two_factor.get_status(user.id).data["backup_codes_count"] == 9

    def test_invalid_backup_code_keeps_challenge_open(self, two_factor, user):
        _, codes = enable(two_factor, user)
        challenge = two_factor.begin_login_challenge(user).data

        failed = two_factor.complete_login_challenge(
            challenge.challenge_id, challenge.token, "WRONG123", method="backup"
        )
        assert failed.error == ErrorCode.INVALID_CODE

        retry = two_factor.complete_login_challenge(
            challenge.challenge_id, challenge.token, codes[0], method="backup"
        )
        assert retry.success is True

    def test_challenge_requires_enabled_2fa(self, two_factor, user):
        result = two_factor.begin_login_challenge(user)
        assert result.error == ErrorCode.MFA_NOT_ENABLED


class TestBackupCodes:
    def test_regenerate_requires_fresh_totp(self, two_factor, user):
        secret, old_codes = enable(two_factor, user)

        result = two_factor.regenerate_backup_codes(user.id, totp_code(secret, 30))

        assert result.success is True
        new_codes = result.data["backup_codes"]
        assert set(new_codes).isdisjoint(old_codes)

        challenge = two_factor.begin_login_challenge(user).data
        stale = two_factor.complete_login_challenge(
            challenge.challenge_id, challenge.token, old_codes[0], method="backup"
        )
        assert stale.error == ErrorCode.INVALID_CODE

    def test_regenerate_with_bad_code(self, two_factor, user):
        enable(two_factor, user)

        result = two_factor.regenerate_backup_codes(user.id, "000000")
        assert result.error == ErrorCode.INVALID_CODE

    def test_regenerate_without_2fa(self, two_factor, user):
        result = two_factor.regenerate_backup_codes(user.id, "123456")
        assert result.error == ErrorCode.MFA_NOT_ENABLED


class TestDisable:
    def test_disable_with_password_clears_everything(self, db, two_factor, user):
        enable(two_factor, user)
        db.expire_all()

        result = two_factor.disable(db.get(User, user.id), password="Password123")

        assert result.success is True
        status = two_factor.get_status(user.id).data
        assert status["enabled"] is False
        assert status["backup_codes_count"] == 0
        assert status["factors"] == []

    def test_disable_with_wrong_password(self, db, two_factor, user):
        enable(two_factor, user)

        result = two_factor.disable(db.get(User, user.id), password="wrong")

        assert result.error == ErrorCode.INVALID_CODE
        assert two_factor.get_status(user.id).data["enabled"] is True

    def test_disable_without_proof(self, db, two_factor, user):
        enable(two_factor, user)

        result = two_factor.disable(db.get(User, user.id))
        assert result.error == ErrorCode.INVALID_CODE

    def test_disable_when_not_enabled(self, two_factor, user):
        result = two_factor.disable(user, password="Password123")
        assert result.error == ErrorCode.MFA_NOT_ENABLED

    def test_removing_last_factor_turns_2fa_off(self, two_factor, user):
        enable(two_factor, user)
        factor_id = two_factor.list_factors(user.id).data[0].id

        result = two_factor.unenroll_factor(user.id, factor_id)

        assert result.data == {"remaining_factors": 0, "enabled": False}
        status = two_factor.get_status(user.id).data
        assert status["enabled"] is False
        assert status["backup_codes_count"] == 0

    def test_unenroll_unknown_factor(self, two_factor, user):
        result = two_factor.unenroll_factor(user.id, "missing")
        assert result.error == ErrorCode.FACTOR_NOT_FOUND

    def test_remove_all_for_user(self, two_factor, user):
        enable(two_factor, user)

        assert two_factor.remove_all_for_user(user.id).data == {"factors_removed": 1}
        assert two_factor.get_status(user.id).data["enabled"] is False
