"""MFA factor and challenge data access layer."""

import logging
from datetime import datetime

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session

from stride.models import FactorStatus, MfaChallenge, MfaFactor

logger = logging.getLogger(__name__)


class MfaRepository:
    """Persistence for MfaFactor and MfaChallenge rows.

    The mark_* / record_* methods are conditional UPDATEs: they return True
    only for the caller that actually changed the row, which makes each
    check-and-mutate step atomic under concurrent requests.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _write(self, stmt) -> int:
        result = self._db.execute(stmt.execution_options(synchronize_session=False))
        self._db.expire_all()
        return result.rowcount

    # Factors

    def add_factor(self, factor: MfaFactor) -> MfaFactor:
        self._db.add(factor)
        self._db.flush()
        return factor

    def find_factor(self, factor_id: str, user_id: str | None = None) -> MfaFactor | None:
        """Find a factor, optionally scoped to its owner."""
        query = self._db.query(MfaFactor).filter(MfaFactor.id == factor_id)
        if user_id is not None:
            query = query.filter(MfaFactor.user_id == user_id)
        return query.first()

    def list_factors(self, user_id: str, verified_only: bool = False) -> list[MfaFactor]:
        query = self._db.query(MfaFactor).filter(MfaFactor.user_id == user_id)
        if verified_only:
            query = query.filter(MfaFactor.status == FactorStatus.VERIFIED)
        return query.order_by(MfaFactor.created_at).all()

    def count_verified(self, user_id: str) -> int:
        return (
            self._db.query(MfaFactor)
            .filter(MfaFactor.user_id == user_id, MfaFactor.status == FactorStatus.VERIFIED)
            .count()
        )

    def mark_verified(self, factor_id: str, step: int, now: datetime) -> bool:
        """unverified -> verified, at most once."""
        stmt = (
            update(MfaFactor)
            .where(MfaFactor.id == factor_id, MfaFactor.status == FactorStatus.UNVERIFIED)
            .values(status=FactorStatus.VERIFIED, verified_at=now, last_used_step=step)
        )
        return self._write(stmt) == 1

    def record_step(self, factor_id: str, step: int) -> bool:
        """Accept a TOTP time-step only if it is newer than the last one used."""
        stmt = (
            update(MfaFactor)
            .where(
                MfaFactor.id == factor_id,
                MfaFactor.status == FactorStatus.VERIFIED,
                or_(MfaFactor.last_used_step.is_(None), MfaFactor.last_used_step < step),
            )
            .values(last_used_step=step)
        )
        return self._write(stmt) == 1

    def delete_factor(self, factor_id: str) -> int:
        return self._write(delete(MfaFactor).where(MfaFactor.id == factor_id))

    def delete_factors_for_user(self, user_id: str) -> int:
        return self._write(delete(MfaFactor).where(MfaFactor.user_id == user_id))

    # Challenges

    def add_challenge(self, challenge: MfaChallenge) -> MfaChallenge:
        self._db.add(challenge)
        self._db.flush()
        return challenge

    def find_challenge(self, challenge_id: str) -> MfaChallenge | None:
        return self._db.query(MfaChallenge).filter(MfaChallenge.id == challenge_id).first()

    def mark_challenge_verified(self, challenge_id: str, now: datetime) -> bool:
        """Consume a challenge; only the first caller wins."""
        stmt = (
            update(MfaChallenge)
            .where(MfaChallenge.id == challenge_id, MfaChallenge.verified_at.is_(None))
            .values(verified_at=now)
        )
        return self._write(stmt) == 1

    def delete_challenges_for_factor(self, factor_id: str) -> int:
        return self._write(delete(MfaChallenge).where(MfaChallenge.factor_id == factor_id))

    def delete_challenges_for_user(self, user_id: str) -> int:
        return self._write(delete(MfaChallenge).where(MfaChallenge.user_id == user_id))
