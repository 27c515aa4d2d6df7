"""MFA factor model."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stride.database import Base

if TYPE_CHECKING:
    from stride.models.user import User


class FactorStatus:
    """Factor lifecycle states. unverified -> verified is the only transition."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"


class MfaFactor(Base):
    """TOTP authenticator enrolled by a user."""

    __tablename__ = "mfa_factors"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    factor_type: Mapped[str] = mapped_column(String(10), default="totp")
    secret_encrypted: Mapped[str] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(12), default=FactorStatus.UNVERIFIED)
    friendly_name: Mapped[str] = mapped_column(String(100), default="Authenticator App")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_used_step: Mapped[int | None] = mapped_column(BigInteger)  # TOTP time-step

    user: Mapped["User"] = relationship(back_populates="mfa_factors")

    @property
    def is_verified(self) -> bool:
        return self.status == FactorStatus.VERIFIED

    def __repr__(self) -> str:
        return f"<MfaFactor(id={self.id}, user_id={self.user_id}, status={self.status})>"
