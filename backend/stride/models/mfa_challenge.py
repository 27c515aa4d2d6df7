"""MFA login challenge model."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stride.database import Base

if TYPE_CHECKING:
    from stride.models.user import User


class MfaChallenge(Base):
    """Pending second-factor check after password sign-in."""

    __tablename__ = "mfa_challenges"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    factor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("mfa_factors.id", ondelete="CASCADE"), index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64))  # SHA-256 hex
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    user: Mapped["User"] = relationship(back_populates="mfa_challenges")

    def __repr__(self) -> str:
        return f"<MfaChallenge(id={self.id}, user_id={self.user_id})>"
