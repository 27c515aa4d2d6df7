"""Session model for tracking signed-in devices."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stride.database import Base

if TYPE_CHECKING:
    from stride.models.user import User


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UserSession(Base):
    """One authenticated session on one device.

    Rows are revoked, never deleted, by user actions and deduplication.
    Only the expiry sweep removes them.
    """

    __tablename__ = "user_sessions"
    __table_args__ = (Index("ix_user_sessions_user_id_is_revoked", "user_id", "is_revoked"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    session_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE")
    )
    device_id: Mapped[str] = mapped_column(String(255), default="unknown")
    ip_address: Mapped[str] = mapped_column(String(45), default="127.0.0.1")
    user_agent: Mapped[str] = mapped_column(String(500), default="Unknown")
    browser: Mapped[str | None] = mapped_column(String(50))
    os: Mapped[str | None] = mapped_column(String(50))
    device_type: Mapped[str | None] = mapped_column(String(10))  # desktop, mobile, tablet
    location_city: Mapped[str | None] = mapped_column(String(100))
    location_country: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_active_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="sessions")

    @property
    def fingerprint(self) -> str:
        """Device grouping key used by deduplication."""
        return f"{self.user_agent}_{self.ip_address}"

    def __repr__(self) -> str:
        return f"<UserSession(id={self.id}, user_id='{self.user_id}', revoked={self.is_revoked})>"
