"""User model carrying the profile fields used by two-factor authentication."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from stride.database import Base

if TYPE_CHECKING:
    from stride.models.mfa_challenge import MfaChallenge
    from stride.models.mfa_factor import MfaFactor
    from stride.models.session import UserSession


class User(Base):
    """User model representing authenticated users."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Two-factor profile state
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    two_factor_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_two_factor_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    two_factor_backup_codes: Mapped[list[str]] = mapped_column(JSON, default=list)
    # Bumped on every write to two_factor_backup_codes (compare-and-swap guard)
    backup_codes_version: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    sessions: Mapped[list["UserSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    mfa_factors: Mapped[list["MfaFactor"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    mfa_challenges: Mapped[list["MfaChallenge"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
