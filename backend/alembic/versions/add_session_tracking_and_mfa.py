"""Add session tracking and two-factor tables

Revision ID: add_session_tracking_and_mfa
Revises:
Create Date: 2026-10-18

This migration adds:
1. users table with two-factor profile fields and backup code digests
2. user_sessions table for per-device session tracking
3. mfa_factors and mfa_challenges tables for TOTP
4. security_audit_logs table
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "add_session_tracking_and_mfa"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("two_factor_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_two_factor_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("two_factor_backup_codes", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("backup_codes_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
    )

    # Create user_sessions table
    op.create_table(
        "user_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("session_id", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("device_id", sa.String(255), nullable=False, server_default="unknown"),
        sa.Column("ip_address", sa.String(45), nullable=False, server_default="127.0.0.1"),
        sa.Column("user_agent", sa.String(500), nullable=False, server_default="Unknown"),
        sa.Column("browser", sa.String(50), nullable=True),
        sa.Column("os", sa.String(50), nullable=True),
        sa.Column("device_type", sa.String(10), nullable=True),
        sa.Column("location_city", sa.String(100), nullable=True),
        sa.Column("location_country", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("last_active_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default="false"),
    )
    op.create_index(
        "ix_user_sessions_user_id_is_revoked", "user_sessions", ["user_id", "is_revoked"]
    )

    # Create mfa_factors table
    op.create_table(
        "mfa_factors",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("factor_type", sa.String(10), nullable=False, server_default="totp"),
        sa.Column("secret_encrypted", sa.String(255), nullable=False),
        sa.Column("status", sa.String(12), nullable=False, server_default="unverified"),
        sa.Column("friendly_name", sa.String(100), nullable=False, server_default="Authenticator App"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_step", sa.BigInteger(), nullable=True),
    )

    # Create mfa_challenges table
    op.create_table(
        "mfa_challenges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "factor_id",
            sa.String(36),
            sa.ForeignKey("mfa_factors.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Create security_audit_logs table
    op.create_table(
        "security_audit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("event_type", sa.String(50), nullable=False, index=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_security_audit_logs_user_id_created_at",
        "security_audit_logs",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_security_audit_logs_user_id_created_at", table_name="security_audit_logs")
    op.drop_table("security_audit_logs")
    op.drop_table("mfa_challenges")
    op.drop_table("mfa_factors")
    op.drop_index("ix_user_sessions_user_id_is_revoked", table_name="user_sessions")
    op.drop_table("user_sessions")
    op.drop_table("users")
