"""Account model."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from account_lifecycle.database import Base


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        # A token pair is either fully set or fully cleared
        CheckConstraint(
            "(confirmation_token IS NULL) = (confirmation_expires IS NULL)",
            name="ck_accounts_confirmation_pair",
        ),
        CheckConstraint(
            "(reset_token IS NULL) = (reset_token_expires IS NULL)",
            name="ck_accounts_reset_pair",
        ),
        CheckConstraint(
            "NOT is_confirmed OR confirmation_token IS NULL",
            name="ck_accounts_confirmed_has_no_token",
        ),
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(
        String(128), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default="user"
    )
    is_confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    confirmation_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True,
        doc="SHA-256 digest of the confirmation token (raw value in legacy mode)",
    )
    confirmation_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    reset_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True,
        doc="SHA-256 digest of the password reset token, never the raw value",
    )
    reset_token_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
