"""Create accounts table.

Revision ID: 001
Revises:
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


revision = "001"
down_revision = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("account_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(64), unique=True, nullable=False),
        sa.Column("email", sa.String(320), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column("role", sa.String(32), nullable=False, server_default="user"),
        sa.Column("is_confirmed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("confirmation_token", sa.String(128), unique=True, nullable=True),
        sa.Column("confirmation_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reset_token", sa.String(128), unique=True, nullable=True),
        sa.Column("reset_token_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        # A token pair is either fully set or fully cleared
        sa.CheckConstraint(
            "(confirmation_token IS NULL) = (confirmation_expires IS NULL)",
            name="ck_accounts_confirmation_pair",
        ),
        sa.CheckConstraint(
            "(reset_token IS NULL) = (reset_token_expires IS NULL)",
            name="ck_accounts_reset_pair",
        ),
        sa.CheckConstraint(
            "NOT is_confirmed OR confirmation_token IS NULL",
            name="ck_accounts_confirmed_has_no_token",
        ),
    )
    # Janitor scan: unconfirmed accounts by expiry
    op.create_index(
        "ix_accounts_unconfirmed_expires",
        "accounts",
        ["confirmation_expires"],
        postgresql_where=sa.text("NOT is_confirmed"),
    )


def downgrade() -> None:
    op.drop_index("ix_accounts_unconfirmed_expires", table_name="accounts")
    op.drop_table("accounts")
