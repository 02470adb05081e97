"""Agreements table.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        "agreements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("confirmation_code", sa.String(20), nullable=False),
        sa.Column("ip_hash", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column(
            "agreed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    # The unique index is what turns a code collision into a retry
    op.create_index(
        "ix_agreements_confirmation_code", "agreements", ["confirmation_code"], unique=True
    )
    op.create_index("ix_agreements_agreed_at", "agreements", ["agreed_at"])


def downgrade() -> None:
    op.drop_index("ix_agreements_agreed_at", table_name="agreements")
    op.drop_index("ix_agreements_confirmation_code", table_name="agreements")
    op.drop_table("agreements")
