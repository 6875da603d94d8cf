"""create users and ledgers tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "ledgers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uid", sa.String(length=32), nullable=False, unique=True),
        sa.Column("title", sa.String(length=100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("sheet_ref", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_ledgers_created_by", "ledgers", ["created_by"])
    op.create_index("ix_ledgers_created_at", "ledgers", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_ledgers_created_at", table_name="ledgers")
    op.drop_index("ix_ledgers_created_by", table_name="ledgers")
    op.drop_table("ledgers")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
