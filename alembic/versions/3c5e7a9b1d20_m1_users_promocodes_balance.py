"""m1_users_promocodes_balance

Revision ID: 3c5e7a9b1d20
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "3c5e7a9b1d20"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("user_id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("idx_users_email", "users", ["email"])

    op.create_table(
        "verifications",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("issue_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expire_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("code", sa.String(16), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_verifications"),
    )
    op.create_index("idx_verifications_user", "verifications", ["user_id"])
    op.create_index("idx_verifications_email_code", "verifications", ["email", "code"])

    op.create_table(
        "promocode",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("keyword", sa.String(64), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quantity", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_promocode"),
        sa.UniqueConstraint("keyword", name="uq_promocode_keyword"),
        sa.CheckConstraint("quantity > 0", name="ck_promocode_quantity_positive"),
        sa.CheckConstraint(
            "start_time IS NULL OR end_time IS NULL OR end_time > start_time",
            name="ck_promocode_window_order",
        ),
    )

    op.create_table(
        "promocode_activation",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("promocode_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("enable_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_promocode_activation"),
        sa.ForeignKeyConstraint(
            ["promocode_id"],
            ["promocode.id"],
            name="fk_promocode_activation_promocode_id_promocode",
        ),
        sa.UniqueConstraint("promocode_id", "user_id", name="uq_promocode_activation_code_user"),
    )
    op.create_index(
        "idx_promocode_activation_user_enable_time",
        "promocode_activation",
        ["user_id", "enable_time"],
    )

    op.create_table(
        "balance",
        sa.Column("user_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("quantity", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("user_id", name="pk_balance"),
    )


def downgrade() -> None:
    op.drop_table("balance")
    op.drop_index("idx_promocode_activation_user_enable_time", table_name="promocode_activation")
    op.drop_table("promocode_activation")
    op.drop_table("promocode")
    op.drop_index("idx_verifications_email_code", table_name="verifications")
    op.drop_index("idx_verifications_user", table_name="verifications")
    op.drop_table("verifications")
    op.drop_index("idx_users_email", table_name="users")
    op.drop_table("users")
