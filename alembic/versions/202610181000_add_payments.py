"""add payments

Revision ID: 202610181000
Revises: 202610180930
Create Date: 2026-10-18 10:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "202610181000"
down_revision = "202610180930"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="SET NULL"),
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column(
            "status",
            sa.Enum(
                "created",
                "authorized",
                "captured",
                "failed",
                "refunded",
                name="paymentstatus",
            ),
            nullable=False,
            server_default="created",
        ),
        sa.Column("razorpay_order_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("razorpay_payment_id", sa.String(length=64)),
        sa.Column("razorpay_signature", sa.String(length=128)),
        sa.Column("method", sa.String(length=40)),
        sa.Column("email", sa.String(length=255)),
        sa.Column("contact", sa.String(length=40)),
        sa.Column("notes", sa.JSON(), nullable=False),
        sa.Column("verified_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
    )
    op.create_index("ix_payments_user_created", "payments", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_payments_user_created", table_name="payments")
    op.drop_table("payments")
    postgresql.ENUM(name="paymentstatus").drop(op.get_bind(), checkfirst=True)
