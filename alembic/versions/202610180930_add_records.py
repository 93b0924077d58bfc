"""add expenses, incomes, budgets and goals

Revision ID: 202610180930
Revises: 202610180900
Create Date: 2026-10-18 09:30:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "202610180930"
down_revision = "202610180900"
branch_labels = None
depends_on = None

FREQUENCIES = ("daily", "weekly", "monthly", "quarterly", "yearly")
PAYMENT_METHODS = ("UPI", "Card", "Cash", "Bank Transfer")


def _existing_enum(values: tuple[str, ...], name: str) -> sa.types.TypeEngine:
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), "postgresql"
    )


def _record_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("subcategory", sa.String(length=100)),
        sa.Column(
            "payment_method",
            _existing_enum(PAYMENT_METHODS, "paymentmethod"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column(
            "is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "recurring_frequency", _existing_enum(FREQUENCIES, "recurrencefrequency")
        ),
        sa.Column("notes", sa.Text()),
        sa.Column("receipt_url", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    postgresql.ENUM(*PAYMENT_METHODS, name="paymentmethod").create(
        op.get_bind(), checkfirst=True
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("expense_categories.id", ondelete="SET NULL"),
        ),
        *_record_columns(),
        sa.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
    )
    op.create_index("ix_expenses_user_date", "expenses", ["user_id", "date"])
    op.create_index("ix_expenses_user_category", "expenses", ["user_id", "category_id"])

    op.create_table(
        "incomes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("income_categories.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "subcategory_id",
            sa.Integer(),
            sa.ForeignKey("income_subcategories.id", ondelete="SET NULL"),
        ),
        sa.Column("upi_id", sa.String(length=100)),
        *_record_columns(),
        sa.CheckConstraint("amount_cents > 0", name="ck_incomes_amount_positive"),
    )
    op.create_index("ix_incomes_user_date", "incomes", ["user_id", "date"])
    op.create_index("ix_incomes_user_category", "incomes", ["user_id", "category_id"])

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column(
            "overall_monthly_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "month", "year", name="uq_budget_user_month"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_budget_month_range"),
        sa.CheckConstraint("year >= 2000", name="ck_budget_year_min"),
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "saved_amount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("target_date", sa.Date()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_goal_target_positive"),
        sa.CheckConstraint("saved_amount_cents >= 0", name="ck_goal_saved_nonnegative"),
    )
    op.create_index("ix_goals_user_created", "goals", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_goals_user_created", table_name="goals")
    op.drop_table("goals")
    op.drop_table("budgets")
    op.drop_index("ix_incomes_user_category", table_name="incomes")
    op.drop_index("ix_incomes_user_date", table_name="incomes")
    op.drop_table("incomes")
    op.drop_index("ix_expenses_user_category", table_name="expenses")
    op.drop_index("ix_expenses_user_date", table_name="expenses")
    op.drop_table("expenses")
    postgresql.ENUM(name="paymentmethod").drop(op.get_bind(), checkfirst=True)
