"""initial schema: category reference tables and user profiles

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None

FREQUENCIES = ("daily", "weekly", "monthly", "quarterly", "yearly")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "category_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type_name", sa.String(length=50), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "expense_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=32)),
        sa.Column(
            "category_type_id",
            sa.Integer(),
            sa.ForeignKey("category_types.id", ondelete="RESTRICT"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "uq_expense_categories_active_name",
        "expense_categories",
        ["category"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )
    op.create_index(
        "ix_expense_categories_type", "expense_categories", ["category_type_id"]
    )

    op.create_table(
        "expense_subcategories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("expense_categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=32)),
        sa.Column(
            "is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("frequency", sa.Enum(*FREQUENCIES, name="recurrencefrequency")),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("category_id", "name", name="uq_expense_subcategory_name"),
    )
    op.create_index(
        "ix_expense_subcategories_category_position",
        "expense_subcategories",
        ["category_id", "position"],
    )

    op.create_table(
        "income_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column(
            "category_type_id",
            sa.Integer(),
            sa.ForeignKey("category_types.id", ondelete="RESTRICT"),
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_income_categories_type", "income_categories", ["category_type_id"]
    )

    op.create_table(
        "income_subcategories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("income_categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        *_timestamps(),
        sa.UniqueConstraint("category_id", "name", name="uq_income_subcategory_name"),
    )
    op.create_index(
        "ix_income_subcategories_recurring", "income_subcategories", ["is_recurring"]
    )

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=200)),
        sa.Column("picture_url", sa.Text()),
        sa.Column("profile_picture_url", sa.Text()),
        sa.Column("provider", sa.String(length=40)),
        sa.Column("google_id", sa.String(length=64)),
        sa.Column(
            "email_verified", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("password_hash", sa.String(length=128)),
        sa.Column("password_updated_at", sa.DateTime()),
        sa.Column("household_members", sa.Integer()),
        sa.Column("monthly_income_cents", sa.Integer()),
        sa.Column("has_debt", sa.Boolean()),
        sa.Column("debt_amount_cents", sa.Integer()),
        sa.Column("savings_goal", sa.Text()),
        sa.Column("budgeting_experience", sa.String(length=50)),
        sa.Column("financial_goals", sa.JSON(), nullable=False),
        sa.Column("primary_expenses", sa.JSON(), nullable=False),
        sa.Column(
            "onboarding_completed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("user_profiles")
    op.drop_index("ix_income_subcategories_recurring", table_name="income_subcategories")
    op.drop_table("income_subcategories")
    op.drop_index("ix_income_categories_type", table_name="income_categories")
    op.drop_table("income_categories")
    op.drop_index(
        "ix_expense_subcategories_category_position", table_name="expense_subcategories"
    )
    op.drop_table("expense_subcategories")
    op.drop_index("ix_expense_categories_type", table_name="expense_categories")
    op.drop_index("uq_expense_categories_active_name", table_name="expense_categories")
    op.drop_table("expense_categories")
    op.drop_table("category_types")
    postgresql.ENUM(name="recurrencefrequency").drop(op.get_bind(), checkfirst=True)
