from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


DEFAULT_CATEGORY_ICON = "🏷️"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the timezone-less DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RecurrenceFrequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class PaymentMethod(str, Enum):
    upi = "UPI"
    card = "Card"
    cash = "Cash"
    bank_transfer = "Bank Transfer"


class PaymentStatus(str, Enum):
    created = "created"
    authorized = "authorized"
    captured = "captured"
    failed = "failed"
    refunded = "refunded"


def _value_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda cls: [member.value for member in cls],
    )


FREQUENCY_ENUM = _value_enum(RecurrenceFrequency, "recurrencefrequency")
PAYMENT_METHOD_ENUM = _value_enum(PaymentMethod, "paymentmethod")
PAYMENT_STATUS_ENUM = _value_enum(PaymentStatus, "paymentstatus")


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class CategoryType(Base, TimestampMixin):
    __tablename__ = "category_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type_name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)

    expense_categories: Mapped[list["ExpenseCategory"]] = relationship(
        "ExpenseCategory", back_populates="category_type", passive_deletes="all"
    )
    income_categories: Mapped[list["IncomeCategory"]] = relationship(
        "IncomeCategory", back_populates="category_type", passive_deletes="all"
    )


class ExpenseCategory(Base, TimestampMixin):
    __tablename__ = "expense_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(32))
    category_type_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("category_types.id", ondelete="RESTRICT")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category_type: Mapped[Optional["CategoryType"]] = relationship(
        "CategoryType", back_populates="expense_categories"
    )
    subcategories: Mapped[list["ExpenseSubcategory"]] = relationship(
        "ExpenseSubcategory",
        back_populates="category",
        order_by="ExpenseSubcategory.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index(
            "uq_expense_categories_active_name",
            "category",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("ix_expense_categories_type", "category_type_id"),
    )


class ExpenseSubcategory(Base, TimestampMixin):
    __tablename__ = "expense_subcategories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("expense_categories.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(32))
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    frequency: Mapped[Optional[RecurrenceFrequency]] = mapped_column(FREQUENCY_ENUM)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    category: Mapped["ExpenseCategory"] = relationship(
        "ExpenseCategory", back_populates="subcategories"
    )

    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_expense_subcategory_name"),
        Index("ix_expense_subcategories_category_position", "category_id", "position"),
    )


class IncomeCategory(Base, TimestampMixin):
    __tablename__ = "income_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    category_type_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("category_types.id", ondelete="RESTRICT")
    )

    category_type: Mapped[Optional["CategoryType"]] = relationship(
        "CategoryType", back_populates="income_categories"
    )
    subcategories: Mapped[list["IncomeSubcategory"]] = relationship(
        "IncomeSubcategory",
        back_populates="category",
        order_by="IncomeSubcategory.name",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_income_categories_type", "category_type_id"),)


class IncomeSubcategory(Base, TimestampMixin):
    __tablename__ = "income_subcategories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("income_categories.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    category: Mapped["IncomeCategory"] = relationship(
        "IncomeCategory", back_populates="subcategories"
    )

    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_income_subcategory_name"),
        Index("ix_income_subcategories_recurring", "is_recurring"),
    )


class UserProfile(Base, TimestampMixin):
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(200))
    picture_url: Mapped[Optional[str]] = mapped_column(Text)
    profile_picture_url: Mapped[Optional[str]] = mapped_column(Text)
    provider: Mapped[Optional[str]] = mapped_column(String(40))
    google_id: Mapped[Optional[str]] = mapped_column(String(64))
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(128))
    password_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    household_members: Mapped[Optional[int]] = mapped_column(Integer)
    monthly_income_cents: Mapped[Optional[int]] = mapped_column(Integer)
    has_debt: Mapped[Optional[bool]] = mapped_column(Boolean)
    debt_amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    savings_goal: Mapped[Optional[str]] = mapped_column(Text)
    budgeting_experience: Mapped[Optional[str]] = mapped_column(String(50))
    financial_goals: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    primary_expenses: Mapped[list[str]] = mapped_column(
        JSON, default=list, nullable=False
    )
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("expense_categories.id", ondelete="SET NULL")
    )
    # Display name captured when the expense was recorded.
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    subcategory: Mapped[Optional[str]] = mapped_column(String(100))
    payment_method: Mapped[PaymentMethod] = mapped_column(
        PAYMENT_METHOD_ENUM, nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_frequency: Mapped[Optional[RecurrenceFrequency]] = mapped_column(
        FREQUENCY_ENUM
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    receipt_url: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        Index("ix_expenses_user_date", "user_id", "date"),
        Index("ix_expenses_user_category", "user_id", "category_id"),
    )


class Income(Base, TimestampMixin):
    __tablename__ = "incomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("income_categories.id", ondelete="SET NULL")
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    subcategory_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("income_subcategories.id", ondelete="SET NULL")
    )
    subcategory: Mapped[Optional[str]] = mapped_column(String(100))
    payment_method: Mapped[PaymentMethod] = mapped_column(
        PAYMENT_METHOD_ENUM, nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_frequency: Mapped[Optional[RecurrenceFrequency]] = mapped_column(
        FREQUENCY_ENUM
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    upi_id: Mapped[Optional[str]] = mapped_column(String(100))
    receipt_url: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_incomes_amount_positive"),
        Index("ix_incomes_user_date", "user_id", "date"),
        Index("ix_incomes_user_category", "user_id", "category_id"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    overall_monthly_cents: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    categories: Mapped[dict[str, int]] = mapped_column(
        JSON, default=dict, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_budget_user_month"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_budget_month_range"),
        CheckConstraint("year >= 2000", name="ck_budget_year_min"),
    )


class Goal(Base, TimestampMixin):
    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    saved_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_date: Mapped[Optional[date]] = mapped_column(Date)

    __table_args__ = (
        CheckConstraint("target_amount_cents > 0", name="ck_goal_target_positive"),
        CheckConstraint("saved_amount_cents >= 0", name="ck_goal_saved_nonnegative"),
        Index("ix_goals_user_created", "user_id", "created_at"),
    )


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    expense_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("expenses.id", ondelete="SET NULL")
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        PAYMENT_STATUS_ENUM, default=PaymentStatus.created, nullable=False
    )
    razorpay_order_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )
    razorpay_payment_id: Mapped[Optional[str]] = mapped_column(String(64))
    razorpay_signature: Mapped[Optional[str]] = mapped_column(String(128))
    method: Mapped[Optional[str]] = mapped_column(String(40))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    contact: Mapped[Optional[str]] = mapped_column(String(40))
    notes: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    user: Mapped["UserProfile"] = relationship("UserProfile")

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        Index("ix_payments_user_created", "user_id", "created_at"),
    )
