import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    field_validator,
    model_validator,
)

from models import PaymentMethod, PaymentStatus, RecurrenceFrequency


TYPE_NAME_PATTERN = re.compile(r"^[A-Za-z\s\-']+$")


# Field checks shared by the category inputs. Each one receives the raw JSON value,
# so type mismatches are reported with the same wording as missing values.


def required_text(value: object, label: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} is required and must be a non-empty string")
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise ValueError(f"{label} must be {max_length} characters or less")
    return cleaned


def optional_text(value: object, label: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string")
    if len(value) > max_length:
        raise ValueError(f"{label} must be {max_length} characters or less")
    return value.strip() or None


def required_bool(value: object, label: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{label} must be a boolean value")
    return value


def optional_id(value: object, label: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{label} must be a positive integer")
    return value


def clean_tags(values: list[str], max_length: int = 50) -> list[str]:
    seen: set[str] = set()
    tags: list[str] = []
    for raw in values:
        tag = raw.strip()
        if not tag:
            continue
        if len(tag) > max_length:
            raise ValueError(f"Tag must be {max_length} characters or less")
        key = tag.lower()
        if key not in seen:
            seen.add(key)
            tags.append(tag)
    return tags


class CategoryTypeIn(BaseModel):
    model_config = ConfigDict(validate_default=True)

    type_name: str = None  # type: ignore[assignment]
    description: Optional[str] = None

    @field_validator("type_name", mode="before")
    @classmethod
    def _type_name(cls, value: object) -> str:
        cleaned = required_text(value, "Type name", 50)
        if not TYPE_NAME_PATTERN.match(cleaned):
            raise ValueError(
                "Type name must contain only letters, spaces, hyphens, and apostrophes"
            )
        return cleaned

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: object) -> Optional[str]:
        return optional_text(value, "Description", 200)


class ExpenseCategoryIn(BaseModel):
    model_config = ConfigDict(validate_default=True)

    category: str = None  # type: ignore[assignment]
    icon: Optional[str] = None
    category_type_id: Optional[int] = None

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: object) -> str:
        return required_text(value, "Category name", 100)

    @field_validator("icon", mode="before")
    @classmethod
    def _icon(cls, value: object) -> Optional[str]:
        return optional_text(value, "Icon", 32)

    @field_validator("category_type_id", mode="before")
    @classmethod
    def _type_id(cls, value: object) -> Optional[int]:
        return optional_id(value, "Category type ID")


class ExpenseSubcategoryIn(BaseModel):
    model_config = ConfigDict(validate_default=True, populate_by_name=True)

    name: str = None  # type: ignore[assignment]
    icon: Optional[str] = None
    is_recurring: bool = Field(
        default=False, validation_alias=AliasChoices("is_recurring", "isRecurring")
    )
    frequency: Optional[RecurrenceFrequency] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: object) -> str:
        return required_text(value, "Subcategory name", 100)

    @field_validator("icon", mode="before")
    @classmethod
    def _icon(cls, value: object) -> Optional[str]:
        return optional_text(value, "Icon", 32)

    @field_validator("is_recurring", mode="before")
    @classmethod
    def _is_recurring(cls, value: object) -> bool:
        return required_bool(value, "is_recurring")

    @model_validator(mode="after")
    def _frequency_only_when_recurring(self) -> "ExpenseSubcategoryIn":
        if not self.is_recurring:
            self.frequency = None
        return self


class IncomeCategoryIn(BaseModel):
    model_config = ConfigDict(validate_default=True)

    name: str = None  # type: ignore[assignment]
    category_type_id: Optional[int] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: object) -> str:
        return required_text(value, "Category name", 100)

    @field_validator("category_type_id", mode="before")
    @classmethod
    def _type_id(cls, value: object) -> Optional[int]:
        return optional_id(value, "Category type ID")


class IncomeSubcategoryIn(BaseModel):
    model_config = ConfigDict(validate_default=True)

    category_id: int = None  # type: ignore[assignment]
    name: str = None  # type: ignore[assignment]
    is_recurring: bool = None  # type: ignore[assignment]

    @field_validator("category_id", mode="before")
    @classmethod
    def _category_id(cls, value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError("Category ID is required and must be a positive integer")
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: object) -> str:
        return required_text(value, "Subcategory name", 100)

    @field_validator("is_recurring", mode="before")
    @classmethod
    def _is_recurring(cls, value: object) -> bool:
        return required_bool(value, "is_recurring")


class ExpenseIn(BaseModel):
    amount_cents: StrictInt = Field(..., gt=0)
    category_id: StrictInt
    subcategory: Optional[str] = Field(default=None, max_length=100)
    payment_method: PaymentMethod
    date: date
    description: Optional[str] = Field(default=None, max_length=500)
    tags: list[str] = Field(default_factory=list)
    is_recurring: StrictBool = False
    recurring_frequency: Optional[RecurrenceFrequency] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    receipt_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: list[str]) -> list[str]:
        return clean_tags(value)

    @model_validator(mode="after")
    def _recurrence(self) -> "ExpenseIn":
        if self.is_recurring and self.recurring_frequency is None:
            raise ValueError("recurring_frequency is required for recurring entries")
        if not self.is_recurring:
            self.recurring_frequency = None
        return self


class IncomeIn(BaseModel):
    amount_cents: StrictInt = Field(..., gt=0)
    category_id: StrictInt
    subcategory_id: Optional[StrictInt] = None
    payment_method: PaymentMethod
    date: date
    description: Optional[str] = Field(default=None, max_length=500)
    tags: list[str] = Field(default_factory=list)
    is_recurring: StrictBool = False
    recurring_frequency: Optional[RecurrenceFrequency] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    upi_id: Optional[str] = Field(default=None, max_length=100)
    receipt_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: list[str]) -> list[str]:
        return clean_tags(value)

    @model_validator(mode="after")
    def _recurrence(self) -> "IncomeIn":
        if self.is_recurring and self.recurring_frequency is None:
            raise ValueError("recurring_frequency is required for recurring entries")
        if not self.is_recurring:
            self.recurring_frequency = None
        return self


class BudgetIn(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=3000)
    overall_monthly_cents: int = Field(default=0, ge=0)
    categories: dict[str, int] = Field(default_factory=dict)

    @field_validator("categories")
    @classmethod
    def _categories(cls, value: dict[str, int]) -> dict[str, int]:
        cleaned: dict[str, int] = {}
        for name, cents in value.items():
            key = name.strip()
            if not key:
                raise ValueError("Budget category name cannot be empty")
            if cents < 0:
                raise ValueError(f"Budget for {key} cannot be negative")
            cleaned[key] = cents
        return cleaned


class GoalIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    target_amount_cents: int = Field(..., gt=0)
    saved_amount_cents: int = Field(default=0, ge=0)
    target_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Goal title cannot be empty")
        return cleaned


class ProfileUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(default=None, max_length=200)
    profile_picture_url: Optional[str] = None
    household_members: Optional[int] = Field(default=None, ge=1, le=50)
    monthly_income_cents: Optional[int] = Field(default=None, ge=0)
    has_debt: Optional[bool] = None
    debt_amount_cents: Optional[int] = Field(default=None, ge=0)
    savings_goal: Optional[str] = Field(default=None, max_length=500)
    budgeting_experience: Optional[str] = Field(default=None, max_length=50)
    financial_goals: Optional[list[str]] = None
    primary_expenses: Optional[list[str]] = None

    @field_validator("financial_goals", "primary_expenses")
    @classmethod
    def _string_lists(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        return clean_tags(value, max_length=100)


class OnboardingIn(BaseModel):
    household_members: Optional[int] = Field(default=None, ge=1, le=50)
    monthly_income_cents: Optional[int] = Field(default=None, ge=0)
    has_debt: Optional[bool] = None
    debt_amount_cents: Optional[int] = Field(default=None, ge=0)
    savings_goal: Optional[str] = Field(default=None, max_length=500)
    budgeting_experience: Optional[str] = Field(default=None, max_length=50)
    financial_goals: list[str] = Field(default_factory=list)
    primary_expenses: list[str] = Field(default_factory=list)

    @field_validator("financial_goals", "primary_expenses")
    @classmethod
    def _string_lists(cls, value: list[str]) -> list[str]:
        return clean_tags(value, max_length=100)


class GoogleCredentialIn(BaseModel):
    credential: str = Field(..., min_length=1)


class GoogleCodeIn(BaseModel):
    code: str = Field(..., min_length=1)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=72)


class AdminPasswordIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=72)


class CreateOrderIn(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    expense_id: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=200)

    @field_validator("currency")
    @classmethod
    def _currency(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("Currency must be a 3-letter ISO 4217 code")
        return value.upper()


class VerifyPaymentIn(BaseModel):
    razorpay_order_id: str = Field(default="", max_length=64)
    razorpay_payment_id: str = Field(default="", max_length=64)
    razorpay_signature: str = Field(default="", max_length=128)

    @model_validator(mode="after")
    def _required(self) -> "VerifyPaymentIn":
        if not (
            self.razorpay_order_id
            and self.razorpay_payment_id
            and self.razorpay_signature
        ):
            raise ValueError("Missing required fields")
        return self


class ReceiptTextIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extracted_text: str = Field(
        default="", validation_alias=AliasChoices("extracted_text", "extractedText")
    )

    @model_validator(mode="after")
    def _required(self) -> "ReceiptTextIn":
        if not self.extracted_text.strip():
            raise ValueError("Missing required field: extractedText")
        return self


class CategoryAnalysisIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extracted_text: str = Field(
        default="", validation_alias=AliasChoices("extracted_text", "extractedText")
    )
    available_categories: Optional[list[str]] = Field(
        default=None,
        validation_alias=AliasChoices("available_categories", "availableCategories"),
    )

    @model_validator(mode="after")
    def _required(self) -> "CategoryAnalysisIn":
        if not self.extracted_text.strip() or not self.available_categories:
            raise ValueError(
                "Missing required fields: extractedText and availableCategories"
            )
        return self


# Response shapes


class CategoryTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type_name: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime


class ExpenseSubcategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    icon: Optional[str]
    is_recurring: bool
    frequency: Optional[RecurrenceFrequency]


class ExpenseCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    icon: Optional[str]
    category_type_id: Optional[int]
    is_active: bool
    subcategories: list[ExpenseSubcategoryOut]
    created_at: datetime
    updated_at: datetime


class IncomeCategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class IncomeCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category_type_id: Optional[int]
    created_at: datetime
    updated_at: datetime


class IncomeSubcategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    name: str
    is_recurring: bool
    category: IncomeCategoryRef
    created_at: datetime
    updated_at: datetime


class CategoryWithTypeOut(BaseModel):
    category_table: str
    id: int
    name: str
    category_type_id: Optional[int]
    type_name: Optional[str]
    type_description: Optional[str]
    created_at: datetime


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount_cents: int
    category_id: Optional[int]
    category: str
    subcategory: Optional[str]
    payment_method: PaymentMethod
    date: date
    description: Optional[str]
    tags: list[str]
    is_recurring: bool
    recurring_frequency: Optional[RecurrenceFrequency]
    notes: Optional[str]
    receipt_url: Optional[str]
    created_at: datetime
    updated_at: datetime


class IncomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount_cents: int
    category_id: Optional[int]
    category: str
    subcategory_id: Optional[int]
    subcategory: Optional[str]
    payment_method: PaymentMethod
    date: date
    description: Optional[str]
    tags: list[str]
    is_recurring: bool
    recurring_frequency: Optional[RecurrenceFrequency]
    notes: Optional[str]
    upi_id: Optional[str]
    receipt_url: Optional[str]
    created_at: datetime
    updated_at: datetime


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    month: int
    year: int
    overall_monthly_cents: int
    categories: dict[str, int]
    updated_at: datetime


class GoalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    target_amount_cents: int
    saved_amount_cents: int
    target_date: Optional[date]
    created_at: datetime
    updated_at: datetime


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: Optional[str]
    picture_url: Optional[str]
    profile_picture_url: Optional[str]
    provider: Optional[str]
    email_verified: bool
    is_admin: bool
    household_members: Optional[int]
    monthly_income_cents: Optional[int]
    has_debt: Optional[bool]
    debt_amount_cents: Optional[int]
    savings_goal: Optional[str]
    budgeting_experience: Optional[str]
    financial_goals: list[str]
    primary_expenses: list[str]
    onboarding_completed: bool
    created_at: datetime
    updated_at: datetime


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    expense_id: Optional[int]
    amount_cents: int
    currency: str
    status: PaymentStatus
    razorpay_order_id: str
    razorpay_payment_id: Optional[str]
    method: Optional[str]
    notes: dict[str, object]
    created_at: datetime
    verified_at: Optional[datetime]
    updated_at: datetime
