import pytest
from sqlalchemy import func, select

from models import DEFAULT_CATEGORY_ICON, ExpenseCategory, IncomeCategory
from schemas import CategoryTypeIn, ExpenseCategoryIn, IncomeCategoryIn
from services import (
    CategoryTypeService,
    ConflictError,
    ExpenseCategoryService,
    IncomeCategoryService,
    NotFoundError,
)


def test_create_category_type_seeds_expense_and_income_categories(session) -> None:
    created = CategoryTypeService(session).create(
        CategoryTypeIn(type_name="Expense", description="Spending")
    )

    expense = session.scalar(
        select(ExpenseCategory).where(ExpenseCategory.category == "Expense")
    )
    income = session.scalar(select(IncomeCategory).where(IncomeCategory.name == "Expense"))
    assert expense is not None
    assert expense.category_type_id == created.id
    assert expense.icon == DEFAULT_CATEGORY_ICON
    assert expense.is_active
    assert income is not None
    assert income.category_type_id == created.id


def test_duplicate_category_type_name_is_a_conflict(session) -> None:
    service = CategoryTypeService(session)
    service.create(CategoryTypeIn(type_name="Savings"))

    with pytest.raises(ConflictError, match="already exists"):
        service.create(CategoryTypeIn(type_name="Savings"))

    # Names are compared case-sensitively.
    assert service.create(CategoryTypeIn(type_name="savings")).type_name == "savings"


def test_seeding_skips_names_that_already_exist(session) -> None:
    ExpenseCategoryService(session).create(ExpenseCategoryIn(category="Travel"))
    IncomeCategoryService(session).create(IncomeCategoryIn(name="Travel"))

    created = CategoryTypeService(session).create(CategoryTypeIn(type_name="Travel"))

    assert created.id is not None
    expense_count = session.scalar(
        select(func.count(ExpenseCategory.id)).where(ExpenseCategory.category == "Travel")
    )
    income_count = session.scalar(
        select(func.count(IncomeCategory.id)).where(IncomeCategory.name == "Travel")
    )
    assert expense_count == 1
    assert income_count == 1


def test_delete_category_type_in_use_is_rejected(session) -> None:
    service = CategoryTypeService(session)
    created = service.create(CategoryTypeIn(type_name="Investment"))

    with pytest.raises(ConflictError) as excinfo:
        service.delete(created.id)
    assert str(excinfo.value) == (
        "Cannot delete category type that is being used by expense categories"
    )


def test_delete_category_type_blocked_by_income_category(session) -> None:
    service = CategoryTypeService(session)
    created = service.create(CategoryTypeIn(type_name="Rewards"))
    seeded = session.scalar(
        select(ExpenseCategory).where(ExpenseCategory.category == "Rewards")
    )
    session.delete(seeded)
    session.commit()

    with pytest.raises(ConflictError) as excinfo:
        service.delete(created.id)
    assert str(excinfo.value) == (
        "Cannot delete category type that is being used by income categories"
    )


def test_delete_unreferenced_category_type(session) -> None:
    service = CategoryTypeService(session)
    created = service.create(CategoryTypeIn(type_name="Misc"))
    for row in session.scalars(select(ExpenseCategory)).all():
        session.delete(row)
    for row in session.scalars(select(IncomeCategory)).all():
        session.delete(row)
    session.commit()

    service.delete(created.id)

    with pytest.raises(NotFoundError):
        service.get(created.id)


def test_update_category_type_rejects_existing_name(session) -> None:
    service = CategoryTypeService(session)
    first = service.create(CategoryTypeIn(type_name="Alpha"))
    service.create(CategoryTypeIn(type_name="Beta"))

    with pytest.raises(ConflictError):
        service.update(first.id, CategoryTypeIn(type_name="Beta"))

    renamed = service.update(first.id, CategoryTypeIn(type_name="Gamma", description="g"))
    assert renamed.type_name == "Gamma"
    assert renamed.description == "g"


def test_categories_with_types_lists_both_tables(session) -> None:
    CategoryTypeService(session).create(CategoryTypeIn(type_name="Income"))

    rows = CategoryTypeService(session).categories_with_types()

    tables = {(row.category_table, row.name, row.type_name) for row in rows}
    assert ("expense_categories", "Income", "Income") in tables
    assert ("income_categories", "Income", "Income") in tables


def test_type_name_and_description_length_boundaries() -> None:
    assert CategoryTypeIn(type_name="a" * 50).type_name == "a" * 50
    assert CategoryTypeIn(type_name="Misc", description="d" * 200).description == "d" * 200

    with pytest.raises(ValueError, match="Type name must be 50 characters or less"):
        CategoryTypeIn(type_name="a" * 51)
    with pytest.raises(ValueError, match="Description must be 200 characters or less"):
        CategoryTypeIn(type_name="Misc", description="d" * 201)
