import pytest

from models import IncomeSubcategory
from schemas import IncomeCategoryIn, IncomeSubcategoryIn
from services import ConflictError, IncomeCategoryService, NotFoundError


def test_duplicate_income_category_is_a_conflict(session) -> None:
    service = IncomeCategoryService(session)
    service.create(IncomeCategoryIn(name="Salary"))

    with pytest.raises(ConflictError, match="Income category with this name already exists"):
        service.create(IncomeCategoryIn(name="Salary"))


def test_subcategory_name_unique_per_category(session) -> None:
    service = IncomeCategoryService(session)
    salary = service.create(IncomeCategoryIn(name="Salary"))
    business = service.create(IncomeCategoryIn(name="Business"))

    service.create_subcategory(
        IncomeSubcategoryIn(category_id=salary.id, name="Bonus", is_recurring=False)
    )
    with pytest.raises(ConflictError):
        service.create_subcategory(
            IncomeSubcategoryIn(category_id=salary.id, name="Bonus", is_recurring=True)
        )
    other = service.create_subcategory(
        IncomeSubcategoryIn(category_id=business.id, name="Bonus", is_recurring=False)
    )

    assert other.category.name == "Business"


def test_subcategory_for_missing_category_is_not_found(session) -> None:
    with pytest.raises(NotFoundError, match="Income category not found"):
        IncomeCategoryService(session).create_subcategory(
            IncomeSubcategoryIn(category_id=42, name="Tips", is_recurring=False)
        )


def test_deleting_income_category_cascades_to_subcategories(session) -> None:
    service = IncomeCategoryService(session)
    rent = service.create(IncomeCategoryIn(name="Rental Income"))
    service.create_subcategory(
        IncomeSubcategoryIn(category_id=rent.id, name="Property Rent", is_recurring=True)
    )

    service.delete(rent.id)
    session.expire_all()

    assert session.query(IncomeSubcategory).count() == 0


def test_subcategories_sorted_by_name(session) -> None:
    service = IncomeCategoryService(session)
    invest = service.create(IncomeCategoryIn(name="Investments"))
    for name in ("Interest", "Capital Gains", "Dividends"):
        service.create_subcategory(
            IncomeSubcategoryIn(category_id=invest.id, name=name, is_recurring=False)
        )

    assert [s.name for s in service.subcategories(invest.id)] == [
        "Capital Gains",
        "Dividends",
        "Interest",
    ]


def test_update_subcategory_can_move_between_categories(session) -> None:
    service = IncomeCategoryService(session)
    sales = service.create(IncomeCategoryIn(name="Sales"))
    other = service.create(IncomeCategoryIn(name="Other"))
    sub = service.create_subcategory(
        IncomeSubcategoryIn(category_id=sales.id, name="Refund", is_recurring=False)
    )

    moved = service.update_subcategory(
        sub.id, IncomeSubcategoryIn(category_id=other.id, name="Refund", is_recurring=False)
    )

    assert moved.category_id == other.id
    assert service.subcategories(sales.id) == []
