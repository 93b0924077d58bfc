import pytest

from models import RecurrenceFrequency
from schemas import ExpenseCategoryIn, ExpenseSubcategoryIn
from services import ConflictError, ExpenseCategoryService, NotFoundError


def test_soft_deleted_category_is_hidden_and_name_reusable(session) -> None:
    service = ExpenseCategoryService(session)
    food = service.create(ExpenseCategoryIn(category="Food", icon="🍽️"))

    service.deactivate(food.id)

    assert [c.category for c in service.list_active()] == []
    with pytest.raises(NotFoundError):
        service.get_active(food.id)
    replacement = service.create(ExpenseCategoryIn(category="Food"))
    assert replacement.id != food.id


def test_duplicate_active_category_name_is_a_conflict(session) -> None:
    service = ExpenseCategoryService(session)
    service.create(ExpenseCategoryIn(category="Housing"))

    with pytest.raises(ConflictError, match="already exists"):
        service.create(ExpenseCategoryIn(category="Housing"))


def test_unknown_category_type_is_rejected(session) -> None:
    with pytest.raises(NotFoundError, match="Category type not found"):
        ExpenseCategoryService(session).create(
            ExpenseCategoryIn(category="Pets", category_type_id=99)
        )


def test_subcategories_keep_insertion_order(session) -> None:
    service = ExpenseCategoryService(session)
    bills = service.create(ExpenseCategoryIn(category="Utilities"))

    for name in ("Water Bill", "Electricity Bill", "Gas Bill"):
        service.add_subcategory(bills.id, ExpenseSubcategoryIn(name=name))

    assert [s.name for s in service.subcategories(bills.id)] == [
        "Water Bill",
        "Electricity Bill",
        "Gas Bill",
    ]


def test_duplicate_subcategory_only_conflicts_within_a_category(session) -> None:
    service = ExpenseCategoryService(session)
    first = service.create(ExpenseCategoryIn(category="Food"))
    second = service.create(ExpenseCategoryIn(category="Travel"))
    service.add_subcategory(first.id, ExpenseSubcategoryIn(name="Snacks"))

    with pytest.raises(ConflictError) as excinfo:
        service.add_subcategory(first.id, ExpenseSubcategoryIn(name="Snacks"))
    assert str(excinfo.value) == "Subcategory with this name already exists in this category"

    rows = service.add_subcategory(second.id, ExpenseSubcategoryIn(name="Snacks"))
    assert [s.name for s in rows] == ["Snacks"]


def test_update_and_delete_subcategory_by_name(session) -> None:
    service = ExpenseCategoryService(session)
    media = service.create(ExpenseCategoryIn(category="Entertainment"))
    service.add_subcategory(media.id, ExpenseSubcategoryIn(name="Movies"))
    service.add_subcategory(media.id, ExpenseSubcategoryIn(name="Music"))

    rows = service.update_subcategory(
        media.id,
        "Music",
        ExpenseSubcategoryIn(name="Streaming", is_recurring=True, frequency="monthly"),
    )
    assert [s.name for s in rows] == ["Movies", "Streaming"]
    assert rows[1].is_recurring
    assert rows[1].frequency == RecurrenceFrequency.monthly

    with pytest.raises(ConflictError):
        service.update_subcategory(media.id, "Movies", ExpenseSubcategoryIn(name="Streaming"))

    rows = service.delete_subcategory(media.id, "Movies")
    assert [s.name for s in rows] == ["Streaming"]
    with pytest.raises(NotFoundError, match="Subcategory not found"):
        service.delete_subcategory(media.id, "Movies")


def test_subcategories_by_name_returns_empty_for_unknown(session) -> None:
    service = ExpenseCategoryService(session)
    shop = service.create(ExpenseCategoryIn(category="Shopping"))
    service.add_subcategory(shop.id, ExpenseSubcategoryIn(name="Gifts"))

    assert [s.name for s in service.subcategories_by_name("Shopping")] == ["Gifts"]
    assert service.subcategories_by_name("Nope") == []


def test_frequency_dropped_for_non_recurring_subcategory() -> None:
    data = ExpenseSubcategoryIn(name="Fuel", is_recurring=False, frequency="weekly")

    assert data.frequency is None
