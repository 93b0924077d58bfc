from __future__ import annotations

import logging
from datetime import date
from typing import Optional

import bcrypt
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, selectinload

from models import (
    DEFAULT_CATEGORY_ICON,
    Budget,
    CategoryType,
    Expense,
    ExpenseCategory,
    ExpenseSubcategory,
    Goal,
    Income,
    IncomeCategory,
    IncomeSubcategory,
    UserProfile,
    utcnow,
)
from profile_cache import ProfileCache
from schemas import (
    BudgetIn,
    CategoryTypeIn,
    CategoryWithTypeOut,
    ExpenseCategoryIn,
    ExpenseIn,
    ExpenseSubcategoryIn,
    GoalIn,
    IncomeCategoryIn,
    IncomeIn,
    IncomeSubcategoryIn,
    OnboardingIn,
    ProfileOut,
    ProfileUpdateIn,
)

logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class ConflictError(ValueError):
    pass


class SignatureMismatch(ValueError):
    pass


class AuthError(ValueError):
    pass


class PermissionDenied(ValueError):
    pass


class UpstreamError(RuntimeError):
    pass


def commit_or_conflict(session: Session, message: str) -> None:
    """Commit, reporting a unique-constraint violation as a conflict."""
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError(message) from exc


class CategoryTypeService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[CategoryType]:
        return self.session.scalars(
            select(CategoryType).order_by(CategoryType.type_name)
        ).all()

    def get(self, type_id: int) -> CategoryType:
        category_type = self.session.get(CategoryType, type_id)
        if not category_type:
            raise NotFoundError("Category type not found")
        return category_type

    def create(self, data: CategoryTypeIn) -> CategoryType:
        message = "Category type with this name already exists"
        existing = self.session.scalar(
            select(CategoryType).where(CategoryType.type_name == data.type_name)
        )
        if existing:
            raise ConflictError(message)

        category_type = CategoryType(
            type_name=data.type_name, description=data.description
        )
        self.session.add(category_type)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(message) from exc

        self._seed_defaults(category_type)
        commit_or_conflict(self.session, message)
        self.session.refresh(category_type)
        logger.info(
            f"category_type_created: id={category_type.id} name={category_type.type_name}"
        )
        return category_type

    def _seed_defaults(self, category_type: CategoryType) -> None:
        name = category_type.type_name
        active_expense = self.session.scalar(
            select(ExpenseCategory.id).where(
                ExpenseCategory.category == name, ExpenseCategory.is_active.is_(True)
            )
        )
        if active_expense:
            logger.warning(f"category_seed_skipped: table=expense_categories name={name}")
        else:
            self._seed_row(
                ExpenseCategory(
                    category=name,
                    icon=DEFAULT_CATEGORY_ICON,
                    category_type_id=category_type.id,
                ),
                "expense_categories",
            )

        income = self.session.scalar(
            select(IncomeCategory.id).where(IncomeCategory.name == name)
        )
        if income:
            logger.warning(f"category_seed_skipped: table=income_categories name={name}")
        else:
            self._seed_row(
                IncomeCategory(name=name, category_type_id=category_type.id),
                "income_categories",
            )

    def _seed_row(self, row: object, table: str) -> None:
        try:
            with self.session.begin_nested():
                self.session.add(row)
        except IntegrityError as exc:
            logger.warning(f"category_seed_failed: table={table} error={exc.orig}")

    def update(self, type_id: int, data: CategoryTypeIn) -> CategoryType:
        message = "Category type with this name already exists"
        category_type = self.get(type_id)
        clash = self.session.scalar(
            select(CategoryType.id).where(
                CategoryType.type_name == data.type_name, CategoryType.id != type_id
            )
        )
        if clash:
            raise ConflictError(message)

        category_type.type_name = data.type_name
        category_type.description = data.description
        commit_or_conflict(self.session, message)
        self.session.refresh(category_type)
        return category_type

    def delete(self, type_id: int) -> None:
        category_type = self.get(type_id)
        used_by_expenses = self.session.scalar(
            select(func.count(ExpenseCategory.id)).where(
                ExpenseCategory.category_type_id == type_id
            )
        )
        if used_by_expenses:
            raise ConflictError(
                "Cannot delete category type that is being used by expense categories"
            )
        used_by_incomes = self.session.scalar(
            select(func.count(IncomeCategory.id)).where(
                IncomeCategory.category_type_id == type_id
            )
        )
        if used_by_incomes:
            raise ConflictError(
                "Cannot delete category type that is being used by income categories"
            )

        self.session.delete(category_type)
        commit_or_conflict(self.session, "Category type is still in use")

    def categories_with_types(self) -> list[CategoryWithTypeOut]:
        rows: list[CategoryWithTypeOut] = []
        expense_stmt = (
            select(ExpenseCategory)
            .options(selectinload(ExpenseCategory.category_type))
            .where(ExpenseCategory.is_active.is_(True))
            .order_by(ExpenseCategory.category)
        )
        for category in self.session.scalars(expense_stmt):
            category_type = category.category_type
            rows.append(
                CategoryWithTypeOut(
                    category_table="expense_categories",
                    id=category.id,
                    name=category.category,
                    category_type_id=category.category_type_id,
                    type_name=category_type.type_name if category_type else None,
                    type_description=category_type.description if category_type else None,
                    created_at=category.created_at,
                )
            )
        income_stmt = (
            select(IncomeCategory)
            .options(selectinload(IncomeCategory.category_type))
            .order_by(IncomeCategory.name)
        )
        for category in self.session.scalars(income_stmt):
            category_type = category.category_type
            rows.append(
                CategoryWithTypeOut(
                    category_table="income_categories",
                    id=category.id,
                    name=category.name,
                    category_type_id=category.category_type_id,
                    type_name=category_type.type_name if category_type else None,
                    type_description=category_type.description if category_type else None,
                    created_at=category.created_at,
                )
            )
        return rows


class ExpenseCategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_active(self) -> list[ExpenseCategory]:
        stmt = (
            select(ExpenseCategory)
            .options(selectinload(ExpenseCategory.subcategories))
            .where(ExpenseCategory.is_active.is_(True))
            .order_by(ExpenseCategory.category)
        )
        return self.session.scalars(stmt).all()

    def get_active(self, category_id: int, *, lock: bool = False) -> ExpenseCategory:
        stmt = select(ExpenseCategory).where(
            ExpenseCategory.id == category_id, ExpenseCategory.is_active.is_(True)
        )
        if lock:
            stmt = stmt.with_for_update()
        category = self.session.scalar(stmt)
        if not category:
            raise NotFoundError("Expense category not found")
        return category

    def subcategories(self, category_id: int) -> list[ExpenseSubcategory]:
        return list(self.get_active(category_id).subcategories)

    def subcategories_by_name(self, name: str) -> list[ExpenseSubcategory]:
        category = self.session.scalar(
            select(ExpenseCategory).where(
                ExpenseCategory.category == name.strip(),
                ExpenseCategory.is_active.is_(True),
            )
        )
        if not category:
            return []
        return list(category.subcategories)

    def _check_type(self, type_id: Optional[int]) -> None:
        if type_id is not None and not self.session.get(CategoryType, type_id):
            raise NotFoundError("Category type not found")

    def _name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(ExpenseCategory.id).where(
            ExpenseCategory.category == name, ExpenseCategory.is_active.is_(True)
        )
        if exclude_id is not None:
            stmt = stmt.where(ExpenseCategory.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def create(self, data: ExpenseCategoryIn) -> ExpenseCategory:
        message = "Expense category with this name already exists"
        if self._name_taken(data.category):
            raise ConflictError(message)
        self._check_type(data.category_type_id)

        category = ExpenseCategory(
            category=data.category,
            icon=data.icon or DEFAULT_CATEGORY_ICON,
            category_type_id=data.category_type_id,
        )
        self.session.add(category)
        commit_or_conflict(self.session, message)
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: ExpenseCategoryIn) -> ExpenseCategory:
        message = "Expense category with this name already exists"
        category = self.get_active(category_id)
        if self._name_taken(data.category, exclude_id=category_id):
            raise ConflictError(message)
        self._check_type(data.category_type_id)

        # Recorded expenses keep the name they were created with.
        category.category = data.category
        category.icon = data.icon or category.icon or DEFAULT_CATEGORY_ICON
        category.category_type_id = data.category_type_id
        commit_or_conflict(self.session, message)
        self.session.refresh(category)
        return category

    def deactivate(self, category_id: int) -> None:
        category = self.get_active(category_id)
        category.is_active = False
        self.session.commit()
        logger.info(f"expense_category_deactivated: id={category_id}")

    def _find_subcategory(
        self, category: ExpenseCategory, name: str
    ) -> Optional[ExpenseSubcategory]:
        wanted = name.strip()
        for subcategory in category.subcategories:
            if subcategory.name == wanted:
                return subcategory
        return None

    def add_subcategory(
        self, category_id: int, data: ExpenseSubcategoryIn
    ) -> list[ExpenseSubcategory]:
        message = "Subcategory with this name already exists in this category"
        category = self.get_active(category_id, lock=True)
        if self._find_subcategory(category, data.name):
            raise ConflictError(message)

        next_position = max((s.position for s in category.subcategories), default=-1) + 1
        category.subcategories.append(
            ExpenseSubcategory(
                name=data.name,
                icon=data.icon,
                is_recurring=data.is_recurring,
                frequency=data.frequency,
                position=next_position,
            )
        )
        commit_or_conflict(self.session, message)
        self.session.refresh(category)
        return list(category.subcategories)

    def update_subcategory(
        self, category_id: int, name: str, data: ExpenseSubcategoryIn
    ) -> list[ExpenseSubcategory]:
        message = "Subcategory with this name already exists in this category"
        category = self.get_active(category_id, lock=True)
        subcategory = self._find_subcategory(category, name)
        if not subcategory:
            raise NotFoundError("Subcategory not found")
        clash = self._find_subcategory(category, data.name)
        if clash and clash.id != subcategory.id:
            raise ConflictError(message)

        subcategory.name = data.name
        subcategory.icon = data.icon
        subcategory.is_recurring = data.is_recurring
        subcategory.frequency = data.frequency
        commit_or_conflict(self.session, message)
        self.session.refresh(category)
        return list(category.subcategories)

    def delete_subcategory(self, category_id: int, name: str) -> list[ExpenseSubcategory]:
        category = self.get_active(category_id, lock=True)
        subcategory = self._find_subcategory(category, name)
        if not subcategory:
            raise NotFoundError("Subcategory not found")
        category.subcategories.remove(subcategory)
        self.session.commit()
        self.session.refresh(category)
        return list(category.subcategories)


class IncomeCategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[IncomeCategory]:
        return self.session.scalars(
            select(IncomeCategory).order_by(IncomeCategory.name)
        ).all()

    def get(self, category_id: int) -> IncomeCategory:
        category = self.session.get(IncomeCategory, category_id)
        if not category:
            raise NotFoundError("Income category not found")
        return category

    def subcategories(self, category_id: int) -> list[IncomeSubcategory]:
        self.get(category_id)
        stmt = (
            select(IncomeSubcategory)
            .options(selectinload(IncomeSubcategory.category))
            .where(IncomeSubcategory.category_id == category_id)
            .order_by(IncomeSubcategory.name)
        )
        return self.session.scalars(stmt).all()

    def _check_type(self, type_id: Optional[int]) -> None:
        if type_id is not None and not self.session.get(CategoryType, type_id):
            raise NotFoundError("Category type not found")

    def create(self, data: IncomeCategoryIn) -> IncomeCategory:
        message = "Income category with this name already exists"
        existing = self.session.scalar(
            select(IncomeCategory.id).where(IncomeCategory.name == data.name)
        )
        if existing:
            raise ConflictError(message)
        self._check_type(data.category_type_id)

        category = IncomeCategory(name=data.name, category_type_id=data.category_type_id)
        self.session.add(category)
        commit_or_conflict(self.session, message)
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: IncomeCategoryIn) -> IncomeCategory:
        message = "Income category with this name already exists"
        category = self.get(category_id)
        clash = self.session.scalar(
            select(IncomeCategory.id).where(
                IncomeCategory.name == data.name, IncomeCategory.id != category_id
            )
        )
        if clash:
            raise ConflictError(message)
        self._check_type(data.category_type_id)

        category.name = data.name
        category.category_type_id = data.category_type_id
        commit_or_conflict(self.session, message)
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        self.session.delete(category)
        self.session.commit()
        logger.info(f"income_category_deleted: id={category_id}")

    def _subcategory_taken(
        self, category_id: int, name: str, exclude_id: Optional[int] = None
    ) -> bool:
        stmt = select(IncomeSubcategory.id).where(
            IncomeSubcategory.category_id == category_id,
            IncomeSubcategory.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(IncomeSubcategory.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def get_subcategory(self, subcategory_id: int) -> IncomeSubcategory:
        subcategory = self.session.get(IncomeSubcategory, subcategory_id)
        if not subcategory:
            raise NotFoundError("Income subcategory not found")
        return subcategory

    def create_subcategory(self, data: IncomeSubcategoryIn) -> IncomeSubcategory:
        message = "Income subcategory with this name already exists for this category"
        self.get(data.category_id)
        if self._subcategory_taken(data.category_id, data.name):
            raise ConflictError(message)

        subcategory = IncomeSubcategory(
            category_id=data.category_id,
            name=data.name,
            is_recurring=data.is_recurring,
        )
        self.session.add(subcategory)
        commit_or_conflict(self.session, message)
        self.session.refresh(subcategory)
        return subcategory

    def update_subcategory(
        self, subcategory_id: int, data: IncomeSubcategoryIn
    ) -> IncomeSubcategory:
        message = "Income subcategory with this name already exists for this category"
        subcategory = self.get_subcategory(subcategory_id)
        self.get(data.category_id)
        if self._subcategory_taken(data.category_id, data.name, exclude_id=subcategory_id):
            raise ConflictError(message)

        subcategory.category_id = data.category_id
        subcategory.name = data.name
        subcategory.is_recurring = data.is_recurring
        commit_or_conflict(self.session, message)
        self.session.refresh(subcategory)
        return subcategory

    def delete_subcategory(self, subcategory_id: int) -> None:
        subcategory = self.get_subcategory(subcategory_id)
        self.session.delete(subcategory)
        self.session.commit()


class ExpenseService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> list[Expense]:
        stmt = select(Expense).where(Expense.user_id == self.user_id)
        if start:
            stmt = stmt.where(Expense.date >= start)
        if end:
            stmt = stmt.where(Expense.date <= end)
        if category_id is not None:
            stmt = stmt.where(Expense.category_id == category_id)
        stmt = stmt.order_by(Expense.date.desc(), Expense.id.desc())
        return self.session.scalars(stmt).all()

    def get(self, expense_id: int) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if not expense or expense.user_id != self.user_id:
            raise NotFoundError("Expense not found")
        return expense

    def _resolve_category(self, data: ExpenseIn) -> ExpenseCategory:
        category = ExpenseCategoryService(self.session).get_active(data.category_id)
        if data.subcategory and data.subcategory.strip() not in {
            s.name for s in category.subcategories
        }:
            raise NotFoundError("Subcategory not found")
        return category

    def _apply(self, expense: Expense, data: ExpenseIn) -> None:
        expense.amount_cents = data.amount_cents
        expense.subcategory = data.subcategory.strip() if data.subcategory else None
        expense.payment_method = data.payment_method
        expense.date = data.date
        expense.description = data.description
        expense.tags = data.tags
        expense.is_recurring = data.is_recurring
        expense.recurring_frequency = data.recurring_frequency
        expense.notes = data.notes
        expense.receipt_url = data.receipt_url

    def create(self, data: ExpenseIn) -> Expense:
        category = self._resolve_category(data)
        expense = Expense(
            user_id=self.user_id, category_id=category.id, category=category.category
        )
        self._apply(expense, data)
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def update(self, expense_id: int, data: ExpenseIn) -> Expense:
        expense = self.get(expense_id)
        # The snapshot name only changes when the expense moves to another category.
        if data.category_id != expense.category_id:
            category = self._resolve_category(data)
            expense.category_id = category.id
            expense.category = category.category
        self._apply(expense, data)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.session.delete(expense)
        self.session.commit()


class IncomeService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        category_id: Optional[int] = None,
    ) -> list[Income]:
        stmt = select(Income).where(Income.user_id == self.user_id)
        if start:
            stmt = stmt.where(Income.date >= start)
        if end:
            stmt = stmt.where(Income.date <= end)
        if category_id is not None:
            stmt = stmt.where(Income.category_id == category_id)
        stmt = stmt.order_by(Income.date.desc(), Income.id.desc())
        return self.session.scalars(stmt).all()

    def get(self, income_id: int) -> Income:
        income = self.session.get(Income, income_id)
        if not income or income.user_id != self.user_id:
            raise NotFoundError("Income not found")
        return income

    def _apply(self, income: Income, data: IncomeIn) -> None:
        categories = IncomeCategoryService(self.session)
        category = categories.get(data.category_id)
        subcategory = None
        if data.subcategory_id is not None:
            subcategory = categories.get_subcategory(data.subcategory_id)
            if subcategory.category_id != category.id:
                raise ValueError("Subcategory does not belong to this category")

        if income.category_id != category.id or not income.category:
            income.category = category.name
        income.category_id = category.id
        if subcategory is None:
            income.subcategory_id = None
            income.subcategory = None
        elif income.subcategory_id != subcategory.id:
            income.subcategory_id = subcategory.id
            income.subcategory = subcategory.name
        income.amount_cents = data.amount_cents
        income.payment_method = data.payment_method
        income.date = data.date
        income.description = data.description
        income.tags = data.tags
        income.is_recurring = data.is_recurring
        income.recurring_frequency = data.recurring_frequency
        income.notes = data.notes
        income.upi_id = data.upi_id
        income.receipt_url = data.receipt_url

    def create(self, data: IncomeIn) -> Income:
        income = Income(user_id=self.user_id)
        self._apply(income, data)
        self.session.add(income)
        self.session.commit()
        self.session.refresh(income)
        return income

    def update(self, income_id: int, data: IncomeIn) -> Income:
        income = self.get(income_id)
        self._apply(income, data)
        self.session.commit()
        self.session.refresh(income)
        return income

    def delete(self, income_id: int) -> None:
        income = self.get(income_id)
        self.session.delete(income)
        self.session.commit()


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get(self, month: int, year: int) -> Optional[Budget]:
        return self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id,
                Budget.month == month,
                Budget.year == year,
            )
        )

    def upsert(self, data: BudgetIn) -> Budget:
        budget = self.get(data.month, data.year)
        if not budget:
            budget = Budget(user_id=self.user_id, month=data.month, year=data.year)
            self.session.add(budget)
        budget.overall_monthly_cents = data.overall_monthly_cents
        budget.categories = dict(data.categories)
        commit_or_conflict(self.session, "Budget for this month already exists")
        self.session.refresh(budget)
        return budget


class GoalService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Goal]:
        return self.session.scalars(
            select(Goal)
            .where(Goal.user_id == self.user_id)
            .order_by(Goal.created_at.desc(), Goal.id.desc())
        ).all()

    def get(self, goal_id: int) -> Goal:
        goal = self.session.get(Goal, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise NotFoundError("Goal not found")
        return goal

    def create(self, data: GoalIn) -> Goal:
        goal = Goal(user_id=self.user_id, **data.model_dump())
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def update(self, goal_id: int, data: GoalIn) -> Goal:
        goal = self.get(goal_id)
        for field, value in data.model_dump().items():
            setattr(goal, field, value)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        self.session.commit()


class ProfileService:
    def __init__(
        self,
        session: Session,
        cache: ProfileCache,
        lookup_timeout_secs: Optional[float] = None,
    ) -> None:
        self.session = session
        self.cache = cache
        self.lookup_timeout_secs = lookup_timeout_secs

    def _load(self, user_id: int) -> UserProfile:
        bind = self.session.get_bind()
        if self.lookup_timeout_secs and bind.dialect.name == "postgresql":
            timeout_ms = int(self.lookup_timeout_secs * 1000)
            self.session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
        try:
            profile = self.session.get(UserProfile, user_id)
        except OperationalError as exc:
            self.session.rollback()
            logger.exception(f"profile_lookup_failed: user_id={user_id}")
            raise UpstreamError("Database query timeout") from exc
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    def get(self, user_id: int) -> ProfileOut:
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached
        profile = ProfileOut.model_validate(self._load(user_id))
        self.cache.set(user_id, profile)
        return profile

    def update(self, user_id: int, data: ProfileUpdateIn) -> ProfileOut:
        profile = self._load(user_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in {"financial_goals", "primary_expenses"} and value is None:
                value = []
            setattr(profile, field, value)
        self.session.commit()
        self.session.refresh(profile)
        self.cache.invalidate(user_id)
        return ProfileOut.model_validate(profile)

    def save_onboarding(self, user_id: int, data: OnboardingIn) -> ProfileOut:
        profile = self._load(user_id)
        for field, value in data.model_dump().items():
            setattr(profile, field, value)
        profile.onboarding_completed = True
        self.session.commit()
        self.session.refresh(profile)
        self.cache.invalidate(user_id)
        logger.info(f"onboarding_completed: user_id={user_id}")
        return ProfileOut.model_validate(profile)

    def onboarding_status(self, user_id: int) -> dict[str, object]:
        profile = self.get(user_id)
        return {
            "onboarding_completed": profile.onboarding_completed,
            "profile_exists": True,
        }


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class AccountService:
    def __init__(self, session: Session, cache: Optional[ProfileCache] = None) -> None:
        self.session = session
        self.cache = cache

    def _by_email(self, email: str) -> Optional[UserProfile]:
        return self.session.scalar(
            select(UserProfile).where(
                func.lower(UserProfile.email) == email.strip().lower()
            )
        )

    def upsert_google_profile(
        self,
        *,
        email: str,
        full_name: Optional[str],
        picture_url: Optional[str],
        google_id: Optional[str],
        email_verified: bool,
    ) -> UserProfile:
        if not email:
            raise AuthError("Google account has no email address")
        if not email_verified:
            raise AuthError("Google account email is not verified")
        profile = self._by_email(email)
        if profile and profile.google_id and google_id != profile.google_id:
            logger.warning(f"google_sign_in_rejected: user_id={profile.id} reason=google_id")
            raise AuthError("Google account does not match this profile")
        if not profile:
            profile = UserProfile(email=email.strip().lower())
            self.session.add(profile)
        profile.full_name = full_name or profile.full_name
        profile.picture_url = picture_url or profile.picture_url
        profile.google_id = google_id or profile.google_id
        profile.email_verified = email_verified or profile.email_verified
        profile.provider = "google"
        commit_or_conflict(self.session, "Profile with this email already exists")
        self.session.refresh(profile)
        if self.cache is not None:
            self.cache.invalidate(profile.id)
        logger.info(f"google_sign_in: user_id={profile.id}")
        return profile

    def login(self, email: str, password: str) -> UserProfile:
        profile = self._by_email(email)
        if not profile or not check_password(password, profile.password_hash):
            raise AuthError("Invalid email or password")
        return profile

    def set_password(self, email: str, password: str) -> UserProfile:
        profile = self._by_email(email)
        if not profile:
            raise NotFoundError("User not found")
        profile.password_hash = hash_password(password)
        profile.password_updated_at = utcnow()
        if not profile.provider:
            profile.provider = "password"
        self.session.commit()
        self.session.refresh(profile)
        if self.cache is not None:
            self.cache.invalidate(profile.id)
        logger.info(f"password_updated: user_id={profile.id}")
        return profile

    def password_info(self, email: str) -> dict[str, object]:
        profile = self._by_email(email)
        if not profile:
            raise NotFoundError("User not found")
        return {
            "email": profile.email,
            "has_password": bool(profile.password_hash),
            "password_updated_at": profile.password_updated_at,
        }
