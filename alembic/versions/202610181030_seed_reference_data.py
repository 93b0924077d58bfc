"""seed category types, expense categories and income categories

Revision ID: 202610181030
Revises: 202610181000
Create Date: 2026-10-18 10:30:00.000000

"""

from __future__ import annotations

from datetime import datetime, timezone

from alembic import op
import sqlalchemy as sa


revision = "202610181030"
down_revision = "202610181000"
branch_labels = None
depends_on = None


CATEGORY_TYPES = [
    ("Expense", "Categories for tracking expenses and spending"),
    ("Income", "Categories for tracking income and earnings"),
    ("Investment", "Categories for tracking investments and returns"),
    ("Savings", "Categories for tracking savings and deposits"),
]

# (name, icon, recurring frequency or None)
EXPENSE_CATEGORIES = [
    ("Utilities", "⚡", [
        ("Electricity Bill", "💡", "monthly"),
        ("Water Bill", "💧", "monthly"),
        ("Gas Bill", "🔥", "monthly"),
        ("Internet/Broadband", "🌐", "monthly"),
        ("Landline Phone", "📞", "monthly"),
        ("Mobile Recharge", "📱", "monthly"),
        ("Cable TV", "📺", "monthly"),
        ("Other Utilities", "⚙️", None),
    ]),
    ("Housing", "🏠", [
        ("Rent/Mortgage", "🏡", "monthly"),
        ("Home Insurance", "🛡️", "yearly"),
        ("Property Tax", "📋", "yearly"),
        ("Maintenance", "🔧", None),
        ("Repairs", "🛠️", None),
        ("Cleaning Services", "🧹", None),
        ("Security Services", "🔒", "monthly"),
    ]),
    ("Financial", "💰", [
        ("Loan Payment", "🏦", "monthly"),
        ("EMI", "📊", "monthly"),
        ("LIC Premium", "🛡️", "yearly"),
        ("Investment", "📈", None),
        ("SIP", "💹", "monthly"),
        ("Credit Card Payment", "💳", None),
    ]),
    ("Food & Dining", "🍽️", [
        ("Groceries", "🛒", None),
        ("Restaurants", "🍴", None),
        ("Takeaway", "🥡", None),
        ("Coffee/Tea", "☕", None),
        ("Snacks", "🍿", None),
    ]),
    ("Transportation", "🚗", [
        ("Fuel", "⛽", None),
        ("Public Transport", "🚌", None),
        ("Taxi/Uber", "🚕", None),
        ("Parking", "🅿️", None),
        ("Toll", "🛣️", None),
        ("Vehicle Maintenance", "🔧", None),
    ]),
    ("Healthcare", "🏥", [
        ("Doctor Visit", "👨‍⚕️", None),
        ("Medicine", "💊", None),
        ("Health Insurance", "🏥", "yearly"),
        ("Dental", "🦷", None),
        ("Optical", "👓", None),
    ]),
    ("Education", "📚", [
        ("School Fees", "🏫", "monthly"),
        ("Books", "📖", None),
        ("Tuition", "👨‍🏫", None),
        ("Course Fees", "🎓", None),
        ("Stationery", "✏️", None),
    ]),
    ("Entertainment", "🎬", [
        ("Movies", "🎬", None),
        ("Streaming Services", "📺", "monthly"),
        ("Gaming", "🎮", None),
        ("Hobbies", "🎨", None),
        ("Sports", "⚽", None),
    ]),
    ("Shopping", "🛍️", [
        ("Clothing", "👕", None),
        ("Electronics", "📱", None),
        ("Home Decor", "🏠", None),
        ("Personal Care", "🧴", None),
        ("Gifts", "🎁", None),
        ("Online Shopping", "📦", None),
    ]),
    ("Miscellaneous", "📋", [
        ("Donations", "❤️", None),
        ("Pet Expenses", "🐕", None),
        ("Emergency Fund", "🚨", None),
        ("Other", "📝", None),
    ]),
]

# (name, [(subcategory, is_recurring)])
INCOME_CATEGORIES = [
    ("Salary", [("Basic Salary", True), ("Bonus", False), ("Overtime", False)]),
    ("Investments", [("Dividends", True), ("Interest", True), ("Capital Gains", False)]),
    ("Sales", [("Product Sales", False), ("Service Sales", False)]),
    ("Agricultural", [("Crop Sales", False), ("Livestock Sales", False)]),
    ("Business", [("Revenue", False), ("Commission", False)]),
    ("Freelance", [("Project Payment", False), ("Consulting", False)]),
    ("Rental Income", [("Property Rent", True), ("Equipment Rent", False)]),
    ("Other", [("Gift", False), ("Refund", False)]),
]


def upgrade() -> None:
    bind = op.get_bind()
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    meta = sa.MetaData()
    category_types = sa.Table("category_types", meta, autoload_with=bind)
    expense_categories = sa.Table("expense_categories", meta, autoload_with=bind)
    expense_subcategories = sa.Table("expense_subcategories", meta, autoload_with=bind)
    income_categories = sa.Table("income_categories", meta, autoload_with=bind)
    income_subcategories = sa.Table("income_subcategories", meta, autoload_with=bind)

    type_ids: dict[str, int] = {}
    for name, description in CATEGORY_TYPES:
        result = bind.execute(
            category_types.insert().values(
                type_name=name, description=description, created_at=now, updated_at=now
            )
        )
        type_ids[name] = result.inserted_primary_key[0]

    for name, icon, subcategories in EXPENSE_CATEGORIES:
        result = bind.execute(
            expense_categories.insert().values(
                category=name,
                icon=icon,
                category_type_id=type_ids["Expense"],
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
        category_id = result.inserted_primary_key[0]
        bind.execute(
            expense_subcategories.insert(),
            [
                {
                    "category_id": category_id,
                    "name": sub_name,
                    "icon": sub_icon,
                    "is_recurring": frequency is not None,
                    "frequency": frequency,
                    "position": position,
                    "created_at": now,
                    "updated_at": now,
                }
                for position, (sub_name, sub_icon, frequency) in enumerate(subcategories)
            ],
        )

    for name, subcategories in INCOME_CATEGORIES:
        result = bind.execute(
            income_categories.insert().values(
                name=name,
                category_type_id=type_ids["Income"],
                created_at=now,
                updated_at=now,
            )
        )
        category_id = result.inserted_primary_key[0]
        bind.execute(
            income_subcategories.insert(),
            [
                {
                    "category_id": category_id,
                    "name": sub_name,
                    "is_recurring": is_recurring,
                    "created_at": now,
                    "updated_at": now,
                }
                for sub_name, is_recurring in subcategories
            ],
        )


def downgrade() -> None:
    income_names = ", ".join(f"'{name}'" for name, _ in INCOME_CATEGORIES)
    op.execute(f"DELETE FROM income_categories WHERE name IN ({income_names})")
    expense_names = ", ".join(
        "'" + name.replace("'", "''") + "'" for name, _, _ in EXPENSE_CATEGORIES
    )
    op.execute(f"DELETE FROM expense_categories WHERE category IN ({expense_names})")
    type_names = ", ".join(f"'{name}'" for name, _ in CATEGORY_TYPES)
    op.execute(
        "DELETE FROM category_types WHERE type_name IN "
        f"({type_names}) AND id NOT IN (SELECT category_type_id FROM expense_categories "
        "WHERE category_type_id IS NOT NULL UNION SELECT category_type_id FROM "
        "income_categories WHERE category_type_id IS NOT NULL)"
    )
