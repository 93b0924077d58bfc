import pytest

from receipt_ai import (
    ReceiptAnalyzer,
    match_category,
    parse_json_reply,
    validate_income_data,
    validate_receipt_data,
)
from schemas import ExpenseCategoryIn, IncomeCategoryIn
from services import ExpenseCategoryService, IncomeCategoryService, UpstreamError

NAMES = ["Food & Dining", "Transportation", "Shopping", "Healthcare"]


class FakeChat:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.prompts = []

    def complete(self, system: str, prompt: str, max_tokens: int = 500) -> str:
        self.prompts.append(prompt)
        return self.reply


def test_match_category_exact_and_fuzzy() -> None:
    assert match_category("shopping", NAMES) == "Shopping"
    assert match_category("Shoping", NAMES) == "Shopping"
    assert match_category("Groceries", NAMES) is None
    assert match_category(None, NAMES) is None


def test_match_category_ambiguous_fuzzy_is_rejected() -> None:
    assert match_category("Cat", ["Bat", "Hat"]) is None


def test_receipt_validation_drops_bad_fields() -> None:
    cleaned = validate_receipt_data(
        {
            "amount": -20,
            "date": "14/03/2025",
            "category": "Electronics",
            "paymentMethod": "crypto",
            "description": "x" * 150,
            "confidence": 3,
        },
        NAMES,
    )

    assert cleaned == {
        "amount": None,
        "date": None,
        "category": None,
        "paymentMethod": None,
        "description": "x" * 100,
        "confidence": 1,
    }


def test_receipt_validation_keeps_good_fields() -> None:
    cleaned = validate_receipt_data(
        {
            "amount": 1249.5,
            "date": "2025-03-14",
            "category": "food & dining",
            "paymentMethod": "UPI",
            "description": "  Cafe Coffee Day ",
            "confidence": 0.82,
        },
        NAMES,
    )

    assert cleaned["amount"] == 1249.5
    assert cleaned["date"] == "2025-03-14"
    assert cleaned["category"] == "Food & Dining"
    assert cleaned["paymentMethod"] == "upi"
    assert cleaned["description"] == "Cafe Coffee Day"
    assert cleaned["confidence"] == 0.82


def test_income_validation_accepts_bank_transfer() -> None:
    cleaned = validate_income_data(
        {"paymentMethod": "bank_transfer", "subcategory": " Consulting ", "amount": True},
        ["Freelance"],
    )

    assert cleaned["paymentMethod"] == "bank_transfer"
    assert cleaned["subcategory"] == "Consulting"
    assert cleaned["amount"] is None


def test_parse_json_reply_strips_code_fence() -> None:
    assert parse_json_reply('```json\n{"amount": 10}\n```') == {"amount": 10}
    with pytest.raises(UpstreamError):
        parse_json_reply("not json")
    with pytest.raises(UpstreamError):
        parse_json_reply("[1, 2]")


def test_analyze_receipt_offers_active_categories(session) -> None:
    ExpenseCategoryService(session).create(ExpenseCategoryIn(category="Transportation", icon="🚗"))
    chat = FakeChat('{"amount": 320, "category": "Transportaton", "confidence": 0.7}')

    result = ReceiptAnalyzer(session, chat).analyze_receipt("UBER TRIP TOTAL 320")

    assert result["category"] == "Transportation"
    assert result["amount"] == 320
    assert "🚗 Transportation" in chat.prompts[0]


def test_analyze_category_requires_offered_name(session) -> None:
    ok = ReceiptAnalyzer(session, FakeChat('"healthcare"'))
    assert ok.analyze_category("Apollo Pharmacy", NAMES) == {
        "category": "Healthcare",
        "confidence": 0.9,
    }

    bad = ReceiptAnalyzer(session, FakeChat("Medicine"))
    with pytest.raises(UpstreamError, match="invalid category"):
        bad.analyze_category("Apollo Pharmacy", NAMES)


def test_analyze_income_document_uses_income_categories(session) -> None:
    IncomeCategoryService(session).create(IncomeCategoryIn(name="Salary"))
    chat = FakeChat(
        '{"amount": 85000, "category": "salary", "subcategory": "Monthly Salary",'
        ' "paymentMethod": "bank_transfer", "confidence": 0.95}'
    )

    result = ReceiptAnalyzer(session, chat).analyze_income_document("PAYSLIP NET PAY 85000")

    assert result["category"] == "Salary"
    assert result["subcategory"] == "Monthly Salary"
    assert "Salary" in chat.prompts[0]
