from __future__ import annotations

import json
import logging
import re
from typing import Iterable, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from rapidfuzz.distance import Levenshtein
from sqlalchemy.orm import Session

from config import get_settings
from services import ExpenseCategoryService, IncomeCategoryService, UpstreamError

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
RECEIPT_PAYMENT_METHODS = ("upi", "card", "cash", "net_banking")
INCOME_PAYMENT_METHODS = ("upi", "card", "cash", "bank_transfer")
DESCRIPTION_LIMIT = 100

RECEIPT_SYSTEM_PROMPT = (
    "You are an expert at analyzing receipt text and extracting structured expense "
    "data. Always prioritize TOTAL amounts over subtotals, taxes, or service charges. "
    "Choose the category from the merchant name and the items purchased together. "
    "If no explicit total is found, add subtotal and tax. Respond with valid JSON only."
)
CATEGORY_SYSTEM_PROMPT = (
    "You are an expert at analyzing receipt text and selecting the correct expense "
    "category. Return ONLY the exact category name from the available options."
)
INCOME_SYSTEM_PROMPT = (
    "You are an expert at analyzing income document text and extracting structured "
    "income data. Prioritize total amounts over partial amounts and match the income "
    "source to a category. Respond with valid JSON only."
)


def receipt_prompt(text: str, category_options: str) -> str:
    return f"""Analyze this receipt text and extract the expense information.

Receipt Text:
"{text}"

Available Expense Categories: {category_options}

Respond with a JSON object:
{{
  "amount": number (the TOTAL amount paid; prefer "Total", "Grand Total", "Amount to Pay" or "Net Amount" over "Subtotal"; null if not found),
  "date": "YYYY-MM-DD" (transaction date, null if not found),
  "category": "category_name" (one of the available categories, null if uncertain),
  "paymentMethod": "upi|card|cash|net_banking" (null if not clear),
  "description": "string" (merchant name or short description, max 100 chars, null if not found),
  "confidence": number (0-1 confidence for the extraction)
}}

Look for amounts next to ₹, Rs or INR. Dates may appear as DD-MM-YYYY or DD/MM/YYYY.
Be conservative and return null for uncertain fields. Return valid JSON only."""


def category_prompt(text: str, categories: Iterable[str]) -> str:
    return f"""Select the most appropriate expense category for this receipt.

Receipt Text:
"{text}"

Available Categories: {", ".join(categories)}

Analyze the merchant name and the items purchased together.
Return ONLY the exact category name from the available options, nothing else."""


def income_prompt(text: str, category_options: str) -> str:
    return f"""Analyze this income document text and extract the income information.

Document Text:
"{text}"

Available Income Categories: {category_options}

Respond with a JSON object:
{{
  "amount": number (the income amount; prefer "Total", "Amount", "Salary" or "Payment"; null if not found),
  "date": "YYYY-MM-DD" (income date, null if not found),
  "category": "category_name" (one of the available categories, null if uncertain),
  "subcategory": "subcategory_name" (income type such as "Monthly Salary" or "Consulting", null if uncertain),
  "paymentMethod": "upi|card|cash|bank_transfer" (null if not clear),
  "description": "string" (source name or short description, max 100 chars, null if not found),
  "confidence": number (0-1 confidence for the extraction)
}}

Be conservative and return null for uncertain fields. Return valid JSON only."""


def match_category(raw: object, names: list[str]) -> Optional[str]:
    """Resolve a model-suggested category to a known name.

    Case-insensitive exact matches win; otherwise a single known name within one
    edit is accepted. Ties and anything further away resolve to None.
    """
    if not isinstance(raw, str) or not raw.strip() or not names:
        return None
    wanted = raw.strip().lower()
    for name in names:
        if name.lower() == wanted:
            return name

    best_distance: Optional[int] = None
    best: list[str] = []
    for name in names:
        dist = int(Levenshtein.distance(wanted, name.strip().lower()))
        if best_distance is None or dist < best_distance:
            best_distance = dist
            best = [name]
        elif dist == best_distance:
            best.append(name)
    if best_distance is not None and best_distance <= 1 and len(best) == 1:
        return best[0]
    return None


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _clean_common(
    data: dict, names: list[str], payment_methods: tuple[str, ...]
) -> dict[str, object]:
    cleaned: dict[str, object] = {
        "amount": None,
        "date": None,
        "category": None,
        "paymentMethod": None,
        "description": None,
        "confidence": 0,
    }

    amount = data.get("amount")
    if _is_number(amount) and amount > 0:
        cleaned["amount"] = amount

    raw_date = data.get("date")
    if isinstance(raw_date, str) and DATE_PATTERN.match(raw_date):
        cleaned["date"] = raw_date

    cleaned["category"] = match_category(data.get("category"), names)

    method = data.get("paymentMethod")
    if isinstance(method, str) and method.lower() in payment_methods:
        cleaned["paymentMethod"] = method.lower()

    description = data.get("description")
    if isinstance(description, str) and description.strip():
        cleaned["description"] = description.strip()[:DESCRIPTION_LIMIT]

    confidence = data.get("confidence")
    if _is_number(confidence):
        cleaned["confidence"] = max(0, min(1, confidence))
    return cleaned


def validate_receipt_data(data: dict, names: list[str]) -> dict[str, object]:
    return _clean_common(data, names, RECEIPT_PAYMENT_METHODS)


def validate_income_data(data: dict, names: list[str]) -> dict[str, object]:
    cleaned = _clean_common(data, names, INCOME_PAYMENT_METHODS)
    subcategory = data.get("subcategory")
    cleaned["subcategory"] = (
        subcategory.strip()
        if isinstance(subcategory, str) and subcategory.strip()
        else None
    )
    return cleaned


def parse_json_reply(reply: str) -> dict:
    text = reply.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise UpstreamError("Invalid response format from AI") from exc
    if not isinstance(data, dict):
        raise UpstreamError("Invalid response format from AI")
    return data


class OpenAIChatClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.upstream_timeout_secs

    def complete(self, system: str, prompt: str, max_tokens: int = 500) -> str:
        if not self.api_key:
            raise UpstreamError("OpenAI is not configured")
        body = json.dumps(
            {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                "temperature": 0.1,
                "max_tokens": max_tokens,
            }
        ).encode("utf-8")
        req = Request(
            OPENAI_CHAT_URL,
            data=body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            raise UpstreamError(f"OpenAI responded with HTTP {exc.code}") from exc
        except (URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise UpstreamError("Failed to reach OpenAI") from exc

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("Unexpected OpenAI response") from exc
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError("No response from AI")
        return content.strip()


class ReceiptAnalyzer:
    def __init__(self, session: Session, client: Optional[OpenAIChatClient] = None) -> None:
        self.session = session
        self.client = client or OpenAIChatClient()

    def analyze_receipt(self, text: str) -> dict[str, object]:
        categories = ExpenseCategoryService(self.session).list_active()
        names = [c.category for c in categories]
        options = (
            ", ".join(f"{c.icon or ''} {c.category}".strip() for c in categories)
            or "Food, Transportation, Shopping, Bills & Utilities, Healthcare, "
            "Entertainment, Education, Travel"
        )
        reply = self.client.complete(RECEIPT_SYSTEM_PROMPT, receipt_prompt(text, options))
        result = validate_receipt_data(parse_json_reply(reply), names)
        logger.info(
            f"receipt_analyzed: category={result['category']} "
            f"confidence={result['confidence']}"
        )
        return result

    def analyze_category(self, text: str, categories: list[str]) -> dict[str, object]:
        reply = self.client.complete(
            CATEGORY_SYSTEM_PROMPT, category_prompt(text, categories), max_tokens=50
        )
        wanted = reply.strip().strip('"').lower()
        for name in categories:
            if name.lower() == wanted:
                return {"category": name, "confidence": 0.9}
        logger.warning(f"category_analysis_rejected: reply={reply!r}")
        raise UpstreamError(f"AI selected invalid category: {reply}")

    def analyze_income_document(self, text: str) -> dict[str, object]:
        categories = IncomeCategoryService(self.session).list_all()
        names = [c.name for c in categories]
        options = (
            ", ".join(names)
            or "Salary, Freelance, Business, Investments, Rental Income, Sales, Bonus, Other"
        )
        reply = self.client.complete(INCOME_SYSTEM_PROMPT, income_prompt(text, options))
        result = validate_income_data(parse_json_reply(reply), names)
        logger.info(
            f"income_document_analyzed: category={result['category']} "
            f"confidence={result['confidence']}"
        )
        return result
