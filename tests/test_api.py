import json

from config import get_settings
from google_auth import GoogleIdentity
from main import app, get_ai_client, get_google_client, get_razorpay_client
from models import Payment, PaymentStatus
from payments import sign


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "OK"


def test_admin_routes_require_authentication(client, make_user, auth_headers) -> None:
    response = client.post("/category-types", json={"type_name": "Expense"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Authentication required"}

    member = make_user()
    response = client.post(
        "/category-types", json={"type_name": "Expense"}, headers=auth_headers(member)
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


def test_create_category_type_seeds_categories(client, make_user, auth_headers) -> None:
    admin = make_user("admin@example.com", is_admin=True)

    response = client.post(
        "/category-types",
        json={"type_name": "Expense", "description": "Spending"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Category type created successfully"
    assert body["data"]["type_name"] == "Expense"

    expense_names = [c["category"] for c in client.get("/expense-categories").json()["data"]]
    income_names = [c["name"] for c in client.get("/income-categories").json()["data"]]
    assert expense_names == ["Expense"]
    assert income_names == ["Expense"]


def test_validation_errors_use_envelope(client, make_user, auth_headers) -> None:
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    missing = client.post("/category-types", json={}, headers=headers)
    assert missing.status_code == 400
    assert missing.json() == {
        "success": False,
        "message": "Type name is required and must be a non-empty string",
        "error": "type_name",
    }

    pattern = client.post("/category-types", json={"type_name": "Type 2"}, headers=headers)
    assert pattern.status_code == 400
    assert pattern.json()["message"] == (
        "Type name must contain only letters, spaces, hyphens, and apostrophes"
    )

    subcategory = client.post(
        "/income-subcategories",
        json={"category_id": "1", "name": "Bonus", "is_recurring": False},
        headers=headers,
    )
    assert subcategory.status_code == 400
    assert subcategory.json()["message"] == (
        "Category ID is required and must be a positive integer"
    )


def test_duplicate_income_category_returns_conflict(client, make_user, auth_headers) -> None:
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    first = client.post("/income-categories", json={"name": "Salary"}, headers=headers)
    second = client.post("/income-categories", json={"name": "Salary"}, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json() == {
        "success": False,
        "message": "Income category with this name already exists",
    }


def test_category_type_in_use_cannot_be_deleted(client, make_user, auth_headers) -> None:
    headers = auth_headers(make_user("admin@example.com", is_admin=True))
    created = client.post("/category-types", json={"type_name": "Savings"}, headers=headers)

    response = client.delete(f"/category-types/{created.json()['data']['id']}", headers=headers)

    assert response.status_code == 409
    assert "being used by expense categories" in response.json()["message"]


def test_expenses_are_private_to_their_owner(client, make_user, auth_headers) -> None:
    admin = make_user("admin@example.com", is_admin=True)
    other = make_user("other@example.com")
    category = client.post(
        "/expense-categories", json={"category": "Food"}, headers=auth_headers(admin)
    ).json()["data"]

    created = client.post(
        "/expenses",
        json={
            "amount_cents": 25000,
            "category_id": category["id"],
            "payment_method": "UPI",
            "date": "2025-03-14",
            "tags": ["Dining"],
        },
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    expense = created.json()["data"]
    assert expense["category"] == "Food"

    response = client.get(f"/expenses/{expense['id']}", headers=auth_headers(other))
    assert response.status_code == 404
    assert client.get("/expenses", headers=auth_headers(other)).json()["data"] == []


def test_verify_with_tampered_signature_fails_payment(
    client, session, make_user, auth_headers
) -> None:
    user = make_user()
    payment = Payment(
        user_id=user.id, amount_cents=50000, razorpay_order_id="order_T1", notes={}
    )
    session.add(payment)
    session.commit()

    response = client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": "order_T1",
            "razorpay_payment_id": "pay_T1",
            "razorpay_signature": "tampered",
        },
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid signature"}
    session.refresh(payment)
    assert payment.status == PaymentStatus.failed


def test_verify_with_valid_signature_captures(client, session, make_user, auth_headers) -> None:
    user = make_user()
    payment = Payment(
        user_id=user.id, amount_cents=50000, razorpay_order_id="order_V1", notes={}
    )
    session.add(payment)
    session.commit()
    signature = sign(get_settings().razorpay_key_secret, b"order_V1|pay_V1")

    response = client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": "order_V1",
            "razorpay_payment_id": "pay_V1",
            "razorpay_signature": signature,
        },
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "captured"
    assert response.json()["data"]["verified_at"] is not None


def test_verify_requires_all_fields(client, make_user, auth_headers) -> None:
    response = client.post(
        "/payments/verify",
        json={"razorpay_order_id": "order_1"},
        headers=auth_headers(make_user()),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required fields"


def test_webhook_captures_payment(client, session, make_user) -> None:
    user = make_user()
    payment = Payment(
        user_id=user.id, amount_cents=1000, razorpay_order_id="order_W1", notes={}
    )
    session.add(payment)
    session.commit()
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"id": "pay_W1", "order_id": "order_W1"}}},
        }
    ).encode("utf-8")
    signature = sign(get_settings().razorpay_webhook_secret, body)

    first = client.post(
        "/payments/webhook",
        content=body,
        headers={"X-Razorpay-Signature": signature, "Content-Type": "application/json"},
    )
    replay = client.post(
        "/payments/webhook",
        content=body,
        headers={"X-Razorpay-Signature": signature, "Content-Type": "application/json"},
    )

    assert first.json()["data"] == {"processed": True}
    assert replay.json()["data"] == {"processed": False}
    session.refresh(payment)
    assert payment.status == PaymentStatus.captured


class CannedChat:
    def complete(self, system: str, prompt: str, max_tokens: int = 500) -> str:
        return '{"amount": 540, "date": "2025-03-14", "paymentMethod": "card", "confidence": 0.8}'


def test_analyze_receipt_route(client, make_user, auth_headers) -> None:
    app.dependency_overrides[get_ai_client] = lambda: CannedChat()

    response = client.post(
        "/ocr/analyze-receipt",
        json={"extractedText": "TOTAL 540.00"},
        headers=auth_headers(make_user()),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["amount"] == 540
    assert data["paymentMethod"] == "card"
    assert data["category"] is None


def test_analyze_receipt_requires_text(client, make_user, auth_headers) -> None:
    response = client.post(
        "/ocr/analyze-receipt", json={}, headers=auth_headers(make_user())
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required field: extractedText"


def test_profile_onboarding_flow(client, make_user, auth_headers) -> None:
    headers = auth_headers(make_user())

    status = client.get("/profile/onboarding-status", headers=headers).json()["data"]
    assert status == {"onboarding_completed": False, "profile_exists": True}

    saved = client.post(
        "/profile/onboarding",
        json={"household_members": 4, "financial_goals": ["Retire early"]},
        headers=headers,
    )
    assert saved.status_code == 200

    profile = client.get("/profile", headers=headers).json()["data"]
    assert profile["onboarding_completed"] is True
    assert profile["household_members"] == 4


def test_verify_with_non_ascii_signature_fails_payment(
    client, session, make_user, auth_headers
) -> None:
    user = make_user()
    payment = Payment(
        user_id=user.id, amount_cents=50000, razorpay_order_id="order_U1", notes={}
    )
    session.add(payment)
    session.commit()

    response = client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": "order_U1",
            "razorpay_payment_id": "pay_U1",
            "razorpay_signature": "tamperé",
        },
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid signature"}
    session.refresh(payment)
    assert payment.status == PaymentStatus.failed


def test_verify_rejects_overlong_signature(client, make_user, auth_headers) -> None:
    response = client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": "order_L1",
            "razorpay_payment_id": "pay_L1",
            "razorpay_signature": "f" * 129,
        },
        headers=auth_headers(make_user()),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "razorpay_signature"


def test_verify_on_captured_payment(client, session, make_user, auth_headers) -> None:
    user = make_user()
    payment = Payment(
        user_id=user.id, amount_cents=50000, razorpay_order_id="order_C1", notes={}
    )
    session.add(payment)
    session.commit()
    signature = sign(get_settings().razorpay_key_secret, b"order_C1|pay_C1")
    body = {
        "razorpay_order_id": "order_C1",
        "razorpay_payment_id": "pay_C1",
        "razorpay_signature": signature,
    }
    first = client.post("/payments/verify", json=body, headers=auth_headers(user))

    again = client.post("/payments/verify", json=body, headers=auth_headers(user))
    tampered = client.post(
        "/payments/verify",
        json={**body, "razorpay_signature": "0" * 64},
        headers=auth_headers(user),
    )

    assert first.status_code == 200
    assert again.status_code == 200
    assert again.json()["data"]["verified_at"] == first.json()["data"]["verified_at"]
    assert tampered.status_code == 400
    session.refresh(payment)
    assert payment.status == PaymentStatus.captured


def _signed_webhook(client, body: bytes):
    signature = sign(get_settings().razorpay_webhook_secret, body)
    return client.post(
        "/payments/webhook",
        content=body,
        headers={"X-Razorpay-Signature": signature, "Content-Type": "application/json"},
    )


def test_webhook_for_unknown_order_is_not_processed(client) -> None:
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"id": "pay_X", "order_id": "order_X"}}},
        }
    ).encode("utf-8")

    response = _signed_webhook(client, body)

    assert response.status_code == 200
    assert response.json()["data"] == {"processed": False}


def test_webhook_with_non_object_body_is_rejected(client) -> None:
    response = _signed_webhook(client, b"[1, 2]")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_create_order_for_foreign_expense_is_not_found(
    client, session, make_user, auth_headers
) -> None:
    admin = make_user("admin@example.com", is_admin=True)
    other = make_user("other@example.com")
    category = client.post(
        "/expense-categories", json={"category": "Food"}, headers=auth_headers(admin)
    ).json()["data"]
    expense = client.post(
        "/expenses",
        json={
            "amount_cents": 25000,
            "category_id": category["id"],
            "payment_method": "Card",
            "date": "2025-03-14",
        },
        headers=auth_headers(admin),
    ).json()["data"]
    app.dependency_overrides[get_razorpay_client] = lambda: UnusedRazorpay()

    foreign = client.post(
        "/payments/create-order",
        json={"amount": "250.00", "expense_id": expense["id"]},
        headers=auth_headers(other),
    )
    missing = client.post(
        "/payments/create-order",
        json={"amount": "250.00", "expense_id": 999999},
        headers=auth_headers(other),
    )

    assert foreign.status_code == 404
    assert foreign.json()["message"] == "Expense not found"
    assert missing.status_code == 404


class UnusedRazorpay:
    key_id = "rzp_test"

    def create_order(self, amount_minor, currency, receipt, notes):
        raise AssertionError("no order should be created")


class FakeGoogle:
    def __init__(self, identity: GoogleIdentity) -> None:
        self.identity = identity

    def verify_id_token(self, credential: str) -> GoogleIdentity:
        return self.identity


def test_google_sign_in_requires_verified_email(client, make_user, auth_headers) -> None:
    admin = make_user("boss@corp.example", is_admin=True)
    app.dependency_overrides[get_google_client] = lambda: FakeGoogle(
        GoogleIdentity(
            google_id="attacker",
            email="boss@corp.example",
            full_name="Not The Boss",
            picture=None,
            email_verified=False,
        )
    )

    response = client.post("/auth/google", json={"credential": "forged"})

    assert response.status_code == 401
    assert response.json()["message"] == "Google account email is not verified"
    assert "data" not in response.json()
    assert client.get("/profile", headers=auth_headers(admin)).json()["data"][
        "full_name"
    ] is None


def test_category_type_length_limits(client, make_user, auth_headers) -> None:
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    longest = client.post("/category-types", json={"type_name": "A" * 50}, headers=headers)
    too_long = client.post("/category-types", json={"type_name": "B" * 51}, headers=headers)
    long_description = client.post(
        "/category-types",
        json={"type_name": "Described", "description": "d" * 200},
        headers=headers,
    )
    too_long_description = client.post(
        "/category-types",
        json={"type_name": "Overdescribed", "description": "d" * 201},
        headers=headers,
    )

    assert longest.status_code == 201
    assert too_long.status_code == 400
    assert too_long.json()["message"] == "Type name must be 50 characters or less"
    assert long_description.status_code == 201
    assert too_long_description.status_code == 400
    assert too_long_description.json()["message"] == (
        "Description must be 200 characters or less"
    )
