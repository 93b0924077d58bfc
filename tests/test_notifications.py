from datetime import datetime

from models import Payment, PaymentStatus, UserProfile
from notifications import (
    EmailSender,
    build_payment_email,
    format_amount,
    receipt_filename,
    render_receipt_html,
    send_payment_confirmation,
)


def _payment() -> Payment:
    return Payment(
        id=3,
        user_id=1,
        amount_cents=123456,
        currency="INR",
        status=PaymentStatus.captured,
        razorpay_order_id="order_abc",
        razorpay_payment_id="pay_xyz",
        notes={"description": "Premium plan"},
        created_at=datetime(2025, 3, 1, 9, 30),
        verified_at=datetime(2025, 3, 1, 9, 31),
    )


def test_format_amount() -> None:
    assert format_amount(123456, "INR") == "₹1,234.56"
    assert format_amount(5, "usd") == "$0.05"
    assert format_amount(1000, "JPY") == "JPY 10.00"


def test_receipt_html_mentions_payment_details() -> None:
    profile = UserProfile(email="asha@example.com", full_name="Asha Rao")

    html = render_receipt_html(_payment(), profile)

    assert "order_abc" in html
    assert "pay_xyz" in html
    assert "₹1,234.56" in html
    assert "Asha Rao" in html
    assert receipt_filename(_payment()) == "receipt-pay_xyz.pdf"


def test_payment_email_without_pdf_has_no_attachment() -> None:
    profile = UserProfile(email="asha@example.com", full_name="Asha Rao")

    message = build_payment_email(_payment(), profile, "billing@example.com", None)

    assert message["To"] == "asha@example.com"
    assert "₹1,234.56" in message["Subject"]
    assert list(message.iter_attachments()) == []


def test_payment_email_with_pdf_attaches_receipt() -> None:
    message = build_payment_email(_payment(), None, "billing@example.com", b"%PDF-1.7")

    attachments = list(message.iter_attachments())
    assert [part.get_filename() for part in attachments] == ["receipt-pay_xyz.pdf"]


def test_confirmation_skipped_without_smtp() -> None:
    sender = EmailSender(host="", sender="")

    assert sender.configured is False
    assert send_payment_confirmation(1, sender) is False
