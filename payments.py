from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import Payment, PaymentStatus, utcnow
from schemas import CreateOrderIn, VerifyPaymentIn
from services import ExpenseService, NotFoundError, SignatureMismatch, UpstreamError

logger = logging.getLogger(__name__)

RAZORPAY_API = "https://api.razorpay.com/v1"


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _mapping(value: object) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: object, max_length: int) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    return value[:max_length]


def signatures_match(expected: str, supplied: Optional[str]) -> bool:
    return hmac.compare_digest(
        expected.encode("utf-8"), (supplied or "").encode("utf-8")
    )


class RazorpayClient:
    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = (
            key_secret if key_secret is not None else settings.razorpay_key_secret
        )
        self.timeout = timeout or settings.upstream_timeout_secs

    def create_order(
        self, amount_minor: int, currency: str, receipt: str, notes: dict
    ) -> dict:
        if not (self.key_id and self.key_secret):
            raise UpstreamError("Razorpay is not configured")
        credentials = base64.b64encode(
            f"{self.key_id}:{self.key_secret}".encode("utf-8")
        ).decode("ascii")
        body = json.dumps(
            {
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            }
        ).encode("utf-8")
        req = Request(
            f"{RAZORPAY_API}/orders",
            data=body,
            headers={
                "Authorization": f"Basic {credentials}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                order = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            raise UpstreamError(f"Razorpay responded with HTTP {exc.code}") from exc
        except (URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise UpstreamError("Failed to reach Razorpay") from exc

        if not isinstance(order, dict) or not order.get("id"):
            raise UpstreamError("Unexpected Razorpay order response")
        return order


class PaymentService:
    def __init__(
        self,
        session: Session,
        client: Optional[RazorpayClient] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self.session = session
        self.client = client
        self.key_secret = (
            key_secret if key_secret is not None else settings.razorpay_key_secret
        )
        self.webhook_secret = (
            webhook_secret
            if webhook_secret is not None
            else settings.razorpay_webhook_secret
        )

    def create_order(self, user_id: int, data: CreateOrderIn) -> tuple[Payment, dict]:
        if data.expense_id is not None:
            ExpenseService(self.session, user_id).get(data.expense_id)
        client = self.client or RazorpayClient()
        amount_minor = to_minor_units(data.amount)
        receipt = f"exp-{data.expense_id or 'na'}-{int(time.time() * 1000)}"
        notes = {
            "user_id": str(user_id),
            "expense_id": str(data.expense_id) if data.expense_id else "",
            "description": data.description or "",
        }
        order = client.create_order(amount_minor, data.currency, receipt, notes)

        payment = Payment(
            user_id=user_id,
            expense_id=data.expense_id,
            amount_cents=amount_minor,
            currency=data.currency,
            status=PaymentStatus.created,
            razorpay_order_id=order["id"],
            notes=order.get("notes") or notes,
        )
        self.session.add(payment)
        self.session.commit()
        self.session.refresh(payment)
        logger.info(
            f"payment_order_created: order_id={payment.razorpay_order_id} "
            f"user_id={user_id} amount_minor={amount_minor}"
        )
        return payment, order

    def _by_order(self, order_id: str, user_id: Optional[int] = None) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.razorpay_order_id == order_id)
        if user_id is not None:
            stmt = stmt.where(Payment.user_id == user_id)
        return self.session.scalar(stmt)

    def verify(self, user_id: int, data: VerifyPaymentIn) -> Payment:
        payment = self._by_order(data.razorpay_order_id, user_id)
        if not payment:
            raise NotFoundError("Payment not found")

        expected = sign(
            self.key_secret,
            f"{data.razorpay_order_id}|{data.razorpay_payment_id}".encode("utf-8"),
        )
        if not signatures_match(expected, data.razorpay_signature):
            # A captured payment is never downgraded by a bad retry.
            if payment.status != PaymentStatus.captured:
                payment.status = PaymentStatus.failed
                payment.razorpay_payment_id = data.razorpay_payment_id
                payment.razorpay_signature = data.razorpay_signature
                self.session.commit()
            logger.warning(
                f"payment_signature_mismatch: order_id={data.razorpay_order_id}"
            )
            raise SignatureMismatch("Invalid signature")

        if payment.status != PaymentStatus.captured:
            payment.status = PaymentStatus.captured
            payment.razorpay_payment_id = data.razorpay_payment_id
            payment.razorpay_signature = data.razorpay_signature
            payment.verified_at = utcnow()
            self.session.commit()
            self.session.refresh(payment)
            logger.info(f"payment_captured: order_id={payment.razorpay_order_id}")
        return payment

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Apply a Razorpay webhook; returns True when a payment changed."""
        if not self.webhook_secret:
            logger.info("payment_webhook_ignored: reason=no_secret")
            return False
        if not signatures_match(sign(self.webhook_secret, raw_body), signature):
            raise SignatureMismatch("Invalid webhook signature")

        try:
            event = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError("Webhook body is not valid JSON") from exc

        if not isinstance(event, dict):
            raise ValueError("Webhook body is not a JSON object")
        payload = _mapping(event.get("payload"))
        entity = _mapping(_mapping(payload.get("payment")).get("entity"))
        order_entity = _mapping(_mapping(payload.get("order")).get("entity"))
        order_id = entity.get("order_id") or order_entity.get("id")
        if event.get("event") != "payment.captured" or not isinstance(order_id, str):
            return False

        payment = self._by_order(order_id)
        if not payment:
            logger.warning(f"payment_webhook_unknown_order: order_id={order_id}")
            return False
        payment_id = _text(entity.get("id"), 64)
        if (
            payment.status == PaymentStatus.captured
            and payment.razorpay_payment_id == payment_id
        ):
            return False

        payment.status = PaymentStatus.captured
        payment.razorpay_payment_id = payment_id or payment.razorpay_payment_id
        payment.method = _text(entity.get("method"), 40)
        payment.email = _text(entity.get("email"), 255)
        payment.contact = _text(entity.get("contact"), 40)
        payment.verified_at = payment.verified_at or utcnow()
        self.session.commit()
        logger.info(f"payment_webhook_captured: order_id={order_id}")
        return True

    def get_captured(self, user_id: int, payment_id: int) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if not payment or payment.user_id != user_id:
            raise NotFoundError("Payment not found")
        if payment.status != PaymentStatus.captured:
            raise ValueError("Receipt is only available for captured payments")
        return payment
