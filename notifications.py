from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import get_settings
from database import session_scope
from models import Payment, UserProfile

if TYPE_CHECKING:  # pragma: no cover
    from weasyprint import HTML  # noqa: F401

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def format_amount(cents: int, currency: str = "INR") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    return f"{sign}{symbol}{whole:,}.{fraction:02d}"


templates.filters["amount"] = format_amount


def _context(payment: Payment, profile: Optional[UserProfile]) -> dict[str, object]:
    paid_at = payment.verified_at or payment.created_at
    return {
        "payment": payment,
        "customer_name": (profile.full_name if profile else None)
        or (profile.email if profile else None)
        or "Customer",
        "customer_email": profile.email if profile else payment.email,
        "paid_at": paid_at.strftime("%d %B %Y, %H:%M UTC") if paid_at else "",
        "description": (payment.notes or {}).get("description") or None,
    }


def render_receipt_html(payment: Payment, profile: Optional[UserProfile]) -> str:
    return templates.get_template("payment_receipt.html").render(
        **_context(payment, profile)
    )


def render_receipt_pdf(payment: Payment, profile: Optional[UserProfile]) -> bytes:
    from weasyprint import HTML

    html = render_receipt_html(payment, profile)
    pdf_bytes = HTML(string=html, base_url=str(TEMPLATE_DIR)).write_pdf()
    logger.info(
        f"receipt_rendered: payment_id={payment.id} pdf_size_bytes={len(pdf_bytes)}"
    )
    return pdf_bytes


def receipt_filename(payment: Payment) -> str:
    return f"receipt-{payment.razorpay_payment_id or payment.razorpay_order_id}.pdf"


class EmailSender:
    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.host = host if host is not None else settings.smtp_host
        self.port = port or settings.smtp_port
        self.user = user if user is not None else settings.smtp_user
        self.password = password if password is not None else settings.smtp_password
        self.sender = sender or settings.email_from
        self.timeout = timeout or settings.upstream_timeout_secs

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)

    def send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)


def build_payment_email(
    payment: Payment,
    profile: Optional[UserProfile],
    sender: str,
    pdf_bytes: Optional[bytes],
) -> EmailMessage:
    context = _context(payment, profile)
    message = EmailMessage()
    message["Subject"] = (
        f"Payment Confirmation - {format_amount(payment.amount_cents, payment.currency)}"
    )
    message["From"] = f"ExpenseAI <{sender}>"
    if context["customer_email"]:
        message["To"] = context["customer_email"]
    message.set_content(
        f"Hi {context['customer_name']},\n\n"
        f"We received your payment of "
        f"{format_amount(payment.amount_cents, payment.currency)}.\n"
        f"Transaction ID: {payment.razorpay_payment_id}\n"
        f"Order ID: {payment.razorpay_order_id}\n"
    )
    message.add_alternative(
        templates.get_template("payment_email.html").render(
            attached=pdf_bytes is not None, **context
        ),
        subtype="html",
    )
    if pdf_bytes is not None:
        message.add_attachment(
            pdf_bytes,
            maintype="application",
            subtype="pdf",
            filename=receipt_filename(payment),
        )
    return message


def send_payment_confirmation(
    payment_id: int, sender: Optional[EmailSender] = None
) -> bool:
    """Background job: email the receipt for a captured payment.

    Failures are logged and never raised; the capture has already been committed.
    """
    mailer = sender or EmailSender()
    if not mailer.configured:
        logger.info(f"payment_email_skipped: payment_id={payment_id} reason=no_smtp")
        return False
    try:
        with session_scope() as session:
            payment = session.get(Payment, payment_id)
            if not payment:
                logger.warning(f"payment_email_skipped: payment_id={payment_id} reason=missing")
                return False
            profile = session.get(UserProfile, payment.user_id)
            recipient = (profile.email if profile else None) or payment.email
            if not recipient:
                logger.warning(f"payment_email_skipped: payment_id={payment_id} reason=no_recipient")
                return False
            try:
                pdf_bytes: Optional[bytes] = render_receipt_pdf(payment, profile)
            except (ImportError, OSError) as exc:
                logger.warning(
                    f"payment_receipt_unavailable: payment_id={payment_id} error={exc}"
                )
                pdf_bytes = None
            message = build_payment_email(payment, profile, mailer.sender, pdf_bytes)
        mailer.send(message)
    except (smtplib.SMTPException, OSError):
        logger.exception(f"payment_email_failed: payment_id={payment_id}")
        return False
    logger.info(f"payment_email_sent: payment_id={payment_id}")
    return True
