"""
Event handlers for Stripe and Square webhooks.

Each handler receives the event's ``data.object`` payload as a plain dict and
mirrors the change onto the local invoice (or user subscription) row. Events
for objects we don't know about are logged and ignored. Handlers commit
their own changes; database errors propagate so the endpoint can answer 500
and the provider retries.
"""
import base64
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from watchtracker.db.models.invoice import Invoice
from watchtracker.db.models.user import User
from watchtracker.services.stripe_invoice_service import from_cents, from_timestamp

logger = logging.getLogger(__name__)

# Stripe subscription status -> local subscription_status
SUBSCRIPTION_STATUS_MAP = {
    "active": "active",
    "trialing": "active",
    "past_due": "past_due",
    "unpaid": "past_due",
    "incomplete": "past_due",
    "canceled": "canceled",
    "incomplete_expired": "canceled",
}


def _error_text(error) -> Optional[str]:
    if not error:
        return None
    if isinstance(error, dict):
        return error.get("message") or json.dumps(error)
    return str(error)


def update_invoice_status(db: Session, stripe_invoice_id: str, status: str, **fields) -> Optional[Invoice]:
    invoice = db.query(Invoice).filter(Invoice.stripe_invoice_id == stripe_invoice_id).first()
    if not invoice:
        logger.warning(f"Webhook for unknown invoice {stripe_invoice_id} - ignoring")
        return None

    if status:
        invoice.status = status
    for field, value in fields.items():
        if value is not None:
            setattr(invoice, field, value)
    db.commit()

    logger.info(f"Invoice {stripe_invoice_id} updated from webhook: status={invoice.status}")
    return invoice


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------

def handle_invoice_payment_succeeded(data: Dict, db: Session) -> None:
    transitions = data.get("status_transitions") or {}
    update_invoice_status(
        db,
        data.get("id"),
        "paid",
        payment_intent=data.get("payment_intent"),
        paid_at=from_timestamp(transitions.get("paid_at")) or datetime.now(timezone.utc),
        amount_paid=from_cents(data.get("amount_paid")),
    )


def handle_invoice_payment_failed(data: Dict, db: Session) -> None:
    update_invoice_status(
        db,
        data.get("id"),
        "payment_failed",
        last_payment_error=_error_text(data.get("last_payment_error") or data.get("last_finalization_error")),
        payment_attempt_count=data.get("attempt_count"),
    )


def handle_invoice_finalized(data: Dict, db: Session) -> None:
    transitions = data.get("status_transitions") or {}
    update_invoice_status(
        db,
        data.get("id"),
        "open",
        finalized_at=from_timestamp(transitions.get("finalized_at")) or datetime.now(timezone.utc),
        hosted_invoice_url=data.get("hosted_invoice_url"),
        invoice_pdf=data.get("invoice_pdf"),
    )


def handle_invoice_updated(data: Dict, db: Session) -> None:
    update_invoice_status(
        db,
        data.get("id"),
        data.get("status"),
        hosted_invoice_url=data.get("hosted_invoice_url"),
        invoice_pdf=data.get("invoice_pdf"),
    )


def handle_invoice_voided(data: Dict, db: Session) -> None:
    update_invoice_status(db, data.get("id"), "void")


def handle_payment_intent_succeeded(data: Dict, db: Session) -> None:
    invoice = db.query(Invoice).filter(Invoice.payment_intent == data.get("id")).first()
    if not invoice:
        logger.debug(f"payment_intent.succeeded for {data.get('id')} matches no invoice")
        return
    update_invoice_status(
        db,
        invoice.stripe_invoice_id,
        "paid",
        paid_at=datetime.now(timezone.utc),
        amount_paid=from_cents(data.get("amount_received")),
    )


def handle_payment_intent_failed(data: Dict, db: Session) -> None:
    invoice = db.query(Invoice).filter(Invoice.payment_intent == data.get("id")).first()
    if not invoice:
        logger.debug(f"payment_intent.payment_failed for {data.get('id')} matches no invoice")
        return
    update_invoice_status(
        db,
        invoice.stripe_invoice_id,
        "payment_failed",
        last_payment_error=_error_text(data.get("last_payment_error")),
    )


def handle_subscription_changed(data: Dict, db: Session) -> None:
    """customer.subscription.updated / .deleted: mirror the status onto the subscribed user."""
    subscription_id = data.get("id")
    user = db.query(User).filter(User.stripe_subscription_id == subscription_id).first()
    if not user:
        logger.warning(f"Subscription event for unknown subscription_id={subscription_id}")
        return

    stripe_status = data.get("status")
    user.subscription_status = SUBSCRIPTION_STATUS_MAP.get(stripe_status, user.subscription_status)
    period_end = from_timestamp(data.get("current_period_end"))
    if period_end:
        user.subscription_end_date = period_end.date()
    db.commit()

    logger.info(f"Subscription {subscription_id} for user_id={user.id} is now {user.subscription_status}")


STRIPE_EVENT_HANDLERS: Dict[str, Callable[[Dict, Session], None]] = {
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.paid": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
    "invoice.finalized": handle_invoice_finalized,
    "invoice.updated": handle_invoice_updated,
    "invoice.voided": handle_invoice_voided,
    "payment_intent.succeeded": handle_payment_intent_succeeded,
    "payment_intent.payment_failed": handle_payment_intent_failed,
    "customer.subscription.updated": handle_subscription_changed,
    "customer.subscription.deleted": handle_subscription_changed,
}


def dispatch_stripe_event(event: Dict, db: Session) -> bool:
    """Run the handler for ``event``. Returns False for event types we don't handle."""
    event_type = event.get("type")
    handler = STRIPE_EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled Stripe event type: {event_type}")
        return False

    handler((event.get("data") or {}).get("object") or {}, db)
    return True


# ---------------------------------------------------------------------------
# Square
# ---------------------------------------------------------------------------

SQUARE_INVOICE_STATUS_MAP = {
    "DRAFT": "draft",
    "UNPAID": "open",
    "SCHEDULED": "open",
    "PARTIALLY_PAID": "open",
    "PAYMENT_PENDING": "open",
    "PAID": "paid",
    "PARTIALLY_REFUNDED": "paid",
    "REFUNDED": "refunded",
    "CANCELED": "void",
    "FAILED": "payment_failed",
}


def verify_square_signature(body: bytes, signature: Optional[str], signature_key: str, notification_url: str = "") -> bool:
    """
    Square signs ``notification_url + body`` with HMAC-SHA256 and sends it base64-encoded.

    The body-only form is also accepted for endpoints registered without a URL prefix.
    """
    if not signature:
        return False

    for signed in (notification_url.encode("utf-8") + body, body):
        digest = hmac.new(signature_key.encode("utf-8"), signed, hashlib.sha256).digest()
        if hmac.compare_digest(base64.b64encode(digest).decode("ascii"), signature):
            return True
    return False


def handle_square_invoice(data: Dict, db: Session) -> None:
    square_invoice = ((data.get("object") or {}).get("invoice")) or {}
    square_id = square_invoice.get("id") or data.get("id")
    invoice = db.query(Invoice).filter(Invoice.square_invoice_id == square_id).first()
    if not invoice:
        logger.info(f"Square invoice event for untracked invoice {square_id}")
        return

    status = SQUARE_INVOICE_STATUS_MAP.get(square_invoice.get("status"))
    if status:
        invoice.status = status
    if square_invoice.get("public_url"):
        invoice.hosted_invoice_url = square_invoice["public_url"]
    if status == "paid" and invoice.paid_at is None:
        invoice.paid_at = datetime.now(timezone.utc)
        invoice.amount_paid = invoice.total_amount
    db.commit()

    logger.info(f"Square invoice {square_id} mirrored: status={invoice.status}")


def dispatch_square_event(event: Dict, db: Session) -> bool:
    event_type = event.get("type") or ""
    data = event.get("data") or {}

    if event_type in ("invoice.payment_made", "invoice.updated", "invoice.published", "invoice.canceled"):
        handle_square_invoice(data, db)
        return True

    if event_type.startswith("payment.") or event_type.startswith("order.") or event_type == "invoice.created":
        logger.info(f"Square event received: {event_type} id={data.get('id')}")
        return True

    logger.info(f"Unhandled Square event type: {event_type}")
    return False
