"""
Stripe calls for per-user invoicing and the platform subscription checkout.

Invoicing runs against the *user's* Stripe account, so every call passes the
user's secret key via ``api_key=`` instead of setting ``stripe.api_key``
globally. Checkout for the tracker subscription itself uses the platform key
from STRIPE_SECRET_KEY.
"""
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

import stripe

from watchtracker.core.config import STRIPE_SECRET_KEY, FRONTEND_URL

logger = logging.getLogger(__name__)

SUBSCRIPTION_PLANS = {
    "monthly": {"amount": 98, "interval": "month", "discount": 10},
    "yearly": {"amount": 980, "interval": "year", "discount": 130},
}


class StripeNotConfigured(ValueError):
    """No Stripe secret key is available for the requested operation."""


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def from_cents(amount: Optional[int]) -> Optional[float]:
    return None if amount is None else amount / 100


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value else None


def _address_param(address: Any) -> Optional[Dict[str, str]]:
    if not address:
        return None
    if isinstance(address, dict):
        return {k: v for k, v in address.items() if v}
    return {"line1": str(address)}


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def resolve_customer(
    api_key: str,
    email: Optional[str],
    name: Optional[str] = None,
    phone: Optional[str] = None,
    address: Any = None,
    existing_customer_id: Optional[str] = None,
):
    """
    Find or create the Stripe customer for an invoice.

    Order: the explicit customer id (updated with any new details), then an
    existing customer with the same email, then a new customer.
    """
    details = {
        key: value for key, value in {
            "email": email,
            "name": name,
            "phone": phone,
            "address": _address_param(address),
        }.items() if value
    }

    if existing_customer_id:
        try:
            customer = stripe.Customer.retrieve(existing_customer_id, api_key=api_key)
            if not getattr(customer, "deleted", False):
                if details:
                    customer = stripe.Customer.modify(existing_customer_id, api_key=api_key, **details)
                logger.info(f"Using existing Stripe customer {existing_customer_id}")
                return customer
        except stripe.InvalidRequestError:
            logger.warning(f"Stripe customer {existing_customer_id} not found, falling back to email lookup")

    if email:
        existing = stripe.Customer.list(email=email, limit=1, api_key=api_key)
        if existing.data:
            customer = existing.data[0]
            logger.info(f"Matched Stripe customer {customer.id} by email")
            return customer

    customer = stripe.Customer.create(api_key=api_key, **details)
    logger.info(f"Created Stripe customer {customer.id}")
    return customer


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

def create_and_finalize_invoice(
    api_key: str,
    customer_id: str,
    items: List[Dict[str, Any]],
    collection_method: str = "charge_automatically",
    due_date: Optional[date] = None,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
    currency: str = "usd",
):
    """
    Create a draft invoice, attach one invoice item per line and finalize it.

    ``items`` entries carry ``description``, ``price`` (dollars) and ``quantity``.
    """
    params: Dict[str, Any] = {
        "customer": customer_id,
        "collection_method": collection_method,
        "auto_advance": False,
        "metadata": metadata or {},
    }
    if description:
        params["description"] = description
    if collection_method == "send_invoice" and due_date:
        params["due_date"] = int(datetime.combine(due_date, time(23, 59, 59), tzinfo=timezone.utc).timestamp())

    invoice = stripe.Invoice.create(api_key=api_key, **params)

    for item in items:
        stripe.InvoiceItem.create(
            api_key=api_key,
            customer=customer_id,
            invoice=invoice.id,
            amount=to_cents(item["price"]) * item.get("quantity", 1),
            currency=currency,
            description=item.get("description") or "Item",
        )

    finalized = stripe.Invoice.finalize_invoice(invoice.id, api_key=api_key)
    logger.info(f"Stripe invoice finalized: {finalized.id} ({len(items)} item(s))")
    return finalized


def retrieve_invoice(api_key: str, invoice_id: str):
    return stripe.Invoice.retrieve(invoice_id, api_key=api_key)


def send_invoice(api_key: str, invoice_id: str):
    return stripe.Invoice.send_invoice(invoice_id, api_key=api_key)


def void_invoice(api_key: str, invoice_id: str):
    return stripe.Invoice.void_invoice(invoice_id, api_key=api_key)


def invoice_fields(stripe_invoice) -> Dict[str, Any]:
    """Map a Stripe invoice onto local Invoice columns."""
    fields = {
        "status": getattr(stripe_invoice, "status", None),
        "hosted_invoice_url": getattr(stripe_invoice, "hosted_invoice_url", None),
        "invoice_pdf": getattr(stripe_invoice, "invoice_pdf", None),
        "payment_intent": getattr(stripe_invoice, "payment_intent", None),
        "amount_paid": from_cents(getattr(stripe_invoice, "amount_paid", None)),
    }
    if fields["payment_intent"] is not None and not isinstance(fields["payment_intent"], str):
        fields["payment_intent"] = getattr(fields["payment_intent"], "id", None)

    transitions = getattr(stripe_invoice, "status_transitions", None)
    if transitions is not None:
        paid_at = from_timestamp(getattr(transitions, "paid_at", None))
        finalized_at = from_timestamp(getattr(transitions, "finalized_at", None))
        if paid_at:
            fields["paid_at"] = paid_at
        if finalized_at:
            fields["finalized_at"] = finalized_at

    return {key: value for key, value in fields.items() if value is not None}


# ---------------------------------------------------------------------------
# Platform subscription checkout
# ---------------------------------------------------------------------------

def create_subscription_checkout(
    email: str,
    first_name: str,
    last_name: str,
    plan: str,
    discount: float = 0,
    promo_code: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create a Checkout session for the tracker subscription on the platform account.

    Returns ``{"sessionId": ..., "url": ...}``.
    """
    if not STRIPE_SECRET_KEY:
        raise StripeNotConfigured("Stripe not configured - STRIPE_SECRET_KEY required")

    plan_config = SUBSCRIPTION_PLANS[plan]
    amount = plan_config["amount"] - discount
    label = plan.capitalize()

    session = stripe.checkout.Session.create(
        api_key=STRIPE_SECRET_KEY,
        customer_email=email,
        payment_method_types=["card"],
        mode="subscription",
        line_items=[{
            "price_data": {
                "currency": "usd",
                "product_data": {
                    "name": f"100K Tracker - {label} Plan",
                    "description": f"{label} subscription" + (" with Operandi discount" if discount else ""),
                },
                "unit_amount": to_cents(amount),
                "recurring": {"interval": plan_config["interval"]},
            },
            "quantity": 1,
        }],
        success_url=f"{FRONTEND_URL}/pricing?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{FRONTEND_URL}/pricing?payment=cancelled",
        metadata={
            "firstName": first_name,
            "lastName": last_name,
            "plan": plan,
            "promoCode": promo_code or "",
            "basePrice": str(plan_config["amount"]),
            "discountAmount": str(discount),
        },
    )

    logger.info(f"Created checkout session {session.id} for plan={plan}")
    return {"sessionId": session.id, "url": session.url}


def retrieve_checkout_session(session_id: str):
    if not STRIPE_SECRET_KEY:
        raise StripeNotConfigured("Stripe not configured - STRIPE_SECRET_KEY required")
    return stripe.checkout.Session.retrieve(session_id, api_key=STRIPE_SECRET_KEY)
