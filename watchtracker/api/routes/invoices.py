"""
Invoice endpoints backed by the user's own Stripe account.

Invoices are created and finalized in Stripe, then mirrored into the local
``invoices`` / ``invoice_items`` tables. Webhooks keep the mirror current;
reads also refresh the status from Stripe on a best-effort basis.
"""
import logging
from datetime import datetime, timezone

import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from watchtracker.core.auth_dependency import get_db, get_current_user
from watchtracker.db.models.user import User
from watchtracker.db.models.contact import Contact
from watchtracker.db.models.invoice import Invoice, InvoiceItem
from watchtracker.db.models.watch import Watch
from watchtracker.schemas.invoice import InvoiceCreate, InvoiceItemResponse
from watchtracker.services import stripe_invoice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])

NO_STRIPE_KEYS = "Set Stripe API Keys to use this feature"
SYNC_RECENT = 10


def require_stripe_key(user: User) -> str:
    if not user.stripe_secret_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": NO_STRIPE_KEYS, "requiresStripeConfig": True},
        )
    if not user.stripe_secret_key.startswith("sk_"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Stripe configuration")
    return user.stripe_secret_key


def get_owned_invoice(db: Session, user: User, stripe_invoice_id: str) -> Invoice:
    invoice = (
        db.query(Invoice)
        .filter(Invoice.stripe_invoice_id == stripe_invoice_id, Invoice.user_id == user.id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


def format_invoice(invoice: Invoice) -> dict:
    contact = invoice.contact
    return {
        "id": invoice.stripe_invoice_id,
        "localId": invoice.id,
        "status": invoice.status,
        "total": invoice.total_amount,
        "currency": invoice.currency,
        "created": invoice.created_at,
        "dueDate": invoice.due_date,
        "paidAt": invoice.paid_at,
        "hostedInvoiceUrl": invoice.hosted_invoice_url,
        "invoicePdf": invoice.invoice_pdf,
        "collectionMethod": invoice.collection_method,
        "customer": {
            "id": invoice.stripe_customer_id,
            "name": contact.display_name if contact else "Manual Customer",
            "email": contact.email if contact else None,
        },
        "description": invoice.description,
        "paymentIntent": invoice.payment_intent,
        "amountPaid": invoice.amount_paid,
    }


def refresh_from_stripe(db: Session, api_key: str, invoice: Invoice) -> None:
    """Pull the latest state from Stripe. Failures are logged and the local copy is kept."""
    try:
        stripe_invoice = stripe_invoice_service.retrieve_invoice(api_key, invoice.stripe_invoice_id)
        for field, value in stripe_invoice_service.invoice_fields(stripe_invoice).items():
            setattr(invoice, field, value)
        db.commit()
    except stripe.StripeError as e:
        db.rollback()
        logger.warning(f"Failed to sync invoice {invoice.stripe_invoice_id}: {e}")


@router.get("/stripe-config")
def stripe_config(user: User = Depends(get_current_user)):
    has_config = bool(user.stripe_secret_key and user.stripe_publishable_key)
    return {
        "hasStripeConfig": has_config,
        "publishableKey": user.stripe_publishable_key if has_config else None,
        "message": "Stripe configured" if has_config else NO_STRIPE_KEYS,
    }


@router.get("")
def list_invoices(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Local invoices, newest first. The most recent ten are re-synced with Stripe."""
    if not user.stripe_secret_key:
        return {"invoices": [], "message": NO_STRIPE_KEYS}

    invoices = (
        db.query(Invoice)
        .filter(Invoice.user_id == user.id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )

    for invoice in invoices[:SYNC_RECENT]:
        if invoice.stripe_invoice_id:
            refresh_from_stripe(db, user.stripe_secret_key, invoice)

    formatted = [format_invoice(invoice) for invoice in invoices]
    return {"invoices": formatted, "total": len(formatted)}


@router.post("")
def create_invoice(
    payload: InvoiceCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create, finalize and mirror a Stripe invoice.

    The Stripe customer is resolved from ``existingStripeCustomerId``, then by
    email, and created otherwise. When the invoice is for a saved contact the
    customer id is stored on the contact for next time.
    """
    api_key = require_stripe_key(user)

    customer_info = payload.customerInfo
    if not customer_info or not payload.items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Customer information and items are required"
        )

    if payload.collectionMethod == "send_invoice":
        if not payload.dueDate:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="If sending an invoice to the client, you must specify a due date."
            )
        if not customer_info.email:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="If sending an invoice to the client, you must specify an email address."
            )

    contact = None
    if payload.contactId is not None:
        contact = db.query(Contact).filter(Contact.id == payload.contactId, Contact.user_id == user.id).first()
        if not contact:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid contact selected")

    for item in payload.items:
        if item.watch_id is not None:
            owned = db.query(Watch.id).filter(Watch.id == item.watch_id, Watch.user_id == user.id).first()
            if not owned:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid watch selected")

    metadata = {
        "user_id": str(user.id),
        "source": "existing_contact" if contact else "manual_entry",
        "contact_id": str(contact.id) if contact else "",
    }
    if payload.dueDate and payload.collectionMethod == "charge_automatically":
        metadata["due_date"] = payload.dueDate.isoformat()

    try:
        customer = stripe_invoice_service.resolve_customer(
            api_key,
            email=customer_info.email,
            name=customer_info.name,
            phone=customer_info.phone,
            address=customer_info.address,
            existing_customer_id=payload.existingStripeCustomerId or (contact.stripe_customer_id if contact else None),
        )
        stripe_invoice = stripe_invoice_service.create_and_finalize_invoice(
            api_key,
            customer.id,
            [item.model_dump() for item in payload.items],
            collection_method=payload.collectionMethod,
            due_date=payload.dueDate,
            description=payload.notes,
            metadata=metadata,
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe invoice creation failed for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to create invoice", "details": str(e)},
        )

    try:
        if contact:
            contact.stripe_customer_id = customer.id
            contact.last_stripe_sync = datetime.now(timezone.utc)

        invoice = Invoice(
            user_id=user.id,
            contact_id=contact.id if contact else None,
            stripe_invoice_id=stripe_invoice.id,
            stripe_customer_id=customer.id,
            total_amount=payload.total,
            currency="usd",
            description=payload.notes,
            due_date=payload.dueDate,
            collection_method=payload.collectionMethod,
            finalized_at=datetime.now(timezone.utc),
            invoice_metadata=metadata,
        )
        for field, value in stripe_invoice_service.invoice_fields(stripe_invoice).items():
            setattr(invoice, field, value)
        invoice.items = [
            InvoiceItem(
                watch_id=item.watch_id,
                description=item.description or "Item",
                quantity=item.quantity,
                unit_price=item.price,
                total_amount=round(item.price * item.quantity, 2),
            )
            for item in payload.items
        ]
        db.add(invoice)
        db.commit()
        db.refresh(invoice)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to store invoice {stripe_invoice.id} locally: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to create invoice", "details": str(e)},
        )

    if payload.collectionMethod == "send_invoice":
        message = 'Invoice created successfully. Use the "Send Invoice" button to email it to the customer.'
    else:
        message = "Invoice created successfully. Customer can pay immediately using the hosted invoice URL."

    logger.info(f"Invoice created: stripe_invoice_id={invoice.stripe_invoice_id}, user_id={user.id}, total={invoice.total_amount}")

    return {
        "invoice": format_invoice(invoice),
        "invoiceUrl": invoice.hosted_invoice_url,
        "customer": {"id": customer.id, "email": customer_info.email, "name": customer_info.name},
        "localInvoiceId": invoice.id,
        "collectionMethod": invoice.collection_method,
        "message": message,
    }


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    api_key = require_stripe_key(user)
    invoice = get_owned_invoice(db, user, invoice_id)
    refresh_from_stripe(db, api_key, invoice)

    return {
        "invoice": format_invoice(invoice),
        "items": [InvoiceItemResponse.model_validate(item) for item in invoice.items],
    }


@router.post("/{invoice_id}/send")
def send_invoice(
    invoice_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    api_key = require_stripe_key(user)
    invoice = get_owned_invoice(db, user, invoice_id)

    try:
        stripe_invoice = stripe_invoice_service.send_invoice(api_key, invoice.stripe_invoice_id)
        for field, value in stripe_invoice_service.invoice_fields(stripe_invoice).items():
            setattr(invoice, field, value)
        db.commit()
    except stripe.StripeError as e:
        db.rollback()
        logger.error(f"Failed to send invoice {invoice_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send invoice"
        )

    logger.info(f"Invoice sent: stripe_invoice_id={invoice_id}, user_id={user.id}")
    return {"invoice": format_invoice(invoice), "message": "Invoice sent successfully"}


@router.post("/{invoice_id}/void")
def void_invoice(
    invoice_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    api_key = require_stripe_key(user)
    invoice = get_owned_invoice(db, user, invoice_id)

    try:
        stripe_invoice = stripe_invoice_service.void_invoice(api_key, invoice.stripe_invoice_id)
        for field, value in stripe_invoice_service.invoice_fields(stripe_invoice).items():
            setattr(invoice, field, value)
        invoice.status = "void"
        db.commit()
    except stripe.StripeError as e:
        db.rollback()
        logger.error(f"Failed to void invoice {invoice_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to void invoice"
        )

    logger.info(f"Invoice voided: stripe_invoice_id={invoice_id}, user_id={user.id}")
    return {"invoice": format_invoice(invoice), "message": "Invoice voided successfully"}
