import json
import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from watchtracker.core import config
from watchtracker.core.auth_dependency import get_db
from watchtracker.services.webhook_handlers import (
    dispatch_stripe_event,
    dispatch_square_event,
    verify_square_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


def _parse_json(payload: bytes) -> dict:
    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    return event


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """
    Stripe invoice, payment-intent and subscription events.

    The signature is verified when STRIPE_WEBHOOK_SECRET is set. Unknown
    event types are acknowledged; a failing handler answers 500 so Stripe
    retries the delivery.
    """
    payload = await request.body()

    if config.STRIPE_WEBHOOK_SECRET:
        try:
            stripe.Webhook.construct_event(
                payload=payload,
                sig_header=stripe_signature,
                secret=config.STRIPE_WEBHOOK_SECRET,
            )
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe webhook signature verification failed: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")
    else:
        logger.warning("STRIPE_WEBHOOK_SECRET not set - accepting unsigned Stripe webhook")

    event = _parse_json(payload)
    logger.info(f"Stripe webhook received: type={event.get('type')}, id={event.get('id')}")

    try:
        dispatch_stripe_event(event, db)
    except Exception as e:
        db.rollback()
        logger.error(f"Stripe webhook handler failed for {event.get('type')}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed"
        )

    return {"received": True}


@router.post("/square")
async def square_webhook(
    request: Request,
    db: Session = Depends(get_db)
):
    """Square invoice events are mirrored onto local invoices; payment and order events are logged."""
    payload = await request.body()

    if config.SQUARE_WEBHOOK_SIGNATURE_KEY:
        signature = (
            request.headers.get("x-square-hmacsha256-signature")
            or request.headers.get("x-square-signature")
        )
        if not verify_square_signature(payload, signature, config.SQUARE_WEBHOOK_SIGNATURE_KEY, str(request.url)):
            logger.warning("Square webhook signature verification failed")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    event = _parse_json(payload)
    logger.info(f"Square webhook received: type={event.get('type')}, id={event.get('event_id')}")

    try:
        dispatch_square_event(event, db)
    except Exception as e:
        db.rollback()
        logger.error(f"Square webhook handler failed for {event.get('type')}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed"
        )

    return {"received": True}
