"""
Subscription checkout for the tracker itself, on the platform Stripe account.
"""
import logging

import stripe
from fastapi import APIRouter, HTTPException, status

from watchtracker.core import config
from watchtracker.schemas.payment import CheckoutRequest, CheckoutSuccessRequest
from watchtracker.services import stripe_invoice_service
from watchtracker.services.stripe_invoice_service import SUBSCRIPTION_PLANS, StripeNotConfigured

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.post("/create-checkout-session")
def create_checkout_session(payload: CheckoutRequest):
    """
    Start a Stripe Checkout subscription.

    A non-empty promo code must match PROMO_CODE (case-insensitive) and
    takes the plan's discount off the price.
    """
    promo_code = (payload.promoCode or "").strip()
    has_valid_promo = bool(promo_code) and promo_code.upper() == config.PROMO_CODE.upper()
    if promo_code and not has_valid_promo:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid promo code")

    discount = SUBSCRIPTION_PLANS[payload.selectedPlan]["discount"] if has_valid_promo else 0

    try:
        return stripe_invoice_service.create_subscription_checkout(
            email=payload.email,
            first_name=payload.firstName,
            last_name=payload.lastName,
            plan=payload.selectedPlan,
            discount=discount,
            promo_code=promo_code.upper() if has_valid_promo else None,
        )
    except (StripeNotConfigured, stripe.StripeError) as e:
        logger.error(f"Failed to create checkout session: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to create checkout session", "message": str(e)},
        )


@router.post("/success")
def checkout_success(payload: CheckoutSuccessRequest):
    try:
        session = stripe_invoice_service.retrieve_checkout_session(payload.sessionId)
    except (StripeNotConfigured, stripe.StripeError) as e:
        logger.error(f"Failed to retrieve checkout session {payload.sessionId}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to process payment confirmation", "message": str(e)},
        )

    if session.payment_status != "paid":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Payment not completed", "status": session.payment_status},
        )

    metadata = session.metadata or {}
    logger.info(f"Checkout completed: session_id={payload.sessionId}")
    return {
        "success": True,
        "message": "Payment successful",
        "customer": {
            "email": session.customer_email,
            "firstName": metadata.get("firstName"),
            "lastName": metadata.get("lastName"),
            "plan": metadata.get("plan"),
        },
    }
