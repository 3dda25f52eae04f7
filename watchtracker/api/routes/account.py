"""
Account settings for the authenticated user: profile, password and the
Stripe keys used for invoicing.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from watchtracker.core.auth_dependency import get_db, get_current_user
from watchtracker.core.security import hash_password, verify_password
from watchtracker.core.subscription_tiers import get_subscription_tier_info
from watchtracker.db.models.user import User
from watchtracker.schemas.account import ProfileUpdate, PasswordChange, StripeKeysUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/account", tags=["Account"])


def subscription_summary(user: User) -> dict:
    tier_info = get_subscription_tier_info(user.subscription_tier)
    return {
        "tier": user.subscription_tier,
        "tierName": tier_info["name"],
        "status": user.subscription_status,
        "price": user.subscription_price if user.subscription_price is not None else tier_info["price"],
        "startDate": user.subscription_start_date.isoformat() if user.subscription_start_date else None,
        "endDate": user.subscription_end_date.isoformat() if user.subscription_end_date else None,
        "features": tier_info["features"],
    }


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "createdAt": user.created_at,
        "status": user.status,
        "temporaryPassword": bool(user.temporary_password),
        "firstLogin": user.is_first_login,
        "subscription": subscription_summary(user),
    }


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    email = payload.email.lower() if payload.email else None

    if email:
        taken = db.query(User.id).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

    try:
        user.email = email
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update profile for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile"
        )

    logger.info(f"Profile updated: user_id={user.id}")
    return {"message": "Profile updated successfully", "email": user.email}


@router.put("/password")
def change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not verify_password(payload.currentPassword, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    try:
        user.hashed_password = hash_password(payload.newPassword)
        user.temporary_password = False
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to change password for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update password"
        )

    logger.info(f"Password changed: user_id={user.id}")
    return {"message": "Password updated successfully"}


@router.get("/stripe")
def get_stripe_config(user: User = Depends(get_current_user)):
    """The secret key itself is never returned."""
    return {
        "hasStripeConfig": bool(user.stripe_secret_key and user.stripe_publishable_key),
        "publishableKey": user.stripe_publishable_key,
        "secretKeyConfigured": bool(user.stripe_secret_key),
    }


@router.put("/stripe")
def update_stripe_keys(
    payload: StripeKeysUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        user.stripe_secret_key = payload.secretKey
        user.stripe_publishable_key = payload.publishableKey
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save Stripe keys for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update Stripe configuration"
        )

    logger.info(f"Stripe keys updated: user_id={user.id}")
    return {"message": "Stripe configuration updated successfully"}


@router.delete("/stripe")
def delete_stripe_keys(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        user.stripe_secret_key = None
        user.stripe_publishable_key = None
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to remove Stripe keys for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove Stripe configuration"
        )

    logger.info(f"Stripe keys removed: user_id={user.id}")
    return {"message": "Stripe configuration removed successfully"}
