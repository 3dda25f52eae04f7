"""
Operandi Challenge promotional signups.

The signup form is public and rate limited; review and account creation
are admin-only.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from watchtracker.core import config
from watchtracker.core.auth_dependency import get_db, get_current_admin
from watchtracker.core.rate_limit import check_rate_limit, get_client_ip
from watchtracker.core.security import generate_secure_password
from watchtracker.db.models.promo_signup import PromoSignup, PROMO_SIGNUP_STATUSES
from watchtracker.db.models.user import User
from watchtracker.schemas.promo import (
    PromoSignupRequest,
    PromoSignupResponse,
    PromoStatusUpdate,
    CreateAccountRequest,
)
from watchtracker.services.email_service import EmailService, get_email_service
from watchtracker.services.provisioning_service import build_user, username_from_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/promo", tags=["Promo"])

SIGNUP_MAX_ATTEMPTS = 3
SIGNUP_WINDOW_SECONDS = 3600
PROMO_TIER = "operandi"


def notify_admin(mailer: EmailService, signup: dict) -> None:
    try:
        mailer.send_promo_signup_notification(signup, config.ADMIN_NOTIFICATION_EMAIL)
        logger.info(f"Admin notification sent for promo signup {signup.get('id')}")
    except Exception as e:
        logger.error(f"Failed to send admin notification for promo signup {signup.get('id')}: {e}")


def get_signup(db: Session, signup_id: int) -> PromoSignup:
    signup = db.query(PromoSignup).filter(PromoSignup.id == signup_id).first()
    if not signup:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Signup not found")
    return signup


@router.post("/operandi-challenge", status_code=status.HTTP_201_CREATED)
def operandi_challenge_signup(
    payload: PromoSignupRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service)
):
    """
    Public signup for the Operandi Challenge.

    Limited to three attempts per hour for each email and client IP pair.
    The admin notification is sent after the response and never fails the signup.
    """
    email = (payload.email or "").strip().lower()
    check_rate_limit(
        f"promo:{email}_{get_client_ip(request)}",
        max_requests=SIGNUP_MAX_ATTEMPTS,
        window_seconds=SIGNUP_WINDOW_SECONDS,
        message="Too many signup attempts. Please try again later.",
    )

    errors = payload.validation_errors()
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Validation failed", "details": errors},
        )

    if db.query(PromoSignup.id).filter(func.lower(PromoSignup.email) == email).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "Email already registered for this promotion",
                "message": "You have already signed up for the Operandi Challenge. "
                           "We will review your application and contact you soon.",
            },
        )

    if db.query(User.id).filter(func.lower(User.email) == email).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "Email already has an account",
                "message": "This email already has a 100ktracker account. "
                           "Please contact support if you need assistance.",
            },
        )

    try:
        signup = PromoSignup(
            full_name=payload.fullName.strip(),
            email=email,
            phone=payload.phone.strip() if payload.phone else None,
            business_name=payload.businessName.strip(),
            referral_source=payload.referralSource,
            experience_level=payload.experienceLevel,
            interests=payload.interests_text(),
            comments=payload.comments,
            status="pending",
        )
        db.add(signup)
        db.commit()
        db.refresh(signup)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save promo signup: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process signup"
        )

    logger.info(f"New Operandi Challenge signup: id={signup.id}")

    background_tasks.add_task(notify_admin, mailer, {
        "id": signup.id,
        "fullName": signup.full_name,
        "email": signup.email,
        "phone": signup.phone,
        "businessName": signup.business_name,
        "referralSource": signup.referral_source,
        "experienceLevel": signup.experience_level,
        "interests": signup.interests,
        "comments": signup.comments,
    })

    return {
        "success": True,
        "message": "Thank you for signing up for the Operandi Challenge! "
                   "We will review your application and contact you within 1-2 business days.",
        "signupId": signup.id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Admin review
# ---------------------------------------------------------------------------

@router.get("/admin/signups")
def list_signups(
    status_filter: Optional[str] = Query(None, alias="status"),
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    query = db.query(PromoSignup).order_by(PromoSignup.created_at.desc(), PromoSignup.id.desc())

    if status_filter:
        signups = query.filter(PromoSignup.status == status_filter).all()
        return {
            "success": True,
            "filter": {"status": status_filter},
            "count": len(signups),
            "signups": [PromoSignupResponse.model_validate(s) for s in signups],
        }

    signups = query.all()
    summary = {"total": len(signups)}
    for signup_status in PROMO_SIGNUP_STATUSES:
        summary[signup_status] = sum(1 for s in signups if s.status == signup_status)

    return {
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": summary,
        "signups": [PromoSignupResponse.model_validate(s) for s in signups],
    }


@router.get("/admin/signups/{signup_id}")
def get_signup_detail(
    signup_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    return {"success": True, "signup": PromoSignupResponse.model_validate(get_signup(db, signup_id))}


@router.put("/admin/signups/{signup_id}")
def update_signup_status(
    signup_id: int,
    payload: PromoStatusUpdate,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if payload.status not in PROMO_SIGNUP_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid status. Must be: pending, approved, or rejected"
        )

    signup = get_signup(db, signup_id)

    try:
        signup.status = payload.status
        signup.admin_notes = payload.adminNotes
        db.commit()
        db.refresh(signup)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update promo signup {signup_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update signup status"
        )

    logger.info(f"Promo signup {signup_id} status updated to {payload.status} by {admin.username}")
    return {
        "success": True,
        "message": f"Signup status updated to {payload.status}",
        "signup": PromoSignupResponse.model_validate(signup),
    }


@router.post("/admin/signups/{signup_id}/create-account")
def create_account_from_signup(
    signup_id: int,
    payload: Optional[CreateAccountRequest] = None,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service)
):
    """
    Approve a pending signup and create its account on the Operandi tier.

    The username is the email's local part. A temporary password is generated
    unless one is supplied. The welcome email is best-effort.
    """
    signup = get_signup(db, signup_id)
    if signup.status != "pending":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Can only create accounts for pending signups", "currentStatus": signup.status},
        )

    username = username_from_email(signup.email)
    if db.query(User.id).filter(User.username == username).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "Username already exists",
                "suggestion": "Try a different username or contact the user directly",
            },
        )
    if db.query(User.id).filter(func.lower(User.email) == signup.email.lower()).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already has an account")

    supplied = payload.temporaryPassword if payload else None
    password = supplied or generate_secure_password()

    try:
        user = build_user(username, password, signup.email, PROMO_TIER, full_name=signup.full_name)
        db.add(user)
        db.flush()
        signup.status = "approved"
        signup.admin_notes = f"Account created - User ID: {user.id}"
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create account for promo signup {signup_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user account"
        )

    email_sent = False
    try:
        mailer.send_invitation_email(signup.email, username, password, temporary_password=not supplied)
        email_sent = True
    except Exception as e:
        logger.error(f"Welcome email failed for promo signup {signup_id}: {e}")

    logger.info(f"Created account for Operandi signup {signup_id}: user_id={user.id}")
    return {
        "success": True,
        "message": "User account created successfully",
        "account": {
            "userId": user.id,
            "username": username,
            "email": signup.email,
            "temporaryPassword": password,
        },
        "signup": {
            "id": signup.id,
            "status": signup.status,
            "fullName": signup.full_name,
            "businessName": signup.business_name,
        },
        "emailSent": email_sent,
    }
