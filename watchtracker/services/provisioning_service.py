"""
Admin account provisioning.

Creates the user and subscription in one transaction, emails the invitation
(two attempts) and deletes the new account again if the email cannot be
delivered. Every step is written to ``provisioning_audit_logs``; audit rows
are committed on their own so they survive a rollback of the account.
"""
import logging
import re
import time
from datetime import date, datetime, timezone
from typing import Dict, Optional

from sqlalchemy.orm import Session

from watchtracker.core.security import hash_password, generate_secure_password
from watchtracker.core.subscription_tiers import (
    SUBSCRIPTION_TIERS,
    get_subscription_tier_info,
    default_status_for_tier,
)
from watchtracker.core.validators import is_valid_email
from watchtracker.db.models.promo_signup import PromoSignup
from watchtracker.db.models.provisioning_audit_log import ProvisioningAuditLog
from watchtracker.db.models.user import User
from watchtracker.services.email_service import EmailService

logger = logging.getLogger(__name__)

EMAIL_ATTEMPTS = 2
EMAIL_RETRY_DELAY = 2  # seconds

USERNAME_STRIP_RE = re.compile(r"[^a-z0-9]")


class ProvisioningError(Exception):
    """Carries the HTTP status and JSON body for a failed provisioning request."""

    def __init__(self, status_code: int, body: Dict):
        super().__init__(body.get("message") or body.get("error"))
        self.status_code = status_code
        self.body = body


def username_from_email(email: str) -> str:
    """Local part of the address, lower-cased, letters and digits only."""
    return USERNAME_STRIP_RE.sub("", email.split("@")[0].lower()) or "user"


def unique_username(db: Session, base: str) -> str:
    """``base``, or ``base2``, ``base3``... if already taken."""
    candidate = base
    suffix = 1
    while db.query(User.id).filter(User.username == candidate).first():
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


def build_user(
    username: str,
    password: str,
    email: Optional[str],
    tier: str = "free",
    full_name: Optional[str] = None,
    status: str = "pending",
    temporary_password: bool = True,
) -> User:
    """New (unsaved) user with the tier's default price and today's start date."""
    tier_info = get_subscription_tier_info(tier)
    return User(
        username=username,
        hashed_password=hash_password(password),
        email=email,
        full_name=full_name,
        status=status,
        temporary_password=temporary_password,
        subscription_tier=tier,
        subscription_status=default_status_for_tier(tier),
        subscription_price=tier_info["price"],
        subscription_start_date=date.today(),
    )


def log_step(db: Session, audit: Dict, step: str, success: bool, error_message: Optional[str] = None) -> None:
    try:
        db.add(ProvisioningAuditLog(
            email=audit["email"],
            full_name=audit.get("full_name"),
            subscription_tier=audit.get("subscription_tier"),
            admin_user=audit.get("admin_user"),
            step_completed=step,
            success=success,
            error_message=error_message,
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to write provisioning audit log ({step}): {e}", exc_info=True)


def send_with_retry(mailer: EmailService, email: str, username: str, password: str,
                    temporary_password: bool, attempts: int = EMAIL_ATTEMPTS) -> Dict:
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            logger.info(f"Invitation email attempt {attempt}/{attempts} for {email}")
            return mailer.send_invitation_email(email, username, password, temporary_password)
        except Exception as e:
            last_error = e
            logger.warning(f"Invitation email attempt {attempt} failed for {email}: {e}")
            if attempt < attempts and EMAIL_RETRY_DELAY:
                time.sleep(EMAIL_RETRY_DELAY)
    raise last_error


def provision_account(
    db: Session,
    mailer: EmailService,
    admin_username: str,
    email: Optional[str],
    full_name: Optional[str],
    subscription_tier: str = "free",
    temporary_password: Optional[str] = None,
    send_email: bool = True,
    promo_signup_id: Optional[int] = None,
) -> Dict:
    """
    Provision an account on behalf of an admin.

    Returns the response body for a 201. Raises ProvisioningError with the
    status code and body for validation failures, an existing email (409) and
    an undeliverable invitation (500, after the account has been removed).
    """
    if not email or not full_name:
        raise ProvisioningError(400, {
            "error": "Validation failed",
            "message": "Email and fullName are required",
        })
    email = email.strip().lower()
    if not is_valid_email(email):
        raise ProvisioningError(400, {"error": "Validation failed", "message": "Invalid email format"})
    if subscription_tier not in SUBSCRIPTION_TIERS:
        raise ProvisioningError(400, {
            "error": "Invalid subscription tier",
            "validTiers": list(SUBSCRIPTION_TIERS),
        })

    audit = {
        "email": email,
        "full_name": full_name,
        "subscription_tier": subscription_tier,
        "admin_user": admin_username,
    }
    steps = {
        "accountCreated": False,
        "subscriptionAssigned": False,
        "emailSent": False,
        "promoUpdated": False,
    }
    log_step(db, audit, "started", True)

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        log_step(db, audit, "validation", False, "Email already exists")
        raise ProvisioningError(409, {
            "error": "User already exists",
            "message": "A user with this email already exists",
            "existingUser": {"username": existing.username, "email": existing.email},
        })

    generated = not temporary_password
    password = temporary_password or generate_secure_password()
    tier_info = get_subscription_tier_info(subscription_tier)

    try:
        username = unique_username(db, username_from_email(email))
        user = build_user(username, password, email, subscription_tier, full_name=full_name)
        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        logger.error(f"Provisioning failed for {email}: {e}", exc_info=True)
        log_step(db, audit, "failed", False, str(e))
        raise ProvisioningError(500, {
            "error": "Provisioning failed",
            "message": str(e),
            "steps": steps,
            "rollbackPerformed": False,
        })

    steps["accountCreated"] = True
    steps["subscriptionAssigned"] = True
    log_step(db, audit, "account_created", True)
    logger.info(f"Provisioned account user_id={user.id} username={username} tier={subscription_tier}")

    email_result = None
    if send_email:
        try:
            email_result = send_with_retry(mailer, email, username, password, generated)
            steps["emailSent"] = True
            log_step(db, audit, "email_sent", True)
        except Exception as email_error:
            logger.error(f"Invitation email failed for {email}, rolling back account user_id={user.id}")
            try:
                db.delete(user)
                db.commit()
            except Exception as rollback_error:
                db.rollback()
                log_step(db, audit, "rollback_failed", False,
                         f"Email failed, rollback failed: {rollback_error}")
                raise ProvisioningError(500, {
                    "error": "Critical error during rollback",
                    "message": "Account was created but email failed and rollback failed. Manual intervention required.",
                    "emailError": str(email_error),
                    "rollbackError": str(rollback_error),
                    "manualAction": f"Delete user {username} manually and retry provisioning",
                })

            log_step(db, audit, "rollback", False, f"Email failed: {email_error}")
            raise ProvisioningError(500, {
                "error": "Email delivery failed",
                "message": "Account creation was rolled back due to email delivery failure",
                "emailError": str(email_error),
                "rollbackPerformed": True,
                "steps": steps,
            })

    promo_result = None
    if promo_signup_id:
        signup = db.query(PromoSignup).filter(PromoSignup.id == promo_signup_id).first()
        if signup:
            signup.status = "approved"
            signup.admin_notes = f"Account created - User ID: {user.id}"
            db.commit()
            steps["promoUpdated"] = True
        else:
            logger.warning(f"Promo signup {promo_signup_id} not found while provisioning {email}")
        promo_result = {"id": promo_signup_id, "statusUpdated": steps["promoUpdated"]}

    log_step(db, audit, "completed", True)

    return {
        "success": True,
        "message": "Account provisioned successfully",
        "account": {
            "userId": user.id,
            "username": username,
            "email": email,
            "temporaryPassword": password if generated else None,
        },
        "subscription": {
            "tier": subscription_tier,
            "status": user.subscription_status,
            "price": tier_info["price"],
            "features": tier_info["features"],
        },
        "email": (
            {"sent": True, "messageId": email_result.get("messageId")}
            if send_email else {"sent": False, "reason": "Email not requested"}
        ),
        "promoSignup": promo_result,
        "steps": steps,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def resend_invitation(db: Session, mailer: EmailService, username: Optional[str] = None,
                      email: Optional[str] = None) -> Dict:
    """
    Issue a fresh temporary password and email it.

    The stored hash is only replaced once the email has gone out.
    """
    if not username and not email:
        raise ProvisioningError(400, {"error": "Either username or email is required"})

    query = db.query(User)
    user = (
        query.filter(User.username == username).first() if username
        else query.filter(User.email == email.strip().lower()).first()
    )
    if not user:
        raise ProvisioningError(404, {"error": "User not found"})
    if not user.email:
        raise ProvisioningError(400, {"error": "User has no email address on file"})

    password = generate_secure_password()
    try:
        result = send_with_retry(mailer, user.email, user.username, password, True)
    except Exception as e:
        raise ProvisioningError(500, {"error": "Failed to resend invitation", "message": str(e)})

    user.hashed_password = hash_password(password)
    user.temporary_password = True
    db.commit()

    logger.info(f"Invitation resent to user_id={user.id}")
    return {
        "success": True,
        "message": "Invitation email resent successfully",
        "email": {"sent": True, "messageId": result.get("messageId")},
    }
