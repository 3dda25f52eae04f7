"""
Admin endpoints: account provisioning, user management, the provisioning
audit trail and dashboard statistics.
"""
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from watchtracker.core.auth_dependency import get_db, get_current_admin
from watchtracker.core.logging_config import sanitize_log_data
from watchtracker.core.subscription_tiers import SUBSCRIPTION_TIERS, USER_STATUSES
from watchtracker.db.models.promo_signup import PromoSignup, PROMO_SIGNUP_STATUSES
from watchtracker.db.models.provisioning_audit_log import ProvisioningAuditLog
from watchtracker.db.models.user import User
from watchtracker.schemas.admin import (
    ProvisionAccountRequest,
    ResendInvitationRequest,
    UserStatusUpdate,
    AdminUserResponse,
    AuditLogResponse,
)
from watchtracker.services import provisioning_service
from watchtracker.services.email_service import EmailService, get_email_service
from watchtracker.services.provisioning_service import ProvisioningError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

STATS_WINDOW_DAYS = 30


@router.post("/provision-account", status_code=status.HTTP_201_CREATED)
def provision_account(
    payload: ProvisionAccountRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service)
):
    """
    Create an account for someone else and email them their credentials.

    If the invitation cannot be delivered the account is removed again and
    the response reports ``rollbackPerformed``.
    """
    logger.info(f"Provisioning requested by {admin.username}: {sanitize_log_data(payload.model_dump())}")
    try:
        return provisioning_service.provision_account(
            db,
            mailer,
            admin_username=admin.username,
            email=payload.email,
            full_name=payload.fullName,
            subscription_tier=(payload.subscriptionTier or "free").lower(),
            temporary_password=payload.temporaryPassword,
            send_email=payload.sendEmail,
            promo_signup_id=payload.promoSignupId,
        )
    except ProvisioningError as e:
        return JSONResponse(status_code=e.status_code, content=e.body)


@router.post("/resend-invitation")
def resend_invitation(
    payload: ResendInvitationRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service)
):
    try:
        return provisioning_service.resend_invitation(db, mailer, username=payload.username, email=payload.email)
    except ProvisioningError as e:
        return JSONResponse(status_code=e.status_code, content=e.body)


@router.get("/users")
def list_users(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return {
        "users": [AdminUserResponse.model_validate(user) for user in users],
        "total": len(users),
    }


@router.put("/users/{user_id}/status")
def update_user_status(
    user_id: int,
    payload: UserStatusUpdate,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if payload.status not in USER_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status. Must be one of: {', '.join(USER_STATUSES)}"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if user.id == admin.id and payload.status == "suspended":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot suspend your own account")

    try:
        user.status = payload.status
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update status for user_id={user_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user status"
        )

    logger.info(f"User status changed by {admin.username}: user_id={user_id} -> {payload.status}")
    return {
        "message": f"User status updated to {payload.status}",
        "user": AdminUserResponse.model_validate(user),
    }


@router.get("/audit-logs")
def get_audit_logs(
    limit: int = Query(100, ge=1, le=1000),
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    logs = (
        db.query(ProvisioningAuditLog)
        .order_by(ProvisioningAuditLog.created_at.desc(), ProvisioningAuditLog.id.desc())
        .limit(limit)
        .all()
    )
    return {"logs": [AuditLogResponse.model_validate(log) for log in logs], "count": len(logs)}


@router.get("/dashboard-stats")
def dashboard_stats(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """User counts by status and tier, promo signup counts, recent provisioning and monthly revenue."""
    users_by_status = {user_status: 0 for user_status in USER_STATUSES}
    for user_status, count in db.query(User.status, func.count(User.id)).group_by(User.status).all():
        users_by_status[user_status] = count

    users_by_tier = {tier: 0 for tier in SUBSCRIPTION_TIERS}
    for tier, count in db.query(User.subscription_tier, func.count(User.id)).group_by(User.subscription_tier).all():
        users_by_tier[tier] = count

    promo_counts = {signup_status: 0 for signup_status in PROMO_SIGNUP_STATUSES}
    for signup_status, count in db.query(PromoSignup.status, func.count(PromoSignup.id)).group_by(PromoSignup.status).all():
        promo_counts[signup_status] = count

    since = datetime.now(timezone.utc) - timedelta(days=STATS_WINDOW_DAYS)
    recent = db.query(ProvisioningAuditLog).filter(ProvisioningAuditLog.created_at >= since)
    attempts = recent.filter(ProvisioningAuditLog.step_completed == "started").count()
    completed = recent.filter(ProvisioningAuditLog.step_completed == "completed").count()

    monthly_revenue = (
        db.query(func.coalesce(func.sum(User.subscription_price), 0))
        .filter(User.subscription_status == "active")
        .scalar()
    )

    return {
        "users": {
            "total": sum(users_by_status.values()),
            "byStatus": users_by_status,
            "byTier": users_by_tier,
        },
        "promoSignups": {"total": sum(promo_counts.values()), **promo_counts},
        "provisioning": {
            "periodDays": STATS_WINDOW_DAYS,
            "attempts": attempts,
            "completed": completed,
            "failed": attempts - completed,
        },
        "monthlyRecurringRevenue": round(float(monthly_revenue or 0), 2),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
