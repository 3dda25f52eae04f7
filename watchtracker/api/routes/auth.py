"""
Authentication endpoints: registration, login, password reset and the
admin-only username / subscription maintenance calls.
"""
import hashlib
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from jose import JWTError
from sqlalchemy.orm import Session

from watchtracker.core.auth_dependency import get_db, get_current_user, get_current_admin
from watchtracker.core.rate_limit import check_rate_limit, get_client_ip
from watchtracker.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
)
from watchtracker.core.subscription_tiers import get_tier_price
from watchtracker.db.models.user import User
from watchtracker.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    LoginResponse,
    UpdateUsernameRequest,
    SetSubscriptionRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
)
from watchtracker.services.email_service import EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])

LOGIN_MAX_ATTEMPTS = 20
LOGIN_WINDOW_SECONDS = 300
RESET_TOKEN_PURPOSE = "password_reset"
RESET_TOKEN_EXPIRY = timedelta(hours=1)


def _password_fingerprint(user: User) -> str:
    """Short digest of the stored hash; a reset token stops working once the password changes."""
    return hashlib.sha256(user.hashed_password.encode("utf-8")).hexdigest()[:16]


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Self-service registration. New accounts start on the free tier."""
    if db.query(User).filter(User.username == payload.username).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already exists")

    email = payload.email.lower() if payload.email else None
    if email and db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    try:
        user = User(
            username=payload.username,
            hashed_password=hash_password(payload.password),
            email=email,
            status="active",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        logger.error(f"Registration failed for username={payload.username}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register user"
        )

    logger.info(f"User registered: user_id={user.id}, username={user.username}")
    return {"message": "User registered successfully", "userId": user.id}


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Exchange username and password for a JWT.

    Records the first and latest login and moves ``pending`` accounts to
    ``active``. Limited to 20 attempts per 5 minutes per client IP.
    """
    check_rate_limit(
        f"login:{get_client_ip(request)}",
        max_requests=LOGIN_MAX_ATTEMPTS,
        window_seconds=LOGIN_WINDOW_SECONDS,
        message="Too many login attempts. Please try again later.",
    )

    user = db.query(User).filter(User.username == payload.username).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        logger.warning(f"Failed login attempt for username={payload.username}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if user.status == "suspended":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended. Contact administrator."
        )

    first_login = user.is_first_login
    now = datetime.now(timezone.utc)
    try:
        if first_login:
            user.first_login_at = now
        user.last_login_at = now
        if user.status == "pending":
            user.status = "active"
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record login for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed"
        )

    token = create_access_token({
        "sub": user.username,
        "id": user.id,
        "username": user.username,
        "status": user.status,
    })

    logger.info(f"User logged in: user_id={user.id}, first_login={first_login}")
    return LoginResponse(
        token=token,
        temporaryPassword=bool(user.temporary_password),
        firstLogin=first_login,
        status=user.status,
    )


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "created_at": user.created_at,
    }


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service)
):
    """Email a one-hour reset link. The response never reveals whether the address is known."""
    message = {"message": "If an account exists for that email, a reset link has been sent."}

    user = db.query(User).filter(User.email == payload.email).first()
    if not user:
        logger.info("Password reset requested for unknown email")
        return message

    token = create_access_token(
        {"sub": user.username, "uid": user.id, "purpose": RESET_TOKEN_PURPOSE, "pwd": _password_fingerprint(user)},
        expires_delta=RESET_TOKEN_EXPIRY,
    )
    try:
        mailer.send_password_reset_email(user.email, token)
    except Exception as e:
        logger.error(f"Failed to send password reset email to user_id={user.id}: {e}", exc_info=True)
        return message

    logger.info(f"Password reset email sent to user_id={user.id}")
    return message


@router.post("/reset-password")
def reset_password(
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    try:
        claims = decode_access_token(payload.token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    if claims.get("purpose") != RESET_TOKEN_PURPOSE or claims.get("uid") is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    user = db.query(User).filter(User.id == claims["uid"]).first()
    if not user or claims.get("pwd") != _password_fingerprint(user):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    try:
        user.hashed_password = hash_password(payload.newPassword)
        user.temporary_password = False
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Password reset failed for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset password"
        )

    logger.info(f"Password reset completed for user_id={user.id}")
    return {"message": "Password reset successfully"}


# ---------------------------------------------------------------------------
# Admin maintenance
# ---------------------------------------------------------------------------

@router.put("/admin/update-username")
def update_username(
    payload: UpdateUsernameRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.username == payload.oldUsername).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if db.query(User).filter(User.username == payload.newUsername).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already exists")

    try:
        user.username = payload.newUsername
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update username for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update username"
        )

    logger.info(f"Username changed by {admin.username}: {payload.oldUsername} -> {payload.newUsername}")
    return {
        "message": "Username updated successfully",
        "oldUsername": payload.oldUsername,
        "newUsername": payload.newUsername,
    }


@router.post("/admin/set-subscription")
def set_subscription(
    payload: SetSubscriptionRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.username == payload.username).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    price = payload.price if payload.price is not None else get_tier_price(payload.tier)

    try:
        user.subscription_tier = payload.tier
        user.subscription_status = payload.status
        user.subscription_price = price
        user.subscription_start_date = payload.startDate or user.subscription_start_date
        user.subscription_end_date = payload.endDate
        if payload.stripeSubscriptionId:
            user.stripe_subscription_id = payload.stripeSubscriptionId
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to set subscription for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update subscription"
        )

    logger.info(f"Subscription set by {admin.username}: {user.username} -> {payload.tier}/{payload.status}")
    return {
        "message": "Subscription updated successfully",
        "subscription": {
            "username": user.username,
            "tier": user.subscription_tier,
            "status": user.subscription_status,
            "price": user.subscription_price,
            "startDate": user.subscription_start_date.isoformat() if user.subscription_start_date else None,
            "endDate": user.subscription_end_date.isoformat() if user.subscription_end_date else None,
        },
    }
