"""
Pydantic schemas for authentication endpoints.
"""
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator

from watchtracker.core.validators import validate_email, validate_date, blank_to_none
from watchtracker.core.subscription_tiers import (
    SUBSCRIPTION_TIERS,
    SUBSCRIPTION_STATUSES,
    is_valid_tier,
    is_valid_subscription_status,
)


class RegisterRequest(BaseModel):
    """Request schema for self-service registration."""
    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: Optional[str]) -> Optional[str]:
        """bcrypt only looks at the first 72 bytes."""
        if v and len(v.encode("utf-8")) > 72:
            raise ValueError("Password too long (bcrypt limit 72 bytes)")
        return v

    @model_validator(mode="after")
    def require_fields(self):
        if not self.username or not self.password:
            raise ValueError("Missing fields")
        self.email = validate_email(self.email)
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "username": "jdoe",
                "password": "SecurePass123",
                "email": "john.doe@example.com"
            }
        }


class LoginRequest(BaseModel):
    """Request schema for user login."""
    username: Optional[str] = None
    password: Optional[str] = None

    @model_validator(mode="after")
    def require_fields(self):
        if not self.username or not self.password:
            raise ValueError("Missing fields")
        self.username = self.username.strip()
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "username": "jdoe",
                "password": "SecurePass123"
            }
        }


class LoginResponse(BaseModel):
    token: str
    temporaryPassword: bool
    firstLogin: bool
    status: str


class UpdateUsernameRequest(BaseModel):
    oldUsername: Optional[str] = None
    newUsername: Optional[str] = None

    @model_validator(mode="after")
    def require_fields(self):
        if not self.oldUsername or not self.newUsername:
            raise ValueError("oldUsername and newUsername are required")
        self.oldUsername = self.oldUsername.strip()
        self.newUsername = self.newUsername.strip()
        return self


class SetSubscriptionRequest(BaseModel):
    username: Optional[str] = None
    tier: Optional[str] = None
    status: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    startDate: Optional[Any] = None
    endDate: Optional[Any] = None
    stripeSubscriptionId: Optional[str] = None

    @model_validator(mode="after")
    def check_subscription(self):
        if not self.username or not self.tier or not self.status:
            raise ValueError("username, tier, and status are required")
        if not is_valid_tier(self.tier):
            raise ValueError(f"Invalid tier. Must be one of: {', '.join(SUBSCRIPTION_TIERS)}")
        if not is_valid_subscription_status(self.status):
            raise ValueError(f"Invalid status. Must be one of: {', '.join(SUBSCRIPTION_STATUSES)}")
        self.tier = self.tier.lower()
        self.startDate = validate_date(self.startDate, "startDate must be in YYYY-MM-DD format")
        self.endDate = validate_date(self.endDate, "endDate must be in YYYY-MM-DD format")
        return self


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = Field(None, validate_default=True)

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: Any) -> str:
        v = blank_to_none(v)
        if not v:
            raise ValueError("Email is required")
        return validate_email(v.strip().lower())


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    newPassword: Optional[str] = None

    @model_validator(mode="after")
    def check_fields(self):
        if not self.token or not self.newPassword:
            raise ValueError("Token and new password are required")
        if len(self.newPassword) < 6:
            raise ValueError("New password must be at least 6 characters long")
        if len(self.newPassword.encode("utf-8")) > 72:
            raise ValueError("Password too long (bcrypt limit 72 bytes)")
        return self
