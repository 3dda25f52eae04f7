"""
Pydantic schemas for admin provisioning endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ProvisionAccountRequest(BaseModel):
    email: Optional[str] = None
    fullName: Optional[str] = None
    subscriptionTier: str = "free"
    temporaryPassword: Optional[str] = None
    sendEmail: bool = True
    promoSignupId: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "email": "new.trader@example.com",
                "fullName": "New Trader",
                "subscriptionTier": "operandi",
                "sendEmail": True
            }
        }


class ResendInvitationRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None


class UserStatusUpdate(BaseModel):
    status: str = Field(..., description="pending | active | suspended | invited")


class AdminUserResponse(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    status: str
    is_admin: bool
    temporary_password: bool
    subscription_tier: str
    subscription_status: str
    subscription_price: Optional[float] = None
    first_login_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    subscription_tier: Optional[str] = None
    admin_user: Optional[str] = None
    step_completed: str
    success: bool
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
