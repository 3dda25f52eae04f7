"""
Pydantic schemas for promotional signup endpoints.
"""
from typing import Optional, Any, List
from datetime import datetime
from pydantic import BaseModel, Field

from watchtracker.core.validators import is_valid_email, is_valid_phone


class PromoSignupRequest(BaseModel):
    """Public signup form. Validated as a whole so every problem is reported at once."""
    fullName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    businessName: Optional[str] = None
    referralSource: Optional[str] = None
    experienceLevel: Optional[str] = None
    interests: Optional[Any] = None
    comments: Optional[str] = None

    def validation_errors(self) -> List[str]:
        errors = []
        if not self.fullName or len(self.fullName.strip()) < 2:
            errors.append("Full name must be at least 2 characters long")
        if not self.email or not is_valid_email(self.email.strip()):
            errors.append("Valid email address is required")
        if self.phone and not is_valid_phone(self.phone):
            errors.append("Invalid phone number format")
        if not self.businessName or len(self.businessName.strip()) < 2:
            errors.append("Business name must be at least 2 characters long")
        return errors

    def interests_text(self) -> Optional[str]:
        if isinstance(self.interests, list):
            return ", ".join(str(item) for item in self.interests) or None
        return self.interests or None


class PromoSignupResponse(BaseModel):
    id: int
    full_name: str
    email: str
    phone: Optional[str] = None
    business_name: str
    referral_source: Optional[str] = None
    experience_level: Optional[str] = None
    interests: Optional[str] = None
    comments: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PromoStatusUpdate(BaseModel):
    status: Optional[str] = None
    adminNotes: Optional[str] = None


class CreateAccountRequest(BaseModel):
    temporaryPassword: Optional[str] = Field(None, description="Generated when omitted")
