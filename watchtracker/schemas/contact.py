"""
Pydantic schemas for contact and card endpoints.
"""
from typing import Optional, Any, List
import re
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from watchtracker.core.validators import validate_email, blank_to_none
from watchtracker.db.models.contact import CONTACT_TYPES

LAST4_RE = re.compile(r"^\d{4}$")
MONTH_RE = re.compile(r"^(0[1-9]|1[0-2])$")


class ContactFields(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    contact_source: Optional[str] = None
    contact_type: Optional[str] = Field(None, description="One of: " + ", ".join(CONTACT_TYPES))
    business_name: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    website: Optional[str] = None
    time_zone: Optional[str] = None
    notes: Optional[str] = None


class ContactCreate(ContactFields):
    """Schema for creating a contact. Also used for updates (full replacement)."""
    first_name: Optional[str] = Field(None, validate_default=True)

    @field_validator("*", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("first_name")
    @classmethod
    def require_first_name(cls, v: Optional[str]) -> str:
        if not v:
            raise ValueError("First name is required")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return validate_email(v)

    @field_validator("contact_type")
    @classmethod
    def check_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in CONTACT_TYPES:
            raise ValueError("Invalid contact type")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Jane",
                "last_name": "Doe",
                "email": "jane@example.com",
                "contact_type": "Watch Trader",
                "business_name": "Doe Timepieces",
            }
        }


class CardCreate(BaseModel):
    """Display-only card metadata; only the last four digits are accepted."""
    cardholder_name: Optional[str] = None
    last4: Optional[str] = None
    expiry_month: Optional[str] = None
    expiry_year: Optional[Any] = None

    @model_validator(mode="after")
    def check_card(self):
        if not self.cardholder_name or not self.last4 or not self.expiry_month or not self.expiry_year:
            raise ValueError("All card fields are required")
        self.cardholder_name = self.cardholder_name.strip()
        self.last4 = str(self.last4).strip()
        self.expiry_month = str(self.expiry_month).strip()
        if not LAST4_RE.match(self.last4):
            raise ValueError("Last 4 digits must be exactly 4 numbers")
        if not MONTH_RE.match(self.expiry_month):
            raise ValueError("Expiry month must be 01-12")
        try:
            year = int(str(self.expiry_year).strip())
        except ValueError:
            raise ValueError("Invalid expiry year")
        current_year = date.today().year
        if year < current_year or year > current_year + 20:
            raise ValueError("Invalid expiry year")
        self.expiry_year = year
        return self


class CardResponse(BaseModel):
    id: int
    contact_id: int
    cardholder_name: str
    last4: str
    expiry_month: str
    expiry_year: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContactResponse(ContactFields):
    id: int
    user_id: int
    stripe_customer_id: Optional[str] = None
    stripe_default_payment_method: Optional[str] = None
    last_stripe_sync: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContactDetailResponse(ContactResponse):
    cards: List[CardResponse] = []
