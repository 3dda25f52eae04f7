"""
Pydantic schemas for subscription checkout endpoints.
"""
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator

from watchtracker.core.validators import is_valid_email, blank_to_none
from watchtracker.services.stripe_invoice_service import SUBSCRIPTION_PLANS


class CheckoutRequest(BaseModel):
    email: Optional[str] = Field(None, validate_default=True)
    firstName: Optional[str] = Field(None, validate_default=True)
    lastName: Optional[str] = Field(None, validate_default=True)
    selectedPlan: Optional[str] = Field(None, validate_default=True, description="monthly | yearly")
    promoCode: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> str:
        if not v or not is_valid_email(v.strip()):
            raise ValueError("Valid email is required")
        return v.strip()

    @field_validator("firstName", "lastName", mode="before")
    @classmethod
    def require_name(cls, v: Any, info) -> str:
        v = blank_to_none(v)
        if not v:
            label = "First name" if info.field_name == "firstName" else "Last name"
            raise ValueError(f"{label} is required")
        return v.strip()

    @field_validator("selectedPlan")
    @classmethod
    def check_plan(cls, v: Optional[str]) -> str:
        if v not in SUBSCRIPTION_PLANS:
            raise ValueError("Valid plan selection is required")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "email": "trader@example.com",
                "firstName": "Alex",
                "lastName": "Trader",
                "selectedPlan": "monthly",
                "promoCode": "OPERANDI2024"
            }
        }


class CheckoutSuccessRequest(BaseModel):
    sessionId: Optional[str] = Field(None, validate_default=True)

    @field_validator("sessionId")
    @classmethod
    def require_session(cls, v: Optional[str]) -> str:
        if not v or not v.strip():
            raise ValueError("Session ID is required")
        return v.strip()
