"""
Pydantic schemas for lead endpoints.
"""
from typing import Optional, Any, List
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator

from watchtracker.core.validators import validate_date, blank_to_none
from watchtracker.db.models.lead import LEAD_STATUSES


def _check_status(v: Optional[str]) -> str:
    if not v or v not in LEAD_STATUSES:
        raise ValueError("Valid status is required")
    return v


class LeadCreate(BaseModel):
    """Schema for creating or replacing a lead."""
    title: Optional[str] = Field(None, validate_default=True)
    status: Optional[str] = "Monitoring"
    contact_id: Optional[int] = None
    watch_reference: Optional[str] = None
    notes: Optional[str] = None
    reminder_date: Optional[date] = None

    @field_validator("title", "watch_reference", "notes", "contact_id", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("title")
    @classmethod
    def require_title(cls, v: Optional[str]) -> str:
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> str:
        return _check_status(v)

    @field_validator("reminder_date", mode="before")
    @classmethod
    def check_reminder(cls, v: Any) -> Optional[date]:
        return validate_date(v, "Reminder date must be in YYYY-MM-DD format")


class LeadStatusUpdate(BaseModel):
    status: Optional[str] = Field(None, validate_default=True)

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> str:
        return _check_status(v)


class LeadResponse(BaseModel):
    id: int
    user_id: int
    title: str
    status: str
    contact_id: Optional[int] = None
    contact_name: Optional[str] = None
    watch_reference: Optional[str] = None
    notes: Optional[str] = None
    reminder_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeadStats(BaseModel):
    total: int
    by_status: dict
    overdue_reminders: int
    today_reminders: int
    upcoming_reminders: int


class LeadListResponse(BaseModel):
    leads: List[LeadResponse]
    pagination: dict
