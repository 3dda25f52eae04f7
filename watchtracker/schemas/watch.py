"""
Pydantic schemas for watch inventory endpoints.
"""
from typing import Optional, Any, List
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from watchtracker.core.validators import validate_date, validate_positive_number, blank_to_none
from watchtracker.db.models.watch import WATCH_SETS, NUMERIC_FIELDS

TEXT_FIELDS = [
    "brand",
    "model",
    "reference_number",
    "serial_number",
    "watch_set",
    "platform_purchased",
    "accessories",
    "platform_sold",
    "notes",
]


class WatchFields(BaseModel):
    """Editable watch columns shared by requests and responses."""
    brand: Optional[str] = Field(None, description="Manufacturer, e.g. Rolex")
    model: Optional[str] = Field(None, description="Model name, e.g. Submariner")
    reference_number: Optional[str] = Field(None, description="Manufacturer reference, e.g. 116610LN")
    serial_number: Optional[str] = None
    watch_set: Optional[str] = Field(None, description="One of: " + ", ".join(WATCH_SETS))
    in_date: Optional[date] = Field(None, description="Acquisition date (YYYY-MM-DD)")
    platform_purchased: Optional[str] = None
    purchase_price: Optional[float] = None
    liquidation_price: Optional[float] = None
    accessories: Optional[str] = None
    accessories_cost: Optional[float] = None
    date_sold: Optional[date] = Field(None, description="Sale date (YYYY-MM-DD)")
    platform_sold: Optional[str] = None
    price_sold: Optional[float] = None
    fees: Optional[float] = None
    shipping: Optional[float] = None
    taxes: Optional[float] = None
    notes: Optional[str] = None
    buyer_contact_id: Optional[int] = None
    seller_contact_id: Optional[int] = None


class WatchCreate(WatchFields):
    """Schema for creating a watch. Also used for full-replacement updates."""

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def validate_numbers(cls, v: Any, info) -> Optional[float]:
        return validate_positive_number(v, info.field_name)

    @field_validator("in_date", "date_sold", mode="before")
    @classmethod
    def validate_dates(cls, v: Any, info) -> Optional[date]:
        return validate_date(v, f"{info.field_name} must be in YYYY-MM-DD format")

    @field_validator("buyer_contact_id", "seller_contact_id", mode="before")
    @classmethod
    def empty_contact(cls, v: Any) -> Any:
        return blank_to_none(v)

    @field_validator("watch_set")
    @classmethod
    def validate_watch_set(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in WATCH_SETS:
            raise ValueError(f"watch_set must be one of: {', '.join(WATCH_SETS)}")
        return v

    @model_validator(mode="after")
    def require_identity(self):
        if not self.brand or not self.model or not self.reference_number:
            raise ValueError("Brand, model, and reference number are required")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "brand": "Rolex",
                "model": "Submariner",
                "reference_number": "116610LN",
                "in_date": "2024-01-10",
                "watch_set": "Full Set",
                "purchase_price": 9500,
                "date_sold": "2024-02-01",
                "price_sold": 11200,
                "fees": 150,
            }
        }


class WatchResponse(WatchFields):
    """Schema for watch response."""
    id: int
    user_id: int
    net_profit: Optional[float] = Field(None, description="Computed profit once sold")
    hold_days: Optional[int] = Field(None, description="Days between in_date and date_sold")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class WatchListResponse(BaseModel):
    watches: List[WatchResponse]
    pagination: Pagination


class BulkDeleteRequest(BaseModel):
    watchIds: Any = Field(None, validate_default=True)

    @field_validator("watchIds")
    @classmethod
    def validate_ids(cls, v: Any) -> List[int]:
        if not isinstance(v, list) or not v:
            raise ValueError("watchIds must be a non-empty array")
        for item in v:
            if isinstance(item, bool) or not isinstance(item, int) or item <= 0:
                raise ValueError("All watch IDs must be valid positive integers")
        return v


class WatchHistoryEntry(BaseModel):
    id: int
    action: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WatchMetrics(BaseModel):
    totalProfit: float
    avgHoldTime: int
    totalSold: int
    avgProfit: float


class MonthlyProgress(BaseModel):
    month: str
    target: float
    actual: float
    isComplete: bool


class GoalProgress(BaseModel):
    year: int
    goalAmount: float
    currentYearProfit: float
    progressPercentage: float
    remainingAmount: float
    daysLeftInYear: int
    dailyTargetNeeded: float
    isOnTrack: bool
    projectedEndAmount: float
    monthlyBreakdown: List[MonthlyProgress]
