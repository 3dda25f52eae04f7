"""
Pydantic schemas for invoice endpoints.
"""
from typing import Optional, Any, List
from datetime import date
from pydantic import BaseModel, Field, field_validator

from watchtracker.core.validators import validate_date, blank_to_none
from watchtracker.db.models.invoice import COLLECTION_METHODS


class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Any] = None


class InvoiceItemRequest(BaseModel):
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    watch_id: Optional[int] = None


class InvoiceCreate(BaseModel):
    customerInfo: Optional[CustomerInfo] = None
    items: List[InvoiceItemRequest] = []
    dueDate: Optional[date] = None
    notes: Optional[str] = None
    contactId: Optional[int] = None
    existingStripeCustomerId: Optional[str] = None
    collectionMethod: str = "charge_automatically"

    @field_validator("dueDate", mode="before")
    @classmethod
    def check_due_date(cls, v: Any) -> Optional[date]:
        return validate_date(v, "dueDate must be in YYYY-MM-DD format")

    @field_validator("contactId", "existingStripeCustomerId", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        return blank_to_none(v)

    @field_validator("collectionMethod")
    @classmethod
    def check_collection(cls, v: str) -> str:
        if v not in COLLECTION_METHODS:
            raise ValueError(f"collectionMethod must be one of: {', '.join(COLLECTION_METHODS)}")
        return v

    @property
    def total(self) -> float:
        return round(sum(item.price * item.quantity for item in self.items), 2)

    class Config:
        json_schema_extra = {
            "example": {
                "customerInfo": {"name": "Jane Doe", "email": "jane@example.com"},
                "items": [{"description": "Rolex Submariner 116610LN", "price": 11200, "quantity": 1}],
                "collectionMethod": "send_invoice",
                "dueDate": "2024-03-01"
            }
        }


class InvoiceItemResponse(BaseModel):
    id: int
    watch_id: Optional[int] = None
    description: str
    quantity: int
    unit_price: float
    total_amount: float

    class Config:
        from_attributes = True
