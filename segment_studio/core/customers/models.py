"""Pydantic schemas for customer operations."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

CUSTOMER_STATUSES = ("active", "inactive", "new")


class CustomerCreate(BaseModel):
    """Schema for creating a new customer."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    total_spend: float = Field(0.0, ge=0)
    visits: int = Field(0, ge=0)
    last_purchase_date: Optional[date] = None
    status: str = "new"

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError(f"Invalid email address: {v}")
        return v

    @field_validator("status")
    @classmethod
    def known_status(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in CUSTOMER_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(CUSTOMER_STATUSES)}")
        return v


class CustomerResponse(BaseModel):
    """Schema for customer response."""

    id: str
    name: str
    email: str
    phone: Optional[str]
    total_spend: float
    visits: int
    last_purchase_date: Optional[date]
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
