"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime, date
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    Boolean,
    Date,
    DateTime,
    Text,
    JSON,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Get current UTC timestamp."""
    return datetime.utcnow()


class Customer(Base):
    """Customer model (the population segments are evaluated against)."""

    __tablename__ = "customers"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(50), nullable=True)
    total_spend = Column(Float, default=0.0, nullable=False)
    visits = Column(Integer, default=0, nullable=False)
    last_purchase_date = Column(Date, nullable=True)
    status = Column(String(20), default="new", nullable=False)  # 'active', 'inactive', 'new'
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def days_inactive(self, today: date) -> Optional[int]:
        """Whole days since the last purchase (None if never purchased)."""
        if self.last_purchase_date is None:
            return None
        return (today - self.last_purchase_date).days

    def to_record(self, today: date) -> Dict[str, Any]:
        """Map to the rule registry's field keys."""
        return {
            "id": self.id,
            "customerName": self.name,
            "email": self.email,
            "totalSpend": self.total_spend,
            "lastPurchaseDate": self.last_purchase_date,
            "visits": self.visits,
            "daysInactive": self.days_inactive(today),
        }

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, email={self.email})>"


class Segment(Base):
    """Saved customer segment."""

    __tablename__ = "segments"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    rules = Column(JSON, nullable=False)  # Serialized rule tree document
    audience_size = Column(Integer, nullable=True)  # NULL = never calculated
    is_ai_generated = Column(Boolean, default=False, nullable=False)
    last_calculated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Segment(id={self.id}, name={self.name}, audience={self.audience_size})>"
