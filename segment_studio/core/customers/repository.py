"""Customer repository for CRUD operations and population reads."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from segment_studio.db.models import Customer


class CustomerRepository:
    """Repository for Customer CRUD operations."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    def get_all(self, limit: Optional[int] = None) -> List[Customer]:
        """Get customers ordered by name.

        Args:
            limit: Maximum number of customers. None returns all.

        Returns:
            List of customers
        """
        query = self.db.query(Customer).order_by(Customer.name)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self) -> int:
        return self.db.query(Customer).count()

    def get_by_id(self, customer_id: str) -> Optional[Customer]:
        """Get a customer by ID."""
        return self.db.query(Customer).filter_by(id=customer_id).first()

    def get_by_email(self, email: str) -> Optional[Customer]:
        """Get a customer by email (case-insensitive)."""
        return self.db.query(Customer).filter_by(email=email.strip().lower()).first()

    def create(
        self,
        name: str,
        email: str,
        phone: Optional[str] = None,
        total_spend: float = 0.0,
        visits: int = 0,
        last_purchase_date: Optional[date] = None,
        status: str = "new",
    ) -> Customer:
        """Create a new customer.

        Args:
            name: Full name
            email: Email address (stored lowercase)
            phone: Optional phone number
            total_spend: Lifetime spend
            visits: Number of visits
            last_purchase_date: Date of the most recent purchase
            status: 'active', 'inactive' or 'new'

        Returns:
            Created customer
        """
        customer = Customer(
            name=name,
            email=email.strip().lower(),
            phone=phone,
            total_spend=total_spend,
            visits=visits,
            last_purchase_date=last_purchase_date,
            status=status,
        )
        self.db.add(customer)
        self.db.flush()
        return customer

    def update(self, customer_id: str, **changes: Any) -> Optional[Customer]:
        """Update a customer.

        Args:
            customer_id: Customer ID
            **changes: Column values to set (None values are ignored)

        Returns:
            Updated customer or None if not found
        """
        customer = self.get_by_id(customer_id)
        if not customer:
            return None

        for column, value in changes.items():
            if value is not None:
                setattr(customer, column, value)

        self.db.flush()
        return customer

    def delete(self, customer_id: str) -> bool:
        """Delete a customer.

        Args:
            customer_id: Customer ID

        Returns:
            True if deleted, False if not found
        """
        customer = self.get_by_id(customer_id)
        if not customer:
            return False

        self.db.delete(customer)
        self.db.flush()
        return True

    def iter_record_chunks(self, today: date, chunk_size: int = 500) -> Iterator[List[Dict[str, Any]]]:
        """Stream the population as lists of rule-engine records.

        Args:
            today: Reference date for derived fields (daysInactive)
            chunk_size: Records per chunk

        Yields:
            Lists of at most chunk_size records
        """
        chunk: List[Dict[str, Any]] = []
        query = self.db.query(Customer).order_by(Customer.id).yield_per(chunk_size)
        for customer in query:
            chunk.append(customer.to_record(today))
            if len(chunk) >= chunk_size:
                yield chunk
                chunk = []
        if chunk:
            yield chunk
