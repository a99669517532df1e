"""Customer API routes."""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from segment_studio.api.deps import get_db
from segment_studio.core.customers.importers import import_customers_csv
from segment_studio.core.customers.models import CustomerCreate, CustomerResponse
from segment_studio.core.customers.repository import CustomerRepository

router = APIRouter()


@router.get("/", response_model=List[CustomerResponse])
def list_customers(
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """List customers."""
    return CustomerRepository(db).get_all(limit=limit)


@router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def add_customer(payload: CustomerCreate, db: Session = Depends(get_db)):
    """Create a new customer."""
    repo = CustomerRepository(db)

    if repo.get_by_email(payload.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Customer with email '{payload.email}' already exists",
        )

    return repo.create(**payload.model_dump())


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: str, db: Session = Depends(get_db)):
    """Delete a customer by ID."""
    if not CustomerRepository(db).delete(customer_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer {customer_id} not found",
        )


class CustomerImportRequest(BaseModel):
    csv: str = Field(..., min_length=1, description="CSV file contents")
    mode: Literal["upsert", "add_only"] = "upsert"


class CustomerImportResponse(BaseModel):
    created: int
    updated: int
    skipped: int
    errors: List[str]


@router.post("/import", response_model=CustomerImportResponse)
def import_customers(payload: CustomerImportRequest, db: Session = Depends(get_db)):
    """Import customers from CSV text, matching existing customers by email."""
    result = import_customers_csv(db, payload.csv, payload.mode)
    return CustomerImportResponse(
        created=result.created,
        updated=result.updated,
        skipped=result.skipped,
        errors=result.errors,
    )
