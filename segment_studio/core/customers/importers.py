"""Customer importers from CSV exports."""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from datetime import date
from io import StringIO
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from segment_studio.core.customers.models import CUSTOMER_STATUSES
from segment_studio.core.customers.repository import CustomerRepository
from segment_studio.core.rules.evaluators import coerce_date
from segment_studio.core.rules.exceptions import CoercionError

# Normalized header -> customer attribute
COLUMN_ALIASES: Dict[str, str] = {
    "name": "name",
    "customername": "name",
    "fullname": "name",
    "email": "email",
    "emailaddress": "email",
    "phone": "phone",
    "phonenumber": "phone",
    "totalspend": "total_spend",
    "spend": "total_spend",
    "visits": "visits",
    "visitcount": "visits",
    "ordercount": "visits",
    "lastpurchase": "last_purchase_date",
    "lastpurchasedate": "last_purchase_date",
    "status": "status",
}


@dataclass
class ImportedCustomer:
    """A customer parsed from an import source."""

    name: str
    email: str
    phone: Optional[str] = None
    total_spend: float = 0.0
    visits: int = 0
    last_purchase_date: Optional[date] = None
    status: str = "new"


@dataclass
class ImportResult:
    """Result of an import operation."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def normalize_header(header: str) -> str:
    """'Total Spend' / 'total_spend' / 'totalSpend' -> 'totalspend'."""
    return "".join(ch for ch in header.lower() if ch.isalnum())


def parse_currency(value: str) -> Optional[float]:
    """Parse a currency string like '$1,234.56' or '₹5,000' to float.

    Returns None if value is empty or unparseable.
    """
    if not value or value.strip() in ("N/A", "--", ""):
        return None

    cleaned = "".join(ch for ch in value if ch.isdigit() or ch in ".-")

    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_customers_csv(csv_content: str) -> Tuple[List[ImportedCustomer], List[str]]:
    """Parse a customer CSV export.

    The header row must include name and email columns; spend, visits,
    phone, last purchase date and status are optional. Header spelling is
    flexible ('Total Spend', 'total_spend', 'totalSpend').

    Args:
        csv_content: Raw CSV content as string

    Returns:
        Tuple of (customers list, error messages list)
    """
    customers: List[ImportedCustomer] = []
    errors: List[str] = []

    reader = csv.DictReader(StringIO(csv_content.strip()))
    columns: Dict[str, str] = {}
    for header in reader.fieldnames or []:
        attribute = COLUMN_ALIASES.get(normalize_header(header))
        if attribute and attribute not in columns:
            columns[attribute] = header

    missing = [name for name in ("name", "email") if name not in columns]
    if missing:
        errors.append(f"Missing required column(s): {', '.join(missing)}")
        return customers, errors

    def cell(row: Dict[str, str], attribute: str) -> str:
        header = columns.get(attribute)
        return (row.get(header) or "").strip() if header else ""

    for row_num, row in enumerate(reader, start=2):
        name = cell(row, "name")
        email = cell(row, "email").lower()
        if not name and not email:
            continue  # Blank line
        if not name or "@" not in email:
            errors.append(f"Row {row_num}: name and a valid email are required")
            continue

        spend_text = cell(row, "total_spend")
        total_spend = parse_currency(spend_text)
        if spend_text and total_spend is None:
            errors.append(f"Row {row_num}: invalid total spend {spend_text!r}")
            continue

        visits_text = cell(row, "visits").replace(",", "")
        try:
            visits = int(float(visits_text)) if visits_text else 0
        except ValueError:
            errors.append(f"Row {row_num}: invalid visits {visits_text!r}")
            continue

        purchase_text = cell(row, "last_purchase_date")
        try:
            last_purchase = coerce_date(purchase_text) if purchase_text else None
        except CoercionError as e:
            errors.append(f"Row {row_num}: {e}")
            continue

        status = (cell(row, "status") or "new").lower()
        if status not in CUSTOMER_STATUSES:
            errors.append(f"Row {row_num}: unknown status {status!r}")
            continue

        customers.append(
            ImportedCustomer(
                name=name,
                email=email,
                phone=cell(row, "phone") or None,
                total_spend=total_spend or 0.0,
                visits=visits,
                last_purchase_date=last_purchase,
                status=status,
            )
        )

    return customers, errors


def import_customers(
    db: Session,
    customers: List[ImportedCustomer],
    mode: str = "upsert",
) -> ImportResult:
    """Import customers to the database, matching existing ones by email.

    Args:
        db: Database session
        customers: Parsed customers
        mode: 'upsert' updates existing customers, 'add_only' skips them

    Returns:
        ImportResult with counts and any errors
    """
    repo = CustomerRepository(db)
    result = ImportResult()

    for imported in customers:
        existing = repo.get_by_email(imported.email)
        if existing:
            if mode == "add_only":
                result.skipped += 1
                continue
            repo.update(
                existing.id,
                name=imported.name,
                phone=imported.phone,
                total_spend=imported.total_spend,
                visits=imported.visits,
                last_purchase_date=imported.last_purchase_date,
                status=imported.status,
            )
            result.updated += 1
        else:
            repo.create(
                name=imported.name,
                email=imported.email,
                phone=imported.phone,
                total_spend=imported.total_spend,
                visits=imported.visits,
                last_purchase_date=imported.last_purchase_date,
                status=imported.status,
            )
            result.created += 1

    return result


def import_customers_csv(db: Session, csv_content: str, mode: str = "upsert") -> ImportResult:
    """Parse and import a customer CSV file.

    Rows with errors are reported and skipped; valid rows are imported.
    """
    customers, parse_errors = parse_customers_csv(csv_content)
    result = import_customers(db, customers, mode)
    result.errors = parse_errors + result.errors
    return result
