"""Customer population store."""

from .models import CustomerCreate, CustomerResponse
from .repository import CustomerRepository
from .importers import (
    ImportedCustomer,
    ImportResult,
    parse_customers_csv,
    import_customers,
    import_customers_csv,
)

__all__ = [
    "CustomerCreate",
    "CustomerResponse",
    "CustomerRepository",
    "ImportedCustomer",
    "ImportResult",
    "parse_customers_csv",
    "import_customers",
    "import_customers_csv",
]
