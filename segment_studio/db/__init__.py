"""Database module."""

from .database import get_db, init_db, engine, SessionLocal
from .models import Base, Customer, Segment

__all__ = [
    "get_db",
    "init_db",
    "engine",
    "SessionLocal",
    "Base",
    "Customer",
    "Segment",
]
