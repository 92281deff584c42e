"""Database layer - engine, base classes, column types, immutability."""

from billing_kernel.db.base import UUID, Base, DecimalType, TrackedBase, UUIDString
from billing_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from billing_kernel.db.types import Hours, Money, Percentage

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "DecimalType",
    "UUIDString",
    "UUID",
    "Money",
    "Percentage",
    "Hours",
]
