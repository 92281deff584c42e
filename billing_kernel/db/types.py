"""
Module: billing_kernel.db.types
Responsibility: Annotated type aliases for billing columns.  Centralizes the
    column definitions so that every ORM model declares money, percentages,
    and hours identically.
Architecture position: Kernel > DB.  May be imported by ORM modules.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    CRITICAL: No floats anywhere in persisted billing data.  Every money,
    percentage and hours column is a DecimalType (exact on every backend).
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import String, Text

from billing_kernel.db.base import DecimalType

# Monetary amount (stored exact, displayed at 2 places)
Money = Annotated[Decimal, DecimalType()]

# Percentage in [0, 100]
Percentage = Annotated[Decimal, DecimalType()]

# Worked or estimated hours
Hours = Annotated[Decimal, DecimalType()]

# Short identifier strings (statuses, enum values, document numbers)
ShortCode = Annotated[str, String(50)]

# Human-facing names and titles
Name = Annotated[str, String(255)]

# Long text for descriptions
LongText = Annotated[str, Text()]
