"""
Quote Domain Models (``billing_modules.quote.models``).

Responsibility
--------------
Frozen dataclass value objects and enums for quotes and their line items.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Every displayed figure (line totals, subtotal, discount, tax, total) was
  produced by the pure calculators in ``billing_engines``; nothing here
  derives money on its own.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_engines.quote_totals import DiscountType


class QuoteStatus(str, Enum):
    """Quote lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


@dataclass(frozen=True)
class QuoteLineItem:
    """One priced line of a quote."""

    id: UUID
    quote_id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    total_price: Decimal
    category: str | None = None
    sort_order: int = 0


@dataclass(frozen=True)
class Quote:
    """A customer quote with its recomputed financial summary."""

    id: UUID
    quote_number: str
    title: str
    status: QuoteStatus
    subtotal: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    after_discount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    is_manual_tax: bool
    total: Decimal
    down_payment_percentage: Decimal
    milestone_payment_percentage: Decimal
    final_payment_percentage: Decimal
    project_id: UUID | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    sent_at: datetime | None = None
    line_items: tuple[QuoteLineItem, ...] = field(default_factory=tuple)
