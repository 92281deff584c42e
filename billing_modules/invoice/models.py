"""
Invoice Domain Models (``billing_modules.invoice.models``).

Responsibility
--------------
Frozen dataclass value objects and enums for invoices produced by the
Invoice Generator.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``amount`` is a ``Decimal`` rounded to cents and never changes after the
  invoice is created.
* An invoice references at most one billable unit: ``milestone_id`` or
  ``task_id``.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states; paid/overdue are set outside this engine."""

    DRAFT = "draft"
    SENT = "sent"
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceType(str, Enum):
    MILESTONE = "milestone"
    REGULAR = "regular"


@dataclass(frozen=True)
class Invoice:
    """A customer invoice for one billable unit."""

    id: UUID
    project_id: UUID
    invoice_number: str
    amount: Decimal
    status: InvoiceStatus
    invoice_type: InvoiceType
    issue_date: date
    due_date: date
    description: str
    milestone_id: UUID | None = None
    task_id: UUID | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    sent_at: datetime | None = None
