"""
Invoice ORM Model (``billing_modules.invoice.orm``).

Responsibility
--------------
SQLAlchemy persistence model for invoices.  Maps to the ``Invoice`` frozen
dataclass in ``models.py``.

Invariants enforced
-------------------
* ``invoice_number`` is unique (uq_invoices_invoice_number).
* ``milestone_id`` and ``task_id`` are each unique: a billable unit owns at
  most one invoice over its lifetime (uq_invoices_milestone_id,
  uq_invoices_task_id).  These constraints are the storage-level guard
  that makes concurrent bill requests safe.
* ``amount``, ``invoice_number`` and the unit references are frozen after
  insert by ``billing_kernel.db.immutability``.

``milestone_id`` / ``task_id`` carry no foreign key: the unit rows already
reference ``invoices.id``, and a second FK in the other direction would
make the two tables mutually dependent.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.money import round_money
from billing_modules.invoice.models import Invoice, InvoiceStatus, InvoiceType


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Guarantees:
        - status starts as ``draft``.
        - sent_at is set exactly when status moves to ``sent``.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        UniqueConstraint("milestone_id", name="uq_invoices_milestone_id"),
        UniqueConstraint("task_id", name="uq_invoices_task_id"),
        Index("idx_invoices_project_id", "project_id"),
        Index("idx_invoices_status", "status"),
    )

    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default=InvoiceStatus.DRAFT.value)
    invoice_type: Mapped[str] = mapped_column(String(50), nullable=False)
    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    milestone_id: Mapped[UUID | None] = mapped_column(nullable=True)
    task_id: Mapped[UUID | None] = mapped_column(nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> Invoice:
        return Invoice(
            id=self.id,
            project_id=self.project_id,
            invoice_number=self.invoice_number,
            amount=round_money(self.amount),
            status=InvoiceStatus(self.status),
            invoice_type=InvoiceType(self.invoice_type),
            issue_date=self.issue_date,
            due_date=self.due_date,
            description=self.description,
            milestone_id=self.milestone_id,
            task_id=self.task_id,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            sent_at=self.sent_at,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} [{self.status}]>"
