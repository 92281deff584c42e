"""
Quote ORM Models (``billing_modules.quote.orm``).

Responsibility
--------------
SQLAlchemy persistence models for quotes and quote line items.  Maps to the
``Quote`` and ``QuoteLineItem`` frozen dataclasses.

Invariants enforced
-------------------
* ``quote_number`` is unique (uq_quotes_quote_number).
* Line items live and die with their quote (``delete-orphan``).
* The stored totals are a cache of ``calculate_quote_totals``; the quote
  service rewrites all of them on every change.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engines.line_item import LineItemInput
from billing_engines.payment_schedule import PaymentSchedule
from billing_engines.quote_totals import DiscountType, QuoteFinancialInput
from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.money import ZERO, round_money


# ---------------------------------------------------------------------------
# 1. QuoteModel
# ---------------------------------------------------------------------------


class QuoteModel(TrackedBase):
    """
    ORM model for quotes.

    Guarantees:
        - status starts as ``draft``.
        - tax_amount holds the computed tax in rate mode and the entered
          tax in manual mode.
    """

    __tablename__ = "quotes"

    __table_args__ = (
        UniqueConstraint("quote_number", name="uq_quotes_quote_number"),
        Index("idx_quotes_project_id", "project_id"),
        Index("idx_quotes_status", "status"),
    )

    quote_number: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="draft")

    subtotal: Mapped[Decimal] = mapped_column(default=ZERO)
    discount_type: Mapped[str] = mapped_column(
        String(20), default=DiscountType.PERCENTAGE.value
    )
    discount_value: Mapped[Decimal] = mapped_column(default=ZERO)
    discount_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    after_discount: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_rate: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    is_manual_tax: Mapped[bool] = mapped_column(Boolean, default=False)
    total: Mapped[Decimal] = mapped_column(default=ZERO)

    down_payment_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    milestone_payment_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    final_payment_percentage: Mapped[Decimal] = mapped_column(nullable=False)

    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    line_items: Mapped[list["QuoteLineItemModel"]] = relationship(
        back_populates="quote",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="QuoteLineItemModel.sort_order",
    )

    def financial_input(self) -> QuoteFinancialInput:
        return QuoteFinancialInput(
            subtotal=self.subtotal,
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            tax_rate=self.tax_rate,
            tax_amount=self.tax_amount,
            is_manual_tax=bool(self.is_manual_tax),
        )

    def payment_schedule(self) -> PaymentSchedule:
        return PaymentSchedule(
            down_payment_percentage=self.down_payment_percentage,
            milestone_payment_percentage=self.milestone_payment_percentage,
            final_payment_percentage=self.final_payment_percentage,
        )

    def to_dto(self):
        from billing_modules.quote.models import Quote, QuoteStatus

        return Quote(
            id=self.id,
            quote_number=self.quote_number,
            title=self.title,
            status=QuoteStatus(self.status),
            subtotal=round_money(self.subtotal),
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            discount_amount=round_money(self.discount_amount),
            after_discount=round_money(self.after_discount),
            tax_rate=self.tax_rate,
            tax_amount=round_money(self.tax_amount),
            is_manual_tax=bool(self.is_manual_tax),
            total=round_money(self.total),
            down_payment_percentage=self.down_payment_percentage,
            milestone_payment_percentage=self.milestone_payment_percentage,
            final_payment_percentage=self.final_payment_percentage,
            project_id=self.project_id,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            sent_at=self.sent_at,
            line_items=tuple(item.to_dto() for item in self.line_items),
        )

    def __repr__(self) -> str:
        return f"<QuoteModel {self.quote_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# 2. QuoteLineItemModel
# ---------------------------------------------------------------------------


class QuoteLineItemModel(TrackedBase):
    """
    ORM model for quote line items.

    ``total_price`` is derived from the pricing columns by the line-item
    calculator and is never accepted from a client.
    """

    __tablename__ = "quote_line_items"

    __table_args__ = (
        Index("idx_quote_line_items_quote_id", "quote_id"),
    )

    quote_id: Mapped[UUID] = mapped_column(
        ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    discount_percentage: Mapped[Decimal] = mapped_column(default=ZERO)
    discount_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sort_order: Mapped[int] = mapped_column(default=0)

    quote: Mapped["QuoteModel"] = relationship(back_populates="line_items")

    def pricing(self) -> LineItemInput:
        return LineItemInput(
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount_percentage=self.discount_percentage,
            discount_amount=self.discount_amount,
        )

    def to_dto(self):
        from billing_modules.quote.models import QuoteLineItem

        return QuoteLineItem(
            id=self.id,
            quote_id=self.quote_id,
            description=self.description,
            quantity=self.quantity,
            unit_price=round_money(self.unit_price),
            discount_percentage=self.discount_percentage,
            discount_amount=round_money(self.discount_amount),
            total_price=round_money(self.total_price),
            category=self.category,
            sort_order=self.sort_order,
        )
