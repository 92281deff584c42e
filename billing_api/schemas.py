"""
Request and response bodies for the billing HTTP API.

JSON keys are camelCase; Python attributes stay snake_case.  Decimal values
are serialized as strings so no amount ever passes through a JSON float on
the way out.  Responses are built from the frozen service DTOs with
``from_dto``.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from billing_engines.billing_state import MilestoneBillingState, MilestoneStatus, TaskStatus
from billing_engines.invoice_amount import BillingType
from billing_engines.quote_totals import DiscountType
from billing_modules.invoice.models import InvoiceStatus, InvoiceType
from billing_modules.quote.models import QuoteStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_dto(cls, dto: Any):
        return cls.model_validate(asdict(dto))


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    message: str
    code: str
    details: Any = None


# ---------------------------------------------------------------------------
# Quotes: requests
# ---------------------------------------------------------------------------


class QuoteCreateRequest(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    project_id: UUID | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    tax_rate: Decimal | None = None


class LineItemPricing(CamelModel):
    quantity: Decimal
    unit_price: Decimal
    discount_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")


class LineItemCreateRequest(LineItemPricing):
    description: str = Field(min_length=1)
    category: str | None = None


class LineItemUpdateRequest(CamelModel):
    description: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    category: str | None = None


class FinancialsPatchRequest(CamelModel):
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None
    is_manual_tax: bool | None = None


class TaxModeRequest(CamelModel):
    is_manual_tax: bool
    tax_amount: Decimal | None = None


class PaymentScheduleRequest(CamelModel):
    down_payment_percentage: Decimal
    milestone_payment_percentage: Decimal
    final_payment_percentage: Decimal


class QuotePreviewRequest(CamelModel):
    line_items: list[LineItemPricing] = Field(default_factory=list)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    is_manual_tax: bool = False


# ---------------------------------------------------------------------------
# Quotes: responses
# ---------------------------------------------------------------------------


class LineItemResponse(CamelModel):
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


class QuoteResponse(CamelModel):
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
    line_items: list[LineItemResponse] = Field(default_factory=list)


class LineResultResponse(CamelModel):
    subtotal: Decimal
    discount: Decimal
    total: Decimal


class QuotePreviewResponse(CamelModel):
    line_items: list[LineResultResponse]
    subtotal: Decimal
    discount_amount: Decimal
    after_discount: Decimal
    tax_amount: Decimal
    total: Decimal

    @classmethod
    def from_dto(cls, dto: Any):
        totals = asdict(dto.totals)
        return cls.model_validate(
            {"line_items": [asdict(r) for r in dto.line_items], **totals}
        )


class PaymentAmountsResponse(CamelModel):
    down_payment: Decimal
    milestone_payment: Decimal
    final_payment: Decimal


class PaymentScheduleResponse(CamelModel):
    quote_id: UUID
    down_payment_percentage: Decimal
    milestone_payment_percentage: Decimal
    final_payment_percentage: Decimal
    total: Decimal
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    amounts: PaymentAmountsResponse | None = None

    @classmethod
    def from_dto(cls, dto: Any):
        return cls.model_validate(
            {
                "quote_id": dto.quote.id,
                **asdict(dto.schedule),
                "total": dto.validation.total,
                "is_valid": dto.validation.is_valid,
                "errors": list(dto.validation.errors),
                "amounts": asdict(dto.amounts) if dto.amounts is not None else None,
            }
        )


# ---------------------------------------------------------------------------
# Milestones, tasks and invoices
# ---------------------------------------------------------------------------


class HoursRequest(CamelModel):
    actual_hours: Decimal | None = None


class ConvertTaskRequest(CamelModel):
    planned_date: datetime | None = None


class InvoiceResponse(CamelModel):
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


class MilestoneResponse(CamelModel):
    id: UUID
    project_id: UUID
    title: str
    status: MilestoneStatus
    billing_state: MilestoneBillingState
    is_billable: bool
    billing_percentage: Decimal | None = None
    description: str | None = None
    category: str | None = None
    planned_date: datetime | None = None
    actual_date: datetime | None = None
    invoice_id: UUID | None = None
    billed_at: datetime | None = None


class TaskResponse(CamelModel):
    id: UUID
    project_id: UUID
    title: str
    status: TaskStatus
    is_billable: bool
    billing_type: BillingType
    billing_percentage: Decimal | None = None
    billable_amount: Decimal | None = None
    billing_rate: Decimal | None = None
    estimated_hours: Decimal | None = None
    actual_hours: Decimal | None = None
    milestone_id: UUID | None = None
    invoice_id: UUID | None = None
    completed_at: datetime | None = None


class BillingResponse(CamelModel):
    created: bool
    message: str
    invoice: InvoiceResponse
    milestone: MilestoneResponse | None = None
    task: TaskResponse | None = None

    @classmethod
    def from_dto(cls, dto: Any):
        message = "Invoice created" if dto.created else "Billing already exists"
        return cls.model_validate({**asdict(dto), "message": message})


class SendInvoiceResponse(CamelModel):
    invoice: InvoiceResponse
    milestone: MilestoneResponse
    notified: bool


class TaskCompletionResponse(CamelModel):
    task: TaskResponse
    billing: BillingResponse | None = None

    @classmethod
    def from_dto(cls, dto: Any):
        return cls(
            task=TaskResponse.from_dto(dto.task),
            billing=BillingResponse.from_dto(dto.billing) if dto.billing else None,
        )


class TaskConversionResponse(CamelModel):
    milestone: MilestoneResponse
    task: TaskResponse
