"""Quote routes: editing, financial recompute, tax mode, schedule, send."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from billing_api.dependencies import get_quote_service
from billing_api.schemas import (
    FinancialsPatchRequest,
    LineItemCreateRequest,
    LineItemUpdateRequest,
    PaymentScheduleRequest,
    PaymentScheduleResponse,
    QuoteCreateRequest,
    QuotePreviewRequest,
    QuotePreviewResponse,
    QuoteResponse,
    TaxModeRequest,
)
from billing_engines.line_item import LineItemInput
from billing_modules.quote.service import QuoteService

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


@router.post("", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
def create_quote(body: QuoteCreateRequest, service: QuoteService = Depends(get_quote_service)):
    quote = service.create_quote(
        body.title,
        project_id=body.project_id,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        tax_rate=body.tax_rate,
    )
    return QuoteResponse.from_dto(quote)


@router.post("/preview", response_model=QuotePreviewResponse)
def preview_quote(body: QuotePreviewRequest, service: QuoteService = Depends(get_quote_service)):
    preview = service.preview_totals(
        [
            LineItemInput(
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount_percentage=item.discount_percentage,
                discount_amount=item.discount_amount,
            )
            for item in body.line_items
        ],
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        tax_rate=body.tax_rate,
        tax_amount=body.tax_amount,
        is_manual_tax=body.is_manual_tax,
    )
    return QuotePreviewResponse.from_dto(preview)


@router.get("/{quote_id}", response_model=QuoteResponse)
def get_quote(quote_id: UUID, service: QuoteService = Depends(get_quote_service)):
    return QuoteResponse.from_dto(service.get_quote(quote_id))


@router.post(
    "/{quote_id}/line-items",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_line_item(
    quote_id: UUID,
    body: LineItemCreateRequest,
    service: QuoteService = Depends(get_quote_service),
):
    quote = service.add_line_item(
        quote_id,
        body.description,
        quantity=body.quantity,
        unit_price=body.unit_price,
        discount_percentage=body.discount_percentage,
        discount_amount=body.discount_amount,
        category=body.category,
    )
    return QuoteResponse.from_dto(quote)


@router.patch("/{quote_id}/line-items/{line_item_id}", response_model=QuoteResponse)
def update_line_item(
    quote_id: UUID,
    line_item_id: UUID,
    body: LineItemUpdateRequest,
    service: QuoteService = Depends(get_quote_service),
):
    quote = service.update_line_item(quote_id, line_item_id, **body.model_dump())
    return QuoteResponse.from_dto(quote)


@router.delete("/{quote_id}/line-items/{line_item_id}", response_model=QuoteResponse)
def remove_line_item(
    quote_id: UUID,
    line_item_id: UUID,
    service: QuoteService = Depends(get_quote_service),
):
    return QuoteResponse.from_dto(service.remove_line_item(quote_id, line_item_id))


@router.patch("/{quote_id}/financials", response_model=QuoteResponse)
def update_financials(
    quote_id: UUID,
    body: FinancialsPatchRequest,
    service: QuoteService = Depends(get_quote_service),
):
    quote = service.update_financials(quote_id, **body.model_dump())
    return QuoteResponse.from_dto(quote)


@router.post("/{quote_id}/tax-mode", response_model=QuoteResponse)
def set_tax_mode(
    quote_id: UUID,
    body: TaxModeRequest,
    service: QuoteService = Depends(get_quote_service),
):
    quote = service.set_tax_mode(quote_id, body.is_manual_tax, body.tax_amount)
    return QuoteResponse.from_dto(quote)


@router.get("/{quote_id}/payment-schedule", response_model=PaymentScheduleResponse)
def get_payment_schedule(quote_id: UUID, service: QuoteService = Depends(get_quote_service)):
    return PaymentScheduleResponse.from_dto(service.get_payment_schedule(quote_id))


@router.patch("/{quote_id}/payment-schedule", response_model=PaymentScheduleResponse)
def update_payment_schedule(
    quote_id: UUID,
    body: PaymentScheduleRequest,
    service: QuoteService = Depends(get_quote_service),
):
    view = service.update_payment_schedule(quote_id, **body.model_dump())
    return PaymentScheduleResponse.from_dto(view)


@router.post("/{quote_id}/send", response_model=QuoteResponse)
def send_quote(quote_id: UUID, service: QuoteService = Depends(get_quote_service)):
    return QuoteResponse.from_dto(service.send_quote(quote_id))
