"""
Quote Module Service - quote editing, financial recompute, and sending.

Thin glue layer that:
1. Validates and prices every line with the line-item calculator
2. Runs the single quote-total cascade (``calculate_quote_totals``)
3. Validates the payment schedule, leniently on save and strictly on send
4. Persists the recomputed figures

Every write recomputes the whole quote from its stored inputs, so the
persisted totals can never drift from what the calculator would produce.
Tax-mode switching is an explicit operation (``set_tax_mode``), never a
side effect of another edit.

This service owns the transaction boundary: each public write commits on
success and rolls back on failure.

Usage:
    service = QuoteService(session, clock, config)
    quote = service.create_quote("Bathroom remodel")
    quote = service.add_line_item(
        quote.id, "Tile", quantity=Decimal("2"), unit_price=Decimal("100"),
        discount_percentage=Decimal("10"),
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_config.schema import BillingConfig
from billing_engines.line_item import (
    LineItemInput,
    LineItemResult,
    calculate_line_item,
    sum_line_totals,
    validate_line_item,
)
from billing_engines.payment_schedule import (
    PaymentAmounts,
    PaymentSchedule,
    ScheduleValidation,
    check_schedule_bounds,
    require_valid_payment_schedule,
    split_payment_schedule,
    validate_payment_schedule,
)
from billing_engines.quote_totals import (
    DiscountType,
    QuoteFinancialInput,
    QuoteTotals,
    calculate_quote_totals,
    validate_quote_financials,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.money import ZERO, to_decimal
from billing_kernel.exceptions import (
    InvalidFieldCombinationError,
    InvalidStateTransitionError,
    LineItemNotFoundError,
    QuoteNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import transaction_boundary
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.quote.models import Quote, QuoteStatus
from billing_modules.quote.orm import QuoteLineItemModel, QuoteModel

logger = get_logger("modules.quote.service")


@dataclass(frozen=True)
class QuotePreview:
    """Unsaved figures for a set of lines and a financial configuration."""

    line_items: tuple[LineItemResult, ...]
    totals: QuoteTotals


@dataclass(frozen=True)
class PaymentScheduleView:
    """A quote's schedule, its validation, and the installment amounts."""

    quote: Quote
    schedule: PaymentSchedule
    validation: ScheduleValidation
    amounts: PaymentAmounts | None


def format_quote_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:06d}"


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else to_decimal(value)


class QuoteService:
    """
    Creates, edits, and sends quotes.

    Only draft quotes can be edited or sent.

    Transaction boundary: this service commits on success, rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._sequences = SequenceService(session)

    # =========================================================================
    # Loading
    # =========================================================================

    def _load(self, quote_id: UUID, *, for_update: bool = False) -> QuoteModel:
        stmt = select(QuoteModel).where(QuoteModel.id == quote_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        quote = self._session.execute(stmt).scalar_one_or_none()
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        return quote

    def _load_draft(self, quote_id: UUID, operation: str) -> QuoteModel:
        quote = self._load(quote_id, for_update=True)
        if quote.status != QuoteStatus.DRAFT.value:
            raise InvalidStateTransitionError("Quote", quote_id, quote.status, operation)
        return quote

    @staticmethod
    def _find_line_item(quote: QuoteModel, line_item_id: UUID) -> QuoteLineItemModel:
        for item in quote.line_items:
            if item.id == line_item_id:
                return item
        raise LineItemNotFoundError(line_item_id)

    def get_quote(self, quote_id: UUID) -> Quote:
        return self._load(quote_id).to_dto()

    # =========================================================================
    # Recompute
    # =========================================================================

    def _recompute(self, quote: QuoteModel) -> QuoteTotals:
        """Reprice every line and rerun the cascade; writes the cached figures."""
        results = []
        for item in quote.line_items:
            pricing = item.pricing()
            validate_line_item(pricing)
            result = calculate_line_item(pricing)
            item.total_price = result.total
            results.append(result)

        quote.subtotal = sum_line_totals(results)
        inputs = quote.financial_input()
        validate_quote_financials(inputs)
        totals = calculate_quote_totals(inputs)

        quote.discount_amount = totals.discount_amount
        quote.after_discount = totals.after_discount
        quote.tax_amount = totals.tax_amount
        quote.total = totals.total
        self._session.flush()
        return totals

    def preview_totals(
        self,
        line_items: Sequence[LineItemInput],
        *,
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        discount_value: Decimal = ZERO,
        tax_rate: Decimal = ZERO,
        tax_amount: Decimal = ZERO,
        is_manual_tax: bool = False,
    ) -> QuotePreview:
        """Run the same cascade the persisted quote uses, without saving."""
        results = []
        for item in line_items:
            validate_line_item(item)
            results.append(calculate_line_item(item))
        inputs = QuoteFinancialInput(
            subtotal=sum_line_totals(results),
            discount_type=discount_type,
            discount_value=discount_value,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            is_manual_tax=is_manual_tax,
        )
        validate_quote_financials(inputs)
        return QuotePreview(line_items=tuple(results), totals=calculate_quote_totals(inputs))

    # =========================================================================
    # Quotes
    # =========================================================================

    def create_quote(
        self,
        title: str,
        *,
        project_id: UUID | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        tax_rate: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> Quote:
        rate = _optional_decimal(tax_rate)
        with transaction_boundary(self._session, "quote_create", title=title):
            sequence = self._sequences.next_value(SequenceService.QUOTE)
            quote = QuoteModel(
                quote_number=format_quote_number(self._config.quote_number_prefix, sequence),
                title=title,
                project_id=project_id,
                customer_name=customer_name,
                customer_email=customer_email,
                status=QuoteStatus.DRAFT.value,
                subtotal=ZERO,
                discount_type=DiscountType.PERCENTAGE.value,
                discount_value=ZERO,
                discount_amount=ZERO,
                after_discount=ZERO,
                tax_rate=rate if rate is not None else self._config.default_tax_rate,
                tax_amount=ZERO,
                is_manual_tax=False,
                total=ZERO,
                down_payment_percentage=self._config.default_down_payment_percentage,
                milestone_payment_percentage=self._config.default_milestone_payment_percentage,
                final_payment_percentage=self._config.default_final_payment_percentage,
                created_by_id=actor_id,
            )
            self._session.add(quote)
            self._session.flush()
            self._recompute(quote)
            dto = quote.to_dto()

        logger.info(
            "quote_created",
            extra={"quote_id": str(dto.id), "quote_number": dto.quote_number},
        )
        return dto

    # =========================================================================
    # Line items
    # =========================================================================

    def add_line_item(
        self,
        quote_id: UUID,
        description: str,
        *,
        quantity: Decimal,
        unit_price: Decimal,
        discount_percentage: Decimal = ZERO,
        discount_amount: Decimal = ZERO,
        category: str | None = None,
    ) -> Quote:
        pricing = LineItemInput(
            quantity=quantity,
            unit_price=unit_price,
            discount_percentage=discount_percentage,
            discount_amount=discount_amount,
        )
        validate_line_item(pricing)

        with transaction_boundary(self._session, "quote_line_item_add", quote_id=quote_id):
            quote = self._load_draft(quote_id, "edit")
            quote.line_items.append(
                QuoteLineItemModel(
                    description=description,
                    quantity=pricing.quantity,
                    unit_price=pricing.unit_price,
                    discount_percentage=pricing.discount_percentage,
                    discount_amount=pricing.discount_amount,
                    total_price=calculate_line_item(pricing).total,
                    category=category,
                    sort_order=len(quote.line_items),
                )
            )
            self._recompute(quote)
            dto = quote.to_dto()
        return dto

    def update_line_item(
        self,
        quote_id: UUID,
        line_item_id: UUID,
        *,
        description: str | None = None,
        quantity: Decimal | None = None,
        unit_price: Decimal | None = None,
        discount_percentage: Decimal | None = None,
        discount_amount: Decimal | None = None,
        category: str | None = None,
    ) -> Quote:
        """Apply the supplied fields; ``None`` leaves a field unchanged."""
        with transaction_boundary(self._session, "quote_line_item_update", quote_id=quote_id):
            quote = self._load_draft(quote_id, "edit")
            item = self._find_line_item(quote, line_item_id)

            pricing = LineItemInput(
                quantity=item.quantity if quantity is None else quantity,
                unit_price=item.unit_price if unit_price is None else unit_price,
                discount_percentage=(
                    item.discount_percentage
                    if discount_percentage is None
                    else discount_percentage
                ),
                discount_amount=(
                    item.discount_amount if discount_amount is None else discount_amount
                ),
            )
            validate_line_item(pricing)

            if description is not None:
                item.description = description
            if category is not None:
                item.category = category
            item.quantity = pricing.quantity
            item.unit_price = pricing.unit_price
            item.discount_percentage = pricing.discount_percentage
            item.discount_amount = pricing.discount_amount
            self._recompute(quote)
            dto = quote.to_dto()
        return dto

    def remove_line_item(self, quote_id: UUID, line_item_id: UUID) -> Quote:
        with transaction_boundary(self._session, "quote_line_item_remove", quote_id=quote_id):
            quote = self._load_draft(quote_id, "edit")
            quote.line_items.remove(self._find_line_item(quote, line_item_id))
            for position, item in enumerate(quote.line_items):
                item.sort_order = position
            self._recompute(quote)
            dto = quote.to_dto()
        return dto

    # =========================================================================
    # Financials and tax mode
    # =========================================================================

    @staticmethod
    def _apply_tax_mode(
        quote: QuoteModel,
        is_manual_tax: bool,
        tax_amount: Decimal | None,
    ) -> None:
        """
        Manual mode keeps the supplied amount, or freezes the current one.
        Rate mode ignores any stored amount; the recompute derives it.
        """
        if tax_amount is not None and not is_manual_tax:
            raise InvalidFieldCombinationError(
                ["taxAmount", "isManualTax"],
                "a tax amount can only be entered in manual tax mode",
            )
        quote.is_manual_tax = is_manual_tax
        if is_manual_tax and tax_amount is not None:
            quote.tax_amount = tax_amount

    def update_financials(
        self,
        quote_id: UUID,
        *,
        discount_percentage: Decimal | None = None,
        discount_amount: Decimal | None = None,
        tax_rate: Decimal | None = None,
        tax_amount: Decimal | None = None,
        is_manual_tax: bool | None = None,
    ) -> Quote:
        """
        Patch the quote-level discount and tax inputs, then recompute.

        A discount percentage above zero wins over a discount amount.  An
        explicit amount on its own switches the discount to fixed.
        """
        percentage = _optional_decimal(discount_percentage)
        amount = _optional_decimal(discount_amount)
        rate = _optional_decimal(tax_rate)
        manual_amount = _optional_decimal(tax_amount)

        with transaction_boundary(self._session, "quote_financials_update", quote_id=quote_id):
            quote = self._load_draft(quote_id, "edit")

            if percentage is not None and percentage > ZERO:
                quote.discount_type = DiscountType.PERCENTAGE.value
                quote.discount_value = percentage
            elif amount is not None:
                quote.discount_type = DiscountType.FIXED.value
                quote.discount_value = amount
            elif percentage is not None:
                quote.discount_type = DiscountType.PERCENTAGE.value
                quote.discount_value = percentage

            if rate is not None:
                quote.tax_rate = rate
            manual = bool(quote.is_manual_tax) if is_manual_tax is None else is_manual_tax
            self._apply_tax_mode(quote, manual, manual_amount)

            totals = self._recompute(quote)
            dto = quote.to_dto()

        logger.info(
            "quote_financials_updated",
            extra={
                "quote_id": str(quote_id),
                "discount_type": dto.discount_type.value,
                "is_manual_tax": dto.is_manual_tax,
                "total": str(totals.total),
            },
        )
        return dto

    def set_tax_mode(
        self,
        quote_id: UUID,
        is_manual_tax: bool,
        tax_amount: Decimal | None = None,
    ) -> Quote:
        """Switch between rate-derived and manually entered tax, and recompute."""
        manual_amount = _optional_decimal(tax_amount)
        with transaction_boundary(self._session, "quote_tax_mode", quote_id=quote_id):
            quote = self._load_draft(quote_id, "change tax mode of")
            self._apply_tax_mode(quote, is_manual_tax, manual_amount)
            self._recompute(quote)
            dto = quote.to_dto()

        logger.info(
            "quote_tax_mode_changed",
            extra={
                "quote_id": str(quote_id),
                "is_manual_tax": is_manual_tax,
                "tax_amount": str(dto.tax_amount),
            },
        )
        return dto

    # =========================================================================
    # Payment schedule
    # =========================================================================

    def _schedule_view(self, quote: QuoteModel) -> PaymentScheduleView:
        schedule = quote.payment_schedule()
        validation = validate_payment_schedule(schedule)
        return PaymentScheduleView(
            quote=quote.to_dto(),
            schedule=schedule,
            validation=validation,
            amounts=split_payment_schedule(quote.total, schedule) if validation.is_valid else None,
        )

    def get_payment_schedule(self, quote_id: UUID) -> PaymentScheduleView:
        return self._schedule_view(self._load(quote_id))

    def update_payment_schedule(
        self,
        quote_id: UUID,
        *,
        down_payment_percentage: Decimal,
        milestone_payment_percentage: Decimal,
        final_payment_percentage: Decimal,
    ) -> PaymentScheduleView:
        """
        Save the three percentages even when they do not total 100.

        The validation result reports the actual sum; sending is what
        enforces it.
        """
        schedule = PaymentSchedule(
            down_payment_percentage=down_payment_percentage,
            milestone_payment_percentage=milestone_payment_percentage,
            final_payment_percentage=final_payment_percentage,
        )
        check_schedule_bounds(schedule)

        with transaction_boundary(self._session, "quote_schedule_update", quote_id=quote_id):
            quote = self._load_draft(quote_id, "edit")
            quote.down_payment_percentage = schedule.down_payment_percentage
            quote.milestone_payment_percentage = schedule.milestone_payment_percentage
            quote.final_payment_percentage = schedule.final_payment_percentage
            self._session.flush()
            view = self._schedule_view(quote)

        if not view.validation.is_valid:
            logger.info(
                "quote_schedule_saved_invalid",
                extra={"quote_id": str(quote_id), "total": str(view.validation.total)},
            )
        return view

    # =========================================================================
    # Sending
    # =========================================================================

    def send_quote(self, quote_id: UUID) -> Quote:
        """
        Raises:
            InvalidStateTransitionError: quote is not a draft.
            PaymentScheduleInvalidError: percentages do not total exactly 100.
        """
        with transaction_boundary(self._session, "quote_send", quote_id=quote_id):
            quote = self._load_draft(quote_id, "send")
            require_valid_payment_schedule(quote.payment_schedule())
            self._recompute(quote)
            quote.status = QuoteStatus.SENT.value
            quote.sent_at = self._clock.now()
            self._session.flush()
            dto = quote.to_dto()

        logger.info(
            "quote_sent",
            extra={
                "quote_id": str(quote_id),
                "quote_number": dto.quote_number,
                "total": str(dto.total),
            },
        )
        return dto
