"""
Quote Financial Calculator.

Pure functions with deterministic behavior. No I/O.

This is the single authoritative implementation of the quote total cascade.
The persisted quote figures, the preview endpoint, and any client rendering
all come from ``calculate_quote_totals``; nothing else may re-derive them.

Cascade:
1. quote discount = subtotal x value / 100 (percentage) or value (fixed)
2. after discount = max(0, subtotal - quote discount)
3. tax = entered tax amount (manual mode) or after discount x rate / 100
4. total = after discount + tax

Rounding: tax is computed from the unrounded after-discount figure; each
displayed component is then rounded half-up to cents and the total is the
sum of the displayed components, so the figures a customer sees always foot
exactly and recomputing from the same inputs is idempotent.

Usage:
    totals = calculate_quote_totals(QuoteFinancialInput(
        subtotal=Decimal("180"),
        discount_type=DiscountType.FIXED,
        discount_value=Decimal("20"),
        tax_rate=Decimal("8.5"),
    ))
    assert totals.total == Decimal("173.60")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from billing_engines.tracer import traced_engine
from billing_kernel.domain.money import (
    HUNDRED,
    ZERO,
    check_amount_bounds,
    clamp_non_negative,
    percent_of,
    round_money,
    to_decimal,
)
from billing_kernel.exceptions import NegativeAmountError, PercentageOutOfRangeError


class DiscountType(str, Enum):
    """How a quote-level discount value is interpreted."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class QuoteFinancialInput:
    """
    Quote-level financial configuration.

    ``tax_amount`` is only read when ``is_manual_tax`` is set.
    """

    subtotal: Decimal
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = ZERO
    tax_rate: Decimal = ZERO
    tax_amount: Decimal = ZERO
    is_manual_tax: bool = False

    def __post_init__(self) -> None:
        for name in ("subtotal", "discount_value", "tax_rate", "tax_amount"):
            value = getattr(self, name)
            object.__setattr__(
                self, name, ZERO if value is None else to_decimal(value)
            )
        object.__setattr__(self, "discount_type", DiscountType(self.discount_type))


@dataclass(frozen=True)
class QuoteTotals:
    """Displayed quote figures.  ``total == after_discount + tax_amount``."""

    subtotal: Decimal
    discount_amount: Decimal
    after_discount: Decimal
    tax_amount: Decimal
    total: Decimal


def validate_quote_financials(inputs: QuoteFinancialInput) -> None:
    """
    Reject configurations the calculator must never see.

    Raises:
        PercentageOutOfRangeError: tax rate, or a percentage discount,
            outside [0, 100].
        NegativeAmountError: negative subtotal, fixed discount, or manual tax.
        AmountOutOfRangeError: an amount above the stored maximum, or any
            value finer than cents.
    """
    if inputs.subtotal < ZERO:
        raise NegativeAmountError("subtotal", inputs.subtotal)
    if inputs.discount_type is DiscountType.PERCENTAGE:
        if not ZERO <= inputs.discount_value <= HUNDRED:
            raise PercentageOutOfRangeError("discountPercentage", inputs.discount_value)
    elif inputs.discount_value < ZERO:
        raise NegativeAmountError("discountAmount", inputs.discount_value)
    if not ZERO <= inputs.tax_rate <= HUNDRED:
        raise PercentageOutOfRangeError("taxRate", inputs.tax_rate)
    if inputs.is_manual_tax and inputs.tax_amount < ZERO:
        raise NegativeAmountError("taxAmount", inputs.tax_amount)
    check_amount_bounds("subtotal", inputs.subtotal)
    if inputs.discount_type is DiscountType.PERCENTAGE:
        check_amount_bounds("discountPercentage", inputs.discount_value, HUNDRED)
    else:
        check_amount_bounds("discountAmount", inputs.discount_value)
    check_amount_bounds("taxRate", inputs.tax_rate, HUNDRED)
    if inputs.is_manual_tax:
        check_amount_bounds("taxAmount", inputs.tax_amount)


def compute_discount(inputs: QuoteFinancialInput) -> Decimal:
    """Quote-level discount at full precision."""
    if inputs.discount_type is DiscountType.PERCENTAGE:
        return percent_of(inputs.subtotal, inputs.discount_value)
    return inputs.discount_value


def compute_tax(after_discount: Decimal, inputs: QuoteFinancialInput) -> Decimal:
    """Tax for the current tax mode, at full precision."""
    if inputs.is_manual_tax:
        return inputs.tax_amount
    return percent_of(after_discount, inputs.tax_rate)


@traced_engine("quote_totals", "1.0")
def calculate_quote_totals(inputs: QuoteFinancialInput) -> QuoteTotals:
    """Run the discount/tax cascade for a validated configuration."""
    discount = compute_discount(inputs)
    after_discount = clamp_non_negative(inputs.subtotal - discount)
    tax = compute_tax(after_discount, inputs)

    shown_after_discount = round_money(after_discount)
    shown_tax = round_money(tax)
    return QuoteTotals(
        subtotal=round_money(inputs.subtotal),
        discount_amount=round_money(discount),
        after_discount=shown_after_discount,
        tax_amount=shown_tax,
        total=shown_after_discount + shown_tax,
    )
