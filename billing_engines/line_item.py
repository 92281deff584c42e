"""
Line-Item Calculator.

Pure functions with deterministic behavior. No I/O.

Turns one quote line (quantity, unit price, discount) into its subtotal,
discount, and total.  Called for every line of a quote; the rounded totals
are summed to form the quote subtotal.

Rules:
- A discount percentage above zero takes precedence over an explicit
  discount amount; the amount is ignored in that case.
- The total never goes below zero: total = max(0, quantity x price - discount).
- Inputs are validated separately by ``validate_line_item``.  A percentage
  outside [0, 100] is rejected, never clamped, because clamping would hide a
  client-side unit-entry mistake.

Usage:
    from billing_engines.line_item import LineItemInput, calculate_line_item

    result = calculate_line_item(LineItemInput(
        quantity=Decimal("2"),
        unit_price=Decimal("100"),
        discount_percentage=Decimal("10"),
    ))
    assert result.total == Decimal("180.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

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


@dataclass(frozen=True)
class LineItemInput:
    """Pricing inputs of one quote line."""

    quantity: Decimal
    unit_price: Decimal
    discount_percentage: Decimal = ZERO
    discount_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in ("quantity", "unit_price", "discount_percentage", "discount_amount"):
            value = getattr(self, name)
            object.__setattr__(
                self, name, ZERO if value is None else to_decimal(value)
            )


@dataclass(frozen=True)
class LineItemResult:
    """Rounded, user-visible figures for one line."""

    subtotal: Decimal
    discount: Decimal
    total: Decimal


def validate_line_item(item: LineItemInput) -> None:
    """
    Reject inputs the calculator must never see.

    Raises:
        NegativeAmountError: negative quantity, unit price, or discount amount.
        PercentageOutOfRangeError: discount percentage outside [0, 100].
        AmountOutOfRangeError: a value, or quantity x unit price, above the
            stored maximum, or any value finer than cents.
    """
    if item.quantity < ZERO:
        raise NegativeAmountError("quantity", item.quantity)
    if item.unit_price < ZERO:
        raise NegativeAmountError("unitPrice", item.unit_price)
    if item.discount_amount < ZERO:
        raise NegativeAmountError("discountAmount", item.discount_amount)
    if not ZERO <= item.discount_percentage <= HUNDRED:
        raise PercentageOutOfRangeError("discountPercentage", item.discount_percentage)
    check_amount_bounds("quantity", item.quantity)
    check_amount_bounds("unitPrice", item.unit_price)
    check_amount_bounds("discountAmount", item.discount_amount)
    check_amount_bounds("discountPercentage", item.discount_percentage, HUNDRED)
    check_amount_bounds("totalPrice", round_money(item.quantity * item.unit_price))


def calculate_line_item(item: LineItemInput) -> LineItemResult:
    """Compute subtotal, discount, and total for a validated line item."""
    subtotal = item.quantity * item.unit_price
    if item.discount_percentage > ZERO:
        discount = percent_of(subtotal, item.discount_percentage)
    else:
        discount = item.discount_amount
    total = clamp_non_negative(subtotal - discount)
    return LineItemResult(
        subtotal=round_money(subtotal),
        discount=round_money(discount),
        total=round_money(total),
    )


def sum_line_totals(results: Iterable[LineItemResult]) -> Decimal:
    """Quote subtotal: the sum of the already-rounded line totals."""
    return sum((r.total for r in results), ZERO)
