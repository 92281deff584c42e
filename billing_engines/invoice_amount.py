"""
Invoice Amount Calculator.

Pure functions with deterministic behavior. No I/O.

Derives the amount of an invoice from a billable unit (a milestone or a
billable task) and, for percentage billing, the project's total budget:

- percentage: total budget x billing percentage / 100
- fixed:      billable amount
- hourly:     billing rate x actual hours

The result is rounded half-up to cents once, at the end.

Usage:
    unit = BillableUnit(
        billing_type=BillingType.PERCENTAGE,
        billing_percentage=Decimal("25"),
    )
    validate_billable_unit(unit)
    calculate_invoice_amount(unit, project_total_budget=Decimal("10000"))
    # Decimal("2500.00")
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
    percent_of,
    round_money,
    to_decimal,
)
from billing_kernel.exceptions import (
    MissingBillingFieldError,
    NegativeAmountError,
    PercentageOutOfRangeError,
)


class BillingType(str, Enum):
    """How a billable unit's invoice amount is derived."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"
    HOURLY = "hourly"


@dataclass(frozen=True)
class BillableUnit:
    """Billing configuration of a milestone or task at bill time."""

    billing_type: BillingType
    billing_percentage: Decimal | None = None
    billable_amount: Decimal | None = None
    billing_rate: Decimal | None = None
    actual_hours: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "billing_type", BillingType(self.billing_type))
        for name in ("billing_percentage", "billable_amount", "billing_rate", "actual_hours"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))


def validate_billable_unit(unit: BillableUnit) -> None:
    """
    Check that every field the billing type needs is present and sane.

    A zero billing percentage counts as missing: a billable milestone must
    carry a share of the budget.

    Raises:
        MissingBillingFieldError: required field absent.
        PercentageOutOfRangeError: billing percentage outside (0, 100].
        NegativeAmountError: negative amount, rate, or hours.
        AmountOutOfRangeError: a value above the stored maximum, or any
            value finer than cents.
    """
    billing_type = unit.billing_type.value
    if unit.billing_type is BillingType.PERCENTAGE:
        if unit.billing_percentage is None or unit.billing_percentage == ZERO:
            raise MissingBillingFieldError("billingPercentage", billing_type)
        if not ZERO < unit.billing_percentage <= HUNDRED:
            raise PercentageOutOfRangeError("billingPercentage", unit.billing_percentage)
        check_amount_bounds("billingPercentage", unit.billing_percentage, HUNDRED)
    elif unit.billing_type is BillingType.FIXED:
        if unit.billable_amount is None:
            raise MissingBillingFieldError("billableAmount", billing_type)
        if unit.billable_amount < ZERO:
            raise NegativeAmountError("billableAmount", unit.billable_amount)
        check_amount_bounds("billableAmount", unit.billable_amount)
    else:
        if unit.billing_rate is None:
            raise MissingBillingFieldError("billingRate", billing_type)
        if unit.actual_hours is None:
            raise MissingBillingFieldError("actualHours", billing_type)
        if unit.billing_rate < ZERO:
            raise NegativeAmountError("billingRate", unit.billing_rate)
        if unit.actual_hours < ZERO:
            raise NegativeAmountError("actualHours", unit.actual_hours)
        check_amount_bounds("billingRate", unit.billing_rate)
        check_amount_bounds("actualHours", unit.actual_hours)


@traced_engine("invoice_amount", "1.0")
def calculate_invoice_amount(unit: BillableUnit, project_total_budget: Decimal) -> Decimal:
    """Invoice amount for a validated unit, rounded to cents."""
    if unit.billing_type is BillingType.PERCENTAGE:
        amount = percent_of(to_decimal(project_total_budget), unit.billing_percentage)
    elif unit.billing_type is BillingType.FIXED:
        amount = unit.billable_amount
    else:
        amount = unit.billing_rate * unit.actual_hours
    return round_money(amount)
