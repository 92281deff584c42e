"""
Payment Schedule Validator.

Pure functions with deterministic behavior. No I/O.

A quote splits its total into a down payment, a milestone payment, and a
final payment, each expressed as a percentage.  The split is valid only when
the three percentages add up to exactly 100 (Decimal equality, no tolerance).
An invalid schedule may be saved on a draft quote; it is rejected when the
quote is sent.

Usage:
    schedule = PaymentSchedule(Decimal("40"), Decimal("40"), Decimal("20"))
    check = validate_payment_schedule(schedule)
    assert check.is_valid and check.total == Decimal("100")

    amounts = split_payment_schedule(Decimal("173.60"), schedule)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from billing_kernel.domain.money import HUNDRED, ZERO, percent_of, round_money, to_decimal
from billing_kernel.exceptions import PaymentScheduleInvalidError, PercentageOutOfRangeError


@dataclass(frozen=True)
class PaymentSchedule:
    """Down / milestone / final percentages of a quote."""

    down_payment_percentage: Decimal
    milestone_payment_percentage: Decimal
    final_payment_percentage: Decimal

    def __post_init__(self) -> None:
        for name in (
            "down_payment_percentage",
            "milestone_payment_percentage",
            "final_payment_percentage",
        ):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    @property
    def total(self) -> Decimal:
        return (
            self.down_payment_percentage
            + self.milestone_payment_percentage
            + self.final_payment_percentage
        )


@dataclass(frozen=True)
class ScheduleValidation:
    """Outcome of a schedule check; ``total`` is reported either way."""

    is_valid: bool
    total: Decimal
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class PaymentAmounts:
    """Currency amounts of each installment; they always sum to the quote total."""

    down_payment: Decimal
    milestone_payment: Decimal
    final_payment: Decimal


_FIELD_NAMES = {
    "down_payment_percentage": "downPaymentPercentage",
    "milestone_payment_percentage": "milestonePaymentPercentage",
    "final_payment_percentage": "finalPaymentPercentage",
}


def check_schedule_bounds(schedule: PaymentSchedule) -> None:
    """
    Each percentage must independently lie in [0, 100].

    Raises:
        PercentageOutOfRangeError: naming the first offending field.
    """
    for attr, field in _FIELD_NAMES.items():
        value = getattr(schedule, attr)
        if not ZERO <= value <= HUNDRED:
            raise PercentageOutOfRangeError(field, value)


def validate_payment_schedule(schedule: PaymentSchedule) -> ScheduleValidation:
    """Report whether the schedule is sendable, with the actual sum."""
    errors: list[str] = []
    for attr, field in _FIELD_NAMES.items():
        value = getattr(schedule, attr)
        if not ZERO <= value <= HUNDRED:
            errors.append(f"{field} must be between 0 and 100")
    total = schedule.total
    if total != HUNDRED:
        errors.append(f"Payment percentages must total 100%, currently {total}%")
    return ScheduleValidation(is_valid=not errors, total=total, errors=tuple(errors))


def require_valid_payment_schedule(schedule: PaymentSchedule) -> None:
    """
    Raises:
        PercentageOutOfRangeError: a single percentage outside [0, 100].
        PaymentScheduleInvalidError: the sum is not exactly 100.
    """
    check_schedule_bounds(schedule)
    if schedule.total != HUNDRED:
        raise PaymentScheduleInvalidError(
            schedule.total,
            schedule.down_payment_percentage,
            schedule.milestone_payment_percentage,
            schedule.final_payment_percentage,
        )


def split_payment_schedule(total: Decimal, schedule: PaymentSchedule) -> PaymentAmounts:
    """
    Installment amounts for a valid schedule.

    The final payment absorbs the rounding remainder so the three amounts
    add up to ``total`` exactly.
    """
    total = round_money(to_decimal(total))
    down = round_money(percent_of(total, schedule.down_payment_percentage))
    milestone = round_money(percent_of(total, schedule.milestone_payment_percentage))
    return PaymentAmounts(
        down_payment=down,
        milestone_payment=milestone,
        final_payment=total - down - milestone,
    )
