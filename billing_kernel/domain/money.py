"""
Fixed-point money primitive.

Responsibility:
    The single place where currency and percentage values are coerced,
    scaled, and rounded.  Every calculator and service goes through these
    helpers instead of doing its own Decimal plumbing.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - No floats: ``to_decimal`` refuses float (and bool) input outright,
      because binary floating point cannot represent common currency
      fractions such as 0.1.
    - Rounding policy: ROUND_HALF_UP to 2 places, applied only where a
      value becomes user-visible.  ``round_money`` is the ONLY sanctioned
      rounding function.
    - Percentage math keeps full precision: ``percent_of`` never rounds.

Non-goals:
    Multi-currency.  Amounts are plain Decimals in the project's currency.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from billing_kernel.exceptions import AmountOutOfRangeError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Largest value a stored amount, quantity, rate or hours column holds
MAX_AMOUNT = Decimal("99999999.99")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce a money or percentage input to Decimal.

    Raises:
        TypeError: for float, bool, or any non-numeric type.
        ValueError: for a string that is not a decimal number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"Monetary values must be Decimal, int or str, got {type(value).__name__}"
        )
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal number: {value!r}") from exc
        if not parsed.is_finite():
            raise ValueError(f"Not a finite decimal number: {value!r}")
        return parsed
    raise TypeError(
        f"Monetary values must be Decimal, int or str, got {type(value).__name__}"
    )


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value for display or persistence.

    This is the ONLY sanctioned rounding function for billing values.
    All other code delegates rounding here so precision handling is
    identical everywhere.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def percent_of(base: Decimal, percentage: Decimal) -> Decimal:
    """Return ``base * percentage / 100`` at full precision (unrounded)."""
    return base * percentage / HUNDRED


def clamp_non_negative(value: Decimal) -> Decimal:
    """max(0, value)."""
    return value if value > ZERO else ZERO


def check_amount_bounds(
    field: str,
    value: Decimal | None,
    maximum: Decimal = MAX_AMOUNT,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> None:
    """
    Reject a value above ``maximum`` or with more than ``decimal_places``
    places.

    Called by the validators before any arithmetic, so the calculators
    never multiply or quantize a value outside the stored range.

    Raises:
        AmountOutOfRangeError: value too large or too precise.
    """
    if value is None:
        return
    if abs(value) > maximum or value != round_money(value, decimal_places):
        raise AmountOutOfRangeError(field, value, maximum, decimal_places)
