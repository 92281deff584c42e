"""
Configuration schema (``billing_config.schema``).

Frozen dataclass describing every runtime setting of the billing engine.
Defaults mirror ``defaults.yaml`` so services can be built without a file
in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class BillingConfig:
    """Runtime settings; produced only by ``billing_config.get_active_config``."""

    database_url: str = "sqlite:///billing.db"
    sql_echo: bool = False
    log_level: str = "INFO"

    invoice_number_prefix: str = "INV"
    quote_number_prefix: str = "QUO"
    invoice_due_days: int = 14

    default_tax_rate: Decimal = Decimal("10.60")
    default_down_payment_percentage: Decimal = Decimal("40")
    default_milestone_payment_percentage: Decimal = Decimal("40")
    default_final_payment_percentage: Decimal = Decimal("20")

    task_conversion_billing_percentage: Decimal = Decimal("10")

    def __post_init__(self) -> None:
        if self.invoice_due_days < 0:
            raise ValueError("invoice_due_days must not be negative")
        if not self.invoice_number_prefix or not self.quote_number_prefix:
            raise ValueError("document number prefixes must not be empty")
