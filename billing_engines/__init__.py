"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    billing calculators.  This is the canonical import surface for
    billing_modules and billing_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel.domain, billing_kernel.exceptions and
    sibling engine modules.  MUST NOT import billing_modules or
    billing_services.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic: floats are rejected at construction.
    - Determinism: identical inputs always produce identical outputs.
"""

from billing_engines.billing_allocation import (
    BillingAllocation,
    check_allocation,
    summarize_allocation,
)
from billing_engines.billing_state import (
    BillDecision,
    MilestoneBillingState,
    MilestoneSnapshot,
    MilestoneStatus,
    TaskSnapshot,
    TaskStatus,
    milestone_billing_state,
    plan_milestone_bill,
    plan_milestone_cancel,
    plan_milestone_complete,
    plan_milestone_send,
    plan_task_bill,
    plan_task_complete,
)
from billing_engines.invoice_amount import (
    BillableUnit,
    BillingType,
    calculate_invoice_amount,
    validate_billable_unit,
)
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

__all__ = [
    "BillDecision",
    "BillableUnit",
    "BillingAllocation",
    "BillingType",
    "DiscountType",
    "LineItemInput",
    "LineItemResult",
    "MilestoneBillingState",
    "MilestoneSnapshot",
    "MilestoneStatus",
    "PaymentAmounts",
    "PaymentSchedule",
    "QuoteFinancialInput",
    "QuoteTotals",
    "ScheduleValidation",
    "TaskSnapshot",
    "TaskStatus",
    "calculate_invoice_amount",
    "calculate_line_item",
    "calculate_quote_totals",
    "check_allocation",
    "check_schedule_bounds",
    "milestone_billing_state",
    "plan_milestone_bill",
    "plan_milestone_cancel",
    "plan_milestone_complete",
    "plan_milestone_send",
    "plan_task_bill",
    "plan_task_complete",
    "require_valid_payment_schedule",
    "split_payment_schedule",
    "sum_line_totals",
    "summarize_allocation",
    "validate_billable_unit",
    "validate_line_item",
    "validate_payment_schedule",
    "validate_quote_financials",
]
