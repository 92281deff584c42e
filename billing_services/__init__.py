"""
Billing services: orchestration over engines and modules.

The Billing Orchestrator is the only commit/rollback owner for billing
transitions; the notifier delivers sent invoices after commit.
"""

from billing_services.billing_orchestrator import (
    BillingOrchestrator,
    BillingResult,
    SendResult,
    TaskCompletionResult,
)
from billing_services.notifier import InvoiceNotifier, LoggingInvoiceNotifier
from billing_services.rendering import InvoiceRenderer

__all__ = [
    "BillingOrchestrator",
    "BillingResult",
    "SendResult",
    "TaskCompletionResult",
    "InvoiceNotifier",
    "LoggingInvoiceNotifier",
    "InvoiceRenderer",
]
