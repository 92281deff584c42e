"""
Invoice-sent notification hook.

Sending an invoice is a customer-visible side effect.  The orchestrator
commits the send first and then hands the sent invoice to an
``InvoiceNotifier``; delivery (email, portal, webhook) is an external
collaborator plugged in here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from billing_kernel.logging_config import get_logger
from billing_modules.invoice.models import Invoice
from billing_modules.project.models import Milestone

logger = get_logger("services.notifier")


class InvoiceNotifier(ABC):
    """Delivers a sent invoice to the customer."""

    @abstractmethod
    def invoice_sent(self, invoice: Invoice, milestone: Milestone | None = None) -> None:
        """Called once, after the send has been committed."""


class LoggingInvoiceNotifier(InvoiceNotifier):
    """Default notifier: records the event and delivers nothing."""

    def invoice_sent(self, invoice: Invoice, milestone: Milestone | None = None) -> None:
        logger.info(
            "invoice_notification_sent",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "customer_email": invoice.customer_email,
                "amount": str(invoice.amount),
            },
        )
