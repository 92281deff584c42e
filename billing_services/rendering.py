"""
Invoice document rendering hook.

PDF generation is an external collaborator.  The download endpoint hands the
invoice to whichever ``InvoiceRenderer`` the application was built with and
streams back the bytes it returns.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from billing_modules.invoice.models import Invoice


class InvoiceRenderer(ABC):
    """Produces the customer-facing document for an invoice."""

    media_type: str = "application/pdf"

    @abstractmethod
    def render(self, invoice: Invoice) -> bytes:
        """Return the rendered document."""

    def filename(self, invoice: Invoice) -> str:
        return f"{invoice.invoice_number}.pdf"
