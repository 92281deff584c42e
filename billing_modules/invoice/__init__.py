"""
Invoice Module.

Invoices and the Invoice Generator that creates one draft invoice per
billable milestone or task.
"""

from billing_modules.invoice.generator import InvoiceGenerator, format_invoice_number
from billing_modules.invoice.models import Invoice, InvoiceStatus, InvoiceType

__all__ = [
    "Invoice",
    "InvoiceStatus",
    "InvoiceType",
    "InvoiceGenerator",
    "format_invoice_number",
]
