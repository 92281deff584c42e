"""
Quote Module.

Quotes and their line items.  All figures come from the pure calculators in
``billing_engines``; this module persists them and enforces the draft/send
rules.
"""

from billing_modules.quote.models import Quote, QuoteLineItem, QuoteStatus
from billing_modules.quote.service import (
    PaymentScheduleView,
    QuotePreview,
    QuoteService,
    format_quote_number,
)

__all__ = [
    "Quote",
    "QuoteLineItem",
    "QuoteStatus",
    "QuoteService",
    "QuotePreview",
    "PaymentScheduleView",
    "format_quote_number",
]
