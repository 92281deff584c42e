"""
Billing modules: persistence and per-aggregate services.

- project: projects, milestones, billable tasks
- quote: quotes and their line items
- invoice: invoices and the Invoice Generator
"""
