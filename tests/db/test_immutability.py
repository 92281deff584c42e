"""
ORM-level immutability tests.

Verifies:
- Invoice amount, number and unit references never change after insert
- A sent invoice cannot be deleted or returned to draft
- Milestone and task ``invoice_id`` back-references are write-once
- Milestone ``billed_at`` is write-once
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.invoice_amount import BillingType
from billing_kernel.exceptions import ImmutabilityViolationError
from billing_modules.invoice.models import InvoiceStatus
from billing_modules.invoice.orm import InvoiceModel
from billing_modules.project.orm import MilestoneModel, TaskModel


@pytest.fixture
def billed(orchestrator, project, completed_milestone):
    return orchestrator.bill_milestone(project.id, completed_milestone.id)


@pytest.fixture
def sent(orchestrator, project, billed):
    return orchestrator.send_milestone_invoice(project.id, billed.milestone.id)


class TestInvoiceImmutability:
    def test_amount_cannot_change(self, session, billed):
        invoice = session.get(InvoiceModel, billed.invoice.id)
        invoice.amount = Decimal("1.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert "amount" in exc_info.value.reason

    def test_invoice_number_cannot_change(self, session, billed):
        invoice = session.get(InvoiceModel, billed.invoice.id)
        invoice.invoice_number = "INV-FORGED-000001"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_unit_reference_cannot_move(self, session, billed):
        invoice = session.get(InvoiceModel, billed.invoice.id)
        invoice.milestone_id = uuid4()

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_draft_description_can_be_edited(self, session, billed):
        invoice = session.get(InvoiceModel, billed.invoice.id)
        invoice.description = "Milestone Payment: Rough-in inspection (revised)"

        session.flush()

    def test_sent_invoice_cannot_return_to_draft(self, session, sent):
        invoice = session.get(InvoiceModel, sent.invoice.id)
        invoice.status = InvoiceStatus.DRAFT.value

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_sent_invoice_cannot_be_deleted(self, session, sent):
        invoice = session.get(InvoiceModel, sent.invoice.id)
        session.delete(invoice)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestBillingBackReferences:
    def test_milestone_invoice_id_is_write_once(self, session, billed):
        milestone = session.get(MilestoneModel, billed.milestone.id)
        milestone.invoice_id = uuid4()

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_milestone_invoice_id_cannot_be_cleared(self, session, billed):
        milestone = session.get(MilestoneModel, billed.milestone.id)
        milestone.invoice_id = None

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_billed_at_is_write_once(self, session, sent, clock):
        milestone = session.get(MilestoneModel, sent.milestone.id)
        milestone.billed_at = clock.now() + timedelta(days=1)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_task_invoice_id_is_write_once(self, session, orchestrator, project, create_task):
        task = create_task(
            is_billable=True, billing_type=BillingType.FIXED, billable_amount=Decimal("50"),
        )
        orchestrator.complete_task_and_bill(project.id, task.id)

        row = session.get(TaskModel, task.id)
        row.invoice_id = uuid4()

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
