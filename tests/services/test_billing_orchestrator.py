"""
Tests for the BillingOrchestrator.

Covers milestone completion, idempotent billing, atomic composites,
non-idempotent sending, task billing paths, and link repair.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from billing_engines.billing_state import MilestoneBillingState, MilestoneStatus, TaskStatus
from billing_engines.invoice_amount import BillingType
from billing_kernel.exceptions import (
    AmountOutOfRangeError,
    InvalidStateTransitionError,
    InvoiceAlreadySentError,
    InvoiceNotDraftedError,
    InvoiceNotFoundError,
    MilestoneNotFoundError,
    MissingBillingFieldError,
    NegativeAmountError,
    NotBillableError,
)
from billing_modules.invoice.models import InvoiceStatus, InvoiceType
from billing_modules.invoice.orm import InvoiceModel
from billing_modules.project.orm import TaskModel
from billing_services.billing_orchestrator import BillingOrchestrator
from billing_services.notifier import InvoiceNotifier


class RecordingNotifier(InvoiceNotifier):
    def __init__(self):
        self.sent = []

    def invoice_sent(self, invoice, milestone=None):
        self.sent.append((invoice, milestone))


class FailingNotifier(InvoiceNotifier):
    def invoice_sent(self, invoice, milestone=None):
        raise ConnectionError("mail relay unavailable")


def _invoice_count(session) -> int:
    return session.execute(select(func.count()).select_from(InvoiceModel)).scalar_one()


# ============================================================================
# Milestone completion
# ============================================================================


class TestCompleteMilestone:
    def test_completes_pending_milestone(self, orchestrator, project, create_milestone, clock):
        milestone = create_milestone()

        completed = orchestrator.complete_milestone(project.id, milestone.id)

        assert completed.status is MilestoneStatus.COMPLETED
        assert completed.billing_state is MilestoneBillingState.COMPLETED
        assert completed.actual_date == clock.now()

    def test_second_completion_rejected(self, orchestrator, project, completed_milestone):
        with pytest.raises(InvalidStateTransitionError):
            orchestrator.complete_milestone(project.id, completed_milestone.id)

    def test_unknown_milestone(self, orchestrator, project):
        with pytest.raises(MilestoneNotFoundError):
            orchestrator.complete_milestone(project.id, uuid4())


# ============================================================================
# Milestone billing
# ============================================================================


class TestBillMilestone:
    def test_bill_creates_draft_invoice(self, orchestrator, project, completed_milestone, captured_logs):
        result = orchestrator.bill_milestone(project.id, completed_milestone.id)

        assert result.created
        assert result.invoice.amount == Decimal("2500.00")
        assert result.invoice.status is InvoiceStatus.DRAFT
        assert result.invoice.invoice_type is InvoiceType.MILESTONE
        assert result.milestone.invoice_id == result.invoice.id
        assert result.milestone.billing_state is MilestoneBillingState.INVOICED_DRAFT

        created = [r for r in captured_logs() if r["message"] == "invoice_created"]
        assert len(created) == 1
        assert created[0]["project_id"] == str(project.id)
        assert created[0]["milestone_id"] == str(completed_milestone.id)

    def test_bill_is_idempotent(self, orchestrator, session, project, completed_milestone):
        first = orchestrator.bill_milestone(project.id, completed_milestone.id)

        second = orchestrator.bill_milestone(project.id, completed_milestone.id)

        assert not second.created
        assert second.invoice == first.invoice
        assert _invoice_count(session) == 1

    def test_pending_milestone_rejected(self, orchestrator, session, project, create_milestone):
        milestone = create_milestone()

        with pytest.raises(InvalidStateTransitionError):
            orchestrator.bill_milestone(project.id, milestone.id)

        assert _invoice_count(session) == 0

    def test_non_billable_rejected(self, orchestrator, project, create_milestone):
        milestone = create_milestone(is_billable=False, billing_percentage=None)
        orchestrator.complete_milestone(project.id, milestone.id)

        with pytest.raises(NotBillableError):
            orchestrator.bill_milestone(project.id, milestone.id)

    def test_missing_percentage_rolls_back(self, orchestrator, session, project, create_milestone):
        milestone = create_milestone(billing_percentage=None)
        orchestrator.complete_milestone(project.id, milestone.id)

        with pytest.raises(MissingBillingFieldError):
            orchestrator.bill_milestone(project.id, milestone.id)

        assert _invoice_count(session) == 0

    def test_milestone_of_other_project_not_found(
        self, orchestrator, project_service, completed_milestone
    ):
        other = project_service.create_project("Other", Decimal("100"))

        with pytest.raises(MilestoneNotFoundError):
            orchestrator.bill_milestone(other.id, completed_milestone.id)

    def test_orphan_invoice_is_linked_not_duplicated(
        self, orchestrator, session, project, completed_milestone, clock
    ):
        orphan = InvoiceModel(
            project_id=project.id,
            invoice_number="INV-ORPHAN-1",
            amount=Decimal("2500.00"),
            status=InvoiceStatus.DRAFT.value,
            invoice_type=InvoiceType.MILESTONE.value,
            issue_date=clock.today(),
            due_date=clock.today() + timedelta(days=14),
            description="Milestone Payment: Rough-in inspection",
            milestone_id=completed_milestone.id,
        )
        session.add(orphan)
        session.commit()

        result = orchestrator.bill_milestone(project.id, completed_milestone.id)

        assert not result.created
        assert result.invoice.id == orphan.id
        assert result.milestone.invoice_id == orphan.id
        assert _invoice_count(session) == 1


class TestCompleteAndBillMilestone:
    def test_pending_milestone_completed_and_billed(self, orchestrator, project, create_milestone):
        milestone = create_milestone()

        result = orchestrator.complete_and_bill_milestone(project.id, milestone.id)

        assert result.created
        assert result.milestone.status is MilestoneStatus.COMPLETED
        assert result.milestone.invoice_id == result.invoice.id

    def test_repeat_returns_existing(self, orchestrator, project, create_milestone):
        milestone = create_milestone()
        first = orchestrator.complete_and_bill_milestone(project.id, milestone.id)

        again = orchestrator.complete_and_bill_milestone(project.id, milestone.id)

        assert not again.created
        assert again.invoice.id == first.invoice.id

    def test_already_completed_milestone_is_billed(self, orchestrator, project, completed_milestone):
        result = orchestrator.complete_and_bill_milestone(project.id, completed_milestone.id)

        assert result.created

    def test_non_billable_left_pending(self, orchestrator, project_service, project, create_milestone):
        milestone = create_milestone(is_billable=False, billing_percentage=None)

        with pytest.raises(NotBillableError):
            orchestrator.complete_and_bill_milestone(project.id, milestone.id)

        assert project_service.get_milestone(project.id, milestone.id).status is MilestoneStatus.PENDING

    def test_billing_failure_undoes_completion(
        self, orchestrator, session, project_service, project, create_milestone
    ):
        milestone = create_milestone(billing_percentage=None)

        with pytest.raises(MissingBillingFieldError):
            orchestrator.complete_and_bill_milestone(project.id, milestone.id)

        reloaded = project_service.get_milestone(project.id, milestone.id)
        assert reloaded.status is MilestoneStatus.PENDING
        assert reloaded.invoice_id is None
        assert _invoice_count(session) == 0

    def test_cancelled_milestone_rejected(self, orchestrator, project_service, project, create_milestone):
        milestone = create_milestone()
        project_service.cancel_milestone(project.id, milestone.id)

        with pytest.raises(InvalidStateTransitionError):
            orchestrator.complete_and_bill_milestone(project.id, milestone.id)


# ============================================================================
# Sending
# ============================================================================


class TestSendMilestoneInvoice:
    @pytest.fixture
    def notifier(self):
        return RecordingNotifier()

    @pytest.fixture
    def sender(self, session, clock, config, notifier):
        return BillingOrchestrator(session, clock=clock, config=config, notifier=notifier)

    def test_send_before_bill(self, sender, project, completed_milestone):
        with pytest.raises(InvoiceNotDraftedError):
            sender.send_milestone_invoice(project.id, completed_milestone.id)

    def test_send_marks_invoice_and_milestone(self, sender, notifier, project, completed_milestone, clock):
        sender.bill_milestone(project.id, completed_milestone.id)

        result = sender.send_milestone_invoice(project.id, completed_milestone.id)

        assert result.notified
        assert result.invoice.status is InvoiceStatus.SENT
        assert result.invoice.sent_at == clock.now()
        assert result.milestone.billed_at == clock.now()
        assert result.milestone.billing_state is MilestoneBillingState.INVOICED_SENT
        assert [inv.id for inv, _ in notifier.sent] == [result.invoice.id]

    def test_second_send_rejected_and_billed_at_unchanged(
        self, sender, project_service, project, completed_milestone, clock
    ):
        sender.bill_milestone(project.id, completed_milestone.id)
        first = sender.send_milestone_invoice(project.id, completed_milestone.id)
        clock.advance(3600)

        with pytest.raises(InvoiceAlreadySentError):
            sender.send_milestone_invoice(project.id, completed_milestone.id)

        reloaded = project_service.get_milestone(project.id, completed_milestone.id)
        assert reloaded.billed_at is not None
        assert reloaded.billed_at.replace(tzinfo=None) == first.milestone.billed_at.replace(tzinfo=None)

    def test_bill_after_send_returns_sent_invoice(self, sender, project, completed_milestone):
        sender.bill_milestone(project.id, completed_milestone.id)
        sender.send_milestone_invoice(project.id, completed_milestone.id)

        result = sender.bill_milestone(project.id, completed_milestone.id)

        assert not result.created
        assert result.invoice.status is InvoiceStatus.SENT

    def test_notifier_failure_keeps_send(
        self, session, clock, config, project, completed_milestone, captured_logs
    ):
        orchestrator = BillingOrchestrator(
            session, clock=clock, config=config, notifier=FailingNotifier()
        )
        orchestrator.bill_milestone(project.id, completed_milestone.id)

        result = orchestrator.send_milestone_invoice(project.id, completed_milestone.id)

        assert not result.notified
        assert result.invoice.status is InvoiceStatus.SENT
        failures = [r for r in captured_logs() if r["message"] == "invoice_notification_failed"]
        assert failures and failures[0]["exc_type"] == "ConnectionError"


# ============================================================================
# Tasks
# ============================================================================


class TestCompleteTaskAndBill:
    def test_unlinked_fixed_task_billed(self, orchestrator, project, create_task, clock):
        task = create_task(
            "Permit", is_billable=True,
            billing_type=BillingType.FIXED, billable_amount=Decimal("450"),
        )

        result = orchestrator.complete_task_and_bill(project.id, task.id)

        assert result.task.status is TaskStatus.COMPLETED
        assert result.task.completed_at == clock.now()
        assert result.billing.created
        assert result.billing.invoice.amount == Decimal("450.00")
        assert result.billing.invoice.invoice_type is InvoiceType.REGULAR
        assert result.task.invoice_id == result.billing.invoice.id

    def test_hourly_task_records_hours(self, orchestrator, project, create_task):
        task = create_task(
            "Electrician", is_billable=True,
            billing_type=BillingType.HOURLY, billing_rate=Decimal("85.50"),
        )

        result = orchestrator.complete_task_and_bill(project.id, task.id, Decimal("12.5"))

        assert result.task.actual_hours == Decimal("12.50")
        assert result.billing.invoice.amount == Decimal("1068.75")

    def test_hourly_task_without_hours_is_not_completed(
        self, orchestrator, project_service, project, create_task
    ):
        task = create_task(
            "Electrician", is_billable=True,
            billing_type=BillingType.HOURLY, billing_rate=Decimal("85.50"),
        )

        with pytest.raises(MissingBillingFieldError):
            orchestrator.complete_task_and_bill(project.id, task.id)

        assert project_service.get_task(project.id, task.id).status is TaskStatus.TODO

    def test_non_billable_task_only_completed(self, orchestrator, session, project, create_task):
        task = create_task(is_billable=False)

        result = orchestrator.complete_task_and_bill(project.id, task.id)

        assert result.task.status is TaskStatus.COMPLETED
        assert result.billing is None
        assert _invoice_count(session) == 0

    def test_linked_task_bills_its_milestone(self, orchestrator, project, create_milestone, create_task):
        milestone = create_milestone(billing_percentage=Decimal("30"))
        task = create_task(is_billable=True, milestone_id=milestone.id)

        result = orchestrator.complete_task_and_bill(project.id, task.id)

        assert result.billing.created
        assert result.billing.invoice.amount == Decimal("3000.00")
        assert result.billing.invoice.milestone_id == milestone.id
        assert result.billing.milestone.status is MilestoneStatus.COMPLETED
        assert result.task.invoice_id is None

    def test_linked_to_non_billable_milestone(self, orchestrator, project_service, project, create_milestone, create_task):
        milestone = create_milestone(is_billable=False, billing_percentage=None)
        task = create_task(milestone_id=milestone.id)

        result = orchestrator.complete_task_and_bill(project.id, task.id)

        assert result.billing is None
        assert project_service.get_milestone(project.id, milestone.id).status is MilestoneStatus.COMPLETED

    def test_retry_converges_on_same_invoice(self, orchestrator, session, project, create_task):
        task = create_task(
            is_billable=True, billing_type=BillingType.FIXED, billable_amount=Decimal("100"),
        )
        first = orchestrator.complete_task_and_bill(project.id, task.id)

        again = orchestrator.complete_task_and_bill(project.id, task.id)

        assert not again.billing.created
        assert again.billing.invoice.id == first.billing.invoice.id
        assert _invoice_count(session) == 1

    def test_cancelled_task_rejected(self, orchestrator, session, project, create_task):
        task = create_task(is_billable=False)

        session.get(TaskModel, task.id).status = TaskStatus.CANCELLED.value
        session.commit()

        with pytest.raises(InvalidStateTransitionError):
            orchestrator.complete_task_and_bill(project.id, task.id)


class TestBillTask:
    def test_linked_task_rejected(self, orchestrator, project, create_milestone, create_task):
        milestone = create_milestone()
        task = create_task(is_billable=True, milestone_id=milestone.id)
        orchestrator.complete_task_and_bill(project.id, task.id)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            orchestrator.bill_task(project.id, task.id)

        assert exc_info.value.current_state == "linked_to_milestone"

    def test_unfinished_task_rejected(self, orchestrator, project, create_task):
        task = create_task(
            is_billable=True, billing_type=BillingType.FIXED, billable_amount=Decimal("100"),
        )

        with pytest.raises(InvalidStateTransitionError):
            orchestrator.bill_task(project.id, task.id)

    def test_negative_hours_rejected(self, orchestrator, project, create_task):
        task = create_task(is_billable=True, billing_type=BillingType.HOURLY, billing_rate=Decimal("10"))

        with pytest.raises(NegativeAmountError):
            orchestrator.bill_task(project.id, task.id, Decimal("-1"))

    def test_oversized_hours_rejected(self, orchestrator, project_service, project, create_task):
        task = create_task(is_billable=True, billing_type=BillingType.HOURLY, billing_rate=Decimal("10"))

        with pytest.raises(AmountOutOfRangeError) as exc_info:
            orchestrator.complete_task_and_bill(project.id, task.id, Decimal("1E+30"))

        assert exc_info.value.field == "actualHours"
        assert project_service.get_task(project.id, task.id).status is TaskStatus.TODO

    def test_billed_task_returns_existing_and_keeps_hours(self, orchestrator, project, create_task):
        task = create_task(
            is_billable=True, billing_type=BillingType.HOURLY, billing_rate=Decimal("10"),
        )
        first = orchestrator.complete_task_and_bill(project.id, task.id, Decimal("4"))

        again = orchestrator.bill_task(project.id, task.id, Decimal("40"))

        assert not again.created
        assert again.invoice.amount == first.billing.invoice.amount == Decimal("40.00")
        assert again.task.actual_hours == Decimal("4.00")


class TestGetInvoice:
    def test_scoped_to_project(self, orchestrator, project, completed_milestone):
        billed = orchestrator.bill_milestone(project.id, completed_milestone.id)

        assert orchestrator.get_invoice(project.id, billed.invoice.id) == billed.invoice
        with pytest.raises(InvoiceNotFoundError):
            orchestrator.get_invoice(uuid4(), billed.invoice.id)
