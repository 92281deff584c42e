"""
billing_services.billing_orchestrator -- the boundary-facing billing layer.

Responsibility:
    Receives a milestone or task id, loads current state under a row lock,
    applies the guarded transitions from ``billing_engines.billing_state``,
    and drives the Invoice Generator -- all inside one transaction that this
    class alone commits or rolls back.

Architecture position:
    Services -- stateful orchestration over engines + modules.  The API layer
    calls this; nothing below it commits billing transitions.

Invariants enforced:
    - At most one invoice per billable unit.  The unit row is locked
      (``SELECT ... FOR UPDATE``; ``BEGIN IMMEDIATE`` on SQLite) before its
      ``invoice_id`` is read, and the unique constraints on
      ``invoices.milestone_id`` / ``invoices.task_id`` back that up.
    - Idempotent bill: a unit that already has an invoice returns it with
      ``created=False``.  When the unique constraint fires because another
      request won a race, the whole unit of work is retried once and the
      retry finds the winner's invoice.
    - Atomic composites: completion and billing commit together or not at
      all.  No unit is left completed with a half-written invoice, and no
      invoice exists without its back-reference.
    - Non-idempotent send: a second send is rejected and ``billed_at`` is
      not touched again.

Failure modes:
    - ValidationError subclasses: incomplete billing configuration, bad hours.
    - StateConflictError subclasses: wrong state for the operation.
    - NotFoundError subclasses: unknown project, milestone, task or invoice.
    - PersistenceError: any other database failure (rolled back).

Usage:
    orchestrator = BillingOrchestrator(session, clock=clock, config=config)
    result = orchestrator.bill_milestone(project_id, milestone_id)
    if result.created:
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from billing_config.schema import BillingConfig
from billing_engines.billing_state import (
    BillDecision,
    MilestoneStatus,
    TaskStatus,
    plan_milestone_bill,
    plan_milestone_complete,
    plan_milestone_send,
    plan_task_bill,
    plan_task_complete,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.money import ZERO, check_amount_bounds, to_decimal
from billing_kernel.exceptions import (
    InvalidStateTransitionError,
    InvoiceAlreadyExistsError,
    NegativeAmountError,
    NotBillableError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.base import transaction_boundary
from billing_modules.invoice.generator import InvoiceGenerator
from billing_modules.invoice.models import Invoice
from billing_modules.invoice.orm import InvoiceModel
from billing_modules.project.models import Milestone, Task
from billing_modules.project.orm import MilestoneModel, ProjectModel, TaskModel
from billing_modules.project.store import ProjectStore
from billing_services.notifier import InvoiceNotifier, LoggingInvoiceNotifier

logger = get_logger("services.billing_orchestrator")

T = TypeVar("T")


@dataclass(frozen=True)
class BillingResult:
    """Outcome of a bill request; ``created`` is False for an existing invoice."""

    created: bool
    invoice: Invoice
    milestone: Milestone | None = None
    task: Task | None = None


@dataclass(frozen=True)
class TaskCompletionResult:
    """A completed task and, when anything was billed, the billing outcome."""

    task: Task
    billing: BillingResult | None = None


@dataclass(frozen=True)
class SendResult:
    """A sent invoice; ``notified`` is False when the notifier failed."""

    invoice: Invoice
    milestone: Milestone
    notified: bool


def _hours(actual_hours: Any) -> Decimal | None:
    if actual_hours is None:
        return None
    hours = to_decimal(actual_hours)
    if hours < ZERO:
        raise NegativeAmountError("actualHours", hours)
    check_amount_bounds("actualHours", hours)
    return hours


class BillingOrchestrator:
    """
    Applies billing transitions to milestones and tasks.

    Transaction boundary: every public method commits on success and rolls
    back on failure.  The notifier runs after commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
        notifier: InvoiceNotifier | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._notifier = notifier or LoggingInvoiceNotifier()
        self._store = ProjectStore(session)
        self._invoices = InvoiceGenerator(session, self._clock, self._config)

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _run(self, operation: str, work: Callable[[], T], **extra: Any) -> T:
        """
        Run ``work`` in one transaction, retrying once if a concurrent request
        invoiced the same unit first.
        """
        try:
            with transaction_boundary(self._session, operation, **extra):
                return work()
        except InvoiceAlreadyExistsError as exc:
            logger.info(
                "billing_race_lost_retrying",
                extra={
                    "operation": operation,
                    "unit_type": exc.unit_type,
                    "unit_id": exc.unit_id,
                    "invoice_id": exc.invoice_id,
                },
            )
        with transaction_boundary(self._session, operation, retry=True, **extra):
            return work()

    # =========================================================================
    # Steps (inside an open transaction, never commit)
    # =========================================================================

    def _complete_milestone(self, milestone: MilestoneModel) -> None:
        plan_milestone_complete(milestone.snapshot())
        milestone.status = MilestoneStatus.COMPLETED.value
        milestone.actual_date = self._clock.now()
        self._session.flush()
        logger.info("milestone_completed", extra={"milestone_id": str(milestone.id)})

    def _bill_milestone(
        self, project: ProjectModel, milestone: MilestoneModel
    ) -> tuple[bool, InvoiceModel]:
        if plan_milestone_bill(milestone.snapshot()) is BillDecision.EXISTING:
            logger.info(
                "milestone_already_billed",
                extra={"milestone_id": str(milestone.id), "invoice_id": str(milestone.invoice_id)},
            )
            return False, self._invoices.get(milestone.invoice_id)

        orphan = self._invoices.find_for_milestone(milestone.id)
        if orphan is not None:
            # Invoice row exists without the back-reference
            logger.warning(
                "milestone_invoice_link_repaired",
                extra={"milestone_id": str(milestone.id), "invoice_id": str(orphan.id)},
            )
            milestone.invoice_id = orphan.id
            self._session.flush()
            return False, orphan

        logger.info("milestone_bill_started", extra={"milestone_id": str(milestone.id)})
        return True, self._invoices.create_for_milestone(project, milestone)

    def _bill_task(self, project: ProjectModel, task: TaskModel) -> tuple[bool, InvoiceModel]:
        if plan_task_bill(task.snapshot()) is BillDecision.EXISTING:
            logger.info(
                "task_already_billed",
                extra={"task_id": str(task.id), "invoice_id": str(task.invoice_id)},
            )
            return False, self._invoices.get(task.invoice_id)
        if task.milestone_id is not None:
            # Billed through its milestone
            raise InvalidStateTransitionError("Task", task.id, "linked_to_milestone", "bill")

        orphan = self._invoices.find_for_task(task.id)
        if orphan is not None:
            logger.warning(
                "task_invoice_link_repaired",
                extra={"task_id": str(task.id), "invoice_id": str(orphan.id)},
            )
            task.invoice_id = orphan.id
            self._session.flush()
            return False, orphan

        logger.info("task_bill_started", extra={"task_id": str(task.id)})
        return True, self._invoices.create_for_task(project, task)

    # =========================================================================
    # Milestones
    # =========================================================================

    def complete_milestone(self, project_id: UUID, milestone_id: UUID) -> Milestone:
        """
        Raises:
            InvalidStateTransitionError: milestone is not pending.
        """

        def work() -> Milestone:
            milestone = self._store.lock_milestone(project_id, milestone_id)
            self._complete_milestone(milestone)
            return milestone.to_dto()

        with LogContext.bind(project_id=project_id, milestone_id=milestone_id):
            return self._run("milestone_complete", work, milestone_id=milestone_id)

    def bill_milestone(self, project_id: UUID, milestone_id: UUID) -> BillingResult:
        """
        Create the milestone's draft invoice, or return the existing one.

        Raises:
            NotBillableError: milestone is not flagged billable.
            InvalidStateTransitionError: milestone is not completed.
            MissingBillingFieldError: no billing percentage configured.
        """

        def work() -> BillingResult:
            project = self._store.get_project(project_id)
            milestone = self._store.lock_milestone(project_id, milestone_id)
            created, invoice = self._bill_milestone(project, milestone)
            return BillingResult(
                created=created,
                invoice=invoice.to_dto(),
                milestone=milestone.to_dto(),
            )

        with LogContext.bind(project_id=project_id, milestone_id=milestone_id):
            result = self._run("milestone_bill", work, milestone_id=milestone_id)
        logger.info(
            "milestone_bill_finished",
            extra={
                "milestone_id": str(milestone_id),
                "invoice_id": str(result.invoice.id),
                "created": result.created,
            },
        )
        return result

    def complete_and_bill_milestone(self, project_id: UUID, milestone_id: UUID) -> BillingResult:
        """
        Complete (if still pending) and bill in one transaction.

        The billability check runs before completion, so a non-billable
        milestone is left untouched.
        """

        def work() -> BillingResult:
            project = self._store.get_project(project_id)
            milestone = self._store.lock_milestone(project_id, milestone_id)
            if milestone.invoice_id is None and not milestone.is_billable:
                raise NotBillableError("Milestone", milestone_id)
            if milestone.status == MilestoneStatus.PENDING.value:
                self._complete_milestone(milestone)
            created, invoice = self._bill_milestone(project, milestone)
            return BillingResult(
                created=created,
                invoice=invoice.to_dto(),
                milestone=milestone.to_dto(),
            )

        with LogContext.bind(project_id=project_id, milestone_id=milestone_id):
            return self._run("milestone_complete_and_bill", work, milestone_id=milestone_id)

    def send_milestone_invoice(self, project_id: UUID, milestone_id: UUID) -> SendResult:
        """
        Mark the milestone's draft invoice as sent, then notify.

        Raises:
            InvoiceNotDraftedError: the milestone has no invoice yet.
            InvoiceAlreadySentError: already sent; ``billed_at`` is unchanged.
        """

        def work() -> SendResult:
            milestone = self._store.lock_milestone(project_id, milestone_id)
            plan_milestone_send(milestone.snapshot())
            now = self._clock.now()
            invoice = self._invoices.lock(milestone.invoice_id)
            self._invoices.mark_sent(invoice, now)
            milestone.billed_at = now
            self._session.flush()
            return SendResult(
                invoice=invoice.to_dto(),
                milestone=milestone.to_dto(),
                notified=False,
            )

        with LogContext.bind(project_id=project_id, milestone_id=milestone_id):
            with transaction_boundary(
                self._session, "milestone_send_invoice", milestone_id=milestone_id
            ):
                sent = work()
            logger.info(
                "milestone_invoice_sent",
                extra={
                    "milestone_id": str(milestone_id),
                    "invoice_id": str(sent.invoice.id),
                    "invoice_number": sent.invoice.invoice_number,
                },
            )
            try:
                self._notifier.invoice_sent(sent.invoice, sent.milestone)
            except Exception:
                # The send is committed; delivery can be retried out of band
                logger.exception(
                    "invoice_notification_failed",
                    extra={"invoice_id": str(sent.invoice.id)},
                )
                return sent
        return SendResult(invoice=sent.invoice, milestone=sent.milestone, notified=True)

    # =========================================================================
    # Tasks
    # =========================================================================

    def bill_task(
        self,
        project_id: UUID,
        task_id: UUID,
        actual_hours: Decimal | None = None,
    ) -> BillingResult:
        """
        Bill a completed, unlinked billable task directly.

        ``actual_hours`` is recorded first when supplied and the task has not
        been invoiced; hourly tasks need it unless hours are already stored.
        """
        hours = _hours(actual_hours)

        def work() -> BillingResult:
            project = self._store.get_project(project_id)
            task = self._store.lock_task(project_id, task_id)
            if hours is not None and task.invoice_id is None:
                task.actual_hours = hours
            created, invoice = self._bill_task(project, task)
            return BillingResult(created=created, invoice=invoice.to_dto(), task=task.to_dto())

        with LogContext.bind(project_id=project_id, task_id=task_id):
            return self._run("task_bill", work, task_id=task_id)

    def complete_task_and_bill(
        self,
        project_id: UUID,
        task_id: UUID,
        actual_hours: Decimal | None = None,
    ) -> TaskCompletionResult:
        """
        Complete a task and bill whatever it feeds, atomically.

        - Linked to a milestone: the milestone is completed if pending and
          billed if billable.
        - Unlinked and billable: the task itself is billed.
        - Otherwise the task is only completed.

        A task that is already completed is not completed again; billing
        still runs, so a retried request converges on the same invoice.
        """
        hours = _hours(actual_hours)

        def work() -> TaskCompletionResult:
            project = self._store.get_project(project_id)
            task = self._store.lock_task(project_id, task_id)

            if task.status != TaskStatus.COMPLETED.value:
                plan_task_complete(task.snapshot())
                task.status = TaskStatus.COMPLETED.value
                task.completed_at = self._clock.now()
                logger.info("task_completed", extra={"task_id": str(task_id)})
            if hours is not None and task.invoice_id is None:
                task.actual_hours = hours
            self._session.flush()

            billing: BillingResult | None = None
            if task.milestone_id is not None:
                milestone = self._store.lock_milestone(project_id, task.milestone_id)
                if milestone.status == MilestoneStatus.PENDING.value:
                    self._complete_milestone(milestone)
                if milestone.invoice_id is not None or (
                    milestone.is_billable
                    and milestone.status == MilestoneStatus.COMPLETED.value
                ):
                    created, invoice = self._bill_milestone(project, milestone)
                    billing = BillingResult(
                        created=created,
                        invoice=invoice.to_dto(),
                        milestone=milestone.to_dto(),
                        task=task.to_dto(),
                    )
            elif task.is_billable or task.invoice_id is not None:
                created, invoice = self._bill_task(project, task)
                billing = BillingResult(
                    created=created,
                    invoice=invoice.to_dto(),
                    task=task.to_dto(),
                )
            return TaskCompletionResult(task=task.to_dto(), billing=billing)

        with LogContext.bind(project_id=project_id, task_id=task_id):
            return self._run("task_complete_and_bill", work, task_id=task_id)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_invoice(self, project_id: UUID, invoice_id: UUID) -> Invoice:
        return self._invoices.get_for_project(project_id, invoice_id).to_dto()
