"""
InvoiceGenerator -- turns a billable milestone or task into a draft invoice.

Responsibility:
    Derives the invoice amount with the pure ``invoice_amount`` engine,
    allocates the invoice number from the locked ``invoice`` sequence, and
    inserts the invoice together with the unit's ``invoice_id``
    back-reference.

Architecture position:
    Modules > Invoice -- flush-only service.  Called by the Billing
    Orchestrator, which owns the transaction.

Invariants enforced:
    - The invoice row and the back-reference are written in one savepoint:
      either both exist or neither does.
    - One invoice per unit: the unique constraints on ``invoices.milestone_id``
      and ``invoices.task_id`` reject a second insert even when two requests
      raced past the application-level check.
    - Invoice numbers come from ``SequenceService``, never from max+1.

Failure modes:
    - InvoiceAlreadyExistsError: the per-unit unique constraint fired; carries
      the id of the invoice that won.
    - PersistenceError: any other integrity failure during the insert.
    - MissingBillingFieldError / PercentageOutOfRangeError /
      NegativeAmountError: the unit's billing configuration is incomplete.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_config.schema import BillingConfig
from billing_engines.invoice_amount import (
    BillableUnit,
    calculate_invoice_amount,
    validate_billable_unit,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    InvalidStateTransitionError,
    InvoiceAlreadyExistsError,
    InvoiceNotFoundError,
    PersistenceError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.invoice.models import InvoiceStatus, InvoiceType
from billing_modules.invoice.orm import InvoiceModel
from billing_modules.project.orm import MilestoneModel, ProjectModel, TaskModel

logger = get_logger("modules.invoice.generator")


def format_invoice_number(prefix: str, issue_date: date, sequence: int) -> str:
    """``INV-202401-000042`` style number."""
    return f"{prefix}-{issue_date:%Y%m}-{sequence:06d}"


class InvoiceGenerator(BaseService[InvoiceModel]):
    """
    Creates and looks up invoices within the caller's transaction.

    Non-goals:
        - Does NOT check completion or billability; the orchestrator applies
          the state machine before calling in.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._sequences = SequenceService(session)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_for_milestone(
        self, project: ProjectModel, milestone: MilestoneModel
    ) -> InvoiceModel:
        return self._create(
            project=project,
            unit=milestone,
            unit_type="Milestone",
            billable=milestone.billable_unit(),
            invoice_type=InvoiceType.MILESTONE,
            description=f"Milestone Payment: {milestone.title}",
            milestone_id=milestone.id,
        )

    def create_for_task(self, project: ProjectModel, task: TaskModel) -> InvoiceModel:
        return self._create(
            project=project,
            unit=task,
            unit_type="Task",
            billable=task.billable_unit(),
            invoice_type=InvoiceType.REGULAR,
            description=f"Task Payment: {task.title}",
            task_id=task.id,
        )

    def _create(
        self,
        *,
        project: ProjectModel,
        unit: MilestoneModel | TaskModel,
        unit_type: str,
        billable: BillableUnit,
        invoice_type: InvoiceType,
        description: str,
        milestone_id: UUID | None = None,
        task_id: UUID | None = None,
    ) -> InvoiceModel:
        validate_billable_unit(billable)
        amount = calculate_invoice_amount(billable, project.total_budget)
        issue_date = self._clock.today()

        savepoint = self.session.begin_nested()
        try:
            sequence = self._sequences.next_value(SequenceService.INVOICE)
            invoice = InvoiceModel(
                project_id=project.id,
                invoice_number=format_invoice_number(
                    self._config.invoice_number_prefix, issue_date, sequence
                ),
                amount=amount,
                status=InvoiceStatus.DRAFT.value,
                invoice_type=invoice_type.value,
                issue_date=issue_date,
                due_date=issue_date + timedelta(days=self._config.invoice_due_days),
                description=description,
                milestone_id=milestone_id,
                task_id=task_id,
                customer_name=project.customer_name,
                customer_email=project.customer_email,
            )
            self.session.add(invoice)
            self.session.flush()
            unit.invoice_id = invoice.id
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            existing = (
                self.find_for_milestone(milestone_id)
                if milestone_id is not None
                else self.find_for_task(task_id)
            )
            if existing is None:
                raise PersistenceError("create_invoice", str(exc.orig)) from exc
            logger.info(
                "invoice_already_exists",
                extra={
                    "unit_type": unit_type,
                    "unit_id": str(unit.id),
                    "invoice_id": str(existing.id),
                },
            )
            raise InvoiceAlreadyExistsError(unit_type, unit.id, existing.id) from exc

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "unit_type": unit_type,
                "unit_id": str(unit.id),
                "amount": str(amount),
            },
        )
        return invoice

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def mark_sent(self, invoice: InvoiceModel, sent_at: datetime) -> InvoiceModel:
        """
        Raises:
            InvalidStateTransitionError: invoice is not a draft.
        """
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise InvalidStateTransitionError("Invoice", invoice.id, invoice.status, "send")
        invoice.status = InvoiceStatus.SENT.value
        invoice.sent_at = sent_at
        self.session.flush()
        return invoice

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def find_for_milestone(self, milestone_id: UUID) -> InvoiceModel | None:
        return self.session.execute(
            select(InvoiceModel).where(InvoiceModel.milestone_id == milestone_id)
        ).scalar_one_or_none()

    def find_for_task(self, task_id: UUID) -> InvoiceModel | None:
        return self.session.execute(
            select(InvoiceModel).where(InvoiceModel.task_id == task_id)
        ).scalar_one_or_none()

    def get(self, invoice_id: UUID) -> InvoiceModel:
        invoice = self.session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def get_for_project(self, project_id: UUID, invoice_id: UUID) -> InvoiceModel:
        invoice = self.session.get(InvoiceModel, invoice_id)
        if invoice is None or invoice.project_id != project_id:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def lock(self, invoice_id: UUID) -> InvoiceModel:
        invoice = self._lock(InvoiceModel, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice
