"""
Project Module Service - project, milestone and task setup for billing.

Thin glue layer that:
1. Validates billing configuration with the pure engines
2. Enforces the project-wide billing allocation cap under a project row lock
3. Persists through the ORM models

Completion and invoicing transitions live in the Billing Orchestrator; this
service only prepares the units it bills.  It owns its transaction boundary:
every public write commits on success and rolls back on failure.

Usage:
    service = ProjectService(session, clock)
    project = service.create_project("Kitchen remodel", Decimal("10000"))
    milestone = service.create_milestone(
        project.id, "Rough-in inspection",
        is_billable=True, billing_percentage=Decimal("25"),
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from billing_config.schema import BillingConfig
from billing_engines.billing_allocation import check_allocation
from billing_engines.billing_state import (
    MilestoneStatus,
    TaskStatus,
    plan_milestone_cancel,
)
from billing_engines.invoice_amount import BillingType
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.money import HUNDRED, ZERO, check_amount_bounds, to_decimal
from billing_kernel.exceptions import (
    InvalidFieldCombinationError,
    InvalidStateTransitionError,
    NegativeAmountError,
    NotBillableError,
    PercentageOutOfRangeError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import transaction_boundary
from billing_modules.project.models import Milestone, Project, ProjectStatus, Task
from billing_modules.project.orm import MilestoneModel, ProjectModel, TaskModel
from billing_modules.project.store import ProjectStore

logger = get_logger("modules.project.service")

TASK_CONVERSION_CATEGORY = "task_conversion"


@dataclass(frozen=True)
class TaskConversion:
    """Result of promoting a billable task to a milestone."""

    milestone: Milestone
    task: Task


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else to_decimal(value)


def _check_percentage(field: str, value: Decimal | None) -> None:
    if value is not None and not ZERO <= value <= HUNDRED:
        raise PercentageOutOfRangeError(field, value)
    check_amount_bounds(field, value, HUNDRED)


def _check_non_negative(field: str, value: Decimal | None) -> None:
    if value is not None and value < ZERO:
        raise NegativeAmountError(field, value)
    check_amount_bounds(field, value)


class ProjectService:
    """
    Creates and maintains the billable units of a project.

    Transaction boundary: this service commits on success, rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._store = ProjectStore(session)

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(
        self,
        name: str,
        total_budget: Decimal,
        customer_name: str | None = None,
        customer_email: str | None = None,
        status: ProjectStatus = ProjectStatus.PLANNING,
        actor_id: UUID | None = None,
    ) -> Project:
        budget = to_decimal(total_budget)
        _check_non_negative("totalBudget", budget)
        with transaction_boundary(self._session, "project_create", name=name):
            project = ProjectModel(
                name=name,
                total_budget=budget,
                status=ProjectStatus(status).value,
                customer_name=customer_name,
                customer_email=customer_email,
                created_by_id=actor_id,
            )
            self._session.add(project)
            self._session.flush()
            dto = project.to_dto()
        logger.info(
            "project_created",
            extra={"project_id": str(dto.id), "total_budget": str(dto.total_budget)},
        )
        return dto

    def get_project(self, project_id: UUID) -> Project:
        return self._store.get_project(project_id).to_dto()

    # =========================================================================
    # Milestones
    # =========================================================================

    def create_milestone(
        self,
        project_id: UUID,
        title: str,
        *,
        is_billable: bool = False,
        billing_percentage: Decimal | None = None,
        planned_date: datetime | None = None,
        description: str | None = None,
        category: str | None = None,
        actor_id: UUID | None = None,
    ) -> Milestone:
        percentage = _optional_decimal(billing_percentage)
        _check_percentage("billingPercentage", percentage)

        with transaction_boundary(self._session, "milestone_create", project_id=project_id):
            self._store.lock_project(project_id)
            if is_billable and percentage is not None:
                check_allocation(
                    project_id,
                    self._store.billing_allocation(project_id),
                    percentage,
                )
            milestone = MilestoneModel(
                project_id=project_id,
                title=title,
                description=description,
                category=category,
                planned_date=planned_date,
                status=MilestoneStatus.PENDING.value,
                is_billable=is_billable,
                billing_percentage=percentage,
                created_by_id=actor_id,
            )
            self._session.add(milestone)
            self._session.flush()
            dto = milestone.to_dto()

        logger.info(
            "milestone_created",
            extra={
                "project_id": str(project_id),
                "milestone_id": str(dto.id),
                "is_billable": is_billable,
                "billing_percentage": str(percentage) if percentage is not None else None,
            },
        )
        return dto

    def update_milestone_billing(
        self,
        project_id: UUID,
        milestone_id: UUID,
        *,
        is_billable: bool,
        billing_percentage: Decimal | None,
    ) -> Milestone:
        """Change a milestone's billing configuration until it is invoiced."""
        percentage = _optional_decimal(billing_percentage)
        _check_percentage("billingPercentage", percentage)

        with transaction_boundary(
            self._session, "milestone_billing_update", milestone_id=milestone_id
        ):
            self._store.lock_project(project_id)
            milestone = self._store.lock_milestone(project_id, milestone_id)
            if milestone.invoice_id is not None:
                raise InvalidStateTransitionError(
                    "Milestone", milestone_id, "invoiced", "change billing of"
                )
            if is_billable and percentage is not None:
                check_allocation(
                    project_id,
                    self._store.billing_allocation(project_id, exclude_milestone_id=milestone_id),
                    percentage,
                )
            milestone.is_billable = is_billable
            milestone.billing_percentage = percentage
            self._session.flush()
            dto = milestone.to_dto()
        return dto

    def cancel_milestone(self, project_id: UUID, milestone_id: UUID) -> Milestone:
        with transaction_boundary(self._session, "milestone_cancel", milestone_id=milestone_id):
            milestone = self._store.lock_milestone(project_id, milestone_id)
            plan_milestone_cancel(milestone.snapshot())
            milestone.status = MilestoneStatus.CANCELLED.value
            self._session.flush()
            dto = milestone.to_dto()
        logger.info("milestone_cancelled", extra={"milestone_id": str(milestone_id)})
        return dto

    def get_milestone(self, project_id: UUID, milestone_id: UUID) -> Milestone:
        return self._store.get_milestone(project_id, milestone_id).to_dto()

    def list_milestones(self, project_id: UUID) -> list[Milestone]:
        self._store.get_project(project_id)
        return [m.to_dto() for m in self._store.list_milestones(project_id)]

    # =========================================================================
    # Tasks
    # =========================================================================

    def create_task(
        self,
        project_id: UUID,
        title: str,
        *,
        is_billable: bool = False,
        billing_type: BillingType = BillingType.PERCENTAGE,
        billing_percentage: Decimal | None = None,
        billable_amount: Decimal | None = None,
        billing_rate: Decimal | None = None,
        estimated_hours: Decimal | None = None,
        milestone_id: UUID | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> Task:
        billing_type = BillingType(billing_type)
        percentage = _optional_decimal(billing_percentage)
        amount = _optional_decimal(billable_amount)
        rate = _optional_decimal(billing_rate)
        hours = _optional_decimal(estimated_hours)
        _check_percentage("billingPercentage", percentage)
        _check_non_negative("billableAmount", amount)
        _check_non_negative("billingRate", rate)
        _check_non_negative("estimatedHours", hours)

        with transaction_boundary(self._session, "task_create", project_id=project_id):
            self._store.lock_project(project_id)
            if milestone_id is not None:
                self._store.get_milestone(project_id, milestone_id)
            elif (
                is_billable
                and billing_type is BillingType.PERCENTAGE
                and percentage is not None
            ):
                check_allocation(
                    project_id,
                    self._store.billing_allocation(project_id),
                    percentage,
                )
            task = TaskModel(
                project_id=project_id,
                title=title,
                description=description,
                status=TaskStatus.TODO.value,
                is_billable=is_billable,
                billing_type=billing_type.value,
                billing_percentage=percentage,
                billable_amount=amount,
                billing_rate=rate,
                estimated_hours=hours,
                milestone_id=milestone_id,
                created_by_id=actor_id,
            )
            self._session.add(task)
            self._session.flush()
            dto = task.to_dto()

        logger.info(
            "task_created",
            extra={
                "project_id": str(project_id),
                "task_id": str(dto.id),
                "billing_type": billing_type.value,
                "is_billable": is_billable,
            },
        )
        return dto

    def get_task(self, project_id: UUID, task_id: UUID) -> Task:
        return self._store.get_task(project_id, task_id).to_dto()

    def convert_task_to_milestone(
        self,
        project_id: UUID,
        task_id: UUID,
        planned_date: datetime | None = None,
    ) -> TaskConversion:
        """
        Promote a billable, unfinished task to a milestone and link the two.

        The milestone bills the task's percentage, or the configured default
        when the task has none.  Only percentage-billed tasks convert: a
        milestone cannot express fixed or hourly billing.
        """
        with transaction_boundary(self._session, "task_conversion", task_id=task_id):
            self._store.lock_project(project_id)
            task = self._store.lock_task(project_id, task_id)

            if not task.is_billable:
                raise NotBillableError("Task", task_id)
            if task.status in (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value):
                raise InvalidStateTransitionError(
                    "Task", task_id, task.status, "convert to milestone"
                )
            if task.milestone_id is not None or task.invoice_id is not None:
                raise InvalidStateTransitionError(
                    "Task", task_id, "linked", "convert to milestone"
                )
            if task.billing_type != BillingType.PERCENTAGE.value:
                raise InvalidFieldCombinationError(
                    ["billingType"],
                    "only percentage-billed tasks can become milestones",
                )

            percentage = (
                task.billing_percentage
                if task.billing_percentage
                else self._config.task_conversion_billing_percentage
            )
            check_allocation(
                project_id,
                self._store.billing_allocation(project_id, exclude_task_id=task_id),
                percentage,
            )

            milestone = MilestoneModel(
                project_id=project_id,
                title=f"Task Milestone: {task.title}",
                description=task.description or f"Milestone created from task: {task.title}",
                category=TASK_CONVERSION_CATEGORY,
                planned_date=planned_date or self._clock.now(),
                status=MilestoneStatus.PENDING.value,
                is_billable=True,
                billing_percentage=percentage,
            )
            self._session.add(milestone)
            self._session.flush()
            task.milestone_id = milestone.id
            self._session.flush()
            result = TaskConversion(milestone=milestone.to_dto(), task=task.to_dto())

        logger.info(
            "task_converted_to_milestone",
            extra={
                "project_id": str(project_id),
                "task_id": str(task_id),
                "milestone_id": str(result.milestone.id),
                "billing_percentage": str(percentage),
            },
        )
        return result
