"""
Project row access (``billing_modules.project.store``).

Flush-only loaders shared by ``ProjectService`` and the Billing
Orchestrator.  Every loader scopes the lookup to its project, so a milestone
id belonging to a different project is reported as not found.  The
``lock_*`` variants take a row-level lock (``SELECT ... FOR UPDATE``) held
until the caller's transaction ends.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from billing_engines.billing_allocation import BillingAllocation, summarize_allocation
from billing_engines.billing_state import MilestoneStatus
from billing_engines.invoice_amount import BillingType
from billing_kernel.exceptions import (
    MilestoneNotFoundError,
    ProjectNotFoundError,
    TaskNotFoundError,
)
from billing_kernel.services.base import BaseService
from billing_modules.project.orm import MilestoneModel, ProjectModel, TaskModel


class ProjectStore(BaseService[ProjectModel]):
    """Project, milestone, and task loaders; never commits."""

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def get_project(self, project_id: UUID) -> ProjectModel:
        project = self.session.get(ProjectModel, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def lock_project(self, project_id: UUID) -> ProjectModel:
        project = self._lock(ProjectModel, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    # -------------------------------------------------------------------------
    # Milestones
    # -------------------------------------------------------------------------

    def get_milestone(self, project_id: UUID, milestone_id: UUID) -> MilestoneModel:
        milestone = self.session.get(MilestoneModel, milestone_id)
        if milestone is None or milestone.project_id != project_id:
            raise MilestoneNotFoundError(milestone_id)
        return milestone

    def lock_milestone(self, project_id: UUID, milestone_id: UUID) -> MilestoneModel:
        milestone = self._lock(MilestoneModel, milestone_id)
        if milestone is None or milestone.project_id != project_id:
            raise MilestoneNotFoundError(milestone_id)
        return milestone

    def list_milestones(self, project_id: UUID) -> list[MilestoneModel]:
        return list(
            self.session.execute(
                select(MilestoneModel)
                .where(MilestoneModel.project_id == project_id)
                .order_by(MilestoneModel.planned_date, MilestoneModel.created_at)
            ).scalars()
        )

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def get_task(self, project_id: UUID, task_id: UUID) -> TaskModel:
        task = self.session.get(TaskModel, task_id)
        if task is None or task.project_id != project_id:
            raise TaskNotFoundError(task_id)
        return task

    def lock_task(self, project_id: UUID, task_id: UUID) -> TaskModel:
        task = self._lock(TaskModel, task_id)
        if task is None or task.project_id != project_id:
            raise TaskNotFoundError(task_id)
        return task

    # -------------------------------------------------------------------------
    # Billing allocation
    # -------------------------------------------------------------------------

    def billing_allocation(
        self,
        project_id: UUID,
        exclude_milestone_id: UUID | None = None,
        exclude_task_id: UUID | None = None,
    ) -> BillingAllocation:
        """
        Percentages already claimed on the project budget.

        Counts unlinked percentage-billed billable tasks and billable,
        non-cancelled milestones, minus the unit being edited.
        """
        task_query = select(TaskModel.billing_percentage).where(
            TaskModel.project_id == project_id,
            TaskModel.is_billable.is_(True),
            TaskModel.billing_type == BillingType.PERCENTAGE.value,
            # Linked tasks bill through their milestone's percentage
            TaskModel.milestone_id.is_(None),
        )
        if exclude_task_id is not None:
            task_query = task_query.where(TaskModel.id != exclude_task_id)

        milestone_query = select(MilestoneModel.billing_percentage).where(
            MilestoneModel.project_id == project_id,
            MilestoneModel.is_billable.is_(True),
            MilestoneModel.status != MilestoneStatus.CANCELLED.value,
        )
        if exclude_milestone_id is not None:
            milestone_query = milestone_query.where(MilestoneModel.id != exclude_milestone_id)

        task_percentages: list[Decimal | None] = list(self.session.execute(task_query).scalars())
        milestone_percentages: list[Decimal | None] = list(
            self.session.execute(milestone_query).scalars()
        )
        return summarize_allocation(task_percentages, milestone_percentages)
