"""
Project ORM Models (``billing_modules.project.orm``).

Responsibility
--------------
SQLAlchemy persistence models for projects, milestones, and tasks.  Maps
the frozen dataclasses in ``models.py`` to database tables.

Invariants enforced
-------------------
* ``milestones.invoice_id`` and ``tasks.invoice_id`` are unique: a unit can
  point at no more than one invoice (uq_milestones_invoice_id,
  uq_tasks_invoice_id).  The invoice side carries the matching unique
  constraints on ``milestone_id`` / ``task_id``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_engines.billing_state import (
    MilestoneSnapshot,
    MilestoneStatus,
    TaskSnapshot,
    TaskStatus,
    milestone_billing_state,
)
from billing_engines.invoice_amount import BillableUnit, BillingType
from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.money import round_money


def _shown(value: Decimal | None) -> Decimal | None:
    return round_money(value) if value is not None else None


# ---------------------------------------------------------------------------
# 1. ProjectModel
# ---------------------------------------------------------------------------


class ProjectModel(TrackedBase):
    """
    ORM model for projects.

    Only the fields the billing engine consumes are mapped; the rest of
    project management lives outside this package.
    """

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_budget: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="planning")
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self):
        from billing_modules.project.models import Project, ProjectStatus

        return Project(
            id=self.id,
            name=self.name,
            total_budget=round_money(self.total_budget),
            status=ProjectStatus(self.status),
            customer_name=self.customer_name,
            customer_email=self.customer_email,
        )

    def __repr__(self) -> str:
        return f"<ProjectModel {self.name}>"


# ---------------------------------------------------------------------------
# 2. MilestoneModel
# ---------------------------------------------------------------------------


class MilestoneModel(TrackedBase):
    """
    ORM model for project milestones.

    Guarantees:
        - invoice_id set  => a draft (or later) invoice exists.
        - billed_at set   => that invoice has been sent.
    """

    __tablename__ = "milestones"

    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_milestones_invoice_id"),
        Index("idx_milestones_project_id", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    planned_date: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_date: Mapped[datetime | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(50), default=MilestoneStatus.PENDING.value)
    is_billable: Mapped[bool] = mapped_column(Boolean, default=False)
    billing_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True
    )
    billed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def snapshot(self) -> MilestoneSnapshot:
        return MilestoneSnapshot(
            milestone_id=self.id,
            status=MilestoneStatus(self.status),
            is_billable=bool(self.is_billable),
            billing_percentage=self.billing_percentage,
            invoice_id=self.invoice_id,
            billed_at=self.billed_at,
        )

    def billable_unit(self) -> BillableUnit:
        # Milestones always bill a share of the project budget
        return BillableUnit(
            billing_type=BillingType.PERCENTAGE,
            billing_percentage=self.billing_percentage,
        )

    def to_dto(self):
        from billing_modules.project.models import Milestone

        return Milestone(
            id=self.id,
            project_id=self.project_id,
            title=self.title,
            status=MilestoneStatus(self.status),
            billing_state=milestone_billing_state(self.snapshot()),
            is_billable=bool(self.is_billable),
            billing_percentage=_shown(self.billing_percentage),
            description=self.description,
            category=self.category,
            planned_date=self.planned_date,
            actual_date=self.actual_date,
            invoice_id=self.invoice_id,
            billed_at=self.billed_at,
        )

    def __repr__(self) -> str:
        return f"<MilestoneModel {self.title} [{self.status}]>"


# ---------------------------------------------------------------------------
# 3. TaskModel
# ---------------------------------------------------------------------------


class TaskModel(TrackedBase):
    """
    ORM model for project tasks.

    A task bills either through its linked milestone (``milestone_id``) or,
    when unlinked and billable, directly (``invoice_id``).
    """

    __tablename__ = "tasks"

    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_tasks_invoice_id"),
        Index("idx_tasks_project_id", "project_id"),
        Index("idx_tasks_milestone_id", "milestone_id"),
    )

    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default=TaskStatus.TODO.value)
    is_billable: Mapped[bool] = mapped_column(Boolean, default=False)
    billing_type: Mapped[str] = mapped_column(String(50), default=BillingType.PERCENTAGE.value)
    billing_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    billable_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    billing_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimated_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    milestone_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("milestones.id"), nullable=True
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            task_id=self.id,
            status=TaskStatus(self.status),
            is_billable=bool(self.is_billable),
            invoice_id=self.invoice_id,
            milestone_id=self.milestone_id,
        )

    def billable_unit(self) -> BillableUnit:
        return BillableUnit(
            billing_type=BillingType(self.billing_type),
            billing_percentage=self.billing_percentage,
            billable_amount=self.billable_amount,
            billing_rate=self.billing_rate,
            actual_hours=self.actual_hours,
        )

    def to_dto(self):
        from billing_modules.project.models import Task

        return Task(
            id=self.id,
            project_id=self.project_id,
            title=self.title,
            status=TaskStatus(self.status),
            is_billable=bool(self.is_billable),
            billing_type=BillingType(self.billing_type),
            billing_percentage=_shown(self.billing_percentage),
            billable_amount=_shown(self.billable_amount),
            billing_rate=_shown(self.billing_rate),
            estimated_hours=_shown(self.estimated_hours),
            actual_hours=_shown(self.actual_hours),
            milestone_id=self.milestone_id,
            invoice_id=self.invoice_id,
            completed_at=self.completed_at,
        )

    def __repr__(self) -> str:
        return f"<TaskModel {self.title} [{self.status}]>"
