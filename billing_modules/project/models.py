"""
Project Domain Models (``billing_modules.project.models``).

Responsibility
--------------
Frozen dataclass value objects for projects, milestones, and tasks, as
returned by services and the API.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary, percentage, and hours fields use ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_engines.billing_state import MilestoneBillingState, MilestoneStatus, TaskStatus
from billing_engines.invoice_amount import BillingType


class ProjectStatus(str, Enum):
    """Project delivery states."""

    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Project:
    """A construction project with the budget milestones bill against."""

    id: UUID
    name: str
    total_budget: Decimal
    status: ProjectStatus = ProjectStatus.PLANNING
    customer_name: str | None = None
    customer_email: str | None = None


@dataclass(frozen=True)
class Milestone:
    """A schedule checkpoint; billable ones trigger a percentage invoice."""

    id: UUID
    project_id: UUID
    title: str
    status: MilestoneStatus
    billing_state: MilestoneBillingState
    is_billable: bool = False
    billing_percentage: Decimal | None = None
    description: str | None = None
    category: str | None = None
    planned_date: datetime | None = None
    actual_date: datetime | None = None
    invoice_id: UUID | None = None
    billed_at: datetime | None = None


@dataclass(frozen=True)
class Task:
    """A unit of work; billable tasks carry their own billing configuration."""

    id: UUID
    project_id: UUID
    title: str
    status: TaskStatus
    is_billable: bool = False
    billing_type: BillingType = BillingType.PERCENTAGE
    billing_percentage: Decimal | None = None
    billable_amount: Decimal | None = None
    billing_rate: Decimal | None = None
    estimated_hours: Decimal | None = None
    actual_hours: Decimal | None = None
    milestone_id: UUID | None = None
    invoice_id: UUID | None = None
    completed_at: datetime | None = None
