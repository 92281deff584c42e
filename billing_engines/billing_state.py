"""
Milestone and Task Billing State Machines.

Pure functions with deterministic behavior. No I/O.

A milestone moves through:

    pending --complete--> completed --bill--> invoiced_draft --send_invoice--> invoiced_sent
       |
       +--cancel--> cancelled

``invoiced_draft`` and ``invoiced_sent`` are not stored as a status column;
they are derived from the milestone's ``invoice_id`` and ``billed_at``.
``invoice_id`` is the single source of truth for "has this unit been
invoiced", which is what makes ``bill`` idempotent.

Billable tasks follow the same shape with their own work statuses
(todo / in_progress / blocked before completion).

The ``plan_*`` functions inspect an immutable snapshot and either return
what the caller should do or raise the typed state error.  They never
mutate anything; services apply the decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.exceptions import (
    InvalidStateTransitionError,
    InvoiceAlreadySentError,
    InvoiceNotDraftedError,
    NotBillableError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.billing_state")


# ============================================================================
# Workflow definitions
# ============================================================================


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    creates_invoice: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def find(self, from_state: str, action: str) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.action == action:
                return transition
        return None


class MilestoneStatus(str, Enum):
    """Stored work status of a milestone."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MilestoneBillingState(str, Enum):
    """Derived billing state of a milestone."""

    PENDING = "pending"
    COMPLETED = "completed"
    INVOICED_DRAFT = "invoiced_draft"
    INVOICED_SENT = "invoiced_sent"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    """Stored work status of a task."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BillDecision(str, Enum):
    """What a bill request should do."""

    CREATE = "create"
    EXISTING = "existing"


IS_BILLABLE = Guard(
    name="is_billable",
    description="Unit is flagged billable",
)

MILESTONE_BILLING_WORKFLOW = Workflow(
    name="milestone_billing",
    description="Milestone completion and invoicing lifecycle",
    initial_state=MilestoneBillingState.PENDING.value,
    states=tuple(s.value for s in MilestoneBillingState),
    transitions=(
        Transition("pending", "completed", action="complete"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("completed", "invoiced_draft", action="bill", guard=IS_BILLABLE, creates_invoice=True),
        Transition("invoiced_draft", "invoiced_sent", action="send_invoice"),
    ),
    terminal_states=("invoiced_sent", "cancelled"),
)

TASK_BILLING_WORKFLOW = Workflow(
    name="task_billing",
    description="Billable task completion and invoicing lifecycle",
    initial_state=TaskStatus.TODO.value,
    states=(
        "todo",
        "in_progress",
        "blocked",
        "completed",
        "invoiced",
        "cancelled",
    ),
    transitions=(
        Transition("todo", "in_progress", action="start"),
        Transition("todo", "completed", action="complete"),
        Transition("in_progress", "completed", action="complete"),
        Transition("blocked", "completed", action="complete"),
        Transition("todo", "cancelled", action="cancel"),
        Transition("in_progress", "cancelled", action="cancel"),
        Transition("blocked", "cancelled", action="cancel"),
        Transition("completed", "invoiced", action="bill", guard=IS_BILLABLE, creates_invoice=True),
    ),
    terminal_states=("invoiced", "cancelled"),
)


# ============================================================================
# Snapshots
# ============================================================================


@dataclass(frozen=True)
class MilestoneSnapshot:
    """Billing-relevant view of a milestone at a point in time."""

    milestone_id: UUID
    status: MilestoneStatus
    is_billable: bool
    billing_percentage: Decimal | None = None
    invoice_id: UUID | None = None
    billed_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", MilestoneStatus(self.status))


@dataclass(frozen=True)
class TaskSnapshot:
    """Billing-relevant view of a task at a point in time."""

    task_id: UUID
    status: TaskStatus
    is_billable: bool
    invoice_id: UUID | None = None
    milestone_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", TaskStatus(self.status))


def milestone_billing_state(snapshot: MilestoneSnapshot) -> MilestoneBillingState:
    """Derive the billing state from stored status, invoice link, and send time."""
    if snapshot.invoice_id is not None:
        if snapshot.billed_at is not None:
            return MilestoneBillingState.INVOICED_SENT
        return MilestoneBillingState.INVOICED_DRAFT
    return MilestoneBillingState(snapshot.status.value)


def task_billing_state(snapshot: TaskSnapshot) -> str:
    if snapshot.invoice_id is not None:
        return "invoiced"
    return snapshot.status.value


def _require(
    workflow: Workflow,
    entity_type: str,
    entity_id: UUID,
    state: str,
    action: str,
) -> Transition:
    transition = workflow.find(state, action)
    if transition is None:
        logger.info(
            "billing_transition_rejected",
            extra={
                "workflow": workflow.name,
                "entity_id": str(entity_id),
                "state": state,
                "action": action,
            },
        )
        raise InvalidStateTransitionError(entity_type, entity_id, state, action)
    return transition


# ============================================================================
# Milestone transitions
# ============================================================================


def plan_milestone_complete(snapshot: MilestoneSnapshot) -> Transition:
    """
    Raises:
        InvalidStateTransitionError: milestone is not pending.
    """
    return _require(
        MILESTONE_BILLING_WORKFLOW,
        "Milestone",
        snapshot.milestone_id,
        snapshot.status.value,
        "complete",
    )


def plan_milestone_cancel(snapshot: MilestoneSnapshot) -> Transition:
    return _require(
        MILESTONE_BILLING_WORKFLOW,
        "Milestone",
        snapshot.milestone_id,
        milestone_billing_state(snapshot).value,
        "cancel",
    )


def plan_milestone_bill(snapshot: MilestoneSnapshot) -> BillDecision:
    """
    Decide how to answer a bill request.

    An already-linked invoice is returned as-is (idempotent repeat).
    Otherwise the milestone must be billable and completed.

    Raises:
        NotBillableError: milestone is not flagged billable.
        InvalidStateTransitionError: milestone is pending or cancelled.
    """
    if snapshot.invoice_id is not None:
        return BillDecision.EXISTING
    if not snapshot.is_billable:
        raise NotBillableError("Milestone", snapshot.milestone_id)
    _require(
        MILESTONE_BILLING_WORKFLOW,
        "Milestone",
        snapshot.milestone_id,
        milestone_billing_state(snapshot).value,
        "bill",
    )
    return BillDecision.CREATE


def plan_milestone_send(snapshot: MilestoneSnapshot) -> Transition:
    """
    Sending is not idempotent: a second send is a conflict.

    Raises:
        InvoiceNotDraftedError: nothing has been billed yet.
        InvoiceAlreadySentError: ``billed_at`` is already set.
    """
    state = milestone_billing_state(snapshot)
    if state is MilestoneBillingState.INVOICED_SENT:
        raise InvoiceAlreadySentError(snapshot.milestone_id, snapshot.invoice_id)
    if state is not MilestoneBillingState.INVOICED_DRAFT:
        raise InvoiceNotDraftedError(snapshot.milestone_id)
    return _require(
        MILESTONE_BILLING_WORKFLOW,
        "Milestone",
        snapshot.milestone_id,
        state.value,
        "send_invoice",
    )


# ============================================================================
# Task transitions
# ============================================================================


def plan_task_complete(snapshot: TaskSnapshot) -> Transition:
    """
    Raises:
        InvalidStateTransitionError: task is already completed or cancelled.
    """
    return _require(
        TASK_BILLING_WORKFLOW,
        "Task",
        snapshot.task_id,
        task_billing_state(snapshot),
        "complete",
    )


def plan_task_bill(snapshot: TaskSnapshot) -> BillDecision:
    """
    Same contract as ``plan_milestone_bill`` for a directly billed task.

    Raises:
        NotBillableError: task is not flagged billable.
        InvalidStateTransitionError: task is not completed.
    """
    if snapshot.invoice_id is not None:
        return BillDecision.EXISTING
    if not snapshot.is_billable:
        raise NotBillableError("Task", snapshot.task_id)
    _require(
        TASK_BILLING_WORKFLOW,
        "Task",
        snapshot.task_id,
        task_billing_state(snapshot),
        "bill",
    )
    return BillDecision.CREATE
