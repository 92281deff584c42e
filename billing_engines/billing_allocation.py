"""
Project Billing Allocation.

Pure functions with deterministic behavior. No I/O.

Within a project, the billing percentages of percentage-billed tasks and
billable milestones share one budget: together they may claim at most 100%
of the project total.  ``summarize_allocation`` reports what is already
claimed; ``check_allocation`` rejects a new or changed claim that would
overflow.

The unit being edited is excluded by the caller before summarizing, so
changing a milestone from 30% to 35% only checks the 5% difference.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from billing_kernel.domain.money import HUNDRED, ZERO
from billing_kernel.exceptions import BillingAllocationExceededError


@dataclass(frozen=True)
class BillingAllocation:
    """Current percentage claims on a project's budget."""

    from_tasks: Decimal
    from_milestones: Decimal

    @property
    def total(self) -> Decimal:
        return self.from_tasks + self.from_milestones

    @property
    def remaining(self) -> Decimal:
        return HUNDRED - self.total


def summarize_allocation(
    task_percentages: Iterable[Decimal | None],
    milestone_percentages: Iterable[Decimal | None],
) -> BillingAllocation:
    """Sum the claims; None (no percentage configured) counts as zero."""
    return BillingAllocation(
        from_tasks=sum((p for p in task_percentages if p is not None), ZERO),
        from_milestones=sum((p for p in milestone_percentages if p is not None), ZERO),
    )


def check_allocation(
    project_id: UUID,
    allocation: BillingAllocation,
    proposed: Decimal,
) -> None:
    """
    Raises:
        BillingAllocationExceededError: current total + proposed > 100.
    """
    if allocation.total + proposed > HUNDRED:
        raise BillingAllocationExceededError(
            project_id,
            allocation.total,
            proposed,
            allocation.remaining,
        )
