"""
Tests for the project billing allocation cap.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.billing_allocation import check_allocation, summarize_allocation
from billing_kernel.exceptions import BillingAllocationExceededError


class TestSummarizeAllocation:
    def test_sums_tasks_and_milestones(self):
        allocation = summarize_allocation(
            [Decimal("10"), Decimal("15")],
            [Decimal("25"), Decimal("30")],
        )

        assert allocation.from_tasks == Decimal("25")
        assert allocation.from_milestones == Decimal("55")
        assert allocation.total == Decimal("80")
        assert allocation.remaining == Decimal("20")

    def test_none_counts_as_zero(self):
        allocation = summarize_allocation([None, Decimal("5")], [None])

        assert allocation.total == Decimal("5")

    def test_empty_project(self):
        allocation = summarize_allocation([], [])

        assert allocation.total == Decimal("0")
        assert allocation.remaining == Decimal("100")


class TestCheckAllocation:
    def test_exactly_100_is_allowed(self):
        allocation = summarize_allocation([Decimal("40")], [Decimal("35")])

        check_allocation(uuid4(), allocation, Decimal("25"))

    def test_over_100_rejected(self):
        project_id = uuid4()
        allocation = summarize_allocation([Decimal("40")], [Decimal("35")])

        with pytest.raises(BillingAllocationExceededError) as exc_info:
            check_allocation(project_id, allocation, Decimal("25.01"))

        error = exc_info.value
        assert error.project_id == str(project_id)
        assert error.current_total == "75"
        assert error.remaining == "25"
        assert error.code == "BILLING_ALLOCATION_EXCEEDED"
        assert "cannot exceed 100%" in str(error)
