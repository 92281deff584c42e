"""Tests for the structured JSON logging in billing_kernel.logging_config."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.exceptions import BillingAllocationExceededError
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Start unconfigured; restore the suite-wide DEBUG setup afterwards."""
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _capture(level=logging.INFO) -> StringIO:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    configure_logging(handler=handler, level=level)
    return stream


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredFormatter:
    def test_one_json_object_per_line(self):
        stream = _capture()
        logger = get_logger("test")

        logger.info("first")
        logger.warning("second", extra={"quote_id": "q-1"})
        logger.debug("hidden")

        records = _records(stream)
        assert [r["message"] for r in records] == ["first", "second"]
        assert records[0]["level"] == "INFO"
        assert records[0]["logger"] == "billing.test"
        assert "ts" in records[0]
        assert records[1]["quote_id"] == "q-1"

    def test_money_and_ids_serialized_as_text(self):
        stream = _capture()
        invoice_id = uuid4()

        get_logger("test").info(
            "invoice_created", extra={"invoice_id": invoice_id, "amount": Decimal("2500.00")}
        )

        record = _records(stream)[0]
        assert record["invoice_id"] == str(invoice_id)
        assert record["amount"] == "2500.00"

    def test_context_fields_included(self):
        stream = _capture()
        project_id = uuid4()

        with LogContext.bind(project_id=project_id, correlation_id="req-1"):
            get_logger("test").info("milestone_completed")

        record = _records(stream)[0]
        assert record["project_id"] == str(project_id)
        assert record["correlation_id"] == "req-1"

    def test_billing_error_fields_extracted(self):
        stream = _capture()

        try:
            raise BillingAllocationExceededError(
                uuid4(), Decimal("80"), Decimal("30"), Decimal("20")
            )
        except BillingAllocationExceededError:
            get_logger("test").error("allocation_rejected", exc_info=True)

        record = _records(stream)[0]
        assert record["exc_type"] == "BillingAllocationExceededError"
        assert record["exc_code"] == "BILLING_ALLOCATION_EXCEEDED"
        assert record["exc_current_total"] == "80"
        assert record["exc_remaining"] == "20"
        assert "traceback" in record


class TestLogContext:
    def test_bind_restores_previous_value(self):
        LogContext.set(correlation_id="outer")

        with LogContext.bind(correlation_id="inner", milestone_id="m-1"):
            assert LogContext.get_all() == {"correlation_id": "inner", "milestone_id": "m-1"}

        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_unknown_fields_are_ignored_by_bind(self):
        with LogContext.bind(not_a_field="x", task_id="t-1"):
            assert LogContext.get_all() == {"task_id": "t-1"}

    def test_clear(self):
        LogContext.set(invoice_id="i-1", actor_id="a-1")
        LogContext.clear()

        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_idempotent(self):
        _capture()
        _capture()

        assert len(logging.getLogger("billing").handlers) == 1

    def test_does_not_propagate_to_root(self):
        _capture()

        assert logging.getLogger("billing").propagate is False

    def test_child_loggers_share_handler(self):
        stream = _capture(level=logging.DEBUG)

        get_logger("services.billing_orchestrator").debug("deep")

        assert _records(stream)[0]["logger"] == "billing.services.billing_orchestrator"
