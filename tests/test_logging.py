"""Tests for the structured logging system (warehouse_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from warehouse_kernel.domain.context import WarehouseContext
from warehouse_kernel.exceptions import WithdrawalExceedsBalanceError
from warehouse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "warehouse_ledger.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("withdrawal_recorded", extra={"bags": 40, "invoice": "BAMA-OUT-1001"})

        record = _parse_log(stream)
        assert record["bags"] == 40
        assert record["invoice"] == "BAMA-OUT-1001"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", record_id="rec-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["record_id"] == "rec-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_ledger_exception_fields_extracted(self):
        """Ledger exceptions carry a code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise WithdrawalExceedsBalanceError("rec-1", 120, 100)
        except WithdrawalExceedsBalanceError:
            logger.error("withdrawal_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "WITHDRAWAL_EXCEEDS_BALANCE"
        assert record["exc_type"] == "WithdrawalExceedsBalanceError"
        assert record["exc_record_id"] == "rec-1"
        assert record["exc_requested"] == 120
        assert record["exc_available"] == 100

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "warehouse_id" not in record

    def test_uuid_date_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "typed",
            extra={"txn": uid, "day": date(2023, 10, 1), "rent": Decimal("5500.00")},
        )

        record = _parse_log(stream)
        assert record["txn"] == str(uid)
        assert record["day"] == "2023-10-01"
        assert record["rent"] == "5500.00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", transaction_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "transaction_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "correlation_id" not in LogContext.get_all()
        with LogContext.bind(correlation_id="temp"):
            assert LogContext.get_all()["correlation_id"] == "temp"
        assert "correlation_id" not in LogContext.get_all()

    def test_bind_warehouse_context(self):
        ctx = WarehouseContext(warehouse_id=uuid4(), warehouse_name="Main", actor_id=uuid4())

        with LogContext.bind(**ctx.log_fields()):
            fields = LogContext.get_all()

        assert fields == {
            "warehouse_id": str(ctx.warehouse_id),
            "actor_id": str(ctx.actor_id),
        }

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(correlation_id="c", tenant="t"):
            assert LogContext.get_all() == {"correlation_id": "c"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            warehouse_id="w",
            actor_id="a",
            record_id="r",
            transaction_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["transaction_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        assert len(logging.getLogger("warehouse_ledger").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.outflow").name == "warehouse_ledger.services.outflow"

    def test_logger_hierarchy(self):
        """Child loggers inherit the warehouse_ledger root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "warehouse_ledger.deep.nested.module"
