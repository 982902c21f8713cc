"""Tests for the structured logging system (quote_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from quote_kernel.exceptions import IllegalTransitionError, TotalsMismatchError
from quote_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state around each test, then restore the suite default."""
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

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "quote_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "conversion_completed", extra={"attempts": 2, "status": "converted"},
        )

        record = _parse_log(stream)
        assert record["attempts"] == 2
        assert record["status"] == "converted"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(correlation_id="abc-123", document_id="q-1"):
            get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["document_id"] == "q-1"

    def test_extra_does_not_override_context(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(document_id="q-1"):
            get_logger("test").info("test_msg", extra={"document_id": "other"})

        assert _parse_log(stream)["document_id"] == "q-1"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise IllegalTransitionError(
                "draft", "approved", "Cannot transition from draft to approved",
            )
        except IllegalTransitionError:
            get_logger("test").error("transition_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "ILLEGAL_TRANSITION"
        assert record["exc_from_status"] == "draft"
        assert record["exc_to_status"] == "approved"

    def test_totals_mismatch_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise TotalsMismatchError("doc-1", "total", "1566.00", "1500.00")
        except TotalsMismatchError:
            get_logger("test").critical("totals_mismatch", exc_info=True)

        record = _parse_log(stream)
        assert record["level"] == "CRITICAL"
        assert record["exc_code"] == "TOTALS_MISMATCH"
        assert record["exc_expected"] == "1566.00"
        assert record["exc_actual"] == "1500.00"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "document_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "with_values", extra={"order_id": uid, "total": Decimal("1566.00")},
        )

        record = _parse_log(stream)
        assert record["order_id"] == str(uid)
        assert record["total"] == "1566.00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_empty_by_default(self):
        assert LogContext.get_all() == {}

    def test_bind_sets_fields(self):
        with LogContext.bind(correlation_id="x", document_id="y"):
            assert LogContext.get_all() == {"correlation_id": "x", "document_id": "y"}

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(actor_id="outer"):
            with LogContext.bind(actor_id="inner", document_id="d"):
                assert LogContext.get_all() == {"actor_id": "inner", "document_id": "d"}
            assert LogContext.get_all() == {"actor_id": "outer"}
        assert LogContext.get_all() == {}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(document_id="temp"):
                raise RuntimeError("boom")
        assert "document_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_and_none(self):
        with LogContext.bind(correlation_id="c", tenant="t", actor_id=None):
            assert LogContext.get_all() == {"correlation_id": "c"}

    def test_values_are_stringified(self):
        uid = uuid4()
        with LogContext.bind(document_id=uid):
            assert LogContext.get_all()["document_id"] == str(uid)

    def test_clear(self):
        with LogContext.bind(correlation_id="x"):
            LogContext.clear()
            assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("quote_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.conversion").name == "quote_kernel.services.conversion"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "quote_kernel.deep.nested.module"
