"""Tests for the structured logging system (consolidation_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest

from consolidation_kernel.exceptions import ConsolidationRunExistsError
from consolidation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from consolidation_modules.consolidation.models import ConsolidationRunStatus


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "consolidation.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("step_done", extra={"step": "Translate", "member_count": 3})

        record = _parse_log(stream)
        assert record["step"] == "Translate"
        assert record["member_count"] == 3

    def test_domain_values_serialized(self):
        """UUID, date, Decimal and Enum extras become JSON strings."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("values", extra={
            "run_uuid": UUID("00000000-0000-4000-a000-000000000001"),
            "as_of": date(2025, 12, 31),
            "amount": Decimal("1234.5600"),
            "status": ConsolidationRunStatus.COMPLETED,
        })

        record = _parse_log(stream)
        assert record["run_uuid"] == "00000000-0000-4000-a000-000000000001"
        assert record["as_of"] == "2025-12-31"
        assert record["amount"] == "1234.5600"
        assert record["status"] == "Completed"

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

    def test_consolidation_exception_fields_extracted(self):
        """Consolidation exceptions contribute their code and public attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ConsolidationRunExistsError("grp-1", "FY2025-P12", "run-1")
        except ConsolidationRunExistsError:
            get_logger("test").error("run_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CONSOLIDATION_RUN_EXISTS"
        assert record["exc_group_id"] == "grp-1"
        assert record["exc_period_ref"] == "FY2025-P12"
        assert record["exc_existing_run_id"] == "run-1"


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for run-scoped context propagation."""

    def test_set_and_get_all(self):
        LogContext.set(run_id="run-1", group_id="grp-1")
        assert LogContext.get_all() == {"run_id": "run-1", "group_id": "grp-1"}

    def test_set_ignores_none(self):
        LogContext.set(run_id="run-1")
        LogContext.set(run_id=None, period_ref="FY2025-P12")
        assert LogContext.get_all() == {"run_id": "run-1", "period_ref": "FY2025-P12"}

    def test_clear(self):
        LogContext.set(run_id="run-1", actor_id="controller")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_values(self):
        LogContext.set(run_id="outer")
        with LogContext.bind(run_id="inner", period_ref="FY2025-P12"):
            assert LogContext.get_all() == {"run_id": "inner", "period_ref": "FY2025-P12"}
        assert LogContext.get_all() == {"run_id": "outer"}

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(run_id="run-1", not_a_field="x"):
            assert LogContext.get_all() == {"run_id": "run-1"}

    def test_context_fields_in_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(run_id="run-9", group_id="grp-1"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["run_id"] == "run-9"
        assert inside["group_id"] == "grp-1"
        assert "run_id" not in outside


# ---------------------------------------------------------------------------
# configure / reset
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for logger hierarchy setup."""

    def test_configure_is_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert len(logging.getLogger("consolidation").handlers) == 1

    def test_configure_sets_level_and_stops_propagation(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        records = _parse_all_logs(stream)
        assert [r["message"] for r in records] == ["kept"]
        assert logging.getLogger("consolidation").propagate is False

    def test_reset_clears_handlers(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        reset_logging()
        root = logging.getLogger("consolidation")
        assert root.handlers == []
        assert root.propagate is True
