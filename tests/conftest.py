"""
Root test configuration for the consolidation engine.

Provides:
- Structured logging for the whole session and a ``captured_logs``
  fixture that returns parsed JSON log records.
- A ``deterministic_clock`` fixture.
- An in-memory SQLite ``session`` fixture with every consolidation table
  created and dropped around each test.
- A standard group (parent plus a wholly-owned EUR subsidiary and an 80%
  GBP subsidiary) registered in an ``InMemoryGroupDirectory``.
"""

import json
import logging
from collections.abc import Generator
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from consolidation_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.clock import DeterministicClock
from consolidation_kernel.domain.group import ConsolidationGroup, ConsolidationMember
from consolidation_kernel.domain.values import Percentage
from consolidation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from consolidation_modules.directory import FiscalPeriodInfo, InMemoryGroupDirectory

GROUP_ID = "grp-global"
PARENT_ID = "co-parent"
EUR_SUB_ID = "co-eur"
GBP_SUB_ID = "co-gbp"
PERIOD = FiscalPeriodRef(2025, 12)
PERIOD_START = date(2025, 12, 1)
PERIOD_END = date(2025, 12, 31)
FIXED_TIME = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture consolidation logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            service.run(GROUP_ID, PERIOD)
            logs = captured_logs()
            assert any(r["message"] == "consolidation_run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("consolidation")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Provide a deterministic clock for testing."""
    return DeterministicClock(FIXED_TIME)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database with every consolidation table."""
    init_engine_from_url("sqlite://")
    create_tables()
    sess = get_session()
    yield sess
    try:
        sess.close()
    finally:
        drop_tables()
        reset_engine()


# =============================================================================
# Group and period
# =============================================================================


def make_group(
    eur_ownership: str = "100",
    gbp_ownership: str = "80",
    extra_members: tuple[ConsolidationMember, ...] = (),
) -> ConsolidationGroup:
    return ConsolidationGroup(
        id=GROUP_ID,
        name="Global Holdings",
        parent_company_id=PARENT_ID,
        reporting_currency="USD",
        members=(
            ConsolidationMember.create(
                EUR_SUB_ID, "Euro Subsidiary GmbH", "EUR", Percentage.of(eur_ownership),
                acquisition_date=date(2020, 1, 1),
            ),
            ConsolidationMember.create(
                GBP_SUB_ID, "British Subsidiary Ltd", "GBP", Percentage.of(gbp_ownership),
                acquisition_date=date(2022, 7, 1),
            ),
        ) + extra_members,
    )


@pytest.fixture
def group() -> ConsolidationGroup:
    return make_group()


@pytest.fixture
def period_info() -> FiscalPeriodInfo:
    return FiscalPeriodInfo(PERIOD, PERIOD_START, PERIOD_END)


@pytest.fixture
def directory(group, period_info) -> InMemoryGroupDirectory:
    """Directory holding the standard group with the period closed for every company."""
    directory = InMemoryGroupDirectory()
    directory.add_group(group)
    directory.add_period(period_info)
    for company_id in (PARENT_ID,) + group.member_ids:
        directory.close_period(company_id, PERIOD)
    return directory


@pytest.fixture
def usd() -> str:
    return "USD"


def d(value: str) -> Decimal:
    return Decimal(value)
