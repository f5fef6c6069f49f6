"""
Tests for ConsolidationRun progress accessors.

Covers:
- progress_percent counts steps carrying a completion timestamp
- current_step / current_step_type point at the step in progress
- Skipped steps after a failure do not count towards progress
"""

import dataclasses
from datetime import date, datetime, timedelta, timezone

import pytest

from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_modules.consolidation.models import (
    CONSOLIDATION_STEP_ORDER,
    ConsolidationRun,
    ConsolidationRunStatus,
    ConsolidationStepStatus,
    ConsolidationStepType,
)

STARTED = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def _run(statuses: list[ConsolidationStepStatus], run_status=ConsolidationRunStatus.IN_PROGRESS):
    """Build a run whose leading steps carry ``statuses``; the rest stay Pending."""
    run = ConsolidationRun(
        id="run-1",
        group_id="grp",
        period_ref=FiscalPeriodRef(2025, 12),
        as_of_date=date(2025, 12, 31),
        status=run_status,
        initiated_by="controller",
        initiated_at=STARTED,
    )
    steps = []
    for index, step in enumerate(run.steps):
        if index >= len(statuses):
            steps.append(step)
            continue
        status = statuses[index]
        finished = status in (ConsolidationStepStatus.COMPLETED, ConsolidationStepStatus.FAILED)
        steps.append(dataclasses.replace(
            step,
            status=status,
            started_at=STARTED + timedelta(seconds=index) if status != ConsolidationStepStatus.SKIPPED else None,
            completed_at=STARTED + timedelta(seconds=index + 1) if finished else None,
        ))
    return dataclasses.replace(run, steps=tuple(steps))


class TestProgress:
    """Tests for progress_percent and current_step."""

    def test_new_run(self):
        run = _run([])
        assert run.progress_percent == 0
        assert run.current_step is None
        assert run.current_step_type is None
        assert [s.step_type for s in run.steps] == list(CONSOLIDATION_STEP_ORDER)

    def test_three_completed_one_running(self):
        done = ConsolidationStepStatus.COMPLETED
        run = _run([done, done, done, ConsolidationStepStatus.IN_PROGRESS])

        assert run.progress_percent == 43
        assert run.current_step_type == ConsolidationStepType.MATCH_IC
        assert run.current_step.started_at == STARTED + timedelta(seconds=3)
        assert run.completed_step_count == 3

    def test_failed_then_skipped(self):
        run = _run(
            [ConsolidationStepStatus.COMPLETED, ConsolidationStepStatus.FAILED]
            + [ConsolidationStepStatus.SKIPPED] * 5,
            run_status=ConsolidationRunStatus.FAILED,
        )

        # Validate and the failed Translate carry completed_at; skipped steps do not.
        assert run.progress_percent == 29
        assert run.current_step is None
        assert run.failed_step_count == 1
        assert sum(1 for s in run.steps if s.is_skipped) == 5

    def test_all_completed(self):
        run = _run([ConsolidationStepStatus.COMPLETED] * 7, ConsolidationRunStatus.COMPLETED)
        assert run.progress_percent == 100
        assert run.current_step_type is None

    def test_get_step_unknown_type(self):
        run = dataclasses.replace(_run([]), steps=())
        assert run.progress_percent == 0
        with pytest.raises(KeyError):
            run.get_step(ConsolidationStepType.VALIDATE)
