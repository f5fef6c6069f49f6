"""
Consolidation run repositories and data providers
(``consolidation_modules.consolidation.repository``).

Responsibility
--------------
Define the contracts the run orchestrator reads and writes through:

* ``ConsolidationRunRepository`` -- save, update and look up runs.
* ``MemberTrialBalanceSource`` -- a member's functional-currency trial
  balance for a period.
* ``TranslationRateSource`` -- the rates that translate one member into
  the reporting currency.

In-memory implementations of all three, and a SQLAlchemy implementation
of the run repository, live here.

Architecture position
---------------------
**Modules layer** -- persistence adapters.  Trial balances and rates come
from the general ledger and the rate store, which sit outside this
package; only runs are persisted by the engine itself.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from consolidation_engines.translation import TranslationRates
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.exceptions import ConsolidationRunNotFoundError
from consolidation_kernel.logging_config import get_logger
from consolidation_modules.consolidation.models import ConsolidationRun, MemberTrialBalance
from consolidation_modules.consolidation.orm import ConsolidationRunModel

logger = get_logger("modules.consolidation.repository")


class ConsolidationRunRepository(Protocol):
    """Pluggable interface for consolidation run storage."""

    def save(self, run: ConsolidationRun) -> ConsolidationRun:
        ...

    def update(self, run: ConsolidationRun) -> ConsolidationRun:
        ...

    def get(self, run_id: str) -> ConsolidationRun | None:
        ...

    def find_by_group_and_period(
        self, group_id: str, period_ref: FiscalPeriodRef,
    ) -> list[ConsolidationRun]:
        """Runs for the (group, period), oldest first."""
        ...


class MemberTrialBalanceSource(Protocol):
    """Pluggable interface for member trial balances."""

    def get_member_trial_balance(
        self, company_id: str, period_ref: FiscalPeriodRef,
    ) -> MemberTrialBalance | None:
        ...


class TranslationRateSource(Protocol):
    """Pluggable interface for translation rates."""

    def get_translation_rates(
        self,
        company_id: str,
        from_currency: str,
        to_currency: str,
        period_ref: FiscalPeriodRef,
    ) -> TranslationRates | None:
        ...


class InMemoryConsolidationRunRepository:
    def __init__(self) -> None:
        self._runs: dict[str, ConsolidationRun] = {}

    def save(self, run: ConsolidationRun) -> ConsolidationRun:
        self._runs[run.id] = run
        return run

    def update(self, run: ConsolidationRun) -> ConsolidationRun:
        if run.id not in self._runs:
            raise ConsolidationRunNotFoundError(run.id)
        self._runs[run.id] = run
        return run

    def get(self, run_id: str) -> ConsolidationRun | None:
        return self._runs.get(run_id)

    def find_by_group_and_period(
        self, group_id: str, period_ref: FiscalPeriodRef,
    ) -> list[ConsolidationRun]:
        runs = [
            run for run in self._runs.values()
            if run.group_id == group_id and run.period_ref == period_ref
        ]
        return sorted(runs, key=lambda r: r.initiated_at)


class InMemoryTrialBalanceSource:
    def __init__(self) -> None:
        self._balances: dict[tuple[str, FiscalPeriodRef], MemberTrialBalance] = {}

    def add(self, period_ref: FiscalPeriodRef, trial_balance: MemberTrialBalance) -> None:
        self._balances[(trial_balance.company_id, period_ref)] = trial_balance

    def get_member_trial_balance(
        self, company_id: str, period_ref: FiscalPeriodRef,
    ) -> MemberTrialBalance | None:
        return self._balances.get((company_id, period_ref))


class InMemoryTranslationRateSource:
    """Rates keyed by (company, period); the currency pair is not re-checked."""

    def __init__(self) -> None:
        self._rates: dict[tuple[str, FiscalPeriodRef], TranslationRates] = {}

    def add(self, company_id: str, period_ref: FiscalPeriodRef, rates: TranslationRates) -> None:
        self._rates[(company_id, period_ref)] = rates

    def get_translation_rates(
        self,
        company_id: str,
        from_currency: str,
        to_currency: str,
        period_ref: FiscalPeriodRef,
    ) -> TranslationRates | None:
        return self._rates.get((company_id, period_ref))


class SqlConsolidationRunRepository:
    """
    SQLAlchemy-backed run repository.

    Contract:
        Writes are flushed, never committed; the caller owns the
        transaction boundary.  Run ids must be UUID strings.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def save(self, run: ConsolidationRun) -> ConsolidationRun:
        self._session.add(ConsolidationRunModel.from_dto(run))
        self._session.flush()
        logger.debug("consolidation_run_saved", extra={
            "run_id": run.id,
            "status": run.status.value,
        })
        return run

    def update(self, run: ConsolidationRun) -> ConsolidationRun:
        row = self._session.get(ConsolidationRunModel, UUID(run.id))
        if row is None:
            raise ConsolidationRunNotFoundError(run.id)
        row.apply(run)
        self._session.flush()
        return run

    def get(self, run_id: str) -> ConsolidationRun | None:
        row = self._session.get(ConsolidationRunModel, UUID(run_id))
        return row.to_dto() if row is not None else None

    def find_by_group_and_period(
        self, group_id: str, period_ref: FiscalPeriodRef,
    ) -> list[ConsolidationRun]:
        stmt = (
            select(ConsolidationRunModel)
            .where(
                ConsolidationRunModel.group_id == group_id,
                ConsolidationRunModel.fiscal_year == period_ref.year,
                ConsolidationRunModel.fiscal_period == period_ref.period,
            )
            .order_by(ConsolidationRunModel.initiated_at)
        )
        return [row.to_dto() for row in self._session.scalars(stmt)]
