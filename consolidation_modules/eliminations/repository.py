"""
Elimination repositories (``consolidation_modules.eliminations.repository``).

Responsibility
--------------
Define the lookups the elimination service needs (group and period
existence, rules, balances per rule, group currency, period end date)
and where generated entries are saved.

Architecture position
---------------------
**Modules layer** -- persistence adapters.  Rule and balance lookups are
pluggable; ``InMemoryEliminationRepository`` holds them in memory and
``SqlEliminationRepository`` additionally persists generated entries
through SQLAlchemy.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.exceptions import (
    ConsolidationGroupNotFoundError,
    FiscalPeriodNotFoundError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_modules.directory import GroupDirectory
from consolidation_modules.eliminations.models import (
    AccountBalance,
    EliminationEntry,
    EliminationRule,
)
from consolidation_modules.eliminations.orm import EliminationEntryModel

logger = get_logger("modules.eliminations.repository")


class EliminationRepository(Protocol):
    """Pluggable interface for elimination inputs and outputs."""

    def group_exists(self, group_id: str) -> bool:
        ...

    def period_exists(self, period_ref: FiscalPeriodRef) -> bool:
        ...

    def get_rules_by_group(self, group_id: str) -> list[EliminationRule]:
        ...

    def get_rule(self, rule_id: str) -> EliminationRule | None:
        ...

    def get_balances_for_rule(
        self, rule: EliminationRule, period_ref: FiscalPeriodRef,
    ) -> list[AccountBalance]:
        """Balances in the group currency selected by the rule's source accounts."""
        ...

    def get_group_currency(self, group_id: str) -> str:
        ...

    def get_period_end_date(self, period_ref: FiscalPeriodRef) -> date:
        ...

    def save_entries(self, entries: Sequence[EliminationEntry]) -> None:
        ...


class InMemoryEliminationRepository:
    """Rules, balances and entries held in memory; groups and periods from a directory."""

    def __init__(self, directory: GroupDirectory) -> None:
        self._directory = directory
        self._rules: dict[str, EliminationRule] = {}
        self._balances: dict[tuple[str, FiscalPeriodRef], list[AccountBalance]] = {}
        self._entries: dict[str, EliminationEntry] = {}

    def add_rule(self, rule: EliminationRule) -> None:
        self._rules[rule.id] = rule

    def add_balance(self, group_id: str, period_ref: FiscalPeriodRef, balance: AccountBalance) -> None:
        self._balances.setdefault((group_id, period_ref), []).append(balance)

    def group_exists(self, group_id: str) -> bool:
        return self._directory.group_exists(group_id)

    def period_exists(self, period_ref: FiscalPeriodRef) -> bool:
        return self._directory.period_exists(period_ref)

    def get_rules_by_group(self, group_id: str) -> list[EliminationRule]:
        return [rule for rule in self._rules.values() if rule.group_id == group_id]

    def get_rule(self, rule_id: str) -> EliminationRule | None:
        return self._rules.get(rule_id)

    def get_balances_for_rule(
        self, rule: EliminationRule, period_ref: FiscalPeriodRef,
    ) -> list[AccountBalance]:
        pool = self._balances.get((rule.group_id, period_ref), [])
        return [balance for balance in pool if rule.selects(balance)]

    def get_group_currency(self, group_id: str) -> str:
        group = self._directory.get_group(group_id)
        if group is None:
            raise ConsolidationGroupNotFoundError(group_id)
        return group.reporting_currency

    def get_period_end_date(self, period_ref: FiscalPeriodRef) -> date:
        period = self._directory.get_period(period_ref)
        if period is None:
            raise FiscalPeriodNotFoundError(str(period_ref))
        return period.end_date

    def save_entries(self, entries: Sequence[EliminationEntry]) -> None:
        for entry in entries:
            self._entries[entry.id] = entry

    def get_entry(self, entry_id: str) -> EliminationEntry | None:
        return self._entries.get(entry_id)

    def find_entries(self, group_id: str, period_ref: FiscalPeriodRef) -> list[EliminationEntry]:
        return [
            entry
            for entry in self._entries.values()
            if entry.group_id == group_id and entry.period_ref == period_ref
        ]


class SqlEliminationRepository(InMemoryEliminationRepository):
    """
    Elimination repository whose generated entries persist through SQLAlchemy.

    Contract:
        Rules and balances stay in memory; entries are flushed to the
        session and never committed here.  Entry and line ids must be
        UUID strings.
    """

    def __init__(self, session: Session, directory: GroupDirectory) -> None:
        super().__init__(directory)
        self._session = session

    def save_entries(self, entries: Sequence[EliminationEntry]) -> None:
        for entry in entries:
            self._session.add(EliminationEntryModel.from_dto(entry))
        self._session.flush()
        logger.debug("elimination_entries_persisted", extra={"entry_count": len(entries)})

    def get_entry(self, entry_id: str) -> EliminationEntry | None:
        row = self._session.get(EliminationEntryModel, UUID(entry_id))
        return row.to_dto() if row is not None else None

    def find_entries(self, group_id: str, period_ref: FiscalPeriodRef) -> list[EliminationEntry]:
        stmt = (
            select(EliminationEntryModel)
            .where(
                EliminationEntryModel.group_id == group_id,
                EliminationEntryModel.fiscal_year == period_ref.year,
                EliminationEntryModel.fiscal_period == period_ref.period,
            )
            .order_by(EliminationEntryModel.generated_at, EliminationEntryModel.rule_id)
        )
        return [row.to_dto() for row in self._session.scalars(stmt)]
