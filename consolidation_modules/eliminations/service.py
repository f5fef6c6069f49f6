"""
Elimination Module Service (``consolidation_modules.eliminations.service``).

Responsibility
--------------
Generate consolidation elimination entries for a group and fiscal period:
validate preconditions, resolve rules and the balances each rule selects,
run the pure ``EliminationEngine``, and save the resulting entries.

Architecture position
---------------------
**Modules layer** -- ``EliminationService`` is the public entry point for
elimination generation.  The consolidation run orchestrator calls
``generate_from_balances`` with balances it has already translated.

Invariants enforced
-------------------
* Group and period existence are checked before rules are read.
* Entries are dated at the period end date and stamped with the
  injected clock.
* Only active, automatic rules have balances fetched.

Failure modes
-------------
* ``ConsolidationGroupNotFoundError`` / ``FiscalPeriodNotFoundError``.
* ``EliminationRuleNotFoundError`` from ``get_rule`` and
  ``generate_for_rule``.
* ``NoBalancesForEliminationError`` from ``generate_for_rule``.

Usage::

    service = EliminationService(repository, clock)
    result = service.generate_eliminations(group_id, FiscalPeriodRef(2025, 1))
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from consolidation_engines.elimination import EliminationEngine
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.clock import Clock, SystemClock
from consolidation_kernel.exceptions import (
    ConsolidationGroupNotFoundError,
    EliminationRuleNotFoundError,
    FiscalPeriodNotFoundError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_modules.eliminations.models import (
    AccountBalance,
    EliminationEntry,
    EliminationRule,
    GenerationResult,
)
from consolidation_modules.eliminations.repository import EliminationRepository

logger = get_logger("modules.eliminations.service")


class EliminationService:
    """
    Generates and saves elimination entries.

    Contract
    --------
    * ``generate_eliminations`` uses the supplied rules, or every rule of
      the group when ``rules`` is None.
    * Saved entries are exactly ``GenerationResult.entries``.

    Guarantees
    ----------
    * Clock and id generation are injectable for deterministic output.

    Non-goals
    ---------
    * Does NOT post entries to a general ledger.
    """

    def __init__(
        self,
        repository: EliminationRepository,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._engine = EliminationEngine(id_factory=id_factory)

    def generate_eliminations(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        rules: Sequence[EliminationRule] | None = None,
    ) -> GenerationResult:
        """
        Generate entries from repository balances.

        Raises:
            ConsolidationGroupNotFoundError: Unknown group.
            FiscalPeriodNotFoundError: Unknown period.
        """
        self._require_preconditions(group_id, period_ref)
        active_rules = list(rules) if rules is not None else self._repository.get_rules_by_group(group_id)
        balances_by_rule = {
            rule.id: self._repository.get_balances_for_rule(rule, period_ref)
            for rule in active_rules
            if rule.is_ready_for_processing
        }
        return self._generate(group_id, period_ref, active_rules, balances_by_rule)

    def generate_from_balances(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        balances: Sequence[AccountBalance],
        rules: Sequence[EliminationRule] | None = None,
    ) -> GenerationResult:
        """
        Generate entries from a caller-supplied balance pool.

        Each rule receives the balances its source selectors match.

        Raises:
            ConsolidationGroupNotFoundError: Unknown group.
            FiscalPeriodNotFoundError: Unknown period.
        """
        self._require_preconditions(group_id, period_ref)
        active_rules = list(rules) if rules is not None else self._repository.get_rules_by_group(group_id)
        balances_by_rule = {
            rule.id: [b for b in balances if rule.selects(b)]
            for rule in active_rules
            if rule.is_ready_for_processing
        }
        return self._generate(group_id, period_ref, active_rules, balances_by_rule)

    def get_rule(self, rule_id: str) -> EliminationRule:
        """
        Raises:
            EliminationRuleNotFoundError: Unknown rule.
        """
        rule = self._repository.get_rule(rule_id)
        if rule is None:
            raise EliminationRuleNotFoundError(rule_id)
        return rule

    def generate_for_rule(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        rule_id: str,
    ) -> tuple[EliminationEntry, ...]:
        """
        Generate and save the entries of a single rule, active or not.

        Raises:
            EliminationRuleNotFoundError: Unknown rule.
            NoBalancesForEliminationError: The rule selects no balances.
        """
        self._require_preconditions(group_id, period_ref)
        rule = self.get_rule(rule_id)
        entries = self._engine.generate_for_rule(
            group_id=group_id,
            period_ref=period_ref,
            rule=rule,
            balances=self._repository.get_balances_for_rule(rule, period_ref),
            currency=self._repository.get_group_currency(group_id),
            transaction_date=self._repository.get_period_end_date(period_ref),
            generated_at=self._clock.now(),
        )
        self._repository.save_entries(entries)
        logger.info("elimination_rule_generated", extra={
            "group_id": group_id,
            "period_ref": str(period_ref),
            "rule_id": rule_id,
            "entry_count": len(entries),
        })
        return entries

    def _require_preconditions(self, group_id: str, period_ref: FiscalPeriodRef) -> None:
        if not self._repository.group_exists(group_id):
            raise ConsolidationGroupNotFoundError(group_id)
        if not self._repository.period_exists(period_ref):
            raise FiscalPeriodNotFoundError(str(period_ref))

    def _generate(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        rules: Sequence[EliminationRule],
        balances_by_rule: dict[str, list[AccountBalance]],
    ) -> GenerationResult:
        t0 = time.monotonic()
        result = self._engine.generate(
            group_id=group_id,
            period_ref=period_ref,
            rules=rules,
            balances_by_rule=balances_by_rule,
            currency=self._repository.get_group_currency(group_id),
            transaction_date=self._repository.get_period_end_date(period_ref),
            generated_at=self._clock.now(),
        )
        self._repository.save_entries(result.entries)
        logger.info("eliminations_saved", extra={
            "group_id": group_id,
            "period_ref": str(period_ref),
            "entry_count": result.entry_count,
            "total_amount": str(result.total_amount.amount),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result
