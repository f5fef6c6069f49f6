"""
consolidation_engines.elimination -- Rule-driven generation of
consolidation elimination entries.

Responsibility:
    Apply active, automatic elimination rules in ascending priority to the
    account balances each rule selects, producing self-balancing two-line
    elimination entries for intercompany balances, investments in
    subsidiaries and unrealized intragroup profit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Balances arrive already selected per rule; ids and ``generated_at``
    are supplied by the caller.

Invariants enforced:
    - Rules run in ascending priority; ties keep their input order.
    - Every entry has exactly one debit line and one credit line of equal
      magnitude, so total debits == total credits by construction.
    - Receivable/payable, revenue/expense and dividend rules eliminate
      per unordered company pair, only for pairs with at least two
      balances and a nonzero net.
    - Investment and unrealized-profit rules eliminate the sum of all
      selected balances as a single entry, if nonzero.
    - A rule with no balances or no resulting entry is skipped, not failed.

Failure modes:
    - NoBalancesForEliminationError from ``generate_for_rule`` when a
      single rule is requested and it has no balances.
    - CurrencyMismatchError if a balance is not in the group currency.

Audit relevance:
    Each entry references the rule that produced it and starts unposted
    (``is_posted=False``, ``journal_entry_id=None``).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import uuid4

from consolidation_engines.tracer import traced_engine
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.exceptions import NoBalancesForEliminationError
from consolidation_kernel.logging_config import get_logger

logger = get_logger("engines.elimination")

HIGH_PRIORITY_THRESHOLD = 10
LOW_PRIORITY_THRESHOLD = 100


class EliminationType(str, Enum):
    INTERCOMPANY_RECEIVABLE_PAYABLE = "IntercompanyReceivablePayable"
    INTERCOMPANY_REVENUE_EXPENSE = "IntercompanyRevenueExpense"
    INTERCOMPANY_DIVIDEND = "IntercompanyDividend"
    INTERCOMPANY_INVESTMENT = "IntercompanyInvestment"
    UNREALIZED_PROFIT_INVENTORY = "UnrealizedProfitInventory"
    UNREALIZED_PROFIT_FIXED_ASSETS = "UnrealizedProfitFixedAssets"

    @property
    def is_pair_based(self) -> bool:
        return self in _PAIR_BASED_TYPES


_PAIR_BASED_TYPES = frozenset({
    EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE,
    EliminationType.INTERCOMPANY_REVENUE_EXPENSE,
    EliminationType.INTERCOMPANY_DIVIDEND,
})

_DESCRIPTIONS: dict[EliminationType, str] = {
    EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE: "Elimination of intercompany receivable/payable",
    EliminationType.INTERCOMPANY_REVENUE_EXPENSE: "Elimination of intercompany revenue/expense",
    EliminationType.INTERCOMPANY_DIVIDEND: "Elimination of intercompany dividend",
    EliminationType.INTERCOMPANY_INVESTMENT: "Elimination of investment in subsidiary",
    EliminationType.UNREALIZED_PROFIT_INVENTORY: "Elimination of unrealized profit in inventory",
    EliminationType.UNREALIZED_PROFIT_FIXED_ASSETS: "Elimination of unrealized profit in fixed assets",
}


def elimination_description(elimination_type: EliminationType, rule_id: str) -> str:
    return f"{_DESCRIPTIONS[elimination_type]} - Rule {rule_id}"


def _memo_prefix(elimination_type: EliminationType) -> str:
    if elimination_type == EliminationType.INTERCOMPANY_INVESTMENT:
        return "Investment elimination"
    if elimination_type in (
        EliminationType.UNREALIZED_PROFIT_INVENTORY,
        EliminationType.UNREALIZED_PROFIT_FIXED_ASSETS,
    ):
        return "Unrealized profit elimination"
    return "Elimination"


# ---------------------------------------------------------------------------
# Account selectors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountSelectorById:
    account_id: str


@dataclass(frozen=True)
class AccountSelectorByRange:
    from_account_number: str
    to_account_number: str

    def is_in_range(self, account_number: str) -> bool:
        return self.from_account_number <= account_number <= self.to_account_number


@dataclass(frozen=True)
class AccountSelectorByCategory:
    category: str


AccountSelector = AccountSelectorById | AccountSelectorByRange | AccountSelectorByCategory


@dataclass(frozen=True)
class AccountBalance:
    """Period-end balance of one account in one company, in group currency."""

    account_id: str
    account_number: str
    account_category: str
    company_id: str
    balance: MonetaryAmount
    intercompany_partner_id: str | None = None


def selector_matches(selector: AccountSelector, balance: AccountBalance) -> bool:
    """Resolve any selector variant against a balance."""
    match selector:
        case AccountSelectorById(account_id=account_id):
            return balance.account_id == account_id
        case AccountSelectorByRange():
            return selector.is_in_range(balance.account_number)
        case AccountSelectorByCategory(category=category):
            return balance.account_category == category
    raise TypeError(f"Unknown account selector: {selector!r}")


# ---------------------------------------------------------------------------
# Rules and entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TriggerCondition:
    description: str
    source_accounts: tuple[AccountSelector, ...] = ()
    minimum_amount: MonetaryAmount | None = None

    @property
    def has_source_accounts(self) -> bool:
        return len(self.source_accounts) > 0


@dataclass(frozen=True)
class EliminationRule:
    """
    Configuration for one kind of elimination in a group.

    Lower ``priority`` runs first.  Only active, automatic rules are
    applied by the generator.
    """

    id: str
    group_id: str
    name: str
    elimination_type: EliminationType
    debit_account_id: str
    credit_account_id: str
    source_accounts: tuple[AccountSelector, ...] = ()
    target_accounts: tuple[AccountSelector, ...] = ()
    trigger_conditions: tuple[TriggerCondition, ...] = ()
    description: str | None = None
    is_automatic: bool = True
    priority: int = 100
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.priority < 0:
            raise ValueError(f"Rule priority must be >= 0, got {self.priority}")

    @property
    def is_high_priority(self) -> bool:
        return self.priority <= HIGH_PRIORITY_THRESHOLD

    @property
    def is_low_priority(self) -> bool:
        return self.priority > LOW_PRIORITY_THRESHOLD

    @property
    def is_receivable_payable_elimination(self) -> bool:
        return self.elimination_type == EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE

    @property
    def is_investment_elimination(self) -> bool:
        return self.elimination_type == EliminationType.INTERCOMPANY_INVESTMENT

    @property
    def is_unrealized_profit_elimination(self) -> bool:
        return self.elimination_type in (
            EliminationType.UNREALIZED_PROFIT_INVENTORY,
            EliminationType.UNREALIZED_PROFIT_FIXED_ASSETS,
        )

    @property
    def is_income_statement_elimination(self) -> bool:
        return self.elimination_type in (
            EliminationType.INTERCOMPANY_REVENUE_EXPENSE,
            EliminationType.INTERCOMPANY_DIVIDEND,
        )

    @property
    def requires_manual_processing(self) -> bool:
        return not self.is_automatic

    @property
    def is_ready_for_processing(self) -> bool:
        return self.is_active and self.is_automatic

    def selects(self, balance: AccountBalance) -> bool:
        return any(selector_matches(s, balance) for s in self.source_accounts)


@dataclass(frozen=True)
class EliminationEntryLine:
    id: str
    line_number: int
    account_id: str
    debit_amount: MonetaryAmount | None = None
    credit_amount: MonetaryAmount | None = None
    memo: str | None = None

    @property
    def is_debit(self) -> bool:
        return self.debit_amount is not None

    @property
    def is_credit(self) -> bool:
        return self.credit_amount is not None

    @property
    def amount(self) -> MonetaryAmount:
        return self.debit_amount if self.debit_amount is not None else self.credit_amount


@dataclass(frozen=True)
class EliminationEntry:
    id: str
    group_id: str
    rule_id: str
    elimination_type: EliminationType
    period_ref: FiscalPeriodRef
    transaction_date: date
    description: str
    currency: str
    amount: MonetaryAmount
    lines: tuple[EliminationEntryLine, ...]
    generated_at: datetime
    journal_entry_id: str | None = None
    is_posted: bool = False
    from_company_id: str | None = None
    to_company_id: str | None = None

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def total_debits(self) -> MonetaryAmount:
        return MonetaryAmount.sum(
            (line.debit_amount for line in self.lines if line.debit_amount is not None),
            self.currency,
        )

    @property
    def total_credits(self) -> MonetaryAmount:
        return MonetaryAmount.sum(
            (line.credit_amount for line in self.lines if line.credit_amount is not None),
            self.currency,
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def is_intercompany_elimination(self) -> bool:
        return self.from_company_id is not None and self.to_company_id is not None


@dataclass(frozen=True)
class GenerationResult:
    entries: tuple[EliminationEntry, ...]
    processed_rule_ids: tuple[str, ...]
    skipped_rule_ids: tuple[str, ...]
    total_amount: MonetaryAmount
    generated_at: datetime

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def has_entries(self) -> bool:
        return len(self.entries) > 0


def sort_rules_by_priority(rules: Sequence[EliminationRule]) -> list[EliminationRule]:
    """Stable ascending sort on priority."""
    return sorted(rules, key=lambda r: r.priority)


@dataclass
class _EntryContext:
    group_id: str
    period_ref: FiscalPeriodRef
    transaction_date: date
    currency: str
    generated_at: datetime
    id_factory: Callable[[], str]


class EliminationEngine:
    """
    Generates elimination entries from rules and selected balances.

    Contract:
        Pure apart from id generation, which is injectable.
    Guarantees:
        - Every returned entry is balanced with exactly two lines.
        - ``processed_rule_ids`` and ``skipped_rule_ids`` partition the
          applied rules.
    Non-goals:
        - Does NOT select balances; callers pass them keyed by rule id.
        - Does NOT post entries to a ledger.
    """

    def __init__(self, id_factory: Callable[[], str] | None = None) -> None:
        self._id_factory = id_factory or (lambda: str(uuid4()))

    @traced_engine("elimination", "1.0", fingerprint_fields=("group_id", "period_ref", "rules"))
    def generate(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        rules: Sequence[EliminationRule],
        balances_by_rule: Mapping[str, Sequence[AccountBalance]],
        currency: str,
        transaction_date: date,
        generated_at: datetime,
    ) -> GenerationResult:
        t0 = time.monotonic()
        applicable = sort_rules_by_priority([r for r in rules if r.is_ready_for_processing])
        logger.info("elimination_generation_started", extra={
            "group_id": group_id,
            "period_ref": str(period_ref),
            "rule_count": len(rules),
            "applicable_rule_count": len(applicable),
        })

        ctx = _EntryContext(
            group_id=group_id,
            period_ref=period_ref,
            transaction_date=transaction_date,
            currency=currency,
            generated_at=generated_at,
            id_factory=self._id_factory,
        )

        entries: list[EliminationEntry] = []
        processed: list[str] = []
        skipped: list[str] = []
        total = MonetaryAmount.zero(currency)

        for rule in applicable:
            balances = balances_by_rule.get(rule.id, ())
            rule_entries = self._entries_for_rule(rule, balances, ctx) if balances else []
            if not rule_entries:
                skipped.append(rule.id)
                logger.info("elimination_rule_skipped", extra={
                    "rule_id": rule.id,
                    "elimination_type": rule.elimination_type.value,
                    "balance_count": len(balances),
                })
                continue
            for entry in rule_entries:
                entries.append(entry)
                total = total + entry.amount
            processed.append(rule.id)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("elimination_generation_completed", extra={
            "group_id": group_id,
            "period_ref": str(period_ref),
            "entry_count": len(entries),
            "processed_rule_count": len(processed),
            "skipped_rule_count": len(skipped),
            "total_amount": str(total.amount),
            "duration_ms": duration_ms,
        })

        return GenerationResult(
            entries=tuple(entries),
            processed_rule_ids=tuple(processed),
            skipped_rule_ids=tuple(skipped),
            total_amount=total,
            generated_at=generated_at,
        )

    def generate_for_rule(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        rule: EliminationRule,
        balances: Sequence[AccountBalance],
        currency: str,
        transaction_date: date,
        generated_at: datetime,
    ) -> tuple[EliminationEntry, ...]:
        """
        Generate the entries of one rule.

        Raises:
            NoBalancesForEliminationError: If ``balances`` is empty.
        """
        if not balances:
            raise NoBalancesForEliminationError(rule_id=rule.id, period_ref=str(period_ref))
        ctx = _EntryContext(
            group_id=group_id,
            period_ref=period_ref,
            transaction_date=transaction_date,
            currency=currency,
            generated_at=generated_at,
            id_factory=self._id_factory,
        )
        return tuple(self._entries_for_rule(rule, balances, ctx))

    def _entries_for_rule(
        self,
        rule: EliminationRule,
        balances: Sequence[AccountBalance],
        ctx: _EntryContext,
    ) -> list[EliminationEntry]:
        if rule.elimination_type.is_pair_based:
            return self._pair_entries(rule, balances, ctx)
        return self._single_entry(rule, balances, ctx)

    def _pair_entries(
        self,
        rule: EliminationRule,
        balances: Sequence[AccountBalance],
        ctx: _EntryContext,
    ) -> list[EliminationEntry]:
        groups: dict[str, list[AccountBalance]] = {}
        for balance in balances:
            if balance.intercompany_partner_id is None:
                continue
            first, second = sorted((balance.company_id, balance.intercompany_partner_id))
            groups.setdefault(f"{first}|{second}", []).append(balance)

        entries: list[EliminationEntry] = []
        for pair_balances in groups.values():
            if len(pair_balances) < 2:
                continue
            total = MonetaryAmount.sum((b.balance for b in pair_balances), ctx.currency)
            if total.is_zero:
                continue
            head = pair_balances[0]
            entries.append(
                self._build_entry(
                    rule,
                    total.abs(),
                    ctx,
                    from_company_id=head.company_id,
                    to_company_id=head.intercompany_partner_id,
                )
            )
        return entries

    def _single_entry(
        self,
        rule: EliminationRule,
        balances: Sequence[AccountBalance],
        ctx: _EntryContext,
    ) -> list[EliminationEntry]:
        total = MonetaryAmount.sum((b.balance for b in balances), ctx.currency)
        if total.is_zero:
            return []
        head = balances[0]
        return [
            self._build_entry(
                rule,
                total.abs(),
                ctx,
                from_company_id=head.company_id,
                to_company_id=head.intercompany_partner_id,
            )
        ]

    @staticmethod
    def _build_entry(
        rule: EliminationRule,
        amount: MonetaryAmount,
        ctx: _EntryContext,
        *,
        from_company_id: str | None,
        to_company_id: str | None,
    ) -> EliminationEntry:
        entry_id = ctx.id_factory()
        prefix = _memo_prefix(rule.elimination_type)
        lines = (
            EliminationEntryLine(
                id=ctx.id_factory(),
                line_number=1,
                account_id=rule.debit_account_id,
                debit_amount=amount,
                memo=f"{prefix} debit - {rule.name}",
            ),
            EliminationEntryLine(
                id=ctx.id_factory(),
                line_number=2,
                account_id=rule.credit_account_id,
                credit_amount=amount,
                memo=f"{prefix} credit - {rule.name}",
            ),
        )
        return EliminationEntry(
            id=entry_id,
            group_id=ctx.group_id,
            rule_id=rule.id,
            elimination_type=rule.elimination_type,
            period_ref=ctx.period_ref,
            transaction_date=ctx.transaction_date,
            description=elimination_description(rule.elimination_type, rule.id),
            currency=ctx.currency,
            amount=amount,
            lines=lines,
            generated_at=ctx.generated_at,
            from_company_id=from_company_id,
            to_company_id=to_company_id,
        )
