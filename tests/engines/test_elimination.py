"""
Tests for the Elimination Engine.

Covers:
- Pair-based entries (receivable/payable, revenue/expense, dividends)
- Single-entry rules (investment, unrealized profit)
- Entry shape: ids, line memos, description, balance
- Rule filtering (inactive, manual) and priority ordering
- Account selectors
"""

from datetime import date, datetime, timezone
from itertools import count

import pytest

from consolidation_engines.elimination import (
    AccountBalance,
    AccountSelectorByCategory,
    AccountSelectorById,
    AccountSelectorByRange,
    EliminationEngine,
    EliminationRule,
    EliminationType,
    elimination_description,
    selector_matches,
    sort_rules_by_priority,
)
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.exceptions import NoBalancesForEliminationError

PERIOD = FiscalPeriodRef(2025, 12)
TX_DATE = date(2025, 12, 31)
GENERATED_AT = datetime(2026, 1, 5, tzinfo=timezone.utc)


def _ids():
    counter = count(1)
    return lambda: f"id-{next(counter)}"


def _usd(value: str) -> MonetaryAmount:
    return MonetaryAmount.of(value, "USD")


def _balance(
    company: str,
    amount: str,
    partner: str | None = None,
    *,
    account_id: str = "acct-1300",
    number: str = "1300",
    category: str = "IntercompanyReceivable",
) -> AccountBalance:
    return AccountBalance(
        account_id=account_id,
        account_number=number,
        account_category=category,
        company_id=company,
        balance=_usd(amount),
        intercompany_partner_id=partner,
    )


def _rule(
    rule_id: str,
    elimination_type: EliminationType = EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE,
    *,
    priority: int = 100,
    is_active: bool = True,
    is_automatic: bool = True,
    name: str = "IC balances",
) -> EliminationRule:
    return EliminationRule(
        id=rule_id,
        group_id="grp",
        name=name,
        elimination_type=elimination_type,
        debit_account_id="acct-2300",
        credit_account_id="acct-1300",
        priority=priority,
        is_active=is_active,
        is_automatic=is_automatic,
    )


def _generate(engine, rules, balances_by_rule):
    return engine.generate("grp", PERIOD, rules, balances_by_rule, "USD", TX_DATE, GENERATED_AT)


class TestPairEntries:
    """Tests for pair-based elimination types."""

    def setup_method(self):
        self.engine = EliminationEngine(id_factory=_ids())

    def test_pair_with_net_balance_produces_one_entry(self):
        rule = _rule("r1")
        result = _generate(self.engine, [rule], {
            "r1": [_balance("co-a", "1000", "co-b"), _balance("co-b", "-990", "co-a")],
        })
        assert result.entry_count == 1
        entry = result.entries[0]
        assert entry.amount == _usd("10")
        assert entry.from_company_id == "co-a"
        assert entry.to_company_id == "co-b"
        assert entry.is_intercompany_elimination

    def test_pair_netting_to_zero_produces_nothing(self):
        result = _generate(self.engine, [_rule("r1")], {
            "r1": [_balance("co-a", "500", "co-b"), _balance("co-b", "-500", "co-a")],
        })
        assert not result.has_entries
        assert result.skipped_rule_ids == ("r1",)

    def test_single_sided_pair_ignored(self):
        result = _generate(self.engine, [_rule("r1")], {"r1": [_balance("co-a", "500", "co-b")]})
        assert not result.has_entries

    def test_balances_without_partner_ignored(self):
        result = _generate(self.engine, [_rule("r1")], {
            "r1": [_balance("co-a", "500"), _balance("co-b", "300")],
        })
        assert not result.has_entries

    def test_one_entry_per_company_pair(self):
        result = _generate(self.engine, [_rule("r1")], {
            "r1": [
                _balance("co-a", "100", "co-b"),
                _balance("co-b", "-40", "co-a"),
                _balance("co-c", "70", "co-a"),
                _balance("co-a", "-50", "co-c"),
            ],
        })
        assert [e.amount for e in result.entries] == [_usd("60"), _usd("20")]
        assert result.total_amount == _usd("80")

    def test_negative_net_uses_magnitude(self):
        result = _generate(self.engine, [_rule("r1", EliminationType.INTERCOMPANY_DIVIDEND)], {
            "r1": [_balance("co-a", "-300", "co-b"), _balance("co-b", "100", "co-a")],
        })
        assert result.entries[0].amount == _usd("200")


class TestSingleEntries:
    """Tests for investment and unrealized profit rules."""

    def setup_method(self):
        self.engine = EliminationEngine(id_factory=_ids())

    def test_investment_sums_all_balances(self):
        rule = _rule("inv", EliminationType.INTERCOMPANY_INVESTMENT, name="Investment in subs")
        result = _generate(self.engine, [rule], {
            "inv": [_balance("co-parent", "800"), _balance("co-parent", "200")],
        })
        entry = result.entries[0]
        assert entry.amount == _usd("1000")
        assert entry.from_company_id == "co-parent"
        assert entry.to_company_id is None
        assert entry.lines[0].memo == "Investment elimination debit - Investment in subs"
        assert entry.lines[1].memo == "Investment elimination credit - Investment in subs"

    def test_unrealized_profit_memo(self):
        rule = _rule("up", EliminationType.UNREALIZED_PROFIT_INVENTORY, name="Inventory margin")
        result = _generate(self.engine, [rule], {"up": [_balance("co-a", "-45")]})
        entry = result.entries[0]
        assert entry.amount == _usd("45")
        assert entry.lines[0].memo == "Unrealized profit elimination debit - Inventory margin"
        assert entry.description == "Elimination of unrealized profit in inventory - Rule up"

    def test_zero_sum_produces_nothing(self):
        rule = _rule("inv", EliminationType.INTERCOMPANY_INVESTMENT)
        result = _generate(self.engine, [rule], {
            "inv": [_balance("co-parent", "100"), _balance("co-parent", "-100")],
        })
        assert result.skipped_rule_ids == ("inv",)


class TestEntryShape:
    """Tests for the generated entry structure."""

    def setup_method(self):
        self.engine = EliminationEngine(id_factory=_ids())
        result = _generate(self.engine, [_rule("r1")], {
            "r1": [_balance("co-a", "250", "co-b"), _balance("co-b", "-50", "co-a")],
        })
        self.entry = result.entries[0]

    def test_ids_drawn_in_order(self):
        assert self.entry.id == "id-1"
        assert [line.id for line in self.entry.lines] == ["id-2", "id-3"]

    def test_two_balanced_lines(self):
        debit, credit = self.entry.lines
        assert self.entry.line_count == 2
        assert debit.line_number == 1
        assert debit.is_debit
        assert debit.account_id == "acct-2300"
        assert credit.line_number == 2
        assert credit.is_credit
        assert credit.account_id == "acct-1300"
        assert debit.amount == credit.amount == _usd("200")
        assert self.entry.is_balanced
        assert self.entry.total_debits == self.entry.total_credits

    def test_memos_and_description(self):
        assert self.entry.lines[0].memo == "Elimination debit - IC balances"
        assert self.entry.lines[1].memo == "Elimination credit - IC balances"
        assert self.entry.description == "Elimination of intercompany receivable/payable - Rule r1"

    def test_unposted_metadata(self):
        assert not self.entry.is_posted
        assert self.entry.journal_entry_id is None
        assert self.entry.period_ref == PERIOD
        assert self.entry.transaction_date == TX_DATE
        assert self.entry.generated_at == GENERATED_AT
        assert self.entry.rule_id == "r1"

    def test_default_ids_are_uuids(self):
        result = _generate(EliminationEngine(), [_rule("r1")], {
            "r1": [_balance("co-a", "1", "co-b"), _balance("co-b", "1", "co-a")],
        })
        assert len(result.entries[0].id) == 36


class TestRuleSelection:
    """Tests for rule filtering and ordering."""

    def setup_method(self):
        self.engine = EliminationEngine(id_factory=_ids())
        self.balances = [_balance("co-parent", "100")]

    def test_inactive_and_manual_rules_not_applied(self):
        rules = [
            _rule("active", EliminationType.INTERCOMPANY_INVESTMENT),
            _rule("inactive", EliminationType.INTERCOMPANY_INVESTMENT, is_active=False),
            _rule("manual", EliminationType.INTERCOMPANY_INVESTMENT, is_automatic=False),
        ]
        result = _generate(self.engine, rules, {r.id: self.balances for r in rules})
        assert result.processed_rule_ids == ("active",)
        assert result.skipped_rule_ids == ()

    def test_priority_order(self):
        rules = [
            _rule("late", EliminationType.INTERCOMPANY_INVESTMENT, priority=50),
            _rule("early", EliminationType.INTERCOMPANY_INVESTMENT, priority=5),
            _rule("tie", EliminationType.INTERCOMPANY_INVESTMENT, priority=50),
        ]
        result = _generate(self.engine, rules, {r.id: self.balances for r in rules})
        assert result.processed_rule_ids == ("early", "late", "tie")
        assert [e.rule_id for e in result.entries] == ["early", "late", "tie"]

    def test_rule_without_balances_skipped(self):
        result = _generate(self.engine, [_rule("r1")], {})
        assert result.skipped_rule_ids == ("r1",)
        assert result.total_amount == _usd("0")

    def test_sort_is_stable(self):
        a = _rule("a", priority=10)
        b = _rule("b", priority=10)
        assert sort_rules_by_priority([b, a]) == [b, a]

    def test_negative_priority_rejected(self):
        with pytest.raises(ValueError):
            _rule("bad", priority=-1)

    def test_priority_flags(self):
        assert _rule("r", priority=10).is_high_priority
        assert _rule("r", priority=101).is_low_priority
        assert not _rule("r", priority=50).is_high_priority


class TestGenerateForRule:
    """Tests for single-rule generation."""

    def test_empty_balances_raise(self):
        with pytest.raises(NoBalancesForEliminationError) as exc_info:
            EliminationEngine().generate_for_rule(
                "grp", PERIOD, _rule("r1"), [], "USD", TX_DATE, GENERATED_AT,
            )
        assert exc_info.value.rule_id == "r1"

    def test_returns_entries(self):
        entries = EliminationEngine(id_factory=_ids()).generate_for_rule(
            "grp",
            PERIOD,
            _rule("inv", EliminationType.INTERCOMPANY_INVESTMENT),
            [_balance("co-parent", "400")],
            "USD",
            TX_DATE,
            GENERATED_AT,
        )
        assert len(entries) == 1
        assert entries[0].amount == _usd("400")


class TestSelectors:
    """Tests for account selector resolution."""

    def setup_method(self):
        self.balance = _balance("co-a", "1", account_id="acct-1350", number="1350", category="DueFrom")

    def test_by_id(self):
        assert selector_matches(AccountSelectorById("acct-1350"), self.balance)
        assert not selector_matches(AccountSelectorById("acct-9"), self.balance)

    def test_by_range_is_inclusive(self):
        assert selector_matches(AccountSelectorByRange("1300", "1350"), self.balance)
        assert not selector_matches(AccountSelectorByRange("1400", "1499"), self.balance)

    def test_by_category(self):
        assert selector_matches(AccountSelectorByCategory("DueFrom"), self.balance)

    def test_rule_selects_any(self):
        rule = EliminationRule(
            id="r",
            group_id="grp",
            name="r",
            elimination_type=EliminationType.INTERCOMPANY_RECEIVABLE_PAYABLE,
            debit_account_id="d",
            credit_account_id="c",
            source_accounts=(AccountSelectorById("nope"), AccountSelectorByCategory("DueFrom")),
        )
        assert rule.selects(self.balance)

    def test_description_helper(self):
        assert elimination_description(EliminationType.INTERCOMPANY_DIVIDEND, "r9") == (
            "Elimination of intercompany dividend - Rule r9"
        )
