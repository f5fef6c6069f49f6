"""
Tests for the Intercompany Matching Engine.

Covers:
- Exact and partial matches, with and without an amount tolerance
- Date window, transaction type and currency gates
- Unmatched transactions and the side they are missing
- Discrepancy details and the match report aggregates
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from consolidation_engines.intercompany_matching import (
    DiscrepancyType,
    IntercompanyMatchingEngine,
    IntercompanyTransaction,
    IntercompanyTransactionType,
    MatchingConfig,
    MissingSide,
)
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.values import MonetaryAmount

PERIOD = FiscalPeriodRef(2025, 12)
MATCHED_AT = datetime(2026, 1, 5, tzinfo=timezone.utc)


def _tx(
    tx_id: str,
    from_company: str,
    to_company: str,
    amount: str,
    *,
    currency: str = "USD",
    tx_type: IntercompanyTransactionType = IntercompanyTransactionType.SALE_PURCHASE,
    tx_date: date = date(2025, 12, 15),
) -> IntercompanyTransaction:
    return IntercompanyTransaction(
        id=tx_id,
        from_company_id=from_company,
        to_company_id=to_company,
        transaction_type=tx_type,
        transaction_date=tx_date,
        amount=MonetaryAmount.of(amount, currency),
    )


class TestMatchingConfig:
    """Tests for MatchingConfig validation."""

    def test_defaults(self):
        config = MatchingConfig()
        assert config.date_tolerance_days == 3
        assert config.amount_tolerance_percent == Decimal("0")

    def test_negative_days_rejected(self):
        with pytest.raises(ValueError):
            MatchingConfig(date_tolerance_days=-1)

    def test_tolerance_above_hundred_rejected(self):
        with pytest.raises(ValueError):
            MatchingConfig(amount_tolerance_percent=Decimal("101"))


class TestPairing:
    """Tests for which transactions pair."""

    def setup_method(self):
        self.engine = IntercompanyMatchingEngine()

    def _match(self, transactions, config=None):
        return self.engine.match("grp", PERIOD, transactions, config or MatchingConfig(), MATCHED_AT)

    def test_exact_match(self):
        result = self._match([_tx("t1", "A", "B", "1000"), _tx("t2", "B", "A", "1000")])
        assert result.matched_count == 1
        pair = result.matched_pairs[0]
        assert pair.is_exact_match
        assert pair.variance_amount is None
        assert pair.transaction_ids == ("t1", "t2")
        assert result.report.is_fully_matched

    def test_zero_tolerance_pairs_any_variance_as_partial(self):
        result = self._match([_tx("t1", "A", "B", "1000"), _tx("t2", "B", "A", "900")])
        assert result.matched_count == 1
        pair = result.matched_pairs[0]
        assert not pair.is_exact_match
        assert pair.variance_amount == MonetaryAmount.of("100", "USD")
        assert pair.variance_percentage == Decimal("10")

    def test_within_tolerance_is_partial(self):
        config = MatchingConfig(amount_tolerance_percent=Decimal("1"))
        result = self._match([_tx("t1", "A", "B", "1000"), _tx("t2", "B", "A", "995")], config)
        assert len(result.partial_matches) == 1

    def test_outside_tolerance_does_not_pair(self):
        config = MatchingConfig(amount_tolerance_percent=Decimal("1"))
        result = self._match([_tx("t1", "A", "B", "1000"), _tx("t2", "B", "A", "980")], config)
        assert result.matched_count == 0
        assert result.unmatched_count == 2

    def test_date_window_is_inclusive(self):
        result = self._match([
            _tx("t1", "A", "B", "10", tx_date=date(2025, 12, 10)),
            _tx("t2", "B", "A", "10", tx_date=date(2025, 12, 13)),
        ])
        assert result.matched_count == 1

    def test_outside_date_window(self):
        result = self._match([
            _tx("t1", "A", "B", "10", tx_date=date(2025, 12, 10)),
            _tx("t2", "B", "A", "10", tx_date=date(2025, 12, 14)),
        ])
        assert result.matched_count == 0

    def test_type_mismatch_does_not_pair(self):
        result = self._match([
            _tx("t1", "A", "B", "10"),
            _tx("t2", "B", "A", "10", tx_type=IntercompanyTransactionType.LOAN),
        ])
        assert result.matched_count == 0

    def test_currency_mismatch_does_not_pair(self):
        result = self._match([_tx("t1", "A", "B", "10"), _tx("t2", "B", "A", "10", currency="EUR")])
        assert result.matched_count == 0

    def test_same_direction_never_pairs(self):
        result = self._match([_tx("t1", "A", "B", "10"), _tx("t2", "A", "B", "10")])
        assert result.matched_count == 0
        assert {u.missing_side for u in result.unmatched_transactions} == {MissingSide.TO}

    def test_first_fit_takes_first_candidate(self):
        """Greedy: the first valid counterpart wins even if a later one is exact."""
        result = self._match([
            _tx("t1", "A", "B", "1000"),
            _tx("t2", "B", "A", "990"),
            _tx("t3", "B", "A", "1000"),
        ])
        assert result.matched_pairs[0].transaction_ids == ("t1", "t2")
        assert [u.transaction.id for u in result.unmatched_transactions] == ["t3"]

    def test_every_transaction_accounted_for_once(self):
        transactions = [
            _tx("t1", "A", "B", "10"),
            _tx("t2", "B", "A", "10"),
            _tx("t3", "A", "C", "5"),
            _tx("t4", "C", "B", "7"),
        ]
        result = self._match(transactions)
        seen = [tx_id for pair in result.matched_pairs for tx_id in pair.transaction_ids]
        seen += [u.transaction.id for u in result.unmatched_transactions]
        assert sorted(seen) == ["t1", "t2", "t3", "t4"]


class TestUnmatched:
    """Tests for unmatched transaction sides."""

    def test_unpaired_originator_missing_to_side(self):
        result = IntercompanyMatchingEngine().match(
            "grp", PERIOD, [_tx("t1", "A", "B", "10")], MatchingConfig(), MATCHED_AT,
        )
        unmatched = result.unmatched_transactions[0]
        assert unmatched.missing_side == MissingSide.TO
        assert unmatched.reason == "No matching counterpart transaction found"
        assert result.unmatched_to_side == (unmatched,)

    def test_leftover_reverse_missing_from_side(self):
        result = IntercompanyMatchingEngine().match(
            "grp",
            PERIOD,
            [_tx("t1", "A", "B", "10"), _tx("t2", "B", "A", "10"), _tx("t3", "B", "A", "20")],
            MatchingConfig(amount_tolerance_percent=Decimal("5")),
            MATCHED_AT,
        )
        assert [u.transaction.id for u in result.unmatched_from_side] == ["t3"]


class TestMatchingReport:
    """Tests for the report and discrepancies."""

    def setup_method(self):
        self.result = IntercompanyMatchingEngine().match(
            "grp",
            PERIOD,
            [
                _tx("t1", "A", "B", "1000"),
                _tx("t2", "B", "A", "975.50"),
                _tx("t3", "A", "C", "200", tx_type=IntercompanyTransactionType.MANAGEMENT_FEE),
                _tx("t4", "C", "D", "300"),
                _tx("t5", "D", "C", "300"),
            ],
            MatchingConfig(),
            MATCHED_AT,
        )
        self.report = self.result.report

    def test_counts(self):
        assert self.report.total_transactions == 5
        assert self.report.matched_count == 2
        assert self.report.partial_match_count == 1
        assert self.report.unmatched_count == 1
        assert not self.report.is_fully_matched

    def test_match_rate(self):
        assert self.report.match_rate == Decimal("80")

    def test_variance_totals(self):
        assert self.report.total_variance_amount == MonetaryAmount.of("24.50", "USD")
        assert self.report.variance_totals == {"USD": MonetaryAmount.of("24.50", "USD")}

    def test_missing_counterpart_discrepancy(self):
        missing = [
            d for d in self.report.discrepancies
            if d.discrepancy_type == DiscrepancyType.MISSING_COUNTERPART
        ]
        assert len(missing) == 1
        assert missing[0].variance_amount == MonetaryAmount.of("200", "USD")
        assert missing[0].actual_amount is None
        assert missing[0].related_transaction_ids == ("t3",)
        assert "ManagementFee" in missing[0].description

    def test_amount_mismatch_discrepancy(self):
        mismatch = [
            d for d in self.report.discrepancies
            if d.discrepancy_type == DiscrepancyType.AMOUNT_MISMATCH
        ]
        assert len(mismatch) == 1
        assert mismatch[0].description == "Amount variance of 24.5 USD between companies"
        assert mismatch[0].date_difference == 0
        assert mismatch[0].related_transaction_ids == ("t1", "t2")

    def test_report_metadata(self):
        assert self.report.group_id == "grp"
        assert self.report.period_ref == PERIOD
        assert self.report.matched_at == MATCHED_AT
        assert self.report.discrepancy_count == 2

    def test_empty_input(self):
        result = IntercompanyMatchingEngine().match("grp", PERIOD, [], MatchingConfig(), MATCHED_AT)
        assert result.report.match_rate == Decimal("100")
        assert result.report.total_variance_amount is None
        assert result.report.is_fully_matched
        assert not result.report.has_discrepancies

    def test_exact_only_has_no_total_variance(self):
        result = IntercompanyMatchingEngine().match(
            "grp", PERIOD, [_tx("t1", "A", "B", "5"), _tx("t2", "B", "A", "5")],
            MatchingConfig(), MATCHED_AT,
        )
        assert result.report.total_variance_amount is None
        assert result.report.variance_totals == {}


class TestTransactionPredicates:
    """Tests for IntercompanyTransaction helpers."""

    def test_defaults(self):
        tx = _tx("t1", "A", "B", "10")
        assert tx.is_unmatched
        assert tx.has_no_entries
        assert not tx.requires_elimination
        assert tx.pair_key == "A|B"
