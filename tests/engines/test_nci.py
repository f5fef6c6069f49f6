"""
Tests for the NCI Engine.

Covers:
- Ownership split and its validation
- Wholly-owned short circuit
- Partial ownership: acquisition equity, subsequent changes, line items
- Full-goodwill premium
- Consolidated totals across subsidiaries
"""

from decimal import Decimal

import pytest

from consolidation_engines.nci import (
    NCIChangeType,
    NCIEngine,
    NCILineItemType,
    SubsidiaryData,
    calculate_nci_equity_at_acquisition,
    calculate_nci_percentage,
    calculate_nci_share,
    create_nci_line_items,
)
from consolidation_kernel.domain.values import MonetaryAmount, Percentage
from consolidation_kernel.exceptions import InvalidOwnershipPercentageError, NCICalculationError


def _usd(value: str) -> MonetaryAmount:
    return MonetaryAmount.of(value, "USD")


def _subsidiary(
    ownership: str = "80",
    *,
    subsidiary_id: str = "co-gbp",
    premium: MonetaryAmount | None = None,
    oci: MonetaryAmount | None = None,
) -> SubsidiaryData:
    return SubsidiaryData(
        subsidiary_id=subsidiary_id,
        subsidiary_name="British Subsidiary Ltd",
        parent_ownership_percentage=Decimal(ownership),
        fair_value_net_assets_at_acquisition=_usd("10000"),
        subsidiary_net_income=_usd("1000"),
        subsidiary_oci=oci or _usd("200"),
        dividends_declared=_usd("500"),
        cumulative_nci_net_income=_usd("300"),
        cumulative_dividends_to_nci=_usd("100"),
        cumulative_nci_oci=_usd("50"),
        period_year=2025,
        period_number=12,
        currency="USD",
        nci_premium_discount_at_acquisition=premium,
    )


class TestNCIPercentage:
    """Tests for calculate_nci_percentage."""

    def test_split(self):
        split = calculate_nci_percentage(Decimal("80"))
        assert split.parent_ownership_percentage == Percentage.of("80")
        assert split.nci_percentage == Percentage.of("20")
        assert split.nci_decimal == Decimal("0.2")
        assert split.has_nci

    def test_wholly_owned(self):
        split = calculate_nci_percentage(Percentage.HUNDRED)
        assert split.is_wholly_owned
        assert not split.has_nci

    @pytest.mark.parametrize("ownership", ["-1", "100.5"])
    def test_out_of_range(self, ownership):
        with pytest.raises(InvalidOwnershipPercentageError) as exc_info:
            calculate_nci_percentage(ownership)
        assert exc_info.value.ownership_percentage == ownership


class TestHelpers:
    """Tests for the pure NCI helpers."""

    def test_share_preserves_sign(self):
        assert calculate_nci_share(_usd("-500"), Percentage.of("20")) == _usd("-100")

    def test_equity_at_acquisition_without_premium(self):
        equity = calculate_nci_equity_at_acquisition("co-gbp", _usd("10000"), Percentage.of("20"))
        assert equity.total_nci_at_acquisition == _usd("2000")
        assert not equity.is_measured_at_fair_value

    def test_equity_at_acquisition_with_premium(self):
        equity = calculate_nci_equity_at_acquisition(
            "co-gbp", _usd("10000"), Percentage.of("20"), _usd("150"),
        )
        assert equity.nci_share_of_fair_value == _usd("2000")
        assert equity.total_nci_at_acquisition == _usd("2150")
        assert equity.is_measured_at_fair_value

    def test_line_items_only_equity_when_rest_zero(self):
        zero = _usd("0")
        items = create_nci_line_items("s", "Sub", _usd("10"), zero, zero, zero)
        assert [i.line_item_type for i in items] == [NCILineItemType.NCI_EQUITY]
        assert items[0].description == "Non-controlling interest - Sub"
        assert items[0].is_balance_sheet_item


class TestPartiallyOwned:
    """Tests for an 80%-owned subsidiary."""

    def setup_method(self):
        self.result = NCIEngine().calculate_nci(_subsidiary())

    def test_total_equity(self):
        # 2000 at acquisition + (300 + 200) NI + (50 + 40) OCI - (100 + 100) dividends
        assert self.result.total_nci_equity == _usd("2390")
        assert self.result.has_nci

    def test_subsequent_changes(self):
        changes = self.result.subsequent_changes
        assert changes.total_net_income == _usd("500")
        assert changes.total_dividends == _usd("200")
        assert changes.total_oci == _usd("90")
        assert changes.net_change == _usd("390")
        assert changes.change_count == 6

    def test_dividend_changes_negative(self):
        dividends = [
            c for c in self.result.subsequent_changes.changes
            if c.change_type == NCIChangeType.DIVIDENDS
        ]
        assert [c.amount for c in dividends] == [_usd("-100"), _usd("-100")]
        assert all(c.period_year == 2025 and c.period_number == 12 for c in dividends)

    def test_current_period_net_income(self):
        ni = self.result.current_period_net_income
        assert ni.nci_share_of_net_income == _usd("200")
        assert ni.is_profitable
        assert not ni.is_loss

    def test_line_items(self):
        items = {i.line_item_type: i for i in self.result.line_items}
        assert items[NCILineItemType.NCI_EQUITY].amount == _usd("2390")
        assert items[NCILineItemType.NCI_NET_INCOME].amount == _usd("200")
        assert items[NCILineItemType.NCI_OCI].amount == _usd("40")
        assert items[NCILineItemType.NCI_DIVIDENDS].amount == _usd("-100")
        assert len(self.result.income_statement_line_items) == 1
        assert len(self.result.equity_statement_line_items) == 1

    def test_premium_added(self):
        result = NCIEngine().calculate_nci(_subsidiary(premium=_usd("150")))
        assert result.total_nci_equity == _usd("2540")

    def test_emits_trace_and_log(self, captured_logs):
        NCIEngine().calculate_nci(_subsidiary())
        messages = [r["message"] for r in captured_logs()]
        assert "nci_calculated" in messages
        assert "CONSOLIDATION_ENGINE_TRACE" in messages


class TestWhollyOwned:
    """Tests for the wholly-owned short circuit."""

    def test_zeros(self):
        result = NCIEngine().calculate_nci(_subsidiary("100"))
        assert not result.has_nci
        assert result.total_nci_equity.is_zero
        assert result.line_items == ()
        assert result.current_period_net_income.nci_share_of_net_income.is_zero
        assert not result.subsequent_changes.has_changes


class TestErrors:
    """Tests for NCI calculation failures."""

    def test_currency_mismatch_wrapped(self):
        with pytest.raises(NCICalculationError) as exc_info:
            NCIEngine().calculate_nci(_subsidiary(oci=MonetaryAmount.of("200", "EUR")))
        assert exc_info.value.subsidiary_id == "co-gbp"

    def test_invalid_ownership(self):
        with pytest.raises(InvalidOwnershipPercentageError):
            NCIEngine().calculate_nci(_subsidiary("120"))


class TestConsolidatedNCI:
    """Tests for group-level NCI totals."""

    def test_only_subsidiaries_with_nci_counted(self, captured_logs):
        summary = NCIEngine().calculate_consolidated_nci(
            [_subsidiary("100", subsidiary_id="co-eur"), _subsidiary("80")], "USD",
        )
        assert summary.subsidiary_count == 1
        assert summary.subsidiary_results[0].subsidiary_id == "co-gbp"
        assert summary.total_nci_equity == _usd("2390")
        assert summary.total_nci_net_income == _usd("200")
        assert summary.total_nci_oci == _usd("40")
        assert [i.description for i in summary.consolidated_line_items] == [
            "Total non-controlling interests",
            "Net income attributable to non-controlling interests",
            "OCI attributable to non-controlling interests",
        ]
        consolidated = [r for r in captured_logs() if r["message"] == "nci_consolidated"]
        assert consolidated[0]["subsidiaries_with_nci"] == 1

    def test_no_subsidiaries(self):
        summary = NCIEngine().calculate_consolidated_nci([], "USD")
        assert not summary.has_nci
        assert summary.consolidated_line_items == ()
        assert summary.total_nci_equity == _usd("0")
