"""
Tests for the Currency Translation Engine.

Covers:
- Rate selection per translation category (closing / average / historical)
- Historical rate lookup order and the fallback / strict policies
- Computed retained earnings and the CTA plug
- Same-currency members translate at 1 with zero CTA
- TranslationRates validation
"""

from datetime import date
from decimal import Decimal

import pytest

from consolidation_engines.translation import (
    CurrencyTranslationEngine,
    HistoricalRatePolicy,
    MemberTrialBalanceLineItem,
    TranslateMemberBalancesInput,
    TranslationCategory,
    TranslationRates,
    TranslationRateType,
    determine_translation_category,
    get_rate_type_for_category,
)
from consolidation_kernel.domain.accounts import AccountType, TrialBalanceLine
from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.exceptions import HistoricalRateRequiredError


def _eur(value: str) -> MonetaryAmount:
    return MonetaryAmount.of(value, "EUR")


def _usd(value: str) -> MonetaryAmount:
    return MonetaryAmount.of(value, "USD")


def _lines(currency: str, capital_rate: Decimal | None = None) -> tuple[MemberTrialBalanceLineItem, ...]:
    rows = [
        ("1000", "Cash", AccountType.ASSET, "Cash", "1000", None),
        ("2000", "Payables", AccountType.LIABILITY, "AccountsPayable", "400", None),
        ("3000", "Share capital", AccountType.EQUITY, "ContributedCapital", "300", capital_rate),
        ("3100", "Retained earnings", AccountType.EQUITY, "RetainedEarnings", "200", None),
        ("4000", "Sales", AccountType.REVENUE, "Sales", "500", None),
        ("5000", "Cost of sales", AccountType.EXPENSE, "CostOfSales", "400", None),
    ]
    return tuple(
        MemberTrialBalanceLineItem.from_trial_balance_line(
            TrialBalanceLine.from_balance(
                account_id=f"acct-{number}",
                account_number=number,
                account_name=name,
                account_type=account_type,
                account_category=category,
                balance=MonetaryAmount.of(balance, currency),
                historical_rate=rate,
            )
        )
        for number, name, account_type, category, balance, rate in rows
    )


def _input(
    *,
    currency: str = "EUR",
    capital_rate: Decimal | None = Decimal("1.00"),
    rates: TranslationRates | None = None,
    dividends: str = "0",
) -> TranslateMemberBalancesInput:
    rates = rates or TranslationRates(
        closing_rate=Decimal("1.10"),
        average_rate=Decimal("1.05"),
        prior_cta=_usd("10"),
        translated_opening_retained_earnings=_usd("210"),
    )
    return TranslateMemberBalancesInput(
        company_id="co-eur",
        company_name="Euro Subsidiary GmbH",
        functional_currency=currency,
        reporting_currency="USD",
        as_of_date=date(2025, 12, 31),
        period_start_date=date(2025, 12, 1),
        line_items=_lines(currency, capital_rate),
        rates=rates,
        net_income=MonetaryAmount.of("100", currency),
        dividends_declared=MonetaryAmount.of(dividends, currency),
        opening_retained_earnings=MonetaryAmount.of("200", currency),
    )


def _line(result, number: str):
    return next(item for item in result.line_items if item.account_number == number)


class TestTranslationCategory:
    """Tests for category and rate type derivation."""

    @pytest.mark.parametrize(
        "account_type,category,expected",
        [
            (AccountType.ASSET, "Inventory", TranslationCategory.MONETARY_ASSET),
            (AccountType.LIABILITY, "Debt", TranslationCategory.MONETARY_LIABILITY),
            (AccountType.EQUITY, "ContributedCapital", TranslationCategory.CAPITAL_STOCK),
            (AccountType.EQUITY, "RetainedEarnings", TranslationCategory.RETAINED_EARNINGS),
            (AccountType.EQUITY, "OtherComprehensiveIncome", TranslationCategory.OCI),
            (AccountType.EQUITY, "TreasuryStock", TranslationCategory.TREASURY_STOCK),
            (AccountType.EQUITY, "SharePremium", TranslationCategory.APIC),
            (AccountType.REVENUE, "Sales", TranslationCategory.REVENUE),
            (AccountType.EXPENSE, "Wages", TranslationCategory.EXPENSE),
        ],
    )
    def test_category(self, account_type, category, expected):
        assert determine_translation_category(account_type, category) == expected

    def test_rate_types(self):
        assert get_rate_type_for_category(TranslationCategory.MONETARY_ASSET) == TranslationRateType.CLOSING
        assert get_rate_type_for_category(TranslationCategory.REVENUE) == TranslationRateType.AVERAGE
        assert get_rate_type_for_category(TranslationCategory.APIC) == TranslationRateType.HISTORICAL
        assert get_rate_type_for_category(TranslationCategory.OCI) == TranslationRateType.CALCULATED


class TestTranslationRates:
    """Tests for TranslationRates validation."""

    @pytest.mark.parametrize("closing", [Decimal("0"), Decimal("-1.1")])
    def test_non_positive_rate_rejected(self, closing):
        with pytest.raises(ValueError):
            TranslationRates(
                closing_rate=closing,
                average_rate=Decimal("1"),
                prior_cta=_usd("0"),
                translated_opening_retained_earnings=_usd("0"),
            )

    def test_identity(self):
        rates = TranslationRates.identity("USD", _eur("250"))
        assert rates.closing_rate == Decimal("1")
        assert rates.dividends_rate == Decimal("1")
        assert rates.prior_cta == _usd("0")
        assert rates.translated_opening_retained_earnings == _usd("250")


class TestForeignCurrencyTranslation:
    """Tests for translating a EUR member into USD."""

    def setup_method(self):
        self.engine = CurrencyTranslationEngine()
        self.result = self.engine.translate_member_balances(_input())

    def test_assets_and_liabilities_at_closing_rate(self):
        cash = _line(self.result, "1000")
        assert cash.translated_balance == _usd("1100")
        assert cash.rate_type == TranslationRateType.CLOSING
        assert _line(self.result, "2000").translated_balance == _usd("440")

    def test_income_statement_at_average_rate(self):
        sales = _line(self.result, "4000")
        assert sales.translated_balance == _usd("525")
        assert sales.rate_type == TranslationRateType.AVERAGE
        assert _line(self.result, "5000").translated_balance == _usd("420")
        assert self.result.translated_net_income == _usd("105")

    def test_capital_at_historical_rate(self):
        capital = _line(self.result, "3000")
        assert capital.translated_balance == _usd("300")
        assert capital.exchange_rate == Decimal("1.00")
        assert capital.rate_type == TranslationRateType.HISTORICAL

    def test_retained_earnings_computed(self):
        details = self.result.retained_earnings_details
        assert details.translated_opening_retained_earnings == _usd("210")
        assert details.translated_net_income == _usd("105")
        assert details.translated_dividends == _usd("0")
        assert details.closing_retained_earnings == _usd("315")
        assert details.has_net_income

    def test_cta_is_the_plug(self):
        cta = self.result.cta_calculation
        assert cta.total_translated_assets == _usd("1100")
        assert cta.total_translated_equity_ex_cta == _usd("615")
        assert cta.closing_cta == _usd("45")
        assert cta.opening_cta == _usd("10")
        assert cta.current_period_cta == _usd("35")
        assert cta.is_gain

    def test_balanced(self):
        assert self.result.is_balanced
        assert self.result.total_equity == _usd("660")

    def test_line_count_preserved(self):
        assert self.result.line_item_count == 6
        assert [i.account_id for i in self.result.line_items][0] == "acct-1000"

    def test_emits_engine_trace(self, captured_logs):
        self.engine.translate_member_balances(_input())
        traces = [r for r in captured_logs() if r["message"] == "CONSOLIDATION_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "translation"
        assert len(traces[-1]["input_fingerprint"]) == 16


class TestDividends:
    """Tests for dividend translation."""

    def test_dividends_at_average_rate_by_default(self):
        result = CurrencyTranslationEngine().translate_member_balances(_input(dividends="50"))
        details = result.retained_earnings_details
        assert details.translated_dividends == MonetaryAmount.of("52.5", "USD")
        assert details.closing_retained_earnings == MonetaryAmount.of("262.5", "USD")

    def test_dividends_at_declared_rate(self):
        rates = TranslationRates(
            closing_rate=Decimal("1.10"),
            average_rate=Decimal("1.05"),
            prior_cta=_usd("10"),
            translated_opening_retained_earnings=_usd("210"),
            dividends_rate=Decimal("1.08"),
        )
        result = CurrencyTranslationEngine().translate_member_balances(
            _input(rates=rates, dividends="50"),
        )
        assert result.retained_earnings_details.translated_dividends == _usd("54")
        assert result.retained_earnings_details.closing_retained_earnings == _usd("261")
        assert result.is_balanced


class TestHistoricalRatePolicy:
    """Tests for missing historical rates."""

    def test_rate_map_used_when_line_has_none(self):
        rates = TranslationRates(
            closing_rate=Decimal("1.10"),
            average_rate=Decimal("1.05"),
            prior_cta=_usd("0"),
            translated_opening_retained_earnings=_usd("210"),
            historical_rates={"3000": Decimal("0.95")},
        )
        result = CurrencyTranslationEngine().translate_member_balances(
            _input(capital_rate=None, rates=rates),
        )
        capital = _line(result, "3000")
        assert capital.translated_balance == _usd("285")
        assert capital.rate_type == TranslationRateType.HISTORICAL

    def test_line_rate_wins_over_map(self):
        rates = TranslationRates(
            closing_rate=Decimal("1.10"),
            average_rate=Decimal("1.05"),
            prior_cta=_usd("0"),
            translated_opening_retained_earnings=_usd("210"),
            historical_rates={"3000": Decimal("0.95")},
        )
        result = CurrencyTranslationEngine().translate_member_balances(
            _input(capital_rate=Decimal("1.20"), rates=rates),
        )
        assert _line(result, "3000").translated_balance == _usd("360")

    def test_fallback_uses_closing_rate_and_warns(self, captured_logs):
        engine = CurrencyTranslationEngine(HistoricalRatePolicy.FALLBACK)
        result = engine.translate_member_balances(_input(capital_rate=None))

        capital = _line(result, "3000")
        assert capital.translated_balance == _usd("330")
        assert capital.rate_type == TranslationRateType.CLOSING
        assert result.cta_calculation.closing_cta == _usd("15")
        assert result.is_balanced

        warnings = [r for r in captured_logs() if r["message"] == "historical_rate_fallback"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["account_number"] == "3000"

    def test_strict_raises(self):
        engine = CurrencyTranslationEngine(HistoricalRatePolicy.STRICT)
        with pytest.raises(HistoricalRateRequiredError) as exc_info:
            engine.translate_member_balances(_input(capital_rate=None))
        assert exc_info.value.account_number == "3000"
        assert exc_info.value.company_id == "co-eur"

    def test_policy_exposed(self):
        assert CurrencyTranslationEngine().historical_rate_policy == HistoricalRatePolicy.FALLBACK


class TestSameCurrencyMember:
    """Tests for a member already reporting in USD."""

    def test_rates_are_one_and_cta_zero(self):
        # Supplied rates are ignored for a same-currency member.
        result = CurrencyTranslationEngine().translate_member_balances(
            _input(currency="USD", capital_rate=None),
        )
        assert all(item.exchange_rate == Decimal("1") for item in result.line_items)
        assert result.cta_calculation.closing_cta.is_zero
        assert result.cta_calculation.opening_cta.is_zero
        assert result.retained_earnings_details.closing_retained_earnings == _usd("300")
        assert result.is_balanced

    def test_no_fallback_warning(self, captured_logs):
        CurrencyTranslationEngine(HistoricalRatePolicy.STRICT).translate_member_balances(
            _input(currency="USD", capital_rate=None),
        )
        assert not any(r["message"] == "historical_rate_fallback" for r in captured_logs())
