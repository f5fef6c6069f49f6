"""
consolidation_engines.translation -- Currency translation of member trial
balances into the group reporting currency (ASC 830 current-rate method).

Responsibility:
    Translate a member's functional-currency trial balance line by line at
    the rate its translation category calls for, compute translated
    retained earnings, and derive the Cumulative Translation Adjustment
    (CTA) as the plug that keeps the translated balance sheet in balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import consolidation_kernel domain types, exceptions and
    logging.

Invariants enforced:
    - Same functional and reporting currency: every rate is 1, prior CTA
      is zero and the opening retained earnings pass through unchanged,
      so such a member never produces CTA.
    - Retained earnings are computed, never rate-translated:
      closing RE = translated opening RE + NI x average rate
      - dividends x (dividend rate or average rate).
    - CTA = assets - liabilities - equity excluding CTA; current-period
      CTA = closing CTA - prior CTA.  Hence assets == liabilities + equity
      within 0.01 after translation.
    - Every translated line records the rate and the rate type actually
      applied.

Failure modes:
    - HistoricalRateRequiredError under the ``strict`` historical-rate
      policy when a capital account has no historical rate.
    - CurrencyMismatchError if prior CTA or translated opening retained
      earnings are not in the reporting currency.

Audit relevance:
    Under the default ``fallback`` policy a capital account without a
    historical rate is translated at the closing rate, the applied rate
    type is recorded as Closing, and a ``historical_rate_fallback``
    WARNING is logged so the substitution is visible.

Usage:
    from consolidation_engines.translation import (
        CurrencyTranslationEngine, TranslateMemberBalancesInput,
    )

    engine = CurrencyTranslationEngine()
    translated = engine.translate_member_balances(member_input)
    assert translated.is_balanced
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from consolidation_engines.tracer import traced_engine
from consolidation_kernel.domain.accounts import AccountType, TrialBalanceLine
from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.exceptions import HistoricalRateRequiredError
from consolidation_kernel.logging_config import get_logger

logger = get_logger("engines.translation")

ONE = Decimal("1")
BALANCE_TOLERANCE = Decimal("0.01")


class TranslationRateType(str, Enum):
    CLOSING = "Closing"
    AVERAGE = "Average"
    HISTORICAL = "Historical"
    CALCULATED = "Calculated"


class TranslationCategory(str, Enum):
    """Translation category of an account per ASC 830."""

    MONETARY_ASSET = "MonetaryAsset"
    NON_MONETARY_ASSET = "NonMonetaryAsset"
    MONETARY_LIABILITY = "MonetaryLiability"
    NON_MONETARY_LIABILITY = "NonMonetaryLiability"
    CAPITAL_STOCK = "CapitalStock"
    APIC = "APIC"
    RETAINED_EARNINGS = "RetainedEarnings"
    OCI = "OCI"
    TREASURY_STOCK = "TreasuryStock"
    REVENUE = "Revenue"
    EXPENSE = "Expense"


class HistoricalRatePolicy(str, Enum):
    """What to do when a capital account has no historical rate."""

    FALLBACK = "fallback"  # closing rate, logged as a warning
    STRICT = "strict"  # HistoricalRateRequiredError


_EQUITY_CATEGORY_MAP: dict[str, TranslationCategory] = {
    "ContributedCapital": TranslationCategory.CAPITAL_STOCK,
    "RetainedEarnings": TranslationCategory.RETAINED_EARNINGS,
    "OtherComprehensiveIncome": TranslationCategory.OCI,
    "TreasuryStock": TranslationCategory.TREASURY_STOCK,
}

_RATE_TYPE_BY_CATEGORY: dict[TranslationCategory, TranslationRateType] = {
    TranslationCategory.MONETARY_ASSET: TranslationRateType.CLOSING,
    TranslationCategory.NON_MONETARY_ASSET: TranslationRateType.CLOSING,
    TranslationCategory.MONETARY_LIABILITY: TranslationRateType.CLOSING,
    TranslationCategory.NON_MONETARY_LIABILITY: TranslationRateType.CLOSING,
    TranslationCategory.CAPITAL_STOCK: TranslationRateType.HISTORICAL,
    TranslationCategory.APIC: TranslationRateType.HISTORICAL,
    TranslationCategory.TREASURY_STOCK: TranslationRateType.HISTORICAL,
    TranslationCategory.RETAINED_EARNINGS: TranslationRateType.CALCULATED,
    TranslationCategory.OCI: TranslationRateType.CALCULATED,
    TranslationCategory.REVENUE: TranslationRateType.AVERAGE,
    TranslationCategory.EXPENSE: TranslationRateType.AVERAGE,
}


def determine_translation_category(
    account_type: AccountType,
    account_category: str,
) -> TranslationCategory:
    """
    Derive the translation category from account type and category.

    Under the current-rate method all assets and liabilities translate at
    the closing rate, so they are classified as monetary.
    """
    if account_type == AccountType.ASSET:
        return TranslationCategory.MONETARY_ASSET
    if account_type == AccountType.LIABILITY:
        return TranslationCategory.MONETARY_LIABILITY
    if account_type == AccountType.EQUITY:
        return _EQUITY_CATEGORY_MAP.get(account_category, TranslationCategory.APIC)
    if account_type == AccountType.REVENUE:
        return TranslationCategory.REVENUE
    return TranslationCategory.EXPENSE


def get_rate_type_for_category(category: TranslationCategory) -> TranslationRateType:
    return _RATE_TYPE_BY_CATEGORY[category]


@dataclass(frozen=True)
class MemberTrialBalanceLineItem:
    """A member trial balance line prepared for translation."""

    account_number: str
    account_name: str
    account_type: AccountType
    account_category: str
    translation_category: TranslationCategory
    functional_balance: MonetaryAmount
    historical_rate: Decimal | None = None
    account_id: str | None = None

    @classmethod
    def from_trial_balance_line(cls, line: TrialBalanceLine) -> MemberTrialBalanceLineItem:
        return cls(
            account_number=line.account_number,
            account_name=line.account_name,
            account_type=line.account_type,
            account_category=line.account_category,
            translation_category=determine_translation_category(
                line.account_type, line.account_category
            ),
            functional_balance=line.functional_balance,
            historical_rate=line.historical_rate,
            account_id=line.account_id,
        )

    @property
    def is_equity_account(self) -> bool:
        return self.account_type == AccountType.EQUITY

    @property
    def uses_historical_rate(self) -> bool:
        return get_rate_type_for_category(self.translation_category) == TranslationRateType.HISTORICAL

    @property
    def is_retained_earnings(self) -> bool:
        return self.translation_category == TranslationCategory.RETAINED_EARNINGS

    @property
    def is_income_statement_account(self) -> bool:
        return self.account_type in (AccountType.REVENUE, AccountType.EXPENSE)


@dataclass(frozen=True)
class TranslatedLineItem:
    """A line item after translation to the reporting currency."""

    account_number: str
    account_name: str
    account_type: AccountType
    account_category: str
    translation_category: TranslationCategory
    functional_balance: MonetaryAmount
    translated_balance: MonetaryAmount
    exchange_rate: Decimal
    rate_type: TranslationRateType
    account_id: str | None = None

    @property
    def is_equity_account(self) -> bool:
        return self.account_type == AccountType.EQUITY


@dataclass(frozen=True)
class TranslationRates:
    """
    Rates and carried-forward balances for translating one member.

    ``prior_cta`` and ``translated_opening_retained_earnings`` are in the
    reporting currency.  ``historical_rates`` is keyed by account number.
    """

    closing_rate: Decimal
    average_rate: Decimal
    prior_cta: MonetaryAmount
    translated_opening_retained_earnings: MonetaryAmount
    historical_rates: dict[str, Decimal] = field(default_factory=dict)
    dividends_rate: Decimal | None = None

    def __post_init__(self) -> None:
        for name in ("closing_rate", "average_rate"):
            value = getattr(self, name)
            if not isinstance(value, Decimal) or value <= 0:
                raise ValueError(f"{name} must be a positive Decimal, got {value!r}")

    @classmethod
    def identity(
        cls,
        reporting_currency: str,
        opening_retained_earnings: MonetaryAmount,
    ) -> TranslationRates:
        """Rates for a member already reporting in the group currency."""
        return cls(
            closing_rate=ONE,
            average_rate=ONE,
            prior_cta=MonetaryAmount.zero(reporting_currency),
            translated_opening_retained_earnings=MonetaryAmount.of(
                opening_retained_earnings.amount, reporting_currency
            ),
            dividends_rate=ONE,
        )


@dataclass(frozen=True)
class TranslateMemberBalancesInput:
    company_id: str
    company_name: str
    functional_currency: str
    reporting_currency: str
    as_of_date: date
    period_start_date: date
    line_items: tuple[MemberTrialBalanceLineItem, ...]
    rates: TranslationRates
    net_income: MonetaryAmount
    dividends_declared: MonetaryAmount
    opening_retained_earnings: MonetaryAmount

    @property
    def is_same_currency(self) -> bool:
        return self.functional_currency == self.reporting_currency


@dataclass(frozen=True)
class RetainedEarningsComponents:
    opening_retained_earnings: MonetaryAmount
    translated_opening_retained_earnings: MonetaryAmount
    net_income: MonetaryAmount
    translated_net_income: MonetaryAmount
    dividends_declared: MonetaryAmount
    translated_dividends: MonetaryAmount
    closing_retained_earnings: MonetaryAmount

    @property
    def has_net_income(self) -> bool:
        return self.net_income.is_positive

    @property
    def has_net_loss(self) -> bool:
        return self.net_income.is_negative


@dataclass(frozen=True)
class CTACalculation:
    """CTA roll-forward for one member."""

    company_id: str
    total_translated_assets: MonetaryAmount
    total_translated_liabilities: MonetaryAmount
    total_translated_equity_ex_cta: MonetaryAmount
    opening_cta: MonetaryAmount
    current_period_cta: MonetaryAmount
    closing_cta: MonetaryAmount
    reporting_currency: str

    @property
    def is_gain(self) -> bool:
        return self.current_period_cta.is_positive

    @property
    def is_loss(self) -> bool:
        return self.current_period_cta.is_negative

    @property
    def is_zero(self) -> bool:
        return self.current_period_cta.is_zero


@dataclass(frozen=True)
class TranslatedTrialBalance:
    company_id: str
    company_name: str
    functional_currency: str
    reporting_currency: str
    as_of_date: date
    period_start_date: date
    line_items: tuple[TranslatedLineItem, ...]
    retained_earnings_details: RetainedEarningsComponents
    cta_calculation: CTACalculation
    total_assets: MonetaryAmount
    total_liabilities: MonetaryAmount
    total_equity: MonetaryAmount
    total_revenue: MonetaryAmount
    total_expenses: MonetaryAmount
    closing_rate: Decimal
    average_rate: Decimal

    @property
    def translated_net_income(self) -> MonetaryAmount:
        return self.total_revenue - self.total_expenses

    @property
    def is_balanced(self) -> bool:
        difference = self.total_assets - (self.total_liabilities + self.total_equity)
        return abs(difference.amount) < BALANCE_TOLERANCE

    @property
    def line_item_count(self) -> int:
        return len(self.line_items)


class CurrencyTranslationEngine:
    """
    Translates member trial balances into the reporting currency.

    Contract:
        Pure function of its input -- no I/O, no clock.  Rates arrive on
        the input; the engine never looks them up.
    Guarantees:
        - The result's ``is_balanced`` holds, since CTA is the plug.
        - Same-currency members translate at 1 with zero CTA.
    Non-goals:
        - Does NOT fetch exchange rates.
        - Does NOT post CTA to a ledger.
    """

    def __init__(
        self,
        historical_rate_policy: HistoricalRatePolicy = HistoricalRatePolicy.FALLBACK,
    ) -> None:
        self._historical_rate_policy = historical_rate_policy

    @property
    def historical_rate_policy(self) -> HistoricalRatePolicy:
        return self._historical_rate_policy

    @traced_engine("translation", "1.0", fingerprint_fields=("member_input",))
    def translate_member_balances(
        self,
        member_input: TranslateMemberBalancesInput,
    ) -> TranslatedTrialBalance:
        """
        Translate one member's trial balance.

        Raises:
            HistoricalRateRequiredError: Strict policy and a capital account
                without a historical rate.
        """
        t0 = time.monotonic()
        reporting = member_input.reporting_currency
        same_currency = member_input.is_same_currency

        logger.info("translation_started", extra={
            "company_id": member_input.company_id,
            "functional_currency": member_input.functional_currency,
            "reporting_currency": reporting,
            "line_count": len(member_input.line_items),
            "same_currency": same_currency,
        })

        rates = (
            TranslationRates.identity(reporting, member_input.opening_retained_earnings)
            if same_currency
            else member_input.rates
        )

        translated_items = tuple(
            self._translate_line_item(item, rates, member_input, same_currency)
            for item in member_input.line_items
        )

        zero = MonetaryAmount.zero(reporting)
        total_assets = zero
        total_liabilities = zero
        total_equity_ex_re = zero
        total_revenue = zero
        total_expenses = zero
        for item in translated_items:
            balance = item.translated_balance
            if item.account_type == AccountType.ASSET:
                total_assets = total_assets + balance
            elif item.account_type == AccountType.LIABILITY:
                total_liabilities = total_liabilities + balance
            elif item.account_type == AccountType.EQUITY:
                if item.translation_category != TranslationCategory.RETAINED_EARNINGS:
                    total_equity_ex_re = total_equity_ex_re + balance
            elif item.account_type == AccountType.REVENUE:
                total_revenue = total_revenue + balance
            else:
                total_expenses = total_expenses + balance

        retained_earnings = self._calculate_retained_earnings(member_input, rates)
        total_equity_ex_cta = total_equity_ex_re + retained_earnings.closing_retained_earnings

        cta = self._calculate_cta(
            company_id=member_input.company_id,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity_ex_cta=total_equity_ex_cta,
            prior_cta=rates.prior_cta,
            reporting_currency=reporting,
        )

        result = TranslatedTrialBalance(
            company_id=member_input.company_id,
            company_name=member_input.company_name,
            functional_currency=member_input.functional_currency,
            reporting_currency=reporting,
            as_of_date=member_input.as_of_date,
            period_start_date=member_input.period_start_date,
            line_items=translated_items,
            retained_earnings_details=retained_earnings,
            cta_calculation=cta,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity=total_equity_ex_cta + cta.closing_cta,
            total_revenue=total_revenue,
            total_expenses=total_expenses,
            closing_rate=rates.closing_rate,
            average_rate=rates.average_rate,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("translation_completed", extra={
            "company_id": member_input.company_id,
            "line_count": len(translated_items),
            "closing_cta": str(cta.closing_cta.amount),
            "current_period_cta": str(cta.current_period_cta.amount),
            "is_balanced": result.is_balanced,
            "duration_ms": duration_ms,
        })
        return result

    def _translate_line_item(
        self,
        item: MemberTrialBalanceLineItem,
        rates: TranslationRates,
        member_input: TranslateMemberBalancesInput,
        same_currency: bool,
    ) -> TranslatedLineItem:
        rate_type = get_rate_type_for_category(item.translation_category)
        applied_rate_type = rate_type

        if rate_type == TranslationRateType.AVERAGE:
            rate = rates.average_rate
        elif rate_type == TranslationRateType.HISTORICAL:
            if same_currency:
                rate = ONE
            else:
                rate, applied_rate_type = self._historical_rate(item, rates, member_input)
        else:
            # Closing, and Calculated lines (RE/OCI) which are recomputed
            # at the totals level.
            rate = rates.closing_rate

        return TranslatedLineItem(
            account_number=item.account_number,
            account_name=item.account_name,
            account_type=item.account_type,
            account_category=item.account_category,
            translation_category=item.translation_category,
            functional_balance=item.functional_balance,
            translated_balance=MonetaryAmount.of(
                item.functional_balance.amount * rate, member_input.reporting_currency
            ),
            exchange_rate=rate,
            rate_type=applied_rate_type,
            account_id=item.account_id,
        )

    def _historical_rate(
        self,
        item: MemberTrialBalanceLineItem,
        rates: TranslationRates,
        member_input: TranslateMemberBalancesInput,
    ) -> tuple[Decimal, TranslationRateType]:
        if item.historical_rate is not None:
            return item.historical_rate, TranslationRateType.HISTORICAL
        mapped = rates.historical_rates.get(item.account_number)
        if mapped is not None:
            return mapped, TranslationRateType.HISTORICAL

        if self._historical_rate_policy == HistoricalRatePolicy.STRICT:
            logger.error("historical_rate_missing", extra={
                "company_id": member_input.company_id,
                "account_number": item.account_number,
            })
            raise HistoricalRateRequiredError(
                company_id=member_input.company_id,
                account_number=item.account_number,
                account_name=item.account_name,
                currency=member_input.functional_currency,
            )

        logger.warning("historical_rate_fallback", extra={
            "company_id": member_input.company_id,
            "account_number": item.account_number,
            "account_name": item.account_name,
            "closing_rate": str(rates.closing_rate),
        })
        return rates.closing_rate, TranslationRateType.CLOSING

    @staticmethod
    def _calculate_retained_earnings(
        member_input: TranslateMemberBalancesInput,
        rates: TranslationRates,
    ) -> RetainedEarningsComponents:
        reporting = member_input.reporting_currency
        translated_net_income = MonetaryAmount.of(
            member_input.net_income.amount * rates.average_rate, reporting
        )
        dividends_rate = rates.dividends_rate if rates.dividends_rate is not None else rates.average_rate
        translated_dividends = MonetaryAmount.of(
            member_input.dividends_declared.amount * dividends_rate, reporting
        )
        opening = rates.translated_opening_retained_earnings
        return RetainedEarningsComponents(
            opening_retained_earnings=member_input.opening_retained_earnings,
            translated_opening_retained_earnings=opening,
            net_income=member_input.net_income,
            translated_net_income=translated_net_income,
            dividends_declared=member_input.dividends_declared,
            translated_dividends=translated_dividends,
            closing_retained_earnings=opening + translated_net_income - translated_dividends,
        )

    @staticmethod
    def _calculate_cta(
        *,
        company_id: str,
        total_assets: MonetaryAmount,
        total_liabilities: MonetaryAmount,
        total_equity_ex_cta: MonetaryAmount,
        prior_cta: MonetaryAmount,
        reporting_currency: str,
    ) -> CTACalculation:
        closing_cta = total_assets - (total_liabilities + total_equity_ex_cta)
        return CTACalculation(
            company_id=company_id,
            total_translated_assets=total_assets,
            total_translated_liabilities=total_liabilities,
            total_translated_equity_ex_cta=total_equity_ex_cta,
            opening_cta=prior_cta,
            current_period_cta=closing_cta - prior_cta,
            closing_cta=closing_cta,
            reporting_currency=reporting_currency,
        )
