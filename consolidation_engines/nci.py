"""
consolidation_engines.nci -- Non-controlling interest calculation.

Responsibility:
    Attribute the minority shareholders' share of a subsidiary's equity,
    net income, OCI and dividends, and roll the per-subsidiary results up
    into consolidated NCI line items.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Subsidiary data arrives fully resolved (already translated into the
    reporting currency) from the NCI service or the run orchestrator.

Invariants enforced:
    - NCI% = 100 - parent ownership, with ownership validated to [0, 100].
    - A wholly-owned subsidiary yields exactly zero for every NCI amount
      and no line items; it is dropped from consolidated summaries.
    - Shares are sign-preserving: a subsidiary loss gives a negative NCI
      share of net income.
    - total NCI equity = NCI at acquisition + net change, where
      net change = net income + OCI + other - dividends.
    - Dividend line items and dividend equity changes are negated.

Failure modes:
    - InvalidOwnershipPercentageError when ownership is outside [0, 100].
    - NCICalculationError wrapping a currency mismatch between a
      subsidiary's amounts and its declared currency.

Audit relevance:
    Every change to NCI equity is itemized as an NCIEquityChange with the
    period it belongs to, so the rollforward can be reconstructed.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from consolidation_engines.tracer import traced_engine
from consolidation_kernel.domain.values import MonetaryAmount, Percentage, to_decimal
from consolidation_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidOwnershipPercentageError,
    NCICalculationError,
)
from consolidation_kernel.logging_config import get_logger

logger = get_logger("engines.nci")

_HUNDRED = Decimal("100")


class NCIChangeType(str, Enum):
    NET_INCOME = "NetIncome"
    DIVIDENDS = "Dividends"
    OTHER_COMPREHENSIVE_INCOME = "OtherComprehensiveIncome"
    OWNERSHIP_CHANGE = "OwnershipChange"
    ACQUISITION = "Acquisition"
    DISPOSAL = "Disposal"
    OTHER = "Other"


class NCILineItemType(str, Enum):
    """Presentation tag of an NCI line item."""

    NCI_EQUITY = "NCIEquity"
    NCI_NET_INCOME = "NCINetIncome"
    NCI_OCI = "NCIOCI"
    NCI_DIVIDENDS = "NCIDividends"
    NCI_ACQUISITION = "NCIAcquisition"
    NCI_OTHER = "NCIOther"


_EQUITY_STATEMENT_TYPES = frozenset({
    NCILineItemType.NCI_DIVIDENDS,
    NCILineItemType.NCI_ACQUISITION,
    NCILineItemType.NCI_OTHER,
})


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NCIPercentage:
    parent_ownership_percentage: Percentage
    nci_percentage: Percentage

    @property
    def nci_decimal(self) -> Decimal:
        return self.nci_percentage.to_decimal()

    @property
    def parent_decimal(self) -> Decimal:
        return self.parent_ownership_percentage.to_decimal()

    @property
    def has_nci(self) -> bool:
        return not self.nci_percentage.is_zero

    @property
    def is_wholly_owned(self) -> bool:
        return self.parent_ownership_percentage.is_full


@dataclass(frozen=True)
class NCIEquityAtAcquisition:
    subsidiary_id: str
    fair_value_net_assets: MonetaryAmount
    nci_percentage: Percentage
    nci_share_of_fair_value: MonetaryAmount
    nci_premium_discount: MonetaryAmount | None
    total_nci_at_acquisition: MonetaryAmount

    @property
    def is_measured_at_fair_value(self) -> bool:
        """True when the full-goodwill method added a premium or discount."""
        return self.nci_premium_discount is not None


@dataclass(frozen=True)
class NCIEquityChange:
    change_type: NCIChangeType
    description: str
    amount: MonetaryAmount
    period_year: int
    period_number: int


@dataclass(frozen=True)
class NCISubsequentChanges:
    changes: tuple[NCIEquityChange, ...]
    total_net_income: MonetaryAmount
    total_dividends: MonetaryAmount
    total_oci: MonetaryAmount
    total_other: MonetaryAmount
    net_change: MonetaryAmount

    @property
    def change_count(self) -> int:
        return len(self.changes)

    @property
    def has_changes(self) -> bool:
        return len(self.changes) > 0


@dataclass(frozen=True)
class NCINetIncome:
    subsidiary_id: str
    subsidiary_net_income: MonetaryAmount
    nci_percentage: Percentage
    nci_share_of_net_income: MonetaryAmount
    period_year: int
    period_number: int

    @property
    def is_profitable(self) -> bool:
        return self.nci_share_of_net_income.is_positive

    @property
    def is_loss(self) -> bool:
        return self.subsidiary_net_income.is_negative


@dataclass(frozen=True)
class NCILineItem:
    line_item_type: NCILineItemType
    description: str
    amount: MonetaryAmount
    subsidiary_id: str | None = None
    subsidiary_name: str | None = None

    @property
    def is_balance_sheet_item(self) -> bool:
        return self.line_item_type == NCILineItemType.NCI_EQUITY

    @property
    def is_income_statement_item(self) -> bool:
        return self.line_item_type == NCILineItemType.NCI_NET_INCOME

    @property
    def is_oci_item(self) -> bool:
        return self.line_item_type == NCILineItemType.NCI_OCI

    @property
    def is_equity_statement_item(self) -> bool:
        return self.line_item_type in _EQUITY_STATEMENT_TYPES


@dataclass(frozen=True)
class NCIResult:
    subsidiary_id: str
    subsidiary_name: str
    nci_percentage: NCIPercentage
    equity_at_acquisition: NCIEquityAtAcquisition
    subsequent_changes: NCISubsequentChanges
    current_period_net_income: NCINetIncome
    total_nci_equity: MonetaryAmount
    line_items: tuple[NCILineItem, ...]
    currency: str

    @property
    def has_nci(self) -> bool:
        return self.nci_percentage.has_nci

    @property
    def balance_sheet_line_items(self) -> tuple[NCILineItem, ...]:
        return tuple(i for i in self.line_items if i.is_balance_sheet_item)

    @property
    def income_statement_line_items(self) -> tuple[NCILineItem, ...]:
        return tuple(i for i in self.line_items if i.is_income_statement_item)

    @property
    def oci_line_items(self) -> tuple[NCILineItem, ...]:
        return tuple(i for i in self.line_items if i.is_oci_item)

    @property
    def equity_statement_line_items(self) -> tuple[NCILineItem, ...]:
        return tuple(i for i in self.line_items if i.is_equity_statement_item)


@dataclass(frozen=True)
class ConsolidatedNCISummary:
    subsidiary_results: tuple[NCIResult, ...]
    total_nci_equity: MonetaryAmount
    total_nci_net_income: MonetaryAmount
    total_nci_oci: MonetaryAmount
    consolidated_line_items: tuple[NCILineItem, ...]
    currency: str

    @property
    def subsidiary_count(self) -> int:
        return len(self.subsidiary_results)

    @property
    def has_nci(self) -> bool:
        return len(self.subsidiary_results) > 0


@dataclass(frozen=True)
class SubsidiaryData:
    """
    Everything needed to compute one subsidiary's NCI for a period.

    ``parent_ownership_percentage`` is kept as a raw Decimal so that an
    out-of-range stake surfaces as InvalidOwnershipPercentageError rather
    than failing earlier inside Percentage.
    """

    subsidiary_id: str
    subsidiary_name: str
    parent_ownership_percentage: Decimal
    fair_value_net_assets_at_acquisition: MonetaryAmount
    subsidiary_net_income: MonetaryAmount
    subsidiary_oci: MonetaryAmount
    dividends_declared: MonetaryAmount
    cumulative_nci_net_income: MonetaryAmount
    cumulative_dividends_to_nci: MonetaryAmount
    cumulative_nci_oci: MonetaryAmount
    period_year: int
    period_number: int
    currency: str
    nci_premium_discount_at_acquisition: MonetaryAmount | None = None

    def __post_init__(self) -> None:
        if isinstance(self.parent_ownership_percentage, Percentage):
            object.__setattr__(
                self, "parent_ownership_percentage", self.parent_ownership_percentage.value,
            )
        else:
            object.__setattr__(
                self, "parent_ownership_percentage", to_decimal(self.parent_ownership_percentage),
            )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def calculate_nci_percentage(parent_ownership: Percentage | Decimal | int | str) -> NCIPercentage:
    """
    Split ownership into parent and NCI shares.

    Raises:
        InvalidOwnershipPercentageError: If ownership is outside [0, 100].
    """
    raw = parent_ownership.value if isinstance(parent_ownership, Percentage) else to_decimal(parent_ownership)
    if raw < 0 or raw > _HUNDRED:
        raise InvalidOwnershipPercentageError(
            ownership_percentage=str(raw),
            reason="Ownership percentage must be between 0 and 100",
        )
    parent = Percentage(raw)
    return NCIPercentage(parent_ownership_percentage=parent, nci_percentage=parent.complement())


def calculate_nci_share(amount: MonetaryAmount, nci_percentage: Percentage) -> MonetaryAmount:
    """NCI% x amount, sign-preserving."""
    return amount.multiply(nci_percentage.to_decimal())


def calculate_nci_equity_at_acquisition(
    subsidiary_id: str,
    fair_value_net_assets: MonetaryAmount,
    nci_percentage: Percentage,
    nci_premium_discount: MonetaryAmount | None = None,
) -> NCIEquityAtAcquisition:
    share = calculate_nci_share(fair_value_net_assets, nci_percentage)
    total = share if nci_premium_discount is None else share + nci_premium_discount
    return NCIEquityAtAcquisition(
        subsidiary_id=subsidiary_id,
        fair_value_net_assets=fair_value_net_assets,
        nci_percentage=nci_percentage,
        nci_share_of_fair_value=share,
        nci_premium_discount=nci_premium_discount,
        total_nci_at_acquisition=total,
    )


def create_nci_line_items(
    subsidiary_id: str,
    subsidiary_name: str,
    total_nci_equity: MonetaryAmount,
    nci_net_income: MonetaryAmount,
    nci_oci: MonetaryAmount,
    nci_dividends: MonetaryAmount,
) -> tuple[NCILineItem, ...]:
    """
    Presentation line items for one subsidiary.

    The equity line is always present; the others only when nonzero.
    Dividends are negated because they reduce NCI equity.
    """
    items = [
        NCILineItem(
            line_item_type=NCILineItemType.NCI_EQUITY,
            description=f"Non-controlling interest - {subsidiary_name}",
            amount=total_nci_equity,
            subsidiary_id=subsidiary_id,
            subsidiary_name=subsidiary_name,
        )
    ]
    if not nci_net_income.is_zero:
        items.append(NCILineItem(
            line_item_type=NCILineItemType.NCI_NET_INCOME,
            description=f"Net income attributable to non-controlling interest - {subsidiary_name}",
            amount=nci_net_income,
            subsidiary_id=subsidiary_id,
            subsidiary_name=subsidiary_name,
        ))
    if not nci_oci.is_zero:
        items.append(NCILineItem(
            line_item_type=NCILineItemType.NCI_OCI,
            description=f"OCI attributable to non-controlling interest - {subsidiary_name}",
            amount=nci_oci,
            subsidiary_id=subsidiary_id,
            subsidiary_name=subsidiary_name,
        ))
    if not nci_dividends.is_zero:
        items.append(NCILineItem(
            line_item_type=NCILineItemType.NCI_DIVIDENDS,
            description=f"Dividends to non-controlling interest - {subsidiary_name}",
            amount=nci_dividends.negate(),
            subsidiary_id=subsidiary_id,
            subsidiary_name=subsidiary_name,
        ))
    return tuple(items)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class NCIEngine:
    """
    Computes non-controlling interest per subsidiary and in aggregate.

    Contract:
        Stateless; safe to call per subsidiary in any order.
    Guarantees:
        - Wholly-owned subsidiaries short-circuit to exact zeros.
        - Consolidated totals sum only subsidiaries that have NCI.
    Non-goals:
        - Does NOT translate amounts; inputs are already in ``currency``.
        - Does NOT post NCI journal entries.
    """

    @traced_engine("nci", "1.0", fingerprint_fields=("subsidiary",))
    def calculate_nci(self, subsidiary: SubsidiaryData) -> NCIResult:
        """
        Calculate NCI for one subsidiary.

        Raises:
            InvalidOwnershipPercentageError: Ownership outside [0, 100].
            NCICalculationError: Amounts not in the subsidiary's currency.
        """
        t0 = time.monotonic()
        split = calculate_nci_percentage(subsidiary.parent_ownership_percentage)

        if split.is_wholly_owned:
            result = self._wholly_owned_result(subsidiary, split)
        else:
            try:
                result = self._partially_owned_result(subsidiary, split)
            except CurrencyMismatchError as e:
                raise NCICalculationError(
                    subsidiary_id=subsidiary.subsidiary_id,
                    reason=str(e),
                ) from e

        logger.info("nci_calculated", extra={
            "subsidiary_id": subsidiary.subsidiary_id,
            "nci_percentage": str(split.nci_percentage.value),
            "wholly_owned": split.is_wholly_owned,
            "total_nci_equity": str(result.total_nci_equity.amount),
            "line_item_count": len(result.line_items),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result

    def calculate_consolidated_nci(
        self,
        subsidiaries: Sequence[SubsidiaryData],
        currency: str,
    ) -> ConsolidatedNCISummary:
        """Calculate NCI for each subsidiary and sum those that have NCI."""
        results = [self.calculate_nci(s) for s in subsidiaries]
        with_nci = tuple(r for r in results if r.has_nci)

        total_equity = MonetaryAmount.zero(currency)
        total_net_income = MonetaryAmount.zero(currency)
        total_oci = MonetaryAmount.zero(currency)
        for result in with_nci:
            total_equity = total_equity + result.total_nci_equity
            total_net_income = total_net_income + result.current_period_net_income.nci_share_of_net_income
            for item in result.oci_line_items:
                total_oci = total_oci + item.amount

        line_items: list[NCILineItem] = []
        if not total_equity.is_zero:
            line_items.append(NCILineItem(
                line_item_type=NCILineItemType.NCI_EQUITY,
                description="Total non-controlling interests",
                amount=total_equity,
            ))
        if not total_net_income.is_zero:
            line_items.append(NCILineItem(
                line_item_type=NCILineItemType.NCI_NET_INCOME,
                description="Net income attributable to non-controlling interests",
                amount=total_net_income,
            ))
        if not total_oci.is_zero:
            line_items.append(NCILineItem(
                line_item_type=NCILineItemType.NCI_OCI,
                description="OCI attributable to non-controlling interests",
                amount=total_oci,
            ))

        logger.info("nci_consolidated", extra={
            "subsidiary_count": len(subsidiaries),
            "subsidiaries_with_nci": len(with_nci),
            "total_nci_equity": str(total_equity.amount),
            "total_nci_net_income": str(total_net_income.amount),
            "currency": currency,
        })

        return ConsolidatedNCISummary(
            subsidiary_results=with_nci,
            total_nci_equity=total_equity,
            total_nci_net_income=total_net_income,
            total_nci_oci=total_oci,
            consolidated_line_items=tuple(line_items),
            currency=currency,
        )

    @staticmethod
    def _wholly_owned_result(subsidiary: SubsidiaryData, split: NCIPercentage) -> NCIResult:
        zero = MonetaryAmount.zero(subsidiary.currency)
        return NCIResult(
            subsidiary_id=subsidiary.subsidiary_id,
            subsidiary_name=subsidiary.subsidiary_name,
            nci_percentage=split,
            equity_at_acquisition=NCIEquityAtAcquisition(
                subsidiary_id=subsidiary.subsidiary_id,
                fair_value_net_assets=subsidiary.fair_value_net_assets_at_acquisition,
                nci_percentage=Percentage.ZERO,
                nci_share_of_fair_value=zero,
                nci_premium_discount=None,
                total_nci_at_acquisition=zero,
            ),
            subsequent_changes=NCISubsequentChanges(
                changes=(),
                total_net_income=zero,
                total_dividends=zero,
                total_oci=zero,
                total_other=zero,
                net_change=zero,
            ),
            current_period_net_income=NCINetIncome(
                subsidiary_id=subsidiary.subsidiary_id,
                subsidiary_net_income=subsidiary.subsidiary_net_income,
                nci_percentage=Percentage.ZERO,
                nci_share_of_net_income=zero,
                period_year=subsidiary.period_year,
                period_number=subsidiary.period_number,
            ),
            total_nci_equity=zero,
            line_items=(),
            currency=subsidiary.currency,
        )

    @staticmethod
    def _partially_owned_result(subsidiary: SubsidiaryData, split: NCIPercentage) -> NCIResult:
        currency = subsidiary.currency
        nci_pct = split.nci_percentage

        at_acquisition = calculate_nci_equity_at_acquisition(
            subsidiary.subsidiary_id,
            subsidiary.fair_value_net_assets_at_acquisition,
            nci_pct,
            subsidiary.nci_premium_discount_at_acquisition,
        )
        net_income = NCINetIncome(
            subsidiary_id=subsidiary.subsidiary_id,
            subsidiary_net_income=subsidiary.subsidiary_net_income,
            nci_percentage=nci_pct,
            nci_share_of_net_income=calculate_nci_share(subsidiary.subsidiary_net_income, nci_pct),
            period_year=subsidiary.period_year,
            period_number=subsidiary.period_number,
        )
        current_oci = calculate_nci_share(subsidiary.subsidiary_oci, nci_pct)
        current_dividends = calculate_nci_share(subsidiary.dividends_declared, nci_pct)

        def change(change_type: NCIChangeType, description: str, amount: MonetaryAmount) -> NCIEquityChange:
            return NCIEquityChange(
                change_type=change_type,
                description=description,
                amount=amount,
                period_year=subsidiary.period_year,
                period_number=subsidiary.period_number,
            )

        changes: list[NCIEquityChange] = []
        if not subsidiary.cumulative_nci_net_income.is_zero:
            changes.append(change(
                NCIChangeType.NET_INCOME,
                "Cumulative NCI share of net income",
                subsidiary.cumulative_nci_net_income,
            ))
        if not net_income.nci_share_of_net_income.is_zero:
            changes.append(change(
                NCIChangeType.NET_INCOME,
                "Current period NCI share of net income",
                net_income.nci_share_of_net_income,
            ))
        if not subsidiary.cumulative_dividends_to_nci.is_zero:
            changes.append(change(
                NCIChangeType.DIVIDENDS,
                "Cumulative dividends to NCI",
                subsidiary.cumulative_dividends_to_nci.negate(),
            ))
        if not current_dividends.is_zero:
            changes.append(change(
                NCIChangeType.DIVIDENDS,
                "Current period dividends to NCI",
                current_dividends.negate(),
            ))
        if not subsidiary.cumulative_nci_oci.is_zero:
            changes.append(change(
                NCIChangeType.OTHER_COMPREHENSIVE_INCOME,
                "Cumulative NCI share of OCI",
                subsidiary.cumulative_nci_oci,
            ))
        if not current_oci.is_zero:
            changes.append(change(
                NCIChangeType.OTHER_COMPREHENSIVE_INCOME,
                "Current period NCI share of OCI",
                current_oci,
            ))

        total_net_income = subsidiary.cumulative_nci_net_income + net_income.nci_share_of_net_income
        total_dividends = subsidiary.cumulative_dividends_to_nci + current_dividends
        total_oci = subsidiary.cumulative_nci_oci + current_oci
        total_other = MonetaryAmount.zero(currency)
        net_change = total_net_income + total_oci + total_other - total_dividends

        subsequent = NCISubsequentChanges(
            changes=tuple(changes),
            total_net_income=total_net_income,
            total_dividends=total_dividends,
            total_oci=total_oci,
            total_other=total_other,
            net_change=net_change,
        )
        total_equity = at_acquisition.total_nci_at_acquisition + net_change

        return NCIResult(
            subsidiary_id=subsidiary.subsidiary_id,
            subsidiary_name=subsidiary.subsidiary_name,
            nci_percentage=split,
            equity_at_acquisition=at_acquisition,
            subsequent_changes=subsequent,
            current_period_net_income=net_income,
            total_nci_equity=total_equity,
            line_items=create_nci_line_items(
                subsidiary.subsidiary_id,
                subsidiary.subsidiary_name,
                total_equity,
                net_income.nci_share_of_net_income,
                current_oci,
                current_dividends,
            ),
            currency=currency,
        )
