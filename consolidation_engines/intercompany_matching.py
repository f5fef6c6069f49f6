"""
consolidation_engines.intercompany_matching -- Pairing of intercompany
transactions recorded by both sides of a company pair.

Responsibility:
    Match each transaction company X recorded against company Y with a
    counterpart Y recorded against X, within a date window and an amount
    tolerance.  Classify the outcome as exact, partial or unmatched and
    produce a discrepancy report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import consolidation_kernel domain types and logging.
    ``matched_at`` is supplied by the caller; the engine never reads a clock.

Invariants enforced:
    - Candidates must share transaction type and currency and lie within
      ``date_tolerance_days`` of each other.
    - Greedy first fit: the first satisfying counterpart, in input order,
      wins.  Each transaction is consumed at most once.
    - With ``amount_tolerance_percent == 0`` any variance still pairs the
      transactions, as a partial match.  With a positive tolerance the
      variance must satisfy |variance| <= |from amount x pct / 100|; the
      match is exact iff the variance is zero.
    - match_rate = matched pairs x 2 / total transactions x 100, and 100
      when there are no transactions.

Failure modes:
    - CurrencyMismatchError is never suppressed, though the currency filter
      keeps it from arising.

Audit relevance:
    Every unmatched transaction and every pair with a nonzero variance
    yields a DiscrepancyDetail naming the related transaction ids.
    Variance totals are kept per currency; ``total_variance_amount``
    reports the first matched pair's currency only.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from consolidation_engines.tracer import traced_engine
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.logging_config import get_logger

logger = get_logger("engines.intercompany_matching")

NO_COUNTERPART_REASON = "No matching counterpart transaction found"


class IntercompanyTransactionType(str, Enum):
    SALE_PURCHASE = "SalePurchase"
    LOAN = "Loan"
    MANAGEMENT_FEE = "ManagementFee"
    DIVIDEND = "Dividend"
    CAPITAL_CONTRIBUTION = "CapitalContribution"
    COST_ALLOCATION = "CostAllocation"
    ROYALTY = "Royalty"


class MatchingStatus(str, Enum):
    UNMATCHED = "Unmatched"
    MATCHED = "Matched"
    PARTIALLY_MATCHED = "PartiallyMatched"
    VARIANCE_APPROVED = "VarianceApproved"


class MissingSide(str, Enum):
    FROM = "from"
    TO = "to"


class DiscrepancyType(str, Enum):
    DATE_MISMATCH = "DateMismatch"
    AMOUNT_MISMATCH = "AmountMismatch"
    TYPE_MISMATCH = "TypeMismatch"
    MISSING_COUNTERPART = "MissingCounterpart"


@dataclass(frozen=True)
class IntercompanyTransaction:
    """
    A transaction one group company recorded against another.

    ``matching_status`` changes only through the matching service.
    ``matched_transaction_id`` names the other side of the pair once matched.
    """

    id: str
    from_company_id: str
    to_company_id: str
    transaction_type: IntercompanyTransactionType
    transaction_date: date
    amount: MonetaryAmount
    matching_status: MatchingStatus = MatchingStatus.UNMATCHED
    from_journal_entry_id: str | None = None
    to_journal_entry_id: str | None = None
    variance_amount: MonetaryAmount | None = None
    variance_explanation: str | None = None
    description: str | None = None
    matched_transaction_id: str | None = None

    @property
    def is_matched(self) -> bool:
        return self.matching_status == MatchingStatus.MATCHED

    @property
    def is_unmatched(self) -> bool:
        return self.matching_status == MatchingStatus.UNMATCHED

    @property
    def is_partially_matched(self) -> bool:
        return self.matching_status == MatchingStatus.PARTIALLY_MATCHED

    @property
    def is_variance_approved(self) -> bool:
        return self.matching_status == MatchingStatus.VARIANCE_APPROVED

    @property
    def has_variance(self) -> bool:
        return self.variance_amount is not None

    @property
    def has_both_entries(self) -> bool:
        return self.from_journal_entry_id is not None and self.to_journal_entry_id is not None

    @property
    def has_no_entries(self) -> bool:
        return self.from_journal_entry_id is None and self.to_journal_entry_id is None

    @property
    def requires_elimination(self) -> bool:
        return self.is_matched or self.is_variance_approved

    @property
    def pair_key(self) -> str:
        return f"{self.from_company_id}|{self.to_company_id}"


@dataclass(frozen=True)
class MatchingConfig:
    """Tolerances for pairing transactions."""

    date_tolerance_days: int = 3
    amount_tolerance_percent: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.date_tolerance_days < 0:
            raise ValueError("date_tolerance_days must be >= 0")
        if not Decimal("0") <= Decimal(self.amount_tolerance_percent) <= Decimal("100"):
            raise ValueError("amount_tolerance_percent must be between 0 and 100")


@dataclass(frozen=True)
class MatchedPair:
    from_transaction: IntercompanyTransaction
    to_transaction: IntercompanyTransaction
    variance_amount: MonetaryAmount | None
    is_exact_match: bool

    @property
    def variance_percentage(self) -> Decimal | None:
        """Variance as a percentage of the from-side amount."""
        if self.variance_amount is None or self.from_transaction.amount.is_zero:
            return None
        return self.variance_amount.amount / self.from_transaction.amount.amount * 100

    @property
    def transaction_ids(self) -> tuple[str, str]:
        return (self.from_transaction.id, self.to_transaction.id)


@dataclass(frozen=True)
class UnmatchedTransaction:
    transaction: IntercompanyTransaction
    missing_side: MissingSide
    reason: str | None = NO_COUNTERPART_REASON


@dataclass(frozen=True)
class DiscrepancyDetail:
    discrepancy_type: DiscrepancyType
    from_company_id: str
    to_company_id: str
    transaction_type: IntercompanyTransactionType
    expected_amount: MonetaryAmount
    actual_amount: MonetaryAmount | None
    variance_amount: MonetaryAmount | None
    expected_date: date
    actual_date: date | None
    date_difference: int | None
    description: str
    related_transaction_ids: tuple[str, ...]


@dataclass(frozen=True)
class MatchingReport:
    group_id: str
    period_ref: FiscalPeriodRef
    matched_at: datetime
    config: MatchingConfig
    total_transactions: int
    matched_count: int
    unmatched_count: int
    partial_match_count: int
    total_variance_amount: MonetaryAmount | None
    discrepancies: tuple[DiscrepancyDetail, ...] = ()
    variance_totals: dict[str, MonetaryAmount] = field(default_factory=dict)

    @property
    def match_rate(self) -> Decimal:
        if self.total_transactions == 0:
            return Decimal("100")
        return Decimal(self.matched_count * 2) / Decimal(self.total_transactions) * 100

    @property
    def is_fully_matched(self) -> bool:
        return self.unmatched_count == 0 and self.partial_match_count == 0

    @property
    def has_discrepancies(self) -> bool:
        return len(self.discrepancies) > 0

    @property
    def discrepancy_count(self) -> int:
        return len(self.discrepancies)


@dataclass(frozen=True)
class MatchingResult:
    matched_pairs: tuple[MatchedPair, ...]
    unmatched_transactions: tuple[UnmatchedTransaction, ...]
    report: MatchingReport

    @property
    def matched_count(self) -> int:
        return len(self.matched_pairs)

    @property
    def unmatched_count(self) -> int:
        return len(self.unmatched_transactions)

    @property
    def exact_matches(self) -> tuple[MatchedPair, ...]:
        return tuple(p for p in self.matched_pairs if p.is_exact_match)

    @property
    def partial_matches(self) -> tuple[MatchedPair, ...]:
        return tuple(p for p in self.matched_pairs if not p.is_exact_match)

    @property
    def unmatched_from_side(self) -> tuple[UnmatchedTransaction, ...]:
        return tuple(u for u in self.unmatched_transactions if u.missing_side == MissingSide.FROM)

    @property
    def unmatched_to_side(self) -> tuple[UnmatchedTransaction, ...]:
        return tuple(u for u in self.unmatched_transactions if u.missing_side == MissingSide.TO)


@dataclass(frozen=True)
class _MatchOutcome:
    matches: bool
    is_exact: bool = False
    variance: MonetaryAmount | None = None


_NO_MATCH = _MatchOutcome(matches=False)


class IntercompanyMatchingEngine:
    """
    Greedy intercompany transaction matcher.

    Contract:
        Pure function of (transactions, config, matched_at).
    Guarantees:
        - Every input transaction ends up in exactly one matched pair or
          exactly one UnmatchedTransaction.
        - Output order follows input order of the company-pair groups.
    Non-goals:
        - Not a globally optimal (bipartite) matcher.
        - Does not update transaction statuses; the service does.
    """

    @traced_engine("intercompany_matching", "1.0", fingerprint_fields=("group_id", "period_ref", "config"))
    def match(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        transactions: Sequence[IntercompanyTransaction],
        config: MatchingConfig,
        matched_at: datetime,
    ) -> MatchingResult:
        t0 = time.monotonic()
        logger.info("ic_matching_started", extra={
            "group_id": group_id,
            "period_ref": str(period_ref),
            "transaction_count": len(transactions),
            "date_tolerance_days": config.date_tolerance_days,
            "amount_tolerance_percent": str(config.amount_tolerance_percent),
        })

        grouped: dict[str, list[IntercompanyTransaction]] = {}
        for tx in transactions:
            grouped.setdefault(tx.pair_key, []).append(tx)

        matched_pairs: list[MatchedPair] = []
        unmatched: list[UnmatchedTransaction] = []
        processed: set[str] = set()

        for pair_key, pair_transactions in grouped.items():
            from_company, to_company = pair_key.split("|", 1)
            reverse = grouped.get(f"{to_company}|{from_company}", [])

            for from_tx in pair_transactions:
                if from_tx.id in processed:
                    continue
                pair = self._first_fit(from_tx, reverse, processed, config)
                if pair is None:
                    unmatched.append(UnmatchedTransaction(from_tx, MissingSide.TO))
                    processed.add(from_tx.id)
                else:
                    matched_pairs.append(pair)
                    processed.update(pair.transaction_ids)

            for to_tx in reverse:
                if to_tx.id not in processed:
                    unmatched.append(UnmatchedTransaction(to_tx, MissingSide.FROM))
                    processed.add(to_tx.id)

        discrepancies = [self._missing_counterpart(u) for u in unmatched]
        discrepancies.extend(
            self._amount_mismatch(pair) for pair in matched_pairs if pair.variance_amount is not None
        )

        partial_count = sum(1 for p in matched_pairs if not p.is_exact_match)
        variance_totals = self._variance_totals(matched_pairs)
        total_variance: MonetaryAmount | None = None
        if partial_count > 0 and matched_pairs:
            first_currency = matched_pairs[0].from_transaction.amount.currency
            total_variance = variance_totals.get(first_currency)

        report = MatchingReport(
            group_id=group_id,
            period_ref=period_ref,
            matched_at=matched_at,
            config=config,
            total_transactions=len(transactions),
            matched_count=len(matched_pairs),
            unmatched_count=len(unmatched),
            partial_match_count=partial_count,
            total_variance_amount=total_variance,
            discrepancies=tuple(discrepancies),
            variance_totals=variance_totals,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("ic_matching_completed", extra={
            "group_id": group_id,
            "period_ref": str(period_ref),
            "matched_count": report.matched_count,
            "partial_match_count": partial_count,
            "unmatched_count": report.unmatched_count,
            "match_rate": str(report.match_rate),
            "duration_ms": duration_ms,
        })

        return MatchingResult(
            matched_pairs=tuple(matched_pairs),
            unmatched_transactions=tuple(unmatched),
            report=report,
        )

    def _first_fit(
        self,
        from_tx: IntercompanyTransaction,
        candidates: Sequence[IntercompanyTransaction],
        processed: set[str],
        config: MatchingConfig,
    ) -> MatchedPair | None:
        for to_tx in candidates:
            if to_tx.id in processed:
                continue
            outcome = self.evaluate(from_tx, to_tx, config)
            if outcome.matches:
                return MatchedPair(
                    from_transaction=from_tx,
                    to_transaction=to_tx,
                    variance_amount=outcome.variance,
                    is_exact_match=outcome.is_exact,
                )
        return None

    @staticmethod
    def evaluate(
        from_tx: IntercompanyTransaction,
        to_tx: IntercompanyTransaction,
        config: MatchingConfig,
    ) -> _MatchOutcome:
        """Decide whether ``to_tx`` is a valid counterpart of ``from_tx``."""
        if (
            from_tx.from_company_id != to_tx.to_company_id
            or from_tx.to_company_id != to_tx.from_company_id
        ):
            return _NO_MATCH
        if from_tx.transaction_type != to_tx.transaction_type:
            return _NO_MATCH
        if abs((from_tx.transaction_date - to_tx.transaction_date).days) > config.date_tolerance_days:
            return _NO_MATCH
        if from_tx.amount.currency != to_tx.amount.currency:
            return _NO_MATCH

        variance = from_tx.amount - to_tx.amount
        tolerance_pct = Decimal(config.amount_tolerance_percent)

        if tolerance_pct == 0:
            if variance.is_zero:
                return _MatchOutcome(matches=True, is_exact=True)
            return _MatchOutcome(matches=True, is_exact=False, variance=variance)

        tolerance_amount = abs(from_tx.amount.amount * tolerance_pct / 100)
        if abs(variance.amount) <= tolerance_amount:
            if variance.is_zero:
                return _MatchOutcome(matches=True, is_exact=True)
            return _MatchOutcome(matches=True, is_exact=False, variance=variance)
        return _NO_MATCH

    @staticmethod
    def _variance_totals(pairs: Sequence[MatchedPair]) -> dict[str, MonetaryAmount]:
        totals: dict[str, MonetaryAmount] = {}
        for pair in pairs:
            variance = pair.variance_amount
            if variance is None:
                continue
            current = totals.get(variance.currency, MonetaryAmount.zero(variance.currency))
            totals[variance.currency] = current + variance
        return {currency: total for currency, total in totals.items() if not total.is_zero}

    @staticmethod
    def _missing_counterpart(item: UnmatchedTransaction) -> DiscrepancyDetail:
        tx = item.transaction
        return DiscrepancyDetail(
            discrepancy_type=DiscrepancyType.MISSING_COUNTERPART,
            from_company_id=tx.from_company_id,
            to_company_id=tx.to_company_id,
            transaction_type=tx.transaction_type,
            expected_amount=tx.amount,
            actual_amount=None,
            variance_amount=tx.amount,
            expected_date=tx.transaction_date,
            actual_date=None,
            date_difference=None,
            description=(
                f"Missing counterpart transaction on the {item.missing_side.value} side "
                f"for {tx.transaction_type.value} transaction"
            ),
            related_transaction_ids=(tx.id,),
        )

    @staticmethod
    def _amount_mismatch(pair: MatchedPair) -> DiscrepancyDetail:
        from_tx = pair.from_transaction
        to_tx = pair.to_transaction
        variance = pair.variance_amount
        return DiscrepancyDetail(
            discrepancy_type=DiscrepancyType.AMOUNT_MISMATCH,
            from_company_id=from_tx.from_company_id,
            to_company_id=from_tx.to_company_id,
            transaction_type=from_tx.transaction_type,
            expected_amount=from_tx.amount,
            actual_amount=to_tx.amount,
            variance_amount=variance,
            expected_date=from_tx.transaction_date,
            actual_date=to_tx.transaction_date,
            date_difference=(from_tx.transaction_date - to_tx.transaction_date).days,
            description=(
                f"Amount variance of {variance.format()} {from_tx.amount.currency} between companies"
            ),
            related_transaction_ids=pair.transaction_ids,
        )
