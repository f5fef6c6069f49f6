"""
Intercompany Module Service (``consolidation_modules.intercompany.service``).

Responsibility
--------------
Match a group's intercompany transactions for a fiscal period, persist the
resulting matching statuses, and approve variances on partially matched
transactions.

Architecture position
---------------------
**Modules layer** -- ``IntercompanyService`` is the sole public entry point
for intercompany matching.  It composes an
``IntercompanyTransactionRepository`` with the pure
``IntercompanyMatchingEngine``.

Invariants enforced
-------------------
* Group and period existence are checked before any transaction is read.
* Exact pairs are persisted as Matched; partial pairs as PartiallyMatched
  with their variance.  Unmatched transactions keep their status.
* Only a PartiallyMatched transaction can move to VarianceApproved.
  Approval covers both sides of the pair through the stored counterpart.
* A pair already VarianceApproved keeps its status when matching runs
  again.

Failure modes
-------------
* ``ConsolidationGroupNotFoundError`` / ``FiscalPeriodNotFoundError``.
* ``IntercompanyTransactionNotFoundError`` on an unknown transaction id.
* ``InvalidMatchingStatusTransitionError`` when approving a variance on a
  transaction that is not PartiallyMatched.

Usage::

    service = IntercompanyService(repository, clock)
    result = service.match_transactions(group_id, FiscalPeriodRef(2025, 1))
"""

from __future__ import annotations

import time

from consolidation_engines.intercompany_matching import IntercompanyMatchingEngine
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.clock import Clock, SystemClock
from consolidation_kernel.exceptions import (
    ConsolidationGroupNotFoundError,
    FiscalPeriodNotFoundError,
    IntercompanyTransactionNotFoundError,
    InvalidMatchingStatusTransitionError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_modules.intercompany.models import (
    IntercompanyTransaction,
    MatchingConfig,
    MatchingResult,
    MatchingStatus,
    MatchingStatusUpdate,
)
from consolidation_modules.intercompany.repository import IntercompanyTransactionRepository

logger = get_logger("modules.intercompany.service")


class IntercompanyService:
    """
    Matches intercompany transactions and records the outcome.

    Contract
    --------
    * ``match_transactions`` returns the engine's ``MatchingResult`` after
      writing statuses back through the repository.
    * ``approve_variance`` returns the updated transaction; its counterpart
      is approved in the same write.

    Guarantees
    ----------
    * Clock is injectable for deterministic ``matched_at`` timestamps.
    * A repository failure propagates; nothing is retried.

    Non-goals
    ---------
    * Does NOT post journal entries for matched pairs.
    """

    def __init__(
        self,
        repository: IntercompanyTransactionRepository,
        clock: Clock | None = None,
        default_config: MatchingConfig | None = None,
        engine: IntercompanyMatchingEngine | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._default_config = default_config or MatchingConfig()
        self._engine = engine or IntercompanyMatchingEngine()

    def match_transactions(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        config: MatchingConfig | None = None,
    ) -> MatchingResult:
        """
        Match the group's transactions for a period and persist statuses.

        Raises:
            ConsolidationGroupNotFoundError: Unknown group.
            FiscalPeriodNotFoundError: Unknown period.
        """
        t0 = time.monotonic()
        if not self._repository.group_exists(group_id):
            raise ConsolidationGroupNotFoundError(group_id)
        if not self._repository.period_exists(period_ref):
            raise FiscalPeriodNotFoundError(str(period_ref))

        transactions = self._repository.find_by_group_and_period(group_id, period_ref)
        result = self._engine.match(
            group_id=group_id,
            period_ref=period_ref,
            transactions=transactions,
            config=config or self._default_config,
            matched_at=self._clock.now(),
        )

        approved_pairs = 0
        for pair in result.matched_pairs:
            if pair.from_transaction.is_variance_approved or pair.to_transaction.is_variance_approved:
                approved_pairs += 1
                continue
            update = MatchingStatusUpdate.for_pair(pair)
            first, second = update.transaction_ids
            for transaction_id, counterpart_id in ((first, second), (second, first)):
                self._repository.update_matching_status(
                    [transaction_id],
                    update.status,
                    variance_amount=update.variance_amount,
                    variance_explanation=update.variance_explanation,
                    matched_transaction_id=counterpart_id,
                )

        logger.info("ic_match_transactions_committed", extra={
            "group_id": group_id,
            "period_ref": str(period_ref),
            "transaction_count": len(transactions),
            "matched_pairs": result.matched_count,
            "partial_matches": len(result.partial_matches),
            "unmatched": result.unmatched_count,
            "approved_pairs_kept": approved_pairs,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result

    def approve_variance(self, transaction_id: str, explanation: str) -> IntercompanyTransaction:
        """
        Accept the variance on a partially matched transaction.

        Raises:
            IntercompanyTransactionNotFoundError: Unknown transaction.
            InvalidMatchingStatusTransitionError: Not PartiallyMatched.
            ValueError: Blank explanation.
        """
        if not explanation or not explanation.strip():
            raise ValueError("A variance explanation is required")
        transaction = self._repository.get(transaction_id)
        if transaction is None:
            raise IntercompanyTransactionNotFoundError(transaction_id)
        if transaction.matching_status != MatchingStatus.PARTIALLY_MATCHED:
            raise InvalidMatchingStatusTransitionError(
                transaction_id=transaction_id,
                from_status=transaction.matching_status.value,
                to_status=MatchingStatus.VARIANCE_APPROVED.value,
            )

        approved_ids = [transaction_id]
        counterpart = (
            self._repository.get(transaction.matched_transaction_id)
            if transaction.matched_transaction_id
            else None
        )
        if counterpart is not None and counterpart.is_partially_matched:
            approved_ids.append(counterpart.id)

        self._repository.update_matching_status(
            approved_ids,
            MatchingStatus.VARIANCE_APPROVED,
            variance_explanation=explanation.strip(),
        )
        logger.info("ic_variance_approved", extra={
            "transaction_id": transaction_id,
            "counterpart_id": counterpart.id if counterpart is not None else None,
            "variance_amount": (
                str(transaction.variance_amount.amount) if transaction.variance_amount else None
            ),
        })
        updated = self._repository.get(transaction_id)
        if updated is None:
            raise IntercompanyTransactionNotFoundError(transaction_id)
        return updated
