"""
Intercompany Domain Models (``consolidation_modules.intercompany.models``).

Responsibility
--------------
Frozen dataclass value objects for intercompany matching.  The transaction
and matching types are owned by ``consolidation_engines.intercompany_matching``
and re-exported here so callers import one surface; this module adds the
service-level ``MatchingStatusUpdate`` persisted by repositories.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Monetary fields use ``MonetaryAmount`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass

from consolidation_engines.intercompany_matching import (
    DiscrepancyDetail,
    DiscrepancyType,
    IntercompanyTransaction,
    IntercompanyTransactionType,
    MatchedPair,
    MatchingConfig,
    MatchingReport,
    MatchingResult,
    MatchingStatus,
    MissingSide,
    UnmatchedTransaction,
)
from consolidation_kernel.domain.values import MonetaryAmount


@dataclass(frozen=True)
class MatchingStatusUpdate:
    """One status write applied to a set of transactions."""

    transaction_ids: tuple[str, ...]
    status: MatchingStatus
    variance_amount: MonetaryAmount | None = None
    variance_explanation: str | None = None

    @classmethod
    def for_pair(cls, pair: MatchedPair) -> MatchingStatusUpdate:
        """Matched for an exact pair, PartiallyMatched with its variance otherwise."""
        if pair.is_exact_match:
            return cls(transaction_ids=pair.transaction_ids, status=MatchingStatus.MATCHED)
        return cls(
            transaction_ids=pair.transaction_ids,
            status=MatchingStatus.PARTIALLY_MATCHED,
            variance_amount=pair.variance_amount,
        )


__all__ = [
    "DiscrepancyDetail",
    "DiscrepancyType",
    "IntercompanyTransaction",
    "IntercompanyTransactionType",
    "MatchedPair",
    "MatchingConfig",
    "MatchingReport",
    "MatchingResult",
    "MatchingStatus",
    "MatchingStatusUpdate",
    "MissingSide",
    "UnmatchedTransaction",
]
