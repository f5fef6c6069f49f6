"""
Intercompany Module (``consolidation_modules.intercompany``).

Responsibility
--------------
Intercompany transaction matching for consolidation: pairs each
company's recorded transaction with its counterpart's mirror entry,
persists the matching status, and supports variance approval.

Failure modes
-------------
* Precondition errors for unknown groups, periods or transactions.
* Status transition errors when approving a variance out of order.
"""

from consolidation_modules.intercompany.models import (
    IntercompanyTransaction,
    IntercompanyTransactionType,
    MatchingConfig,
    MatchingResult,
    MatchingStatus,
    MatchingStatusUpdate,
)
from consolidation_modules.intercompany.repository import (
    InMemoryIntercompanyTransactionRepository,
    IntercompanyTransactionRepository,
    SqlIntercompanyTransactionRepository,
)
from consolidation_modules.intercompany.service import IntercompanyService

__all__ = [
    "InMemoryIntercompanyTransactionRepository",
    "IntercompanyService",
    "IntercompanyTransaction",
    "IntercompanyTransactionRepository",
    "IntercompanyTransactionType",
    "MatchingConfig",
    "MatchingResult",
    "MatchingStatus",
    "MatchingStatusUpdate",
    "SqlIntercompanyTransactionRepository",
]
