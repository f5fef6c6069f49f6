"""
Eliminations Module (``consolidation_modules.eliminations``).

Responsibility
--------------
Rule-driven generation of consolidation elimination entries:
intercompany receivables/payables, revenue/expense, dividends,
investments in subsidiaries and unrealized intragroup profit.

Audit relevance
---------------
Each entry references the rule that produced it and starts unposted.
"""

from consolidation_modules.eliminations.models import (
    AccountBalance,
    AccountSelectorByCategory,
    AccountSelectorById,
    AccountSelectorByRange,
    EliminationEntry,
    EliminationRule,
    EliminationType,
    GenerationResult,
)
from consolidation_modules.eliminations.repository import (
    EliminationRepository,
    InMemoryEliminationRepository,
    SqlEliminationRepository,
)
from consolidation_modules.eliminations.service import EliminationService

__all__ = [
    "AccountBalance",
    "AccountSelectorByCategory",
    "AccountSelectorById",
    "AccountSelectorByRange",
    "EliminationEntry",
    "EliminationRepository",
    "EliminationRule",
    "EliminationService",
    "EliminationType",
    "GenerationResult",
    "InMemoryEliminationRepository",
    "SqlEliminationRepository",
]
