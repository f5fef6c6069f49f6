"""
Elimination Domain Models (``consolidation_modules.eliminations.models``).

Responsibility
--------------
Re-export the elimination rule, selector, balance and entry types owned
by ``consolidation_engines.elimination`` so module callers import a single
surface.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.
"""

from consolidation_engines.elimination import (
    AccountBalance,
    AccountSelector,
    AccountSelectorByCategory,
    AccountSelectorById,
    AccountSelectorByRange,
    EliminationEntry,
    EliminationEntryLine,
    EliminationRule,
    EliminationType,
    GenerationResult,
    TriggerCondition,
)

__all__ = [
    "AccountBalance",
    "AccountSelector",
    "AccountSelectorByCategory",
    "AccountSelectorById",
    "AccountSelectorByRange",
    "EliminationEntry",
    "EliminationEntryLine",
    "EliminationRule",
    "EliminationType",
    "GenerationResult",
    "TriggerCondition",
]
