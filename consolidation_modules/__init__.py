"""
Consolidation Modules.

Repository-backed services layered over the consolidation kernel and the
pure engines.  Each module contains:
- Domain models (DTOs re-exported from the engines plus service-level types)
- Repository contracts (Protocols) with in-memory implementations
- A service that validates preconditions and delegates to an engine
- SQLAlchemy ORM models where records are persisted

Modules:
- intercompany: transaction matching and variance approval
- eliminations: rule-driven elimination entry generation
- nci: non-controlling interest per subsidiary and in aggregate
- consolidation: the seven-step consolidation run orchestrator

Shared lookups for groups, fiscal periods and period closure live in
``consolidation_modules.directory``.
"""

__all__ = [
    "consolidation",
    "directory",
    "eliminations",
    "intercompany",
    "nci",
]
