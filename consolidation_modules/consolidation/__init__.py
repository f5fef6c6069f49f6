"""
Consolidation Run Module (``consolidation_modules.consolidation``).

Responsibility
--------------
The seven-step consolidation run: validate member data, translate to the
reporting currency, aggregate, match intercompany activity, generate
eliminations, calculate NCI, and produce the consolidated trial balance.

Failure modes
-------------
* Precondition errors for unknown groups, periods or runs.
* ``ConsolidationValidationError`` / ``ConsolidationStepFailedError``
  when a run halts.
"""

from consolidation_modules.consolidation.models import (
    CONSOLIDATION_STEP_ORDER,
    AggregatedBalance,
    ConsolidatedTrialBalance,
    ConsolidatedTrialBalanceLineItem,
    ConsolidationAccount,
    ConsolidationRun,
    ConsolidationRunOptions,
    ConsolidationRunStatus,
    ConsolidationStep,
    ConsolidationStepStatus,
    ConsolidationStepType,
    MemberTrialBalance,
    ValidationCode,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
    create_initial_steps,
)
from consolidation_modules.consolidation.repository import (
    ConsolidationRunRepository,
    InMemoryConsolidationRunRepository,
    InMemoryTrialBalanceSource,
    InMemoryTranslationRateSource,
    MemberTrialBalanceSource,
    SqlConsolidationRunRepository,
    TranslationRateSource,
)
from consolidation_modules.consolidation.service import ConsolidationService

__all__ = [
    "CONSOLIDATION_STEP_ORDER",
    "AggregatedBalance",
    "ConsolidatedTrialBalance",
    "ConsolidatedTrialBalanceLineItem",
    "ConsolidationAccount",
    "ConsolidationRun",
    "ConsolidationRunOptions",
    "ConsolidationRunRepository",
    "ConsolidationRunStatus",
    "ConsolidationService",
    "ConsolidationStep",
    "ConsolidationStepStatus",
    "ConsolidationStepType",
    "InMemoryConsolidationRunRepository",
    "InMemoryTranslationRateSource",
    "InMemoryTrialBalanceSource",
    "MemberTrialBalance",
    "MemberTrialBalanceSource",
    "SqlConsolidationRunRepository",
    "TranslationRateSource",
    "ValidationCode",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSeverity",
    "create_initial_steps",
]
