"""
Module: consolidation_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    consolidation engines.  This is the canonical import surface for
    consolidation_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import consolidation_kernel (and sibling engine modules).
    MUST NOT import consolidation_modules or consolidation_config.

Invariants enforced:
    - Purity: engines never read the clock.  Timestamps and dates are
      passed in by the calling service.
    - Decimal-only arithmetic through MonetaryAmount and Percentage.
    - Determinism: identical inputs produce identical outputs (ids are
      injectable where an engine mints them).

Audit relevance:
    Engine entry points are wrapped in ``@traced_engine`` and emit
    CONSOLIDATION_ENGINE_TRACE records with an input fingerprint.

Usage:
    from consolidation_engines.translation import CurrencyTranslationEngine
    from consolidation_engines.intercompany_matching import IntercompanyMatchingEngine
    from consolidation_engines.elimination import EliminationEngine
    from consolidation_engines.nci import NCIEngine
"""

from consolidation_engines.elimination import (
    AccountBalance,
    AccountSelector,
    AccountSelectorByCategory,
    AccountSelectorById,
    AccountSelectorByRange,
    EliminationEngine,
    EliminationEntry,
    EliminationEntryLine,
    EliminationRule,
    EliminationType,
    GenerationResult,
    TriggerCondition,
    selector_matches,
    sort_rules_by_priority,
)
from consolidation_engines.intercompany_matching import (
    DiscrepancyDetail,
    DiscrepancyType,
    IntercompanyMatchingEngine,
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
from consolidation_engines.nci import (
    ConsolidatedNCISummary,
    NCIChangeType,
    NCIEngine,
    NCIEquityAtAcquisition,
    NCIEquityChange,
    NCILineItem,
    NCILineItemType,
    NCINetIncome,
    NCIPercentage,
    NCIResult,
    NCISubsequentChanges,
    SubsidiaryData,
    calculate_nci_percentage,
)
from consolidation_engines.tracer import traced_engine
from consolidation_engines.translation import (
    CTACalculation,
    CurrencyTranslationEngine,
    HistoricalRatePolicy,
    MemberTrialBalanceLineItem,
    RetainedEarningsComponents,
    TranslatedLineItem,
    TranslatedTrialBalance,
    TranslateMemberBalancesInput,
    TranslationCategory,
    TranslationRates,
    TranslationRateType,
    determine_translation_category,
    get_rate_type_for_category,
)

__all__ = [
    # Elimination
    "AccountBalance",
    "AccountSelector",
    "AccountSelectorByCategory",
    "AccountSelectorById",
    "AccountSelectorByRange",
    "EliminationEngine",
    "EliminationEntry",
    "EliminationEntryLine",
    "EliminationRule",
    "EliminationType",
    "GenerationResult",
    "TriggerCondition",
    "selector_matches",
    "sort_rules_by_priority",
    # Intercompany matching
    "DiscrepancyDetail",
    "DiscrepancyType",
    "IntercompanyMatchingEngine",
    "IntercompanyTransaction",
    "IntercompanyTransactionType",
    "MatchedPair",
    "MatchingConfig",
    "MatchingReport",
    "MatchingResult",
    "MatchingStatus",
    "MissingSide",
    "UnmatchedTransaction",
    # NCI
    "ConsolidatedNCISummary",
    "NCIChangeType",
    "NCIEngine",
    "NCIEquityAtAcquisition",
    "NCIEquityChange",
    "NCILineItem",
    "NCILineItemType",
    "NCINetIncome",
    "NCIPercentage",
    "NCIResult",
    "NCISubsequentChanges",
    "SubsidiaryData",
    "calculate_nci_percentage",
    # Tracer
    "traced_engine",
    # Translation
    "CTACalculation",
    "CurrencyTranslationEngine",
    "HistoricalRatePolicy",
    "MemberTrialBalanceLineItem",
    "RetainedEarningsComponents",
    "TranslatedLineItem",
    "TranslatedTrialBalance",
    "TranslateMemberBalancesInput",
    "TranslationCategory",
    "TranslationRates",
    "TranslationRateType",
    "determine_translation_category",
    "get_rate_type_for_category",
]
