"""
Configuration bridges (``consolidation_config.bridges``).

Responsibility
--------------
Translate ``ConsolidationSettings`` into the inputs the engines and the
run orchestrator accept.  The engines never import this package; this
module is the only place settings and domain types meet.

Usage::

    settings = get_active_config()
    service = ConsolidationService(
        ...,
        **consolidation_service_kwargs(settings),
    )
"""

from __future__ import annotations

from typing import Any

from consolidation_config.schema import (
    AccountSettings,
    ConsolidationSettings,
    EliminationSettings,
    LoggingSettings,
    MatchingSettings,
    RunSettings,
    TranslationSettings,
)
from consolidation_engines.elimination import EliminationRule
from consolidation_engines.intercompany_matching import MatchingConfig
from consolidation_engines.translation import CurrencyTranslationEngine, HistoricalRatePolicy
from consolidation_kernel.domain.accounts import AccountType
from consolidation_kernel.logging_config import configure_logging
from consolidation_modules.consolidation.models import (
    ConsolidationAccount,
    ConsolidationRunOptions,
)


def to_matching_config(settings: MatchingSettings) -> MatchingConfig:
    return MatchingConfig(
        date_tolerance_days=settings.date_tolerance_days,
        amount_tolerance_percent=settings.amount_tolerance_percent,
    )


def to_run_options(settings: RunSettings) -> ConsolidationRunOptions:
    return ConsolidationRunOptions(
        skip_validation=settings.skip_validation,
        continue_on_warnings=settings.continue_on_warnings,
        include_equity_method_investments=settings.include_equity_method_investments,
        force_regeneration=settings.force_regeneration,
    )


def to_historical_rate_policy(settings: TranslationSettings) -> HistoricalRatePolicy:
    return HistoricalRatePolicy(settings.historical_rate_policy)


def to_translation_engine(settings: TranslationSettings) -> CurrencyTranslationEngine:
    return CurrencyTranslationEngine(
        historical_rate_policy=to_historical_rate_policy(settings),
    )


def to_consolidation_account(settings: AccountSettings) -> ConsolidationAccount:
    return ConsolidationAccount(
        account_id=settings.account_id,
        account_number=settings.account_number,
        account_name=settings.account_name,
        account_type=AccountType(settings.account_type),
        account_category=settings.account_category,
    )


def priority_band(rule: EliminationRule, settings: EliminationSettings) -> str:
    """
    Classify a rule as ``high``, ``normal`` or ``low`` priority under the
    configured thresholds.

    The engine's own ``is_high_priority`` / ``is_low_priority`` use the
    built-in 10 / 100 thresholds; this lets reporting follow the
    configured ones instead.
    """
    if rule.priority <= settings.high_priority_threshold:
        return "high"
    if rule.priority > settings.low_priority_threshold:
        return "low"
    return "normal"


def configure_logging_from(settings: LoggingSettings, **kwargs: Any) -> None:
    """Configure the ``consolidation`` logger tree at the configured level."""
    configure_logging(level=settings.level, **kwargs)


def consolidation_service_kwargs(settings: ConsolidationSettings) -> dict[str, Any]:
    """Keyword arguments for ``ConsolidationService`` derived from settings."""
    return {
        "translation_engine": to_translation_engine(settings.translation),
        "matching_config": to_matching_config(settings.matching),
        "default_options": to_run_options(settings.run),
        "cta_account": to_consolidation_account(settings.translation.cta_account),
        "retained_earnings_account": to_consolidation_account(
            settings.translation.retained_earnings_account,
        ),
    }
