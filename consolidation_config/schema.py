"""
Consolidation settings schema.

The typed form of ``consolidation.yaml``.  The loader parses YAML into
these frozen dataclasses; ``consolidation_config.bridges`` turns them
into the configs the engines and services take.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Intercompany matching
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchingSettings:
    date_tolerance_days: int = 3
    amount_tolerance_percent: Decimal = Decimal("0")


# ---------------------------------------------------------------------------
# Currency translation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountSettings:
    """A group-level account the run posts to."""

    account_id: str
    account_number: str
    account_name: str
    account_type: str  # Asset, Liability, Equity, Revenue, Expense
    account_category: str


@dataclass(frozen=True)
class TranslationSettings:
    historical_rate_policy: str = "fallback"  # fallback | strict
    cta_account: AccountSettings = field(default_factory=lambda: AccountSettings(
        account_id="consolidation-cta",
        account_number="3900",
        account_name="Cumulative translation adjustment",
        account_type="Equity",
        account_category="OtherComprehensiveIncome",
    ))
    retained_earnings_account: AccountSettings = field(default_factory=lambda: AccountSettings(
        account_id="consolidation-retained-earnings",
        account_number="3100",
        account_name="Retained earnings",
        account_type="Equity",
        account_category="RetainedEarnings",
    ))


# ---------------------------------------------------------------------------
# Runs, eliminations, logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunSettings:
    """Default ``ConsolidationRunOptions`` for runs started without options."""

    skip_validation: bool = False
    continue_on_warnings: bool = True
    include_equity_method_investments: bool = True
    force_regeneration: bool = False


@dataclass(frozen=True)
class EliminationSettings:
    """Priority bands for reporting on elimination rules."""

    high_priority_threshold: int = 10
    low_priority_threshold: int = 100


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsolidationSettings:
    """
    The complete consolidation configuration.

    ``checksum`` is the SHA-256 of the canonical JSON form of the source
    document, so two settings objects loaded from equivalent YAML share it.
    """

    config_id: str
    version: int
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    translation: TranslationSettings = field(default_factory=TranslationSettings)
    run: RunSettings = field(default_factory=RunSettings)
    elimination: EliminationSettings = field(default_factory=EliminationSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
