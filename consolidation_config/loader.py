"""
Configuration Loader (``consolidation_config.loader``).

Responsibility
--------------
Load ``consolidation.yaml`` and parse it into the frozen dataclasses of
``consolidation_config.schema``.  Runtime callers go through
``consolidation_config.get_active_config()`` instead of calling this
module directly.

Invariants enforced
-------------------
* Unknown keys are rejected so a typo never silently falls back to a
  default.
* Enumerated values (historical-rate policy, account type, log level)
  are checked here, not deep inside a run.
* ``compute_checksum`` is deterministic for equal documents.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError`` propagates.
* Invalid values or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from consolidation_config.schema import (
    AccountSettings,
    ConsolidationSettings,
    EliminationSettings,
    LoggingSettings,
    MatchingSettings,
    RunSettings,
    TranslationSettings,
)

HISTORICAL_RATE_POLICIES = ("fallback", "strict")
ACCOUNT_TYPES = ("Asset", "Liability", "Equity", "Revenue", "Expense")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_ROOT_KEYS = {"config_id", "version", "matching", "translation", "run", "elimination", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(sorted(unknown))}")
    return section


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"'{name}' must be a decimal number, got {value!r}") from exc


def _bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"'{name}' must be true or false, got {value!r}")
    return value


def parse_matching(data: dict[str, Any]) -> MatchingSettings:
    section = _section(data, "matching", {"date_tolerance_days", "amount_tolerance_percent"})
    defaults = MatchingSettings()
    days = int(section.get("date_tolerance_days", defaults.date_tolerance_days))
    percent = _decimal(
        section.get("amount_tolerance_percent", defaults.amount_tolerance_percent),
        "matching.amount_tolerance_percent",
    )
    if days < 0:
        raise ValueError("matching.date_tolerance_days must be >= 0")
    if not Decimal("0") <= percent <= Decimal("100"):
        raise ValueError("matching.amount_tolerance_percent must be between 0 and 100")
    return MatchingSettings(date_tolerance_days=days, amount_tolerance_percent=percent)


def parse_account(data: dict[str, Any], name: str, default: AccountSettings) -> AccountSettings:
    if data is None:
        return default
    allowed = {"account_id", "account_number", "account_name", "account_type", "account_category"}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(sorted(unknown))}")
    account = AccountSettings(
        account_id=str(data.get("account_id", default.account_id)),
        account_number=str(data.get("account_number", default.account_number)),
        account_name=str(data.get("account_name", default.account_name)),
        account_type=str(data.get("account_type", default.account_type)),
        account_category=str(data.get("account_category", default.account_category)),
    )
    if account.account_type not in ACCOUNT_TYPES:
        raise ValueError(
            f"'{name}.account_type' must be one of {', '.join(ACCOUNT_TYPES)}, "
            f"got {account.account_type!r}"
        )
    return account


def parse_translation(data: dict[str, Any]) -> TranslationSettings:
    section = _section(
        data, "translation", {"historical_rate_policy", "cta_account", "retained_earnings_account"},
    )
    defaults = TranslationSettings()
    policy = str(section.get("historical_rate_policy", defaults.historical_rate_policy)).lower()
    if policy not in HISTORICAL_RATE_POLICIES:
        raise ValueError(
            f"translation.historical_rate_policy must be one of "
            f"{', '.join(HISTORICAL_RATE_POLICIES)}, got {policy!r}"
        )
    return TranslationSettings(
        historical_rate_policy=policy,
        cta_account=parse_account(
            section.get("cta_account"), "translation.cta_account", defaults.cta_account,
        ),
        retained_earnings_account=parse_account(
            section.get("retained_earnings_account"),
            "translation.retained_earnings_account",
            defaults.retained_earnings_account,
        ),
    )


def parse_run(data: dict[str, Any]) -> RunSettings:
    names = (
        "skip_validation",
        "continue_on_warnings",
        "include_equity_method_investments",
        "force_regeneration",
    )
    section = _section(data, "run", set(names))
    defaults = RunSettings()
    return RunSettings(**{
        name: _bool(section.get(name, getattr(defaults, name)), f"run.{name}") for name in names
    })


def parse_elimination(data: dict[str, Any]) -> EliminationSettings:
    section = _section(data, "elimination", {"high_priority_threshold", "low_priority_threshold"})
    defaults = EliminationSettings()
    high = int(section.get("high_priority_threshold", defaults.high_priority_threshold))
    low = int(section.get("low_priority_threshold", defaults.low_priority_threshold))
    if high < 0 or low <= high:
        raise ValueError(
            "elimination thresholds must satisfy 0 <= high_priority_threshold "
            f"< low_priority_threshold, got {high} and {low}"
        )
    return EliminationSettings(high_priority_threshold=high, low_priority_threshold=low)


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    section = _section(data, "logging", {"level"})
    level = str(section.get("level", LoggingSettings().level)).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    return LoggingSettings(level=level)


def parse_settings(data: dict[str, Any]) -> ConsolidationSettings:
    """
    Parse a whole settings document.

    Raises:
        KeyError: ``config_id`` or ``version`` missing.
        ValueError: Unknown keys or invalid values.
    """
    unknown = set(data) - _ROOT_KEYS
    if unknown:
        raise ValueError(f"Unknown top-level key(s): {', '.join(sorted(unknown))}")
    return ConsolidationSettings(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        matching=parse_matching(data),
        translation=parse_translation(data),
        run=parse_run(data),
        elimination=parse_elimination(data),
        logging=parse_logging(data),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> ConsolidationSettings:
    return parse_settings(load_yaml_file(path))
