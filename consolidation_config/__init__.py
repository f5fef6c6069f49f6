"""
consolidation_config -- single public entrypoint for consolidation settings.

Responsibility:
    Provides the one way to obtain settings at runtime through
    ``get_active_config()``.  Services and engines take already-built
    configs (``MatchingConfig``, ``ConsolidationRunOptions``, ...); the
    conversion lives in ``consolidation_config.bridges``.

Architecture position:
    Configuration -- sits above ``consolidation_kernel`` and
    ``consolidation_engines`` and beside ``consolidation_modules``.  The
    kernel and the engines never import from this package.

Invariants enforced:
    - Deterministic checksum: the same YAML document always produces the
      same ``ConsolidationSettings.checksum``.
    - Unknown keys and invalid values are rejected at load time.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``KeyError`` / ``ValueError`` -- missing identity fields, unknown
      keys or invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CONSOLIDATION_CONFIG_TRACE`` log entry carrying the config id,
    version and checksum, which ties each run back to the settings that
    governed it.
"""

from __future__ import annotations

from pathlib import Path

from consolidation_config.loader import compute_checksum, load_settings
from consolidation_config.schema import ConsolidationSettings
from consolidation_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "consolidation.yaml"

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ConsolidationSettings",
    "compute_checksum",
    "get_active_config",
]


def get_active_config(path: Path | str | None = None) -> ConsolidationSettings:
    """The public settings entrypoint.

    Guarantees:
        - The returned settings passed validation.
        - A ``CONSOLIDATION_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - Does NOT cache settings across calls.

    Args:
        path: Settings file to load.  Defaults to the bundled
            ``defaults/consolidation.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    settings_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    settings = load_settings(settings_path)

    _logger.info(
        "CONSOLIDATION_CONFIG_TRACE",
        extra={
            "trace_type": "CONSOLIDATION_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(settings_path),
            "historical_rate_policy": settings.translation.historical_rate_policy,
        },
    )

    return settings
