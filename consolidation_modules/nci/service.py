"""
NCI Module Service (``consolidation_modules.nci.service``).

Responsibility
--------------
Resolve subsidiary inputs through an ``NCIRepository`` and delegate the
calculation to the pure ``NCIEngine``.

Failure modes
-------------
* ``SubsidiaryNotFoundError`` when the repository has no data for a
  requested subsidiary and period.
* ``InvalidOwnershipPercentageError`` / ``NCICalculationError`` from the
  engine, propagated unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence

from consolidation_engines.nci import NCIEngine, calculate_nci_percentage
from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.values import Percentage
from consolidation_kernel.exceptions import SubsidiaryNotFoundError
from consolidation_kernel.logging_config import get_logger
from consolidation_modules.nci.models import (
    ConsolidatedNCISummary,
    NCIPercentage,
    NCIResult,
    SubsidiaryAcquisitionData,
    SubsidiaryData,
)
from consolidation_modules.nci.repository import NCIRepository

logger = get_logger("modules.nci.service")


class NCIService:
    """
    Computes non-controlling interest for subsidiaries known to the repository.

    The ``*_for`` methods accept already-resolved ``SubsidiaryData`` and
    skip the repository entirely.
    """

    def __init__(self, repository: NCIRepository, engine: NCIEngine | None = None):
        self._repository = repository
        self._engine = engine or NCIEngine()

    def calculate_nci_percentage(self, parent_ownership: Percentage) -> NCIPercentage:
        return calculate_nci_percentage(parent_ownership)

    def calculate_nci(self, subsidiary_id: str, period_ref: FiscalPeriodRef) -> NCIResult:
        """
        Raises:
            SubsidiaryNotFoundError: No data for the subsidiary and period.
        """
        return self._engine.calculate_nci(self._require(subsidiary_id, period_ref))

    def calculate_nci_for(self, subsidiary: SubsidiaryData) -> NCIResult:
        return self._engine.calculate_nci(subsidiary)

    def calculate_consolidated_nci(
        self,
        subsidiary_ids: Sequence[str],
        period_ref: FiscalPeriodRef,
        currency: str,
    ) -> ConsolidatedNCISummary:
        """
        Raises:
            SubsidiaryNotFoundError: Any subsidiary lacks data for the period.
        """
        subsidiaries = [self._require(sid, period_ref) for sid in subsidiary_ids]
        return self._engine.calculate_consolidated_nci(subsidiaries, currency)

    def calculate_consolidated_nci_for(
        self,
        subsidiaries: Sequence[SubsidiaryData],
        currency: str,
    ) -> ConsolidatedNCISummary:
        return self._engine.calculate_consolidated_nci(subsidiaries, currency)

    def _require(self, subsidiary_id: str, period_ref: FiscalPeriodRef) -> SubsidiaryData:
        data = self._repository.get_subsidiary_data(subsidiary_id, period_ref)
        if data is None:
            logger.warning("nci_subsidiary_not_found", extra={
                "subsidiary_id": subsidiary_id,
                "period_ref": str(period_ref),
            })
            raise SubsidiaryNotFoundError(subsidiary_id)
        return data

    def require_acquisition_data(self, subsidiary_id: str) -> SubsidiaryAcquisitionData:
        """
        Acquisition-date and cumulative figures for a subsidiary.

        Raises:
            SubsidiaryNotFoundError: The repository has no acquisition data.
        """
        data = self._repository.get_acquisition_data(subsidiary_id)
        if data is None:
            logger.warning("nci_acquisition_data_not_found", extra={
                "subsidiary_id": subsidiary_id,
            })
            raise SubsidiaryNotFoundError(subsidiary_id)
        return data
