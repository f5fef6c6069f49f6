"""NCI repositories: where subsidiary NCI inputs come from."""

from __future__ import annotations

from typing import Protocol

from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_modules.nci.models import SubsidiaryAcquisitionData, SubsidiaryData


class NCIRepository(Protocol):
    """Pluggable interface for subsidiary NCI inputs."""

    def get_subsidiary_data(
        self, subsidiary_id: str, period_ref: FiscalPeriodRef,
    ) -> SubsidiaryData | None:
        """Fully resolved period data for a subsidiary, if known."""
        ...

    def get_acquisition_data(self, subsidiary_id: str) -> SubsidiaryAcquisitionData | None:
        ...


class InMemoryNCIRepository:
    def __init__(self) -> None:
        self._period_data: dict[tuple[str, FiscalPeriodRef], SubsidiaryData] = {}
        self._acquisitions: dict[str, SubsidiaryAcquisitionData] = {}

    def add_subsidiary_data(self, period_ref: FiscalPeriodRef, data: SubsidiaryData) -> None:
        self._period_data[(data.subsidiary_id, period_ref)] = data

    def add_acquisition_data(self, data: SubsidiaryAcquisitionData) -> None:
        self._acquisitions[data.subsidiary_id] = data

    def get_subsidiary_data(
        self, subsidiary_id: str, period_ref: FiscalPeriodRef,
    ) -> SubsidiaryData | None:
        return self._period_data.get((subsidiary_id, period_ref))

    def get_acquisition_data(self, subsidiary_id: str) -> SubsidiaryAcquisitionData | None:
        return self._acquisitions.get(subsidiary_id)
