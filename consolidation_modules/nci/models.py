"""
NCI Domain Models (``consolidation_modules.nci.models``).

Responsibility
--------------
Re-export the NCI result types owned by ``consolidation_engines.nci`` and
define ``SubsidiaryAcquisitionData``, the acquisition-date and cumulative
figures a consolidation run combines with the current period's
translated results to build ``SubsidiaryData``.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass

from consolidation_engines.nci import (
    ConsolidatedNCISummary,
    NCIEquityChange,
    NCILineItem,
    NCILineItemType,
    NCIPercentage,
    NCIResult,
    SubsidiaryData,
)
from consolidation_kernel.domain.values import MonetaryAmount


@dataclass(frozen=True)
class SubsidiaryAcquisitionData:
    """
    What is known about a subsidiary before the current period.

    All amounts are in the group's reporting currency.
    """

    subsidiary_id: str
    fair_value_net_assets_at_acquisition: MonetaryAmount
    cumulative_nci_net_income: MonetaryAmount
    cumulative_dividends_to_nci: MonetaryAmount
    cumulative_nci_oci: MonetaryAmount
    nci_premium_discount_at_acquisition: MonetaryAmount | None = None

    @classmethod
    def at_acquisition(
        cls,
        subsidiary_id: str,
        fair_value_net_assets: MonetaryAmount,
        nci_premium_discount: MonetaryAmount | None = None,
    ) -> SubsidiaryAcquisitionData:
        """Data for a subsidiary acquired in the current period (no history yet)."""
        zero = MonetaryAmount.zero(fair_value_net_assets.currency)
        return cls(
            subsidiary_id=subsidiary_id,
            fair_value_net_assets_at_acquisition=fair_value_net_assets,
            cumulative_nci_net_income=zero,
            cumulative_dividends_to_nci=zero,
            cumulative_nci_oci=zero,
            nci_premium_discount_at_acquisition=nci_premium_discount,
        )


__all__ = [
    "ConsolidatedNCISummary",
    "NCIEquityChange",
    "NCILineItem",
    "NCILineItemType",
    "NCIPercentage",
    "NCIResult",
    "SubsidiaryAcquisitionData",
    "SubsidiaryData",
]
