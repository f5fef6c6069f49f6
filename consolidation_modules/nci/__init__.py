"""
NCI Module (``consolidation_modules.nci``).

Responsibility
--------------
Non-controlling interest attribution: NCI equity at acquisition, the
subsequent equity rollforward and the current period's share of income,
per subsidiary and consolidated.
"""

from consolidation_modules.nci.models import (
    ConsolidatedNCISummary,
    NCIResult,
    SubsidiaryAcquisitionData,
    SubsidiaryData,
)
from consolidation_modules.nci.repository import InMemoryNCIRepository, NCIRepository
from consolidation_modules.nci.service import NCIService

__all__ = [
    "ConsolidatedNCISummary",
    "InMemoryNCIRepository",
    "NCIRepository",
    "NCIResult",
    "NCIService",
    "SubsidiaryAcquisitionData",
    "SubsidiaryData",
]
