"""
Group -- Consolidation groups, members and consolidation-method rules.

Responsibility:
    Models a group of companies under common control and decides how each
    member is brought into the consolidated result, from its ownership
    percentage and VIE primary-beneficiary status (ASC 810).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Ownership > 50% gives FullConsolidation.
    - Ownership in [20%, 50%] gives EquityMethod.
    - Ownership < 20% gives CostMethod.
    - A VIE primary beneficiary is fully consolidated whatever its ownership.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from consolidation_kernel.domain.values import Percentage

FULL_CONSOLIDATION_THRESHOLD = Decimal("50")
EQUITY_METHOD_THRESHOLD = Decimal("20")


class ConsolidationMethod(str, Enum):
    FULL_CONSOLIDATION = "FullConsolidation"
    EQUITY_METHOD = "EquityMethod"
    COST_METHOD = "CostMethod"
    VARIABLE_INTEREST_ENTITY = "VariableInterestEntity"

    @property
    def is_fully_consolidated(self) -> bool:
        return self in (
            ConsolidationMethod.FULL_CONSOLIDATION,
            ConsolidationMethod.VARIABLE_INTEREST_ENTITY,
        )


def _value(ownership: Percentage | Decimal) -> Decimal:
    return ownership.value if isinstance(ownership, Percentage) else ownership


def determine_consolidation_method(
    ownership: Percentage | Decimal,
    is_vie_primary_beneficiary: bool = False,
) -> ConsolidationMethod:
    """Method under the voting-interest model, with the VIE override."""
    if is_vie_primary_beneficiary:
        return ConsolidationMethod.FULL_CONSOLIDATION
    pct = _value(ownership)
    if pct > FULL_CONSOLIDATION_THRESHOLD:
        return ConsolidationMethod.FULL_CONSOLIDATION
    if pct >= EQUITY_METHOD_THRESHOLD:
        return ConsolidationMethod.EQUITY_METHOD
    return ConsolidationMethod.COST_METHOD


def determine_method_with_vie_tracking(
    ownership: Percentage | Decimal,
    is_vie_primary_beneficiary: bool = False,
) -> ConsolidationMethod:
    """Like ``determine_consolidation_method`` but tags VIEs for disclosure."""
    if is_vie_primary_beneficiary:
        return ConsolidationMethod.VARIABLE_INTEREST_ENTITY
    return determine_consolidation_method(ownership)


def is_majority_ownership(ownership: Percentage | Decimal) -> bool:
    return _value(ownership) > FULL_CONSOLIDATION_THRESHOLD


def has_significant_influence(ownership: Percentage | Decimal) -> bool:
    pct = _value(ownership)
    return EQUITY_METHOD_THRESHOLD <= pct <= FULL_CONSOLIDATION_THRESHOLD


def has_no_significant_influence(ownership: Percentage | Decimal) -> bool:
    return _value(ownership) < EQUITY_METHOD_THRESHOLD


@dataclass(frozen=True)
class ConsolidationMember:
    """A company's membership in a consolidation group."""

    company_id: str
    company_name: str
    functional_currency: str
    ownership_percentage: Percentage
    consolidation_method: ConsolidationMethod
    acquisition_date: date | None = None
    is_vie_primary_beneficiary: bool = False

    @classmethod
    def create(
        cls,
        company_id: str,
        company_name: str,
        functional_currency: str,
        ownership_percentage: Percentage,
        acquisition_date: date | None = None,
        is_vie_primary_beneficiary: bool = False,
    ) -> ConsolidationMember:
        """Create a member whose method is derived from its ownership."""
        return cls(
            company_id=company_id,
            company_name=company_name,
            functional_currency=functional_currency,
            ownership_percentage=ownership_percentage,
            consolidation_method=determine_method_with_vie_tracking(
                ownership_percentage, is_vie_primary_beneficiary
            ),
            acquisition_date=acquisition_date,
            is_vie_primary_beneficiary=is_vie_primary_beneficiary,
        )

    @property
    def nci_percentage(self) -> Percentage:
        return self.ownership_percentage.complement()


@dataclass(frozen=True)
class ConsolidationGroup:
    """
    A parent company and the members it consolidates.

    The parent is identified by ``parent_company_id`` and is not itself
    listed in ``members``.
    """

    id: str
    name: str
    parent_company_id: str
    reporting_currency: str
    members: tuple[ConsolidationMember, ...] = field(default_factory=tuple)
    is_active: bool = True

    def get_member(self, company_id: str) -> ConsolidationMember | None:
        for member in self.members:
            if member.company_id == company_id:
                return member
        return None

    def is_member(self, company_id: str) -> bool:
        return company_id == self.parent_company_id or self.get_member(company_id) is not None

    @property
    def member_ids(self) -> tuple[str, ...]:
        return tuple(m.company_id for m in self.members)

    def consolidated_members(self) -> tuple[ConsolidationMember, ...]:
        """Members whose trial balances are aggregated line by line (Full and VIE)."""
        return tuple(m for m in self.members if m.consolidation_method.is_fully_consolidated)

    def equity_method_members(self) -> tuple[ConsolidationMember, ...]:
        """Associates carried through the investor's single investment line, never line by line."""
        return tuple(
            m for m in self.members if m.consolidation_method == ConsolidationMethod.EQUITY_METHOD
        )
