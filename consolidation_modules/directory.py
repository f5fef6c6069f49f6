"""
Group and period directory (``consolidation_modules.directory``).

Responsibility
--------------
Answer the lookups every consolidation service needs before it computes
anything: does the group exist, does the fiscal period exist, what is the
group's reporting currency, when does the period end, and has a member
company closed the period.

Architecture position
---------------------
**Modules layer** -- pluggable provider contract.  The services depend
on the ``GroupDirectory`` Protocol; ``InMemoryGroupDirectory`` is the
reference implementation used by tests and embedded callers.  A
relational implementation lives outside this package.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.group import ConsolidationGroup
from consolidation_kernel.exceptions import (
    ConsolidationGroupNotFoundError,
    FiscalPeriodNotFoundError,
)


@dataclass(frozen=True)
class FiscalPeriodInfo:
    """Calendar bounds of a fiscal period."""

    period_ref: FiscalPeriodRef
    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise ValueError(
                f"Period {self.period_ref} ends ({self.end_date}) before it starts ({self.start_date})"
            )


class GroupDirectory(Protocol):
    """Pluggable interface for group and fiscal-period lookups."""

    def group_exists(self, group_id: str) -> bool:
        ...

    def get_group(self, group_id: str) -> ConsolidationGroup | None:
        ...

    def period_exists(self, period_ref: FiscalPeriodRef) -> bool:
        ...

    def get_period(self, period_ref: FiscalPeriodRef) -> FiscalPeriodInfo | None:
        ...

    def is_period_closed(self, company_id: str, period_ref: FiscalPeriodRef) -> bool:
        """True when the company has closed its books for the period."""
        ...


class InMemoryGroupDirectory:
    """Dictionary-backed GroupDirectory."""

    def __init__(self) -> None:
        self._groups: dict[str, ConsolidationGroup] = {}
        self._periods: dict[FiscalPeriodRef, FiscalPeriodInfo] = {}
        self._closed: set[tuple[str, FiscalPeriodRef]] = set()

    def add_group(self, group: ConsolidationGroup) -> None:
        self._groups[group.id] = group

    def add_period(self, period: FiscalPeriodInfo) -> None:
        self._periods[period.period_ref] = period

    def close_period(self, company_id: str, period_ref: FiscalPeriodRef) -> None:
        self._closed.add((company_id, period_ref))

    def group_exists(self, group_id: str) -> bool:
        return group_id in self._groups

    def get_group(self, group_id: str) -> ConsolidationGroup | None:
        return self._groups.get(group_id)

    def period_exists(self, period_ref: FiscalPeriodRef) -> bool:
        return period_ref in self._periods

    def get_period(self, period_ref: FiscalPeriodRef) -> FiscalPeriodInfo | None:
        return self._periods.get(period_ref)

    def is_period_closed(self, company_id: str, period_ref: FiscalPeriodRef) -> bool:
        return (company_id, period_ref) in self._closed


def require_group(directory: GroupDirectory, group_id: str) -> ConsolidationGroup:
    """
    Resolve a group or fail.

    Raises:
        ConsolidationGroupNotFoundError: If the group is unknown.
    """
    group = directory.get_group(group_id)
    if group is None:
        raise ConsolidationGroupNotFoundError(group_id)
    return group


def require_period(directory: GroupDirectory, period_ref: FiscalPeriodRef) -> FiscalPeriodInfo:
    """
    Resolve a fiscal period or fail.

    Raises:
        FiscalPeriodNotFoundError: If the period is unknown.
    """
    period = directory.get_period(period_ref)
    if period is None:
        raise FiscalPeriodNotFoundError(str(period_ref))
    return period
