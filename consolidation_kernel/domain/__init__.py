"""Pure domain types for consolidation: values, accounts, groups, balance checks."""

from consolidation_kernel.domain.accounts import (
    AccountType,
    FiscalPeriodRef,
    TrialBalanceLine,
)
from consolidation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from consolidation_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from consolidation_kernel.domain.group import (
    ConsolidationGroup,
    ConsolidationMember,
    ConsolidationMethod,
)
from consolidation_kernel.domain.values import MonetaryAmount, Percentage

__all__ = [
    "AccountType",
    "Clock",
    "ConsolidationGroup",
    "ConsolidationMember",
    "ConsolidationMethod",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "FiscalPeriodRef",
    "MonetaryAmount",
    "Percentage",
    "SystemClock",
    "TrialBalanceLine",
]
