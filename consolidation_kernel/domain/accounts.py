"""
Accounts -- Account classification, fiscal period references and
trial balance lines shared by every consolidation step.

Responsibility:
    Defines the five chart-of-accounts types, the ``FiscalPeriodRef`` value
    used to key runs, matching reports and elimination entries, and the
    ``TrialBalanceLine`` that members submit for consolidation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - FiscalPeriodRef year lies in 1900..2999 and period in 1..13.
    - A TrialBalanceLine's debit and credit amounts share its currency.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import total_ordering

from consolidation_kernel.domain.values import MonetaryAmount

MIN_FISCAL_YEAR = 1900
MAX_FISCAL_YEAR = 2999
MAX_PERIOD = 13
ADJUSTMENT_PERIOD = 13

_PERIOD_PATTERN = re.compile(r"^FY(\d{4})-P(\d{2})$")


class AccountType(str, Enum):
    """Chart-of-accounts type."""

    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"

    @property
    def is_debit_normal(self) -> bool:
        """Assets and expenses carry a natural debit balance."""
        return self in (AccountType.ASSET, AccountType.EXPENSE)

    @property
    def is_balance_sheet(self) -> bool:
        return self in (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)


@total_ordering
@dataclass(frozen=True, slots=True, eq=True)
class FiscalPeriodRef:
    """
    Reference to a fiscal period by year and period number.

    Periods 1-12 are regular periods; period 13 is the year-end
    adjustment period.
    """

    year: int
    period: int

    def __post_init__(self) -> None:
        if not MIN_FISCAL_YEAR <= self.year <= MAX_FISCAL_YEAR:
            raise ValueError(
                f"Fiscal year must be between {MIN_FISCAL_YEAR} and {MAX_FISCAL_YEAR}, "
                f"got {self.year}"
            )
        if not 1 <= self.period <= MAX_PERIOD:
            raise ValueError(f"Fiscal period must be between 1 and {MAX_PERIOD}, got {self.period}")

    @classmethod
    def parse(cls, value: str) -> FiscalPeriodRef:
        """Parse the ``FY2025-P01`` form produced by ``str()``."""
        match = _PERIOD_PATTERN.match(value.strip())
        if match is None:
            raise ValueError(f"Invalid fiscal period reference: {value!r}")
        return cls(year=int(match.group(1)), period=int(match.group(2)))

    @property
    def is_regular_period(self) -> bool:
        return self.period < ADJUSTMENT_PERIOD

    @property
    def is_adjustment_period(self) -> bool:
        return self.period == ADJUSTMENT_PERIOD

    def to_short_string(self) -> str:
        return f"{self.year}.{self.period:02d}"

    def __str__(self) -> str:
        return f"FY{self.year}-P{self.period:02d}"

    def __lt__(self, other: FiscalPeriodRef) -> bool:
        if not isinstance(other, FiscalPeriodRef):
            return NotImplemented
        return (self.year, self.period) < (other.year, other.period)


@dataclass(frozen=True)
class TrialBalanceLine:
    """
    One account line of a member's trial balance, in functional currency.

    ``debit_amount`` / ``credit_amount`` are the raw sides; an absent side
    counts as zero.  ``functional_balance`` is the natural-sign balance
    (debit-normal for assets and expenses, credit-normal otherwise) that
    the translation engine consumes.
    ``intercompany_partner_id`` names the counterparty company for
    intercompany accounts.
    """

    account_id: str
    account_number: str
    account_name: str
    account_type: AccountType
    account_category: str
    currency: str
    debit_amount: MonetaryAmount | None = None
    credit_amount: MonetaryAmount | None = None
    historical_rate: Decimal | None = None
    intercompany_partner_id: str | None = None

    def __post_init__(self) -> None:
        for side in (self.debit_amount, self.credit_amount):
            if side is not None and side.currency != self.currency:
                raise ValueError(
                    f"Trial balance line {self.account_number} mixes "
                    f"{side.currency} into a {self.currency} line"
                )

    @property
    def debit(self) -> MonetaryAmount:
        return self.debit_amount or MonetaryAmount.zero(self.currency)

    @property
    def credit(self) -> MonetaryAmount:
        return self.credit_amount or MonetaryAmount.zero(self.currency)

    @property
    def functional_balance(self) -> MonetaryAmount:
        if self.account_type.is_debit_normal:
            return self.debit - self.credit
        return self.credit - self.debit

    @classmethod
    def from_balance(
        cls,
        *,
        account_id: str,
        account_number: str,
        account_name: str,
        account_type: AccountType,
        account_category: str,
        balance: MonetaryAmount,
        historical_rate: Decimal | None = None,
        intercompany_partner_id: str | None = None,
    ) -> TrialBalanceLine:
        """Build a line from a natural-sign balance, placing it on the proper side."""
        debit_normal = account_type.is_debit_normal
        on_debit = balance.is_positive if debit_normal else balance.is_negative
        amount = balance.abs()
        return cls(
            account_id=account_id,
            account_number=account_number,
            account_name=account_name,
            account_type=account_type,
            account_category=account_category,
            currency=balance.currency,
            debit_amount=amount if on_debit else None,
            credit_amount=None if on_debit or amount.is_zero else amount,
            historical_rate=historical_rate,
            intercompany_partner_id=intercompany_partner_id,
        )
