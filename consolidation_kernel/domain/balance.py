"""
Balance -- Double-entry balance validation over debit/credit lines.

Responsibility:
    Folds a sequence of lines into debit and credit totals in a single
    functional currency and proves (or disproves) that they are equal.
    Used on every member trial balance before consolidation and on the
    consolidated trial balance afterwards.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Balanced iff total debits == total credits, exactly.  No tolerance.
    - An absent debit or credit side counts as zero.

Failure modes:
    - UnbalancedEntryError{total_debits, total_credits, difference} from
      ``validate_balance``; ``difference`` is |debits - credits|.
    - CurrencyMismatchError when a line is in a different currency.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.exceptions import UnbalancedEntryError


class DebitCreditLine(Protocol):
    """Anything exposing optional debit and credit amounts."""

    @property
    def debit_amount(self) -> MonetaryAmount | None: ...

    @property
    def credit_amount(self) -> MonetaryAmount | None: ...


def sum_debits(lines: Iterable[DebitCreditLine], currency: str) -> MonetaryAmount:
    return MonetaryAmount.sum(
        (line.debit_amount for line in lines if line.debit_amount is not None),
        currency,
    )


def sum_credits(lines: Iterable[DebitCreditLine], currency: str) -> MonetaryAmount:
    return MonetaryAmount.sum(
        (line.credit_amount for line in lines if line.credit_amount is not None),
        currency,
    )


def calculate_difference(lines: Iterable[DebitCreditLine], currency: str) -> MonetaryAmount:
    """Return debits - credits (signed)."""
    materialized = list(lines)
    return sum_debits(materialized, currency) - sum_credits(materialized, currency)


def is_balanced(lines: Iterable[DebitCreditLine], currency: str) -> bool:
    return calculate_difference(lines, currency).is_zero


def validate_balance(lines: Iterable[DebitCreditLine], currency: str) -> None:
    """
    Prove that total debits equal total credits.

    Raises:
        UnbalancedEntryError: If the totals differ by any amount.
    """
    materialized = list(lines)
    debits = sum_debits(materialized, currency)
    credits = sum_credits(materialized, currency)
    if debits != credits:
        raise UnbalancedEntryError(
            total_debits=debits.format(),
            total_credits=credits.format(),
            difference=(debits - credits).abs().format(),
            currency=debits.currency,
        )
