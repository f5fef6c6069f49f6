"""
Intercompany repositories (``consolidation_modules.intercompany.repository``).

Responsibility
--------------
Define the read/write contract the intercompany service needs and provide
an in-memory and a SQLAlchemy implementation of it.

Architecture position
---------------------
**Modules layer** -- persistence adapters.  Group and period existence
are answered by a ``GroupDirectory``; transaction records are held by the
repository itself.

Invariants enforced
-------------------
* ``find_by_group_and_period`` returns transactions in a stable order so
  greedy matching is reproducible.
* ``update_matching_status`` replaces the variance fields and the stored
  counterpart only when a value is supplied.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from consolidation_kernel.domain.accounts import FiscalPeriodRef
from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.logging_config import get_logger
from consolidation_modules.directory import GroupDirectory
from consolidation_modules.intercompany.models import IntercompanyTransaction, MatchingStatus
from consolidation_modules.intercompany.orm import IntercompanyTransactionModel

logger = get_logger("modules.intercompany.repository")


class IntercompanyTransactionRepository(Protocol):
    """Pluggable interface for intercompany transaction storage."""

    def group_exists(self, group_id: str) -> bool:
        ...

    def period_exists(self, period_ref: FiscalPeriodRef) -> bool:
        ...

    def find_by_group_and_period(
        self, group_id: str, period_ref: FiscalPeriodRef,
    ) -> list[IntercompanyTransaction]:
        ...

    def get(self, transaction_id: str) -> IntercompanyTransaction | None:
        ...

    def update_matching_status(
        self,
        transaction_ids: Sequence[str],
        status: MatchingStatus,
        variance_amount: MonetaryAmount | None = None,
        variance_explanation: str | None = None,
        matched_transaction_id: str | None = None,
    ) -> None:
        ...


class InMemoryIntercompanyTransactionRepository:
    """Dictionary-backed repository; keeps insertion order."""

    def __init__(self, directory: GroupDirectory) -> None:
        self._directory = directory
        self._transactions: dict[str, IntercompanyTransaction] = {}
        self._scope: dict[str, tuple[str, FiscalPeriodRef]] = {}

    def add(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        transaction: IntercompanyTransaction,
    ) -> None:
        self._transactions[transaction.id] = transaction
        self._scope[transaction.id] = (group_id, period_ref)

    def group_exists(self, group_id: str) -> bool:
        return self._directory.group_exists(group_id)

    def period_exists(self, period_ref: FiscalPeriodRef) -> bool:
        return self._directory.period_exists(period_ref)

    def find_by_group_and_period(
        self, group_id: str, period_ref: FiscalPeriodRef,
    ) -> list[IntercompanyTransaction]:
        return [
            txn
            for txn_id, txn in self._transactions.items()
            if self._scope[txn_id] == (group_id, period_ref)
        ]

    def get(self, transaction_id: str) -> IntercompanyTransaction | None:
        return self._transactions.get(transaction_id)

    def update_matching_status(
        self,
        transaction_ids: Sequence[str],
        status: MatchingStatus,
        variance_amount: MonetaryAmount | None = None,
        variance_explanation: str | None = None,
        matched_transaction_id: str | None = None,
    ) -> None:
        for txn_id in transaction_ids:
            txn = self._transactions.get(txn_id)
            if txn is None:
                continue
            changes: dict = {"matching_status": status}
            if variance_amount is not None:
                changes["variance_amount"] = variance_amount
            if variance_explanation is not None:
                changes["variance_explanation"] = variance_explanation
            if matched_transaction_id is not None:
                changes["matched_transaction_id"] = matched_transaction_id
            self._transactions[txn_id] = dataclasses.replace(txn, **changes)


class SqlIntercompanyTransactionRepository:
    """
    SQLAlchemy-backed repository.

    Contract:
        Writes are flushed, never committed; the caller owns the
        transaction boundary (see ``consolidation_kernel.db.session_scope``).
        Transaction ids must be UUID strings.
    """

    def __init__(self, session: Session, directory: GroupDirectory) -> None:
        self._session = session
        self._directory = directory

    def add(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        transaction: IntercompanyTransaction,
    ) -> None:
        self._session.add(IntercompanyTransactionModel.from_dto(transaction, group_id, period_ref))
        self._session.flush()

    def group_exists(self, group_id: str) -> bool:
        return self._directory.group_exists(group_id)

    def period_exists(self, period_ref: FiscalPeriodRef) -> bool:
        return self._directory.period_exists(period_ref)

    def find_by_group_and_period(
        self, group_id: str, period_ref: FiscalPeriodRef,
    ) -> list[IntercompanyTransaction]:
        stmt = (
            select(IntercompanyTransactionModel)
            .where(
                IntercompanyTransactionModel.group_id == group_id,
                IntercompanyTransactionModel.fiscal_year == period_ref.year,
                IntercompanyTransactionModel.fiscal_period == period_ref.period,
            )
            .order_by(
                IntercompanyTransactionModel.transaction_date,
                IntercompanyTransactionModel.id,
            )
        )
        return [row.to_dto() for row in self._session.scalars(stmt)]

    def get(self, transaction_id: str) -> IntercompanyTransaction | None:
        row = self._session.get(IntercompanyTransactionModel, UUID(transaction_id))
        return row.to_dto() if row is not None else None

    def update_matching_status(
        self,
        transaction_ids: Sequence[str],
        status: MatchingStatus,
        variance_amount: MonetaryAmount | None = None,
        variance_explanation: str | None = None,
        matched_transaction_id: str | None = None,
    ) -> None:
        ids = [UUID(txn_id) for txn_id in transaction_ids]
        if not ids:
            return
        rows = self._session.scalars(
            select(IntercompanyTransactionModel).where(IntercompanyTransactionModel.id.in_(ids))
        ).all()
        for row in rows:
            row.matching_status = status.value
            if variance_amount is not None:
                row.variance_amount = variance_amount.amount
            if variance_explanation is not None:
                row.variance_explanation = variance_explanation
            if matched_transaction_id is not None:
                row.matched_transaction_id = matched_transaction_id
        self._session.flush()
        logger.debug("ic_matching_status_persisted", extra={
            "transaction_count": len(rows),
            "status": status.value,
        })
