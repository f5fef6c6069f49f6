"""
SQLAlchemy ORM persistence model for intercompany transactions.

Responsibility
--------------
Persist ``IntercompanyTransaction`` records together with the group and
fiscal period they were reported in, so the matcher can load them by
(group, period) and write matching statuses back.

Architecture position
---------------------
**Modules layer** -- ORM model consumed by
``SqlIntercompanyTransactionRepository``.  Inherits from ``Base``
(kernel db layer).

Invariants enforced
-------------------
* Monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* The transaction amount and its variance share ``currency``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import Base, UUID
from consolidation_kernel.domain.accounts import FiscalPeriodRef


class IntercompanyTransactionModel(Base):
    """
    A transaction one group company recorded against another.

    Maps to the ``IntercompanyTransaction`` DTO in
    ``consolidation_engines.intercompany_matching``.
    """

    __tablename__ = "consolidation_ic_transactions"

    __table_args__ = (
        Index("idx_ic_txn_group_period", "group_id", "fiscal_year", "fiscal_period"),
        Index("idx_ic_txn_from", "from_company_id"),
        Index("idx_ic_txn_to", "to_company_id"),
    )

    group_id: Mapped[str] = mapped_column(String(100), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    fiscal_period: Mapped[int] = mapped_column(nullable=False)
    from_company_id: Mapped[str] = mapped_column(String(100), nullable=False)
    to_company_id: Mapped[str] = mapped_column(String(100), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    matching_status: Mapped[str] = mapped_column(String(30), nullable=False, default="Unmatched")
    from_journal_entry_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_journal_entry_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    variance_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    variance_explanation: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    matched_transaction_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    @property
    def period_ref(self) -> FiscalPeriodRef:
        return FiscalPeriodRef(self.fiscal_year, self.fiscal_period)

    def to_dto(self):
        from consolidation_engines.intercompany_matching import (
            IntercompanyTransaction,
            IntercompanyTransactionType,
            MatchingStatus,
        )
        from consolidation_kernel.domain.values import MonetaryAmount

        return IntercompanyTransaction(
            id=str(self.id),
            from_company_id=self.from_company_id,
            to_company_id=self.to_company_id,
            transaction_type=IntercompanyTransactionType(self.transaction_type),
            transaction_date=self.transaction_date,
            amount=MonetaryAmount.of(self.amount, self.currency),
            matching_status=MatchingStatus(self.matching_status),
            from_journal_entry_id=self.from_journal_entry_id,
            to_journal_entry_id=self.to_journal_entry_id,
            variance_amount=(
                MonetaryAmount.of(self.variance_amount, self.currency)
                if self.variance_amount is not None
                else None
            ),
            variance_explanation=self.variance_explanation,
            description=self.description,
            matched_transaction_id=self.matched_transaction_id,
        )

    @classmethod
    def from_dto(cls, dto, group_id: str, period_ref: FiscalPeriodRef) -> IntercompanyTransactionModel:
        return cls(
            id=UUID(dto.id),
            group_id=group_id,
            fiscal_year=period_ref.year,
            fiscal_period=period_ref.period,
            from_company_id=dto.from_company_id,
            to_company_id=dto.to_company_id,
            transaction_type=dto.transaction_type.value,
            transaction_date=dto.transaction_date,
            amount=dto.amount.amount,
            currency=dto.amount.currency,
            matching_status=dto.matching_status.value,
            from_journal_entry_id=dto.from_journal_entry_id,
            to_journal_entry_id=dto.to_journal_entry_id,
            variance_amount=dto.variance_amount.amount if dto.variance_amount is not None else None,
            variance_explanation=dto.variance_explanation,
            description=dto.description,
            matched_transaction_id=dto.matched_transaction_id,
        )

    def __repr__(self) -> str:
        return (
            f"<IntercompanyTransactionModel {self.from_company_id}->{self.to_company_id} "
            f"{self.amount} {self.currency} [{self.matching_status}]>"
        )
