"""
SQLAlchemy ORM persistence models for elimination entries.

Responsibility
--------------
Persist generated ``EliminationEntry`` records and their two lines.
Rules and account balances are read through pluggable providers and are
not stored here.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``SqlEliminationRepository``.
Inherits from ``Base`` (kernel db layer).

Invariants enforced
-------------------
* Monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Each line belongs to exactly one entry; lines are deleted with it.
* (entry_id, line_number) is unique.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consolidation_kernel.db.base import Base


class EliminationEntryModel(Base):
    """
    A generated consolidation elimination entry.

    Maps to the ``EliminationEntry`` DTO in
    ``consolidation_engines.elimination``.
    """

    __tablename__ = "consolidation_elimination_entries"

    __table_args__ = (
        Index("idx_elim_entry_group_period", "group_id", "fiscal_year", "fiscal_period"),
        Index("idx_elim_entry_rule", "rule_id"),
    )

    group_id: Mapped[str] = mapped_column(String(100), nullable=False)
    rule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    elimination_type: Mapped[str] = mapped_column(String(50), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    fiscal_period: Mapped[int] = mapped_column(nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    generated_at: Mapped[datetime] = mapped_column(nullable=False)
    journal_entry_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_posted: Mapped[bool] = mapped_column(default=False)
    from_company_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_company_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    lines: Mapped[list[EliminationEntryLineModel]] = relationship(
        "EliminationEntryLineModel",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="EliminationEntryLineModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        from consolidation_engines.elimination import EliminationEntry, EliminationType
        from consolidation_kernel.domain.accounts import FiscalPeriodRef
        from consolidation_kernel.domain.values import MonetaryAmount

        return EliminationEntry(
            id=str(self.id),
            group_id=self.group_id,
            rule_id=self.rule_id,
            elimination_type=EliminationType(self.elimination_type),
            period_ref=FiscalPeriodRef(self.fiscal_year, self.fiscal_period),
            transaction_date=self.transaction_date,
            description=self.description,
            currency=self.currency,
            amount=MonetaryAmount.of(self.amount, self.currency),
            lines=tuple(line.to_dto(self.currency) for line in self.lines),
            generated_at=self.generated_at,
            journal_entry_id=self.journal_entry_id,
            is_posted=self.is_posted,
            from_company_id=self.from_company_id,
            to_company_id=self.to_company_id,
        )

    @classmethod
    def from_dto(cls, dto) -> EliminationEntryModel:
        return cls(
            id=UUID(dto.id),
            group_id=dto.group_id,
            rule_id=dto.rule_id,
            elimination_type=dto.elimination_type.value,
            fiscal_year=dto.period_ref.year,
            fiscal_period=dto.period_ref.period,
            transaction_date=dto.transaction_date,
            description=dto.description,
            currency=dto.currency,
            amount=dto.amount.amount,
            generated_at=dto.generated_at,
            journal_entry_id=dto.journal_entry_id,
            is_posted=dto.is_posted,
            from_company_id=dto.from_company_id,
            to_company_id=dto.to_company_id,
            lines=[EliminationEntryLineModel.from_dto(line) for line in dto.lines],
        )

    def __repr__(self) -> str:
        return f"<EliminationEntryModel {self.rule_id} {self.amount} {self.currency}>"


class EliminationEntryLineModel(Base):
    """One debit or credit line of an elimination entry."""

    __tablename__ = "consolidation_elimination_entry_lines"

    __table_args__ = (
        UniqueConstraint("entry_id", "line_number", name="uq_elim_line_entry_number"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("consolidation_elimination_entries.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    account_id: Mapped[str] = mapped_column(String(100), nullable=False)
    debit_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    credit_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entry: Mapped[EliminationEntryModel] = relationship(
        "EliminationEntryModel",
        back_populates="lines",
    )

    def to_dto(self, currency: str):
        from consolidation_engines.elimination import EliminationEntryLine
        from consolidation_kernel.domain.values import MonetaryAmount

        return EliminationEntryLine(
            id=str(self.id),
            line_number=self.line_number,
            account_id=self.account_id,
            debit_amount=(
                MonetaryAmount.of(self.debit_amount, currency) if self.debit_amount is not None else None
            ),
            credit_amount=(
                MonetaryAmount.of(self.credit_amount, currency) if self.credit_amount is not None else None
            ),
            memo=self.memo,
        )

    @classmethod
    def from_dto(cls, dto) -> EliminationEntryLineModel:
        return cls(
            id=UUID(dto.id),
            line_number=dto.line_number,
            account_id=dto.account_id,
            debit_amount=dto.debit_amount.amount if dto.debit_amount is not None else None,
            credit_amount=dto.credit_amount.amount if dto.credit_amount is not None else None,
            memo=dto.memo,
        )

    def __repr__(self) -> str:
        side = "Dr" if self.debit_amount is not None else "Cr"
        return f"<EliminationEntryLineModel #{self.line_number} {side} {self.account_id}>"
