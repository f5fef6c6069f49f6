"""
SQLAlchemy ORM persistence model for consolidation runs.

Responsibility
--------------
Persist one ``ConsolidationRun`` per row.  The seven step records, the
run options, the validation result, the consolidated trial balance and
the generated elimination entry ids are stored as JSON columns of the run
row rather than normalized into child tables.

Architecture position
---------------------
**Modules layer** -- ORM model consumed by ``SqlConsolidationRunRepository``.
Inherits from ``Base`` (kernel db layer).

Invariants enforced
-------------------
* Amounts inside JSON documents are decimal strings, never floats.
* Timestamps inside JSON documents are ISO-8601 strings.
* ``to_dto(from_dto(run)) == run`` for every field except timezone
  information the database backend does not keep.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Date, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import Base, UUID
from consolidation_kernel.domain.accounts import AccountType, FiscalPeriodRef
from consolidation_kernel.domain.values import MonetaryAmount


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _money(amount: MonetaryAmount | None) -> str | None:
    return str(amount.amount) if amount is not None else None


def _parse_money(value: str | None, currency: str) -> MonetaryAmount | None:
    return MonetaryAmount.of(Decimal(value), currency) if value is not None else None


def steps_to_json(steps) -> list[dict[str, Any]]:
    return [
        {
            "step_type": step.step_type.value,
            "status": step.status.value,
            "started_at": _iso(step.started_at),
            "completed_at": _iso(step.completed_at),
            "duration_ms": step.duration_ms,
            "error_message": step.error_message,
            "details": step.details,
        }
        for step in steps
    ]


def steps_from_json(data: list[dict[str, Any]]):
    from consolidation_modules.consolidation.models import (
        ConsolidationStep,
        ConsolidationStepStatus,
        ConsolidationStepType,
    )

    return tuple(
        ConsolidationStep(
            step_type=ConsolidationStepType(item["step_type"]),
            status=ConsolidationStepStatus(item["status"]),
            started_at=_parse_dt(item.get("started_at")),
            completed_at=_parse_dt(item.get("completed_at")),
            duration_ms=item.get("duration_ms"),
            error_message=item.get("error_message"),
            details=item.get("details"),
        )
        for item in data
    )


def validation_to_json(result) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "is_valid": result.is_valid,
        "issues": [
            {
                "severity": issue.severity.value,
                "code": issue.code,
                "message": issue.message,
                "entity_reference": issue.entity_reference,
            }
            for issue in result.issues
        ],
    }


def validation_from_json(data: dict[str, Any] | None):
    if data is None:
        return None
    from consolidation_modules.consolidation.models import (
        ValidationIssue,
        ValidationResult,
        ValidationSeverity,
    )

    return ValidationResult(
        is_valid=data["is_valid"],
        issues=tuple(
            ValidationIssue(
                severity=ValidationSeverity(issue["severity"]),
                code=issue["code"],
                message=issue["message"],
                entity_reference=issue.get("entity_reference"),
            )
            for issue in data.get("issues", [])
        ),
    )


def trial_balance_to_json(tb) -> dict[str, Any] | None:
    if tb is None:
        return None
    return {
        "consolidation_run_id": tb.consolidation_run_id,
        "group_id": tb.group_id,
        "period_ref": str(tb.period_ref),
        "as_of_date": tb.as_of_date.isoformat(),
        "currency": tb.currency,
        "total_debits": _money(tb.total_debits),
        "total_credits": _money(tb.total_credits),
        "total_eliminations": _money(tb.total_eliminations),
        "total_nci": _money(tb.total_nci),
        "generated_at": _iso(tb.generated_at),
        "line_items": [
            {
                "account_number": item.account_number,
                "account_name": item.account_name,
                "account_type": item.account_type.value,
                "account_category": item.account_category,
                "aggregated_balance": _money(item.aggregated_balance),
                "elimination_amount": _money(item.elimination_amount),
                "nci_amount": _money(item.nci_amount),
                "consolidated_balance": _money(item.consolidated_balance),
            }
            for item in tb.line_items
        ],
    }


def trial_balance_from_json(data: dict[str, Any] | None):
    if data is None:
        return None
    from consolidation_modules.consolidation.models import (
        ConsolidatedTrialBalance,
        ConsolidatedTrialBalanceLineItem,
    )

    currency = data["currency"]
    return ConsolidatedTrialBalance(
        consolidation_run_id=data["consolidation_run_id"],
        group_id=data["group_id"],
        period_ref=FiscalPeriodRef.parse(data["period_ref"]),
        as_of_date=date.fromisoformat(data["as_of_date"]),
        currency=currency,
        line_items=tuple(
            ConsolidatedTrialBalanceLineItem(
                account_number=item["account_number"],
                account_name=item["account_name"],
                account_type=AccountType(item["account_type"]),
                account_category=item["account_category"],
                aggregated_balance=_parse_money(item["aggregated_balance"], currency),
                elimination_amount=_parse_money(item["elimination_amount"], currency),
                nci_amount=_parse_money(item.get("nci_amount"), currency),
                consolidated_balance=_parse_money(item["consolidated_balance"], currency),
            )
            for item in data["line_items"]
        ),
        total_debits=_parse_money(data["total_debits"], currency),
        total_credits=_parse_money(data["total_credits"], currency),
        total_eliminations=_parse_money(data["total_eliminations"], currency),
        total_nci=_parse_money(data["total_nci"], currency),
        generated_at=_parse_dt(data["generated_at"]),
    )


class ConsolidationRunModel(Base):
    """
    A consolidation run and everything it produced.

    Maps to the ``ConsolidationRun`` DTO in
    ``consolidation_modules.consolidation.models``.
    """

    __tablename__ = "consolidation_runs"

    __table_args__ = (
        Index("idx_consolidation_run_group_period", "group_id", "fiscal_year", "fiscal_period"),
        Index("idx_consolidation_run_status", "status"),
    )

    group_id: Mapped[str] = mapped_column(String(100), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    fiscal_period: Mapped[int] = mapped_column(nullable=False)
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    initiated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    initiated_at: Mapped[datetime] = mapped_column(nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    total_duration_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    steps: Mapped[list] = mapped_column(JSON, nullable=False)
    options: Mapped[dict] = mapped_column(JSON, nullable=False)
    validation_result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    consolidated_trial_balance: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    elimination_entry_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    @property
    def period_ref(self) -> FiscalPeriodRef:
        return FiscalPeriodRef(self.fiscal_year, self.fiscal_period)

    def to_dto(self):
        from consolidation_modules.consolidation.models import (
            ConsolidationRun,
            ConsolidationRunOptions,
            ConsolidationRunStatus,
        )

        return ConsolidationRun(
            id=str(self.id),
            group_id=self.group_id,
            period_ref=self.period_ref,
            as_of_date=self.as_of_date,
            status=ConsolidationRunStatus(self.status),
            initiated_by=self.initiated_by,
            initiated_at=self.initiated_at,
            steps=steps_from_json(self.steps),
            options=ConsolidationRunOptions(**self.options),
            validation_result=validation_from_json(self.validation_result),
            consolidated_trial_balance=trial_balance_from_json(self.consolidated_trial_balance),
            elimination_entry_ids=tuple(self.elimination_entry_ids or ()),
            started_at=self.started_at,
            completed_at=self.completed_at,
            total_duration_ms=self.total_duration_ms,
            error_message=self.error_message,
        )

    @classmethod
    def from_dto(cls, dto) -> ConsolidationRunModel:
        model = cls(id=UUID(dto.id))
        model.apply(dto)
        return model

    def apply(self, dto) -> None:
        """Copy every mutable field of ``dto`` onto this row."""
        self.group_id = dto.group_id
        self.fiscal_year = dto.period_ref.year
        self.fiscal_period = dto.period_ref.period
        self.as_of_date = dto.as_of_date
        self.status = dto.status.value
        self.initiated_by = dto.initiated_by
        self.initiated_at = dto.initiated_at
        self.started_at = dto.started_at
        self.completed_at = dto.completed_at
        self.total_duration_ms = dto.total_duration_ms
        self.error_message = dto.error_message
        self.steps = steps_to_json(dto.steps)
        self.options = {
            "skip_validation": dto.options.skip_validation,
            "continue_on_warnings": dto.options.continue_on_warnings,
            "include_equity_method_investments": dto.options.include_equity_method_investments,
            "force_regeneration": dto.options.force_regeneration,
        }
        self.validation_result = validation_to_json(dto.validation_result)
        self.consolidated_trial_balance = trial_balance_to_json(dto.consolidated_trial_balance)
        self.elimination_entry_ids = list(dto.elimination_entry_ids)

    def __repr__(self) -> str:
        return (
            f"<ConsolidationRunModel {self.group_id} "
            f"FY{self.fiscal_year}-P{self.fiscal_period:02d} [{self.status}]>"
        )
