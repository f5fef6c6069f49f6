"""
Consolidation Run Models (``consolidation_modules.consolidation.models``).

Responsibility
--------------
Frozen value objects for a consolidation run: the seven ordered steps and
their statuses, validation issues, run options, the consolidated trial
balance, and the run record itself.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  The run
orchestrator produces new ``ConsolidationRun`` values with
``dataclasses.replace``; nothing here mutates in place.

Invariants enforced
-------------------
* Step order is fixed: Validate, Translate, Aggregate, MatchIC,
  Eliminate, NCI, GenerateTB.
* A run always carries exactly one ``ConsolidationStep`` per step type.
* Terminal run states are Completed, Failed and Cancelled.
* ``ConsolidatedTrialBalance.is_balanced`` compares total debits and
  total credits within ``TRIAL_BALANCE_TOLERANCE``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from consolidation_kernel.domain.accounts import AccountType, FiscalPeriodRef, TrialBalanceLine
from consolidation_kernel.domain.values import MonetaryAmount

TRIAL_BALANCE_TOLERANCE = Decimal("0.01")
RETAINED_EARNINGS_CATEGORY = "RetainedEarnings"
OCI_CATEGORY = "OtherComprehensiveIncome"


class ConsolidationRunStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ConsolidationRunStatus.COMPLETED,
            ConsolidationRunStatus.FAILED,
            ConsolidationRunStatus.CANCELLED,
        )


class ConsolidationStepType(str, Enum):
    VALIDATE = "Validate"
    TRANSLATE = "Translate"
    AGGREGATE = "Aggregate"
    MATCH_IC = "MatchIC"
    ELIMINATE = "Eliminate"
    NCI = "NCI"
    GENERATE_TB = "GenerateTB"

    @property
    def display_name(self) -> str:
        return _STEP_DISPLAY_NAMES[self]


_STEP_DISPLAY_NAMES: dict[ConsolidationStepType, str] = {
    ConsolidationStepType.VALIDATE: "Validate Member Data",
    ConsolidationStepType.TRANSLATE: "Currency Translation",
    ConsolidationStepType.AGGREGATE: "Aggregate Balances",
    ConsolidationStepType.MATCH_IC: "Intercompany Matching",
    ConsolidationStepType.ELIMINATE: "Generate Eliminations",
    ConsolidationStepType.NCI: "Calculate Minority Interest",
    ConsolidationStepType.GENERATE_TB: "Generate Consolidated TB",
}

CONSOLIDATION_STEP_ORDER: tuple[ConsolidationStepType, ...] = tuple(ConsolidationStepType)


class ConsolidationStepStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


@dataclass(frozen=True)
class ConsolidationStep:
    step_type: ConsolidationStepType
    status: ConsolidationStepStatus = ConsolidationStepStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: float | None = None
    error_message: str | None = None
    details: str | None = None

    @property
    def display_name(self) -> str:
        return self.step_type.display_name

    @property
    def has_started(self) -> bool:
        return self.started_at is not None

    @property
    def has_completed(self) -> bool:
        """True once the step reached any terminal status with a timestamp."""
        return self.completed_at is not None

    @property
    def is_running(self) -> bool:
        return self.status == ConsolidationStepStatus.IN_PROGRESS

    @property
    def is_successful(self) -> bool:
        return self.status == ConsolidationStepStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == ConsolidationStepStatus.FAILED

    @property
    def is_skipped(self) -> bool:
        return self.status == ConsolidationStepStatus.SKIPPED

    @property
    def is_pending(self) -> bool:
        return self.status == ConsolidationStepStatus.PENDING

    @property
    def has_error(self) -> bool:
        return self.error_message is not None


def create_initial_steps() -> tuple[ConsolidationStep, ...]:
    return tuple(ConsolidationStep(step_type=step_type) for step_type in CONSOLIDATION_STEP_ORDER)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationSeverity(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"


class ValidationCode:
    PERIOD_NOT_CLOSED = "PERIOD_NOT_CLOSED"
    TRIAL_BALANCE_NOT_BALANCED = "TRIAL_BALANCE_NOT_BALANCED"
    MEMBER_TRIAL_BALANCE_MISSING = "MEMBER_TRIAL_BALANCE_MISSING"


@dataclass(frozen=True)
class ValidationIssue:
    severity: ValidationSeverity
    code: str
    message: str
    entity_reference: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == ValidationSeverity.ERROR

    @property
    def is_warning(self) -> bool:
        return self.severity == ValidationSeverity.WARNING


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def errors(self) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.is_error)

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.is_warning)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def has_warnings(self) -> bool:
        return self.warning_count > 0

    @property
    def issue_codes(self) -> tuple[str, ...]:
        return tuple(i.code for i in self.issues)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsolidationRunOptions:
    """
    Knobs that change step behavior but never step order.

    ``continue_on_warnings=False`` makes any validation warning fail the
    Validate step.  ``force_regeneration`` allows a new run for a
    (group, period) that already has one.
    ``include_equity_method_investments`` brings equity-method associates
    into validation; their balances are never aggregated line by line.
    """

    skip_validation: bool = False
    continue_on_warnings: bool = True
    include_equity_method_investments: bool = True
    force_regeneration: bool = False


# ---------------------------------------------------------------------------
# Group-level accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsolidationAccount:
    """An account the run posts to on the group's behalf (CTA, retained earnings)."""

    account_id: str
    account_number: str
    account_name: str
    account_type: AccountType
    account_category: str


DEFAULT_CTA_ACCOUNT = ConsolidationAccount(
    account_id="consolidation-cta",
    account_number="3900",
    account_name="Cumulative translation adjustment",
    account_type=AccountType.EQUITY,
    account_category=OCI_CATEGORY,
)

DEFAULT_RETAINED_EARNINGS_ACCOUNT = ConsolidationAccount(
    account_id="consolidation-retained-earnings",
    account_number="3100",
    account_name="Retained earnings",
    account_type=AccountType.EQUITY,
    account_category=RETAINED_EARNINGS_CATEGORY,
)


# ---------------------------------------------------------------------------
# Member input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemberTrialBalance:
    """
    A member company's closing trial balance for the period, in its
    functional currency.

    Income statement accounts are still open (pre-closing).  Dividends
    declared in the period have already been charged to the retained
    earnings line, so opening RE is that line plus ``dividends_declared``.
    """

    company_id: str
    company_name: str
    functional_currency: str
    lines: tuple[TrialBalanceLine, ...]
    dividends_declared: MonetaryAmount | None = None

    def __post_init__(self) -> None:
        for line in self.lines:
            if line.currency != self.functional_currency:
                raise ValueError(
                    f"Trial balance of {self.company_id} is in {self.functional_currency} "
                    f"but line {line.account_number} is in {line.currency}"
                )

    @property
    def dividends(self) -> MonetaryAmount:
        return self.dividends_declared or MonetaryAmount.zero(self.functional_currency)

    @property
    def net_income(self) -> MonetaryAmount:
        revenue = MonetaryAmount.sum(
            (l.functional_balance for l in self.lines if l.account_type == AccountType.REVENUE),
            self.functional_currency,
        )
        expenses = MonetaryAmount.sum(
            (l.functional_balance for l in self.lines if l.account_type == AccountType.EXPENSE),
            self.functional_currency,
        )
        return revenue - expenses

    @property
    def retained_earnings_balance(self) -> MonetaryAmount:
        return MonetaryAmount.sum(
            (l.functional_balance for l in self.lines if l.account_category == RETAINED_EARNINGS_CATEGORY),
            self.functional_currency,
        )

    @property
    def opening_retained_earnings(self) -> MonetaryAmount:
        return self.retained_earnings_balance + self.dividends


# ---------------------------------------------------------------------------
# Consolidated trial balance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AggregatedBalance:
    """One account summed across members, in reporting currency (natural sign)."""

    account_number: str
    account_name: str
    account_type: AccountType
    account_category: str
    balance: MonetaryAmount
    member_count: int

    @property
    def is_zero(self) -> bool:
        return self.balance.is_zero


@dataclass(frozen=True)
class ConsolidatedTrialBalanceLineItem:
    account_number: str
    account_name: str
    account_type: AccountType
    account_category: str
    aggregated_balance: MonetaryAmount
    elimination_amount: MonetaryAmount
    consolidated_balance: MonetaryAmount
    nci_amount: MonetaryAmount | None = None

    @property
    def has_eliminations(self) -> bool:
        return not self.elimination_amount.is_zero

    @property
    def has_nci(self) -> bool:
        return self.nci_amount is not None and not self.nci_amount.is_zero


@dataclass(frozen=True)
class ConsolidatedTrialBalance:
    consolidation_run_id: str
    group_id: str
    period_ref: FiscalPeriodRef
    as_of_date: date
    currency: str
    line_items: tuple[ConsolidatedTrialBalanceLineItem, ...]
    total_debits: MonetaryAmount
    total_credits: MonetaryAmount
    total_eliminations: MonetaryAmount
    total_nci: MonetaryAmount
    generated_at: datetime

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debits.amount - self.total_credits.amount) < TRIAL_BALANCE_TOLERANCE

    @property
    def line_count(self) -> int:
        return len(self.line_items)

    @property
    def has_line_items(self) -> bool:
        return len(self.line_items) > 0

    def get_line(self, account_number: str) -> ConsolidatedTrialBalanceLineItem | None:
        for item in self.line_items:
            if item.account_number == account_number:
                return item
        return None


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsolidationRun:
    """
    One consolidation of a group for a fiscal period.

    Created once per (group, period) unless regeneration is forced.
    Steps advance strictly in ``CONSOLIDATION_STEP_ORDER``.
    """

    id: str
    group_id: str
    period_ref: FiscalPeriodRef
    as_of_date: date
    status: ConsolidationRunStatus
    initiated_by: str
    initiated_at: datetime
    steps: tuple[ConsolidationStep, ...] = field(default_factory=create_initial_steps)
    options: ConsolidationRunOptions = field(default_factory=ConsolidationRunOptions)
    validation_result: ValidationResult | None = None
    consolidated_trial_balance: ConsolidatedTrialBalance | None = None
    elimination_entry_ids: tuple[str, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_duration_ms: float | None = None
    error_message: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ConsolidationRunStatus.PENDING

    @property
    def is_in_progress(self) -> bool:
        return self.status == ConsolidationRunStatus.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self.status == ConsolidationRunStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == ConsolidationRunStatus.FAILED

    @property
    def is_cancelled(self) -> bool:
        return self.status == ConsolidationRunStatus.CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def completed_step_count(self) -> int:
        return sum(1 for s in self.steps if s.is_successful)

    @property
    def failed_step_count(self) -> int:
        return sum(1 for s in self.steps if s.is_failed)

    @property
    def progress_percent(self) -> int:
        """Share of steps carrying a completion timestamp, rounded to a whole percent."""
        if not self.steps:
            return 0
        finished = sum(1 for s in self.steps if s.has_completed)
        return round(finished / len(self.steps) * 100)

    @property
    def current_step(self) -> ConsolidationStep | None:
        for step in self.steps:
            if step.is_running:
                return step
        return None

    @property
    def current_step_type(self) -> ConsolidationStepType | None:
        step = self.current_step
        return step.step_type if step is not None else None

    def get_step(self, step_type: ConsolidationStepType) -> ConsolidationStep:
        for step in self.steps:
            if step.step_type == step_type:
                return step
        raise KeyError(step_type)

    @property
    def validation_passed(self) -> bool:
        return self.validation_result is not None and self.validation_result.is_valid

    @property
    def has_consolidated_trial_balance(self) -> bool:
        return self.consolidated_trial_balance is not None

    @property
    def elimination_entry_count(self) -> int:
        return len(self.elimination_entry_ids)

    @property
    def has_elimination_entries(self) -> bool:
        return len(self.elimination_entry_ids) > 0

    @property
    def has_error(self) -> bool:
        return self.error_message is not None

    @property
    def duration_ms(self) -> float | None:
        return self.total_duration_ms
