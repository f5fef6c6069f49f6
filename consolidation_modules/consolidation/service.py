"""
Consolidation Run Orchestrator (``consolidation_modules.consolidation.service``).

Responsibility
--------------
Drive one consolidation of a group for a fiscal period through its seven
steps -- Validate, Translate, Aggregate, MatchIC, Eliminate, NCI,
GenerateTB -- recording status, timing and details for every step on the
persisted ``ConsolidationRun``.

Architecture position
---------------------
**Modules layer** -- composes the intercompany, eliminations and NCI
services with the pure translation engine.  Group and period lookups go
through a ``GroupDirectory``; trial balances and rates come from
pluggable sources.

Invariants enforced
-------------------
* Steps execute strictly in ``CONSOLIDATION_STEP_ORDER``; each step
  consumes the previous steps' output.
* A step failure marks that step Failed, every later step Skipped, and
  the run Failed.  Nothing after a failed step runs.
* Cancellation is observed between steps, never mid-step; the output of
  a step that finished is kept.
* Only one run exists per (group, period) unless ``force_regeneration``.
* Only Full and VIE members are aggregated line by line.  Equity-method
  associates are validated when ``include_equity_method_investments`` is
  set but reach the consolidated result only through the investor's
  investment balance.
* Every timestamp comes from the injected ``Clock``.

Failure modes
-------------
* ``ConsolidationGroupNotFoundError`` / ``FiscalPeriodNotFoundError`` /
  ``ConsolidationRunExistsError`` before a run is created.
* ``ConsolidationValidationError`` when the Validate step finds errors
  (or warnings, with ``continue_on_warnings=False``).
* ``ConsolidationStepFailedError`` wrapping the typed error of any other
  failing step.
* Any other exception from a collaborator (trial balance source, rate
  source, repository) is re-raised unchanged after the step and run are
  marked Failed.
* ``ConsolidationRunNotFoundError`` / ``ConsolidationRunCannotBeCancelledError``
  from ``cancel_run``.

Audit relevance
---------------
Each step emits ``consolidation_step_completed`` or
``consolidation_step_failed``; the run emits ``consolidation_run_started``
and ``consolidation_run_completed`` / ``consolidation_run_failed`` /
``consolidation_run_cancelled``.  All records carry the run id through
``LogContext``.

Usage::

    service = ConsolidationService(
        directory=directory,
        run_repository=runs,
        trial_balance_source=trial_balances,
        rate_source=rates,
        intercompany_service=ic_service,
        elimination_service=elimination_service,
        nci_service=nci_service,
        clock=clock,
    )
    run = service.run(group_id, FiscalPeriodRef(2025, 12), initiated_by="controller")
    assert run.consolidated_trial_balance.is_balanced
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from consolidation_engines.elimination import AccountBalance, EliminationEntry
from consolidation_engines.intercompany_matching import MatchingConfig
from consolidation_engines.nci import ConsolidatedNCISummary, SubsidiaryData
from consolidation_engines.translation import (
    CurrencyTranslationEngine,
    MemberTrialBalanceLineItem,
    TranslatedTrialBalance,
    TranslateMemberBalancesInput,
    TranslationRates,
    TranslationRateType,
)
from consolidation_kernel.domain.accounts import AccountType, FiscalPeriodRef
from consolidation_kernel.domain.balance import validate_balance
from consolidation_kernel.domain.clock import Clock, SystemClock
from consolidation_kernel.domain.group import ConsolidationGroup, ConsolidationMember
from consolidation_kernel.domain.values import MonetaryAmount
from consolidation_kernel.exceptions import (
    ConsolidationError,
    ConsolidationRunCannotBeCancelledError,
    ConsolidationRunExistsError,
    ConsolidationRunNotFoundError,
    ConsolidationStepFailedError,
    ConsolidationValidationError,
    TranslationRateNotFoundError,
    UnbalancedEntryError,
)
from consolidation_kernel.logging_config import LogContext, get_logger
from consolidation_modules.consolidation.models import (
    CONSOLIDATION_STEP_ORDER,
    DEFAULT_CTA_ACCOUNT,
    DEFAULT_RETAINED_EARNINGS_ACCOUNT,
    RETAINED_EARNINGS_CATEGORY,
    AggregatedBalance,
    ConsolidatedTrialBalance,
    ConsolidatedTrialBalanceLineItem,
    ConsolidationAccount,
    ConsolidationRun,
    ConsolidationRunOptions,
    ConsolidationRunStatus,
    ConsolidationStep,
    ConsolidationStepStatus,
    ConsolidationStepType,
    MemberTrialBalance,
    ValidationCode,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from consolidation_modules.consolidation.repository import (
    ConsolidationRunRepository,
    MemberTrialBalanceSource,
    TranslationRateSource,
)
from consolidation_modules.directory import (
    FiscalPeriodInfo,
    GroupDirectory,
    require_group,
    require_period,
)
from consolidation_modules.eliminations.service import EliminationService
from consolidation_modules.intercompany.service import IntercompanyService
from consolidation_modules.nci.service import NCIService

logger = get_logger("modules.consolidation.service")


def _elapsed_ms(start: datetime, end: datetime) -> float:
    return round((end - start).total_seconds() * 1000, 2)


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


@dataclass(frozen=True)
class _Company:
    """A company in consolidation scope; ``member`` is None for the parent."""

    company_id: str
    member: ConsolidationMember | None

    @property
    def is_line_aggregated(self) -> bool:
        return self.member is None or self.member.consolidation_method.is_fully_consolidated


@dataclass
class _RunContext:
    """Working state handed from step to step within one run."""

    run_id: str
    group: ConsolidationGroup
    period: FiscalPeriodInfo
    options: ConsolidationRunOptions
    companies: tuple[_Company, ...]
    trial_balances: dict[str, MemberTrialBalance] = field(default_factory=dict)
    validation_result: ValidationResult | None = None
    translated: dict[str, TranslatedTrialBalance] = field(default_factory=dict)
    accounts_by_id: dict[str, ConsolidationAccount] = field(default_factory=dict)
    accounts_by_number: dict[str, ConsolidationAccount] = field(default_factory=dict)
    aggregated: dict[str, AggregatedBalance] = field(default_factory=dict)
    elimination_pool: list[AccountBalance] = field(default_factory=list)
    elimination_entries: tuple[EliminationEntry, ...] = ()
    total_eliminations: MonetaryAmount | None = None
    nci_summary: ConsolidatedNCISummary | None = None
    trial_balance: ConsolidatedTrialBalance | None = None

    @property
    def currency(self) -> str:
        return self.group.reporting_currency

    @property
    def period_ref(self) -> FiscalPeriodRef:
        return self.period.period_ref


class ConsolidationService:
    """
    Runs and cancels consolidations.

    Contract
    --------
    * ``run`` returns the final ``ConsolidationRun`` (Completed, or
      Cancelled if cancellation was observed between steps) or raises.
    * Every state change of the run is written through the run
      repository before the next step starts.

    Guarantees
    ----------
    * Clock and id generation are injectable, so identical inputs yield
      identical run records.
    * Eliminations and NCI are folded into the consolidated trial
      balance, which must balance within 0.01.

    Non-goals
    ---------
    * Does NOT post elimination entries or CTA to a general ledger.
    * Does NOT parallelize work inside a step.
    """

    def __init__(
        self,
        directory: GroupDirectory,
        run_repository: ConsolidationRunRepository,
        trial_balance_source: MemberTrialBalanceSource,
        rate_source: TranslationRateSource,
        intercompany_service: IntercompanyService,
        elimination_service: EliminationService,
        nci_service: NCIService,
        clock: Clock | None = None,
        translation_engine: CurrencyTranslationEngine | None = None,
        matching_config: MatchingConfig | None = None,
        default_options: ConsolidationRunOptions | None = None,
        cta_account: ConsolidationAccount = DEFAULT_CTA_ACCOUNT,
        retained_earnings_account: ConsolidationAccount = DEFAULT_RETAINED_EARNINGS_ACCOUNT,
        id_factory: Callable[[], str] | None = None,
    ):
        self._directory = directory
        self._runs = run_repository
        self._trial_balances = trial_balance_source
        self._rates = rate_source
        self._intercompany = intercompany_service
        self._eliminations = elimination_service
        self._nci = nci_service
        self._clock = clock or SystemClock()
        self._translation_engine = translation_engine or CurrencyTranslationEngine()
        self._matching_config = matching_config
        self._default_options = default_options or ConsolidationRunOptions()
        self._cta_account = cta_account
        self._retained_earnings_account = retained_earnings_account
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self._step_handlers: dict[ConsolidationStepType, Callable[[_RunContext], str]] = {
            ConsolidationStepType.VALIDATE: self._validate,
            ConsolidationStepType.TRANSLATE: self._translate,
            ConsolidationStepType.AGGREGATE: self._aggregate,
            ConsolidationStepType.MATCH_IC: self._match_intercompany,
            ConsolidationStepType.ELIMINATE: self._eliminate,
            ConsolidationStepType.NCI: self._calculate_nci,
            ConsolidationStepType.GENERATE_TB: self._generate_trial_balance,
        }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_run(self, run_id: str) -> ConsolidationRun:
        """
        Raises:
            ConsolidationRunNotFoundError: Unknown run.
        """
        run = self._runs.get(run_id)
        if run is None:
            raise ConsolidationRunNotFoundError(run_id)
        return run

    def get_latest_run(self, group_id: str, period_ref: FiscalPeriodRef) -> ConsolidationRun | None:
        runs = self._runs.find_by_group_and_period(group_id, period_ref)
        return runs[-1] if runs else None

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(
        self,
        group_id: str,
        period_ref: FiscalPeriodRef,
        options: ConsolidationRunOptions | None = None,
        initiated_by: str = "system",
    ) -> ConsolidationRun:
        """
        Consolidate a group for a fiscal period.

        Raises:
            ConsolidationGroupNotFoundError: Unknown group.
            FiscalPeriodNotFoundError: Unknown period.
            ConsolidationRunExistsError: A run exists and regeneration
                was not forced.
            ConsolidationValidationError: Validation failed.
            ConsolidationStepFailedError: Any later step failed.
        """
        options = options or self._default_options
        group = require_group(self._directory, group_id)
        period = require_period(self._directory, period_ref)

        if not options.force_regeneration:
            existing = self.get_latest_run(group_id, period_ref)
            if existing is not None:
                raise ConsolidationRunExistsError(group_id, str(period_ref), existing.id)

        run = ConsolidationRun(
            id=self._id_factory(),
            group_id=group_id,
            period_ref=period_ref,
            as_of_date=period.end_date,
            status=ConsolidationRunStatus.PENDING,
            initiated_by=initiated_by,
            initiated_at=self._clock.now(),
            options=options,
        )
        run = self._runs.save(run)

        ctx = _RunContext(
            run_id=run.id,
            group=group,
            period=period,
            options=options,
            companies=self._companies_in_scope(group, options),
        )

        with LogContext.bind(run_id=run.id, group_id=group_id, period_ref=str(period_ref)):
            return self._execute(run, ctx)

    def cancel_run(self, run_id: str) -> ConsolidationRun:
        """
        Cancel a Pending or InProgress run.

        A step already executing finishes; the run stops before the next.

        Raises:
            ConsolidationRunNotFoundError: Unknown run.
            ConsolidationRunCannotBeCancelledError: Run already terminal.
        """
        run = self.get_run(run_id)
        if run.is_terminal:
            raise ConsolidationRunCannotBeCancelledError(run_id, run.status.value)

        now = self._clock.now()
        cancelled = dataclasses.replace(
            run,
            status=ConsolidationRunStatus.CANCELLED,
            completed_at=now,
            total_duration_ms=_elapsed_ms(run.started_at, now) if run.started_at else None,
            error_message="Cancelled by request",
        )
        self._runs.update(cancelled)
        logger.info("consolidation_run_cancelled", extra={
            "run_id": run_id,
            "previous_status": run.status.value,
        })
        return cancelled

    def _execute(self, run: ConsolidationRun, ctx: _RunContext) -> ConsolidationRun:
        t0 = time.monotonic()
        started_at = self._clock.now()
        run = self._write(dataclasses.replace(
            run, status=ConsolidationRunStatus.IN_PROGRESS, started_at=started_at,
        ))
        logger.info("consolidation_run_started", extra={
            "run_id": run.id,
            "company_count": len(ctx.companies),
            "initiated_by": run.initiated_by,
        })

        for step_type in CONSOLIDATION_STEP_ORDER:
            if run.is_cancelled:
                return self._stop_cancelled(run)

            step_started = self._clock.now()
            run = self._write(self._with_step(
                run, step_type,
                status=ConsolidationStepStatus.IN_PROGRESS,
                started_at=step_started,
            ))

            try:
                details = self._step_handlers[step_type](ctx)
            except (ConsolidationError, ValueError) as exc:
                self._fail(run, step_type, step_started, str(exc), started_at)
                raise ConsolidationStepFailedError(run.id, step_type.value, str(exc)) from exc
            except Exception as exc:
                # Collaborator failures keep their own type; the run is still closed out.
                self._fail(run, step_type, step_started, f"{type(exc).__name__}: {exc}", started_at)
                raise

            if step_type == ConsolidationStepType.VALIDATE and not ctx.validation_result.is_valid:
                result = ctx.validation_result
                message = f"Validation failed with {result.error_count} error(s)"
                if not result.has_errors:
                    message = f"Validation failed with {result.warning_count} warning(s)"
                self._fail(run, step_type, step_started, message, started_at, validation_result=result)
                raise ConsolidationValidationError(
                    run.group_id, str(run.period_ref), result.error_count, result.issue_codes,
                )

            step_completed = self._clock.now()
            run = self._write(dataclasses.replace(
                self._with_step(
                    run, step_type,
                    status=ConsolidationStepStatus.COMPLETED,
                    completed_at=step_completed,
                    duration_ms=_elapsed_ms(step_started, step_completed),
                    details=details,
                ),
                validation_result=ctx.validation_result,
                elimination_entry_ids=tuple(e.id for e in ctx.elimination_entries),
            ))
            logger.info("consolidation_step_completed", extra={
                "run_id": run.id,
                "step": step_type.value,
                "details": details,
                "progress_percent": run.progress_percent,
            })

        if run.is_cancelled:
            return self._stop_cancelled(run)

        completed_at = self._clock.now()
        run = self._write(dataclasses.replace(
            run,
            status=ConsolidationRunStatus.COMPLETED,
            consolidated_trial_balance=ctx.trial_balance,
            completed_at=completed_at,
            total_duration_ms=_elapsed_ms(started_at, completed_at),
        ))
        logger.info("consolidation_run_completed", extra={
            "run_id": run.id,
            "line_count": ctx.trial_balance.line_count,
            "total_debits": str(ctx.trial_balance.total_debits.amount),
            "total_credits": str(ctx.trial_balance.total_credits.amount),
            "elimination_entry_count": run.elimination_entry_count,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return run

    # -------------------------------------------------------------------------
    # Run state transitions
    # -------------------------------------------------------------------------

    def _write(self, run: ConsolidationRun) -> ConsolidationRun:
        """Persist ``run``, keeping a cancellation recorded since it was read."""
        stored = self._runs.get(run.id)
        if stored is not None and stored.is_cancelled and not run.is_cancelled:
            run = dataclasses.replace(
                run,
                status=ConsolidationRunStatus.CANCELLED,
                completed_at=stored.completed_at,
                error_message=stored.error_message,
            )
        return self._runs.update(run)

    @staticmethod
    def _with_step(
        run: ConsolidationRun, step_type: ConsolidationStepType, **changes,
    ) -> ConsolidationRun:
        steps = tuple(
            dataclasses.replace(step, **changes) if step.step_type == step_type else step
            for step in run.steps
        )
        return dataclasses.replace(run, steps=steps)

    @staticmethod
    def _skip_pending(steps: tuple[ConsolidationStep, ...]) -> tuple[ConsolidationStep, ...]:
        return tuple(
            dataclasses.replace(step, status=ConsolidationStepStatus.SKIPPED)
            if step.is_pending else step
            for step in steps
        )

    def _fail(
        self,
        run: ConsolidationRun,
        step_type: ConsolidationStepType,
        step_started: datetime,
        message: str,
        run_started: datetime,
        validation_result: ValidationResult | None = None,
    ) -> ConsolidationRun:
        failed_at = self._clock.now()
        run = self._with_step(
            run, step_type,
            status=ConsolidationStepStatus.FAILED,
            completed_at=failed_at,
            duration_ms=_elapsed_ms(step_started, failed_at),
            error_message=message,
        )
        run = dataclasses.replace(
            run,
            status=ConsolidationRunStatus.FAILED,
            steps=self._skip_pending(run.steps),
            validation_result=validation_result or run.validation_result,
            completed_at=failed_at,
            total_duration_ms=_elapsed_ms(run_started, failed_at),
            error_message=message,
        )
        run = self._runs.update(run)
        logger.error("consolidation_step_failed", extra={
            "run_id": run.id,
            "step": step_type.value,
            "error": message,
        })
        logger.error("consolidation_run_failed", extra={
            "run_id": run.id,
            "failed_step": step_type.value,
            "skipped_steps": sum(1 for s in run.steps if s.is_skipped),
        })
        return run

    def _stop_cancelled(self, run: ConsolidationRun) -> ConsolidationRun:
        run = self._runs.update(dataclasses.replace(run, steps=self._skip_pending(run.steps)))
        logger.info("consolidation_run_stopped_after_cancel", extra={
            "run_id": run.id,
            "completed_steps": run.completed_step_count,
        })
        return run

    # -------------------------------------------------------------------------
    # Scope
    # -------------------------------------------------------------------------

    @staticmethod
    def _companies_in_scope(
        group: ConsolidationGroup, options: ConsolidationRunOptions,
    ) -> tuple[_Company, ...]:
        members = group.consolidated_members()
        if options.include_equity_method_investments:
            members += group.equity_method_members()
        return (_Company(group.parent_company_id, None),) + tuple(
            _Company(m.company_id, m) for m in members
        )

    def _load_trial_balances(self, ctx: _RunContext) -> None:
        if ctx.trial_balances:
            return
        for company in ctx.companies:
            tb = self._trial_balances.get_member_trial_balance(company.company_id, ctx.period_ref)
            if tb is not None:
                ctx.trial_balances[company.company_id] = tb

    # -------------------------------------------------------------------------
    # Step 1: Validate
    # -------------------------------------------------------------------------

    def _validate(self, ctx: _RunContext) -> str:
        self._load_trial_balances(ctx)
        if ctx.options.skip_validation:
            ctx.validation_result = ValidationResult(is_valid=True)
            return "Validation skipped per options"

        issues: list[ValidationIssue] = []
        for company in ctx.companies:
            company_id = company.company_id
            if not self._directory.is_period_closed(company_id, ctx.period_ref):
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code=ValidationCode.PERIOD_NOT_CLOSED,
                    message="Fiscal period is not closed for member company",
                    entity_reference=company_id,
                ))

            tb = ctx.trial_balances.get(company_id)
            if tb is None:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    code=ValidationCode.MEMBER_TRIAL_BALANCE_MISSING,
                    message="No trial balance found for member company; it is left out",
                    entity_reference=company_id,
                ))
                continue

            try:
                validate_balance(tb.lines, tb.functional_currency)
            except UnbalancedEntryError as exc:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code=ValidationCode.TRIAL_BALANCE_NOT_BALANCED,
                    message=f"Trial balance is not balanced for {tb.company_name}: {exc}",
                    entity_reference=company_id,
                ))

        has_errors = any(i.is_error for i in issues)
        has_warnings = any(i.is_warning for i in issues)
        result = ValidationResult(
            is_valid=not has_errors and (ctx.options.continue_on_warnings or not has_warnings),
            issues=tuple(issues),
        )
        ctx.validation_result = result
        return (
            f"Validated {len(ctx.companies)} member(s): "
            f"{result.error_count} error(s), {result.warning_count} warning(s)"
        )

    # -------------------------------------------------------------------------
    # Step 2: Translate
    # -------------------------------------------------------------------------

    def _translate(self, ctx: _RunContext) -> str:
        self._load_trial_balances(ctx)
        for company in ctx.companies:
            tb = ctx.trial_balances.get(company.company_id)
            if tb is None or not company.is_line_aggregated:
                continue
            ctx.translated[company.company_id] = self._translation_engine.translate_member_balances(
                TranslateMemberBalancesInput(
                    company_id=tb.company_id,
                    company_name=tb.company_name,
                    functional_currency=tb.functional_currency,
                    reporting_currency=ctx.currency,
                    as_of_date=ctx.period.end_date,
                    period_start_date=ctx.period.start_date,
                    line_items=tuple(
                        MemberTrialBalanceLineItem.from_trial_balance_line(line) for line in tb.lines
                    ),
                    rates=self._rates_for(tb, ctx),
                    net_income=tb.net_income,
                    dividends_declared=tb.dividends,
                    opening_retained_earnings=tb.opening_retained_earnings,
                )
            )

        foreign = sum(1 for t in ctx.translated.values() if t.functional_currency != ctx.currency)
        return (
            f"Translated {len(ctx.translated)} member(s) to {ctx.currency} "
            f"({foreign} foreign currency)"
        )

    def _rates_for(self, tb: MemberTrialBalance, ctx: _RunContext) -> TranslationRates:
        if tb.functional_currency == ctx.currency:
            return TranslationRates.identity(ctx.currency, tb.opening_retained_earnings)
        rates = self._rates.get_translation_rates(
            tb.company_id, tb.functional_currency, ctx.currency, ctx.period_ref,
        )
        if rates is None:
            logger.error("translation_rates_missing", extra={
                "company_id": tb.company_id,
                "from_currency": tb.functional_currency,
                "to_currency": ctx.currency,
            })
            raise TranslationRateNotFoundError(
                from_currency=tb.functional_currency,
                to_currency=ctx.currency,
                rate_type=TranslationRateType.CLOSING.value,
                as_of_date=ctx.period.end_date.isoformat(),
            )
        return rates

    # -------------------------------------------------------------------------
    # Step 3: Aggregate
    # -------------------------------------------------------------------------

    def _aggregate(self, ctx: _RunContext) -> str:
        currency = ctx.currency
        totals: dict[str, MonetaryAmount] = {}
        contributors: dict[str, set[str]] = {}

        def register(account: ConsolidationAccount) -> None:
            ctx.accounts_by_id.setdefault(account.account_id, account)
            ctx.accounts_by_number.setdefault(account.account_number, account)

        def add(account: ConsolidationAccount, company_id: str, amount: MonetaryAmount) -> None:
            register(account)
            number = account.account_number
            totals[number] = totals.get(number, MonetaryAmount.zero(currency)) + amount
            contributors.setdefault(number, set()).add(company_id)

        register(self._cta_account)
        register(self._retained_earnings_account)

        for company_id, translated in ctx.translated.items():
            source = ctx.trial_balances[company_id]
            partners = {line.account_id: line.intercompany_partner_id for line in source.lines}
            re_details = translated.retained_earnings_details
            re_balance = re_details.translated_opening_retained_earnings - re_details.translated_dividends
            re_account: ConsolidationAccount | None = None

            for item in translated.line_items:
                account = ConsolidationAccount(
                    account_id=item.account_id or item.account_number,
                    account_number=item.account_number,
                    account_name=item.account_name,
                    account_type=item.account_type,
                    account_category=item.account_category,
                )
                if item.account_category == RETAINED_EARNINGS_CATEGORY:
                    # Retained earnings are carried once per member at the computed amount.
                    re_account = re_account or account
                    register(account)
                    continue
                add(account, company_id, item.translated_balance)
                ctx.elimination_pool.append(AccountBalance(
                    account_id=account.account_id,
                    account_number=account.account_number,
                    account_category=account.account_category,
                    company_id=company_id,
                    balance=item.translated_balance,
                    intercompany_partner_id=partners.get(item.account_id),
                ))

            re_account = re_account or self._retained_earnings_account
            add(re_account, company_id, re_balance)
            ctx.elimination_pool.append(AccountBalance(
                account_id=re_account.account_id,
                account_number=re_account.account_number,
                account_category=re_account.account_category,
                company_id=company_id,
                balance=re_balance,
            ))

            closing_cta = translated.cta_calculation.closing_cta
            if not closing_cta.is_zero:
                add(self._cta_account, company_id, closing_cta)

        for number in sorted(totals):
            account = ctx.accounts_by_number[number]
            ctx.aggregated[number] = AggregatedBalance(
                account_number=number,
                account_name=account.account_name,
                account_type=account.account_type,
                account_category=account.account_category,
                balance=totals[number],
                member_count=len(contributors[number]),
            )

        return f"Aggregated {len(ctx.aggregated)} account(s) from {len(ctx.translated)} member(s)"

    # -------------------------------------------------------------------------
    # Step 4: Match intercompany
    # -------------------------------------------------------------------------

    def _match_intercompany(self, ctx: _RunContext) -> str:
        result = self._intercompany.match_transactions(
            ctx.group.id, ctx.period_ref, self._matching_config,
        )
        return f"Matched {result.matched_count} IC pair(s), {result.unmatched_count} unmatched"

    # -------------------------------------------------------------------------
    # Step 5: Eliminate
    # -------------------------------------------------------------------------

    def _eliminate(self, ctx: _RunContext) -> str:
        result = self._eliminations.generate_from_balances(
            ctx.group.id, ctx.period_ref, ctx.elimination_pool,
        )
        ctx.elimination_entries = result.entries
        ctx.total_eliminations = result.total_amount
        return (
            f"Generated {result.entry_count} elimination "
            f"{_plural(result.entry_count, 'entry', 'entries')} from "
            f"{len(result.processed_rule_ids)} rule(s), {len(result.skipped_rule_ids)} skipped"
        )

    # -------------------------------------------------------------------------
    # Step 6: NCI
    # -------------------------------------------------------------------------

    def _calculate_nci(self, ctx: _RunContext) -> str:
        subsidiaries: list[SubsidiaryData] = []
        for company in ctx.companies:
            member = company.member
            if member is None or not member.consolidation_method.is_fully_consolidated:
                continue
            if member.nci_percentage.is_zero:
                continue
            translated = ctx.translated.get(member.company_id)
            if translated is None:
                continue
            acquisition = self._nci.require_acquisition_data(member.company_id)
            re_details = translated.retained_earnings_details
            subsidiaries.append(SubsidiaryData(
                subsidiary_id=member.company_id,
                subsidiary_name=member.company_name,
                parent_ownership_percentage=member.ownership_percentage,
                fair_value_net_assets_at_acquisition=acquisition.fair_value_net_assets_at_acquisition,
                subsidiary_net_income=re_details.translated_net_income,
                subsidiary_oci=translated.cta_calculation.current_period_cta,
                dividends_declared=re_details.translated_dividends,
                cumulative_nci_net_income=acquisition.cumulative_nci_net_income,
                cumulative_dividends_to_nci=acquisition.cumulative_dividends_to_nci,
                cumulative_nci_oci=acquisition.cumulative_nci_oci,
                period_year=ctx.period_ref.year,
                period_number=ctx.period_ref.period,
                currency=ctx.currency,
                nci_premium_discount_at_acquisition=acquisition.nci_premium_discount_at_acquisition,
            ))

        summary = self._nci.calculate_consolidated_nci_for(subsidiaries, ctx.currency)
        ctx.nci_summary = summary
        return (
            f"Calculated NCI for {summary.subsidiary_count} "
            f"{_plural(summary.subsidiary_count, 'subsidiary', 'subsidiaries')}: "
            f"{summary.total_nci_equity}"
        )

    # -------------------------------------------------------------------------
    # Step 7: Generate consolidated trial balance
    # -------------------------------------------------------------------------

    def _generate_trial_balance(self, ctx: _RunContext) -> str:
        currency = ctx.currency
        zero = MonetaryAmount.zero(currency)
        adjustments: dict[str, MonetaryAmount] = {}

        for entry in ctx.elimination_entries:
            for line in entry.lines:
                account = ctx.accounts_by_id.get(line.account_id)
                if account is None:
                    raise ValueError(
                        f"Elimination entry {entry.id} line {line.line_number} references "
                        f"account {line.account_id}, which no member trial balance carries"
                    )
                number = account.account_number
                if number not in ctx.aggregated:
                    ctx.aggregated[number] = AggregatedBalance(
                        account_number=number,
                        account_name=account.account_name,
                        account_type=account.account_type,
                        account_category=account.account_category,
                        balance=zero,
                        member_count=0,
                    )
                # A debit raises a debit-normal balance and lowers a credit-normal one.
                effect = line.amount if line.is_debit == account.account_type.is_debit_normal else -line.amount
                adjustments[number] = adjustments.get(number, zero) + effect

        line_items = []
        total_debits = zero
        total_credits = zero
        for number in sorted(ctx.aggregated):
            aggregated = ctx.aggregated[number]
            elimination = adjustments.get(number, zero)
            consolidated = aggregated.balance + elimination
            line_items.append(ConsolidatedTrialBalanceLineItem(
                account_number=number,
                account_name=aggregated.account_name,
                account_type=aggregated.account_type,
                account_category=aggregated.account_category,
                aggregated_balance=aggregated.balance,
                elimination_amount=elimination,
                consolidated_balance=consolidated,
            ))
            if aggregated.account_type in (AccountType.ASSET, AccountType.EXPENSE):
                total_debits = total_debits + consolidated
            else:
                total_credits = total_credits + consolidated

        tb = ConsolidatedTrialBalance(
            consolidation_run_id=ctx.run_id,
            group_id=ctx.group.id,
            period_ref=ctx.period_ref,
            as_of_date=ctx.period.end_date,
            currency=currency,
            line_items=tuple(line_items),
            total_debits=total_debits,
            total_credits=total_credits,
            total_eliminations=ctx.total_eliminations or zero,
            total_nci=ctx.nci_summary.total_nci_equity if ctx.nci_summary else zero,
            generated_at=self._clock.now(),
        )
        if not tb.is_balanced:
            raise UnbalancedEntryError(
                total_debits=total_debits.format(),
                total_credits=total_credits.format(),
                difference=(total_debits - total_credits).abs().format(),
                currency=currency,
            )
        ctx.trial_balance = tb
        return f"Generated consolidated trial balance with {tb.line_count} line(s)"
