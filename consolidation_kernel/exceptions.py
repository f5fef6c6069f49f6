"""
Typed Exception Hierarchy for the Consolidation Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A consolidation run touches many members, rates, rules and subsidiaries.
When something goes wrong the caller needs to know *which* member, *which*
rate or *which* rule, without parsing a message string.  Every error here:

  1. Has its own class (catch by type, not by message text)
  2. Has a ``code`` class attribute (machine-readable, API-safe)
  3. Stores the offending values as attributes (structured diagnostics)

Example:
    try:
        engine.translate_member_balances(member_input)
    except TranslationRateNotFoundError as e:
        report_missing_rate(e.from_currency, e.to_currency, e.rate_type)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ConsolidationError (base)
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- ValueObjectError
    |   +-- InvalidAmountError
    |   +-- DivisionByZeroError
    |   +-- InvalidPercentageError
    |
    +-- BalanceError
    |   +-- UnbalancedEntryError
    |
    +-- PreconditionError
    |   +-- ConsolidationGroupNotFoundError
    |   +-- FiscalPeriodNotFoundError
    |   +-- EliminationRuleNotFoundError
    |   +-- SubsidiaryNotFoundError
    |   +-- IntercompanyTransactionNotFoundError
    |   +-- ConsolidationRunNotFoundError
    |
    +-- TranslationError
    |   +-- TranslationRateNotFoundError
    |   +-- HistoricalRateRequiredError
    |
    +-- MatchingError
    |   +-- InvalidMatchingStatusTransitionError
    |
    +-- EliminationError
    |   +-- NoBalancesForEliminationError
    |
    +-- NCIError
    |   +-- InvalidOwnershipPercentageError
    |   +-- NCICalculationError
    |
    +-- RunError
        +-- ConsolidationRunExistsError
        +-- ConsolidationValidationError
        +-- ConsolidationStepFailedError
        +-- ConsolidationRunCannotBeCancelledError

===============================================================================
ERROR CLASSES
===============================================================================

Precondition errors are raised before any computation starts and are
surfaced verbatim.  Domain-invariant violations (unbalanced entries,
currency mismatches, bad ownership percentages) are never corrected
silently.  Resource-absence errors (missing rates, missing balances)
indicate configuration gaps in the member data.
"""


class ConsolidationError(Exception):
    """
    Base exception for all consolidation engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CONSOLIDATION_ERROR"


# Currency-related exceptions


class CurrencyError(ConsolidationError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class CurrencyMismatchError(CurrencyError):
    """Two-operand monetary operation on different currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}")


# Value object exceptions


class ValueObjectError(ConsolidationError):
    """Base exception for value object construction and arithmetic errors."""

    code: str = "VALUE_OBJECT_ERROR"


class InvalidAmountError(ValueObjectError):
    """Amount cannot be represented as an exact decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class DivisionByZeroError(ValueObjectError):
    """Monetary amount divided by zero."""

    code: str = "DIVISION_BY_ZERO"

    def __init__(self, dividend: str, currency: str):
        self.dividend = dividend
        self.currency = currency
        super().__init__(f"Cannot divide {dividend} {currency} by zero")


class InvalidPercentageError(ValueObjectError):
    """Percentage outside the closed range [0, 100]."""

    code: str = "INVALID_PERCENTAGE"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Percentage must be between 0 and 100, got {value}")


# Balance exceptions


class BalanceError(ConsolidationError):
    """Base exception for double-entry balance errors."""

    code: str = "BALANCE_ERROR"


class UnbalancedEntryError(BalanceError):
    """Total debits do not equal total credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(
        self,
        total_debits: str,
        total_credits: str,
        difference: str,
        currency: str,
    ):
        self.total_debits = total_debits
        self.total_credits = total_credits
        self.difference = difference
        self.currency = currency
        super().__init__(
            f"Unbalanced entry in {currency}: debits={total_debits}, "
            f"credits={total_credits}, difference={difference}"
        )


# Precondition exceptions


class PreconditionError(ConsolidationError):
    """Base exception for missing prerequisite records."""

    code: str = "PRECONDITION_FAILED"


class ConsolidationGroupNotFoundError(PreconditionError):
    """Consolidation group does not exist."""

    code: str = "CONSOLIDATION_GROUP_NOT_FOUND"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Consolidation group not found: {group_id}")


class FiscalPeriodNotFoundError(PreconditionError):
    """Fiscal period does not exist."""

    code: str = "FISCAL_PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = period_ref
        super().__init__(f"Fiscal period not found: {period_ref}")


class EliminationRuleNotFoundError(PreconditionError):
    """Elimination rule does not exist."""

    code: str = "ELIMINATION_RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Elimination rule not found: {rule_id}")


class SubsidiaryNotFoundError(PreconditionError):
    """Subsidiary is not a member of the consolidation group."""

    code: str = "SUBSIDIARY_NOT_FOUND"

    def __init__(self, subsidiary_id: str):
        self.subsidiary_id = subsidiary_id
        super().__init__(f"Subsidiary not found: {subsidiary_id}")


class IntercompanyTransactionNotFoundError(PreconditionError):
    """Intercompany transaction does not exist."""

    code: str = "INTERCOMPANY_TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Intercompany transaction not found: {transaction_id}")


class ConsolidationRunNotFoundError(PreconditionError):
    """Consolidation run does not exist."""

    code: str = "CONSOLIDATION_RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Consolidation run not found: {run_id}")


# Translation exceptions


class TranslationError(ConsolidationError):
    """Base exception for currency translation errors."""

    code: str = "TRANSLATION_ERROR"


class TranslationRateNotFoundError(TranslationError):
    """A rate required to translate a member is not available."""

    code: str = "TRANSLATION_RATE_NOT_FOUND"

    def __init__(
        self,
        from_currency: str,
        to_currency: str,
        rate_type: str,
        as_of_date: str,
    ):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.rate_type = rate_type
        self.as_of_date = as_of_date
        super().__init__(
            f"No {rate_type} rate for {from_currency}/{to_currency} as of {as_of_date}"
        )


class HistoricalRateRequiredError(TranslationError):
    """Equity account needs a historical rate and none is available."""

    code: str = "HISTORICAL_RATE_REQUIRED"

    def __init__(
        self,
        company_id: str,
        account_number: str,
        account_name: str,
        currency: str,
    ):
        self.company_id = company_id
        self.account_number = account_number
        self.account_name = account_name
        self.currency = currency
        super().__init__(
            f"Historical rate required for account {account_number} "
            f"({account_name}) of company {company_id} in {currency}"
        )


# Intercompany matching exceptions


class MatchingError(ConsolidationError):
    """Base exception for intercompany matching errors."""

    code: str = "MATCHING_ERROR"


class InvalidMatchingStatusTransitionError(MatchingError):
    """Matching status change is not allowed from the current status."""

    code: str = "INVALID_MATCHING_STATUS_TRANSITION"

    def __init__(self, transaction_id: str, from_status: str, to_status: str):
        self.transaction_id = transaction_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Transaction {transaction_id} cannot move from {from_status} to {to_status}"
        )


# Elimination exceptions


class EliminationError(ConsolidationError):
    """Base exception for elimination generation errors."""

    code: str = "ELIMINATION_ERROR"


class NoBalancesForEliminationError(EliminationError):
    """No account balances matched the rule's selectors."""

    code: str = "NO_BALANCES_FOR_ELIMINATION"

    def __init__(self, rule_id: str, period_ref: str):
        self.rule_id = rule_id
        self.period_ref = period_ref
        super().__init__(
            f"No balances found for elimination rule {rule_id} in period {period_ref}"
        )


# NCI exceptions


class NCIError(ConsolidationError):
    """Base exception for non-controlling interest errors."""

    code: str = "NCI_ERROR"


class InvalidOwnershipPercentageError(NCIError):
    """Parent ownership percentage outside [0, 100]."""

    code: str = "INVALID_OWNERSHIP_PERCENTAGE"

    def __init__(self, ownership_percentage: str, reason: str):
        self.ownership_percentage = ownership_percentage
        self.reason = reason
        super().__init__(
            f"Invalid ownership percentage {ownership_percentage}: {reason}"
        )


class NCICalculationError(NCIError):
    """NCI computation failed for a subsidiary."""

    code: str = "NCI_CALCULATION_FAILED"

    def __init__(self, subsidiary_id: str, reason: str):
        self.subsidiary_id = subsidiary_id
        self.reason = reason
        super().__init__(f"NCI calculation failed for {subsidiary_id}: {reason}")


# Consolidation run exceptions


class RunError(ConsolidationError):
    """Base exception for consolidation run lifecycle errors."""

    code: str = "RUN_ERROR"


class ConsolidationRunExistsError(RunError):
    """A run already exists for the group and period."""

    code: str = "CONSOLIDATION_RUN_EXISTS"

    def __init__(self, group_id: str, period_ref: str, existing_run_id: str):
        self.group_id = group_id
        self.period_ref = period_ref
        self.existing_run_id = existing_run_id
        super().__init__(
            f"Consolidation run {existing_run_id} already exists for group "
            f"{group_id} in {period_ref}"
        )


class ConsolidationValidationError(RunError):
    """Pre-consolidation validation reported errors."""

    code: str = "CONSOLIDATION_VALIDATION_FAILED"

    def __init__(
        self,
        group_id: str,
        period_ref: str,
        error_count: int,
        issue_codes: tuple[str, ...] = (),
    ):
        self.group_id = group_id
        self.period_ref = period_ref
        self.error_count = error_count
        self.issue_codes = issue_codes
        super().__init__(
            f"Validation failed for group {group_id} in {period_ref} "
            f"with {error_count} error(s)"
        )


class ConsolidationStepFailedError(RunError):
    """A consolidation step failed and halted the run."""

    code: str = "CONSOLIDATION_STEP_FAILED"

    def __init__(self, run_id: str, step_type: str, message: str):
        self.run_id = run_id
        self.step_type = step_type
        self.message = message
        super().__init__(f"Step {step_type} failed in run {run_id}: {message}")


class ConsolidationRunCannotBeCancelledError(RunError):
    """Run is already in a terminal state."""

    code: str = "CONSOLIDATION_RUN_CANNOT_BE_CANCELLED"

    def __init__(self, run_id: str, status: str):
        self.run_id = run_id
        self.status = status
        super().__init__(f"Run {run_id} cannot be cancelled from status {status}")
