"""
Values -- Immutable, self-validating monetary and percentage value objects.

Responsibility:
    Provides MonetaryAmount (an exact decimal bound to an ISO 4217 currency)
    and Percentage (a decimal bounded to [0, 100]).  Every consolidation
    computation -- translation, matching variances, eliminations, NCI --
    flows through these two types.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine and module.  No outward dependencies except
    consolidation_kernel.domain.currency and consolidation_kernel.exceptions.

Invariants enforced:
    - Amounts are Decimal, never float; floats are rejected at construction.
    - Amounts carry at least four fractional digits internally so that
      chained rate multiplications never lose precision silently.
    - Two-operand operations require identical currencies.
    - Percentage values lie in the closed range [0, 100].

Failure modes:
    - InvalidAmountError on float, NaN, infinity or unparseable input.
    - InvalidCurrencyError on an unknown currency code.
    - CurrencyMismatchError{expected, actual} when currencies differ.
    - DivisionByZeroError when dividing by zero.
    - InvalidPercentageError when a percentage is outside [0, 100].

Audit relevance:
    Equality is exact decimal equality (scale-insensitive), so 100 and
    100.0000 compare equal while 100.00 and 100.01 never do.  Rounding is
    explicit and always half away from zero.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import ClassVar

from consolidation_kernel.domain.currency import CurrencyRegistry
from consolidation_kernel.exceptions import (
    CurrencyMismatchError,
    DivisionByZeroError,
    InvalidAmountError,
    InvalidPercentageError,
)

MIN_SCALE = 4
_MIN_QUANTUM = Decimal(1).scaleb(-MIN_SCALE)
_HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert a value to Decimal without passing through binary floating point.

    Raises:
        InvalidAmountError: If value is a float, bool, or not a finite number.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, "float and bool values are not accepted")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise InvalidAmountError(value, "not a decimal number") from e
    if not result.is_finite():
        raise InvalidAmountError(value, "amount must be finite")
    return result


def _ensure_min_scale(value: Decimal) -> Decimal:
    if value.as_tuple().exponent > -MIN_SCALE:
        return value.quantize(_MIN_QUANTUM)
    return value


@dataclass(frozen=True, slots=True)
class MonetaryAmount:
    """
    Exact decimal amount bound to a currency.

    Contract:
        Pairs a Decimal with an ISO 4217 code; the two are never separated.
        Construction normalizes the amount to at least four fractional
        digits and uppercases the currency.

    Guarantees:
        - Immutable and hashable.
        - add/subtract/compare/max/min raise CurrencyMismatchError when the
          currencies differ; multiply and round never fail.
        - Equality ignores scale: 100 == 100.0000.

    Non-goals:
        - Does NOT convert between currencies (translation engine does).
        - Does NOT auto-round; callers call round() explicitly.
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _ensure_min_scale(to_decimal(self.amount)))
        object.__setattr__(self, "currency", CurrencyRegistry.validate(self.currency))

    @classmethod
    def of(cls, amount: Decimal | int | str, currency: str) -> MonetaryAmount:
        """Factory for creating an amount from a Decimal, int or numeric string."""
        return cls(amount=to_decimal(amount), currency=currency)

    @classmethod
    def from_string(cls, value: str, currency: str) -> MonetaryAmount:
        """
        Parse an amount from its string form.

        Raises:
            InvalidAmountError: If the string is not a decimal number.
        """
        return cls.of(value, currency)

    @classmethod
    def zero(cls, currency: str) -> MonetaryAmount:
        """Create a zero amount in the given currency."""
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def sum(cls, amounts: Iterable[MonetaryAmount], currency: str) -> MonetaryAmount:
        """
        Fold amounts into a zero-seeded total in ``currency``.

        Raises:
            CurrencyMismatchError: If any amount is in another currency.
        """
        total = cls.zero(currency)
        for item in amounts:
            total = total.add(item)
        return total

    # -- predicates -------------------------------------------------------

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    # -- arithmetic -------------------------------------------------------

    def _require_same_currency(self, other: MonetaryAmount) -> None:
        if not isinstance(other, MonetaryAmount):
            raise TypeError(f"Expected MonetaryAmount, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(expected=self.currency, actual=other.currency)

    def add(self, other: MonetaryAmount) -> MonetaryAmount:
        self._require_same_currency(other)
        return MonetaryAmount(self.amount + other.amount, self.currency)

    def subtract(self, other: MonetaryAmount) -> MonetaryAmount:
        self._require_same_currency(other)
        return MonetaryAmount(self.amount - other.amount, self.currency)

    def multiply(self, factor: Decimal | int | str) -> MonetaryAmount:
        """Multiply by a scalar (exchange rate, ownership ratio, ...)."""
        return MonetaryAmount(self.amount * to_decimal(factor), self.currency)

    def divide(self, divisor: Decimal | int | str) -> MonetaryAmount:
        """
        Divide by a scalar.

        Raises:
            DivisionByZeroError: If divisor is zero.
        """
        value = to_decimal(divisor)
        if value == 0:
            raise DivisionByZeroError(dividend=str(self.amount), currency=self.currency)
        return MonetaryAmount(self.amount / value, self.currency)

    def negate(self) -> MonetaryAmount:
        return MonetaryAmount(-self.amount, self.currency)

    def abs(self) -> MonetaryAmount:
        return MonetaryAmount(abs(self.amount), self.currency)

    def round(self, scale: int = 2) -> MonetaryAmount:
        """Round half away from zero to ``scale`` fractional digits."""
        quantum = Decimal(1).scaleb(-scale)
        return MonetaryAmount(self.amount.quantize(quantum, rounding=ROUND_HALF_UP), self.currency)

    # -- comparison -------------------------------------------------------

    def compare(self, other: MonetaryAmount) -> int:
        """Return -1, 0 or 1."""
        self._require_same_currency(other)
        if self.amount < other.amount:
            return -1
        if self.amount > other.amount:
            return 1
        return 0

    def equals(self, other: MonetaryAmount) -> bool:
        return self.compare(other) == 0

    def greater_than(self, other: MonetaryAmount) -> bool:
        return self.compare(other) > 0

    def less_than(self, other: MonetaryAmount) -> bool:
        return self.compare(other) < 0

    def greater_than_or_equal(self, other: MonetaryAmount) -> bool:
        return self.compare(other) >= 0

    def less_than_or_equal(self, other: MonetaryAmount) -> bool:
        return self.compare(other) <= 0

    def max(self, other: MonetaryAmount) -> MonetaryAmount:
        return self if self.compare(other) >= 0 else other

    def min(self, other: MonetaryAmount) -> MonetaryAmount:
        return self if self.compare(other) <= 0 else other

    # -- operators --------------------------------------------------------

    def __add__(self, other: MonetaryAmount) -> MonetaryAmount:
        return self.add(other)

    def __sub__(self, other: MonetaryAmount) -> MonetaryAmount:
        return self.subtract(other)

    def __mul__(self, factor: Decimal | int) -> MonetaryAmount:
        return self.multiply(factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Decimal | int) -> MonetaryAmount:
        return self.divide(divisor)

    def __neg__(self) -> MonetaryAmount:
        return self.negate()

    def __abs__(self) -> MonetaryAmount:
        return self.abs()

    def __lt__(self, other: MonetaryAmount) -> bool:
        return self.less_than(other)

    def __le__(self, other: MonetaryAmount) -> bool:
        return self.less_than_or_equal(other)

    def __gt__(self, other: MonetaryAmount) -> bool:
        return self.greater_than(other)

    def __ge__(self, other: MonetaryAmount) -> bool:
        return self.greater_than_or_equal(other)

    # -- presentation -----------------------------------------------------

    def format(self) -> str:
        """Amount as a plain string with trailing zeros removed."""
        normalized = self.amount.normalize()
        if normalized == 0:
            return "0"
        return f"{normalized:f}"

    def __str__(self) -> str:
        return f"{self.format()} {self.currency}"

    def __repr__(self) -> str:
        return f"MonetaryAmount({self.amount!s}, {self.currency!r})"


@dataclass(frozen=True, slots=True, order=True)
class Percentage:
    """
    Decimal percentage constrained to the closed range [0, 100].

    Used for ownership stakes and non-controlling interest shares.
    ``complement`` gives 100 - p; ``to_decimal`` gives p / 100.
    """

    ZERO: ClassVar[Percentage]
    TWENTY: ClassVar[Percentage]
    FIFTY: ClassVar[Percentage]
    HUNDRED: ClassVar[Percentage]

    value: Decimal

    def __post_init__(self) -> None:
        try:
            value = to_decimal(self.value)
        except InvalidAmountError as e:
            raise InvalidPercentageError(self.value) from e
        if value < 0 or value > _HUNDRED:
            raise InvalidPercentageError(self.value)
        object.__setattr__(self, "value", value)

    @classmethod
    def of(cls, value: Decimal | int | str) -> Percentage:
        return cls(to_decimal(value))

    @classmethod
    def from_decimal(cls, ratio: Decimal | int | str) -> Percentage:
        """Build from a ratio in [0, 1]; 0.25 becomes 25%."""
        return cls(to_decimal(ratio) * _HUNDRED)

    def to_decimal(self) -> Decimal:
        return self.value / _HUNDRED

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    @property
    def is_full(self) -> bool:
        return self.value == _HUNDRED

    def complement(self) -> Percentage:
        return Percentage(_HUNDRED - self.value)

    def format(self) -> str:
        normalized = self.value.normalize()
        text = "0" if normalized == 0 else f"{normalized:f}"
        return f"{text}%"

    def __str__(self) -> str:
        return self.format()


Percentage.ZERO = Percentage(Decimal("0"))
Percentage.TWENTY = Percentage(Decimal("20"))
Percentage.FIFTY = Percentage(Decimal("50"))
Percentage.HUNDRED = Percentage(Decimal("100"))
