"""
Money Module

Exact fixed-point money for ledger balances and loan math. NEVER uses float
for monetary values. Stored amounts carry 2 fractional digits; intermediate
results keep the full Decimal working precision until they are rounded with
banker's rounding at a storage point.
"""

from decimal import (
    Decimal, ROUND_HALF_EVEN, Inexact, InvalidOperation, Rounded, getcontext, localcontext
)
from dataclasses import dataclass
from typing import Union
import re

# Working precision for intermediate results (wider than display scale)
getcontext().prec = 28

CURRENCY_SCALE = 2

Number = Union["Money", Decimal, int, str]


def _to_decimal(value) -> Decimal:
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Money does not accept {type(value).__name__} values")
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation:
            raise ValueError(f"Cannot convert {value!r} to Decimal")
    raise TypeError(f"Unsupported operand type {type(value).__name__}")


@dataclass(frozen=True)
class Money:
    """
    Immutable exact money value.

    The amount is kept as given (no implicit rounding), so division and
    exponentiation do not lose digits; call round_half_even() at the point
    where a value is stored or shown.
    """
    amount: Decimal

    def __post_init__(self):
        amount = _to_decimal(self.amount)
        if not amount.is_finite():
            raise ValueError("Money amount must be a finite number")
        object.__setattr__(self, 'amount', amount)

    @classmethod
    def zero(cls) -> 'Money':
        return cls(Decimal('0.00'))

    @classmethod
    def of(cls, value: Number) -> 'Money':
        """Build Money from a Decimal, int, numeric string or Money"""
        if isinstance(value, Money):
            return value
        return cls(_to_decimal(value))

    def __add__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def add_exact(self, other: 'Money') -> 'Money':
        """
        Add without any rounding at the working precision.

        Raises decimal.Inexact or decimal.Rounded when the sum needs more
        digits than the context precision holds.
        """
        with localcontext() as ctx:
            ctx.traps[Inexact] = True
            ctx.traps[Rounded] = True
            return Money(self.amount + other.amount)

    def __sub__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __mul__(self, multiplier: Number) -> 'Money':
        return Money(self.amount * _to_decimal(multiplier))

    __rmul__ = __mul__

    def __truediv__(self, divisor: Number) -> 'Money':
        divisor = _to_decimal(divisor)
        if divisor == 0:
            raise ZeroDivisionError("Cannot divide money by zero")
        return Money(self.amount / divisor)

    def __pow__(self, exponent: int) -> 'Money':
        if not isinstance(exponent, int) or isinstance(exponent, bool):
            raise TypeError("Money exponent must be an integer")
        return Money(self.amount ** exponent)

    def __neg__(self) -> 'Money':
        return Money(-self.amount)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount

    def __hash__(self) -> int:
        return hash(self.amount)

    def __lt__(self, other: 'Money') -> bool:
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def round_half_even(self, scale: int = CURRENCY_SCALE) -> 'Money':
        """Round to `scale` fractional digits using banker's rounding"""
        return Money(self.amount.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_EVEN))

    def fits_scale(self, scale: int = CURRENCY_SCALE) -> bool:
        """True when the amount has no digits beyond `scale` fractional places"""
        return self.round_half_even(scale).amount == self.amount

    def to_string(self) -> str:
        """Format for display"""
        return f"{self.round_half_even().amount:,.{CURRENCY_SCALE}f}"

    def __str__(self) -> str:
        return str(self.round_half_even().amount)


# Optional sign and currency symbol around a plain, grouped or comma-decimal number
_AMOUNT_PATTERN = re.compile(
    r'^(?P<sign>[+-]?)\s*[$€£₽]?\s*'
    r'(?P<number>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?|\d+,\d{1,2})'
    r'\s*[$€£₽]?$'
)


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Accepts an optional sign, one leading or trailing currency symbol,
    thousands commas ("1,234.56") and a decimal comma with one or two
    fractional digits ("12,5"). Anything else, exponents included, is
    rejected.

    Args:
        value: String representation of number

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    match = _AMOUNT_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    number = match.group('number')
    if '.' in number or number.count(',') != 1 or len(number.split(',')[1]) == 3:
        number = number.replace(',', '')
    else:
        number = number.replace(',', '.')

    return Decimal(match.group('sign') + number)
