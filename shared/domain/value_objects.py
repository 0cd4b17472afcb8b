"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency, convertible to Stripe cents
- TimeRange: Represents an appointment window (start inclusive, end exclusive)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator

from shared.domain.base import ValueObject

CENT = Decimal('0.01')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a non-negative monetary amount with currency.
    Immutable and supports arithmetic operations.
    """
    amount: Decimal
    currency: str = 'USD'

    def __post_init__(self):
        # Validation
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if self.currency not in ['USD', 'CAD', 'EUR', 'GBP']:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def from_cents(cls, cents: int, currency: str = 'USD') -> 'Money':
        """Build money from an integer amount of minor units"""
        return cls(Decimal(cents) / 100, currency)

    @property
    def cents(self) -> int:
        """Amount in minor units, rounded half up (what Stripe expects)"""
        return int((self.amount * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    def quantized(self) -> 'Money':
        return Money(self.amount.quantize(CENT, rounding=ROUND_HALF_UP), self.currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        """Subtract two money objects, flooring at zero"""
        if not isinstance(other, Money):
            raise TypeError("Can only subtract Money from Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract different currencies: {self.currency} and {other.currency}")
        return Money(max(self.amount - other.amount, Decimal('0')), self.currency)

    def __mul__(self, factor) -> 'Money':
        """Multiply money by a factor"""
        if not isinstance(factor, (int, float, Decimal)):
            raise TypeError("Can only multiply Money by number")
        return Money(self.amount * Decimal(str(factor)), self.currency)

    def __lt__(self, other: 'Money') -> bool:
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        return self.amount <= other.amount

    def __str__(self):
        return f"${self.amount:,.2f}" if self.currency == 'USD' else f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class TimeRange(ValueObject):
    """
    Time range value object

    Represents a window from start (inclusive) to end (exclusive).
    Used for appointment slots, partial time off and opening hours.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        # Validation
        if self.start >= self.end:
            raise ValueError(f"Start ({self.start}) must be before end ({self.end})")

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> 'TimeRange':
        return cls(start, start + timedelta(minutes=minutes))

    def overlaps_with(self, other: 'TimeRange') -> bool:
        """
        Check if this range overlaps with another

        Note: end is exclusive, so back-to-back appointments don't overlap.

        Examples:
            - 10:00-11:00 overlaps with 10:30-11:30 -> True
            - 10:00-11:00 overlaps with 11:00-12:00 -> False (adjacent)
        """
        if not isinstance(other, TimeRange):
            raise TypeError("Can only check overlap with another TimeRange")

        # Overlap formula: start1 < end2 AND end1 > start2
        return self.start < other.end and self.end > other.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def slots(self, step_minutes: int = 30) -> Iterator[datetime]:
        """Yield slot start times inside the range, every ``step_minutes``"""
        current = self.start
        step = timedelta(minutes=step_minutes)
        while current < self.end:
            yield current
            current += step

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def __str__(self):
        return f"{self.start.strftime('%Y-%m-%d %H:%M')} - {self.end.strftime('%H:%M')}"

    def __repr__(self):
        return f"TimeRange({self.start}, {self.end})"
