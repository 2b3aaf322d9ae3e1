"""
Interval - abstract integer ranges for loop bound analysis

A closed range [low, high] over the integers extended with -inf/+inf.
Finite endpoints are Python ints, infinite endpoints are float infinities,
so arithmetic is exact and never overflows. Undefined products such as
0 * inf are taken as 0.

    empty             unreachable code (bottom)
    [-inf, +inf]      nothing known (top)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple, Union, Optional
import math

Bound = Union[int, float]

NEG_INF: float = float('-inf')
POS_INF: float = float('inf')

# Shifts wider than this are treated as unbounded scaling
MAX_SHIFT = 64


# Representable ranges of the integral types a parse/cast can produce
TYPE_RANGES: Dict[str, Tuple[int, int]] = {
    'byte': (-2 ** 7, 2 ** 7 - 1),
    'short': (-2 ** 15, 2 ** 15 - 1),
    'char': (0, 2 ** 16 - 1),
    'int': (-2 ** 31, 2 ** 31 - 1),
    'long': (-2 ** 63, 2 ** 63 - 1),
}


def _normalize(value: Bound) -> Bound:
    if isinstance(value, float):
        if math.isnan(value):
            raise ValueError("interval bound cannot be NaN")
        if math.isinf(value):
            return value
        return int(value)
    return value


def _is_finite(value: Bound) -> bool:
    return not (isinstance(value, float) and math.isinf(value))


def _mul(x: Bound, y: Bound) -> Bound:
    if x == 0 or y == 0:
        return 0
    return x * y


def _trunc_div(x: int, y: int) -> int:
    """Integer division truncating toward zero (Java/C# semantics)"""
    q = abs(x) // abs(y)
    return q if (x >= 0) == (y > 0) else -q


def _shr(x: Bound, s: Bound) -> Bound:
    if not _is_finite(x):
        return x
    if not _is_finite(s) or s > MAX_SHIFT:
        return 0 if x >= 0 else -1
    return x >> int(s)


def _fmt(value: Bound) -> str:
    if value == POS_INF:
        return "+inf"
    if value == NEG_INF:
        return "-inf"
    return str(value)


@dataclass(frozen=True)
class Interval:
    """
    Closed integer interval with unbounded endpoints.

    Invariant: low <= high unless the interval is empty.
    """
    low: Bound
    high: Bound
    empty: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'low', _normalize(self.low))
        object.__setattr__(self, 'high', _normalize(self.high))
        if self.low == POS_INF or self.high == NEG_INF:
            raise ValueError(f"invalid interval endpoints {self.low}, {self.high}")
        if not self.empty and self.low > self.high:
            raise ValueError(f"interval low {self.low} exceeds high {self.high}")

    # ---- Constructors ----------------------------------------------------

    @classmethod
    def bottom(cls) -> Interval:
        """The empty interval (unreachable)"""
        return cls(0, 0, empty=True)

    @classmethod
    def top(cls) -> Interval:
        return cls(NEG_INF, POS_INF)

    @classmethod
    def const(cls, value: int) -> Interval:
        return cls(value, value)

    @classmethod
    def of_type(cls, type_name: str) -> Interval:
        """Full representable range of an integral type"""
        low, high = TYPE_RANGES[type_name]
        return cls(low, high)

    @classmethod
    def range(cls, low: Bound, high: Bound) -> Interval:
        """Closed interval, empty when low > high"""
        if low > high:
            return cls.bottom()
        return cls(low, high)

    # ---- Predicates ------------------------------------------------------

    @property
    def is_top(self) -> bool:
        return not self.empty and self.low == NEG_INF and self.high == POS_INF

    @property
    def is_constant(self) -> bool:
        return not self.empty and self.low == self.high

    @property
    def has_finite_high(self) -> bool:
        return not self.empty and _is_finite(self.high)

    @property
    def is_non_negative(self) -> bool:
        return not self.empty and self.low >= 0

    def contains(self, value: int) -> bool:
        if self.empty:
            return False
        return self.low <= value <= self.high

    def magnitude(self) -> Bound:
        """Largest absolute value in the interval"""
        return max(abs(self.low), abs(self.high))

    # ---- Lattice ---------------------------------------------------------

    def join(self, other: Interval) -> Interval:
        """[a,b] join [c,d] = [min(a,c), max(b,d)]"""
        if self.empty:
            return other
        if other.empty:
            return self
        return Interval(min(self.low, other.low), max(self.high, other.high))

    def meet(self, other: Interval) -> Interval:
        """[a,b] meet [c,d] = [max(a,c), min(b,d)]"""
        if self.empty or other.empty:
            return Interval.bottom()
        return Interval.range(max(self.low, other.low), min(self.high, other.high))

    # ---- Arithmetic ------------------------------------------------------

    def add(self, other: Interval) -> Interval:
        if self.empty or other.empty:
            return Interval.bottom()
        return Interval(self.low + other.low, self.high + other.high)

    def sub(self, other: Interval) -> Interval:
        if self.empty or other.empty:
            return Interval.bottom()
        return Interval(self.low - other.high, self.high - other.low)

    def mul(self, other: Interval) -> Interval:
        if self.empty or other.empty:
            return Interval.bottom()
        products = [
            _mul(self.low, other.low), _mul(self.low, other.high),
            _mul(self.high, other.low), _mul(self.high, other.high),
        ]
        return Interval(min(products), max(products))

    def div(self, other: Interval) -> Interval:
        """Truncating division; a divisor range containing zero yields top"""
        if self.empty or other.empty:
            return Interval.bottom()
        if other.contains(0):
            return Interval.top()

        endpoints = (self.low, self.high, other.low, other.high)
        if all(_is_finite(e) for e in endpoints):
            quotients = [
                _trunc_div(x, y)
                for x in (self.low, self.high)
                for y in (other.low, other.high)
            ]
            return Interval(min(quotients), max(quotients))

        # Unbounded operands: bound the magnitude and keep what is known of the sign
        smallest_divisor = min(abs(other.low), abs(other.high))
        largest = self.magnitude()
        bound = largest if not _is_finite(largest) else largest // smallest_divisor
        non_negative = (self.low >= 0 and other.low > 0) or (self.high <= 0 and other.high < 0)
        non_positive = (self.low >= 0 and other.high < 0) or (self.high <= 0 and other.low > 0)
        low = 0 if non_negative else -bound
        high = 0 if non_positive else bound
        return Interval(low, high)

    def mod(self, other: Interval) -> Interval:
        """
        Remainder.

        A constant divisor m bounds the result to [0, |m|-1] regardless of
        the dividend. Otherwise the divisor's own magnitude is used.
        """
        if self.empty or other.empty:
            return Interval.bottom()
        if other.is_constant:
            m = abs(other.low)
            if m == 0:
                return Interval.top()
            return Interval(0, m - 1)
        m_max = other.magnitude()
        if not _is_finite(m_max):
            return Interval.top()
        if m_max == 0:
            return Interval.top()
        return Interval(-m_max + 1, m_max - 1)

    def bit_and(self, other: Interval) -> Interval:
        """Bitwise AND; a non-negative constant mask clips to [0, mask]"""
        if self.empty or other.empty:
            return Interval.bottom()
        if other.is_constant and other.low >= 0:
            return Interval(0, other.low)
        if self.is_constant and self.low >= 0:
            return Interval(0, self.low)
        if self.is_non_negative and other.is_non_negative:
            return Interval(0, min(self.high, other.high))
        return Interval.top()

    def shift_right(self, amount: Interval) -> Interval:
        """Arithmetic shift right; narrows magnitude"""
        if self.empty or amount.empty:
            return Interval.bottom()
        if amount.low < 0:
            return Interval.top()
        lows = [_shr(self.low, amount.low), _shr(self.low, amount.high)]
        highs = [_shr(self.high, amount.low), _shr(self.high, amount.high)]
        return Interval(min(lows), max(highs))

    def shift_left(self, amount: Interval) -> Interval:
        if self.empty or amount.empty:
            return Interval.bottom()
        if amount.low < 0 or amount.low > MAX_SHIFT:
            return Interval.top()
        low_factor = 2 ** int(amount.low)
        high_factor = (
            2 ** int(amount.high)
            if _is_finite(amount.high) and amount.high <= MAX_SHIFT
            else POS_INF
        )
        return self.mul(Interval(low_factor, high_factor))

    def abs(self) -> Interval:
        """[0, max(|a|, |b|)]"""
        if self.empty:
            return self
        return Interval(0, self.magnitude())

    def minimum(self, other: Interval) -> Interval:
        if self.empty or other.empty:
            return Interval.bottom()
        return Interval(min(self.low, other.low), min(self.high, other.high))

    def maximum(self, other: Interval) -> Interval:
        if self.empty or other.empty:
            return Interval.bottom()
        return Interval(max(self.low, other.low), max(self.high, other.high))

    def clamp(self, low: Interval, high: Interval) -> Interval:
        """clamp(x, lo, hi) = min(max(x, lo), hi)"""
        return self.maximum(low).minimum(high)

    def __str__(self) -> str:
        if self.empty:
            return "empty"
        return f"[{_fmt(self.low)}, {_fmt(self.high)}]"


def work_product(intervals) -> Interval:
    """Total iteration count of nested loops with the given bounds."""
    result: Optional[Interval] = None
    for interval in intervals:
        if interval.empty:
            return Interval.bottom()
        # Loops with a non-positive bound do not iterate
        iterations = Interval(max(interval.low, 0), max(interval.high, 0))
        result = iterations if result is None else result.mul(iterations)
    return result if result is not None else Interval.const(0)
