"""
Numeric Transforms - interval semantics of integer operators

Each builtin numeric operator maps the running interval plus its operand
intervals to a result interval. Operators that appear in the loop
condition fixtures (modulo, masking, min/clamp, enum ordinals, range
guards, parsing) are the ones that decide whether a loop bound is finite.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple
import string
import logging

from .interval import Interval, TYPE_RANGES
from .guarantees import StringGuarantee
from .transforms import (
    Domain, Transform, TransformKind, require_arg, require_operands,
)
from ..errors import MalformedPath

logger = logging.getLogger(__name__)

_DIGITS = frozenset(string.digits)
_SIGNED_DIGITS = frozenset(string.digits + "-+")


def _type_arg(args: Mapping[str, Any], default: str = 'int') -> str:
    type_name = args.get('type', default)
    if type_name not in TYPE_RANGES:
        raise MalformedPath(f"unknown integral type '{type_name}'")
    return type_name


def interval_from_guarantee(value: StringGuarantee) -> Optional[Interval]:
    """
    Numeric range implied by a string guarantee, if any.

    A value validated against ^\\d{1,3}$ can only parse to [0, 999]; an
    enumerated value set parses to the hull of its members.
    """
    if value.value_set:
        try:
            numbers = [int(v) for v in value.value_set]
        except ValueError:
            numbers = []
        if numbers and len(numbers) == len(value.value_set):
            return Interval(min(numbers), max(numbers))

    alphabet = value.charset.known_alphabet()
    if alphabet is None or value.max_length is None:
        return None
    length = value.max_length
    if alphabet <= _DIGITS:
        return Interval(0, 10 ** length - 1)
    if alphabet <= _SIGNED_DIGITS and length >= 1:
        return Interval(-(10 ** (length - 1) - 1), 10 ** length - 1)
    return None


# ============================================================
# TRANSFORM FUNCTIONS
# ============================================================

def _parse_int(value: StringGuarantee, operands, args) -> Interval:
    full = Interval.of_type(_type_arg(args))
    narrowed = interval_from_guarantee(value)
    if narrowed is None:
        return full
    return full.meet(narrowed)


def _length(value: StringGuarantee, operands, args) -> Interval:
    if value.max_length is None:
        return Interval(0, float('inf'))
    return Interval(0, value.max_length)


def _binary(name: str, method: str):
    def apply(value: Interval, operands: Tuple[Interval, ...], args) -> Interval:
        (other,) = require_operands(name, operands, 1)
        return getattr(value, method)(other)
    return apply


def _fold(name: str, method: str):
    def apply(value: Interval, operands: Tuple[Interval, ...], args) -> Interval:
        if not operands:
            raise MalformedPath(f"{name} needs at least one operand")
        result = value
        for operand in operands:
            result = getattr(result, method)(operand)
        return result
    return apply


def _clamp(value: Interval, operands: Tuple[Interval, ...], args) -> Interval:
    low, high = require_operands('clamp', operands, 2)
    return value.clamp(low, high)


def _ternary(value: Interval, operands: Tuple[Interval, ...], args) -> Interval:
    if not operands:
        raise MalformedPath("ternary needs at least one operand")
    # condition_only: the traced value decides the branch but flows into neither
    result = Interval.bottom() if args.get('condition_only') else value
    for operand in operands:
        result = result.join(operand)
    return result


def _abs(value: Interval, operands, args) -> Interval:
    return value.abs()


def _negate(value: Interval, operands, args) -> Interval:
    return Interval.const(0).sub(value)


def _cast(value: Interval, operands, args) -> Interval:
    target = Interval.of_type(_type_arg(args))
    if value.empty or (target.low <= value.low and value.high <= target.high):
        return value
    # Narrowing conversion wraps around
    return target


def _enum_ordinal(value: Any, operands, args) -> Interval:
    arity = require_arg(args, 'arity', int)
    if arity < 1:
        raise MalformedPath(f"enum arity must be positive, got {arity}")
    return Interval(0, arity - 1)


def _guard_max(value: Interval, operands, args) -> Interval:
    return value.meet(Interval(float('-inf'), require_arg(args, 'value', int)))


def _guard_min(value: Interval, operands, args) -> Interval:
    return value.meet(Interval(require_arg(args, 'value', int), float('inf')))


def _guard_range(value: Interval, operands, args) -> Interval:
    low = require_arg(args, 'low', int)
    high = require_arg(args, 'high', int)
    return value.meet(Interval.range(low, high))


def _numeric(name: str, fn, description: str, **kwargs) -> Transform:
    kwargs.setdefault('kind', TransformKind.NUMERIC)
    return Transform(name=name, domain=Domain.NUMERIC, apply=fn, description=description, **kwargs)


NUMERIC_TRANSFORMS = [
    # ----- Conversions into the numeric domain -----
    _numeric('parse-int', _parse_int,
             "Integer.parseInt/valueOf, int.Parse, NumberFormat.parse: full type range",
             kind=TransformKind.CONVERSION, input_domain=Domain.STRING),
    _numeric('length', _length, "String length: [0, max_length]",
             kind=TransformKind.CONVERSION, input_domain=Domain.STRING, redacts=True),
    _numeric('enum-ordinal', _enum_ordinal, "Enum ordinal access: [0, N-1]",
             input_domain=Domain.ANY),

    # ----- Arithmetic -----
    _numeric('add', _binary('add', 'add'), "a + b"),
    _numeric('sub', _binary('sub', 'sub'), "a - b"),
    _numeric('mul', _binary('mul', 'mul'), "a * b"),
    _numeric('div', _binary('div', 'div'), "truncating a / b"),
    _numeric('mod', _binary('mod', 'mod'), "a % m: [0, m-1] for a constant m"),
    _numeric('and', _binary('and', 'bit_and'), "a & mask: [0, mask]"),
    _numeric('shr', _binary('shr', 'shift_right'), "a >> s"),
    _numeric('shl', _binary('shl', 'shift_left'), "a << s"),
    _numeric('abs', _abs, "Math.abs: [0, max(|a|, |b|)]"),
    _numeric('neg', _negate, "unary minus"),
    _numeric('cast', _cast, "narrowing cast to an integral type"),

    # ----- Bounding idioms -----
    _numeric('min', _fold('min', 'minimum'), "Math.min"),
    _numeric('max', _fold('max', 'maximum'), "Math.max"),
    _numeric('clamp', _clamp, "clamp(x, lo, hi) = min(max(x, lo), hi)"),
    _numeric('ternary', _ternary, "cond ? x : y, join of the branches"),

    # ----- Branch guards (hold only where the comparison passed) -----
    _numeric('guard-max', _guard_max, "if (x <= K)",
             kind=TransformKind.VALIDATOR, conditional=True),
    _numeric('guard-min', _guard_min, "if (x >= K)",
             kind=TransformKind.VALIDATOR, conditional=True),
    _numeric('guard-range', _guard_range, "if (lo <= x && x <= hi)",
             kind=TransformKind.VALIDATOR, conditional=True),
]
