"""
String Transforms - guarantees produced by encoders, validators and friends

Each builtin string transform declares the guarantee it establishes given
any input: encoders neutralize markup for their contexts, validators pin
the character class, conversions from numbers yield digit strings, and
masking or hashing removes the original characters altogether.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple, Union
import math
import logging

from .interval import Interval
from .guarantees import CharsetConstraint, EscapeContext, StringGuarantee
from .regex_charset import derive_charset
from .transforms import Domain, Transform, TransformKind, require_arg
from ..errors import MalformedPath

logger = logging.getLogger(__name__)

Value = Union[StringGuarantee, Interval]


# Digest sizes in bytes
DIGEST_SIZES = {
    'md5': 16,
    'sha1': 20,
    'sha224': 28,
    'sha256': 32,
    'sha384': 48,
    'sha512': 64,
}


def _scaled(length: Optional[int], factor: int) -> Optional[int]:
    return None if length is None else length * factor


def _base64_length(length: Optional[int]) -> Optional[int]:
    return None if length is None else 4 * math.ceil(length / 3)


def formatted_length(interval: Interval) -> Optional[int]:
    """Longest decimal rendering of any value in an interval"""
    if interval.empty:
        return 0
    if not interval.has_finite_high or interval.low == float('-inf'):
        return None
    return max(len(str(interval.low)), len(str(interval.high)))


def format_number(interval: Interval) -> StringGuarantee:
    """Guarantee of a number rendered as text (String.valueOf, toString)"""
    return StringGuarantee(CharsetConstraint.digits(), formatted_length(interval))


def as_guarantee(value: Value) -> StringGuarantee:
    """Coerce an operand to a string guarantee; numbers are formatted"""
    if isinstance(value, Interval):
        return format_number(value)
    return value


# ============================================================
# ENCODERS
# ============================================================

def _encoder(contexts, expansion: int):
    produced = CharsetConstraint.escaped(contexts)

    def apply(value: StringGuarantee, operands, args) -> StringGuarantee:
        return StringGuarantee(produced, _scaled(value.max_length, expansion))
    return apply


def _base64_encode(value: StringGuarantee, operands, args) -> StringGuarantee:
    return StringGuarantee(CharsetConstraint.base64(), _base64_length(value.max_length))


# ============================================================
# VALIDATORS
# ============================================================

def _regex_match(value: StringGuarantee, operands, args) -> StringGuarantee:
    pattern = require_arg(args, 'pattern', str)
    full_match = args.get('full_match', True)
    try:
        derived = derive_charset(pattern, full_match=bool(full_match))
    except ValueError as exc:
        raise MalformedPath(str(exc)) from exc

    if derived.alphabet is None and not value.is_unconstrained:
        # Nothing learned; the earlier guarantee still holds
        return value.with_max_length(derived.max_length)
    result = StringGuarantee(CharsetConstraint.fixed(derived.alphabet), value.max_length)
    return result.with_max_length(derived.max_length)


def _members(args: Mapping[str, Any]) -> Tuple[str, ...]:
    members = require_arg(args, 'members', (list, tuple, set, frozenset))
    if not members:
        raise MalformedPath("argument 'members' must not be empty")
    return tuple(str(m) for m in members)


def _allow_list(value: StringGuarantee, operands, args) -> StringGuarantee:
    return StringGuarantee.of_members(_members(args))


def _boolean_test(value: Any, operands, args) -> StringGuarantee:
    return StringGuarantee.of_members(("true", "false"))


# ============================================================
# CONVERSIONS
# ============================================================

def _to_string(value: Interval, operands, args) -> StringGuarantee:
    return format_number(value)


def _to_hex_string(value: Interval, operands, args) -> StringGuarantee:
    length = None
    if value.is_non_negative and value.has_finite_high:
        length = len(format(int(value.high), 'x'))
    elif not value.empty and value.low != float('-inf') and value.has_finite_high:
        # Negative values render in two's complement over the long width
        length = 16
    return StringGuarantee(CharsetConstraint.hex_digits(), length)


def _number_format(value: Value, operands, args) -> StringGuarantee:
    length = None
    if isinstance(value, Interval):
        digits = formatted_length(value)
        # Grouping separators add one character per three digits
        length = None if digits is None else digits + digits // 3
    return StringGuarantee(CharsetConstraint.digits(), length)


# ============================================================
# REDACTION
# ============================================================

def _mask(value: StringGuarantee, operands, args) -> StringGuarantee:
    visible = args.get('visible', 4)
    filler = args.get('filler', '*')
    if not isinstance(visible, int) or isinstance(visible, bool) or visible < 0:
        raise MalformedPath(f"argument 'visible' must be a non-negative int, got {visible!r}")
    if not isinstance(filler, str) or not filler:
        raise MalformedPath("argument 'filler' must be a non-empty string")

    if visible == 0:
        return StringGuarantee(CharsetConstraint.fixed(filler), value.max_length)
    retained_length = visible if value.max_length is None else min(visible, value.max_length)
    charset = CharsetConstraint.fixed(filler, retained=value.charset, retained_length=retained_length)
    return StringGuarantee(charset, value.max_length)


def _redact(value: StringGuarantee, operands, args) -> StringGuarantee:
    filler = args.get('filler', '*')
    if not isinstance(filler, str) or not filler:
        raise MalformedPath("argument 'filler' must be a non-empty string")
    length = value.max_length
    if 'length' in args:
        length = require_arg(args, 'length', int)
        if length < 0:
            raise MalformedPath(f"redaction length must be non-negative, got {length}")
    return StringGuarantee(CharsetConstraint.fixed(filler), length)


def _digest(value: StringGuarantee, operands, args) -> StringGuarantee:
    algorithm = str(args.get('algorithm', 'sha256')).lower().replace('-', '')
    encoding = args.get('encoding', 'hex')
    size = DIGEST_SIZES.get(algorithm)
    if encoding == 'hex':
        return StringGuarantee(CharsetConstraint.hex_digits(), _scaled(size, 2))
    if encoding == 'base64':
        return StringGuarantee(CharsetConstraint.base64(), _base64_length(size))
    raise MalformedPath(f"unsupported digest encoding '{encoding}'")


# ============================================================
# PASS-THROUGH (charset of the input survives)
# ============================================================

def _per_member(method: str):
    def apply(value: StringGuarantee, operands, args) -> StringGuarantee:
        if value.value_set is None:
            return value
        return StringGuarantee.of_members(getattr(v, method)() for v in value.value_set)
    return apply


def _substring(value: StringGuarantee, operands, args) -> StringGuarantee:
    begin = args.get('begin', 0)
    end = args.get('end')
    exact = (isinstance(begin, int) and begin >= 0
             and (end is None or isinstance(end, int) and end >= begin))
    if value.value_set is not None:
        if exact:
            return StringGuarantee.of_members(v[begin:end] for v in value.value_set)
        return _slice_of_members(value)
    if isinstance(end, int) and isinstance(begin, int):
        return value.with_max_length(max(end - begin, 0))
    return value


def _truncate(value: StringGuarantee, operands, args) -> StringGuarantee:
    limit = require_arg(args, 'max_length', int)
    if limit < 0:
        raise MalformedPath(f"truncate length must be non-negative, got {limit}")
    if value.value_set is not None:
        return StringGuarantee.of_members(v[:limit] for v in value.value_set)
    return value.with_max_length(limit)


def _slice_of_members(value: StringGuarantee) -> StringGuarantee:
    # Pieces of enumerated values are no longer members
    return StringGuarantee(CharsetConstraint.fixed(value.charset.known_alphabet()), value.max_length)


def _concat(value: StringGuarantee, operands: Tuple[Value, ...], args) -> StringGuarantee:
    result = value
    for operand in operands:
        result = result.concat(as_guarantee(operand))
    return result


def _replace(value: StringGuarantee, operands, args) -> StringGuarantee:
    target = args.get('target')
    replacement = args.get('replacement')
    if not isinstance(target, str) or not isinstance(replacement, str):
        return StringGuarantee(CharsetConstraint.unconstrained(), None)
    if value.value_set is not None:
        return StringGuarantee.of_members(v.replace(target, replacement) for v in value.value_set)

    # The replacement text may bring characters the input never had
    charset = value.charset.join(CharsetConstraint.fixed(replacement)) if replacement else value.charset
    if len(replacement) <= len(target):
        return StringGuarantee(charset, value.max_length)
    if not target:
        return StringGuarantee(charset, None)
    return StringGuarantee(charset, _scaled(value.max_length, len(replacement)))


def _choose(value: Value, operands: Tuple[Value, ...], args) -> StringGuarantee:
    if not operands:
        raise MalformedPath("choose needs at least one operand")
    candidates = [as_guarantee(o) for o in operands]
    if args.get('condition_only'):
        result, rest = candidates[0], candidates[1:]
    else:
        result, rest = as_guarantee(value), candidates
    for candidate in rest:
        result = result.join(candidate)
    return result


def _string(name: str, fn, description: str, **kwargs) -> Transform:
    return Transform(name=name, domain=Domain.STRING, apply=fn, description=description, **kwargs)


_HTML = (EscapeContext.HTML, EscapeContext.HTML_ATTRIBUTE)
_PASS = TransformKind.PASS_THROUGH

STRING_TRANSFORMS = [
    # ----- Context encoders -----
    _string('html-escape', _encoder(_HTML, 6),
            "ESAPI encodeForHTML, StringEscapeUtils.escapeHtml4, HttpUtility.HtmlEncode"),
    _string('html-attribute-escape', _encoder(_HTML, 6),
            "ESAPI encodeForHTMLAttribute, HttpUtility.HtmlAttributeEncode"),
    _string('xml-escape', _encoder(_HTML, 6), "StringEscapeUtils.escapeXml11"),
    _string('js-escape', _encoder((EscapeContext.SCRIPT,), 6),
            "ESAPI encodeForJavaScript, StringEscapeUtils.escapeEcmaScript"),
    _string('json-escape', _encoder((EscapeContext.SCRIPT,), 6), "JSON string literal encoding"),
    _string('url-encode', _encoder((EscapeContext.URL, EscapeContext.HTML,
                                    EscapeContext.HTML_ATTRIBUTE, EscapeContext.SCRIPT), 9),
            "URLEncoder.encode, Uri.EscapeDataString"),
    _string('css-escape', _encoder((EscapeContext.CSS,), 8), "ESAPI encodeForCSS"),
    _string('base64-encode', _base64_encode, "Base64 encoder (reversible)"),

    # ----- Validators -----
    _string('regex-match', _regex_match, "String.matches / Pattern.matcher().matches()",
            kind=TransformKind.VALIDATOR, conditional=True),
    _string('allow-list', _allow_list, "Membership test against a constant set",
            kind=TransformKind.VALIDATOR, conditional=True),
    _string('enum-value', _allow_list, "Enum.valueOf: throws on anything but a member",
            kind=TransformKind.VALIDATOR),
    _string('boolean-test', _boolean_test, "Boolean.parseBoolean, String.valueOf(x.equals(y))",
            kind=TransformKind.CONVERSION, input_domain=Domain.ANY, redacts=True),

    # ----- Conversions -----
    _string('to-string', _to_string, "String.valueOf(int), Integer.toString",
            kind=TransformKind.CONVERSION, input_domain=Domain.NUMERIC),
    _string('to-hex-string', _to_hex_string, "Integer.toHexString",
            kind=TransformKind.CONVERSION, input_domain=Domain.NUMERIC),
    _string('number-format', _number_format, "NumberFormat.format, String.format(\"%d\")",
            kind=TransformKind.CONVERSION, input_domain=Domain.ANY),

    # ----- Redaction -----
    _string('mask', _mask, "Keep the last N characters, replace the rest with a filler",
            kind=TransformKind.REDACTION),
    _string('redact', _redact, "Replace the whole value with a constant filler",
            kind=TransformKind.REDACTION),
    _string('digest', _digest, "MessageDigest / SHA256.ComputeHash rendered as text",
            redacts=True),

    # ----- Pass-through -----
    _string('trim', _per_member('strip'), "String.trim", kind=_PASS),
    _string('lower', _per_member('lower'), "String.toLowerCase", kind=_PASS),
    _string('upper', _per_member('upper'), "String.toUpperCase", kind=_PASS),
    _string('substring', _substring, "String.substring(begin, end)", kind=_PASS),
    _string('truncate', _truncate, "Length-limiting substring(0, n)", kind=_PASS),
    _string('concat', _concat, "String concatenation", kind=_PASS),
    _string('append', _concat, "StringBuilder.append", kind=_PASS),
    _string('replace', _replace, "String.replace", kind=_PASS, rewrites=True),

    # ----- Control flow -----
    _string('choose', _choose, "cond ? a : b over strings, join of the branches",
            input_domain=Domain.ANY),
]
