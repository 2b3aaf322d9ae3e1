"""
String Guarantees - machine-checkable constraints on string contents

A StringGuarantee bounds what a traced string can contain: its character
set, its length, and optionally the finite set of values it can take.
Guarantees are produced by transforms and checked by the sink classifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Optional, Iterable
import string


class CharsetKind(Enum):
    """Character set constraint established on a string"""
    UNCONSTRAINED = "Unconstrained"
    EXCLUDES_MARKUP_CONTROLS = "ExcludesMarkupControls"
    DIGITS_ONLY = "DigitsOnly"
    HEX_DIGITS_ONLY = "HexDigitsOnly"
    BASE64_ALPHABET = "Base64Alphabet"
    FIXED_FORMAT = "FixedFormat"
    ENUM_MEMBER = "EnumMember"


class EscapeContext(Enum):
    """Output contexts an encoder can neutralize a value for"""
    HTML = "html"
    HTML_ATTRIBUTE = "html_attribute"
    SCRIPT = "script"
    URL = "url"
    CSS = "css"


# ============================================================
# ALPHABETS
# ============================================================

MARKUP_CONTROLS = frozenset('<>&"\'')

# Output of integer/decimal formatters: digits, sign, decimal point, grouping
DIGIT_ALPHABET = frozenset(string.digits + "-+.,")
HEX_ALPHABET = frozenset(string.hexdigits)
BASE64_CHARS = frozenset(string.ascii_letters + string.digits + "+/=-_")

# Characters that break out of each context when left unescaped
CONTEXT_DENYLIST = {
    EscapeContext.HTML: MARKUP_CONTROLS,
    EscapeContext.HTML_ATTRIBUTE: MARKUP_CONTROLS | frozenset('`'),
    EscapeContext.SCRIPT: frozenset('"\'\\\n\r<>`\u2028\u2029'),
}

# Contexts where only an allow-list of characters is inert
CONTEXT_ALLOWLIST = {
    EscapeContext.URL: frozenset(string.ascii_letters + string.digits + "-._~%+,"),
    EscapeContext.CSS: frozenset(string.ascii_letters + string.digits + " #-_.%,+"),
}


def alphabet_safe_for(context: EscapeContext, alphabet: Iterable[str]) -> bool:
    """Check whether every character of an alphabet is inert in a context"""
    chars = frozenset(alphabet)
    if context in CONTEXT_ALLOWLIST:
        return chars <= CONTEXT_ALLOWLIST[context]
    return not (chars & CONTEXT_DENYLIST[context])


@dataclass(frozen=True)
class CharsetConstraint:
    """
    Character set constraint.

    Only the fields relevant to the kind are populated:
    - EXCLUDES_MARKUP_CONTROLS: escaped_for
    - FIXED_FORMAT: alphabet (None when it could not be derived),
      retained/retained_length for characters kept from the input
    - ENUM_MEMBER: members
    """
    kind: CharsetKind
    escaped_for: FrozenSet[EscapeContext] = frozenset()
    alphabet: Optional[FrozenSet[str]] = None
    members: FrozenSet[str] = frozenset()
    retained: Optional[CharsetConstraint] = None
    retained_length: Optional[int] = None

    @classmethod
    def unconstrained(cls) -> CharsetConstraint:
        return cls(CharsetKind.UNCONSTRAINED)

    @classmethod
    def escaped(cls, contexts: Iterable[EscapeContext]) -> CharsetConstraint:
        return cls(CharsetKind.EXCLUDES_MARKUP_CONTROLS, escaped_for=frozenset(contexts))

    @classmethod
    def digits(cls) -> CharsetConstraint:
        return cls(CharsetKind.DIGITS_ONLY)

    @classmethod
    def hex_digits(cls) -> CharsetConstraint:
        return cls(CharsetKind.HEX_DIGITS_ONLY)

    @classmethod
    def base64(cls) -> CharsetConstraint:
        return cls(CharsetKind.BASE64_ALPHABET)

    @classmethod
    def fixed(cls, alphabet: Optional[Iterable[str]],
              retained: Optional[CharsetConstraint] = None,
              retained_length: Optional[int] = None) -> CharsetConstraint:
        return cls(
            CharsetKind.FIXED_FORMAT,
            alphabet=frozenset(alphabet) if alphabet is not None else None,
            retained=retained,
            retained_length=retained_length,
        )

    @classmethod
    def enum(cls, members: Iterable[str]) -> CharsetConstraint:
        return cls(CharsetKind.ENUM_MEMBER, members=frozenset(members))

    @property
    def is_unconstrained(self) -> bool:
        return self.kind is CharsetKind.UNCONSTRAINED

    def known_alphabet(self) -> Optional[FrozenSet[str]]:
        """All characters the value can contain, or None if not a finite set"""
        if self.kind is CharsetKind.DIGITS_ONLY:
            return DIGIT_ALPHABET
        if self.kind is CharsetKind.HEX_DIGITS_ONLY:
            return HEX_ALPHABET
        if self.kind is CharsetKind.BASE64_ALPHABET:
            return BASE64_CHARS
        if self.kind is CharsetKind.ENUM_MEMBER:
            return frozenset(''.join(self.members))
        if self.kind is CharsetKind.FIXED_FORMAT:
            if self.alphabet is None:
                return None
            if self.retained is None:
                return self.alphabet
            retained = self.retained.known_alphabet()
            return None if retained is None else self.alphabet | retained
        return None

    def is_safe_for(self, context: EscapeContext) -> bool:
        """Check whether the constraint neutralizes a value for a context"""
        if self.kind is CharsetKind.UNCONSTRAINED:
            return False
        if self.kind is CharsetKind.EXCLUDES_MARKUP_CONTROLS:
            return context in self.escaped_for
        if self.kind in (CharsetKind.DIGITS_ONLY, CharsetKind.HEX_DIGITS_ONLY,
                         CharsetKind.ENUM_MEMBER):
            return True
        if self.kind is CharsetKind.BASE64_ALPHABET:
            return alphabet_safe_for(context, BASE64_CHARS)
        # FIXED_FORMAT: own alphabet plus whatever survived from the input
        if self.alphabet is None or not alphabet_safe_for(context, self.alphabet):
            return False
        return self.retained is None or self.retained.is_safe_for(context)

    def join(self, other: CharsetConstraint) -> CharsetConstraint:
        """
        Least constraint covering both operands.

        Used when two tainted strings are concatenated or when either of
        two strings may flow on (ternary).
        """
        if self.is_unconstrained or other.is_unconstrained:
            return CharsetConstraint.unconstrained()
        if self == other:
            return self
        if self.kind is CharsetKind.ENUM_MEMBER and other.kind is CharsetKind.ENUM_MEMBER:
            return CharsetConstraint.enum(self.members | other.members)

        escaped = [c for c in (self, other) if c.kind is CharsetKind.EXCLUDES_MARKUP_CONTROLS]
        if len(escaped) == 2:
            return CharsetConstraint.escaped(self.escaped_for & other.escaped_for)
        if len(escaped) == 1:
            plain = other if escaped[0] is self else self
            contexts = [ctx for ctx in escaped[0].escaped_for if plain.is_safe_for(ctx)]
            return CharsetConstraint.escaped(contexts)

        left, right = self.known_alphabet(), other.known_alphabet()
        if left is None or right is None:
            return CharsetConstraint.fixed(None)
        return CharsetConstraint.fixed(left | right)

    def __str__(self) -> str:
        if self.kind is CharsetKind.EXCLUDES_MARKUP_CONTROLS:
            contexts = ",".join(sorted(c.value for c in self.escaped_for))
            return f"{self.kind.value}({contexts})"
        if self.kind is CharsetKind.ENUM_MEMBER:
            return f"{self.kind.value}({len(self.members)} values)"
        if self.kind is CharsetKind.FIXED_FORMAT:
            alphabet = "?" if self.alphabet is None else "".join(sorted(self.alphabet))
            text = f"{self.kind.value}[{alphabet!r}]"
            if self.retained is not None:
                text += f"+retained({self.retained_length}:{self.retained})"
            return text
        return self.kind.value


# Cap on enumerated value sets kept through concatenation
MAX_VALUE_SET = 256


@dataclass(frozen=True)
class StringGuarantee:
    """Guarantee established on a string value"""
    charset: CharsetConstraint = field(default_factory=CharsetConstraint.unconstrained)
    max_length: Optional[int] = None
    value_set: Optional[FrozenSet[str]] = None

    @classmethod
    def unconstrained(cls) -> StringGuarantee:
        return cls(CharsetConstraint.unconstrained())

    @classmethod
    def of_literal(cls, text: str) -> StringGuarantee:
        """Guarantee of a compile-time constant string"""
        return cls(CharsetConstraint.enum([text]), len(text), frozenset([text]))

    @classmethod
    def of_members(cls, members: Iterable[str]) -> StringGuarantee:
        values = frozenset(members)
        longest = max((len(v) for v in values), default=0)
        return cls(CharsetConstraint.enum(values), longest, values)

    @property
    def is_unconstrained(self) -> bool:
        return self.charset.is_unconstrained

    def with_max_length(self, length: Optional[int]) -> StringGuarantee:
        """Intersect with a length constraint (never widens)"""
        if length is None:
            return self
        if self.max_length is not None:
            length = min(self.max_length, length)
        return replace(self, max_length=length)

    def concat(self, other: StringGuarantee) -> StringGuarantee:
        """Guarantee of self + other"""
        length = None
        if self.max_length is not None and other.max_length is not None:
            length = self.max_length + other.max_length
        values = None
        if (self.value_set is not None and other.value_set is not None
                and len(self.value_set) * len(other.value_set) <= MAX_VALUE_SET):
            values = frozenset(a + b for a in self.value_set for b in other.value_set)
        charset = self.charset.join(other.charset)
        if values is not None:
            charset = CharsetConstraint.enum(values)
        elif charset.kind is CharsetKind.ENUM_MEMBER:
            # Concatenations of members are no longer members
            charset = CharsetConstraint.fixed(charset.known_alphabet())
        return StringGuarantee(charset, length, values)

    def join(self, other: StringGuarantee) -> StringGuarantee:
        """Guarantee of a value that is either self or other"""
        length = None
        if self.max_length is not None and other.max_length is not None:
            length = max(self.max_length, other.max_length)
        values = None
        if self.value_set is not None and other.value_set is not None:
            values = self.value_set | other.value_set
        return StringGuarantee(self.charset.join(other.charset), length, values)

    def __str__(self) -> str:
        text = str(self.charset)
        if self.max_length is not None:
            text += f" max_length={self.max_length}"
        return text
