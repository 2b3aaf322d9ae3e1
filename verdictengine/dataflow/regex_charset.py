"""
Regex character-class derivation

Computes, for a full-match validation pattern, the set of characters a
matching string can contain and its maximum length. The derivation is
conservative: any construct that can match an open-ended character set
('.', negated classes, \\S, backreferences, unknown escapes) makes the
alphabet unknown (None) rather than guessing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Set, Tuple
import string
import logging

logger = logging.getLogger(__name__)

WORD_CHARS = frozenset(string.ascii_letters + string.digits + "_")
SPACE_CHARS = frozenset(" \t\n\r\f\v")

ESCAPE_CLASSES = {
    'd': frozenset(string.digits),
    'w': WORD_CHARS,
    's': SPACE_CHARS,
}

ESCAPE_LITERALS = {
    't': '\t', 'n': '\n', 'r': '\r', 'f': '\f', 'v': '\v', 'e': '\x1b', 'a': '\x07',
}

# Java/POSIX property classes commonly used in validators
PROPERTY_CLASSES = {
    'Alpha': frozenset(string.ascii_letters),
    'Digit': frozenset(string.digits),
    'Alnum': frozenset(string.ascii_letters + string.digits),
    'XDigit': frozenset(string.hexdigits),
    'Lower': frozenset(string.ascii_lowercase),
    'Upper': frozenset(string.ascii_uppercase),
    'Punct': frozenset(string.punctuation),
    'Space': SPACE_CHARS,
    'Blank': frozenset(" \t"),
}

# Where a non-multiline '$' may stop short of the end of the value
LINE_TERMINATORS = frozenset("\n\r\u0085\u2028\u2029")

# Zero-width assertions
ANCHOR_ESCAPES = set('bBAzZG')


@dataclass(frozen=True)
class RegexCharset:
    """What a full match of a pattern can contain"""
    alphabet: Optional[FrozenSet[str]]
    max_length: Optional[int]


class _Unknown(Exception):
    """Construct whose character set cannot be bounded"""


class _PatternParser:
    """Recursive descent over the subset of regex syntax validators use"""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.pos = 0
        self.case_insensitive = False
        self.flags: Set[str] = set()
        self.depth = 0
        self.top_level_branches = 1

    def parse(self) -> Tuple[FrozenSet[str], Optional[int]]:
        chars, length = self._alternation()
        if self.pos != len(self.pattern):
            raise ValueError(f"unbalanced ')' at offset {self.pos} in {self.pattern!r}")
        if self.case_insensitive:
            chars = chars | frozenset(c.swapcase() for c in chars)
        return chars, length

    def _peek(self) -> Optional[str]:
        return self.pattern[self.pos] if self.pos < len(self.pattern) else None

    def _next(self) -> str:
        if self.pos >= len(self.pattern):
            raise ValueError(f"unexpected end of pattern {self.pattern!r}")
        char = self.pattern[self.pos]
        self.pos += 1
        return char

    def _alternation(self) -> Tuple[FrozenSet[str], Optional[int]]:
        chars, length = self._sequence()
        while self._peek() == '|':
            self.pos += 1
            if self.depth == 0:
                self.top_level_branches += 1
            more, more_length = self._sequence()
            chars = chars | more
            length = None if length is None or more_length is None else max(length, more_length)
        return chars, length

    def _sequence(self) -> Tuple[FrozenSet[str], Optional[int]]:
        chars: FrozenSet[str] = frozenset()
        length: Optional[int] = 0
        while self._peek() not in (None, '|', ')'):
            atom, atom_length = self._atom()
            _, high = self._quantifier()
            chars = chars | atom
            if length is not None:
                if high is None:
                    length = None if atom_length != 0 else length
                elif atom_length is None:
                    length = None if high > 0 else length
                else:
                    length += atom_length * high
        return chars, length

    def _quantifier(self) -> Tuple[int, Optional[int]]:
        char = self._peek()
        if char == '*':
            self.pos += 1
            bounds: Tuple[int, Optional[int]] = (0, None)
        elif char == '+':
            self.pos += 1
            bounds = (1, None)
        elif char == '?':
            self.pos += 1
            bounds = (0, 1)
        elif char == '{' and self._looks_like_repeat():
            self.pos += 1
            end = self.pattern.index('}', self.pos)
            body = self.pattern[self.pos:end]
            self.pos = end + 1
            if ',' in body:
                low_text, high_text = body.split(',', 1)
                bounds = (int(low_text or 0), int(high_text) if high_text.strip() else None)
            else:
                bounds = (int(body), int(body))
        else:
            return 1, 1
        # Lazy and possessive modifiers do not change what can match
        if self._peek() in ('?', '+'):
            self.pos += 1
        return bounds

    def _looks_like_repeat(self) -> bool:
        end = self.pattern.find('}', self.pos)
        if end == -1:
            return False
        body = self.pattern[self.pos + 1:end]
        return bool(body) and all(c.isdigit() or c == ',' for c in body)

    def _atom(self) -> Tuple[FrozenSet[str], Optional[int]]:
        char = self._next()
        if char == '(':
            return self._group()
        if char == '[':
            return self._char_class(), 1
        if char == '.':
            raise _Unknown("'.' matches any character")
        if char in '^$':
            return frozenset(), 0
        if char == '\\':
            return self._escape(in_class=False)
        return frozenset(char), 1

    def _group(self) -> Tuple[FrozenSet[str], Optional[int]]:
        self.depth += 1
        try:
            return self._group_body()
        finally:
            self.depth -= 1

    def _group_body(self) -> Tuple[FrozenSet[str], Optional[int]]:
        if self._peek() == '?':
            self.pos += 1
            marker = self._next()
            if marker in ('=', '!'):
                # Lookahead constrains but does not consume
                self._alternation()
                self._expect(')')
                return frozenset(), 0
            if marker == '<' and self._peek() in ('=', '!'):
                self.pos += 1
                self._alternation()
                self._expect(')')
                return frozenset(), 0
            if marker == 'P' and self._peek() == '=':
                raise _Unknown("named backreference")
            if marker == 'P' and self._peek() == '<':
                self.pos += 1
                marker = '<'
            if marker == '<':
                self.pos = self.pattern.index('>', self.pos) + 1
            elif marker != ':':
                flags = marker
                while self._peek() not in (')', ':', None):
                    flags += self._next()
                self.flags.update(flags.lstrip('-'))
                if 'x' in flags:
                    raise _Unknown("verbose patterns are not parsed")
                if 'i' in flags:
                    self.case_insensitive = True
                if self._next() == ')':
                    return frozenset(), 0
        chars, length = self._alternation()
        self._expect(')')
        return chars, length

    def _expect(self, char: str) -> None:
        if self._next() != char:
            raise ValueError(f"expected {char!r} at offset {self.pos - 1} in {self.pattern!r}")

    def _char_class(self) -> FrozenSet[str]:
        if self._peek() == '^':
            raise _Unknown("negated character class")
        chars = set()
        first = True
        while True:
            char = self._next()
            if char == ']' and not first:
                return frozenset(chars)
            first = False
            if char == '[':
                # Java class union such as [a-z[0-9]]
                chars |= self._char_class()
                continue
            if char == '\\':
                escaped, _ = self._escape(in_class=True)
                if len(escaped) != 1:
                    chars |= escaped
                    continue
                char = next(iter(escaped))
            if self._peek() == '-' and self.pos + 1 < len(self.pattern) and self.pattern[self.pos + 1] != ']':
                self.pos += 1
                end = self._next()
                if end == '\\':
                    escaped, _ = self._escape(in_class=True)
                    if len(escaped) != 1:
                        raise ValueError(f"bad range end in {self.pattern!r}")
                    end = next(iter(escaped))
                if ord(end) < ord(char):
                    raise ValueError(f"bad range {char}-{end} in {self.pattern!r}")
                chars |= {chr(c) for c in range(ord(char), ord(end) + 1)}
                continue
            chars.add(char)

    def _escape(self, in_class: bool) -> Tuple[FrozenSet[str], Optional[int]]:
        char = self._next()
        if char in ESCAPE_CLASSES:
            return ESCAPE_CLASSES[char], 1
        if char in 'DWSH' or char.isdigit() and char != '0':
            raise _Unknown(f"escape \\{char} is not bounded")
        if char in ESCAPE_LITERALS:
            return frozenset(ESCAPE_LITERALS[char]), 1
        if char in ANCHOR_ESCAPES and not in_class:
            return frozenset(), 0
        if char == 'p':
            self._expect('{')
            end = self.pattern.index('}', self.pos)
            name = self.pattern[self.pos:end]
            self.pos = end + 1
            if name.startswith('Is'):
                name = name[2:]
            if name not in PROPERTY_CLASSES:
                raise _Unknown(f"property class {name}")
            return PROPERTY_CLASSES[name], 1
        if char == 'x':
            code = self.pattern[self.pos:self.pos + 2]
            self.pos += 2
            return frozenset(chr(int(code, 16))), 1
        if char == 'u':
            code = self.pattern[self.pos:self.pos + 4]
            self.pos += 4
            return frozenset(chr(int(code, 16))), 1
        if char.isalnum():
            raise _Unknown(f"escape \\{char}")
        return frozenset(char), 1


def derive_charset(pattern: str, full_match: bool = True) -> RegexCharset:
    """
    Derive the character class and maximum length a pattern admits.

    Args:
        pattern: Validation regex (Java/Python syntax subset)
        full_match: Whether the validator requires the whole value to match
            (String.matches, re.fullmatch, or an anchored pattern)

    Returns:
        RegexCharset; alphabet is None when no bound can be proven

    Raises:
        ValueError: If the pattern is syntactically malformed
    """
    anchored = pattern.startswith('^') and pattern.endswith('$') and not pattern.endswith('\\$')
    if not (full_match or anchored):
        # A partial match says nothing about the remaining characters
        return RegexCharset(None, None)

    parser = _PatternParser(pattern)
    try:
        chars, length = parser.parse()
    except _Unknown as exc:
        logger.debug(f"Pattern {pattern!r} has unbounded charset: {exc}")
        return RegexCharset(None, None)
    except (IndexError, KeyError) as exc:
        raise ValueError(f"malformed pattern {pattern!r}: {exc}") from exc
    if full_match:
        return RegexCharset(chars, length)

    # A search anchored at both ends only pins the value when the anchors
    # frame one branch and keep their single-line meaning
    if parser.top_level_branches > 1 or parser.flags & {'m', 's'}:
        logger.debug(f"Pattern {pattern!r} does not anchor a partial match")
        return RegexCharset(None, None)
    return RegexCharset(chars | LINE_TERMINATORS, None if length is None else length + 2)
