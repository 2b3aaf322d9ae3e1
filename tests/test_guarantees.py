"""Tests for verdictengine.dataflow.guarantees"""

import pytest
from verdictengine.dataflow.guarantees import (
    CharsetConstraint, CharsetKind, EscapeContext, StringGuarantee,
    alphabet_safe_for, DIGIT_ALPHABET,
)


HTML = EscapeContext.HTML
ATTR = EscapeContext.HTML_ATTRIBUTE
SCRIPT = EscapeContext.SCRIPT
URL = EscapeContext.URL
CSS = EscapeContext.CSS


class TestAlphabetSafety:
    def test_markup_controls_unsafe_in_html(self):
        for char in '<>&"\'':
            assert not alphabet_safe_for(HTML, char)

    def test_alphanumerics_safe_everywhere(self):
        for context in EscapeContext:
            assert alphabet_safe_for(context, "abcXYZ019")

    def test_backtick_unsafe_only_in_attribute(self):
        assert alphabet_safe_for(HTML, "`")
        assert not alphabet_safe_for(ATTR, "`")

    def test_script_rejects_backslash_and_newline(self):
        assert not alphabet_safe_for(SCRIPT, "\\")
        assert not alphabet_safe_for(SCRIPT, "\n")

    def test_url_is_an_allow_list(self):
        assert alphabet_safe_for(URL, "abc-_.~")
        assert not alphabet_safe_for(URL, "a b")
        assert not alphabet_safe_for(URL, "/")

    def test_css_rejects_parentheses(self):
        assert not alphabet_safe_for(CSS, "url(")


class TestCharsetConstraint:
    def test_unconstrained_is_never_safe(self):
        c = CharsetConstraint.unconstrained()
        assert not any(c.is_safe_for(ctx) for ctx in EscapeContext)

    def test_escaped_is_context_specific(self):
        c = CharsetConstraint.escaped([HTML, ATTR])
        assert c.is_safe_for(HTML)
        assert c.is_safe_for(ATTR)
        assert not c.is_safe_for(SCRIPT)

    def test_numeric_and_enum_safe_everywhere(self):
        for c in (CharsetConstraint.digits(), CharsetConstraint.hex_digits(),
                  CharsetConstraint.enum(["a<b"])):
            assert all(c.is_safe_for(ctx) for ctx in EscapeContext)

    def test_base64_unsafe_in_url(self):
        c = CharsetConstraint.base64()
        assert c.is_safe_for(HTML)
        assert not c.is_safe_for(URL)

    def test_fixed_format_checks_alphabet(self):
        assert CharsetConstraint.fixed("abc123").is_safe_for(HTML)
        assert not CharsetConstraint.fixed("ab<").is_safe_for(HTML)

    def test_fixed_format_unknown_alphabet_unsafe(self):
        assert not CharsetConstraint.fixed(None).is_safe_for(HTML)

    def test_fixed_format_retained_must_be_safe(self):
        masked = CharsetConstraint.fixed("*", retained=CharsetConstraint.unconstrained(),
                                         retained_length=4)
        assert not masked.is_safe_for(HTML)
        masked_digits = CharsetConstraint.fixed("*", retained=CharsetConstraint.digits(),
                                                retained_length=4)
        assert masked_digits.is_safe_for(HTML)

    def test_known_alphabet(self):
        assert CharsetConstraint.digits().known_alphabet() == DIGIT_ALPHABET
        assert CharsetConstraint.enum(["ab", "c"]).known_alphabet() == frozenset("abc")
        assert CharsetConstraint.unconstrained().known_alphabet() is None

    def test_join_with_unconstrained(self):
        joined = CharsetConstraint.digits().join(CharsetConstraint.unconstrained())
        assert joined.is_unconstrained

    def test_join_escaped_keeps_common_contexts(self):
        a = CharsetConstraint.escaped([HTML, ATTR])
        b = CharsetConstraint.escaped([HTML, SCRIPT])
        assert a.join(b).escaped_for == frozenset([HTML])

    def test_join_escaped_with_digits(self):
        joined = CharsetConstraint.escaped([HTML]).join(CharsetConstraint.digits())
        assert joined.kind is CharsetKind.EXCLUDES_MARKUP_CONTROLS
        assert joined.is_safe_for(HTML)

    def test_join_enums(self):
        joined = CharsetConstraint.enum(["a"]).join(CharsetConstraint.enum(["b"]))
        assert joined.members == frozenset(["a", "b"])

    def test_join_digits_and_hex_is_fixed(self):
        joined = CharsetConstraint.digits().join(CharsetConstraint.hex_digits())
        assert joined.kind is CharsetKind.FIXED_FORMAT
        assert joined.is_safe_for(HTML)

    def test_str(self):
        assert str(CharsetConstraint.escaped([HTML])) == "ExcludesMarkupControls(html)"
        assert str(CharsetConstraint.unconstrained()) == "Unconstrained"


class TestStringGuarantee:
    def test_default_is_unconstrained(self):
        assert StringGuarantee().is_unconstrained

    def test_literal(self):
        g = StringGuarantee.of_literal("abc")
        assert g.max_length == 3
        assert g.value_set == frozenset(["abc"])

    def test_with_max_length_never_widens(self):
        g = StringGuarantee(CharsetConstraint.digits(), 5)
        assert g.with_max_length(10).max_length == 5
        assert g.with_max_length(3).max_length == 3
        assert g.with_max_length(None) is g

    def test_concat_lengths_add(self):
        g = StringGuarantee(CharsetConstraint.digits(), 5).concat(StringGuarantee.of_literal("ab"))
        assert g.max_length == 7

    def test_concat_value_sets(self):
        g = StringGuarantee.of_members(["a", "b"]).concat(StringGuarantee.of_literal("!"))
        assert g.value_set == frozenset(["a!", "b!"])
        assert g.charset.kind is CharsetKind.ENUM_MEMBER

    def test_concat_enum_without_values_becomes_fixed(self):
        enum = StringGuarantee(CharsetConstraint.enum(["ab"]), 2)
        g = enum.concat(StringGuarantee(CharsetConstraint.enum(["c"]), 1))
        assert g.charset.kind is CharsetKind.FIXED_FORMAT
        assert g.charset.alphabet == frozenset("abc")

    def test_join(self):
        g = StringGuarantee.of_literal("abc").join(StringGuarantee.of_literal("de"))
        assert g.max_length == 3
        assert g.value_set == frozenset(["abc", "de"])

    def test_str_includes_length(self):
        g = StringGuarantee(CharsetConstraint.escaped([HTML]), 20)
        assert str(g) == "ExcludesMarkupControls(html) max_length=20"

    @pytest.mark.parametrize("context", list(EscapeContext))
    def test_unconstrained_unsafe_for_every_context(self, context):
        assert not StringGuarantee.unconstrained().charset.is_safe_for(context)
