"""Tests for the transform registry and the builtin transforms"""

import pytest
from verdictengine.dataflow.guarantees import (
    DIGIT_ALPHABET, CharsetConstraint, CharsetKind, EscapeContext, StringGuarantee,
)
from verdictengine.dataflow.interval import Interval, POS_INF
from verdictengine.dataflow.transforms import (
    Domain, Transform, TransformKind, TransformRegistry,
    default_registry, register_transform, require_arg,
)
from verdictengine.dataflow.numeric_ops import interval_from_guarantee
from verdictengine.dataflow.sanitizers import format_number
from verdictengine.errors import ConfigurationError, MalformedPath, UnrecognizedOperator


def apply(registry, name, input_value, *operands, **args):
    return registry.get(name).apply(input_value, tuple(operands), args)


UNCONSTRAINED = StringGuarantee.unconstrained()


class TestRegistry:
    def test_builtins_loaded(self, registry):
        for name in ("html-escape", "regex-match", "mask", "mod", "parse-int", "truncate"):
            assert name in registry

    def test_unknown_lookup_raises(self, registry):
        with pytest.raises(UnrecognizedOperator) as exc_info:
            registry.get("frobnicate")
        assert exc_info.value.name == "frobnicate"
        assert "Unknown operator" in str(exc_info.value)

    def test_register_custom(self, registry):
        registry.register(Transform("safe-id", Domain.STRING,
                                    lambda v, o, a: StringGuarantee(CharsetConstraint.digits(), 8)))
        assert "safe-id" in registry

    def test_duplicate_rejected(self, registry):
        with pytest.raises(ConfigurationError):
            registry.register(registry.get("html-escape"))

    def test_replace_allowed(self, registry):
        registry.register(registry.get("html-escape"), replace=True)

    def test_register_after_freeze_rejected(self, registry):
        registry.freeze()
        assert registry.frozen
        with pytest.raises(ConfigurationError):
            registry.register(Transform("late", Domain.STRING, lambda v, o, a: v))

    def test_empty_registry_cannot_freeze(self):
        with pytest.raises(ConfigurationError):
            TransformRegistry().freeze()

    def test_alias(self, registry):
        alias = registry.alias("encodeForHTML", "html-escape")
        assert alias.apply is registry.get("html-escape").apply
        assert "encodeForHTML" in registry

    def test_alias_unknown_target(self, registry):
        with pytest.raises(ConfigurationError):
            registry.alias("x", "no-such-transform")

    def test_filter_by_kind(self, registry):
        validators = registry.transforms(kind=TransformKind.VALIDATOR)
        names = [t.name for t in validators]
        assert "regex-match" in names
        assert "guard-max" in names
        assert "html-escape" not in names

    def test_filter_by_domain(self, registry):
        assert all(t.domain is Domain.NUMERIC for t in registry.transforms(domain=Domain.NUMERIC))


class TestDefaultRegistry:
    def test_is_shared(self):
        assert default_registry() is default_registry()

    def test_register_transform(self):
        register_transform("ledger-id", Domain.STRING,
                           lambda v, o, a: StringGuarantee(CharsetConstraint.digits(), 10),
                           description="Ledger identifiers")
        assert "ledger-id" in default_registry()

    def test_register_after_freeze(self):
        default_registry().freeze()
        with pytest.raises(ConfigurationError):
            register_transform("late", Domain.STRING, lambda v, o, a: v)


class TestRequireArg:
    def test_missing(self):
        with pytest.raises(MalformedPath):
            require_arg({}, "pattern", str)

    def test_bool_is_not_int(self):
        with pytest.raises(MalformedPath):
            require_arg({"value": True}, "value", int)

    def test_tuple_of_kinds(self):
        with pytest.raises(MalformedPath) as exc_info:
            require_arg({"members": "abc"}, "members", (list, tuple))
        assert "list/tuple" in str(exc_info.value)


class TestNumericTransforms:
    def test_parse_int_full_range(self, registry):
        assert apply(registry, "parse-int", UNCONSTRAINED, type="short") == Interval.of_type("short")

    def test_parse_int_narrowed_by_validated_digits(self, registry):
        validated = StringGuarantee(CharsetConstraint.fixed("0123456789"), 3)
        assert apply(registry, "parse-int", validated) == Interval(0, 999)

    def test_parse_int_of_enum_values(self, registry):
        g = StringGuarantee.of_members(["10", "20", "50"])
        assert apply(registry, "parse-int", g) == Interval(10, 50)

    def test_parse_int_unknown_type(self, registry):
        with pytest.raises(MalformedPath):
            apply(registry, "parse-int", UNCONSTRAINED, type="bigint")

    def test_interval_from_signed_digits(self):
        g = StringGuarantee(CharsetConstraint.fixed("-0123456789"), 3)
        assert interval_from_guarantee(g) == Interval(-99, 999)

    def test_mod(self, registry):
        assert apply(registry, "mod", Interval.top(), Interval.const(100)) == Interval(0, 99)

    def test_binary_arity(self, registry):
        with pytest.raises(MalformedPath):
            apply(registry, "add", Interval.top())

    def test_min_folds_operands(self, registry):
        result = apply(registry, "min", Interval.top(), Interval.const(50), Interval.const(25))
        assert result.high == 25

    def test_clamp(self, registry):
        result = apply(registry, "clamp", Interval.top(), Interval.const(0), Interval.const(25))
        assert result == Interval(0, 25)

    def test_ternary_joins(self, registry):
        result = apply(registry, "ternary", Interval.const(5), Interval.const(10))
        assert result == Interval(5, 10)

    def test_ternary_condition_only(self, registry):
        result = apply(registry, "ternary", Interval.top(), Interval.const(1),
                       Interval.const(10), condition_only=True)
        assert result == Interval(1, 10)

    def test_enum_ordinal(self, registry):
        assert apply(registry, "enum-ordinal", UNCONSTRAINED, arity=7) == Interval(0, 6)

    def test_length(self, registry):
        assert apply(registry, "length", StringGuarantee(CharsetConstraint.digits(), 12)) == Interval(0, 12)
        assert apply(registry, "length", UNCONSTRAINED) == Interval(0, POS_INF)

    def test_cast_wraps_when_out_of_range(self, registry):
        assert apply(registry, "cast", Interval(0, 1000), type="byte") == Interval.of_type("byte")
        assert apply(registry, "cast", Interval(0, 100), type="byte") == Interval(0, 100)

    def test_guards(self, registry):
        assert apply(registry, "guard-max", Interval.top(), value=100).high == 100
        assert apply(registry, "guard-min", Interval.top(), value=1).low == 1
        assert apply(registry, "guard-range", Interval.top(), low=1, high=9) == Interval(1, 9)

    def test_guards_are_conditional(self, registry):
        assert registry.get("guard-max").conditional
        assert not registry.get("min").conditional


class TestStringTransforms:
    def test_html_escape(self, registry):
        g = apply(registry, "html-escape", UNCONSTRAINED)
        assert g.charset.kind is CharsetKind.EXCLUDES_MARKUP_CONTROLS
        assert g.charset.is_safe_for(EscapeContext.HTML)
        assert not g.charset.is_safe_for(EscapeContext.SCRIPT)

    def test_encoding_grows_length(self, registry):
        g = apply(registry, "html-escape", StringGuarantee(CharsetConstraint.unconstrained(), 10))
        assert g.max_length == 60

    def test_js_escape_context(self, registry):
        g = apply(registry, "js-escape", UNCONSTRAINED)
        assert g.charset.escaped_for == frozenset([EscapeContext.SCRIPT])

    def test_regex_match(self, registry):
        g = apply(registry, "regex-match", UNCONSTRAINED, pattern=r"[a-z]{1,8}")
        assert g.charset.kind is CharsetKind.FIXED_FORMAT
        assert g.max_length == 8
        assert g.charset.is_safe_for(EscapeContext.HTML)

    def test_regex_match_unbounded_pattern(self, registry):
        g = apply(registry, "regex-match", UNCONSTRAINED, pattern=r".*")
        assert g.charset.kind is CharsetKind.FIXED_FORMAT
        assert g.charset.alphabet is None

    def test_regex_match_keeps_earlier_guarantee(self, registry):
        escaped = StringGuarantee(CharsetConstraint.escaped([EscapeContext.HTML]), 30)
        g = apply(registry, "regex-match", escaped, pattern=r".*")
        assert g.charset == escaped.charset
        assert g.max_length == 30

    def test_regex_match_malformed(self, registry):
        with pytest.raises(MalformedPath):
            apply(registry, "regex-match", UNCONSTRAINED, pattern=r"[z-a]")

    def test_allow_list(self, registry):
        g = apply(registry, "allow-list", UNCONSTRAINED, members=["red", "green"])
        assert g.value_set == frozenset(["red", "green"])
        assert g.max_length == 5

    def test_allow_list_needs_members(self, registry):
        with pytest.raises(MalformedPath):
            apply(registry, "allow-list", UNCONSTRAINED, members=[])

    def test_enum_value_is_unconditional(self, registry):
        assert not registry.get("enum-value").conditional

    def test_boolean_test(self, registry):
        g = apply(registry, "boolean-test", UNCONSTRAINED)
        assert g.value_set == frozenset(["true", "false"])
        assert registry.get("boolean-test").removes_content

    def test_to_string(self, registry):
        g = apply(registry, "to-string", Interval(-5, 100))
        assert g.charset.kind is CharsetKind.DIGITS_ONLY
        assert g.max_length == 3

    def test_format_number_unbounded(self):
        assert format_number(Interval(0, POS_INF)).max_length is None

    def test_to_hex_string(self, registry):
        g = apply(registry, "to-hex-string", Interval(0, 255))
        assert g.charset.kind is CharsetKind.HEX_DIGITS_ONLY
        assert g.max_length == 2

    def test_mask_retains_input_charset(self, registry):
        g = apply(registry, "mask", UNCONSTRAINED, visible=4, filler="*")
        assert g.charset.kind is CharsetKind.FIXED_FORMAT
        assert g.charset.retained.is_unconstrained
        assert g.charset.retained_length == 4
        assert not g.charset.is_safe_for(EscapeContext.HTML)

    def test_mask_of_digits_is_safe(self, registry):
        g = apply(registry, "mask", StringGuarantee(CharsetConstraint.digits(), 9), visible=4)
        assert g.charset.is_safe_for(EscapeContext.HTML)

    def test_mask_everything(self, registry):
        g = apply(registry, "mask", UNCONSTRAINED, visible=0)
        assert g.charset.retained is None
        assert g.charset.is_safe_for(EscapeContext.HTML)

    def test_mask_rejects_negative_visible(self, registry):
        with pytest.raises(MalformedPath):
            apply(registry, "mask", UNCONSTRAINED, visible=-1)

    def test_redact(self, registry):
        g = apply(registry, "redact", UNCONSTRAINED, filler="#", length=8)
        assert g.charset.alphabet == frozenset("#")
        assert g.max_length == 8

    def test_redact_keeps_input_length(self, registry):
        g = apply(registry, "redact", StringGuarantee(CharsetConstraint.digits(), 11))
        assert g.max_length == 11

    @pytest.mark.parametrize("length", ["8", -1, True])
    def test_redact_rejects_bad_length(self, registry, length):
        with pytest.raises(MalformedPath):
            apply(registry, "redact", UNCONSTRAINED, length=length)

    def test_digest_hex(self, registry):
        g = apply(registry, "digest", UNCONSTRAINED, algorithm="SHA-256", encoding="hex")
        assert g.charset.kind is CharsetKind.HEX_DIGITS_ONLY
        assert g.max_length == 64

    def test_digest_base64(self, registry):
        g = apply(registry, "digest", UNCONSTRAINED, algorithm="sha256", encoding="base64")
        assert g.charset.kind is CharsetKind.BASE64_ALPHABET
        assert g.max_length == 44

    def test_digest_bad_encoding(self, registry):
        with pytest.raises(MalformedPath):
            apply(registry, "digest", UNCONSTRAINED, encoding="rot13")

    def test_truncate(self, registry):
        g = apply(registry, "truncate", UNCONSTRAINED, max_length=20)
        assert g.max_length == 20
        assert registry.get("truncate").is_pass_through

    def test_substring(self, registry):
        g = apply(registry, "substring", UNCONSTRAINED, begin=2, end=6)
        assert g.max_length == 4

    def test_concat_numeric_operand(self, registry):
        g = apply(registry, "concat", StringGuarantee.of_literal("id="), Interval(0, 999))
        assert g.max_length == 6

    def test_replace_longer_replacement(self, registry):
        g = apply(registry, "replace", StringGuarantee(CharsetConstraint.digits(), 4),
                  target=",", replacement="&#44;")
        assert g.max_length == 20
        assert g.charset.kind is CharsetKind.FIXED_FORMAT
        assert g.charset.known_alphabet() == DIGIT_ALPHABET | frozenset("&#;")

    def test_replace_can_reintroduce_markup(self, registry):
        escaped = apply(registry, "html-escape", UNCONSTRAINED)
        g = apply(registry, "replace", escaped, target="&lt;", replacement="<")
        assert not g.charset.is_safe_for(EscapeContext.HTML)
        assert registry.get("replace").rewrites

    def test_replace_with_harmless_text_keeps_escaping(self, registry):
        escaped = apply(registry, "html-escape", UNCONSTRAINED)
        g = apply(registry, "replace", escaped, target=" ", replacement="_")
        assert g.charset.is_safe_for(EscapeContext.HTML)

    def test_replace_rewrites_enumerated_values(self, registry):
        g = apply(registry, "replace", StringGuarantee.of_members(["10", "20"]),
                  target="1", replacement="9")
        assert g.value_set == frozenset(["90", "20"])

    def test_replace_with_dynamic_text(self, registry):
        g = apply(registry, "replace", StringGuarantee(CharsetConstraint.digits(), 4),
                  target=",", replacement=None)
        assert g.is_unconstrained

    def test_truncate_enumerated_values(self, registry):
        g = apply(registry, "truncate", StringGuarantee.of_members(["-50", "7"]), max_length=2)
        assert g.value_set == frozenset(["-5", "7"])

    def test_substring_enumerated_values(self, registry):
        g = apply(registry, "substring", StringGuarantee.of_members(["-50", "17"]), begin=1)
        assert g.value_set == frozenset(["50", "7"])

    def test_substring_with_dynamic_bounds_drops_members(self, registry):
        g = apply(registry, "substring", StringGuarantee.of_members(["ab", "cd"]), begin="i")
        assert g.value_set is None
        assert g.charset.known_alphabet() == frozenset("abcd")

    def test_case_mapping_rewrites_members(self, registry):
        g = apply(registry, "lower", StringGuarantee.of_members(["ASC", "DESC"]))
        assert g.value_set == frozenset(["asc", "desc"])
        assert apply(registry, "trim", StringGuarantee.of_members([" 7 "])).value_set == frozenset(["7"])

    def test_choose(self, registry):
        g = apply(registry, "choose", StringGuarantee.of_literal("yes"),
                  StringGuarantee.of_literal("no"))
        assert g.value_set == frozenset(["yes", "no"])
