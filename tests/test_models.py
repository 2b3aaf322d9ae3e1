"""Tests for verdictengine.models"""

import pytest
from verdictengine.models import (
    AxisVerdict, BatchResult, ClassifierConfig, Outcome, PolicyAxis,
    RationaleStep, SinkContext, Verdict, DEFAULT_SENSITIVE_CATEGORIES,
)


@pytest.fixture
def unsafe_verdict():
    return Verdict(
        path_id="xss-raw",
        outcome=Outcome.UNSAFE,
        context=SinkContext.HTML_BODY,
        rationale=(
            RationaleStep('source request.getParameter("q")', "Unconstrained", "untrusted input"),
            RationaleStep("sink html_body", "Unconstrained", "reaches html_body"),
        ),
        axes=(AxisVerdict(PolicyAxis.INJECTION, Outcome.UNSAFE, "unconstrained value reaches html_body"),),
        notes=("first note",),
    )


class TestOutcome:
    def test_priority_order(self):
        assert Outcome.UNSAFE.priority > Outcome.UNKNOWN.priority > Outcome.SAFE.priority

    def test_worst(self):
        assert Outcome.worst([Outcome.SAFE, Outcome.UNKNOWN]) is Outcome.UNKNOWN
        assert Outcome.worst([Outcome.UNKNOWN, Outcome.UNSAFE, Outcome.SAFE]) is Outcome.UNSAFE

    def test_worst_of_nothing_is_safe(self):
        assert Outcome.worst([]) is Outcome.SAFE

    def test_values(self):
        assert Outcome.SAFE.value == "safe"
        assert Outcome.UNSAFE.value == "unsafe"
        assert Outcome.UNKNOWN.value == "unknown"


class TestSinkContext:
    def test_only_loop_bound_is_numeric(self):
        assert [c for c in SinkContext if c.is_numeric] == [SinkContext.LOOP_BOUND]

    def test_lookup_by_value(self):
        assert SinkContext("script_string") is SinkContext.SCRIPT_STRING


class TestRationaleStep:
    def test_str(self):
        step = RationaleStep("mod (step 2)", "[0, 99]", "a % m")
        assert str(step) == "mod (step 2) -> [0, 99]: a % m"


class TestVerdict:
    def test_axis_lookup(self, unsafe_verdict):
        assert unsafe_verdict.axis(PolicyAxis.INJECTION).outcome is Outcome.UNSAFE
        assert unsafe_verdict.axis(PolicyAxis.DISCLOSURE) is None
        assert not unsafe_verdict.is_safe

    def test_explain(self, unsafe_verdict):
        text = unsafe_verdict.explain()
        lines = text.splitlines()
        assert lines[0] == "xss-raw [html_body] WHY UNSAFE:"
        assert lines[1] == "  injection: unsafe - unconstrained value reaches html_body"
        assert lines[2].startswith("  1. source")
        assert lines[-1] == "  note: first note"

    def test_explain_without_context(self):
        verdict = Verdict(path_id="p", outcome=Outcome.UNKNOWN, notes=("malformed path: x",))
        assert verdict.explain().splitlines()[0] == "p [none] WHY UNKNOWN:"

    def test_to_dict(self, unsafe_verdict):
        d = unsafe_verdict.to_dict()
        assert d["path_id"] == "xss-raw"
        assert d["outcome"] == "unsafe"
        assert d["context"] == "html_body"
        assert d["axes"] == [{"axis": "injection", "outcome": "unsafe",
                              "reason": "unconstrained value reaches html_body"}]
        assert d["rationale"][1] == {"operation": "sink html_body", "guarantee": "Unconstrained",
                                     "explanation": "reaches html_body"}
        assert d["notes"] == ["first note"]

    def test_equality_by_value(self, unsafe_verdict):
        copy = Verdict(**{f: getattr(unsafe_verdict, f) for f in (
            "path_id", "outcome", "context", "rationale", "axes", "notes")})
        assert copy == unsafe_verdict


class TestClassifierConfig:
    def test_defaults(self):
        config = ClassifierConfig()
        assert config.loop_ceiling is None
        assert config.sensitive_categories == DEFAULT_SENSITIVE_CATEGORIES
        assert config.max_workers == 4

    def test_to_dict(self):
        d = ClassifierConfig(loop_ceiling=10, sensitive_categories=frozenset({"ssn", "iban"})).to_dict()
        assert d["loop_ceiling"] == 10
        assert d["sensitive_categories"] == ["iban", "ssn"]


class TestBatchResult:
    def test_summary_and_outcome(self, unsafe_verdict):
        result = BatchResult(verdicts=[
            unsafe_verdict,
            Verdict(path_id="a", outcome=Outcome.SAFE),
            Verdict(path_id="b", outcome=Outcome.SAFE),
        ])
        assert result.summary == {"safe": 2, "unsafe": 1, "unknown": 0}
        assert result.outcome is Outcome.UNSAFE
        assert len(result) == 3
        assert [v.path_id for v in result] == ["xss-raw", "a", "b"]

    def test_empty(self):
        result = BatchResult()
        assert result.outcome is Outcome.SAFE
        assert result.summary == {"safe": 0, "unsafe": 0, "unknown": 0}

    def test_get_verdicts_by_outcome(self, unsafe_verdict):
        result = BatchResult(verdicts=[unsafe_verdict, Verdict(path_id="a", outcome=Outcome.SAFE)])
        assert result.get_verdicts_by_outcome(Outcome.UNSAFE) == [unsafe_verdict]
        assert result.get_verdicts_by_outcome(Outcome.UNKNOWN) == []

    def test_to_dict(self, unsafe_verdict):
        d = BatchResult(verdicts=[unsafe_verdict], sources=["paths.yaml"], errors=["x"]).to_dict()
        assert d["sources"] == ["paths.yaml"]
        assert d["summary"]["unsafe"] == 1
        assert d["verdicts"][0]["path_id"] == "xss-raw"
        assert d["errors"] == ["x"]
