"""Tests for verdictengine.reporters"""

import json
import pytest
from verdictengine.models import AxisVerdict, BatchResult, Outcome, PolicyAxis, SinkContext, Verdict
from verdictengine.reporters import ConsoleReporter, JSONReporter, get_reporter


@pytest.fixture
def batch_result():
    return BatchResult(
        verdicts=[
            Verdict(path_id="xss-raw", outcome=Outcome.UNSAFE, context=SinkContext.HTML_BODY,
                    axes=(AxisVerdict(PolicyAxis.INJECTION, Outcome.UNSAFE, "unconstrained"),)),
            Verdict(path_id="loop-modulo", outcome=Outcome.SAFE, context=SinkContext.LOOP_BOUND,
                    axes=(AxisVerdict(PolicyAxis.RESOURCE, Outcome.SAFE, "provably bounded"),)),
            Verdict(path_id="helper", outcome=Outcome.UNKNOWN, notes=("malformed path: x",)),
        ],
        sources=["paths.yaml"],
        duration_seconds=0.5,
        errors=["missing.yaml: not found"],
    )


class TestConsoleReporter:
    def test_report_contents(self, batch_result, capsys):
        content = ConsoleReporter(use_colors=False).report(batch_result)
        assert "TAINT-FLOW VERDICTS" in content
        assert "Paths classified: 3" in content
        assert "UNSAFE: 1" in content
        assert "xss-raw [html_body] WHY UNSAFE:" in content
        assert "helper [none] WHY UNKNOWN:" in content
        assert "missing.yaml: not found" in content
        assert "TAINT-FLOW VERDICTS" in capsys.readouterr().out

    def test_safe_verdicts_are_brief(self, batch_result):
        content = ConsoleReporter(use_colors=False).report(batch_result)
        assert "loop-modulo [loop_bound]" in content
        assert "WHY SAFE" not in content

    def test_verbose_explains_safe(self, batch_result):
        content = ConsoleReporter(use_colors=False, verbose=True).report(batch_result)
        assert "loop-modulo [loop_bound] WHY SAFE:" in content

    def test_unsafe_listed_before_safe(self, batch_result):
        content = ConsoleReporter(use_colors=False).report(batch_result)
        assert content.index("[UNSAFE]") < content.index("[UNKNOWN]") < content.index("[SAFE]")

    def test_no_colors_when_disabled(self, batch_result):
        content = ConsoleReporter(use_colors=False).report(batch_result)
        assert "\033[" not in content

    def test_write_to_file(self, batch_result, tmp_path, capsys):
        output = tmp_path / "report.txt"
        ConsoleReporter(use_colors=False).report(batch_result, str(output))
        assert "TAINT-FLOW VERDICTS" in output.read_text()
        assert capsys.readouterr().out == ""


class TestJSONReporter:
    def test_structure(self, batch_result):
        data = json.loads(JSONReporter().report(batch_result))
        assert data["run_info"]["sources"] == ["paths.yaml"]
        assert data["summary"] == {"safe": 1, "unsafe": 1, "unknown": 1}
        assert data["outcome"] == "unsafe"
        assert data["total_paths"] == 3
        assert data["verdicts"][1]["axes"][0]["axis"] == "resource"
        assert data["errors"] == ["missing.yaml: not found"]

    def test_write_to_file(self, batch_result, tmp_path):
        output = tmp_path / "report.json"
        JSONReporter().report(batch_result, str(output))
        assert json.loads(output.read_text())["total_paths"] == 3


class TestGetReporter:
    def test_known_formats(self):
        assert isinstance(get_reporter("console", use_colors=False), ConsoleReporter)
        assert isinstance(get_reporter("JSON"), JSONReporter)

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            get_reporter("sarif")
