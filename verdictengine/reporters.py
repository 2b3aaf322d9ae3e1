"""
Report generators for classification results
"""

import json
from typing import Optional
from datetime import datetime
import sys

from .models import BatchResult, Outcome


class BaseReporter:
    """Base class for reporters"""

    def report(self, result: BatchResult, output: Optional[str] = None) -> str:
        """Generate report and optionally write to file"""
        raise NotImplementedError

    def _write_output(self, content: str, output: Optional[str]) -> None:
        """Write content to file or stdout"""
        if output:
            with open(output, 'w', encoding='utf-8') as f:
                f.write(content)
        else:
            print(content)


class ConsoleReporter(BaseReporter):
    """Console/terminal output reporter with colors"""

    # ANSI color codes
    COLORS = {
        'unsafe': '\033[91m',   # Red
        'unknown': '\033[93m',  # Yellow
        'safe': '\033[92m',     # Green
        'reset': '\033[0m',
        'bold': '\033[1m',
    }

    def __init__(self, use_colors: bool = True, verbose: bool = False):
        self.use_colors = use_colors and sys.stdout.isatty()
        self.verbose = verbose

    def _color(self, text: str, color: str) -> str:
        """Apply color to text if colors enabled"""
        if not self.use_colors:
            return text
        return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"

    def report(self, result: BatchResult, output: Optional[str] = None) -> str:
        """Generate console report"""
        lines = []

        lines.append("")
        lines.append(self._color("=" * 60, 'bold'))
        lines.append(self._color("  TAINT-FLOW VERDICTS", 'bold'))
        lines.append(self._color("=" * 60, 'bold'))
        lines.append("")

        lines.append(f"Paths classified: {len(result.verdicts)}")
        lines.append(f"Duration: {result.duration_seconds:.2f} seconds")
        lines.append("")

        lines.append(self._color("SUMMARY BY OUTCOME:", 'bold'))
        summary = result.summary
        for outcome in Outcome:
            count = summary.get(outcome.value, 0)
            if count > 0:
                lines.append(f"  {self._color(outcome.value.upper(), outcome.value)}: {count}")
        lines.append("")

        for outcome in (Outcome.UNSAFE, Outcome.UNKNOWN, Outcome.SAFE):
            verdicts = result.get_verdicts_by_outcome(outcome)
            if not verdicts:
                continue
            lines.append(self._color(f"[{outcome.value.upper()}]", outcome.value))
            for verdict in verdicts:
                if self.verbose or outcome is not Outcome.SAFE:
                    lines.append(verdict.explain())
                else:
                    sink = verdict.context.value if verdict.context else "none"
                    lines.append(f"{verdict.path_id} [{sink}]")
                lines.append("")

        if result.errors:
            lines.append(self._color("ERRORS:", 'unsafe'))
            for error in result.errors:
                lines.append(f"  - {error}")
            lines.append("")

        lines.append(self._color("=" * 60, 'bold'))

        content = "\n".join(lines)
        self._write_output(content, output)
        return content


class JSONReporter(BaseReporter):
    """JSON format reporter"""

    def report(self, result: BatchResult, output: Optional[str] = None) -> str:
        """Generate JSON report"""
        report_data = {
            'run_info': {
                'sources': result.sources,
                'timestamp': datetime.now().isoformat(),
                'duration_seconds': result.duration_seconds,
            },
            'summary': result.summary,
            'outcome': result.outcome.value,
            'total_paths': len(result.verdicts),
            'verdicts': [v.to_dict() for v in result.verdicts],
            'errors': result.errors,
        }

        content = json.dumps(report_data, indent=2)
        self._write_output(content, output)
        return content


def get_reporter(format: str, **kwargs) -> BaseReporter:
    """Factory function to get reporter by format"""
    reporters = {
        'console': ConsoleReporter,
        'json': JSONReporter,
    }

    reporter_class = reporters.get(format.lower())
    if not reporter_class:
        raise ValueError(f"Unknown report format: {format}. Supported: {list(reporters.keys())}")

    return reporter_class(**kwargs)
