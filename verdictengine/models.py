"""
Data models for the verdict engine.

This module defines the records exchanged with the outside world:

- Outcome: Safe / Unsafe / Unknown
- SinkContext: the sensitive operation a path ends in
- PolicyAxis: independent policy dimensions of a verdict
- RationaleStep/AxisVerdict/Verdict: the classifier's answer and its trace
- ClassifierConfig: tunables shared by every classified path
- BatchResult: verdicts for a batch of paths

All records are frozen dataclasses so verdicts compare by value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Dict, Any, Iterable, Iterator, FrozenSet, List


class Outcome(Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"
    UNKNOWN = "unknown"

    @property
    def priority(self) -> int:
        priorities = {
            Outcome.UNSAFE: 3,
            Outcome.UNKNOWN: 2,
            Outcome.SAFE: 1,
        }
        return priorities[self]

    @classmethod
    def worst(cls, outcomes: Iterable[Outcome]) -> Outcome:
        """Combine outcomes; Unsafe beats Unknown beats Safe."""
        result = cls.SAFE
        for outcome in outcomes:
            if outcome.priority > result.priority:
                result = outcome
        return result


class SinkContext(Enum):
    """Sensitive operations a traced value can reach"""
    LOOP_BOUND = "loop_bound"
    HTML_BODY = "html_body"
    HTML_ATTRIBUTE = "html_attribute"
    SCRIPT_STRING = "script_string"
    URL_COMPONENT = "url_component"
    CSS_VALUE = "css_value"
    LOG_RECORD = "log_record"
    RAW_FILE_WRITE = "raw_file_write"

    @property
    def is_numeric(self) -> bool:
        return self is SinkContext.LOOP_BOUND


class PolicyAxis(Enum):
    """Independent policy dimensions, evaluated separately"""
    INJECTION = "injection"
    RESOURCE = "resource"
    DISCLOSURE = "disclosure"


@dataclass(frozen=True)
class RationaleStep:
    """One folded operation and what it left behind"""
    operation: str
    guarantee: str
    explanation: str

    def __str__(self) -> str:
        return f"{self.operation} -> {self.guarantee}: {self.explanation}"


@dataclass(frozen=True)
class AxisVerdict:
    """Outcome on a single policy axis"""
    axis: PolicyAxis
    outcome: Outcome
    reason: str


@dataclass(frozen=True)
class Verdict:
    """Final classification of one path"""
    path_id: str
    outcome: Outcome
    context: Optional[SinkContext] = None
    rationale: Tuple[RationaleStep, ...] = ()
    axes: Tuple[AxisVerdict, ...] = ()
    notes: Tuple[str, ...] = field(default=())

    @property
    def is_safe(self) -> bool:
        return self.outcome is Outcome.SAFE

    def axis(self, axis: PolicyAxis) -> Optional[AxisVerdict]:
        """Get the verdict for one axis, if it was evaluated."""
        for entry in self.axes:
            if entry.axis is axis:
                return entry
        return None

    def explain(self) -> str:
        """Render the WHY SAFE / WHY UNSAFE commentary for this path."""
        headline = {
            Outcome.SAFE: "WHY SAFE",
            Outcome.UNSAFE: "WHY UNSAFE",
            Outcome.UNKNOWN: "WHY UNKNOWN",
        }[self.outcome]
        sink = self.context.value if self.context else "none"
        lines = [f"{self.path_id} [{sink}] {headline}:"]
        for entry in self.axes:
            lines.append(f"  {entry.axis.value}: {entry.outcome.value} - {entry.reason}")
        for index, step in enumerate(self.rationale, 1):
            lines.append(f"  {index}. {step}")
        for note in self.notes:
            lines.append(f"  note: {note}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert verdict to dictionary"""
        return {
            'path_id': self.path_id,
            'outcome': self.outcome.value,
            'context': self.context.value if self.context else None,
            'axes': [
                {'axis': a.axis.value, 'outcome': a.outcome.value, 'reason': a.reason}
                for a in self.axes
            ],
            'rationale': [
                {'operation': s.operation, 'guarantee': s.guarantee, 'explanation': s.explanation}
                for s in self.rationale
            ],
            'notes': list(self.notes),
        }


# Source categories treated as sensitive when not flagged explicitly
DEFAULT_SENSITIVE_CATEGORIES = frozenset({
    'password', 'ssn', 'credit_card', 'account_number', 'secret', 'pii',
})


@dataclass(frozen=True)
class ClassifierConfig:
    """Classifier settings"""
    loop_ceiling: Optional[int] = None
    max_total_work: Optional[int] = None
    max_operations: Optional[int] = None
    sensitive_categories: FrozenSet[str] = DEFAULT_SENSITIVE_CATEGORIES
    max_workers: int = 4

    def to_dict(self) -> Dict[str, Any]:
        return {
            'loop_ceiling': self.loop_ceiling,
            'max_total_work': self.max_total_work,
            'max_operations': self.max_operations,
            'sensitive_categories': sorted(self.sensitive_categories),
            'max_workers': self.max_workers,
        }


@dataclass
class BatchResult:
    """Verdicts for a batch of paths, in input order"""
    verdicts: List[Verdict] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        """Count of verdicts by outcome."""
        counts = {outcome.value: 0 for outcome in Outcome}
        for verdict in self.verdicts:
            counts[verdict.outcome.value] += 1
        return counts

    @property
    def outcome(self) -> Outcome:
        """Worst outcome across the batch."""
        return Outcome.worst(v.outcome for v in self.verdicts)

    def get_verdicts_by_outcome(self, outcome: Outcome) -> List[Verdict]:
        return [v for v in self.verdicts if v.outcome is outcome]

    def __iter__(self) -> Iterator[Verdict]:
        return iter(self.verdicts)

    def __len__(self) -> int:
        return len(self.verdicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sources': self.sources,
            'verdicts': [v.to_dict() for v in self.verdicts],
            'duration_seconds': self.duration_seconds,
            'errors': self.errors,
            'summary': self.summary,
        }
