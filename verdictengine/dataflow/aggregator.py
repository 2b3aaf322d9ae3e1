"""
Decision Aggregator - per-path state machine producing the final verdict

    PENDING -> ABSTRACTED -> CLASSIFIED -> VERDICTED
    PENDING -> VERDICTED (Unknown, malformed path)

No transition is skipped and none is retried; classifying the same path
again starts a fresh machine and yields an identical verdict.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Mapping, Optional, Union
import logging

from .abstractor import Abstraction, ExpressionAbstractor
from .interval import Interval
from .loop_bounds import LoopBoundChecker
from .path import PathDescriptor
from .sink_classifier import SinkContextClassifier
from .transforms import TransformRegistry, default_registry
from ..errors import ConfigurationError, MalformedPath, StateTransitionError
from ..models import AxisVerdict, ClassifierConfig, Outcome, SinkContext, Verdict

logger = logging.getLogger(__name__)


class PathState(Enum):
    PENDING = "pending"
    ABSTRACTED = "abstracted"
    CLASSIFIED = "classified"
    VERDICTED = "verdicted"


# Legal successor states
TRANSITIONS = {
    PathState.PENDING: {PathState.ABSTRACTED},
    PathState.ABSTRACTED: {PathState.CLASSIFIED},
    PathState.CLASSIFIED: {PathState.VERDICTED},
    PathState.VERDICTED: set(),
}

# Only a malformed path may stop before it is abstracted
SHORT_CIRCUITS = {
    PathState.PENDING: {PathState.VERDICTED},
}


class PathAnalysis:
    """State of one path moving through the classifier"""

    def __init__(self, path_id: str):
        self.path_id = path_id
        self.state = PathState.PENDING
        self.abstraction: Optional[Abstraction] = None
        self.axes: List[AxisVerdict] = []
        self.notes: List[str] = []
        self.verdict: Optional[Verdict] = None

    def _advance(self, target: PathState, short_circuit: bool = False) -> None:
        allowed = SHORT_CIRCUITS.get(self.state, set()) if short_circuit else TRANSITIONS[self.state]
        if target not in allowed:
            raise StateTransitionError(
                f"illegal transition {self.state.value} -> {target.value}", self.path_id
            )
        logger.debug(f"[{self.path_id}] {self.state.value} -> {target.value}")
        self.state = target

    def abstracted(self, abstraction: Abstraction) -> None:
        self._advance(PathState.ABSTRACTED)
        self.abstraction = abstraction
        self.notes.extend(abstraction.notes)

    def classified(self, axes: List[AxisVerdict], notes: List[str]) -> None:
        self._advance(PathState.CLASSIFIED)
        self.axes = list(axes)
        self.notes.extend(notes)

    def finish(self) -> Verdict:
        """Combine the axes into the final verdict"""
        self._advance(PathState.VERDICTED)
        abstraction = self.abstraction
        self.verdict = Verdict(
            path_id=self.path_id,
            outcome=Outcome.worst(a.outcome for a in self.axes),
            context=abstraction.sink.context if abstraction.sink else None,
            rationale=tuple(abstraction.steps),
            axes=tuple(self.axes),
            notes=tuple(self.notes),
        )
        return self.verdict

    def malformed(self, error: MalformedPath, context: Optional[SinkContext] = None) -> Verdict:
        """Short-circuit a path that cannot be folded"""
        self._advance(PathState.VERDICTED, short_circuit=True)
        self.verdict = Verdict(
            path_id=self.path_id,
            outcome=Outcome.UNKNOWN,
            context=context,
            notes=(f"malformed path: {error.message}",),
        )
        return self.verdict


class TaintClassifier:
    """
    Taint-flow safety classifier.

    Validates its configuration and freezes the transform registry when
    constructed; afterwards classify() may be called from any thread.

    Example:
        classifier = TaintClassifier(ClassifierConfig(loop_ceiling=1000))
        verdict = classifier.classify(path)
        print(verdict.explain())
    """

    def __init__(self, config: ClassifierConfig,
                 registry: Optional[TransformRegistry] = None):
        if config.loop_ceiling is None:
            raise ConfigurationError("loop ceiling is not configured")
        self.config = config
        self.registry = registry if registry is not None else default_registry()
        if len(self.registry) == 0:
            raise ConfigurationError("transform registry is empty")
        if config.max_operations is not None and config.max_operations <= 0:
            raise ConfigurationError(f"max_operations must be positive, got {config.max_operations}")

        self.loop_checker = LoopBoundChecker(config.loop_ceiling, config.max_total_work)
        self.sink_classifier = SinkContextClassifier()
        self.abstractor = ExpressionAbstractor(self.registry, config.sensitive_categories)
        self.registry.freeze()

    def classify(self, path: Union[PathDescriptor, Mapping[str, Any]],
                 context: Optional[SinkContext] = None) -> Verdict:
        """
        Classify one path.

        Args:
            path: A PathDescriptor or its persisted mapping form
            context: Sink to assume when the path carries no SinkTag

        Returns:
            Verdict; malformed paths yield Unknown rather than raising
        """
        path_id = path.path_id if isinstance(path, PathDescriptor) else self._raw_id(path)
        analysis = PathAnalysis(path_id)

        try:
            if not isinstance(path, PathDescriptor):
                path = PathDescriptor.from_dict(path)
            self._check_size(path)
            abstraction = self.abstractor.abstract(path, context)
        except MalformedPath as exc:
            logger.warning(f"[{path_id}] malformed path, verdict Unknown: {exc.message}")
            sink = path.sink if isinstance(path, PathDescriptor) else None
            return analysis.malformed(exc, sink.context if sink else context)

        analysis.abstracted(abstraction)
        axes, notes = self._classify(abstraction)
        analysis.classified(axes, notes)
        verdict = analysis.finish()

        logger.debug(f"[{path_id}] verdict {verdict.outcome.value}")
        return verdict

    def _classify(self, abstraction: Abstraction):
        if isinstance(abstraction.value, Interval):
            check = self.loop_checker.check(abstraction)
            return [check.verdict], check.notes
        return self.sink_classifier.classify(abstraction), []

    def _check_size(self, path: PathDescriptor) -> None:
        limit = self.config.max_operations
        if limit is not None and path.operation_count() > limit:
            raise MalformedPath(
                f"path has {path.operation_count()} operations, limit is {limit}", path.path_id
            )

    @staticmethod
    def _raw_id(raw: Any) -> str:
        if isinstance(raw, Mapping) and raw.get('path_id'):
            return str(raw['path_id'])
        return "<unnamed>"
