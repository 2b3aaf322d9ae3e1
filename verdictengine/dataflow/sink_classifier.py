"""
Sink Context Classifier

Static table from sink context to the guarantee a value needs before it
can be written there, plus the separate disclosure check for sensitive
sources.
"""

from __future__ import annotations

from typing import Dict, Optional
import logging

from .guarantees import EscapeContext, StringGuarantee
from .abstractor import Abstraction
from ..models import AxisVerdict, Outcome, PolicyAxis, SinkContext

logger = logging.getLogger(__name__)


# Escape context whose predicate applies at each sink; None means the sink
# has no injection predicate
SINK_PREDICATES: Dict[SinkContext, Optional[EscapeContext]] = {
    SinkContext.HTML_BODY: EscapeContext.HTML,
    SinkContext.HTML_ATTRIBUTE: EscapeContext.HTML_ATTRIBUTE,
    SinkContext.SCRIPT_STRING: EscapeContext.SCRIPT,
    SinkContext.URL_COMPONENT: EscapeContext.URL,
    SinkContext.CSS_VALUE: EscapeContext.CSS,
    SinkContext.LOG_RECORD: None,
    SinkContext.RAW_FILE_WRITE: None,
}


class SinkContextClassifier:
    """Decides injection and disclosure outcomes for string sinks"""

    def injection(self, context: SinkContext, guarantee: StringGuarantee,
                  unresolved: Optional[str] = None) -> AxisVerdict:
        """
        Injection outcome for a string guarantee at a sink.

        An unresolved unrecognized transform makes the outcome Unknown:
        it may or may not have sanitized the value.
        """
        if context not in SINK_PREDICATES:
            raise ValueError(f"{context.value} is not a string sink")
        escape = SINK_PREDICATES[context]
        if escape is None:
            return self._axis(PolicyAxis.INJECTION, Outcome.SAFE,
                              f"{context.value} has no injection predicate")
        if unresolved:
            return self._axis(PolicyAxis.INJECTION, Outcome.UNKNOWN,
                              f"unrecognized transform '{unresolved}' may or may not sanitize")
        if guarantee.is_unconstrained:
            return self._axis(PolicyAxis.INJECTION, Outcome.UNSAFE,
                              f"unconstrained value reaches {context.value}")
        if guarantee.charset.is_safe_for(escape):
            return self._axis(PolicyAxis.INJECTION, Outcome.SAFE,
                              f"{guarantee.charset} is safe for {context.value}")
        return self._axis(PolicyAxis.INJECTION, Outcome.UNSAFE,
                          f"{guarantee.charset} does not satisfy the {context.value} predicate")

    def disclosure(self, abstraction: Abstraction) -> Optional[AxisVerdict]:
        """Disclosure outcome, or None when the source is not sensitive"""
        if not abstraction.sensitive:
            return None
        context = abstraction.sink.context if abstraction.sink else None
        where = context.value if context else "sink"
        if abstraction.discloses:
            return self._axis(PolicyAxis.DISCLOSURE, Outcome.UNSAFE,
                              f"sensitive value reaches {where} with its characters intact")
        return self._axis(PolicyAxis.DISCLOSURE, Outcome.SAFE,
                          "sensitive characters removed by masking, hashing or derivation")

    def classify(self, abstraction: Abstraction):
        """All string-sink axes for a folded path"""
        guarantee = abstraction.value
        if not isinstance(guarantee, StringGuarantee):
            raise TypeError("sink classification needs a string abstraction")
        axes = [self.injection(abstraction.sink.context, guarantee, abstraction.unresolved)]
        disclosure = self.disclosure(abstraction)
        if disclosure is not None:
            axes.append(disclosure)
        return axes

    @staticmethod
    def _axis(axis: PolicyAxis, outcome: Outcome, reason: str) -> AxisVerdict:
        return AxisVerdict(axis, outcome, reason)
