"""
Loop Bound Safety Checker

Decides whether the interval of a loop's governing expression keeps the
iteration count under the configured ceiling K.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional
import logging

from .interval import Interval, work_product
from .abstractor import Abstraction
from ..errors import ConfigurationError
from ..models import AxisVerdict, Outcome, PolicyAxis

logger = logging.getLogger(__name__)


@dataclass
class LoopCheck:
    """Outcome of checking one path's loop bounds"""
    verdict: AxisVerdict
    notes: List[str] = field(default_factory=list)
    total_work: Optional[Interval] = None


class LoopBoundChecker:
    """
    Checks loop bounds against a ceiling.

    Only the upper endpoint matters: a loop `for (i = 0; i < n; i++)` runs
    at most max(n, 0) times.
    """

    def __init__(self, ceiling: int, max_total_work: Optional[int] = None):
        if isinstance(ceiling, bool) or not isinstance(ceiling, int) or ceiling <= 0:
            raise ConfigurationError(f"loop ceiling must be a positive integer, got {ceiling!r}")
        if max_total_work is not None and max_total_work <= 0:
            raise ConfigurationError(f"max_total_work must be positive, got {max_total_work!r}")
        self.ceiling = ceiling
        self.max_total_work = max_total_work

    def check_interval(self, interval: Interval, bounded_by: Optional[str] = None) -> LoopCheck:
        """Check a single governing interval"""
        if interval.empty:
            return LoopCheck(self._axis(Outcome.SAFE, "unreachable"),
                             notes=["loop bound is unreachable (empty interval)"])
        if interval.high <= 0:
            return LoopCheck(
                self._axis(Outcome.SAFE, f"loop never executes: bound {interval} is at most 0"),
                notes=[f"loop bound {interval} never admits an iteration; possible logic defect"],
            )
        if interval.high <= self.ceiling:
            reason = f"provably bounded: {interval} <= {self.ceiling}"
            if bounded_by:
                reason += f", bounded by {bounded_by}"
            return LoopCheck(self._axis(Outcome.SAFE, reason))
        if not interval.has_finite_high:
            return LoopCheck(self._axis(Outcome.UNSAFE, f"unbounded: {interval} has no finite upper bound"))
        return LoopCheck(self._axis(
            Outcome.UNSAFE, f"exceeds ceiling: {interval} upper bound {interval.high} > {self.ceiling}"
        ))

    def check(self, abstraction: Abstraction) -> LoopCheck:
        """Check the loop bounds of a folded path"""
        interval = abstraction.value
        if not isinstance(interval, Interval):
            raise TypeError("loop bound check needs a numeric abstraction")

        if not abstraction.bounds:
            return self.check_interval(interval, abstraction.bounded_by)

        sink = abstraction.sink
        if sink is None or sink.combine == 'all':
            # i < a && i < b: the tightest bound governs
            governing = interval
            for bound in abstraction.bounds:
                governing = governing.minimum(bound)
            by = abstraction.bounded_by if governing.high == interval.high else "compound guard"
            return self.check_interval(governing, by)

        return self._check_nested([interval] + list(abstraction.bounds), abstraction.bounded_by)

    def _check_nested(self, loops: List[Interval], bounded_by: Optional[str]) -> LoopCheck:
        notes = []
        unsafe = []
        for depth, loop in enumerate(loops):
            result = self.check_interval(loop, bounded_by if depth == 0 else None)
            notes.extend(result.notes)
            if result.verdict.outcome is Outcome.UNSAFE:
                unsafe.append(f"loop {depth}: {result.verdict.reason}")

        total = work_product(loops)
        notes.append(f"total work of {len(loops)} nested loops: {total}")
        if unsafe:
            return LoopCheck(self._axis(Outcome.UNSAFE, "; ".join(unsafe)), notes, total)

        if self.max_total_work is not None and not (total.empty or total.high <= self.max_total_work):
            reason = f"total work {total} exceeds {self.max_total_work}"
            logger.debug(reason)
            return LoopCheck(self._axis(Outcome.UNSAFE, reason), notes, total)
        return LoopCheck(
            self._axis(Outcome.SAFE, f"every nested loop is bounded by {self.ceiling}"), notes, total,
        )

    @staticmethod
    def _axis(outcome: Outcome, reason: str) -> AxisVerdict:
        return AxisVerdict(PolicyAxis.RESOURCE, outcome, reason)
