"""
Expression Value Abstractor - folds a path into its final abstract value

One deterministic left-to-right pass over the operations: numeric paths
end in an Interval, string paths in a StringGuarantee. Sub-path operands
are folded independently with the same rules. Each step records the
value it left behind, so the verdict can say why.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Optional, Tuple, Union
import logging

from .interval import Interval
from .guarantees import CharsetConstraint, CharsetKind, StringGuarantee
from .sanitizers import as_guarantee, format_number
from .transforms import Domain, Transform, TransformRegistry
from .path import (
    Literal, NumericOp, Operation, PathDescriptor, SinkTag, Source, StringOp, SubPath,
    describe,
)
from ..errors import MalformedPath, UnrecognizedOperator
from ..models import DEFAULT_SENSITIVE_CATEGORIES, RationaleStep, SinkContext

logger = logging.getLogger(__name__)

Value = Union[Interval, StringGuarantee]


@dataclass
class Abstraction:
    """
    Result of folding one chain of operations.

    Attributes:
        value: Final Interval or StringGuarantee
        steps: Per-operation rationale
        notes: Observations that do not change the value
        bounded_by: Last operator that brought the upper bound to a finite value
        unresolved: Name of an unrecognized transform no later transform superseded
        sensitive: Whether the source carries personal or secret data
        discloses: Whether the value still reveals source characters
        sink: SinkTag the path ends in, if any
        bounds: Extra loop bounds from the sink operands
    """
    value: Value
    steps: List[RationaleStep] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    bounded_by: Optional[str] = None
    unresolved: Optional[str] = None
    sensitive: bool = False
    discloses: bool = False
    sink: Optional[SinkTag] = None
    bounds: List[Interval] = field(default_factory=list)

    @property
    def domain(self) -> Domain:
        return Domain.NUMERIC if isinstance(self.value, Interval) else Domain.STRING


def _render(value: Value) -> str:
    return str(value)


class ExpressionAbstractor:
    """Abstract interpreter over path descriptors"""

    def __init__(self, registry: TransformRegistry,
                 sensitive_categories: FrozenSet[str] = DEFAULT_SENSITIVE_CATEGORIES):
        self.registry = registry
        self.sensitive_categories = frozenset(c.lower() for c in sensitive_categories)

    def abstract(self, path: PathDescriptor,
                 context: Optional[SinkContext] = None) -> Abstraction:
        """
        Fold a path into its final abstract value.

        Args:
            path: The traced path
            context: Sink to assume when the path carries no SinkTag

        Raises:
            MalformedPath: If the path cannot be folded
        """
        sink = path.sink
        if sink is None and context is None:
            raise MalformedPath("path has no sink and no sink context was given", path.path_id)
        use_site = sink.branch if sink is not None else path.operations[-1].branch
        guards = path.lineage(use_site)

        result = self._fold(path, path.operations, guards, top_index=None)
        if sink is None:
            result.sink = SinkTag(context)
        target = result.sink.context

        if target.is_numeric and not isinstance(result.value, Interval):
            raise MalformedPath("string value reaches a loop bound without conversion", path.path_id)
        if not target.is_numeric and isinstance(result.value, Interval):
            result.value = format_number(result.value)
            result.steps.append(RationaleStep(
                f"format for {target.value}", _render(result.value),
                "numeric value rendered as decimal text",
            ))
        return result

    # ---- Folding ---------------------------------------------------------

    def _fold(self, path: PathDescriptor, operations: Tuple[Operation, ...],
              guards, top_index: Optional[int]) -> Abstraction:
        source = operations[0]
        result = Abstraction(value=self._source_value(path, source, top_index))
        result.sensitive = source.sensitive or (
            source.category is not None and source.category.lower() in self.sensitive_categories
        )
        result.discloses = result.sensitive
        if isinstance(result.value, Interval) and result.value.has_finite_high:
            result.bounded_by = f"{source.numeric_type} range"
        result.steps.append(RationaleStep(
            describe(source), _render(result.value),
            "untrusted input" + (" (sensitive)" if result.sensitive else ""),
        ))

        for index, op in enumerate(operations[1:], 1):
            step = index if top_index is None else top_index
            if isinstance(op, SinkTag):
                result.sink = op
                result.bounds = [
                    self._bound_operand(path, operand, step, result)
                    for operand in op.operands
                ]
                result.steps.append(RationaleStep(
                    describe(op), _render(result.value), f"reaches {op.context.value}",
                ))
                continue
            self._apply(path, op, index, step, result,
                        guards if top_index is None else None)

        logger.debug(f"[{path.path_id}] folded {len(operations)} operations to {result.value}")
        return result

    def _source_value(self, path: PathDescriptor, source: Source,
                      top_index: Optional[int]) -> Value:
        if source.domain is Domain.STRING:
            return StringGuarantee.unconstrained()
        if source.numeric_type is None:
            return Interval.top()
        try:
            return Interval.of_type(source.numeric_type)
        except KeyError:
            raise MalformedPath(
                f"unknown numeric type '{source.numeric_type}'", path.path_id,
                step=0 if top_index is None else top_index,
            ) from None

    def _operand(self, path: PathDescriptor, operand, step: int,
                 result: Abstraction) -> Value:
        if isinstance(operand, Literal):
            if isinstance(operand.value, int):
                return Interval.const(operand.value)
            return StringGuarantee.of_literal(operand.value)

        sub = self._fold(path, operand.operations, None, top_index=step)
        result.steps.extend(
            RationaleStep(f"operand: {s.operation}", s.guarantee, s.explanation) for s in sub.steps
        )
        # Whatever the sub-path carries flows into the combined value
        result.notes.extend(sub.notes)
        result.sensitive = result.sensitive or sub.sensitive
        result.discloses = result.discloses or sub.discloses
        if sub.unresolved and result.unresolved is None:
            result.unresolved = sub.unresolved
        return sub.value

    def _bound_operand(self, path: PathDescriptor, operand, step: int,
                       result: Abstraction) -> Interval:
        value = self._operand(path, operand, step, result)
        if not isinstance(value, Interval):
            raise MalformedPath("loop bound operand is not numeric", path.path_id, step=step)
        return value

    def _apply(self, path: PathDescriptor, op: Union[NumericOp, StringOp], index: int,
               step: int, result: Abstraction, guards) -> None:
        label = f"{op.kind} (step {step})"
        numeric = isinstance(op, NumericOp)

        try:
            transform = self.registry.get(op.kind)
        except UnrecognizedOperator as exc:
            self._unrecognized(path, op, exc, step, result)
            return

        expected = Domain.NUMERIC if numeric else Domain.STRING
        if transform.domain is not expected:
            raise MalformedPath(
                f"'{op.kind}' produces {transform.domain.value} values, used as {expected.value}",
                path.path_id, step=step,
            )

        value = self._coerce_input(path, transform, result, step)
        operands = tuple(self._operand(path, o, step, result) for o in op.operands)
        if numeric and any(not isinstance(o, Interval) for o in operands):
            raise MalformedPath(f"'{op.kind}' takes numeric operands", path.path_id, step=step)

        if transform.conditional and not self._guarded(index, guards):
            note = (f"{op.kind} at step {step} is not known to have passed where the value "
                    f"is used; its guarantee is not applied")
            result.notes.append(note)
            result.steps.append(RationaleStep(label, _render(result.value), "unguarded validation"))
            logger.debug(f"[{path.path_id}] {note}")
            return

        try:
            output = transform.apply(value, operands, op.args)
        except MalformedPath as exc:
            raise MalformedPath(f"{op.kind}: {exc.message}", path.path_id, step=step) from exc

        expected_type = Interval if numeric else StringGuarantee
        if not isinstance(output, expected_type):
            raise MalformedPath(
                f"transform '{op.kind}' returned {type(output).__name__}", path.path_id, step=step
            )

        if transform.is_pass_through:
            output = self._pass_through(transform, value, output, op, operands)
        else:
            result.unresolved = None

        if numeric:
            self._track_bound(result, output, label)
        if transform.removes_content:
            result.discloses = False

        result.value = output
        result.steps.append(RationaleStep(label, _render(output), self._explain(transform)))

    def _coerce_input(self, path: PathDescriptor, transform: Transform,
                      result: Abstraction, step: int) -> Any:
        accepts = transform.accepts
        value = result.value
        if accepts is Domain.ANY:
            return value
        if accepts is Domain.STRING and isinstance(value, Interval):
            # Implicit number to text conversion, as in "" + n
            return format_number(value)
        if accepts is Domain.NUMERIC and not isinstance(value, Interval):
            raise MalformedPath(
                f"'{transform.name}' needs a numeric input; parse the string first",
                path.path_id, step=step,
            )
        return value

    def _pass_through(self, transform: Transform, value: Value, output: StringGuarantee, op,
                      operands: Tuple[Value, ...]) -> StringGuarantee:
        """Keep the input's charset unless the transform rewrites it; the length may change"""
        incoming = as_guarantee(value)
        charset = incoming.charset
        if transform.rewrites:
            charset = charset.join(output.charset)
        for operand, raw in zip(operands, op.operands):
            if isinstance(raw, SubPath):
                charset = charset.join(as_guarantee(operand).charset)
        values = output.value_set if charset.kind is CharsetKind.ENUM_MEMBER else None
        if values is not None:
            charset = CharsetConstraint.enum(values)
        elif charset.kind is CharsetKind.ENUM_MEMBER and incoming.value_set is not None:
            # The enumerated values were rewritten into unknown strings
            charset = CharsetConstraint.fixed(charset.known_alphabet())
        return StringGuarantee(charset, output.max_length, values)

    def _track_bound(self, result: Abstraction, output: Interval, label: str) -> None:
        previous = result.value
        if not output.has_finite_high:
            result.bounded_by = None
            return
        if (not isinstance(previous, Interval) or not previous.has_finite_high
                or output.high < previous.high):
            result.bounded_by = label

    def _unrecognized(self, path: PathDescriptor, op, exc: UnrecognizedOperator,
                      step: int, result: Abstraction) -> None:
        for operand in op.operands:
            self._operand(path, operand, step, result)
        label = f"{op.kind} (step {step})"
        if isinstance(op, NumericOp):
            result.value = Interval.top()
            result.bounded_by = None
        else:
            result.value = StringGuarantee.unconstrained()
            result.unresolved = op.kind
        result.notes.append(f"{exc.message} at step {step}")
        result.steps.append(RationaleStep(label, _render(result.value), "unrecognized operator"))
        logger.warning(f"[{path.path_id}] {exc.message}; assuming no guarantee")

    @staticmethod
    def _guarded(index: int, guards) -> bool:
        if not guards:
            return False
        return any(g.validator == index and g.passed for g in guards)

    @staticmethod
    def _explain(transform: Transform) -> str:
        return transform.description or transform.kind.value


def abstract_path(path: PathDescriptor, registry: TransformRegistry,
                  context: Optional[SinkContext] = None) -> Abstraction:
    """Convenience function to fold a single path"""
    return ExpressionAbstractor(registry).abstract(path, context)
