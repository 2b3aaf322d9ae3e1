"""
Path Descriptors - a traced source-to-sink path as typed operations

The data-flow tracer reduces a program path to an ordered list of
operations: one Source, any number of numeric or string operations, and an
optional SinkTag. Operands are literals or independently traced
sub-paths. Branch guards live in a per-path table and are referenced by
index, so an operation states which validation outcome it executes under.

Persisted form (YAML or JSON):

    version: 1
    path_id: xss-enum-01
    branches:
      - {validator: 1, passed: true}
    operations:
      - {type: source, label: 'request.getParameter("color")', domain: string}
      - {type: string, kind: allow-list, args: {members: [red, green]}}
      - {type: sink, context: html_body, branch: 0}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import logging

import yaml

from .transforms import Domain
from ..errors import MalformedPath
from ..models import SinkContext

logger = logging.getLogger(__name__)

PATH_FORMAT_VERSION = 1


# ============================================================
# OPERANDS
# ============================================================

@dataclass(frozen=True)
class Literal:
    """Compile-time constant operand"""
    value: Union[int, str]


@dataclass(frozen=True)
class SubPath:
    """Operand computed by its own chain of operations"""
    operations: Tuple[Operation, ...]


Operand = Union[Literal, SubPath]


# ============================================================
# OPERATIONS
# ============================================================

@dataclass(frozen=True)
class Source:
    """Where the untrusted value enters"""
    label: str
    domain: Domain = Domain.STRING
    numeric_type: Optional[str] = None
    sensitive: bool = False
    category: Optional[str] = None
    branch: Optional[int] = None


@dataclass(frozen=True)
class NumericOp:
    kind: str
    operands: Tuple[Operand, ...] = ()
    args: Mapping[str, Any] = field(default_factory=dict)
    branch: Optional[int] = None


@dataclass(frozen=True)
class StringOp:
    kind: str
    operands: Tuple[Operand, ...] = ()
    args: Mapping[str, Any] = field(default_factory=dict)
    branch: Optional[int] = None


@dataclass(frozen=True)
class SinkTag:
    """
    Sensitive operation the value reaches.

    For a loop bound, extra operands are further bounds on the same loop
    (args combine='all', as in i < a && i < b) or bounds of enclosing
    loops (combine='nested').
    """
    context: SinkContext
    operands: Tuple[Operand, ...] = ()
    args: Mapping[str, Any] = field(default_factory=dict)
    branch: Optional[int] = None

    @property
    def combine(self) -> str:
        return self.args.get('combine', 'all')


Operation = Union[Source, NumericOp, StringOp, SinkTag]


@dataclass(frozen=True)
class BranchGuard:
    """The branch on which the validator at operation index `validator` passed or failed"""
    validator: int
    passed: bool = True
    parent: Optional[int] = None


def describe(operation: Operation) -> str:
    """Short label for rationale output"""
    if isinstance(operation, Source):
        return f"source {operation.label}"
    if isinstance(operation, SinkTag):
        return f"sink {operation.context.value}"
    return operation.kind


# ============================================================
# DESCRIPTOR
# ============================================================

@dataclass(frozen=True)
class PathDescriptor:
    """Immutable description of one traced path"""
    path_id: str
    operations: Tuple[Operation, ...]
    branches: Tuple[BranchGuard, ...] = ()
    version: int = PATH_FORMAT_VERSION

    def __post_init__(self):
        self.validate()

    @property
    def sink(self) -> Optional[SinkTag]:
        if self.operations and isinstance(self.operations[-1], SinkTag):
            return self.operations[-1]
        return None

    @property
    def source(self) -> Source:
        return self.operations[0]

    def operation_count(self) -> int:
        """Number of operations including those of sub-paths"""
        return _count(self.operations)

    def lineage(self, branch: Optional[int]) -> List[BranchGuard]:
        """Guards in effect on a branch, innermost first"""
        guards = []
        while branch is not None:
            guard = self.branches[branch]
            guards.append(guard)
            branch = guard.parent
        return guards

    def validate(self) -> None:
        """Check structure; raises MalformedPath describing the first defect"""
        if self.version != PATH_FORMAT_VERSION:
            raise MalformedPath(f"unsupported path format version {self.version}", self.path_id)
        _validate_chain(self.operations, self.path_id, len(self.branches), top_level=True)

        for index, guard in enumerate(self.branches):
            if not 0 <= guard.validator < len(self.operations):
                raise MalformedPath(
                    f"branch {index} references missing operation {guard.validator}", self.path_id
                )
            if not isinstance(self.operations[guard.validator], (NumericOp, StringOp)):
                raise MalformedPath(
                    f"branch {index} references step {guard.validator}, which is not a validator",
                    self.path_id,
                )
            # Parents precede children, so lineage walks cannot cycle
            if guard.parent is not None and not 0 <= guard.parent < index:
                raise MalformedPath(f"branch {index} has invalid parent {guard.parent}", self.path_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert descriptor to its persisted form"""
        data: Dict[str, Any] = {
            'version': self.version,
            'path_id': self.path_id,
        }
        if self.branches:
            data['branches'] = [_guard_to_dict(g) for g in self.branches]
        data['operations'] = [_operation_to_dict(op) for op in self.operations]
        return data

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> PathDescriptor:
        """Parse a persisted descriptor; raises MalformedPath"""
        if not isinstance(raw, Mapping):
            raise MalformedPath(f"path descriptor must be a mapping, got {type(raw).__name__}")
        path_id = str(raw.get('path_id', ''))
        if not path_id:
            raise MalformedPath("path descriptor has no path_id")

        version = raw.get('version', PATH_FORMAT_VERSION)
        raw_operations = raw.get('operations')
        if not isinstance(raw_operations, list):
            raise MalformedPath("'operations' must be a list", path_id)

        operations = []
        for index, raw_op in enumerate(raw_operations):
            try:
                operations.append(_operation_from_dict(raw_op))
            except MalformedPath as exc:
                raise MalformedPath(exc.message, path_id, step=index) from exc

        branches = []
        for index, raw_guard in enumerate(raw.get('branches') or []):
            if not isinstance(raw_guard, Mapping) or 'validator' not in raw_guard:
                raise MalformedPath(f"branch {index} must be a mapping with 'validator'", path_id)
            branches.append(BranchGuard(
                validator=_int(raw_guard['validator'], 'validator'),
                passed=bool(raw_guard.get('passed', True)),
                parent=_optional_int(raw_guard.get('parent'), 'parent'),
            ))

        return cls(
            path_id=path_id,
            operations=tuple(operations),
            branches=tuple(branches),
            version=version,
        )


def _count(operations: Iterable[Operation]) -> int:
    total = 0
    for op in operations:
        total += 1
        for operand in getattr(op, 'operands', ()):
            if isinstance(operand, SubPath):
                total += _count(operand.operations)
    return total


def _validate_chain(operations: Tuple[Operation, ...], path_id: str,
                    branch_count: int, top_level: bool) -> None:
    where = "path" if top_level else "sub-path"
    if not operations:
        raise MalformedPath(f"{where} has no operations", path_id)
    if not isinstance(operations[0], Source):
        raise MalformedPath(f"{where} must start with a source", path_id, step=0)

    for index, op in enumerate(operations):
        if index > 0 and isinstance(op, Source):
            raise MalformedPath("source may only appear first", path_id, step=index)
        if isinstance(op, SinkTag):
            if not top_level:
                raise MalformedPath("sub-path cannot contain a sink", path_id, step=index)
            if index != len(operations) - 1:
                raise MalformedPath("sink must be the last operation", path_id, step=index)
            if op.combine not in ('all', 'nested'):
                raise MalformedPath(f"unknown combine mode '{op.combine}'", path_id, step=index)
        if op.branch is not None:
            if not top_level:
                raise MalformedPath("sub-path operations cannot reference branches", path_id, step=index)
            if not 0 <= op.branch < branch_count:
                raise MalformedPath(f"unknown branch {op.branch}", path_id, step=index)
        for operand in getattr(op, 'operands', ()):
            if isinstance(operand, SubPath):
                _validate_chain(operand.operations, path_id, branch_count, top_level=False)
            elif not isinstance(operand, Literal):
                raise MalformedPath(f"invalid operand {operand!r}", path_id, step=index)


# ============================================================
# SERIALIZATION
# ============================================================

def _int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedPath(f"'{name}' must be an integer, got {value!r}")
    return value


def _optional_int(value: Any, name: str) -> Optional[int]:
    return None if value is None else _int(value, name)


def _guard_to_dict(guard: BranchGuard) -> Dict[str, Any]:
    data: Dict[str, Any] = {'validator': guard.validator, 'passed': guard.passed}
    if guard.parent is not None:
        data['parent'] = guard.parent
    return data


def _operand_to_dict(operand: Operand) -> Any:
    if isinstance(operand, Literal):
        return operand.value
    return {'path': [_operation_to_dict(op) for op in operand.operations]}


def _operand_from_dict(raw: Any) -> Operand:
    if isinstance(raw, bool):
        raise MalformedPath(f"boolean operand {raw!r} is not supported")
    if isinstance(raw, (int, str)):
        return Literal(raw)
    if isinstance(raw, Mapping):
        if 'literal' in raw:
            return _operand_from_dict(raw['literal'])
        if isinstance(raw.get('path'), list):
            return SubPath(tuple(_operation_from_dict(op) for op in raw['path']))
    raise MalformedPath(f"invalid operand {raw!r}")


def _operation_to_dict(op: Operation) -> Dict[str, Any]:
    if isinstance(op, Source):
        data: Dict[str, Any] = {'type': 'source', 'label': op.label, 'domain': op.domain.value}
        if op.numeric_type:
            data['numeric_type'] = op.numeric_type
        if op.sensitive:
            data['sensitive'] = True
        if op.category:
            data['category'] = op.category
    elif isinstance(op, SinkTag):
        data = {'type': 'sink', 'context': op.context.value}
    else:
        data = {'type': 'numeric' if isinstance(op, NumericOp) else 'string', 'kind': op.kind}

    if getattr(op, 'operands', ()):
        data['operands'] = [_operand_to_dict(o) for o in op.operands]
    if getattr(op, 'args', None):
        data['args'] = dict(op.args)
    if op.branch is not None:
        data['branch'] = op.branch
    return data


def _operation_from_dict(raw: Any) -> Operation:
    if not isinstance(raw, Mapping):
        raise MalformedPath(f"operation must be a mapping, got {type(raw).__name__}")

    op_type = raw.get('type')
    branch = _optional_int(raw.get('branch'), 'branch')
    args = raw.get('args') or {}
    if not isinstance(args, Mapping):
        raise MalformedPath("'args' must be a mapping")
    raw_operands = raw.get('operands') or []
    if not isinstance(raw_operands, list):
        raise MalformedPath("'operands' must be a list")
    operands = tuple(_operand_from_dict(o) for o in raw_operands)

    if op_type == 'source':
        try:
            domain = Domain(raw.get('domain', 'string'))
        except ValueError:
            raise MalformedPath(f"invalid source domain {raw.get('domain')!r}") from None
        if domain is Domain.ANY:
            raise MalformedPath("source domain must be numeric or string")
        return Source(
            label=str(raw.get('label', 'input')),
            domain=domain,
            numeric_type=raw.get('numeric_type'),
            sensitive=bool(raw.get('sensitive', False)),
            category=raw.get('category'),
            branch=branch,
        )

    if op_type == 'sink':
        try:
            context = SinkContext(raw.get('context'))
        except ValueError:
            raise MalformedPath(f"unknown sink context {raw.get('context')!r}") from None
        return SinkTag(context=context, operands=operands, args=dict(args), branch=branch)

    if op_type in ('numeric', 'string'):
        kind = raw.get('kind')
        if not isinstance(kind, str) or not kind:
            raise MalformedPath(f"{op_type} operation has no 'kind'")
        cls = NumericOp if op_type == 'numeric' else StringOp
        return cls(kind=kind, operands=operands, args=dict(args), branch=branch)

    raise MalformedPath(f"unknown operation type {op_type!r}")


def load_path_documents(filepath: Path) -> List[Mapping[str, Any]]:
    """
    Read raw path descriptors from a YAML or JSON file without parsing them.

    The file holds a single descriptor, a list of descriptors, or a mapping
    with a 'paths' list.
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if not data:
        return []
    if isinstance(data, Mapping) and 'paths' in data:
        data = data['paths']
    if isinstance(data, Mapping):
        data = [data]
    if not isinstance(data, list):
        raise MalformedPath(f"{filepath}: expected a descriptor or a list of descriptors")
    return data


def load_paths(filepath: Path) -> List[PathDescriptor]:
    """Load and parse path descriptors; raises MalformedPath on the first bad one"""
    paths = [PathDescriptor.from_dict(raw) for raw in load_path_documents(filepath)]
    logger.info(f"Loaded {len(paths)} paths from {Path(filepath).name}")
    return paths


def dump_paths(paths: Iterable[PathDescriptor], filepath: Path) -> None:
    """Write path descriptors to a YAML file"""
    data = {'paths': [p.to_dict() for p in paths]}
    with open(filepath, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
