"""
Taint-flow classification core for SinkVerdict

This package folds traced source-to-sink paths into abstract values and
judges them:
- Interval domain for integer expressions (loop bounds)
- String guarantees and regex character-class derivation
- Open transform registry (numeric operators, encoders, validators)
- Path descriptors with an explicit branch table
- Loop bound checker, sink context classifier and decision aggregator
"""

from .interval import (
    Interval,
    TYPE_RANGES,
    work_product,
)

from .guarantees import (
    CharsetKind,
    CharsetConstraint,
    EscapeContext,
    StringGuarantee,
)

from .regex_charset import (
    RegexCharset,
    derive_charset,
)

from .transforms import (
    Domain,
    TransformKind,
    Transform,
    TransformRegistry,
    default_registry,
    register_transform,
)

from .path import (
    Literal,
    SubPath,
    Source,
    NumericOp,
    StringOp,
    SinkTag,
    BranchGuard,
    PathDescriptor,
    load_paths,
    load_path_documents,
    dump_paths,
)

from .abstractor import (
    Abstraction,
    ExpressionAbstractor,
    abstract_path,
)

from .loop_bounds import (
    LoopCheck,
    LoopBoundChecker,
)

from .sink_classifier import (
    SINK_PREDICATES,
    SinkContextClassifier,
)

from .aggregator import (
    PathState,
    PathAnalysis,
    TaintClassifier,
)

__all__ = [
    # Domains
    'Interval',
    'TYPE_RANGES',
    'work_product',
    'CharsetKind',
    'CharsetConstraint',
    'EscapeContext',
    'StringGuarantee',
    'RegexCharset',
    'derive_charset',
    # Registry
    'Domain',
    'TransformKind',
    'Transform',
    'TransformRegistry',
    'default_registry',
    'register_transform',
    # Paths
    'Literal',
    'SubPath',
    'Source',
    'NumericOp',
    'StringOp',
    'SinkTag',
    'BranchGuard',
    'PathDescriptor',
    'load_paths',
    'load_path_documents',
    'dump_paths',
    # Analysis
    'Abstraction',
    'ExpressionAbstractor',
    'abstract_path',
    'LoopCheck',
    'LoopBoundChecker',
    'SINK_PREDICATES',
    'SinkContextClassifier',
    'PathState',
    'PathAnalysis',
    'TaintClassifier',
]
