"""
SinkVerdict - Taint-flow safety classifier.

Given a value that enters from an untrusted source and passes through a
chain of transformations before reaching a sensitive operation, decide
whether the path is exploitable, and why.

Analyses:
    1. Interval analysis - can a loop bound be driven past the ceiling K?
    2. Sink context classification - does the transform chain neutralize
       the value for HTML, attribute, script, URL or CSS output?
    3. Disclosure - do sensitive characters survive to the sink?

Quick Start:
    >>> from verdictengine import TaintClassifier, ClassifierConfig, PathDescriptor
    >>> classifier = TaintClassifier(ClassifierConfig(loop_ceiling=1000))
    >>> verdict = classifier.classify(PathDescriptor.from_dict(raw))
    >>> print(verdict.explain())

Output Formats:
    Console (human review), JSON (tooling)
"""

__version__ = "0.3.0"
__author__ = "SinkVerdict"

from .models import (
    Outcome, SinkContext, PolicyAxis, RationaleStep, AxisVerdict, Verdict,
    ClassifierConfig, BatchResult,
)
from .errors import (
    VerdictEngineError, MalformedPath, UnrecognizedOperator, ConfigurationError,
    StateTransitionError,
)
from .dataflow import (
    Interval, StringGuarantee, CharsetConstraint, CharsetKind, EscapeContext,
    Domain, TransformKind, Transform, TransformRegistry, register_transform,
    PathDescriptor, Source, NumericOp, StringOp, SinkTag, Literal, SubPath, BranchGuard,
    load_paths, dump_paths, TaintClassifier,
)
from .config import ConfigLoader, load_config
from .runner import BatchClassifier

__all__ = [
    # Core
    'TaintClassifier',
    'ClassifierConfig',
    'Verdict',
    'Outcome',
    'SinkContext',
    'PolicyAxis',
    'RationaleStep',
    'AxisVerdict',
    'BatchResult',
    # Errors
    'VerdictEngineError',
    'MalformedPath',
    'UnrecognizedOperator',
    'ConfigurationError',
    'StateTransitionError',
    # Abstract values
    'Interval',
    'StringGuarantee',
    'CharsetConstraint',
    'CharsetKind',
    'EscapeContext',
    # Registry
    'Domain',
    'TransformKind',
    'Transform',
    'TransformRegistry',
    'register_transform',
    # Paths
    'PathDescriptor',
    'Source',
    'NumericOp',
    'StringOp',
    'SinkTag',
    'Literal',
    'SubPath',
    'BranchGuard',
    'load_paths',
    'dump_paths',
    # Config and batch
    'ConfigLoader',
    'load_config',
    'BatchClassifier',
]
