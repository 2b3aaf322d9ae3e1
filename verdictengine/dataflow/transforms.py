"""
Transform Registry - the open catalogue of recognized operations

Every operation a traced path can apply (numeric arithmetic, encoders,
validators, conversions, pass-through string methods) is a Transform: a
name plus a function from the input guarantee to the output guarantee.
New sanitizers are data registrations, not classifier changes.

Lifecycle: transforms are registered at process start; the registry is
frozen before the first path is analyzed and is read-only afterwards, so
any number of worker threads can share it without locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
import logging
import threading

from ..errors import ConfigurationError, MalformedPath, UnrecognizedOperator

logger = logging.getLogger(__name__)


class Domain(Enum):
    """Value domain a transform consumes or produces"""
    NUMERIC = "numeric"
    STRING = "string"
    ANY = "any"  # input side only


class TransformKind(Enum):
    """How a transform affects the guarantee it receives"""
    SANITIZER = "sanitizer"          # output guarantee independent of input
    VALIDATOR = "validator"          # guarantee holds only on the passed branch
    PASS_THROUGH = "pass_through"    # charset unchanged, length may shrink
    REDACTION = "redaction"          # removes original characters (privacy)
    CONVERSION = "conversion"        # crosses the numeric/string boundary
    NUMERIC = "numeric"              # interval arithmetic


# fn(input_value, operand_values, args) -> output_value
GuaranteeFn = Callable[[Any, Tuple[Any, ...], Mapping[str, Any]], Any]


@dataclass(frozen=True)
class Transform:
    """
    Definition of a recognized operation.

    A transform that sanitizes makes no assumption about its input, which
    is what makes it usable directly on untrusted values.
    """
    name: str
    domain: Domain
    apply: GuaranteeFn
    kind: TransformKind = TransformKind.SANITIZER
    input_domain: Optional[Domain] = None  # None means same as domain
    conditional: bool = False
    description: str = ""
    redacts: bool = False  # output no longer reveals the source characters
    rewrites: bool = False  # pass-through that may insert characters of its own

    @property
    def accepts(self) -> Domain:
        return self.input_domain or self.domain

    @property
    def is_pass_through(self) -> bool:
        return self.kind is TransformKind.PASS_THROUGH

    @property
    def removes_content(self) -> bool:
        return self.redacts or self.kind is TransformKind.REDACTION


# ============================================================
# ARGUMENT HELPERS (shared by builtin transforms)
# ============================================================

def require_arg(args: Mapping[str, Any], name: str, kind: Any = object) -> Any:
    """Fetch a mandatory transform argument"""
    if name not in args:
        raise MalformedPath(f"missing argument '{name}'")
    value = args[name]
    if kind is int and isinstance(value, bool):
        raise MalformedPath(f"argument '{name}' must be int, got bool")
    if not isinstance(value, kind):
        expected = getattr(kind, '__name__', None) or "/".join(k.__name__ for k in kind)
        raise MalformedPath(f"argument '{name}' must be {expected}, got {type(value).__name__}")
    return value


def require_operands(name: str, operands: Tuple[Any, ...], count: int) -> Tuple[Any, ...]:
    """Check operand arity"""
    if len(operands) != count:
        raise MalformedPath(f"{name} takes {count} operand(s), got {len(operands)}")
    return operands


class TransformRegistry:
    """
    Registry of recognized transforms.

    Provides lookup by name with the builtin numeric operators and string
    sanitizers preloaded; custom transforms are added before freeze().
    """

    def __init__(self, transforms: Optional[List[Transform]] = None):
        self._by_name: Dict[str, Transform] = {}
        self._frozen = False
        if transforms:
            for transform in transforms:
                self.register(transform)

    @classmethod
    def with_builtins(cls) -> TransformRegistry:
        """Create a registry holding every builtin transform"""
        from .numeric_ops import NUMERIC_TRANSFORMS
        from .sanitizers import STRING_TRANSFORMS

        registry = cls()
        for transform in NUMERIC_TRANSFORMS + STRING_TRANSFORMS:
            registry.register(transform)
        logger.debug(f"TransformRegistry initialized with {len(registry)} transforms")
        return registry

    def register(self, transform: Transform, replace: bool = False) -> None:
        """Add a transform; only allowed before the registry is frozen"""
        if self._frozen:
            raise ConfigurationError(
                f"cannot register '{transform.name}': registry is frozen after analysis began"
            )
        if transform.name in self._by_name and not replace:
            raise ConfigurationError(f"transform '{transform.name}' is already registered")
        self._by_name[transform.name] = transform

    def alias(self, name: str, target: str, description: str = "") -> Transform:
        """Register an existing transform's behavior under another name"""
        if target not in self._by_name:
            raise ConfigurationError(f"cannot alias '{name}' to unknown transform '{target}'")
        base = self._by_name[target]
        transform = Transform(
            name=name,
            domain=base.domain,
            apply=base.apply,
            kind=base.kind,
            input_domain=base.input_domain,
            conditional=base.conditional,
            description=description or f"alias of {target}",
            redacts=base.redacts,
            rewrites=base.rewrites,
        )
        self.register(transform)
        return transform

    def freeze(self) -> None:
        """End the registration phase"""
        if not self._by_name:
            raise ConfigurationError("transform registry is empty")
        if not self._frozen:
            logger.info(f"Transform registry frozen with {len(self._by_name)} transforms")
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Transform:
        """Look up a transform; raises UnrecognizedOperator when unknown"""
        try:
            return self._by_name[name]
        except KeyError:
            raise UnrecognizedOperator(name) from None

    def names(self) -> List[str]:
        return sorted(self._by_name)

    def transforms(self, kind: Optional[TransformKind] = None,
                   domain: Optional[Domain] = None) -> List[Transform]:
        """All transforms, optionally filtered by kind and output domain"""
        return [
            t for _, t in sorted(self._by_name.items())
            if (kind is None or t.kind is kind) and (domain is None or t.domain is domain)
        ]

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)


# ============================================================
# PROCESS-WIDE REGISTRY
# ============================================================

_default_registry: Optional[TransformRegistry] = None
_init_lock = threading.Lock()


def default_registry() -> TransformRegistry:
    """The process-wide registry, created with the builtins on first use"""
    global _default_registry
    if _default_registry is None:
        with _init_lock:
            if _default_registry is None:
                _default_registry = TransformRegistry.with_builtins()
    return _default_registry


def register_transform(name: str, domain: Domain, guarantee_fn: GuaranteeFn, *,
                       kind: TransformKind = TransformKind.SANITIZER,
                       input_domain: Optional[Domain] = None,
                       conditional: bool = False,
                       description: str = "",
                       redacts: bool = False) -> Transform:
    """
    Register a transform in the process-wide registry.

    Must be called at process start, before any classifier is created;
    afterwards the registry is frozen and this raises ConfigurationError.
    """
    transform = Transform(
        name=name,
        domain=domain,
        apply=guarantee_fn,
        kind=kind,
        input_domain=input_domain,
        conditional=conditional,
        description=description,
        redacts=redacts,
    )
    default_registry().register(transform)
    logger.info(f"Registered transform '{name}' ({kind.value}, {domain.value})")
    return transform


def reset_default_registry() -> None:
    """Drop the process-wide registry so the next use rebuilds it (tests only)"""
    global _default_registry
    with _init_lock:
        _default_registry = None
