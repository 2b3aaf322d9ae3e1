"""
Config loader - parses YAML classifier settings and transform registrations
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import logging

from .dataflow.guarantees import CharsetConstraint, EscapeContext, StringGuarantee
from .dataflow.interval import Interval
from .dataflow.transforms import Domain, Transform, TransformKind, TransformRegistry
from .errors import ConfigurationError
from .models import ClassifierConfig, DEFAULT_SENSITIVE_CATEGORIES

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Loads classifier configuration from a YAML file.

    Example file:

        loop_ceiling: 1000
        max_total_work: 1000000
        sensitive_categories: [password, ssn]
        transforms:
          - name: encodeForHTML
            alias_of: html-escape
          - name: OrderId.format
            domain: string
            produces: {charset: digits, max_length: 12}
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self.transform_specs: List[Dict[str, Any]] = []

    def load(self, overrides: Optional[Mapping[str, Any]] = None) -> ClassifierConfig:
        """Load the file (if any) and apply overrides such as CLI flags"""
        data: Dict[str, Any] = {}
        if self.config_path is not None:
            data = self._read(self.config_path)
        for key, value in (overrides or {}).items():
            if value is not None:
                data[key] = value
        return self.parse(data)

    def _read(self, filepath: Path) -> Dict[str, Any]:
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"cannot read config {filepath}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {filepath}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"config {filepath} must be a mapping")
        logger.info(f"Loaded configuration from {Path(filepath).name}")
        return data

    def parse(self, data: Mapping[str, Any]) -> ClassifierConfig:
        """Build a ClassifierConfig from raw settings"""
        known = {'loop_ceiling', 'max_total_work', 'max_operations',
                 'sensitive_categories', 'max_workers', 'transforms'}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"unknown config keys: {', '.join(sorted(unknown))}")

        categories = data.get('sensitive_categories')
        if categories is None:
            categories = DEFAULT_SENSITIVE_CATEGORIES
        elif not isinstance(categories, list):
            raise ConfigurationError("sensitive_categories must be a list")

        transforms = data.get('transforms') or []
        if not isinstance(transforms, list):
            raise ConfigurationError("transforms must be a list")
        self.transform_specs = transforms

        return ClassifierConfig(
            loop_ceiling=self._positive(data, 'loop_ceiling'),
            max_total_work=self._positive(data, 'max_total_work'),
            max_operations=self._positive(data, 'max_operations'),
            sensitive_categories=frozenset(str(c).lower() for c in categories),
            max_workers=self._positive(data, 'max_workers') or 4,
        )

    @staticmethod
    def _positive(data: Mapping[str, Any], key: str) -> Optional[int]:
        value = data.get(key)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")
        return value

    # ---- Transform registrations ----------------------------------------

    def apply_transforms(self, registry: TransformRegistry) -> int:
        """Register the configured transforms; returns how many were added"""
        for spec in self.transform_specs:
            if not isinstance(spec, dict) or not spec.get('name'):
                raise ConfigurationError(f"transform entry needs a name: {spec!r}")
            name = str(spec['name'])
            if 'alias_of' in spec:
                registry.alias(name, str(spec['alias_of']), spec.get('description', ''))
            elif 'produces' in spec:
                registry.register(self._fixed_transform(name, spec))
            else:
                raise ConfigurationError(f"transform '{name}' needs 'alias_of' or 'produces'")
            logger.info(f"Registered configured transform '{name}'")
        return len(self.transform_specs)

    def _fixed_transform(self, name: str, spec: Dict[str, Any]) -> Transform:
        """Transform that always yields the same guarantee"""
        try:
            domain = Domain(spec.get('domain', 'string'))
            kind = TransformKind(spec.get('kind', 'sanitizer'))
            input_domain = Domain(spec['input_domain']) if 'input_domain' in spec else None
        except ValueError as e:
            raise ConfigurationError(f"transform '{name}': {e}") from e
        if domain is Domain.ANY:
            raise ConfigurationError(f"transform '{name}': output domain must be numeric or string")

        produced = spec['produces']
        if not isinstance(produced, dict):
            raise ConfigurationError(f"transform '{name}': 'produces' must be a mapping")
        if domain is Domain.NUMERIC:
            guarantee = self._interval(name, produced)
        else:
            guarantee = self._guarantee(name, produced)

        return Transform(
            name=name,
            domain=domain,
            apply=lambda value, operands, args: guarantee,
            kind=kind,
            input_domain=input_domain,
            conditional=bool(spec.get('conditional', kind is TransformKind.VALIDATOR)),
            description=spec.get('description', f"configured {domain.value} transform"),
            redacts=bool(spec.get('redacts', False)),
        )

    @staticmethod
    def _interval(name: str, produced: Dict[str, Any]) -> Interval:
        low = produced.get('low', float('-inf'))
        high = produced.get('high', float('inf'))
        try:
            return Interval.range(low, high)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"transform '{name}': invalid range: {e}") from e

    @staticmethod
    def _guarantee(name: str, produced: Dict[str, Any]) -> StringGuarantee:
        charset = produced.get('charset')
        max_length = produced.get('max_length')
        if max_length is not None and (not isinstance(max_length, int) or max_length < 0):
            raise ConfigurationError(f"transform '{name}': max_length must be a non-negative integer")

        if charset == 'escaped':
            try:
                contexts = [EscapeContext(c) for c in produced.get('contexts', [])]
            except ValueError as e:
                raise ConfigurationError(f"transform '{name}': {e}") from e
            constraint = CharsetConstraint.escaped(contexts)
        elif charset == 'digits':
            constraint = CharsetConstraint.digits()
        elif charset == 'hex':
            constraint = CharsetConstraint.hex_digits()
        elif charset == 'base64':
            constraint = CharsetConstraint.base64()
        elif charset == 'fixed':
            alphabet = produced.get('alphabet')
            if not isinstance(alphabet, str) or not alphabet:
                raise ConfigurationError(f"transform '{name}': fixed charset needs an alphabet")
            constraint = CharsetConstraint.fixed(alphabet)
        elif charset == 'enum':
            members = produced.get('members')
            if not isinstance(members, list) or not members:
                raise ConfigurationError(f"transform '{name}': enum charset needs members")
            return StringGuarantee.of_members(str(m) for m in members)
        else:
            raise ConfigurationError(f"transform '{name}': unknown charset {charset!r}")
        return StringGuarantee(constraint, max_length)


def load_config(config_path: Optional[Path] = None,
                registry: Optional[TransformRegistry] = None,
                **overrides) -> ClassifierConfig:
    """Convenience function: load settings and register configured transforms"""
    loader = ConfigLoader(config_path)
    config = loader.load(overrides)
    if registry is not None:
        loader.apply_transforms(registry)
    return config
