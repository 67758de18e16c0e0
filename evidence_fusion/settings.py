"""
Engine Settings

Tunable constants of the engine, loaded from YAML.

The code defaults below mirror data/engine.yaml so the engine works with
no configuration at all; a YAML file overrides any subset of sections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from loguru import logger

from .exceptions import ConfigurationError


DATA_DIR = Path(__file__).parent / "data"
DEFAULT_ENGINE_CONFIG = DATA_DIR / "engine.yaml"
DEFAULT_TEMPLATE_CATALOG = DATA_DIR / "verdict_templates.yaml"
DEFAULT_NUDGE_CATALOG = DATA_DIR / "nudges.yaml"


@dataclass(frozen=True)
class WeightDefaultRule:
    """Category keyword rule producing a default unit weight."""
    keywords: Tuple[str, ...]
    value: float
    unit: str = "g"
    confidence: float = 0.2
    label: str = "category"

    @classmethod
    def from_dict(cls, data: dict) -> 'WeightDefaultRule':
        return cls(
            keywords=tuple(data.get('keywords', [])),
            value=float(data['value']),
            unit=data.get('unit', 'g'),
            confidence=float(data.get('confidence', 0.2)),
            label=data.get('label', 'category'),
        )


@dataclass(frozen=True)
class CasePackDefault:
    """Seed candidate for units per case."""
    value: int
    confidence: float
    evidence: str = "Default candidate"


def _default_weight_rules() -> Tuple[WeightDefaultRule, ...]:
    return (
        WeightDefaultRule(('candy', 'chocolate'), 25, 'g', 0.25, 'candy'),
        WeightDefaultRule(('beverage', 'drink'), 250, 'ml', 0.2, 'beverage'),
        WeightDefaultRule(('snack',), 30, 'g', 0.25, 'snack'),
        WeightDefaultRule(('supplement',), 5, 'g', 0.25, 'supplement'),
    )


def _default_case_packs() -> Tuple[CasePackDefault, ...]:
    return (
        CasePackDefault(12, 0.3, "Common case pack for this category"),
        CasePackDefault(24, 0.2, "Alternative case pack for this category"),
    )


def _default_category_groups() -> Dict[str, Tuple[str, ...]]:
    return {
        'food': ('food', 'candy', 'snack'),
        'toy': ('toy', 'novelty', 'accessory'),
        'combo': ('combo', 'hybrid'),
        'food_nudge': ('food', 'candy', 'snack', 'confectionery'),
    }


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for the evidence fusion engine.

    Groups every constant that product owners have asked to tune:
    default weights, case-pack seeds, compliance keywords and the
    thresholds used by the decision rules.
    """
    # Weight chain terminal defaults
    weight_rules: Tuple[WeightDefaultRule, ...] = field(default_factory=_default_weight_rules)
    fallback_weight: WeightDefaultRule = field(
        default_factory=lambda: WeightDefaultRule((), 50, 'g', 0.2, 'category')
    )

    # Case pack seeds (always at least two)
    case_pack_defaults: Tuple[CasePackDefault, ...] = field(default_factory=_default_case_packs)

    # Categories that trigger compliance review
    compliance_keywords: Tuple[str, ...] = ('electronics', 'battery', 'toy', 'hybrid')

    # Keyword groups for content selection and nudges
    category_groups: Dict[str, Tuple[str, ...]] = field(default_factory=_default_category_groups)

    # Decision thresholds
    duty_range_threshold: float = 5.0       # percentage points
    origin_assumed_impact: float = 5.0      # percent of landed cost
    strong_evidence_exact_matches: int = 3

    # Extraction runner
    extraction_timeout: float = 20.0
    max_workers: int = 5
    max_retries: int = 0
    retry_base_delay: float = 0.5

    def group(self, name: str) -> Tuple[str, ...]:
        """Keywords of a category group (empty when unknown)."""
        return tuple(self.category_groups.get(name, ()))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'EngineConfig':
        """Build config from a parsed YAML document; missing sections keep defaults."""
        data = data or {}
        base = cls()
        kwargs: Dict[str, Any] = {}

        weights = data.get('weight_defaults') or {}
        if 'rules' in weights:
            kwargs['weight_rules'] = tuple(WeightDefaultRule.from_dict(r) for r in weights['rules'])
        if 'fallback' in weights:
            kwargs['fallback_weight'] = WeightDefaultRule.from_dict({'keywords': [], **weights['fallback']})

        case_pack = data.get('case_pack') or {}
        if 'defaults' in case_pack:
            seeds = tuple(
                CasePackDefault(int(c['value']), float(c.get('confidence', 0.3)), c.get('evidence', "Default candidate"))
                for c in case_pack['defaults']
            )
            if len(seeds) < 2:
                raise ConfigurationError("case_pack.defaults needs at least two candidates")
            kwargs['case_pack_defaults'] = seeds

        compliance = data.get('compliance') or {}
        if 'keywords' in compliance:
            kwargs['compliance_keywords'] = tuple(compliance['keywords'])

        if 'category_groups' in data:
            groups = dict(base.category_groups)
            groups.update({k: tuple(v) for k, v in (data['category_groups'] or {}).items()})
            kwargs['category_groups'] = groups

        decision = data.get('decision') or {}
        for key in ('duty_range_threshold', 'origin_assumed_impact'):
            if key in decision:
                kwargs[key] = float(decision[key])
        if 'strong_evidence_exact_matches' in decision:
            kwargs['strong_evidence_exact_matches'] = int(decision['strong_evidence_exact_matches'])

        extraction = data.get('extraction') or {}
        if 'timeout_seconds' in extraction:
            kwargs['extraction_timeout'] = float(extraction['timeout_seconds'])
        for key in ('max_workers', 'max_retries'):
            if key in extraction:
                kwargs[key] = int(extraction[key])
        if 'retry_base_delay' in extraction:
            kwargs['retry_base_delay'] = float(extraction['retry_base_delay'])

        return cls(**kwargs)


class ConfigLoader:
    """
    Loads engine configuration from YAML files.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self.raw: Dict[str, Any] = {}

    def load(self, config_path: Optional[Path] = None) -> EngineConfig:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to YAML config (defaults to the packaged engine.yaml)

        Returns:
            EngineConfig

        Raises:
            ConfigurationError: file missing, unparsable or inconsistent
        """
        path = Path(config_path or self.config_path or DEFAULT_ENGINE_CONFIG)
        logger.info(f"Loading engine configuration from: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                self.raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config: {e}")
            raise ConfigurationError(f"Cannot read engine config: {e}", str(path)) from e

        if not isinstance(self.raw, dict):
            raise ConfigurationError("Engine config must be a mapping", str(path))

        try:
            return EngineConfig.from_dict(self.raw)
        except ConfigurationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid engine config: {e}", str(path)) from e


@lru_cache(maxsize=None)
def default_engine_config() -> EngineConfig:
    """Packaged configuration, loaded once per process."""
    return ConfigLoader().load(DEFAULT_ENGINE_CONFIG)


def load_engine_config(config_path: Optional[Path] = None) -> EngineConfig:
    """Load a config file, or the packaged defaults when no path is given."""
    if config_path is None:
        return default_engine_config()
    return ConfigLoader().load(config_path)
