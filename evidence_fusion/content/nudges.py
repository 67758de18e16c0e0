"""
Report Nudges

Picks exactly one "do this next" action and photo tip for a report.

Selection:
1. Keep actions whose conditions hold for the report's missing evidence
2. Apply the category priority adjustments (first matching group only)
3. Take the lowest priority; among equal priorities, index by
   stable_hash(report_id)

The catalog lives in data/nudges.yaml.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from loguru import logger

from ..exceptions import CatalogError
from ..parser.normalizers import category_matches
from ..settings import DEFAULT_NUDGE_CATALOG, EngineConfig, default_engine_config
from .hashing import stable_hash


class Severity(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NudgeTarget(Enum):
    BARCODE = "barcode"
    LABEL = "label"
    WEIGHT = "weight"
    BOX = "box"
    ORIGIN = "origin"
    NAME = "name"
    PRICING = "pricing"
    GENERAL = "general"


@dataclass(frozen=True)
class NudgeFlags:
    """Which evidence is missing for a report."""
    label_missing: bool = True
    barcode_missing: bool = True
    origin_missing: bool = True
    weight_default: bool = True
    case_pack_default: bool = True
    supplier_matches_empty: bool = True
    hs_missing: bool = True

    def is_set(self, name: str) -> bool:
        return bool(getattr(self, name))


FLAG_NAMES = frozenset(f.name for f in fields(NudgeFlags))


@dataclass(frozen=True)
class NudgeAction:
    """Catalog entry."""
    key: str
    priority: float
    target: NudgeTarget
    severity: Severity
    action_text: str
    tip_text: str
    when: Tuple[str, ...] = ()
    unless: Tuple[str, ...] = ()

    def applies(self, flags: NudgeFlags) -> bool:
        return all(flags.is_set(f) for f in self.when) and not any(flags.is_set(f) for f in self.unless)


@dataclass(frozen=True)
class ReportNudge:
    """The one nudge shown on a report."""
    action_key: str
    action_text: str
    tip_text: str
    severity: Severity
    target: NudgeTarget

    @classmethod
    def from_action(cls, action: NudgeAction) -> 'ReportNudge':
        return cls(action.key, action.action_text, action.tip_text, action.severity, action.target)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'actionKey': self.action_key,
            'actionText': self.action_text,
            'tipText': self.tip_text,
            'severity': self.severity.value,
            'target': self.target.value,
        }


@dataclass(frozen=True)
class CategoryBoost:
    group: str
    adjust: Tuple[Tuple[str, float], ...]


class NudgeCatalog:
    """Immutable nudge catalog."""

    def __init__(self, actions: List[NudgeAction], boosts: List[CategoryBoost] = None):
        keys = [a.key for a in actions]
        if len(set(keys)) != len(keys):
            raise CatalogError("Duplicate nudge action key")
        if not any(not a.when and not a.unless for a in actions):
            raise CatalogError("Nudge catalog needs an always-applicable action")
        for action in actions:
            unknown = set(action.when + action.unless) - FLAG_NAMES
            if unknown:
                raise CatalogError(f"Nudge '{action.key}' uses unknown flags: {sorted(unknown)}")
        self.actions: Tuple[NudgeAction, ...] = tuple(actions)
        self.boosts: Tuple[CategoryBoost, ...] = tuple(boosts or ())

    @property
    def fallback(self) -> NudgeAction:
        """Last always-applicable action."""
        return [a for a in self.actions if not a.when and not a.unless][-1]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'NudgeCatalog':
        if not isinstance(data, Mapping):
            raise CatalogError("Nudge catalog must be a mapping")
        try:
            actions = [
                NudgeAction(
                    key=str(item['key']),
                    priority=float(item['priority']),
                    target=NudgeTarget(item['target']),
                    severity=Severity(item['severity']),
                    action_text=str(item['action_text']),
                    tip_text=str(item['tip_text']),
                    when=tuple(item.get('when') or ()),
                    unless=tuple(item.get('unless') or ()),
                )
                for item in data.get('actions') or []
            ]
            boosts = [
                CategoryBoost(
                    group=str(item['group']),
                    adjust=tuple((str(k), float(v)) for k, v in (item.get('adjust') or {}).items()),
                )
                for item in data.get('category_boosts') or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError(f"Invalid nudge catalog: {e}") from e
        return cls(actions, boosts)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'NudgeCatalog':
        path = Path(path or DEFAULT_NUDGE_CATALOG)
        logger.info(f"Loading nudge catalog from: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise CatalogError(f"Cannot read nudge catalog: {e}", str(path)) from e
        return cls.from_dict(data)


@lru_cache(maxsize=None)
def load_nudge_catalog(path: Optional[str] = None) -> NudgeCatalog:
    return NudgeCatalog.load(Path(path) if path else None)


class NudgeSelector:
    """
    Usage:
        nudge = NudgeSelector().pick("report-123", "candy", NudgeFlags(...))
        nudge.action_key   # "label_retake"
    """

    def __init__(self, catalog: Optional[NudgeCatalog] = None, config: Optional[EngineConfig] = None):
        self.catalog = catalog or load_nudge_catalog()
        self.config = config or default_engine_config()

    def priorities(self, category: Optional[str]) -> Dict[str, float]:
        """Effective priority of every action for a category."""
        priorities = {a.key: a.priority for a in self.catalog.actions}
        for boost in self.catalog.boosts:
            if category_matches(category, self.config.group(boost.group)):
                for key, delta in boost.adjust:
                    if key in priorities:
                        priorities[key] += delta
                break
        return priorities

    def pick(self, report_id: str, category: Optional[str], flags: Optional[NudgeFlags] = None) -> ReportNudge:
        """Exactly one nudge; deterministic for the same inputs."""
        flags = flags or NudgeFlags()
        priorities = self.priorities(category)

        applicable = [a for a in self.catalog.actions if a.applies(flags)]
        if not applicable:
            return ReportNudge.from_action(self.catalog.fallback)

        best = min(priorities[a.key] for a in applicable)
        top = [a for a in applicable if priorities[a.key] == best]
        selected = top[stable_hash(report_id or "unknown") % len(top)]

        logger.debug(f"Nudge '{selected.key}' (priority {best}, {len(top)} tied)")
        return ReportNudge.from_action(selected)
