"""
Verdict Template Catalog

Pure, versioned data (data/verdict_templates.yaml) loaded once per process
into an immutable index keyed by bucket.

Consistency checks at load time:
- template ids are unique
- every template's bucket is declared
- a template's decision matches its bucket's decision
- preferred views only reference templates of their own decision
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from loguru import logger
from pydantic import BaseModel, ValidationError, field_validator

from ..decision.decision_engine import Decision
from ..exceptions import CatalogError
from ..settings import DEFAULT_TEMPLATE_CATALOG


@dataclass(frozen=True)
class ContentTemplate:
    """One prewritten verdict explanation."""
    id: int
    decision: Decision
    statement: str
    bucket: str
    category_hints: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'decision': self.decision.value,
            'statement': self.statement,
            'categoryHints': list(self.category_hints),
        }


class TemplateEntry(BaseModel):
    """
    Pydantic model for one catalog entry as written in the YAML file.

    Catalog authors edit the file by hand, so entries are checked field
    by field before they reach the immutable index.
    """
    id: int
    decision: str
    bucket: str
    statement: str
    category_hints: Optional[List[str]] = None

    @field_validator('id')
    @classmethod
    def validate_id(cls, v):
        """Template ids are positive; 0 is reserved for built-in text."""
        if v <= 0:
            raise ValueError('Template id must be positive')
        return v

    @field_validator('decision')
    @classmethod
    def validate_decision(cls, v):
        v = str(v).strip().upper()
        if v not in {d.value for d in Decision}:
            raise ValueError(f'Unknown decision: {v}')
        return v

    @field_validator('statement')
    @classmethod
    def validate_statement(cls, v):
        v = str(v).strip()
        if not v:
            raise ValueError('Statement must not be empty')
        return v

    def to_template(self) -> ContentTemplate:
        return ContentTemplate(
            id=self.id,
            decision=Decision(self.decision),
            statement=self.statement,
            bucket=self.bucket,
            category_hints=tuple(self.category_hints or ()),
        )


class TemplateCatalog:
    """
    Immutable template index.

    Usage:
        catalog = TemplateCatalog.default()
        catalog.get(42).statement
        catalog.bucket('no_compliance')   # (41, 42, ..., 50)
    """

    def __init__(
        self,
        templates: List[ContentTemplate],
        buckets: Mapping[str, Decision],
        preferred: Optional[Mapping[str, Tuple[Decision, Tuple[int, ...]]]] = None,
        version: int = 1,
    ):
        self.version = version
        by_id: Dict[int, ContentTemplate] = {}
        members: Dict[str, List[int]] = {name: [] for name in buckets}

        for template in templates:
            if template.id in by_id:
                raise CatalogError(f"Duplicate template id {template.id}")
            if template.bucket not in buckets:
                raise CatalogError(f"Template {template.id} uses undeclared bucket '{template.bucket}'")
            if buckets[template.bucket] is not template.decision:
                raise CatalogError(
                    f"Template {template.id} is {template.decision.value} "
                    f"but bucket '{template.bucket}' is {buckets[template.bucket].value}"
                )
            by_id[template.id] = template
            members[template.bucket].append(template.id)

        views: Dict[str, Tuple[int, ...]] = {}
        for name, (decision, ids) in (preferred or {}).items():
            for template_id in ids:
                template = by_id.get(template_id)
                if template is not None and template.decision is not decision:
                    raise CatalogError(f"Preferred view '{name}' mixes decisions (template {template_id})")
            views[name] = tuple(ids)

        self._by_id = MappingProxyType(by_id)
        self._buckets = MappingProxyType({name: tuple(ids) for name, ids in members.items()})
        self._views = MappingProxyType(views)
        self._decisions = MappingProxyType(dict(buckets))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._by_id

    def get(self, template_id: int) -> Optional[ContentTemplate]:
        return self._by_id.get(template_id)

    def bucket(self, name: str) -> Tuple[int, ...]:
        """Ids of a bucket or preferred view, in catalog order."""
        if name in self._buckets:
            return self._buckets[name]
        return self._views.get(name, ())

    def bucket_decision(self, name: str) -> Optional[Decision]:
        return self._decisions.get(name)

    @property
    def bucket_names(self) -> Tuple[str, ...]:
        return tuple(self._buckets)

    def for_decision(self, decision: Decision) -> List[ContentTemplate]:
        return [t for t in self._by_id.values() if t.decision is decision]

    def templates(self) -> List[ContentTemplate]:
        return sorted(self._by_id.values(), key=lambda t: t.id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TemplateCatalog':
        """Build a catalog from the parsed YAML document."""
        if not isinstance(data, Mapping):
            raise CatalogError("Template catalog must be a mapping")
        try:
            buckets = {
                name: _decision(spec['decision'], name)
                for name, spec in (data.get('buckets') or {}).items()
            }
            preferred = {
                name: (_decision(spec['decision'], name), tuple(int(i) for i in spec.get('ids', [])))
                for name, spec in (data.get('preferred') or {}).items()
            }
            templates = [
                TemplateEntry.model_validate(item).to_template()
                for item in data.get('templates') or []
            ]
        except ValidationError as e:
            raise CatalogError(f"Invalid template entry: {e.errors()[0]['msg']}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError(f"Invalid template catalog: {e}") from e

        return cls(templates, buckets, preferred, int(data.get('version', 1)))

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'TemplateCatalog':
        """Load and validate a catalog file."""
        path = Path(path or DEFAULT_TEMPLATE_CATALOG)
        logger.info(f"Loading template catalog from: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load template catalog: {e}")
            raise CatalogError(f"Cannot read template catalog: {e}", str(path)) from e

        catalog = cls.from_dict(data)
        logger.info(f"Loaded {len(catalog)} templates (catalog v{catalog.version})")
        return catalog

    @classmethod
    def default(cls) -> 'TemplateCatalog':
        return load_template_catalog()


@lru_cache(maxsize=None)
def load_template_catalog(path: Optional[str] = None) -> TemplateCatalog:
    """Catalog loaded once per process per path."""
    return TemplateCatalog.load(Path(path) if path else None)


def _decision(value: Any, where: str) -> Decision:
    # Unquoted NO in YAML 1.1 loads as False
    if not isinstance(value, str):
        raise CatalogError(f"'{where}' has non-string decision {value!r}; quote it in the catalog")
    return Decision(value.strip().upper())
