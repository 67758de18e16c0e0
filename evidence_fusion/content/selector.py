"""
Deterministic Verdict Template Selection

Picks one catalog template for a report, reproducibly: the same
(report id, category, decision, signals) always yields the same template,
in every process and on every re-render.

Bucket precedence (first match wins):
1. Evidence tone: GO with low evidence → go_weak_data_advantage,
   HOLD with low evidence → hold_missing_inputs
2. Category group, in the order food → toy → combo:
   GO:   food → go_strong_evidence, toy → go_supplier_competition,
         combo → go_classification
   HOLD: food → hold_needs_confirmation, combo → hold_classification
3. The decision's basic bucket
NO always picks no_compliance when a compliance trigger is suspected,
otherwise no_economics.

Within the bucket: index = stable_hash(report_id) % len(bucket). A missing
id falls back to the bucket's first id, then to any template of the
decision; selection never raises.
"""

from __future__ import annotations

from typing import Optional, Tuple

from loguru import logger

from ..decision.decision_engine import Decision, DecisionSignals, EvidenceTier
from ..parser.normalizers import category_matches
from ..settings import EngineConfig, default_engine_config
from .catalog import ContentTemplate, TemplateCatalog
from .hashing import stable_hash


BASIC_BUCKETS = {
    Decision.GO: 'go_strong_evidence',
    Decision.HOLD: 'hold_needs_confirmation',
    Decision.NO: 'no_economics',
}

LOW_EVIDENCE_BUCKETS = {
    Decision.GO: 'go_weak_data_advantage',
    Decision.HOLD: 'hold_missing_inputs',
}

# (category group, bucket) per decision, checked in order
CATEGORY_BUCKETS = {
    Decision.GO: (
        ('food', 'go_strong_evidence'),
        ('toy', 'go_supplier_competition'),
        ('combo', 'go_classification'),
    ),
    Decision.HOLD: (
        ('food', 'hold_needs_confirmation'),
        ('toy', 'hold_needs_confirmation'),
        ('combo', 'hold_classification'),
    ),
}

# Used only if the catalog has no template at all for a decision
BUILTIN_TEMPLATES = {
    Decision.GO: ContentTemplate(0, Decision.GO, "Evidence supports moving to supplier verification.", 'builtin'),
    Decision.HOLD: ContentTemplate(0, Decision.HOLD, "Add a clear barcode or label photo before committing.", 'builtin'),
    Decision.NO: ContentTemplate(0, Decision.NO, "Current risk factors outweigh the opportunity.", 'builtin'),
}


class VerdictTemplateSelector:
    """
    Selects verdict explanation text.

    Usage:
        selector = VerdictTemplateSelector()
        template = selector.select("report-123", "candy", Decision.HOLD, signals)
        template.id, template.statement
    """

    def __init__(self, catalog: Optional[TemplateCatalog] = None, config: Optional[EngineConfig] = None):
        self.catalog = catalog or TemplateCatalog.default()
        self.config = config or default_engine_config()

    def select_bucket(
        self,
        category: Optional[str],
        decision: Decision,
        signals: Optional[DecisionSignals] = None,
    ) -> Tuple[str, Tuple[int, ...]]:
        """Return (bucket name, ids) for the decision and signals."""
        signals = signals or DecisionSignals()

        if decision is Decision.NO:
            name = 'no_compliance' if signals.compliance_suspected else 'no_economics'
            return self._resolve(name, decision)

        if signals.evidence_tier is EvidenceTier.LOW:
            return self._resolve(LOW_EVIDENCE_BUCKETS[decision], decision)

        for group, name in CATEGORY_BUCKETS[decision]:
            if category_matches(category, self.config.group(group)):
                return self._resolve(name, decision)

        return self._resolve(BASIC_BUCKETS[decision], decision)

    def _resolve(self, name: str, decision: Decision) -> Tuple[str, Tuple[int, ...]]:
        ids = self.catalog.bucket(name)
        if ids:
            return name, ids
        logger.warning(f"Bucket '{name}' is empty, using basic {decision.value} bucket")
        basic = BASIC_BUCKETS[decision]
        return basic, self.catalog.bucket(basic)

    def select(
        self,
        report_id: str,
        category: Optional[str],
        decision: Decision,
        signals: Optional[DecisionSignals] = None,
    ) -> ContentTemplate:
        """
        Pick one template. Pure: depends only on the arguments and the catalog.
        """
        name, ids = self.select_bucket(category, decision, signals)
        if not ids:
            return self._any_of(decision)

        template_id = ids[stable_hash(report_id or "unknown") % len(ids)]
        template = self.catalog.get(template_id)
        if template is None:
            logger.warning(f"Template {template_id} missing from catalog, using first of '{name}'")
            template = self.catalog.get(ids[0]) or self._any_of(decision)

        logger.debug(f"Selected template {template.id} from bucket '{name}'")
        return template

    def _any_of(self, decision: Decision) -> ContentTemplate:
        candidates = sorted(self.catalog.for_decision(decision), key=lambda t: t.id)
        if candidates:
            return candidates[0]
        logger.warning(f"No {decision.value} templates in catalog, using built-in text")
        return BUILTIN_TEMPLATES[decision]
