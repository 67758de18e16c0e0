"""
Draft Inference Builder

Assembles the per-attribute fallback resolutions into one DraftInference.

Steps:
1. Start from the canonical empty record (every slot DEFAULT, zero confidence)
2. Overlay each resolution from the fallback coordinator
3. Normalization pass:
   - weight in grams (kg × 1000, oz, lb ...), category default when missing
   - at least two case-pack candidates (seeds 12, then 24)
   - a selected case-pack value (first candidate when none was chosen)

normalize() is idempotent: normalize(normalize(d)) == normalize(d).
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from loguru import logger

from ..evidence.fields import EvidenceField, EvidenceSource
from ..extractor.attempts import ExtractionAttempts
from ..extractor.fallback import FallbackCoordinator, FallbackResult
from ..settings import EngineConfig, default_engine_config
from .models import CasePackDraft, DraftInference, LabelDraft, WeightDraft, hs_candidates_from


class DraftInferenceBuilder:
    """
    Builds complete DraftInference records.

    Usage:
        builder = DraftInferenceBuilder()
        draft = builder.build(ExtractionAttempts(category="candy"))
        draft.weight_draft.grams   # 25
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or default_engine_config()
        self.coordinator = FallbackCoordinator(self.config)

    def empty(self, category: str = "unknown") -> DraftInference:
        """Canonical record with every slot at DEFAULT."""
        return DraftInference(category=category or "unknown")

    def build(self, attempts: Optional[ExtractionAttempts] = None) -> DraftInference:
        """
        Build a complete draft from raw extraction attempts.

        Total for every input, including None.
        """
        attempts = attempts or ExtractionAttempts()
        return self.from_resolutions(self.coordinator.resolve_all(attempts), attempts.category)

    def from_resolutions(self, result: FallbackResult, category: str = "unknown") -> DraftInference:
        """Overlay coordinator resolutions on the empty record and normalize."""
        customs = result.customs.value
        draft = self.empty(category).with_slots(
            label_draft=result.label.value,
            barcode_draft=result.barcode.value,
            weight_draft=result.weight.value,
            case_pack_draft=result.case_pack.value,
            customs_category_draft=customs.category,
            hs_candidates_draft=customs.hs_candidates,
        )
        return self.normalize(draft)

    def normalize(self, draft: Union[DraftInference, Mapping[str, Any], None]) -> DraftInference:
        """
        Final normalization pass.

        Accepts a DraftInference or its serialized JSON form (as persisted
        with the report, possibly by older writers with kg weights or a
        single case-pack candidate).
        """
        if draft is None:
            draft = self.empty()
        elif isinstance(draft, Mapping):
            draft = self.parse(draft)

        weight = draft.weight_draft
        if not weight.is_present:
            weight = self.coordinator.default_weight(draft.category)
            logger.debug(f"Weight missing after fallback, using {weight.grams} g default")

        return draft.with_slots(
            weight_draft=weight,
            case_pack_draft=self._normalize_case_pack(draft.case_pack_draft),
        )

    def _normalize_case_pack(self, case_pack: CasePackDraft) -> CasePackDraft:
        candidates = [c for c in case_pack.candidates if c.is_present]

        seeds = self.config.case_pack_defaults
        while len(candidates) < 2:
            seed = seeds[min(len(candidates), len(seeds) - 1)]
            candidates.append(EvidenceField(seed.value, seed.confidence, EvidenceSource.DEFAULT, "Default candidate"))

        selected = case_pack.selected_value
        if selected is None:
            selected = candidates[0].value

        selected_confidence = case_pack.selected_confidence
        if selected_confidence is None:
            selected_confidence = next((c.confidence for c in candidates if c.value == selected), None)

        return CasePackDraft(tuple(candidates), selected, selected_confidence)

    def parse(self, data: Mapping[str, Any]) -> DraftInference:
        """Read a serialized draft; anything unreadable becomes its DEFAULT slot."""
        category = data.get('category') if isinstance(data.get('category'), str) else "unknown"

        weight_raw = data.get('weightDraft')
        weight = WeightDraft()
        if isinstance(weight_raw, Mapping):
            confidence = weight_raw.get('confidence')
            source = EvidenceSource.parse(weight_raw.get('source'))
            weight = WeightDraft.from_measurement(
                weight_raw.get('value'),
                weight_raw.get('unit') or "g",
                0.5 if confidence is None else confidence,
                source,
                weight_raw.get('evidenceSnippet'),
            )

        hs_raw = data.get('hsCandidatesDraft')

        return DraftInference(
            label_draft=LabelDraft.from_dict(data.get('labelDraft')),
            barcode_draft=_field_or_absent(data.get('barcodeDraft'), "Not captured"),
            weight_draft=weight,
            case_pack_draft=_case_pack_from_dict(data.get('casePackDraft')),
            customs_category_draft=_field_or_absent(data.get('customsCategoryDraft'), "Not inferred"),
            hs_candidates_draft=hs_candidates_from(hs_raw),
            category=category,
        )


def _field_or_absent(raw: Any, snippet: str) -> EvidenceField:
    field = EvidenceField.from_dict(raw)
    return field if field.is_present else EvidenceField.absent(snippet)


def _case_pack_from_dict(raw: Any) -> CasePackDraft:
    if not isinstance(raw, Mapping):
        return CasePackDraft()

    candidates: List[EvidenceField] = []
    items = raw.get('candidates')
    for item in items if isinstance(items, (list, tuple)) else ():
        candidate = EvidenceField.from_dict(item, default_confidence=0.5)
        if candidate.is_present and isinstance(candidate.value, (int, float)) and not isinstance(candidate.value, bool):
            candidates.append(candidate)

    selected = raw.get('selectedValue', raw.get('chosen'))
    selected_confidence = raw.get('selectedConfidence')
    return CasePackDraft(
        candidates=tuple(candidates),
        selected_value=selected if isinstance(selected, int) and not isinstance(selected, bool) else None,
        selected_confidence=(
            float(selected_confidence) if isinstance(selected_confidence, (int, float)) else None
        ),
    )
