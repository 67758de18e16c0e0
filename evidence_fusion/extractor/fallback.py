"""
Extraction Fallback Coordinator

Resolves every product attribute through a fixed, priority-ordered chain of
sources, stopping at the first one that produced a usable value.

Chains:
    weight     USER_INPUT → LABEL_TEXT → VISION_INFERENCE → category DEFAULT
    barcode    OCR → VISION_INFERENCE → DEFAULT (null)
    label      user confirmation → OCR → VISION_INFERENCE (draft) → DEFAULT
    case pack  VISION_INFERENCE candidates → DEFAULT seeds (12, 24)
    customs    REASONING → DEFAULT (null, no candidates)

A failed attempt never raises: the coordinator inspects the attempt's
ExtractionOutcome, records a warning and moves to the next source. Every
resolution records which source won and the review status of the fact.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from ..evidence.fields import EvidenceField, EvidenceSource, ExtractionStatus, HsCandidate
from ..draft.models import CasePackDraft, LabelDraft, WeightDraft, hs_candidates_from
from ..parser.normalizers import category_matches
from ..settings import EngineConfig, default_engine_config
from .attempts import ExtractionAttempts, ExtractionOutcome, FailureReason
from .label_text import LabelOcrAssessment, LabelOcrStatus, LabelTextParser, assess_label_ocr


USER_CONFIDENCE = 1.0
OCR_CONFIDENCE = 0.9
LABEL_TEXT_CONFIDENCE = 0.8
VISION_CONFIDENCE = 0.6
CASE_PACK_CANDIDATE_CONFIDENCE = 0.5
CUSTOMS_CONFIDENCE = 0.5

# OCR label field names per label slot, first match wins
OCR_LABEL_FIELDS = {
    'origin_country': ('originCountry', 'origin', 'country_of_origin'),
    'net_weight': ('netWeight', 'net_weight'),
    'allergens': ('allergens', 'warnings'),
    'brand': ('brand',),
    'product_name': ('productName', 'model', 'product_name'),
}


@dataclass(frozen=True)
class Resolution:
    """
    Result of one fallback chain.

    Attributes:
        value: The resolved draft (EvidenceField, WeightDraft, LabelDraft...)
        source: Source that won the chain
        status: Review status of the fact
        warnings: Human-readable notes about degraded attempts
        tried: Sources attempted, in order
    """
    value: Any
    source: EvidenceSource
    status: ExtractionStatus
    warnings: Tuple[str, ...] = ()
    tried: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CustomsDraft:
    """Customs category together with its HS candidates."""
    category: EvidenceField = field(default_factory=lambda: EvidenceField.absent("Not inferred"))
    hs_candidates: Tuple[HsCandidate, ...] = ()


@dataclass(frozen=True)
class FallbackResult:
    """All attribute resolutions for one report."""
    label: Resolution
    label_ocr: LabelOcrAssessment
    barcode: Resolution
    weight: Resolution
    case_pack: Resolution
    customs: Resolution

    @property
    def warnings(self) -> Tuple[str, ...]:
        collected: List[str] = []
        for resolution in (self.label, self.barcode, self.weight, self.case_pack, self.customs):
            collected.extend(resolution.warnings)
        return tuple(collected)

    @property
    def label_readable(self) -> bool:
        """Label read in full by OCR, or at least one value confirmed by the user."""
        if self.label_ocr.status is LabelOcrStatus.SUCCESS:
            return True
        label = self.label.value
        return isinstance(label, LabelDraft) and any(
            f.source is EvidenceSource.USER_INPUT and f.is_present for f in label.fields().values()
        )

    def extraction_status(self) -> Dict[str, Any]:
        return {
            'barcode': {'source': self.barcode.source.value, 'status': self.barcode.status.value},
            'label': {
                'source': self.label.source.value,
                'status': self.label.status.value,
                'ocr': self.label_ocr.to_dict(),
            },
            'weight': {'source': self.weight.source.value, 'status': self.weight.status.value},
            'casePack': {'source': self.case_pack.source.value, 'status': self.case_pack.status.value},
            'customs': {'source': self.customs.source.value, 'status': self.customs.status.value},
        }


def _status_for(source: EvidenceSource) -> ExtractionStatus:
    if source.is_high_trust:
        return ExtractionStatus.CONFIRMED
    if source is EvidenceSource.DEFAULT:
        return ExtractionStatus.NONE
    return ExtractionStatus.DRAFT


def _failure_note(what: str, outcome: ExtractionOutcome) -> Optional[str]:
    """Warning text for a degraded attempt; None when nothing was attempted."""
    if outcome.ok or outcome.reason is FailureReason.NOT_ATTEMPTED:
        return None
    note = f"{what} failed: {outcome.describe()}"
    logger.warning(note)
    return note


class FallbackCoordinator:
    """
    Runs the per-attribute fallback chains over raw extraction attempts.

    Usage:
        coordinator = FallbackCoordinator()
        result = coordinator.resolve_all(attempts)
        result.weight.value      # WeightDraft
        result.weight.source     # EvidenceSource.DEFAULT
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or default_engine_config()
        self.label_parser = LabelTextParser()

    def resolve_all(self, attempts: ExtractionAttempts) -> FallbackResult:
        """Resolve every attribute."""
        label_ocr = assess_label_ocr(attempts.label_terms, attempts.label_text, attempts.analysis_confidence)
        result = FallbackResult(
            label=self.resolve_label(attempts, label_ocr),
            label_ocr=label_ocr,
            barcode=self.resolve_barcode(attempts),
            weight=self.resolve_weight(attempts),
            case_pack=self.resolve_case_pack(attempts),
            customs=self.resolve_customs(attempts),
        )
        logger.debug(
            "Fallback winners: "
            f"barcode={result.barcode.source.value} label={result.label.source.value} "
            f"weight={result.weight.source.value} case_pack={result.case_pack.source.value} "
            f"customs={result.customs.source.value}"
        )
        return result

    # ------------------------------------------------------------------
    # Weight
    # ------------------------------------------------------------------

    def resolve_weight(self, attempts: ExtractionAttempts) -> Resolution:
        """USER_INPUT → LABEL_TEXT → VISION_INFERENCE → category DEFAULT."""
        tried: List[str] = []
        warnings: List[str] = []

        tried.append(EvidenceSource.USER_INPUT.value)
        if attempts.user_weight:
            draft = WeightDraft.from_measurement(
                attempts.user_weight.get('value'),
                attempts.user_weight.get('unit') or "g",
                USER_CONFIDENCE,
                EvidenceSource.USER_INPUT,
                "User provided",
            )
            if draft.is_present:
                return self._resolved(draft, EvidenceSource.USER_INPUT, warnings, tried)
            logger.warning(f"Ignoring unusable user weight: {dict(attempts.user_weight)}")

        tried.append(EvidenceSource.LABEL_TEXT.value)
        draft = self._weight_from_label(attempts)
        if draft is not None:
            return self._resolved(draft, EvidenceSource.LABEL_TEXT, warnings, tried)

        tried.append(EvidenceSource.VISION_INFERENCE.value)
        outcome = attempts.weight_vision
        if outcome.ok and isinstance(outcome.value, Mapping):
            raw = outcome.value
            confidence = raw.get('confidence')
            draft = WeightDraft.from_measurement(
                raw.get('value'),
                raw.get('unit') or "g",
                VISION_CONFIDENCE if confidence is None else confidence,
                EvidenceSource.VISION_INFERENCE,
                raw.get('evidenceSnippet') or "Vision estimate",
            )
            if draft.is_present:
                return self._resolved(draft, EvidenceSource.VISION_INFERENCE, warnings, tried)
            outcome = ExtractionOutcome.failure(FailureReason.NO_VALUE, "weight inference returned no value")
        elif outcome.ok:
            logger.warning(f"Malformed weight draft of type {type(outcome.value).__name__}, discarding")
            outcome = ExtractionOutcome.failure(FailureReason.MALFORMED, "weight draft is not an object")

        note = _failure_note("Weight inference", outcome)
        if note:
            warnings.append(note)

        tried.append(EvidenceSource.DEFAULT.value)
        return self._resolved(self.default_weight(attempts.category), EvidenceSource.DEFAULT, warnings, tried)

    def _weight_from_label(self, attempts: ExtractionAttempts) -> Optional[WeightDraft]:
        found = self.label_parser.net_weight(attempts.label_text)
        if found:
            grams, snippet = found
            return WeightDraft.from_measurement(grams, "g", LABEL_TEXT_CONFIDENCE, EvidenceSource.LABEL_TEXT, snippet)

        for key in OCR_LABEL_FIELDS['net_weight']:
            grams = self.label_parser.net_weight_from_field(attempts.label_fields.get(key))
            if grams is not None:
                return WeightDraft.from_measurement(
                    grams, "g", LABEL_TEXT_CONFIDENCE, EvidenceSource.LABEL_TEXT, "Label net weight"
                )
        return None

    def default_weight(self, category: Optional[str]) -> WeightDraft:
        """Category keyword default; first matching rule wins."""
        rule = self.config.fallback_weight
        for candidate in self.config.weight_rules:
            if category_matches(category, candidate.keywords):
                rule = candidate
                break

        snippet = f"Category default ({rule.label})"
        if rule.unit.lower() == 'ml':
            snippet = f"Category default ({rule.label}, assumed 1 g/ml)"
        return WeightDraft.from_measurement(rule.value, rule.unit, rule.confidence, EvidenceSource.DEFAULT, snippet)

    # ------------------------------------------------------------------
    # Barcode
    # ------------------------------------------------------------------

    def resolve_barcode(self, attempts: ExtractionAttempts) -> Resolution:
        """OCR → VISION_INFERENCE → DEFAULT."""
        tried = [EvidenceSource.OCR.value]
        warnings: List[str] = []

        if attempts.ocr_barcode:
            barcode = EvidenceField(attempts.ocr_barcode, OCR_CONFIDENCE, EvidenceSource.OCR, "OCR read")
            return Resolution(barcode, EvidenceSource.OCR, ExtractionStatus.CONFIRMED, (), tuple(tried))

        outcome = attempts.barcode_vision
        if not attempts.uploads.barcode_photo and outcome.reason is FailureReason.NOT_ATTEMPTED:
            return Resolution(
                EvidenceField.absent("No barcode photo"),
                EvidenceSource.DEFAULT, ExtractionStatus.NONE, (), tuple(tried),
            )

        tried.append(EvidenceSource.VISION_INFERENCE.value)
        if outcome.ok:
            barcode = EvidenceField.from_dict(outcome.value, EvidenceSource.VISION_INFERENCE, VISION_CONFIDENCE)
            if barcode.is_present:
                if barcode.evidence_snippet is None:
                    barcode = replace(barcode, evidence_snippet="Vision extracted")
                return Resolution(barcode, EvidenceSource.VISION_INFERENCE, ExtractionStatus.DRAFT, (), tuple(tried))
            outcome = ExtractionOutcome.failure(FailureReason.NO_VALUE, "barcode not readable")

        note = _failure_note("Barcode Vision extraction", outcome)
        if note:
            warnings.append(note)
        tried.append(EvidenceSource.DEFAULT.value)
        return Resolution(
            EvidenceField.absent("barcode not readable"),
            EvidenceSource.DEFAULT, ExtractionStatus.FAILED, tuple(warnings), tuple(tried),
        )

    # ------------------------------------------------------------------
    # Label
    # ------------------------------------------------------------------

    def resolve_label(
        self,
        attempts: ExtractionAttempts,
        label_ocr: Optional[LabelOcrAssessment] = None,
    ) -> Resolution:
        """
        OCR → VISION_INFERENCE → DEFAULT, with user-confirmed values on top.

        Vision is only consulted when OCR failed and a label photo exists.
        A vision draft stays DRAFT; only user confirmation yields CONFIRMED
        for the values it covers.
        """
        label_ocr = label_ocr or assess_label_ocr(
            attempts.label_terms, attempts.label_text, attempts.analysis_confidence
        )
        tried = [EvidenceSource.OCR.value]
        warnings: List[str] = []

        if label_ocr.status.is_readable:
            label = self._label_from_ocr(attempts.label_fields)
            source, status = EvidenceSource.OCR, ExtractionStatus.CONFIRMED
        elif attempts.uploads.label_photo:
            tried.append(EvidenceSource.VISION_INFERENCE.value)
            outcome = attempts.label_vision
            if outcome.ok and isinstance(outcome.value, Mapping):
                label = LabelDraft.from_dict(outcome.value, EvidenceSource.VISION_INFERENCE)
                source, status = EvidenceSource.VISION_INFERENCE, ExtractionStatus.DRAFT
            else:
                if outcome.ok:
                    logger.warning("Malformed label draft, discarding")
                    outcome = ExtractionOutcome.failure(FailureReason.MALFORMED, "label draft is not an object")
                note = _failure_note("Label Vision extraction", outcome)
                if note:
                    warnings.append(note)
                label = LabelDraft()
                source, status = EvidenceSource.DEFAULT, ExtractionStatus.NONE
        else:
            label = LabelDraft()
            source, status = EvidenceSource.DEFAULT, ExtractionStatus.NONE

        confirmed = self._confirmed_label(attempts.confirmed_label)
        if confirmed:
            tried.insert(0, EvidenceSource.USER_INPUT.value)
            label = replace(label, **confirmed)
            if source is EvidenceSource.DEFAULT:
                source, status = EvidenceSource.USER_INPUT, ExtractionStatus.CONFIRMED

        return Resolution(label, source, status, tuple(warnings), tuple(tried))

    def _label_from_ocr(self, fields: Mapping[str, Any]) -> LabelDraft:
        values = {}
        for name, keys in OCR_LABEL_FIELDS.items():
            raw = next((fields.get(k) for k in keys if fields.get(k) not in (None, "", [])), None)
            if isinstance(raw, (list, tuple)):
                raw = ", ".join(str(v) for v in raw)
            if raw is None:
                values[name] = EvidenceField.absent("Not visible")
            else:
                values[name] = EvidenceField(raw, LABEL_TEXT_CONFIDENCE, EvidenceSource.OCR, "OCR label text")
        return LabelDraft(**values)

    def _confirmed_label(self, confirmed: Mapping[str, Any]) -> Dict[str, EvidenceField]:
        values = {}
        for name, keys in OCR_LABEL_FIELDS.items():
            raw = next((confirmed.get(k) for k in keys if confirmed.get(k) not in (None, "")), None)
            if raw is not None:
                values[name] = EvidenceField(raw, USER_CONFIDENCE, EvidenceSource.USER_INPUT, "User confirmed")
        return values

    # ------------------------------------------------------------------
    # Case pack
    # ------------------------------------------------------------------

    def default_case_pack(self) -> CasePackDraft:
        return CasePackDraft(
            candidates=tuple(
                EvidenceField(seed.value, seed.confidence, EvidenceSource.DEFAULT, seed.evidence)
                for seed in self.config.case_pack_defaults
            )
        )

    def resolve_case_pack(self, attempts: ExtractionAttempts) -> Resolution:
        """
        Default seeds, replaced by vision candidates only when the response
        carries a well-formed candidate list.
        """
        tried = [EvidenceSource.VISION_INFERENCE.value]
        warnings: List[str] = []
        outcome = attempts.case_pack_vision

        if outcome.ok:
            draft = self._case_pack_from(outcome.value)
            if draft is not None:
                return Resolution(draft, EvidenceSource.VISION_INFERENCE, ExtractionStatus.DRAFT, (), tuple(tried))
            logger.warning("Case pack inference returned invalid candidates, using defaults")
            outcome = ExtractionOutcome.failure(FailureReason.MALFORMED, "candidates is not a list")

        note = _failure_note("Case pack inference", outcome)
        if note:
            warnings.append(note)
        tried.append(EvidenceSource.DEFAULT.value)
        return Resolution(
            self.default_case_pack(), EvidenceSource.DEFAULT, ExtractionStatus.NONE, tuple(warnings), tuple(tried)
        )

    def _case_pack_from(self, raw: Any) -> Optional[CasePackDraft]:
        if isinstance(raw, (list, tuple)):
            raw = {'candidates': raw}
        if not isinstance(raw, Mapping) or not isinstance(raw.get('candidates'), (list, tuple)):
            return None

        candidates = []
        for item in raw['candidates']:
            if not isinstance(item, Mapping):
                continue
            units = _positive_int(item.get('value'))
            if units is None:
                continue
            confidence = item.get('confidence')
            candidates.append(EvidenceField(
                units,
                CASE_PACK_CANDIDATE_CONFIDENCE if confidence is None else confidence,
                EvidenceSource.parse(item.get('source'), EvidenceSource.VISION_INFERENCE),
                item.get('evidenceSnippet') or "Vision or heuristic",
            ))

        selected = _positive_int(raw.get('chosen') or raw.get('selectedValue'))
        selected_confidence = raw.get('selectedConfidence')
        return CasePackDraft(
            candidates=tuple(candidates),
            selected_value=selected,
            selected_confidence=(
                float(selected_confidence) if isinstance(selected_confidence, (int, float)) else None
            ),
        )

    # ------------------------------------------------------------------
    # Customs
    # ------------------------------------------------------------------

    def resolve_customs(self, attempts: ExtractionAttempts) -> Resolution:
        """Single REASONING attempt; failure leaves a DEFAULT category and no candidates."""
        tried = [EvidenceSource.REASONING.value]
        outcome = attempts.customs_reasoning

        if outcome.ok and isinstance(outcome.value, Mapping):
            raw = outcome.value
            hs = hs_candidates_from(raw.get('hsCandidates', raw.get('candidates')))
            value = raw.get('value')
            if value not in (None, ""):
                confidence = raw.get('confidence')
                category = EvidenceField(
                    value,
                    CUSTOMS_CONFIDENCE if confidence is None else confidence,
                    EvidenceSource.parse(raw.get('source'), EvidenceSource.REASONING),
                    raw.get('rationale') or raw.get('evidenceSnippet') or "LLM reasoning",
                )
                return Resolution(
                    CustomsDraft(category, hs), category.source, _status_for(category.source), (), tuple(tried)
                )
            logger.debug("Customs inference returned no category")
            return Resolution(CustomsDraft(hs_candidates=hs), EvidenceSource.DEFAULT, ExtractionStatus.NONE, (), tuple(tried))

        if outcome.ok:
            logger.warning("Malformed customs draft, discarding")
            outcome = ExtractionOutcome.failure(FailureReason.MALFORMED, "customs draft is not an object")

        note = _failure_note("Customs/HS inference", outcome)
        warnings = (note,) if note else ()
        return Resolution(CustomsDraft(), EvidenceSource.DEFAULT, ExtractionStatus.NONE, warnings, tuple(tried))

    # ------------------------------------------------------------------

    @staticmethod
    def _resolved(value: Any, source: EvidenceSource, warnings: List[str], tried: List[str]) -> Resolution:
        return Resolution(value, source, _status_for(source), tuple(warnings), tuple(tried))


def _positive_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
