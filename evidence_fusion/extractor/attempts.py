"""
Extraction Attempts

Explicit result type for a single extraction call, plus the container of
everything the upstream providers produced for one report.

Providers (OCR, vision, reasoning) answer with the contract
    {"success": bool, "draft": {...}, "error": "..."}
ExtractionOutcome turns that loosely-typed answer into a value the fallback
coordinator can branch on without try/except.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from loguru import logger


class FailureReason(Enum):
    """Why an extraction attempt produced nothing usable."""
    NOT_ATTEMPTED = auto()   # No input (no photo) or caller skipped it
    NO_VALUE = auto()        # Provider succeeded but returned no value
    UPSTREAM_ERROR = auto()  # Provider reported success=false
    MALFORMED = auto()       # Response did not follow the contract
    TIMEOUT = auto()         # Caller-side timeout
    EXCEPTION = auto()       # Provider call raised

    @property
    def is_retryable(self) -> bool:
        return self in (FailureReason.TIMEOUT, FailureReason.UPSTREAM_ERROR, FailureReason.EXCEPTION)


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    Result of one extraction attempt: either a payload or a failure reason.
    """
    ok: bool
    value: Any = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None

    @classmethod
    def success(cls, value: Any) -> 'ExtractionOutcome':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: FailureReason, detail: Optional[str] = None) -> 'ExtractionOutcome':
        return cls(ok=False, reason=reason, detail=detail)

    @classmethod
    def not_attempted(cls) -> 'ExtractionOutcome':
        return cls(ok=False, reason=FailureReason.NOT_ATTEMPTED)

    @classmethod
    def from_upstream(cls, result: Any, draft_keys: Sequence[str] = ()) -> 'ExtractionOutcome':
        """
        Parse a provider response.

        Args:
            result: Provider response, an ExtractionOutcome, or None
            draft_keys: Extra keys that may hold the draft besides "draft"
                        (older providers used e.g. "barcodeDraft")

        Returns:
            ExtractionOutcome; never raises
        """
        if isinstance(result, cls):
            return result
        if result is None:
            return cls.not_attempted()
        if not isinstance(result, Mapping):
            logger.warning(f"Malformed extraction result of type {type(result).__name__}, discarding")
            return cls.failure(FailureReason.MALFORMED, f"unexpected {type(result).__name__}")

        success = result.get('success')
        if not isinstance(success, bool):
            logger.warning("Extraction result without boolean 'success', discarding")
            return cls.failure(FailureReason.MALFORMED, "missing success flag")

        if not success:
            return cls.failure(FailureReason.UPSTREAM_ERROR, str(result.get('error') or "extraction failed"))

        empty = False
        for key in ('draft', *draft_keys):
            draft = result.get(key)
            if draft is None:
                continue
            if isinstance(draft, (Mapping, list, tuple)) and not draft:
                empty = True
                continue
            return cls.success(draft)

        return cls.failure(FailureReason.NO_VALUE, "empty draft returned" if empty else "no draft returned")

    def describe(self) -> str:
        """Short human-readable failure description."""
        if self.ok:
            return "ok"
        name = self.reason.name.lower().replace('_', ' ') if self.reason else "failed"
        return f"{name}: {self.detail}" if self.detail else name

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.ok,
            'reason': self.reason.name if self.reason else None,
            'detail': self.detail,
        }


@dataclass(frozen=True)
class UploadFlags:
    """Which photos or inputs the user supplied."""
    product_photo: bool = False
    barcode_photo: bool = False
    label_photo: bool = False
    box_photo: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> 'UploadFlags':
        data = data if isinstance(data, Mapping) else {}
        return cls(
            product_photo=bool(data.get('product') or data.get('productPhoto')),
            barcode_photo=bool(data.get('barcode') or data.get('barcodePhoto')),
            label_photo=bool(data.get('label') or data.get('labelPhoto')),
            box_photo=bool(data.get('box') or data.get('boxPhoto')),
        )


@dataclass(frozen=True)
class ExtractionAttempts:
    """
    Everything upstream extraction produced for one report.

    OCR results are plain values (the OCR step already ran inside the
    pipeline). Vision and reasoning results are ExtractionOutcomes because
    they are separate calls that may fail or time out independently.
    """
    category: str = "unknown"
    uploads: UploadFlags = field(default_factory=UploadFlags)

    # User input
    user_weight: Optional[Mapping[str, Any]] = None   # {"value": 140, "unit": "g"}
    confirmed_label: Mapping[str, Any] = field(default_factory=dict)  # {"originCountry": "China"}

    # OCR
    ocr_barcode: Optional[str] = None
    label_terms: Tuple[str, ...] = ()
    label_text: Optional[str] = None
    label_fields: Mapping[str, Any] = field(default_factory=dict)
    analysis_confidence: float = 0.0

    # Vision and reasoning calls
    barcode_vision: ExtractionOutcome = field(default_factory=ExtractionOutcome.not_attempted)
    label_vision: ExtractionOutcome = field(default_factory=ExtractionOutcome.not_attempted)
    weight_vision: ExtractionOutcome = field(default_factory=ExtractionOutcome.not_attempted)
    case_pack_vision: ExtractionOutcome = field(default_factory=ExtractionOutcome.not_attempted)
    customs_reasoning: ExtractionOutcome = field(default_factory=ExtractionOutcome.not_attempted)

    @classmethod
    def from_dict(cls, data: Any) -> 'ExtractionAttempts':
        """
        Parse the JSON form of extraction attempts.

        Expected shape (every key optional):
            {
              "category": "candy",
              "uploads": {"product": true, "barcode": true, "label": true, "box": false},
              "userWeight": {"value": 140, "unit": "g"},
              "confirmed": {"originCountry": "China", "netWeight": "140 g", "allergens": "milk"},
              "ocr": {"barcode": "...", "labelTerms": [...], "labelText": "...",
                      "labelFields": {...}, "analysisConfidence": 0.4},
              "vision": {"barcode": {...}, "label": {...}, "weight": {...}, "casePack": {...}},
              "reasoning": {"customs": {...}}
            }
        """
        if not isinstance(data, Mapping):
            return cls()

        ocr = data.get('ocr') if isinstance(data.get('ocr'), Mapping) else {}
        vision = data.get('vision') if isinstance(data.get('vision'), Mapping) else {}
        reasoning = data.get('reasoning') if isinstance(data.get('reasoning'), Mapping) else {}

        terms = ocr.get('labelTerms') or ()
        if not isinstance(terms, (list, tuple)):
            terms = ()

        user_weight = data.get('userWeight')
        confirmed = data.get('confirmed')
        confidence = ocr.get('analysisConfidence')

        return cls(
            category=str(data.get('category') or "unknown"),
            uploads=UploadFlags.from_dict(data.get('uploads')),
            user_weight=user_weight if isinstance(user_weight, Mapping) else None,
            confirmed_label=confirmed if isinstance(confirmed, Mapping) else {},
            ocr_barcode=_clean_str(ocr.get('barcode')),
            label_terms=tuple(t.strip() for t in terms if isinstance(t, str) and t.strip()),
            label_text=_clean_str(ocr.get('labelText')),
            label_fields=ocr.get('labelFields') if isinstance(ocr.get('labelFields'), Mapping) else {},
            analysis_confidence=confidence if isinstance(confidence, (int, float)) else 0.0,
            barcode_vision=outcome_for('barcode', vision.get('barcode')),
            label_vision=outcome_for('label', vision.get('label')),
            weight_vision=outcome_for('weight', vision.get('weight')),
            case_pack_vision=outcome_for('casePack', vision.get('casePack')),
            customs_reasoning=outcome_for('customs', reasoning.get('customs')),
        )

    def with_outcomes(self, outcomes: Mapping[str, ExtractionOutcome]) -> 'ExtractionAttempts':
        """Copy with vision/reasoning outcomes replaced, keyed by slot name (barcode, label, ...)."""
        unknown = set(outcomes) - set(EXTRACTION_SLOTS)
        if unknown:
            logger.warning(f"Ignoring unknown extraction slots: {sorted(unknown)}")
        return replace(self, **{
            EXTRACTION_SLOTS[slot][0]: outcome
            for slot, outcome in outcomes.items() if slot in EXTRACTION_SLOTS
        })


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _customs_result(result: Any) -> Any:
    """
    Fold the legacy two-key customs response into a single draft.

    {"success": true, "customsCategoryDraft": {...}, "hsCandidatesDraft": [...]}
    becomes {"success": true, "draft": {..., "hsCandidates": [...]}}.
    """
    if not isinstance(result, Mapping) or 'draft' in result or 'customsCategoryDraft' not in result:
        return result
    category = result.get('customsCategoryDraft')
    draft = dict(category) if isinstance(category, Mapping) else {}
    draft['hsCandidates'] = result.get('hsCandidatesDraft')
    folded = {k: v for k, v in result.items() if k not in ('customsCategoryDraft', 'hsCandidatesDraft')}
    folded['draft'] = draft
    return folded


# Extraction slot name → (ExtractionAttempts attribute, legacy draft keys)
EXTRACTION_SLOTS = {
    'barcode': ('barcode_vision', ('barcodeDraft',)),
    'label': ('label_vision', ('labelDraft',)),
    'weight': ('weight_vision', ('weightDraft',)),
    'casePack': ('case_pack_vision', ('casePackDraft',)),
    'customs': ('customs_reasoning', ()),
}


def outcome_for(slot: str, result: Any) -> ExtractionOutcome:
    """Parse a provider response for one extraction slot."""
    _, draft_keys = EXTRACTION_SLOTS[slot]
    if slot == 'customs':
        result = _customs_result(result)
    return ExtractionOutcome.from_upstream(result, draft_keys)
