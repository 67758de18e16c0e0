"""
Label Text Assessment

Grades how well OCR read the product label and pulls structured values
(net weight) out of the raw label text.

The OCR step reports a list of recognised label terms plus an overall
analysis confidence. Neither says *why* a read failed, so the failure
reason is a heuristic:
- text without any Latin letters → NON_LATIN
- analysis confidence < 0.3 → BLURRY
- analysis confidence < 0.5 → GLARE
- anything else → LOW_CONTRAST

The reason only drives the retake tip shown to the user; it never changes
the verdict.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from loguru import logger

from ..parser.normalizers import WeightNormalizer


SUCCESS_MIN_TERMS = 3
BLURRY_BELOW = 0.3
GLARE_BELOW = 0.5


class LabelOcrStatus(Enum):
    """How much of the label OCR managed to read."""
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"

    @property
    def is_readable(self) -> bool:
        return self is not LabelOcrStatus.FAILED


class LabelFailureReason(Enum):
    """Best guess at why the label could not be read."""
    NON_LATIN = "NON_LATIN"
    BLURRY = "BLURRY"
    GLARE = "GLARE"
    LOW_CONTRAST = "LOW_CONTRAST"


@dataclass(frozen=True)
class LabelOcrAssessment:
    """Outcome of grading the label OCR."""
    status: LabelOcrStatus
    failure_reason: Optional[LabelFailureReason] = None
    term_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'failureReason': self.failure_reason.value if self.failure_reason else None,
            'termCount': self.term_count,
        }


def assess_label_ocr(
    terms: Sequence[str],
    raw_text: Optional[str] = None,
    analysis_confidence: float = 0.0,
) -> LabelOcrAssessment:
    """
    Grade label OCR output.

    Args:
        terms: Label terms recognised by OCR
        raw_text: Raw OCR text of the label, if any
        analysis_confidence: Overall confidence of the image analysis (0-1)

    Returns:
        LabelOcrAssessment
    """
    count = len(terms)

    if count >= SUCCESS_MIN_TERMS:
        return LabelOcrAssessment(LabelOcrStatus.SUCCESS, None, count)

    if count > 0:
        return LabelOcrAssessment(LabelOcrStatus.PARTIAL, LabelFailureReason.LOW_CONTRAST, count)

    text = raw_text or ""
    if text and not re.search(r'[a-zA-Z]', text):
        reason = LabelFailureReason.NON_LATIN
    elif analysis_confidence < BLURRY_BELOW:
        reason = LabelFailureReason.BLURRY
    elif analysis_confidence < GLARE_BELOW:
        reason = LabelFailureReason.GLARE
    else:
        reason = LabelFailureReason.LOW_CONTRAST

    logger.debug(f"Label OCR failed, guessed reason: {reason.value}")
    return LabelOcrAssessment(LabelOcrStatus.FAILED, reason, 0)


class LabelTextParser:
    """
    Extracts structured values from raw label text.
    """

    def __init__(self):
        self.weights = WeightNormalizer()

    def net_weight(self, text: Optional[str]) -> Optional[Tuple[float, str]]:
        """
        Net weight printed on the label.

        Returns:
            (grams, matched_text) or None when no plausible weight is printed
        """
        found = self.weights.parse_label_weight(text)
        if found:
            logger.debug(f"Label text weight: {found[0]} g from '{found[1]}'")
        return found

    def net_weight_from_field(self, value: Any) -> Optional[float]:
        """
        Grams from an OCR label field such as 140, "140", "140 g" or "5 oz".
        """
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return self.weights.to_grams(value, "g")
        found = self.weights.parse_label_weight(str(value))
        if found:
            return float(found[0])
        # Bare number without a unit reads as grams
        return self.weights.to_grams(value, "g") if re.fullmatch(r'\s*\d+(?:[.,]\d+)?\s*', str(value)) else None
