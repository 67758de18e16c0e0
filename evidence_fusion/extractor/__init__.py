"""
Extraction attempts and the per-attribute fallback chains.
"""

from .attempts import (
    ExtractionAttempts,
    ExtractionOutcome,
    FailureReason,
    UploadFlags,
    outcome_for,
)
from .label_text import (
    LabelFailureReason,
    LabelOcrAssessment,
    LabelOcrStatus,
    LabelTextParser,
    assess_label_ocr,
)
from .fallback import (
    FallbackCoordinator,
    FallbackResult,
    Resolution,
)

__all__ = [
    'ExtractionAttempts',
    'ExtractionOutcome',
    'FailureReason',
    'UploadFlags',
    'outcome_for',
    'LabelFailureReason',
    'LabelOcrAssessment',
    'LabelOcrStatus',
    'LabelTextParser',
    'assess_label_ocr',
    'FallbackCoordinator',
    'FallbackResult',
    'Resolution',
]
