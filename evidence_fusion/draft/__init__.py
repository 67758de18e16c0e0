"""
Draft inference records.

The builder lives in draft.builder; it is not re-exported here because it
depends on the extractor package, which itself uses these models.
"""

from .models import (
    CasePackDraft,
    DraftInference,
    LabelDraft,
    WeightDraft,
)

__all__ = [
    'CasePackDraft',
    'DraftInference',
    'LabelDraft',
    'WeightDraft',
]
