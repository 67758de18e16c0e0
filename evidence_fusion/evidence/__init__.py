"""
Evidence model: fields with confidence and provenance, and the four-state
fact normalizer.
"""

from .fields import (
    EvidenceField,
    EvidenceSource,
    ExtractionStatus,
    HsCandidate,
    clamp_confidence,
)
from .normalizer import (
    EvidenceNormalizer,
    FactEvidence,
    FactState,
    NormalizedEvidence,
    RawFact,
    RawFacts,
)

__all__ = [
    'EvidenceField',
    'EvidenceSource',
    'ExtractionStatus',
    'HsCandidate',
    'clamp_confidence',
    'EvidenceNormalizer',
    'FactEvidence',
    'FactState',
    'NormalizedEvidence',
    'RawFact',
    'RawFacts',
]
