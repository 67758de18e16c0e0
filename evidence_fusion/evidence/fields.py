"""
Evidence Fields

The atomic unit exchanged by every stage of the engine: a value together
with how much we trust it and where it came from.

Why provenance matters:
A net weight read off the label and a net weight guessed from the category
can carry the same number. Downstream decisions weigh them very differently,
and the report has to tell the user which one it is showing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


# Sources whose values count as captured rather than inferred
HIGH_TRUST_SOURCES = frozenset({'USER_INPUT', 'OCR', 'LABEL_TEXT'})

DEFAULT_CONFIDENCE_CEILING = 0.3


class EvidenceSource(Enum):
    """
    Tracks which method produced a value.
    Ordered roughly from most to least trustworthy.
    """
    USER_INPUT = "USER_INPUT"
    OCR = "OCR"
    LABEL_TEXT = "LABEL_TEXT"
    VISION_INFERENCE = "VISION_INFERENCE"
    REASONING = "REASONING"
    DEFAULT = "DEFAULT"

    @property
    def is_high_trust(self) -> bool:
        return self.value in HIGH_TRUST_SOURCES

    @classmethod
    def parse(cls, value: Any, fallback: 'EvidenceSource' = None) -> 'EvidenceSource':
        """
        Parse a source tag from upstream data.

        Accepts enum members, exact names and the short aliases used by
        providers ("VISION", "USER", "LABEL"). Unknown tags map to fallback
        (DEFAULT when not given).
        """
        if isinstance(value, cls):
            return value
        fallback = fallback or cls.DEFAULT
        if not isinstance(value, str):
            return fallback

        key = value.strip().upper()
        aliases = {
            'VISION': cls.VISION_INFERENCE,
            'USER': cls.USER_INPUT,
            'MANUAL': cls.USER_INPUT,
            'LABEL': cls.LABEL_TEXT,
            'LLM': cls.REASONING,
        }
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            return fallback


class ExtractionStatus(Enum):
    """Review state of an extracted fact."""
    CONFIRMED = "CONFIRMED"  # OCR read or user confirmed
    DRAFT = "DRAFT"          # Vision guess, needs user confirmation
    FAILED = "FAILED"        # Attempted, nothing usable
    NONE = "NONE"            # Never attempted (no photo)


def clamp_confidence(value: Any) -> float:
    """Coerce anything to a float in [0, 1]. Non-numeric input becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


@dataclass(frozen=True)
class EvidenceField:
    """
    A value with confidence and provenance.

    Absence is represented explicitly: value None, confidence 0,
    source DEFAULT. A DEFAULT value never carries more than 0.3 confidence.
    """
    value: Any = None
    confidence: float = 0.0
    source: EvidenceSource = EvidenceSource.DEFAULT
    evidence_snippet: Optional[str] = None

    def __post_init__(self):
        confidence = clamp_confidence(self.confidence)
        if self.source is EvidenceSource.DEFAULT:
            confidence = min(confidence, DEFAULT_CONFIDENCE_CEILING)
        object.__setattr__(self, 'confidence', confidence)

    @classmethod
    def absent(cls, snippet: Optional[str] = "Not extracted") -> 'EvidenceField':
        """The canonical empty field."""
        return cls(value=None, confidence=0.0, source=EvidenceSource.DEFAULT, evidence_snippet=snippet)

    @classmethod
    def from_dict(
        cls,
        data: Any,
        source: Optional[EvidenceSource] = None,
        default_confidence: float = 0.5,
    ) -> 'EvidenceField':
        """
        Build a field from a loosely-shaped upstream dict.

        Args:
            data: Mapping with value/confidence/evidenceSnippet keys
            source: Forces the source tag (providers often omit or mislabel it)
            default_confidence: Used when a value is present without confidence

        Returns:
            EvidenceField; absent() when data carries no usable value
        """
        if not isinstance(data, Mapping):
            return cls.absent()

        value = data.get('value')
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.absent(_snippet_of(data) or "Not visible")

        confidence = data.get('confidence')
        if confidence is None:
            confidence = default_confidence

        return cls(
            value=value.strip() if isinstance(value, str) else value,
            confidence=confidence,
            source=source or EvidenceSource.parse(data.get('source')),
            evidence_snippet=_snippet_of(data),
        )

    @property
    def is_present(self) -> bool:
        return self.value is not None

    @property
    def is_default(self) -> bool:
        return self.source is EvidenceSource.DEFAULT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'value': self.value,
            'confidence': round(self.confidence, 4),
            'source': self.source.value,
            'evidenceSnippet': self.evidence_snippet,
        }


@dataclass(frozen=True)
class HsCandidate:
    """One proposed HS code with its reasoning."""
    hs_code: str
    confidence: float = 0.4
    rationale: str = "Reasoning"
    source: EvidenceSource = EvidenceSource.REASONING

    def __post_init__(self):
        object.__setattr__(self, 'confidence', clamp_confidence(self.confidence))

    @classmethod
    def from_dict(cls, data: Any) -> Optional['HsCandidate']:
        """Parse a provider candidate; returns None when no code is present."""
        if not isinstance(data, Mapping):
            return None
        code = data.get('hsCode') or data.get('hs_code') or data.get('code')
        if not code:
            return None
        confidence = data.get('confidence')
        return cls(
            hs_code=str(code).strip(),
            confidence=0.4 if confidence is None else confidence,
            rationale=(
                data.get('rationale') or data.get('reason')
                or data.get('evidenceSnippet') or "Reasoning"
            ),
            source=EvidenceSource.parse(data.get('source'), EvidenceSource.REASONING),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hsCode': self.hs_code,
            'confidence': round(self.confidence, 4),
            'rationale': self.rationale,
            'source': self.source.value,
        }


def _snippet_of(data: Mapping) -> Optional[str]:
    snippet = data.get('evidenceSnippet') or data.get('evidence_snippet') or data.get('evidence')
    if snippet is None:
        return None
    return str(snippet)
