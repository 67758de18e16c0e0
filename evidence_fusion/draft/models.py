"""
Draft Inference Model

The complete, always-defined record of resolved product attributes.

Six slots, each always populated:
- labelDraft            five label facts (origin, net weight, allergens, brand, name)
- barcodeDraft          GTIN/UPC
- weightDraft           unit weight, always grams
- casePackDraft         units-per-case candidates plus the selected one
- customsCategoryDraft  customs category in plain words
- hsCandidatesDraft     proposed HS codes

Absence is an EvidenceField with value None, confidence 0 and source
DEFAULT; a slot is never missing.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..evidence.fields import EvidenceField, EvidenceSource, HsCandidate
from ..parser.normalizers import WeightNormalizer


LABEL_KEYS = {
    'origin_country': 'originCountryDraft',
    'net_weight': 'netWeightDraft',
    'allergens': 'allergensDraft',
    'brand': 'brandDraft',
    'product_name': 'productNameDraft',
}

# Label fields that must be confirmed before customs filing
CRITICAL_LABEL_FIELDS = ('origin_country', 'net_weight', 'allergens')


@dataclass(frozen=True)
class LabelDraft:
    """Facts read from (or guessed about) the product label."""
    origin_country: EvidenceField = field(default_factory=EvidenceField.absent)
    net_weight: EvidenceField = field(default_factory=EvidenceField.absent)
    allergens: EvidenceField = field(default_factory=EvidenceField.absent)
    brand: EvidenceField = field(default_factory=EvidenceField.absent)
    product_name: EvidenceField = field(default_factory=EvidenceField.absent)

    def fields(self) -> Dict[str, EvidenceField]:
        return {name: getattr(self, name) for name in LABEL_KEYS}

    @property
    def has_any_value(self) -> bool:
        return any(f.is_present for f in self.fields().values())

    @classmethod
    def from_dict(cls, data: Any, source: Optional[EvidenceSource] = None) -> 'LabelDraft':
        """Parse {originCountryDraft: {...}, ...}; unknown or missing keys stay absent."""
        if not isinstance(data, Mapping):
            return cls()
        values = {}
        for name, key in LABEL_KEYS.items():
            raw = data.get(key, data.get(name))
            values[name] = EvidenceField.from_dict(raw, source=source)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, name).to_dict() for name, key in LABEL_KEYS.items()}


@dataclass(frozen=True)
class WeightDraft:
    """
    Unit weight in grams.

    There is no unit attribute to get wrong: construction goes through
    from_measurement, which converts every unit to grams.
    """
    grams: Optional[float] = None
    confidence: float = 0.0
    source: EvidenceSource = EvidenceSource.DEFAULT
    evidence_snippet: Optional[str] = "Not extracted"

    def __post_init__(self):
        # Reuse EvidenceField's clamping and DEFAULT ceiling
        checked = EvidenceField(self.grams, self.confidence, self.source, self.evidence_snippet)
        object.__setattr__(self, 'confidence', checked.confidence)

    @classmethod
    def from_measurement(
        cls,
        value: Any,
        unit: Optional[str] = "g",
        confidence: float = 0.5,
        source: EvidenceSource = EvidenceSource.DEFAULT,
        evidence_snippet: Optional[str] = None,
    ) -> 'WeightDraft':
        """
        Build from any measurement. Values that cannot be converted give
        an absent weight.
        """
        grams = WeightNormalizer().to_grams(value, unit)
        if grams is None:
            return cls()
        if grams == int(grams):
            grams = int(grams)
        return cls(grams, confidence, source, evidence_snippet)

    @property
    def is_present(self) -> bool:
        return self.grams is not None

    @property
    def is_default(self) -> bool:
        return self.source is EvidenceSource.DEFAULT

    def as_field(self) -> EvidenceField:
        return EvidenceField(self.grams, self.confidence, self.source, self.evidence_snippet)

    def to_dict(self) -> Dict[str, Any]:
        data = self.as_field().to_dict()
        data['unit'] = "g"
        return data


@dataclass(frozen=True)
class CasePackDraft:
    """Units-per-case candidates and the currently selected value."""
    candidates: Tuple[EvidenceField, ...] = ()
    selected_value: Optional[int] = None
    selected_confidence: Optional[float] = None

    @property
    def is_default(self) -> bool:
        """True when no candidate came from a real extraction."""
        return all(c.is_default for c in self.candidates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'candidates': [c.to_dict() for c in self.candidates],
            'selectedValue': self.selected_value,
            'selectedConfidence': (
                round(self.selected_confidence, 4) if self.selected_confidence is not None else None
            ),
        }


@dataclass(frozen=True)
class DraftInference:
    """
    Complete record of draft product attributes.

    category is carried for default synthesis and is not part of the
    serialized record.
    """
    label_draft: LabelDraft = field(default_factory=LabelDraft)
    barcode_draft: EvidenceField = field(default_factory=EvidenceField.absent)
    weight_draft: WeightDraft = field(default_factory=WeightDraft)
    case_pack_draft: CasePackDraft = field(default_factory=CasePackDraft)
    customs_category_draft: EvidenceField = field(
        default_factory=lambda: EvidenceField.absent("Not inferred")
    )
    hs_candidates_draft: Tuple[HsCandidate, ...] = ()
    category: str = "unknown"

    def with_slots(self, **slots: Any) -> 'DraftInference':
        """Copy with some slots replaced."""
        return replace(self, **slots)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'labelDraft': self.label_draft.to_dict(),
            'barcodeDraft': self.barcode_draft.to_dict(),
            'weightDraft': self.weight_draft.to_dict(),
            'casePackDraft': self.case_pack_draft.to_dict(),
            'customsCategoryDraft': self.customs_category_draft.to_dict(),
            'hsCandidatesDraft': [c.to_dict() for c in self.hs_candidates_draft],
        }


def hs_candidates_from(raw: Any) -> Tuple[HsCandidate, ...]:
    """
    Parse HS candidates from a list or a {candidates: [...]} wrapper.
    Entries without a code are dropped.
    """
    if isinstance(raw, Mapping):
        raw = raw.get('candidates')
    if not isinstance(raw, (list, tuple)):
        return ()
    parsed: List[HsCandidate] = []
    for item in raw:
        candidate = HsCandidate.from_dict(item)
        if candidate is not None:
            parsed.append(candidate)
    return tuple(parsed)
