"""
Evidence Normalizer

Maps raw per-fact data (upload flags, extraction results) to one canonical
state per user-facing fact: barcode, label, weight, origin.

States:
    NOT_PROVIDED  no photo or input was supplied for the fact
    UNREADABLE    supplied, but extraction produced nothing usable
    CAPTURED      value from a high-trust source (user input, OCR, label text)
    INFERRED      value only from vision inference or reasoning

States are recomputed from scratch on every call; nothing here is mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from .fields import EvidenceSource


class FactState(Enum):
    """Readiness of one user-facing fact."""
    NOT_PROVIDED = "NOT_PROVIDED"
    UNREADABLE = "UNREADABLE"
    CAPTURED = "CAPTURED"
    INFERRED = "INFERRED"

    @property
    def is_available(self) -> bool:
        """Value exists, whatever its trust level."""
        return self in (FactState.CAPTURED, FactState.INFERRED)


@dataclass(frozen=True)
class RawFact:
    """What is known about one fact before classification."""
    provided: bool = False
    value: Any = None
    source: EvidenceSource = EvidenceSource.DEFAULT

    @classmethod
    def from_dict(cls, data: Any, provided: Optional[bool] = None) -> 'RawFact':
        if not isinstance(data, Mapping):
            return cls(provided=bool(provided))
        value = data.get('value')
        is_provided = data.get('provided') if provided is None else provided
        return cls(
            provided=bool(is_provided) or value is not None,
            value=value,
            source=EvidenceSource.parse(data.get('source')),
        )


@dataclass(frozen=True)
class RawFacts:
    """Raw inputs for the four facts, plus whether the label was fully read."""
    barcode: RawFact = field(default_factory=RawFact)
    label: RawFact = field(default_factory=RawFact)
    weight: RawFact = field(default_factory=RawFact)
    origin: RawFact = field(default_factory=RawFact)
    # None: decide from the label state alone
    label_readable: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'RawFacts':
        """
        Read the report's inputStatus block.

        Expected shape (all optional):
            {
              "barcodeUploaded": true, "labelUploaded": true, "productUploaded": true,
              "barcode": "0123...", "barcodeExtractionSource": "OCR",
              "labelOcrStatus": "FAILED", "labelExtractionSource": "VISION",
              "weight": {"value": 140, "source": "LABEL_TEXT"},
              "origin": {"value": "China", "source": "VISION"}
            }
        """
        if not isinstance(data, Mapping):
            return cls()

        label_uploaded = bool(data.get('labelUploaded') or data.get('labelPhoto'))
        barcode_uploaded = bool(data.get('barcodeUploaded') or data.get('barcodePhoto'))
        product_uploaded = bool(data.get('productUploaded') or data.get('productPhoto'))

        barcode = data.get('barcode')
        barcode_fact = RawFact(
            provided=barcode_uploaded or bool(barcode),
            value=barcode or None,
            source=EvidenceSource.parse(
                data.get('barcodeExtractionSource'),
                EvidenceSource.OCR if barcode else EvidenceSource.DEFAULT,
            ),
        )

        # Label "value" is whether anything was read off it
        ocr_status = str(data.get('labelOcrStatus') or "").upper()
        label_source = EvidenceSource.parse(data.get('labelExtractionSource'))
        label_read = ocr_status in ('SUCCESS', 'PARTIAL') or label_source is not EvidenceSource.DEFAULT
        if ocr_status in ('SUCCESS', 'PARTIAL') and label_source is EvidenceSource.DEFAULT:
            label_source = EvidenceSource.OCR
        label_fact = RawFact(
            provided=label_uploaded,
            value=True if label_read else None,
            source=label_source,
        )

        return cls(
            barcode=barcode_fact,
            label=label_fact,
            weight=RawFact.from_dict(data.get('weight'), label_uploaded or product_uploaded or None),
            origin=RawFact.from_dict(data.get('origin'), label_uploaded or None),
            label_readable=ocr_status == 'SUCCESS' or label_source is EvidenceSource.USER_INPUT,
        )


@dataclass(frozen=True)
class FactEvidence:
    """Classified fact."""
    state: FactState
    display_value: Optional[str] = None
    source: EvidenceSource = EvidenceSource.DEFAULT

    @property
    def is_available(self) -> bool:
        return self.state.is_available

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'displayValue': self.display_value,
            'source': self.source.value,
        }


@dataclass(frozen=True)
class NormalizedEvidence:
    """Canonical state of the four facts."""
    barcode: FactEvidence
    label: FactEvidence
    weight: FactEvidence
    origin: FactEvidence

    @property
    def available_count(self) -> int:
        return sum(1 for fact in (self.barcode, self.label, self.weight, self.origin) if fact.is_available)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'barcode': self.barcode.to_dict(),
            'label': self.label.to_dict(),
            'weight': self.weight.to_dict(),
            'origin': self.origin.to_dict(),
        }


class EvidenceNormalizer:
    """
    Classifies raw facts into FactStates.

    Usage:
        evidence = EvidenceNormalizer().normalize(raw_facts)
        evidence.label.state   # FactState.UNREADABLE
    """

    def normalize(self, raw: Optional[RawFacts]) -> NormalizedEvidence:
        raw = raw or RawFacts()
        evidence = NormalizedEvidence(
            barcode=self.classify(raw.barcode),
            label=self.classify(raw.label, display=_label_display),
            weight=self.classify(raw.weight, display=_weight_display),
            origin=self.classify(raw.origin),
        )
        logger.debug(
            f"Evidence states: barcode={evidence.barcode.state.value} label={evidence.label.state.value} "
            f"weight={evidence.weight.state.value} origin={evidence.origin.state.value}"
        )
        return evidence

    def classify(self, fact: RawFact, display=None) -> FactEvidence:
        """Apply the four-state rules to one fact."""
        if not fact.provided:
            return FactEvidence(FactState.NOT_PROVIDED)

        if fact.value is None or fact.source is EvidenceSource.DEFAULT:
            return FactEvidence(FactState.UNREADABLE)

        state = FactState.CAPTURED if fact.source.is_high_trust else FactState.INFERRED
        shown = display(fact.value) if display else str(fact.value)
        return FactEvidence(state, shown, fact.source)


def _weight_display(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value} g"


def _label_display(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None
