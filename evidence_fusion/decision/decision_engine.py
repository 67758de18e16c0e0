"""
Decision Engine

Turns evidence-completeness and supplier signals into a sourcing verdict.

Decisions:
- GO:   proceed to supplier verification
- HOLD: evidence too thin to commit, collect more inputs first
- NO:   a compliance or economics blocker is present

Rule order (first match wins):
1. NO   compliance trigger suspected and label missing or unreadable
2. NO   margin estimate present and <= 0
3. HOLD barcode and label both missing or unreadable
4. HOLD weight and case pack both defaulted and no supplier matches
5. GO   otherwise

A null margin never triggers rule 2; only a known, non-positive margin does.

Confidence (0-100) is tiered by supplier evidence, then adjusted for input
completeness and duty-rate uncertainty.
Each penalty stops at PENALTY_FLOOR, so a report with no cost data and
thin inputs still scores 20 rather than 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ..settings import EngineConfig, default_engine_config


PENALTY_FLOOR = 20


class Decision(Enum):
    """Sourcing verdict."""
    GO = "GO"
    HOLD = "HOLD"
    NO = "NO"

    @property
    def display_name(self) -> str:
        names = {
            Decision.GO: "✓ Go",
            Decision.HOLD: "⚠ Hold",
            Decision.NO: "✗ No",
        }
        return names[self]

    @classmethod
    def parse(cls, value: Any, fallback: 'Decision' = None) -> 'Decision':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return fallback or cls.HOLD


class EvidenceTier(Enum):
    """Strength of supplier evidence, from the exact-match count."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_exact_matches(cls, exact_matches: int) -> 'EvidenceTier':
        if exact_matches >= 3:
            return cls.HIGH
        if exact_matches >= 1:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class DecisionSignals:
    """
    Everything the decision rules look at.

    Flags mean "present": an uploaded but unreadable label counts as
    missing. label_readable is stricter and holds only for a label read in
    full by OCR or confirmed by the user; a vision draft is not enough.
    """
    supplier_matches: int = 0
    exact_matches: int = 0
    has_barcode: bool = False
    has_label: bool = False
    label_readable: bool = False
    has_weight: bool = False
    has_origin: bool = False
    weight_is_default: bool = True
    case_pack_is_default: bool = True
    duty_min: float = 0.0
    duty_max: float = 0.0
    best_estimate: float = 0.0
    margin_estimate: Optional[float] = None
    compliance_suspected: bool = False

    @property
    def duty_range_width(self) -> float:
        return max(0.0, self.duty_max - self.duty_min)

    @property
    def has_readable_label(self) -> bool:
        return self.has_label and self.label_readable

    @property
    def completeness_count(self) -> int:
        return sum((self.has_barcode, self.has_label, self.has_weight, self.has_origin))

    @property
    def evidence_tier(self) -> EvidenceTier:
        return EvidenceTier.from_exact_matches(self.exact_matches)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'supplierMatches': self.supplier_matches,
            'exactMatches': self.exact_matches,
            'hasBarcode': self.has_barcode,
            'hasLabel': self.has_label,
            'labelReadable': self.has_readable_label,
            'hasWeight': self.has_weight,
            'hasOrigin': self.has_origin,
            'dutyRangeWidth': round(self.duty_range_width, 4),
            'marginEstimate': None if self.margin_estimate is None else round(self.margin_estimate, 4),
            'complianceSuspected': self.compliance_suspected,
        }


@dataclass(frozen=True)
class Verdict:
    """GO/HOLD/NO with up to three fallback reasons and a 0-100 confidence."""
    decision: Decision
    reasons: Tuple[str, ...] = ()
    confidence: int = 0
    rule: str = "default"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'decision': self.decision.value,
            'reasons': list(self.reasons),
            'confidence': self.confidence,
        }


class DecisionEngine:
    """
    Applies the ordered verdict rules and scores confidence.

    Usage:
        engine = DecisionEngine()
        verdict = engine.decide(DecisionSignals(margin_estimate=-1.5))
        verdict.decision   # Decision.NO
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or default_engine_config()

    def decide(self, signals: Optional[DecisionSignals] = None) -> Verdict:
        """
        Classify a verdict.

        Args:
            signals: Decision inputs (None is treated as all-empty)

        Returns:
            Verdict; never raises
        """
        signals = signals or DecisionSignals()
        decision, rule = self.classify(signals)
        verdict = Verdict(
            decision=decision,
            reasons=tuple(self._reasons(decision, rule, signals)[:3]),
            confidence=self.score(signals),
            rule=rule,
        )
        logger.debug(f"Verdict {decision.value} by rule '{rule}', confidence {verdict.confidence}")
        return verdict

    def classify(self, signals: DecisionSignals) -> Tuple[Decision, str]:
        """Return (decision, rule name). First matching rule wins."""
        if signals.compliance_suspected and not signals.has_readable_label:
            return Decision.NO, "compliance"

        if signals.margin_estimate is not None and signals.margin_estimate <= 0:
            return Decision.NO, "margin"

        if not signals.has_barcode and not signals.has_readable_label:
            return Decision.HOLD, "identity"

        if signals.weight_is_default and signals.case_pack_is_default and signals.supplier_matches == 0:
            return Decision.HOLD, "defaults"

        return Decision.GO, "default"

    def score(self, signals: DecisionSignals) -> int:
        """Confidence score, clamped to [0, 100]."""
        if signals.best_estimate <= 0:
            confidence = 0
        elif signals.supplier_matches == 0:
            confidence = 30
        elif signals.exact_matches == 0:
            confidence = 40
        elif signals.exact_matches >= self.config.strong_evidence_exact_matches:
            confidence = 75
        elif signals.exact_matches >= 1:
            confidence = 60
        else:
            confidence = 40

        if signals.completeness_count == 4:
            confidence += 20
        elif signals.completeness_count < 2:
            confidence = max(PENALTY_FLOOR, confidence - 15)

        if signals.duty_range_width > self.config.duty_range_threshold:
            confidence = max(PENALTY_FLOOR, confidence - 10)

        return int(max(0, min(100, confidence)))

    def _reasons(self, decision: Decision, rule: str, signals: DecisionSignals) -> List[str]:
        reasons: List[str] = []

        if decision is Decision.GO:
            if signals.exact_matches >= 1:
                plural = "es" if signals.exact_matches != 1 else ""
                reasons.append(f"{signals.exact_matches} exact supplier match{plural} found")
            else:
                reasons.append("Supplier matches available")
            if signals.completeness_count == 4:
                reasons.append("All key product facts captured")

        elif decision is Decision.HOLD:
            if signals.supplier_matches == 0:
                reasons.append("No supplier matches found")
            elif signals.exact_matches == 0:
                reasons.append("Only inferred supplier matches available")
            else:
                reasons.append("Limited supplier evidence")
            if rule == "identity":
                reasons.append("Barcode and label both missing or unreadable")
            elif rule == "defaults":
                reasons.append("Unit weight and case pack are category defaults")

        else:
            reasons.append("Risk factors present")
            if rule == "compliance":
                reasons.append("Compliance-sensitive category without a readable label")
            elif rule == "margin":
                reasons.append("Estimated margin is zero or negative")

        if signals.duty_range_width > self.config.duty_range_threshold:
            reasons.append("Duty rate range is wide")

        return reasons
