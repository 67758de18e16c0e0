"""
Critical-field compliance status.

A report can only move past INCOMPLETE once origin, net weight and
allergens on the label have all been confirmed by the user. Extracted
values alone (OCR or vision) are never enough.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..draft.models import CRITICAL_LABEL_FIELDS, LabelDraft
from ..evidence.fields import EvidenceSource


class ComplianceStatus(Enum):
    INCOMPLETE = "INCOMPLETE"
    PRELIMINARY = "PRELIMINARY"


class NoteLevel(Enum):
    INFO = "info"
    WARN = "warn"


NOTE_UNCONFIRMED = (
    "Critical fields extracted but not confirmed. "
    "Verify origin, weight, and allergens to complete compliance check."
)
NOTE_MISSING = "Missing critical compliance data. Confirm origin, net weight, and allergens to proceed."
NOTE_CONFIRMED = "Critical fields verified by user. Compliance remains in draft until formal verification."


@dataclass(frozen=True)
class ComplianceCheck:
    status: ComplianceStatus
    level: NoteLevel
    note: str
    missing: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'notes': [{'level': self.level.value, 'text': self.note}],
            'missingFields': list(self.missing),
        }


def check_compliance(label: Optional[LabelDraft]) -> ComplianceCheck:
    """Derive the compliance status from the label draft."""
    label = label or LabelDraft()
    fields = label.fields()
    critical = [fields[name] for name in CRITICAL_LABEL_FIELDS]

    if all(f.is_present and f.source is EvidenceSource.USER_INPUT for f in critical):
        return ComplianceCheck(ComplianceStatus.PRELIMINARY, NoteLevel.INFO, NOTE_CONFIRMED)

    missing = tuple(name for name in CRITICAL_LABEL_FIELDS if not fields[name].is_present)
    note = NOTE_MISSING if missing else NOTE_UNCONFIRMED
    return ComplianceCheck(ComplianceStatus.INCOMPLETE, NoteLevel.WARN, note, missing)
