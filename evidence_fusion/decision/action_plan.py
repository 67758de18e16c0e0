"""
48-hour action plan: what to do today and tomorrow for a verdict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .decision_engine import Decision


MAX_ITEMS = 3


@dataclass(frozen=True)
class PlanFlags:
    """Evidence flags the plan branches on."""
    supplier_matches: int = 0
    exact_matches: int = 0
    has_barcode: bool = False
    has_label: bool = False
    has_weight: bool = False
    has_origin: bool = False


@dataclass(frozen=True)
class ActionPlan:
    today: Tuple[str, ...] = ()
    tomorrow: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'today': list(self.today), 'tomorrow': list(self.tomorrow)}


class ActionPlanGenerator:
    """Verdict-branched task lists, each capped at three items."""

    def plan(self, decision: Decision, flags: PlanFlags = None) -> ActionPlan:
        flags = flags or PlanFlags()
        today: List[str] = []
        tomorrow: List[str] = []

        if decision is Decision.GO:
            today.append("Start verification to get 3 real factory options")
            today.append("Review supplier match details and pricing")
            if not flags.has_label:
                today.append("Upload label photo to confirm origin and ingredients")
            tomorrow.append("Await quotes from supplier outreach")
            tomorrow.append("Compare MOQ and lead time across suppliers")
            tomorrow.append("Prepare purchase order template")

        elif decision is Decision.HOLD:
            if flags.supplier_matches == 0:
                today.append("Upload a clear barcode or label to improve matching")
                today.append("Review product category classification")
            else:
                today.append("Start verification to expand supplier options")
                today.append("Upload missing photos (barcode, label) for better matches")
            if not flags.has_label:
                today.append("Upload label photo to unlock stronger verdict")
            tomorrow.append("Confirm HS code classification with customs")
            if not flags.has_origin:
                tomorrow.append("Verify country of origin for accurate duty calculation")
            tomorrow.append("Review updated supplier matches after photo upload")

        else:
            today.append("Review cost breakdown and identify cost drivers")
            today.append("Consider alternative product specifications")
            today.append("Contact support for cost optimization suggestions")
            tomorrow.append("Re-run analysis with updated inputs")
            tomorrow.append("Explore volume discounts or alternative suppliers")

        return ActionPlan(tuple(today[:MAX_ITEMS]), tuple(tomorrow[:MAX_ITEMS]))
