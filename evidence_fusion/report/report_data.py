"""
Report Data

Read side of the report store: turns the stored report entity (a loosely
shaped JSON document) into the typed cost and supplier signals the engine
needs.

Every accessor is total. Missing or malformed values become their empty
default (0, None, empty tuple); nothing here raises.

Cost fields:
    best estimate   baseline.costRange.standard.totalLandedCost
    min cost        baseline.costRange.conservative.totalLandedCost, else best
    max cost        baseline.costRange.range.totalLandedCost.p90, else best × 1.2

Duty: _dutyRange or baseline.riskFlags.tariff.dutyRate, either a number
(no range) or {min, max}.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from loguru import logger

from ..parser.normalizers import NumberNormalizer


MAX_COST_FALLBACK_FACTOR = 1.2

_numbers = NumberNormalizer()


def _dig(data: Any, *path: str) -> Any:
    """Follow a key path through nested mappings; None when any step is missing."""
    for key in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _number(value: Any) -> Optional[float]:
    return _numbers.normalize(value) if not isinstance(value, (Mapping, list, tuple)) else None


@dataclass(frozen=True)
class SupplierMatch:
    """One supplier candidate from the matching stage."""
    supplier_id: Optional[str] = None
    name: Optional[str] = None
    exact_match_count: int = 0

    @property
    def is_exact(self) -> bool:
        return self.exact_match_count > 0

    @classmethod
    def from_dict(cls, data: Any) -> 'SupplierMatch':
        if not isinstance(data, Mapping):
            return cls()
        exact = _number(data.get('exact_match_count', data.get('exactMatchCount')))
        supplier_id = data.get('supplier_id', data.get('id'))
        return cls(
            supplier_id=str(supplier_id) if supplier_id is not None else None,
            name=data.get('supplier_name', data.get('name')),
            exact_match_count=int(exact) if exact and exact > 0 else 0,
        )


@dataclass(frozen=True)
class ReportEntity:
    """Typed view of a stored report."""
    report_id: str = "unknown"
    status: Optional[str] = None
    category: str = "unknown"

    best_estimate: float = 0.0
    min_cost: float = 0.0
    max_cost: float = 0.0

    duty_min: float = 0.0
    duty_max: float = 0.0

    supplier_matches: Tuple[SupplierMatch, ...] = ()
    target_price: Optional[float] = None
    compliance_flag: bool = False
    has_hs: bool = False

    input_status: Mapping[str, Any] = field(default_factory=dict)
    draft_inference: Optional[Mapping[str, Any]] = None

    @property
    def supplier_match_count(self) -> int:
        return len(self.supplier_matches)

    @property
    def exact_match_count(self) -> int:
        return sum(1 for m in self.supplier_matches if m.is_exact)

    @property
    def margin_estimate(self) -> Optional[float]:
        """(target - best) / target × 100; None without a target price or cost."""
        if not self.target_price or self.target_price <= 0 or self.best_estimate <= 0:
            return None
        return (self.target_price - self.best_estimate) / self.target_price * 100

    @classmethod
    def from_dict(cls, data: Any) -> 'ReportEntity':
        """Parse a stored report. Non-mapping input gives the empty report."""
        if not isinstance(data, Mapping):
            logger.warning(f"Report entity of type {type(data).__name__} is not an object, using empty report")
            return cls()

        baseline = data.get('baseline') if isinstance(data.get('baseline'), Mapping) else {}
        cost_range = baseline.get('costRange') if isinstance(baseline.get('costRange'), Mapping) else {}

        best = _number(_dig(cost_range, 'standard', 'totalLandedCost')) or 0.0
        min_cost = _number(_dig(cost_range, 'conservative', 'totalLandedCost')) or best
        max_cost = _number(_dig(cost_range, 'range', 'totalLandedCost', 'p90')) or best * MAX_COST_FALLBACK_FACTOR

        duty_min, duty_max = _duty_range(
            data.get('_dutyRange') or _dig(baseline, 'riskFlags', 'tariff', 'dutyRate')
        )

        target = _number(data.get('targetSellPrice')) or _number(data.get('_priceUnit'))

        report_id = data.get('id') or data.get('reportId') or "unknown"
        category = data.get('category') or baseline.get('category') or "unknown"

        input_status = data.get('inputStatus')
        if not isinstance(input_status, Mapping):
            input_status = _dig(data, 'data', 'inputStatus')
        pipeline_result = data.get('pipeline_result')
        draft = _dig(pipeline_result, 'draftInference')

        hs_candidates = data.get('_hsCandidates')
        return cls(
            report_id=str(report_id),
            status=data.get('status'),
            category=str(category),
            best_estimate=best,
            min_cost=min_cost,
            max_cost=max_cost,
            duty_min=duty_min,
            duty_max=duty_max,
            supplier_matches=_supplier_matches(data),
            target_price=target if target and target > 0 else None,
            compliance_flag=_dig(baseline, 'riskFlags', 'compliance', 'hasRisk') is True,
            has_hs=bool(data.get('_hs')) or (isinstance(hs_candidates, list) and len(hs_candidates) > 0),
            input_status=input_status if isinstance(input_status, Mapping) else {},
            draft_inference=draft if isinstance(draft, Mapping) else None,
        )


def _duty_range(raw: Any) -> Tuple[float, float]:
    if isinstance(raw, Mapping):
        low = _number(raw.get('min')) or 0.0
        high = _number(raw.get('max')) or 0.0
        return low, high
    value = _number(raw)
    if value is None:
        return 0.0, 0.0
    return value, value


def _supplier_matches(data: Mapping[str, Any]) -> Tuple[SupplierMatch, ...]:
    matches = data.get('_supplierMatches')
    if not isinstance(matches, list):
        recommended = data.get('_recommendedMatches')
        candidates = data.get('_candidateMatches')
        matches = (recommended if isinstance(recommended, list) else []) + (
            candidates if isinstance(candidates, list) else []
        )
    return tuple(SupplierMatch.from_dict(m) for m in matches)
