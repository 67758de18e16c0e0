"""
Sensitivity Analysis

Three "what changes the outcome" scenarios on landed cost and margin.

Generators, each only when its data exists:
- Duty rate uncertainty   duty range and a best estimate
- Supplier price range    cost range and a best estimate
- Origin confirmation     origin unconfirmed and a best estimate

Missing scenarios are padded with a neutral placeholder so the list is
always exactly three long. Margin impact is only filled in when a target
sell price is known; it is never guessed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..settings import EngineConfig, default_engine_config


SCENARIO_COUNT = 3
PLACEHOLDER_LABEL = "Additional analysis needed"


@dataclass(frozen=True)
class CostSignals:
    """Cost inputs for the sensitivity scenarios."""
    best_estimate: float = 0.0
    min_cost: float = 0.0
    max_cost: float = 0.0
    duty_min: float = 0.0
    duty_max: float = 0.0
    has_origin: bool = False
    target_price: Optional[float] = None


@dataclass(frozen=True)
class SensitivityScenario:
    """One projection: what if this assumption changes."""
    label: str
    assumption_change: str
    cost_change: float = 0.0
    new_cost: Optional[float] = None
    margin_change: Optional[float] = None
    new_margin: Optional[float] = None

    @property
    def is_placeholder(self) -> bool:
        return self.new_cost is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'assumptionChange': self.assumption_change,
            'impactOnLandedCost': {
                'change': _round(self.cost_change),
                'newCost': _round(self.new_cost),
            },
            'impactOnMargin': {
                'change': _round(self.margin_change),
                'newMargin': _round(self.new_margin),
            },
        }


def _round(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 4)


def margin_percent(price: Optional[float], cost: Optional[float]) -> Optional[float]:
    """(price - cost) / price * 100, or None without a positive price and cost."""
    if not price or price <= 0 or cost is None or cost <= 0:
        return None
    return (price - cost) / price * 100


class SensitivityAnalyzer:
    """
    Builds the sensitivity scenario list.

    Usage:
        analyzer = SensitivityAnalyzer()
        scenarios = analyzer.analyze(CostSignals(best_estimate=10, duty_min=5, duty_max=15))
        scenarios[0].cost_change   # 100.0
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or default_engine_config()

    def analyze(self, signals: Optional[CostSignals] = None) -> Tuple[SensitivityScenario, ...]:
        """Exactly three scenarios, computed ones first."""
        signals = signals or CostSignals()
        scenarios: List[SensitivityScenario] = []

        for generator in (self._duty_scenario, self._price_scenario, self._origin_scenario):
            scenario = generator(signals)
            if scenario is not None:
                scenarios.append(self._with_margin(scenario, signals))

        while len(scenarios) < SCENARIO_COUNT:
            scenarios.append(SensitivityScenario(
                label=PLACEHOLDER_LABEL,
                assumption_change="Upload more photos to unlock sensitivity analysis",
            ))

        return tuple(scenarios[:SCENARIO_COUNT])

    def _duty_scenario(self, s: CostSignals) -> Optional[SensitivityScenario]:
        if not (s.duty_max > s.duty_min and s.best_estimate > 0):
            return None
        midpoint = (s.duty_min + s.duty_max) / 2
        return SensitivityScenario(
            label="Duty rate uncertainty",
            assumption_change=f"Duty rate varies from {s.duty_min:.1f}% to {s.duty_max:.1f}%",
            cost_change=(s.duty_max - s.duty_min) / midpoint * 100,
            new_cost=s.best_estimate * (1 + (s.duty_max - midpoint) / 100),
        )

    def _price_scenario(self, s: CostSignals) -> Optional[SensitivityScenario]:
        if not (s.max_cost > s.min_cost and s.best_estimate > 0):
            return None
        return SensitivityScenario(
            label="Supplier price range",
            assumption_change=f"Factory quotes range from ${s.min_cost:.2f} to ${s.max_cost:.2f} per unit",
            cost_change=(s.max_cost - s.min_cost) / s.best_estimate * 100,
            new_cost=s.max_cost,
        )

    def _origin_scenario(self, s: CostSignals) -> Optional[SensitivityScenario]:
        if s.has_origin or s.best_estimate <= 0:
            return None
        impact = self.config.origin_assumed_impact
        return SensitivityScenario(
            label="Origin confirmation",
            assumption_change="Confirming country of origin narrows duty rate range",
            cost_change=impact,
            new_cost=s.best_estimate * (1 + impact / 100),
        )

    def _with_margin(self, scenario: SensitivityScenario, s: CostSignals) -> SensitivityScenario:
        base = margin_percent(s.target_price, s.best_estimate)
        new = margin_percent(s.target_price, scenario.new_cost)
        if base is None or new is None:
            return scenario
        return SensitivityScenario(
            label=scenario.label,
            assumption_change=scenario.assumption_change,
            cost_change=scenario.cost_change,
            new_cost=scenario.new_cost,
            margin_change=new - base,
            new_margin=new,
        )
