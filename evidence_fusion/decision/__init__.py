"""
Decision System

Verdict rules, sensitivity scenarios, the 48-hour action plan and the
critical-field compliance status.
"""

from .decision_engine import (
    Decision,
    DecisionEngine,
    DecisionSignals,
    EvidenceTier,
    Verdict,
)
from .sensitivity import (
    CostSignals,
    SensitivityAnalyzer,
    SensitivityScenario,
)
from .action_plan import (
    ActionPlan,
    ActionPlanGenerator,
    PlanFlags,
)
from .compliance import (
    ComplianceCheck,
    ComplianceStatus,
    check_compliance,
)

__all__ = [
    'Decision',
    'DecisionEngine',
    'DecisionSignals',
    'EvidenceTier',
    'Verdict',
    'CostSignals',
    'SensitivityAnalyzer',
    'SensitivityScenario',
    'ActionPlan',
    'ActionPlanGenerator',
    'PlanFlags',
    'ComplianceCheck',
    'ComplianceStatus',
    'check_compliance',
]
