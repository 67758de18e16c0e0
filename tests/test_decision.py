"""
Tests for the decision system: verdict rules, confidence, sensitivity,
action plan and compliance status.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from evidence_fusion.decision.action_plan import ActionPlanGenerator, PlanFlags
from evidence_fusion.decision.compliance import (
    NOTE_MISSING,
    NOTE_UNCONFIRMED,
    ComplianceStatus,
    check_compliance,
)
from evidence_fusion.decision.decision_engine import (
    Decision,
    DecisionEngine,
    DecisionSignals,
    EvidenceTier,
)
from evidence_fusion.decision.sensitivity import CostSignals, SensitivityAnalyzer
from evidence_fusion.draft.models import LabelDraft
from evidence_fusion.evidence.fields import EvidenceField, EvidenceSource


def complete_signals(**overrides):
    values = dict(
        supplier_matches=5,
        exact_matches=3,
        has_barcode=True,
        has_label=True,
        label_readable=True,
        has_weight=True,
        has_origin=True,
        weight_is_default=False,
        case_pack_is_default=False,
        best_estimate=10.0,
    )
    values.update(overrides)
    return DecisionSignals(**values)


class TestDecisionRules:
    """Tests for the ordered verdict rules."""

    def setup_method(self):
        self.engine = DecisionEngine()

    def test_go(self):
        verdict = self.engine.decide(complete_signals())
        assert verdict.decision is Decision.GO
        assert verdict.reasons[0] == "3 exact supplier matches found"

    def test_negative_margin_is_no(self):
        verdict = self.engine.decide(complete_signals(margin_estimate=-1.5))
        assert verdict.decision is Decision.NO
        assert verdict.rule == "margin"

    def test_zero_margin_is_no(self):
        assert self.engine.decide(complete_signals(margin_estimate=0)).decision is Decision.NO

    def test_null_margin_never_disqualifies(self):
        assert self.engine.decide(complete_signals(margin_estimate=None)).decision is Decision.GO

    def test_compliance_without_label_is_no(self):
        verdict = self.engine.decide(complete_signals(compliance_suspected=True, has_label=False, exact_matches=10))
        assert verdict.decision is Decision.NO
        assert verdict.rule == "compliance"
        assert "Risk factors present" in verdict.reasons

    def test_compliance_with_label_passes(self):
        assert self.engine.decide(complete_signals(compliance_suspected=True)).decision is Decision.GO

    def test_compliance_with_unreadable_label_is_no(self):
        # Label present only as a vision draft
        verdict = self.engine.decide(complete_signals(compliance_suspected=True, label_readable=False))
        assert verdict.decision is Decision.NO
        assert verdict.rule == "compliance"

    def test_identity_missing_is_hold(self):
        verdict = self.engine.decide(complete_signals(has_barcode=False, has_label=False))
        assert verdict.decision is Decision.HOLD
        assert verdict.rule == "identity"

    def test_unreadable_label_does_not_identify(self):
        verdict = self.engine.decide(complete_signals(has_barcode=False, label_readable=False))
        assert verdict.decision is Decision.HOLD
        assert verdict.rule == "identity"

    def test_readable_needs_present_label(self):
        signals = complete_signals(has_label=False, label_readable=True)
        assert not signals.has_readable_label
        assert signals.to_dict()['labelReadable'] is False

    def test_all_defaults_without_matches_is_hold(self):
        signals = complete_signals(
            supplier_matches=0, exact_matches=0, weight_is_default=True, case_pack_is_default=True
        )
        verdict = self.engine.decide(signals)
        assert verdict.decision is Decision.HOLD
        assert verdict.rule == "defaults"
        assert verdict.reasons[0] == "No supplier matches found"

    def test_defaults_with_matches_is_go(self):
        signals = complete_signals(weight_is_default=True, case_pack_is_default=True)
        assert self.engine.decide(signals).decision is Decision.GO

    def test_empty_signals(self):
        verdict = self.engine.decide(None)
        assert verdict.decision is Decision.HOLD
        assert 0 <= verdict.confidence <= 100
        assert len(verdict.reasons) <= 3


class TestConfidenceScore:
    """Tests for the 0-100 confidence score."""

    def setup_method(self):
        self.engine = DecisionEngine()

    def test_strong_and_complete(self):
        assert self.engine.score(complete_signals()) == 95

    def test_no_cost_data(self):
        assert self.engine.score(complete_signals(best_estimate=0, has_barcode=False, has_label=False,
                                                  has_weight=False)) == 20

    def test_tiers(self):
        assert self.engine.score(complete_signals(has_origin=False, supplier_matches=0, exact_matches=0)) == 30
        assert self.engine.score(complete_signals(has_origin=False, exact_matches=0)) == 40
        assert self.engine.score(complete_signals(has_origin=False, exact_matches=2)) == 60
        assert self.engine.score(complete_signals(has_origin=False, exact_matches=4)) == 75

    def test_incomplete_penalty(self):
        signals = complete_signals(has_barcode=False, has_label=False, has_weight=False)
        assert self.engine.score(signals) == 60

    def test_penalties_stop_at_floor(self):
        thin = dict(supplier_matches=0, exact_matches=0, has_barcode=False, has_label=False, has_weight=False)
        assert self.engine.score(complete_signals(**thin)) == 20
        assert self.engine.score(complete_signals(duty_min=0, duty_max=20, **thin)) == 20
        assert self.engine.score(DecisionSignals(best_estimate=0)) == 20

    def test_no_cost_data_without_penalty(self):
        # Two facts present: no completeness penalty, so nothing lifts the zero
        assert self.engine.score(complete_signals(best_estimate=0, has_barcode=False, has_label=False)) == 0
        assert self.engine.score(complete_signals(best_estimate=0)) == 20

    def test_wide_duty_range_penalty(self):
        assert self.engine.score(complete_signals(duty_min=5, duty_max=15)) == 85
        assert self.engine.score(complete_signals(duty_min=5, duty_max=10)) == 95

    def test_evidence_tier(self):
        assert EvidenceTier.from_exact_matches(0) is EvidenceTier.LOW
        assert EvidenceTier.from_exact_matches(2) is EvidenceTier.MEDIUM
        assert EvidenceTier.from_exact_matches(3) is EvidenceTier.HIGH


class TestSensitivityAnalyzer:
    """Tests for the three sensitivity scenarios."""

    def setup_method(self):
        self.analyzer = SensitivityAnalyzer()

    def test_always_three(self):
        for signals in (None, CostSignals(), CostSignals(best_estimate=10, duty_min=5, duty_max=15,
                                                         min_cost=8, max_cost=12)):
            assert len(self.analyzer.analyze(signals)) == 3

    def test_duty_uncertainty(self):
        scenario = self.analyzer.analyze(CostSignals(best_estimate=10, duty_min=5, duty_max=15, has_origin=True))[0]
        assert scenario.label == "Duty rate uncertainty"
        data = scenario.to_dict()
        assert data['impactOnLandedCost']['change'] == 100
        assert data['impactOnLandedCost']['newCost'] == pytest.approx(10.5)

    def test_price_range(self):
        scenarios = self.analyzer.analyze(CostSignals(best_estimate=10, min_cost=8, max_cost=12, has_origin=True))
        assert scenarios[0].label == "Supplier price range"
        assert scenarios[0].cost_change == pytest.approx(40)
        assert scenarios[0].new_cost == 12

    def test_origin_confirmation(self):
        scenarios = self.analyzer.analyze(CostSignals(best_estimate=10))
        assert scenarios[0].label == "Origin confirmation"
        assert scenarios[0].cost_change == 5
        assert scenarios[0].new_cost == pytest.approx(10.5)

    def test_placeholders(self):
        scenarios = self.analyzer.analyze(CostSignals())
        for scenario in scenarios:
            data = scenario.to_dict()
            assert data['impactOnLandedCost'] == {'change': 0, 'newCost': None}
            assert scenario.is_placeholder

    def test_margin_only_with_target_price(self):
        without = self.analyzer.analyze(CostSignals(best_estimate=10))[0]
        assert without.margin_change is None
        assert without.new_margin is None

        with_price = self.analyzer.analyze(CostSignals(best_estimate=10, target_price=20))[0]
        assert with_price.new_margin == pytest.approx(47.5)
        assert with_price.margin_change == pytest.approx(-2.5)


class TestActionPlan:
    """Tests for the 48-hour action plan."""

    def setup_method(self):
        self.generator = ActionPlanGenerator()

    def test_go_without_label(self):
        plan = self.generator.plan(Decision.GO, PlanFlags(supplier_matches=3))
        assert plan.today[0] == "Start verification to get 3 real factory options"
        assert "Upload label photo to confirm origin and ingredients" in plan.today
        assert plan.tomorrow[0] == "Await quotes from supplier outreach"

    def test_hold_without_matches(self):
        plan = self.generator.plan(Decision.HOLD, PlanFlags())
        assert plan.today[0] == "Upload a clear barcode or label to improve matching"
        assert plan.tomorrow == (
            "Confirm HS code classification with customs",
            "Verify country of origin for accurate duty calculation",
            "Review updated supplier matches after photo upload",
        )

    def test_hold_with_matches_and_origin(self):
        plan = self.generator.plan(Decision.HOLD, PlanFlags(supplier_matches=2, has_label=True, has_origin=True))
        assert plan.today[0] == "Start verification to expand supplier options"
        assert len(plan.today) == 2
        assert plan.tomorrow[0] == "Confirm HS code classification with customs"
        assert len(plan.tomorrow) == 2

    def test_no(self):
        plan = self.generator.plan(Decision.NO)
        assert plan.today[0] == "Review cost breakdown and identify cost drivers"
        assert plan.tomorrow[0] == "Re-run analysis with updated inputs"

    def test_capped_at_three(self):
        for decision in Decision:
            plan = self.generator.plan(decision)
            assert len(plan.today) <= 3
            assert len(plan.tomorrow) <= 3


class TestCompliance:
    """Tests for the critical-field compliance status."""

    def _label(self, source):
        return LabelDraft(
            origin_country=EvidenceField("China", 0.9, source),
            net_weight=EvidenceField("140 g", 0.9, source),
            allergens=EvidenceField("milk", 0.9, source),
        )

    def test_user_confirmed_is_preliminary(self):
        check = check_compliance(self._label(EvidenceSource.USER_INPUT))
        assert check.status is ComplianceStatus.PRELIMINARY

    def test_extracted_not_confirmed(self):
        check = check_compliance(self._label(EvidenceSource.OCR))
        assert check.status is ComplianceStatus.INCOMPLETE
        assert check.note == NOTE_UNCONFIRMED

    def test_missing(self):
        check = check_compliance(None)
        assert check.status is ComplianceStatus.INCOMPLETE
        assert check.note == NOTE_MISSING
        assert check.to_dict()['missingFields'] == ['origin_country', 'net_weight', 'allergens']
