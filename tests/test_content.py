"""
Tests for deterministic content selection: hashing, the template catalog,
verdict template selection and report nudges.
"""

import sys
from pathlib import Path

import pytest
import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from evidence_fusion.content.catalog import TemplateCatalog
from evidence_fusion.content.hashing import stable_hash, to_int32
from evidence_fusion.content.nudges import NudgeCatalog, NudgeFlags, NudgeSelector
from evidence_fusion.content.selector import VerdictTemplateSelector
from evidence_fusion.decision.decision_engine import Decision, DecisionSignals
from evidence_fusion.exceptions import CatalogError
from evidence_fusion.settings import DEFAULT_TEMPLATE_CATALOG


NO_FLAGS = NudgeFlags(
    label_missing=False,
    barcode_missing=False,
    origin_missing=False,
    weight_default=False,
    case_pack_default=False,
    supplier_matches_empty=False,
    hs_missing=False,
)


class TestStableHash:
    """Tests for the portable 32-bit polynomial hash."""

    def test_known_values(self):
        assert stable_hash("") == 0
        assert stable_hash("a") == 97
        assert stable_hash("ab") == 97 * 31 + 98
        assert stable_hash("hello") == 99162322

    def test_wraps_to_32_bits(self):
        # Hashes to the minimum signed 32-bit value before abs()
        assert stable_hash("polygenelubricants") == 2 ** 31

    def test_utf16_code_units(self):
        assert stable_hash("\U0001F600") == 0xD83D * 31 + 0xDE00

    def test_to_int32(self):
        assert to_int32(2 ** 31) == -(2 ** 31)
        assert to_int32(-1) == -1
        assert to_int32(2 ** 32 + 5) == 5

    def test_none_is_empty(self):
        assert stable_hash(None) == 0


class TestTemplateCatalog:
    """Tests for catalog loading and validation."""

    def test_packaged_catalog(self):
        catalog = TemplateCatalog.default()
        assert len(catalog) == 100
        assert len(catalog.bucket('no_compliance')) == 10
        assert catalog.bucket('go_supplier_competition') == (10, 18)
        assert catalog.bucket('go_classification') == (4, 17)
        assert catalog.bucket('hold_classification') == (22, 27, 35)
        assert catalog.bucket('missing') == ()

    def test_buckets_never_mix_decisions(self):
        catalog = TemplateCatalog.default()
        for name in catalog.bucket_names:
            decision = catalog.bucket_decision(name)
            assert all(catalog.get(i).decision is decision for i in catalog.bucket(name))

    def _data(self, templates, preferred=None):
        return {
            'buckets': {'go_strong_evidence': {'decision': 'GO'}, 'no_economics': {'decision': 'NO'}},
            'preferred': preferred or {},
            'templates': templates,
        }

    def test_duplicate_id(self):
        templates = [
            {'id': 1, 'decision': 'GO', 'bucket': 'go_strong_evidence', 'statement': 'a'},
            {'id': 1, 'decision': 'GO', 'bucket': 'go_strong_evidence', 'statement': 'b'},
        ]
        with pytest.raises(CatalogError):
            TemplateCatalog.from_dict(self._data(templates))

    def test_decision_mismatch(self):
        templates = [{'id': 1, 'decision': 'NO', 'bucket': 'go_strong_evidence', 'statement': 'a'}]
        with pytest.raises(CatalogError):
            TemplateCatalog.from_dict(self._data(templates))

    def test_undeclared_bucket(self):
        templates = [{'id': 1, 'decision': 'GO', 'bucket': 'go_elsewhere', 'statement': 'a'}]
        with pytest.raises(CatalogError):
            TemplateCatalog.from_dict(self._data(templates))

    def test_empty_statement(self):
        templates = [{'id': 1, 'decision': 'GO', 'bucket': 'go_strong_evidence', 'statement': '   '}]
        with pytest.raises(CatalogError):
            TemplateCatalog.from_dict(self._data(templates))

    def test_entry_decision_normalized(self):
        templates = [{'id': 1, 'decision': ' go ', 'bucket': 'go_strong_evidence', 'statement': ' a '}]
        template = TemplateCatalog.from_dict(self._data(templates)).get(1)
        assert template.decision is Decision.GO
        assert template.statement == "a"

    def test_reserved_id(self):
        templates = [{'id': 0, 'decision': 'GO', 'bucket': 'go_strong_evidence', 'statement': 'a'}]
        with pytest.raises(CatalogError):
            TemplateCatalog.from_dict(self._data(templates))

    def test_view_mixing_decisions(self):
        templates = [
            {'id': 1, 'decision': 'GO', 'bucket': 'go_strong_evidence', 'statement': 'a'},
            {'id': 2, 'decision': 'NO', 'bucket': 'no_economics', 'statement': 'b'},
        ]
        preferred = {'go_supplier_competition': {'decision': 'GO', 'ids': [1, 2]}}
        with pytest.raises(CatalogError):
            TemplateCatalog.from_dict(self._data(templates, preferred))

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError):
            TemplateCatalog.load(tmp_path / "missing.yaml")

    def test_packaged_file_reads_no_as_text(self):
        catalog = TemplateCatalog.load(DEFAULT_TEMPLATE_CATALOG)
        assert catalog.bucket_decision('no_compliance') is Decision.NO
        assert catalog.bucket_decision('no_economics') is Decision.NO
        assert len(catalog.for_decision(Decision.NO)) == 23

    def test_unquoted_no_is_rejected(self):
        # YAML 1.1 loads a bare NO as False
        data = yaml.safe_load(
            "buckets:\n"
            "  no_economics:\n"
            "    decision: NO\n"
            "templates: []\n"
        )
        assert data['buckets']['no_economics']['decision'] is False
        with pytest.raises(CatalogError, match="quote"):
            TemplateCatalog.from_dict(data)

    def test_unquoted_no_entry_is_rejected(self):
        templates = [{'id': 1, 'decision': False, 'bucket': 'no_economics', 'statement': 'a'}]
        with pytest.raises(CatalogError):
            TemplateCatalog.from_dict(self._data(templates))

    def test_views_only_use_basic_templates(self):
        catalog = TemplateCatalog.default()
        for view in ('go_supplier_competition', 'go_classification', 'hold_classification'):
            assert all(1 <= i <= 40 for i in catalog.bucket(view))


class TestVerdictTemplateSelector:
    """Tests for bucket precedence and deterministic selection."""

    def setup_method(self):
        self.catalog = TemplateCatalog.default()
        self.selector = VerdictTemplateSelector(self.catalog)

    def test_deterministic(self):
        signals = DecisionSignals(exact_matches=1)
        first = self.selector.select("report-123", "candy", Decision.HOLD, signals)
        second = VerdictTemplateSelector(self.catalog).select("report-123", "candy", Decision.HOLD, signals)
        assert first.id == second.id

    def test_index_by_hash(self):
        ids = self.catalog.bucket('go_weak_data_advantage')
        template = self.selector.select("report-123", "tools", Decision.GO, DecisionSignals())
        assert template.id == ids[stable_hash("report-123") % len(ids)]

    def test_low_evidence_tone_first(self):
        name, _ = self.selector.select_bucket("toy car", Decision.GO, DecisionSignals(exact_matches=0))
        assert name == 'go_weak_data_advantage'
        name, _ = self.selector.select_bucket("candy", Decision.HOLD, DecisionSignals(exact_matches=0))
        assert name == 'hold_missing_inputs'

    def test_category_groups(self):
        strong = DecisionSignals(exact_matches=3)
        assert self.selector.select_bucket("toy car", Decision.GO, strong)[0] == 'go_supplier_competition'
        assert self.selector.select_bucket("candy", Decision.GO, strong)[0] == 'go_strong_evidence'
        assert self.selector.select_bucket("hybrid kit", Decision.GO, strong)[0] == 'go_classification'
        assert self.selector.select_bucket("hybrid kit", Decision.HOLD, strong)[0] == 'hold_classification'
        assert self.selector.select_bucket("tools", Decision.HOLD, strong)[0] == 'hold_needs_confirmation'

    def test_no_buckets(self):
        name, _ = self.selector.select_bucket("toy", Decision.NO, DecisionSignals(compliance_suspected=True))
        assert name == 'no_compliance'
        name, _ = self.selector.select_bucket("toy", Decision.NO, DecisionSignals(exact_matches=5))
        assert name == 'no_economics'

    def test_selected_decision_matches(self):
        for report_id in ("a", "b", "report-1", "report-2", "日本"):
            for decision in Decision:
                assert self.selector.select(report_id, "combo", decision, DecisionSignals(exact_matches=2)).decision is decision

    def test_missing_id_falls_back(self):
        catalog = TemplateCatalog.from_dict({
            'buckets': {'go_strong_evidence': {'decision': 'GO'}},
            'preferred': {'go_supplier_competition': {'decision': 'GO', 'ids': [999]}},
            'templates': [
                {'id': 7, 'decision': 'GO', 'bucket': 'go_strong_evidence', 'statement': 'seven'},
                {'id': 3, 'decision': 'GO', 'bucket': 'go_strong_evidence', 'statement': 'three'},
            ],
        })
        template = VerdictTemplateSelector(catalog).select("r", "toy", Decision.GO, DecisionSignals(exact_matches=3))
        assert template.id == 3

    def test_empty_catalog_uses_builtin(self):
        catalog = TemplateCatalog.from_dict({'buckets': {}, 'templates': []})
        template = VerdictTemplateSelector(catalog).select("r", None, Decision.NO, None)
        assert template.decision is Decision.NO
        assert template.statement


class TestNudgeSelector:
    """Tests for the one-nudge-per-report selection."""

    def setup_method(self):
        self.selector = NudgeSelector()

    def test_everything_missing(self):
        assert self.selector.pick("r1", "tools", NudgeFlags()).action_key == "label_retake"

    def test_toy_prefers_barcode(self):
        flags = NudgeFlags(label_missing=False)
        assert self.selector.pick("r1", "toy car", flags).action_key == "barcode_retake"
        assert self.selector.priorities("toy car")['barcode_retake'] == 1.5

    def test_first_matching_group_only(self):
        # "candy toy" matches both the food and toy groups
        priorities = self.selector.priorities("candy toy")
        assert priorities['label_retake'] == 0.5
        assert priorities['barcode_retake'] == 2

    def test_add_anchor_needs_barcode(self):
        flags = NudgeFlags(
            label_missing=False, barcode_missing=False, origin_missing=False, weight_default=False,
            case_pack_default=False, hs_missing=False, supplier_matches_empty=True,
        )
        assert self.selector.pick("r1", "tools", flags).action_key == "add_anchor"

    def test_nothing_missing(self):
        nudge = self.selector.pick("r1", "tools", NO_FLAGS)
        assert nudge.action_key == "general_improve"
        assert nudge.to_dict()['severity'] == "low"

    def test_hash_breaks_ties(self):
        catalog = NudgeCatalog.from_dict({'actions': [
            {'key': 'first', 'priority': 1, 'target': 'general', 'severity': 'low',
             'action_text': 'one', 'tip_text': 'one'},
            {'key': 'second', 'priority': 1, 'target': 'general', 'severity': 'low',
             'action_text': 'two', 'tip_text': 'two'},
        ]})
        selector = NudgeSelector(catalog)
        assert selector.pick("b", None, NO_FLAGS).action_key == "first"    # 98 % 2 == 0
        assert selector.pick("a", None, NO_FLAGS).action_key == "second"   # 97 % 2 == 1

    def test_catalog_needs_fallback(self):
        with pytest.raises(CatalogError):
            NudgeCatalog.from_dict({'actions': [
                {'key': 'x', 'priority': 1, 'target': 'label', 'severity': 'high',
                 'when': ['label_missing'], 'action_text': 'x', 'tip_text': 'x'},
            ]})

    def test_catalog_rejects_unknown_flags(self):
        with pytest.raises(CatalogError):
            NudgeCatalog.from_dict({'actions': [
                {'key': 'x', 'priority': 1, 'target': 'label', 'severity': 'high',
                 'when': ['moon_missing'], 'action_text': 'x', 'tip_text': 'x'},
                {'key': 'y', 'priority': 2, 'target': 'general', 'severity': 'low',
                 'action_text': 'y', 'tip_text': 'y'},
            ]})
