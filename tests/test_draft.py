"""
Tests for draft inference models and the builder.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from evidence_fusion.draft.builder import DraftInferenceBuilder
from evidence_fusion.draft.models import DraftInference, WeightDraft
from evidence_fusion.evidence.fields import EvidenceSource
from evidence_fusion.extractor.attempts import ExtractionAttempts, ExtractionOutcome, FailureReason


SLOTS = (
    'labelDraft',
    'barcodeDraft',
    'weightDraft',
    'casePackDraft',
    'customsCategoryDraft',
    'hsCandidatesDraft',
)


class TestWeightDraft:

    def test_kg_to_grams(self):
        weight = WeightDraft.from_measurement(2, "kg", 0.7, EvidenceSource.VISION_INFERENCE)
        assert weight.grams == 2000
        assert weight.to_dict()['unit'] == "g"
        assert weight.to_dict()['value'] == 2000

    def test_unconvertible_is_absent(self):
        assert not WeightDraft.from_measurement("heavy", "g").is_present

    def test_default_ceiling(self):
        assert WeightDraft(50, 0.9, EvidenceSource.DEFAULT).confidence == 0.3


class TestDraftInferenceBuilder:
    """Tests for building and normalizing complete drafts."""

    def setup_method(self):
        self.builder = DraftInferenceBuilder()

    def test_empty_input_has_every_slot(self):
        data = self.builder.build(None).to_dict()
        assert tuple(data) == SLOTS
        for key in ('barcodeDraft', 'weightDraft', 'customsCategoryDraft'):
            assert set(data[key]) >= {'value', 'confidence', 'source', 'evidenceSnippet'}
        assert len(data['labelDraft']) == 5

    def test_candy_defaults(self):
        draft = self.builder.build(ExtractionAttempts(category="candy"))
        assert draft.to_dict()['weightDraft'] == {
            'value': 25,
            'unit': 'g',
            'confidence': 0.25,
            'source': 'DEFAULT',
            'evidenceSnippet': 'Category default (candy)',
        }

    def test_case_pack_always_two_candidates(self):
        draft = self.builder.normalize({'casePackDraft': {'candidates': []}})
        candidates = draft.case_pack_draft.candidates
        assert len(candidates) == 2
        assert all(c.source is EvidenceSource.DEFAULT for c in candidates)
        assert draft.case_pack_draft.selected_value == 12
        assert draft.case_pack_draft.selected_confidence == 0.3

    def test_single_candidate_padded(self):
        attempts = ExtractionAttempts(case_pack_vision=ExtractionOutcome.success(
            {'candidates': [{'value': 6, 'confidence': 0.7}]}
        ))
        case_pack = self.builder.build(attempts).case_pack_draft
        assert [c.value for c in case_pack.candidates] == [6, 24]
        assert case_pack.selected_value == 6
        assert case_pack.selected_confidence == 0.7
        assert not case_pack.is_default

    def test_stored_kg_weight_normalized(self):
        draft = self.builder.normalize({'weightDraft': {'value': 2, 'unit': 'kg', 'confidence': 0.7, 'source': 'VISION'}})
        assert draft.weight_draft.grams == 2000
        assert draft.weight_draft.source is EvidenceSource.VISION_INFERENCE
        assert draft.to_dict()['weightDraft']['unit'] == "g"

    def test_normalize_is_idempotent(self):
        attempts = ExtractionAttempts(
            category="snack",
            label_text="Net Wt 0.14 kg",
            case_pack_vision=ExtractionOutcome.success({'candidates': [{'value': 8}]}),
        )
        once = self.builder.build(attempts)
        assert self.builder.normalize(once) == once
        assert self.builder.normalize(self.builder.normalize(once)) == once

    def test_normalize_empty(self):
        draft = self.builder.normalize(None)
        assert isinstance(draft, DraftInference)
        assert draft.weight_draft.grams == 50

    def test_garbage_slots_default(self):
        draft = self.builder.normalize({
            'weightDraft': 'heavy',
            'barcodeDraft': 42,
            'casePackDraft': {'candidates': [{'value': True}, {'value': 'six'}]},
            'hsCandidatesDraft': 'none',
        })
        assert draft.barcode_draft.value is None
        assert len(draft.case_pack_draft.candidates) == 2
        assert draft.hs_candidates_draft == ()

    def test_failures_never_raise(self):
        attempts = ExtractionAttempts(
            barcode_vision=ExtractionOutcome.failure(FailureReason.TIMEOUT),
            label_vision=ExtractionOutcome.failure(FailureReason.EXCEPTION, "boom"),
            weight_vision=ExtractionOutcome.failure(FailureReason.MALFORMED),
            case_pack_vision=ExtractionOutcome.failure(FailureReason.UPSTREAM_ERROR),
            customs_reasoning=ExtractionOutcome.failure(FailureReason.NO_VALUE),
        )
        data = self.builder.build(attempts).to_dict()
        assert tuple(data) == SLOTS
        assert data['weightDraft']['source'] == "DEFAULT"
