"""
Tests for report entity parsing and record export.
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from evidence_fusion.report.json_export import (
    RECORD_KEY,
    ExportConfig,
    ExportError,
    RecordExporter,
)
from evidence_fusion.report.report_data import ReportEntity, SupplierMatch


FULL_REPORT = {
    'id': "report-42",
    'status': "completed",
    'category': "candy",
    'targetSellPrice': 2.5,
    'baseline': {
        'costRange': {
            'standard': {'totalLandedCost': 1.0},
            'conservative': {'totalLandedCost': 0.8},
            'range': {'totalLandedCost': {'p90': 1.4}},
        },
        'riskFlags': {
            'tariff': {'dutyRate': {'min': 5, 'max': 12}},
            'compliance': {'hasRisk': True},
        },
    },
    '_supplierMatches': [
        {'supplier_id': "s1", 'supplier_name': "Acme", 'exact_match_count': 2},
        {'supplier_id': "s2", 'supplier_name': "Beta", 'exact_match_count': 0},
        {'id': 3, 'name': "Gamma", 'exactMatchCount': "1"},
    ],
    '_hsCandidates': [{'code': "1704.90"}],
    'inputStatus': {'barcodePhotoUploaded': True},
    'pipeline_result': {'draftInference': {'weightDraft': {'value': 140, 'unit': "g"}}},
}


class TestReportEntity:
    """Tests for the typed report view."""

    def test_full_report(self):
        report = ReportEntity.from_dict(FULL_REPORT)
        assert report.report_id == "report-42"
        assert report.category == "candy"
        assert report.best_estimate == 1.0
        assert report.min_cost == 0.8
        assert report.max_cost == 1.4
        assert (report.duty_min, report.duty_max) == (5.0, 12.0)
        assert report.compliance_flag
        assert report.has_hs
        assert report.input_status == {'barcodePhotoUploaded': True}
        assert report.draft_inference['weightDraft']['value'] == 140

    def test_supplier_matches(self):
        report = ReportEntity.from_dict(FULL_REPORT)
        assert report.supplier_match_count == 3
        assert report.exact_match_count == 2
        assert report.supplier_matches[2] == SupplierMatch("3", "Gamma", 1)

    def test_margin_estimate(self):
        report = ReportEntity.from_dict(FULL_REPORT)
        assert report.margin_estimate == pytest.approx(60.0)

    def test_margin_needs_target_and_cost(self):
        assert ReportEntity(best_estimate=1.0).margin_estimate is None
        assert ReportEntity(target_price=2.0).margin_estimate is None

    def test_single_duty_rate(self):
        report = ReportEntity.from_dict({'baseline': {'riskFlags': {'tariff': {'dutyRate': 7.5}}}})
        assert (report.duty_min, report.duty_max) == (7.5, 7.5)

    def test_max_cost_fallback(self):
        report = ReportEntity.from_dict({'baseline': {'costRange': {'standard': {'totalLandedCost': 10}}}})
        assert report.min_cost == 10
        assert report.max_cost == pytest.approx(12.0)

    def test_recommended_and_candidate_matches(self):
        report = ReportEntity.from_dict({
            '_recommendedMatches': [{'exact_match_count': 1}],
            '_candidateMatches': [{'exact_match_count': 0}, {}],
        })
        assert report.supplier_match_count == 3
        assert report.exact_match_count == 1

    def test_malformed_report(self):
        report = ReportEntity.from_dict({
            'baseline': "oops",
            '_supplierMatches': "none",
            'targetSellPrice': -3,
            'inputStatus': [1, 2],
            'pipeline_result': {'draftInference': "stale"},
        })
        assert report.report_id == "unknown"
        assert report.best_estimate == 0.0
        assert report.supplier_matches == ()
        assert report.target_price is None
        assert report.input_status == {}
        assert report.draft_inference is None

    def test_non_mapping(self):
        assert ReportEntity.from_dict(None) == ReportEntity()
        assert ReportEntity.from_dict("garbage") == ReportEntity()


class FakeRecord:
    """Minimal stand-in exposing the record serialization hook."""

    def to_dict(self, include_supplemental=True):
        data = {'verdict': {'decision': "HOLD"}, 'nudge': {'actionKey': "label_retake"}}
        if include_supplemental:
            data['warnings'] = ["weight defaulted"]
        return data


class TestRecordExporter:
    """Tests for JSON read/write of decision-support records."""

    def setup_method(self):
        self.exporter = RecordExporter()

    def test_dumps_sorted(self):
        text = self.exporter.dumps(FakeRecord())
        assert text.index('"nudge"') < text.index('"verdict"') < text.index('"warnings"')

    def test_minimal(self):
        exporter = RecordExporter(ExportConfig(include_supplemental=False, pretty_print=False))
        assert json.loads(exporter.dumps(FakeRecord())) == {
            'verdict': {'decision': "HOLD"},
            'nudge': {'actionKey': "label_retake"},
        }

    def test_write_and_read(self, tmp_path):
        path = tmp_path / "out" / "record.json"
        self.exporter.write_record(FakeRecord(), path)
        assert path.read_text(encoding='utf-8').endswith("}\n")
        assert self.exporter.read_json(path)['warnings'] == ["weight defaulted"]

    def test_write_is_stable(self, tmp_path):
        first = tmp_path / "a.json"
        second = tmp_path / "b.json"
        self.exporter.write_record(FakeRecord(), first)
        self.exporter.write_record(FakeRecord(), second)
        assert first.read_bytes() == second.read_bytes()

    def test_attach(self):
        report = {'id': "r1"}
        attached = self.exporter.attach(report, FakeRecord())
        assert attached['id'] == "r1"
        assert attached[RECORD_KEY]['verdict'] == {'decision': "HOLD"}
        assert RECORD_KEY not in report

    def test_read_missing(self, tmp_path):
        with pytest.raises(ExportError):
            self.exporter.read_json(tmp_path / "missing.json")

    def test_read_invalid(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding='utf-8')
        with pytest.raises(ExportError):
            self.exporter.read_json(path)
