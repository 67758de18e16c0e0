"""
Tests for number/weight normalization and label text assessment.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from evidence_fusion.extractor.label_text import (
    LabelFailureReason,
    LabelOcrStatus,
    LabelTextParser,
    assess_label_ocr,
)
from evidence_fusion.parser.normalizers import (
    NumberNormalizer,
    WeightNormalizer,
    category_matches,
    normalize_weight,
)


class TestNumberNormalizer:
    """Tests for number normalization."""

    def setup_method(self):
        self.normalizer = NumberNormalizer()

    def test_integer(self):
        assert self.normalizer.normalize(12) == 12.0

    def test_string(self):
        assert self.normalizer.normalize("$1,234.50") == 1234.5

    def test_european_decimal(self):
        assert self.normalizer.normalize("1.234,56") == 1234.56
        assert self.normalizer.normalize("0,14") == 0.14

    def test_rejects_non_numbers(self):
        assert self.normalizer.normalize(None) is None
        assert self.normalizer.normalize(True) is None
        assert self.normalizer.normalize("n/a") is None
        assert self.normalizer.normalize(float('inf')) is None


class TestWeightNormalizer:
    """Tests for unit conversion to grams."""

    def setup_method(self):
        self.normalizer = WeightNormalizer()

    def test_kilograms(self):
        assert self.normalizer.to_grams(2, "kg") == 2000.0

    def test_ounces_and_pounds(self):
        assert self.normalizer.to_grams(1, "oz") == 28.35
        assert self.normalizer.to_grams(1, "lb") == 453.6

    def test_unit_case_and_suffix(self):
        assert self.normalizer.to_grams("0.5", "KG") == 500.0
        assert self.normalizer.to_grams(3, "kg net") == 3000.0

    def test_empty_unit_is_grams(self):
        assert self.normalizer.to_grams(140, None) == 140.0
        assert self.normalizer.to_grams(140, "") == 140.0

    def test_unknown_unit_rejected(self):
        assert self.normalizer.to_grams(5, "pcs") is None

    def test_non_positive_rejected(self):
        assert self.normalizer.to_grams(0, "g") is None
        assert self.normalizer.to_grams(-3, "g") is None

    def test_convenience(self):
        assert normalize_weight(0.14, "kg") == 140.0


class TestLabelWeightParsing:
    """Tests for net-weight extraction from label text."""

    def setup_method(self):
        self.parser = LabelTextParser()

    def test_net_wt(self):
        grams, snippet = self.parser.net_weight("INGREDIENTS: sugar. Net Wt 140 g. Made in China")
        assert grams == 140
        assert "140" in snippet

    def test_kilograms(self):
        assert self.parser.net_weight("NET WEIGHT: 0.14 kg")[0] == 140

    def test_ounces(self):
        assert self.parser.net_weight("Net Wt 5 oz")[0] == 142

    def test_prefers_typical_band(self):
        # Carton weight and serving size are printed too
        grams, _ = self.parser.net_weight("Carton 4800 g. Serving size 5 g. Net Wt 200 g")
        assert grams == 200

    def test_rejects_implausible(self):
        assert self.parser.net_weight("Pallet 20 kg") is None

    def test_no_weight(self):
        assert self.parser.net_weight("Keep in a cool dry place") is None
        assert self.parser.net_weight(None) is None

    def test_from_field(self):
        assert self.parser.net_weight_from_field(140) == 140.0
        assert self.parser.net_weight_from_field("140 g") == 140.0
        assert self.parser.net_weight_from_field("140") == 140.0
        assert self.parser.net_weight_from_field("one bag") is None


class TestLabelOcrAssessment:
    """Tests for label OCR status grading."""

    def test_success(self):
        assessment = assess_label_ocr(["sugar", "cocoa", "milk"])
        assert assessment.status is LabelOcrStatus.SUCCESS
        assert assessment.failure_reason is None

    def test_partial(self):
        assessment = assess_label_ocr(["sugar"])
        assert assessment.status is LabelOcrStatus.PARTIAL
        assert assessment.failure_reason is LabelFailureReason.LOW_CONTRAST
        assert assessment.status.is_readable

    def test_non_latin(self):
        assessment = assess_label_ocr([], raw_text="配料 白砂糖", analysis_confidence=0.9)
        assert assessment.failure_reason is LabelFailureReason.NON_LATIN

    def test_blurry(self):
        assert assess_label_ocr([], analysis_confidence=0.1).failure_reason is LabelFailureReason.BLURRY

    def test_glare(self):
        assert assess_label_ocr([], analysis_confidence=0.4).failure_reason is LabelFailureReason.GLARE

    def test_low_contrast(self):
        assessment = assess_label_ocr([], analysis_confidence=0.8)
        assert assessment.status is LabelOcrStatus.FAILED
        assert assessment.failure_reason is LabelFailureReason.LOW_CONTRAST


class TestCategoryMatches:

    def test_substring(self):
        assert category_matches("Chocolate Candy Bar", ("candy",))

    def test_no_category(self):
        assert not category_matches(None, ("candy",))
        assert not category_matches("tools", ("candy", "toy"))
