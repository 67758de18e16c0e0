"""
Normalizers Module

Normalization of raw extracted values into the canonical forms the engine
reasons about.

What normalization does:
- Numbers → float, whatever the separator convention ("1,234.5", "1.234,5")
- Weights → grams, whatever the unit ("0.14 kg", "5 oz", "250 ml")
- Label text → best net-weight candidate in grams
- Categories → keyword-group membership ("Chocolate Candy Bar" ∈ candy)

Why this matters:
The same 140 g pouch arrives as "Net Wt 140g", "NET WEIGHT: 4.94 OZ",
{"value": 0.14, "unit": "kg"} or a vision guess of "about 150 grams".
Downstream rules compare numbers, so they must all land in one unit.
"""

import re
from typing import Any, Iterable, Optional, Tuple, Union

from loguru import logger


# Grams per unit. Volumes assume 1 g/ml.
UNIT_TO_GRAMS = {
    'g': 1.0,
    'gr': 1.0,
    'gram': 1.0,
    'grams': 1.0,
    'mg': 0.001,
    'kg': 1000.0,
    'kgs': 1000.0,
    'kilogram': 1000.0,
    'kilograms': 1000.0,
    'oz': 28.35,
    'ounce': 28.35,
    'ounces': 28.35,
    'lb': 453.6,
    'lbs': 453.6,
    'pound': 453.6,
    'pounds': 453.6,
    'ml': 1.0,
    'l': 1000.0,
}

LABEL_WEIGHT_PATTERNS = [
    # "Net Wt 140 g", "NET WEIGHT: 5 oz"
    r'net\s*(?:wt|weight)[:.\s]*(\d+(?:[.,]\d+)?)\s*(kg|g|oz|lbs?|grams?|kilograms?|ounces?|pounds?)\b',
    # "Weight: 140 g"
    r'weight[:\s]*(\d+(?:[.,]\d+)?)\s*(kg|g|oz|lbs?|grams?|kilograms?|ounces?|pounds?)\b',
    # "140g", "0.14 kg"
    r'(\d+(?:[.,]\d+)?)\s*(kg|g|oz|lbs?|grams?|kilograms?|ounces?|pounds?)\b(?!\s*per)',
]

MAX_LABEL_WEIGHT_GRAMS = 5000
TYPICAL_NET_WEIGHT_RANGE = (10, 500)


class NumberNormalizer:
    """Normalizes numeric values."""

    def normalize(self, value: Any, decimal_places: Optional[int] = None) -> Optional[float]:
        """
        Normalize a number value.

        Args:
            value: Number or number-like string
            decimal_places: Round to this many decimals (None = keep original)

        Returns:
            Float, or None when nothing numeric is present
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, (int, float)):
            result = float(value)
        else:
            cleaned = re.sub(r'[^\d.,\-]', '', str(value).strip())
            if not cleaned or not re.search(r'\d', cleaned):
                return None
            cleaned = self._normalize_separators(cleaned)
            try:
                result = float(cleaned)
            except ValueError:
                logger.debug(f"Could not parse number: {value!r}")
                return None

        if result != result or result in (float('inf'), float('-inf')):
            return None

        if decimal_places is not None:
            result = round(result, decimal_places)
        return result

    def _normalize_separators(self, value: str) -> str:
        """
        Handle different thousand/decimal separator conventions.

        - US/UK: 1,234.56 (comma=thousands, dot=decimal)
        - Europe: 1.234,56 (dot=thousands, comma=decimal)
        """
        dots = value.count('.')
        commas = value.count(',')

        if commas == 0:
            return value

        if dots == 0 and commas == 1:
            # Two or fewer digits after the comma reads as a decimal (0,14)
            after_comma = len(value) - value.index(',') - 1
            if after_comma <= 2:
                return value.replace(',', '.')
            return value.replace(',', '')

        if dots > 0 and value.rfind(',') > value.rfind('.'):
            # Comma is the decimal separator
            return value.replace('.', '').replace(',', '.')

        return value.replace(',', '')


class WeightNormalizer:
    """
    Converts weights to grams.

    Unknown units are treated as grams only when the unit is empty;
    anything else is rejected so a "5 pcs" never becomes 5 g.
    """

    def __init__(self):
        self.numbers = NumberNormalizer()

    @staticmethod
    def unit_factor(unit: Optional[str]) -> Optional[float]:
        """Grams per unit, or None for unrecognized units."""
        if unit is None:
            return 1.0
        key = str(unit).strip().lower().rstrip('.')
        if not key:
            return 1.0
        if key in UNIT_TO_GRAMS:
            return UNIT_TO_GRAMS[key]
        # "kg net", "g (approx)"
        head = re.match(r'[a-z]+', key)
        if head and head.group(0) in UNIT_TO_GRAMS:
            return UNIT_TO_GRAMS[head.group(0)]
        return None

    def to_grams(self, value: Any, unit: Optional[str] = "g") -> Optional[float]:
        """
        Convert a measurement to grams.

        Returns:
            Weight in grams rounded to 2 decimals, or None if the value is
            not numeric, not positive, or the unit is unrecognized.
        """
        number = self.numbers.normalize(value)
        if number is None or number <= 0:
            return None

        factor = self.unit_factor(unit)
        if factor is None:
            logger.debug(f"Unrecognized weight unit: {unit!r}")
            return None

        return round(number * factor, 2)

    def parse_label_weight(self, text: Optional[str]) -> Optional[Tuple[float, str]]:
        """
        Find the net weight printed in label text.

        Several weights may be printed (net weight, serving size, carton
        weight). Candidates inside the typical retail band are preferred,
        closest to its middle first; otherwise the first match wins.

        Returns:
            (grams, matched_text) or None
        """
        if not text:
            return None

        found = []
        for pattern in LABEL_WEIGHT_PATTERNS:
            for match in re.finditer(pattern, text, re.IGNORECASE):
                grams = self.to_grams(match.group(1), match.group(2))
                if grams is None or grams > MAX_LABEL_WEIGHT_GRAMS:
                    continue
                found.append((round(grams), match.group(0).strip()))

        if not found:
            return None

        low, high = TYPICAL_NET_WEIGHT_RANGE
        middle = (low + high) / 2
        in_band = [w for w in found if low <= w[0] <= high]
        if not in_band:
            return found[0]
        return min(in_band, key=lambda w: abs(w[0] - middle))


def category_matches(category: Optional[str], keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match of any keyword against a category."""
    if not category:
        return False
    lowered = str(category).lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def normalize_number(value: Any) -> Optional[float]:
    """Convenience function for number normalization."""
    return NumberNormalizer().normalize(value)


def normalize_weight(value: Any, unit: Optional[str] = "g") -> Optional[Union[int, float]]:
    """Convenience function for weight normalization to grams."""
    return WeightNormalizer().to_grams(value, unit)
