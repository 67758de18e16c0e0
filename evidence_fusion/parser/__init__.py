"""
Number and weight-unit normalization.
"""

from .normalizers import (
    NumberNormalizer,
    WeightNormalizer,
    category_matches,
    normalize_number,
    normalize_weight,
)

__all__ = [
    'NumberNormalizer',
    'WeightNormalizer',
    'category_matches',
    'normalize_number',
    'normalize_weight',
]
