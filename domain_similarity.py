"""
Domain Similarity Calculator for the Phage Cocktail Compatibility Framework.

Compares two domain-count profiles with either weighted Jaccard
(multiset) or presence Jaccard similarity.
"""

from dataclasses import dataclass
from typing import Dict

from phage_models import SimilarityMetric


@dataclass(frozen=True)
class DomainSimilarity:
    """Similarity between two domain profiles."""
    value: float  # 0-1
    shared_distinct: int  # Keys present in both profiles


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def weighted_jaccard(a: Dict[str, int], b: Dict[str, int]) -> float:
    """Sum of element-wise minimum over sum of element-wise maximum."""
    keys = set(a) | set(b)
    sum_min = sum(min(a.get(k, 0), b.get(k, 0)) for k in keys)
    sum_max = sum(max(a.get(k, 0), b.get(k, 0)) for k in keys)
    return sum_min / sum_max if sum_max > 0 else 0.0


def presence_jaccard(a: Dict[str, int], b: Dict[str, int]) -> float:
    """Shared keys over the key union."""
    union = set(a) | set(b)
    if not union:
        return 0.0
    return len(set(a) & set(b)) / len(union)


def domain_similarity(a: Dict[str, int],
                      b: Dict[str, int],
                      metric=SimilarityMetric.WEIGHTED_JACCARD) -> DomainSimilarity:
    """
    Compare two domain-count profiles.

    The shared distinct-domain count is the same under either metric;
    the value is clamped to [0, 1].
    """
    metric = SimilarityMetric.parse(metric)
    if metric is SimilarityMetric.WEIGHTED_JACCARD:
        value = weighted_jaccard(a, b)
    else:
        value = presence_jaccard(a, b)

    shared = sum(1 for k, count in a.items() if count > 0 and b.get(k, 0) > 0)
    return DomainSimilarity(value=clamp(value, 0.0, 1.0), shared_distinct=shared)
