"""
Output data models for the Phage Cocktail Compatibility Framework.

Defines structured result types for pairwise compatibility,
the full compatibility matrix, and cocktail selection.

Results are frozen and hold tuples; cached instances are shared between
callers.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd

from phage_models import PhageFeatures, SimilarityMetric


def format_signed(value: float) -> str:
    """Format a contribution or score with an explicit sign."""
    return f"{value:+.2f}"


def _freeze(obj, **fields) -> None:
    """Store sequence fields of a frozen dataclass as tuples."""
    for name, value in fields.items():
        object.__setattr__(obj, name, tuple(value))


@dataclass(frozen=True)
class CompatibilityFactor:
    """Explanation for one scoring rule that fired."""
    name: str
    contribution: float  # Positive or negative contribution to score
    reason: str


@dataclass(frozen=True)
class PairDetails:
    """Compatibility of one phage pair."""
    score: float  # -1 to 1
    compatible: bool  # score >= threshold
    domain_similarity: float  # 0 to 1
    shared_distinct_domains: int
    factors: Tuple[CompatibilityFactor, ...] = ()  # Sorted by |contribution|

    def __post_init__(self):
        _freeze(self, factors=self.factors)

    def summary(self) -> str:
        """Return a human-readable summary."""
        verdict = "compatible" if self.compatible else "incompatible"
        lines = [f"Score {format_signed(self.score)} ({verdict}), "
                 f"domain similarity {self.domain_similarity:.0%}, "
                 f"{self.shared_distinct_domains} shared domains"]
        for factor in self.factors:
            lines.append(f"  {format_signed(factor.contribution)} {factor.name}: {factor.reason}")
        return "\n".join(lines)


@dataclass(frozen=True)
class CompatibilityMatrix:
    """Pairwise compatibility for all phages; diagonal is self-identity."""
    names: Tuple[str, ...]
    details: Tuple[Tuple[PairDetails, ...], ...]

    def __post_init__(self):
        _freeze(self, names=self.names, details=(tuple(row) for row in self.details))

    @property
    def n(self) -> int:
        return len(self.names)

    def pair(self, row: int, col: int) -> PairDetails:
        return self.details[row][col]

    def score(self, row: int, col: int) -> float:
        return self.details[row][col].score

    @property
    def values(self) -> List[List[float]]:
        """Score grid as nested lists."""
        return [[cell.score for cell in row] for row in self.details]

    def compatible_pairs(self) -> List[Tuple[int, int]]:
        """Unordered off-diagonal pairs (r < c) marked compatible."""
        return [
            (r, c)
            for r in range(self.n)
            for c in range(r + 1, self.n)
            if self.details[r][c].compatible
        ]

    def to_frame(self) -> pd.DataFrame:
        """Score matrix as a DataFrame labelled by phage name."""
        names = list(self.names)
        return pd.DataFrame(self.values, index=names, columns=names)

    def summary(self) -> str:
        """Return a human-readable summary."""
        pairs = self.n * (self.n - 1) // 2
        return (f"{self.n} phages, {len(self.compatible_pairs())} of {pairs} "
                f"pairs compatible")


@dataclass(frozen=True)
class CocktailSelection:
    """Result of greedy cocktail selection."""
    chosen: Tuple[int, ...] = ()  # Indices in selection order
    coverage: Tuple[str, ...] = ()  # Covered target hosts, sorted
    coverage_percent: float = 0.0
    avg_compat: float = 0.0  # Mean pairwise score among chosen
    rationale: Tuple[str, ...] = ()  # One entry per step
    target_count: int = 0

    def __post_init__(self):
        _freeze(self, chosen=self.chosen, coverage=self.coverage, rationale=self.rationale)

    def summary(self, names: Optional[List[str]] = None) -> str:
        """Return a human-readable summary."""
        if not self.chosen:
            return "No cocktail could be selected for the chosen hosts and threshold."

        labels = [names[i] if names else f"#{i}" for i in self.chosen]
        lines = [
            f"Cocktail: {', '.join(labels)}",
            f"  Coverage: {len(self.coverage)}/{self.target_count} hosts "
            f"({self.coverage_percent:.0f}%)",
            f"  Average pairwise compatibility: {format_signed(self.avg_compat)}",
        ]
        if self.rationale:
            lines.append("\nRationale:")
            for step in self.rationale:
                lines.append(f"  - {step}")
        return "\n".join(lines)


@dataclass(frozen=True)
class CocktailAnalysis:
    """Complete result of a cocktail compatibility analysis."""
    features: Tuple[PhageFeatures, ...] = ()
    matrix: Optional[CompatibilityMatrix] = None
    selection: Optional[CocktailSelection] = None

    # Parameters used
    target_hosts: Tuple[str, ...] = ()
    metric: SimilarityMetric = SimilarityMetric.WEIGHTED_JACCARD
    threshold: float = 0.0
    max_size: int = 3

    def __post_init__(self):
        _freeze(self, features=self.features, target_hosts=self.target_hosts)

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.features]

    @property
    def chosen_features(self) -> List[PhageFeatures]:
        """Features of the selected phages, in selection order."""
        if self.selection is None:
            return []
        return [self.features[i] for i in self.selection.chosen]

    def summary(self) -> str:
        """Return a human-readable summary of results."""
        lines = [f"Phages analyzed: {len(self.features)} "
                 f"(metric: {self.metric.value}, threshold: {format_signed(self.threshold)}, "
                 f"max size: {self.max_size})"]
        if self.matrix is not None:
            lines.append(f"Matrix: {self.matrix.summary()}")
        if self.target_hosts:
            lines.append(f"Target hosts: {', '.join(self.target_hosts)}")
        if self.selection is not None:
            lines.append("")
            lines.append(self.selection.summary(self.names))
        return "\n".join(lines)
