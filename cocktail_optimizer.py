"""
Cocktail Optimizer for the Phage Cocktail Compatibility Framework.

Implements:
- Greedy host-coverage maximization
- Pairwise (clique) compatibility constraint on the selected set
- Step-by-step selection rationale
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from output_models import CocktailSelection, CompatibilityMatrix, format_signed
from phage_models import PhageFeatures

logger = logging.getLogger(__name__)


MAX_SIZE_CHOICES = (2, 3, 4, 5)


@dataclass
class OptimizerConfig:
    """Configuration for cocktail selection."""
    max_size: int = 3  # Maximum phages in the cocktail, one of MAX_SIZE_CHOICES
    threshold: float = 0.0  # Every chosen pair must score at least this
    compat_weight: float = 0.5  # Weight of average compatibility in the composite

    def __post_init__(self):
        if self.max_size not in MAX_SIZE_CHOICES:
            raise ValueError(f"max_size must be one of {MAX_SIZE_CHOICES}, got {self.max_size}")


@dataclass(frozen=True)
class Candidate:
    """A candidate considered during one greedy step."""
    index: int
    gain: int  # New target hosts covered
    avg_compat: float  # Mean score against the phages already chosen
    composite: float


def candidate_sort_key(candidate: Candidate) -> Tuple[float, int]:
    """
    Ordering used to pick the winner of a greedy step.

    Higher composite wins; on equal composite the lower index wins.
    """
    return (candidate.composite, -candidate.index)


def observed_hosts(features: Sequence[PhageFeatures]) -> List[str]:
    """All host labels present on the phages, sorted."""
    return sorted({f.host for f in features if f.host})


def average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class CocktailOptimizer:
    """Greedily selects a compatible phage cocktail covering target hosts."""

    def __init__(self, config: Optional[OptimizerConfig] = None):
        """Initialize with optional config."""
        self.config = config or OptimizerConfig()

    def _evaluate(self,
                  index: int,
                  matrix: CompatibilityMatrix,
                  chosen: List[int],
                  hosts: Set[str],
                  covered: Set[str]) -> Optional[Candidate]:
        """Evaluate one candidate; None if it violates the threshold or adds nothing."""
        pair_scores = []
        for j in chosen:
            score = matrix.score(index, j)
            if score < self.config.threshold:
                return None
            pair_scores.append(score)

        gain = len(hosts - covered)
        if gain == 0:
            return None

        avg_compat = average(pair_scores)
        return Candidate(
            index=index,
            gain=gain,
            avg_compat=avg_compat,
            composite=gain + self.config.compat_weight * avg_compat,
        )

    def select(self,
               matrix: CompatibilityMatrix,
               features: Sequence[PhageFeatures],
               target_hosts: Optional[Iterable[str]] = None) -> CocktailSelection:
        """
        Select up to max_size phages maximizing coverage of target hosts.

        Each step adds the candidate with the best composite of new-host gain
        and average compatibility against the current set, among candidates
        clearing the threshold against every chosen phage. Stops when coverage
        is complete, the set is full, or no candidate qualifies.
        """
        targets = set(target_hosts) if target_hosts else set(observed_hosts(features))
        host_sets = [{f.host} & targets if f.host else set() for f in features]

        chosen: List[int] = []
        covered: Set[str] = set()
        rationale: List[str] = []

        while len(chosen) < self.config.max_size and len(covered) < len(targets):
            best: Optional[Candidate] = None
            for i in range(matrix.n):
                if i in chosen:
                    continue
                candidate = self._evaluate(i, matrix, chosen, host_sets[i], covered)
                if candidate is None:
                    continue
                if best is None or candidate_sort_key(candidate) > candidate_sort_key(best):
                    best = candidate

            if best is None:
                logger.debug("No qualifying candidate after %d selections", len(chosen))
                break

            chosen.append(best.index)
            covered |= host_sets[best.index]
            name = features[best.index].name if best.index < len(features) else f"#{best.index}"
            rationale.append(f"{name}: +{best.gain} host(s) covered; "
                             f"avg compat vs selected {format_signed(best.avg_compat)}")
            logger.debug("Selected %s (gain=%d, composite=%.3f)", name, best.gain, best.composite)

        final_scores = [
            matrix.score(chosen[a], chosen[b])
            for a in range(len(chosen))
            for b in range(a + 1, len(chosen))
        ]

        selection = CocktailSelection(
            chosen=chosen,
            coverage=sorted(covered),
            coverage_percent=len(covered) / len(targets) * 100 if targets else 0.0,
            avg_compat=average(final_scores),
            rationale=rationale,
            target_count=len(targets),
        )
        logger.info("Selected %d phage(s) covering %d/%d target hosts",
                    len(chosen), len(covered), len(targets))
        return selection


if __name__ == "__main__":
    from feature_extractor import FeatureExtractor
    from phage_models import PhageSummary
    from scoring_engine import ScoringEngine

    extractor = FeatureExtractor()
    phages = [
        PhageSummary(1, "Lambda", "Escherichia coli", "temperate", 48502),
        PhageSummary(2, "PhiKZ", "Pseudomonas aeruginosa", "lytic", 280334),
        PhageSummary(3, "T7", "Escherichia coli", "lytic", 39937),
        PhageSummary(4, "K11", "Klebsiella pneumoniae", "lytic", 41181),
    ]
    features = [extractor.extract(p) for p in phages]
    matrix = ScoringEngine().build_matrix(features)
    selection = CocktailOptimizer().select(matrix, features)
    print(selection.summary([f.name for f in features]))
