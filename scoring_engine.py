"""
Scoring Engine for the Phage Cocktail Compatibility Framework.

Implements:
- Pairwise compatibility scoring as an ordered table of pure rules
- Factor-level explanations sorted by absolute contribution
- Full pairwise compatibility matrix
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from domain_similarity import DomainSimilarity, clamp, domain_similarity
from output_models import CompatibilityFactor, CompatibilityMatrix, PairDetails
from phage_models import Lifecycle, LysisTiming, PhageFeatures, SimilarityMetric

logger = logging.getLogger(__name__)


THRESHOLD_PRESETS = {
    "lenient": -0.10,
    "default": 0.00,
    "strict": 0.15,
    "very strict": 0.30,
}

HIGH_OVERLAP_SIMILARITY = 0.35
LOW_OVERLAP_SIMILARITY = 0.12
TEMPERATE_OVERLAP_SIMILARITY = 0.5

_TIMING_ORDER = [LysisTiming.EARLY, LysisTiming.MIDDLE, LysisTiming.LATE]


@dataclass
class ScoringConfig:
    """Configuration for pairwise scoring."""
    metric: SimilarityMetric = SimilarityMetric.WEIGHTED_JACCARD
    threshold: float = 0.0  # Minimum score for a compatible pair

    def __post_init__(self):
        self.metric = SimilarityMetric.parse(self.metric)


# Rule signature: (a, b, similarity) -> factor or None
CompatibilityRule = Callable[[PhageFeatures, PhageFeatures, DomainSimilarity],
                             Optional[CompatibilityFactor]]


def _is_temperate(f: PhageFeatures) -> bool:
    return f.lifecycle is Lifecycle.TEMPERATE


def both_lytic(a, b, sim):
    if a.lifecycle is Lifecycle.LYTIC and b.lifecycle is Lifecycle.LYTIC:
        return CompatibilityFactor("Both lytic", 0.18,
                                   "No lysogeny/immunity conflicts expected.")
    return None


def temperate_involvement(a, b, sim):
    if _is_temperate(a) or _is_temperate(b):
        return CompatibilityFactor("Temperate involvement", -0.12,
                                   "Temperate phages can introduce immunity / "
                                   "superinfection exclusion effects.")
    return None


def both_temperate(a, b, sim):
    if _is_temperate(a) and _is_temperate(b):
        return CompatibilityFactor("Both temperate", -0.18,
                                   "Higher risk of cross-immunity and interference.")
    return None


def lysis_timing(a, b, sim):
    if a.lysis_timing is LysisTiming.UNKNOWN or b.lysis_timing is LysisTiming.UNKNOWN:
        return None
    if a.lysis_timing is not b.lysis_timing:
        first, second = sorted([a.lysis_timing, b.lysis_timing], key=_TIMING_ORDER.index)
        return CompatibilityFactor("Complementary lysis timing", 0.20,
                                   f"{first.value} + {second.value} timing provides "
                                   f"sustained bacterial killing.")
    return CompatibilityFactor("Similar lysis timing", -0.08,
                               f"Both {a.lysis_timing.value} lysis may cause resource competition.")


def sie_genes(a, b, sim):
    if a.has_sie_genes and b.has_sie_genes:
        low, high = sorted([a.sie_gene_count, b.sie_gene_count])
        return CompatibilityFactor("Both have Sie genes", -0.30,
                                   f"Superinfection exclusion detected in both "
                                   f"({low} + {high} genes); high interference risk.")
    if a.has_sie_genes or b.has_sie_genes:
        return CompatibilityFactor("Sie gene present", -0.15,
                                   "One phage has superinfection exclusion genes; "
                                   "may block co-infection.")
    return None


def immunity_conflict(a, b, sim):
    if (a.has_immunity_region and b.has_immunity_region
            and _is_temperate(a) and _is_temperate(b)):
        return CompatibilityFactor("Immunity region conflict", -0.25,
                                   "Both temperate phages have immunity regions; "
                                   "cross-immunity likely.")
    return None


def receptor_overlap(a, b, sim):
    shared = sorted(set(a.receptor_hints) & set(b.receptor_hints))
    if shared:
        return CompatibilityFactor("Receptor competition", -0.20,
                                   f"Shared receptor domains: {', '.join(shared)}; "
                                   f"may compete for attachment.")
    if a.receptor_hints and b.receptor_hints:
        return CompatibilityFactor("Different receptors", 0.15,
                                   "Different receptor-binding domains suggest "
                                   "no attachment competition.")
    return None


def host_difference(a, b, sim):
    if a.host and b.host and a.host != b.host:
        return CompatibilityFactor("Complementary host labels", 0.22,
                                   "Different host labels increase coverage diversity.")
    return None


def domain_overlap(a, b, sim):
    percent = f"{sim.value * 100:.0f}%"
    if sim.value >= HIGH_OVERLAP_SIMILARITY:
        return CompatibilityFactor("Shared domain architecture",
                                   -clamp(sim.value * 0.9, 0.15, 0.75),
                                   f"High protein-domain overlap ({percent}) suggests "
                                   f"functional overlap and potential interference.")
    if sim.value <= LOW_OVERLAP_SIMILARITY:
        return CompatibilityFactor("Distinct domain architecture", 0.16,
                                   f"Low protein-domain overlap ({percent}) suggests "
                                   f"complementary modules.")
    return CompatibilityFactor("Moderate domain overlap", 0.04,
                               f"Moderate protein-domain overlap ({percent}).")


def temperate_high_overlap(a, b, sim):
    if (_is_temperate(a) or _is_temperate(b)) and sim.value >= TEMPERATE_OVERLAP_SIMILARITY:
        return CompatibilityFactor("Temperate + high overlap", -0.20,
                                   "Temperate-related immunity effects more plausible "
                                   "with high domain similarity.")
    return None


# Evaluated in this order; every rule is symmetric in (a, b).
COMPATIBILITY_RULES: List[CompatibilityRule] = [
    both_lytic,
    temperate_involvement,
    both_temperate,
    lysis_timing,
    sie_genes,
    immunity_conflict,
    receptor_overlap,
    host_difference,
    domain_overlap,
    temperate_high_overlap,
]


def self_pair(features: PhageFeatures) -> PairDetails:
    """Diagonal entry: a phage is always compatible with itself."""
    return PairDetails(
        score=1.0,
        compatible=True,
        domain_similarity=1.0,
        shared_distinct_domains=features.distinct_domains,
        factors=[CompatibilityFactor("Self", 1.0, "Same phage (diagonal).")],
    )


class ScoringEngine:
    """Scores phage pairs and builds the compatibility matrix."""

    def __init__(self,
                 config: Optional[ScoringConfig] = None,
                 rules: Optional[List[CompatibilityRule]] = None):
        """Initialize with optional config and rule table."""
        self.config = config or ScoringConfig()
        self.rules = list(rules) if rules is not None else list(COMPATIBILITY_RULES)

    def score_pair(self, a: PhageFeatures, b: PhageFeatures) -> PairDetails:
        """
        Score one phage pair.

        All rules are evaluated and their contributions summed; the total
        is clamped to [-1, 1]. Factors are ordered by descending absolute
        contribution, with ties kept in rule order.
        """
        if a is b:
            return self_pair(a)

        sim = domain_similarity(a.domain_counts, b.domain_counts, self.config.metric)

        factors = []
        for rule in self.rules:
            factor = rule(a, b, sim)
            if factor is not None:
                factors.append(factor)

        score = clamp(sum(f.contribution for f in factors), -1.0, 1.0)
        factors.sort(key=lambda f: abs(f.contribution), reverse=True)

        return PairDetails(
            score=score,
            compatible=score >= self.config.threshold,
            domain_similarity=sim.value,
            shared_distinct_domains=sim.shared_distinct,
            factors=factors,
        )

    def build_matrix(self, features: Sequence[PhageFeatures]) -> CompatibilityMatrix:
        """Score every ordered pair; the diagonal is fixed to self-identity."""
        n = len(features)
        details = []
        for r in range(n):
            row = []
            for c in range(n):
                if r == c:
                    row.append(self_pair(features[r]))
                else:
                    row.append(self.score_pair(features[r], features[c]))
            details.append(row)

        matrix = CompatibilityMatrix(names=[f.name for f in features], details=details)
        logger.info("Built %dx%d compatibility matrix (%s, threshold %+.2f): %s",
                    n, n, self.config.metric.value, self.config.threshold, matrix.summary())
        return matrix

    def explain_pair(self, a: PhageFeatures, b: PhageFeatures) -> List[CompatibilityFactor]:
        """Get the ranked factors behind a pair score."""
        return self.score_pair(a, b).factors


if __name__ == "__main__":
    from phage_models import GeneAnnotation, PhageSummary, ProteinDomain
    from feature_extractor import FeatureExtractor

    extractor = FeatureExtractor()
    t4 = extractor.extract(
        PhageSummary(id=1, name="T4", host="Escherichia coli", lifecycle="lytic", genome_length=168903),
        [GeneAnnotation(id=1, product="holin", start_pos=160000, end_pos=160600)],
        [ProteinDomain("PF03335", "Phage_fiber", "Pfam", "tail fiber")],
    )
    phi = extractor.extract(
        PhageSummary(id=2, name="phiKZ", host="Pseudomonas aeruginosa", lifecycle="lytic", genome_length=280334),
        [GeneAnnotation(id=2, product="endolysin", start_pos=20000, end_pos=21000)],
        [ProteinDomain("PF12345", "Tailspike", "Pfam", "tailspike protein")],
    )
    print(ScoringEngine().score_pair(t4, phi).summary())
