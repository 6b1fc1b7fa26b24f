"""
Cocktail Support Engine - Main API for the Phage Cocktail Compatibility Framework.

Provides a unified interface for:
- Building per-phage features from loaded annotations
- Pairwise compatibility queries
- Compatibility matrix construction
- Greedy cocktail selection
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from analysis_cache import AnalysisCache, analysis_key
from cocktail_optimizer import CocktailOptimizer, OptimizerConfig, observed_hosts
from data_loader import DataLoader
from feature_extractor import FeatureExtractor
from output_models import (
    CocktailAnalysis, CocktailSelection, CompatibilityMatrix, PairDetails
)
from phage_models import (
    GeneAnnotation, PhageFeatures, PhageSummary, ProteinDomain, SimilarityMetric
)
from scoring_engine import ScoringConfig, ScoringEngine, self_pair

logger = logging.getLogger(__name__)


class CocktailSupportEngine:
    """
    Main entry point for the Phage Cocktail Compatibility Framework.

    Usage:
        engine = CocktailSupportEngine.from_directory("sample_data")

        # Full analysis with defaults (weighted Jaccard, threshold 0, size 3)
        analysis = engine.analyze()

        # Stricter cocktail for two hosts
        analysis = engine.analyze(threshold=0.15, max_size=2,
                                  target_hosts=["Escherichia coli", "Klebsiella pneumoniae"])

        # Single pair explanation
        details = engine.query_pair("T4", "Lambda")
    """

    def __init__(self,
                 loader: DataLoader,
                 scoring_config: Optional[ScoringConfig] = None,
                 optimizer_config: Optional[OptimizerConfig] = None,
                 cache: Optional[AnalysisCache] = None):
        """
        Initialize the cocktail support engine.

        Args:
            loader: A loaded DataLoader
            scoring_config: Optional default scoring configuration
            optimizer_config: Optional default optimizer configuration
            cache: Optional caller-owned cache for matrices and selections
        """
        self.loader = loader
        self.scoring_config = scoring_config or ScoringConfig()
        self.optimizer_config = optimizer_config or OptimizerConfig()
        self.cache = cache

        self.extractor = FeatureExtractor()
        self._features: Optional[Tuple[PhageFeatures, ...]] = None

    @classmethod
    def from_directory(cls, data_dir: Optional[Path] = None, **kwargs) -> "CocktailSupportEngine":
        """Create an engine from annotation tables on disk."""
        loader = DataLoader(data_dir)
        loader.load()
        return cls(loader, **kwargs)

    @classmethod
    def from_records(cls,
                     phages: Iterable[PhageSummary],
                     genes_by_id: Optional[Dict[int, List[GeneAnnotation]]],
                     domains_by_id: Optional[Dict[int, List[ProteinDomain]]],
                     **kwargs) -> "CocktailSupportEngine":
        """Create an engine from in-memory annotations."""
        loader = DataLoader()
        loader.load_records(phages, genes_by_id, domains_by_id)
        return cls(loader, **kwargs)

    @property
    def features(self) -> Tuple[PhageFeatures, ...]:
        """Features for every loaded phage, in name order (built once)."""
        if self._features is None:
            self._features = tuple(self.extractor.extract_all(
                self.loader.phages, self.loader.genes_by_id, self.loader.domains_by_id
            ))
        return self._features

    def get_all_hosts(self) -> List[str]:
        return observed_hosts(self.features)

    def _scoring_config(self, metric, threshold) -> ScoringConfig:
        return ScoringConfig(
            metric=self.scoring_config.metric if metric is None else metric,
            threshold=self.scoring_config.threshold if threshold is None else threshold,
        )

    def _resolve_targets(self, target_hosts: Optional[Iterable[str]]) -> List[str]:
        """Requested target hosts, or every observed host if none are given."""
        targets = sorted(set(target_hosts)) if target_hosts else []
        return targets or self.get_all_hosts()

    def _index_of(self, identifier) -> Optional[int]:
        phage_id = self.loader.resolve_phage(identifier)
        if phage_id is None:
            return None
        for i, f in enumerate(self.features):
            if f.id == phage_id:
                return i
        return None

    def build_matrix(self,
                     metric: Optional[SimilarityMetric] = None,
                     threshold: Optional[float] = None) -> CompatibilityMatrix:
        """Compute (or fetch from cache) the pairwise compatibility matrix."""
        config = self._scoring_config(metric, threshold)
        scorer = ScoringEngine(config)
        if self.cache is None:
            return scorer.build_matrix(self.features)

        key = analysis_key(self.features, kind="matrix",
                           metric=config.metric, threshold=config.threshold)
        return self.cache.get_or_compute(key, lambda: scorer.build_matrix(self.features))

    def select_cocktail(self,
                        matrix: CompatibilityMatrix,
                        target_hosts: Optional[Iterable[str]] = None,
                        max_size: Optional[int] = None,
                        threshold: Optional[float] = None) -> CocktailSelection:
        """Run greedy cocktail selection over a matrix."""
        config = OptimizerConfig(
            max_size=self.optimizer_config.max_size if max_size is None else max_size,
            threshold=self.optimizer_config.threshold if threshold is None else threshold,
            compat_weight=self.optimizer_config.compat_weight,
        )
        targets = self._resolve_targets(target_hosts)
        return CocktailOptimizer(config).select(matrix, self.features, targets)

    def analyze(self,
                metric: Optional[SimilarityMetric] = None,
                threshold: Optional[float] = None,
                max_size: Optional[int] = None,
                target_hosts: Optional[Iterable[str]] = None) -> CocktailAnalysis:
        """
        Build the compatibility matrix and select a cocktail.

        Args:
            metric: Domain similarity metric (default from scoring config)
            threshold: Compatibility threshold used for both matrix and selection
            max_size: Maximum cocktail size
            target_hosts: Hosts to cover (default: all observed hosts)

        Returns:
            CocktailAnalysis with features, matrix and selection
        """
        config = self._scoring_config(metric, threshold)
        size = self.optimizer_config.max_size if max_size is None else max_size
        targets = self._resolve_targets(target_hosts)

        matrix = self.build_matrix(config.metric, config.threshold)

        def compute_selection():
            return self.select_cocktail(matrix, targets, size, config.threshold)

        if self.cache is None:
            selection = compute_selection()
        else:
            key = analysis_key(self.features, kind="selection", metric=config.metric,
                               threshold=config.threshold, max_size=size, targets=targets)
            selection = self.cache.get_or_compute(key, compute_selection)

        return CocktailAnalysis(
            features=self.features,
            matrix=matrix,
            selection=selection,
            target_hosts=targets,
            metric=config.metric,
            threshold=config.threshold,
            max_size=size,
        )

    def query_pair(self,
                   first,
                   second,
                   metric: Optional[SimilarityMetric] = None,
                   threshold: Optional[float] = None) -> Optional[PairDetails]:
        """
        Explain the compatibility of two phages.

        Args:
            first: Phage id or name
            second: Phage id or name

        Returns:
            PairDetails or None if either phage is not found
        """
        i, j = self._index_of(first), self._index_of(second)
        if i is None or j is None:
            return None
        scorer = ScoringEngine(self._scoring_config(metric, threshold))
        if i == j:
            return self_pair(self.features[i])
        return scorer.score_pair(self.features[i], self.features[j])

    def get_phage_features(self, identifier) -> Optional[PhageFeatures]:
        """Features for a single phage by id or name."""
        i = self._index_of(identifier)
        return self.features[i] if i is not None else None

    def invalidate(self) -> None:
        """Forget derived features and cached results (after reloading data)."""
        self._features = None
        if self.cache is not None:
            self.cache.clear()


# Convenience function
def create_engine(data_dir: Optional[Path] = None) -> CocktailSupportEngine:
    """Create a cocktail support engine with its own cache."""
    return CocktailSupportEngine.from_directory(data_dir, cache=AnalysisCache())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    print("=" * 70)
    print("PHAGE COCKTAIL COMPATIBILITY - Demo")
    print("=" * 70)

    engine = create_engine()

    print("\n[DEMO 1] Default analysis")
    print("-" * 70)
    print(engine.analyze().summary())

    print("\n" + "=" * 70)
    print("[DEMO 2] Strict threshold, two-phage cocktail")
    print("-" * 70)
    print(engine.analyze(threshold=0.15, max_size=2).summary())

    print("\n" + "=" * 70)
    print("[DEMO 3] Pair explanation")
    print("-" * 70)
    names = [f.name for f in engine.features]
    if len(names) >= 2:
        print(f"{names[0]} x {names[1]}")
        print(engine.query_pair(names[0], names[1]).summary())
