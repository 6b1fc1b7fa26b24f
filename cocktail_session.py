"""
Interactive Cocktail Session for the Phage Cocktail Compatibility Framework.

Implements an exploratory mode where the user toggles target hosts and
adjusts metric, threshold and cocktail size, with results recomputed
lazily after each change.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Set, Tuple

from cocktail_optimizer import OptimizerConfig
from cocktail_support import CocktailSupportEngine
from output_models import CocktailAnalysis, CocktailSelection, CompatibilityMatrix, PairDetails
from phage_models import SimilarityMetric
from scoring_engine import THRESHOLD_PRESETS


@dataclass
class SessionState:
    """Current settings of an interactive session."""
    selected_hosts: Set[str] = field(default_factory=set)  # Empty means all hosts
    metric: SimilarityMetric = SimilarityMetric.WEIGHTED_JACCARD
    threshold: float = 0.0
    max_size: int = 3
    history: List[Tuple[str, Any]] = field(default_factory=list)  # (setting, value)


class CocktailSession:
    """
    Manages an interactive cocktail exploration session.

    Usage:
        session = CocktailSession(engine)

        session.set_threshold("strict")
        session.toggle_host("Escherichia coli")

        # Get current result at any time
        analysis = session.get_current_result()
    """

    def __init__(self, engine: CocktailSupportEngine):
        """Initialize interactive session."""
        self.engine = engine
        self.state = self._initial_state()

        # Cache current analysis
        self._cached: Optional[CocktailAnalysis] = None
        self._cache_valid = False

    def _initial_state(self) -> SessionState:
        return SessionState(
            selected_hosts=set(self.engine.get_all_hosts()),
            metric=self.engine.scoring_config.metric,
            threshold=self.engine.scoring_config.threshold,
            max_size=self.engine.optimizer_config.max_size,
        )

    def reset(self) -> None:
        """Reset session to initial state."""
        self.state = self._initial_state()
        self._cache_valid = False

    def _record(self, setting: str, value: Any) -> None:
        self.state.history.append((setting, value))
        self._cache_valid = False

    def _update_cache(self) -> None:
        """Update cached analysis."""
        if not self._cache_valid:
            self._cached = self.engine.analyze(
                metric=self.state.metric,
                threshold=self.state.threshold,
                max_size=self.state.max_size,
                target_hosts=self.target_hosts,
            )
            self._cache_valid = True

    @property
    def target_hosts(self) -> List[str]:
        """Selected hosts, or every observed host when none are selected."""
        return sorted(self.state.selected_hosts) or self.engine.get_all_hosts()

    def toggle_host(self, host: str) -> bool:
        """Add or remove a host from the targets; returns whether it is now selected."""
        if host in self.state.selected_hosts:
            self.state.selected_hosts.discard(host)
            selected = False
        else:
            self.state.selected_hosts.add(host)
            selected = True
        self._record("host", (host, selected))
        return selected

    def select_all_hosts(self) -> None:
        self.state.selected_hosts = set(self.engine.get_all_hosts())
        self._record("hosts", "all")

    def set_metric(self, metric) -> None:
        self.state.metric = SimilarityMetric.parse(metric)
        self._record("metric", self.state.metric.value)

    def set_threshold(self, threshold) -> None:
        """Set the threshold by value or by preset name (e.g. "strict")."""
        if isinstance(threshold, str):
            if threshold not in THRESHOLD_PRESETS:
                raise ValueError(f"Unknown threshold preset: {threshold!r}")
            threshold = THRESHOLD_PRESETS[threshold]
        self.state.threshold = float(threshold)
        self._record("threshold", self.state.threshold)

    def set_max_size(self, max_size: int) -> None:
        OptimizerConfig(max_size=max_size)  # validates
        self.state.max_size = max_size
        self._record("max_size", max_size)

    def get_current_result(self) -> CocktailAnalysis:
        """Get full analysis for the current settings."""
        self._update_cache()
        return self._cached

    def get_matrix(self) -> CompatibilityMatrix:
        return self.get_current_result().matrix

    def get_selection(self) -> CocktailSelection:
        return self.get_current_result().selection

    def get_pair(self, row: int, col: int) -> Optional[PairDetails]:
        """Pair details for a matrix cell; indices are clamped into range."""
        matrix = self.get_matrix()
        if matrix.n == 0:
            return None
        row = max(0, min(matrix.n - 1, row))
        col = max(0, min(matrix.n - 1, col))
        return matrix.pair(row, col)

    def get_session_summary(self) -> str:
        """Get a summary of the current session."""
        lines = [
            f"Changes made: {len(self.state.history)}",
            f"  Metric: {self.state.metric.value}",
            f"  Threshold: {self.state.threshold:+.2f}",
            f"  Max size: {self.state.max_size}",
            f"  Target hosts: {len(self.target_hosts)}",
        ]

        selection = self.get_selection()
        if selection.chosen:
            names = [self.engine.features[i].name for i in selection.chosen]
            lines.append(f"\nCurrent cocktail: {', '.join(names)}")
            lines.append(f"  Coverage: {selection.coverage_percent:.0f}%")
            lines.append(f"  Avg compatibility: {selection.avg_compat:+.2f}")

        return "\n".join(lines)


def run_interactive_demo():
    """Run a scripted demo session."""
    print("=" * 70)
    print("INTERACTIVE COCKTAIL SESSION - Demo")
    print("=" * 70)

    from cocktail_support import create_engine

    session = CocktailSession(create_engine())
    print(session.get_session_summary())

    for label, change in [
        ("Strict threshold", lambda: session.set_threshold("strict")),
        ("Presence Jaccard", lambda: session.set_metric(SimilarityMetric.JACCARD)),
        ("Two-phage cocktail", lambda: session.set_max_size(2)),
    ]:
        change()
        print(f"\n[{label}]")
        print(session.get_session_summary())


if __name__ == "__main__":
    run_interactive_demo()
