"""
Automated tests for cocktail selection and the framework API.

Tests cover:
- Greedy cocktail optimizer
- Data loading from tables and records
- Analysis cache
- Cocktail support engine and interactive session
- Edge cases
"""

import itertools

import pytest

from analysis_cache import AnalysisCache, analysis_key
from cocktail_optimizer import (
    Candidate, CocktailOptimizer, OptimizerConfig, candidate_sort_key, observed_hosts
)
from cocktail_session import CocktailSession
from cocktail_support import CocktailSupportEngine
from data_loader import DataLoader, MissingAnnotationsError
from output_models import CompatibilityMatrix, PairDetails
from phage_models import (
    GeneAnnotation, Lifecycle, LysisTiming, PhageFeatures, PhageSummary, ProteinDomain,
    SimilarityMetric
)
from scoring_engine import ScoringEngine


def make_features(phage_id, host=None, lifecycle=Lifecycle.UNKNOWN, domains=None):
    return PhageFeatures(
        id=phage_id,
        name=f"P{phage_id}",
        host=host,
        lifecycle=lifecycle,
        lysis_timing=LysisTiming.UNKNOWN,
        has_sie_genes=False,
        sie_gene_count=0,
        has_immunity_region=False,
        domain_counts=dict(domains or {}),
    )


def matrix_from_scores(features, scores, threshold=0.0):
    """Build a CompatibilityMatrix with the given off-diagonal scores."""
    n = len(features)
    details = []
    for r in range(n):
        row = []
        for c in range(n):
            score = 1.0 if r == c else scores[r][c]
            row.append(PairDetails(score=score, compatible=score >= threshold,
                                   domain_similarity=0.0, shared_distinct_domains=0))
        details.append(row)
    return CompatibilityMatrix(names=[f.name for f in features], details=details)


def write_tables(directory, genes=True, domains=True):
    (directory / "phages.csv").write_text(
        "id,name,host,lifecycle,genome_length\n"
        "1,Zeta,E. coli,lytic,1000\n"
        "2,alpha,K. pneumoniae,temperate,2000\n"
        "3,Mu,,,\n"
    )
    if genes:
        (directory / "genes.csv").write_text(
            "phage_id,id,name,product,start_pos,end_pos\n"
            "1,10,t,holin,100,200\n"
            "2,20,cI,CI repressor,1500,1600\n"
            "2,21,,,,\n"
        )
    if domains:
        (directory / "domains.csv").write_text(
            "phage_id,domain_id,domain_name,domain_type,description\n"
            "1,PF03335,Phage_fiber,Pfam,tail fiber\n"
            "2,PF00589,,,\n"
        )


# Fixtures
@pytest.fixture(scope="module")
def host_panel():
    """Five phages covering three hosts."""
    return [
        make_features(0, host="h1"),
        make_features(1, host="h1"),
        make_features(2, host="h2"),
        make_features(3, host="h3"),
        make_features(4, host="h2"),
    ]


@pytest.fixture(scope="module")
def panel_scores():
    """Symmetric scores for host_panel."""
    s = [[0.0] * 5 for _ in range(5)]
    values = {
        (0, 1): 0.2, (0, 2): 0.1, (0, 3): 0.4, (0, 4): 0.3,
        (1, 2): 0.0, (1, 3): 0.1, (1, 4): 0.1,
        (2, 3): 0.5, (2, 4): 0.2,
        (3, 4): -0.2,
    }
    for (r, c), v in values.items():
        s[r][c] = s[c][r] = v
    return s


@pytest.fixture(scope="module")
def sample_engine():
    """Engine over the bundled sample data."""
    return CocktailSupportEngine.from_directory(cache=AnalysisCache())


@pytest.fixture
def record_engine():
    phages = [
        PhageSummary(1, "T7", "Escherichia coli", "lytic", 40000),
        PhageSummary(2, "K11", "Klebsiella pneumoniae", "lytic", 41000),
        PhageSummary(3, "Lambda", "Escherichia coli", "temperate", 48500),
        PhageSummary(4, "PhiKZ", "Pseudomonas aeruginosa", "lytic", 280000),
    ]
    genes = {
        1: [GeneAnnotation(1, None, "holin", 35000, 35200)],
        3: [GeneAnnotation(2, "cI", "CI repressor", 37000, 37900)],
    }
    domains = {
        1: [ProteinDomain("PF1", "gp37_C", "Pfam", "tail fiber")],
        2: [ProteinDomain("IPR2", "Tail_spike", "InterPro", "tailspike")],
        4: [ProteinDomain("PF3", "Phage_lysozyme", "Pfam", "lysozyme")],
    }
    return CocktailSupportEngine.from_records(phages, genes, domains, cache=AnalysisCache())


class TestCocktailOptimizer:
    """Tests for cocktail_optimizer.py"""

    def test_greedy_selection(self, host_panel, panel_scores):
        """Gain first, then compatibility; the clique constraint rejects P4."""
        matrix = matrix_from_scores(host_panel, panel_scores)
        selection = CocktailOptimizer().select(matrix, host_panel)

        assert selection.chosen == (0, 3, 2)
        assert selection.coverage == ("h1", "h2", "h3")
        assert selection.coverage_percent == pytest.approx(100.0)
        assert selection.avg_compat == pytest.approx((0.4 + 0.1 + 0.5) / 3)
        assert selection.target_count == 3
        assert selection.rationale == (
            "P0: +1 host(s) covered; avg compat vs selected +0.00",
            "P3: +1 host(s) covered; avg compat vs selected +0.40",
            "P2: +1 host(s) covered; avg compat vs selected +0.30",
        )

    def test_max_size(self, host_panel, panel_scores):
        matrix = matrix_from_scores(host_panel, panel_scores)
        selection = CocktailOptimizer(OptimizerConfig(max_size=2)).select(matrix, host_panel)

        assert selection.chosen == (0, 3)
        assert selection.coverage_percent == pytest.approx(200 / 3)
        assert selection.avg_compat == pytest.approx(0.4)

    def test_no_compatible_pair(self, host_panel):
        scores = [[-0.5] * 5 for _ in range(5)]
        matrix = matrix_from_scores(host_panel, scores)
        selection = CocktailOptimizer(OptimizerConfig(max_size=2)).select(matrix, host_panel)

        assert len(selection.chosen) <= 1
        assert selection.avg_compat == 0.0

    def test_threshold_respected(self, host_panel, panel_scores):
        """Every chosen pair clears the threshold."""
        matrix = matrix_from_scores(host_panel, panel_scores)
        for threshold in (-0.1, 0.0, 0.15, 0.3):
            for max_size in (2, 3, 4, 5):
                config = OptimizerConfig(max_size=max_size, threshold=threshold)
                selection = CocktailOptimizer(config).select(matrix, host_panel)
                assert len(selection.chosen) <= max_size
                for i, j in itertools.combinations(selection.chosen, 2):
                    assert matrix.score(i, j) >= threshold

    def test_tie_break_prefers_lower_index(self):
        features = [make_features(0, host="h1"), make_features(1, host="h2")]
        matrix = matrix_from_scores(features, [[1.0, -1.0], [-1.0, 1.0]])
        selection = CocktailOptimizer().select(matrix, features)
        assert selection.chosen == (0,)

    def test_candidate_sort_key(self):
        first = Candidate(index=0, gain=1, avg_compat=0.0, composite=1.0)
        second = Candidate(index=3, gain=1, avg_compat=0.0, composite=1.0)
        better = Candidate(index=5, gain=1, avg_compat=0.2, composite=1.1)
        assert candidate_sort_key(first) > candidate_sort_key(second)
        assert candidate_sort_key(better) > candidate_sort_key(first)

    def test_target_hosts_restrict_gain(self, host_panel, panel_scores):
        matrix = matrix_from_scores(host_panel, panel_scores)
        selection = CocktailOptimizer().select(matrix, host_panel, target_hosts=["h2"])

        assert selection.chosen == (2,)
        assert selection.coverage == ("h2",)
        assert selection.coverage_percent == pytest.approx(100.0)

    def test_unobserved_target_lowers_coverage(self, host_panel, panel_scores):
        matrix = matrix_from_scores(host_panel, panel_scores)
        selection = CocktailOptimizer().select(matrix, host_panel, target_hosts=["h1", "h9"])

        assert selection.chosen == (0,)
        assert selection.coverage_percent == pytest.approx(50.0)
        assert selection.coverage_percent == pytest.approx(
            100 * len(set(selection.coverage) & {"h1", "h9"}) / 2)

    def test_idempotent(self, host_panel, panel_scores):
        matrix = matrix_from_scores(host_panel, panel_scores)
        optimizer = CocktailOptimizer()
        assert optimizer.select(matrix, host_panel) == optimizer.select(matrix, host_panel)

    def test_no_hosts(self):
        features = [make_features(0), make_features(1)]
        matrix = matrix_from_scores(features, [[1.0, 0.5], [0.5, 1.0]])
        selection = CocktailOptimizer().select(matrix, features)

        assert selection.chosen == ()
        assert selection.coverage_percent == 0.0
        assert selection.target_count == 0

    def test_scored_panel(self):
        """Five scored phages, three hosts, two-phage cocktail."""
        features = [
            make_features(1, host="E. coli", lifecycle=Lifecycle.LYTIC, domains={"a": 1}),
            make_features(2, host="E. coli", lifecycle=Lifecycle.TEMPERATE, domains={"a": 1}),
            make_features(3, host="K. pneumoniae", lifecycle=Lifecycle.LYTIC, domains={"b": 1}),
            make_features(4, host="P. aeruginosa", lifecycle=Lifecycle.TEMPERATE, domains={"a": 1}),
            make_features(5, host="K. pneumoniae", domains={"c": 2}),
        ]
        matrix = ScoringEngine().build_matrix(features)
        selection = CocktailOptimizer(OptimizerConfig(max_size=2)).select(matrix, features)

        assert len(selection.chosen) <= 2
        for i, j in itertools.combinations(selection.chosen, 2):
            assert matrix.score(i, j) >= 0.0

    def test_observed_hosts(self, host_panel):
        assert observed_hosts(host_panel) == ["h1", "h2", "h3"]

    @pytest.mark.parametrize("max_size", [0, 1, 6])
    def test_invalid_max_size(self, max_size):
        with pytest.raises(ValueError):
            OptimizerConfig(max_size=max_size)

    def test_valid_max_sizes(self):
        for max_size in (2, 3, 4, 5):
            assert OptimizerConfig(max_size=max_size).max_size == max_size


class TestDataLoader:
    """Tests for data_loader.py"""

    def test_load_tables(self, tmp_path):
        write_tables(tmp_path)
        loader = DataLoader(tmp_path)
        loader.load()

        assert loader.loaded
        assert [p.name for p in loader.phages] == ["alpha", "Mu", "Zeta"]
        assert loader.get_all_hosts() == ["E. coli", "K. pneumoniae"]

    def test_missing_values(self, tmp_path):
        write_tables(tmp_path)
        loader = DataLoader(tmp_path)
        loader.load()

        mu = loader.get_phage(3)
        assert mu.host is None
        assert mu.lifecycle is None
        assert mu.genome_length == 0
        assert loader.get_genes(3) == []

        blank = loader.get_genes(2)[1]
        assert blank.name is None and blank.product is None
        assert blank.start_pos == 0

        domain = loader.get_domains(2)[0]
        assert domain.domain_type is None

    def test_missing_gene_table(self, tmp_path):
        write_tables(tmp_path, genes=False)
        with pytest.raises(MissingAnnotationsError):
            DataLoader(tmp_path).load()

    def test_missing_domain_table(self, tmp_path):
        write_tables(tmp_path, domains=False)
        with pytest.raises(MissingAnnotationsError):
            DataLoader(tmp_path).load()

    def test_load_records_requires_collections(self):
        phages = [PhageSummary(1, "T7")]
        with pytest.raises(MissingAnnotationsError):
            DataLoader().load_records(phages, None, {})
        with pytest.raises(MissingAnnotationsError):
            DataLoader().load_records(phages, {}, None)

    def test_resolve_phage(self, tmp_path):
        write_tables(tmp_path)
        loader = DataLoader(tmp_path)
        loader.load()

        assert loader.resolve_phage("zeta") == 1
        assert loader.resolve_phage(2) == 2
        assert loader.resolve_phage("3") == 3
        assert loader.resolve_phage("NotAPhage") is None

    def test_sample_data(self):
        loader = DataLoader()
        loader.load()

        assert len(loader.phages) == 9
        names = [p.name.lower() for p in loader.phages]
        assert names == sorted(names)


class TestAnalysisCache:
    """Tests for analysis_cache.py"""

    def test_key_stability(self, host_panel):
        key = analysis_key(host_panel, metric=SimilarityMetric.JACCARD, threshold=0.0)
        assert key == analysis_key(list(host_panel), threshold=0.0, metric=SimilarityMetric.JACCARD)
        assert key != analysis_key(host_panel, metric=SimilarityMetric.JACCARD, threshold=0.15)
        assert key != analysis_key(host_panel[:4], metric=SimilarityMetric.JACCARD, threshold=0.0)

    def test_get_or_compute(self):
        cache = AnalysisCache()
        calls = []

        def compute():
            calls.append(1)
            return "value"

        assert cache.get_or_compute("k", compute) == "value"
        assert cache.get_or_compute("k", compute) == "value"
        assert len(calls) == 1
        assert cache.hits == 1 and cache.misses == 1

    def test_invalidate_and_clear(self):
        cache = AnalysisCache()
        cache.put("a", 1)
        cache.put("b", 2)

        assert cache.invalidate("a")
        assert not cache.invalidate("a")
        assert "a" not in cache and "b" in cache

        cache.clear()
        assert len(cache) == 0
        assert cache.get("b") is None


class TestCocktailSupport:
    """Tests for cocktail_support.py main API."""

    def test_sample_analysis(self, sample_engine):
        analysis = sample_engine.analyze()

        assert analysis.matrix.n == 9
        assert analysis.target_hosts == tuple(sample_engine.get_all_hosts())
        assert 0 < len(analysis.selection.chosen) <= 3
        for r in range(analysis.matrix.n):
            for c in range(analysis.matrix.n):
                assert -1.0 <= analysis.matrix.score(r, c) <= 1.0
                assert analysis.matrix.score(r, c) == analysis.matrix.score(c, r)

    def test_sample_features(self, sample_engine):
        lam = sample_engine.get_phage_features("Lambda")
        assert lam.lifecycle is Lifecycle.TEMPERATE
        assert lam.lysis_timing is LysisTiming.LATE
        assert lam.has_immunity_region
        assert lam.has_sie_genes

        assert sample_engine.get_phage_features("T4").lifecycle is Lifecycle.LYTIC
        assert sample_engine.get_phage_features("Unnamed isolate").lysis_timing is LysisTiming.UNKNOWN

    def test_cached_matrix(self, record_engine):
        first = record_engine.build_matrix()
        second = record_engine.build_matrix()
        assert first is second
        assert record_engine.build_matrix(threshold=0.3) is not first

    def test_analysis_idempotent(self, record_engine):
        a = record_engine.analyze(threshold=0.15, max_size=2)
        record_engine.invalidate()
        b = record_engine.analyze(threshold=0.15, max_size=2)
        assert a.selection == b.selection
        assert a.matrix == b.matrix

    def test_cached_results_cannot_be_altered(self, record_engine):
        first = record_engine.analyze()
        chosen = first.selection.chosen

        with pytest.raises(AttributeError):
            first.selection.chosen.append(99)
        with pytest.raises(AttributeError):
            first.selection.chosen = (99,)
        with pytest.raises(AttributeError):
            first.features.append(first.features[0])

        again = record_engine.analyze()
        assert again.selection.chosen == chosen
        assert 99 not in again.selection.chosen
        assert len(again.features) == 4

    def test_default_targets(self, record_engine):
        analysis = record_engine.analyze()
        assert analysis.target_hosts == (
            "Escherichia coli", "Klebsiella pneumoniae", "Pseudomonas aeruginosa"
        )
        assert record_engine.analyze(target_hosts=[]).target_hosts == analysis.target_hosts

    def test_query_pair(self, record_engine):
        details = record_engine.query_pair("T7", "K11")
        # Both lytic, different hosts, different receptors, distinct domains
        assert details.score == pytest.approx(0.18 + 0.22 + 0.15 + 0.16)
        assert record_engine.query_pair("T7", "T7").score == 1.0
        assert record_engine.query_pair("T7", "NotAPhage") is None

    def test_metric_override(self, record_engine):
        analysis = record_engine.analyze(metric="jaccard")
        assert analysis.metric is SimilarityMetric.JACCARD

    def test_summary(self, record_engine):
        text = record_engine.analyze().summary()
        assert "Cocktail:" in text
        assert "Rationale:" in text


class TestCocktailSession:
    """Tests for cocktail_session.py interactive mode."""

    def test_session_creation(self, record_engine):
        session = CocktailSession(record_engine)
        assert session.state.selected_hosts == set(record_engine.get_all_hosts())
        assert session.state.history == []

    def test_toggle_host(self, record_engine):
        session = CocktailSession(record_engine)

        assert not session.toggle_host("Escherichia coli")
        assert "Escherichia coli" not in session.target_hosts
        assert "Escherichia coli" not in session.get_selection().coverage

        assert session.toggle_host("Escherichia coli")
        assert len(session.state.history) == 2

    def test_clearing_all_hosts_targets_everything(self, record_engine):
        session = CocktailSession(record_engine)
        for host in record_engine.get_all_hosts():
            session.toggle_host(host)
        assert session.target_hosts == record_engine.get_all_hosts()

    def test_threshold_presets(self, record_engine):
        session = CocktailSession(record_engine)
        session.set_threshold("strict")
        assert session.state.threshold == pytest.approx(0.15)
        assert session.get_current_result().threshold == pytest.approx(0.15)
        with pytest.raises(ValueError):
            session.set_threshold("reckless")

    def test_settings_invalidate_result(self, record_engine):
        session = CocktailSession(record_engine)
        before = session.get_current_result()
        session.set_max_size(2)
        after = session.get_current_result()
        assert after.max_size == 2
        assert after is not before
        assert len(after.selection.chosen) <= 2

        with pytest.raises(ValueError):
            session.set_max_size(1)
        assert session.state.max_size == 2

    def test_get_pair_clamps(self, record_engine):
        session = CocktailSession(record_engine)
        assert session.get_pair(-5, -5).score == 1.0
        assert session.get_pair(99, 99).score == 1.0

    def test_reset(self, record_engine):
        session = CocktailSession(record_engine)
        session.set_metric(SimilarityMetric.JACCARD)
        session.reset()
        assert session.state.metric is SimilarityMetric.WEIGHTED_JACCARD
        assert session.state.history == []


class TestEdgeCases:
    """Edge case tests."""

    def test_empty_engine(self):
        engine = CocktailSupportEngine.from_records([], {}, {})
        analysis = engine.analyze()
        assert analysis.matrix.n == 0
        assert analysis.selection.chosen == ()
        assert analysis.selection.coverage_percent == 0.0

    def test_single_phage(self):
        engine = CocktailSupportEngine.from_records([PhageSummary(1, "Solo", "h1")], {}, {})
        analysis = engine.analyze()
        assert analysis.selection.chosen == (0,)
        assert analysis.selection.avg_compat == 0.0
        assert analysis.selection.coverage_percent == pytest.approx(100.0)

    def test_strict_threshold_on_incompatible_pair(self):
        phages = [
            PhageSummary(1, "A", "h1", "temperate", 1000),
            PhageSummary(2, "B", "h2", "temperate", 1000),
        ]
        domains = {
            1: [ProteinDomain("PF1", "Tail_spike", "Pfam", "tailspike")],
            2: [ProteinDomain("PF1", "Tail_spike", "Pfam", "tailspike")],
        }
        engine = CocktailSupportEngine.from_records(phages, {}, domains)
        analysis = engine.analyze()
        assert len(analysis.selection.chosen) == 1
        assert analysis.matrix.score(0, 1) < 0


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
