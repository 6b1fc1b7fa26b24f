"""
Phage Cocktail Compatibility
Streamlit Web Application for exploring pairwise compatibility and cocktail selection
"""

import logging

import streamlit as st
import pandas as pd

from analysis_cache import AnalysisCache
from cocktail_optimizer import MAX_SIZE_CHOICES
from cocktail_support import CocktailSupportEngine
from phage_models import SimilarityMetric
from scoring_engine import THRESHOLD_PRESETS

logging.basicConfig(level=logging.INFO)

# Page configuration
st.set_page_config(
    page_title="Phage Cocktail Compatibility",
    page_icon="🧫",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def load_engine():
    """Load the cocktail support engine (cached per server process)."""
    return CocktailSupportEngine.from_directory(cache=AnalysisCache())


def main():
    st.title("🧫 Phage Cocktail Compatibility")
    st.caption("Heuristic pairwise compatibility from lifecycle, host labels, lysis timing, "
               "Sie genes, receptor hints and protein-domain overlap. Not a clinical tool.")
    st.divider()

    engine = load_engine()
    hosts = engine.get_all_hosts()

    # Sidebar - settings
    st.sidebar.title("🔧 Settings")
    metric_label = st.sidebar.radio(
        "Domain metric:",
        ["Weighted Jaccard", "Jaccard (presence)"],
        index=0
    )
    metric = (SimilarityMetric.WEIGHTED_JACCARD if metric_label == "Weighted Jaccard"
              else SimilarityMetric.JACCARD)

    preset = st.sidebar.selectbox(
        "Compatibility threshold:",
        list(THRESHOLD_PRESETS.keys()),
        index=1,
        format_func=lambda k: f"{THRESHOLD_PRESETS[k]:+.2f} ({k})"
    )
    threshold = THRESHOLD_PRESETS[preset]

    max_size = st.sidebar.selectbox("Max cocktail size:", MAX_SIZE_CHOICES, index=1)

    st.sidebar.divider()
    target_hosts = st.sidebar.multiselect("Target hosts:", hosts, default=hosts)
    if not target_hosts:
        st.sidebar.info("No hosts selected; all hosts are targeted.")

    analysis = engine.analyze(
        metric=metric,
        threshold=threshold,
        max_size=max_size,
        target_hosts=target_hosts
    )

    if not analysis.features:
        st.info("No phages loaded. Cocktail compatibility requires multiple phages "
                "with protein domain annotations.")
        return

    matrix_tab, pair_tab, cocktail_tab = st.tabs(["📊 Matrix", "🔍 Pair Details", "🧪 Cocktail"])

    with matrix_tab:
        st.subheader("Compatibility Matrix")
        st.dataframe(analysis.matrix.to_frame().round(2), use_container_width=True)
        st.caption(analysis.matrix.summary())

    with pair_tab:
        names = analysis.names
        col1, col2 = st.columns(2)
        row = col1.selectbox("Phage A:", range(len(names)), format_func=lambda i: names[i])
        col = col2.selectbox("Phage B:", range(len(names)), index=min(1, len(names) - 1),
                             format_func=lambda i: names[i])
        details = analysis.matrix.pair(row, col)

        m1, m2, m3 = st.columns(3)
        m1.metric("Score", f"{details.score:+.2f}",
                  "compatible" if details.compatible else "incompatible")
        m2.metric("Domain similarity", f"{details.domain_similarity:.0%}")
        m3.metric("Shared domains", details.shared_distinct_domains)

        factor_data = [
            {"Factor": f.name, "Contribution": f"{f.contribution:+.2f}", "Reason": f.reason}
            for f in details.factors
        ]
        st.dataframe(pd.DataFrame(factor_data), use_container_width=True, hide_index=True)

    with cocktail_tab:
        selection = analysis.selection
        if not selection.chosen:
            st.warning("No cocktail found. Try a more lenient threshold or select other hosts.")
        else:
            c1, c2, c3 = st.columns(3)
            c1.metric("Phages", len(selection.chosen))
            c2.metric("Coverage", f"{selection.coverage_percent:.0f}%",
                      f"{len(selection.coverage)}/{selection.target_count} hosts")
            c3.metric("Avg compatibility", f"{selection.avg_compat:+.2f}")

            chosen_data = [
                {"Phage": f.name, "Host": f.host or "—", "Lifecycle": f.lifecycle.value,
                 "Lysis timing": f.lysis_timing.value}
                for f in analysis.chosen_features
            ]
            st.dataframe(pd.DataFrame(chosen_data), use_container_width=True, hide_index=True)

            st.subheader("Rationale")
            for step in selection.rationale:
                st.markdown(f"- {step}")


if __name__ == "__main__":
    main()
