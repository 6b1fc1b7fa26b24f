"""
Feature Extractor for the Phage Cocktail Compatibility Framework.

Derives structured per-phage features from raw annotations:
- Lifecycle normalization
- Lysis timing from holin / endolysin / spanin gene positions
- Superinfection-exclusion (Sie) and immunity-region detection
- Receptor-binding hints and domain-count profile
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from phage_models import (
    GeneAnnotation, Lifecycle, LysisTiming, PhageFeatures, PhageSummary, ProteinDomain
)

logger = logging.getLogger(__name__)


LYSIS_KEYWORDS = {
    LysisTiming.EARLY: ('holin', 'antiholin', 'lysis inhibition'),
    LysisTiming.MIDDLE: ('endolysin', 'lysozyme', 'muramidase', 'transglycosylase'),
    LysisTiming.LATE: ('spanin', 'rz', 'rz1', 'lysis completion'),
}

SIE_KEYWORDS = (
    'sie', 'superinfection exclusion', 'exclusion protein',
    'imm', 'immunity', 'repressor', 'anti-repressor',
    'rex', 'rexab', 'old gene', 'tin', 'sp',
)

IMMUNITY_KEYWORDS = ('immunity', 'imm ', 'ci repressor', 'cro', 'integrase')

RECEPTOR_DOMAIN_KEYWORDS = (
    'tail fiber', 'tail_fiber', 'tailspike', 'receptor',
    'rbp', 'adhesin', 'baseplate', 'gp37', 'gp38', 'gp12',
)

# Average position fraction cut-offs for early / middle lysis
EARLY_POSITION_CUTOFF = 0.33
MIDDLE_POSITION_CUTOFF = 0.67


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def normalize_lifecycle(lifecycle: Optional[str]) -> Lifecycle:
    """Map free-text lifecycle annotations onto lytic / temperate / unknown."""
    value = (lifecycle or '').lower()
    if 'temperate' in value or 'lysogen' in value:
        return Lifecycle.TEMPERATE
    if 'lytic' in value:
        return Lifecycle.LYTIC
    return Lifecycle.UNKNOWN


def classify_lysis_gene(gene: GeneAnnotation) -> LysisTiming:
    """
    Assign a lysis category to a single gene.

    A late-family hit always wins, an early hit is set next, and a middle
    hit only fills an otherwise unset category.
    """
    text = gene.text
    timing = LysisTiming.UNKNOWN
    if _contains_any(text, LYSIS_KEYWORDS[LysisTiming.EARLY]):
        timing = LysisTiming.EARLY
    if timing is LysisTiming.UNKNOWN and _contains_any(text, LYSIS_KEYWORDS[LysisTiming.MIDDLE]):
        timing = LysisTiming.MIDDLE
    if _contains_any(text, LYSIS_KEYWORDS[LysisTiming.LATE]):
        timing = LysisTiming.LATE
    return timing


def infer_lysis_timing(genes: List[GeneAnnotation], genome_length: Optional[int]) -> LysisTiming:
    """
    Infer the lysis phase from where lysis genes sit on the genome.

    Every gene with a lysis category contributes its midpoint position
    fraction; the final call uses the average fraction, not the per-gene
    categories.
    """
    genome_length = genome_length or 0
    if not genes or genome_length <= 0:
        return LysisTiming.UNKNOWN

    positions = []
    for gene in genes:
        if classify_lysis_gene(gene) is LysisTiming.UNKNOWN:
            continue
        midpoint = (gene.start_pos + gene.end_pos) / 2
        positions.append(midpoint / genome_length)

    if not positions:
        return LysisTiming.UNKNOWN

    avg_position = sum(positions) / len(positions)
    if avg_position < EARLY_POSITION_CUTOFF:
        return LysisTiming.EARLY
    if avg_position < MIDDLE_POSITION_CUTOFF:
        return LysisTiming.MIDDLE
    return LysisTiming.LATE


def detect_sie_genes(genes: List[GeneAnnotation]) -> Tuple[bool, int]:
    """Count genes matching any superinfection-exclusion keyword (at most once per gene)."""
    count = sum(1 for gene in genes or [] if _contains_any(gene.text, SIE_KEYWORDS))
    return count > 0, count


def detect_immunity_region(genes: List[GeneAnnotation]) -> bool:
    """True if any gene looks like part of an immunity region."""
    return any(_contains_any(gene.text, IMMUNITY_KEYWORDS) for gene in genes or [])


def extract_receptor_hints(domains: List[ProteinDomain]) -> Tuple[str, ...]:
    """Display names of receptor-binding-like domains, without duplicates."""
    hints: List[str] = []
    for domain in domains or []:
        if _contains_any(domain.text, RECEPTOR_DOMAIN_KEYWORDS):
            hint = domain.domain_name or domain.domain_id
            if hint not in hints:
                hints.append(hint)
    return tuple(hints)


def domain_key(domain: ProteinDomain) -> str:
    """Profile key for a domain: "{type}:{id}"."""
    return f"{domain.domain_type or 'Unknown'}:{domain.domain_id}"


def build_domain_counts(domains: List[ProteinDomain]) -> Dict[str, int]:
    """Tally domain occurrences per profile key."""
    counts: Dict[str, int] = {}
    for domain in domains or []:
        key = domain_key(domain)
        counts[key] = counts.get(key, 0) + 1
    return counts


class FeatureExtractor:
    """Builds PhageFeatures from a phage record and its annotations."""

    def extract(self,
                phage: PhageSummary,
                genes: Optional[List[GeneAnnotation]] = None,
                domains: Optional[List[ProteinDomain]] = None) -> PhageFeatures:
        """
        Build the feature record for one phage.

        Missing annotations degrade to unknown / empty features.
        """
        genes = genes or []
        domains = domains or []

        has_sie, sie_count = detect_sie_genes(genes)
        features = PhageFeatures(
            id=phage.id,
            name=phage.name,
            host=phage.host or None,
            lifecycle=normalize_lifecycle(phage.lifecycle),
            lysis_timing=infer_lysis_timing(genes, phage.genome_length),
            has_sie_genes=has_sie,
            sie_gene_count=sie_count,
            has_immunity_region=detect_immunity_region(genes),
            receptor_hints=extract_receptor_hints(domains),
            domain_counts=build_domain_counts(domains),
        )
        logger.debug("Extracted features for %s: lifecycle=%s, lysis=%s, sie=%d, domains=%d",
                     phage.name, features.lifecycle.value, features.lysis_timing.value,
                     sie_count, features.distinct_domains)
        return features

    def extract_all(self,
                    phages: List[PhageSummary],
                    genes_by_id: Dict[int, List[GeneAnnotation]],
                    domains_by_id: Dict[int, List[ProteinDomain]]) -> List[PhageFeatures]:
        """Extract features for every phage, in the order given."""
        return [
            self.extract(phage, genes_by_id.get(phage.id, []), domains_by_id.get(phage.id, []))
            for phage in phages
        ]


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    phage = PhageSummary(id=1, name="T4", host="Escherichia coli", lifecycle="Lytic", genome_length=168903)
    genes = [
        GeneAnnotation(id=1, name="t", product="holin", start_pos=160000, end_pos=160600),
        GeneAnnotation(id=2, name="e", product="lysozyme", start_pos=70000, end_pos=70500),
        GeneAnnotation(id=3, name="imm", product="immunity protein", start_pos=12000, end_pos=12300),
    ]
    domains = [
        ProteinDomain(domain_id="PF03335", domain_name="Phage_fiber", domain_type="Pfam",
                      description="Phage tail fiber repeat"),
    ]
    print(FeatureExtractor().extract(phage, genes, domains))
