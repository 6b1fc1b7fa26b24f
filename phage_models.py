"""
Data model for the Phage Cocktail Compatibility Framework.

Defines:
- Host-supplied input records (phage summary, gene annotations, protein domains)
- Categorical labels (lifecycle, lysis timing, similarity metric)
- Derived per-phage features used by the scorer
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


class Lifecycle(Enum):
    """Phage lifecycle category."""
    LYTIC = "lytic"
    TEMPERATE = "temperate"
    UNKNOWN = "unknown"


class LysisTiming(Enum):
    """Expression phase of the host-lysis genes."""
    EARLY = "early"
    MIDDLE = "middle"
    LATE = "late"
    UNKNOWN = "unknown"


class SimilarityMetric(Enum):
    """Domain-profile similarity metric."""
    WEIGHTED_JACCARD = "weightedJaccard"
    JACCARD = "jaccard"

    @classmethod
    def parse(cls, value) -> "SimilarityMetric":
        """Accept an enum member or its string value."""
        if isinstance(value, cls):
            return value
        for metric in cls:
            if metric.value.lower() == str(value).lower() or metric.name.lower() == str(value).lower():
                return metric
        raise ValueError(f"Unknown similarity metric: {value!r}")


@dataclass(frozen=True)
class PhageSummary:
    """A phage record as supplied by the host application."""
    id: int
    name: str
    host: Optional[str] = None
    lifecycle: Optional[str] = None  # Free text, normalized later
    genome_length: Optional[int] = None


@dataclass(frozen=True)
class GeneAnnotation:
    """A gene annotation; only text and coordinates are used."""
    id: int
    name: Optional[str] = None
    product: Optional[str] = None
    start_pos: int = 0
    end_pos: int = 0

    @property
    def text(self) -> str:
        return f"{self.name or ''} {self.product or ''}".lower()


@dataclass(frozen=True)
class ProteinDomain:
    """A protein-domain hit on one of the phage's proteins."""
    domain_id: str
    domain_name: Optional[str] = None
    domain_type: Optional[str] = None  # e.g. Pfam, InterPro
    description: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.domain_name or ''} {self.description or ''}".lower()


@dataclass(frozen=True)
class PhageFeatures:
    """Structured features for one phage, built once by the feature extractor."""
    id: int
    name: str
    host: Optional[str]
    lifecycle: Lifecycle
    lysis_timing: LysisTiming
    has_sie_genes: bool
    sie_gene_count: int
    has_immunity_region: bool
    receptor_hints: Tuple[str, ...] = ()  # Duplicate-free, first-seen order
    # "type:id" -> count; read-only and left out of the hash
    domain_counts: Mapping[str, int] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "receptor_hints", tuple(self.receptor_hints))
        object.__setattr__(self, "domain_counts", MappingProxyType(dict(self.domain_counts)))

    @property
    def distinct_domains(self) -> int:
        """Number of distinct domain keys."""
        return len(self.domain_counts)

    def to_dict(self) -> dict:
        """Plain JSON-friendly representation (used for cache keys)."""
        return {
            "id": self.id,
            "name": self.name,
            "host": self.host,
            "lifecycle": self.lifecycle.value,
            "lysis_timing": self.lysis_timing.value,
            "has_sie_genes": self.has_sie_genes,
            "sie_gene_count": self.sie_gene_count,
            "has_immunity_region": self.has_immunity_region,
            "receptor_hints": list(self.receptor_hints),
            "domain_counts": dict(sorted(self.domain_counts.items())),
        }
