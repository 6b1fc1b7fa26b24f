"""
Data Loader Module for the Phage Cocktail Compatibility Framework.

Loads and indexes:
- Phage summaries (id, name, host, lifecycle, genome length)
- Per-phage gene annotations
- Per-phage protein-domain annotations

Tables are read from CSV/TSV files with pandas, or taken from in-memory
records supplied by a host application.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from phage_models import GeneAnnotation, PhageSummary, ProteinDomain

logger = logging.getLogger(__name__)


class MissingAnnotationsError(ValueError):
    """Raised when gene or domain annotations cannot be supplied at all."""


def _clean(value):
    """Convert pandas missing values to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _clean_str(value) -> Optional[str]:
    value = _clean(value)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _clean_int(value, default: Optional[int] = 0) -> Optional[int]:
    value = _clean(value)
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _read_table(filepath: Path) -> pd.DataFrame:
    """Read a CSV or TSV file depending on its suffix."""
    sep = '\t' if filepath.suffix.lower() in ('.tsv', '.tab', '.txt') else ','
    return pd.read_csv(filepath, sep=sep)


class DataLoader:
    """Loads and manages phage, gene and domain annotations."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize with optional data directory path."""
        if data_dir is None:
            data_dir = Path(__file__).parent / "sample_data"
        self.data_dir = Path(data_dir)

        # Data storage
        self.phages: List[PhageSummary] = []
        self.genes_by_id: Dict[int, List[GeneAnnotation]] = {}
        self.domains_by_id: Dict[int, List[ProteinDomain]] = {}

        # Indexes
        self.phage_by_id: Dict[int, PhageSummary] = {}
        self.phage_name_to_id: Dict[str, int] = {}  # name (lower) -> id

        self._loaded = False

    def load(self,
             phage_file: str = "phages.csv",
             gene_file: str = "genes.csv",
             domain_file: str = "domains.csv") -> None:
        """Load all annotation tables from the data directory and build indexes."""
        for label, filename in (("gene", gene_file), ("domain", domain_file)):
            if not (self.data_dir / filename).exists():
                raise MissingAnnotationsError(
                    f"Cocktail analysis requires {label} annotations; "
                    f"{self.data_dir / filename} not found")

        phages = self._load_phages(_read_table(self.data_dir / phage_file))
        genes = self._load_genes(_read_table(self.data_dir / gene_file))
        domains = self._load_domains(_read_table(self.data_dir / domain_file))
        self._store(phages, genes, domains)

    def load_records(self,
                     phages: Iterable[PhageSummary],
                     genes_by_id: Optional[Dict[int, List[GeneAnnotation]]],
                     domains_by_id: Optional[Dict[int, List[ProteinDomain]]]) -> None:
        """Load annotations already held in memory by the host application."""
        if genes_by_id is None:
            raise MissingAnnotationsError("Cocktail analysis requires gene annotations")
        if domains_by_id is None:
            raise MissingAnnotationsError("Cocktail analysis requires protein-domain annotations")
        self._store(list(phages), dict(genes_by_id), dict(domains_by_id))

    def _load_phages(self, df: pd.DataFrame) -> List[PhageSummary]:
        """Parse the phage summary table."""
        phages = []
        for _, row in df.iterrows():
            phage_id = _clean_int(row.get('id'), default=None)
            if phage_id is None:
                continue
            phages.append(PhageSummary(
                id=phage_id,
                name=_clean_str(row.get('name')) or f"Phage {phage_id}",
                host=_clean_str(row.get('host')),
                lifecycle=_clean_str(row.get('lifecycle')),
                genome_length=_clean_int(row.get('genome_length')),
            ))
        return phages

    def _load_genes(self, df: pd.DataFrame) -> Dict[int, List[GeneAnnotation]]:
        """Parse the gene table, grouped by phage id."""
        genes: Dict[int, List[GeneAnnotation]] = {}
        for i, (_, row) in enumerate(df.iterrows()):
            phage_id = _clean_int(row.get('phage_id'), default=None)
            if phage_id is None:
                continue
            genes.setdefault(phage_id, []).append(GeneAnnotation(
                id=_clean_int(row.get('id'), default=i),
                name=_clean_str(row.get('name')),
                product=_clean_str(row.get('product')),
                start_pos=_clean_int(row.get('start_pos')),
                end_pos=_clean_int(row.get('end_pos')),
            ))
        return genes

    def _load_domains(self, df: pd.DataFrame) -> Dict[int, List[ProteinDomain]]:
        """Parse the protein-domain table, grouped by phage id."""
        domains: Dict[int, List[ProteinDomain]] = {}
        for _, row in df.iterrows():
            phage_id = _clean_int(row.get('phage_id'), default=None)
            domain_id = _clean_str(row.get('domain_id'))
            if phage_id is None or domain_id is None:
                continue
            domains.setdefault(phage_id, []).append(ProteinDomain(
                domain_id=domain_id,
                domain_name=_clean_str(row.get('domain_name')),
                domain_type=_clean_str(row.get('domain_type')),
                description=_clean_str(row.get('description')),
            ))
        return domains

    def _store(self,
               phages: List[PhageSummary],
               genes_by_id: Dict[int, List[GeneAnnotation]],
               domains_by_id: Dict[int, List[ProteinDomain]]) -> None:
        """Keep phages in name order and build indexes."""
        self.phages = sorted(phages, key=lambda p: (p.name.lower(), p.id))
        self.genes_by_id = genes_by_id
        self.domains_by_id = domains_by_id
        self._build_indexes()
        self._loaded = True

        logger.info("Loaded %d phages, %d genes, %d domains",
                    len(self.phages),
                    sum(len(g) for g in genes_by_id.values()),
                    sum(len(d) for d in domains_by_id.values()))

    def _build_indexes(self) -> None:
        """Build lookup indexes."""
        self.phage_by_id = {p.id: p for p in self.phages}
        self.phage_name_to_id = {}
        for phage in self.phages:
            self.phage_name_to_id.setdefault(phage.name.lower(), phage.id)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def resolve_phage(self, identifier) -> Optional[int]:
        """
        Resolve a phage identifier (id or name) to its id.
        Returns None if not found.
        """
        if isinstance(identifier, int):
            return identifier if identifier in self.phage_by_id else None
        text = str(identifier).strip()
        if text.isdigit() and int(text) in self.phage_by_id:
            return int(text)
        return self.phage_name_to_id.get(text.lower())

    def get_phage(self, phage_id: int) -> Optional[PhageSummary]:
        return self.phage_by_id.get(phage_id)

    def get_genes(self, phage_id: int) -> List[GeneAnnotation]:
        """Gene annotations for a phage (empty if none were supplied)."""
        return self.genes_by_id.get(phage_id, [])

    def get_domains(self, phage_id: int) -> List[ProteinDomain]:
        """Protein domains for a phage (empty if none were supplied)."""
        return self.domains_by_id.get(phage_id, [])

    def get_all_hosts(self) -> List[str]:
        """All distinct host labels, sorted."""
        return sorted({p.host for p in self.phages if p.host})


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    loader = DataLoader()
    loader.load()

    print(f"\nPhages: {[p.name for p in loader.phages]}")
    print(f"Hosts: {loader.get_all_hosts()}")
    for phage in loader.phages[:3]:
        print(f"  {phage.name}: {len(loader.get_genes(phage.id))} genes, "
              f"{len(loader.get_domains(phage.id))} domains")
