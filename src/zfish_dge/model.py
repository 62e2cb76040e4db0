"""Data model for per-comparison DGE tables and their annotations.

Tables are carried as pandas DataFrames; the dataclasses here give the
row-level records (DGE records, ortholog mappings, enriched terms) and
the per-comparison container a name and a stable set of columns.
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Dict, List, Optional

import pandas as pd

from zfish_dge.classify import classify_expression
from zfish_dge.config import GENE_ID, LOG2FC, PADJ, PVALUE, SYMBOL

DGE_COLUMNS = [GENE_ID, SYMBOL, LOG2FC, PVALUE, PADJ]

ORTHOLOG_COLUMNS = ["source_gene_id", "ortholog_name", "ortholog_ensembl_id"]

ENRICHMENT_COLUMNS = [
    "term_id",
    "description",
    "ontology",
    "p.adjust",
    "fold_enrichment",
    "gene_count",
    "term_size",
    "query_size",
    "genes",
]


@dataclass
class DGERecord:
    """A single gene row from a differential expression table."""

    gene_id: str
    log2_fold_change: Optional[float] = None
    pvalue: Optional[float] = None
    padj: Optional[float] = None
    symbol: Optional[str] = None

    @property
    def expression(self) -> str:
        """Upregulated / Downregulated / NotSignificant label for this gene."""
        return classify_expression(self.log2_fold_change, self.padj)

    @classmethod
    def from_row(cls, row: pd.Series) -> "DGERecord":
        def _value(name):
            value = row.get(name)
            return None if pd.isna(value) else value

        return cls(
            gene_id=row[GENE_ID],
            log2_fold_change=_value(LOG2FC),
            pvalue=_value(PVALUE),
            padj=_value(PADJ),
            symbol=_value(SYMBOL),
        )


@dataclass
class ComparisonTable:
    """DGE results for one pairwise contrast (treatment vs reference)."""

    treatment: str
    reference: str
    data: pd.DataFrame
    source_path: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.treatment}_vs_{self.reference}"

    @property
    def gene_ids(self) -> List[str]:
        return self.data[GENE_ID].tolist()

    def records(self) -> List[DGERecord]:
        return [DGERecord.from_row(row) for _, row in self.data.iterrows()]

    def with_data(self, data: pd.DataFrame) -> "ComparisonTable":
        """Return a copy of this comparison carrying a new frame."""
        return replace(self, data=data)

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class OrthologMapping:
    """One ortholog returned by the cross-species mapping service."""

    source_gene_id: str
    ortholog_name: Optional[str]
    ortholog_ensembl_id: Optional[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class MappingReport:
    """Summary of an ortholog mapping call."""

    input_count: int
    mapped_count: int
    unmapped_count: int
    duplicate_names_dropped: int
    null_ids_dropped: int
    source_organism: str
    target_organism: str
    unmapped_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class EnrichedTerm:
    """A single GO term from an enrichment service."""

    term_id: str  # e.g. "GO:0030198"
    description: str
    ontology: str  # "BP" | "CC" | "MF"
    p_adjust: float
    gene_count: int
    term_size: int = 0
    query_size: int = 0
    effective_domain_size: int = 0
    genes: List[str] = field(default_factory=list)

    @property
    def fold_enrichment(self) -> float:
        """(hits / query) over (term size / annotated background)."""
        if not (self.query_size and self.term_size and self.effective_domain_size):
            return float("nan")
        return (self.gene_count / self.query_size) / (
            self.term_size / self.effective_domain_size
        )

    def to_row(self) -> Dict:
        return {
            "term_id": self.term_id,
            "description": self.description,
            "ontology": self.ontology,
            "p.adjust": self.p_adjust,
            "fold_enrichment": self.fold_enrichment,
            "gene_count": self.gene_count,
            "term_size": self.term_size,
            "query_size": self.query_size,
            "genes": list(self.genes),
        }
