"""Thresholds, organism codes and curated term lists for DGE reporting.

Constants here are the single source for the significance rule, the
volcano plot styling and the curated GO term descriptions used by the
shared/unique term charts. ``load_config()`` layers environment
overrides (optionally from a ``.env`` file) on top of the defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

# =============================================================================
# Table columns
# =============================================================================

GENE_ID = "gene_id"
SYMBOL = "symbol"
LOG2FC = "log2FoldChange"
PVALUE = "pvalue"
PADJ = "padj"
EXPRESSION = "Expression"

# =============================================================================
# Significance thresholds
# =============================================================================

LOG2FC_THRESHOLD = 0.5
PADJ_THRESHOLD = 0.05

# Expression labels
UPREGULATED = "Upregulated"
DOWNREGULATED = "Downregulated"
NOT_SIGNIFICANT = "NotSignificant"
EXPRESSION_LABELS = (UPREGULATED, DOWNREGULATED, NOT_SIGNIFICANT)

# =============================================================================
# Organisms (g:Profiler organism codes)
# =============================================================================

SOURCE_ORGANISM = "drerio"
TARGET_ORGANISM = "hsapiens"

# =============================================================================
# GO enrichment
# =============================================================================

ONTOLOGY_SOURCES: Dict[str, List[str]] = {
    "ALL": ["GO:BP", "GO:CC", "GO:MF"],
    "BP": ["GO:BP"],
    "CC": ["GO:CC"],
    "MF": ["GO:MF"],
}

# p-adjust method names accepted on input -> g:Profiler threshold methods
PADJ_METHODS: Dict[str, str] = {
    "BH": "fdr",
    "fdr": "fdr",
    "bonferroni": "bonferroni",
    "g_SCS": "g_SCS",
}

DEFAULT_PADJ_METHOD = "BH"
DEFAULT_PVALUE_CUTOFF = 0.05
DEFAULT_TOP_N = 10
MIN_GENES_FOR_ENRICHMENT = 3

# Curated term descriptions compared across conditions. Terms enriched in
# every regeneration comparison go in SHARED_GO_TERMS; terms seen only in
# a single comparison go in UNIQUE_GO_TERMS.
SHARED_GO_TERMS: List[str] = [
    "extracellular matrix organization",
    "collagen fibril organization",
    "response to wounding",
    "angiogenesis",
    "cell migration",
    "extracellular matrix",
    "collagen-containing extracellular matrix",
    "extracellular matrix structural constituent",
]

UNIQUE_GO_TERMS: List[str] = [
    "inflammatory response",
    "immune system process",
    "regulation of cell population proliferation",
    "muscle structure development",
    "sarcomere",
    "actin binding",
    "mitochondrial inner membrane",
    "oxidoreductase activity",
]

# =============================================================================
# Volcano plot styling
# =============================================================================

VOLCANO_STYLE: Dict[str, dict] = {
    UPREGULATED: {"color": "#d62728", "size": 6, "opacity": 0.8},
    DOWNREGULATED: {"color": "#1f77b4", "size": 6, "opacity": 0.8},
    NOT_SIGNIFICANT: {"color": "#95a5a6", "size": 4, "opacity": 0.4},
}

GUIDE_LINE_STYLE = {"color": "black", "width": 1, "dash": "dash"}

# Low/high ends of the p.adjust gradient on enrichment bar charts
PADJ_COLORSCALE = [[0.0, "#d62728"], [1.0, "#1f77b4"]]

# Smallest padj used before taking -log10 (padj == 0 would be infinite)
MIN_PLOTTED_PADJ = 1e-300


# =============================================================================
# Run configuration
# =============================================================================


@dataclass
class AnalysisConfig:
    """Parameters for one pipeline run."""

    source_organism: str = SOURCE_ORGANISM
    target_organism: str = TARGET_ORGANISM
    ontology: str = "ALL"
    padj_method: str = DEFAULT_PADJ_METHOD
    pvalue_cutoff: float = DEFAULT_PVALUE_CUTOFF
    top_n: int = DEFAULT_TOP_N
    min_genes: int = MIN_GENES_FOR_ENRICHMENT
    split_directions: bool = False
    output_dir: Path = Path("reports")
    shared_terms: List[str] = field(default_factory=lambda: list(SHARED_GO_TERMS))
    unique_terms: List[str] = field(default_factory=lambda: list(UNIQUE_GO_TERMS))

    def __post_init__(self):
        if self.ontology not in ONTOLOGY_SOURCES:
            raise ValueError(
                f"Unknown ontology {self.ontology!r}; "
                f"expected one of {', '.join(ONTOLOGY_SOURCES)}"
            )
        if self.padj_method not in PADJ_METHODS:
            raise ValueError(
                f"Unknown p-adjust method {self.padj_method!r}; "
                f"expected one of {', '.join(PADJ_METHODS)}"
            )
        self.output_dir = Path(self.output_dir)


def load_config(env_file: Optional[Path] = None, **overrides) -> AnalysisConfig:
    """
    Load ``.env`` and build an AnalysisConfig.

    Environment variables (all optional):
        ZFISH_DGE_SOURCE_ORGANISM, ZFISH_DGE_TARGET_ORGANISM,
        ZFISH_DGE_PADJ_METHOD, ZFISH_DGE_TOP_N, ZFISH_DGE_OUTPUT_DIR

    Keyword overrides win over the environment.
    """
    load_dotenv(dotenv_path=env_file)

    raw_top_n = os.environ.get("ZFISH_DGE_TOP_N", DEFAULT_TOP_N)
    try:
        top_n = int(raw_top_n)
    except ValueError:
        raise ValueError(f"ZFISH_DGE_TOP_N must be an integer, got {raw_top_n!r}") from None

    values = {
        "source_organism": os.environ.get("ZFISH_DGE_SOURCE_ORGANISM", SOURCE_ORGANISM),
        "target_organism": os.environ.get("ZFISH_DGE_TARGET_ORGANISM", TARGET_ORGANISM),
        "padj_method": os.environ.get("ZFISH_DGE_PADJ_METHOD", DEFAULT_PADJ_METHOD),
        "top_n": top_n,
        "output_dir": Path(os.environ.get("ZFISH_DGE_OUTPUT_DIR", "reports")),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return AnalysisConfig(**values)


def read_term_list(path: Path) -> List[str]:
    """Read one term description per line, skipping blanks and ``#`` comments."""
    terms = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line and not line.startswith("#"):
                terms.append(line)
    return terms
