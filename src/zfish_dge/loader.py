"""
Loader for per-comparison DGE result tables.

Each comparison is a CSV file named ``<treatment>_vs_<reference>.csv``
(e.g. ``regen_3dpa_vs_uninjured.csv``; ``.tsv`` and ``.csv.gz`` also load)
with at least these columns:

- gene_id         zebrafish Ensembl gene id (ENSDARG...)
- log2FoldChange  log2 ratio treatment / reference
- pvalue          raw p-value
- padj            adjusted p-value
- a gene symbol column (symbol, gene_symbol, gene_name or external_gene_name)

Missing statistics ("NA", blank) load as NaN. Missing required columns
raise MalformedTableError.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import pandas as pd

from zfish_dge.config import GENE_ID, LOG2FC, PADJ, PVALUE, SYMBOL
from zfish_dge.model import DGE_COLUMNS, ComparisonTable

logger = logging.getLogger(__name__)

SYMBOL_ALIASES = ("symbol", "gene_symbol", "gene_name", "external_gene_name", "Symbol")

_COMPARISON_NAME = re.compile(r"^(?P<treatment>.+?)_vs_(?P<reference>.+)$")

COMPARISON_PATTERNS = ("*_vs_*.csv", "*_vs_*.tsv", "*_vs_*.csv.gz")

NA_VALUES =["", "NA", "N/A", "NaN", "nan", "null", "None"]


class MalformedTableError(ValueError):
    """Raised when a comparison file cannot be used as a DGE table."""


def parse_comparison_name(path: Union[str, Path]) -> Tuple[str, str]:
    """
    Split a comparison file name into its condition labels.

    Args:
        path: File path or stem like ``regen_vs_control.csv``

    Returns:
        Tuple of (treatment, reference)
    """
    stem = Path(path).name
    for suffix in (".csv.gz", ".csv", ".tsv"):
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    match = _COMPARISON_NAME.match(stem)
    if not match:
        raise MalformedTableError(
            f"Cannot derive condition labels from {Path(path).name!r}; "
            "expected '<treatment>_vs_<reference>.csv'"
        )
    return match.group("treatment"), match.group("reference")


def _resolve_symbol_column(columns: Iterable[str]) -> Optional[str]:
    columns = list(columns)
    for alias in SYMBOL_ALIASES:
        if alias in columns:
            return alias
    return None


def normalize_columns(df: pd.DataFrame, source: str = "<frame>") -> pd.DataFrame:
    """
    Validate required columns and bring a raw table to the DGE column set.

    The symbol column is renamed to ``symbol`` and statistics are coerced
    to floats; unparseable values become NaN. Extra columns are kept
    after the required ones.
    """
    symbol_col = _resolve_symbol_column(df.columns)
    missing = [c for c in (GENE_ID, LOG2FC, PVALUE, PADJ) if c not in df.columns]
    if symbol_col is None:
        missing.append("gene symbol (" + " | ".join(SYMBOL_ALIASES[:4]) + ")")
    if missing:
        raise MalformedTableError(
            f"{source}: missing required columns: {', '.join(missing)}"
        )

    out = df.rename(columns={symbol_col: SYMBOL}) if symbol_col != SYMBOL else df.copy()
    ids = out[GENE_ID]
    out[GENE_ID] = ids.where(ids.isna(), ids.astype(str).str.strip())
    for col in (LOG2FC, PVALUE, PADJ):
        coerced = pd.to_numeric(out[col], errors="coerce")
        n_bad = int(coerced.isna().sum() - out[col].isna().sum())
        if n_bad > 0:
            logger.warning("%s: %d non-numeric %s values treated as NA", source, n_bad, col)
        out[col] = coerced

    extras = [c for c in out.columns if c not in DGE_COLUMNS]
    return out[DGE_COLUMNS + extras]


def read_dge_table(path: Union[str, Path], sep: Optional[str] = None) -> pd.DataFrame:
    """
    Read one DGE CSV into a normalized DataFrame.

    Args:
        path: CSV (or TSV) file
        sep: Field separator; inferred from the extension when omitted

    Raises:
        MalformedTableError: unreadable file, empty file or missing columns
    """
    path = Path(path)
    if sep is None:
        sep = "\t" if path.suffix == ".tsv" else ","

    try:
        df = pd.read_csv(path, sep=sep, na_values=NA_VALUES, keep_default_na=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise MalformedTableError(f"{path.name}: cannot parse table ({exc})") from exc

    # R's write.csv leaves an unnamed row-name column in front
    unnamed = [c for c in df.columns if str(c).startswith("Unnamed:")]
    if unnamed and GENE_ID not in df.columns:
        df = df.rename(columns={unnamed[0]: GENE_ID})

    return normalize_columns(df, source=path.name)


def load_comparison(
    path: Union[str, Path],
    treatment: Optional[str] = None,
    reference: Optional[str] = None,
) -> ComparisonTable:
    """
    Load one comparison file.

    Condition labels come from the file name unless both are given.
    """
    path = Path(path)
    if treatment is None or reference is None:
        treatment, reference = parse_comparison_name(path)

    df = read_dge_table(path)
    logger.info("Loaded %s: %d rows (%s vs %s)", path.name, len(df), treatment, reference)
    return ComparisonTable(
        treatment=treatment,
        reference=reference,
        data=df,
        source_path=str(path),
    )


def find_comparison_files(input_dir: Union[str, Path]) -> List[Path]:
    """Comparison tables (.csv, .tsv, .csv.gz) in a directory, sorted by name."""
    input_dir = Path(input_dir)
    found = {p for pattern in COMPARISON_PATTERNS for p in input_dir.glob(pattern) if p.is_file()}
    return sorted(found)


def load_comparisons(paths: Iterable[Union[str, Path]]) -> List[ComparisonTable]:
    """Load several comparison files in order."""
    return [load_comparison(p) for p in paths]
