"""Deduplication, expression classification and significance filtering.

A gene is Upregulated when log2FoldChange >= 0.5 and padj < 0.05,
Downregulated when log2FoldChange <= -0.5 and padj < 0.05, and
NotSignificant otherwise. Missing padj or log2FoldChange values are
NotSignificant, never an error. None of these functions modify the
frame they are given.
"""

import logging
import math
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from zfish_dge.config import (
    DOWNREGULATED,
    EXPRESSION,
    EXPRESSION_LABELS,
    GENE_ID,
    LOG2FC,
    LOG2FC_THRESHOLD,
    NOT_SIGNIFICANT,
    PADJ,
    PADJ_THRESHOLD,
    UPREGULATED,
)

logger = logging.getLogger(__name__)


def _is_missing(value: Optional[float]) -> bool:
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return True


def classify_expression(log2fc: Optional[float], padj: Optional[float]) -> str:
    """
    Label one gene from its fold change and adjusted p-value.

    Args:
        log2fc: log2 fold change (None/NaN allowed)
        padj: multiple-testing adjusted p-value (None/NaN allowed)

    Returns:
        "Upregulated", "Downregulated" or "NotSignificant"
    """
    if _is_missing(log2fc) or _is_missing(padj):
        return NOT_SIGNIFICANT
    if padj >= PADJ_THRESHOLD:
        return NOT_SIGNIFICANT
    if log2fc >= LOG2FC_THRESHOLD:
        return UPREGULATED
    if log2fc <= -LOG2FC_THRESHOLD:
        return DOWNREGULATED
    return NOT_SIGNIFICANT


def _significant_mask(df: pd.DataFrame) -> pd.Series:
    # NaN comparisons are False, so missing values never pass
    return (df[PADJ] < PADJ_THRESHOLD) & (df[LOG2FC].abs() >= LOG2FC_THRESHOLD)


def deduplicate(df: pd.DataFrame, key: str = GENE_ID) -> pd.DataFrame:
    """
    Keep the first row per gene identifier, in file order.

    Rows without an identifier cannot be keyed and are dropped.
    """
    missing = df[key].isna() | (df[key].astype(str).str.strip() == "")
    if missing.any():
        logger.warning("Dropping %d rows without a %s", int(missing.sum()), key)

    deduped = df[~missing].drop_duplicates(subset=key, keep="first")
    n_dupes = int((~missing).sum()) - len(deduped)
    if n_dupes:
        logger.info("Removed %d duplicate %s rows", n_dupes, key)
    return deduped.reset_index(drop=True)


def classify_table(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``df`` with the Expression column filled in."""
    out = df.copy()
    significant = _significant_mask(out)
    out[EXPRESSION] = np.select(
        [significant & (out[LOG2FC] > 0), significant & (out[LOG2FC] < 0)],
        [UPREGULATED, DOWNREGULATED],
        default=NOT_SIGNIFICANT,
    )
    return out


def filter_significant(df: pd.DataFrame) -> pd.DataFrame:
    """Rows with |log2FoldChange| >= 0.5 and padj < 0.05; others removed."""
    return df[_significant_mask(df)].reset_index(drop=True)


def split_by_direction(df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Separate significant genes into upregulated and downregulated frames.

    Returns:
        Tuple of (upregulated, downregulated)
    """
    significant = filter_significant(df)
    up = significant[significant[LOG2FC] > 0].reset_index(drop=True)
    down = significant[significant[LOG2FC] < 0].reset_index(drop=True)
    return up, down


def summarize_expression(df: pd.DataFrame) -> Dict[str, int]:
    """Count genes per Expression label (classifying first if needed)."""
    if EXPRESSION not in df.columns:
        df = classify_table(df)
    counts = df[EXPRESSION].value_counts()
    summary = {label: int(counts.get(label, 0)) for label in EXPRESSION_LABELS}
    summary["total"] = int(len(df))
    return summary
