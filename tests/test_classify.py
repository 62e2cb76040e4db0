"""Tests for expression classification, deduplication and filtering."""

import numpy as np
import pandas as pd
import pytest

from zfish_dge.classify import (
    classify_expression,
    classify_table,
    deduplicate,
    filter_significant,
    split_by_direction,
    summarize_expression,
)
from zfish_dge.model import DGERecord


def _make_table(rows):
    """rows: list of (gene_id, log2FoldChange, padj)."""
    return pd.DataFrame({
        "gene_id": [r[0] for r in rows],
        "symbol": [f"sym{i}" for i in range(len(rows))],
        "log2FoldChange": [r[1] for r in rows],
        "pvalue": [0.001] * len(rows),
        "padj": [r[2] for r in rows],
    })


# ---------------------------------------------------------------------------
# classify_expression
# ---------------------------------------------------------------------------

class TestClassifyExpression:

    def test_upregulated_at_threshold(self):
        assert classify_expression(0.5, 0.01) == "Upregulated"

    def test_downregulated_at_threshold(self):
        assert classify_expression(-0.5, 0.01) == "Downregulated"

    def test_small_fold_change_not_significant(self):
        assert classify_expression(0.3, 0.001) == "NotSignificant"

    def test_high_padj_not_significant(self):
        assert classify_expression(-2.0, 0.2) == "NotSignificant"

    def test_padj_at_cutoff_not_significant(self):
        assert classify_expression(3.0, 0.05) == "NotSignificant"

    def test_just_below_fold_threshold(self):
        assert classify_expression(0.4999, 0.001) == "NotSignificant"
        assert classify_expression(-0.4999, 0.001) == "NotSignificant"

    @pytest.mark.parametrize("padj", [None, float("nan"), np.nan])
    def test_missing_padj(self, padj):
        assert classify_expression(4.0, padj) == "NotSignificant"

    def test_missing_log2fc(self):
        assert classify_expression(None, 0.001) == "NotSignificant"
        assert classify_expression(np.nan, 0.001) == "NotSignificant"

    def test_record_property(self):
        rec = DGERecord(gene_id="ENSDARG01", log2_fold_change=-1.2, padj=0.003)
        assert rec.expression == "Downregulated"

    def test_record_from_row_maps_nan_to_none(self):
        row = _make_table([("ENSDARG01", 1.0, np.nan)]).iloc[0]
        rec = DGERecord.from_row(row)
        assert rec.padj is None
        assert rec.expression == "NotSignificant"


# ---------------------------------------------------------------------------
# classify_table
# ---------------------------------------------------------------------------

class TestClassifyTable:

    def test_matches_scalar_rule(self):
        rows = [
            ("g1", 0.5, 0.01),
            ("g2", 0.3, 0.001),
            ("g3", -2.0, 0.2),
            ("g4", -0.5, 0.049),
            ("g5", 1.0, np.nan),
            ("g6", np.nan, 0.001),
            ("g7", 2.0, 0.05),
        ]
        df = classify_table(_make_table(rows))
        expected = [classify_expression(r[1], r[2]) for r in rows]
        assert df["Expression"].tolist() == expected

    def test_does_not_modify_input(self):
        table = _make_table([("g1", 1.0, 0.01)])
        classify_table(table)
        assert "Expression" not in table.columns


# ---------------------------------------------------------------------------
# filter_significant / split_by_direction
# ---------------------------------------------------------------------------

class TestFilterSignificant:

    def test_examples(self):
        table = _make_table([
            ("kept", 0.5, 0.01),
            ("small", 0.3, 0.001),
            ("weak", -2.0, 0.2),
        ])
        result = filter_significant(classify_table(table))
        assert result["gene_id"].tolist() == ["kept"]

    def test_retained_rows_satisfy_rule(self):
        rng = np.random.default_rng(0)
        table = _make_table([
            (f"g{i}", float(l2fc), float(p))
            for i, (l2fc, p) in enumerate(zip(rng.normal(0, 1.5, 200), rng.uniform(0, 0.1, 200)))
        ])
        kept = filter_significant(table)
        assert (kept["log2FoldChange"].abs() >= 0.5).all()
        assert (kept["padj"] < 0.05).all()

        excluded = table[~table["gene_id"].isin(kept["gene_id"])]
        passes = (excluded["log2FoldChange"].abs() >= 0.5) & (excluded["padj"] < 0.05)
        assert not passes.any()

    def test_na_rows_excluded(self):
        table = _make_table([("na_padj", 2.0, np.nan), ("na_fc", np.nan, 0.001)])
        assert filter_significant(table).empty

    def test_input_untouched(self):
        table = _make_table([("a", 2.0, 0.01), ("b", 0.1, 0.9)])
        before = table.copy()
        filter_significant(table)
        pd.testing.assert_frame_equal(table, before)

    def test_split_by_direction(self):
        table = _make_table([
            ("up", 1.5, 0.01),
            ("down", -0.7, 0.02),
            ("ns", 0.1, 0.01),
        ])
        up, down = split_by_direction(table)
        assert up["gene_id"].tolist() == ["up"]
        assert down["gene_id"].tolist() == ["down"]


# ---------------------------------------------------------------------------
# deduplicate
# ---------------------------------------------------------------------------

class TestDeduplicate:

    def test_keeps_first_row(self):
        table = _make_table([
            ("g1", 1.0, 0.01),
            ("g2", -1.0, 0.01),
            ("g1", 5.0, 0.5),
        ])
        result = deduplicate(table)
        assert result["gene_id"].tolist() == ["g1", "g2"]
        assert result.loc[0, "log2FoldChange"] == 1.0
        assert not result["gene_id"].duplicated().any()

    def test_drops_missing_ids(self):
        table = _make_table([
            ("g1", 1.0, 0.01),
            (None, 2.0, 0.01),
            ("  ", 2.0, 0.01),
        ])
        result = deduplicate(table)
        assert result["gene_id"].tolist() == ["g1"]


# ---------------------------------------------------------------------------
# summarize_expression
# ---------------------------------------------------------------------------

class TestSummarizeExpression:

    def test_counts(self):
        table = _make_table([
            ("g1", 1.0, 0.01),
            ("g2", 2.0, 0.01),
            ("g3", -1.0, 0.01),
            ("g4", 0.0, 0.9),
        ])
        summary = summarize_expression(table)
        assert summary == {
            "Upregulated": 2,
            "Downregulated": 1,
            "NotSignificant": 1,
            "total": 4,
        }
