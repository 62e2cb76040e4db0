"""Tests for loading comparison DGE tables."""

import gzip

import numpy as np
import pandas as pd
import pytest

from zfish_dge.loader import (
    MalformedTableError,
    find_comparison_files,
    load_comparison,
    load_comparisons,
    normalize_columns,
    parse_comparison_name,
    read_dge_table,
)

CSV = """gene_id,gene_name,baseMean,log2FoldChange,pvalue,padj
ENSDARG00000000001,col1a1a,512.3,2.1,0.0001,0.001
ENSDARG00000000002,mmp9,88.0,-1.4,0.002,0.01
ENSDARG00000000003,actb1,1020.5,0.05,0.8,NA
"""


def _write(tmp_path, name, text=CSV):
    path = tmp_path / name
    path.write_text(text)
    return path


# ---------------------------------------------------------------------------
# File names
# ---------------------------------------------------------------------------

class TestParseComparisonName:

    def test_basic(self):
        assert parse_comparison_name("regen_3dpa_vs_uninjured.csv") == ("regen_3dpa", "uninjured")

    def test_path_and_gz(self, tmp_path):
        assert parse_comparison_name(tmp_path / "a_vs_b.csv.gz") == ("a", "b")

    def test_bad_name(self):
        with pytest.raises(MalformedTableError):
            parse_comparison_name("results.csv")


# ---------------------------------------------------------------------------
# Column handling
# ---------------------------------------------------------------------------

class TestNormalizeColumns:

    def test_symbol_alias_renamed(self):
        df = pd.DataFrame({
            "gene_id": ["g1"],
            "external_gene_name": ["sym"],
            "log2FoldChange": [1.0],
            "pvalue": [0.01],
            "padj": [0.02],
        })
        out = normalize_columns(df)
        assert list(out.columns)[:5] == ["gene_id", "symbol", "log2FoldChange", "pvalue", "padj"]
        assert out.loc[0, "symbol"] == "sym"

    def test_missing_columns(self):
        df = pd.DataFrame({"gene_id": ["g1"], "log2FoldChange": [1.0]})
        with pytest.raises(MalformedTableError) as exc:
            normalize_columns(df, source="x.csv")
        assert "padj" in str(exc.value)
        assert "gene symbol" in str(exc.value)

    def test_non_numeric_values_become_nan(self):
        df = pd.DataFrame({
            "gene_id": [" g1 ", "g2"],
            "symbol": ["a", "b"],
            "log2FoldChange": ["1.5", "oops"],
            "pvalue": [0.01, 0.02],
            "padj": [0.02, 0.03],
        })
        out = normalize_columns(df)
        assert out.loc[0, "gene_id"] == "g1"
        assert out.loc[0, "log2FoldChange"] == 1.5
        assert np.isnan(out.loc[1, "log2FoldChange"])


# ---------------------------------------------------------------------------
# Reading files
# ---------------------------------------------------------------------------

class TestReadDgeTable:

    def test_reads_na_as_nan(self, tmp_path):
        df = read_dge_table(_write(tmp_path, "a_vs_b.csv"))
        assert len(df) == 3
        assert np.isnan(df.loc[2, "padj"])
        assert "baseMean" in df.columns

    def test_unnamed_first_column_is_gene_id(self, tmp_path):
        text = CSV.replace("gene_id,", ",", 1)
        df = read_dge_table(_write(tmp_path, "a_vs_b.csv", text))
        assert df.loc[0, "gene_id"] == "ENSDARG00000000001"

    def test_tsv(self, tmp_path):
        df = read_dge_table(_write(tmp_path, "a_vs_b.tsv", CSV.replace(",", "\t")))
        assert df.loc[1, "symbol"] == "mmp9"

    def test_empty_file(self, tmp_path):
        with pytest.raises(MalformedTableError):
            read_dge_table(_write(tmp_path, "a_vs_b.csv", ""))


class TestLoadComparison:

    def test_labels_from_name(self, tmp_path):
        table = load_comparison(_write(tmp_path, "regen_vs_uninjured.csv"))
        assert table.treatment == "regen"
        assert table.reference == "uninjured"
        assert table.name == "regen_vs_uninjured"
        assert len(table) == 3
        assert table.gene_ids[0] == "ENSDARG00000000001"

    def test_explicit_labels(self, tmp_path):
        table = load_comparison(_write(tmp_path, "results.csv"), treatment="t", reference="r")
        assert table.name == "t_vs_r"

    def test_find_and_load_sorted(self, tmp_path):
        _write(tmp_path, "b_vs_ctrl.csv")
        _write(tmp_path, "a_vs_ctrl.csv")
        _write(tmp_path, "notes.csv")
        paths = find_comparison_files(tmp_path)
        assert [p.name for p in paths] == ["a_vs_ctrl.csv", "b_vs_ctrl.csv"]
        assert [t.name for t in load_comparisons(paths)] == ["a_vs_ctrl", "b_vs_ctrl"]

    def test_find_tsv_and_gzip(self, tmp_path):
        _write(tmp_path, "a_vs_ctrl.csv")
        _write(tmp_path, "b_vs_ctrl.tsv", CSV.replace(",", "\t"))
        (tmp_path / "c_vs_ctrl.csv.gz").write_bytes(gzip.compress(CSV.encode()))
        _write(tmp_path, "d_vs_ctrl.txt")

        paths = find_comparison_files(tmp_path)

        assert [p.name for p in paths] == ["a_vs_ctrl.csv", "b_vs_ctrl.tsv", "c_vs_ctrl.csv.gz"]
        tables = load_comparisons(paths)
        assert [t.name for t in tables] == ["a_vs_ctrl", "b_vs_ctrl", "c_vs_ctrl"]
        assert all(len(t.data) == 3 for t in tables)
