"""Tests for the zfish-dge command line (g:Profiler mocked)."""

from unittest.mock import patch

import pandas as pd
import pytest
from click.testing import CliRunner

from zfish_dge.cli import cli

REGEN = """gene_id,gene_name,log2FoldChange,pvalue,padj
ZF1,col1a1a,2.0,0.0001,0.001
ZF2,mmp9,-1.5,0.0001,0.002
ZF3,fn1a,0.9,0.001,0.01
ZF5,actb1,0.1,0.5,0.8
"""

INJURY = """gene_id,gene_name,log2FoldChange,pvalue,padj
ZF1,col1a1a,1.0,0.001,0.01
ZF3,fn1a,-0.7,0.001,0.03
ZF6,sox9a,0.2,0.4,NA
"""


def _make_orth_rows(organism, query, target):
    return [
        {"incoming": g, "name": f"HUMAN_{g}", "ortholog_ensg": f"ENSG_{g}"}
        for g in query
    ]


def _make_profile_rows(**kwargs):
    query = kwargs["query"]
    return [{
        "source": "GO:BP",
        "native": "GO:0001525",
        "name": "angiogenesis",
        "p_value": 0.001,
        "term_size": 100,
        "query_size": len(query),
        "intersection_size": len(query),
        "effective_domain_size": 20000,
        "intersections": list(query),
        "evidences": [["IDA"]] * len(query),
    }]


@pytest.fixture
def inputs(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    regen = data / "regen_vs_uninjured.csv"
    injury = data / "injury_vs_uninjured.csv"
    regen.write_text(REGEN)
    injury.write_text(INJURY)
    return data, regen, injury


@pytest.fixture
def gprofiler():
    with patch("zfish_dge.orthologs.GProfiler") as orth_cls, \
            patch("zfish_dge.enrichment.GProfiler") as gost_cls:
        orth_cls.return_value.orth.side_effect = _make_orth_rows
        gost_cls.return_value.profile.side_effect = _make_profile_rows
        yield orth_cls.return_value, gost_cls.return_value


class TestClassifyCommand:

    def test_writes_tables(self, inputs, tmp_path):
        _, regen, injury = inputs
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["classify", str(regen), str(injury), "--output-dir", str(out)])

        assert result.exit_code == 0, result.output
        assert "regen_vs_uninjured: 2 up, 1 down, 4 total" in result.output
        significant = pd.read_csv(out / "regen_vs_uninjured_significant.csv")
        assert significant["gene_id"].tolist() == ["ZF1", "ZF2", "ZF3"]
        assert (out / "expression_summary.csv").exists()

    def test_malformed_file_reported(self, inputs, tmp_path):
        _, regen, _ = inputs
        bad = tmp_path / "data" / "bad_vs_ctrl.csv"
        bad.write_text("gene_id,log2FoldChange\nZF1,1.0\n")
        result = CliRunner().invoke(
            cli, ["classify", str(bad), str(regen), "--output-dir", str(tmp_path / "out")]
        )
        assert result.exit_code == 0
        assert "Skipping bad_vs_ctrl.csv" in result.output

    def test_all_files_malformed(self, tmp_path):
        bad = tmp_path / "bad_vs_ctrl.csv"
        bad.write_text("gene_id\nZF1\n")
        result = CliRunner().invoke(cli, ["classify", str(bad), "--output-dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "No comparison tables could be loaded" in result.output


class TestChartCommands:

    def test_volcano_html(self, inputs, tmp_path):
        _, regen, _ = inputs
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["volcano", str(regen), "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        assert (out / "regen_vs_uninjured_volcano.html").exists()

    def test_volcano_rejects_unknown_format(self, inputs, tmp_path):
        _, regen, _ = inputs
        result = CliRunner().invoke(cli, ["volcano", str(regen), "--format", "gif"])
        assert result.exit_code == 2

    def test_overlap(self, inputs, tmp_path):
        _, regen, injury = inputs
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["overlap", str(injury), str(regen), "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        assert "injury_vs_uninjured & regen_vs_uninjured: 2" in result.output
        assert (out / "overlaps.html").exists()

    def test_overlap_needs_two(self, inputs, tmp_path):
        _, regen, _ = inputs
        result = CliRunner().invoke(cli, ["overlap", str(regen), "--output-dir", str(tmp_path)])
        assert result.exit_code == 2


class TestServiceCommands:

    def test_orthologs(self, inputs, tmp_path, gprofiler):
        orth, _ = gprofiler
        _, regen, _ = inputs
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["orthologs", str(regen), "--output-dir", str(out)])

        assert result.exit_code == 0, result.output
        assert "3/3 genes mapped to hsapiens" in result.output
        orth.orth.assert_called_once_with(
            organism="drerio", query=["ZF1", "ZF2", "ZF3"], target="hsapiens"
        )
        joined = pd.read_csv(out / "regen_vs_uninjured_orthologs.csv")
        assert joined["ortholog_name"].tolist() == ["HUMAN_ZF1", "HUMAN_ZF2", "HUMAN_ZF3"]

    def test_enrich(self, inputs, tmp_path, gprofiler):
        _, gost = gprofiler
        _, regen, _ = inputs
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, [
            "enrich", str(regen),
            "--output-dir", str(out),
            "--ontology", "BP",
            "--padj-method", "BH",
            "--cutoff", "0.01",
            "--top-n", "5",
        ])

        assert result.exit_code == 0, result.output
        kwargs = gost.profile.call_args[1]
        assert kwargs["sources"] == ["GO:BP"]
        assert kwargs["significance_threshold_method"] == "fdr"
        assert kwargs["user_threshold"] == 0.01
        terms = pd.read_csv(out / "regen_vs_uninjured_go_enrichment.csv")
        assert terms["description"].tolist() == ["angiogenesis"]
        assert (out / "regen_vs_uninjured_go_BP.html").exists()

    def test_enrich_rejects_unknown_ontology(self, inputs):
        _, regen, _ = inputs
        result = CliRunner().invoke(cli, ["enrich", str(regen), "--ontology", "KEGG"])
        assert result.exit_code == 2

    def test_run(self, inputs, tmp_path, gprofiler):
        data, _, _ = inputs
        terms_file = tmp_path / "terms.txt"
        terms_file.write_text("# curated\nangiogenesis\n")
        out = tmp_path / "reports"
        result = CliRunner().invoke(cli, [
            "run", str(data), "--output-dir", str(out), "--terms-file", str(terms_file),
        ])

        assert result.exit_code == 0, result.output
        assert "Processing 2 comparison files" in result.output
        shared = pd.read_csv(out / "shared_go_terms.csv")
        assert shared["condition"].tolist() == ["regen_vs_uninjured"]
        assert (out / "overlaps.csv").exists()
        assert (out / "injury_vs_uninjured_volcano.html").exists()

    def test_run_empty_directory(self, tmp_path):
        result = CliRunner().invoke(cli, ["run", str(tmp_path), "--output-dir", str(tmp_path / "out")])
        assert result.exit_code == 1
        assert "No comparison files (*_vs_*.csv, *_vs_*.tsv, *_vs_*.csv.gz)" in result.output
