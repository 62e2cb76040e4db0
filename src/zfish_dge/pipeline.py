"""
DGE reporting pipeline orchestrator.

Runs every comparison file through deduplication, classification,
significance filtering, ortholog mapping and GO enrichment, then
computes overlaps between the comparisons' significant gene sets and
the curated shared/unique term tables.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from zfish_dge.classify import (
    classify_table,
    deduplicate,
    filter_significant,
    split_by_direction,
    summarize_expression,
)
from zfish_dge.config import AnalysisConfig
from zfish_dge.enrichment import (
    EnrichmentAnalyzer,
    EnrichmentBackend,
    compare_terms,
    top_terms,
)
from zfish_dge.loader import MalformedTableError, load_comparison
from zfish_dge.model import ComparisonTable, MappingReport
from zfish_dge.orthologs import OrthologBackend, OrthologMapper
from zfish_dge.overlap import overlap_table, significant_gene_sets, venn_regions
from zfish_dge.visualizer import ReportVisualizer

logger = logging.getLogger(__name__)


class PipelineResult:
    """Container for pipeline results, keyed by comparison name."""

    def __init__(self):
        self.comparisons: Dict[str, ComparisonTable] = {}
        self.significant: Dict[str, pd.DataFrame] = {}
        self.summaries: Dict[str, Dict[str, int]] = {}
        self.orthologs: Dict[str, pd.DataFrame] = {}
        self.mapping_reports: Dict[str, MappingReport] = {}
        # keyed by gene list label: "<comparison>" or "<comparison>_up"/"_down"
        self.enrichment: Dict[str, pd.DataFrame] = {}
        self.overlaps: Optional[pd.DataFrame] = None
        self.shared_terms: Optional[pd.DataFrame] = None
        self.unique_terms: Optional[pd.DataFrame] = None
        self.errors: List[str] = []

    def get_stats(self) -> Dict[str, int]:
        stats = {
            "comparisons": len(self.comparisons),
            "errors": len(self.errors),
        }
        for name, df in self.significant.items():
            stats[f"significant_{name}"] = len(df)
        for label, df in self.enrichment.items():
            stats[f"terms_{label}"] = len(df)
        return stats


class DGEPipeline:
    """
    Pipeline over a set of comparison files.

    Example:
        pipeline = DGEPipeline(load_config())
        result = pipeline.run(find_comparison_files("data/"))
        pipeline.write_report(result, "reports/")
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        ortholog_backend: Optional[OrthologBackend] = None,
        enrichment_backend: Optional[EnrichmentBackend] = None,
    ):
        self.config = config or AnalysisConfig()
        self.mapper = OrthologMapper(
            backend=ortholog_backend,
            source_organism=self.config.source_organism,
            target_organism=self.config.target_organism,
        )
        self.analyzer = EnrichmentAnalyzer(
            backend=enrichment_backend,
            organism=self.config.target_organism,
            min_genes=self.config.min_genes,
        )

    def prepare(self, table: ComparisonTable) -> ComparisonTable:
        """Deduplicate and classify one comparison."""
        return table.with_data(classify_table(deduplicate(table.data)))

    def gene_lists(self, name: str, significant: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        """Significant rows to submit for enrichment, split by direction if configured."""
        if not self.config.split_directions:
            return {name: significant}
        up, down = split_by_direction(significant)
        return {f"{name}_up": up, f"{name}_down": down}

    def enrich(self, orthologs: pd.DataFrame) -> pd.DataFrame:
        return self.analyzer.enrich_go(
            orthologs["ortholog_ensembl_id"].dropna().tolist(),
            ontology=self.config.ontology,
            padj_method=self.config.padj_method,
            pvalue_cutoff=self.config.pvalue_cutoff,
        )

    def process_comparison(self, table: ComparisonTable, result: PipelineResult) -> None:
        """Run the per-comparison steps and store their outputs on ``result``."""
        name = table.name
        prepared = self.prepare(table)
        significant = filter_significant(prepared.data)

        result.comparisons[name] = prepared
        result.significant[name] = significant
        result.summaries[name] = summarize_expression(prepared.data)
        logger.info(
            "%s: %d significant of %d genes", name, len(significant), len(prepared)
        )

        orthologs, report = self.mapper.map_table(significant)
        result.orthologs[name] = orthologs
        result.mapping_reports[name] = report

        for label, rows in self.gene_lists(name, orthologs).items():
            result.enrichment[label] = self.enrich(rows)

    def run(self, paths: Iterable[Union[str, Path]]) -> PipelineResult:
        """
        Process comparison files.

        A file that fails to load or process is recorded in
        ``result.errors``; the remaining files are still processed.
        """
        result = PipelineResult()

        for path in paths:
            try:
                table = load_comparison(path)
            except (MalformedTableError, OSError) as e:
                result.errors.append(f"{Path(path).name}: {e}")
                logger.error("Failed to load %s: %s", path, e)
                continue

            try:
                self.process_comparison(table, result)
            except Exception as e:
                result.errors.append(f"{table.name}: {e}")
                logger.exception("Failed to process %s", table.name)

        self.compare(result)

        stats = result.get_stats()
        logger.info("Pipeline results: %s", ", ".join(f"{k}={v}" for k, v in sorted(stats.items())))
        return result

    def compare(self, result: PipelineResult) -> None:
        """Cross-comparison overlaps and curated term tables."""
        if len(result.comparisons) >= 2:
            result.overlaps = overlap_table(
                significant_gene_sets(result.comparisons.values())
            )
        else:
            logger.info("Fewer than two comparisons; skipping overlaps")

        if result.enrichment:
            result.shared_terms = compare_terms(result.enrichment, self.config.shared_terms)
            result.unique_terms = compare_terms(result.enrichment, self.config.unique_terms)

    def write_report(
        self,
        result: PipelineResult,
        output_dir: Union[str, Path, None] = None,
        visualizer: Optional[ReportVisualizer] = None,
    ) -> List[Path]:
        """
        Write tables (CSV) and charts (HTML) for a pipeline result.

        Returns:
            Paths of the files written
        """
        out = Path(output_dir or self.config.output_dir)
        out.mkdir(parents=True, exist_ok=True)
        viz = visualizer or ReportVisualizer()
        written: List[Path] = []

        def _csv(df: pd.DataFrame, filename: str) -> None:
            path = out / filename
            df.to_csv(path, index=False)
            written.append(path)

        for name, table in result.comparisons.items():
            _csv(table.data, f"{name}_classified.csv")
            _csv(result.significant[name], f"{name}_significant.csv")
            fig = viz.volcano(table.data, title=name)
            written.append(viz.save_html(fig, out / f"{name}_volcano.html"))

        if result.summaries:
            summary = pd.DataFrame.from_dict(result.summaries, orient="index")
            summary.index.name = "comparison"
            _csv(summary.reset_index(), "expression_summary.csv")

        for name, orthologs in result.orthologs.items():
            _csv(orthologs, f"{name}_orthologs.csv")

        if result.mapping_reports:
            reports = pd.DataFrame(
                [dict(comparison=n, **r.to_dict()) for n, r in result.mapping_reports.items()]
            ).drop(columns=["unmapped_ids"])
            _csv(reports, "ortholog_mapping_report.csv")

        ontologies = ("BP", "CC", "MF") if self.config.ontology == "ALL" else (self.config.ontology,)
        for label, terms in result.enrichment.items():
            _csv(terms, f"{label}_go_enrichment.csv")
            for ontology in ontologies:
                top = top_terms(terms, ontology, n=self.config.top_n)
                if top.empty:
                    continue
                fig = viz.enrichment_bar(top, title=f"{label}: top GO {ontology} terms")
                written.append(viz.save_html(fig, out / f"{label}_go_{ontology}.html"))

        if result.overlaps is not None:
            _csv(result.overlaps, "overlaps.csv")
            sets = significant_gene_sets(result.comparisons.values())
            fig = viz.overlap_bar(venn_regions(sets), title="Significant gene overlaps")
            written.append(viz.save_html(fig, out / "overlaps.html"))

        for key, terms in (("shared", result.shared_terms), ("unique", result.unique_terms)):
            if terms is None:
                continue
            _csv(terms, f"{key}_go_terms.csv")
            if not terms.empty:
                fig = viz.data_table(terms, title=f"{key.capitalize()} GO terms")
                written.append(viz.save_html(fig, out / f"{key}_go_terms.html"))

        if result.errors:
            path = out / "errors.txt"
            path.write_text("\n".join(result.errors) + "\n", encoding="utf-8")
            written.append(path)

        logger.info("Wrote %d files to %s", len(written), out)
        return written
