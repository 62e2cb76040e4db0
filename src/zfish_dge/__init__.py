"""Differential gene expression and GO enrichment reporting.

Loads per-comparison DGE tables, classifies and filters genes, maps
zebrafish genes to human orthologs, runs GO enrichment through
g:Profiler and renders plotly charts.

Usage::

    from zfish_dge import DGEPipeline, find_comparison_files, load_config

    pipeline = DGEPipeline(load_config())
    result = pipeline.run(find_comparison_files("data/"))
    pipeline.write_report(result, "reports/")
"""

from zfish_dge.classify import (
    classify_expression,
    classify_table,
    deduplicate,
    filter_significant,
    split_by_direction,
    summarize_expression,
)
from zfish_dge.config import AnalysisConfig, load_config
from zfish_dge.enrichment import EnrichmentAnalyzer, compare_terms, select_terms, top_terms
from zfish_dge.loader import MalformedTableError, find_comparison_files, load_comparison
from zfish_dge.model import ComparisonTable, DGERecord, EnrichedTerm, OrthologMapping
from zfish_dge.orthologs import OrthologMapper, join_orthologs, normalize_mappings
from zfish_dge.overlap import overlap_table, shared_members, unique_members, venn_regions
from zfish_dge.pipeline import DGEPipeline, PipelineResult
from zfish_dge.visualizer import ReportVisualizer

__all__ = [
    "AnalysisConfig",
    "load_config",
    "ComparisonTable",
    "DGERecord",
    "EnrichedTerm",
    "OrthologMapping",
    "MalformedTableError",
    "load_comparison",
    "find_comparison_files",
    "classify_expression",
    "classify_table",
    "deduplicate",
    "filter_significant",
    "split_by_direction",
    "summarize_expression",
    "OrthologMapper",
    "normalize_mappings",
    "join_orthologs",
    "EnrichmentAnalyzer",
    "top_terms",
    "select_terms",
    "compare_terms",
    "venn_regions",
    "shared_members",
    "unique_members",
    "overlap_table",
    "ReportVisualizer",
    "DGEPipeline",
    "PipelineResult",
]
