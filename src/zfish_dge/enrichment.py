"""
GO enrichment for ortholog gene lists using g:Profiler.

Runs over-representation analysis against the target organism's GO
annotation (BP, CC, MF) and shapes the result into a table of terms
with adjusted p-values, fold enrichment and gene counts. Selecting
top terms or a curated set of terms happens here too; the statistics
are the service's.

Example:
    from zfish_dge.enrichment import EnrichmentAnalyzer, top_terms

    analyzer = EnrichmentAnalyzer(organism="hsapiens")
    results = analyzer.enrich_go(ensembl_ids, ontology="BP", padj_method="BH")
    top = top_terms(results, ontology="BP", n=10)
"""

import logging
from typing import Dict, Iterable, List, Optional, Protocol

import pandas as pd
from gprofiler import GProfiler

from zfish_dge.config import (
    DEFAULT_PADJ_METHOD,
    DEFAULT_PVALUE_CUTOFF,
    MIN_GENES_FOR_ENRICHMENT,
    ONTOLOGY_SOURCES,
    PADJ_METHODS,
    TARGET_ORGANISM,
)
from zfish_dge.model import ENRICHMENT_COLUMNS, EnrichedTerm

logger = logging.getLogger(__name__)


class EnrichmentBackend(Protocol):
    """Protocol for GO enrichment services."""

    def analyze(
        self,
        genes: List[str],
        organism: str,
        sources: List[str],
        threshold: float,
        correction: str,
    ) -> List[EnrichedTerm]:
        """
        Run enrichment analysis on a gene list.

        Args:
            genes: Gene identifiers in the target organism
            organism: Organism annotation to test against
            sources: GO namespaces to query (GO:BP, GO:CC, GO:MF)
            threshold: Adjusted p-value cutoff
            correction: Multiple testing correction (g_SCS, fdr, bonferroni)

        Returns:
            List of enriched terms passing the cutoff
        """
        ...


class GProfilerBackend:
    """
    Enrichment analysis using g:Profiler g:GOSt.

    Uses the gprofiler-official package for server-side computation.
    """

    def __init__(self, client=None):
        self._gp = client

    def _get_client(self):
        """Lazy initialization of g:Profiler client."""
        if self._gp is None:
            self._gp = GProfiler(return_dataframe=False)
        return self._gp

    def analyze(
        self,
        genes: List[str],
        organism: str,
        sources: List[str],
        threshold: float,
        correction: str,
    ) -> List[EnrichedTerm]:
        if not genes:
            return []

        gp = self._get_client()
        result = gp.profile(
            organism=organism,
            query=genes,
            sources=sources,
            user_threshold=threshold,
            significance_threshold_method=correction,
            no_evidences=False,  # include intersections (gene lists)
        )

        terms = []
        for r in result or []:
            terms.append(EnrichedTerm(
                term_id=r["native"],
                description=r["name"],
                ontology=r["source"].split(":")[-1],
                p_adjust=r["p_value"],  # g:Profiler returns adjusted p-values
                gene_count=r["intersection_size"],
                term_size=r["term_size"],
                query_size=r["query_size"],
                effective_domain_size=r.get("effective_domain_size", 0),
                genes=list(r.get("intersections", [])),  # hit genes, resolved by profile()
            ))
        return terms


def terms_to_frame(terms: Iterable[EnrichedTerm]) -> pd.DataFrame:
    """Enrichment terms as a table sorted by ascending p.adjust."""
    df = pd.DataFrame([t.to_row() for t in terms], columns=ENRICHMENT_COLUMNS)
    return df.sort_values(["p.adjust", "term_id"], kind="mergesort").reset_index(drop=True)


class EnrichmentAnalyzer:
    """
    GO enrichment analyzer for target-organism gene lists.

    Example:
        analyzer = EnrichmentAnalyzer()
        bp = analyzer.enrich_go(genes, ontology="BP")
    """

    def __init__(
        self,
        backend: Optional[EnrichmentBackend] = None,
        organism: str = TARGET_ORGANISM,
        min_genes: int = MIN_GENES_FOR_ENRICHMENT,
    ):
        """
        Initialize enrichment analyzer.

        Args:
            backend: Enrichment backend (default: GProfilerBackend)
            organism: Annotation organism for the gene ids
            min_genes: Gene lists shorter than this are not submitted
        """
        self.backend = backend or GProfilerBackend()
        self.organism = organism
        self.min_genes = min_genes

    def enrich_go(
        self,
        genes: Iterable[str],
        ontology: str = "ALL",
        padj_method: str = DEFAULT_PADJ_METHOD,
        pvalue_cutoff: float = DEFAULT_PVALUE_CUTOFF,
    ) -> pd.DataFrame:
        """
        Run GO over-representation analysis on one gene list.

        Args:
            genes: Target-organism gene ids (duplicates and blanks ignored)
            ontology: "ALL", "BP", "CC" or "MF"
            padj_method: "BH"/"fdr", "bonferroni" or "g_SCS"
            pvalue_cutoff: Adjusted p-value cutoff

        Returns:
            DataFrame with term_id, description, ontology, p.adjust,
            fold_enrichment, gene_count (plus term_size, query_size, genes)
        """
        if ontology not in ONTOLOGY_SOURCES:
            raise ValueError(
                f"Unknown ontology {ontology!r}; expected one of {', '.join(ONTOLOGY_SOURCES)}"
            )
        if padj_method not in PADJ_METHODS:
            raise ValueError(
                f"Unknown p-adjust method {padj_method!r}; expected one of {', '.join(PADJ_METHODS)}"
            )

        gene_list = list(dict.fromkeys(g for g in genes if isinstance(g, str) and g.strip()))
        if len(gene_list) < self.min_genes:
            logger.info(
                "Skipping enrichment: %d genes (minimum %d)", len(gene_list), self.min_genes
            )
            return terms_to_frame([])

        logger.info(
            "GO enrichment (%s, %s) for %d %s genes",
            ontology,
            padj_method,
            len(gene_list),
            self.organism,
        )
        terms = self.backend.analyze(
            genes=gene_list,
            organism=self.organism,
            sources=ONTOLOGY_SOURCES[ontology],
            threshold=pvalue_cutoff,
            correction=PADJ_METHODS[padj_method],
        )
        df = terms_to_frame(terms)
        logger.info("%d enriched terms", len(df))
        return df


def top_terms(results: pd.DataFrame, ontology: str, n: int = 10) -> pd.DataFrame:
    """
    Top ``n`` terms of one ontology by ascending adjusted p-value.

    Args:
        results: Enrichment table from EnrichmentAnalyzer.enrich_go
        ontology: "BP", "CC" or "MF"
        n: Number of terms to keep
    """
    if ontology not in ("BP", "CC", "MF"):
        raise ValueError(f"top_terms needs a single ontology (BP, CC, MF), got {ontology!r}")
    subset = results[results["ontology"] == ontology]
    return subset.sort_values("p.adjust", kind="mergesort").head(n).reset_index(drop=True)


def select_terms(results: pd.DataFrame, descriptions: Iterable[str]) -> pd.DataFrame:
    """
    Keep only terms whose description is in a curated list.

    Rows come back in the order of ``descriptions``; matching ignores case.
    """
    wanted = [d.strip().lower() for d in descriptions]
    order = {d: i for i, d in enumerate(dict.fromkeys(wanted))}
    keys = results["description"].str.strip().str.lower()
    subset = results[keys.isin(list(order))].copy()
    subset["_order"] = keys[subset.index].map(order)
    return (
        subset.sort_values(["_order", "p.adjust"], kind="mergesort")
        .drop(columns="_order")
        .reset_index(drop=True)
    )


def compare_terms(
    results_by_condition: Dict[str, pd.DataFrame],
    descriptions: Iterable[str],
) -> pd.DataFrame:
    """
    Curated terms across conditions as one long table.

    Args:
        results_by_condition: condition label -> enrichment table
        descriptions: Curated term descriptions

    Returns:
        select_terms output for each condition with a ``condition`` column
    """
    descriptions = list(descriptions)
    frames = []
    for condition, results in results_by_condition.items():
        subset = select_terms(results, descriptions)
        subset.insert(0, "condition", condition)
        frames.append(subset)

    if not frames:
        return pd.DataFrame(columns=["condition"] + ENRICHMENT_COLUMNS)
    return pd.concat(frames, ignore_index=True)
