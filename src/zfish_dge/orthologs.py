"""
Cross-species ortholog mapping for DGE tables.

Maps zebrafish Ensembl gene ids to human orthologs through an injected
backend (default: g:Profiler g:Orth), then normalizes the rows and joins
them back to the expression table.

Example:
    mapper = OrthologMapper()
    mappings, report = mapper.map_genes(table.gene_ids)
    human = join_orthologs(table.data, mappings)
"""

import logging
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

import pandas as pd
from gprofiler import GProfiler

from zfish_dge.config import GENE_ID, SOURCE_ORGANISM, TARGET_ORGANISM
from zfish_dge.model import ORTHOLOG_COLUMNS, MappingReport, OrthologMapping

logger = logging.getLogger(__name__)

# Placeholders g:Profiler uses for "no ortholog"
_NULL_VALUES = {"", "N/A", "None", "nan", "NaN"}


class OrthologBackend(Protocol):
    """Protocol for cross-species ortholog lookup services."""

    def lookup(
        self,
        gene_ids: List[str],
        source_organism: str,
        target_organism: str,
    ) -> List[OrthologMapping]:
        """
        Look up orthologs for a list of gene ids.

        Returns:
            Zero or more OrthologMapping rows per input id
        """
        ...


class GProfilerOrthologBackend:
    """
    Ortholog lookup using g:Profiler g:Orth.

    Uses the gprofiler-official package; g:Profiler resolves Ensembl ids
    server-side so no local annotation database is needed.
    """

    def __init__(self, client=None):
        self._gp = client

    def _get_client(self):
        """Lazy initialization of g:Profiler client."""
        if self._gp is None:
            self._gp = GProfiler(return_dataframe=False)
        return self._gp

    def lookup(
        self,
        gene_ids: List[str],
        source_organism: str,
        target_organism: str,
    ) -> List[OrthologMapping]:
        if not gene_ids:
            return []

        gp = self._get_client()
        result = gp.orth(
            organism=source_organism,
            query=list(gene_ids),
            target=target_organism,
        )

        return [
            OrthologMapping(
                source_gene_id=r["incoming"],
                ortholog_name=r.get("name"),
                ortholog_ensembl_id=r.get("ortholog_ensg"),
            )
            for r in result or []
        ]


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    value = str(value).strip()
    return None if value in _NULL_VALUES else value


def normalize_mappings(rows: Iterable[OrthologMapping]) -> Tuple[pd.DataFrame, int, int]:
    """
    Drop rows without a target id, then keep one row per ortholog name.

    Returns:
        Tuple of (mapping frame, null ids dropped, duplicate names dropped)
    """
    records = [
        {
            "source_gene_id": _clean(r.source_gene_id),
            "ortholog_name": _clean(r.ortholog_name),
            "ortholog_ensembl_id": _clean(r.ortholog_ensembl_id),
        }
        for r in rows
    ]
    df = pd.DataFrame(records, columns=ORTHOLOG_COLUMNS)

    has_id = df["ortholog_ensembl_id"].notna() & df["source_gene_id"].notna()
    null_dropped = int((~has_id).sum())
    df = df[has_id]

    # Rows with an id but no name are keyed on the id so they survive
    name_key = df["ortholog_name"].fillna(df["ortholog_ensembl_id"])
    deduped = df[~name_key.duplicated(keep="first")]
    dupes_dropped = len(df) - len(deduped)

    return deduped.reset_index(drop=True), null_dropped, dupes_dropped


def join_orthologs(
    table: pd.DataFrame,
    mappings: pd.DataFrame,
    how: str = "inner",
) -> pd.DataFrame:
    """
    Attach ortholog columns to an expression table.

    Args:
        table: DGE frame keyed by gene_id
        mappings: Normalized mapping frame (see normalize_mappings)
        how: "inner" drops unmapped genes; "left" keeps them with NaN orthologs

    Returns:
        Expression rows with ortholog_name and ortholog_ensembl_id columns
    """
    if how not in ("inner", "left"):
        raise ValueError(f"Unsupported join {how!r}; use 'inner' or 'left'")

    joined = table.merge(
        mappings,
        how=how,
        left_on=GENE_ID,
        right_on="source_gene_id",
    )
    return joined.drop(columns=["source_gene_id"]).reset_index(drop=True)


class OrthologMapper:
    """
    Prepares gene ids for the ortholog service and normalizes its output.

    Example:
        mapper = OrthologMapper(source_organism="drerio", target_organism="hsapiens")
        mappings, report = mapper.map_genes(["ENSDARG00000000001"])
    """

    def __init__(
        self,
        backend: Optional[OrthologBackend] = None,
        source_organism: str = SOURCE_ORGANISM,
        target_organism: str = TARGET_ORGANISM,
    ):
        self.backend = backend or GProfilerOrthologBackend()
        self.source_organism = source_organism
        self.target_organism = target_organism

    def map_genes(self, gene_ids: Sequence[str]) -> Tuple[pd.DataFrame, MappingReport]:
        """
        Map gene ids to orthologs in the target organism.

        Duplicate and missing input ids are removed before the call.
        Unmapped genes are reported, not raised.
        """
        unique_ids = list(dict.fromkeys(g for g in gene_ids if _clean(g)))

        logger.info(
            "Mapping %d genes %s -> %s",
            len(unique_ids),
            self.source_organism,
            self.target_organism,
        )
        rows = self.backend.lookup(unique_ids, self.source_organism, self.target_organism)
        mappings, null_dropped, dupes_dropped = normalize_mappings(rows)

        mapped = set(mappings["source_gene_id"])
        unmapped = [g for g in unique_ids if g not in mapped]

        report = MappingReport(
            input_count=len(unique_ids),
            mapped_count=len(mapped),
            unmapped_count=len(unmapped),
            duplicate_names_dropped=dupes_dropped,
            null_ids_dropped=null_dropped,
            source_organism=self.source_organism,
            target_organism=self.target_organism,
            unmapped_ids=unmapped,
        )
        if unmapped:
            logger.info(
                "%d/%d genes have no %s ortholog",
                len(unmapped),
                len(unique_ids),
                self.target_organism,
            )
        return mappings, report

    def map_table(self, table: pd.DataFrame, how: str = "inner") -> Tuple[pd.DataFrame, MappingReport]:
        """Map a DGE frame's gene ids and join the orthologs back onto it."""
        mappings, report = self.map_genes(table[GENE_ID].tolist())
        return join_orthologs(table, mappings, how=how), report
