"""Venn-style overlaps between named gene (or term) sets."""

from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Set, Tuple

import pandas as pd

from zfish_dge.classify import filter_significant
from zfish_dge.config import GENE_ID
from zfish_dge.model import ComparisonTable


@dataclass
class OverlapRegion:
    """Members belonging to exactly this combination of sets."""

    sets: Tuple[str, ...]
    members: List[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def label(self) -> str:
        return " & ".join(self.sets)


def _as_sets(sets: Mapping[str, Iterable[str]]) -> Dict[str, Set[str]]:
    return {name: set(members) for name, members in sets.items()}


def venn_regions(sets: Mapping[str, Iterable[str]]) -> List[OverlapRegion]:
    """
    Exclusive Venn regions for two or more named sets.

    Every member appears in exactly one region: the one naming all the
    sets it belongs to. Regions are ordered by number of sets, then by
    the input order of set names; empty regions are included.
    """
    named = _as_sets(sets)
    names = list(named)
    if len(names) < 2:
        raise ValueError("venn_regions needs at least two sets")

    membership: Dict[str, Tuple[str, ...]] = {}
    for member in set().union(*named.values()):
        membership[member] = tuple(n for n in names if member in named[n])

    regions = []
    for k in range(1, len(names) + 1):
        for combo in combinations(names, k):
            members = sorted(m for m, owners in membership.items() if owners == combo)
            regions.append(OverlapRegion(sets=combo, members=members))
    return regions


def shared_members(sets: Mapping[str, Iterable[str]]) -> Set[str]:
    """Members present in every set."""
    named = list(_as_sets(sets).values())
    if not named:
        return set()
    return set.intersection(*named)


def unique_members(sets: Mapping[str, Iterable[str]], name: str) -> Set[str]:
    """Members of ``name`` found in no other set."""
    named = _as_sets(sets)
    if name not in named:
        raise KeyError(name)
    others = [members for other, members in named.items() if other != name]
    return named[name].difference(*others)


def overlap_table(sets: Mapping[str, Iterable[str]]) -> pd.DataFrame:
    """Venn regions as a table: region, n_sets, size, members (';'-joined)."""
    rows = [
        {
            "region": r.label,
            "n_sets": len(r.sets),
            "size": r.size,
            "members": ";".join(r.members),
        }
        for r in venn_regions(sets)
    ]
    return pd.DataFrame(rows, columns=["region", "n_sets", "size", "members"])


def significant_gene_sets(tables: Iterable[ComparisonTable]) -> Dict[str, Set[str]]:
    """Significant gene ids per comparison, keyed by comparison name."""
    return {
        table.name: set(filter_significant(table.data)[GENE_ID].dropna())
        for table in tables
    }
