"""
Operon-aware count replication.

Genes in an operon share the regulatory region upstream of the operon's
first gene. Counting is therefore done once per operon, on its first gene
(the canonical gene), and the resulting counts are copied to every member.
"""

import logging
import warnings
from typing import Dict, Hashable, Iterable, List, Optional, Sequence

from .collaborators import Operon
from .counts import CountsMatrix
from .exceptions import InconsistentOperonReference

logger = logging.getLogger(__name__)

OperonMap = Dict[Hashable, Hashable]


def build_operon_map(operons: Iterable[Operon]) -> OperonMap:
    """Map every operon member (first gene included) to the operon's first gene."""
    operon_map: OperonMap = {}
    for operon in operons:
        for gene_id in operon.gene_ids:
            operon_map[gene_id] = operon.first_gene_id
        operon_map[operon.first_gene_id] = operon.first_gene_id
    return operon_map


def canonical_gene(gene_id, operon_map: Optional[OperonMap]):
    if not operon_map:
        return gene_id
    return operon_map.get(gene_id, gene_id)


def canonicalize(gene_ids: Sequence[Hashable], operon_map: Optional[OperonMap]) -> List[Hashable]:
    """Reduce gene IDs to their canonical representatives.

    Returns the de-duplicated canonical IDs in first-seen order. Genes
    absent from the map represent themselves.
    """
    seen = {}
    for gene_id in gene_ids:
        seen.setdefault(canonical_gene(gene_id, operon_map), None)
    return list(seen)


def expand(
    canonical_counts: CountsMatrix,
    all_gene_ids: Sequence[Hashable],
    operon_map: Optional[OperonMap],
    cluster_ids: Optional[Sequence[Hashable]] = None,
) -> CountsMatrix:
    """Copy each canonical gene's row out to every gene in ``all_gene_ids``.

    A canonical gene with no row in ``canonical_counts`` is treated as all
    zero; the anomaly is logged and raised as an ``InconsistentOperonReference``
    warning rather than an error.

    Returns
    -------
    CountsMatrix
        New matrix keyed by ``all_gene_ids`` carrying the canonical matrix's
        params, with every cell explicitly set.
    """
    if cluster_ids is None:
        cluster_ids = canonical_counts.cluster_ids

    counts = CountsMatrix(
        gene_ids=all_gene_ids, cluster_ids=cluster_ids, params=canonical_counts.params
    )

    for gene_id in all_gene_ids:
        first_gid = canonical_gene(gene_id, operon_map)

        if not canonical_counts.gene_exists(first_gid):
            msg = (
                f"Canonical gene {first_gid} of gene {gene_id} has no counts row; "
                f"using zero counts"
            )
            logger.warning(msg)
            warnings.warn(msg, InconsistentOperonReference, stacklevel=2)

        for cluster_id in cluster_ids:
            count, length = canonical_counts.get(first_gid, cluster_id)
            counts.set(gene_id, cluster_id, count, length)

    return counts


class OperonCanonicalizer:
    """Canonicalize/expand pair bound to one operon map."""

    def __init__(self, operon_map: Optional[OperonMap] = None):
        self.operon_map = dict(operon_map or {})

    @classmethod
    def from_operons(cls, operons: Iterable[Operon]) -> "OperonCanonicalizer":
        return cls(build_operon_map(operons))

    @property
    def active(self) -> bool:
        return bool(self.operon_map)

    def canonicalize(self, gene_ids: Sequence[Hashable]) -> List[Hashable]:
        return canonicalize(gene_ids, self.operon_map)

    def expand(self, canonical_counts: CountsMatrix, all_gene_ids: Sequence[Hashable]) -> CountsMatrix:
        return expand(canonical_counts, all_gene_ids, self.operon_map)
