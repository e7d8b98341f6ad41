"""
Gene x cluster TFBS counts matrix.

Stores, for every (gene, cluster) pair, the number of non-redundant
cluster sites and the total length they cover. Storage is sparse: cells
that were never set read back as ``(0, 0)``. The matrix is populated in a
single pass by the counts assembler, then frozen and handed to the
statistics layer (Fisher exact / z-score tests) as read-only input.
"""

import logging
import numbers
from typing import Any, Dict, Hashable, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import CountsMatrixError, InvalidParameterError

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]
_ZERO: Cell = (0, 0)


class CountsMatrix:
    """
    Sparse gene x cluster table of ``(count, length)`` cells.

    Gene and cluster dimensions are ordered and fixed by the constructor,
    but setting a cell for an unseen gene or cluster appends it to the
    corresponding dimension so that matrices can also be built
    incrementally (e.g. when reading a counts file).

    Example
    -------
    >>> counts = CountsMatrix(gene_ids=[1, 2], cluster_ids=["C1"])
    >>> counts.set(1, "C1", 3, 50)
    >>> counts.get(1, "C1"), counts.get(2, "C1")
    ((3, 50), (0, 0))
    """

    def __init__(
        self,
        gene_ids: Optional[Iterable[Hashable]] = None,
        cluster_ids: Optional[Iterable[Hashable]] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        # dicts used as insertion-ordered sets
        self._genes: Dict[Hashable, None] = {}
        self._clusters: Dict[Hashable, None] = {}
        self._cells: Dict[Tuple[Hashable, Hashable], Cell] = {}
        self._params: Dict[str, Any] = dict(params or {})
        self._frozen = False

        self.missing_gene_ids: List[Hashable] = []
        self.missing_cluster_ids: List[Hashable] = []

        for gene_id in gene_ids or []:
            self._add_gene(gene_id)
        for cluster_id in cluster_ids or []:
            self._add_cluster(cluster_id)

    def __repr__(self):
        return (
            f"<CountsMatrix(genes={self.num_genes}, clusters={self.num_clusters}, "
            f"set_cells={len(self._cells)})>"
        )

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    @property
    def gene_ids(self) -> List[Hashable]:
        return list(self._genes)

    @property
    def cluster_ids(self) -> List[Hashable]:
        return list(self._clusters)

    @property
    def num_genes(self) -> int:
        return len(self._genes)

    @property
    def num_clusters(self) -> int:
        return len(self._clusters)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.num_genes, self.num_clusters

    def gene_exists(self, gene_id) -> bool:
        return gene_id in self._genes

    def cluster_exists(self, cluster_id) -> bool:
        return cluster_id in self._clusters

    def exists(self, gene_id, cluster_id) -> bool:
        return self.gene_exists(gene_id) and self.cluster_exists(cluster_id)

    def _add_gene(self, gene_id):
        if gene_id is None:
            raise InvalidParameterError("gene_id", gene_id, "a gene ID")
        self._genes.setdefault(gene_id, None)

    def _add_cluster(self, cluster_id):
        if cluster_id is None:
            raise InvalidParameterError("cluster_id", cluster_id, "a cluster ID")
        self._clusters.setdefault(cluster_id, None)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def param(self, name: str, value: Any = None) -> Any:
        """Get, or set when ``value`` is given, a metadata parameter."""
        if value is not None:
            self._check_writable()
            self._params[name] = value
        return self._params.get(name)

    @property
    def params(self) -> Dict[str, Any]:
        return dict(self._params)

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    def set(self, gene_id, cluster_id, count: int, length: int) -> None:
        """Set the count and covered length of a gene/cluster cell together."""
        self._check_writable()
        for name, value in (("count", count), ("length", length)):
            if not isinstance(value, numbers.Integral) or isinstance(value, bool) or value < 0:
                raise InvalidParameterError(name, value, "a non-negative integer")

        self._add_gene(gene_id)
        self._add_cluster(cluster_id)
        self._cells[(gene_id, cluster_id)] = (int(count), int(length))

    def get(self, gene_id, cluster_id) -> Cell:
        """Return ``(count, length)``; ``(0, 0)`` for cells never set."""
        return self._cells.get((gene_id, cluster_id), _ZERO)

    def count(self, gene_id, cluster_id) -> int:
        return self.get(gene_id, cluster_id)[0]

    def length(self, gene_id, cluster_id) -> int:
        return self.get(gene_id, cluster_id)[1]

    def was_set(self, gene_id, cluster_id) -> bool:
        """Whether the cell was explicitly populated (as opposed to default zero)."""
        return (gene_id, cluster_id) in self._cells

    def unset_cells(self) -> List[Tuple[Hashable, Hashable]]:
        """All (gene, cluster) pairs of the matrix dimensions never explicitly set."""
        return [
            (gene_id, cluster_id)
            for gene_id in self._genes
            for cluster_id in self._clusters
            if (gene_id, cluster_id) not in self._cells
        ]

    def is_complete(self) -> bool:
        return not self.unset_cells()

    # ------------------------------------------------------------------
    # Column summaries (inputs to Fisher / z-score tests)
    # ------------------------------------------------------------------

    def cluster_gene_ids(self, cluster_id) -> List[Hashable]:
        """Genes, in dimension order, with at least one site for the cluster."""
        return [g for g in self._genes if self.count(g, cluster_id) > 0]

    def cluster_gene_count(self, cluster_id) -> int:
        """Number of genes with at least one site for the cluster."""
        return len(self.cluster_gene_ids(cluster_id))

    def cluster_count(self, cluster_id) -> int:
        """Total number of sites for the cluster over all genes."""
        return sum(self.count(g, cluster_id) for g in self._genes)

    def cluster_length(self, cluster_id) -> int:
        """Total length covered by the cluster's sites over all genes."""
        return sum(self.length(g, cluster_id) for g in self._genes)

    # ------------------------------------------------------------------
    # Derived matrices
    # ------------------------------------------------------------------

    def subset(
        self,
        gene_ids: Optional[Iterable[Hashable]] = None,
        cluster_ids: Optional[Iterable[Hashable]] = None,
        gene_start=None,
        gene_end=None,
        cluster_start=None,
        cluster_end=None,
    ) -> "CountsMatrix":
        """Return a new matrix restricted to some genes and/or clusters.

        Genes (clusters) may be selected with an explicit ID list or with an
        inclusive ``start``/``end`` ID range over the current dimension.
        Requested IDs not present in this matrix are omitted and recorded in
        the subset's ``missing_gene_ids`` / ``missing_cluster_ids``.
        """
        sub_genes, missing_genes = self._select(
            self.gene_ids, gene_ids, gene_start, gene_end, "gene"
        )
        sub_clusters, missing_clusters = self._select(
            self.cluster_ids, cluster_ids, cluster_start, cluster_end, "cluster"
        )

        subset = CountsMatrix(gene_ids=sub_genes, cluster_ids=sub_clusters, params=self._params)
        for gene_id in sub_genes:
            for cluster_id in sub_clusters:
                if self.was_set(gene_id, cluster_id):
                    subset.set(gene_id, cluster_id, *self.get(gene_id, cluster_id))

        subset.missing_gene_ids = missing_genes
        subset.missing_cluster_ids = missing_clusters
        return subset

    @staticmethod
    def _select(all_ids, ids, start, end, kind):
        missing = []
        if ids is not None:
            present = set(all_ids)
            selected = []
            for id_ in ids:
                if id_ in present:
                    selected.append(id_)
                else:
                    logger.warning(f"{kind} ID {id_} not in super set, omitting from subset")
                    missing.append(id_)
            return selected, missing

        if start is None and end is None:
            return list(all_ids), missing

        if not all_ids:
            return [], missing
        start = all_ids[0] if start is None else start
        end = all_ids[-1] if end is None else end
        return [id_ for id_ in all_ids if start <= id_ <= end], missing

    def to_frame(self, value: str = "count") -> pd.DataFrame:
        """Genes x clusters DataFrame of counts (``value="count"``) or lengths."""
        if value not in ("count", "length"):
            raise ValueError(f"Unknown value: {value}. Expected 'count' or 'length'")
        idx = 0 if value == "count" else 1

        gene_pos = {g: i for i, g in enumerate(self._genes)}
        cluster_pos = {c: j for j, c in enumerate(self._clusters)}
        data = np.zeros((self.num_genes, self.num_clusters), dtype=np.int64)
        for (gene_id, cluster_id), cell in self._cells.items():
            data[gene_pos[gene_id], cluster_pos[cluster_id]] = cell[idx]

        return pd.DataFrame(
            data,
            index=pd.Index(self.gene_ids, name="gene_id"),
            columns=pd.Index(self.cluster_ids, name="cluster_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Row-major JSON-friendly representation."""
        return {
            "gene_ids": self.gene_ids,
            "cluster_ids": self.cluster_ids,
            "counts": [[self.count(g, c) for c in self._clusters] for g in self._genes],
            "lengths": [[self.length(g, c) for c in self._clusters] for g in self._genes],
            "params": self.params,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def freeze(self) -> "CountsMatrix":
        """Make the matrix read-only. Returns self."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_writable(self):
        if self._frozen:
            raise CountsMatrixError("counts matrix is frozen and cannot be modified")
