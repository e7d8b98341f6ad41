"""
Interfaces of the external data collaborators consumed by the counts layer.

The SQL-backed implementations live in ``opossum.models.adaptors``; tests
and ad hoc analyses can supply any object with the same methods.
"""

from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from .exceptions import UnknownClusterError
from .sites import ClusterId, Interval

GeneId = Hashable


@dataclass(frozen=True)
class TFCluster:
    """A TFBS cluster: a group of related motifs counted as one unit."""

    id: ClusterId
    tf_ids: Tuple[str, ...]
    name: str = ""
    family: str = ""

    def __post_init__(self):
        object.__setattr__(self, "tf_ids", tuple(self.tf_ids))


@dataclass(frozen=True)
class Operon:
    """An operon; all members share the first gene's regulatory region."""

    id: Hashable
    first_gene_id: GeneId
    gene_ids: Tuple[GeneId, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "gene_ids", tuple(self.gene_ids))

    def contains_gene(self, gene_id: GeneId) -> bool:
        return gene_id in self.gene_ids


@dataclass(frozen=True)
class RawCount:
    """A precomputed (gene, cluster) count record."""

    gene_id: GeneId
    cluster_id: ClusterId
    count: int
    length: int = 0


Threshold = Union[float, str]


class SiteSource(Protocol):
    def fetch_sites(
        self,
        gene_id: GeneId,
        tf_ids: Sequence[str],
        conservation_level: int,
        threshold: Optional[Threshold],
        upstream_bp: int,
        downstream_bp: int,
    ) -> List[Interval]:
        ...


class PrecomputedCountsSource(Protocol):
    def fetch_raw(
        self,
        conservation_level: int,
        threshold_level: int,
        search_region_level: int,
        gene_ids: Sequence[GeneId],
        cluster_ids: Optional[Sequence[ClusterId]] = None,
    ) -> List[RawCount]:
        ...


class GeneStore(Protocol):
    def fetch_all_gene_ids(self) -> List[GeneId]:
        ...


class OperonStore(Protocol):
    def fetch_operons(self) -> List[Operon]:
        ...


class ClusterCatalog(Protocol):
    def resolve(self, cluster_id: ClusterId) -> TFCluster:
        ...

    def all_clusters(self) -> List[TFCluster]:
        ...


def parse_threshold(threshold: Optional[Threshold]) -> Optional[float]:
    """Normalise a relative score threshold to a fraction.

    Accepts fractions (``0.8``) or percentage strings (``"80%"``).
    """
    if threshold is None or threshold == "":
        return None
    if isinstance(threshold, str):
        text = threshold.strip()
        if text.endswith("%"):
            return float(text[:-1]) / 100
        return float(text)
    return float(threshold)


class InMemoryClusterCatalog:
    """Cluster catalog backed by a dict of ``TFCluster`` objects."""

    def __init__(self, clusters: Iterable[TFCluster] = ()):
        self._clusters: Dict[ClusterId, TFCluster] = {c.id: c for c in clusters}

    def resolve(self, cluster_id: ClusterId) -> TFCluster:
        try:
            return self._clusters[cluster_id]
        except KeyError:
            raise UnknownClusterError(cluster_id) from None

    def all_clusters(self) -> List[TFCluster]:
        return list(self._clusters.values())


class SingleMotifCatalog:
    """Treats each motif ID as a one-member cluster (single-site analysis)."""

    def resolve(self, cluster_id: ClusterId) -> TFCluster:
        return TFCluster(id=cluster_id, tf_ids=(str(cluster_id),))

    def all_clusters(self) -> List[TFCluster]:
        """Motifs are not enumerable; callers must name them."""
        return []
