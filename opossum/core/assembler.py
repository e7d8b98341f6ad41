"""
Counts assembly.

Builds the gene x cluster ``CountsMatrix`` consumed by the Fisher exact and
z-score enrichment tests. One assembler drives three acquisition strategies
that differ only in how per-gene counts are obtained:

- ``PrecomputedCountsStrategy``: counts already aggregated in the database
  at discrete conservation / threshold / search-region levels.
- ``CustomCountsStrategy``: raw TFBS hits fetched with continuous
  parameters, merged per cluster, then counted.
- ``AnchoredCountsStrategy``: as custom, but only sites proximal to an
  anchoring cluster's sites are counted.

Operon handling, dimension resolution, completeness checking and metadata
are shared by all three.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, List, Optional, Sequence

from .collaborators import (
    ClusterCatalog,
    GeneStore,
    OperonStore,
    PrecomputedCountsSource,
    SiteSource,
    TFCluster,
    Threshold,
    parse_threshold,
)
from .counts import CountsMatrix
from .exceptions import (
    CollaboratorUnavailableError,
    IncompleteCountsError,
    InvalidParameterError,
    MissingRequiredParameterError,
    require_params,
    validate_numeric_param,
)
from .merging import ClusterSiteMerger
from .operons import OperonMap, build_operon_map, canonicalize, expand
from .proximity import ProximityFilter
from .sites import ClusterId, Interval, MergedSite

logger = logging.getLogger(__name__)


# ============================================================================
# Acquisition strategies
# ============================================================================


class AcquisitionStrategy(ABC):
    """How raw per-gene counts are obtained for the canonical genes."""

    name = "counts"

    @abstractmethod
    def selectors(self) -> Dict[str, Any]:
        """Mandatory selector values, keyed by parameter name."""

    def validate(self) -> None:
        """Check required parameters. Runs before any collaborator call."""
        require_params(self.name, **self.selectors())

    def params(self) -> Dict[str, Any]:
        """Metadata recorded on the resulting matrix."""
        return {"strategy": self.name, **self.selectors()}

    @abstractmethod
    def populate(self, counts: CountsMatrix, gene_ids: Sequence[Hashable]) -> None:
        """Set every (gene, cluster) cell of ``counts`` for ``gene_ids``."""


class PrecomputedCountsStrategy(AcquisitionStrategy):
    """Read counts precomputed at discrete parameter levels."""

    name = "precomputed"

    def __init__(
        self,
        source: Optional[PrecomputedCountsSource],
        conservation_level: Optional[int],
        threshold_level: Optional[int],
        search_region_level: Optional[int],
    ):
        self.source = source
        self.conservation_level = conservation_level
        self.threshold_level = threshold_level
        self.search_region_level = search_region_level

    def selectors(self) -> Dict[str, Any]:
        return {
            "conservation_level": self.conservation_level,
            "threshold_level": self.threshold_level,
            "search_region_level": self.search_region_level,
        }

    def populate(self, counts: CountsMatrix, gene_ids: Sequence[Hashable]) -> None:
        if self.source is None:
            raise CollaboratorUnavailableError(
                "PrecomputedCountsSource", "fetch_raw", "no precomputed counts source configured",
                strategy=self.name,
            )

        cluster_ids = counts.cluster_ids or None
        try:
            rows = self.source.fetch_raw(
                self.conservation_level,
                self.threshold_level,
                self.search_region_level,
                list(gene_ids),
                cluster_ids,
            )
        except CollaboratorUnavailableError as e:
            raise _with_context(e, self.name) from e
        except OSError as e:
            raise CollaboratorUnavailableError(
                "PrecomputedCountsSource", "fetch_raw", str(e), strategy=self.name
            ) from e

        requested = set(gene_ids)
        for row in rows or []:
            if row.gene_id not in requested:
                logger.debug(f"Ignoring precomputed count for unrequested gene {row.gene_id}")
                continue
            if cluster_ids is not None and row.cluster_id not in cluster_ids:
                continue
            counts.set(row.gene_id, row.cluster_id, row.count, row.length)

        # Zero counts are not stored, so absent records are legitimate zeros
        for gene_id, cluster_id in counts.unset_cells():
            counts.set(gene_id, cluster_id, 0, 0)


class _SiteCountingStrategy(AcquisitionStrategy):
    """Shared site fetching for the custom and anchored strategies."""

    def __init__(
        self,
        site_source: Optional[SiteSource],
        cluster_catalog: Optional[ClusterCatalog],
        conservation_level: Optional[int],
        threshold: Optional[Threshold],
        upstream_bp: Optional[int],
        downstream_bp: Optional[int],
    ):
        self.site_source = site_source
        self.cluster_catalog = cluster_catalog
        self.conservation_level = conservation_level
        self.threshold = threshold
        self.upstream_bp = upstream_bp
        self.downstream_bp = downstream_bp
        self.merger = ClusterSiteMerger()

    def selectors(self) -> Dict[str, Any]:
        return {
            "conservation_level": self.conservation_level,
            "threshold": self.threshold,
            "upstream_bp": self.upstream_bp,
            "downstream_bp": self.downstream_bp,
        }

    def validate(self) -> None:
        super().validate()
        validate_numeric_param(self.conservation_level, "conservation_level", min_val=1)
        validate_numeric_param(self.upstream_bp, "upstream_bp", min_val=0)
        validate_numeric_param(self.downstream_bp, "downstream_bp", min_val=0)
        try:
            threshold = parse_threshold(self.threshold)
        except ValueError:
            raise InvalidParameterError("threshold", self.threshold, "a fraction or percentage") from None
        validate_numeric_param(threshold, "threshold", min_val=0, max_val=1)

    def resolve(self, cluster_id: ClusterId) -> TFCluster:
        if self.cluster_catalog is None:
            raise CollaboratorUnavailableError(
                "ClusterCatalog", "resolve", "no cluster catalog configured",
                strategy=self.name, cluster_id=cluster_id,
            )
        try:
            return self.cluster_catalog.resolve(cluster_id)
        except CollaboratorUnavailableError as e:
            raise _with_context(e, self.name, cluster_id=cluster_id) from e

    def fetch_sites(self, gene_id, cluster: TFCluster) -> List[Interval]:
        if self.site_source is None:
            raise CollaboratorUnavailableError(
                "SiteSource", "fetch_sites", "no site source configured",
                strategy=self.name, gene_id=gene_id, cluster_id=cluster.id,
            )
        try:
            sites = self.site_source.fetch_sites(
                gene_id,
                cluster.tf_ids,
                self.conservation_level,
                self.threshold,
                self.upstream_bp,
                self.downstream_bp,
            )
        except CollaboratorUnavailableError as e:
            raise _with_context(e, self.name, gene_id, cluster.id) from e
        except OSError as e:
            raise CollaboratorUnavailableError(
                "SiteSource", "fetch_sites", str(e),
                strategy=self.name, gene_id=gene_id, cluster_id=cluster.id,
            ) from e

        if sites is None:
            return []
        sites = list(sites)
        if not all(isinstance(site, Interval) for site in sites):
            raise CollaboratorUnavailableError(
                "SiteSource", "fetch_sites", "returned malformed site data",
                strategy=self.name, gene_id=gene_id, cluster_id=cluster.id,
            )
        return sites

    def merged_sites(self, gene_id, cluster: TFCluster) -> List[MergedSite]:
        return self.merger.merge(self.fetch_sites(gene_id, cluster), cluster.id)


class CustomCountsStrategy(_SiteCountingStrategy):
    """Count merged cluster sites fetched with continuous parameters."""

    name = "custom"

    def populate(self, counts: CountsMatrix, gene_ids: Sequence[Hashable]) -> None:
        for cluster_id in counts.cluster_ids:
            cluster = self.resolve(cluster_id)
            for gene_id in gene_ids:
                sites = self.merged_sites(gene_id, cluster)
                counts.set(gene_id, cluster_id, len(sites), self.merger.covered_length(sites))


class AnchoredCountsStrategy(_SiteCountingStrategy):
    """Count merged cluster sites proximal to an anchoring cluster's sites."""

    name = "anchored"

    def __init__(
        self,
        site_source: Optional[SiteSource],
        cluster_catalog: Optional[ClusterCatalog],
        anchor_cluster_id: Optional[ClusterId],
        distance: Optional[int],
        conservation_level: Optional[int],
        threshold: Optional[Threshold],
        upstream_bp: Optional[int],
        downstream_bp: Optional[int],
    ):
        super().__init__(
            site_source, cluster_catalog, conservation_level, threshold, upstream_bp, downstream_bp
        )
        self.anchor_cluster_id = anchor_cluster_id
        self.distance = distance

    def selectors(self) -> Dict[str, Any]:
        return {
            "anchor_cluster_id": self.anchor_cluster_id,
            "distance": self.distance,
            **super().selectors(),
        }

    def validate(self) -> None:
        super().validate()
        validate_numeric_param(self.distance, "distance", min_val=0)

    def populate(self, counts: CountsMatrix, gene_ids: Sequence[Hashable]) -> None:
        anchor = self.resolve(self.anchor_cluster_id)
        clusters = [self.resolve(cid) for cid in counts.cluster_ids]
        proximity = ProximityFilter(self.distance)

        for gene_id in gene_ids:
            anchor_sites = self.merged_sites(gene_id, anchor)

            if not anchor_sites:
                # No anchor present: every column is an explicit zero
                for cluster in clusters:
                    counts.set(gene_id, cluster.id, 0, 0)
                continue

            for cluster in clusters:
                if cluster.id == anchor.id:
                    sites = anchor_sites
                else:
                    sites = self.merged_sites(gene_id, cluster)

                prox = proximity.filter(anchor_sites, sites) if sites else []
                counts.set(gene_id, cluster.id, len(prox), self.merger.covered_length(prox))


def _with_context(
    error: CollaboratorUnavailableError, strategy: str, gene_id=None, cluster_id=None
) -> CollaboratorUnavailableError:
    """Copy of a collaborator error with the unit of work filled in."""
    return CollaboratorUnavailableError(
        error.collaborator,
        error.operation,
        error.reason,
        strategy=error.strategy or strategy,
        gene_id=error.gene_id if error.gene_id is not None else gene_id,
        cluster_id=error.cluster_id if error.cluster_id is not None else cluster_id,
    )


# ============================================================================
# Assembler
# ============================================================================


class CountsAssembler:
    """
    Assemble gene x cluster counts matrices.

    Collaborators are injected; only those needed by the strategy in use
    must be supplied. The operon map is never cached on the assembler, so
    target and background analyses in one process cannot share state.

    Example
    -------
    >>> assembler = CountsAssembler(site_source=source, cluster_catalog=catalog)
    >>> counts = assembler.fetch_custom_counts(
    ...     conservation_level=1, threshold=0.8, upstream_bp=2000,
    ...     downstream_bp=0, cluster_ids=["C1", "C2"], gene_ids=[10, 11],
    ... )
    """

    def __init__(
        self,
        site_source: Optional[SiteSource] = None,
        precomputed_source: Optional[PrecomputedCountsSource] = None,
        gene_store: Optional[GeneStore] = None,
        operon_store: Optional[OperonStore] = None,
        cluster_catalog: Optional[ClusterCatalog] = None,
    ):
        self.site_source = site_source
        self.precomputed_source = precomputed_source
        self.gene_store = gene_store
        self.operon_store = operon_store
        self.cluster_catalog = cluster_catalog

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def fetch_counts(
        self,
        conservation_level: Optional[int] = None,
        threshold_level: Optional[int] = None,
        search_region_level: Optional[int] = None,
        gene_ids: Optional[Sequence[Hashable]] = None,
        cluster_ids: Optional[Sequence[ClusterId]] = None,
        operon_gene_ids: Optional[OperonMap] = None,
        has_operon: bool = False,
    ) -> CountsMatrix:
        """Counts precomputed at discrete conservation/threshold/search region levels."""
        strategy = PrecomputedCountsStrategy(
            self.precomputed_source, conservation_level, threshold_level, search_region_level
        )
        return self.assemble(strategy, gene_ids, cluster_ids, operon_gene_ids, has_operon)

    def fetch_custom_counts(
        self,
        conservation_level: Optional[int] = None,
        threshold: Optional[Threshold] = None,
        upstream_bp: Optional[int] = None,
        downstream_bp: Optional[int] = None,
        cluster_ids: Optional[Sequence[ClusterId]] = None,
        gene_ids: Optional[Sequence[Hashable]] = None,
        operon_gene_ids: Optional[OperonMap] = None,
        has_operon: bool = False,
    ) -> CountsMatrix:
        """Counts of merged cluster sites computed with continuous parameters."""
        strategy = CustomCountsStrategy(
            self.site_source, self.cluster_catalog,
            conservation_level, threshold, upstream_bp, downstream_bp,
        )
        return self.assemble(
            strategy, gene_ids, cluster_ids, operon_gene_ids, has_operon, require_clusters=True
        )

    def fetch_anchored_counts(
        self,
        anchor_cluster_id: Optional[ClusterId] = None,
        cluster_ids: Optional[Sequence[ClusterId]] = None,
        distance: Optional[int] = None,
        conservation_level: Optional[int] = None,
        threshold: Optional[Threshold] = None,
        upstream_bp: Optional[int] = None,
        downstream_bp: Optional[int] = None,
        gene_ids: Optional[Sequence[Hashable]] = None,
        operon_gene_ids: Optional[OperonMap] = None,
        has_operon: bool = False,
    ) -> CountsMatrix:
        """Counts of cluster sites within ``distance`` bp of the anchor cluster's sites."""
        strategy = AnchoredCountsStrategy(
            self.site_source, self.cluster_catalog, anchor_cluster_id, distance,
            conservation_level, threshold, upstream_bp, downstream_bp,
        )
        return self.assemble(
            strategy, gene_ids, cluster_ids, operon_gene_ids, has_operon, require_clusters=True
        )

    # ------------------------------------------------------------------
    # Shared pass
    # ------------------------------------------------------------------

    def assemble(
        self,
        strategy: AcquisitionStrategy,
        gene_ids: Optional[Sequence[Hashable]] = None,
        cluster_ids: Optional[Sequence[ClusterId]] = None,
        operon_gene_ids: Optional[OperonMap] = None,
        has_operon: bool = False,
        require_clusters: bool = False,
    ) -> CountsMatrix:
        """Run one acquisition strategy and return a frozen, complete matrix."""
        strategy.validate()
        if require_clusters and not cluster_ids:
            raise MissingRequiredParameterError(["cluster_ids"], strategy.name)

        if cluster_ids is None:
            cluster_ids = self._fetch_all_cluster_ids(strategy.name)
        cluster_ids = list(cluster_ids)

        if gene_ids is None:
            gene_ids = self._fetch_all_gene_ids(strategy.name)
        gene_ids = list(gene_ids)

        operon_map = operon_gene_ids
        if has_operon and not operon_map:
            operon_map = self._fetch_operon_map(strategy.name)

        canonical_ids = canonicalize(gene_ids, operon_map)
        logger.info(
            f"Assembling {strategy.name} counts: {len(gene_ids)} genes "
            f"({len(canonical_ids)} canonical), {len(cluster_ids)} clusters"
        )

        t_counts = CountsMatrix(gene_ids=canonical_ids, cluster_ids=cluster_ids)
        strategy.populate(t_counts, canonical_ids)

        missing = t_counts.unset_cells()
        if missing:
            raise IncompleteCountsError(missing, strategy.name)

        if operon_map:
            counts = expand(t_counts, gene_ids, operon_map, cluster_ids=t_counts.cluster_ids)
        else:
            counts = t_counts

        for name, value in strategy.params().items():
            counts.param(name, value)
        if operon_map:
            counts.param("has_operon", True)

        return counts.freeze()

    def _fetch_all_gene_ids(self, strategy: str) -> List[Hashable]:
        if self.gene_store is None:
            raise CollaboratorUnavailableError(
                "GeneStore", "fetch_all_gene_ids", "no gene store configured", strategy=strategy
            )
        try:
            gene_ids = self.gene_store.fetch_all_gene_ids()
        except CollaboratorUnavailableError as e:
            raise _with_context(e, strategy) from e
        except OSError as e:
            raise CollaboratorUnavailableError(
                "GeneStore", "fetch_all_gene_ids", str(e), strategy=strategy
            ) from e

        if gene_ids is None:
            raise CollaboratorUnavailableError(
                "GeneStore", "fetch_all_gene_ids", "returned no gene IDs", strategy=strategy
            )
        return list(gene_ids)

    def _fetch_all_cluster_ids(self, strategy: str) -> List[ClusterId]:
        if self.cluster_catalog is None:
            raise CollaboratorUnavailableError(
                "ClusterCatalog", "all_clusters", "no cluster catalog configured", strategy=strategy
            )
        try:
            clusters = self.cluster_catalog.all_clusters()
        except CollaboratorUnavailableError as e:
            raise _with_context(e, strategy) from e
        except OSError as e:
            raise CollaboratorUnavailableError(
                "ClusterCatalog", "all_clusters", str(e), strategy=strategy
            ) from e

        # An empty catalog cannot fix the cluster dimension
        if not clusters:
            raise MissingRequiredParameterError(["cluster_ids"], strategy)
        return [cluster.id for cluster in clusters]

    def _fetch_operon_map(self, strategy: str) -> OperonMap:
        if self.operon_store is None:
            raise CollaboratorUnavailableError(
                "OperonStore", "fetch_operons", "no operon store configured", strategy=strategy
            )
        try:
            operons = self.operon_store.fetch_operons()
        except CollaboratorUnavailableError as e:
            raise _with_context(e, strategy) from e
        except OSError as e:
            raise CollaboratorUnavailableError(
                "OperonStore", "fetch_operons", str(e), strategy=strategy
            ) from e

        operon_map = build_operon_map(operons or [])
        logger.info(f"Resolved operon map: {len(operon_map)} genes in {len(operons or [])} operons")
        return operon_map
