"""
SQLAlchemy-backed collaborators for counts assembly.

Each adaptor wraps a session and implements one of the collaborator
interfaces in ``opossum.core.collaborators``. Database failures surface
as ``CollaboratorUnavailableError`` so callers never see driver errors.
"""

import logging
from itertools import groupby
from typing import List, Optional, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.collaborators import Operon, RawCount, TFCluster, Threshold, parse_threshold
from ..core.exceptions import CollaboratorUnavailableError, UnknownClusterError
from ..core.sites import Interval
from .database import ConservedTFBS, Gene, OperonGene, TFBSClusterCount, TFClusterRecord

logger = logging.getLogger(__name__)


class _SQLAdaptor:
    """Common session handling."""

    collaborator = "SQLAdaptor"

    def __init__(self, session: Session):
        self.session = session

    def _unavailable(self, operation: str, error: Exception, **context) -> CollaboratorUnavailableError:
        logger.error(f"{self.collaborator}.{operation} failed: {error}")
        return CollaboratorUnavailableError(self.collaborator, operation, str(error), **context)


class SQLSiteSource(_SQLAdaptor):
    """Conserved TFBS hits for a gene, restricted to its promoter search regions."""

    collaborator = "SiteSource"

    def fetch_sites(
        self,
        gene_id,
        tf_ids: Sequence[str],
        conservation_level: int,
        threshold: Optional[Threshold],
        upstream_bp: Optional[int],
        downstream_bp: Optional[int],
    ) -> List[Interval]:
        """
        Fetch TFBS hits of any of ``tf_ids`` on a gene.

        Parameters
        ----------
        gene_id : int
            Gene to fetch sites for.
        tf_ids : sequence of str
            Motif IDs whose hits are wanted.
        conservation_level : int
            Only hits at this conservation level or higher.
        threshold : float or str
            Minimum relative score, as a fraction or ``"80%"``.
        upstream_bp, downstream_bp : int
            Search window around each promoter TSS.

        Returns
        -------
        list of Interval
            Hits ordered by start; empty if the gene is unknown.
        """
        if not tf_ids:
            return []

        min_rel_score = parse_threshold(threshold)

        try:
            gene = self.session.get(Gene, gene_id)
            if gene is None:
                logger.debug(f"No gene {gene_id}; no sites")
                return []

            regions = gene.promoter_search_regions(upstream_bp, downstream_bp)
            if not regions:
                return []

            query = self.session.query(ConservedTFBS).filter(
                ConservedTFBS.gene_id == gene_id,
                ConservedTFBS.tf_id.in_(list(tf_ids)),
            )
            if conservation_level is not None:
                query = query.filter(ConservedTFBS.conservation_level >= conservation_level)
            if min_rel_score is not None:
                query = query.filter(ConservedTFBS.rel_score >= min_rel_score)

            # Fully contained in at least one search region
            query = query.filter(or_(*[
                and_(ConservedTFBS.start >= sr_start, ConservedTFBS.end <= sr_end)
                for sr_start, sr_end in regions
            ]))

            rows = query.order_by(ConservedTFBS.start, ConservedTFBS.end).all()
        except SQLAlchemyError as e:
            raise self._unavailable("fetch_sites", e, gene_id=gene_id) from e

        return [
            Interval(
                start=row.start,
                end=row.end,
                strand=row.strand,
                score=row.score,
                rel_score=row.rel_score,
                sequence=row.seq or "",
                tf_id=row.tf_id,
                conservation=row.conservation,
            )
            for row in rows
        ]


class SQLPrecomputedCountsSource(_SQLAdaptor):
    """Per gene/cluster counts stored at discrete parameter levels."""

    collaborator = "PrecomputedCountsSource"

    def fetch_raw(
        self,
        conservation_level: int,
        threshold_level: int,
        search_region_level: int,
        gene_ids: Sequence,
        cluster_ids: Optional[Sequence] = None,
    ) -> List[RawCount]:
        try:
            query = self.session.query(TFBSClusterCount).filter(
                TFBSClusterCount.conservation_level == conservation_level,
                TFBSClusterCount.threshold_level == threshold_level,
                TFBSClusterCount.search_region_level == search_region_level,
            )
            if gene_ids:
                query = query.filter(TFBSClusterCount.gene_id.in_(list(gene_ids)))
            if cluster_ids:
                query = query.filter(TFBSClusterCount.cluster_id.in_(list(cluster_ids)))
            rows = query.order_by(TFBSClusterCount.gene_id, TFBSClusterCount.cluster_id).all()
        except SQLAlchemyError as e:
            raise self._unavailable("fetch_raw", e) from e

        logger.debug(
            f"Fetched {len(rows)} precomputed counts at levels "
            f"({conservation_level}, {threshold_level}, {search_region_level})"
        )
        return [RawCount(r.gene_id, r.cluster_id, r.count, r.sum_length) for r in rows]


class SQLGeneStore(_SQLAdaptor):
    """All gene IDs in the database."""

    collaborator = "GeneStore"

    def fetch_all_gene_ids(self) -> List[int]:
        try:
            return [gid for (gid,) in self.session.query(Gene.gene_id).order_by(Gene.gene_id)]
        except SQLAlchemyError as e:
            raise self._unavailable("fetch_all_gene_ids", e) from e


class SQLOperonStore(_SQLAdaptor):
    """Operons, each with its member genes ordered by ``rank``."""

    collaborator = "OperonStore"

    def fetch_operons(self) -> List[Operon]:
        try:
            rows = (
                self.session.query(OperonGene)
                .order_by(OperonGene.operon_id, OperonGene.rank, OperonGene.gene_id)
                .all()
            )
        except SQLAlchemyError as e:
            raise self._unavailable("fetch_operons", e) from e

        operons = []
        for operon_id, members in groupby(rows, key=lambda r: r.operon_id):
            gene_ids = tuple(m.gene_id for m in members)
            operons.append(Operon(id=operon_id, first_gene_id=gene_ids[0], gene_ids=gene_ids))
        return operons


class SQLClusterCatalog(_SQLAdaptor):
    """TFBS clusters and their member motifs."""

    collaborator = "ClusterCatalog"

    @staticmethod
    def _to_cluster(record: TFClusterRecord) -> TFCluster:
        return TFCluster(
            id=record.cluster_id,
            tf_ids=tuple(record.tf_ids),
            name=record.name or "",
            family=record.family or "",
        )

    def resolve(self, cluster_id) -> TFCluster:
        try:
            record = self.session.get(TFClusterRecord, cluster_id)
        except SQLAlchemyError as e:
            raise self._unavailable("resolve", e, cluster_id=cluster_id) from e

        if record is None:
            raise UnknownClusterError(cluster_id)
        return self._to_cluster(record)

    def all_clusters(self) -> List[TFCluster]:
        try:
            records = self.session.query(TFClusterRecord).order_by(TFClusterRecord.cluster_id).all()
        except SQLAlchemyError as e:
            raise self._unavailable("all_clusters", e) from e
        return [self._to_cluster(r) for r in records]
