"""
Unit tests for the SQLAlchemy-backed collaborators.

Uses the seeded_db fixture from conftest.py (in-memory SQLite).
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from opossum.core.collaborators import TFCluster
from opossum.core.exceptions import CollaboratorUnavailableError, UnknownClusterError
from opossum.models.adaptors import (
    SQLClusterCatalog,
    SQLGeneStore,
    SQLOperonStore,
    SQLPrecomputedCountsSource,
    SQLSiteSource,
)
from opossum.models.database import Gene, Promoter, combine_regions


def _broken_session():
    session = MagicMock()
    error = OperationalError("SELECT 1", {}, Exception("database is locked"))
    session.get.side_effect = error
    session.query.side_effect = error
    return session


# ============================================================================
# Search regions
# ============================================================================


class TestPromoterSearchRegions:
    """Tests for Gene.promoter_search_regions."""

    def test_plus_strand(self):
        gene = Gene(gene_id=1, start=1001, end=4000, tss=3001, strand=1)
        gene.promoters = [Promoter(tss=3001)]
        assert gene.promoter_search_regions(2000, 500) == [(1, 2500)]

    def test_minus_strand(self):
        gene = Gene(gene_id=2, start=5001, end=8000, tss=5800, strand=-1)
        gene.promoters = [Promoter(tss=5800)]
        assert gene.promoter_search_regions(2000, 500) == [(301, 2800)]

    def test_clipped_to_gene(self):
        gene = Gene(gene_id=1, start=1001, end=4000, tss=3001, strand=1)
        gene.promoters = [Promoter(tss=3001)]
        assert gene.promoter_search_regions(5000, 5000) == [(1, 3000)]

    def test_multiple_promoters(self):
        gene = Gene(gene_id=1, start=1001, end=4000, tss=3001, strand=1)
        gene.promoters = [Promoter(tss=2001), Promoter(tss=3001)]
        assert gene.promoter_search_regions(100, 100) == [(901, 1100), (1901, 2100)]

    def test_falls_back_to_gene_tss(self):
        gene = Gene(gene_id=3, start=10001, end=13000, tss=12001, strand=1)
        assert gene.promoter_search_regions(1000, 0) == [(1001, 2000)]

    def test_combine_regions(self):
        assert combine_regions([(50, 60), (1, 10), (5, 20), (21, 30)]) == [(1, 30), (50, 60)]
        assert combine_regions([(10, 5)]) == []


# ============================================================================
# Site source
# ============================================================================


class TestSQLSiteSource:
    """Tests for SQLSiteSource."""

    def test_filters_by_region_and_threshold(self, seeded_db):
        source = SQLSiteSource(seeded_db)
        sites = source.fetch_sites(1, ["MA0001", "MA0002"], 1, 0.8, 2000, 500)
        # 2600-2609 lies outside the search region
        assert [(s.start, s.end) for s in sites] == [(100, 109), (105, 114)]
        assert sites[0].sequence == "ACGTACGTAC"
        assert sites[0].tf_id == "MA0001"

    def test_threshold_excludes_low_scores(self, seeded_db):
        source = SQLSiteSource(seeded_db)
        assert len(source.fetch_sites(1, ["MA0003"], 1, 0.8, 2000, 500)) == 1
        assert len(source.fetch_sites(1, ["MA0003"], 1, 0.6, 2000, 500)) == 2

    def test_percentage_threshold(self, seeded_db):
        source = SQLSiteSource(seeded_db)
        assert len(source.fetch_sites(1, ["MA0003"], 1, "80%", 2000, 500)) == 1

    def test_conservation_level(self, seeded_db):
        source = SQLSiteSource(seeded_db)
        sites = source.fetch_sites(1, ["MA0001", "MA0002"], 3, 0.8, 2000, 500)
        assert [(s.start, s.end) for s in sites] == [(100, 109)]

    def test_minus_strand_gene(self, seeded_db):
        source = SQLSiteSource(seeded_db)
        sites = source.fetch_sites(2, ["MA0001", "MA0003"], 1, 0.8, 2000, 500)
        assert [(s.start, s.end, s.strand) for s in sites] == [(400, 407, -1)]

    def test_unknown_gene(self, seeded_db):
        assert SQLSiteSource(seeded_db).fetch_sites(99, ["MA0001"], 1, 0.8, 2000, 0) == []

    def test_no_tf_ids(self, seeded_db):
        assert SQLSiteSource(seeded_db).fetch_sites(1, [], 1, 0.8, 2000, 0) == []

    def test_database_error(self):
        with pytest.raises(CollaboratorUnavailableError, match="database is locked") as exc_info:
            SQLSiteSource(_broken_session()).fetch_sites(1, ["MA0001"], 1, 0.8, 2000, 0)
        assert exc_info.value.gene_id == 1


# ============================================================================
# Precomputed counts, genes, operons, clusters
# ============================================================================


class TestSQLPrecomputedCountsSource:
    """Tests for SQLPrecomputedCountsSource."""

    def test_fetch_by_levels(self, seeded_db):
        rows = SQLPrecomputedCountsSource(seeded_db).fetch_raw(1, 1, 1, [1, 2, 3])
        assert [(r.gene_id, r.cluster_id, r.count, r.length) for r in rows] == [
            (1, 1, 2, 30),
            (2, 2, 1, 8),
        ]

    def test_other_level(self, seeded_db):
        rows = SQLPrecomputedCountsSource(seeded_db).fetch_raw(2, 1, 1, [1])
        assert [(r.cluster_id, r.count) for r in rows] == [(2, 5)]

    def test_cluster_filter(self, seeded_db):
        rows = SQLPrecomputedCountsSource(seeded_db).fetch_raw(1, 1, 1, [1, 2], [2])
        assert [r.gene_id for r in rows] == [2]

    def test_database_error(self):
        with pytest.raises(CollaboratorUnavailableError):
            SQLPrecomputedCountsSource(_broken_session()).fetch_raw(1, 1, 1, [1])


class TestSQLGeneStore:
    """Tests for SQLGeneStore."""

    def test_all_gene_ids(self, seeded_db):
        assert SQLGeneStore(seeded_db).fetch_all_gene_ids() == [1, 2, 3]

    def test_database_error(self):
        with pytest.raises(CollaboratorUnavailableError, match="GeneStore"):
            SQLGeneStore(_broken_session()).fetch_all_gene_ids()


class TestSQLOperonStore:
    """Tests for SQLOperonStore."""

    def test_first_gene_by_rank(self, seeded_db):
        operons = SQLOperonStore(seeded_db).fetch_operons()
        assert len(operons) == 1
        assert operons[0].first_gene_id == 1
        assert operons[0].gene_ids == (1, 3)

    def test_empty(self, db_session):
        assert SQLOperonStore(db_session).fetch_operons() == []


class TestSQLClusterCatalog:
    """Tests for SQLClusterCatalog."""

    def test_resolve(self, seeded_db):
        cluster = SQLClusterCatalog(seeded_db).resolve(1)
        assert cluster == TFCluster(1, ("MA0001", "MA0002"), name="bHLH", family="Helix-Loop-Helix")

    def test_unknown(self, seeded_db):
        with pytest.raises(UnknownClusterError):
            SQLClusterCatalog(seeded_db).resolve(99)

    def test_all_clusters(self, seeded_db):
        clusters = SQLClusterCatalog(seeded_db).all_clusters()
        assert [c.id for c in clusters] == [1, 2]
        assert clusters[1].tf_ids == ("MA0003",)

    def test_database_error(self):
        with pytest.raises(CollaboratorUnavailableError) as exc_info:
            SQLClusterCatalog(_broken_session()).resolve(1)
        assert exc_info.value.cluster_id == 1
