"""
Shared test fixtures for the oPOSSUM counts test suite.
"""

import pytest

from opossum.core.collaborators import InMemoryClusterCatalog, Operon, RawCount, TFCluster
from opossum.core.sites import Interval


# ============================================================================
# Fake collaborators
# ============================================================================


class FakeSiteSource:
    """Site source backed by a ``{(gene_id, tf_id): [Interval, ...]}`` dict."""

    def __init__(self, sites=None):
        self.sites = dict(sites or {})
        self.calls = []

    def fetch_sites(self, gene_id, tf_ids, conservation_level, threshold, upstream_bp, downstream_bp):
        self.calls.append((gene_id, tuple(tf_ids)))
        found = []
        for tf_id in tf_ids:
            found.extend(self.sites.get((gene_id, tf_id), []))
        return found


class FakePrecomputedSource:
    def __init__(self, rows=None):
        self.rows = list(rows or [])
        self.calls = []

    def fetch_raw(self, conservation_level, threshold_level, search_region_level, gene_ids, cluster_ids=None):
        self.calls.append((conservation_level, threshold_level, search_region_level, list(gene_ids)))
        return [r for r in self.rows if r.gene_id in gene_ids]


class FakeGeneStore:
    def __init__(self, gene_ids):
        self.gene_ids = list(gene_ids)

    def fetch_all_gene_ids(self):
        return list(self.gene_ids)


class FakeOperonStore:
    def __init__(self, operons):
        self.operons = list(operons)
        self.calls = 0

    def fetch_operons(self):
        self.calls += 1
        return list(self.operons)


# ============================================================================
# Collaborator fixtures
# ============================================================================


@pytest.fixture
def cluster_catalog():
    """Two clusters: C1 = {MA1, MA2}, C2 = {MA3}."""
    return InMemoryClusterCatalog([
        TFCluster("C1", ("MA1", "MA2"), name="bHLH"),
        TFCluster("C2", ("MA3",), name="ETS"),
    ])


@pytest.fixture
def site_source():
    """
    Hits for genes 10, 11 and 12.

    Gene 10: MA1 and MA2 overlap (one C1 site, 15bp); MA3 4bp downstream.
    Gene 11: only MA3 (reverse strand).
    Gene 12: no hits at all.
    """
    return FakeSiteSource({
        (10, "MA1"): [Interval(100, 109, 1, 7.0, 0.90, "ACGTACGTAC", tf_id="MA1")],
        (10, "MA2"): [Interval(105, 114, 1, 9.0, 0.85, "CGTACGGGTT", tf_id="MA2")],
        (10, "MA3"): [Interval(119, 126, 1, 6.0, 0.95, "GGAAGTGA", tf_id="MA3")],
        (11, "MA3"): [Interval(400, 407, -1, 6.5, 0.92, "AACCGGTT", tf_id="MA3")],
    })


@pytest.fixture
def precomputed_source():
    return FakePrecomputedSource([
        RawCount(10, "C1", 2, 30),
        RawCount(11, "C2", 1, 8),
    ])


@pytest.fixture
def gene_store():
    return FakeGeneStore([10, 11, 12])


@pytest.fixture
def operon_store():
    """Operon with first gene 10 and member 12."""
    return FakeOperonStore([Operon(id=1, first_gene_id=10, gene_ids=(10, 12))])


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def test_db_url():
    """In-memory SQLite database URL for testing."""
    return "sqlite:///:memory:"


@pytest.fixture
def db_engine(test_db_url):
    """Create a test database engine.

    Uses StaticPool so that all connections share the same in-memory
    SQLite database (otherwise each connection gets its own empty DB).
    """
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool
    from opossum.models.database import Base

    engine = create_engine(
        test_db_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(db_engine):
    """Create a test database session."""
    from opossum.models.database import get_session

    session = get_session(db_engine)
    yield session
    session.close()


@pytest.fixture
def seeded_db(db_session):
    """
    A small oPOSSUM database.

    Genes (genomic coords; sites are stored relative to gene start):
    - 1: chr1:1001-4000 (+), promoter TSS 3001 -> relative TSS 2001
    - 2: chr1:5001-8000 (-), promoter TSS 5800 -> relative TSS 800
    - 3: chr2:10001-13000 (+), no promoters stored (falls back to gene TSS)

    Operon 1 = [1, 3] with 1 first. Clusters 1 = {MA0001, MA0002}, 2 = {MA0003}.
    """
    from opossum.models.database import (
        ConservedTFBS,
        Gene,
        OperonGene,
        Promoter,
        TFBSClusterCount,
        TFClusterMember,
        TFClusterRecord,
    )

    db_session.add_all([
        Gene(gene_id=1, ensembl_id="ENSG01", symbol="GENE1", chr="1", start=1001, end=4000, tss=3001, strand=1),
        Gene(gene_id=2, ensembl_id="ENSG02", symbol="GENE2", chr="1", start=5001, end=8000, tss=5800, strand=-1),
        Gene(gene_id=3, ensembl_id="ENSG03", symbol="GENE3", chr="2", start=10001, end=13000, tss=12001, strand=1),
        Promoter(gene_id=1, tss=3001, ensembl_transcript_id="ENST01"),
        Promoter(gene_id=2, tss=5800, ensembl_transcript_id="ENST02"),
        OperonGene(operon_id=1, gene_id=1, symbol="opGENE1", rank=0),
        OperonGene(operon_id=1, gene_id=3, symbol="opGENE1", rank=1),
        TFClusterRecord(cluster_id=1, name="bHLH", family="Helix-Loop-Helix"),
        TFClusterRecord(cluster_id=2, name="ETS", family="Winged Helix-Turn-Helix"),
        TFClusterMember(cluster_id=1, tf_id="MA0001"),
        TFClusterMember(cluster_id=1, tf_id="MA0002"),
        TFClusterMember(cluster_id=2, tf_id="MA0003"),
    ])

    def tfbs(gene_id, tf_id, start, end, seq, rel_score, level, strand=1):
        return ConservedTFBS(
            gene_id=gene_id, tf_id=tf_id, start=start, end=end, strand=strand,
            score=10 * rel_score, rel_score=rel_score, seq=seq,
            conservation_level=level, conservation=0.6 + 0.05 * level,
        )

    db_session.add_all([
        # gene 1
        tfbs(1, "MA0001", 100, 109, "ACGTACGTAC", 0.90, 3),
        tfbs(1, "MA0002", 105, 114, "CGTACGGGTT", 0.85, 2),
        tfbs(1, "MA0001", 2600, 2609, "ACGTACGTAC", 0.99, 3),
        tfbs(1, "MA0003", 130, 137, "GGAAGTGA", 0.95, 1),
        tfbs(1, "MA0003", 1000, 1007, "GGAAGTGA", 0.70, 1),
        # gene 2
        tfbs(2, "MA0003", 400, 407, "AACCGGTT", 0.90, 2, strand=-1),
        tfbs(2, "MA0001", 200, 209, "ACGTACGTAC", 0.90, 3),
    ])

    db_session.add_all([
        TFBSClusterCount(gene_id=1, cluster_id=1, conservation_level=1, threshold_level=1,
                         search_region_level=1, count=2, sum_length=30),
        TFBSClusterCount(gene_id=2, cluster_id=2, conservation_level=1, threshold_level=1,
                         search_region_level=1, count=1, sum_length=8),
        TFBSClusterCount(gene_id=1, cluster_id=2, conservation_level=2, threshold_level=1,
                         search_region_level=1, count=5, sum_length=40),
    ])
    db_session.commit()
    return db_session


# ============================================================================
# FastAPI test client
# ============================================================================


@pytest.fixture
def api_client(db_engine, seeded_db):
    """Create a FastAPI test client with a seeded test database."""
    from fastapi.testclient import TestClient
    from sqlalchemy.orm import sessionmaker

    from opossum.main import app, get_db

    TestSession = sessionmaker(bind=db_engine)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
