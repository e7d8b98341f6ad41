"""
FastAPI application for oPOSSUM counts.

Provides REST API endpoints for:
- Health and configuration
- Precomputed TFBS cluster counts at discrete parameter levels
- Custom counts from raw TFBS hits with continuous parameters
- Anchored counts (sites proximal to an anchoring cluster)
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import LevelConfig, settings
from .core.assembler import CountsAssembler
from .core.collaborators import SingleMotifCatalog
from .core.counts import CountsMatrix
from .core.counts_io import counts_to_string
from .core.exceptions import (
    CollaboratorError,
    CountsFormatError,
    OpossumError,
    UnknownClusterError,
    ValidationError,
)
from .models.adaptors import (
    SQLClusterCatalog,
    SQLGeneStore,
    SQLOperonStore,
    SQLPrecomputedCountsSource,
    SQLSiteSource,
)
from .models.database import init_db
from .models.schemas import (
    AnchoredCountsRequest,
    ClusterSummary,
    CountsFormatEnum,
    CountsMatrixResponse,
    CustomCountsRequest,
    PrecomputedCountsRequest,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Database setup
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {}
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting oPOSSUM counts API...")
    init_db(engine)
    logger.info("Database initialized")
    yield
    # Shutdown
    logger.info("Shutting down oPOSSUM counts API...")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="API for assembling gene x TFBS cluster counts for over-representation analysis",
    version=settings.app_version,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency for database session
def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def build_assembler(db: Session, single_site: bool = False) -> CountsAssembler:
    """Wire the SQL collaborators for one request."""
    return CountsAssembler(
        site_source=SQLSiteSource(db),
        precomputed_source=SQLPrecomputedCountsSource(db),
        gene_store=SQLGeneStore(db),
        operon_store=SQLOperonStore(db),
        cluster_catalog=SingleMotifCatalog() if single_site else SQLClusterCatalog(db),
    )


def _run_counts(fetch: Callable[[], CountsMatrix], fmt: Optional[CountsFormatEnum]) -> CountsMatrixResponse:
    """Run an assembly and map domain errors onto HTTP status codes."""
    try:
        counts = fetch()
        formatted = counts_to_string(counts, fmt.value) if fmt else None
    except UnknownClusterError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValidationError, CountsFormatError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except CollaboratorError as e:
        logger.error(f"Counts assembly failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except OpossumError as e:
        logger.error(f"Counts assembly failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return to_response(counts, formatted)


def to_response(counts: CountsMatrix, formatted: Optional[str] = None) -> CountsMatrixResponse:
    data = counts.to_dict()
    summary = [
        ClusterSummary(
            cluster_id=cid,
            gene_count=counts.cluster_gene_count(cid),
            site_count=counts.cluster_count(cid),
            site_length=counts.cluster_length(cid),
        )
        for cid in counts.cluster_ids
    ]
    return CountsMatrixResponse(**data, summary=summary, formatted=formatted)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


@app.get("/config")
async def get_config():
    """Get parameter levels and analysis defaults."""
    return {
        "conservation_levels": LevelConfig.CONSERVATION_LEVELS,
        "threshold_levels": LevelConfig.THRESHOLD_LEVELS,
        "search_region_levels": LevelConfig.SEARCH_REGION_LEVELS,
        "defaults": {
            "conservation_level": settings.default_conservation_level,
            "threshold": settings.default_threshold,
            "upstream_bp": settings.default_upstream_bp,
            "downstream_bp": settings.default_downstream_bp,
            "distance": settings.default_distance,
        },
    }


# ============================================================================
# Counts Endpoints
# ============================================================================

@app.post("/counts/precomputed", response_model=CountsMatrixResponse)
async def precomputed_counts(
    request: PrecomputedCountsRequest,
    fmt: Optional[CountsFormatEnum] = None,
    db: Session = Depends(get_db)
):
    """Counts precomputed at discrete conservation/threshold/search region levels."""
    try:
        if request.conservation_level is not None:
            settings.get_conservation_level(request.conservation_level)
        if request.threshold_level is not None:
            settings.get_threshold_level(request.threshold_level)
        if request.search_region_level is not None:
            settings.get_search_region_level(request.search_region_level)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    assembler = build_assembler(db)
    return _run_counts(
        lambda: assembler.fetch_counts(
            conservation_level=request.conservation_level,
            threshold_level=request.threshold_level,
            search_region_level=request.search_region_level,
            gene_ids=request.gene_ids,
            cluster_ids=request.cluster_ids,
            operon_gene_ids=request.operon_gene_ids,
            has_operon=request.has_operon,
        ),
        fmt,
    )


@app.post("/counts/custom", response_model=CountsMatrixResponse)
async def custom_counts(
    request: CustomCountsRequest,
    fmt: Optional[CountsFormatEnum] = None,
    db: Session = Depends(get_db)
):
    """Counts of merged cluster sites computed with continuous parameters."""
    assembler = build_assembler(db, single_site=request.single_site)
    return _run_counts(
        lambda: assembler.fetch_custom_counts(
            conservation_level=request.conservation_level,
            threshold=request.threshold,
            upstream_bp=request.upstream_bp,
            downstream_bp=request.downstream_bp,
            cluster_ids=request.cluster_ids,
            gene_ids=request.gene_ids,
            operon_gene_ids=request.operon_gene_ids,
            has_operon=request.has_operon,
        ),
        fmt,
    )


@app.post("/counts/anchored", response_model=CountsMatrixResponse)
async def anchored_counts(
    request: AnchoredCountsRequest,
    fmt: Optional[CountsFormatEnum] = None,
    db: Session = Depends(get_db)
):
    """Counts of cluster sites within a distance of the anchoring cluster's sites."""
    assembler = build_assembler(db, single_site=request.single_site)
    return _run_counts(
        lambda: assembler.fetch_anchored_counts(
            anchor_cluster_id=request.anchor_cluster_id,
            cluster_ids=request.cluster_ids,
            distance=request.distance,
            conservation_level=request.conservation_level,
            threshold=request.threshold,
            upstream_bp=request.upstream_bp,
            downstream_bp=request.downstream_bp,
            gene_ids=request.gene_ids,
            operon_gene_ids=request.operon_gene_ids,
            has_operon=request.has_operon,
        ),
        fmt,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
