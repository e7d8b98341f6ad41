"""Database models, SQL collaborators and Pydantic schemas."""

from .database import (
    Base,
    ConservedTFBS,
    Gene,
    OperonGene,
    Promoter,
    TFBSClusterCount,
    TFClusterMember,
    TFClusterRecord,
)
from .adaptors import (
    SQLClusterCatalog,
    SQLGeneStore,
    SQLOperonStore,
    SQLPrecomputedCountsSource,
    SQLSiteSource,
)
from .schemas import (
    AnchoredCountsRequest,
    ClusterSummary,
    CountsMatrixResponse,
    CustomCountsRequest,
    PrecomputedCountsRequest,
)

__all__ = [
    "Base",
    "ConservedTFBS",
    "Gene",
    "OperonGene",
    "Promoter",
    "TFBSClusterCount",
    "TFClusterMember",
    "TFClusterRecord",
    "SQLClusterCatalog",
    "SQLGeneStore",
    "SQLOperonStore",
    "SQLPrecomputedCountsSource",
    "SQLSiteSource",
    "AnchoredCountsRequest",
    "ClusterSummary",
    "CountsMatrixResponse",
    "CustomCountsRequest",
    "PrecomputedCountsRequest",
]
