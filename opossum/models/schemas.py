"""
Pydantic schemas for API request/response validation.

Defines schemas for:
- Counts requests (precomputed, custom, anchored)
- Counts matrix responses with per-cluster summaries
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

Id = Union[int, str]


class CountsFormatEnum(str, Enum):
    FISHER = "fisher"
    ZSCORE = "zscore"
    DETAIL = "detail"


# ============================================================================
# Request Schemas
# ============================================================================


class CountsRequestBase(BaseModel):
    """Gene selection and operon handling shared by all counts requests."""

    gene_ids: Optional[List[int]] = Field(
        default=None, description="Genes to count; all genes in the database if omitted"
    )
    has_operon: bool = Field(default=False, description="Replicate first-gene counts across operons")
    operon_gene_ids: Optional[Dict[int, int]] = Field(
        default=None, description="Explicit gene -> first operon gene map"
    )


class PrecomputedCountsRequest(CountsRequestBase):
    """Counts precomputed at discrete parameter levels."""

    conservation_level: Optional[int] = Field(default=None, ge=1)
    threshold_level: Optional[int] = Field(default=None, ge=1)
    search_region_level: Optional[int] = Field(default=None, ge=1)
    cluster_ids: Optional[List[int]] = Field(
        default=None, description="Clusters to include; all clusters with counts if omitted"
    )


class CustomCountsRequest(CountsRequestBase):
    """Counts computed from raw TFBS hits with continuous parameters."""

    conservation_level: Optional[int] = Field(default=None, ge=1)
    threshold: Optional[Union[float, str]] = Field(
        default=None, description="Minimum relative score, e.g. 0.8 or '80%'"
    )
    upstream_bp: Optional[int] = None
    downstream_bp: Optional[int] = None
    cluster_ids: Optional[List[Id]] = Field(default=None, description="TFBS clusters (or motifs) to count")
    single_site: bool = Field(default=False, description="Treat each ID as a single motif, not a cluster")


class AnchoredCountsRequest(CustomCountsRequest):
    """Counts of sites within ``distance`` bp of an anchoring cluster's sites."""

    anchor_cluster_id: Optional[Id] = None
    distance: Optional[int] = None


# ============================================================================
# Response Schemas
# ============================================================================


class ClusterSummary(BaseModel):
    """Per-cluster totals used by the enrichment tests."""

    cluster_id: Id
    gene_count: int = Field(..., description="Genes with at least one site")
    site_count: int = Field(..., description="Total sites over all genes")
    site_length: int = Field(..., description="Total nucleotides covered by sites")


class CountsMatrixResponse(BaseModel):
    """A gene x cluster counts matrix."""

    gene_ids: List[int]
    cluster_ids: List[Id]
    counts: List[List[int]]
    lengths: List[List[int]]
    params: Dict[str, Any] = Field(default_factory=dict)
    summary: List[ClusterSummary] = Field(default_factory=list)
    formatted: Optional[str] = Field(default=None, description="Matrix rendered in the requested file format")
