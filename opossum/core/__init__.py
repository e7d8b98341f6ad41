"""
Core counting modules for oPOSSUM.

Includes:
- Binding site value types and strand normalization
- TFBS cluster site merging
- Anchored proximity filtering
- Operon-aware count replication
- Gene x cluster counts matrix and its file formats
- Fisher exact and z-score enrichment of target vs background counts
- Counts assembly (precomputed / custom / anchored)
"""

# Sites
from .sites import Interval, MergedSite, overlaps, reverse_complement

# Merging and proximity
from .merging import ClusterSiteMerger, merge_cluster_sites, sort_sites
from .proximity import ProximityFilter, proximal_sites, site_distance

# Operons
from .operons import OperonCanonicalizer, build_operon_map, canonicalize, expand

# Counts
from .counts import CountsMatrix
from .counts_io import read_counts, write_counts

# Statistics
from .enrichment import fisher_enrichment, zscore_enrichment

# Collaborators
from .collaborators import (
    InMemoryClusterCatalog,
    Operon,
    RawCount,
    SingleMotifCatalog,
    TFCluster,
    parse_threshold,
)

# Assembly
from .assembler import (
    AnchoredCountsStrategy,
    CountsAssembler,
    CustomCountsStrategy,
    PrecomputedCountsStrategy,
)

__all__ = [
    # Sites
    "Interval",
    "MergedSite",
    "overlaps",
    "reverse_complement",

    # Merging / proximity
    "ClusterSiteMerger",
    "merge_cluster_sites",
    "sort_sites",
    "ProximityFilter",
    "proximal_sites",
    "site_distance",

    # Operons
    "OperonCanonicalizer",
    "build_operon_map",
    "canonicalize",
    "expand",

    # Counts
    "CountsMatrix",
    "read_counts",
    "write_counts",

    # Statistics
    "fisher_enrichment",
    "zscore_enrichment",

    # Collaborators
    "InMemoryClusterCatalog",
    "Operon",
    "RawCount",
    "SingleMotifCatalog",
    "TFCluster",
    "parse_threshold",

    # Assembly
    "AnchoredCountsStrategy",
    "CountsAssembler",
    "CustomCountsStrategy",
    "PrecomputedCountsStrategy",
]
