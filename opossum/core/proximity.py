"""
Anchored proximity filtering.

Given merged sites of an anchoring motif/cluster and merged sites of a
candidate motif/cluster, select the candidate sites lying within a maximum
gap of some anchor site. Used identically for anchored single-site and
anchored cluster analyses; only the granularity of the prior merge differs.
"""

import logging
from typing import List, Optional, Sequence

from .exceptions import validate_numeric_param
from .sites import Interval

logger = logging.getLogger(__name__)


def site_distance(anchor: Interval, site: Interval) -> Optional[int]:
    """Number of bases strictly between two sites, or None if they overlap."""
    if site.start > anchor.end:
        return site.start - anchor.end - 1
    if anchor.start > site.end:
        return anchor.start - site.end - 1
    return None


def proximal_sites(
    anchor_sites: Sequence[Interval],
    sites: Sequence[Interval],
    max_distance: int,
) -> List[Interval]:
    """Find candidate sites proximal to any anchor site.

    Every (anchor, site) pair is tested, anchors in the outer loop:

    - When the site has the same cluster/motif ID as the anchor, only sites
      starting to the right of the anchor are considered, so a same-cluster
      pair is counted once rather than once per orientation.
    - Sites overlapping an anchor are never proximal.
    - A site within ``max_distance`` of several anchors appears once per
      anchor; the multiplicity is intentional.

    Returns
    -------
    list
        Proximal candidate sites, possibly with repeats. Empty when nothing
        qualifies.
    """
    validate_numeric_param(max_distance, "max_distance", min_val=0)

    found: List[Interval] = []
    for anchor in anchor_sites:
        for site in sites:
            if site.cluster_id == anchor.cluster_id and site.start <= anchor.end:
                continue

            dist = site_distance(anchor, site)
            if dist is None:
                continue

            if dist <= max_distance:
                found.append(site)

    return found


class ProximityFilter:
    """Proximity filter bound to a maximum inter-site distance."""

    def __init__(self, max_distance: int):
        validate_numeric_param(max_distance, "max_distance", min_val=0)
        self.max_distance = max_distance

    def filter(self, anchor_sites: Sequence[Interval], sites: Sequence[Interval]) -> List[Interval]:
        prox = proximal_sites(anchor_sites, sites, self.max_distance)
        logger.debug(
            f"{len(prox)} of {len(sites)} sites within {self.max_distance}bp of "
            f"{len(anchor_sites)} anchor sites"
        )
        return prox
