"""
TFBS cluster site merging.

Hits for the member motifs of a TFBS cluster frequently overlap (related
motifs recognise near-identical sequence). Counting them individually would
inflate a cluster's counts, so overlapping hits are coalesced into a single
non-redundant cluster site before counting.

Cluster sites are strand agnostic: every hit is moved to the +1 strand
(reverse complementing its sequence) before comparison.
"""

import logging
from dataclasses import replace
from typing import Iterable, List

from .sites import ClusterId, Interval, MergedSite, overlaps

logger = logging.getLogger(__name__)


def sort_sites(sites: Iterable[Interval]) -> List[Interval]:
    """Sort hits by start. Stable, so ties keep their input order."""
    return sorted(sites, key=lambda site: site.start)


def _extend(merged: MergedSite, site: Interval) -> MergedSite:
    """Fold an overlapping, already normalized hit into a merged site."""
    end, sequence = merged.end, merged.sequence

    if site.end > merged.end:
        # Bases of the new hit lying past the current merged end
        ext_seq = site.sequence[merged.end - site.start + 1:]
        if ext_seq:
            sequence = sequence + ext_seq
        end = site.end

    # A contained hit can still raise the reported scores
    return replace(
        merged,
        end=end,
        sequence=sequence,
        score=max(merged.score, site.score),
        rel_score=max(merged.rel_score, site.rel_score),
        n_members=merged.n_members + 1,
    )


def merge_cluster_sites(intervals: Iterable[Interval], cluster_id: ClusterId) -> List[MergedSite]:
    """Merge the hits of one cluster into non-overlapping cluster sites.

    Parameters
    ----------
    intervals : iterable of Interval
        Raw hits for the cluster's member motifs. Input objects are never
        modified.
    cluster_id : int or str
        ID stamped onto every resulting site.

    Returns
    -------
    list of MergedSite
        Sites on the +1 strand, ordered by start, pairwise disjoint. Each
        carries the union span, the extended sequence and the maximum
        score and relative score of its contributing hits.
    """
    ordered = sort_sites(intervals)
    if not ordered:
        return []

    merged: List[MergedSite] = [MergedSite.from_interval(ordered[0], cluster_id)]

    for interval in ordered[1:]:
        site = interval.normalized()
        last = merged[-1]

        if overlaps(last, site):
            merged[-1] = _extend(last, site)
        else:
            merged.append(MergedSite.from_interval(site, cluster_id))

    logger.debug(f"Cluster {cluster_id}: merged {len(ordered)} hits into {len(merged)} sites")
    return merged


class ClusterSiteMerger:
    """
    Coalesce raw TFBS hits into per-cluster sites.

    Also reports the covered length of a merged set, which is the value
    paired with each count in the counts matrix.
    """

    def merge(self, intervals: Iterable[Interval], cluster_id: ClusterId) -> List[MergedSite]:
        return merge_cluster_sites(intervals, cluster_id)

    @staticmethod
    def covered_length(sites: Iterable[Interval]) -> int:
        """Sum of the sequence lengths of the given sites."""
        return sum(len(site.sequence) for site in sites)

    def count_and_length(self, intervals: Iterable[Interval], cluster_id: ClusterId):
        """Merge and return ``(count, length)`` for one gene/cluster cell."""
        sites = self.merge(intervals, cluster_id)
        return len(sites), self.covered_length(sites)
