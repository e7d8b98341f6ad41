"""
Unit tests for anchored proximity filtering.
"""

import pytest

from opossum.core.exceptions import InvalidParameterError
from opossum.core.proximity import ProximityFilter, proximal_sites, site_distance
from opossum.core.sites import MergedSite


def site(start, end, cluster_id):
    return MergedSite(start=start, end=end, sequence="N" * (end - start + 1), cluster_id=cluster_id)


# ============================================================================
# Distances
# ============================================================================


class TestSiteDistance:
    """Tests for the inter-site gap."""

    def test_candidate_right_of_anchor(self):
        assert site_distance(site(100, 110, "A"), site(115, 120, "B")) == 4

    def test_candidate_left_of_anchor(self):
        assert site_distance(site(100, 110, "A"), site(80, 89, "B")) == 10

    def test_adjacent_is_zero(self):
        assert site_distance(site(100, 110, "A"), site(111, 120, "B")) == 0

    def test_overlap_is_none(self):
        assert site_distance(site(100, 110, "A"), site(110, 120, "B")) is None


# ============================================================================
# Proximal site selection
# ============================================================================


class TestProximalSites:
    """Tests for proximal_sites."""

    def test_different_cluster_within_distance(self):
        anchors = [site(100, 110, "A")]
        candidates = [site(115, 120, "B"), site(200, 210, "B")]
        prox = proximal_sites(anchors, candidates, 10)
        assert [(s.start, s.end) for s in prox] == [(115, 120)]

    def test_distance_boundary_inclusive(self):
        anchors = [site(100, 110, "A")]
        assert len(proximal_sites(anchors, [site(121, 125, "B")], 10)) == 1
        assert proximal_sites(anchors, [site(122, 125, "B")], 10) == []

    def test_left_side_different_cluster(self):
        anchors = [site(100, 110, "A")]
        prox = proximal_sites(anchors, [site(90, 95, "B")], 10)
        assert len(prox) == 1

    def test_same_cluster_overlap_skipped(self):
        anchors = [site(100, 110, "A")]
        assert proximal_sites(anchors, [site(105, 112, "A")], 1000) == []

    def test_same_cluster_left_skipped(self):
        anchors = [site(100, 110, "A")]
        assert proximal_sites(anchors, [site(90, 95, "A")], 1000) == []

    def test_same_cluster_right_counted(self):
        anchors = [site(100, 110, "A")]
        assert len(proximal_sites(anchors, [site(115, 120, "A")], 10)) == 1

    def test_different_cluster_overlap_skipped(self):
        anchors = [site(100, 110, "A")]
        assert proximal_sites(anchors, [site(105, 112, "B")], 1000) == []

    def test_duplicates_preserved(self):
        anchors = [site(100, 110, "A"), site(130, 140, "A")]
        candidates = [site(118, 122, "B")]
        prox = proximal_sites(anchors, candidates, 10)
        assert len(prox) == 2
        assert prox[0] is prox[1]

    def test_anchor_order_irrelevant_for_different_clusters(self):
        anchors = [site(100, 110, "A"), site(300, 310, "A")]
        candidates = [site(115, 120, "B"), site(290, 295, "B")]
        forward = proximal_sites(anchors, candidates, 10)
        backward = proximal_sites(list(reversed(anchors)), candidates, 10)
        assert sorted(s.start for s in forward) == sorted(s.start for s in backward)

    def test_same_cluster_swap_changes_result(self):
        a = site(100, 110, "A")
        c = site(115, 120, "A")
        assert proximal_sites([a], [c], 10) == [c]
        assert proximal_sites([c], [a], 10) == []

    def test_empty_inputs(self):
        assert proximal_sites([], [site(1, 5, "B")], 10) == []
        assert proximal_sites([site(1, 5, "A")], [], 10) == []

    def test_negative_distance_rejected(self):
        with pytest.raises(InvalidParameterError):
            proximal_sites([site(1, 5, "A")], [site(10, 15, "B")], -1)


class TestProximityFilter:
    """Tests for the ProximityFilter wrapper."""

    def test_filter(self):
        proximity = ProximityFilter(10)
        prox = proximity.filter([site(100, 110, "A")], [site(115, 120, "B"), site(200, 210, "B")])
        assert len(prox) == 1

    def test_zero_distance_only_adjacent(self):
        proximity = ProximityFilter(0)
        anchors = [site(100, 110, "A")]
        assert len(proximity.filter(anchors, [site(111, 115, "B")])) == 1
        assert proximity.filter(anchors, [site(112, 115, "B")]) == []

    def test_negative_distance_rejected(self):
        with pytest.raises(InvalidParameterError):
            ProximityFilter(-5)
