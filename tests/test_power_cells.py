"""Tests for power cell boundary extraction."""

import pytest
import numpy as np
from py_powercell.core.errors import MalformedAdjacencyError
from py_powercell.core.power_cells import (
    Ray, Segment, build_edge_map, edge_key, extract_power_cells, order_segment_list
)
from py_powercell.core.sites import SiteSet
from py_powercell.core.triangulation import build_regular_triangulation


class TestEdgeMap:
    """Test the triangle adjacency map."""

    def test_edge_key_canonical(self):
        """Test that edge keys ignore direction."""
        assert edge_key(3, 1) == edge_key(1, 3) == (1, 3)

    def test_shared_edge(self):
        """Test that an interior edge lists both triangles."""
        edge_map = build_edge_map([(0, 1, 2), (0, 2, 3)])
        assert edge_map[(0, 2)] == [0, 1]
        assert edge_map[(0, 1)] == [0]
        assert len(edge_map) == 5

    def test_three_triangles_on_edge(self):
        """Test that non-manifold adjacency is rejected."""
        with pytest.raises(MalformedAdjacencyError):
            build_edge_map([(0, 1, 2), (1, 0, 3), (0, 1, 4)])


class TestOrderSegmentList:
    """Test chaining boundary pieces into walk order."""

    def test_closed_chain(self):
        """Test a bounded cell starts at the smallest tag and closes."""
        pieces = [
            Segment((1, 0), (0, 1), 2, 0),
            Segment((0, 1), (-1, 0), 0, 1),
            Segment((-1, 0), (1, 0), 1, 2),
        ]
        ordered = order_segment_list(pieces)
        assert [p.from_tag for p in ordered] == [0, 1, 2]

    def test_open_chain(self):
        """Test an unbounded cell starts at its incoming ray."""
        pieces = [
            Ray((1, 0), (0, -1), 1, outgoing=True),
            Segment((0, 0), (1, 0), 0, 1),
            Ray((0, 0), (-1, 0), 0, outgoing=False),
        ]
        ordered = order_segment_list(pieces)
        assert isinstance(ordered[0], Ray) and not ordered[0].outgoing
        assert isinstance(ordered[1], Segment)
        assert isinstance(ordered[2], Ray) and ordered[2].outgoing

    def test_duplicate_tag(self):
        """Test that two pieces leaving the same tag are rejected."""
        pieces = [Segment((0, 0), (1, 0), 0, 1), Segment((0, 0), (0, 1), 0, 2)]
        with pytest.raises(MalformedAdjacencyError):
            order_segment_list(pieces)

    def test_broken_chain(self):
        """Test that a chain missing a link is rejected."""
        pieces = [
            Segment((0, 0), (1, 0), 0, 1),
            Segment((1, 0), (0, 0), 1, 0),
            Segment((5, 5), (6, 6), 7, 8),
        ]
        with pytest.raises(MalformedAdjacencyError):
            order_segment_list(pieces)

    def test_empty(self):
        """Test that no pieces give an empty walk."""
        assert order_segment_list([]) == []


class TestExtract:
    """Test boundary extraction from a triangulation."""

    def test_three_sites(self):
        """Test the three rays around a single power center."""
        sites = SiteSet.from_arrays([(0, 0), (4, 0), (2, 4)])
        cells = extract_power_cells(sites, build_regular_triangulation(sites))
        assert sorted(cells) == [0, 1, 2]
        for pieces in cells.values():
            assert len(pieces) == 2
            incoming, outgoing = pieces
            assert not incoming.outgoing and outgoing.outgoing
            np.testing.assert_allclose(incoming.origin, (2.0, 1.5))
            np.testing.assert_allclose(np.hypot(*outgoing.direction), 1.0)

        # Edge (0, 1) is the bottom hull edge: its ray points down
        np.testing.assert_allclose(cells[0][1].direction, (0.0, -1.0), atol=1e-12)

    def test_rays_point_away_from_hull(self):
        """Test every ray leaves the sites' convex hull."""
        rng = np.random.default_rng(11)
        sites = SiteSet.from_arrays(rng.uniform(-5, 5, size=(20, 2)))
        tri = build_regular_triangulation(sites)
        cells = extract_power_cells(sites, tri)
        positions = sites.positions
        rays = 0
        for site, pieces in cells.items():
            for p in pieces:
                if isinstance(p, Ray) and p.outgoing:
                    rays += 1
                    # All sites lie behind the hull edge the ray crosses
                    offsets = (positions - positions[site]) @ np.array(p.direction)
                    assert offsets.max() <= 1e-9
        assert rays >= 3

    def test_interior_site_is_bounded(self):
        """Test that a site surrounded by others gets a closed walk."""
        sites = SiteSet.from_arrays([(0, 0), (-4, -4), (4, -4), (4, 4), (-4, 4)])
        cells = extract_power_cells(sites, build_regular_triangulation(sites))
        assert all(isinstance(p, Segment) for p in cells[0])
        assert len(cells[0]) == 4
        for a, b in zip(cells[0], cells[0][1:] + cells[0][:1]):
            assert a.to_tag == b.from_tag

    def test_dominated_site_has_no_entry(self):
        """Test that a site with an empty power cell gets no boundary."""
        sites = SiteSet.from_arrays(
            [(-4, -4), (4, -4), (0, 4), (0.5, 0.0), (0.0, 0.0)],
            weights=[1.0, 1.0, 1.0, 5.0, 0.1],
        )
        cells = extract_power_cells(sites, build_regular_triangulation(sites))
        assert 4 not in cells
