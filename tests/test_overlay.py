"""Tests for renderer overlay data."""

import pytest
from py_powercell.core.diagram import recompute
from py_powercell.core.overlay import OverlayOptions, build_overlay, cell_outline
from py_powercell.core.sites import ClipRectangle, Owner, SiteSet


class TestOverlay:
    """Test overlay layers."""

    @pytest.fixture
    def sites(self):
        return SiteSet.from_arrays(
            [(0, 0), (4, 0), (2, 4), (2, 1)],
            weights=[1.0, 1.0, 1.0, 0.5],
            owners=[Owner.PLAYER1, Owner.PLAYER2, Owner.PLAYER1, Owner.UNOWNED],
        )

    @pytest.fixture
    def result(self, sites):
        return recompute(sites, ClipRectangle(-5, -5, 5, 5))

    def test_defaults(self, result, sites):
        """Test the default layers: cells and disks only."""
        overlay = build_overlay(result, sites)
        assert overlay.triangulation == []
        assert len(overlay.cells) == sum(1 for c in result.cells.values() if c)
        assert len(overlay.disks) == 4

    def test_triangulation_edges_unique(self, result, sites):
        """Test that shared edges are drawn once."""
        options = OverlayOptions(show_triangulation=True, show_cells=False, show_disks=False)
        overlay = build_overlay(result, sites, options)
        keys = {frozenset(line) for line in overlay.triangulation}
        assert len(keys) == len(overlay.triangulation)
        # Three outer edges plus three spokes to the inner site
        assert len(overlay.triangulation) == 6
        assert overlay.cells == [] and overlay.disks == []

    def test_disks(self, result, sites):
        """Test disk center, radius and owner."""
        options = OverlayOptions(show_cells=False)
        disk = build_overlay(result, sites, options).disks[3]
        assert disk.center == (2.0, 1.0)
        assert disk.radius == 0.5
        assert disk.owner == Owner.UNOWNED

    def test_cell_outline_closed(self):
        """Test outlines connect the last vertex back to the first."""
        lines = cell_outline([(0, 0), (1, 0), (0, 1)])
        assert len(lines) == 3
        assert lines[-1] == ((0, 1), (0, 0))
        assert cell_outline([]) == []
