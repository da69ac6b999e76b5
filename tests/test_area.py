"""Tests for polygon areas and owner totals."""

import pytest
import numpy as np
from shapely.geometry import Polygon
from py_powercell.core.area import (
    AreaAccumulator, area_by_owner, cell_areas, polygon_area, triangle_area
)
from py_powercell.core.sites import Owner


class TestPolygonArea:
    """Test Heron fan areas."""

    def test_triangle(self):
        """Test a 3-4-5 right triangle."""
        assert triangle_area((0, 0), (3, 0), (0, 4)) == pytest.approx(6.0)

    def test_degenerate_triangle_is_zero(self):
        """Test that collinear points never give NaN."""
        area = triangle_area((0, 0), (1, 1), (2, 2))
        assert area == pytest.approx(0.0, abs=1e-9)
        assert not np.isnan(area)

    def test_square(self):
        """Test a square."""
        assert polygon_area([(0, 0), (2, 0), (2, 2), (0, 2)]) == pytest.approx(4.0)

    @pytest.mark.parametrize("polygon", [[], [(0, 0)], [(0, 0), (1, 1)]])
    def test_too_few_vertices(self, polygon):
        """Test that fewer than three vertices have no area."""
        assert polygon_area(polygon) == 0.0

    def test_matches_shoelace(self):
        """Test convex polygons against shapely."""
        rng = np.random.default_rng(3)
        for _ in range(10):
            angles = np.sort(rng.uniform(0, 2 * np.pi, size=7))
            radius = rng.uniform(0.5, 3.0)
            polygon = [(radius * np.cos(a), radius * np.sin(a)) for a in angles]
            assert polygon_area(polygon) == pytest.approx(Polygon(polygon).area, rel=1e-9)

    def test_orientation_independent(self):
        """Test that clockwise polygons give the same area."""
        polygon = [(0, 0), (4, 0), (4, 1), (0, 3)]
        assert polygon_area(polygon) == pytest.approx(polygon_area(polygon[::-1]))


class TestOwnerTotals:
    """Test area per owner."""

    @pytest.fixture
    def cells(self):
        return {
            0: [(0, 0), (1, 0), (1, 1), (0, 1)],
            1: [(1, 0), (3, 0), (3, 1), (1, 1)],
            2: [(0, 1), (3, 1), (3, 2), (0, 2)],
            3: [],
        }

    def test_cell_areas(self, cells):
        """Test per-site areas."""
        assert cell_areas(cells) == pytest.approx({0: 1.0, 1: 2.0, 2: 3.0, 3: 0.0})

    def test_area_by_owner(self, cells):
        """Test that unowned cells are ignored."""
        owners = [Owner.PLAYER1, Owner.PLAYER2, Owner.UNOWNED, Owner.PLAYER1]
        totals = area_by_owner(cells, owners)
        assert totals == pytest.approx({Owner.PLAYER1: 1.0, Owner.PLAYER2: 2.0})

    def test_both_players_always_present(self):
        """Test keys exist even when a player has no cell."""
        totals = area_by_owner({0: [(0, 0), (1, 0), (0, 1)]}, [Owner.PLAYER1])
        assert totals[Owner.PLAYER2] == 0.0
        assert Owner.UNOWNED not in totals

    def test_accumulator(self, cells):
        """Test the accumulator totals."""
        acc = AreaAccumulator(cells)
        assert acc.total == pytest.approx(6.0)
        owners = [Owner.PLAYER2] * 4
        assert acc.by_owner(owners)[Owner.PLAYER2] == pytest.approx(6.0)
