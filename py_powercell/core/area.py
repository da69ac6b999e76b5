"""
Area of clipped cells and area controlled per owner.
"""

import math
from typing import Dict, List, Sequence

from .sites import Owner, Point


def triangle_area(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Heron's formula with the radicand clamped at zero."""
    ab = math.hypot(b[0] - a[0], b[1] - a[1])
    bc = math.hypot(c[0] - b[0], c[1] - b[1])
    ca = math.hypot(a[0] - c[0], a[1] - c[1])
    s = (ab + bc + ca) / 2
    return math.sqrt(max(0.0, s * (s - ab) * (s - bc) * (s - ca)))


def polygon_area(polygon: Sequence[Sequence[float]]) -> float:
    """
    Area of a convex polygon as a fan of triangles from its first vertex.

    Degenerate slivers contribute zero instead of a NaN, so the result is
    always a non-negative number.
    """
    if len(polygon) < 3:
        return 0.0
    first = polygon[0]
    return sum(
        triangle_area(first, polygon[i], polygon[i + 1]) for i in range(1, len(polygon) - 1)
    )


def cell_areas(cells: Dict[int, List[Point]]) -> Dict[int, float]:
    """Area of every clipped cell, by site index."""
    return {site: polygon_area(cell) for site, cell in cells.items()}


def area_by_owner(cells: Dict[int, List[Point]], owners: Sequence[Owner]) -> Dict[Owner, float]:
    """
    Sum clipped cell areas per player.

    Args:
        cells: Clipped cells by site index
        owners: Owner of every site, indexed like ``cells``

    Returns:
        Dict with PLAYER1 and PLAYER2 always present; unowned sites are not
        counted
    """
    return AreaAccumulator(cells).by_owner(owners)


class AreaAccumulator:
    """Keeps per-site areas of one result and answers owner totals."""

    def __init__(self, cells: Dict[int, List[Point]]):
        self.areas = cell_areas(cells)

    @property
    def total(self) -> float:
        return sum(self.areas.values())

    def by_owner(self, owners: Sequence[Owner]) -> Dict[Owner, float]:
        totals = {Owner.PLAYER1: 0.0, Owner.PLAYER2: 0.0}
        for site, area in self.areas.items():
            if owners[site] in totals:
                totals[owners[site]] += area
        return totals
