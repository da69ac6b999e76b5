"""
Power cell boundaries from a regular triangulation.

Every triangulation edge (u, v) is dual to one piece of the boundary
between the cells of u and v: a segment joining the power centers of the
two triangles sharing the edge, or a ray leaving the power center of the
single triangle when the edge is on the convex hull. Pieces are collected
per site and then chained into the boundary walk of each cell.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import numpy as np
import structlog

from .errors import MalformedAdjacencyError
from .sites import Point, SiteSet
from .triangulation import RegularTriangulation, build_edge_map, edge_key

logger = structlog.get_logger()


@dataclass(frozen=True)
class Segment:
    """Finite boundary piece between the power centers of two triangles."""

    start: Point
    end: Point
    from_triangle: int
    to_triangle: int

    @property
    def from_tag(self) -> Optional[int]:
        return self.from_triangle

    @property
    def to_tag(self) -> Optional[int]:
        return self.to_triangle


@dataclass(frozen=True)
class Ray:
    """
    Unbounded boundary piece dual to a convex hull edge.

    An outgoing ray starts at ``origin`` and runs to infinity along
    ``direction``. An incoming ray comes from infinity and ends at
    ``origin``; its ``direction`` still points from ``origin`` to infinity.
    """

    origin: Point
    direction: Point
    triangle: int
    outgoing: bool

    @property
    def from_tag(self) -> Optional[int]:
        # None is the reserved tag for the point at infinity
        return self.triangle if self.outgoing else None

    @property
    def to_tag(self) -> Optional[int]:
        return None if self.outgoing else self.triangle


BoundaryPrimitive = Union[Segment, Ray]


def _as_point(v) -> Point:
    return (float(v[0]), float(v[1]))


def hull_ray_direction(
    positions: np.ndarray, u: int, v: int, w: int, center: np.ndarray
) -> np.ndarray:
    """
    Unit direction of the ray dual to hull edge (u, v).

    The direction is perpendicular to the chord u-v and points away from
    the third vertex w: the power center is projected onto the u-v line and
    the candidate is negated when it points back towards w.
    """
    A, B, C = positions[u], positions[v], positions[w]
    chord = B - A
    chord = chord / np.hypot(chord[0], chord[1])
    projection = A + np.dot(center - A, chord) * chord
    direction = np.array([-chord[1], chord[0]])
    if np.dot(direction, projection - C) < 0:
        direction = -direction
    return direction


def order_segment_list(primitives: List[BoundaryPrimitive]) -> List[BoundaryPrimitive]:
    """
    Chain the boundary pieces of one cell into walk order.

    Each piece is a link from its ``from_tag`` to its ``to_tag``. The walk
    starts at the incoming ray of an unbounded cell, otherwise at the
    smallest tag, and follows the links until it reaches the outgoing ray
    or returns to the start.

    Raises:
        MalformedAdjacencyError: If tags repeat or the chain is broken
    """
    if not primitives:
        return []

    by_from: Dict[Optional[int], BoundaryPrimitive] = {}
    for p in primitives:
        if p.from_tag in by_from:
            raise MalformedAdjacencyError(f"Boundary tag {p.from_tag} appears twice")
        by_from[p.from_tag] = p

    if None in by_from:
        current = by_from[None]
    else:
        current = by_from[min(by_from)]

    ordered = [current]
    start_tag = current.from_tag
    while len(ordered) < len(primitives):
        tag = current.to_tag
        if tag is None or tag == start_tag or tag not in by_from:
            break
        current = by_from[tag]
        ordered.append(current)

    if len(ordered) != len(primitives):
        raise MalformedAdjacencyError(
            f"Boundary chain covers {len(ordered)} of {len(primitives)} pieces"
        )
    return ordered


class PowerCellExtractor:
    """Derives per-site boundary walks from a regular triangulation."""

    def extract(
        self, sites: SiteSet, triangulation: RegularTriangulation
    ) -> Dict[int, List[BoundaryPrimitive]]:
        """
        Ordered boundary pieces per site.

        Sites that belong to no triangle get no entry: their power cell is
        empty (or, for fewer than three sites, handled in closed form).

        Args:
            sites: Sites the triangulation was built from
            triangulation: Regular triangulation with power centers

        Returns:
            Dict mapping site index to its ordered boundary pieces
        """
        positions = sites.positions
        triangles = triangulation.triangles
        centers = triangulation.centers
        edge_map = build_edge_map(triangles)

        cells: Dict[int, List[BoundaryPrimitive]] = {}
        for tri in triangles:
            for i in tri:
                cells.setdefault(i, [])

        for t, (a, b, c) in enumerate(triangles):
            for u, v, w in ((a, b, c), (b, c, a), (c, a, b)):
                adjacent = edge_map[edge_key(u, v)]
                if len(adjacent) == 2:
                    other = adjacent[0] if adjacent[1] == t else adjacent[1]
                    cells[u].append(
                        Segment(
                            start=_as_point(centers[t]),
                            end=_as_point(centers[other]),
                            from_triangle=t,
                            to_triangle=other,
                        )
                    )
                else:
                    direction = hull_ray_direction(positions, u, v, w, centers[t])
                    origin = _as_point(centers[t])
                    cells[u].append(Ray(origin, _as_point(direction), t, outgoing=True))
                    cells[v].append(Ray(origin, _as_point(direction), t, outgoing=False))

        ordered = {i: order_segment_list(pieces) for i, pieces in sorted(cells.items())}
        logger.debug(
            "Power cells extracted",
            cells=len(ordered),
            edges=len(edge_map),
        )
        return ordered


def extract_power_cells(
    sites: SiteSet, triangulation: RegularTriangulation
) -> Dict[int, List[BoundaryPrimitive]]:
    """Convenience wrapper around ``PowerCellExtractor.extract``."""
    return PowerCellExtractor().extract(sites, triangulation)
