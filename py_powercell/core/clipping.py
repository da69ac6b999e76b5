"""
Clipping of power cells to the viewport rectangle.

Cells come out of the extractor as ordered boundary pieces, possibly
unbounded. They are realized as convex polygons reaching far outside the
rectangle, walked edge by edge against the rectangle border, and finally
every rectangle corner is spliced into the one cell that owns it so the
clipped cells tile the rectangle.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from ..config import Settings, settings as default_settings
from .errors import ClipCornerUnassignedError
from .power_cells import BoundaryPrimitive, Ray
from .sites import ClipRectangle, Point, SiteSet
from .triangulation import RegularTriangulation, power_bisector

logger = structlog.get_logger()


@dataclass
class ClipResult:
    """Clipped cells per site, CCW, implicitly closed. Empty list = empty cell."""

    cells: Dict[int, List[Point]]
    unassigned_corners: List[Point] = field(default_factory=list)


def _cross(a: Sequence[float], b: Sequence[float]) -> float:
    return a[0] * b[1] - a[1] * b[0]


def _rot_ccw(v: np.ndarray) -> np.ndarray:
    return np.array([-v[1], v[0]])


def _rot_cw(v: np.ndarray) -> np.ndarray:
    return np.array([v[1], -v[0]])


def _shoelace(points: Sequence[Sequence[float]]) -> float:
    """Twice the signed area of a polygon."""
    total = 0.0
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total


def _dedupe(points: List[np.ndarray], tol: float) -> List[np.ndarray]:
    """Drop consecutive repeats, including the wrap from last to first."""
    result: List[np.ndarray] = []
    for p in points:
        if result and np.hypot(*(p - result[-1])) <= tol:
            continue
        result.append(p)
    while len(result) > 1 and np.hypot(*(result[-1] - result[0])) <= tol:
        result.pop()
    return result


def far_length(primitives: List[BoundaryPrimitive], rect: ClipRectangle, far_factor: float) -> float:
    """
    Ray length that puts far points well outside the rectangle.

    Every finite vertex lies within ``reach`` of the rectangle center, so a
    point at distance ``far_factor * (diagonal + reach)`` from one of them is
    outside the rectangle, and so is the line through it perpendicular to
    the ray.
    """
    center = np.array(rect.center)
    reach = 0.0
    for p in primitives:
        if isinstance(p, Ray):
            ends = (p.origin,)
        else:
            ends = (p.start, p.end)
        for q in ends:
            reach = max(reach, float(np.hypot(q[0] - center[0], q[1] - center[1])))
    return far_factor * (rect.diagonal + reach)


def realize_cell(
    primitives: List[BoundaryPrimitive],
    rect: ClipRectangle,
    tol: float,
    far_factor: float,
) -> Optional[List[np.ndarray]]:
    """
    Turn ordered boundary pieces into a CCW convex polygon.

    Segments contribute their endpoints. Rays contribute their origin and a
    far point; an unbounded cell is closed far outside the rectangle, so
    intersecting the polygon with the rectangle gives the clipped cell.

    Returns:
        List of vertices, or None if the cell is degenerate
    """
    if not primitives:
        return None

    length = far_length(primitives, rect, far_factor)
    first, last = primitives[0], primitives[-1]
    unbounded = isinstance(first, Ray) and not first.outgoing

    points: List[np.ndarray] = []
    for p in primitives:
        if isinstance(p, Ray):
            origin = np.array(p.origin)
            far = origin + length * np.array(p.direction)
            points.extend([far, origin] if not p.outgoing else [origin, far])
        else:
            points.extend([np.array(p.start), np.array(p.end)])
    points = _dedupe(points, tol)

    if not unbounded:
        if len(points) < 3:
            return None
        area2 = _shoelace(points)
        if abs(area2) <= tol * tol:
            return None
        return points if area2 > 0 else points[::-1]

    if not (isinstance(last, Ray) and last.outgoing):
        return None
    d_in = np.array(first.direction)
    d_out = np.array(last.direction)

    # The walk is CCW when the outgoing ray turns left onto the incoming one
    turn = _cross(d_out, d_in)
    if abs(turn) > 1e-12:
        ccw = turn > 0
    else:
        area2 = _shoelace(points)
        # Straight chain: the extractor walks cells clockwise
        ccw = area2 > 0 if abs(area2) > tol * tol else False
    if not ccw:
        points = points[::-1]
        d_in, d_out = d_out, d_in
        turn = -turn

    far_in, far_out = points[0], points[-1]
    if np.dot(d_out, d_in) >= 0:
        # Rays at most 90 degrees apart: the chord between the far points is
        # already outside the rectangle
        return points
    if turn > 1e-6:
        # Meet the two lines perpendicular to the rays at their far points
        matrix = np.array([d_out, d_in])
        rhs = np.array([np.dot(far_out, d_out), np.dot(far_in, d_in)])
        apex = np.linalg.solve(matrix, rhs)
        return points + [apex]
    # Nearly opposite rays: the cell is close to a half-plane
    return points + [
        far_out + 2 * length * _rot_ccw(d_out),
        far_in + 2 * length * _rot_cw(d_in),
    ]


def _border_segments(rect: ClipRectangle) -> List[Tuple[np.ndarray, np.ndarray]]:
    corners = [np.array(c) for c in rect.corners()]
    return [(corners[i], corners[(i + 1) % 4]) for i in range(4)]


def _leaves(rect: ClipRectangle, point: Sequence[float], direction: np.ndarray, tol: float) -> bool:
    """Whether moving from a border point along ``direction`` exits the rectangle."""
    x, y = point
    eps = 1e-12 * max(1.0, float(np.hypot(direction[0], direction[1])))
    return (
        (abs(x - rect.min_x) <= tol and -direction[0] > eps)
        or (abs(x - rect.max_x) <= tol and direction[0] > eps)
        or (abs(y - rect.min_y) <= tol and -direction[1] > eps)
        or (abs(y - rect.max_y) <= tol and direction[1] > eps)
    )


def _snap(rect: ClipRectangle, point: np.ndarray, tol: float) -> Point:
    """Snap coordinates within ``tol`` of a border line onto it."""
    x, y = float(point[0]), float(point[1])
    for edge in (rect.min_x, rect.max_x):
        if abs(x - edge) <= tol:
            x = edge
    for edge in (rect.min_y, rect.max_y):
        if abs(y - edge) <= tol:
            y = edge
    return (x, y)


def _contains_point(polygon: List[np.ndarray], point: Sequence[float]) -> bool:
    """Point test for a CCW convex polygon."""
    n = len(polygon)
    for i in range(n):
        a, b = polygon[i], polygon[(i + 1) % n]
        if _cross(b - a, np.asarray(point) - a) < 0:
            return False
    return True


def clip_polygon_walk(
    polygon: List[np.ndarray], rect: ClipRectangle, tol: float
) -> Tuple[List[Point], List[bool]]:
    """
    Walk a CCW convex polygon against the rectangle border.

    For each edge (v1, v2) the start vertex is kept when inside, then the
    edge's crossings with the four border segments are appended in order of
    distance from v1. Rectangle corners are not produced here.

    Returns:
        Tuple of (points, exit flags); ``exits[k]`` is True when the polygon
        leaves the rectangle at ``points[k]``
    """
    points: List[Point] = []
    exits: List[bool] = []

    def append(p: Point, is_exit: bool) -> None:
        if points and np.hypot(p[0] - points[-1][0], p[1] - points[-1][1]) <= tol:
            exits[-1] = exits[-1] or is_exit
            return
        points.append(p)
        exits.append(is_exit)

    borders = _border_segments(rect)
    n = len(polygon)
    for i in range(n):
        v1, v2 = polygon[i], polygon[(i + 1) % n]
        e = v2 - v1
        if rect.contains(v1, tol):
            p = _snap(rect, v1, tol)
            append(p, _leaves(rect, p, e, tol))

        hits = []
        for c1, c2 in borders:
            f = c2 - c1
            denom = _cross(e, f)
            if abs(denom) <= 1e-15 * max(1.0, np.hypot(*e) * np.hypot(*f)):
                continue
            w = c1 - v1
            t = _cross(w, f) / denom
            s = _cross(w, e) / denom
            if -1e-12 <= t <= 1 + 1e-12 and -1e-12 <= s <= 1 + 1e-12:
                hits.append((t, _snap(rect, v1 + t * e, tol)))
        hits.sort(key=lambda h: h[0])
        for _, p in hits:
            append(p, _leaves(rect, p, e, tol))

    if len(points) > 1 and np.hypot(points[-1][0] - points[0][0], points[-1][1] - points[0][1]) <= tol:
        exits[0] = exits[0] or exits[-1]
        points.pop()
        exits.pop()
    return points, exits


def _distance_to_segment(p: Sequence[float], a: Sequence[float], b: Sequence[float]) -> float:
    p, a, b = np.asarray(p), np.asarray(a), np.asarray(b)
    ab = b - a
    denom = float(np.dot(ab, ab))
    if denom == 0:
        return float(np.hypot(*(p - a)))
    t = min(1.0, max(0.0, float(np.dot(p - a, ab)) / denom))
    return float(np.hypot(*(p - (a + t * ab))))


def reconcile_corners(
    walks: Dict[int, Tuple[List[Point], List[bool]]],
    rect: ClipRectangle,
    tol: float,
) -> Tuple[Dict[int, List[Point]], List[Point]]:
    """
    Splice every rectangle corner into the cell that owns it.

    Where a cell leaves the rectangle at an exit point, its clipped boundary
    continues counter-clockwise along the border up to its next point. A
    corner on that stretch belongs to the cell. Corners already present in
    some cell are left alone; when several cells claim a corner the one
    whose edge is closest wins, ties going to the lowest site index.

    Returns:
        Tuple of (cells, corners no cell could take)
    """
    perimeter = rect.perimeter
    corners = rect.corners()
    corner_positions = [rect.perimeter_position(c) for c in corners]

    # Border stretches (cell, index of exit point, arc start, arc length)
    gaps = []
    for site in sorted(walks):
        points, exits = walks[site]
        m = len(points)
        for k in range(m):
            if not exits[k]:
                continue
            a, b = points[k], points[(k + 1) % m]
            if not rect.on_border(b, tol):
                logger.debug("Exit not followed by a border point", site=site, point=a)
                continue
            start = rect.perimeter_position(a)
            arc = (rect.perimeter_position(b) - start) % perimeter
            gaps.append((site, k, start, arc, a, b))

    insertions: Dict[int, Dict[int, List[Tuple[float, Point]]]] = {}
    unassigned: List[Point] = []
    for corner, s_corner in zip(corners, corner_positions):
        present = any(
            np.hypot(corner[0] - p[0], corner[1] - p[1]) < tol
            for points, _ in walks.values()
            for p in points
        )
        if present:
            continue

        candidates = []
        for site, k, start, arc, a, b in gaps:
            offset = (s_corner - start) % perimeter
            if tol < offset < arc - tol:
                candidates.append((_distance_to_segment(corner, a, b), site, k, offset))
        if not candidates:
            error = ClipCornerUnassignedError(corner)
            logger.warning("ClipCornerUnassigned", corner=corner, error=str(error))
            unassigned.append(corner)
            continue

        _, site, k, offset = min(candidates, key=lambda c: (c[0], c[1]))
        insertions.setdefault(site, {}).setdefault(k, []).append((offset, corner))

    cells: Dict[int, List[Point]] = {}
    for site, (points, _) in walks.items():
        spliced: List[Point] = []
        extra = insertions.get(site, {})
        for k, p in enumerate(points):
            spliced.append(p)
            for _, corner in sorted(extra.get(k, [])):
                spliced.append(corner)
        cells[site] = spliced if len(spliced) >= 3 else []
    return cells, unassigned


def split_rectangle(
    rect: ClipRectangle, point: np.ndarray, normal: np.ndarray
) -> Tuple[List[Point], List[Point]]:
    """
    Cut the rectangle along a line.

    Args:
        rect: Rectangle to split
        point: A point on the line
        normal: Line normal

    Returns:
        Tuple of (polygon where (p - point) . normal <= 0, polygon where it
        is >= 0), both CCW; a side with no area is an empty list
    """
    corners = rect.corners()
    negative: List[Point] = []
    positive: List[Point] = []
    for i in range(4):
        p = np.array(corners[i])
        q = np.array(corners[(i + 1) % 4])
        fp = float(np.dot(p - point, normal))
        fq = float(np.dot(q - point, normal))
        if fp <= 0:
            negative.append(corners[i])
        if fp >= 0:
            positive.append(corners[i])
        if fp * fq < 0:
            x = p + (fp / (fp - fq)) * (q - p)
            crossing = (float(x[0]), float(x[1]))
            negative.append(crossing)
            positive.append(crossing)

    def finish(polygon: List[Point]) -> List[Point]:
        if len(polygon) < 3 or abs(_shoelace(polygon)) <= 0:
            return []
        return polygon

    return finish(negative), finish(positive)


class BoundaryClipper:
    """Clips per-site boundary walks to a rectangle."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def clip(
        self,
        sites: SiteSet,
        cells: Dict[int, List[BoundaryPrimitive]],
        rect: ClipRectangle,
        triangulation: Optional[RegularTriangulation] = None,
    ) -> ClipResult:
        """
        Clip every site's power cell to ``rect``.

        One and two sites, and site sets without any usable triangle, are
        resolved in closed form; all other cells go through the realize /
        walk / corner pipeline.

        Args:
            sites: Sites of this recomputation pass
            cells: Ordered boundary pieces per site
            rect: Clipping rectangle
            triangulation: Triangulation the pieces came from

        Returns:
            ClipResult with one polygon per site
        """
        n = len(sites)
        if n == 1:
            return ClipResult({0: rect.corners()})
        if n == 2:
            return ClipResult(self._clip_two_sites(sites, rect))
        if triangulation is not None and triangulation.degenerate:
            logger.warning("Degenerate site set, first site takes the rectangle", sites=n)
            result = {i: [] for i in range(n)}
            result[0] = rect.corners()
            return ClipResult(result)

        tol = self.settings.clip_tolerance
        walks: Dict[int, Tuple[List[Point], List[bool]]] = {}
        for site in range(n):
            polygon = realize_cell(cells.get(site, []), rect, tol, self.settings.far_factor)
            if polygon is None:
                walks[site] = ([], [])
                continue
            points, exits = clip_polygon_walk(polygon, rect, tol)
            if len(points) < 2:
                if _contains_point(polygon, rect.center):
                    points, exits = rect.corners(), [False] * 4
                else:
                    points, exits = [], []
            walks[site] = (points, exits)

        clipped, unassigned = reconcile_corners(walks, rect, tol)
        logger.debug(
            "Cells clipped",
            sites=n,
            non_empty=sum(1 for c in clipped.values() if c),
            unassigned_corners=len(unassigned),
        )
        return ClipResult(clipped, unassigned)

    @staticmethod
    def _clip_two_sites(sites: SiteSet, rect: ClipRectangle) -> Dict[int, List[Point]]:
        s0, s1 = sites[0], sites[1]
        point, normal = power_bisector(s0.position, s0.weight, s1.position, s1.weight)
        negative, positive = split_rectangle(rect, point, normal)

        first_corner = rect.corners()[0]
        near_first = s0.power_distance(first_corner) <= s1.power_distance(first_corner)
        corner_side = float(np.dot(np.array(first_corner) - point, normal))
        corner_half, other_half = (negative, positive) if corner_side <= 0 else (positive, negative)
        if near_first:
            return {0: corner_half, 1: other_half}
        return {0: other_half, 1: corner_half}


def clip_power_cells(
    sites: SiteSet,
    cells: Dict[int, List[BoundaryPrimitive]],
    rect: ClipRectangle,
    triangulation: Optional[RegularTriangulation] = None,
    settings: Optional[Settings] = None,
) -> ClipResult:
    """Convenience wrapper around ``BoundaryClipper.clip``."""
    return BoundaryClipper(settings).clip(sites, cells, rect, triangulation)
