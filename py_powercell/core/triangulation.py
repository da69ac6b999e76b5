"""
Regular (weighted Delaunay) triangulation of weighted sites.

Each site (x, y, w) is lifted to (x, y, x^2 + y^2 - w^2). The lower convex
hull of the lifted points projects to the regular triangulation, the dual
of the power diagram. The plane of a lower face encodes the face's power
center: for a unit normal (Nx, Ny, Nz) the center is
(-Nx / (2 Nz), -Ny / (2 Nz)).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy.spatial import ConvexHull, Delaunay, QhullError

from ..config import Settings, settings as default_settings
from .errors import (
    DegenerateLiftError,
    GeometryError,
    InvalidTriangulationError,
    MalformedAdjacencyError,
)
from .sites import SiteSet

logger = structlog.get_logger()

Triangle = Tuple[int, int, int]
EdgeKey = Tuple[int, int]


@dataclass
class RegularTriangulation:
    """Triangles (CCW index triples) and their power centers."""

    triangles: List[Triangle]
    centers: np.ndarray  # centers[t] = power center of triangles[t]
    skipped_faces: int = 0
    # True when >= 3 sites produced no usable triangle (all collinear)
    degenerate: bool = False

    def __len__(self) -> int:
        return len(self.triangles)

    def edges(self) -> List[Tuple[int, int]]:
        """Unique undirected triangulation edges as (min, max) pairs."""
        seen = set()
        for a, b, c in self.triangles:
            for u, v in ((a, b), (b, c), (c, a)):
                seen.add(edge_key(u, v))
        return sorted(seen)


def lift_sites(positions: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Lift sites onto the paraboloid offset by the squared weight."""
    positions = np.asarray(positions, dtype=float)
    weights = np.asarray(weights, dtype=float)
    z = np.sum(positions ** 2, axis=1) - weights ** 2
    return np.column_stack([positions, z])


def signed_area(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Twice the signed area of triangle abc; positive when CCW."""
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


def is_ccw_triangle(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> bool:
    return signed_area(a, b, c) > 0


def orient_ccw(tri: Sequence[int], positions: np.ndarray) -> Triangle:
    """Return ``tri`` reordered counter-clockwise; swaps two vertices if needed."""
    a, b, c = (int(i) for i in tri)
    if signed_area(positions[a], positions[b], positions[c]) <= 0:
        return (a, c, b)
    return (a, b, c)


def lifted_normal(A: np.ndarray, B: np.ndarray, C: np.ndarray) -> np.ndarray:
    """Unit normal of the lifted triangle ABC."""
    n = np.cross(B - A, C - A)
    norm = np.linalg.norm(n)
    if norm == 0:
        return n
    return n / norm


def power_center(
    A: np.ndarray,
    B: np.ndarray,
    C: np.ndarray,
    eps: float = 0.0,
    face: Optional[Triangle] = None,
) -> np.ndarray:
    """
    Power center of three lifted points.

    Args:
        A, B, C: Lifted points (x, y, x^2 + y^2 - w^2)
        eps: Faces with |Nz| <= eps are treated as vertical
        face: Site indices, only used for the error message

    Returns:
        [x, y] point with equal power distance to the three sites

    Raises:
        DegenerateLiftError: If the lifted face is vertical
    """
    n = lifted_normal(A, B, C)
    if abs(n[2]) <= eps:
        raise DegenerateLiftError(face)
    return (-0.5 / n[2]) * n[:2]


def power_bisector(
    p1: Sequence[float], w1: float, p2: Sequence[float], w2: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Power bisector of two weighted sites.

    The bisector is the line perpendicular to p1 -> p2 at offset
    d = (dist^2 + w1^2 - w2^2) / (2 dist) from p1. With equal weights it is
    the ordinary perpendicular bisector.

    Returns:
        Tuple of (point on the line, unit direction from p1 to p2). The
        direction is the line normal; points with a positive offset along
        it are closer to p2 in power distance.
    """
    p1 = np.asarray(p1, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    delta = p2 - p1
    dist = float(np.hypot(delta[0], delta[1]))
    if dist == 0:
        raise ValueError("Power bisector is undefined for coincident sites")
    u = delta / dist
    d = (dist * dist + w1 * w1 - w2 * w2) / (2 * dist)
    return p1 + d * u, u


def edge_key(u: int, v: int) -> EdgeKey:
    """Canonical key of the undirected edge (u, v)."""
    return (u, v) if u < v else (v, u)


def build_edge_map(triangles: Sequence[Triangle]) -> Dict[EdgeKey, List[int]]:
    """
    Map every triangulation edge to the triangles containing it.

    Raises:
        MalformedAdjacencyError: If an edge is shared by more than two triangles
    """
    edge_map: Dict[EdgeKey, List[int]] = {}
    for t, (a, b, c) in enumerate(triangles):
        for u, v in ((a, b), (b, c), (c, a)):
            adjacent = edge_map.setdefault(edge_key(u, v), [])
            adjacent.append(t)
            if len(adjacent) > 2:
                raise MalformedAdjacencyError(
                    f"Edge {edge_key(u, v)} is shared by triangles {adjacent}"
                )
    return edge_map


def _is_flat(points: np.ndarray, rel_tol: float = 1e-12) -> bool:
    """Whether the points span fewer dimensions than they live in."""
    centered = points - points.mean(axis=0)
    s = np.linalg.svd(centered, compute_uv=False)
    if s[0] == 0:
        return True
    return s[-1] <= rel_tol * s[0]


class RegularTriangulationBuilder:
    """Builds the regular triangulation dual to the power diagram."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def build(self, sites: SiteSet) -> RegularTriangulation:
        """
        Triangulate a SiteSet. The input is not modified.

        Fewer than three sites produce no triangles; the clipper resolves
        those cases in closed form.
        """
        positions = sites.positions
        lifted = lift_sites(positions, sites.weights)
        n = len(positions)

        if n < 3:
            return RegularTriangulation([], np.zeros((0, 2)))

        if n == 3:
            faces = [(0, 1, 2)]
        else:
            faces = self._lower_faces(positions, lifted)

        triangles: List[Triangle] = []
        centers: List[np.ndarray] = []
        skipped = 0
        area_tol = self._area_tolerance(positions)

        for face in faces:
            tri = orient_ccw(face, positions)
            a, b, c = tri
            try:
                if abs(signed_area(positions[a], positions[b], positions[c])) <= area_tol:
                    raise DegenerateLiftError(tri)
                center = power_center(
                    lifted[a], lifted[b], lifted[c], self.settings.lift_epsilon, tri
                )
            except DegenerateLiftError as e:
                logger.debug("Skipping degenerate face", face=e.face)
                skipped += 1
                continue
            triangles.append(tri)
            centers.append(center)

        degenerate = not triangles
        if degenerate:
            logger.warning("No usable triangle, sites are collinear", sites=n)

        logger.debug(
            "Regular triangulation built",
            sites=n,
            triangles=len(triangles),
            skipped_faces=skipped,
        )
        return RegularTriangulation(
            triangles=triangles,
            centers=np.array(centers) if centers else np.zeros((0, 2)),
            skipped_faces=skipped,
            degenerate=degenerate,
        )

    def _lower_faces(
        self, positions: np.ndarray, lifted: np.ndarray
    ) -> List[Triangle]:
        """Faces of the lower hull of the lifted points."""
        try:
            hull = ConvexHull(lifted)
        except QhullError as e:
            if _is_flat(positions):
                # Collinear sites: no triangle exists at all
                return []
            if _is_flat(lifted):
                # Coplanar lifted points: every face is a lower face, so any
                # triangulation of the sites is regular
                logger.info("Lifted sites are coplanar, using plane Delaunay")
                tri = Delaunay(positions)
                return [tuple(int(i) for i in s) for s in tri.simplices]
            raise GeometryError(f"Convex hull of lifted sites failed: {e}") from e

        eps = self.settings.lift_epsilon
        faces = []
        for simplex, eq in zip(hull.simplices, hull.equations):
            nz = eq[2]
            if nz < -eps:
                faces.append(tuple(int(i) for i in simplex))
            elif nz <= eps:
                logger.debug("Skipping vertical hull face", face=tuple(int(i) for i in simplex))
        return faces

    @staticmethod
    def _area_tolerance(positions: np.ndarray) -> float:
        extent = float(np.ptp(positions, axis=0).max()) if len(positions) else 0.0
        return 1e-12 * max(1.0, extent * extent)


def build_regular_triangulation(
    sites: SiteSet, settings: Optional[Settings] = None
) -> RegularTriangulation:
    """Convenience wrapper around ``RegularTriangulationBuilder.build``."""
    return RegularTriangulationBuilder(settings).build(sites)


def validate_regular_triangulation(
    sites: SiteSet,
    triangles: Sequence[Sequence[int]],
    settings: Optional[Settings] = None,
) -> RegularTriangulation:
    """
    Check an externally supplied triangulation and compute its centers.

    A triangle is accepted when its indices are valid, it is CCW and
    non-degenerate, and no site has a smaller power distance to its power
    center than the triangle's own vertices. Together the triangles must
    tile the convex hull of the sites.

    Args:
        sites: Sites the triangle indices refer to
        triangles: Index triples
        settings: Optional settings for the validation tolerance

    Returns:
        RegularTriangulation with the supplied triangles

    Raises:
        InvalidTriangulationError: On the first violation found
        MalformedAdjacencyError: If an edge borders more than two triangles
    """
    settings = settings or default_settings
    positions = sites.positions
    weights = sites.weights
    lifted = lift_sites(positions, weights)
    n = len(positions)
    scale = max(1.0, float(np.abs(lifted[:, 2]).max())) if n else 1.0
    tol = settings.validation_tolerance * scale

    result: List[Triangle] = []
    centers: List[np.ndarray] = []
    for t, tri in enumerate(triangles):
        if len(tri) != 3 or len(set(tri)) != 3:
            raise InvalidTriangulationError(f"Triangle {t} is not a vertex triple: {tri}")
        a, b, c = (int(i) for i in tri)
        if not all(0 <= i < n for i in (a, b, c)):
            raise InvalidTriangulationError(f"Triangle {t} references a missing site: {tri}")
        if not is_ccw_triangle(positions[a], positions[b], positions[c]):
            raise InvalidTriangulationError(f"Triangle {t} is not counter-clockwise: {tri}")
        try:
            center = power_center(lifted[a], lifted[b], lifted[c], settings.lift_epsilon, (a, b, c))
        except DegenerateLiftError as e:
            raise InvalidTriangulationError(str(e)) from e

        d = np.sum((positions - center) ** 2, axis=1) - weights ** 2
        own = d[[a, b, c]]
        if own.max() - own.min() > tol:
            raise InvalidTriangulationError(f"Triangle {t} power center is inconsistent")
        if d.min() < own.min() - tol:
            intruder = int(np.argmin(d))
            raise InvalidTriangulationError(
                f"Site {intruder} violates the power circle of triangle {t}"
            )
        result.append((a, b, c))
        centers.append(center)

    if n >= 3:
        _check_covers_hull(positions, result, settings.validation_tolerance)

    return RegularTriangulation(
        triangles=result,
        centers=np.array(centers) if centers else np.zeros((0, 2)),
        degenerate=n >= 3 and not result,
    )


def _check_covers_hull(
    positions: np.ndarray, triangles: List[Triangle], rel_tol: float
) -> None:
    """
    Check that the triangles together tile the convex hull of the sites.

    Every edge may border at most two triangles, every edge bordering only
    one must be a supporting line of the site set, and the triangle areas
    must add up to the hull area.

    Raises:
        MalformedAdjacencyError: If an edge borders more than two triangles
        InvalidTriangulationError: If the triangles leave part of the hull
            uncovered
    """
    edge_map = build_edge_map(triangles)

    extent = float(np.ptp(positions, axis=0).max())
    length_tol = rel_tol * max(1.0, extent)
    for t, (a, b, c) in enumerate(triangles):
        for u, v in ((a, b), (b, c), (c, a)):
            if len(edge_map[edge_key(u, v)]) != 1:
                continue
            # Boundary edges run CCW, so every site must be on their left
            chord = positions[v] - positions[u]
            offsets = positions - positions[u]
            side = (chord[0] * offsets[:, 1] - chord[1] * offsets[:, 0]) / np.hypot(*chord)
            if side.min() < -length_tol:
                outside = int(np.argmin(side))
                raise InvalidTriangulationError(
                    f"Edge {edge_key(u, v)} of triangle {t} is open but site "
                    f"{outside} lies beyond it"
                )

    try:
        hull_area = float(ConvexHull(positions).volume)
    except QhullError:
        hull_area = 0.0
    covered = sum(abs(signed_area(*(positions[i] for i in tri))) / 2 for tri in triangles)
    if abs(covered - hull_area) > rel_tol * max(1.0, hull_area):
        raise InvalidTriangulationError(
            f"Triangles cover an area of {covered:.6f}, the sites' hull {hull_area:.6f}"
        )
