"""
Geometry error hierarchy.

Degeneracies that only affect a single face or corner are absorbed where
they happen; structural problems propagate out of ``recompute``.
"""

from typing import Optional, Tuple


class GeometryError(Exception):
    """Base error for power diagram computations."""


class EmptySiteSetError(GeometryError):
    """A recomputation was requested without any sites."""


class InvalidTriangulationError(GeometryError):
    """An externally supplied triangulation is not a regular triangulation."""


class DegenerateLiftError(GeometryError):
    """A lifted hull facet is vertical (Nz = 0) and has no power center."""

    def __init__(self, face: Optional[Tuple[int, int, int]] = None) -> None:
        self.face = face
        super().__init__(f"Lifted face {face} is vertical, no power center")


class MalformedAdjacencyError(GeometryError):
    """Triangle adjacency is not that of a simplicial triangulation."""


class ClipCornerUnassignedError(GeometryError):
    """No clipped cell could take a rectangle corner.

    Attributes:
        corner: The (x, y) corner left out of every cell
    """

    def __init__(self, corner: Tuple[float, float]) -> None:
        self.corner = corner
        super().__init__(
            f"Corner ({corner[0]:.6f}, {corner[1]:.6f}) not assigned to any cell"
        )
