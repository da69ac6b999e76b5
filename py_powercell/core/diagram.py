"""
Power diagram recomputation and the per-game session holding its state.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import structlog

from ..config import Settings, settings as default_settings
from .area import AreaAccumulator, area_by_owner
from .clipping import BoundaryClipper
from .errors import EmptySiteSetError, GeometryError
from .power_cells import PowerCellExtractor
from .sites import ClipRectangle, Owner, Point, SiteSet
from .triangulation import (
    RegularTriangulation,
    RegularTriangulationBuilder,
    Triangle,
    validate_regular_triangulation,
)

logger = structlog.get_logger()


@dataclass
class PowerDiagramResult:
    """Everything one recomputation pass produces."""

    cells: Dict[int, List[Point]]
    triangles: List[Triangle]
    centers: np.ndarray
    areas: Dict[int, float]
    unassigned_corners: List[Point] = field(default_factory=list)

    def area_by_owner(self, owners: Sequence[Owner]) -> Dict[Owner, float]:
        """Area controlled by PLAYER1 and PLAYER2."""
        return area_by_owner(self.cells, owners)

    @property
    def total_area(self) -> float:
        return sum(self.areas.values())


def recompute(
    sites: SiteSet,
    rect: ClipRectangle,
    triangulation: Optional[Union[RegularTriangulation, Sequence[Sequence[int]]]] = None,
    settings: Optional[Settings] = None,
) -> PowerDiagramResult:
    """
    Compute the clipped power diagram of ``sites``.

    Runs triangulation, cell extraction and clipping on a snapshot of the
    sites. Identical input gives identical output.

    Args:
        sites: Weighted sites, at least one
        rect: Viewport to clip the cells to
        triangulation: Optional externally computed triangulation; it is
            validated before use
        settings: Optional settings override

    Returns:
        PowerDiagramResult with one cell per site

    Raises:
        EmptySiteSetError: If there are no sites
        InvalidTriangulationError: If a supplied triangulation is not regular
        GeometryError: On structural failures
    """
    settings = settings or default_settings
    if len(sites) == 0:
        raise EmptySiteSetError("Cannot compute a power diagram without sites")

    snapshot = sites.snapshot()
    if triangulation is None:
        regular = RegularTriangulationBuilder(settings).build(snapshot)
    else:
        triangles = (
            triangulation.triangles
            if isinstance(triangulation, RegularTriangulation)
            else triangulation
        )
        regular = validate_regular_triangulation(snapshot, triangles, settings)

    primitives = PowerCellExtractor().extract(snapshot, regular)
    clipped = BoundaryClipper(settings).clip(snapshot, primitives, rect, regular)
    accumulator = AreaAccumulator(clipped.cells)

    logger.info(
        "Power diagram recomputed",
        sites=len(snapshot),
        triangles=len(regular),
        skipped_faces=regular.skipped_faces,
        area=round(accumulator.total, 6),
    )
    return PowerDiagramResult(
        cells=clipped.cells,
        triangles=list(regular.triangles),
        centers=regular.centers,
        areas=accumulator.areas,
        unassigned_corners=clipped.unassigned_corners,
    )


class DiagramSession:
    """
    Growing site set plus viewport, with the last good diagram.

    Moves are computed on a copy of the sites and only applied once the
    recomputation succeeds; a rejected move leaves the sites, the viewport
    and the previous result untouched.
    """

    def __init__(
        self,
        rect: ClipRectangle,
        sites: Optional[SiteSet] = None,
        settings: Optional[Settings] = None,
    ):
        self.rect = rect
        self.sites = sites if sites is not None else SiteSet()
        self.settings = settings or default_settings
        self.result: Optional[PowerDiagramResult] = None

    def _compute(self, sites: SiteSet, rect: ClipRectangle) -> Optional[PowerDiagramResult]:
        try:
            return recompute(sites, rect, settings=self.settings)
        except GeometryError as e:
            logger.error(
                "Recomputation failed, keeping previous diagram",
                error=str(e),
                error_type=type(e).__name__,
                sites=len(sites),
            )
            return None

    def recompute(self) -> bool:
        """
        Recompute the diagram for the current sites and viewport.

        Returns:
            True on success; False if the computation failed, in which case
            the previous result is kept
        """
        result = self._compute(self.sites, self.rect)
        if result is None:
            return False
        self.result = result
        return True

    def place(
        self,
        position: Sequence[float],
        owner: Owner,
        weight: float = 1.0,
    ) -> Optional[int]:
        """
        Place a new site and recompute.

        Returns:
            Index of the new site, or None if the move was rejected
        """
        candidate = self.sites.snapshot()
        candidate.add(position, weight=weight, owner=owner)
        result = self._compute(candidate, self.rect)
        if result is None:
            return None
        index = self.sites.add(position, weight=weight, owner=owner)
        self.result = result
        logger.info("Site placed", index=index, owner=owner.value, weight=weight)
        return index

    def grow(self, index: int, weight: float) -> bool:
        """Grow site ``index`` to ``weight`` and recompute; False if rejected."""
        candidate = self.sites.snapshot()
        candidate.grow(index, weight)
        result = self._compute(candidate, self.rect)
        if result is None:
            return False
        self.sites.grow(index, weight)
        self.result = result
        logger.info("Site grown", index=index, weight=weight)
        return True

    def set_viewport(self, rect: ClipRectangle) -> bool:
        """Switch to a new viewport; keeps the old one if recomputation fails."""
        if len(self.sites):
            result = self._compute(self.sites, rect)
            if result is None:
                return False
            self.result = result
        self.rect = rect
        return True

    def scores(self) -> Dict[Owner, float]:
        """Area per player for the current diagram."""
        if self.result is None:
            return {Owner.PLAYER1: 0.0, Owner.PLAYER2: 0.0}
        return self.result.area_by_owner(self.sites.owners)
