"""Power diagram core: triangulation, cell extraction, clipping and areas."""

from .area import AreaAccumulator, area_by_owner, cell_areas, polygon_area
from .clipping import BoundaryClipper, ClipResult, clip_power_cells
from .diagram import DiagramSession, PowerDiagramResult, recompute
from .errors import (
    ClipCornerUnassignedError,
    DegenerateLiftError,
    EmptySiteSetError,
    GeometryError,
    InvalidTriangulationError,
    MalformedAdjacencyError,
)
from .overlay import Overlay, OverlayOptions, build_overlay
from .power_cells import (
    PowerCellExtractor,
    Ray,
    Segment,
    extract_power_cells,
    order_segment_list,
)
from .sites import ClipRectangle, Owner, Site, SiteSet, power_distance
from .triangulation import (
    RegularTriangulation,
    RegularTriangulationBuilder,
    build_regular_triangulation,
    validate_regular_triangulation,
)

__all__ = [
    "AreaAccumulator",
    "BoundaryClipper",
    "ClipCornerUnassignedError",
    "ClipRectangle",
    "ClipResult",
    "DegenerateLiftError",
    "DiagramSession",
    "EmptySiteSetError",
    "GeometryError",
    "InvalidTriangulationError",
    "MalformedAdjacencyError",
    "Overlay",
    "OverlayOptions",
    "Owner",
    "PowerCellExtractor",
    "PowerDiagramResult",
    "Ray",
    "RegularTriangulation",
    "RegularTriangulationBuilder",
    "Segment",
    "Site",
    "SiteSet",
    "area_by_owner",
    "build_overlay",
    "build_regular_triangulation",
    "cell_areas",
    "clip_power_cells",
    "extract_power_cells",
    "order_segment_list",
    "polygon_area",
    "power_distance",
    "recompute",
    "validate_regular_triangulation",
]
