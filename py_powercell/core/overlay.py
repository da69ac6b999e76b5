"""
Line overlay data for an external renderer.

The renderer decides how to draw; this module only turns a diagram into
plain lines and disks according to explicit options.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from pydantic import BaseModel

from .diagram import PowerDiagramResult
from .sites import Owner, Point, SiteSet

Line = Tuple[Point, Point]


class OverlayOptions(BaseModel):
    """Which layers to produce."""

    show_triangulation: bool = False
    show_cells: bool = True
    show_disks: bool = True


@dataclass
class Disk:
    center: Point
    radius: float
    owner: Owner


@dataclass
class Overlay:
    triangulation: List[Line] = field(default_factory=list)
    cells: List[List[Line]] = field(default_factory=list)
    disks: List[Disk] = field(default_factory=list)


def cell_outline(cell: List[Point]) -> List[Line]:
    """Closed outline of a clipped cell, one line per edge."""
    if len(cell) < 2:
        return []
    return [(cell[i], cell[(i + 1) % len(cell)]) for i in range(len(cell))]


def build_overlay(
    result: PowerDiagramResult,
    sites: SiteSet,
    options: OverlayOptions = OverlayOptions(),
) -> Overlay:
    """
    Collect the lines and disks to draw for ``result``.

    Args:
        result: Diagram to draw
        sites: Sites the diagram was computed from
        options: Enabled layers

    Returns:
        Overlay with every disabled layer left empty
    """
    overlay = Overlay()
    if options.show_triangulation:
        seen = set()
        for a, b, c in result.triangles:
            for u, v in ((a, b), (b, c), (c, a)):
                key = (min(u, v), max(u, v))
                if key in seen:
                    continue
                seen.add(key)
                overlay.triangulation.append((sites[key[0]].position, sites[key[1]].position))
    if options.show_cells:
        overlay.cells = [
            cell_outline(result.cells[site]) for site in sorted(result.cells) if result.cells[site]
        ]
    if options.show_disks:
        overlay.disks = [Disk(site.position, site.weight, site.owner) for site in sites]
    return overlay
