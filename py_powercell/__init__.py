"""
Power diagram core for a two-player area-control game.
"""

from .config import Settings, settings
from .core import (
    ClipRectangle,
    DiagramSession,
    GeometryError,
    Owner,
    PowerDiagramResult,
    Site,
    SiteSet,
    area_by_owner,
    recompute,
)
from .logging_config import configure_logging

__version__ = "0.1.0"

__all__ = ['Settings', 'settings', 'configure_logging', 'ClipRectangle', 'DiagramSession',
           'GeometryError', 'Owner', 'PowerDiagramResult', 'Site', 'SiteSet',
           'area_by_owner', 'recompute']
