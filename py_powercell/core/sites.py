"""
Weighted sites and the clipping rectangle.

A site is a disk: its position is the disk center and its weight the
radius. Power distance from a point ``p`` to a site ``s`` is
``|p - s|^2 - w^2``; the power diagram assigns every point to the site
with the smallest power distance.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


class Owner(str, Enum):
    """Which side controls a site."""

    UNOWNED = "unowned"
    PLAYER1 = "player1"
    PLAYER2 = "player2"


@dataclass(frozen=True)
class Site:
    """A weighted site. Only ``weight`` ever changes, through ``SiteSet.grow``."""

    position: Point
    weight: float = 1.0
    owner: Owner = Owner.UNOWNED

    def __post_init__(self):
        x, y = self.position
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"Site position must be finite: {self.position}")
        if not math.isfinite(self.weight) or self.weight < 0:
            raise ValueError(f"Site weight must be finite and >= 0: {self.weight}")
        object.__setattr__(self, "position", (float(x), float(y)))
        object.__setattr__(self, "weight", float(self.weight))

    def power_distance(self, point: Sequence[float]) -> float:
        """Power distance from ``point`` to this site."""
        return power_distance(point, self.position, self.weight)


def power_distance(point: Sequence[float], center: Sequence[float], weight: float) -> float:
    """Squared Euclidean distance minus squared weight."""
    dx = point[0] - center[0]
    dy = point[1] - center[1]
    return dx * dx + dy * dy - weight * weight


class SiteSet:
    """
    Ordered, append-only collection of sites.

    Insertion order is the index used by every downstream structure of a
    recomputation pass. Sites are never removed; weights only grow.
    """

    def __init__(self, sites: Optional[Iterable[Site]] = None):
        self._sites: List[Site] = []
        self._occupied = set()
        for site in sites or ():
            self._append(site)

    @classmethod
    def from_arrays(
        cls,
        points: Sequence[Sequence[float]],
        weights: Optional[Sequence[float]] = None,
        owners: Optional[Sequence[Owner]] = None,
    ) -> "SiteSet":
        """Build a SiteSet from parallel point/weight/owner sequences."""
        n = len(points)
        if weights is None:
            weights = [1.0] * n
        if owners is None:
            owners = [Owner.UNOWNED] * n
        if len(weights) != n or len(owners) != n:
            raise ValueError("points, weights and owners must have the same length")
        return cls(
            Site(position=(p[0], p[1]), weight=w, owner=o)
            for p, w, o in zip(points, weights, owners)
        )

    def _append(self, site: Site) -> int:
        if site.position in self._occupied:
            raise ValueError(f"A site already occupies {site.position}")
        self._occupied.add(site.position)
        self._sites.append(site)
        return len(self._sites) - 1

    def add(
        self,
        position: Sequence[float],
        weight: float = 1.0,
        owner: Owner = Owner.UNOWNED,
    ) -> int:
        """
        Append a new site.

        Args:
            position: (x, y) of the disk center
            weight: Disk radius
            owner: Controlling side

        Returns:
            Index of the new site
        """
        return self._append(Site(position=(position[0], position[1]), weight=weight, owner=owner))

    def grow(self, index: int, weight: float) -> None:
        """Raise the weight of site ``index``. Shrinking is rejected."""
        site = self._sites[index]
        if weight < site.weight:
            raise ValueError(
                f"Site {index} weight may only increase ({site.weight} -> {weight})"
            )
        self._sites[index] = replace(site, weight=weight)

    def snapshot(self) -> "SiteSet":
        """Independent copy for one recomputation pass."""
        return SiteSet(self._sites)

    @property
    def positions(self) -> np.ndarray:
        """N x 2 array of site positions."""
        if not self._sites:
            return np.zeros((0, 2))
        return np.array([s.position for s in self._sites], dtype=float)

    @property
    def weights(self) -> np.ndarray:
        return np.array([s.weight for s in self._sites], dtype=float)

    @property
    def owners(self) -> List[Owner]:
        return [s.owner for s in self._sites]

    def __len__(self) -> int:
        return len(self._sites)

    def __iter__(self) -> Iterator[Site]:
        return iter(self._sites)

    def __getitem__(self, index: int) -> Site:
        return self._sites[index]

    def __repr__(self) -> str:
        return f"SiteSet({len(self._sites)} sites)"


@dataclass(frozen=True)
class ClipRectangle:
    """Axis-aligned viewport the diagram is clipped to."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self):
        if not (self.min_x < self.max_x):
            raise ValueError(
                f"Invalid x ordering: min_x={self.min_x} >= max_x={self.max_x}"
            )
        if not (self.min_y < self.max_y):
            raise ValueError(
                f"Invalid y ordering: min_y={self.min_y} >= max_y={self.max_y}"
            )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Point:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.height)

    @property
    def perimeter(self) -> float:
        return 2 * (self.width + self.height)

    def corners(self) -> List[Point]:
        """Corners counter-clockwise, starting at (min_x, min_y)."""
        return [
            (self.min_x, self.min_y),
            (self.max_x, self.min_y),
            (self.max_x, self.max_y),
            (self.min_x, self.max_y),
        ]

    def contains(self, point: Sequence[float], tol: float = 0.0) -> bool:
        """Inclusive point test, widened by ``tol``."""
        return (
            self.min_x - tol <= point[0] <= self.max_x + tol
            and self.min_y - tol <= point[1] <= self.max_y + tol
        )

    def on_border(self, point: Sequence[float], tol: float) -> bool:
        """Whether ``point`` lies on the rectangle outline within ``tol``."""
        if not self.contains(point, tol):
            return False
        x, y = point
        return (
            abs(x - self.min_x) <= tol
            or abs(x - self.max_x) <= tol
            or abs(y - self.min_y) <= tol
            or abs(y - self.max_y) <= tol
        )

    def perimeter_position(self, point: Sequence[float]) -> float:
        """
        Counter-clockwise arc length from (min_x, min_y) to a border point.

        The point is snapped to the nearest side first, so points a little
        off the outline still get a sensible position.
        """
        x = min(max(point[0], self.min_x), self.max_x)
        y = min(max(point[1], self.min_y), self.max_y)
        w, h = self.width, self.height
        side_distances = (
            abs(y - self.min_y),  # bottom
            abs(x - self.max_x),  # right
            abs(y - self.max_y),  # top
            abs(x - self.min_x),  # left
        )
        side = side_distances.index(min(side_distances))
        if side == 0:
            s = x - self.min_x
        elif side == 1:
            s = w + (y - self.min_y)
        elif side == 2:
            s = w + h + (self.max_x - x)
        else:
            s = 2 * w + h + (self.max_y - y)
        return s % self.perimeter
