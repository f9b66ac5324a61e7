"""
Geographic points and rounded map locations.

A :class:`Location` floor-rounds its degrees to four decimals before
storing or comparing them, so a noisy GPS feed that jitters in the fifth
decimal does not produce a "new" position and a redundant redraw.

Example
-------
    loc = Location.from_coord((-122.41942, 37.77493))
    loc.coord           # (-122.4195, 37.7749)
    loc.equals((-122.41949, 37.77491))   # True
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence, Tuple

from .projection import from_lonlat

PRECISION = 10000   # 4 decimal places


def round_coord(coord: Sequence[float], prec: int = PRECISION) -> Tuple[float, float]:
    """Floor-round a (lon, lat) pair to 1/prec degrees."""
    return (
        math.floor(float(coord[0]) * prec) / prec,
        math.floor(float(coord[1]) * prec) / prec,
    )


@dataclass(frozen=True)
class GeoPoint:
    """WGS84 coordinate plus its Web Mercator projection.

    The projected point is computed once here and carried along; nothing
    downstream re-derives it.
    """
    lon: float
    lat: float
    x: float = field(init=False)
    y: float = field(init=False)

    def __post_init__(self) -> None:
        x, y = from_lonlat(self.lon, self.lat)
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    @property
    def projected(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True, eq=False)
class Location:
    """A map location compared on its rounded (lon, lat) degrees."""
    point: GeoPoint

    @classmethod
    def from_coord(cls, coord: Sequence[float]) -> "Location":
        lon, lat = round_coord(coord)
        return cls(GeoPoint(lon, lat))

    @property
    def coord(self) -> Tuple[float, float]:
        return (self.point.lon, self.point.lat)

    @property
    def projected(self) -> Tuple[float, float]:
        return self.point.projected

    def equals(self, coord: Sequence[float]) -> bool:
        """True if *coord* rounds to this location."""
        return self.coord == round_coord(coord)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self.coord == other.coord

    def __hash__(self) -> int:
        return hash(self.coord)
