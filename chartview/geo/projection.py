"""
Geographic ↔ projected coordinate conversion.

All distance and containment math happens in Web Mercator (EPSG:3857)
metres, the projection the chart and base-map tile servers use.  Extents
are ``(minx, miny, maxx, maxy)`` tuples in that space.
"""
from __future__ import annotations

from typing import Sequence, Tuple

import pyproj

# Coordinate reference systems
WGS84 = pyproj.CRS("EPSG:4326")
WEB_MERCATOR = pyproj.CRS("EPSG:3857")

_to_metric = pyproj.Transformer.from_crs(WGS84, WEB_MERCATOR, always_xy=True).transform
_to_lonlat = pyproj.Transformer.from_crs(WEB_MERCATOR, WGS84, always_xy=True).transform

Coordinate = Tuple[float, float]
Extent = Tuple[float, float, float, float]


def from_lonlat(lon: float, lat: float) -> Coordinate:
    """Project a WGS84 (lon, lat) pair to Web Mercator metres."""
    x, y = _to_metric(lon, lat)
    return float(x), float(y)


def to_lonlat(x: float, y: float) -> Coordinate:
    """Inverse of :func:`from_lonlat`."""
    lon, lat = _to_lonlat(x, y)
    return float(lon), float(lat)


def contains_extent(outer: Sequence[float], inner: Sequence[float]) -> bool:
    """True if *inner* lies within *outer* (edges inclusive)."""
    return (
        outer[0] <= inner[0] and inner[2] <= outer[2]
        and outer[1] <= inner[1] and inner[3] <= outer[3]
    )


def contains_coordinate(extent: Sequence[float], coord: Sequence[float]) -> bool:
    return (
        extent[0] <= coord[0] <= extent[2]
        and extent[1] <= coord[1] <= extent[3]
    )
