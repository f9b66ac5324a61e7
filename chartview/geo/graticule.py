"""
Labelled latitude / longitude grid.

Meridians and parallels are picked at a "round" degree spacing so a view
shows at most a handful of each, then returned as straight segments in
Web Mercator metres (meridians are vertical and parallels horizontal in
that projection).

Usage
-----
    for line in graticule_lines(view_extent):
        draw(line.start, line.end, line.label)
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence

from .projection import Coordinate, from_lonlat, to_lonlat
from .tile_grid import HALF_WORLD

INTERVALS = (
    0.001, 0.002, 0.005,
    0.01, 0.02, 0.05,
    0.1, 0.2, 0.5,
    1.0, 2.0, 5.0, 10.0, 15.0, 30.0, 45.0,
)
MAX_LINES = 8

# Latitude limit of the square Web Mercator world
MAX_LAT = 85.05112878


@dataclass(frozen=True)
class GraticuleLine:
    value: float            # degrees
    meridian: bool          # True: constant longitude
    start: Coordinate
    end: Coordinate
    label: str


def graticule_interval(span_deg: float, max_lines: int = MAX_LINES) -> float:
    """Smallest spacing that keeps *span_deg* under *max_lines* lines."""
    for step in INTERVALS:
        if span_deg / step <= max_lines:
            return step
    return INTERVALS[-1]


def format_degrees(value: float, interval: float, meridian: bool) -> str:
    decimals = max(0, -int(math.floor(math.log10(interval))))
    if meridian:
        hemi = "E" if value > 0 else "W" if value < 0 else ""
    else:
        hemi = "N" if value > 0 else "S" if value < 0 else ""
    text = f"{abs(value):.{decimals}f}°"
    return f"{text} {hemi}" if hemi else text


def _steps(lo: float, hi: float, interval: float) -> List[float]:
    first = math.ceil(lo / interval - 1e-9)
    last = math.floor(hi / interval + 1e-9)
    return [round(k * interval, 6) for k in range(first, last + 1)]


def graticule_lines(extent: Sequence[float], max_lines: int = MAX_LINES) -> List[GraticuleLine]:
    """Meridians and parallels crossing *extent*, clipped to it."""
    minx, miny, maxx, maxy = (max(-HALF_WORLD, min(HALF_WORLD, v)) for v in extent)
    if maxx <= minx or maxy <= miny:
        return []

    lon0, lat0 = to_lonlat(minx, miny)
    lon1, lat1 = to_lonlat(maxx, maxy)
    lat0, lat1 = max(lat0, -MAX_LAT), min(lat1, MAX_LAT)
    interval = graticule_interval(max(lon1 - lon0, lat1 - lat0), max_lines)

    lines: List[GraticuleLine] = []
    for lon in _steps(lon0, lon1, interval):
        x = from_lonlat(lon, 0.0)[0]
        lines.append(GraticuleLine(
            lon, True, (x, miny), (x, maxy), format_degrees(lon, interval, True),
        ))
    for lat in _steps(lat0, lat1, interval):
        y = from_lonlat(0.0, lat)[1]
        lines.append(GraticuleLine(
            lat, False, (minx, y), (maxx, y), format_degrees(lat, interval, False),
        ))
    return lines
