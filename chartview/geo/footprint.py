"""
Chart catalog normalisation.

The chart server describes each tileset with a JSON record::

    {"ident": "US5CA52M_1", "scale": 20000, "sounding": "FEET",
     "lower": [-122.6, 37.7], "upper": [-122.3, 37.9]}

or, when the chart outline is not a simple box, with an explicit ring of
vertices stored **latitude first**::

    {"ident": "...", "scale": 80000, "poly": [[37.7, -122.6], [37.9, -122.6], ...]}

Each record becomes a :class:`ChartTileset` whose footprint is a closed
shapely polygon in Web Mercator metres.  A record that cannot be read is
skipped with a warning; one bad chart never aborts the catalog.

Usage
-----
    charts = parse_catalog(resp.json())
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from shapely.geometry import Polygon

from ..errors import FootprintError
from .projection import Extent, from_lonlat

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartTileset:
    """One chart tileset from the catalog."""

    ident: str                     # e.g. "US5CA52M_1"
    scale: float                   # nominal scale denominator
    footprint: Polygon             # closed ring, projected metres
    height_deg: float              # latitude span of the source footprint
    sounding: Optional[str] = None  # sounding unit label, e.g. "FEET"

    @property
    def extent(self) -> Extent:
        return tuple(self.footprint.bounds)  # type: ignore[return-value]

    @property
    def label(self) -> str:
        """Short chart name used in the map attribution."""
        return self.ident.split("_")[0]


def _pair(raw: Any, what: str) -> Tuple[float, float]:
    try:
        a, b = raw[0], raw[1]
        return float(a), float(b)
    except (TypeError, ValueError, IndexError, KeyError) as exc:
        raise FootprintError(f"bad {what} coordinate {raw!r}") from exc


def build_footprint(record: Mapping[str, Any]) -> Tuple[Polygon, float]:
    """Build the projected footprint polygon for one catalog record.

    Returns ``(polygon, height_deg)``.  Raises :class:`FootprintError` if
    the coordinates are missing or malformed.
    """
    ring = record.get("poly")
    lonlat: List[Tuple[float, float]]

    if not ring:
        if "lower" not in record or "upper" not in record:
            raise FootprintError("record has neither poly nor lower/upper")
        lower = _pair(record["lower"], "lower")
        upper = _pair(record["upper"], "upper")
        # Diagonal promoted to a rectangle; each corner projected on its own
        lonlat = [lower, upper]
        (x0, y0), (x1, y1) = [from_lonlat(lon, lat) for lon, lat in lonlat]
        points = [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]
    else:
        # Ring vertices are stored (lat, lon)
        lonlat = []
        for i, vertex in enumerate(ring):
            lat, lon = _pair(vertex, f"poly[{i}]")
            lonlat.append((lon, lat))
        if len(lonlat) < 3:
            raise FootprintError(f"poly ring has only {len(lonlat)} vertices")
        points = [from_lonlat(lon, lat) for lon, lat in lonlat]

    points.append(points[0])  # close ring
    lats = [lat for _, lat in lonlat]
    height = max(lats) - min(lats)
    return Polygon(points), height


def parse_chart(record: Mapping[str, Any]) -> ChartTileset:
    """Normalise one raw catalog record.  Raises :class:`FootprintError`."""
    try:
        ident = str(record["ident"])
        scale = float(record["scale"])
    except (KeyError, TypeError, ValueError) as exc:
        raise FootprintError(f"record without usable ident/scale: {exc}") from exc
    if scale <= 0:
        raise FootprintError(f"{ident}: non-positive scale {scale}")

    polygon, height = build_footprint(record)
    sounding = record.get("sounding") or None
    return ChartTileset(
        ident=ident,
        scale=scale,
        footprint=polygon,
        height_deg=height,
        sounding=sounding,
    )


def parse_catalog(records: Iterable[Mapping[str, Any]]) -> List[ChartTileset]:
    """Normalise a whole catalog, skipping (and logging) malformed records."""
    charts: List[ChartTileset] = []
    skipped = 0
    for i, record in enumerate(records):
        try:
            charts.append(parse_chart(record))
        except FootprintError as exc:
            skipped += 1
            ident = record.get("ident", f"#{i}") if isinstance(record, Mapping) else f"#{i}"
            log.warning("Skipping catalog record %s: %s", ident, exc)

    log.info("Chart catalog: %d charts (%d skipped)", len(charts), skipped)
    return charts
