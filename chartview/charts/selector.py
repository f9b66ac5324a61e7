"""
Chart selection for a viewport.

A chart is relevant if it can fill the whole view (its footprint's
bounding box contains the view extent) or if it at least covers the view
center (its footprint polygon contains the center point).  The first
test admits large overview charts, the second admits small harbour
charts that only cover part of the screen.

Selected charts are ordered by scale (smallest scale number first); among
charts of equal scale the one spanning more latitude comes first.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from shapely.geometry import Point

from ..geo.footprint import ChartTileset
from ..geo.projection import contains_extent

log = logging.getLogger(__name__)


def covers_view(chart: ChartTileset, center: Sequence[float], extent: Sequence[float]) -> bool:
    if contains_extent(chart.footprint.bounds, extent):
        return True
    return chart.footprint.intersects(Point(center[0], center[1]))


def chart_priority(chart: ChartTileset) -> tuple:
    """Sort key: ascending scale, then taller charts first."""
    return (chart.scale, -chart.height_deg)


def select_charts(
    catalog: Iterable[ChartTileset],
    center: Sequence[float],
    extent: Sequence[float],
) -> List[ChartTileset]:
    """Return the catalog charts relevant to the view, in priority order."""
    charts = [c for c in catalog if covers_view(c, center, extent)]
    charts.sort(key=chart_priority)
    log.debug("Selected %d charts: %s", len(charts), [c.ident for c in charts])
    return charts
