"""
Resolution banding for the selected charts.

The view's resolution range ``[min_res, max_res)`` is split into one band
per chart so that exactly one chart layer is visible at any zoom.  Charts
are stacked in priority order starting at ``min_res``; each band is as
wide as the full range scaled by ``chart.scale / max_scale`` (the last,
coarsest chart's scale), so detailed charts get narrow bands near the
fine end and overview charts get wide ones.

Example: charts at 1:80 000 and 1:500 000 over ``[10, 2000]`` get
``[10, 328)`` and ``[328, 2000)``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

from ..geo.footprint import ChartTileset

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartBand:
    """A chart and the resolution band it is shown in, for one selection."""
    tileset: ChartTileset
    min_resolution: float   # inclusive
    max_resolution: float   # exclusive

    @property
    def ident(self) -> str:
        return self.tileset.ident

    @property
    def width(self) -> float:
        return self.max_resolution - self.min_resolution


def allocate_resolutions(
    charts: Sequence[ChartTileset],
    min_res: float,
    max_res: float,
) -> List[ChartBand]:
    """Assign contiguous, non-overlapping resolution bands to *charts*.

    Bands never extend past *max_res*; a chart whose band would start at
    or beyond it is left out.
    """
    if not charts:
        return []

    max_scale = charts[-1].scale
    span = max_res - min_res
    bands: List[ChartBand] = []
    prev_max = min_res

    for chart in charts:
        lo = prev_max
        hi = min(math.floor(lo + span * chart.scale / max_scale), max_res)
        if hi <= lo:
            log.debug("Chart %s gets an empty band at %.1f, dropped", chart.ident, lo)
            continue
        bands.append(ChartBand(chart, lo, hi))
        prev_max = hi

    # The coarsest band always reaches the end of the range
    if bands and bands[-1].max_resolution < max_res:
        last = bands[-1]
        bands[-1] = ChartBand(last.tileset, last.min_resolution, max_res)

    return bands
