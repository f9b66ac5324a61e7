"""
Adaptive zoom-out for chart layers with no data.

Chart tilesets are only rendered down to some zoom level; past it the tile
server answers every request with an error.  Each chart layer counts its
tile-load failures per zoom level.  When the number of failures at level
``z`` reaches the number of tiles the current view needs at ``z`` (every
tile on screen has failed), the view is zoomed out to ``z - 1``.

This does not tell "no chart data here" apart from a network blip that
fails every in-flight tile at once; both zoom out.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..engine import MapView
from ..geo.tile_grid import TileCoord, TileGrid

log = logging.getLogger(__name__)

ZOOM_SLOTS = 20


@dataclass
class LayerFailureState:
    """Failure bookkeeping for one chart layer."""
    error_count: List[int]
    expected_count: Dict[int, int] = field(default_factory=dict)

    @classmethod
    def allocate(cls, slots: int = ZOOM_SLOTS) -> "LayerFailureState":
        return cls(error_count=[0] * slots)


class AdaptiveZoomController:
    """Per-layer tile failure counter that forces a zoom-out on total failure."""

    def __init__(
        self,
        ident: str,
        view: MapView,
        grid: Optional[TileGrid] = None,
        slots: int = ZOOM_SLOTS,
    ):
        self.ident = ident
        self._view = view
        self._grid = grid or TileGrid()
        self._slots = slots
        self._state: Optional[LayerFailureState] = None

    @property
    def state(self) -> Optional[LayerFailureState]:
        return self._state

    def on_tile_load_error(self, coord: TileCoord) -> bool:
        """Record one failed tile.  Returns True if a zoom-out was forced."""
        z = coord.z
        if not 0 <= z < self._slots:
            log.debug("%s: tile error at unsupported zoom %d ignored", self.ident, z)
            return False

        if self._state is None:
            self._state = LayerFailureState.allocate(self._slots)
        state = self._state

        state.error_count[z] += 1

        if z not in state.expected_count:
            extent = self._view.calculate_extent()
            state.expected_count[z] = self._grid.count_tiles(extent, z)

        errors = state.error_count[z]
        expected = state.expected_count[z]
        log.debug("%s: z=%d tile errors %d/%d", self.ident, z, errors, expected)

        if errors == expected:
            log.info(
                "%s: all %d tiles failed at zoom %d, zooming out to %d",
                self.ident, expected, z, z - 1,
            )
            self._view.set_zoom(z - 1)
            return True
        return False
