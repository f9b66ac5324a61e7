"""
Chart layer stack.

Owns the set of chart tile layers on the map.  Every reselection replaces
the whole set: stale layers are removed first, then one tile layer per
allocated band is added in selection order, so the chart with the
largest scale number paints on top at a shared band boundary.  Each
layer gets its own :class:`AdaptiveZoomController`; its failure counters
live and die with the layer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..engine import MapEngine, TileLayer, TileLayerSpec
from ..errors import LayerConsistencyError
from ..geo.tile_grid import TileCoord, TileGrid
from .adaptive_zoom import ZOOM_SLOTS, AdaptiveZoomController
from .allocator import ChartBand

log = logging.getLogger(__name__)

# Called with (layer, coord) whenever a chart tile fails to load
TileErrorSink = Callable[[TileLayer, TileCoord], None]


@dataclass
class ActiveChartLayer:
    band: ChartBand
    layer: TileLayer
    zoom: AdaptiveZoomController


def attribution_for(band: ChartBand) -> str:
    chart = band.tileset
    sounding = f" Soundings in {chart.sounding}" if chart.sounding else ""
    return chart.label + sounding


class LayerManager:
    """Replaces the map's chart layers for each new chart selection."""

    def __init__(
        self,
        engine: MapEngine,
        tile_template: str,
        on_tile_error: TileErrorSink,
        opacity: float = 0.8,
        grid: Optional[TileGrid] = None,
        failure_slots: int = ZOOM_SLOTS,
    ):
        self._engine = engine
        self._tile_template = tile_template
        self._on_tile_error = on_tile_error
        self._opacity = opacity
        self._grid = grid or TileGrid()
        self._slots = failure_slots
        self._active: List[ActiveChartLayer] = []

    @property
    def active(self) -> List[ActiveChartLayer]:
        return list(self._active)

    @property
    def idents(self) -> List[str]:
        return [a.band.ident for a in self._active]

    def replace(self, bands: Sequence[ChartBand]) -> None:
        """Swap the current chart layers for one layer per band."""
        self.clear()

        new_layers = [self._make_layer(band) for band in bands]
        for active in new_layers:
            self._engine.add_layer(active.layer)
        self._active = new_layers

        if new_layers:
            log.info(
                "Chart layers: %s",
                ", ".join(
                    f"{a.band.ident}[{a.band.min_resolution:.0f}-{a.band.max_resolution:.0f})"
                    for a in new_layers
                ),
            )

    def clear(self) -> None:
        """Remove every active chart layer from the map."""
        missing = []
        for active in self._active:
            if not self._engine.remove_layer(active.layer):
                missing.append(active.band.ident)
        self._active = []

        if missing:
            log.error("Chart layers not found on the map: %s", missing)
            self._engine.alert("Layer not found")
            raise LayerConsistencyError(f"chart layers missing from map: {missing}")

    def handle_tile_error(self, layer: TileLayer, coord: TileCoord) -> bool:
        """Route a tile failure to its layer's zoom controller.

        Failures from layers that were already replaced are dropped.
        """
        for active in self._active:
            if active.layer is layer:
                return active.zoom.on_tile_load_error(coord)
        log.debug("Tile error %s from a retired layer ignored", coord)
        return False

    def _make_layer(self, band: ChartBand) -> ActiveChartLayer:
        spec = TileLayerSpec(
            ident=band.ident,
            url_template=self._tile_template.replace("{ident}", band.ident),
            attribution=attribution_for(band),
            min_resolution=band.min_resolution,
            max_resolution=band.max_resolution,
            opacity=self._opacity,
        )
        layer = self._engine.create_tile_layer(spec)
        zoom = AdaptiveZoomController(
            band.ident, self._engine.view, self._grid, self._slots,
        )
        layer.on_tile_load_error(lambda coord, _layer=layer: self._on_tile_error(_layer, coord))
        return ActiveChartLayer(band=band, layer=layer, zoom=zoom)
