from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

import pytest

from chartview.engine import (
    Layer,
    MapEngine,
    MapView,
    TileLayer,
    TileLayerSpec,
    VectorLayerSpec,
)
from chartview.geo.footprint import ChartTileset, parse_chart
from chartview.geo.projection import Coordinate, Extent
from chartview.geo.tile_grid import TileCoord, TileGrid


class FakeView(MapView):
    """In-memory view: a 512x512 px window over the XYZ grid."""

    def __init__(self, min_res: float = 10.0, max_res: float = 2000.0) -> None:
        self.grid = TileGrid()
        self.center: Optional[Coordinate] = None
        self.zoom = 12.0
        self.rotation = 0.0
        self.size_px = (512, 512)
        self.extent_override: Optional[Extent] = None
        self.min_res = min_res
        self.max_res = max_res
        self.zoom_calls: List[float] = []
        self.rotation_calls: List[tuple] = []
        self.handlers: Dict[int, Callable[[], None]] = {}
        self._next_key = 0

    def get_center(self) -> Optional[Coordinate]:
        return self.center

    def set_center(self, center: Coordinate) -> None:
        self.center = center
        for handler in list(self.handlers.values()):
            handler()

    def get_zoom(self) -> float:
        return self.zoom

    def set_zoom(self, zoom: float) -> None:
        self.zoom_calls.append(zoom)
        self.zoom = zoom

    def get_rotation(self) -> float:
        return self.rotation

    def set_rotation(self, rotation: float, anchor: Optional[Coordinate] = None) -> None:
        self.rotation_calls.append((rotation, anchor))
        self.rotation = rotation

    def calculate_extent(self) -> Extent:
        if self.extent_override is not None:
            return self.extent_override
        cx, cy = self.center or (0.0, 0.0)
        res = self.grid.resolution(self.zoom)
        hw = res * self.size_px[0] / 2
        hh = res * self.size_px[1] / 2
        return (cx - hw, cy - hh, cx + hw, cy + hh)

    def get_min_resolution(self) -> float:
        return self.min_res

    def get_max_resolution(self) -> float:
        return self.max_res

    def on_center_changed(self, handler: Callable[[], None]) -> object:
        self._next_key += 1
        self.handlers[self._next_key] = handler
        return self._next_key

    def unsubscribe(self, key: object) -> None:
        self.handlers.pop(key, None)


class FakeTileLayer(TileLayer):
    def __init__(self, spec: TileLayerSpec) -> None:
        self.spec = spec
        self.z_index: Optional[int] = None
        self._handlers: List[Callable[[TileCoord], None]] = []

    def set_z_index(self, z: int) -> None:
        self.z_index = z

    def on_tile_load_error(self, handler: Callable[[TileCoord], None]) -> None:
        self._handlers.append(handler)

    def fail(self, coord: TileCoord) -> None:
        for handler in self._handlers:
            handler(coord)


class FakeVectorLayer(Layer):
    def __init__(self, spec: VectorLayerSpec) -> None:
        self.spec = spec
        self.z_index = spec.z_index

    def set_z_index(self, z: int) -> None:
        self.z_index = z


class FakeEngine(MapEngine):
    def __init__(self, view: Optional[FakeView] = None) -> None:
        self.view = view or FakeView()
        self.stack: List[Layer] = []
        self.alerts: List[str] = []
        self.interaction_handlers: Dict[int, Callable[[], None]] = {}
        self._next_key = 0

    def create_tile_layer(self, spec: TileLayerSpec) -> FakeTileLayer:
        return FakeTileLayer(spec)

    def create_vector_layer(self, spec: VectorLayerSpec) -> FakeVectorLayer:
        return FakeVectorLayer(spec)

    def add_layer(self, layer: Layer) -> None:
        self.stack.append(layer)

    def remove_layer(self, layer: Layer) -> bool:
        for i, held in enumerate(self.stack):
            if held is layer:
                del self.stack[i]
                return True
        return False

    def on_interaction(self, handler: Callable[[], None]) -> object:
        self._next_key += 1
        self.interaction_handlers[self._next_key] = handler
        return self._next_key

    def unsubscribe(self, key: object) -> None:
        self.interaction_handlers.pop(key, None)

    def alert(self, message: str) -> None:
        self.alerts.append(message)

    # test helpers

    def interact(self) -> None:
        for handler in list(self.interaction_handlers.values()):
            handler()

    def tile_layers(self) -> List[FakeTileLayer]:
        return [layer for layer in self.stack if isinstance(layer, FakeTileLayer)]

    def vector_layer(self, name: str) -> Optional[FakeVectorLayer]:
        for layer in self.stack:
            if isinstance(layer, FakeVectorLayer) and layer.spec.name == name:
                return layer
        return None


def make_chart(
    ident: str,
    scale: float,
    lower: Sequence[float] = (-122.6, 37.7),
    upper: Sequence[float] = (-122.3, 37.9),
    **extra,
) -> ChartTileset:
    record = {"ident": ident, "scale": scale, "lower": list(lower), "upper": list(upper)}
    record.update(extra)
    return parse_chart(record)


@pytest.fixture
def view() -> FakeView:
    return FakeView()


@pytest.fixture
def engine(view: FakeView) -> FakeEngine:
    return FakeEngine(view)


@pytest.fixture
def bay_charts() -> List[ChartTileset]:
    """A harbour chart and a coastal chart around San Francisco Bay."""
    return [
        make_chart("US5CA52M_1", 80000, sounding="FEET"),
        make_chart("US3CA52M_1", 500000, lower=(-125.0, 35.0), upper=(-120.0, 40.0)),
    ]
