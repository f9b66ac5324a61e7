"""
Mapping-engine capability interface.

The chart layering core never talks to a concrete map widget.  It needs a
view (center, zoom, rotation, extent, resolution limits), a way to build
and stack tile and vector layers, a tile-load-error event per tile layer,
and a way to raise a user-visible alert.  ``chartview.gui.map_widget``
implements this on PyQt5; the tests use an in-memory fake.

All coordinates are Web Mercator metres; extents are
``(minx, miny, maxx, maxy)``; rotations are radians.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from .geo.projection import Coordinate, Extent
from .geo.tile_grid import TileCoord

# ── Layer descriptions ────────────────────────────────────────────────

@dataclass(frozen=True)
class TileLayerSpec:
    """Everything the engine needs to build one XYZ tile layer."""
    ident: str
    url_template: str                   # "{z}/{x}/{y}" placeholders
    attribution: str = ""
    min_resolution: Optional[float] = None   # inclusive
    max_resolution: Optional[float] = None   # exclusive
    opacity: float = 1.0


@dataclass(frozen=True)
class Marker:
    """Point icon on a vector layer."""
    point: Coordinate
    icon: str                           # "compass", "view", "pointer"
    rotation: float = 0.0
    rotate_with_view: bool = True
    anchor: Tuple[float, float] = (0.5, 0.5)   # fraction of icon size


@dataclass(frozen=True)
class CourseLine:
    """Straight line between two projected points."""
    start: Coordinate
    end: Coordinate
    color: str = "#00D700"
    width: float = 5.0


Feature = Union[Marker, CourseLine]


@dataclass(frozen=True)
class VectorLayerSpec:
    name: str
    features: Tuple[Feature, ...]
    z_index: Optional[int] = None


# ── Engine objects ────────────────────────────────────────────────────

class Layer(ABC):
    """A layer handle owned by the engine."""

    @abstractmethod
    def set_z_index(self, z: int) -> None:
        ...


class TileLayer(Layer):
    """A tile layer; reports every tile it fails to load."""

    @abstractmethod
    def on_tile_load_error(self, handler: Callable[[TileCoord], None]) -> None:
        """Register *handler* to be called with the failing tile coordinate."""


class MapView(ABC):
    """The map's view: what part of the world is on screen."""

    @abstractmethod
    def get_center(self) -> Optional[Coordinate]:
        ...

    @abstractmethod
    def set_center(self, center: Coordinate) -> None:
        ...

    @abstractmethod
    def get_zoom(self) -> float:
        ...

    @abstractmethod
    def set_zoom(self, zoom: float) -> None:
        ...

    @abstractmethod
    def get_rotation(self) -> float:
        ...

    @abstractmethod
    def set_rotation(self, rotation: float, anchor: Optional[Coordinate] = None) -> None:
        """Set the absolute view rotation, keeping *anchor* fixed on screen."""

    @abstractmethod
    def calculate_extent(self) -> Extent:
        ...

    @abstractmethod
    def get_min_resolution(self) -> float:
        ...

    @abstractmethod
    def get_max_resolution(self) -> float:
        ...

    @abstractmethod
    def on_center_changed(self, handler: Callable[[], None]) -> object:
        """Subscribe to center changes; returns a key for :meth:`unsubscribe`."""

    @abstractmethod
    def unsubscribe(self, key: object) -> None:
        ...


class MapEngine(ABC):
    """Map surface: layer stack, user interaction events and alerts."""

    view: MapView

    @abstractmethod
    def create_tile_layer(self, spec: TileLayerSpec) -> TileLayer:
        ...

    @abstractmethod
    def create_vector_layer(self, spec: VectorLayerSpec) -> Layer:
        ...

    @abstractmethod
    def add_layer(self, layer: Layer) -> None:
        ...

    @abstractmethod
    def remove_layer(self, layer: Layer) -> bool:
        """Remove *layer*; returns False if the map did not hold it."""

    @abstractmethod
    def on_interaction(self, handler: Callable[[], None]) -> object:
        """Subscribe to user pointer interaction (drag / move)."""

    @abstractmethod
    def unsubscribe(self, key: object) -> None:
        ...

    @abstractmethod
    def alert(self, message: str) -> None:
        """Show a user-visible fault message."""
