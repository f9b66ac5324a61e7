"""
Viewport controller: the chart viewer's session object.

Owns the vessel / inspect / destination locations, the display mode and
rotation lock, and keeps the chart layers in step with the view:

  view center moves
    → still showing the last center?  nothing to do
    → catalog loaded?  select charts → allocate bands → swap layers
      otherwise request the catalog once and finish when it arrives
    → refresh course / position overlays
    → fire on_location_update (mode-driven recenter) and on_update_view

All state changes go through :meth:`ViewportController.dispatch` on one
thread; engine callbacks only post events.

Display modes
-------------
    INSPECT_LOCATION   initial; centered on a point the user picked
    CURRENT_LOCATION   following the vessel
    SHOW_DESTINATION   centered on the destination

Usage
-----
    ctl = ViewportController(engine, loader.request, config,
                             fix_provider=fixes,
                             on_update_view=refresh_panel)
    loader.loaded.connect(lambda charts: ctl.dispatch(CatalogLoaded(charts)))
    ctl.set_inspect_location((-122.42, 37.80))
    ctl.show_inspect_location()
    ...
    ctl.close()
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..charts.allocator import allocate_resolutions
from ..charts.layers import LayerManager
from ..charts.selector import select_charts
from ..config import ViewerConfig
from ..engine import Layer, MapEngine, TileLayer
from ..errors import LayerConsistencyError
from ..geo.footprint import ChartTileset
from ..geo.location import Location
from ..geo.projection import Coordinate, Extent, contains_coordinate
from ..geo.tile_grid import TileCoord, TileGrid
from ..ingest.fix_provider import FixProvider
from .events import (
    CatalogFailed,
    CatalogLoaded,
    TileLoadFailed,
    UserInteraction,
    ViewChanged,
)
from .overlays import POSITION_Z, course_overlay, position_overlay

log = logging.getLogger(__name__)


class DisplayMode(enum.Enum):
    CURRENT_LOCATION = 1
    INSPECT_LOCATION = 2
    SHOW_DESTINATION = 4


@dataclass(frozen=True)
class ViewportState:
    """Snapshot of the visible map area."""
    center: Coordinate
    extent: Extent


class ViewportController:
    """Map / display-mode state machine driving chart layer selection."""

    def __init__(
        self,
        engine: MapEngine,
        request_catalog: Callable[[], None],
        config: Optional[ViewerConfig] = None,
        *,
        fix_provider: Optional[FixProvider] = None,
        on_location_update: Optional[Callable[[Tuple[float, float]], None]] = None,
        on_update_view: Optional[Callable[[], None]] = None,
        get_rotation: Optional[Callable[[], float]] = None,
        clock: Callable[[], float] = time.monotonic,
        grid: Optional[TileGrid] = None,
    ):
        self._engine = engine
        self._view = engine.view
        self._config = config or ViewerConfig()
        self._request_catalog = request_catalog
        self._fix_provider = fix_provider
        self._on_location_update = on_location_update
        self._on_update_view = on_update_view
        self._get_rotation = get_rotation or self._fix_heading
        self._clock = clock

        self._layers = LayerManager(
            engine,
            self._config.chart_tile_template,
            self._post_tile_error,
            opacity=self._config.chart_opacity,
            grid=grid,
            failure_slots=self._config.failure_slots,
        )

        self._catalog: Optional[List[ChartTileset]] = None
        self._catalog_requested = False
        self._last_center: Optional[Coordinate] = None

        self._mode = DisplayMode.INSPECT_LOCATION
        self._location: Optional[Location] = None
        self._current: Optional[Location] = None
        self._inspect: Optional[Location] = None
        self._destination: Optional[Location] = None
        self._rotate_view = False
        self._need_pos_update = True
        self._location_update = False
        self._last_interaction: Optional[float] = None

        self._position_layer: Optional[Layer] = None
        self._course_layer: Optional[Layer] = None

        self._handlers: Dict[type, Callable] = {
            ViewChanged: self._on_view_changed,
            UserInteraction: self._on_user_interaction,
            CatalogLoaded: self._on_catalog_loaded,
            CatalogFailed: self._on_catalog_failed,
            TileLoadFailed: self._on_tile_load_failed,
        }
        self._subscriptions = [
            (self._view, self._view.on_center_changed(lambda: self.dispatch(ViewChanged()))),
            (self._engine, self._engine.on_interaction(lambda: self.dispatch(UserInteraction()))),
        ]
        self._closed = False

    # ── Read-only state ───────────────────────────────────────────────

    @property
    def mode(self) -> DisplayMode:
        return self._mode

    @property
    def location(self) -> Optional[Location]:
        """The location the current mode is centered on."""
        return self._location

    @property
    def current_location(self) -> Optional[Location]:
        return self._current

    @property
    def inspect_location(self) -> Optional[Location]:
        return self._inspect

    @property
    def destination(self) -> Optional[Location]:
        return self._destination

    @property
    def rotate_view(self) -> bool:
        return self._rotate_view

    @property
    def needs_position_update(self) -> bool:
        return self._need_pos_update

    @property
    def active_charts(self) -> List[str]:
        return self._layers.idents

    @property
    def catalog(self) -> Optional[List[ChartTileset]]:
        return self._catalog

    def viewport(self) -> ViewportState:
        return ViewportState(self._view.get_center(), self._view.calculate_extent())

    # ── Event dispatch ────────────────────────────────────────────────

    def dispatch(self, event: object) -> None:
        if self._closed:
            log.debug("Event %s after close ignored", type(event).__name__)
            return
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"unknown viewer event {event!r}")
        handler(event)

    def _post_tile_error(self, layer: TileLayer, coord: TileCoord) -> None:
        self.dispatch(TileLoadFailed(layer, coord))

    def _on_user_interaction(self, _event: UserInteraction) -> None:
        self._last_interaction = self._clock()

    def _on_tile_load_failed(self, event: TileLoadFailed) -> None:
        self._layers.handle_tile_error(event.layer, event.coord)

    def _on_view_changed(self, _event: ViewChanged) -> None:
        extent = self._view.calculate_extent()
        if self._is_last_center_visible(extent):
            return
        center = self._view.get_center()
        if center is None:
            return

        if self._catalog is not None:
            self._update_layers(center, extent, select_charts(self._catalog, center, extent))
        elif not self._catalog_requested:
            self._catalog_requested = True
            self._request_catalog()

    def _on_catalog_loaded(self, event: CatalogLoaded) -> None:
        self._catalog_requested = False
        self._catalog = list(event.charts)
        # Use the view as it is now; it may have moved during the fetch
        state = self.viewport()
        if state.center is None:
            return
        charts = select_charts(self._catalog, state.center, state.extent)
        self._update_layers(state.center, state.extent, charts)

    def _on_catalog_failed(self, event: CatalogFailed) -> None:
        self._catalog_requested = False
        log.error("Chart catalog unavailable: %s", event.error)
        raise event.error

    # ── Chart layers ──────────────────────────────────────────────────

    def _is_last_center_visible(self, extent: Extent) -> bool:
        return self._last_center is not None and contains_coordinate(extent, self._last_center)

    def _update_layers(
        self,
        center: Coordinate,
        extent: Extent,
        charts: Sequence[ChartTileset],
    ) -> None:
        if self._is_last_center_visible(extent):
            return
        self._last_center = center
        bands = allocate_resolutions(
            charts,
            self._view.get_min_resolution(),
            self._view.get_max_resolution(),
        )
        self._layers.replace(bands)
        self.update_features()
        self._finish_layers()

    def _finish_layers(self) -> None:
        if self._location_update:
            self._location_update = False
            if self._on_location_update and self._location is not None:
                self._on_location_update(self._location.coord)
        if self._on_update_view:
            self._on_update_view()

    # ── Display modes ─────────────────────────────────────────────────

    def _show_location(self, mode: DisplayMode, location: Optional[Location]) -> Optional[Location]:
        if location is None:
            log.warning("No location to show for %s", mode.name)
            return None
        self._location = location
        self._last_interaction = None
        if self._mode != mode:
            self._need_pos_update = True
        self._mode = mode
        self._location_update = True
        self._view.set_center(location.projected)
        return location

    def show_current_location(self, force: bool = False) -> Optional[Location]:
        """Center on the vessel unless the user touched the map recently."""
        if force:
            self._last_interaction = None
        elif self._last_interaction is not None:
            if self._clock() < self._last_interaction + self._config.interaction_holdoff_s:
                return None
        return self._show_location(DisplayMode.CURRENT_LOCATION, self._current)

    def show_destination(self) -> Optional[Location]:
        return self._show_location(DisplayMode.SHOW_DESTINATION, self._destination)

    def show_inspect_location(self) -> Optional[Location]:
        self._rotate_view = False
        self._view.set_rotation(0.0)
        return self._show_location(DisplayMode.INSPECT_LOCATION, self._inspect)

    # ── Locations ─────────────────────────────────────────────────────

    def set_current_location(self, coord: Sequence[float]) -> Location:
        if self._current is None or not self._current.equals(coord):
            self._current = Location.from_coord(coord)
            self._need_pos_update = True
            self._update_course_layer()
        return self._current

    def set_inspect_location(self, coord: Sequence[float]) -> Location:
        if self._inspect is None or not self._inspect.equals(coord):
            self._inspect = Location.from_coord(coord)
            self._need_pos_update = True
        return self._inspect

    def set_destination(
        self,
        loc: Union[Location, Sequence[float], None] = None,
    ) -> Optional[Location]:
        """Set the destination (defaults to the inspect location)."""
        if loc is None:
            loc = self._inspect
        elif not isinstance(loc, Location):
            loc = Location.from_coord(loc)
        self._last_interaction = None
        self._destination = loc
        self._update_course_layer()
        return loc

    def remove_destination(self) -> None:
        self._destination = None
        self._last_interaction = None
        self._update_course_layer()

    def apply_fix(self) -> Optional[Location]:
        """Feed the fix provider's latest position into the current location."""
        if self._fix_provider is None:
            return None
        fix = self._fix_provider.latest()
        if fix is None:
            return None
        return self.set_current_location(fix.coord)

    def _fix_heading(self) -> float:
        if self._fix_provider is None:
            return 0.0
        fix = self._fix_provider.latest()
        return fix.heading_rad if fix is not None else 0.0

    def toggle_rotation(self) -> bool:
        """Switch between rotating the vessel icon and rotating the view."""
        self._rotate_view = not self._rotate_view
        self._need_pos_update = True
        return self._rotate_view

    # ── Overlays ──────────────────────────────────────────────────────

    def update_features(self, force: bool = False) -> None:
        if force:
            self._need_pos_update = True
        self._update_course_layer()
        self._update_position_layer()

    def _update_course_layer(self) -> None:
        if self._course_layer is not None:
            self._engine.remove_layer(self._course_layer)
            self._course_layer = None
        spec = course_overlay(self._current, self._destination)
        if spec is not None:
            self._course_layer = self._engine.create_vector_layer(spec)
            self._engine.add_layer(self._course_layer)

    def _update_position_layer(self) -> None:
        if not self._need_pos_update:
            if self._position_layer is not None:
                self._position_layer.set_z_index(POSITION_Z)
            return

        # Rotating the view can move its center and re-enter this method
        # through ViewChanged; finish that before touching the layer.
        rotation = self._rotate() if self._current is not None else 0.0

        if self._position_layer is not None:
            if not self._engine.remove_layer(self._position_layer):
                log.warning("Position layer not found on the map")
                return
            self._position_layer = None

        spec = position_overlay(self._current, self._inspect, rotation, self._rotate_view)
        if spec is not None:
            self._position_layer = self._engine.create_vector_layer(spec)
            self._engine.add_layer(self._position_layer)
            self._need_pos_update = False

    def _rotate(self) -> float:
        """Apply the heading; returns the rotation for the vessel icon."""
        heading = self._get_rotation()
        if self._rotate_view:
            self._view.set_rotation(-heading, self._current.projected)
            return 0.0
        return heading

    # ── Teardown ──────────────────────────────────────────────────────

    def close(self) -> None:
        """Unsubscribe from the engine and remove every layer this session added."""
        if self._closed:
            return
        self._closed = True
        for source, key in self._subscriptions:
            source.unsubscribe(key)
        self._subscriptions = []

        for attr in ("_course_layer", "_position_layer"):
            layer = getattr(self, attr)
            if layer is not None:
                self._engine.remove_layer(layer)
                setattr(self, attr, None)
        try:
            self._layers.clear()
        except LayerConsistencyError:
            log.exception("Chart layers out of sync at shutdown")
        log.info("Viewer session closed")
