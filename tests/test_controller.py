from __future__ import annotations

import math
from typing import List

import pytest
from conftest import FakeEngine, FakeVectorLayer, FakeView

from chartview.config import ViewerConfig
from chartview.engine import CourseLine, Marker
from chartview.errors import CatalogError
from chartview.geo.projection import from_lonlat
from chartview.geo.tile_grid import HALF_WORLD, TileCoord
from chartview.ingest.fix_provider import LatestFixProvider
from chartview.viewer.controller import DisplayMode, ViewportController
from chartview.viewer.events import CatalogFailed, CatalogLoaded, ViewChanged

BAY = (-122.45, 37.80)
INLAND = (-121.0, 38.0)


class _Clock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def requests_made() -> List[int]:
    return []


@pytest.fixture
def ctl(engine, clock, requests_made) -> ViewportController:
    return ViewportController(
        engine,
        lambda: requests_made.append(1),
        ViewerConfig(),
        get_rotation=lambda: 0.5,
        clock=clock,
    )


def _loaded(ctl, engine, charts) -> None:
    ctl.set_inspect_location(BAY)
    ctl.show_inspect_location()
    ctl.dispatch(CatalogLoaded(charts))


# ── Catalog and chart layers ──────────────────────────────────────────

def test_catalog_requested_once(ctl, engine, requests_made) -> None:
    ctl.set_inspect_location(BAY)
    ctl.show_inspect_location()
    engine.view.set_center(from_lonlat(*INLAND))

    assert requests_made == [1]
    assert ctl.catalog is None
    assert engine.tile_layers() == []


def test_catalog_completion_uses_view_at_arrival(ctl, engine, bay_charts) -> None:
    ctl.set_inspect_location(BAY)
    ctl.show_inspect_location()
    engine.view.set_center(from_lonlat(*INLAND))

    ctl.dispatch(CatalogLoaded(bay_charts))

    assert ctl.active_charts == ["US3CA52M_1"]


def test_catalog_loaded_builds_banded_layers(ctl, engine, bay_charts) -> None:
    _loaded(ctl, engine, bay_charts)

    layers = engine.tile_layers()
    assert ctl.active_charts == ["US5CA52M_1", "US3CA52M_1"]
    assert [(layer.spec.min_resolution, layer.spec.max_resolution) for layer in layers] == [(10, 328), (328, 2000)]


def test_view_changes_reuse_the_catalog(ctl, engine, bay_charts, requests_made) -> None:
    _loaded(ctl, engine, bay_charts)
    before = engine.tile_layers()

    engine.view.set_center(engine.view.center)
    assert engine.tile_layers() == before

    engine.view.set_center(from_lonlat(*INLAND))
    assert ctl.active_charts == ["US3CA52M_1"]
    assert requests_made == [1]


def test_catalog_failure_raises_and_allows_retry(ctl, engine, requests_made) -> None:
    ctl.set_inspect_location(BAY)
    ctl.show_inspect_location()

    with pytest.raises(CatalogError):
        ctl.dispatch(CatalogFailed(CatalogError("HTTP 503", status=503)))

    engine.view.set_center(from_lonlat(*INLAND))
    assert requests_made == [1, 1]


def test_tile_failures_reach_the_zoom_controller(ctl, engine, bay_charts) -> None:
    _loaded(ctl, engine, bay_charts)
    engine.view.zoom = 1
    engine.view.extent_override = (-HALF_WORLD, -HALF_WORLD, HALF_WORLD, HALF_WORLD)
    layer = engine.tile_layers()[0]

    for x in (0, 1):
        for y in (0, 1):
            layer.fail(TileCoord(1, x, y))

    assert engine.view.zoom_calls == [0]


def test_unknown_event_is_rejected(ctl) -> None:
    with pytest.raises(TypeError):
        ctl.dispatch(object())


# ── Display modes and callbacks ───────────────────────────────────────

def test_callbacks_fire_after_layers_update(engine, bay_charts) -> None:
    seen = []
    views = []
    ctl = ViewportController(
        engine,
        lambda: None,
        on_location_update=seen.append,
        on_update_view=lambda: views.append(1),
    )

    _loaded(ctl, engine, bay_charts)

    assert seen == [ctl.inspect_location.coord]
    assert views == [1]
    assert ctl.mode == DisplayMode.INSPECT_LOCATION


def test_show_location_without_location_is_a_no_op(ctl, engine) -> None:
    assert ctl.show_destination() is None
    assert ctl.show_current_location(force=True) is None
    assert ctl.mode == DisplayMode.INSPECT_LOCATION
    assert engine.view.center is None


def test_user_interaction_holds_off_recentering(ctl, engine, clock) -> None:
    ctl.set_current_location(BAY)
    assert ctl.show_current_location() is not None
    assert ctl.mode == DisplayMode.CURRENT_LOCATION

    engine.interact()
    clock.now = 130.0
    assert ctl.show_current_location() is None
    clock.now = 155.0
    assert ctl.show_current_location(False) is None

    clock.now = 161.0
    assert ctl.show_current_location() == ctl.current_location


def test_setting_destination_ends_the_holdoff(ctl, engine, clock) -> None:
    ctl.set_current_location(BAY)
    engine.interact()
    clock.now = 110.0

    ctl.set_destination(INLAND)

    assert ctl.show_current_location(False) == ctl.current_location


def test_removing_destination_ends_the_holdoff(ctl, engine, clock) -> None:
    ctl.set_current_location(BAY)
    ctl.set_destination(INLAND)
    engine.interact()
    clock.now = 110.0

    ctl.remove_destination()

    assert ctl.show_current_location(False) == ctl.current_location


def test_forced_recenter_ignores_interaction(ctl, engine, clock) -> None:
    ctl.set_current_location(BAY)
    engine.interact()
    clock.now = 101.0

    assert ctl.show_current_location(force=True) == ctl.current_location
    assert engine.view.center == pytest.approx(ctl.current_location.projected)


def test_show_destination_centers_on_it(ctl, engine) -> None:
    ctl.set_destination(INLAND)

    loc = ctl.show_destination()

    assert ctl.mode == DisplayMode.SHOW_DESTINATION
    assert ctl.location == loc
    assert engine.view.center == pytest.approx(loc.projected)


def test_show_inspect_location_resets_rotation(ctl, engine) -> None:
    ctl.set_inspect_location(BAY)
    ctl.toggle_rotation()
    engine.view.rotation = 1.2

    ctl.show_inspect_location()

    assert not ctl.rotate_view
    assert engine.view.rotation == 0.0


# ── Locations and overlays ────────────────────────────────────────────

def test_position_overlay_rebuilt_only_when_dirty(ctl, engine) -> None:
    ctl.set_inspect_location(BAY)
    ctl.update_features()
    first = engine.vector_layer("position")

    assert [f.icon for f in first.spec.features] == ["view"]
    assert not ctl.needs_position_update

    first.set_z_index(3)
    ctl.update_features()
    assert engine.vector_layer("position") is first
    assert first.z_index == 999

    ctl.set_current_location(INLAND)
    ctl.update_features()
    rebuilt = engine.vector_layer("position")
    assert rebuilt is not first
    compass, view_marker = rebuilt.spec.features
    assert compass.icon == "compass"
    assert compass.rotation == 0.5
    assert compass.rotate_with_view
    assert view_marker.rotation == 0.0


def test_jitter_does_not_dirty_the_position(ctl) -> None:
    ctl.set_current_location((-122.41942, 37.77493))
    ctl.update_features()

    ctl.set_current_location((-122.41949, 37.77491))

    assert not ctl.needs_position_update


def test_rotation_lock_rotates_the_view(ctl, engine) -> None:
    ctl.set_current_location(BAY)

    assert ctl.toggle_rotation() is True
    ctl.update_features()

    rotation, anchor = engine.view.rotation_calls[-1]
    assert rotation == -0.5
    assert anchor == ctl.current_location.projected
    compass = engine.vector_layer("position").spec.features[0]
    assert compass.rotation == 0.0
    assert not compass.rotate_with_view


def test_course_drawn_between_vessel_and_destination(ctl, engine) -> None:
    ctl.set_current_location(BAY)
    ctl.set_inspect_location(INLAND)

    dest = ctl.set_destination()

    assert dest == ctl.inspect_location
    course = engine.vector_layer("course")
    line, pointer = course.spec.features
    assert isinstance(line, CourseLine)
    assert line.start == ctl.current_location.projected
    assert line.end == dest.projected
    assert isinstance(pointer, Marker)
    assert pointer.anchor == (0.5, 1.0)

    ctl.remove_destination()
    assert engine.vector_layer("course") is None
    assert ctl.destination is None


def test_fix_provider_feeds_location_and_heading(engine) -> None:
    fixes = LatestFixProvider()
    ctl = ViewportController(engine, lambda: None, fix_provider=fixes)
    assert ctl.apply_fix() is None

    fixes.update_from_kmh(lon=BAY[0], lat=BAY[1], speed_kmh=10.0, heading=90.0)
    loc = ctl.apply_fix()
    ctl.update_features()

    assert loc == ctl.current_location
    compass = engine.vector_layer("position").spec.features[0]
    assert compass.rotation == pytest.approx(math.pi / 2)


# ── Teardown ──────────────────────────────────────────────────────────

def test_close_removes_layers_and_subscriptions(ctl, engine, bay_charts, requests_made) -> None:
    _loaded(ctl, engine, bay_charts)
    ctl.set_current_location(INLAND)
    ctl.set_destination()
    assert engine.stack

    ctl.close()

    assert engine.stack == []
    assert engine.view.handlers == {}
    assert engine.interaction_handlers == {}
    ctl.dispatch(ViewChanged())
    ctl.dispatch(CatalogFailed(CatalogError("late")))
    assert requests_made == [1]


# ── Heading-up re-entry ───────────────────────────────────────────────

class _PivotView(FakeView):
    """Rotation about an anchor drags the center along, like the Qt view."""

    def set_rotation(self, rotation: float, anchor=None) -> None:
        delta = rotation - self.rotation
        super().set_rotation(rotation, anchor)
        if anchor is not None and self.center is not None and delta:
            dx = self.center[0] - anchor[0]
            dy = self.center[1] - anchor[1]
            cos_d, sin_d = math.cos(delta), math.sin(delta)
            self.set_center((
                anchor[0] + dx * cos_d - dy * sin_d,
                anchor[1] + dx * sin_d + dy * cos_d,
            ))


def test_heading_up_away_from_vessel_keeps_one_position_layer(bay_charts) -> None:
    engine = FakeEngine(_PivotView())
    ctl = ViewportController(engine, lambda: None, get_rotation=lambda: 0.5)
    ctl.set_current_location(BAY)
    ctl.set_inspect_location(BAY)
    ctl.set_destination(INLAND)
    ctl.show_inspect_location()
    ctl.dispatch(CatalogLoaded(bay_charts[1:]))

    ctl.toggle_rotation()
    ctl.show_destination()

    positions = [
        layer for layer in engine.stack
        if isinstance(layer, FakeVectorLayer) and layer.spec.name == "position"
    ]
    assert len(positions) == 1
    assert engine.view.rotation == -0.5
