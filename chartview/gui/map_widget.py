"""
Chart map widget: QGraphicsScene-based implementation of the mapping engine.

Renders stacked XYZ tile layers (OSM base map plus the chart layers
chosen by the viewport controller) and the vector overlays for the
vessel, the inspect point and the course line.

  - Scene coordinates are Web Mercator metres with y flipped (scene y = -y),
    so north is up before rotation.
  - The view keeps its own center / resolution / rotation and derives the
    QGraphicsView transform from them.
  - Tiles are downloaded on a QThreadPool; results come back to the GUI
    thread through queued signals.  A failed tile is reported once to its
    layer's error handlers and not requested again.

Usage
-----
    engine = QtMapEngine(config)
    window.setCentralWidget(engine.widget)
    ctl = ViewportController(engine, loader.request, config)
"""
from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Optional, Set

import requests
from PyQt5 import QtCore, QtGui, QtWidgets

from ..config import ViewerConfig
from ..engine import (
    CourseLine,
    Layer,
    MapEngine,
    MapView,
    Marker,
    TileLayer,
    TileLayerSpec,
    VectorLayerSpec,
)
from ..geo.graticule import graticule_lines
from ..geo.projection import Coordinate, Extent
from ..geo.tile_grid import TileCoord, TileGrid
from ..ingest import http_session

log = logging.getLogger(__name__)

_MAX_TILES_PER_LAYER = 400   # cached tile items before pruning off-screen ones
_WHEEL_STEP = 0.5            # zoom levels per wheel notch
_GRATICULE_Z = 500           # above chart tiles, below overlays


# ── Tile download ─────────────────────────────────────────────────────

class _TileSignals(QtCore.QObject):
    loaded = QtCore.pyqtSignal(int, object, bytes)   # layer id, TileCoord, body
    failed = QtCore.pyqtSignal(int, object, str)     # layer id, TileCoord, reason


class _TileFetch(QtCore.QRunnable):
    """Download one tile on a pool thread."""

    def __init__(self, layer_id: int, coord: TileCoord, url: str,
                 signals: _TileSignals, timeout: float):
        super().__init__()
        self._layer_id = layer_id
        self._coord = coord
        self._url = url
        self._signals = signals
        self._timeout = timeout

    def run(self) -> None:
        try:
            resp = http_session().get(self._url, timeout=self._timeout)
        except requests.RequestException as exc:
            self._signals.failed.emit(self._layer_id, self._coord, str(exc))
            return
        if resp.status_code == 200 and resp.content:
            self._signals.loaded.emit(self._layer_id, self._coord, resp.content)
        else:
            self._signals.failed.emit(
                self._layer_id, self._coord, f"HTTP {resp.status_code}",
            )


# ── Layers ────────────────────────────────────────────────────────────

class QtTileLayer(TileLayer):
    """XYZ tile layer drawn into a QGraphicsItemGroup."""

    def __init__(self, spec: TileLayerSpec, scene: QtWidgets.QGraphicsScene, key: int):
        self.spec = spec
        self.key = key
        self.group = QtWidgets.QGraphicsItemGroup()
        self.group.setOpacity(spec.opacity)
        scene.addItem(self.group)
        self.group.hide()
        self.tiles: Dict[TileCoord, QtWidgets.QGraphicsPixmapItem] = {}
        self.pending: Set[TileCoord] = set()
        self.failed: Set[TileCoord] = set()
        self._error_handlers: List[Callable[[TileCoord], None]] = []

    @property
    def ident(self) -> str:
        return self.spec.ident

    def set_z_index(self, z: int) -> None:
        self.group.setZValue(z)

    def on_tile_load_error(self, handler: Callable[[TileCoord], None]) -> None:
        self._error_handlers.append(handler)

    def in_band(self, resolution: float) -> bool:
        lo, hi = self.spec.min_resolution, self.spec.max_resolution
        if lo is not None and resolution < lo:
            return False
        if hi is not None and resolution >= hi:
            return False
        return True

    def tile_failed(self, coord: TileCoord) -> None:
        self.pending.discard(coord)
        self.failed.add(coord)
        for handler in list(self._error_handlers):
            handler(coord)


class _MarkerItem(QtWidgets.QGraphicsItem):
    """Fixed-size icon that keeps its pixel size at every zoom."""

    SIZE = 28.0

    def __init__(self, marker: Marker):
        super().__init__()
        self.marker = marker
        self.setFlag(QtWidgets.QGraphicsItem.ItemIgnoresTransformations, True)
        self.setPos(marker.point[0], -marker.point[1])

    def boundingRect(self) -> QtCore.QRectF:
        s = self.SIZE
        ax, ay = self.marker.anchor
        return QtCore.QRectF(-ax * s, -ay * s, s, s)

    def paint(self, painter: QtGui.QPainter, option, widget=None) -> None:
        r = self.boundingRect()
        painter.setRenderHint(QtGui.QPainter.Antialiasing)
        icon = self.marker.icon
        if icon == "compass":
            # Vessel: arrow pointing along the heading
            c = r.center()
            h = r.height() / 2
            arrow = QtGui.QPolygonF([
                QtCore.QPointF(c.x(), c.y() - h),
                QtCore.QPointF(c.x() + h * 0.55, c.y() + h * 0.8),
                QtCore.QPointF(c.x(), c.y() + h * 0.4),
                QtCore.QPointF(c.x() - h * 0.55, c.y() + h * 0.8),
            ])
            painter.setPen(QtGui.QPen(QtGui.QColor(0, 0, 0), 1.5))
            painter.setBrush(QtGui.QColor(0, 204, 255, 230))
            painter.drawPolygon(arrow)
        elif icon == "pointer":
            # Destination pin, tip on the point
            c = r.center()
            w = r.width() * 0.35
            painter.setPen(QtGui.QPen(QtGui.QColor(0, 0, 0), 1.2))
            painter.setBrush(QtGui.QColor(0, 215, 0, 230))
            pin = QtGui.QPainterPath()
            pin.moveTo(c.x(), r.bottom())
            pin.lineTo(c.x() - w, r.top() + w * 1.6)
            pin.arcTo(QtCore.QRectF(c.x() - w, r.top(), 2 * w, 2 * w), 180, -180)
            pin.closeSubpath()
            painter.drawPath(pin)
        else:
            # Inspect point: ring with crosshair
            pen = QtGui.QPen(QtGui.QColor(255, 140, 0, 230), 2.0)
            painter.setPen(pen)
            painter.setBrush(QtCore.Qt.NoBrush)
            inner = r.adjusted(5, 5, -5, -5)
            painter.drawEllipse(inner)
            c = r.center()
            painter.drawLine(QtCore.QPointF(r.left(), c.y()), QtCore.QPointF(r.right(), c.y()))
            painter.drawLine(QtCore.QPointF(c.x(), r.top()), QtCore.QPointF(c.x(), r.bottom()))

    def apply_view_rotation(self, view_rotation: float) -> None:
        rot = self.marker.rotation
        if self.marker.rotate_with_view:
            rot += view_rotation
        self.setRotation(math.degrees(rot))


class QtVectorLayer(Layer):
    def __init__(self, spec: VectorLayerSpec, scene: QtWidgets.QGraphicsScene):
        self.spec = spec
        self.group = QtWidgets.QGraphicsItemGroup()
        self.markers: List[_MarkerItem] = []
        for feature in spec.features:
            if isinstance(feature, CourseLine):
                pen = QtGui.QPen(QtGui.QColor(feature.color))
                pen.setWidthF(feature.width)
                pen.setCosmetic(True)
                line = QtWidgets.QGraphicsLineItem(
                    feature.start[0], -feature.start[1],
                    feature.end[0], -feature.end[1],
                )
                line.setPen(pen)
                self.group.addToGroup(line)
            elif isinstance(feature, Marker):
                item = _MarkerItem(feature)
                self.group.addToGroup(item)
                self.markers.append(item)
        scene.addItem(self.group)
        self.group.hide()

    def set_z_index(self, z: int) -> None:
        self.group.setZValue(z)


# ── View ──────────────────────────────────────────────────────────────

class QtMapView(MapView):
    """Center / resolution / rotation state for the QGraphicsView."""

    def __init__(self, engine: "QtMapEngine", grid: TileGrid, config: ViewerConfig):
        self._engine = engine
        self._grid = grid
        self._min_zoom = config.min_zoom
        self._max_zoom = config.max_zoom
        self._center: Optional[Coordinate] = None
        self._zoom = float(config.default_zoom)
        self._rotation = 0.0
        self._center_handlers: Dict[int, Callable[[], None]] = {}
        self._next_key = 0

    # state

    def get_center(self) -> Optional[Coordinate]:
        return self._center

    def set_center(self, center: Coordinate) -> None:
        center = (float(center[0]), float(center[1]))
        if center == self._center:
            return
        self._center = center
        self._engine.view_changed()
        for handler in list(self._center_handlers.values()):
            handler()

    def get_zoom(self) -> float:
        return self._zoom

    def set_zoom(self, zoom: float) -> None:
        zoom = max(float(self._min_zoom), min(float(self._max_zoom), float(zoom)))
        if zoom != self._zoom:
            self._zoom = zoom
            self._engine.view_changed()

    def get_resolution(self) -> float:
        return self._grid.resolution(self._zoom)

    def get_rotation(self) -> float:
        return self._rotation

    def set_rotation(self, rotation: float, anchor: Optional[Coordinate] = None) -> None:
        delta = rotation - self._rotation
        self._rotation = rotation
        if anchor is not None and self._center is not None and delta:
            # Keep the anchor at the same screen position
            cos_d, sin_d = math.cos(delta), math.sin(delta)
            dx = self._center[0] - anchor[0]
            dy = self._center[1] - anchor[1]
            self.set_center((
                anchor[0] + dx * cos_d - dy * sin_d,
                anchor[1] + dx * sin_d + dy * cos_d,
            ))
        self._engine.view_changed()

    def calculate_extent(self) -> Extent:
        cx, cy = self._center or (0.0, 0.0)
        w, h = self._engine.viewport_size()
        res = self.get_resolution()
        hw, hh = w * res / 2.0, h * res / 2.0
        cos_r, sin_r = abs(math.cos(self._rotation)), abs(math.sin(self._rotation))
        ex = hw * cos_r + hh * sin_r
        ey = hw * sin_r + hh * cos_r
        return (cx - ex, cy - ey, cx + ex, cy + ey)

    def get_min_resolution(self) -> float:
        return self._grid.resolution(self._max_zoom)

    def get_max_resolution(self) -> float:
        return self._grid.resolution(self._min_zoom)

    # events

    def on_center_changed(self, handler: Callable[[], None]) -> object:
        self._next_key += 1
        self._center_handlers[self._next_key] = handler
        return self._next_key

    def unsubscribe(self, key: object) -> None:
        self._center_handlers.pop(key, None)


class _MapCanvas(QtWidgets.QGraphicsView):
    """QGraphicsView that turns mouse input into view changes."""

    def __init__(self, scene: QtWidgets.QGraphicsScene, engine: "QtMapEngine",
                 parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(scene, parent)
        self._engine = engine
        self._drag_from: Optional[QtCore.QPoint] = None
        self.setRenderHints(
            QtGui.QPainter.Antialiasing | QtGui.QPainter.SmoothPixmapTransform
        )
        self.setHorizontalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self.setTransformationAnchor(QtWidgets.QGraphicsView.NoAnchor)
        self.setResizeAnchor(QtWidgets.QGraphicsView.NoAnchor)
        self.setViewportUpdateMode(QtWidgets.QGraphicsView.SmartViewportUpdate)
        self.setMouseTracking(True)
        self.setStyleSheet("border: none; background: #aad3df;")

    def mousePressEvent(self, event):
        self._engine.interaction()
        if event.button() == QtCore.Qt.LeftButton:
            self._drag_from = event.pos()
        event.accept()

    def mouseMoveEvent(self, event):
        self._engine.interaction()
        if self._drag_from is not None:
            delta = event.pos() - self._drag_from
            self._drag_from = event.pos()
            self._engine.pan_pixels(delta.x(), delta.y())
        event.accept()

    def mouseReleaseEvent(self, event):
        self._drag_from = None
        event.accept()

    def wheelEvent(self, event):
        """Zoom in / out by half a level per notch."""
        self._engine.interaction()
        view = self._engine.view
        step = _WHEEL_STEP if event.angleDelta().y() > 0 else -_WHEEL_STEP
        view.set_zoom(view.get_zoom() + step)
        event.accept()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._engine.view_changed()


class ChartMapWidget(QtWidgets.QWidget):
    """Map canvas plus the floating attribution / status labels."""

    def __init__(self, engine: "QtMapEngine", scene: QtWidgets.QGraphicsScene,
                 parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.canvas = _MapCanvas(scene, engine, self)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self.canvas, 1)

        self._attribution = QtWidgets.QLabel("", self.canvas)
        self._attribution.setAttribute(QtCore.Qt.WA_TransparentForMouseEvents, True)
        self._attribution.setStyleSheet(
            "color: #203040; background: rgba(255,255,255,170); "
            "font-size: 10px; padding: 1px 4px;"
        )
        self._status = QtWidgets.QLabel("", self.canvas)
        self._status.setAttribute(QtCore.Qt.WA_TransparentForMouseEvents, True)
        self._status.setStyleSheet(
            "color: #203040; background: rgba(255,255,255,170); "
            "font-family: monospace; font-size: 10px; padding: 1px 4px;"
        )

    def set_attribution(self, text: str) -> None:
        self._attribution.setText(text)
        self._attribution.adjustSize()
        self._place_labels()

    def set_status(self, text: str) -> None:
        self._status.setText(text)
        self._status.adjustSize()
        self._place_labels()

    def _place_labels(self) -> None:
        vw, vh = self.canvas.width(), self.canvas.height()
        a = self._attribution
        a.move(max(0, vw - a.width() - 4), max(0, vh - a.height() - 4))
        self._status.move(4, max(0, vh - self._status.height() - 4))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._place_labels()


# ── Engine ────────────────────────────────────────────────────────────

class QtMapEngine(MapEngine):
    """PyQt5 mapping engine: layer stack, tile loading, interaction events."""

    def __init__(self, config: Optional[ViewerConfig] = None,
                 parent: Optional[QtWidgets.QWidget] = None):
        self._config = config or ViewerConfig()
        self._grid = TileGrid()
        self._scene = QtWidgets.QGraphicsScene()
        half = self._grid.origin_y
        self._scene.setSceneRect(-half, -half, 2 * half, 2 * half)
        self._scene.setBackgroundBrush(QtGui.QBrush(QtGui.QColor("#aad3df")))

        self.widget = ChartMapWidget(self, self._scene, parent)
        self.view = QtMapView(self, self._grid, self._config)

        self._stack: List[Layer] = []
        self._tile_layers: Dict[int, QtTileLayer] = {}
        self._interaction_handlers: Dict[int, Callable[[], None]] = {}
        self._next_key = 0

        self._pool = QtCore.QThreadPool()
        self._pool.setMaxThreadCount(self._config.tile_workers)
        self._signals = _TileSignals()
        self._signals.loaded.connect(self._on_tile_loaded)
        self._signals.failed.connect(self._on_tile_failed)

        self._refresh_pending = False

        self._graticule = QtWidgets.QGraphicsItemGroup()
        self._graticule.setZValue(_GRATICULE_Z)
        self._scene.addItem(self._graticule)

        self.base_layer = self.create_tile_layer(TileLayerSpec(
            ident="base",
            url_template=self._config.base_tile_template,
            attribution="© OpenStreetMap contributors",
        ))
        self.add_layer(self.base_layer)

    # ── MapEngine interface ───────────────────────────────────────────

    def create_tile_layer(self, spec: TileLayerSpec) -> QtTileLayer:
        self._next_key += 1
        return QtTileLayer(spec, self._scene, self._next_key)

    def create_vector_layer(self, spec: VectorLayerSpec) -> QtVectorLayer:
        return QtVectorLayer(spec, self._scene)

    def add_layer(self, layer: Layer) -> None:
        self._stack.append(layer)
        z = getattr(layer.spec, "z_index", None)
        layer.set_z_index(z if z is not None else len(self._stack))
        if isinstance(layer, QtTileLayer):
            self._tile_layers[layer.key] = layer
        else:
            layer.group.show()
            for item in layer.markers:
                item.apply_view_rotation(self.view.get_rotation())
        self.view_changed()

    def remove_layer(self, layer: Layer) -> bool:
        if layer not in self._stack:
            return False
        self._stack.remove(layer)
        if isinstance(layer, QtTileLayer):
            self._tile_layers.pop(layer.key, None)
        self._scene.removeItem(layer.group)
        self.view_changed()
        return True

    def on_interaction(self, handler: Callable[[], None]) -> object:
        self._next_key += 1
        self._interaction_handlers[self._next_key] = handler
        return self._next_key

    def unsubscribe(self, key: object) -> None:
        self._interaction_handlers.pop(key, None)

    def alert(self, message: str) -> None:
        log.error("Map alert: %s", message)
        QtWidgets.QMessageBox.warning(self.widget, "Chart viewer", message)

    # ── Input / view plumbing ─────────────────────────────────────────

    def viewport_size(self) -> tuple:
        vp = self.widget.canvas.viewport()
        return (max(1, vp.width()), max(1, vp.height()))

    def interaction(self) -> None:
        for handler in list(self._interaction_handlers.values()):
            handler()

    def pan_pixels(self, dx: float, dy: float) -> None:
        """Move the view as if the map were dragged by (dx, dy) pixels."""
        center = self.view.get_center()
        if center is None:
            return
        res = self.view.get_resolution()
        rot = self.view.get_rotation()
        # Screen delta → map delta (undo the view rotation, flip y)
        mx = (dx * math.cos(rot) + dy * math.sin(rot)) * res
        my = (dx * math.sin(rot) - dy * math.cos(rot)) * res
        self.view.set_center((center[0] - mx, center[1] - my))

    def view_changed(self) -> None:
        self._apply_transform()
        if not self._refresh_pending:
            self._refresh_pending = True
            QtCore.QTimer.singleShot(0, self._refresh_tiles)

    def _apply_transform(self) -> None:
        center = self.view.get_center()
        if center is None:
            return
        res = self.view.get_resolution()
        rot = self.view.get_rotation()
        t = QtGui.QTransform()
        t.rotateRadians(rot)
        t.scale(1.0 / res, 1.0 / res)
        canvas = self.widget.canvas
        canvas.setTransform(t)
        canvas.centerOn(center[0], -center[1])
        for layer in self._stack:
            if isinstance(layer, QtVectorLayer):
                for item in layer.markers:
                    item.apply_view_rotation(rot)

    # ── Tiles ─────────────────────────────────────────────────────────

    def _refresh_tiles(self) -> None:
        self._refresh_pending = False
        if self.view.get_center() is None:
            return
        res = self.view.get_resolution()
        z = max(0, min(self._grid.max_zoom, int(round(self.view.get_zoom()))))
        extent = self.view.calculate_extent()
        wanted = set(self._grid.tile_coords(extent, z))
        attributions = []

        for layer in self._tile_layers.values():
            visible = layer.in_band(res)
            layer.group.setVisible(visible)
            if not visible:
                continue
            if layer.spec.attribution:
                attributions.append(layer.spec.attribution)
            for coord, item in layer.tiles.items():
                item.setVisible(coord.z == z)
            for coord in wanted:
                if coord in layer.tiles or coord in layer.pending or coord in layer.failed:
                    continue
                layer.pending.add(coord)
                url = self._grid.tile_url(layer.spec.url_template, coord)
                self._pool.start(_TileFetch(
                    layer.key, coord, url, self._signals, self._config.request_timeout_s,
                ))
            if len(layer.tiles) > _MAX_TILES_PER_LAYER:
                self._prune(layer, wanted)

        self._draw_graticule(extent)
        self.widget.set_attribution(" | ".join(attributions))
        self.widget.set_status(f"z {self.view.get_zoom():.1f}  res {res:.1f} m/px")
        log.debug("Tile refresh z=%d, %d tiles in view", z, len(wanted))

    def _draw_graticule(self, extent: Extent) -> None:
        for item in self._graticule.childItems():
            self._graticule.removeFromGroup(item)
            self._scene.removeItem(item)
        if not self._config.show_graticule:
            return
        pen = QtGui.QPen(QtGui.QColor(60, 60, 60, 120))
        pen.setCosmetic(True)
        for line in graticule_lines(extent):
            item = QtWidgets.QGraphicsLineItem(
                line.start[0], -line.start[1], line.end[0], -line.end[1],
            )
            item.setPen(pen)
            self._graticule.addToGroup(item)
            label = QtWidgets.QGraphicsSimpleTextItem(line.label)
            label.setFlag(QtWidgets.QGraphicsItem.ItemIgnoresTransformations, True)
            label.setBrush(QtGui.QColor(40, 40, 40))
            # Meridians labelled on the top edge, parallels on the left
            x, y = line.end if line.meridian else line.start
            label.setPos(x, -y)
            self._graticule.addToGroup(label)

    def _prune(self, layer: QtTileLayer, keep: Set[TileCoord]) -> None:
        for coord in [c for c in layer.tiles if c not in keep]:
            item = layer.tiles.pop(coord)
            layer.group.removeFromGroup(item)
            self._scene.removeItem(item)

    def _on_tile_loaded(self, layer_id: int, coord: TileCoord, body: bytes) -> None:
        layer = self._tile_layers.get(layer_id)
        if layer is None:
            return  # layer was removed while the tile was in flight
        pixmap = QtGui.QPixmap()
        if not pixmap.loadFromData(body):
            layer.tile_failed(coord)
            return
        layer.pending.discard(coord)
        x0, y0, x1, y1 = self._grid.tile_bounds(coord)
        item = QtWidgets.QGraphicsPixmapItem(pixmap)
        item.setTransformationMode(QtCore.Qt.SmoothTransformation)
        item.setPos(x0, -y1)
        item.setScale((x1 - x0) / pixmap.width())
        layer.group.addToGroup(item)
        layer.tiles[coord] = item

    def _on_tile_failed(self, layer_id: int, coord: TileCoord, reason: str) -> None:
        layer = self._tile_layers.get(layer_id)
        if layer is None:
            return
        log.debug("Tile %s/%d/%d/%d failed: %s", layer.ident, coord.z, coord.x, coord.y, reason)
        layer.tile_failed(coord)

    def shutdown(self) -> None:
        self._pool.clear()
        self._pool.waitForDone(2000)
