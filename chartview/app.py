"""
Marine chart viewer: desktop host application.

Wires the PyQt5 map engine, the chart catalog loader, the GPS fix
provider and the viewport controller together, and adds a small toolbar
for the display modes.

    python -m chartview.app --server http://localhost:3000 --lon -122.42 --lat 37.80
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

from PyQt5 import QtCore, QtWidgets

from .config import ViewerConfig
from .errors import CatalogError
from .gui.map_widget import QtMapEngine
from .ingest.catalog_client import CatalogLoader
from .ingest.fix_provider import LatestFixProvider
from .logger import setup_logging
from .viewer.controller import DisplayMode, ViewportController
from .viewer.events import CatalogFailed, CatalogLoaded

log = logging.getLogger(__name__)


class MainWindow(QtWidgets.QMainWindow):
    def __init__(
        self,
        config: ViewerConfig,
        start: Tuple[float, float],
        fixes: Optional[LatestFixProvider] = None,
    ):
        super().__init__()
        self.setWindowTitle("Chart Viewer")
        self.resize(1200, 800)

        self.fixes = fixes or LatestFixProvider()
        self.engine = QtMapEngine(config, self)
        self.setCentralWidget(self.engine.widget)

        self._loader = CatalogLoader(
            config.catalog_url,
            timeout=config.request_timeout_s,
            retries=config.catalog_retries,
            parent=self,
        )
        self.controller = ViewportController(
            self.engine,
            self._loader.request,
            config,
            fix_provider=self.fixes,
            on_location_update=self._on_location_update,
            on_update_view=self._on_update_view,
        )
        self._loader.loaded.connect(self._on_catalog_loaded)
        self._loader.failed.connect(self._on_catalog_failed)

        self._build_toolbar()

        self._fix_timer = QtCore.QTimer(self)
        self._fix_timer.timeout.connect(self._poll_fix)
        self._fix_timer.start(config.fix_poll_ms)

        self.controller.set_inspect_location(start)
        self.controller.show_inspect_location()

    def _build_toolbar(self) -> None:
        bar = self.addToolBar("Navigation")
        bar.setMovable(False)
        ctl = self.controller

        bar.addAction("Vessel", lambda: ctl.show_current_location(True))
        bar.addAction("Inspect", ctl.show_inspect_location)
        bar.addAction("Set destination", self._set_destination)
        bar.addAction("Clear destination", ctl.remove_destination)
        rotate = bar.addAction("Heading up")
        rotate.setCheckable(True)
        rotate.toggled.connect(self._toggle_rotation)

    # ── Controller plumbing ───────────────────────────────────────────

    def _on_catalog_loaded(self, charts: List) -> None:
        self.controller.dispatch(CatalogLoaded(charts))

    def _on_catalog_failed(self, error: CatalogError) -> None:
        try:
            self.controller.dispatch(CatalogFailed(error))
        except CatalogError as exc:
            # Qt aborts on exceptions escaping a slot; the next pan retries
            log.error("No chart layers: %s", exc)
            self.statusBar().showMessage(f"Chart catalog unavailable: {exc}", 10000)

    def _on_location_update(self, coord: Tuple[float, float]) -> None:
        self.statusBar().showMessage(f"{coord[1]:.4f}, {coord[0]:.4f}", 5000)

    def _on_update_view(self) -> None:
        charts = self.controller.active_charts
        self.engine.widget.set_status(
            f"{self.controller.mode.name.lower()}  |  "
            + (", ".join(charts) if charts else "no charts")
        )

    def _set_destination(self) -> None:
        if self.controller.set_destination() is not None:
            self.controller.show_destination()

    def _toggle_rotation(self, checked: bool) -> None:
        if self.controller.rotate_view != checked:
            self.controller.toggle_rotation()
        if not checked:
            self.engine.view.set_rotation(0.0)
        self.controller.update_features(force=True)

    def _poll_fix(self) -> None:
        if self.controller.apply_fix() is None:
            return
        if self.controller.mode == DisplayMode.CURRENT_LOCATION:
            self.controller.show_current_location(False)
        self.controller.update_features()

    def closeEvent(self, ev):
        log.info("Shutting down chart viewer...")
        self._fix_timer.stop()
        self.controller.close()
        self.engine.shutdown()
        super().closeEvent(ev)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_config(args: argparse.Namespace) -> ViewerConfig:
    cfg = ViewerConfig.from_env()
    if args.server:
        cfg = replace(cfg, server_url=args.server)
    if args.zoom is not None:
        cfg = replace(cfg, default_zoom=args.zoom)
    return cfg


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Marine chart viewer")
    parser.add_argument("--server", help="Chart server base URL (default: $CHARTVIEW_SERVER or localhost:3000)")
    parser.add_argument("--zoom", type=int, default=None, help="Initial zoom level")
    parser.add_argument("--lon", type=float, default=-122.42, help="Initial inspect longitude")
    parser.add_argument("--lat", type=float, default=37.80, help="Initial inspect latitude")
    parser.add_argument(
        "--fix", type=float, nargs=2, metavar=("LON", "LAT"),
        help="Seed a fixed vessel position (no GPS attached)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )
    parser.add_argument("--logfile", type=Path, default=None, help="Also write the log to this file")
    args, remaining = parser.parse_known_args(argv)

    setup_logging(args.log_level, args.logfile)
    config = build_config(args)
    log.info("Chart server: %s", config.server_url)

    fixes = LatestFixProvider()
    if args.fix:
        fixes.update_from_kmh(lon=args.fix[0], lat=args.fix[1])

    app = QtWidgets.QApplication(sys.argv[:1] + remaining)
    app.setStyle("Fusion")

    win = MainWindow(config, (args.lon, args.lat), fixes)
    win.show()

    # Qt's event loop blocks Python signal delivery; a no-op timer lets
    # the SIGINT handler run.
    def _sigint_handler(*_args):
        log.info("SIGINT received, shutting down...")
        win.close()

    signal.signal(signal.SIGINT, _sigint_handler)
    signal.signal(signal.SIGTERM, _sigint_handler)
    _sig_timer = QtCore.QTimer()
    _sig_timer.timeout.connect(lambda: None)
    _sig_timer.start(200)

    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
