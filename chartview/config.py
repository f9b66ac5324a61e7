"""
Viewer configuration.

Defaults match the chart server layout (``/charts/noaa/`` catalog,
``/tiles/noaa/<ident>/{z}/{x}/{y}`` chart tiles, ``/tiles/wikimedia``
base map).  A couple of values can be overridden from the environment:

    CHARTVIEW_SERVER        base URL of the chart server
    CHARTVIEW_DEFAULT_ZOOM  initial zoom level
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional


@dataclass(frozen=True)
class ViewerConfig:
    server_url: str = "http://localhost:3000"
    catalog_path: str = "charts/noaa/"
    chart_tile_path: str = "tiles/noaa/{ident}/{z}/{x}/{y}"
    base_tile_path: str = "tiles/wikimedia/osm-intl/{z}/{x}/{y}"

    default_zoom: int = 12
    min_zoom: int = 3
    max_zoom: int = 18

    chart_opacity: float = 0.8
    interaction_holdoff_s: float = 60.0
    failure_slots: int = 20          # zoom levels tracked per chart layer

    fix_poll_ms: int = 1000
    request_timeout_s: float = 15.0
    catalog_retries: int = 0
    tile_workers: int = 6
    show_graticule: bool = True

    def url(self, path: str) -> str:
        return self.server_url.rstrip("/") + "/" + path.lstrip("/")

    @property
    def catalog_url(self) -> str:
        return self.url(self.catalog_path)

    @property
    def chart_tile_template(self) -> str:
        return self.url(self.chart_tile_path)

    @property
    def base_tile_template(self) -> str:
        return self.url(self.base_tile_path)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ViewerConfig":
        env = os.environ if environ is None else environ
        cfg = cls()
        if env.get("CHARTVIEW_SERVER"):
            cfg = replace(cfg, server_url=env["CHARTVIEW_SERVER"])
        if env.get("CHARTVIEW_DEFAULT_ZOOM"):
            cfg = replace(cfg, default_zoom=int(env["CHARTVIEW_DEFAULT_ZOOM"]))
        return cfg
