"""
Controller events.

Everything that changes viewer state arrives as one of these and goes
through ``ViewportController.dispatch`` on the GUI thread: view moves,
pointer activity, catalog completion, and tile-load failures.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from ..engine import TileLayer
from ..errors import CatalogError
from ..geo.footprint import ChartTileset
from ..geo.tile_grid import TileCoord


@dataclass(frozen=True)
class ViewChanged:
    pass


@dataclass(frozen=True)
class UserInteraction:
    pass


@dataclass(frozen=True)
class CatalogLoaded:
    charts: List[ChartTileset]


@dataclass(frozen=True)
class CatalogFailed:
    error: CatalogError


@dataclass(frozen=True)
class TileLoadFailed:
    layer: TileLayer
    coord: TileCoord
