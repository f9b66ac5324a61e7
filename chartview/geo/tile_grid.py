"""
XYZ tile grid for Web Mercator tile servers.

Zoom level ``z`` divides the projected world square into 2^z × 2^z tiles of
256 px.  Tile (0, 0) is the north-west corner; x grows east, y grows south.
The resolution (metres per pixel) at zoom ``z`` is
``156543.03392804097 / 2**z``.

Usage
-----
    grid = TileGrid()
    rng = grid.tile_range(view_extent, z=12)
    rng.count                        # tiles needed to fill the view
    for coord in grid.tile_coords(view_extent, 12):
        fetch(coord.z, coord.x, coord.y)
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Sequence

# Half the Web Mercator world width in metres
HALF_WORLD = 20037508.342789244
TILE_PX = 256

# Floating tolerance when an extent edge lands exactly on a tile boundary
_EPS = 1e-5


@dataclass(frozen=True)
class TileCoord:
    """Tile index at a given zoom level."""
    z: int
    x: int
    y: int


@dataclass(frozen=True)
class TileRange:
    """Inclusive range of tile columns/rows at one zoom level."""
    z: int
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    @property
    def count(self) -> int:
        if self.max_x < self.min_x or self.max_y < self.min_y:
            return 0
        return (self.max_x - self.min_x + 1) * (self.max_y - self.min_y + 1)

    def __iter__(self) -> Iterator[TileCoord]:
        for x in range(self.min_x, self.max_x + 1):
            for y in range(self.min_y, self.max_y + 1):
                yield TileCoord(self.z, x, y)


class TileGrid:
    """Standard global XYZ grid in EPSG:3857."""

    def __init__(self, tile_px: int = TILE_PX, max_zoom: int = 19):
        self.tile_px = tile_px
        self.max_zoom = max_zoom
        self.origin_x = -HALF_WORLD
        self.origin_y = HALF_WORLD
        self._base_res = 2 * HALF_WORLD / tile_px

    def resolution(self, z: float) -> float:
        """Metres per pixel at zoom level *z*."""
        return self._base_res / (2 ** z)

    def zoom_for_resolution(self, resolution: float) -> float:
        return math.log2(self._base_res / resolution)

    def tile_span(self, z: int) -> float:
        """Width of one tile in metres at zoom *z*."""
        return self.resolution(z) * self.tile_px

    def tile_range(self, extent: Sequence[float], z: int) -> TileRange:
        """Tiles at zoom *z* that intersect *extent* (clamped to the world)."""
        span = self.tile_span(z)
        n = 2 ** z
        minx, miny, maxx, maxy = extent

        min_x = math.floor((minx - self.origin_x) / span + _EPS)
        max_x = math.ceil((maxx - self.origin_x) / span - _EPS) - 1
        # Rows count down from the top edge of the world
        min_y = math.floor((self.origin_y - maxy) / span + _EPS)
        max_y = math.ceil((self.origin_y - miny) / span - _EPS) - 1

        return TileRange(
            z=z,
            min_x=max(0, min_x),
            max_x=min(n - 1, max_x),
            min_y=max(0, min_y),
            max_y=min(n - 1, max_y),
        )

    def tile_coords(self, extent: Sequence[float], z: int) -> Iterator[TileCoord]:
        return iter(self.tile_range(extent, z))

    def count_tiles(self, extent: Sequence[float], z: int) -> int:
        """Enumerate the tiles at zoom *z* covering *extent* and count them."""
        return sum(1 for _ in self.tile_coords(extent, z))

    def tile_bounds(self, coord: TileCoord) -> tuple:
        """Projected ``(minx, miny, maxx, maxy)`` of one tile."""
        span = self.tile_span(coord.z)
        x0 = self.origin_x + coord.x * span
        y1 = self.origin_y - coord.y * span
        return (x0, y1 - span, x0 + span, y1)

    def tile_url(self, template: str, coord: TileCoord) -> str:
        return (
            template.replace("{z}", str(coord.z))
            .replace("{x}", str(coord.x))
            .replace("{y}", str(coord.y))
        )
