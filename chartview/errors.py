"""Exception hierarchy for the chart viewer."""

from __future__ import annotations

from typing import Optional


class ChartViewError(Exception):
    """Base exception for all chart viewer errors."""


class CatalogError(ChartViewError):
    """Chart catalog could not be fetched (network error or non-200)."""

    def __init__(self, message: str, *, status: Optional[int] = None, url: str = ""):
        self.status = status
        self.url = url
        super().__init__(message)


class FootprintError(ChartViewError):
    """A single catalog record has a malformed footprint."""


class LayerConsistencyError(ChartViewError):
    """The map's layer set and the layer manager's bookkeeping diverged."""
