"""
Chart catalog client.

Downloads the chart server's catalog (a JSON array of chart records, see
``chartview.geo.footprint``) and normalises it into ``ChartTileset``
objects.  The catalog is fetched once per session and cached by the
viewport controller.

Usage
-----
    charts = fetch_catalog("http://localhost:3000/charts/noaa/")

    loader = CatalogLoader(config.catalog_url)
    loader.loaded.connect(on_charts)        # list[ChartTileset]
    loader.failed.connect(on_error)         # CatalogError
    loader.request()                        # returns immediately
"""
from __future__ import annotations

import logging
import threading
from typing import List, Optional

import requests
from PyQt5 import QtCore

from ..errors import CatalogError
from ..geo.footprint import ChartTileset, parse_catalog
from . import fetch_with_retry

log = logging.getLogger(__name__)


def fetch_catalog(url: str, timeout: float = 15.0, retries: int = 0) -> List[ChartTileset]:
    """Fetch and normalise the chart catalog.

    Raises :class:`CatalogError` on network failure, a non-200 answer, or
    a body that is not a JSON array.
    """
    try:
        resp = fetch_with_retry(url, timeout=timeout, retries=retries)
    except requests.RequestException as exc:
        raise CatalogError(f"catalog fetch failed: {exc}", url=url) from exc

    if resp.status_code != 200:
        raise CatalogError(
            f"catalog fetch failed: HTTP {resp.status_code} {resp.text[:200]}",
            status=resp.status_code,
            url=url,
        )

    try:
        records = resp.json()
    except ValueError as exc:
        raise CatalogError(f"catalog is not valid JSON: {exc}", status=200, url=url) from exc
    if not isinstance(records, list):
        raise CatalogError("catalog is not a JSON array", status=200, url=url)

    return parse_catalog(records)


class CatalogLoader(QtCore.QObject):
    """Fetches the catalog on a worker thread and reports back on the GUI thread.

    Signals
    -------
    loaded(list)
        Normalised ``ChartTileset`` list.
    failed(object)
        The :class:`CatalogError` that ended the fetch.
    """

    loaded = QtCore.pyqtSignal(object)
    failed = QtCore.pyqtSignal(object)

    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        retries: int = 0,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._url = url
        self._timeout = timeout
        self._retries = retries

    def request(self) -> None:
        """Start one fetch in the background."""
        log.info("Requesting chart catalog from %s", self._url)
        threading.Thread(target=self._worker, daemon=True, name="catalog-fetch").start()

    def _worker(self) -> None:
        try:
            charts = fetch_catalog(self._url, self._timeout, self._retries)
        except CatalogError as exc:
            log.warning("Chart catalog fetch failed: %s", exc)
            self.failed.emit(exc)
            return
        self.loaded.emit(charts)
