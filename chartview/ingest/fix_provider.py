"""
GPS fix intake.

The serial/NMEA side lives outside the viewer; whatever reads the
receiver pushes each new RMC sentence into a :class:`LatestFixProvider`
and the viewer polls :meth:`latest` for an immutable snapshot.

Example
-------
    fixes = LatestFixProvider()
    fixes.update_from_kmh(lon=-122.42, lat=37.80, speed_kmh=11.1, heading=274.0)
    fix = fixes.latest()        # Fix(..., speed=5.99 kn, heading=274.0)
"""
from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

KMH_TO_KNOTS = 0.539957


@dataclass(frozen=True)
class Fix:
    """One position fix."""
    lon: float
    lat: float
    speed: float = 0.0      # knots
    heading: float = 0.0    # degrees true
    time: float = 0.0       # unix seconds

    @property
    def coord(self) -> Tuple[float, float]:
        return (self.lon, self.lat)

    @property
    def heading_rad(self) -> float:
        return math.radians(self.heading)


class FixProvider(ABC):
    @abstractmethod
    def latest(self) -> Optional[Fix]:
        """Most recent fix, or None before the first one arrives."""


class LatestFixProvider(FixProvider):
    """Holds the most recent fix; safe to update from a reader thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fix: Optional[Fix] = None

    def latest(self) -> Optional[Fix]:
        with self._lock:
            return self._fix

    def update(self, fix: Fix) -> None:
        with self._lock:
            self._fix = fix

    def update_from_kmh(
        self,
        lon: float,
        lat: float,
        speed_kmh: float = 0.0,
        heading: float = 0.0,
        timestamp: Optional[float] = None,
    ) -> Fix:
        fix = Fix(
            lon=lon,
            lat=lat,
            speed=speed_kmh * KMH_TO_KNOTS,
            heading=heading,
            time=time.time() if timestamp is None else timestamp,
        )
        self.update(fix)
        return fix
