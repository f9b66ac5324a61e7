"""
Location overlays.

Two vector layers sit above the charts:

  - **position**: the vessel marker (compass icon, turned to the heading
    unless the whole view is rotated instead) and the inspect-location
    marker (never rotated).
  - **course**: a green line from the vessel to the destination plus a
    pointer at the destination; only present when both are known.
"""
from __future__ import annotations

from typing import List, Optional

from ..engine import CourseLine, Feature, Marker, VectorLayerSpec
from ..geo.location import Location

POSITION_Z = 999
COURSE_Z = 998


def position_overlay(
    current: Optional[Location],
    inspect: Optional[Location],
    icon_rotation: float,
    rotate_view: bool,
) -> Optional[VectorLayerSpec]:
    features: List[Feature] = []
    if current is not None:
        features.append(Marker(
            point=current.projected,
            icon="compass",
            rotation=icon_rotation,
            rotate_with_view=not rotate_view,
        ))
    if inspect is not None:
        features.append(Marker(
            point=inspect.projected,
            icon="view",
            rotation=0.0,
            rotate_with_view=not rotate_view,
        ))
    if not features:
        return None
    return VectorLayerSpec("position", tuple(features), z_index=POSITION_Z)


def course_overlay(
    current: Optional[Location],
    destination: Optional[Location],
) -> Optional[VectorLayerSpec]:
    if current is None or destination is None:
        return None
    pos = current.projected
    dest = destination.projected
    return VectorLayerSpec(
        "course",
        (
            CourseLine(pos, dest),
            Marker(point=dest, icon="pointer", anchor=(0.5, 1.0)),
        ),
        z_index=COURSE_Z,
    )
