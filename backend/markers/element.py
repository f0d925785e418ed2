from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from locations.colors import ColorMode, category_color, marker_color
from locations.types import LocationEntity

DEFAULT_RADIUS = 10
SELECTED_RADIUS = 14
DEFAULT_BORDER = "#ffffff"
FAVORITE_BORDER = "#ef4444"
SELECTED_BORDER = "#f97316"
TEMP_COLOR = "#22c55e"
TEMP_RADIUS = 12


@dataclass(frozen=True)
class MarkerElement:
    """
    Visual description of one marker. Equality drives in-place restyling.
    """

    color: str
    border_color: str
    border_width: int
    radius: int
    opacity: float
    favorite: bool
    selected: bool
    title: str


def build_marker_element(
    entity: LocationEntity,
    *,
    color_mode: ColorMode = ColorMode.BY_CATEGORY,
    favorite: bool = False,
    selected: bool = False,
    color_lookup: Callable[[str], str] = category_color,
) -> MarkerElement:
    if not (_finite(entity.latitude) and _finite(entity.longitude)):
        raise ValueError(
            f"Location {entity.id!r} has no usable coordinates "
            f"({entity.latitude!r}, {entity.longitude!r})"
        )
    color = marker_color(entity.category, color_mode, lookup=color_lookup)
    if not color:
        raise ValueError(f"No marker color for category {entity.category!r}")

    if selected:
        return MarkerElement(
            color=color,
            border_color=SELECTED_BORDER,
            border_width=4,
            radius=SELECTED_RADIUS,
            opacity=1.0,
            favorite=favorite,
            selected=True,
            title=entity.name,
        )
    return MarkerElement(
        color=color,
        border_color=FAVORITE_BORDER if favorite else DEFAULT_BORDER,
        border_width=2,
        radius=DEFAULT_RADIUS,
        opacity=0.95,
        favorite=favorite,
        selected=False,
        title=entity.name,
    )


def temp_marker_element(title: str = "New location") -> MarkerElement:
    """
    Marker for a position picked in add mode (not part of the reconciled set).
    """
    return MarkerElement(
        color=TEMP_COLOR,
        border_color=DEFAULT_BORDER,
        border_width=3,
        radius=TEMP_RADIUS,
        opacity=1.0,
        favorite=False,
        selected=False,
        title=title,
    )


def _finite(v: float) -> bool:
    try:
        return math.isfinite(float(v))
    except (TypeError, ValueError):
        return False
