from __future__ import annotations

import math
from functools import lru_cache

from pyproj import Transformer

from geo.bounds import ViewportBounds
from geo.coords import wrap_lng

# Mapbox GL renders 512px tiles: the world is 512 * 2**zoom pixels wide.
TILE_SIZE_PX = 512.0
WORLD_WIDTH_M = 2.0 * 20037508.342789244
MAX_MERCATOR_LAT = 85.0511287798


@lru_cache(maxsize=1)
def transformer_4326_to_3857() -> Transformer:
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


@lru_cache(maxsize=1)
def transformer_3857_to_4326() -> Transformer:
    return Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


def meters_per_pixel(zoom: float) -> float:
    return WORLD_WIDTH_M / (TILE_SIZE_PX * (2.0**zoom))


def fit_camera(
    bounds: ViewportBounds,
    *,
    width: int,
    height: int,
    padding: float = 0.0,
    max_zoom: float | None = None,
    min_zoom: float = 0.0,
) -> tuple[tuple[float, float], float]:
    """
    Camera (center (lat, lng), zoom) that frames `bounds` inside a width x height viewport.

    Geospatial note:
    - Fitting happens in Web Mercator (EPSG:3857), which is what the renderer draws in.
    - A degenerate box (single point) fits at `max_zoom` (or a high default).
    """
    b = bounds.normalized()
    t = transformer_4326_to_3857()
    x0, y0 = t.transform(b.west, _clamp_lat(b.south))
    x1, y1 = t.transform(b.east, _clamp_lat(b.north))
    if b.crosses_antimeridian:
        x1 += WORLD_WIDTH_M

    span_x = max(x1 - x0, 1e-6)
    span_y = max(y1 - y0, 1e-6)
    avail_w = max(float(width) - 2.0 * padding, 1.0)
    avail_h = max(float(height) - 2.0 * padding, 1.0)

    zoom_x = math.log2(WORLD_WIDTH_M * avail_w / (TILE_SIZE_PX * span_x))
    zoom_y = math.log2(WORLD_WIDTH_M * avail_h / (TILE_SIZE_PX * span_y))
    zoom = min(zoom_x, zoom_y, 22.0)
    if max_zoom is not None:
        zoom = min(zoom, float(max_zoom))
    zoom = max(zoom, float(min_zoom))

    cx = (x0 + x1) / 2.0
    cy = (y0 + y1) / 2.0
    lng, lat = transformer_3857_to_4326().transform(cx, cy)
    return (float(lat), wrap_lng(float(lng))), float(zoom)


def camera_bounds(
    center: tuple[float, float],
    zoom: float,
    *,
    width: int,
    height: int,
) -> ViewportBounds:
    """
    Viewport bounds visible for a camera (center (lat, lng), zoom).
    """
    lat, lng = center
    t = transformer_4326_to_3857()
    cx, cy = t.transform(lng, _clamp_lat(lat))
    mpp = meters_per_pixel(zoom)
    half_w = float(width) * mpp / 2.0
    half_h = float(height) * mpp / 2.0

    inv = transformer_3857_to_4326()
    _, north = inv.transform(cx, min(cy + half_h, WORLD_WIDTH_M / 2.0))
    _, south = inv.transform(cx, max(cy - half_h, -WORLD_WIDTH_M / 2.0))

    if 2.0 * half_w >= WORLD_WIDTH_M:
        west, east = -180.0, 180.0
    else:
        half_deg = half_w / WORLD_WIDTH_M * 360.0
        west = wrap_lng(lng - half_deg)
        east = wrap_lng(lng + half_deg)

    return ViewportBounds(north=float(north), south=float(south), east=float(east), west=float(west))


def _clamp_lat(lat: float) -> float:
    return max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
