from __future__ import annotations

from typing import Any

from geo.bounds import ViewportBounds
from locations.types import LocationEntity
from markers.element import MarkerElement, temp_marker_element


def _size(element: MarkerElement) -> int:
    # Plotly sizes are diameters in px.
    return int(element.radius) * 2


def trace_viewport_bounds(bounds: ViewportBounds) -> dict[str, Any]:
    lons: list[float | None] = []
    lats: list[float | None] = []
    for west, south, east, north in bounds.boxes():
        lons.extend([west, east, east, west, west, None])
        lats.extend([south, south, north, north, south, None])
    return {
        "type": "scattermapbox",
        "name": "Viewport",
        "lon": lons[:-1],
        "lat": lats[:-1],
        "mode": "lines",
        "line": {"color": "rgba(55, 71, 79, 0.7)", "width": 1},
        "hoverinfo": "skip",
        "showlegend": False,
    }


def trace_locations(
    rendered: list[tuple[LocationEntity, float, float, MarkerElement]],
    *,
    name: str = "Locations",
) -> dict[str, Any]:
    """
    One scattermapbox trace for the reconciled markers, styled per point.

    `rendered` holds (entity, lat, lng, element) as placed on the surface.
    """
    return {
        "type": "scattermapbox",
        "name": name,
        "lon": [lng for _, _, lng, _ in rendered],
        "lat": [lat for _, lat, _, _ in rendered],
        "mode": "markers",
        "marker": {
            "size": [_size(el) for *_, el in rendered],
            "color": [el.color for *_, el in rendered],
            "opacity": [el.opacity for *_, el in rendered],
        },
        "text": [el.title for *_, el in rendered],
        "customdata": [e.id for e, *_ in rendered],
        "hovertemplate": "%{text}<br>%{customdata}<extra></extra>",
    }


def trace_marker_borders(
    rendered: list[tuple[LocationEntity, float, float, MarkerElement]],
) -> dict[str, Any]:
    # scattermapbox markers have no outline; draw the border as a slightly larger disc below.
    return {
        "type": "scattermapbox",
        "name": "Marker borders",
        "lon": [lng for _, _, lng, _ in rendered],
        "lat": [lat for _, lat, _, _ in rendered],
        "mode": "markers",
        "marker": {
            "size": [_size(el) + 2 * el.border_width for *_, el in rendered],
            "color": [el.border_color for *_, el in rendered],
        },
        "hoverinfo": "skip",
        "showlegend": False,
    }


def trace_temp_marker(lat: float, lng: float) -> dict[str, Any]:
    el = temp_marker_element()
    return {
        "type": "scattermapbox",
        "name": el.title,
        "lon": [lng],
        "lat": [lat],
        "mode": "markers",
        "marker": {"size": _size(el), "color": el.color},
        "hoverinfo": "skip",
        "showlegend": False,
    }
