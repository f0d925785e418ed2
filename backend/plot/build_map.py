from __future__ import annotations

from typing import Any

from lifecycle.controller import MapSurfaceState
from locations.types import LocationEntity
from markers.element import MarkerElement
from plot.traces import (
    trace_locations,
    trace_marker_borders,
    trace_temp_marker,
    trace_viewport_bounds,
)
from view.map_view import MapView

_LEGEND = {
    "x": 0.99,
    "y": 0.99,
    "xanchor": "right",
    "yanchor": "top",
    "bgcolor": "rgba(255, 255, 255, 0.75)",
    "bordercolor": "rgba(120, 120, 120, 0.35)",
    "borderwidth": 1,
    "font": {"size": 11},
}


def rendered_markers(view: MapView) -> list[tuple[LocationEntity, float, float, MarkerElement]]:
    """
    (entity, lat, lng, element) for every visible location that has a live marker.
    """
    out: list[tuple[LocationEntity, float, float, MarkerElement]] = []
    for e in view.visible:
        native = view.reconciler.native_marker(e.id)
        if native is None:
            continue
        out.append((e, float(native.lat), float(native.lng), native.element))
    return out


def build_prompt_payload(view: MapView, *, error: str | None) -> dict[str, Any]:
    """
    Payload for a view without a map surface (no credential yet, or a failed boot).
    """
    return {
        "data": [],
        "layout": {
            "meta": {
                "state": view.state.value,
                "style": view.style,
                "prompt": {
                    "tokenRequired": view.state == MapSurfaceState.AWAITING_TOKEN,
                    "error": error or view.controller.last_error,
                },
                "visibleIds": [e.id for e in view.visible],
            },
        },
    }


def build_map_plot(view: MapView, *, include_bounds: bool = True) -> dict[str, Any]:
    """
    Plotly `scattermapbox` figure of what the view's surface currently shows.
    """
    surface = view.controller.surface
    if surface is None:
        return build_prompt_payload(view, error=None)

    rendered = rendered_markers(view)
    # Selected marker last so it draws on top.
    rendered.sort(key=lambda r: r[3].selected)

    traces: list[dict[str, Any]] = []
    if include_bounds and view.bounds is not None:
        traces.append(trace_viewport_bounds(view.bounds))
    if rendered:
        traces.append(trace_marker_borders(rendered))
        traces.append(trace_locations(rendered))
    if view.temp_marker is not None:
        traces.append(trace_temp_marker(*view.temp_marker))

    lat, lng = surface.center
    style = view.styles.current_style
    stats = view.last_stats
    report = view.styles.last_report

    meta: dict[str, Any] = {
        "state": view.state.value,
        "style": style.id,
        "colorMode": view.color_mode.value,
        "visibleIds": [e.id for e in view.visible],
        "renderedIds": [e.id for e, *_ in rendered],
        "selectedId": view.reconciler.selected_id,
        "bounds": view.bounds.as_dict() if view.bounds is not None else None,
        "fit": {
            "state": view.fit.state.value,
            "bounds": view.fit.fitted_bounds.as_dict()
            if view.fit.fitted_bounds is not None
            else None,
        },
        "stats": stats.as_dict() if stats is not None else None,
        "theme": report.as_dict() if report is not None else None,
    }

    return {
        "data": traces,
        "layout": {
            "mapbox": {
                "center": {"lat": lat, "lon": lng},
                "zoom": surface.zoom,
                "pitch": surface.pitch,
                "bearing": surface.bearing,
                "style": style.url,
                "accesstoken": surface.token,
            },
            "showlegend": bool(rendered),
            "legend": _LEGEND,
            "margin": {"l": 0, "r": 0, "t": 0, "b": 0},
            "meta": meta,
        },
    }
