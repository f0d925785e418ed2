from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from geo.bounds import ViewportBounds
from geo.projection import camera_bounds, fit_camera
from surface.scheduler import FRAME_S, Scheduler, TimerHandle
from surface.types import Handler, MapClick, StyleLayer, SurfaceEvent

logger = logging.getLogger(__name__)

DEFAULT_CENTER = (-28.0, 153.4)  # Gold Coast / Northern Rivers
DEFAULT_ZOOM = 8.0

# Paint property prefixes a layer type accepts.
_PAINT_PREFIXES: dict[str, tuple[str, ...]] = {
    "background": ("background-",),
    "fill": ("fill-",),
    "line": ("line-",),
    "symbol": ("text-", "icon-"),
    "circle": ("circle-",),
    "fill-extrusion": ("fill-extrusion-",),
    "raster": ("raster-",),
    "sky": ("sky-",),
}


@dataclass
class HeadlessMarker:
    id: int
    lng: float
    lat: float
    element: Any
    on_click: Callable[[], None] | None = None
    stale: bool = False


def default_style_layers(style_url: str) -> list[StyleLayer]:
    """
    A representative vector-style layer stack (ids follow the common Mapbox naming).
    """
    layers = [
        StyleLayer(id="land", type="background", paint={"background-color": "#f8f4f0"}),
        StyleLayer(id="landuse-park", type="fill", paint={"fill-color": "#d8e8c8"}),
        StyleLayer(id="national-park", type="fill", paint={"fill-color": "#d0e0c0"}),
        StyleLayer(id="water", type="fill", paint={"fill-color": "#75cff0"}),
        StyleLayer(id="building", type="fill", paint={"fill-color": "#e0dcd8"}),
        StyleLayer(id="tunnel-street", type="line", paint={"line-color": "#ffffff"}),
        StyleLayer(id="road-primary", type="line", paint={"line-color": "#ffffff"}),
        StyleLayer(id="road-motorway-trunk", type="line", paint={"line-color": "#ffcc88"}),
        StyleLayer(id="bridge-street", type="line", paint={"line-color": "#ffffff"}),
        StyleLayer(id="admin-0-boundary", type="line", paint={"line-color": "#8b8a8a"}),
        StyleLayer(id="hillshade", type="fill", paint={"fill-color": "#000000"}),
        StyleLayer(
            id="road-label",
            type="symbol",
            layout={"text-field": ["get", "name"]},
            paint={"text-color": "#333333"},
        ),
        StyleLayer(
            id="settlement-label",
            type="symbol",
            layout={"text-field": ["get", "name"]},
            paint={"text-color": "#111111"},
        ),
    ]
    if "satellite" in style_url:
        layers.insert(1, StyleLayer(id="satellite", type="raster"))
    return layers


class HeadlessMapSurface:
    """
    In-process map renderer with the same async lifecycle as a browser map.

    After construction (and after every `set_style`) it emits, via the scheduler:
    `style.load`, then `load` (first time only), then `idle` one frame later.
    Camera moves emit `moveend` followed by `idle`.
    """

    def __init__(
        self,
        *,
        token: str,
        style_url: str,
        scheduler: Scheduler,
        style_layers: Callable[[str], Iterable[StyleLayer]] = default_style_layers,
        center: tuple[float, float] = DEFAULT_CENTER,
        zoom: float = DEFAULT_ZOOM,
        width: int = 900,
        height: int = 600,
        load_delay_s: float = 0.05,
        locked_layers: Iterable[str] = (),
    ) -> None:
        if not (token or "").strip():
            raise ValueError("An access token is required to construct the map surface")

        self.token = token.strip()
        self.style_url = style_url
        self.scheduler = scheduler
        self.center = center
        self.zoom = float(zoom)
        self.pitch = 0.0
        self.bearing = 0.0
        self.width = int(width)
        self.height = int(height)
        self.terrain: dict[str, Any] | None = None
        self.load_delay_s = float(load_delay_s)

        self._style_layers = style_layers
        self._locked = set(locked_layers)
        self._handlers: dict[str, list[Handler]] = {}
        self._layers: list[StyleLayer] = []
        self._sources: dict[str, dict[str, Any]] = {}
        self._markers: dict[int, HeadlessMarker] = {}
        self._marker_seq = 0
        self._timers: dict[int, TimerHandle] = {}
        self._timer_seq = 0
        self._container_size: tuple[int, int] | None = None
        self._style_loaded = False
        self._loaded = False
        self._removed = False

        # Counters (handy for debugging and tests).
        self.markers_created = 0
        self.markers_removed = 0
        self.resize_count = 0
        self.style_swaps = 0
        self.fit_calls: list[dict[str, Any]] = []

        self._schedule_style_load()

    # --- events -------------------------------------------------------------------

    def on(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(_event_name(event), []).append(handler)

    def off(self, event: str, handler: Handler) -> None:
        hs = self._handlers.get(_event_name(event)) or []
        if handler in hs:
            hs.remove(handler)

    def once(self, event: str, handler: Handler) -> None:
        def wrapper(*args: Any) -> None:
            self.off(event, wrapper)
            handler(*args)

        self.on(event, wrapper)

    def emit(self, event: str, *args: Any) -> None:
        if self._removed:
            return
        for h in list(self._handlers.get(_event_name(event)) or []):
            try:
                h(*args)
            except Exception:
                logger.exception("Unhandled error in %r handler", _event_name(event))

    # --- style --------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def removed(self) -> bool:
        return self._removed

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def set_style(self, url: str) -> None:
        self._ensure_alive()
        self._cancel_timers()
        self.style_url = url
        self.style_swaps += 1
        self._style_loaded = False
        self._layers = []
        self._sources = {}
        self.terrain = None
        # A style swap invalidates every native marker.
        for m in self._markers.values():
            m.stale = True
        self._markers.clear()
        self._schedule_style_load()

    def is_style_loaded(self) -> bool:
        return self._style_loaded and not self._removed

    def get_style_layers(self) -> list[StyleLayer]:
        return list(self._layers)

    def get_layer(self, layer_id: str) -> StyleLayer | None:
        for layer in self._layers:
            if layer.id == layer_id:
                return layer
        return None

    def add_layer(self, layer: StyleLayer, before_id: str | None = None) -> None:
        self._ensure_alive()
        if self.get_layer(layer.id) is not None:
            raise ValueError(f"Layer already exists: {layer.id}")
        if layer.source and layer.source not in self._sources:
            raise ValueError(f"Unknown source for layer {layer.id}: {layer.source}")
        idx = next((i for i, lyr in enumerate(self._layers) if lyr.id == before_id), None)
        if idx is None:
            self._layers.append(layer)
        else:
            self._layers.insert(idx, layer)

    def remove_layer(self, layer_id: str) -> None:
        layer = self.get_layer(layer_id)
        if layer is None:
            raise KeyError(f"No such layer: {layer_id}")
        self._layers.remove(layer)

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        layer = self.get_layer(layer_id)
        if layer is None:
            raise KeyError(f"No such layer: {layer_id}")
        if layer_id in self._locked:
            raise RuntimeError(f"Layer cannot be modified: {layer_id}")
        prefixes = _PAINT_PREFIXES.get(layer.type, ())
        if not any(name.startswith(p) for p in prefixes):
            raise ValueError(f"{name!r} is not a paint property of a {layer.type} layer")
        layer.paint[name] = value

    def get_source(self, source_id: str) -> dict[str, Any] | None:
        return self._sources.get(source_id)

    def add_source(self, source_id: str, options: dict[str, Any]) -> None:
        self._ensure_alive()
        if source_id in self._sources:
            raise ValueError(f"Source already exists: {source_id}")
        self._sources[source_id] = dict(options)

    def set_terrain(self, options: dict[str, Any] | None) -> None:
        if options is not None and options.get("source") not in self._sources:
            raise ValueError(f"Terrain source is not defined: {options.get('source')}")
        self.terrain = None if options is None else dict(options)

    # --- camera -------------------------------------------------------------------

    def get_bounds(self) -> ViewportBounds:
        return camera_bounds(self.center, self.zoom, width=self.width, height=self.height)

    def jump_to(self, center: tuple[float, float], zoom: float) -> None:
        self._ensure_alive()
        self.center = (float(center[0]), float(center[1]))
        self.zoom = float(zoom)
        self._schedule_move_end()

    def fit_bounds(
        self,
        bounds: ViewportBounds,
        *,
        padding: float = 0.0,
        max_zoom: float | None = None,
    ) -> None:
        self._ensure_alive()
        center, zoom = fit_camera(
            bounds,
            width=self.width,
            height=self.height,
            padding=padding,
            max_zoom=max_zoom,
        )
        self.fit_calls.append(
            {"bounds": bounds.as_dict(), "padding": padding, "maxZoom": max_zoom}
        )
        self.center = center
        self.zoom = zoom
        self._schedule_move_end()

    def ease_to(
        self,
        *,
        pitch: float | None = None,
        bearing: float | None = None,
        duration_ms: int = 0,
    ) -> None:
        if pitch is not None:
            self.pitch = float(pitch)
        if bearing is not None:
            self.bearing = float(bearing)

    def set_container_size(self, width: int, height: int) -> None:
        # The renderer only picks the new size up on resize().
        self._container_size = (int(width), int(height))

    def resize(self) -> None:
        self._ensure_alive()
        if self._container_size is not None:
            self.width, self.height = self._container_size
        self.resize_count += 1

    # --- markers ------------------------------------------------------------------

    @property
    def markers(self) -> list[HeadlessMarker]:
        return list(self._markers.values())

    def add_marker(
        self,
        lng: float,
        lat: float,
        element: Any,
        on_click: Callable[[], None] | None = None,
    ) -> HeadlessMarker:
        self._ensure_alive()
        _check_lng_lat(lng, lat)
        self._marker_seq += 1
        m = HeadlessMarker(
            id=self._marker_seq, lng=float(lng), lat=float(lat), element=element, on_click=on_click
        )
        self._markers[m.id] = m
        self.markers_created += 1
        return m

    def move_marker(self, marker: HeadlessMarker, lng: float, lat: float) -> None:
        self._ensure_live_marker(marker)
        _check_lng_lat(lng, lat)
        marker.lng = float(lng)
        marker.lat = float(lat)

    def restyle_marker(self, marker: HeadlessMarker, element: Any) -> None:
        self._ensure_live_marker(marker)
        marker.element = element

    def remove_marker(self, marker: HeadlessMarker) -> None:
        # Removing an already-removed marker is a no-op, like the browser renderer.
        if self._markers.pop(marker.id, None) is not None:
            self.markers_removed += 1

    def click_marker(self, marker: HeadlessMarker) -> None:
        if self._removed or marker.id not in self._markers or marker.on_click is None:
            return
        try:
            marker.on_click()
        except Exception:
            logger.exception("Unhandled error in marker click handler")

    def click_map(self, lat: float, lng: float) -> None:
        self.emit(SurfaceEvent.CLICK, MapClick(lat=float(lat), lng=float(lng)))

    def remove(self) -> None:
        if self._removed:
            return
        self._cancel_timers()
        for m in self._markers.values():
            m.stale = True
        self._markers.clear()
        self._handlers.clear()
        self._removed = True

    # --- internals ----------------------------------------------------------------

    def _schedule_style_load(self) -> None:
        self._track(self._finish_style_load, delay_s=self.load_delay_s)

    def _finish_style_load(self) -> None:
        if self._removed:
            return
        self._layers = [copy.deepcopy(layer) for layer in self._style_layers(self.style_url)]
        self._sources = {"composite": {"type": "vector", "url": self.style_url}}
        self._style_loaded = True
        self.emit(SurfaceEvent.STYLE_LOAD)
        if not self._loaded:
            self._loaded = True
            self.emit(SurfaceEvent.LOAD)
        self._schedule_idle()

    def _schedule_move_end(self) -> None:
        def fire() -> None:
            self.emit(SurfaceEvent.MOVE_END)
            self._schedule_idle()

        self._track(fire)

    def _schedule_idle(self) -> None:
        self._track(self._fire_idle, delay_s=FRAME_S)

    def _fire_idle(self) -> None:
        if self._style_loaded:
            self.emit(SurfaceEvent.IDLE)

    def _track(self, fn: Callable[[], None], *, delay_s: float | None = None) -> None:
        """
        Schedule `fn` after `delay_s`, or on the next frame when no delay is given.
        """
        # Fired timers drop out so a long session does not accumulate handles.
        self._timer_seq += 1
        key = self._timer_seq

        def fire() -> None:
            self._timers.pop(key, None)
            fn()

        if delay_s is None:
            self._timers[key] = self.scheduler.request_frame(fire)
        else:
            self._timers[key] = self.scheduler.call_later(delay_s, fire)

    def _cancel_timers(self) -> None:
        for t in self._timers.values():
            t.cancel()
        self._timers = {}

    def _ensure_alive(self) -> None:
        if self._removed:
            raise RuntimeError("Map surface has been removed")

    def _ensure_live_marker(self, marker: HeadlessMarker) -> None:
        self._ensure_alive()
        if marker.stale or marker.id not in self._markers:
            raise RuntimeError(f"Marker {marker.id} is no longer attached to the map")


def _event_name(event: str) -> str:
    return event.value if isinstance(event, SurfaceEvent) else str(event)


def _check_lng_lat(lng: float, lat: float) -> None:
    if not (math.isfinite(lng) and math.isfinite(lat)):
        raise ValueError(f"Invalid LngLat: ({lng}, {lat})")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"Invalid LngLat latitude value: {lat}")
