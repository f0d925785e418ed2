from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

from geo.bounds import ViewportBounds

Handler = Callable[..., None]


class SurfaceEvent(str, Enum):
    LOAD = "load"
    STYLE_LOAD = "style.load"
    IDLE = "idle"
    MOVE_END = "moveend"
    CLICK = "click"
    ERROR = "error"


@dataclass
class StyleLayer:
    """
    A renderer style layer as exposed by the surface (id + declared type + paint/layout).
    """

    id: str
    type: str
    paint: dict[str, Any] = field(default_factory=dict)
    layout: dict[str, Any] = field(default_factory=dict)
    source: str | None = None
    source_layer: str | None = None
    minzoom: float | None = None
    filter: list[Any] | None = None


@dataclass(frozen=True)
class MapClick:
    lat: float
    lng: float


class MapSurface(Protocol):
    """
    The opaque map renderer.

    Everything above this protocol treats the renderer as a black box with its own
    async lifecycle; all signals arrive through `on(event, handler)`.
    """

    def on(self, event: str, handler: Handler) -> None: ...

    def off(self, event: str, handler: Handler) -> None: ...

    def once(self, event: str, handler: Handler) -> None: ...

    def set_style(self, url: str) -> None: ...

    def is_style_loaded(self) -> bool: ...

    def get_style_layers(self) -> list[StyleLayer]: ...

    def get_layer(self, layer_id: str) -> StyleLayer | None: ...

    def add_layer(self, layer: StyleLayer, before_id: str | None = None) -> None: ...

    def remove_layer(self, layer_id: str) -> None: ...

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None: ...

    def get_source(self, source_id: str) -> dict[str, Any] | None: ...

    def add_source(self, source_id: str, options: dict[str, Any]) -> None: ...

    def set_terrain(self, options: dict[str, Any] | None) -> None: ...

    def ease_to(
        self,
        *,
        pitch: float | None = None,
        bearing: float | None = None,
        duration_ms: int = 0,
    ) -> None: ...

    def get_bounds(self) -> ViewportBounds: ...

    def fit_bounds(
        self,
        bounds: ViewportBounds,
        *,
        padding: float = 0.0,
        max_zoom: float | None = None,
    ) -> None: ...

    def resize(self) -> None: ...

    def add_marker(
        self,
        lng: float,
        lat: float,
        element: Any,
        on_click: Callable[[], None] | None = None,
    ) -> Any: ...

    def move_marker(self, marker: Any, lng: float, lat: float) -> None: ...

    def restyle_marker(self, marker: Any, element: Any) -> None: ...

    def remove_marker(self, marker: Any) -> None: ...

    def remove(self) -> None: ...


# (token, style_url) -> surface. May raise: construction failures are handled by the
# lifecycle controller.
SurfaceFactory = Callable[[str, str], MapSurface]
