from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from geo.filter import REGION_ALL, FilterCriteria
from lifecycle.token import TokenResolution, resolve_token
from locations.types import LocationEntity
from mapstyle.registry import get_registry
from plot.build_map import build_map_plot, build_prompt_payload
from surface.headless import HeadlessMapSurface
from surface.scheduler import ManualScheduler
from view.map_view import MapView

logger = logging.getLogger(__name__)


class ApiCenter(BaseModel):
    lat: float
    lon: float


class ApiView(BaseModel):
    center: ApiCenter
    zoom: float = Field(ge=0.0, le=24.0)


class ApiViewport(BaseModel):
    width: int = Field(default=900, ge=1)
    height: int = Field(default=600, ge=1)


class ApiLocation(BaseModel):
    id: str
    name: str = ""
    category: str = "Other"
    # Loosely typed: rows come straight from spreadsheets and forms.
    latitude: float | str | None = None
    longitude: float | str | None = None
    suburb: str = ""
    state: str = ""
    description: str | None = None


class ApiFilters(BaseModel):
    search: str = ""
    categories: list[str] = Field(default_factory=list)
    region: str = REGION_ALL
    favoritesOnly: bool = False

    def to_criteria(self) -> FilterCriteria:
        return FilterCriteria(
            search=self.search,
            categories=frozenset(self.categories),
            region=self.region,
            favorites_only=self.favoritesOnly,
        )


class ApiPlotRequest(BaseModel):
    locations: list[ApiLocation] = Field(default_factory=list)
    filters: ApiFilters = Field(default_factory=ApiFilters)
    # Explicit camera; without it the map frames the dataset once.
    view: ApiView | None = None
    viewport: ApiViewport = Field(default_factory=ApiViewport)
    style: str | None = None
    colorMode: str | None = None
    favorites: list[str] = Field(default_factory=list)
    selectedId: str | None = None
    tempMarker: ApiCenter | None = None
    # Overrides server-side credential lookup (e.g. a token typed into the UI).
    token: str | None = None


def run_plot_session(
    req: ApiPlotRequest,
    *,
    resolution: TokenResolution | None = None,
) -> tuple[dict[str, Any], MapView]:
    """
    Drive one headless map session to quiescence and render it as a Plotly payload.

    The returned view is already unmounted; it is handed back for its stats.
    """
    if req.token:
        resolution = TokenResolution(token=req.token.strip(), source="request")
    elif resolution is None:
        resolution = resolve_token()

    registry = get_registry()
    if req.style and registry.get(req.style) is None:
        logger.warning("Unknown style %r requested; using %s", req.style, registry.defaultStyle)

    cam = registry.camera
    center = (req.view.center.lat, req.view.center.lon) if req.view else (cam.center.lat, cam.center.lon)
    zoom = req.view.zoom if req.view else cam.zoom
    scheduler = ManualScheduler()

    def surface_factory(token: str, style_url: str) -> HeadlessMapSurface:
        return HeadlessMapSurface(
            token=token,
            style_url=style_url,
            scheduler=scheduler,
            center=center,
            zoom=zoom,
            width=req.viewport.width,
            height=req.viewport.height,
        )

    passes: list[dict[str, Any]] = []
    view = MapView(
        surface_factory,
        scheduler,
        registry=registry,
        style_name=req.style,
        on_reconcile=lambda stats: passes.append(stats.as_dict()),
    )
    if req.view is not None:
        view.fit.suppress()

    if req.colorMode:
        view.set_color_mode(req.colorMode)
    view.set_favorites(req.favorites)
    view.select(req.selectedId)
    view.set_filters(req.filters.to_criteria())
    view.set_locations(LocationEntity.from_record(loc.model_dump()) for loc in req.locations)

    view.mount(resolution.token)
    if view.controller.surface is None:
        payload = build_prompt_payload(view, error=resolution.error)
        view.unmount()
        return payload, view

    if req.tempMarker is not None:
        view.set_add_mode(True)
        view.set_temp_marker((req.tempMarker.lat, req.tempMarker.lon))

    scheduler.run_until_idle()
    payload = build_map_plot(view)
    payload["layout"]["meta"]["passes"] = passes
    payload["layout"]["meta"]["tokenSource"] = resolution.source
    view.unmount()
    return payload, view
