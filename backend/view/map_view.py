from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from camera.fit_once import FitOnceController
from geo.bounds import ViewportBounds
from geo.coords import normalize_coordinates
from geo.filter import FilterCriteria, filter_locations
from lifecycle.controller import MapLifecycleController, MapSurfaceState
from locations.colors import ColorMode, category_color, parse_color_mode
from locations.types import LocationEntity
from mapstyle.registry import get_registry
from mapstyle.transition import StyleTransitionManager
from mapstyle.types import StyleRegistryConfig
from markers.element import temp_marker_element
from markers.reconciler import MarkerReconciler, ReconcileStats
from settings import theme_delay_s
from surface.scheduler import Scheduler
from surface.types import MapClick, SurfaceFactory

logger = logging.getLogger(__name__)


class MapView:
    """
    Host-facing facade: one map surface kept consistent with a location dataset.

    The host pushes inputs (dataset, filters, favorites, selection, color mode, style)
    and receives callbacks. The visible subset is recomputed synchronously on every
    input or viewport change and handed to the reconciler, which applies it as soon
    as the map is idle.
    """

    def __init__(
        self,
        surface_factory: SurfaceFactory,
        scheduler: Scheduler,
        *,
        registry: StyleRegistryConfig | None = None,
        style_name: str | None = None,
        color_lookup: Callable[[str], str] = category_color,
        theme_delay: float | None = None,
        on_location_select: Callable[[LocationEntity], None] | None = None,
        on_bounds_change: Callable[[ViewportBounds], None] | None = None,
        on_style_change: Callable[[str], None] | None = None,
        on_color_mode_change: Callable[[ColorMode], None] | None = None,
        on_map_click: Callable[[float, float], None] | None = None,
        on_reconcile: Callable[[ReconcileStats], None] | None = None,
    ) -> None:
        self.registry = registry or get_registry()
        style = self.registry.get(style_name) or self.registry.default()

        self.on_location_select = on_location_select
        self.on_bounds_change = on_bounds_change
        self.on_style_change = on_style_change
        self.on_color_mode_change = on_color_mode_change
        self.on_map_click = on_map_click
        self.on_reconcile = on_reconcile

        self._locations: list[LocationEntity] = []
        self._criteria = FilterCriteria()
        self._bounds: ViewportBounds | None = None
        self._favorites: frozenset[str] = frozenset()
        self._visible: list[LocationEntity] = []
        self.add_mode = False
        self._temp: tuple[float, float] | None = None
        self._temp_native: Any = None
        self.last_stats: ReconcileStats | None = None

        self.controller = MapLifecycleController(surface_factory, scheduler, style_url=style.url)
        self.reconciler = MarkerReconciler(
            self.controller,
            color_lookup=color_lookup,
            on_select=self._handle_select,
            on_pass=self._handle_pass,
        )
        # Registered before the view's own `ready` listener: a deferred style request
        # must start its transition before markers are flushed.
        self.styles = StyleTransitionManager(
            self.controller,
            self.reconciler,
            scheduler,
            registry=self.registry,
            style_name=style.id,
            theme_delay_s=theme_delay_s() if theme_delay is None else theme_delay,
            on_style_applied=self._handle_style_applied,
        )
        self.fit = FitOnceController(
            self.controller,
            padding=self.registry.camera.fitPadding,
            max_zoom=self.registry.camera.fitMaxZoom,
        )

        self.controller.add_listener("ready", self._on_ready)
        self.controller.add_listener("bounds", self.set_bounds)
        self.controller.add_listener("map_click", self._on_map_click)
        self.controller.add_listener("state", self._on_state)
        self.controller.add_listener("teardown", self._on_teardown)

    # --- read side ----------------------------------------------------------------

    @property
    def state(self) -> MapSurfaceState:
        return self.controller.state

    @property
    def visible(self) -> list[LocationEntity]:
        return list(self._visible)

    @property
    def locations(self) -> list[LocationEntity]:
        return list(self._locations)

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def bounds(self) -> ViewportBounds | None:
        return self._bounds

    @property
    def style(self) -> str:
        return self.styles.current

    @property
    def color_mode(self) -> ColorMode:
        return self.reconciler.color_mode

    @property
    def temp_marker(self) -> tuple[float, float] | None:
        return self._temp

    # --- mount / unmount ----------------------------------------------------------

    def mount(self, token: str | None) -> MapSurfaceState:
        self.fit.observe_dataset(self._locations)
        return self.controller.start(token)

    def provide_token(self, token: str | None) -> MapSurfaceState:
        return self.controller.provide_token(token)

    def unmount(self) -> None:
        self.controller.teardown()

    # --- host inputs --------------------------------------------------------------

    def set_locations(self, entities: Iterable[LocationEntity]) -> None:
        self._locations = list(entities)
        self._recompute()
        self.fit.observe_dataset(self._locations)

    def set_filters(self, criteria: FilterCriteria) -> None:
        if criteria == self._criteria:
            return
        self._criteria = criteria
        self._recompute()

    def set_bounds(self, bounds: ViewportBounds | None) -> None:
        self._bounds = bounds
        self._recompute()
        if bounds is not None:
            self._call(self.on_bounds_change, bounds)

    def set_favorites(self, favorite_ids: Iterable[str]) -> None:
        self._favorites = frozenset(favorite_ids)
        self.reconciler.favorite_ids = self._favorites
        self._recompute()

    def select(self, entity_id: str | None) -> None:
        if entity_id == self.reconciler.selected_id:
            return
        self.reconciler.selected_id = entity_id
        self.reconciler.submit(self._visible)

    def set_color_mode(self, mode: ColorMode | str) -> None:
        m = mode if isinstance(mode, ColorMode) else parse_color_mode(mode)
        if m == self.reconciler.color_mode:
            return
        self.reconciler.color_mode = m
        self.reconciler.submit(self._visible)
        self._call(self.on_color_mode_change, m)

    def set_style(self, style_name: str) -> bool:
        return self.styles.request(style_name)

    def set_add_mode(self, enabled: bool) -> None:
        self.add_mode = bool(enabled)
        if not self.add_mode:
            self.set_temp_marker(None)

    def set_temp_marker(self, position: tuple[float, float] | None) -> None:
        """
        Place (lat, lng) or clear the add-mode marker. It lives outside the reconciled set.
        """
        self._temp = None if position is None else normalize_coordinates(*position)
        self._detach_temp_marker()
        self._attach_temp_marker()

    def observe_resize(self, width: int | None = None, height: int | None = None) -> None:
        self.controller.observe_resize(width, height)

    # --- internals ----------------------------------------------------------------

    def _recompute(self) -> None:
        self._visible = filter_locations(
            self._locations,
            self._bounds,
            self._criteria,
            favorite_ids=self._favorites,
        )
        self.reconciler.submit(self._visible)

    def _on_ready(self) -> None:
        self.reconciler.flush()
        self._attach_temp_marker()

    def _on_state(self, old: MapSurfaceState, new: MapSurfaceState) -> None:
        if new == MapSurfaceState.STYLE_TRANSITIONING:
            # The outgoing style takes every native marker with it.
            self._detach_temp_marker()

    def _on_map_click(self, click: MapClick) -> None:
        if self.add_mode:
            self._call(self.on_map_click, click.lat, click.lng)

    def _on_teardown(self) -> None:
        self.reconciler.clear()
        self._detach_temp_marker()
        self.fit.reset()

    def _attach_temp_marker(self) -> None:
        surface = self.controller.surface
        if self._temp is None or self._temp_native is not None:
            return
        if surface is None or not self.controller.is_ready:
            return
        lat, lng = self._temp
        try:
            self._temp_native = surface.add_marker(lng, lat, temp_marker_element())
        except Exception as exc:
            logger.warning("Could not place temporary marker: %s", exc)

    def _detach_temp_marker(self) -> None:
        native, self._temp_native = self._temp_native, None
        surface = self.controller.surface
        if native is None or surface is None:
            return
        try:
            surface.remove_marker(native)
        except Exception as exc:
            logger.debug("Could not remove temporary marker: %s", exc)

    def _handle_select(self, entity: LocationEntity) -> None:
        self._call(self.on_location_select, entity)

    def _handle_pass(self, stats: ReconcileStats) -> None:
        self.last_stats = stats
        self._call(self.on_reconcile, stats)

    def _handle_style_applied(self, style_name: str) -> None:
        self._call(self.on_style_change, style_name)

    def _call(self, fn: Callable[..., None] | None, *args: Any) -> None:
        if fn is None:
            return
        try:
            fn(*args)
        except Exception:
            logger.exception("Host callback %s failed", getattr(fn, "__name__", fn))
