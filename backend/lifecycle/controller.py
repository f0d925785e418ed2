from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from geo.bounds import ViewportBounds
from surface.scheduler import Scheduler, TimerHandle
from surface.types import Handler, MapClick, MapSurface, SurfaceEvent, SurfaceFactory

logger = logging.getLogger(__name__)


class MapSurfaceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_TOKEN = "awaiting-token"
    BOOTING = "booting"
    STYLE_LOADING = "style-loading"
    IDLE = "idle"
    STYLE_TRANSITIONING = "style-transitioning"
    DESTROYED = "destroyed"


# Signals published to the layers above.
SIGNALS = ("ready", "style_loaded", "surface_idle", "bounds", "map_click", "teardown", "state")


class MapLifecycleController:
    """
    Owns the map surface and turns its native events into a small state machine.

    uninitialized -> awaiting-token -> booting -> style-loading -> idle <-> style-transitioning
    and any state -> destroyed.

    Other components never poll the renderer: they subscribe to signals.
    `ready` fires once per entry into `idle` (the renderer itself reports `idle` after
    every repaint, which is not a state change here).
    """

    def __init__(
        self,
        surface_factory: SurfaceFactory,
        scheduler: Scheduler,
        *,
        style_url: str,
    ) -> None:
        self._factory = surface_factory
        self._scheduler = scheduler
        self.style_url = style_url

        self.state = MapSurfaceState.UNINITIALIZED
        self.surface: MapSurface | None = None
        self.bounds: ViewportBounds | None = None
        self.last_error: str | None = None
        self.loaded = False
        self.style_loaded = False

        self._alive = True
        self._frame: TimerHandle | None = None
        self._bound: list[tuple[SurfaceEvent, Handler]] = []
        self._listeners: dict[str, list[Callable[..., None]]] = {s: [] for s in SIGNALS}

    # --- signals ------------------------------------------------------------------

    def add_listener(self, signal: str, fn: Callable[..., None]) -> None:
        if signal not in self._listeners:
            raise ValueError(f"Unknown lifecycle signal: {signal}")
        self._listeners[signal].append(fn)

    def remove_listener(self, signal: str, fn: Callable[..., None]) -> None:
        fns = self._listeners.get(signal) or []
        if fn in fns:
            fns.remove(fn)

    @property
    def is_ready(self) -> bool:
        return self.state == MapSurfaceState.IDLE and self.surface is not None

    @property
    def is_alive(self) -> bool:
        return self._alive

    # --- boot ---------------------------------------------------------------------

    def start(self, token: str | None) -> MapSurfaceState:
        if self.state != MapSurfaceState.UNINITIALIZED:
            logger.debug("start() ignored in state %s", self.state.value)
            return self.state
        t = (token or "").strip()
        if not t:
            self._set_state(MapSurfaceState.AWAITING_TOKEN)
            return self.state
        self._boot(t)
        return self.state

    def provide_token(self, token: str | None) -> MapSurfaceState:
        """
        Supply a credential (e.g. typed in by the user) and boot the surface.
        """
        if self.state not in (MapSurfaceState.UNINITIALIZED, MapSurfaceState.AWAITING_TOKEN):
            return self.state
        t = (token or "").strip()
        if not t:
            self._set_state(MapSurfaceState.AWAITING_TOKEN)
            return self.state
        self._boot(t)
        return self.state

    def _boot(self, token: str) -> None:
        self._set_state(MapSurfaceState.BOOTING)
        try:
            surface = self._factory(token, self.style_url)
        except Exception as exc:
            logger.exception("Failed to initialize map surface")
            self.last_error = str(exc) or exc.__class__.__name__
            self._set_state(MapSurfaceState.UNINITIALIZED)
            return

        self.surface = surface
        self.last_error = None
        self._bind(SurfaceEvent.STYLE_LOAD, self._on_style_load)
        self._bind(SurfaceEvent.LOAD, self._on_load)
        self._bind(SurfaceEvent.IDLE, self._on_idle)
        self._bind(SurfaceEvent.MOVE_END, self._on_move_end)
        self._bind(SurfaceEvent.CLICK, self._on_click)
        self._bind(SurfaceEvent.ERROR, self._on_error)
        self._set_state(MapSurfaceState.STYLE_LOADING)

    # --- style transitions --------------------------------------------------------

    def begin_style_transition(self) -> bool:
        if self.surface is None or self.state not in (
            MapSurfaceState.IDLE,
            MapSurfaceState.STYLE_TRANSITIONING,
        ):
            return False
        self.style_loaded = False
        self._set_state(MapSurfaceState.STYLE_TRANSITIONING)
        return True

    def end_style_transition(self) -> bool:
        if self.state != MapSurfaceState.STYLE_TRANSITIONING:
            return False
        self._set_state(MapSurfaceState.IDLE)
        self._notify("ready")
        return True

    # --- layout -------------------------------------------------------------------

    def observe_resize(self, width: int | None = None, height: int | None = None) -> None:
        """
        Container size changed. Coalesced to at most one surface resize per frame.
        """
        surface = self.surface
        if not self._alive or surface is None:
            return
        set_size = getattr(surface, "set_container_size", None)
        if width is not None and height is not None and set_size is not None:
            set_size(width, height)
        # A pending frame already picks up the latest size.
        if self._frame is None:
            self._frame = self._scheduler.request_frame(self._do_resize)

    def _do_resize(self) -> None:
        self._frame = None
        if not self._alive or self.surface is None:
            return
        try:
            self.surface.resize()
        except Exception as exc:
            logger.warning("Map resize failed: %s", exc)

    # --- teardown -----------------------------------------------------------------

    def teardown(self) -> None:
        """
        Destroy markers (via `teardown` listeners) and release the surface. Idempotent.
        """
        if self.state == MapSurfaceState.DESTROYED:
            return
        self._alive = False
        if self._frame is not None:
            self._frame.cancel()
            self._frame = None

        # Listeners still see the surface here so they can detach what they own.
        self._notify("teardown")

        surface = self.surface
        if surface is not None:
            for event, handler in self._bound:
                surface.off(event, handler)
            try:
                surface.remove()
            except Exception:
                logger.warning("Error while releasing map surface", exc_info=True)
        self._bound = []
        self.surface = None
        self._set_state(MapSurfaceState.DESTROYED)

    # --- native events ------------------------------------------------------------

    def _bind(self, event: SurfaceEvent, handler: Callable[..., None]) -> None:
        assert self.surface is not None
        surface = self.surface

        def guarded(*args: Any) -> None:
            # Late callbacks (after teardown or from a replaced surface) are no-ops.
            if not self._alive or self.surface is not surface:
                return
            handler(*args)

        surface.on(event, guarded)
        self._bound.append((event, guarded))

    def _on_style_load(self) -> None:
        self.style_loaded = True
        self._notify("style_loaded")

    def _on_load(self) -> None:
        self.loaded = True
        self._emit_bounds()

    def _on_idle(self) -> None:
        if self.state == MapSurfaceState.STYLE_LOADING and self.loaded and self.style_loaded:
            self._set_state(MapSurfaceState.IDLE)
            self._notify("ready")
        self._notify("surface_idle")

    def _on_move_end(self) -> None:
        self._emit_bounds()

    def _on_click(self, click: MapClick | None = None) -> None:
        if click is not None:
            self._notify("map_click", click)

    def _on_error(self, err: Any = None) -> None:
        logger.error("Map error: %s", err)

    def _emit_bounds(self) -> None:
        if self.surface is None:
            return
        try:
            b = self.surface.get_bounds()
        except Exception as exc:
            logger.warning("Could not read map bounds: %s", exc)
            return
        self.bounds = b
        self._notify("bounds", b)

    def _set_state(self, new: MapSurfaceState) -> None:
        if new == self.state:
            return
        old = self.state
        self.state = new
        logger.debug("Map state %s -> %s", old.value, new.value)
        self._notify("state", old, new)

    def _notify(self, signal: str, *args: Any) -> None:
        for fn in list(self._listeners.get(signal) or []):
            try:
                fn(*args)
            except Exception:
                logger.exception("Listener for %r failed", signal)
