from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable

from lifecycle.controller import MapLifecycleController, MapSurfaceState
from mapstyle.terrain import apply_3d, remove_3d
from mapstyle.theming import ThemeReport, apply_theme
from mapstyle.types import StyleDefinition, StyleRegistryConfig
from surface.scheduler import Scheduler

if TYPE_CHECKING:
    from markers.reconciler import MarkerReconciler

logger = logging.getLogger(__name__)


class TransitionPhase(str, Enum):
    IDLE = "idle"
    AWAITING_STYLE_LOAD = "awaiting-style-load"
    AWAITING_IDLE = "awaiting-idle"
    THEMING = "theming"


class StyleTransitionManager:
    """
    Swaps the base style without leaking markers.

    A swap destroys every marker, sets the new style URL, waits for `style.load` and
    then the next surface `idle`, runs the (delayed) theming/3D pass and finally
    returns the controller to `idle`, whose `ready` signal rebuilds the markers.

    Every swap bumps a generation counter; delayed callbacks scheduled for an older
    generation are dropped, so rapid swaps converge on the newest request.
    """

    def __init__(
        self,
        controller: MapLifecycleController,
        reconciler: "MarkerReconciler",
        scheduler: Scheduler,
        *,
        registry: StyleRegistryConfig,
        style_name: str | None = None,
        theme_delay_s: float = 0.15,
        retry_delay_s: float = 0.05,
        max_theme_attempts: int = 20,
        on_style_applied: Callable[[str], None] | None = None,
    ) -> None:
        self._controller = controller
        self._reconciler = reconciler
        self._scheduler = scheduler
        self._registry = registry
        self._theme_delay_s = float(theme_delay_s)
        self._retry_delay_s = float(retry_delay_s)
        self._max_attempts = max(1, int(max_theme_attempts))
        self._on_style_applied = on_style_applied

        initial = registry.get(style_name) or registry.default()
        self.current = initial.id
        self.target: str | None = None
        self.phase = TransitionPhase.IDLE
        self.last_report: ThemeReport | None = None
        self.transitions_completed = 0

        self._deferred: str | None = None
        self._generation = 0

        controller.add_listener("style_loaded", self._on_style_loaded)
        controller.add_listener("surface_idle", self._on_surface_idle)
        controller.add_listener("ready", self._on_ready)
        controller.add_listener("teardown", self._on_teardown)

    @property
    def current_style(self) -> StyleDefinition:
        return self._registry.get(self.current) or self._registry.default()

    @property
    def deferred(self) -> str | None:
        return self._deferred

    @property
    def generation(self) -> int:
        return self._generation

    def request(self, style_name: str) -> bool:
        """
        Switch to a registered style. Returns True when a swap started or was deferred.
        """
        style = self._registry.get(style_name)
        if style is None:
            logger.warning("Ignoring unknown map style %r", style_name)
            return False

        state = self._controller.state
        if state == MapSurfaceState.DESTROYED:
            return False
        if state not in (MapSurfaceState.IDLE, MapSurfaceState.STYLE_TRANSITIONING):
            # Not booted yet: keep only the newest request.
            self._deferred = style.id
            return True

        if self.phase == TransitionPhase.IDLE and style.id == self.current:
            return False
        if self.phase != TransitionPhase.IDLE and style.id == self.target:
            return False

        leaving = self._registry.get(self.target or self.current) or self.current_style
        if not self._controller.begin_style_transition():
            return False

        self._generation += 1
        self.target = style.id
        self.phase = TransitionPhase.AWAITING_STYLE_LOAD
        self._reconciler.clear()

        surface = self._controller.surface
        assert surface is not None
        if leaving.terrain and not style.terrain:
            remove_3d(surface, self._registry.terrain)
        logger.info("Switching map style %s -> %s", leaving.id, style.id)
        try:
            surface.set_style(style.url)
        except Exception:
            logger.exception("Failed to set map style %s", style.id)
            self._abort()
            return False
        self._controller.style_url = style.url
        return True

    # --- lifecycle signals --------------------------------------------------------

    def _on_style_loaded(self) -> None:
        if self.phase == TransitionPhase.AWAITING_STYLE_LOAD:
            self.phase = TransitionPhase.AWAITING_IDLE
            return
        if self.phase == TransitionPhase.IDLE and self._controller.state == MapSurfaceState.STYLE_LOADING:
            # First style of a fresh surface.
            self._schedule(self._generation, 1, self._theme_delay_s)

    def _on_surface_idle(self) -> None:
        if self.phase != TransitionPhase.AWAITING_IDLE:
            return
        self.phase = TransitionPhase.THEMING
        self._schedule(self._generation, 1, self._theme_delay_s)

    def _on_ready(self) -> None:
        if self._deferred is None or self.phase != TransitionPhase.IDLE:
            return
        name, self._deferred = self._deferred, None
        self.request(name)

    def _on_teardown(self) -> None:
        self._generation += 1
        self._deferred = None
        self.target = None
        self.phase = TransitionPhase.IDLE

    # --- decoration pass ----------------------------------------------------------

    def _schedule(self, generation: int, attempt: int, delay_s: float) -> None:
        self._scheduler.call_later(delay_s, lambda: self._decorate(generation, attempt))

    def _decorate(self, generation: int, attempt: int) -> None:
        if generation != self._generation or not self._controller.is_alive:
            return
        surface = self._controller.surface
        if surface is None:
            return

        style = self._registry.get(self.target or self.current) or self.current_style
        if not surface.is_style_loaded():
            if attempt < self._max_attempts:
                self._schedule(generation, attempt + 1, self._retry_delay_s)
                return
            logger.warning("Style %s did not finish loading; skipping theme", style.id)
        else:
            if style.theme:
                theme = self._registry.themes.get(style.theme)
                if theme is not None:
                    self.last_report = apply_theme(surface, theme)
            if style.terrain:
                apply_3d(surface, self._registry.terrain)

        if self.phase == TransitionPhase.THEMING:
            self._finish()

    def _finish(self) -> None:
        assert self.target is not None
        self.current = self.target
        self.target = None
        self.phase = TransitionPhase.IDLE
        self.transitions_completed += 1
        # Back to idle: `ready` listeners rebuild markers from the latest subset.
        self._controller.end_style_transition()
        if self._on_style_applied is not None:
            self._on_style_applied(self.current)

    def _abort(self) -> None:
        self.target = None
        self.phase = TransitionPhase.IDLE
        self._controller.end_style_transition()
