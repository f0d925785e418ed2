from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable

from geo.coords import normalize_coordinates
from locations.colors import ColorMode, category_color
from locations.types import LocationEntity
from markers.element import MarkerElement, build_marker_element

if TYPE_CHECKING:
    from lifecycle.controller import MapLifecycleController

logger = logging.getLogger(__name__)


@dataclass
class MarkerHandle:
    id: str
    lat: float
    lng: float
    element: MarkerElement
    native: Any


@dataclass
class ReconcileStats:
    created: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    moved: list[str] = field(default_factory=list)
    restyled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    retained: int = 0
    duration_ms: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "created": len(self.created),
            "removed": len(self.removed),
            "moved": len(self.moved),
            "restyled": len(self.restyled),
            "retained": int(self.retained),
            "failed": sorted(self.failed),
            "durationMs": round(self.duration_ms, 3),
        }


class MarkerReconciler:
    """
    Keeps one marker per visible location id on the map surface.

    The handle registry is private: the only ways to change it are `submit`/`flush`
    (reconcile against a subset) and `clear` (drop everything, e.g. on a style swap).
    Nothing is ever touched unless the lifecycle controller reports `idle`.
    """

    def __init__(
        self,
        controller: "MapLifecycleController",
        *,
        color_lookup: Callable[[str], str] = category_color,
        on_select: Callable[[LocationEntity], None] | None = None,
        on_pass: Callable[[ReconcileStats], None] | None = None,
    ) -> None:
        self._controller = controller
        self._color_lookup = color_lookup
        self._on_select = on_select
        self._on_pass = on_pass

        self._handles: dict[str, MarkerHandle] = {}
        self._entities: dict[str, LocationEntity] = {}
        self._latest: list[LocationEntity] = []
        self._dirty = False

        self.color_mode = ColorMode.BY_CATEGORY
        self.favorite_ids: frozenset[str] = frozenset()
        self.selected_id: str | None = None

    @property
    def live_ids(self) -> frozenset[str]:
        return frozenset(self._handles)

    @property
    def pending(self) -> bool:
        return self._dirty

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._handles

    def native_marker(self, entity_id: str) -> Any | None:
        h = self._handles.get(entity_id)
        return None if h is None else h.native

    def submit(self, entities: Iterable[LocationEntity]) -> ReconcileStats | None:
        """
        Record the latest visible subset and apply it now if the map is idle.

        While the map is not idle the subset is buffered (latest wins) and applied by
        `flush()` once the lifecycle controller signals readiness.
        """
        self._latest = list(entities)
        self._dirty = True
        return self.flush()

    def flush(self) -> ReconcileStats | None:
        if not self._dirty or not self._controller.is_ready:
            return None
        return self.reconcile(self._latest)

    def reconcile(self, entities: Iterable[LocationEntity]) -> ReconcileStats | None:
        subset = list(entities)
        surface = self._controller.surface
        if not self._controller.is_ready or surface is None:
            logger.debug(
                "Map not idle (%s); buffering %d locations",
                self._controller.state.value,
                len(subset),
            )
            self._latest = subset
            self._dirty = True
            return None

        t0 = time.perf_counter()
        stats = ReconcileStats()

        wanted: dict[str, LocationEntity] = {}
        for e in subset:
            if e.id in wanted:
                logger.debug("Ignoring duplicate location id %s", e.id)
                continue
            wanted[e.id] = e

        for entity_id in [i for i in self._handles if i not in wanted]:
            self._destroy(surface, entity_id)
            stats.removed.append(entity_id)

        for entity_id, entity in wanted.items():
            handle = self._handles.get(entity_id)
            try:
                element = build_marker_element(
                    entity,
                    color_mode=self.color_mode,
                    favorite=entity_id in self.favorite_ids,
                    selected=entity_id == self.selected_id,
                    color_lookup=self._color_lookup,
                )
                lat, lng = normalize_coordinates(entity.latitude, entity.longitude)

                if handle is None:
                    native = surface.add_marker(
                        lng, lat, element, on_click=self._click_handler(entity_id)
                    )
                    self._handles[entity_id] = MarkerHandle(
                        id=entity_id, lat=lat, lng=lng, element=element, native=native
                    )
                    stats.created.append(entity_id)
                    continue

                if (handle.lat, handle.lng) != (lat, lng):
                    surface.move_marker(handle.native, lng, lat)
                    handle.lat, handle.lng = lat, lng
                    stats.moved.append(entity_id)
                if handle.element != element:
                    surface.restyle_marker(handle.native, element)
                    handle.element = element
                    stats.restyled.append(entity_id)
                stats.retained += 1
            except Exception as exc:
                # One bad location must not block the rest of the pass.
                logger.warning("Skipping marker for location %s: %s", entity_id, exc)
                if handle is not None:
                    # A stale marker must not outlive a failed update.
                    self._destroy(surface, entity_id)
                stats.failed.append(entity_id)

        self._entities = wanted
        self._latest = list(wanted.values())
        self._dirty = False
        stats.duration_ms = (time.perf_counter() - t0) * 1000.0

        logger.debug(
            "Reconciled markers: +%d -%d ~%d (failed %d)",
            len(stats.created),
            len(stats.removed),
            len(stats.restyled) + len(stats.moved),
            len(stats.failed),
        )
        if self._on_pass is not None:
            try:
                self._on_pass(stats)
            except Exception:
                logger.exception("Reconcile pass hook failed")
        return stats

    def clear(self) -> int:
        """
        Destroy every marker. The next `flush()` rebuilds from the latest subset.
        """
        surface = self._controller.surface
        n = len(self._handles)
        for entity_id in list(self._handles):
            self._destroy(surface, entity_id)
        self._dirty = True
        return n

    def _destroy(self, surface: Any, entity_id: str) -> None:
        handle = self._handles.pop(entity_id, None)
        if handle is None or surface is None:
            return
        try:
            surface.remove_marker(handle.native)
        except Exception as exc:
            # Native object may already be gone (style swap, torn-down surface).
            logger.debug("Could not remove marker %s: %s", entity_id, exc)

    def _click_handler(self, entity_id: str) -> Callable[[], None]:
        def handler() -> None:
            entity = self._entities.get(entity_id)
            if entity is None or self._on_select is None:
                return
            self._on_select(entity)

        return handler
