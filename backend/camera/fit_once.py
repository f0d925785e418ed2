from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Iterable

from geo.bounds import ViewportBounds
from geo.coords import normalize_coordinates
from lifecycle.controller import MapLifecycleController
from locations.types import LocationEntity

logger = logging.getLogger(__name__)

DEFAULT_FIT_PADDING = 50.0
DEFAULT_FIT_MAX_ZOOM = 12.0


class FitState(str, Enum):
    ARMED = "armed"
    FIRED = "fired"


def dataset_bounds(entities: Iterable[LocationEntity]) -> ViewportBounds | None:
    points = [
        normalize_coordinates(e.latitude, e.longitude)
        for e in entities
        # Unusable positions would otherwise be framed as (0, 0).
        if math.isfinite(e.latitude) and math.isfinite(e.longitude)
    ]
    return ViewportBounds.from_points(points)


class FitOnceController:
    """
    Frames the camera on the first non-empty dataset, exactly once per mount.

    The latch flips before the surface call so a re-entrant `ready` (the fit itself
    triggers `moveend`/`idle`) can never frame twice.
    """

    def __init__(
        self,
        controller: MapLifecycleController,
        *,
        padding: float = DEFAULT_FIT_PADDING,
        max_zoom: float = DEFAULT_FIT_MAX_ZOOM,
    ) -> None:
        self._controller = controller
        self.padding = float(padding)
        self.max_zoom = float(max_zoom)
        self.state = FitState.ARMED
        self.fitted_bounds: ViewportBounds | None = None
        self._dataset: list[LocationEntity] = []

        controller.add_listener("ready", self._on_ready)

    def observe_dataset(self, entities: Iterable[LocationEntity]) -> bool:
        # The first non-empty dataset is the one framed; later ones never replace it.
        if self.state == FitState.ARMED and not self._dataset:
            self._dataset = list(entities)
        return self._try_fit()

    def reset(self) -> None:
        self.state = FitState.ARMED
        self.fitted_bounds = None
        self._dataset = []

    def suppress(self) -> None:
        # The host restored its own camera; keep it.
        self.state = FitState.FIRED

    def _on_ready(self) -> None:
        self._try_fit()

    def _try_fit(self) -> bool:
        if self.state == FitState.FIRED or not self._dataset:
            return False
        if not self._controller.is_ready:
            return False
        bounds = dataset_bounds(self._dataset)
        if bounds is None:
            return False

        surface = self._controller.surface
        assert surface is not None
        self.state = FitState.FIRED
        self.fitted_bounds = bounds
        try:
            surface.fit_bounds(bounds, padding=self.padding, max_zoom=self.max_zoom)
        except Exception as exc:
            logger.warning("Initial fit to %d locations failed: %s", len(self._dataset), exc)
            return False
        logger.debug("Framed initial viewport on %d locations", len(self._dataset))
        return True
