from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LocationEntity:
    """
    A geo-tagged directory entry as handed over by the data layer.

    Coordinates are stored raw (as received). Use `geo.coords.normalize_coordinates`
    before putting them on a map: some rows have lat/lng transposed.
    """

    id: str
    name: str
    category: str
    latitude: float
    longitude: float
    suburb: str = ""
    state: str = ""
    description: str | None = None

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "LocationEntity":
        # Rows come from a loosely typed backend: numeric columns may arrive as strings.
        return cls(
            id=str(row.get("id") or "").strip(),
            name=str(row.get("name") or ""),
            category=str(row.get("category") or "Other"),
            latitude=_to_float(row.get("latitude")),
            longitude=_to_float(row.get("longitude")),
            suburb=str(row.get("suburb") or ""),
            state=str(row.get("state") or ""),
            description=(
                None if row.get("description") is None else str(row.get("description"))
            ),
        )


def _to_float(v: Any) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return math.nan
