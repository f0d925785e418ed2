from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from shapely.geometry import Point
from shapely.prepared import prep

from geo.bounds import ViewportBounds
from geo.coords import normalize_coordinates
from locations.types import LocationEntity

REGION_ALL = "All Australia"


@dataclass(frozen=True)
class RegionPreset:
    name: str
    # Case-insensitive substring of the entity's suburb.
    suburb_contains: str | None = None
    # Exact state code, when set.
    state: str | None = None


REGION_PRESETS: dict[str, RegionPreset] = {
    "Gold Coast": RegionPreset(name="Gold Coast", suburb_contains="gold coast"),
    "Northern Rivers": RegionPreset(name="Northern Rivers", suburb_contains="byron", state="NSW"),
    "Brisbane": RegionPreset(name="Brisbane", suburb_contains="brisbane"),
    "Sydney": RegionPreset(name="Sydney", suburb_contains="sydney"),
    "Melbourne": RegionPreset(name="Melbourne", suburb_contains="melbourne"),
}


@dataclass(frozen=True)
class FilterCriteria:
    """
    Host-supplied filter inputs. Empty values mean "no restriction".
    """

    search: str = ""
    categories: frozenset[str] = field(default_factory=frozenset)
    region: str = REGION_ALL
    favorites_only: bool = False


def filter_visible(
    entities: Iterable[LocationEntity],
    bounds: ViewportBounds | None,
    search: str = "",
    categories: Iterable[str] = (),
) -> list[LocationEntity]:
    """
    Intersect a dataset with viewport bounds, free-text search and category selection.

    `bounds=None` skips spatial filtering (the map has not reported a viewport yet).
    Output keeps input order.
    """
    return filter_locations(
        entities,
        bounds,
        FilterCriteria(search=search or "", categories=frozenset(categories or ())),
    )


def filter_locations(
    entities: Iterable[LocationEntity],
    bounds: ViewportBounds | None,
    criteria: FilterCriteria,
    *,
    favorite_ids: set[str] | frozenset[str] | None = None,
) -> list[LocationEntity]:
    query = (criteria.search or "").lower()
    categories = set(criteria.categories or ())
    region = REGION_PRESETS.get((criteria.region or "").strip())
    favorites = set(favorite_ids or ())

    area = prep(bounds.to_geometry()) if bounds is not None else None

    out: list[LocationEntity] = []
    for e in entities:
        if area is not None and not in_area(e, area):
            continue
        if query and not matches_search(e, query):
            continue
        if categories and e.category not in categories:
            continue
        if region is not None and not matches_region(e, region):
            continue
        if criteria.favorites_only and e.id not in favorites:
            continue
        out.append(e)
    return out


def in_area(entity: LocationEntity, area) -> bool:
    # Entities without a usable position can't be "inside" any viewport.
    if not (_finite(entity.latitude) and _finite(entity.longitude)):
        return False
    lat, lng = normalize_coordinates(entity.latitude, entity.longitude)
    # covers() includes boundary points
    return bool(area.covers(Point(lng, lat)))


def matches_search(entity: LocationEntity, query: str) -> bool:
    q = (query or "").lower()
    if not q:
        return True
    fields = (entity.name, entity.suburb, entity.state, entity.description)
    return any(q in (f or "").lower() for f in fields)


def matches_region(entity: LocationEntity, region: RegionPreset) -> bool:
    if region.state is not None and entity.state != region.state:
        return False
    if region.suburb_contains:
        return region.suburb_contains in (entity.suburb or "").lower()
    return True


def _finite(v: float) -> bool:
    try:
        return math.isfinite(float(v))
    except (TypeError, ValueError):
        return False
