from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry import box as shapely_box


@dataclass(frozen=True)
class ViewportBounds:
    """
    Rectangular lat/lng region visible on the map surface, in WGS84 degrees.

    Convention used throughout this repo:
    - north/south are latitudes with south <= north
    - west/east are longitudes; west > east means the box crosses the antimeridian
    """

    north: float
    south: float
    east: float
    west: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def normalized(self) -> "ViewportBounds":
        # Only latitudes are reordered: swapping west/east would change the meaning.
        return ViewportBounds(
            north=max(self.north, self.south),
            south=min(self.north, self.south),
            east=self.east,
            west=self.west,
        )

    def boxes(self) -> list[tuple[float, float, float, float]]:
        """
        (min_lon, min_lat, max_lon, max_lat) boxes covering this viewport.

        An antimeridian-crossing viewport is split into an eastern and a western half.
        """
        b = self.normalized()
        if not b.crosses_antimeridian:
            return [(b.west, b.south, b.east, b.north)]
        return [(b.west, b.south, 180.0, b.north), (-180.0, b.south, b.east, b.north)]

    def to_geometry(self) -> Polygon | MultiPolygon:
        polys = [shapely_box(*bb) for bb in self.boxes()]
        if len(polys) == 1:
            return polys[0]
        return MultiPolygon(polys)

    def center(self) -> tuple[float, float]:
        b = self.normalized()
        lat = (b.north + b.south) / 2.0
        east = b.east + 360.0 if b.crosses_antimeridian else b.east
        lng = (b.west + east) / 2.0
        if lng > 180.0:
            lng -= 360.0
        return lat, lng

    def as_dict(self) -> dict[str, float]:
        return {
            "north": float(self.north),
            "south": float(self.south),
            "east": float(self.east),
            "west": float(self.west),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ViewportBounds":
        return cls(
            north=float(d["north"]),
            south=float(d["south"]),
            east=float(d["east"]),
            west=float(d["west"]),
        ).normalized()

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> "ViewportBounds | None":
        """
        Smallest bounds covering (lat, lng) points; None for an empty input.
        """
        pts = list(points)
        if not pts:
            return None
        lats = [p[0] for p in pts]
        lngs = [p[1] for p in pts]
        return cls(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))
