from __future__ import annotations

import math


def normalize_coordinates(lat: float, lng: float) -> tuple[float, float]:
    """
    Validate and correct a raw (latitude, longitude) pair.

    Correction policy, applied in order:
    - non-finite components become 0.0
    - |lat| > 90 with |lng| <= 90 is treated as a transposed pair and swapped
      (rows saved as (lng, lat) by mistake)
    - longitude is wrapped into [-180, 180]
    - latitude is clamped into [-90, 90]

    Already-valid input is returned unchanged, so the function is idempotent.
    """
    lat = _finite_or_zero(lat)
    lng = _finite_or_zero(lng)

    if abs(lat) > 90.0 and abs(lng) <= 90.0:
        lat, lng = lng, lat

    return _clamp_lat(lat), wrap_lng(lng)


def wrap_lng(lng: float) -> float:
    if -180.0 <= lng <= 180.0:
        return lng
    return ((lng + 180.0) % 360.0) - 180.0


def _finite_or_zero(v: float) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _clamp_lat(lat: float) -> float:
    return max(-90.0, min(90.0, lat))
