from __future__ import annotations

from dataclasses import dataclass
from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import Protocol, Sequence, TypeVar

"""
Geospatial helpers.

Pure functions over anything with `lat`/`lng` attributes (decimal degrees):
- `distance_km`: haversine great-circle distance
- `arithmetic_mean`, `spherical_centroid`, `coordinatewise_median`: group center heuristics

No GIS dependencies; straight-line distance is all the ranking needs.
"""

EARTH_RADIUS_KM = 6371.0


class LatLng(Protocol):
    lat: float
    lng: float


P = TypeVar("P", bound=LatLng)


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


def distance_km(a: LatLng, b: LatLng) -> float:
    """Compute great-circle distance in kilometres between two points."""
    lat1 = radians(a.lat)
    lat2 = radians(b.lat)
    dlat = lat2 - lat1
    dlng = radians(b.lng - a.lng)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    # Rounding can push h a hair above 1 for near-antipodal points.
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, h)))


def arithmetic_mean(points: Sequence[P]) -> P | GeoPoint | None:
    """Average latitude and longitude independently."""
    if not points:
        return None
    if len(points) == 1:
        return points[0]
    n = len(points)
    return GeoPoint(lat=sum(p.lat for p in points) / n, lng=sum(p.lng for p in points) / n)


def spherical_centroid(points: Sequence[P]) -> P | GeoPoint | None:
    """Average the points as unit vectors on the sphere and project back to lat/lng.

    Better than `arithmetic_mean` for widely spread groups. If the vectors cancel out
    exactly (antipodal points) the result is arbitrary.
    """
    if not points:
        return None
    if len(points) == 1:
        return points[0]

    x = y = z = 0.0
    for p in points:
        lat = radians(p.lat)
        lng = radians(p.lng)
        x += cos(lat) * cos(lng)
        y += cos(lat) * sin(lng)
        z += sin(lat)

    n = len(points)
    x, y, z = x / n, y / n, z / n
    return GeoPoint(lat=degrees(atan2(z, sqrt(x * x + y * y))), lng=degrees(atan2(y, x)))


def _median(values: list[float]) -> float:
    values = sorted(values)
    mid = len(values) // 2
    if len(values) % 2:
        return values[mid]
    return (values[mid - 1] + values[mid]) / 2


def coordinatewise_median(points: Sequence[P]) -> P | GeoPoint | None:
    """Median latitude and median longitude, taken independently.

    Not the geometric median (the point minimising summed distance), but cheap and
    robust to one far-away point. For two points this is the midpoint.
    """
    if not points:
        return None
    if len(points) == 1:
        return points[0]
    return GeoPoint(lat=_median([p.lat for p in points]), lng=_median([p.lng for p in points]))
