"""Geodesy for the map editor: distances, areas, bounds and labels.

Convention:
    - Coordinates are (lat, lng) in degrees
    - Distances in meters, areas in square meters
    - Earth is a sphere of mean radius EARTH_RADIUS

The distance is the haversine great-circle distance.  The area is the
spherical-excess approximation used by web map drawing tools:

    A = |sum((lng2 - lng1) * (2 + sin(lat1) + sin(lat2)))| * R^2 / 2

taken over consecutive vertex pairs of the closed ring.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS = 6_371_000.0

SQ_METERS_PER_HECTARE = 10_000.0
SQ_METERS_PER_SQ_KM = 1_000_000.0


def distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Great-circle distance in meters between two (lat, lng) points."""
    lat1, lng1 = math.radians(a[0]), math.radians(a[1])
    lat2, lng2 = math.radians(b[0]), math.radians(b[1])
    sin_dlat = math.sin((lat2 - lat1) / 2)
    sin_dlng = math.sin((lng2 - lng1) / 2)
    h = sin_dlat * sin_dlat + math.cos(lat1) * math.cos(lat2) * sin_dlng * sin_dlng
    return 2 * EARTH_RADIUS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def path_length(points) -> float:
    """Sum of great-circle distances between consecutive points."""
    return sum(distance(points[i], points[i + 1]) for i in range(len(points) - 1))


def polygon_area(points) -> float:
    """Approximate area in square meters of the ring through ``points``.

    Fewer than three points enclose nothing and yield 0.
    """
    n = len(points)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        lat1, lng1 = points[i]
        lat2, lng2 = points[(i + 1) % n]
        total += math.radians(lng2 - lng1) * (
            2 + math.sin(math.radians(lat1)) + math.sin(math.radians(lat2))
        )
    return abs(total * EARTH_RADIUS * EARTH_RADIUS / 2.0)


def format_distance(meters: float) -> str:
    """Whole meters up to 1 km, kilometers with 2 decimals above."""
    if meters > 1000:
        return f"{meters / 1000:.2f} km"
    return f"{meters:.0f} m"


def format_area(sq_meters: float) -> str:
    """Whole m² below 1 ha, hectares below 1 km², km² above."""
    if sq_meters < SQ_METERS_PER_HECTARE:
        return f"{sq_meters:.0f} m²"
    if sq_meters < SQ_METERS_PER_SQ_KM:
        return f"{sq_meters / SQ_METERS_PER_HECTARE:.2f} ha"
    return f"{sq_meters / SQ_METERS_PER_SQ_KM:.2f} km²"


@dataclass(frozen=True)
class LatLngBounds:
    """An axis-aligned lat/lng rectangle."""

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_corners(cls, a: tuple[float, float], b: tuple[float, float]) -> "LatLngBounds":
        """Bounds spanning two arbitrary opposite corners."""
        return cls(
            south=min(a[0], b[0]),
            west=min(a[1], b[1]),
            north=max(a[0], b[0]),
            east=max(a[1], b[1]),
        )

    @classmethod
    def from_points(cls, points) -> "LatLngBounds":
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        return cls(min(lats), min(lngs), max(lats), max(lngs))

    def contains(self, point: tuple[float, float]) -> bool:
        """True if ``point`` lies inside or on the edge of the rectangle."""
        lat, lng = point
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    @property
    def north_west(self) -> tuple[float, float]:
        return (self.north, self.west)

    @property
    def south_east(self) -> tuple[float, float]:
        return (self.south, self.east)

    @property
    def center(self) -> tuple[float, float]:
        return ((self.south + self.north) / 2.0, (self.west + self.east) / 2.0)

    def corners(self) -> list[tuple[float, float]]:
        """Ring of the four corners, counter-clockwise from south-west."""
        return [
            (self.south, self.west),
            (self.south, self.east),
            (self.north, self.east),
            (self.north, self.west),
        ]

    def to_list(self) -> list[float]:
        """[south, west, north, east]"""
        return [self.south, self.west, self.north, self.east]
