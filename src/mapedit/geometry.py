"""Geometry variant for editable map features.

All coordinates are stored in map-editor convention: (lat, lng).
Polygons are open rings: the closing vertex is implied, never repeated.

    Point:      (lat, lng)
    LineString: [(lat, lng), (lat, lng), ...]   at least 2 vertices
    Polygon:    [(lat, lng), (lat, lng), ...]   at least 3 vertices
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

LatLng = tuple[float, float]

MIN_LINE_VERTICES = 2
MIN_POLYGON_VERTICES = 3


@dataclass(frozen=True)
class Point:
    """A single located feature."""

    coordinates: LatLng

    type = "Point"


@dataclass(frozen=True)
class LineString:
    """An open path through two or more vertices."""

    coordinates: tuple[LatLng, ...] = field(default_factory=tuple)

    type = "LineString"


@dataclass(frozen=True)
class Polygon:
    """An area bounded by an implicitly closed ring of three or more vertices."""

    coordinates: tuple[LatLng, ...] = field(default_factory=tuple)

    type = "Polygon"


Geometry = Union[Point, LineString, Polygon]


def _latlng(value) -> LatLng:
    return (float(value[0]), float(value[1]))


def make_point(lat: float, lng: float) -> Point:
    return Point((float(lat), float(lng)))


def make_line(coords) -> LineString:
    return LineString(tuple(_latlng(c) for c in coords))


def make_polygon(coords) -> Polygon:
    return Polygon(tuple(_latlng(c) for c in coords))


def geometry_from_dict(data: dict | None) -> Geometry | None:
    """Decode ``{"type": ..., "coordinates": ...}`` into a geometry.

    Returns None for a missing geometry.

    Raises:
        ValueError: If the type tag is unknown.
    """
    if data is None:
        return None
    kind = data.get("type")
    coords = data.get("coordinates")
    if kind == "Point":
        return make_point(coords[0], coords[1])
    if kind == "LineString":
        return make_line(coords)
    if kind == "Polygon":
        return make_polygon(coords)
    raise ValueError(f"Unsupported geometry type: {kind}")


def geometry_to_dict(geometry: Geometry | None) -> dict | None:
    """Encode a geometry as ``{"type": ..., "coordinates": [...]}``."""
    if geometry is None:
        return None
    if isinstance(geometry, Point):
        return {"type": "Point", "coordinates": list(geometry.coordinates)}
    if isinstance(geometry, (LineString, Polygon)):
        return {
            "type": geometry.type,
            "coordinates": [list(c) for c in geometry.coordinates],
        }
    raise TypeError(f"Not a geometry: {geometry!r}")


def copy_geometry(geometry: Geometry | None) -> Geometry | None:
    """Structural deep copy, independent of the source."""
    return geometry_from_dict(geometry_to_dict(geometry))


def vertices(geometry: Geometry) -> list[LatLng]:
    """Every vertex of the geometry, in order."""
    if isinstance(geometry, Point):
        return [geometry.coordinates]
    if isinstance(geometry, (LineString, Polygon)):
        return list(geometry.coordinates)
    raise TypeError(f"Not a geometry: {geometry!r}")


def first_vertex(geometry: Geometry) -> LatLng:
    if isinstance(geometry, Point):
        return geometry.coordinates
    if isinstance(geometry, (LineString, Polygon)):
        return geometry.coordinates[0]
    raise TypeError(f"Not a geometry: {geometry!r}")


def with_vertex(geometry: Geometry, index: int, latlng: LatLng) -> Geometry:
    """Return a copy with vertex ``index`` moved to ``latlng``.

    Raises:
        ValueError: ``index`` is not in ``0 .. len(vertices) - 1``.
    """
    latlng = _latlng(latlng)
    if isinstance(geometry, Point):
        if index != 0:
            raise ValueError(f"Point has no vertex {index}")
        return Point(latlng)
    if isinstance(geometry, (LineString, Polygon)):
        coords = list(geometry.coordinates)
        if not 0 <= index < len(coords):
            raise ValueError(f"{geometry.type} has no vertex {index}")
        coords[index] = latlng
        return type(geometry)(tuple(coords))
    raise TypeError(f"Not a geometry: {geometry!r}")


def translate(geometry: Geometry, dlat: float, dlng: float) -> Geometry:
    """Shift every vertex by the same lat/lng delta.

    Only locally accurate: large polygons spanning many degrees of
    latitude are sheared on the ground.
    """
    if isinstance(geometry, Point):
        lat, lng = geometry.coordinates
        return Point((lat + dlat, lng + dlng))
    if isinstance(geometry, (LineString, Polygon)):
        return type(geometry)(
            tuple((lat + dlat, lng + dlng) for lat, lng in geometry.coordinates)
        )
    raise TypeError(f"Not a geometry: {geometry!r}")


def bounds_center(coords) -> LatLng:
    """Center of the lat/lng bounding box of ``coords``."""
    lats = [c[0] for c in coords]
    lngs = [c[1] for c in coords]
    return ((min(lats) + max(lats)) / 2.0, (min(lngs) + max(lngs)) / 2.0)


def type_label(geometry: Geometry) -> str:
    """Human label used in notices: Point, Path or Area."""
    if isinstance(geometry, Point):
        return "Point"
    if isinstance(geometry, LineString):
        return "Path"
    if isinstance(geometry, Polygon):
        return "Area"
    raise TypeError(f"Not a geometry: {geometry!r}")
