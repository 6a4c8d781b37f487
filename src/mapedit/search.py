"""Text search over visible records and "locate" targets for the map view."""

from __future__ import annotations

from dataclasses import dataclass

from mapedit.context import EditorContext
from mapedit.geo import LatLngBounds
from mapedit.geometry import LineString, Point, Polygon
from mapedit.records import Record

LOCATE_POINT_ZOOM = 18
LOCATE_PADDING_PX = 50


@dataclass(frozen=True)
class LocateTarget:
    """Either a center and zoom (points) or bounds to fit (lines, polygons)."""

    center: tuple[float, float] | None = None
    zoom: float | None = None
    bounds: LatLngBounds | None = None
    padding: int = 0


def search_visible(ctx: EditorContext, query: str) -> Record | None:
    """First located record in a visible layer with a value containing ``query``.

    Matching is a case-insensitive substring test over attribute values.
    """
    needle = query.strip().lower()
    if not needle:
        return None
    for record in ctx.visible_records():
        if any(needle in str(v).lower() for v in record.attributes.values()):
            return record
    return None


def locate_target(record: Record) -> LocateTarget | None:
    geometry = record.geometry
    if geometry is None:
        return None
    if isinstance(geometry, Point):
        return LocateTarget(center=geometry.coordinates, zoom=LOCATE_POINT_ZOOM)
    if isinstance(geometry, (LineString, Polygon)):
        return LocateTarget(
            bounds=LatLngBounds.from_points(geometry.coordinates),
            padding=LOCATE_PADDING_PX,
        )
    raise TypeError(f"Not a geometry: {geometry!r}")
