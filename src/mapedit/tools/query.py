"""Spatial box query: drag a rectangle, list the visible features inside.

Containment is deliberately coarse: a point must lie in the rectangle
(edges included); a line or polygon is tested by its first vertex only.
Records in hidden layers never match.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from loguru import logger

from mapedit.context import EditorContext, ToolMode
from mapedit.errors import EmptyQueryResult
from mapedit.geo import LatLngBounds
from mapedit.geometry import LineString, Point, Polygon
from mapedit.records import Record, TableSchema
from mapedit.surface import RenderElement, RenderingSurface
from mapedit.tools.base import LatLng, Subsystem

QUERY_STYLE = {"color": "#3b82f6", "weight": 1, "fill_opacity": 0.2}


@dataclass(frozen=True)
class QueryResult:
    """One matching record as listed in the results panel."""

    record_id: str
    table_id: str
    layer_name: str
    label: str
    color: str

    def to_dict(self) -> dict:
        return asdict(self)


def record_in_bounds(record: Record, bounds: LatLngBounds) -> bool:
    """Coarse containment test used by the box query."""
    geometry = record.geometry
    if geometry is None:
        return False
    if isinstance(geometry, Point):
        return bounds.contains(geometry.coordinates)
    if isinstance(geometry, (LineString, Polygon)):
        if not geometry.coordinates:
            return False
        return bounds.contains(geometry.coordinates[0])
    raise TypeError(f"Not a geometry: {geometry!r}")


def record_label(record: Record, schema: TableSchema | None) -> str:
    """Value of the schema's first text field, else the record id."""
    title = schema.title_field() if schema else None
    if title is not None:
        value = record.attributes.get(title.name)
        if value not in (None, ""):
            return str(value)
    return record.id


class SpatialQueryEngine(Subsystem):
    """Box selection over visible records in filter mode."""

    mode = ToolMode.FILTER

    def __init__(self, ctx: EditorContext, surface: RenderingSurface) -> None:
        super().__init__(ctx, surface)
        self.anchor: LatLng | None = None
        self.bounds: LatLngBounds | None = None
        self.rectangle: RenderElement | None = None
        self.results: list[QueryResult] = []

    def on_enter_mode(self, mode: ToolMode, previous: ToolMode) -> None:
        if self.anchor is not None:
            self.surface.set_dragging(True)
        self.anchor = None
        if mode != ToolMode.FILTER:
            self.clear()

    # -- pointer events -----------------------------------------------------

    def mousedown(self, latlng: LatLng) -> None:
        self.clear()
        self.anchor = (float(latlng[0]), float(latlng[1]))
        self.surface.set_dragging(False)

    def mousemove(self, latlng: LatLng) -> None:
        if self.anchor is None:
            return
        self.bounds = LatLngBounds.from_corners(self.anchor, latlng)
        corners = [self.bounds.north_west, self.bounds.south_east]
        if self.rectangle is None:
            self.rectangle = RenderElement("rectangle", corners, dict(QUERY_STYLE))
            self.surface.add_layer(self.rectangle)
        else:
            self.rectangle.set_latlngs(corners)

    def mouseup(self, latlng: LatLng) -> list[QueryResult]:
        """Finish the drag and evaluate the rectangle.

        Raises:
            EmptyQueryResult: Nothing visible matched; the rectangle is removed.
        """
        if self.anchor is None:
            return []
        self.surface.set_dragging(True)
        self.anchor = None
        if self.bounds is None:
            return []

        self.results = self.evaluate(self.bounds)
        if not self.results:
            self._remove_rectangle()
            raise EmptyQueryResult("No visible features found in selected area.")
        logger.info(f"Box query matched {len(self.results)} features")
        return list(self.results)

    def key_press(self, key: str) -> bool:
        if key == "Escape":
            self.clear()
            return True
        return False

    # -- operations ---------------------------------------------------------

    def evaluate(self, bounds: LatLngBounds) -> list[QueryResult]:
        """Visible records inside ``bounds``, in store order."""
        found = []
        for record in self.ctx.store.list():
            if not self.ctx.is_visible(record.table_id):
                continue
            if not record_in_bounds(record, bounds):
                continue
            schema = self.ctx.schema(record.table_id)
            found.append(QueryResult(
                record_id=record.id,
                table_id=record.table_id,
                layer_name=schema.name if schema else record.table_id,
                label=record_label(record, schema),
                color=schema.color if schema else "#cccccc",
            ))
        return found

    def clear(self) -> None:
        """Dismiss the result set and its rectangle."""
        self.results = []
        self.bounds = None
        self._remove_rectangle()

    def _remove_rectangle(self) -> None:
        if self.rectangle is not None:
            self.surface.remove_layer(self.rectangle)
            self.rectangle = None

    @property
    def result_ids(self) -> list[str]:
        return [r.record_id for r in self.results]
