"""Geometry construction: incremental vertex capture for new features.

Points are finished by a single click.  Lines and polygons accumulate
vertices in a DrawSession with linear undo/redo; a double-click (or
Enter) commits.  Because a double-click is delivered as click, click,
dblclick, the last captured vertex may be a duplicate of the one before
it; commit drops it before checking the vertex minimum.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from mapedit.context import EditorContext, GeometryKind, ToolMode
from mapedit.errors import IncompleteGeometry, NoTargetLayer
from mapedit.geometry import (
    MIN_LINE_VERTICES,
    MIN_POLYGON_VERTICES,
    Geometry,
    make_line,
    make_point,
    make_polygon,
)
from mapedit.records import TableSchema
from mapedit.surface import LayerGroup, RenderElement, RenderingSurface
from mapedit.tools.base import LatLng, Subsystem

DRAW_COLOR = "#3b82f6"

MIN_VERTICES = {
    GeometryKind.LINE: MIN_LINE_VERTICES,
    GeometryKind.POLYGON: MIN_POLYGON_VERTICES,
}


@dataclass
class DrawSession:
    """Vertices captured so far, plus vertices popped by undo."""

    kind: GeometryKind
    vertices: list[LatLng] = field(default_factory=list)
    redo: list[LatLng] = field(default_factory=list)


class GeometryConstructionEngine(Subsystem):
    """Builds point, line and polygon geometry from clicks in add mode."""

    mode = ToolMode.ADD

    def __init__(
        self,
        ctx: EditorContext,
        surface: RenderingSurface,
        on_geometry: Callable[[Geometry], None],
    ) -> None:
        super().__init__(ctx, surface)
        self.on_geometry = on_geometry
        self.session: DrawSession | None = None
        self.cursor: LatLng | None = None
        self.layer = LayerGroup("drawing")
        surface.add_layer(self.layer)

    # -- lifecycle ----------------------------------------------------------

    def on_enter_mode(self, mode: ToolMode, previous: ToolMode) -> None:
        self.cancel()

    # -- operations ---------------------------------------------------------

    def require_target(self) -> TableSchema:
        """The target layer schema, or NoTargetLayer."""
        schema = self.ctx.active_schema
        if schema is None or not schema.is_spatial:
            raise NoTargetLayer(
                "Please select a target layer from the Layers panel to add features."
            )
        return schema

    def add_vertex(self, latlng: LatLng) -> Geometry | None:
        """Capture a vertex; a point kind finishes immediately and is returned."""
        self.require_target()
        latlng = (float(latlng[0]), float(latlng[1]))
        kind = self.ctx.geometry_kind
        if kind == GeometryKind.POINT:
            geometry = make_point(*latlng)
            self.on_geometry(geometry)
            return geometry

        if self.session is None or self.session.kind != kind:
            self.session = DrawSession(kind=kind)
        self.session.vertices.append(latlng)
        self.session.redo.clear()
        logger.debug(f"Drawing {kind.value}: vertex {len(self.session.vertices)} at {latlng}")
        self.render()
        return None

    def undo_vertex(self) -> bool:
        if self.session is None or not self.session.vertices:
            return False
        self.session.redo.append(self.session.vertices.pop())
        self.render()
        return True

    def redo_vertex(self) -> bool:
        if self.session is None or not self.session.redo:
            return False
        self.session.vertices.append(self.session.redo.pop())
        self.render()
        return True

    def commit(self) -> Geometry:
        """Finish the session and hand the geometry to attribute entry.

        Raises:
            NoTargetLayer: The target layer was cleared mid-session.
            IncompleteGeometry: Too few vertices; the session is kept.
        """
        self.require_target()
        kind = self.session.kind if self.session else self.ctx.geometry_kind
        if kind == GeometryKind.POINT:
            raise IncompleteGeometry(kind.value, 0, 1)
        points = list(self.session.vertices) if self.session else []
        if len(points) > 1 and points[-1] == points[-2]:
            points.pop()

        required = MIN_VERTICES[kind]
        if len(points) < required:
            raise IncompleteGeometry(kind.value, len(points), required)

        if kind == GeometryKind.LINE:
            geometry: Geometry = make_line(points)
        else:
            geometry = make_polygon(points)

        # Preview cleared before attribute entry opens
        self.cancel()
        logger.info(f"Committed {kind.value} with {len(points)} vertices")
        self.on_geometry(geometry)
        return geometry

    def cancel(self) -> None:
        self.session = None
        self.cursor = None
        self.render()

    def set_cursor(self, latlng: LatLng | None) -> None:
        """Track the pointer for the rubber-band preview."""
        drawing = (
            self.ctx.tool_mode == ToolMode.ADD
            and self.ctx.geometry_kind != GeometryKind.POINT
            and self.session is not None
            and bool(self.session.vertices)
        )
        self.cursor = latlng if drawing else None
        self.render()

    @property
    def vertices(self) -> list[LatLng]:
        return list(self.session.vertices) if self.session else []

    @property
    def redo_buffer(self) -> list[LatLng]:
        return list(self.session.redo) if self.session else []

    # -- pointer events -----------------------------------------------------

    def click(self, latlng: LatLng) -> None:
        self.add_vertex(latlng)

    def dblclick(self, latlng: LatLng) -> bool:
        if self.ctx.geometry_kind == GeometryKind.POINT:
            return False
        self.commit()
        return True

    def mousemove(self, latlng: LatLng) -> None:
        self.set_cursor(latlng)

    def key_press(self, key: str) -> bool:
        if key == "Enter":
            self.commit()
        elif key == "Escape":
            self.cancel()
        elif key in ("Backspace", "ctrl+z"):
            self.undo_vertex()
        elif key == "ctrl+y":
            self.redo_vertex()
        else:
            return False
        return True

    # -- rendering ----------------------------------------------------------

    def render(self) -> None:
        self.layer.clear_layers()
        points = self.vertices
        if not points:
            return
        for p in points:
            self.layer.add(RenderElement("circle_marker", [p], {
                "radius": 4, "color": DRAW_COLOR, "fill_color": "#ffffff",
                "fill_opacity": 1.0, "weight": 2,
            }))
        if len(points) > 1:
            self.layer.add(RenderElement("polyline", points, {
                "color": DRAW_COLOR, "weight": 3,
            }))
        if self.cursor is not None:
            self.layer.add(RenderElement("polyline", [points[-1], self.cursor], {
                "color": DRAW_COLOR, "weight": 2, "dash_array": "5, 10", "opacity": 0.7,
            }))
            if self.session.kind == GeometryKind.POLYGON and len(points) >= 2:
                self.layer.add(RenderElement("polyline", [self.cursor, points[0]], {
                    "color": DRAW_COLOR, "weight": 1, "dash_array": "2, 4", "opacity": 0.5,
                }))
