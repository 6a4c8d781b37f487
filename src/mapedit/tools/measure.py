"""Measurement tool: running distance and polygon area.

Distance sums great-circle legs between captured vertices; the live
readout adds the provisional leg from the last vertex to the cursor.
Area mode treats the captured vertices as a closed ring (three or more);
the cursor only contributes to a preview value, never to the total.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

from loguru import logger

from mapedit.context import EditorContext, ToolMode
from mapedit.geo import distance, format_area, format_distance, path_length, polygon_area
from mapedit.surface import LayerGroup, RenderElement, RenderingSurface
from mapedit.tools.base import LatLng, Subsystem

MEASURE_STROKE = "#000000"
MEASURE_FILL = "#ffff00"


class MeasureMode(str, Enum):
    DISTANCE = "distance"
    AREA = "area"


@dataclass
class MeasureSession:
    mode: MeasureMode = MeasureMode.DISTANCE
    vertices: list[LatLng] = field(default_factory=list)
    total_distance: float = 0.0
    area: float = 0.0


@dataclass(frozen=True)
class MeasureReadout:
    """Values shown in the measurement panel.

    Attributes:
        total: Distance through captured vertices (m).
        segment: Provisional leg from the last vertex to the cursor (m).
        running_total: total + segment.
        area: Area of the captured ring (m²), 0 below three vertices.
        preview_area: Area of the ring closed through the cursor (m²).
    """

    mode: str
    vertex_count: int
    total: float
    segment: float
    running_total: float
    area: float
    preview_area: float
    total_label: str
    segment_label: str
    running_total_label: str
    area_label: str
    preview_area_label: str

    def to_dict(self) -> dict:
        return asdict(self)


class MeasurementSubsystem(Subsystem):
    """Distance/area measurement in measure mode."""

    mode = ToolMode.MEASURE

    def __init__(self, ctx: EditorContext, surface: RenderingSurface) -> None:
        super().__init__(ctx, surface)
        self.session = MeasureSession()
        self.cursor: LatLng | None = None
        self.layer = LayerGroup("measure")
        surface.add_layer(self.layer)

    def on_enter_mode(self, mode: ToolMode, previous: ToolMode) -> None:
        self.clear()

    @property
    def measure_mode(self) -> MeasureMode:
        return self.session.mode

    def set_measure_mode(self, mode: MeasureMode | str) -> bool:
        """Switch between distance and area; refused once vertices exist."""
        mode = MeasureMode(mode)
        if self.session.vertices:
            return False
        self.session = MeasureSession(mode=mode)
        self.cursor = None
        self.render()
        return True

    def add_vertex(self, latlng: LatLng) -> None:
        s = self.session
        s.vertices.append((float(latlng[0]), float(latlng[1])))
        s.total_distance = path_length(s.vertices)
        s.area = polygon_area(s.vertices) if len(s.vertices) >= 3 else 0.0
        logger.debug(
            f"Measure {s.mode.value}: {len(s.vertices)} vertices, "
            f"{s.total_distance:.1f} m, {s.area:.1f} m²"
        )
        self.render()

    def set_cursor(self, latlng: LatLng | None) -> None:
        self.cursor = latlng if self.session.vertices else None
        self.render()

    def clear(self) -> None:
        """Empty the vertex list and zero both accumulators; mode is kept."""
        self.session = MeasureSession(mode=self.session.mode)
        self.cursor = None
        self.render()

    @property
    def vertices(self) -> list[LatLng]:
        return list(self.session.vertices)

    def readout(self) -> MeasureReadout:
        s = self.session
        segment = 0.0
        preview_area = s.area
        if self.cursor is not None and s.vertices:
            segment = distance(s.vertices[-1], self.cursor)
            if len(s.vertices) >= 2:
                preview_area = polygon_area(s.vertices + [self.cursor])
        running = s.total_distance + segment
        return MeasureReadout(
            mode=s.mode.value,
            vertex_count=len(s.vertices),
            total=s.total_distance,
            segment=segment,
            running_total=running,
            area=s.area,
            preview_area=preview_area,
            total_label=format_distance(s.total_distance),
            segment_label=format_distance(segment),
            running_total_label=format_distance(running),
            area_label=format_area(s.area),
            preview_area_label=format_area(preview_area),
        )

    # -- pointer events -----------------------------------------------------

    def click(self, latlng: LatLng) -> None:
        self.add_vertex(latlng)

    def mousemove(self, latlng: LatLng) -> None:
        self.set_cursor(latlng)

    def key_press(self, key: str) -> bool:
        if key == "Escape":
            self.clear()
            return True
        return False

    # -- rendering ----------------------------------------------------------

    def render(self) -> None:
        self.layer.clear_layers()
        s = self.session
        points = s.vertices
        if not points:
            return
        for p in points:
            self.layer.add(RenderElement("circle_marker", [p], {
                "radius": 5, "color": MEASURE_STROKE, "fill_color": MEASURE_FILL,
                "fill_opacity": 1.0,
            }))

        if s.mode == MeasureMode.AREA and len(points) >= 3:
            self.layer.add(RenderElement("polygon", points, {
                "color": MEASURE_STROKE, "weight": 2, "fill_color": MEASURE_FILL,
                "fill_opacity": 0.2,
            }))
        elif len(points) > 1:
            self.layer.add(RenderElement("polyline", points, {
                "color": MEASURE_STROKE, "weight": 3, "dash_array": "5, 10",
            }))

        if self.cursor is not None:
            self.layer.add(RenderElement("polyline", [points[-1], self.cursor], {
                "color": MEASURE_STROKE, "weight": 2, "dash_array": "5, 10", "opacity": 0.7,
            }))
            if s.mode == MeasureMode.AREA and len(points) >= 2:
                self.layer.add(RenderElement("polyline", [self.cursor, points[0]], {
                    "color": MEASURE_STROKE, "weight": 1, "dash_array": "2, 4", "opacity": 0.5,
                }))

        if s.mode == MeasureMode.DISTANCE and len(points) > 1:
            text = format_distance(s.total_distance)
        elif s.mode == MeasureMode.AREA and len(points) >= 3:
            text = format_area(s.area)
        else:
            return
        self.layer.add(RenderElement("label", [points[-1]], {
            "color": MEASURE_STROKE, "fill_color": MEASURE_FILL,
        }, text=text))
