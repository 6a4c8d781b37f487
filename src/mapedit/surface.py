"""Rendering surface: the pannable/zoomable canvas the editor draws on.

The editor only needs a handful of capabilities from the map library:
projection between lat/lng and container pixels, an ordered stack of
layers (last added = topmost), per-element styles, raster tile layers
with opacity and z-index, a cursor, a panning switch and a raster capture.

HeadlessSurface implements them server-side with Web-Mercator math (the
same math web map clients use, 256 px tiles) and Pillow rasterisation,
so editing sessions and print exports run without a browser.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Union

from PIL import Image, ImageColor, ImageDraw

from mapedit.geo import LatLngBounds

LatLng = tuple[float, float]
Pixel = tuple[float, float]

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798


@dataclass(frozen=True)
class DragHandle:
    """A draggable handle bound to one record.

    Attributes:
        record_id: Record the handle edits.
        kind: "marker" (whole point), "vertex" or "center" (whole polygon).
        index: Vertex index for "vertex" handles, 0 otherwise.
    """

    record_id: str
    kind: str
    index: int = 0

    @property
    def key(self) -> str:
        return f"{self.record_id}:{self.kind}:{self.index}"


@dataclass
class RenderElement:
    """One drawable item: marker, path, polygon, rectangle or text label.

    Attributes:
        kind: "circle_marker", "marker", "polyline", "polygon",
            "rectangle" or "label".
        latlngs: Vertices (a single one for markers and labels; the two
            opposite corners for rectangles).
        style: Rendering hints (color, fill_color, weight, opacity,
            fill_opacity, dash_array, radius, stroke, fill).
        text: Label text.
        handle: Set when the element is a draggable handle.
        record_id: Record the element renders, if any.
    """

    kind: str
    latlngs: list[LatLng]
    style: dict[str, Any] = field(default_factory=dict)
    text: str | None = None
    handle: DragHandle | None = None
    record_id: str | None = None

    def set_style(self, **style: Any) -> None:
        self.style.update(style)

    def set_latlngs(self, latlngs: list[LatLng]) -> None:
        self.latlngs = list(latlngs)

    @property
    def draggable(self) -> bool:
        return self.handle is not None


class LayerGroup:
    """A named, clearable collection of elements added to the surface as one."""

    def __init__(self, name: str, opacity: float = 1.0) -> None:
        self.name = name
        self.opacity = opacity
        self.elements: list[RenderElement] = []

    def add(self, element: RenderElement) -> RenderElement:
        self.elements.append(element)
        return element

    def clear_layers(self) -> None:
        self.elements.clear()

    def of_kind(self, kind: str) -> list[RenderElement]:
        return [e for e in self.elements if e.kind == kind]

    def __iter__(self):
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    def __repr__(self) -> str:
        return f"LayerGroup({self.name!r}, {len(self.elements)} elements)"


@dataclass
class TileLayer:
    """A raster base layer."""

    layer_id: str
    url: str
    opacity: float = 1.0
    z_index: int = 0

    def set_opacity(self, opacity: float) -> None:
        self.opacity = opacity

    def set_z_index(self, z_index: int) -> None:
        self.z_index = z_index


SurfaceLayer = Union[LayerGroup, RenderElement, TileLayer]


class RenderingSurface(ABC):
    """Capabilities the editor consumes from the map library."""

    @abstractmethod
    def get_size(self) -> tuple[int, int]:
        """Container size in CSS pixels (width, height)."""

    @abstractmethod
    def get_center(self) -> LatLng:
        """Current map center."""

    @abstractmethod
    def get_zoom(self) -> float:
        """Current zoom level."""

    @abstractmethod
    def set_view(self, center: LatLng, zoom: float) -> None:
        """Pan/zoom to ``center`` at ``zoom``."""

    @abstractmethod
    def fit_bounds(self, bounds: LatLngBounds, padding: int = 0) -> None:
        """Pan/zoom so ``bounds`` fits the container minus ``padding``."""

    @abstractmethod
    def latlng_to_container_point(self, latlng: LatLng) -> Pixel:
        """Project a lat/lng to container pixels."""

    @abstractmethod
    def container_point_to_latlng(self, point: Pixel) -> LatLng:
        """Unproject container pixels to a lat/lng."""

    @abstractmethod
    def add_layer(self, layer: SurfaceLayer) -> None:
        """Add on top of the stack; no-op if already present."""

    @abstractmethod
    def remove_layer(self, layer: SurfaceLayer) -> None:
        """Remove from the stack; no-op if absent."""

    @abstractmethod
    def has_layer(self, layer: SurfaceLayer) -> bool:
        """True if ``layer`` is currently on the surface."""

    @abstractmethod
    def set_dragging(self, enabled: bool) -> None:
        """Enable or disable canvas panning."""

    @abstractmethod
    def set_cursor(self, cursor: str) -> None:
        """Set the container cursor ("" for the default)."""

    @abstractmethod
    def set_controls_visible(self, visible: bool) -> None:
        """Show or hide on-map controls (zoom buttons, scale, handles)."""

    @abstractmethod
    def capture(self, scale: float = 1.0) -> Image.Image:
        """Rasterise the whole container at ``scale`` device pixels per CSS pixel."""


# ---------------------------------------------------------------------------
# Web-Mercator projection
# ---------------------------------------------------------------------------

def world_size(zoom: float) -> float:
    return TILE_SIZE * (2.0 ** zoom)


def project(latlng: LatLng, zoom: float) -> Pixel:
    """Lat/lng to absolute world pixels at ``zoom``."""
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, latlng[0]))
    size = world_size(zoom)
    x = (latlng[1] + 180.0) / 360.0 * size
    sin_lat = math.sin(math.radians(lat))
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * size
    return (x, y)


def unproject(point: Pixel, zoom: float) -> LatLng:
    """Absolute world pixels at ``zoom`` to lat/lng."""
    size = world_size(zoom)
    lng = point[0] / size * 360.0 - 180.0
    n = math.pi - 2.0 * math.pi * point[1] / size
    lat = math.degrees(math.atan(math.sinh(n)))
    return (lat, lng)


def _rgba(color: str, alpha: float) -> tuple[int, int, int, int]:
    r, g, b = ImageColor.getrgb(color)[:3]
    return (r, g, b, int(round(255 * max(0.0, min(1.0, alpha)))))


class HeadlessSurface(RenderingSurface):
    """In-process surface with Web-Mercator projection and Pillow capture.

    Tile layers are tracked (opacity, z-index) but not fetched; captures
    contain the vector content on a white background.
    """

    def __init__(
        self,
        center: LatLng = (0.0, 0.0),
        zoom: float = 13,
        size: tuple[int, int] = (1024, 768),
        min_zoom: float = 0,
        max_zoom: float = 20,
    ) -> None:
        self._center = (float(center[0]), float(center[1]))
        self._zoom = float(zoom)
        self._size = (int(size[0]), int(size[1]))
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.layers: list[SurfaceLayer] = []
        self.dragging_enabled = True
        self.cursor = ""
        self.controls_visible = True

    # -- view ---------------------------------------------------------------

    def get_size(self) -> tuple[int, int]:
        return self._size

    def get_center(self) -> LatLng:
        return self._center

    def get_zoom(self) -> float:
        return self._zoom

    def set_view(self, center: LatLng, zoom: float) -> None:
        self._center = (float(center[0]), float(center[1]))
        self._zoom = float(max(self.min_zoom, min(self.max_zoom, zoom)))

    def set_zoom(self, zoom: float) -> None:
        self.set_view(self._center, zoom)

    def fit_bounds(self, bounds: LatLngBounds, padding: int = 0) -> None:
        width = max(1, self._size[0] - 2 * padding)
        height = max(1, self._size[1] - 2 * padding)
        zoom = self.max_zoom
        while zoom > self.min_zoom:
            nw = project(bounds.north_west, zoom)
            se = project(bounds.south_east, zoom)
            if se[0] - nw[0] <= width and se[1] - nw[1] <= height:
                break
            zoom -= 1
        self.set_view(bounds.center, zoom)

    def latlng_to_container_point(self, latlng: LatLng) -> Pixel:
        px = project(latlng, self._zoom)
        origin = project(self._center, self._zoom)
        return (
            px[0] - origin[0] + self._size[0] / 2.0,
            px[1] - origin[1] + self._size[1] / 2.0,
        )

    def container_point_to_latlng(self, point: Pixel) -> LatLng:
        origin = project(self._center, self._zoom)
        world = (
            point[0] + origin[0] - self._size[0] / 2.0,
            point[1] + origin[1] - self._size[1] / 2.0,
        )
        return unproject(world, self._zoom)

    # -- layer stack --------------------------------------------------------

    def add_layer(self, layer: SurfaceLayer) -> None:
        if not self.has_layer(layer):
            self.layers.append(layer)

    def remove_layer(self, layer: SurfaceLayer) -> None:
        self.layers = [item for item in self.layers if item is not layer]

    def has_layer(self, layer: SurfaceLayer) -> bool:
        return any(item is layer for item in self.layers)

    def tile_layers(self) -> list[TileLayer]:
        """Tile layers bottom to top by z-index."""
        tiles = [item for item in self.layers if isinstance(item, TileLayer)]
        return sorted(tiles, key=lambda t: t.z_index)

    def stack_names(self) -> list[str]:
        """Names of layer groups bottom to top."""
        return [item.name for item in self.layers if isinstance(item, LayerGroup)]

    # -- affordances --------------------------------------------------------

    def set_dragging(self, enabled: bool) -> None:
        self.dragging_enabled = enabled

    def set_cursor(self, cursor: str) -> None:
        self.cursor = cursor

    def set_controls_visible(self, visible: bool) -> None:
        self.controls_visible = visible

    # -- capture ------------------------------------------------------------

    def capture(self, scale: float = 1.0) -> Image.Image:
        width = int(round(self._size[0] * scale))
        height = int(round(self._size[1] * scale))
        image = Image.new("RGB", (width, height), "white")
        draw = ImageDraw.Draw(image, "RGBA")
        for item in self.layers:
            if isinstance(item, LayerGroup):
                for element in item.elements:
                    self._draw_element(draw, element, scale, item.opacity)
            elif isinstance(item, RenderElement):
                self._draw_element(draw, item, scale, 1.0)
        return image

    def _draw_element(self, draw: ImageDraw.ImageDraw, element: RenderElement,
                      scale: float, group_opacity: float) -> None:
        style = element.style
        color = style.get("color", "#3388ff")
        opacity = style.get("opacity", 1.0) * group_opacity
        if opacity <= 0:
            return
        pts = [
            (x * scale, y * scale)
            for x, y in (self.latlng_to_container_point(ll) for ll in element.latlngs)
        ]
        if not pts:
            return
        weight = max(1, int(round(style.get("weight", 2) * scale)))
        stroke = style.get("stroke", True)
        fill = style.get("fill", element.kind in ("polygon", "rectangle", "circle_marker"))
        fill_rgba = _rgba(style.get("fill_color", color), style.get("fill_opacity", 0.2) * group_opacity)
        line_rgba = _rgba(color, opacity)

        if element.kind == "polyline":
            if stroke and len(pts) > 1:
                draw.line(pts, fill=line_rgba, width=weight)
        elif element.kind in ("polygon", "rectangle"):
            if element.kind == "rectangle" and len(pts) == 2:
                (x0, y0), (x1, y1) = pts
                pts = [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]
            if len(pts) >= 3:
                draw.polygon(pts, fill=fill_rgba if fill else None)
                if stroke:
                    draw.line(pts + [pts[0]], fill=line_rgba, width=weight)
        elif element.kind in ("circle_marker", "marker"):
            x, y = pts[0]
            r = style.get("radius", 6) * scale
            draw.ellipse(
                (x - r, y - r, x + r, y + r),
                fill=fill_rgba if fill else None,
                outline=line_rgba if stroke else None,
                width=weight,
            )
        elif element.kind == "label" and element.text:
            x, y = pts[0]
            draw.text((x, y), element.text, fill=line_rgba)
