"""Print viewport: a fixed-aspect capture frame and the PDF export.

The frame has a constant size in screen pixels: its height is a fraction
of the canvas height and its width follows the page ratio.  Moving the
center handle re-projects the same pixel half-extents around the new
position, so the on-screen frame never changes size while its
geographic footprint follows the zoom level.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from loguru import logger
from PIL import Image

from mapedit.context import EditorContext, ToolMode
from mapedit.errors import ExportFailure
from mapedit.export import compose_page, export_filename, to_pdf_bytes
from mapedit.geo import LatLngBounds
from mapedit.surface import DragHandle, RenderElement, RenderingSurface
from mapedit.tools.base import LatLng, Subsystem

A4_LANDSCAPE_RATIO = 1.414
PRINT_COLOR = "#6366f1"
PRINT_HANDLE = DragHandle("__print__", "center")


@dataclass
class PrintViewport:
    center: LatLng
    half_width_px: float
    half_height_px: float
    bounds: LatLngBounds


@dataclass(frozen=True)
class CropBox:
    """Pixel rectangle inside a captured raster."""

    left: float
    top: float
    width: float
    height: float


def crop_image(image: Image.Image, box: CropBox) -> Image.Image:
    """Cut ``box`` out of ``image``; parts outside the raster come out white."""
    width = max(1, int(round(box.width)))
    height = max(1, int(round(box.height)))
    src = np.asarray(image.convert("RGB"))
    out = np.full((height, width, 3), 255, dtype=np.uint8)

    x0, y0 = int(round(box.left)), int(round(box.top))
    sx0, sy0 = max(0, x0), max(0, y0)
    sx1 = min(src.shape[1], x0 + width)
    sy1 = min(src.shape[0], y0 + height)
    if sx1 > sx0 and sy1 > sy0:
        out[sy0 - y0:sy1 - y0, sx0 - x0:sx1 - x0] = src[sy0:sy1, sx0:sx1]
    return Image.fromarray(out)


class PrintViewportController(Subsystem):
    """Capture frame in print mode plus the export sequence."""

    mode = ToolMode.PRINT

    def __init__(
        self,
        ctx: EditorContext,
        surface: RenderingSurface,
        page_ratio: float = A4_LANDSCAPE_RATIO,
        height_fraction: float = 0.6,
        capture_scale: float = 3.0,
        settle_seconds: float = 0.5,
    ) -> None:
        super().__init__(ctx, surface)
        self.page_ratio = page_ratio
        self.height_fraction = height_fraction
        self.capture_scale = capture_scale
        self.settle_seconds = settle_seconds
        self.viewport: PrintViewport | None = None
        self.rectangle: RenderElement | None = None
        self.handle_marker: RenderElement | None = None
        self.exporting = False

    def on_enter_mode(self, mode: ToolMode, previous: ToolMode) -> None:
        self.close()
        if mode == ToolMode.PRINT:
            self.open()

    # -- frame --------------------------------------------------------------

    def open(self) -> PrintViewport:
        """Place the frame on the current map center."""
        _, canvas_h = self.surface.get_size()
        box_h = canvas_h * self.height_fraction
        box_w = box_h * self.page_ratio
        center = self.surface.get_center()
        self.viewport = PrintViewport(
            center=center,
            half_width_px=box_w / 2.0,
            half_height_px=box_h / 2.0,
            bounds=self._bounds_around(center, box_w / 2.0, box_h / 2.0),
        )
        self.rectangle = RenderElement(
            "rectangle",
            [self.viewport.bounds.north_west, self.viewport.bounds.south_east],
            {"color": PRINT_COLOR, "weight": 2, "dash_array": "10, 10",
             "fill_color": PRINT_COLOR, "fill_opacity": 0.1},
        )
        self.handle_marker = RenderElement(
            "marker", [center],
            {"color": "#ffffff", "fill_color": PRINT_COLOR, "fill_opacity": 0.5, "radius": 16},
            handle=PRINT_HANDLE,
        )
        self.surface.add_layer(self.rectangle)
        self.surface.add_layer(self.handle_marker)
        return self.viewport

    def close(self) -> None:
        """Remove the frame and its handle."""
        if self.rectangle is not None:
            self.surface.remove_layer(self.rectangle)
        if self.handle_marker is not None:
            self.surface.remove_layer(self.handle_marker)
        self.rectangle = None
        self.handle_marker = None
        self.viewport = None

    def move_to(self, latlng: LatLng) -> PrintViewport | None:
        """Re-center the frame, keeping its pixel size at the current zoom."""
        vp = self.viewport
        if vp is None:
            return None
        vp.center = (float(latlng[0]), float(latlng[1]))
        vp.bounds = self._bounds_around(vp.center, vp.half_width_px, vp.half_height_px)
        self.rectangle.set_latlngs([vp.bounds.north_west, vp.bounds.south_east])
        self.handle_marker.set_latlngs([vp.center])
        return vp

    def _bounds_around(self, center: LatLng, half_w: float, half_h: float) -> LatLngBounds:
        cx, cy = self.surface.latlng_to_container_point(center)
        sw = self.surface.container_point_to_latlng((cx - half_w, cy + half_h))
        ne = self.surface.container_point_to_latlng((cx + half_w, cy - half_h))
        return LatLngBounds.from_corners(sw, ne)

    def drag(self, handle: DragHandle, latlng: LatLng) -> None:
        if handle == PRINT_HANDLE:
            self.move_to(latlng)

    def crop_box(self, scale: float | None = None) -> CropBox | None:
        """The frame's pixel box inside a capture taken at ``scale``."""
        if self.viewport is None:
            return None
        scale = self.capture_scale if scale is None else scale
        nw = self.surface.latlng_to_container_point(self.viewport.bounds.north_west)
        se = self.surface.latlng_to_container_point(self.viewport.bounds.south_east)
        return CropBox(
            left=nw[0] * scale,
            top=nw[1] * scale,
            width=(se[0] - nw[0]) * scale,
            height=(se[1] - nw[1]) * scale,
        )

    # -- export -------------------------------------------------------------

    async def export(self, directory: Path, title: str, description: str = "") -> Path:
        """Capture, crop to the frame, compose and write the PDF.

        The frame, its handle and the map controls are hidden for the
        capture and restored afterwards on every path.

        The crop box is fixed before the settle delay, so a frame that
        moves or closes while the export runs does not change the output.
        The PDF goes to a temporary file beside the target and replaces it
        only once fully written.

        Raises:
            ExportFailure: Capture, composition or writing failed, or the
                title would place the file outside ``directory``; an
                earlier export of the same name is left untouched.
        """
        if self.exporting:
            raise ExportFailure("An export is already running.")
        directory = Path(directory)
        path = directory / export_filename(title)
        if path.resolve().parent != directory.resolve():
            raise ExportFailure(f"Export name {path.name!r} leaves the export directory.")
        tmp = path.with_name(f".{path.name}.part")
        box = self.crop_box()
        self.exporting = True
        saved_style = dict(self.rectangle.style) if self.rectangle else None
        if self.rectangle is not None:
            self.rectangle.set_style(stroke=False, fill=False)
        if self.handle_marker is not None:
            self.handle_marker.set_style(opacity=0.0)
        self.surface.set_controls_visible(False)

        try:
            await asyncio.sleep(self.settle_seconds)
            image = self.surface.capture(self.capture_scale)
            if box is not None:
                image = crop_image(image, box)
            page = compose_page(image, title, description)
            data = to_pdf_bytes(page)
            directory.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(path)
            logger.info(f"Exported map to {path} ({len(data)} bytes)")
            return path
        except Exception as e:
            logger.warning(f"PDF export failed: {e}")
            tmp.unlink(missing_ok=True)
            raise ExportFailure(f"Could not generate PDF: {e}") from e
        finally:
            if self.rectangle is not None and saved_style is not None:
                self.rectangle.style = saved_style
            if self.handle_marker is not None:
                self.handle_marker.set_style(opacity=1.0)
            self.surface.set_controls_visible(True)
            self.exporting = False
