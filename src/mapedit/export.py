"""Print document composition: a titled A4 landscape page around a map image.

Layout (millimetres, page 297 x 210):
    - Title band across the top, 25 tall, title left and timestamp right
    - Map image fit into the body with "contain" semantics (aspect kept)
    - Optional description block under the body (30 reserved, else 10)
    - Branding line centered 5 above the bottom edge
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from datetime import datetime

from PIL import Image, ImageDraw, ImageFont

PAGE_WIDTH_MM = 297.0
PAGE_HEIGHT_MM = 210.0
MARGIN_MM = 10.0
HEADER_MM = 25.0
DESCRIPTION_MM = 30.0
NO_DESCRIPTION_MM = 10.0
BRANDING = "Created with GeoNexus GIS"

HEADER_FILL = (248, 250, 252)
TITLE_COLOR = (15, 23, 42)
MUTED_COLOR = (100, 116, 139)
BODY_COLOR = (51, 65, 85)
BRAND_COLOR = (148, 163, 184)


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def scaled(self, factor: float) -> tuple[int, int, int, int]:
        return (
            int(round(self.x * factor)),
            int(round(self.y * factor)),
            int(round(self.width * factor)),
            int(round(self.height * factor)),
        )


def fit_contain(img_w: float, img_h: float, slot_w: float, slot_h: float) -> tuple[float, float]:
    """Largest size with the image's aspect ratio that fits the slot."""
    if img_w <= 0 or img_h <= 0:
        raise ValueError(f"Empty image: {img_w}x{img_h}")
    img_ratio = img_w / img_h
    if img_ratio > slot_w / slot_h:
        return slot_w, slot_w / img_ratio
    return slot_h * img_ratio, slot_h


def image_slot(img_w: float, img_h: float, has_description: bool) -> Rect:
    """Where the map image lands on the page, in millimetres."""
    footer = DESCRIPTION_MM if has_description else NO_DESCRIPTION_MM
    available_h = PAGE_HEIGHT_MM - HEADER_MM - footer - MARGIN_MM
    available_w = PAGE_WIDTH_MM - 2 * MARGIN_MM
    w, h = fit_contain(img_w, img_h, available_w, available_h)
    return Rect(MARGIN_MM, HEADER_MM + 5, w, h)


def _font(size_px: float) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=max(8, int(size_px)))


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> list[str]:
    lines: list[str] = []
    for paragraph in text.splitlines() or [""]:
        line = ""
        for word in paragraph.split():
            candidate = f"{line} {word}".strip()
            if line and draw.textlength(candidate, font=font) > max_width:
                lines.append(line)
                line = word
            else:
                line = candidate
        lines.append(line)
    return lines


def compose_page(
    image: Image.Image,
    title: str,
    description: str = "",
    generated_at: datetime | None = None,
    px_per_mm: float = 5.0,
) -> Image.Image:
    """Render the export page as an RGB image."""
    k = px_per_mm
    page = Image.new("RGB", (int(PAGE_WIDTH_MM * k), int(PAGE_HEIGHT_MM * k)), "white")
    draw = ImageDraw.Draw(page)

    draw.rectangle((0, 0, page.width, int(HEADER_MM * k)), fill=HEADER_FILL)
    draw.text((MARGIN_MM * k, 18 * k), title or "GeoNexus Map", fill=TITLE_COLOR,
              font=_font(8 * k), anchor="ls")
    stamp = "Generated: " + (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    draw.text(((PAGE_WIDTH_MM - MARGIN_MM) * k, 18 * k), stamp, fill=MUTED_COLOR,
              font=_font(3.5 * k), anchor="rs")

    slot = image_slot(image.width, image.height, bool(description))
    x, y, w, h = slot.scaled(k)
    page.paste(image.convert("RGB").resize((max(1, w), max(1, h)), Image.LANCZOS), (x, y))

    if description:
        footer_h = DESCRIPTION_MM
        available_h = PAGE_HEIGHT_MM - HEADER_MM - footer_h - MARGIN_MM
        desc_y = HEADER_MM + 5 + available_h + 8
        draw.text((MARGIN_MM * k, desc_y * k), "Description", fill=TITLE_COLOR,
                  font=_font(4.2 * k), anchor="ls")
        body_font = _font(3.5 * k)
        max_width = (PAGE_WIDTH_MM - 2 * MARGIN_MM) * k
        line_y = (desc_y + 6) * k
        for line in _wrap(draw, description, body_font, max_width):
            draw.text((MARGIN_MM * k, line_y), line, fill=BODY_COLOR, font=body_font, anchor="ls")
            line_y += 4.5 * k

    draw.text((PAGE_WIDTH_MM / 2 * k, (PAGE_HEIGHT_MM - 5) * k), BRANDING,
              fill=BRAND_COLOR, font=_font(2.8 * k), anchor="ms")
    return page


def to_pdf_bytes(page: Image.Image, px_per_mm: float = 5.0) -> bytes:
    """Encode a composed page as a one-page PDF."""
    buf = io.BytesIO()
    page.save(buf, format="PDF", resolution=px_per_mm * 25.4)
    return buf.getvalue()


def export_filename(title: str) -> str:
    """Title reduced to a bare file name, plus ``.pdf``.

    Whitespace runs become underscores; anything other than word
    characters, dots and hyphens is dropped, as are leading dots, so the
    name never carries a path component.
    """
    stem = re.sub(r"[^\w.-]", "", "_".join((title or "").split())).lstrip(".")
    return (stem or "map") + ".pdf"
