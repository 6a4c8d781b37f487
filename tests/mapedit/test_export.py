"""Tests for the export page layout."""

from datetime import datetime

import pytest
from PIL import Image

from mapedit.export import (
    PAGE_HEIGHT_MM,
    PAGE_WIDTH_MM,
    compose_page,
    export_filename,
    fit_contain,
    image_slot,
    to_pdf_bytes,
)


@pytest.mark.unit
class TestLayout:

    def test_fit_wide_image(self):
        w, h = fit_contain(200, 100, 100, 100)
        assert (w, h) == (100, 50)

    def test_fit_tall_image(self):
        w, h = fit_contain(100, 200, 100, 100)
        assert (w, h) == (50, 100)

    def test_empty_image_rejected(self):
        with pytest.raises(ValueError):
            fit_contain(0, 10, 100, 100)

    def test_slot_reserves_description_block(self):
        with_desc = image_slot(1000, 100, True)
        without = image_slot(100, 1000, False)
        assert (with_desc.x, with_desc.y) == (10, 30)
        # Tall image is bounded by the available height
        assert without.height == pytest.approx(PAGE_HEIGHT_MM - 25 - 10 - 10)
        tall_with_desc = image_slot(100, 1000, True)
        assert tall_with_desc.height == pytest.approx(PAGE_HEIGHT_MM - 25 - 30 - 10)

    def test_slot_width_bounded_by_margins(self):
        slot = image_slot(10_000, 100, False)
        assert slot.width == pytest.approx(PAGE_WIDTH_MM - 20)


@pytest.mark.unit
class TestCompose:

    def test_page_is_a4_landscape(self):
        image = Image.new("RGB", (300, 200), (255, 0, 0))
        page = compose_page(image, "Title", "Some words", datetime(2024, 5, 1, 12, 0), px_per_mm=2)
        assert page.size == (int(PAGE_WIDTH_MM * 2), int(PAGE_HEIGHT_MM * 2))
        # Map image pasted inside the slot
        x, y = int(12 * 2), int(32 * 2)
        assert page.getpixel((x, y)) == (255, 0, 0)

    def test_pdf_bytes(self):
        page = compose_page(Image.new("RGB", (30, 20)), "T", px_per_mm=1)
        assert to_pdf_bytes(page, px_per_mm=1).startswith(b"%PDF")


@pytest.mark.unit
class TestFilename:

    def test_whitespace_becomes_underscores(self):
        assert export_filename("My Map  Export") == "My_Map_Export.pdf"

    def test_empty_title(self):
        assert export_filename("") == "map.pdf"

    @pytest.mark.parametrize("title,expected", [
        ("../../etc/passwd", "etcpasswd.pdf"),
        ("/abs/path", "abspath.pdf"),
        ("a\\b", "ab.pdf"),
        (".hidden", "hidden.pdf"),
        ("...", "map.pdf"),
        ("Survey v1.2-final", "Survey_v1.2-final.pdf"),
    ])
    def test_path_components_dropped(self, title, expected):
        assert export_filename(title) == expected
