"""Tests for text search and locate targets."""

import pytest

from mapedit.records import Record
from mapedit.search import LOCATE_PADDING_PX, LOCATE_POINT_ZOOM, locate_target, search_visible


@pytest.mark.unit
class TestSearch:

    def test_case_insensitive_substring(self, ctx):
        assert search_visible(ctx, "oak").id == "t1"
        assert search_visible(ctx, "ORFÈVRES").id == "r1"

    def test_hidden_layers_skipped(self, ctx):
        ctx.visible_layers = ["roads"]
        assert search_visible(ctx, "oak") is None

    def test_unlocated_records_skipped(self, ctx):
        assert search_visible(ctx, "nobody") is None

    def test_blank_query(self, ctx):
        assert search_visible(ctx, "   ") is None

    def test_numbers_are_searchable(self, ctx):
        assert search_visible(ctx, "12").id == "t1"


@pytest.mark.unit
class TestLocate:

    def test_point_flies_to_zoom(self, store):
        target = locate_target(store.get("t1"))
        assert target.center == (48.8570, 2.3500)
        assert target.zoom == LOCATE_POINT_ZOOM
        assert target.bounds is None

    def test_polygon_fits_bounds(self, store):
        target = locate_target(store.get("p1"))
        assert target.bounds.to_list() == [48.8540, 2.3480, 48.8560, 2.3520]
        assert target.padding == LOCATE_PADDING_PX

    def test_unlocated(self):
        assert locate_target(Record("x", "contacts")) is None
