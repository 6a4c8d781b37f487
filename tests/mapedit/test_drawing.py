"""Tests for the geometry construction engine (add mode)."""

import pytest

from mapedit.context import GeometryKind, ToolMode
from mapedit.errors import IncompleteGeometry, NoTargetLayer
from mapedit.geometry import LineString, Point, Polygon
from mapedit.tools.drawing import GeometryConstructionEngine

A, B, C, D = (48.850, 2.340), (48.851, 2.341), (48.852, 2.340), (48.853, 2.342)


@pytest.fixture
def committed():
    return []


@pytest.fixture
def engine(ctx, surface, committed):
    ctx.tool_mode = ToolMode.ADD
    return GeometryConstructionEngine(ctx, surface, on_geometry=committed.append)


def _target(ctx, layer_id, kind):
    ctx.active_layer_id = layer_id
    ctx.geometry_kind = kind


@pytest.mark.unit
class TestPoints:

    def test_click_commits_point_immediately(self, engine, ctx, committed):
        _target(ctx, "trees", GeometryKind.POINT)
        engine.click(A)
        assert committed == [Point(A)]
        assert engine.session is None

    def test_no_target_layer(self, engine, ctx, committed):
        _target(ctx, None, GeometryKind.POINT)
        with pytest.raises(NoTargetLayer):
            engine.click(A)
        assert committed == []

    def test_non_spatial_target_counts_as_missing(self, engine, ctx):
        _target(ctx, "contacts", GeometryKind.POINT)
        with pytest.raises(NoTargetLayer):
            engine.add_vertex(A)

    def test_dblclick_not_consumed_for_points(self, engine, ctx):
        _target(ctx, "trees", GeometryKind.POINT)
        assert engine.dblclick(A) is False


@pytest.mark.unit
class TestLinesAndPolygons:

    def test_line_commit(self, engine, ctx, committed):
        _target(ctx, "roads", GeometryKind.LINE)
        engine.click(A)
        engine.click(B)
        geometry = engine.commit()
        assert isinstance(geometry, LineString)
        assert geometry.coordinates == (A, B)
        assert committed == [geometry]
        assert engine.session is None
        assert len(engine.layer) == 0

    def test_trailing_duplicate_from_dblclick_dropped(self, engine, ctx, committed):
        _target(ctx, "roads", GeometryKind.LINE)
        engine.click(A)
        engine.click(B)
        engine.click(B)
        assert engine.dblclick(B) is True
        assert committed[0].coordinates == (A, B)

    def test_polygon_below_minimum_keeps_session(self, engine, ctx, committed):
        _target(ctx, "parcels", GeometryKind.POLYGON)
        engine.click(A)
        engine.click(B)
        with pytest.raises(IncompleteGeometry) as exc:
            engine.commit()
        assert str(exc.value) == "Need more points to create a polygon (2/3)."
        assert engine.vertices == [A, B]
        assert committed == []

    def test_duplicate_counts_toward_minimum_only_once(self, engine, ctx):
        _target(ctx, "parcels", GeometryKind.POLYGON)
        for p in (A, B, B):
            engine.click(p)
        with pytest.raises(IncompleteGeometry) as exc:
            engine.commit()
        assert exc.value.count == 2
        assert exc.value.required == 3

    def test_polygon_commit(self, engine, ctx, committed):
        _target(ctx, "parcels", GeometryKind.POLYGON)
        for p in (A, B, C):
            engine.click(p)
        engine.key_press("Enter")
        assert isinstance(committed[0], Polygon)
        assert committed[0].coordinates == (A, B, C)

    def test_line_with_one_vertex_incomplete(self, engine, ctx):
        _target(ctx, "roads", GeometryKind.LINE)
        engine.click(A)
        with pytest.raises(IncompleteGeometry, match=r"\(1/2\)"):
            engine.commit()


@pytest.mark.unit
class TestVertexUndoRedo:

    def test_undo_then_redo_restores(self, engine, ctx):
        _target(ctx, "roads", GeometryKind.LINE)
        for p in (A, B, C):
            engine.click(p)
        assert engine.undo_vertex() is True
        assert engine.vertices == [A, B]
        assert engine.redo_buffer == [C]
        assert engine.redo_vertex() is True
        assert engine.vertices == [A, B, C]
        assert engine.redo_buffer == []

    def test_new_vertex_clears_redo(self, engine, ctx):
        _target(ctx, "roads", GeometryKind.LINE)
        for p in (A, B, C):
            engine.click(p)
        engine.undo_vertex()
        engine.click(D)
        assert engine.vertices == [A, B, D]
        assert engine.redo_vertex() is False

    @pytest.mark.parametrize("layer_id,kind", [
        ("roads", GeometryKind.LINE),
        ("parcels", GeometryKind.POLYGON),
    ])
    @pytest.mark.parametrize("count", [1, 2, 3, 5, 8])
    def test_undoing_every_vertex_empties_session(self, engine, ctx, layer_id, kind, count):
        _target(ctx, layer_id, kind)
        points = [(48.850 + i * 0.001, 2.340 + (i % 2) * 0.001) for i in range(count)]
        for p in points:
            engine.click(p)
        for _ in range(count):
            assert engine.undo_vertex() is True
        assert engine.vertices == []
        assert engine.redo_buffer == list(reversed(points))
        assert engine.undo_vertex() is False

    def test_undo_on_empty_session(self, engine):
        assert engine.undo_vertex() is False
        assert engine.redo_vertex() is False

    def test_keyboard_shortcuts(self, engine, ctx):
        _target(ctx, "roads", GeometryKind.LINE)
        engine.click(A)
        engine.click(B)
        assert engine.key_press("Backspace") is True
        assert engine.vertices == [A]
        assert engine.key_press("ctrl+y") is True
        assert engine.vertices == [A, B]
        assert engine.key_press("Escape") is True
        assert engine.session is None
        assert engine.key_press("q") is False


@pytest.mark.unit
class TestPreview:

    def test_rubber_band_follows_cursor(self, engine, ctx):
        _target(ctx, "parcels", GeometryKind.POLYGON)
        engine.click(A)
        engine.click(B)
        engine.mousemove(C)
        dashed = [e for e in engine.layer.of_kind("polyline") if "dash_array" in e.style]
        assert [e.latlngs for e in dashed] == [[B, C], [C, A]]
        assert dashed[0].style["dash_array"] == "5, 10"
        assert dashed[1].style["dash_array"] == "2, 4"

    def test_no_rubber_band_without_vertices(self, engine, ctx):
        _target(ctx, "roads", GeometryKind.LINE)
        engine.mousemove(C)
        assert engine.cursor is None
        assert len(engine.layer) == 0

    def test_vertex_markers_rendered(self, engine, ctx):
        _target(ctx, "roads", GeometryKind.LINE)
        engine.click(A)
        engine.click(B)
        assert len(engine.layer.of_kind("circle_marker")) == 2
        assert len(engine.layer.of_kind("polyline")) == 1

    def test_entering_a_mode_cancels(self, engine, ctx):
        _target(ctx, "roads", GeometryKind.LINE)
        engine.click(A)
        engine.on_enter_mode(ToolMode.ADD, ToolMode.SELECT)
        assert engine.session is None
