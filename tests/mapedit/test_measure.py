"""Tests for the measurement subsystem."""

import pytest

from mapedit.context import ToolMode
from mapedit.geo import distance, polygon_area
from mapedit.tools.measure import MeasurementSubsystem, MeasureMode

A, B, C = (48.850, 2.340), (48.850, 2.350), (48.860, 2.350)


@pytest.fixture
def measure(ctx, surface):
    ctx.tool_mode = ToolMode.MEASURE
    return MeasurementSubsystem(ctx, surface)


@pytest.mark.unit
class TestDistance:

    def test_running_distance(self, measure):
        measure.click(A)
        measure.click(B)
        measure.click(C)
        readout = measure.readout()
        assert readout.total == pytest.approx(distance(A, B) + distance(B, C))
        assert readout.vertex_count == 3

    def test_provisional_segment_to_cursor(self, measure):
        measure.click(A)
        measure.mousemove(B)
        readout = measure.readout()
        assert readout.total == 0.0
        assert readout.segment == pytest.approx(distance(A, B))
        assert readout.running_total == pytest.approx(distance(A, B))

    def test_cursor_ignored_without_vertices(self, measure):
        measure.mousemove(B)
        assert measure.readout().segment == 0.0

    def test_label_at_last_vertex(self, measure):
        measure.click(A)
        measure.click(B)
        labels = measure.layer.of_kind("label")
        assert len(labels) == 1
        assert labels[0].latlngs == [B]
        assert labels[0].text.endswith(" m") or labels[0].text.endswith(" km")


@pytest.mark.unit
class TestArea:

    def test_area_zero_below_three_vertices(self, measure):
        assert measure.set_measure_mode(MeasureMode.AREA) is True
        measure.click(A)
        measure.click(B)
        assert measure.readout().area == 0.0

    def test_area_of_triangle(self, measure):
        measure.set_measure_mode("area")
        for p in (A, B, C):
            measure.click(p)
        assert measure.readout().area == pytest.approx(polygon_area([A, B, C]))
        assert len(measure.layer.of_kind("polygon")) == 1

    def test_preview_area_through_cursor(self, measure):
        measure.set_measure_mode(MeasureMode.AREA)
        measure.click(A)
        measure.click(B)
        measure.mousemove(C)
        readout = measure.readout()
        assert readout.area == 0.0
        assert readout.preview_area == pytest.approx(polygon_area([A, B, C]))


@pytest.mark.unit
class TestModeSwitchAndClear:

    def test_switch_refused_once_vertices_exist(self, measure):
        measure.click(A)
        assert measure.set_measure_mode(MeasureMode.AREA) is False
        assert measure.measure_mode == MeasureMode.DISTANCE

    def test_clear_keeps_mode(self, measure):
        measure.set_measure_mode(MeasureMode.AREA)
        measure.click(A)
        measure.clear()
        assert measure.vertices == []
        assert measure.readout().total == 0.0
        assert measure.measure_mode == MeasureMode.AREA
        assert len(measure.layer) == 0

    def test_escape_clears(self, measure):
        measure.click(A)
        assert measure.key_press("Escape") is True
        assert measure.vertices == []

    def test_entering_a_mode_resets(self, measure):
        measure.click(A)
        measure.on_enter_mode(ToolMode.SELECT, ToolMode.MEASURE)
        assert measure.vertices == []
