"""Tool mode controller: the single switch that owns pointer dispatch.

Exactly one ToolMode is active.  Switching calls ``on_exit_mode`` and
then ``on_enter_mode`` on every subsystem, synchronously, before the next
event is processed:

    - drawing session and measurement are always reset
    - move history survives only when entering move
    - the box-query result and rectangle go away outside filter
    - the print frame exists only in print

Pointer, keyboard and drag events go to the subsystem owning the active
mode.  Subsystems raise EditorError; this is the one place that turns
those into notices on the event bus.
"""

from __future__ import annotations

import functools
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from mapedit.attributes import AttributeEntry, AttributeEntryRequest
from mapedit.context import CURSORS, EditorContext, GeometryKind, ToolMode
from mapedit.errors import EditorError, ExportInProgress
from mapedit.events import MODE_CHANGED, QUERY_RESULTS, EventBus, Notice
from mapedit.geometry import Geometry, type_label
from mapedit.layers import BaseLayer, LayerOrderCoordinator
from mapedit.records import Record
from mapedit.search import locate_target, search_visible
from mapedit.surface import DragHandle, RenderingSurface
from mapedit.tools.base import LatLng, Subsystem
from mapedit.tools.drawing import GeometryConstructionEngine
from mapedit.tools.history import FeatureMoveEngine, HistoryAction, handles_for
from mapedit.tools.measure import MeasurementSubsystem, MeasureMode, MeasureReadout
from mapedit.tools.print_view import PRINT_HANDLE, PrintViewportController
from mapedit.tools.query import QueryResult, SpatialQueryEngine

KIND_FOR_GEOMETRY_TYPE = {
    "point": GeometryKind.POINT,
    "line": GeometryKind.LINE,
    "polygon": GeometryKind.POLYGON,
}


def when_idle(fn: Callable) -> Callable:
    """Refuse a state-changing command while a print export is running.

    The refusal is a notice; the command returns None.
    """
    @functools.wraps(fn)
    def wrapper(self: "ToolModeController", *args, **kwargs):
        if self.exporting:
            self._notify_error(ExportInProgress())
            return None
        return fn(self, *args, **kwargs)
    return wrapper


class ToolModeController:
    """Integration spine of the map editor."""

    def __init__(
        self,
        ctx: EditorContext,
        surface: RenderingSurface,
        bus: EventBus | None = None,
        base_layers: list[BaseLayer] | None = None,
        page_ratio: float = 1.414,
        print_height_fraction: float = 0.6,
        capture_scale: float = 3.0,
        export_settle_seconds: float = 0.5,
    ) -> None:
        self.ctx = ctx
        self.surface = surface
        self.bus = bus or EventBus()

        self.attributes = AttributeEntry(ctx, self.bus, on_commit=self._on_record_committed)
        self.drawing = GeometryConstructionEngine(ctx, surface, on_geometry=self._open_attribute_entry)
        self.measure = MeasurementSubsystem(ctx, surface)
        self.query = SpatialQueryEngine(ctx, surface)
        self.moves = FeatureMoveEngine(ctx, surface, on_change=self.render_features)
        self.printer = PrintViewportController(
            ctx, surface,
            page_ratio=page_ratio,
            height_fraction=print_height_fraction,
            capture_scale=capture_scale,
            settle_seconds=export_settle_seconds,
        )
        self.subsystems: list[Subsystem] = [
            self.drawing, self.measure, self.query, self.moves, self.printer,
        ]
        self._by_mode = {s.mode: s for s in self.subsystems}

        self.layers = LayerOrderCoordinator(
            ctx, surface,
            base_layers=base_layers,
            overlays=[self.drawing.layer, self.measure.layer],
            handle_provider=handles_for,
        )
        self.layers.sync()
        self.surface.set_cursor(CURSORS[ctx.tool_mode])

    # -- mode ---------------------------------------------------------------

    @property
    def mode(self) -> ToolMode:
        return self.ctx.tool_mode

    @property
    def exporting(self) -> bool:
        return self.printer.exporting

    @when_idle
    def set_mode(self, mode: ToolMode | str) -> ToolMode:
        mode = ToolMode(mode)
        previous = self.ctx.tool_mode
        for subsystem in self.subsystems:
            subsystem.on_exit_mode(previous, mode)
        self.ctx.tool_mode = mode
        for subsystem in self.subsystems:
            subsystem.on_enter_mode(mode, previous)
        self.surface.set_dragging(True)
        self.surface.set_cursor(CURSORS[mode])
        if ToolMode.MOVE in (mode, previous):
            self.render_features()
        logger.info(f"Tool mode {previous.value} -> {mode.value}")
        self.bus.publish(MODE_CHANGED, {"mode": mode.value, "previous": previous.value})
        return mode

    @when_idle
    def set_target_layer(self, layer_id: str | None) -> None:
        """Choose the layer new features go to; sets the drawing kind from it."""
        if layer_id is not None and self.ctx.schema(layer_id) is None:
            raise KeyError(f"Layer not found: {layer_id}")
        self.ctx.active_layer_id = layer_id
        schema = self.ctx.active_schema
        if schema is not None and schema.geometry_type in KIND_FOR_GEOMETRY_TYPE:
            self.ctx.geometry_kind = KIND_FOR_GEOMETRY_TYPE[schema.geometry_type]
        self.drawing.cancel()

    @when_idle
    def set_geometry_kind(self, kind: GeometryKind | str) -> None:
        """Pick point/line/polygon; only layers of mixed geometry allow a choice."""
        kind = GeometryKind(kind)
        schema = self.ctx.active_schema
        if schema is not None and schema.geometry_type != "mixed":
            expected = KIND_FOR_GEOMETRY_TYPE.get(schema.geometry_type)
            if kind != expected:
                raise ValueError(f"Layer {schema.id} only holds {schema.geometry_type} features")
        self.ctx.geometry_kind = kind
        self.drawing.cancel()

    @when_idle
    def set_feature_defaults(self, defaults: dict[str, Any]) -> None:
        self.ctx.feature_defaults = dict(defaults)

    # -- event dispatch -----------------------------------------------------

    def _active(self) -> Subsystem | None:
        return self._by_mode.get(self.ctx.tool_mode)

    def _guard(self, fn: Callable, *args):
        if self.exporting:
            return None
        try:
            return fn(*args)
        except EditorError as e:
            self._notify_error(e)
            return None

    def click(self, latlng: LatLng) -> None:
        sub = self._active()
        if sub is not None:
            self._guard(sub.click, latlng)

    def dblclick(self, latlng: LatLng) -> None:
        sub = self._active()
        if sub is not None and self._guard(sub.dblclick, latlng) is not False:
            return
        self.surface.set_view(self.surface.get_center(), self.surface.get_zoom() + 1)

    def mousedown(self, latlng: LatLng) -> None:
        sub = self._active()
        if sub is not None:
            self._guard(sub.mousedown, latlng)

    def mousemove(self, latlng: LatLng) -> None:
        sub = self._active()
        if sub is not None:
            self._guard(sub.mousemove, latlng)

    def mouseup(self, latlng: LatLng) -> None:
        sub = self._active()
        if sub is None:
            return
        found = self._guard(sub.mouseup, latlng)
        if sub is self.query and found:
            self.bus.notify(Notice(
                "Spatial Search", f"Found {len(found)} features. See results panel.", "success",
            ))
            self.bus.publish(QUERY_RESULTS, {"results": [r.to_dict() for r in found]})

    def key_press(self, key: str) -> bool:
        sub = self._active()
        if sub is None:
            return False
        return bool(self._guard(sub.key_press, key))

    def drag_start(self, handle: DragHandle, latlng: LatLng | None = None) -> None:
        if handle != PRINT_HANDLE and self.ctx.tool_mode == ToolMode.MOVE:
            self._guard(self.moves.drag_start, handle, latlng)

    def drag(self, handle: DragHandle, latlng: LatLng) -> None:
        if handle == PRINT_HANDLE and self.ctx.tool_mode == ToolMode.PRINT:
            self._guard(self.printer.drag, handle, latlng)

    def drag_end(self, handle: DragHandle, latlng: LatLng) -> HistoryAction | None:
        if handle == PRINT_HANDLE:
            if self.ctx.tool_mode == ToolMode.PRINT:
                self._guard(self.printer.move_to, latlng)
            return None
        if self.ctx.tool_mode != ToolMode.MOVE:
            return None
        return self._guard(self.moves.drag_end, handle, latlng)

    # -- drawing ------------------------------------------------------------

    @when_idle
    def commit_drawing(self) -> Geometry | None:
        return self._guard(self.drawing.commit)

    @when_idle
    def cancel_drawing(self) -> None:
        self.drawing.cancel()

    @when_idle
    def undo_vertex(self) -> bool:
        return self.drawing.undo_vertex()

    @when_idle
    def redo_vertex(self) -> bool:
        return self.drawing.redo_vertex()

    # -- move history -------------------------------------------------------

    @when_idle
    def undo_move(self) -> HistoryAction | None:
        return self.moves.undo()

    @when_idle
    def redo_move(self) -> HistoryAction | None:
        return self.moves.redo()

    @when_idle
    def save_moves(self) -> int:
        count = self.moves.save()
        self.bus.notify(Notice(
            "Changes Saved", "All geometry edits have been committed.", "success",
        ))
        return count

    # -- measurement and query ----------------------------------------------

    @when_idle
    def set_measure_mode(self, mode: MeasureMode | str) -> bool:
        return self.measure.set_measure_mode(mode)

    def measure_readout(self) -> MeasureReadout:
        return self.measure.readout()

    @when_idle
    def clear_measure(self) -> None:
        self.measure.clear()

    @property
    def query_results(self) -> list[QueryResult]:
        return list(self.query.results)

    @when_idle
    def clear_query(self) -> None:
        self.query.clear()

    # -- attribute entry ----------------------------------------------------

    @property
    def pending_entry(self) -> AttributeEntryRequest | None:
        return self.attributes.pending

    def _open_attribute_entry(self, geometry: Geometry) -> None:
        self.attributes.open_create(geometry)

    @when_idle
    def edit_record(self, record_id: str) -> AttributeEntryRequest:
        return self.attributes.open_edit(record_id)

    @when_idle
    def submit_attributes(self, values: dict[str, Any]) -> Record | None:
        """Store the pending entry; None if nothing was stored."""
        pending = self.attributes.pending
        editing = pending is not None and pending.editing
        if pending is None:
            return None
        record = self._guard(self.attributes.submit, values)
        if record is None:
            return None
        if editing:
            self.bus.notify(Notice("Feature updated", "Changes saved successfully.", "success"))
        else:
            label = type_label(record.geometry) if record.geometry else "Record"
            self.bus.notify(Notice("Feature added", f"{label} added to map.", "success"))
        return record

    @when_idle
    def cancel_attributes(self) -> None:
        self.attributes.cancel()

    def _on_record_committed(self, record: Record) -> None:
        self.layers.refresh(record.table_id)

    # -- layers -------------------------------------------------------------

    def render_features(self) -> None:
        self.layers.sync()

    @when_idle
    def reorder_layers(self, dragged: str, target: str) -> list[str]:
        return self.layers.reorder_features(dragged, target)

    @when_idle
    def reorder_base_layers(self, dragged: str, target: str) -> list[str]:
        return self.layers.reorder_base(dragged, target)

    @when_idle
    def set_layer_visible(self, layer_id: str, visible: bool) -> None:
        self.layers.set_visible(layer_id, visible)

    @when_idle
    def set_layer_opacity(self, layer_id: str, opacity: float) -> None:
        self.layers.set_opacity(layer_id, opacity)

    @when_idle
    def toggle_sub_layer(self, layer_id: str, value: str) -> list[str]:
        return self.layers.toggle_sub_layer(layer_id, value)

    # -- search and locate --------------------------------------------------

    @when_idle
    def locate(self, record_id: str) -> bool:
        record = self.ctx.store.get(record_id)
        if record is None:
            raise KeyError(f"Record not found: {record_id}")
        target = locate_target(record)
        if target is None:
            return False
        if target.bounds is not None:
            self.surface.fit_bounds(target.bounds, target.padding)
        else:
            self.surface.set_view(target.center, target.zoom)
        return True

    @when_idle
    def search(self, query: str) -> Record | None:
        record = search_visible(self.ctx, query)
        if record is None:
            self.bus.notify(Notice(
                "Not Found", "No visible feature matches your search.", "destructive",
            ))
            return None
        self.locate(record.id)
        schema = self.ctx.schema(record.table_id)
        self.bus.notify(Notice("Found", f"Located record in {schema.name if schema else record.table_id}"))
        return record

    # -- export -------------------------------------------------------------

    async def export(self, directory: Path, title: str, description: str = "") -> Path | None:
        """Write the print document; None if it failed (a notice says why)."""
        try:
            path = await self.printer.export(directory, title, description)
        except EditorError as e:
            self._notify_error(e)
            return None
        self.bus.notify(Notice("Export Complete", f"PDF written to {path.name}.", "success"))
        return path

    # -- notices and state --------------------------------------------------

    def _notify_error(self, error: EditorError) -> None:
        logger.warning(f"{error.title}: {error.message}")
        self.bus.notify(Notice(error.title, error.message, error.variant))

    def state(self) -> dict:
        """Snapshot of what the surrounding application shows."""
        pending = self.attributes.pending
        return {
            "mode": self.ctx.tool_mode.value,
            "active_layer_id": self.ctx.active_layer_id,
            "geometry_kind": self.ctx.geometry_kind.value,
            "visible_layers": list(self.ctx.visible_layers),
            "layer_order": list(self.layers.feature_order),
            "base_order": list(self.layers.base_order),
            "drawing": {
                "vertices": [list(v) for v in self.drawing.vertices],
                "redo": len(self.drawing.redo_buffer),
            },
            "history": {
                "undo": len(self.moves.history.undo_stack),
                "redo": len(self.moves.history.redo_stack),
            },
            "query_results": [r.to_dict() for r in self.query.results],
            "measure": self.measure.readout().to_dict(),
            "print_bounds": (
                self.printer.viewport.bounds.to_list() if self.printer.viewport else None
            ),
            "pending_entry": (
                pending.to_dict(self.ctx.schema(pending.table_id)) if pending else None
            ),
        }
