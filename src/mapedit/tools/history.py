"""Feature move editing and its undo/redo history.

In move mode every feature exposes drag handles: a marker for points,
one handle per vertex for lines and polygons, and a center handle that
moves a whole polygon.  ``drag_start`` snapshots the geometry before
anything changes; ``drag_end`` writes the moved geometry to the store and
records the before/after pair.  Snapshots are keyed per handle so
overlapping drags each get their own pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from mapedit.context import EditorContext, ToolMode
from mapedit.geometry import (
    Geometry,
    LineString,
    Point,
    Polygon,
    bounds_center,
    copy_geometry,
    geometry_to_dict,
    translate,
    with_vertex,
)
from mapedit.records import Record
from mapedit.surface import DragHandle, RenderingSurface
from mapedit.tools.base import LatLng, Subsystem


@dataclass(frozen=True)
class HistoryAction:
    """One committed move of one record."""

    record_id: str
    previous_geometry: Geometry
    new_geometry: Geometry

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "previous_geometry": geometry_to_dict(self.previous_geometry),
            "new_geometry": geometry_to_dict(self.new_geometry),
        }


@dataclass
class MoveHistory:
    """Linear undo/redo stacks; a new action always empties redo."""

    undo_stack: list[HistoryAction] = field(default_factory=list)
    redo_stack: list[HistoryAction] = field(default_factory=list)

    def push(self, action: HistoryAction) -> None:
        self.undo_stack.append(action)
        self.redo_stack.clear()

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)


def handles_for(record: Record) -> list[tuple[DragHandle, LatLng]]:
    """Drag handles and their positions for one record in move mode."""
    geometry = record.geometry
    if geometry is None:
        return []
    if isinstance(geometry, Point):
        return [(DragHandle(record.id, "marker"), geometry.coordinates)]
    if isinstance(geometry, (LineString, Polygon)):
        out = [
            (DragHandle(record.id, "vertex", i), c)
            for i, c in enumerate(geometry.coordinates)
        ]
        if isinstance(geometry, Polygon) and geometry.coordinates:
            out.append((DragHandle(record.id, "center"), bounds_center(geometry.coordinates)))
        return out
    raise TypeError(f"Not a geometry: {geometry!r}")


def moved_geometry(geometry: Geometry, handle: DragHandle,
                   start: LatLng | None, end: LatLng) -> Geometry:
    """Geometry after dragging ``handle`` from ``start`` to ``end``.

    Raises:
        ValueError: The handle does not fit the geometry (wrong kind or a
            vertex index out of range).
    """
    end = (float(end[0]), float(end[1]))
    if handle.kind == "marker":
        if not isinstance(geometry, Point):
            raise ValueError(f"Marker handle on {geometry.type}")
        return Point(end)
    if handle.kind == "vertex":
        return with_vertex(geometry, handle.index, end)
    if handle.kind == "center":
        if not isinstance(geometry, Polygon):
            raise ValueError(f"Center handle on {geometry.type}")
        if start is None:
            raise ValueError("Center drag ended without a start position")
        return translate(geometry, end[0] - start[0], end[1] - start[1])
    raise ValueError(f"Unknown handle kind: {handle.kind}")


class FeatureMoveEngine(Subsystem):
    """Drag-to-move editing with undo, redo and save checkpoints."""

    mode = ToolMode.MOVE

    def __init__(
        self,
        ctx: EditorContext,
        surface: RenderingSurface,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(ctx, surface)
        self.on_change = on_change or (lambda: None)
        self.history = MoveHistory()
        self._drags: dict[str, tuple[Geometry, LatLng | None]] = {}

    def on_enter_mode(self, mode: ToolMode, previous: ToolMode) -> None:
        self._drags.clear()
        if mode != ToolMode.MOVE:
            self.history.clear()

    # -- drag lifecycle -----------------------------------------------------

    def drag_start(self, handle: DragHandle, latlng: LatLng | None = None) -> None:
        record = self.ctx.store.get(handle.record_id)
        if record is None or record.geometry is None:
            return
        if latlng is None:
            latlng = dict((h.key, pos) for h, pos in handles_for(record)).get(handle.key)
        self._drags[handle.key] = (copy_geometry(record.geometry), latlng)

    def drag_end(self, handle: DragHandle, latlng: LatLng) -> HistoryAction | None:
        """Commit the drag: update the record and push the move."""
        record = self.ctx.store.get(handle.record_id)
        snapshot, start = self._drags.pop(handle.key, (None, None))
        if record is None or record.geometry is None:
            return None
        before = snapshot if snapshot is not None else copy_geometry(record.geometry)
        after = moved_geometry(before, handle, start, latlng)

        action = HistoryAction(record.id, before, copy_geometry(after))
        self.ctx.store.update(record.with_geometry(after))
        self.history.push(action)
        logger.info(f"Moved {handle.kind} of record {record.id}")
        self.on_change()
        return action

    # -- history ------------------------------------------------------------

    def undo(self) -> HistoryAction | None:
        if not self.history.undo_stack:
            return None
        action = self.history.undo_stack[-1]
        record = self.ctx.store.get(action.record_id)
        if record is None:
            return None
        self.ctx.store.update(record.with_geometry(copy_geometry(action.previous_geometry)))
        self.history.undo_stack.pop()
        self.history.redo_stack.append(action)
        logger.info(f"Undid move of record {action.record_id}")
        self.on_change()
        return action

    def redo(self) -> HistoryAction | None:
        if not self.history.redo_stack:
            return None
        action = self.history.redo_stack[-1]
        record = self.ctx.store.get(action.record_id)
        if record is None:
            return None
        self.ctx.store.update(record.with_geometry(copy_geometry(action.new_geometry)))
        self.history.redo_stack.pop()
        self.history.undo_stack.append(action)
        logger.info(f"Redid move of record {action.record_id}")
        self.on_change()
        return action

    def save(self) -> int:
        """Checkpoint: forget both stacks. Returns how many moves were kept."""
        count = len(self.history.undo_stack)
        self.history.clear()
        logger.info(f"Saved {count} geometry edits")
        return count

    def key_press(self, key: str) -> bool:
        if key == "ctrl+z":
            self.undo()
        elif key == "ctrl+y":
            self.redo()
        else:
            return False
        return True
