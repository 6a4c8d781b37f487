"""Shared editor state read by every subsystem's event handlers.

EditorContext is the single mutable snapshot of "what the user has
selected": tool mode, target layer, drawing kind, visible layers and
sub-layer filters.  It is updated synchronously on every change, before
the next pointer event is dispatched, so handlers never see stale values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mapedit.records import Record, RecordStore, TableSchema


class ToolMode(str, Enum):
    """The single active interaction behavior."""
    SELECT = "select"
    ADD = "add"
    MOVE = "move"
    MEASURE = "measure"
    FILTER = "filter"
    PRINT = "print"


class GeometryKind(str, Enum):
    """Geometry a drawing session produces."""
    POINT = "point"
    LINE = "line"
    POLYGON = "polygon"


CURSORS = {
    ToolMode.SELECT: "",
    ToolMode.ADD: "crosshair",
    ToolMode.MEASURE: "crosshair",
    ToolMode.FILTER: "crosshair",
    ToolMode.MOVE: "move",
    ToolMode.PRINT: "move",
}


@dataclass
class EditorContext:
    """Mutable snapshot shared by the controller and its subsystems.

    Attributes:
        store: Record store the editor reads and writes through.
        schemas: Known tables; spatial ones are feature layers.
        tool_mode: Currently active tool.
        active_layer_id: Target layer for new features.
        geometry_kind: Kind produced by the add tool.
        visible_layers: Ids of feature layers currently shown.
        hidden_sub_layers: Layer id -> category values hidden from view.
        feature_defaults: Attribute values pre-filled on new features.
    """

    store: RecordStore
    schemas: list[TableSchema] = field(default_factory=list)
    tool_mode: ToolMode = ToolMode.SELECT
    active_layer_id: str | None = None
    geometry_kind: GeometryKind = GeometryKind.POINT
    visible_layers: list[str] = field(default_factory=list)
    hidden_sub_layers: dict[str, list[str]] = field(default_factory=dict)
    feature_defaults: dict[str, Any] = field(default_factory=dict)

    def schema(self, table_id: str | None) -> TableSchema | None:
        for schema in self.schemas:
            if schema.id == table_id:
                return schema
        return None

    @property
    def active_schema(self) -> TableSchema | None:
        return self.schema(self.active_layer_id)

    def spatial_schema_ids(self) -> list[str]:
        return [s.id for s in self.schemas if s.is_spatial]

    def is_visible(self, table_id: str) -> bool:
        return table_id in self.visible_layers

    def visible_records(self) -> list[Record]:
        """Located records whose layer is currently shown."""
        return [
            r for r in self.store.list()
            if r.geometry is not None and r.table_id in self.visible_layers
        ]
