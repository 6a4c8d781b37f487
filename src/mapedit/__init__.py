"""Map editing core: tool modes, drawing, measurement, box query,
move history, layer ordering and print export over a rendering surface.

The editor reads and writes records through a RecordStore and draws on a
RenderingSurface; everything else lives here.
"""

from mapedit.context import EditorContext, GeometryKind, ToolMode
from mapedit.controller import ToolModeController
from mapedit.events import EventBus, Notice
from mapedit.records import (
    FieldDefinition,
    InMemoryRecordStore,
    Record,
    RecordStore,
    SubLayerConfig,
    SubLayerRule,
    TableSchema,
)
from mapedit.surface import HeadlessSurface, RenderingSurface

__all__ = [
    "EditorContext",
    "EventBus",
    "FieldDefinition",
    "GeometryKind",
    "HeadlessSurface",
    "InMemoryRecordStore",
    "Notice",
    "Record",
    "RecordStore",
    "RenderingSurface",
    "SubLayerConfig",
    "SubLayerRule",
    "TableSchema",
    "ToolMode",
    "ToolModeController",
]
