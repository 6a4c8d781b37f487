"""Map editor API: one headless editing session driven over HTTP.

The surrounding application forwards pointer, keyboard and drag events
and issues commands (commit, undo, save, export).  Every response carries
the notices the editor published while handling the request.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, Field

from app.config import settings
from mapedit.context import CURSORS, GeometryKind, ToolMode
from mapedit.controller import ToolModeController
from mapedit.errors import ExportInProgress
from mapedit.events import NOTICE, Notice, drain
from mapedit.geometry import geometry_to_dict
from mapedit.records import (
    FieldDefinition,
    Record,
    SubLayerConfig,
    SubLayerRule,
    TableSchema,
)
from mapedit.surface import DragHandle
from mapedit.tools.measure import MeasureMode

router = APIRouter(prefix="/api/editor", tags=["editor"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class ModeRequest(BaseModel):
    mode: ToolMode


class TargetRequest(BaseModel):
    layer_id: Optional[str] = None


class GeometryKindRequest(BaseModel):
    kind: GeometryKind


class PointerEvent(BaseModel):
    """A map pointer event at a lat/lng."""
    event: Literal["click", "dblclick", "mousedown", "mousemove", "mouseup"]
    lat: float
    lng: float


class KeyEvent(BaseModel):
    key: str


class DragEvent(BaseModel):
    """Drag of a handle; record_id "__print__" is the print frame handle."""
    phase: Literal["start", "move", "end"]
    record_id: str
    kind: Literal["marker", "vertex", "center"]
    index: int = 0
    lat: float
    lng: float


class MeasureModeRequest(BaseModel):
    mode: MeasureMode


class ReorderRequest(BaseModel):
    dragged: str
    target: str
    base: bool = False


class VisibilityRequest(BaseModel):
    visible: bool


class OpacityRequest(BaseModel):
    opacity: float


class AttributeValues(BaseModel):
    values: dict[str, Any] = Field(default_factory=dict)


class DefaultsRequest(BaseModel):
    defaults: dict[str, Any] = Field(default_factory=dict)


class FieldModel(BaseModel):
    name: str
    label: str
    type: str = "text"
    required: bool = False


class SubLayerRuleModel(BaseModel):
    value: str
    color: str
    label: Optional[str] = None


class SubLayerModel(BaseModel):
    enabled: bool = True
    field_name: str
    rules: list[SubLayerRuleModel] = Field(default_factory=list)


class SchemaRequest(BaseModel):
    """Register a table as a feature layer."""
    id: str
    name: str
    geometry_type: str = "point"
    fields: list[FieldModel] = Field(default_factory=list)
    color: str = "#3b82f6"
    sub_layers: Optional[SubLayerModel] = None
    hover_fields: list[str] = Field(default_factory=list)
    visible: bool = True


class ExportRequest(BaseModel):
    title: Optional[str] = None
    description: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_editor(request: Request) -> ToolModeController:
    """Retrieve the editing session from app state."""
    editor = getattr(request.app.state, "editor", None)
    if editor is None:
        raise HTTPException(503, "Editor session not available")
    return editor


def _get_idle_editor(request: Request) -> ToolModeController:
    """Retrieve the session for a state-changing command; 409 while exporting."""
    editor = _get_editor(request)
    if editor.exporting:
        error = ExportInProgress()
        raise _conflict([Notice(error.title, error.message, error.variant).to_dict()])
    return editor


@contextmanager
def _notices(editor: ToolModeController):
    """Collect notices published while the block runs."""
    q = editor.bus.subscribe()
    collected: list[dict] = []
    try:
        yield collected
    finally:
        editor.bus.unsubscribe(q)
        collected.extend(m["data"] for m in drain(q) if m["type"] == NOTICE)


@contextmanager
def _http_errors():
    """Map programming errors from the core to HTTP status codes."""
    try:
        yield
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]) if e.args else "Not found")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _conflict(notices: list[dict]) -> HTTPException:
    return HTTPException(status_code=409, detail={"notices": notices})


def _record_dict(record: Record) -> dict:
    return {
        "id": record.id,
        "table_id": record.table_id,
        "geometry": geometry_to_dict(record.geometry),
        "attributes": dict(record.attributes),
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


# ---------------------------------------------------------------------------
# Session state and mode
# ---------------------------------------------------------------------------

@router.get("/state")
async def get_state(request: Request):
    return _get_editor(request).state()


@router.put("/mode")
async def set_mode(body: ModeRequest, request: Request):
    editor = _get_idle_editor(request)
    with _notices(editor) as notices:
        editor.set_mode(body.mode)
    return {"mode": editor.mode.value, "cursor": CURSORS[editor.mode], "notices": notices}


@router.put("/target")
async def set_target(body: TargetRequest, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        editor.set_target_layer(body.layer_id)
    return {
        "active_layer_id": editor.ctx.active_layer_id,
        "geometry_kind": editor.ctx.geometry_kind.value,
    }


@router.put("/geometry-kind")
async def set_geometry_kind(body: GeometryKindRequest, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        editor.set_geometry_kind(body.kind)
    return {"geometry_kind": editor.ctx.geometry_kind.value}


@router.put("/defaults")
async def set_defaults(body: DefaultsRequest, request: Request):
    editor = _get_idle_editor(request)
    editor.set_feature_defaults(body.defaults)
    return {"defaults": dict(editor.ctx.feature_defaults)}


# ---------------------------------------------------------------------------
# Input events
# ---------------------------------------------------------------------------

@router.post("/pointer")
async def pointer(body: PointerEvent, request: Request):
    """Forward a pointer event to the active tool."""
    editor = _get_editor(request)
    latlng = (body.lat, body.lng)
    with _notices(editor) as notices:
        getattr(editor, body.event)(latlng)
    return {"mode": editor.mode.value, "notices": notices}


@router.post("/key")
async def key(body: KeyEvent, request: Request):
    editor = _get_editor(request)
    with _notices(editor) as notices:
        consumed = editor.key_press(body.key)
    return {"consumed": consumed, "notices": notices}


@router.post("/drag")
async def drag(body: DragEvent, request: Request):
    editor = _get_editor(request)
    handle = DragHandle(body.record_id, body.kind, body.index)
    latlng = (body.lat, body.lng)
    action = None
    with _notices(editor) as notices, _http_errors():
        if body.phase == "start":
            editor.drag_start(handle, latlng)
        elif body.phase == "move":
            editor.drag(handle, latlng)
        else:
            action = editor.drag_end(handle, latlng)
    return {"action": action.to_dict() if action else None, "notices": notices}


# ---------------------------------------------------------------------------
# Drawing
# ---------------------------------------------------------------------------

@router.post("/drawing/commit")
async def commit_drawing(request: Request):
    editor = _get_idle_editor(request)
    with _notices(editor) as notices:
        geometry = editor.commit_drawing()
    if geometry is None:
        raise _conflict(notices)
    pending = editor.pending_entry
    return {
        "geometry": geometry_to_dict(geometry),
        "pending_entry": pending.to_dict(editor.ctx.schema(pending.table_id)) if pending else None,
        "notices": notices,
    }


@router.post("/drawing/cancel")
async def cancel_drawing(request: Request):
    _get_idle_editor(request).cancel_drawing()
    return {"status": "cancelled"}


@router.post("/drawing/undo")
async def undo_vertex(request: Request):
    editor = _get_idle_editor(request)
    return {"changed": editor.undo_vertex(), "vertices": [list(v) for v in editor.drawing.vertices]}


@router.post("/drawing/redo")
async def redo_vertex(request: Request):
    editor = _get_idle_editor(request)
    return {"changed": editor.redo_vertex(), "vertices": [list(v) for v in editor.drawing.vertices]}


# ---------------------------------------------------------------------------
# Attribute entry and records
# ---------------------------------------------------------------------------

@router.get("/attributes")
async def get_pending_entry(request: Request):
    editor = _get_editor(request)
    pending = editor.pending_entry
    if pending is None:
        raise HTTPException(status_code=404, detail="No attribute entry is open")
    return pending.to_dict(editor.ctx.schema(pending.table_id))


@router.post("/attributes")
async def submit_attributes(body: AttributeValues, request: Request):
    editor = _get_idle_editor(request)
    if editor.pending_entry is None:
        raise HTTPException(status_code=404, detail="No attribute entry is open")
    with _notices(editor) as notices, _http_errors():
        record = editor.submit_attributes(body.values)
    if record is None:
        raise _conflict(notices)
    return {"record": _record_dict(record), "notices": notices}


@router.delete("/attributes")
async def cancel_attributes(request: Request):
    _get_idle_editor(request).cancel_attributes()
    return {"status": "cancelled"}


@router.get("/records")
async def list_records(request: Request, table_id: Optional[str] = None):
    editor = _get_editor(request)
    return [_record_dict(r) for r in editor.ctx.store.list(table_id)]


@router.post("/records/{record_id}/edit")
async def edit_record(record_id: str, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        entry = editor.edit_record(record_id)
    return entry.to_dict(editor.ctx.schema(entry.table_id))


@router.post("/records/{record_id}/locate")
async def locate_record(record_id: str, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        located = editor.locate(record_id)
    return {
        "located": located,
        "center": list(editor.surface.get_center()),
        "zoom": editor.surface.get_zoom(),
    }


@router.get("/search")
async def search(request: Request, q: str):
    editor = _get_idle_editor(request)
    with _notices(editor) as notices:
        record = editor.search(q)
    if record is None:
        raise HTTPException(status_code=404, detail={"notices": notices})
    return {"record": _record_dict(record), "notices": notices}


# ---------------------------------------------------------------------------
# Move history
# ---------------------------------------------------------------------------

@router.post("/history/undo")
async def undo_move(request: Request):
    action = _get_idle_editor(request).undo_move()
    return {"action": action.to_dict() if action else None}


@router.post("/history/redo")
async def redo_move(request: Request):
    action = _get_idle_editor(request).redo_move()
    return {"action": action.to_dict() if action else None}


@router.post("/history/save")
async def save_moves(request: Request):
    editor = _get_idle_editor(request)
    with _notices(editor) as notices:
        count = editor.save_moves()
    return {"saved": count, "notices": notices}


# ---------------------------------------------------------------------------
# Measurement and box query
# ---------------------------------------------------------------------------

@router.get("/measure")
async def get_measure(request: Request):
    return _get_editor(request).measure_readout().to_dict()


@router.put("/measure/mode")
async def set_measure_mode(body: MeasureModeRequest, request: Request):
    editor = _get_idle_editor(request)
    if not editor.set_measure_mode(body.mode):
        raise HTTPException(status_code=409, detail="Clear the measurement before switching mode")
    return editor.measure_readout().to_dict()


@router.delete("/measure")
async def clear_measure(request: Request):
    editor = _get_idle_editor(request)
    editor.clear_measure()
    return editor.measure_readout().to_dict()


@router.get("/query")
async def get_query_results(request: Request):
    return [r.to_dict() for r in _get_editor(request).query_results]


@router.delete("/query")
async def clear_query(request: Request):
    _get_idle_editor(request).clear_query()
    return {"status": "cleared"}


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

@router.get("/layers")
async def get_layers(request: Request):
    editor = _get_editor(request)
    layers = editor.layers
    return {
        "features": [
            {
                "id": lid,
                "name": editor.ctx.schema(lid).name,
                "visible": editor.ctx.is_visible(lid),
                "opacity": layers.opacity.get(lid, 1.0),
                "hidden_sub_layers": list(editor.ctx.hidden_sub_layers.get(lid, [])),
            }
            for lid in layers.reconcile()
        ],
        "base": [
            {
                "id": lid,
                "name": layers.base_layers[lid].name,
                "visible": layers.base_layers[lid].visible,
                "opacity": layers.base_layers[lid].opacity,
                "z_index": layers.tiles[lid].z_index,
            }
            for lid in layers.base_order
        ],
    }


@router.post("/layers")
async def add_layer(body: SchemaRequest, request: Request):
    """Register a table schema; it appears on top of the feature layers."""
    editor = _get_idle_editor(request)
    if editor.ctx.schema(body.id) is not None:
        raise HTTPException(status_code=409, detail=f"Layer already exists: {body.id}")
    with _http_errors():
        schema = TableSchema(
            id=body.id,
            name=body.name,
            geometry_type=body.geometry_type,
            fields=[FieldDefinition(**f.model_dump()) for f in body.fields],
            color=body.color,
            sub_layers=(
                SubLayerConfig(
                    enabled=body.sub_layers.enabled,
                    field_name=body.sub_layers.field_name,
                    rules=[SubLayerRule(**r.model_dump()) for r in body.sub_layers.rules],
                )
                if body.sub_layers else None
            ),
            hover_fields=list(body.hover_fields),
        )
    editor.ctx.schemas.append(schema)
    if body.visible and schema.is_spatial:
        editor.ctx.visible_layers.append(schema.id)
    editor.render_features()
    logger.info(f"Registered layer {schema.id} ({schema.geometry_type})")
    return {"id": schema.id, "order": list(editor.layers.feature_order)}


@router.post("/layers/reorder")
async def reorder_layers(body: ReorderRequest, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        if body.base:
            order = editor.reorder_base_layers(body.dragged, body.target)
        else:
            order = editor.reorder_layers(body.dragged, body.target)
    return {"order": order}


@router.put("/layers/{layer_id}/visibility")
async def set_visibility(layer_id: str, body: VisibilityRequest, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        if layer_id in editor.layers.base_layers:
            editor.layers.set_base_visible(layer_id, body.visible)
        else:
            editor.set_layer_visible(layer_id, body.visible)
    return {"id": layer_id, "visible": body.visible}


@router.put("/layers/{layer_id}/opacity")
async def set_opacity(layer_id: str, body: OpacityRequest, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        editor.set_layer_opacity(layer_id, body.opacity)
    return {"id": layer_id, "opacity": body.opacity}


@router.post("/layers/{layer_id}/sub-layers/{value}/toggle")
async def toggle_sub_layer(layer_id: str, value: str, request: Request):
    editor = _get_idle_editor(request)
    with _http_errors():
        hidden = editor.toggle_sub_layer(layer_id, value)
    return {"id": layer_id, "hidden": hidden}


# ---------------------------------------------------------------------------
# Print export
# ---------------------------------------------------------------------------

@router.post("/print/export")
async def export_pdf(body: ExportRequest, request: Request):
    """Render the print frame to a PDF under the export directory."""
    editor = _get_editor(request)
    if editor.mode != ToolMode.PRINT:
        raise HTTPException(status_code=409, detail="Switch to print mode first")
    title = body.title or settings.export_title
    with _notices(editor) as notices:
        export_dir = getattr(request.app.state, "export_dir", settings.export_dir)
        path = await editor.export(export_dir, title, body.description)
    if path is None:
        raise _conflict(notices)
    return {"path": str(path), "filename": path.name, "notices": notices}

