"""Layer order and visibility: keeps the surface stack in sidebar order.

Feature layers are listed top to bottom in the sidebar, while the
surface stacks last-added on top.  The coordinator therefore adds
feature groups in reverse sidebar order, and when a layer's content
changes it removes and re-adds that group together with every group
that must stay above it.

Base (raster) layers keep their own order, bottom to top, and are
stacked by z-index (position in that order) instead of add/remove.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from mapedit.context import EditorContext, ToolMode
from mapedit.geometry import LineString, Point, Polygon
from mapedit.records import Record, TableSchema
from mapedit.surface import (
    DragHandle,
    LayerGroup,
    RenderElement,
    RenderingSurface,
    TileLayer,
)

HandleProvider = Callable[[Record], list[tuple[DragHandle, tuple[float, float]]]]


@dataclass
class BaseLayer:
    """A raster tile layer offered as map background."""

    layer_id: str
    name: str
    url: str
    opacity: float = 1.0
    visible: bool = True


def reorder(order: list[str], dragged: str, target: str) -> list[str]:
    """Move ``dragged`` into the position ``target`` held.

    The dragged id is removed and reinserted at the target's index in the
    original order; the relative order of every other id is unchanged.

    Raises:
        KeyError: If either id is not in ``order``.
    """
    if dragged not in order:
        raise KeyError(f"Layer not in order: {dragged}")
    if target not in order:
        raise KeyError(f"Layer not in order: {target}")
    if dragged == target:
        return list(order)
    target_index = order.index(target)
    out = [lid for lid in order if lid != dragged]
    out.insert(target_index, dragged)
    return out


def _check_opacity(opacity: float) -> float:
    opacity = float(opacity)
    if not 0.0 <= opacity <= 1.0:
        raise ValueError(f"Opacity must be within [0, 1], got {opacity}")
    return opacity


class LayerOrderCoordinator:
    """Reconciles desired layer order, opacity and visibility with the surface."""

    def __init__(
        self,
        ctx: EditorContext,
        surface: RenderingSurface,
        base_layers: list[BaseLayer] | None = None,
        overlays: list[LayerGroup] | None = None,
        handle_provider: HandleProvider | None = None,
    ) -> None:
        self.ctx = ctx
        self.surface = surface
        self.overlays = overlays or []
        self.handle_provider = handle_provider
        self.feature_order: list[str] = []
        self.opacity: dict[str, float] = {}
        self.groups: dict[str, LayerGroup] = {}
        self.add_sequence: list[str] = []

        self.base_layers: dict[str, BaseLayer] = {}
        self.base_order: list[str] = []
        self.tiles: dict[str, TileLayer] = {}
        for layer in base_layers or []:
            self.add_base_layer(layer)

    # -- feature layer order ------------------------------------------------

    def reconcile(self) -> list[str]:
        """Prepend newly discovered layers and drop ones that disappeared."""
        known = self.ctx.spatial_schema_ids()
        new = [lid for lid in known if lid not in self.feature_order]
        kept = [lid for lid in self.feature_order if lid in known]
        if new:
            logger.debug(f"New feature layers on top: {new}")
        self.feature_order = new + kept
        for lid in list(self.groups):
            if lid not in known:
                self.surface.remove_layer(self.groups.pop(lid))
        return list(self.feature_order)

    def reorder_features(self, dragged: str, target: str) -> list[str]:
        self.reconcile()
        self.feature_order = reorder(self.feature_order, dragged, target)
        logger.info(f"Feature layer order: {self.feature_order}")
        self.sync()
        return list(self.feature_order)

    def render_add_sequence(self) -> list[str]:
        """Order in which groups must be added so sidebar-top is render-top."""
        return list(reversed(self.feature_order))

    # -- visibility, opacity, sub-layers ------------------------------------

    def set_visible(self, layer_id: str, visible: bool) -> None:
        if self.ctx.schema(layer_id) is None:
            raise KeyError(f"Layer not found: {layer_id}")
        layers = [lid for lid in self.ctx.visible_layers if lid != layer_id]
        if visible:
            layers.append(layer_id)
        self.ctx.visible_layers = layers
        self.refresh(layer_id)

    def set_opacity(self, layer_id: str, opacity: float) -> None:
        """Per-layer opacity in [0, 1], for feature or base layers."""
        opacity = _check_opacity(opacity)
        if layer_id in self.base_layers:
            self.base_layers[layer_id].opacity = opacity
            self.tiles[layer_id].set_opacity(opacity)
            return
        if self.ctx.schema(layer_id) is None:
            raise KeyError(f"Layer not found: {layer_id}")
        self.opacity[layer_id] = opacity
        if layer_id in self.groups:
            self.groups[layer_id].opacity = opacity

    def toggle_sub_layer(self, layer_id: str, value: str) -> list[str]:
        """Hide or show one category of a layer. Returns the hidden values."""
        hidden = list(self.ctx.hidden_sub_layers.get(layer_id, []))
        value = str(value)
        if value in hidden:
            hidden.remove(value)
        else:
            hidden.append(value)
        self.ctx.hidden_sub_layers = {**self.ctx.hidden_sub_layers, layer_id: hidden}
        self.refresh(layer_id)
        return hidden

    def is_filtered_out(self, schema: TableSchema, record: Record) -> bool:
        """True if a hidden sub-layer category covers the record."""
        cfg = schema.sub_layers
        if cfg is None or not cfg.enabled or not cfg.field_name:
            return False
        value = record.attributes.get(cfg.field_name)
        return str(value) in self.ctx.hidden_sub_layers.get(schema.id, [])

    @staticmethod
    def feature_color(schema: TableSchema, record: Record) -> str:
        cfg = schema.sub_layers
        if cfg is not None and cfg.enabled and cfg.field_name:
            rule = cfg.rule_for(record.attributes.get(cfg.field_name))
            if rule is not None:
                return rule.color
        return schema.color

    # -- base layers --------------------------------------------------------

    def add_base_layer(self, layer: BaseLayer) -> None:
        """Register a base layer on top of the base order."""
        _check_opacity(layer.opacity)
        self.base_layers[layer.layer_id] = layer
        if layer.layer_id not in self.base_order:
            self.base_order.append(layer.layer_id)
        self.tiles[layer.layer_id] = TileLayer(layer.layer_id, layer.url, layer.opacity)

    def reorder_base(self, dragged: str, target: str) -> list[str]:
        self.base_order = reorder(self.base_order, dragged, target)
        self.sync_base()
        return list(self.base_order)

    def set_base_visible(self, layer_id: str, visible: bool) -> None:
        if layer_id not in self.base_layers:
            raise KeyError(f"Base layer not found: {layer_id}")
        self.base_layers[layer_id].visible = visible
        self.sync_base()

    def sync_base(self) -> None:
        """Assign z-index = position in base order (0 = bottom)."""
        for z_index, lid in enumerate(self.base_order):
            tile = self.tiles[lid]
            tile.set_z_index(z_index)
            tile.set_opacity(self.base_layers[lid].opacity)
            if self.base_layers[lid].visible:
                self.surface.add_layer(tile)
            else:
                self.surface.remove_layer(tile)

    # -- synchronisation ----------------------------------------------------

    def sync(self) -> None:
        """Rebuild every feature group and restack all of them."""
        self.reconcile()
        for lid in self.feature_order:
            self._render_group(lid)
        self._restack(self.feature_order)
        self.sync_base()

    def refresh(self, layer_id: str | None = None) -> None:
        """Re-render one layer (all when None) and restack from it upwards."""
        self.reconcile()
        if layer_id is None or layer_id not in self.feature_order:
            self.sync()
            return
        self._render_group(layer_id)
        idx = self.feature_order.index(layer_id)
        self._restack(self.feature_order[: idx + 1])

    def _restack(self, top_slice: list[str]) -> None:
        """Remove and re-add ``top_slice`` (sidebar order) bottom-first, then overlays."""
        sequence = list(reversed(top_slice))
        for lid in sequence:
            self.surface.remove_layer(self.groups[lid])
        for lid in sequence:
            self.surface.add_layer(self.groups[lid])
        for overlay in self.overlays:
            self.surface.remove_layer(overlay)
            self.surface.add_layer(overlay)
        self.add_sequence = sequence

    def _render_group(self, layer_id: str) -> LayerGroup:
        group = self.groups.get(layer_id)
        if group is None:
            group = LayerGroup(layer_id)
            self.groups[layer_id] = group
        group.opacity = self.opacity.get(layer_id, 1.0)
        group.clear_layers()

        schema = self.ctx.schema(layer_id)
        if schema is None or not self.ctx.is_visible(layer_id):
            return group
        move_mode = self.ctx.tool_mode == ToolMode.MOVE
        for record in self.ctx.store.list(layer_id):
            if record.geometry is None or self.is_filtered_out(schema, record):
                continue
            color = self.feature_color(schema, record)
            group.add(self._feature_element(schema, record, color, move_mode))
            if move_mode and self.handle_provider is not None:
                for handle, position in self.handle_provider(record):
                    if handle.kind == "marker":
                        continue
                    group.add(RenderElement(
                        "marker", [position],
                        {"color": color, "fill_color": "#ffffff", "fill_opacity": 1.0,
                         "radius": 10 if handle.kind == "center" else 5},
                        handle=handle, record_id=record.id,
                    ))
        return group

    def _feature_element(self, schema: TableSchema, record: Record,
                         color: str, move_mode: bool) -> RenderElement:
        geometry = record.geometry
        tooltip = self.tooltip(schema, record)
        if isinstance(geometry, Point):
            if move_mode:
                return RenderElement(
                    "marker", [geometry.coordinates],
                    {"color": "#ffffff", "fill_color": color, "fill_opacity": 1.0, "radius": 8},
                    text=tooltip, handle=DragHandle(record.id, "marker"), record_id=record.id,
                )
            return RenderElement(
                "circle_marker", [geometry.coordinates],
                {"radius": 8, "fill_color": color, "color": "#ffffff", "weight": 2,
                 "opacity": 1.0, "fill_opacity": 0.8},
                text=tooltip, record_id=record.id,
            )
        if isinstance(geometry, LineString):
            return RenderElement(
                "polyline", list(geometry.coordinates), {"color": color, "weight": 4},
                text=tooltip, record_id=record.id,
            )
        if isinstance(geometry, Polygon):
            return RenderElement(
                "polygon", list(geometry.coordinates),
                {"color": color, "fill_color": color, "fill_opacity": 0.4},
                text=tooltip, record_id=record.id,
            )
        raise TypeError(f"Not a geometry: {geometry!r}")

    @staticmethod
    def tooltip(schema: TableSchema, record: Record) -> str | None:
        """Hover text from the schema's hover fields, or None."""
        labels = {f.name: f.label for f in schema.fields}
        lines = []
        for name in schema.hover_fields:
            value: Any = record.attributes.get(name)
            if value:
                lines.append(f"{labels.get(name, name)}: {value}")
        return "\n".join(lines) or None
