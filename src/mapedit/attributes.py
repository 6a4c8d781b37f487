"""Attribute entry: turning committed geometry into a stored record.

A commit in add mode opens an AttributeEntryRequest: the pending
geometry plus the target schema and pre-filled defaults.  The
surrounding UI collects values and submits them; required fields are
checked before anything reaches the record store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from mapedit.context import EditorContext
from mapedit.errors import InvalidAttributes, NoTargetLayer
from mapedit.events import ATTRIBUTE_ENTRY, EventBus
from mapedit.geometry import Geometry, copy_geometry, geometry_to_dict
from mapedit.records import Record, TableSchema, new_record_id, utc_now


@dataclass
class AttributeEntryRequest:
    """Geometry waiting for its attributes.

    Attributes:
        table_id: Table the record belongs to.
        geometry: Geometry to store with the record.
        values: Current form values (defaults or the edited record's).
        record_id: Set when editing an existing record.
    """

    table_id: str
    geometry: Geometry | None
    values: dict[str, Any] = field(default_factory=dict)
    record_id: str | None = None

    @property
    def editing(self) -> bool:
        return self.record_id is not None

    def to_dict(self, schema: TableSchema | None = None) -> dict:
        return {
            "table_id": self.table_id,
            "geometry": geometry_to_dict(self.geometry),
            "values": dict(self.values),
            "record_id": self.record_id,
            "fields": [
                {"name": f.name, "label": f.label, "type": f.type, "required": f.required}
                for f in (schema.fields if schema else [])
            ],
        }


def validate_attributes(schema: TableSchema, values: dict[str, Any]) -> dict[str, str]:
    """Field name -> message for every required field left empty."""
    errors = {}
    for f in schema.fields:
        if f.required and values.get(f.name) in (None, ""):
            errors[f.name] = f"{f.label} is required"
    return errors


class AttributeEntry:
    """Holds at most one pending request and commits it to the store."""

    def __init__(
        self,
        ctx: EditorContext,
        bus: EventBus | None = None,
        on_commit: Callable[[Record], None] | None = None,
    ) -> None:
        self.ctx = ctx
        self.bus = bus
        self.on_commit = on_commit or (lambda record: None)
        self.pending: AttributeEntryRequest | None = None

    def open_create(self, geometry: Geometry) -> AttributeEntryRequest:
        schema = self.ctx.active_schema
        if schema is None:
            raise NoTargetLayer("Select a target layer before adding features.")
        self.pending = AttributeEntryRequest(
            table_id=schema.id,
            geometry=copy_geometry(geometry),
            values=dict(self.ctx.feature_defaults),
        )
        self._announce(schema)
        return self.pending

    def open_edit(self, record_id: str) -> AttributeEntryRequest:
        record = self.ctx.store.get(record_id)
        if record is None:
            raise KeyError(f"Record not found: {record_id}")
        self.pending = AttributeEntryRequest(
            table_id=record.table_id,
            geometry=copy_geometry(record.geometry),
            values=dict(record.attributes),
            record_id=record.id,
        )
        self._announce(self.ctx.schema(record.table_id))
        return self.pending

    def submit(self, values: dict[str, Any]) -> Record:
        """Validate and store the pending request.

        Raises:
            ValueError: No request is pending.
            InvalidAttributes: Required values missing; the request stays open.
        """
        request = self.pending
        if request is None:
            raise ValueError("No attribute entry is open")
        schema = self.ctx.schema(request.table_id)
        if schema is None:
            raise KeyError(f"Layer not found: {request.table_id}")
        request.values = dict(values)
        errors = validate_attributes(schema, request.values)
        if errors:
            raise InvalidAttributes(errors)

        if request.editing:
            original = self.ctx.store.get(request.record_id)
            if original is None:
                raise KeyError(f"Record not found: {request.record_id}")
            record = Record(
                id=original.id,
                table_id=original.table_id,
                geometry=request.geometry,
                attributes=request.values,
                created_at=original.created_at,
                updated_at=utc_now(),
            )
            self.ctx.store.update(record)
            logger.info(f"Updated attributes of record {record.id}")
        else:
            now = utc_now()
            record = Record(
                id=new_record_id(),
                table_id=request.table_id,
                geometry=request.geometry,
                attributes=request.values,
                created_at=now,
                updated_at=now,
            )
            self.ctx.store.add(record)
        self.pending = None
        self.on_commit(record)
        return record

    def cancel(self) -> None:
        self.pending = None

    def _announce(self, schema: TableSchema | None) -> None:
        if self.bus is not None and self.pending is not None:
            self.bus.publish(ATTRIBUTE_ENTRY, self.pending.to_dict(schema))
