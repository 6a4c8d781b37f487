"""Records, their table schemas, and the record store the editor writes through.

The editor never owns records.  It reads them from a RecordStore and asks
the store to add, update or delete; every call is treated as atomic and
immediately visible to the next render pass.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from mapedit.geometry import Geometry

GEOMETRY_TYPES = ("point", "line", "polygon", "mixed", "none")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass
class FieldDefinition:
    """One attribute column of a table.

    Attributes:
        name: Key under which values are stored in Record.attributes.
        label: Display label, used in validation messages.
        type: One of "text", "number", "date", "select", "boolean".
        required: Whether attribute entry must supply a value.
    """

    name: str
    label: str
    type: str = "text"
    required: bool = False


@dataclass
class SubLayerRule:
    value: str
    color: str
    label: str | None = None


@dataclass
class SubLayerConfig:
    """Category split of one layer, keyed by the value of ``field_name``."""

    enabled: bool
    field_name: str
    rules: list[SubLayerRule] = field(default_factory=list)

    def rule_for(self, value: Any) -> SubLayerRule | None:
        for rule in self.rules:
            if rule.value == value:
                return rule
        return None


@dataclass
class TableSchema:
    """A feature layer: its geometry type, fields and display settings.

    Attributes:
        id: Table identifier; also the feature layer id on the map.
        name: Human-readable layer name.
        geometry_type: One of GEOMETRY_TYPES.
        fields: Attribute definitions.
        color: Default feature color (hex).
        sub_layers: Optional category split for styling and hide/show.
        hover_fields: Field names shown in the hover tooltip.
    """

    id: str
    name: str
    geometry_type: str = "point"
    fields: list[FieldDefinition] = field(default_factory=list)
    color: str = "#3b82f6"
    sub_layers: SubLayerConfig | None = None
    hover_fields: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.geometry_type not in GEOMETRY_TYPES:
            raise ValueError(f"Unknown geometry type: {self.geometry_type}")

    @property
    def is_spatial(self) -> bool:
        return self.geometry_type != "none"

    def title_field(self) -> FieldDefinition | None:
        """The first text field, used to label records."""
        for f in self.fields:
            if f.type == "text":
                return f
        return None


@dataclass
class Record:
    """A row of a table, optionally located on the map."""

    id: str
    table_id: str
    geometry: Geometry | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    def with_geometry(self, geometry: Geometry | None) -> "Record":
        """Copy carrying ``geometry`` and a fresh ``updated_at``."""
        return replace(self, geometry=geometry, updated_at=utc_now())


class RecordStore(ABC):
    """Interface the host application provides for record mutations."""

    @abstractmethod
    def list(self, table_id: str | None = None) -> list[Record]:
        """Records of one table, or of every table when ``table_id`` is None."""

    @abstractmethod
    def get(self, record_id: str) -> Record | None:
        """The record with ``record_id``, or None."""

    @abstractmethod
    def add(self, record: Record) -> None:
        """Insert a new record."""

    @abstractmethod
    def update(self, record: Record) -> None:
        """Replace the stored record with the same id."""

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Remove a record; False if it did not exist."""


class InMemoryRecordStore(RecordStore):
    """Dict-backed store keeping insertion order."""

    def __init__(self, records: list[Record] | None = None) -> None:
        self._records: dict[str, Record] = {}
        for record in records or []:
            self._records[record.id] = record

    def list(self, table_id: str | None = None) -> list[Record]:
        if table_id is None:
            return list(self._records.values())
        return [r for r in self._records.values() if r.table_id == table_id]

    def get(self, record_id: str) -> Record | None:
        return self._records.get(record_id)

    def add(self, record: Record) -> None:
        if record.id in self._records:
            raise KeyError(f"Record already exists: {record.id}")
        self._records[record.id] = record
        logger.info(f"Added record {record.id} to {record.table_id}")

    def update(self, record: Record) -> None:
        if record.id not in self._records:
            raise KeyError(f"Record not found: {record.id}")
        self._records[record.id] = record
        logger.debug(f"Updated record {record.id}")

    def delete(self, record_id: str) -> bool:
        if record_id in self._records:
            del self._records[record_id]
            logger.info(f"Deleted record {record_id}")
            return True
        return False
