"""Shared fixtures for map editor tests."""

from __future__ import annotations

import pytest

from mapedit.context import EditorContext
from mapedit.controller import ToolModeController
from mapedit.events import EventBus
from mapedit.geometry import make_line, make_point, make_polygon
from mapedit.records import (
    FieldDefinition,
    InMemoryRecordStore,
    Record,
    SubLayerConfig,
    SubLayerRule,
    TableSchema,
)
from mapedit.surface import HeadlessSurface

# Paris, Île de la Cité
CENTER = (48.8566, 2.3522)


def make_schemas() -> list[TableSchema]:
    return [
        TableSchema(
            id="trees",
            name="Trees",
            geometry_type="point",
            fields=[
                FieldDefinition("species", "Species", required=True),
                FieldDefinition("height", "Height", type="number"),
                FieldDefinition("status", "Status", type="select"),
            ],
            color="#22c55e",
            sub_layers=SubLayerConfig(
                enabled=True,
                field_name="status",
                rules=[
                    SubLayerRule("healthy", "#16a34a", "Healthy"),
                    SubLayerRule("sick", "#dc2626", "Sick"),
                ],
            ),
            hover_fields=["species", "height"],
        ),
        TableSchema(
            id="roads",
            name="Roads",
            geometry_type="line",
            fields=[FieldDefinition("name", "Name")],
            color="#f97316",
        ),
        TableSchema(
            id="parcels",
            name="Parcels",
            geometry_type="polygon",
            fields=[FieldDefinition("owner", "Owner")],
            color="#a855f7",
        ),
        TableSchema(id="notes", name="Notes", geometry_type="mixed"),
        TableSchema(id="contacts", name="Contacts", geometry_type="none"),
    ]


def make_records() -> list[Record]:
    return [
        Record("t1", "trees", make_point(48.8570, 2.3500),
               {"species": "Oak", "height": 12, "status": "healthy"}),
        Record("t2", "trees", make_point(48.8600, 2.3600),
               {"species": "Plane", "status": "sick"}),
        Record("r1", "roads", make_line([(48.8550, 2.3450), (48.8580, 2.3550)]),
               {"name": "Quai des Orfèvres"}),
        Record("p1", "parcels",
               make_polygon([(48.8540, 2.3480), (48.8540, 2.3520), (48.8560, 2.3520)]),
               {"owner": "City"}),
        Record("c1", "contacts", None, {"name": "Nobody"}),
    ]


@pytest.fixture
def store():
    return InMemoryRecordStore(make_records())


@pytest.fixture
def ctx(store):
    return EditorContext(
        store=store,
        schemas=make_schemas(),
        visible_layers=["trees", "roads", "parcels", "notes"],
    )


@pytest.fixture
def surface():
    return HeadlessSurface(center=CENTER, zoom=15, size=(1024, 768))


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def controller(ctx, surface, bus):
    return ToolModeController(ctx, surface, bus=bus, export_settle_seconds=0)


@pytest.fixture
def events(bus):
    """Queue subscribed to every event the editor publishes."""
    return bus.subscribe()
