"""Tests for attribute entry: create/edit requests and validation."""

import pytest

from mapedit.attributes import AttributeEntry, validate_attributes
from mapedit.errors import InvalidAttributes, NoTargetLayer
from mapedit.events import ATTRIBUTE_ENTRY, drain
from mapedit.geometry import make_point


@pytest.fixture
def committed():
    return []


@pytest.fixture
def entry(ctx, bus, committed):
    return AttributeEntry(ctx, bus, on_commit=committed.append)


@pytest.mark.unit
class TestValidation:

    def test_required_field_message(self, ctx):
        errors = validate_attributes(ctx.schema("trees"), {"species": ""})
        assert errors == {"species": "Species is required"}

    def test_optional_fields_may_be_empty(self, ctx):
        assert validate_attributes(ctx.schema("trees"), {"species": "Elm"}) == {}


@pytest.mark.unit
class TestCreate:

    def test_open_requires_target(self, entry):
        with pytest.raises(NoTargetLayer):
            entry.open_create(make_point(1, 1))
        assert entry.pending is None

    def test_open_prefills_defaults_and_announces(self, entry, ctx, events):
        ctx.active_layer_id = "trees"
        ctx.feature_defaults = {"status": "healthy"}
        request = entry.open_create(make_point(1, 1))
        assert request.values == {"status": "healthy"}
        assert request.editing is False
        messages = drain(events)
        assert messages[-1]["type"] == ATTRIBUTE_ENTRY
        assert [f["name"] for f in messages[-1]["data"]["fields"]] == ["species", "height", "status"]

    def test_submit_adds_record(self, entry, ctx, store, committed):
        ctx.active_layer_id = "trees"
        entry.open_create(make_point(1, 1))
        record = entry.submit({"species": "Elm"})
        assert store.get(record.id) is record
        assert record.table_id == "trees"
        assert record.created_at == record.updated_at != ""
        assert committed == [record]
        assert entry.pending is None

    def test_missing_required_keeps_request_open(self, entry, ctx, store):
        ctx.active_layer_id = "trees"
        entry.open_create(make_point(1, 1))
        before = len(store.list())
        with pytest.raises(InvalidAttributes) as exc:
            entry.submit({})
        assert exc.value.errors == {"species": "Species is required"}
        assert entry.pending is not None
        assert len(store.list()) == before

    def test_submit_without_request(self, entry):
        with pytest.raises(ValueError):
            entry.submit({})

    def test_cancel(self, entry, ctx):
        ctx.active_layer_id = "trees"
        entry.open_create(make_point(1, 1))
        entry.cancel()
        assert entry.pending is None


@pytest.mark.unit
class TestEdit:

    def test_edit_updates_existing(self, entry, store):
        request = entry.open_edit("t1")
        assert request.editing is True
        assert request.values["species"] == "Oak"
        record = entry.submit({**request.values, "species": "Red Oak"})
        assert record.id == "t1"
        assert store.get("t1").attributes["species"] == "Red Oak"
        assert store.get("t1").geometry == make_point(48.8570, 2.3500)

    def test_edit_unknown_record(self, entry):
        with pytest.raises(KeyError):
            entry.open_edit("nope")
