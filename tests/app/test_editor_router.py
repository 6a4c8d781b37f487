"""Tests for the /api/editor router against a live headless session."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_editor
from app.routers.editor import router

TREES = {
    "id": "trees",
    "name": "Trees",
    "geometry_type": "point",
    "fields": [{"name": "species", "label": "Species", "required": True}],
    "color": "#22c55e",
}
ROADS = {"id": "roads", "name": "Roads", "geometry_type": "line"}

A, B = (48.850, 2.340), (48.851, 2.341)


def _make_app(export_dir, editor=True):
    app = FastAPI()
    app.include_router(router)
    app.state.editor = create_editor(Settings(export_capture_scale=1, export_settle_seconds=0)) if editor else None
    app.state.export_dir = export_dir
    return app


@pytest.fixture
def client(tmp_path):
    c = TestClient(_make_app(tmp_path))
    assert c.post("/api/editor/layers", json=TREES).status_code == 200
    assert c.post("/api/editor/layers", json=ROADS).status_code == 200
    return c


def _pointer(client, event, latlng):
    return client.post("/api/editor/pointer", json={"event": event, "lat": latlng[0], "lng": latlng[1]})


@pytest.mark.unit
class TestSessionEndpoints:

    def test_no_session(self, tmp_path):
        c = TestClient(_make_app(tmp_path, editor=False))
        assert c.get("/api/editor/state").status_code == 503

    def test_layers_listed_newest_first(self, client):
        data = client.get("/api/editor/layers").json()
        assert [l["id"] for l in data["features"]] == ["roads", "trees"]
        assert [l["id"] for l in data["base"]] == ["osm"]

    def test_duplicate_layer(self, client):
        assert client.post("/api/editor/layers", json=TREES).status_code == 409

    def test_bad_geometry_type(self, client):
        resp = client.post("/api/editor/layers", json={"id": "x", "name": "X", "geometry_type": "blob"})
        assert resp.status_code == 422

    def test_set_mode(self, client):
        resp = client.put("/api/editor/mode", json={"mode": "filter"})
        assert resp.json()["cursor"] == "crosshair"
        assert client.get("/api/editor/state").json()["mode"] == "filter"

    def test_invalid_mode(self, client):
        assert client.put("/api/editor/mode", json={"mode": "lasso"}).status_code == 422

    def test_unknown_target(self, client):
        assert client.put("/api/editor/target", json={"layer_id": "nope"}).status_code == 404


@pytest.mark.unit
class TestAddAndAttributes:

    def test_point_without_target_returns_notice(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        resp = _pointer(client, "click", A)
        assert resp.status_code == 200
        assert resp.json()["notices"][0]["title"] == "No Layer Selected"

    def test_point_add_and_submit(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        client.put("/api/editor/target", json={"layer_id": "trees"})
        _pointer(client, "click", A)
        pending = client.get("/api/editor/attributes").json()
        assert pending["geometry"] == {"type": "Point", "coordinates": list(A)}

        bad = client.post("/api/editor/attributes", json={"values": {}})
        assert bad.status_code == 409
        assert bad.json()["detail"]["notices"][0]["description"] == "Species is required"

        ok = client.post("/api/editor/attributes", json={"values": {"species": "Oak"}})
        assert ok.status_code == 200
        assert ok.json()["notices"][0]["description"] == "Point added to map."
        records = client.get("/api/editor/records", params={"table_id": "trees"}).json()
        assert len(records) == 1

    def test_line_commit_and_incomplete(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        client.put("/api/editor/target", json={"layer_id": "roads"})
        _pointer(client, "click", A)
        resp = client.post("/api/editor/drawing/commit")
        assert resp.status_code == 409
        assert resp.json()["detail"]["notices"][0]["title"] == "Incomplete"

        _pointer(client, "click", B)
        resp = client.post("/api/editor/drawing/commit")
        assert resp.status_code == 200
        assert resp.json()["geometry"]["type"] == "LineString"

    def test_vertex_undo_redo(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        client.put("/api/editor/target", json={"layer_id": "roads"})
        _pointer(client, "click", A)
        _pointer(client, "click", B)
        assert client.post("/api/editor/drawing/undo").json()["vertices"] == [list(A)]
        assert client.post("/api/editor/drawing/redo").json()["vertices"] == [list(A), list(B)]

    def test_submit_without_entry(self, client):
        assert client.post("/api/editor/attributes", json={"values": {}}).status_code == 404


@pytest.mark.unit
class TestMeasureAndQuery:

    def test_measure(self, client):
        client.put("/api/editor/mode", json={"mode": "measure"})
        _pointer(client, "click", A)
        _pointer(client, "click", B)
        readout = client.get("/api/editor/measure").json()
        assert readout["vertex_count"] == 2
        assert readout["total"] > 0
        assert client.put("/api/editor/measure/mode", json={"mode": "area"}).status_code == 409
        client.delete("/api/editor/measure")
        assert client.put("/api/editor/measure/mode", json={"mode": "area"}).json()["mode"] == "area"

    def test_box_query(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        client.put("/api/editor/target", json={"layer_id": "trees"})
        _pointer(client, "click", A)
        client.post("/api/editor/attributes", json={"values": {"species": "Elm"}})

        client.put("/api/editor/mode", json={"mode": "filter"})
        _pointer(client, "mousedown", (48.84, 2.33))
        _pointer(client, "mousemove", (48.86, 2.35))
        resp = _pointer(client, "mouseup", (48.86, 2.35))
        assert resp.json()["notices"][0]["title"] == "Spatial Search"
        results = client.get("/api/editor/query").json()
        assert [r["label"] for r in results] == ["Elm"]


@pytest.mark.unit
class TestLayersAndHistory:

    def test_reorder(self, client):
        resp = client.post("/api/editor/layers/reorder", json={"dragged": "roads", "target": "trees"})
        assert resp.json()["order"] == ["trees", "roads"]

    def test_reorder_unknown(self, client):
        resp = client.post("/api/editor/layers/reorder", json={"dragged": "x", "target": "trees"})
        assert resp.status_code == 404

    def test_opacity_out_of_range(self, client):
        assert client.put("/api/editor/layers/trees/opacity", json={"opacity": 2}).status_code == 422
        assert client.put("/api/editor/layers/trees/opacity", json={"opacity": 0.3}).status_code == 200

    def test_visibility(self, client):
        client.put("/api/editor/layers/trees/visibility", json={"visible": False})
        assert client.get("/api/editor/state").json()["visible_layers"] == ["roads"]

    def test_move_and_save(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        client.put("/api/editor/target", json={"layer_id": "trees"})
        _pointer(client, "click", A)
        record = client.post("/api/editor/attributes", json={"values": {"species": "Ash"}}).json()["record"]

        client.put("/api/editor/mode", json={"mode": "move"})
        drag = {"record_id": record["id"], "kind": "marker", "lat": B[0], "lng": B[1]}
        client.post("/api/editor/drag", json={**drag, "phase": "start", "lat": A[0], "lng": A[1]})
        resp = client.post("/api/editor/drag", json={**drag, "phase": "end"})
        assert resp.json()["action"]["new_geometry"]["coordinates"] == list(B)

        assert client.post("/api/editor/history/undo").json()["action"] is not None
        assert client.post("/api/editor/history/redo").json()["action"] is not None
        saved = client.post("/api/editor/history/save").json()
        assert saved["saved"] == 1
        assert saved["notices"][0]["title"] == "Changes Saved"

    def test_drag_with_bad_vertex_index(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        client.put("/api/editor/target", json={"layer_id": "roads"})
        _pointer(client, "click", A)
        _pointer(client, "click", B)
        client.post("/api/editor/drawing/commit")
        record = client.post("/api/editor/attributes", json={"values": {}}).json()["record"]

        client.put("/api/editor/mode", json={"mode": "move"})
        drag = {"record_id": record["id"], "kind": "vertex", "index": 9, "lat": B[0], "lng": B[1]}
        assert client.post("/api/editor/drag", json={**drag, "phase": "start"}).status_code == 200
        resp = client.post("/api/editor/drag", json={**drag, "phase": "end"})
        assert resp.status_code == 422
        assert client.get("/api/editor/state").json()["history"]["undo"] == 0


@pytest.mark.unit
class TestSearchAndExport:

    def test_search(self, client):
        client.put("/api/editor/mode", json={"mode": "add"})
        client.put("/api/editor/target", json={"layer_id": "trees"})
        _pointer(client, "click", A)
        client.post("/api/editor/attributes", json={"values": {"species": "Cedar"}})
        assert client.get("/api/editor/search", params={"q": "cedar"}).status_code == 200
        assert client.get("/api/editor/search", params={"q": "baobab"}).status_code == 404

    def test_export_requires_print_mode(self, client):
        assert client.post("/api/editor/print/export", json={}).status_code == 409

    def test_export(self, client, tmp_path):
        client.put("/api/editor/mode", json={"mode": "print"})
        resp = client.post("/api/editor/print/export", json={"title": "Tree Survey"})
        assert resp.status_code == 200
        assert resp.json()["filename"] == "Tree_Survey.pdf"
        assert (tmp_path / "Tree_Survey.pdf").read_bytes().startswith(b"%PDF")

    @pytest.mark.parametrize("title,filename", [
        ("../../escaped", "escaped.pdf"),
        ("/tmp/escaped", "tmpescaped.pdf"),
        ("..\\escaped", "escaped.pdf"),
        ("..", "map.pdf"),
    ])
    def test_export_title_stays_in_export_dir(self, tmp_path, title, filename):
        export_dir = tmp_path / "exports"
        c = TestClient(_make_app(export_dir))
        c.put("/api/editor/mode", json={"mode": "print"})
        resp = c.post("/api/editor/print/export", json={"title": title})
        assert resp.status_code == 200
        assert resp.json()["filename"] == filename
        assert [p.name for p in export_dir.iterdir()] == [filename]
        assert [p.name for p in tmp_path.iterdir()] == ["exports"]

    def test_commands_refused_while_exporting(self, client):
        client.put("/api/editor/mode", json={"mode": "print"})
        client.app.state.editor.printer.exporting = True
        resp = client.put("/api/editor/mode", json={"mode": "select"})
        assert resp.status_code == 409
        assert resp.json()["detail"]["notices"][0]["title"] == "Export Running"
        assert client.post("/api/editor/history/save").status_code == 409
        assert client.get("/api/editor/state").json()["mode"] == "print"


@pytest.mark.unit
class TestAppMain:

    def test_lifespan_builds_session(self):
        from app.main import app

        with TestClient(app) as c:
            assert c.get("/health").json()["status"] == "operational"
            assert c.get("/api/editor/state").json()["mode"] == "select"
