"""Tests for the import API and WebSocket progress stream."""

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from corpusflow.api.imports import ImportManager
from corpusflow.api.routes.imports import get_import_manager, get_pipeline
from corpusflow.api.websocket import ImportWebSocketManager
from corpusflow.llm.client import MockLLMClient
from corpusflow.types import ImportProgress, ImportStage
from main import create_app
from tests.fakes import FatalRemoteError


@pytest.fixture
def manager():
    return ImportManager()


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()


@pytest.fixture
def client(pipeline, manager):
    app = create_app()
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_import_manager] = lambda: manager
    return TestClient(app)


@pytest.fixture
def docs(tmp_path):
    folder = tmp_path / "docs"
    folder.mkdir()
    (folder / "a.txt").write_text("First document.", encoding="utf-8")
    (folder / "b.md").write_text("# Second document", encoding="utf-8")
    return folder


class TestHealth:
    """Test the health endpoint."""

    def test_health_check(self, client):
        """Test health check reports the service."""
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "corpusflow"


class TestImportRoutes:
    """Test starting and inspecting imports."""

    def test_start_import(self, client, docs, sink):
        """Test an import runs in the background and records its events."""
        response = client.post("/api/v1/imports", json={"folder_path": str(docs)})

        assert response.status_code == 202
        import_id = response.json()["import_id"]

        status = client.get(f"/api/v1/imports/{import_id}").json()
        assert status["status"] == "completed"
        assert status["document_count"] == 2
        assert status["completed_at"] is not None
        stages = [e["stage"] for e in status["events"]]
        assert stages[0] == "Start"
        assert stages[-1] == "Done"
        assert stages.count("Done") == 2
        assert len(sink.batches) == 2

    def test_default_folder(self, client, pipeline, docs):
        """Test the configured folder is used when none is given."""
        pipeline.set_folder_path(docs)

        response = client.post("/api/v1/imports", json={})

        assert response.status_code == 202
        status = client.get(f"/api/v1/imports/{response.json()['import_id']}").json()
        assert status["folder_path"] == str(docs.resolve())
        assert status["status"] == "completed"

    def test_no_folder(self, client):
        """Test a request without any folder to import."""
        response = client.post("/api/v1/imports", json={})
        assert response.status_code == 400

    def test_missing_folder(self, client, tmp_path):
        """Test a folder that does not exist."""
        response = client.post("/api/v1/imports", json={"folder_path": str(tmp_path / "nope")})
        assert response.status_code == 404

    def test_failed_import(self, make_pipeline, manager, docs):
        """Test a failing import is marked failed with its error."""
        failing = make_pipeline(client=MockLLMClient(responses=[FatalRemoteError("Invalid API key")]))
        app = create_app()
        app.dependency_overrides[get_pipeline] = lambda: failing
        app.dependency_overrides[get_import_manager] = lambda: manager
        client = TestClient(app)

        import_id = client.post("/api/v1/imports", json={"folder_path": str(docs)}).json()["import_id"]

        status = client.get(f"/api/v1/imports/{import_id}").json()
        assert status["status"] == "failed"
        assert status["error"] == "Invalid API key"
        assert [e["stage"] for e in status["events"]][-1] == "Error"

    def test_list_imports(self, client, docs):
        """Test listing imports without their events."""
        client.post("/api/v1/imports", json={"folder_path": str(docs)})

        imports = client.get("/api/v1/imports").json()

        assert len(imports) == 1
        assert imports[0]["events"] == []

    def test_unknown_import(self, client):
        """Test fetching an import that does not exist."""
        assert client.get("/api/v1/imports/unknown").status_code == 404


class TestImportWebSocket:
    """Test the progress WebSocket."""

    def test_replay_finished_import(self, client, docs):
        """Test a late subscriber gets every event and the final status."""
        import_id = client.post("/api/v1/imports", json={"folder_path": str(docs)}).json()["import_id"]

        messages = []
        with client.websocket_connect(f"/ws/imports/{import_id}") as websocket:
            while True:
                message = websocket.receive_json()
                messages.append(message)
                if message["type"] == "finished":
                    break

        assert messages[0]["type"] == "connection_established"
        assert messages[-1]["status"] == "completed"
        progress = [m["data"] for m in messages if m["type"] == "progress"]
        assert progress[0]["stage"] == "Start"
        assert progress[-1]["stage"] == "Done"
        assert {p["file_name"] for p in progress} == {"a.txt", "b.md"}

    def test_unknown_import_closed(self, client):
        """Test subscribing to an unknown import closes the socket."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/imports/unknown") as websocket:
                websocket.receive_json()

        assert exc_info.value.code == 4404


class FakeWebSocket:
    """Collects sent messages; ``on_send`` runs after each one."""

    def __init__(self, on_send=None):
        self.sent = []
        self.on_send = on_send

    async def accept(self):
        pass

    async def send_json(self, message):
        self.sent.append(message)
        if self.on_send is not None:
            self.on_send(message)
        await asyncio.sleep(0)

    def stages(self):
        return [m["data"]["stage"] for m in self.sent if m["type"] == "progress"]


class TestImportWebSocketManager:
    """Test replay and broadcast for a single subscriber."""

    @pytest.mark.asyncio
    async def test_events_during_replay_sent_once(self):
        """Test an event recorded while history is replayed is delivered once and in order."""
        record = ImportManager().create()
        ws_manager = ImportWebSocketManager()
        ws_manager.attach(record)
        record.recorder(ImportProgress(1, 1, "a.txt", ImportStage.START))

        def during_replay(message):
            if message["type"] == "progress" and message["data"]["stage"] == "Start":
                record.recorder(ImportProgress(1, 1, "a.txt", ImportStage.CHUNK))

        websocket = FakeWebSocket(on_send=during_replay)
        await ws_manager.connect(websocket, record)
        record.recorder(ImportProgress(1, 1, "a.txt", ImportStage.DONE))
        for _ in range(3):
            await asyncio.sleep(0)

        assert websocket.sent[0]["type"] == "connection_established"
        assert websocket.stages() == ["Start", "Chunk", "Done"]

    @pytest.mark.asyncio
    async def test_disconnect_stops_broadcast(self):
        """Test a disconnected subscriber receives nothing further."""
        record = ImportManager().create()
        ws_manager = ImportWebSocketManager()
        ws_manager.attach(record)
        websocket = FakeWebSocket()

        await ws_manager.connect(websocket, record)
        ws_manager.disconnect(websocket)
        record.recorder(ImportProgress(1, 1, "a.txt", ImportStage.START))
        for _ in range(3):
            await asyncio.sleep(0)

        assert websocket.stages() == []
