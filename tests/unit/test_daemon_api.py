"""
Unit tests for the docker_queue.server.daemon HTTP API.

The daemon is backed by FakeEngine and exercised through FastAPI's TestClient,
so no docker daemon or real socket traffic is needed.

Tests cover:
- Route registration
- POST /queue_container validation and conflicts
- GET /list_containers merge and error mapping
- Health, status and stop endpoints
"""

import uuid

import pytest

from docker_queue.domain.entry import QueuedContainer


def entry_payload(command="alpine sleep 1", status="Queued", entry_id=None):
    return {"id": entry_id or str(uuid.uuid4()), "command": command, "status": status}


class TestDaemonSetup:

    @pytest.mark.unit
    def test_routes(self, daemon):
        routes = [route.path for route in daemon.app.routes]

        for path in ("/queue_container", "/list_containers", "/health_check", "/status", "/stop"):
            assert path in routes

    @pytest.mark.unit
    def test_ephemeral_port_is_assigned(self, daemon):
        assert daemon.port > 0

    @pytest.mark.unit
    def test_from_config(self, default_config, fake_engine):
        from docker_queue.server.daemon import QueueDaemon

        default_config.daemon.port = 0
        default_config.dispatcher.tick_interval = 0.5
        d = QueueDaemon.from_config(default_config)
        try:
            assert d.port > 0
            assert d.dispatcher.tick_interval == 0.5
            assert d.dispatcher.launch_retry.max_attempts == 5
        finally:
            d.shutdown()


class TestQueueContainer:

    @pytest.mark.unit
    def test_queue_echoes_entry(self, api, daemon):
        payload = entry_payload()

        r = api.post("/queue_container", json=payload)

        assert r.status_code == 200
        assert r.json() == payload
        assert [e.id for e in daemon.state.snapshot_queue()] == [payload["id"]]

    @pytest.mark.unit
    def test_queue_paused(self, api, daemon):
        payload = entry_payload(status="Paused")

        r = api.post("/queue_container", json=payload)

        assert r.status_code == 200
        assert r.json()["status"] == "Paused"

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", [
        entry_payload(command=""),
        entry_payload(command="--rm"),
        entry_payload(status="Failed"),
        entry_payload(status="Running"),
        entry_payload(entry_id="not-a-uuid"),
    ])
    def test_invalid_entry_rejected(self, api, daemon, payload):
        r = api.post("/queue_container", json=payload)

        assert r.status_code == 400
        assert "detail" in r.json()
        assert len(daemon.state) == 0

    @pytest.mark.unit
    def test_missing_fields_rejected(self, api, daemon):
        r = api.post("/queue_container", json={"command": "alpine true"})

        assert r.status_code == 422
        assert len(daemon.state) == 0

    @pytest.mark.unit
    def test_duplicate_id_conflict(self, api, daemon):
        payload = entry_payload()
        api.post("/queue_container", json=payload)

        r = api.post("/queue_container", json=payload)

        assert r.status_code == 409
        assert len(daemon.state) == 1


class TestListContainers:

    @pytest.mark.unit
    def test_empty(self, api):
        r = api.get("/list_containers")

        assert r.status_code == 200
        assert r.json() == []

    @pytest.mark.unit
    def test_single_paused_entry(self, api):
        entry = QueuedContainer.create("alpine true")
        api.post("/queue_container", json=entry.to_dict())

        items = api.get("/list_containers").json()

        assert items == [{"Queued": entry.to_dict()}]
        assert not any("Running" in item for item in items)

    @pytest.mark.unit
    def test_tracked_external_and_queued(self, api, daemon, fake_engine):
        external_id = fake_engine.run_external()
        first = entry_payload("alpine sleep 5")
        second = entry_payload("alpine sleep 6")
        api.post("/queue_container", json=first)
        api.post("/queue_container", json=second)

        daemon.dispatcher.tick()
        items = api.get("/list_containers").json()

        running = [item["Running"] for item in items if "Running" in item]
        assert {"External", "Tracked"} == {next(iter(r)) for r in running}
        external = next(r["External"] for r in running if "External" in r)
        assert external["Id"] == external_id
        tracked = next(r["Tracked"] for r in running if "Tracked" in r)
        assert tracked["Id"] == daemon.state.snapshot_running_id()
        assert items[-1] == {"Queued": second}

    @pytest.mark.unit
    def test_failed_entries_listed_last(self, api, daemon, fake_engine, permanent_error):
        payload = entry_payload("nope:latest")
        api.post("/queue_container", json=payload)
        fake_engine.fail_create = permanent_error

        daemon.dispatcher.tick()
        items = api.get("/list_containers").json()

        assert len(items) == 1
        assert items[0]["Failed"]["id"] == payload["id"]
        assert items[0]["Failed"]["status"] == "Failed"
        assert "No such image" in items[0]["Failed"]["error"]

    @pytest.mark.unit
    def test_engine_unavailable(self, api, fake_engine, transient_error):
        fake_engine.fail_list = transient_error

        r = api.get("/list_containers")

        assert r.status_code == 503
        assert "Connection refused" in r.json()["detail"]


class TestMiscEndpoints:

    @pytest.mark.unit
    def test_health_check(self, api):
        r = api.get("/health_check")

        assert r.status_code == 200

    @pytest.mark.unit
    def test_status(self, api, daemon):
        api.post("/queue_container", json=entry_payload())

        data = api.get("/status").json()

        assert data["port"] == daemon.port
        assert data["queued"] == 1
        assert data["failed"] == 0
        assert data["running_container"] is None

    @pytest.mark.unit
    def test_stop_sets_shutdown_event(self, api, daemon):
        r = api.post("/stop")

        assert r.status_code == 200
        assert daemon.shutdown_event.is_set()


class TestBackgroundServing:

    @pytest.mark.unit
    def test_serves_over_http(self, daemon):
        from docker_queue.client import DaemonClient

        daemon.start_background()
        client = DaemonClient(port=daemon.port)

        assert client.health_check()
        entry = QueuedContainer.create("alpine true")
        stored = client.queue_container(entry)
        assert stored == entry

        daemon.shutdown()
        assert not daemon.dispatcher.is_running
