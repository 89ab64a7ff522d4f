import os

import pytest


def get_client():
    # Use in-memory sqlite for tests
    os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    # Import after env is set so engine is created with sqlite
    from tracker.main import app  # noqa: WPS433
    from fastapi.testclient import TestClient  # noqa: WPS433
    return TestClient(app)


@pytest.fixture
def tracking():
    """Swap the process-wide service for one driven by a manual clock."""
    from tracker.api.tracking import get_tracking_service
    from tracker.db import SessionLocal
    from tracker.engine.controller import SessionController
    from tracker.engine.producers import ManualClock, PushPositionSource
    from tracker.engine.service import TrackingService
    from tracker.main import app
    from tracker.store import SqlRunStore

    clock = ManualClock()
    controller = SessionController(clock, PushPositionSource(), store=SqlRunStore(SessionLocal))
    service = TrackingService(controller, weight_provider=lambda: 80.0)
    app.dependency_overrides[get_tracking_service] = lambda: service
    yield service, clock
    app.dependency_overrides.pop(get_tracking_service, None)
    service.close()


def command(client, name, **extra):
    return client.post("/tracking/commands", json={"command": name, **extra})


def test_root_ok():
    client = get_client()
    r = client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert "message" in data


def test_track_and_finish_run(tracking):
    _, clock = tracking
    client = get_client()

    r = command(client, "START_OR_RESUME")
    assert r.status_code == 200, r.text
    assert r.json()["state"] == "tracking"

    assert client.post("/tracking/samples", json={"latitude": 0, "longitude": 0}).json() == {"accepted": True}
    clock.advance(1000)
    client.post("/tracking/samples", json={"latitude": 0, "longitude": 0.001, "accuracy_m": 4})

    snap = client.get("/tracking/snapshot").json()
    assert len(snap["path"]) == 2
    assert snap["distance_meters"] == pytest.approx(111.19, abs=0.01)
    assert snap["elapsed"] == "00:00:01:00"
    assert client.get("/tracking/bounds").json() == {"minLat": 0, "minLon": 0, "maxLat": 0, "maxLon": 0.001}

    assert command(client, "PAUSE").json()["state"] == "paused"
    r = client.post("/tracking/samples", json={"latitude": 0, "longitude": 0.5})
    assert r.status_code == 202
    assert r.json() == {"accepted": False}

    assert command(client, "STOP").json()["state"] == "stopped"
    r = command(client, "FINISH", body_weight_kg=70, image_ref="snap-1")
    assert r.status_code == 200, r.text
    run = r.json()
    assert run["distance_meters"] == 111
    assert run["calories_burned"] == 7
    assert run["duration"] == "00:00:01"
    assert run["image_ref"] == "snap-1"
    assert run["id"] is not None
    assert client.get(f"/tracking/runs/{run['id']}").json()["image_ref"] == "snap-1"

    assert client.get("/tracking/snapshot").json()["state"] == "idle"

    runs = client.get("/tracking/runs").json()
    saved = next(x for x in runs if x["image_ref"] == "snap-1")
    assert saved["track"]["type"] == "MultiLineString"
    assert saved["points_count"] == 2

    one = client.get(f"/tracking/runs/{saved['id']}")
    assert one.status_code == 200
    assert one.json()["distance_meters"] == 111


def test_invalid_commands_conflict(tracking):
    client = get_client()
    assert command(client, "PAUSE").status_code == 409
    assert command(client, "FINISH").status_code == 409

    command(client, "START_OR_RESUME")
    command(client, "STOP")
    # Zero duration cannot be recorded; the session is still stopped
    r = command(client, "FINISH")
    assert r.status_code == 409
    assert "zero duration" in r.json()["detail"]
    assert command(client, "CANCEL").json()["state"] == "idle"


def test_unknown_command_rejected(tracking):
    client = get_client()
    assert command(client, "JUMP").status_code == 422


def test_sample_validation(tracking):
    client = get_client()
    r = client.post("/tracking/samples", json={"latitude": 91, "longitude": 0})
    assert r.status_code == 422


def test_missing_run_404(tracking):
    client = get_client()
    assert client.get("/tracking/runs/999999").status_code == 404


def test_stream_sends_current_then_updates(tracking):
    from tracker.api.tracking import snapshot_to_read
    from tracker.engine.service import Command

    service, clock = tracking
    client = get_client()
    service.dispatch(Command.start_or_resume)
    clock.advance(500)

    with client.websocket_connect("/tracking/stream") as ws:
        first = ws.receive_json()
        assert first == snapshot_to_read(service.snapshot()).model_dump(mode="json")
        assert first["elapsed_millis"] == 500

        service.dispatch(Command.pause)
        update = ws.receive_json()
        assert update["state"] == "paused"
        assert update["sequence"] == first["sequence"] + 1


def test_many_streams_leave_room_for_requests(tracking):
    from contextlib import ExitStack

    # More concurrent streams than the default worker thread pool holds
    streams = 41
    with get_client() as client, ExitStack() as stack:
        sockets = [stack.enter_context(client.websocket_connect("/tracking/stream")) for _ in range(streams)]
        assert all(ws.receive_json()["state"] == "idle" for ws in sockets)

        r = command(client, "START_OR_RESUME")
        assert r.status_code == 200, r.text
        assert all(ws.receive_json()["state"] == "tracking" for ws in sockets)


def test_relay_closes_when_client_falls_behind():
    import anyio

    from tracker.api.tracking import SnapshotRelay
    from tracker.engine.snapshot import IDLE_SNAPSHOT

    async def fill():
        relay = SnapshotRelay(1)
        relay.forward(IDLE_SNAPSHOT)
        relay.forward(IDLE_SNAPSHOT)
        await anyio.sleep(0.01)
        received = [snapshot async for snapshot in relay.receive_stream]
        return relay.lagged, received

    lagged, received = anyio.run(fill)
    assert lagged
    assert received == [IDLE_SNAPSHOT]
