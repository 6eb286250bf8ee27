import pytest
from fastapi.testclient import TestClient

from core.race.hub import BroadcastHub
from core.race.wire import (
    LOGS_UPDATE,
    SNAPSHOT,
    TEAM_ROLL,
    TEAMS_UPDATE,
)
from services.observer_api.server import create_app
from shared.config.system import ObserverApiConfig


@pytest.fixture
def api(make_store):
    store = make_store(rolls=[5, 2])
    hub = BroadcastHub(store)
    store.create_team("red", actor="alice", origin="general")
    hub.publish()
    client = TestClient(create_app(store, hub, ObserverApiConfig()))
    return store, hub, client


def _receive_until(ws, message_type, limit=20):
    seen = []
    for _ in range(limit):
        message = ws.receive_json()
        seen.append(message)
        if message["type"] == message_type:
            return seen
    raise AssertionError(f"{message_type} not received; got {[m['type'] for m in seen]}")


def test_health(api):
    _, _, client = api
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["hub"]["cursor"] == 1


def test_state_returns_snapshot(api):
    _, _, client = api
    body = client.get("/api/state").json()
    assert body["type"] == SNAPSHOT
    assert body["cursor"] == 1
    assert body["data"]["teams"] == [["red", 1]]


def test_events_catch_up_from_cursor(api):
    store, hub, client = api
    hub.publish(store.roll_for_team("red"))
    hub.publish(store.roll_for_team("red"))

    body = client.get("/api/events", params={"cursor": 1}).json()
    assert body["cursor"] == 3
    assert [e["seq"] for e in body["events"]] == [2, 3]
    assert body["events"][0]["type"] == "team_rolled"

    limited = client.get("/api/events", params={"cursor": 0, "limit": 1}).json()
    assert [e["seq"] for e in limited["events"]] == [1]

    assert client.get("/api/events", params={"cursor": -1}).status_code == 422


def test_logs_endpoint(api):
    _, _, client = api
    body = client.get("/api/logs").json()
    assert body["type"] == LOGS_UPDATE
    assert body["data"]["lines"][0].endswith("alice in #general - Created team red at position 1")


def test_cors_allows_configured_origin(api):
    _, _, client = api
    response = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_websocket_snapshot_then_tail(api):
    store, hub, client = api

    with client.websocket_connect("/ws") as ws:
        first = ws.receive_json()
        assert first["type"] == SNAPSHOT
        assert first["cursor"] == 1

        hub.publish(store.roll_for_team("red"))
        messages = _receive_until(ws, TEAMS_UPDATE)
        assert messages[0]["type"] == TEAM_ROLL
        assert messages[0]["data"]["newPosition"] == 6
        assert messages[-1]["data"]["teams"] == [["red", 6]]

        ws.send_json({"type": "requestTeams"})
        reply = _receive_until(ws, TEAMS_UPDATE)
        assert reply[-1]["cursor"] == 2

        ws.send_json({"type": "requestLogs"})
        logs = _receive_until(ws, LOGS_UPDATE)
        assert len(logs[-1]["data"]["lines"]) == 2

        assert hub.observer_count == 1

    assert hub.observer_count == 0


def test_websocket_ignores_bad_requests(api):
    _, _, client = api

    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == SNAPSHOT
        ws.send_text("not json")
        ws.send_json({"type": "doSomething"})
        ws.send_json({"type": "requestTeams"})
        assert ws.receive_json()["type"] == TEAMS_UPDATE
