import pytest
from fastapi.testclient import TestClient

import main


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("PLANNER_SENSORS", "1")
    monkeypatch.delenv("PLANNER_CONFIG", raising=False)
    with TestClient(main.app) as c:
        yield c


def test_root(client):
    assert client.get("/").status_code == 200


def test_status(client):
    body = client.get("/api/status").json()
    assert body["sensors_total"] == 1
    assert body["mav_state"] in ("ACTIVE", "CRITICAL", "FLIGHT_TERMINATION")
    assert len(body["vehicle"]["position"]) == 3


def test_histogram_shape(client):
    body = client.get("/api/histogram").json()
    assert (body["rows"], body["cols"]) == (30, 60)
    assert len(body["dist"]) == 30


def test_set_goal(client):
    response = client.post("/api/goal", json={"x": 1.0, "y": 2.0, "z": 3.0})
    assert response.status_code == 200
    assert client.get("/api/status").json()["goal"] == [1.0, 2.0, 3.0]


def test_invalid_goal_is_rejected(client):
    assert client.post("/api/goal", json={"x": "north"}).status_code == 422


def test_live_updates(client):
    with client.websocket_connect("/ws/live") as ws:
        message = ws.receive_json()
    assert "setpoint" in message
    assert message["sensors_total"] == 1


def test_config_file_is_loaded(monkeypatch, tmp_path):
    path = tmp_path / "params.json"
    path.write_text('{"starting_height": 3.0, "cost": {"goal_cost_param": 2.0}}')
    monkeypatch.setenv("PLANNER_CONFIG", str(path))
    params = main.load_parameters()
    assert params.starting_height == 3.0
    assert params.cost.goal_cost_param == 2.0
    assert params.cost.heading_cost_param == 0.5
