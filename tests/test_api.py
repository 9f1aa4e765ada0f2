"""Route-level smoke tests through FastAPI's TestClient with a fake serial port."""

from __future__ import annotations

import time
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from access_station.config import Config
from access_station.main import create_app
from access_station.station import Station

from conftest import ADMIN_UID, FakeSerialFactory, ManualScheduler


def _wait_for(predicate: Callable[[], Any], timeout: float = 3.0) -> Any:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        value = predicate()
        if value:
            return value
        time.sleep(0.02)
    raise AssertionError("condition not met in time")


@pytest.fixture
def factory() -> FakeSerialFactory:
    return FakeSerialFactory(pong="ACCESS_v1", missing=("COM9",))


@pytest.fixture
def station(station_config: Config, factory: FakeSerialFactory) -> Station:
    return Station(station_config, serial_factory=factory, scheduler=ManualScheduler())


@pytest.fixture
def client(station: Station):
    with TestClient(create_app(station)) as c:
        yield c


def test_health_reports_idle_station(client: TestClient) -> None:
    """Health is ok with no session and ACCESS mode."""
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["sessionActive"] is False
    assert body["mode"] == "ACCESS"


def test_session_tap_and_records(client: TestClient, factory: FakeSerialFactory) -> None:
    """A tap on the device shows up in latest records and day stats."""
    resp = client.post("/api/session/start", json={"port_name": "COM3", "session_name": "morning"})
    assert resp.status_code == 200 and resp.json()["success"] is True

    factory.last.feed("UID:04-A1-B2-C3")

    records = _wait_for(lambda: client.get("/api/records/latest", params={"limit": 5}).json())
    assert records[0]["uid"] == "04-A1-B2-C3"
    assert records[0]["status"] == "DENIED"
    assert b"0\n" in factory.last.written
    assert client.get("/api/stats/day").json()["denied"] == 1
    assert client.get("/api/session/status").json()["session_name"] == "morning"

    assert client.post("/api/session/stop").json()["data"] == {"stopped": True}
    assert client.post("/api/session/stop").json()["data"] == {"stopped": False}


def test_second_session_start_conflicts(client: TestClient) -> None:
    """Starting while active is a 409 carrying a failed OperationResult."""
    client.post("/api/session/start", json={"port_name": "COM3", "session_name": "morning"})
    resp = client.post("/api/session/start", json={"port_name": "COM4", "session_name": "other"})
    assert resp.status_code == 409
    assert resp.json()["detail"]["success"] is False


def test_start_on_missing_port_is_bad_request(client: TestClient) -> None:
    """PortUnavailable maps to 400."""
    resp = client.post("/api/session/start", json={"port_name": "COM9", "session_name": "morning"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["data"]["error"] == "PortUnavailable"


def test_port_probe(client: TestClient) -> None:
    """The probe endpoint reports the firmware tag."""
    body = client.post("/api/ports/test", json={"port_name": "COM5"}).json()
    assert body["success"] is True
    assert body["firmware"] == "ACCESS_v1"


def test_enrollment_over_api(client: TestClient, factory: FakeSerialFactory) -> None:
    """Admin card, new card, confirm: the user appears in /users."""
    client.post("/api/session/start", json={"port_name": "COM3", "session_name": "enroll"})
    ser = factory.last

    assert client.post("/api/enrollment/start").json()["success"] is True
    ser.feed(f"UID:{ADMIN_UID}")
    _wait_for(lambda: client.get("/api/enrollment/state").json()["mode"] == "ENROLLING")
    ser.feed("UID:04A1B2C3")
    _wait_for(lambda: client.get("/api/enrollment/state").json()["captured_uid"] == "04A1B2C3")

    resp = client.post("/api/enrollment/confirm", json={"uid": "04A1B2C3", "name": "Ana"})

    assert resp.status_code == 200
    assert [u["uid"] for u in client.get("/api/users").json()] == ["04A1B2C3"]
    assert ser.written[-2:] == [b"K:Ana\n", b"A\n"]
    assert client.get("/api/enrollment/state").json()["mode"] == "ACCESS"


def test_confirm_outside_enrollment_conflicts(client: TestClient) -> None:
    """Confirm without enrollment is a state violation."""
    resp = client.post("/api/enrollment/confirm", json={"uid": "04A1B2C3", "name": "Ana"})
    assert resp.status_code == 409


def test_delete_unknown_user_is_not_found(client: TestClient) -> None:
    """Deleting a uid that is not registered yields 404."""
    assert client.delete("/api/users/FFFF").status_code == 404


def test_batch_endpoints(client: TestClient) -> None:
    """Manual batch run, reschedule and status."""
    assert client.post("/api/batch/run").status_code == 200
    resp = client.post("/api/batch/schedule", json={"hour": 23, "minute": 45})
    assert resp.json()["success"] is True
    status = client.get("/api/batch/status").json()
    assert status["scheduled_time"] == "23:45"
    assert status["mirrored_events"] == 0 and status["mirrored_users"] == 0
    assert client.post("/api/batch/schedule", json={"hour": 25}).status_code == 422
