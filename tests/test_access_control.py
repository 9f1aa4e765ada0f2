"""Tests for the access decision engine and capture session lifecycle."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from access_station.models.enums import AccessStatus, NotificationType, SystemMode
from access_station.protocol import UidReported, Unrecognized
from access_station.services.access_control import (
    ADMIN_DISPLAY_NAME,
    UNREGISTERED_DISPLAY_NAME,
    AccessControlService,
)
from access_station.services.enrollment_service import EnrollmentService
from access_station.services.notification_service import NotificationHub
from access_station.services.user_service import UserService
from access_station.storage.access_log import DurableAccessLog
from access_station.utils.exceptions import PortUnavailable, StateViolation, ValidationError

from conftest import ADMIN_UID, FakeDevice, ManualScheduler


@pytest.fixture
def engine(
    device: FakeDevice,
    access_log: DurableAccessLog,
    users: UserService,
    enrollment: EnrollmentService,
    hub: NotificationHub,
):
    service = AccessControlService(device, access_log, users, enrollment, hub, station_id=3)
    yield service
    service.shutdown()


def _tap(engine: AccessControlService, uid: str):
    future = engine.on_uid(uid)
    return future.result(timeout=5) if future is not None else None


def _rows(engine: AccessControlService) -> list[str]:
    return Path(engine.access_log.current_path).read_text(encoding="utf-8").splitlines()[1:]


def test_registered_uid_is_granted_and_logged(
    engine: AccessControlService, users: UserService, device: FakeDevice, hub: NotificationHub
) -> None:
    """Known card: device gets 1, row is written, viewers get new-record."""
    users.register("04A1B2C3", "Ana")
    engine.start_session("COM3", "morning")

    event = _tap(engine, "04a1b2c3")

    assert device.sent == ["1"]
    assert event.status == AccessStatus.GRANTED
    assert event.user_name == "Ana"
    assert event.station_id == 3
    rows = _rows(engine)
    assert len(rows) == 1 and rows[0].endswith(",04A1B2C3,GRANTED,3")
    assert hub.of_type(NotificationType.NEW_RECORD)[-1].data["uid"] == "04A1B2C3"
    assert engine.session_status().record_count == 1


def test_unknown_uid_is_denied(engine: AccessControlService, device: FakeDevice) -> None:
    """Unregistered card: device gets 0 and the row says DENIED."""
    engine.start_session("COM3", "morning")

    event = _tap(engine, "FFFF0001")

    assert device.sent == ["0"]
    assert event.status == AccessStatus.DENIED
    assert event.user_name == UNREGISTERED_DISPLAY_NAME
    assert _rows(engine)[0].endswith(",FFFF0001,DENIED,3")


def test_admin_card_is_granted_as_administrator(engine: AccessControlService, device: FakeDevice) -> None:
    """The admin card opens the door even though it is not in the registry."""
    engine.start_session("COM3", "morning")

    event = _tap(engine, ADMIN_UID)

    assert device.sent == ["1"]
    assert event.user_name == ADMIN_DISPLAY_NAME


def test_decision_without_session_still_replies(engine: AccessControlService, device: FakeDevice) -> None:
    """No active log: the device still gets its answer and the cache is updated."""
    event = _tap(engine, "FFFF0001")
    assert device.sent == ["0"]
    assert engine.today_records() == [event]


def test_uid_during_admin_wait_goes_to_enrollment(
    engine: AccessControlService, enrollment: EnrollmentService, device: FakeDevice
) -> None:
    """While waiting for the admin, taps validate instead of deciding access."""
    engine.start_session("COM3", "morning")
    enrollment.start_enrollment()

    assert engine.on_uid(ADMIN_UID) is None

    assert enrollment.mode == SystemMode.ENROLLING
    assert device.sent == ["W", "E"]
    assert _rows(engine) == []


def test_uid_during_enrollment_is_captured_not_logged(
    engine: AccessControlService, enrollment: EnrollmentService, device: FakeDevice
) -> None:
    """Enrollment taps are captured and never produce 1/0 or a log row."""
    engine.start_session("COM3", "morning")
    enrollment.start_enrollment()
    engine.on_uid(ADMIN_UID)

    assert engine.on_uid("04A1B2C3") is None

    assert enrollment.state().captured_uid == "04A1B2C3"
    assert "1" not in device.sent and "0" not in device.sent
    assert _rows(engine) == []


def test_tap_after_enrollment_deadline_is_decided(
    engine: AccessControlService, enrollment: EnrollmentService,
    device: FakeDevice, scheduler: ManualScheduler,
) -> None:
    """Once the admin wait has expired a tap is an ordinary access request again."""
    engine.start_session("COM3", "morning")
    enrollment.start_enrollment()
    scheduler.advance(15)

    event = _tap(engine, "FFFF0001")

    assert event is not None and event.status == AccessStatus.DENIED
    assert device.sent == ["W", "A", "0"]
    assert _rows(engine)[0].endswith(",FFFF0001,DENIED,3")


def test_on_event_dispatches_uid_and_ignores_noise(engine: AccessControlService, device: FakeDevice) -> None:
    """Reader events route UIDs to the decision path; other lines are dropped."""
    engine.start_session("COM3", "morning")
    device.on_event(Unrecognized(line="servo ready"))
    device.on_event(UidReported(uid="FFFF0001"))
    engine._executor.shutdown(wait=True)

    assert device.sent == ["0"]
    assert len(_rows(engine)) == 1


def test_start_session_twice_is_refused(engine: AccessControlService) -> None:
    """One session at a time."""
    engine.start_session("COM3", "morning")
    with pytest.raises(StateViolation):
        engine.start_session("COM4", "other")


def test_start_session_validates_label(engine: AccessControlService) -> None:
    """Labels become file names."""
    with pytest.raises(ValidationError):
        engine.start_session("COM3", "bad/name")


def test_start_session_on_missing_port_closes_log(engine: AccessControlService, device: FakeDevice) -> None:
    """PortUnavailable propagates and leaves no half-open session."""
    device.fail_open = True
    with pytest.raises(PortUnavailable):
        engine.start_session("COM9", "morning")
    assert not engine.access_log.is_ready
    assert engine.session_status() is None


def test_stop_session_is_idempotent(engine: AccessControlService, device: FakeDevice) -> None:
    """Stopping twice returns True then False and closes the port once."""
    engine.start_session("COM3", "morning")

    assert engine.stop_session() is True
    assert engine.stop_session() is False

    assert not device.is_open
    assert not engine.access_log.is_ready
    assert engine.session_status().active is False


def test_stop_session_cancels_enrollment(
    engine: AccessControlService, enrollment: EnrollmentService, device: FakeDevice
) -> None:
    """An enrollment in progress is abandoned with an A before the port closes."""
    engine.start_session("COM3", "morning")
    enrollment.start_enrollment()

    engine.stop_session()

    assert enrollment.mode == SystemMode.ACCESS
    assert device.sent == ["W", "A"]


def test_reconnect_continues_same_log(engine: AccessControlService) -> None:
    """Reconnect after stop resumes the file named by the pointer."""
    engine.start_session("COM3", "morning")
    _tap(engine, "FFFF0001")
    path = engine.access_log.current_path
    engine.stop_session()

    session = engine.reconnect_session("COM4")

    assert session.active and session.port_name == "COM4"
    assert session.log_path == path
    _tap(engine, "FFFF0002")
    assert len(_rows(engine)) == 2


def test_reconnect_without_previous_log_is_refused(engine: AccessControlService) -> None:
    """Nothing to continue means StateViolation."""
    with pytest.raises(StateViolation):
        engine.reconnect_session("COM3")


def test_rename_session_moves_log(engine: AccessControlService) -> None:
    """Rename keeps the rows under the new label."""
    engine.start_session("COM3", "morning")
    _tap(engine, "FFFF0001")

    session = engine.rename_session("afternoon shift")

    assert session.session_name == "afternoon_shift"
    assert Path(session.log_path).name.startswith("afternoon_shift_")
    assert len(_rows(engine)) == 1


def test_latest_records_newest_first_and_day_stats(engine: AccessControlService, users: UserService) -> None:
    """Dashboard queries reflect the in-memory cache."""
    users.register("AA", "Al")
    assert engine.day_stats().last_access == "--:--:--"
    for uid in ("AA", "BB", "AA"):
        _tap(engine, uid)

    latest = engine.latest_records(2)
    assert [r.uid for r in latest] == ["AA", "BB"]
    stats = engine.day_stats()
    assert (stats.total, stats.granted, stats.denied) == (3, 2, 1)
    assert stats.last_access != "--:--:--"


@pytest.fixture
def slow_engine(
    device: FakeDevice,
    access_log: DurableAccessLog,
    users: UserService,
    enrollment: EnrollmentService,
    hub: NotificationHub,
):
    """Engine whose single persistence worker is held until the gate opens."""
    executor = ThreadPoolExecutor(max_workers=1)
    gate = threading.Event()
    executor.submit(gate.wait, 5)
    service = AccessControlService(device, access_log, users, enrollment, hub, station_id=3, executor=executor)
    yield service, gate
    gate.set()
    service.shutdown()


def test_stop_session_writes_taps_already_answered(slow_engine, device: FakeDevice) -> None:
    """A tap answered before stop still reaches the log that was active."""
    engine, gate = slow_engine
    engine.start_session("COM3", "door")
    path = Path(engine.access_log.current_path)

    future = engine.on_uid("00-00-00-00")
    assert device.sent == ["0"]
    assert not future.done()

    threading.Timer(0.1, gate.set).start()
    assert engine.stop_session() is True

    assert future.done()
    rows = path.read_text(encoding="utf-8").splitlines()[1:]
    assert len(rows) == 1 and rows[0].endswith(",00-00-00-00,DENIED,3")
    assert engine.session_status().record_count == 1


def test_shutdown_writes_taps_already_answered(slow_engine, device: FakeDevice) -> None:
    """Process exit drains pending writes before the log is closed."""
    engine, gate = slow_engine
    engine.start_session("COM3", "door")
    path = Path(engine.access_log.current_path)
    engine.on_uid("04A1B2C3")
    engine.on_uid("04A1B2C4")

    threading.Timer(0.1, gate.set).start()
    engine.shutdown()

    rows = path.read_text(encoding="utf-8").splitlines()[1:]
    assert [r.split(",")[-3] for r in rows] == ["04A1B2C3", "04A1B2C4"]
    assert engine.drain() is True
