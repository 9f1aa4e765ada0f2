"""Shared fakes and fixtures for the access station test suite."""

from __future__ import annotations

import heapq
import itertools
import queue
from pathlib import Path
from typing import Any, Callable

import pytest
import serial

from access_station.config import Config
from access_station.services.enrollment_service import EnrollmentService
from access_station.services.notification_service import NotificationHub
from access_station.services.user_service import UserService
from access_station.storage.access_log import DurableAccessLog
from access_station.storage.user_registry import UserRegistry
from access_station.workers.scheduler import ScheduledTask

ADMIN_UID = "EB-EE-C0-01"


class FakeSerial:
    """Stand-in for serial.Serial with a scripted readline queue."""

    def __init__(self, pong: str | None = None, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.port = kwargs.get("port")
        self.is_open = True
        self.written: list[bytes] = []
        self.pong = pong
        self._lines: "queue.Queue[bytes]" = queue.Queue()

    def feed(self, line: str) -> None:
        self._lines.put(line.encode("utf-8") + b"\n")

    def readline(self) -> bytes:
        if not self.is_open:
            raise serial.SerialException("port closed")
        try:
            return self._lines.get(timeout=0.02)
        except queue.Empty:
            return b""

    def write(self, data: bytes) -> int:
        if not self.is_open:
            raise serial.SerialException("port closed")
        self.written.append(data)
        if data == b"P\n" and self.pong is not None:
            self.feed(f"PONG:{self.pong}")
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False


class FakeSerialFactory:
    """Callable used in place of serial.Serial; remembers every port it opened."""

    def __init__(self, pong: str | None = None, missing: tuple[str, ...] = ()) -> None:
        self.pong = pong
        self.missing = set(missing)
        self.opened: list[FakeSerial] = []

    def __call__(self, **kwargs: Any) -> FakeSerial:
        if kwargs.get("port") in self.missing:
            raise serial.SerialException(f"could not open port {kwargs['port']}")
        ser = FakeSerial(pong=self.pong, **kwargs)
        self.opened.append(ser)
        return ser

    @property
    def last(self) -> FakeSerial:
        return self.opened[-1]


class FakeDevice:
    """Records the commands a service sends to the device."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.port: str | None = None
        self.on_event: Callable | None = None
        self.fail_open = False

    def send_command(self, code: Any) -> bool:
        self.sent.append(getattr(code, "value", code))
        return True

    def send_message(self, message: str) -> bool:
        self.sent.append(message)
        return True

    # transport surface used by AccessControlService
    def open(self, port_name: str, on_event: Callable | None = None, **_: Any) -> None:
        from access_station.utils.exceptions import PortUnavailable

        if self.fail_open:
            raise PortUnavailable(port_name, "no such device")
        self.port = port_name
        self.on_event = on_event

    def close(self) -> None:
        self.port = None
        self.on_event = None

    @property
    def is_open(self) -> bool:
        return self.port is not None


class ManualScheduler:
    """Deterministic TaskScheduler: tasks run only when advance() moves the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._seq = itertools.count()

    def start(self) -> None:
        pass

    def shutdown(self, wait: bool = True) -> None:
        self._queue.clear()

    def schedule(self, delay: float, fn: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(fn)
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), task))
        return task

    def schedule_periodic(
        self, interval: float, fn: Callable[[], None], initial_delay: float | None = None
    ) -> ScheduledTask:
        task = ScheduledTask(fn, interval=interval)
        first = interval if initial_delay is None else initial_delay
        heapq.heappush(self._queue, (self.now + first, next(self._seq), task))
        return task

    def pending(self) -> list[ScheduledTask]:
        return [t for _, _, t in self._queue if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            self.now = due
            if task.cancelled:
                continue
            if task.interval is not None:
                heapq.heappush(self._queue, (due + task.interval, next(self._seq), task))
            task.fn()
        self.now = target


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def serial_factory() -> FakeSerialFactory:
    return FakeSerialFactory(pong="ACCESS_v1")


@pytest.fixture
def paths(tmp_path: Path) -> dict[str, Path]:
    return {
        "logs": tmp_path / "data_logs",
        "backup": tmp_path / "data_logs_backup",
        "history": tmp_path / "history",
        "pointer": tmp_path / "data_logs" / ".file_tracker.dat",
        "registry": tmp_path / "data_logs" / "user_registry.csv",
        "registry_backup": tmp_path / "data_logs_backup" / "user_registry_backup.csv",
    }


@pytest.fixture
def access_log(paths: dict[str, Path]) -> DurableAccessLog:
    return DurableAccessLog(paths["logs"], paths["backup"], paths["pointer"], paths["history"])


@pytest.fixture
def registry(paths: dict[str, Path]) -> UserRegistry:
    return UserRegistry(paths["registry"], paths["registry_backup"])


@pytest.fixture
def users(registry: UserRegistry, hub: NotificationHub) -> UserService:
    return UserService(registry, hub)


@pytest.fixture
def enrollment(
    device: FakeDevice, users: UserService, hub: NotificationHub, scheduler: ManualScheduler
) -> EnrollmentService:
    return EnrollmentService(
        device, users, hub, scheduler, admin_uid=ADMIN_UID,
        admin_wait_seconds=15, enrollment_seconds=20,
    )


@pytest.fixture
def station_config(paths: dict[str, Path]) -> Config:
    return Config(
        DB_URL="sqlite://",
        MIRROR_ENABLED=True,
        SERIAL_ACTIVATION_DELAY=0.0,
        SERIAL_TIMEOUT=0.05,
        PROBE_TIMEOUT=1.0,
        ADMIN_UID=ADMIN_UID,
        DATA_LOGS_PATH=str(paths["logs"]),
        BACKUP_LOGS_PATH=str(paths["backup"]),
        HISTORY_PATH=str(paths["history"]),
        POINTER_PATH=str(paths["pointer"]),
        USER_REGISTRY_PATH=str(paths["registry"]),
        BACKUP_USER_REGISTRY_PATH=str(paths["registry_backup"]),
    )
