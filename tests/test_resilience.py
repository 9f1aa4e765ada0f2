"""Tests for the periodic file reconciliation."""

from __future__ import annotations

from pathlib import Path

from access_station.models.enums import AccessStatus
from access_station.models.schemas import AccessEvent, Credential
from access_station.services.resilience_service import ResilienceService
from access_station.storage.access_log import DurableAccessLog
from access_station.storage.user_registry import UserRegistry

from conftest import ManualScheduler


def test_periodic_check_restores_deleted_files(
    access_log: DurableAccessLog, registry: UserRegistry, scheduler: ManualScheduler, paths: dict[str, Path]
) -> None:
    """Deleted primaries and the pointer come back without any new tap."""
    registry.save(Credential(uid="AA", name="Al"))
    primary = Path(access_log.begin_session("morning"))
    access_log.append(AccessEvent(uid="AA", timestamp="2024-05-03T09:00:00", status=AccessStatus.GRANTED))
    service = ResilienceService(access_log, registry, scheduler, interval=30)
    service.start()

    primary.unlink()
    paths["registry"].unlink()
    paths["pointer"].unlink()
    scheduler.advance(30)

    assert len(primary.read_text(encoding="utf-8").splitlines()) == 2
    assert "AA" in paths["registry"].read_text(encoding="utf-8")
    assert paths["pointer"].exists()


def test_start_is_idempotent_and_stop_cancels(
    access_log: DurableAccessLog, registry: UserRegistry, scheduler: ManualScheduler
) -> None:
    """Only one periodic task is armed; stop removes it."""
    service = ResilienceService(access_log, registry, scheduler, interval=30)
    service.start()
    service.start()
    assert len(scheduler.pending()) == 1
    service.stop()
    assert scheduler.pending() == []


def test_check_without_session_only_checks_registry(
    access_log: DurableAccessLog, registry: UserRegistry, scheduler: ManualScheduler
) -> None:
    """No active log is not a failure."""
    assert ResilienceService(access_log, registry, scheduler).check() is True
