"""Tests for the notification hub and configuration overrides."""

from __future__ import annotations

import pytest

from access_station.config import Config
from access_station.models.enums import NotificationType
from access_station.models.schemas import Notification
from access_station.services.notification_service import NotificationHub


def test_publish_reaches_subscribers_until_unsubscribed() -> None:
    """Subscribers receive notifications until they unsubscribe."""
    hub = NotificationHub()
    seen: list[Notification] = []
    unsubscribe = hub.subscribe(seen.append)

    hub.publish(NotificationType.NEW_RECORD, {"uid": "AA"})
    unsubscribe()
    hub.publish(NotificationType.NEW_RECORD, {"uid": "BB"})

    assert [n.data["uid"] for n in seen] == ["AA"]


def test_failing_subscriber_does_not_block_others() -> None:
    """One broken subscriber is logged and skipped."""
    hub = NotificationHub()
    seen: list[Notification] = []

    def broken(_: Notification) -> None:
        raise RuntimeError("viewer gone")

    hub.subscribe(broken)
    hub.subscribe(seen.append)
    hub.publish(NotificationType.USER_DELETED, {"uid": "AA"})

    assert len(seen) == 1


def test_history_is_bounded() -> None:
    """Only the most recent notifications are kept."""
    hub = NotificationHub(history_size=3)
    for i in range(5):
        hub.publish(NotificationType.NEW_RECORD, i)
    assert [n.data for n in hub.recent()] == [2, 3, 4]


def test_config_overrides_and_admin_uid() -> None:
    """Overrides apply per instance; unknown keys are refused."""
    cfg = Config(ADMIN_UID=" eb-ee-c0-01 ", STATION_ID=7)
    assert cfg.admin_uid() == "EB-EE-C0-01"
    assert cfg.STATION_ID == 7
    assert Config(ADMIN_UID="").admin_uid() is None
    with pytest.raises(AttributeError):
        Config(NOT_A_KEY=1)
