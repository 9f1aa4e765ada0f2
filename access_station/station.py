# =======================================================================================
# access_station/station.py - Component Wiring
# =======================================================================================
import logging
from typing import Callable, Optional

import serial

from .config import Config, config as default_config
from .database import DatabaseManager
from .services.access_control import AccessControlService
from .services.enrollment_service import EnrollmentService
from .services.notification_service import NotificationHub
from .services.resilience_service import ResilienceService
from .services.serial_service import SerialService
from .services.sync_service import MirrorService
from .services.user_service import UserService
from .storage.access_log import DurableAccessLog
from .storage.user_registry import UserRegistry
from .workers.batch_job import BatchMirrorJob
from .workers.scheduler import TaskScheduler
from .workers.serial_worker import SerialTransport

logger = logging.getLogger(__name__)


class Station:
    """Builds every component once and owns their start/stop order."""

    def __init__(
        self,
        cfg: Optional[Config] = None,
        serial_factory: Callable[..., serial.Serial] = serial.Serial,
        scheduler: Optional[TaskScheduler] = None,
    ):
        self.config = cfg = cfg or default_config

        self.notifier = NotificationHub()
        self.scheduler = scheduler or TaskScheduler()
        self.transport = SerialTransport(
            serial_factory=serial_factory,
            read_timeout=cfg.SERIAL_TIMEOUT,
            activation_delay=cfg.SERIAL_ACTIVATION_DELAY,
        )

        self.access_log = DurableAccessLog(
            cfg.DATA_LOGS_PATH, cfg.BACKUP_LOGS_PATH, cfg.POINTER_PATH, cfg.HISTORY_PATH,
        )
        self.registry = UserRegistry(cfg.USER_REGISTRY_PATH, cfg.BACKUP_USER_REGISTRY_PATH)

        self.db: Optional[DatabaseManager] = None
        self.mirror: Optional[MirrorService] = None
        if cfg.MIRROR_ENABLED:
            self.db = DatabaseManager(cfg.DB_URL)
            self.mirror = MirrorService(self.db)

        self.users = UserService(self.registry, self.notifier, self.mirror)
        self.enrollment = EnrollmentService(
            self.transport, self.users, self.notifier, self.scheduler,
            admin_uid=cfg.admin_uid(),
            admin_wait_seconds=cfg.ADMIN_WAIT_SECONDS,
            enrollment_seconds=cfg.ENROLLMENT_SECONDS,
            send_name_on_confirm=cfg.ENROLLMENT_SEND_NAME,
        )
        self.access = AccessControlService(
            self.transport, self.access_log, self.users, self.enrollment, self.notifier,
            station_id=cfg.STATION_ID,
            today_cache_size=cfg.TODAY_CACHE_SIZE,
        )
        self.serial = SerialService(
            self.transport, serial_factory=serial_factory,
            settle_seconds=cfg.SERIAL_ACTIVATION_DELAY,
        )
        self.resilience = ResilienceService(
            self.access_log, self.registry, self.scheduler, interval=cfg.RESILIENCE_INTERVAL,
        )
        self.batch: Optional[BatchMirrorJob] = None
        if self.mirror is not None:
            self.batch = BatchMirrorJob(
                self.access_log, self.registry, self.mirror, self.notifier, self.scheduler,
                hour=cfg.BATCH_HOUR, minute=cfg.BATCH_MINUTE,
            )
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.scheduler.start()
        self.resilience.start()
        if self.batch is not None:
            self.batch.start()
        logger.info(
            "[station] station %d ready: %d users, mirror %s",
            self.config.STATION_ID, self.users.count(),
            "on" if self.mirror is not None else "off",
        )

    def shutdown(self) -> None:
        """Stop the session, timers and pools. Safe to call twice."""
        logger.info("[station] shutting down")
        self.access.shutdown()
        self.enrollment.shutdown()
        self.resilience.stop()
        if self.batch is not None:
            self.batch.stop()
        self.scheduler.shutdown()
        if self.db is not None:
            self.db.dispose()
        self._started = False
