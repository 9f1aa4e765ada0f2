# =======================================================================================
# access_station/services/resilience_service.py - Periodic File Reconciliation
# =======================================================================================
import logging
from typing import Optional

from ..storage.access_log import DurableAccessLog
from ..storage.user_registry import UserRegistry
from ..workers.scheduler import ScheduledTask, TaskScheduler

logger = logging.getLogger(__name__)


class ResilienceService:
    """
    Re-checks the active log, its pointer and the user registry on a
    fixed interval and restores whatever was deleted from its backup, so
    a deletion is repaired even when no tag is presented for a while.
    """

    def __init__(
        self,
        access_log: DurableAccessLog,
        registry: UserRegistry,
        scheduler: TaskScheduler,
        interval: float = 30.0,
    ):
        self.access_log = access_log
        self.registry = registry
        self.scheduler = scheduler
        self.interval = interval
        self._task: Optional[ScheduledTask] = None

    def start(self) -> None:
        if self._task is None:
            self._task = self.scheduler.schedule_periodic(self.interval, self.check)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def check(self) -> bool:
        log_ok = self.access_log.verify_files()
        registry_ok = self.registry.verify_files()
        if not (log_ok and registry_ok):
            logger.warning("[resilience] recovery incomplete (log=%s, registry=%s)", log_ok, registry_ok)
        return log_ok and registry_ok
