# =======================================================================================
# access_station/workers/batch_job.py - Batch Mirror Job
# =======================================================================================
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..models.enums import NotificationType
from ..models.schemas import BatchRun
from ..services.notification_service import NotificationHub
from ..services.sync_service import MirrorService
from ..storage.access_log import DurableAccessLog
from ..storage.user_registry import UserRegistry
from ..utils.exceptions import WriteError
from .scheduler import ScheduledTask, TaskScheduler

logger = logging.getLogger(__name__)


class BatchMirrorJob:
    """
    Once a day: push the user registry to the mirror, rotate the active
    log, then load every closed log into the mirror and archive it.
    """

    def __init__(
        self,
        access_log: DurableAccessLog,
        registry: UserRegistry,
        mirror: MirrorService,
        notifier: NotificationHub,
        scheduler: TaskScheduler,
        hour: int = 22,
        minute: int = 0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.access_log = access_log
        self.registry = registry
        self.mirror = mirror
        self.notifier = notifier
        self.scheduler = scheduler
        self._clock = clock
        self._run_lock = threading.Lock()
        self._task: Optional[ScheduledTask] = None
        self.hour, self.minute = hour, minute

        self.last_run: Optional[datetime] = None
        self.last_records = 0
        self.last_success = False
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    @property
    def scheduled_time(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    def seconds_until_next_run(self) -> float:
        now = self._clock()
        target = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if target <= now:
            target += timedelta(days=1)
        return (target - now).total_seconds()

    def start(self) -> None:
        self._arm()
        logger.info("[batch] scheduled daily at %s", self.scheduled_time)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def reschedule(self, hour: int, minute: int) -> str:
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid time {hour}:{minute}")
        self.hour, self.minute = hour, minute
        self._arm()
        logger.info("[batch] rescheduled to %s", self.scheduled_time)
        return self.scheduled_time

    def _arm(self) -> None:
        self.stop()
        self._task = self.scheduler.schedule(self.seconds_until_next_run(), self._scheduled_run)

    def _scheduled_run(self) -> None:
        try:
            self.run(rotate=True)
        finally:
            self._arm()

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------
    def status(self) -> BatchRun:
        mirrored_events = mirrored_users = None
        try:
            mirrored_events = self.mirror.count_events()
            mirrored_users = len(self.mirror.list_users())
        except SQLAlchemyError as e:
            logger.warning("[batch] mirror totals unavailable: %s", e)
        return BatchRun(
            last_run=self.last_run, records=self.last_records,
            success=self.last_success, error=self.last_error,
            scheduled_time=self.scheduled_time,
            mirrored_events=mirrored_events, mirrored_users=mirrored_users,
        )

    def run(self, rotate: bool = False) -> int:
        """Mirror pending logs. With rotate=True the active log is closed off first."""
        with self._run_lock:
            logger.info("[batch] === starting ===")
            self.notifier.publish(NotificationType.BATCH_STARTED, {"started_at": self._clock().isoformat()})

            self._sync_users()

            if rotate and self.access_log.is_ready:
                new_label = "batch_" + self._clock().strftime("%H%M%S")
                try:
                    old, new = self.access_log.rotate_to(new_label)
                    logger.info("[batch] rotated %s -> %s", old, new)
                except WriteError as e:
                    logger.error("[batch] rotation failed: %s", e)

            total, errors = 0, 0
            pending = self.access_log.pending_files()
            for path in pending:
                try:
                    events = self.access_log.read_events(path)
                    saved = self.mirror.save_events(events) if events else 0
                    self.access_log.move_to_history(path)
                    total += saved
                    logger.info("[batch] %s: %d records mirrored", path.name, saved)
                except (SQLAlchemyError, WriteError, OSError) as e:
                    errors += 1
                    logger.error("[batch] failed on %s: %s", path.name, e)

            self.last_run = self._clock()
            self.last_records = total
            self.last_success = errors == 0
            self.last_error = f"{errors} files failed" if errors else (
                None if pending else "No pending files"
            )
            self.notifier.publish(
                NotificationType.BATCH_COMPLETED,
                {"records": total, "errors": errors, "success": errors == 0},
            )
            logger.info("[batch] === done: %d records, %d failed files ===", total, errors)
            return total

    def _sync_users(self) -> None:
        try:
            self.mirror.sync_credentials(self.registry.all())
        except SQLAlchemyError as e:
            logger.error("[batch] user sync failed: %s", e)
