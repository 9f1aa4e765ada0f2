# =======================================================================================
# access_station/services/access_control.py - Core Business Logic
# =======================================================================================
import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Deque, List, Optional, Set

from ..models.enums import AccessStatus, DeviceCommand, NotificationType
from ..models.schemas import AccessEvent, DayStats, SessionState
from ..protocol import Event, UidReported, Unrecognized
from ..storage.access_log import DurableAccessLog
from ..utils.exceptions import PortUnavailable, StateViolation, WriteError
from ..utils.validators import normalize_uid, validate_session_label
from ..workers.serial_worker import SerialTransport
from .enrollment_service import EnrollmentService
from .notification_service import NotificationHub
from .user_service import UserService

logger = logging.getLogger(__name__)

ADMIN_DISPLAY_NAME = "Administrator"
UNREGISTERED_DISPLAY_NAME = "Not registered"
DRAIN_TIMEOUT = 10.0


class AccessControlService:
    """
    Decides GRANTED/DENIED for each presented tag and owns the capture session.

    on_uid() runs on the serial reader thread. The device reply is written
    synchronously; logging, caching and notifications run on a small
    worker pool so the reader can go straight back to readline(). The reply
    therefore reaches the door before the event is on disk.
    """

    def __init__(
        self,
        transport: SerialTransport,
        access_log: DurableAccessLog,
        users: UserService,
        enrollment: EnrollmentService,
        notifier: NotificationHub,
        station_id: int = 1,
        today_cache_size: int = 5000,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.transport = transport
        self.access_log = access_log
        self.users = users
        self.enrollment = enrollment
        self.notifier = notifier
        self.station_id = station_id

        self._lock = threading.RLock()
        self._session: Optional[SessionState] = None
        self._today: Deque[AccessEvent] = deque(maxlen=today_cache_size)
        self._today_lock = threading.Lock()
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="access-slow")
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def start_session(self, port_name: str, session_name: str) -> SessionState:
        label = validate_session_label(session_name)
        with self._lock:
            if self._session is not None and self._session.active:
                raise StateViolation("A session is already active. Stop it first.")

            logger.info("[access] starting session %s on %s", label, port_name)
            with self._today_lock:
                self._today.clear()

            log_path = self.access_log.begin_session(label)
            try:
                self.transport.open(port_name, on_event=self.on_event)
            except PortUnavailable:
                self.access_log.close()
                raise

            session = SessionState.start(port_name, label)
            session.log_path = log_path
            self._session = session
            self._publish_session("Session started")
            return session.model_copy()

    def reconnect_session(self, port_name: str) -> SessionState:
        """Reopen the serial port and keep appending to the current (or last known) log."""
        with self._lock:
            if not self.access_log.is_ready and self.access_log.recover_from_pointer() is None:
                raise StateViolation("No previous log to continue. Start a new session instead.")

            self.transport.open(port_name, on_event=self.on_event)

            if self._session is not None:
                self._session.active = True
                self._session.port_name = port_name
                self._session.log_path = self.access_log.current_path
            else:
                session = SessionState.start(port_name, self.access_log.label or "reconnected")
                session.log_path = self.access_log.current_path
                self._session = session
            logger.info("[access] reconnected on %s, log %s", port_name, self._session.log_path)
            self._publish_session("Session reconnected")
            return self._session.model_copy()

    def rename_session(self, session_name: str) -> SessionState:
        label = validate_session_label(session_name)
        with self._lock:
            if self._session is None or not self._session.active:
                raise StateViolation("No active session to rename")
            new_path = self.access_log.rename(label)
            logger.info("[access] session %s renamed to %s", self._session.session_name, label)
            self._session.session_name = label
            self._session.log_path = new_path
            self._publish_session("Session renamed")
            return self._session.model_copy()

    def stop_session(self) -> bool:
        """Stop the active session. Returns False (and does nothing) when none is active."""
        with self._lock:
            if self._session is None or not self._session.active:
                logger.debug("[access] no active session to stop")
                return False

            logger.info("[access] stopping session %s", self._session.session_name)
            self.enrollment.cancel()
            # no new taps after this; the ones already answered must reach the log
            self.transport.close()
            self.drain()
            self.access_log.close()
            self._session.active = False
            logger.info("[access] session stopped after %d records", self._session.record_count)
            self._publish_session("Session stopped")
            return True

    def session_status(self) -> Optional[SessionState]:
        with self._lock:
            if self._session is None:
                return None
            if self._session.active and self.access_log.is_ready:
                # the nightly batch may have rotated the file underneath us
                self._session.log_path = self.access_log.current_path
            return self._session.model_copy()

    def shutdown(self) -> None:
        self.stop_session()
        self._executor.shutdown(wait=True)

    def drain(self, timeout: float = DRAIN_TIMEOUT) -> bool:
        """Wait for queued persistence jobs. Returns False if some are still running."""
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            logger.warning("[access] %d records still pending after %.0fs", len(not_done), timeout)
        return not not_done

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _publish_session(self, message: str) -> None:
        s = self._session
        self.notifier.publish(
            NotificationType.SESSION_STATUS,
            {"active": bool(s and s.active), "message": message,
             "session": s.model_dump(mode="json") if s else None},
        )

    # ------------------------------------------------------------------
    # Serial entry point
    # ------------------------------------------------------------------
    def on_event(self, event: Event) -> None:
        if isinstance(event, UidReported):
            self.on_uid(event.uid)
        elif isinstance(event, Unrecognized):
            logger.debug("[access] ignoring device line %r", event.line)

    def on_uid(self, uid: str) -> Optional[Future]:
        """
        Handle one tag presentation. Returns the future of the background
        persistence step, or None when the tag was consumed by enrollment.
        """
        uid = normalize_uid(uid)
        if not uid:
            return None

        if self.enrollment.handle_uid(uid):
            return None

        is_admin = self.enrollment.is_admin_uid(uid)
        is_known = is_admin or self.users.is_registered(uid)

        # reply first; everything below may touch the disk
        self.transport.send_command(DeviceCommand.GRANTED if is_known else DeviceCommand.DENIED)
        logger.info("[access] %s -> %s", uid, "GRANTED" if is_known else "DENIED")

        future = self._executor.submit(self._record, uid, is_known, is_admin, datetime.now())
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _record(self, uid: str, is_known: bool, is_admin: bool, when: datetime) -> AccessEvent:
        if is_admin:
            user_name = ADMIN_DISPLAY_NAME
        else:
            cred = self.users.find(uid)
            user_name = cred.name if cred else UNREGISTERED_DISPLAY_NAME

        event = AccessEvent(
            uid=uid,
            timestamp=when.replace(microsecond=0),
            status=AccessStatus.GRANTED if is_known else AccessStatus.DENIED,
            station_id=self.station_id,
            user_name=user_name,
        )

        if self.access_log.is_ready:
            try:
                self.access_log.append(event)
            except WriteError as e:
                logger.error("[access] could not log %s: %s", uid, e)
                self.notifier.publish(NotificationType.WRITE_ERROR, {"uid": uid, "message": str(e)})
        else:
            logger.warning("[access] no active log; %s not written to disk", uid)

        with self._today_lock:
            if self._today and self._today[0].timestamp.date() != event.timestamp.date():
                self._today.clear()
            self._today.append(event)
            # stop_session waits on this job while holding self._lock
            session = self._session
            if session is not None and session.active:
                session.record_count += 1

        self.notifier.publish(NotificationType.NEW_RECORD, event.model_dump(mode="json"))
        return event

    # ------------------------------------------------------------------
    # Dashboard queries
    # ------------------------------------------------------------------
    def today_records(self) -> List[AccessEvent]:
        with self._today_lock:
            return list(self._today)

    def latest_records(self, limit: int = 10) -> List[AccessEvent]:
        """Most recent first."""
        records = self.today_records()
        return list(reversed(records[-limit:])) if limit > 0 else []

    def day_stats(self) -> DayStats:
        records = self.today_records()
        granted = sum(1 for r in records if r.status == AccessStatus.GRANTED)
        last = records[-1].timestamp.strftime("%H:%M:%S") if records else "--:--:--"
        return DayStats(total=len(records), granted=granted, denied=len(records) - granted, last_access=last)
