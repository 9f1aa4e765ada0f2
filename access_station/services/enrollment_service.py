# =======================================================================================
# access_station/services/enrollment_service.py - Enrollment / Admin State Machine
# =======================================================================================
"""
Modes and transitions
=====================

    ACCESS --start_enrollment()--> AWAITING_ADMIN            sends W
    AWAITING_ADMIN --admin card--> ENROLLING                 sends E
    AWAITING_ADMIN --other card--> ACCESS                    sends X
    AWAITING_ADMIN --deadline----> ACCESS                    sends A
    ENROLLING --capture_uid()----> ENROLLING (uid captured)
    ENROLLING --confirm()--------> ACCESS                    sends K[:name], A
    ENROLLING --cancel()/deadline> ACCESS                    sends A

Anything else is refused (StateViolation) or ignored. Each phase owns one
timeout task and one 1 Hz countdown task; starting or leaving a phase
cancels both and bumps a generation number so callbacks already queued
for the old phase do nothing.
"""
import logging
import threading
from typing import Optional

from ..models.enums import DeviceCommand, NotificationType, SystemMode
from ..models.schemas import Credential, EnrollmentState
from ..protocol import confirm_payload
from ..utils.exceptions import AlreadyRegistered, IsAdminCredential, StateViolation
from ..utils.validators import normalize_uid, validate_display_name
from ..workers.scheduler import ScheduledTask, TaskScheduler
from .notification_service import NotificationHub
from .user_service import UserService

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Owns the process-wide SystemMode."""

    def __init__(
        self,
        device,
        users: UserService,
        notifier: NotificationHub,
        scheduler: TaskScheduler,
        admin_uid: Optional[str],
        admin_wait_seconds: int = 15,
        enrollment_seconds: int = 20,
        send_name_on_confirm: bool = True,
    ):
        self.device = device
        self.users = users
        self.notifier = notifier
        self.scheduler = scheduler
        self.admin_uid = normalize_uid(admin_uid) or None
        self.admin_wait_seconds = admin_wait_seconds
        self.enrollment_seconds = enrollment_seconds
        self.send_name_on_confirm = send_name_on_confirm

        self._lock = threading.RLock()
        self._mode = SystemMode.ACCESS
        self._captured_uid: Optional[str] = None
        self._remaining = 0
        self._generation = 0
        self._timeout_task: Optional[ScheduledTask] = None
        self._countdown_task: Optional[ScheduledTask] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def mode(self) -> SystemMode:
        return self._mode

    def is_admin_uid(self, uid: str) -> bool:
        return self.admin_uid is not None and normalize_uid(uid) == self.admin_uid

    def state(self) -> EnrollmentState:
        with self._lock:
            return EnrollmentState(
                mode=self._mode,
                seconds_remaining=self._remaining,
                captured_uid=self._captured_uid,
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def start_enrollment(self) -> EnrollmentState:
        """ACCESS -> AWAITING_ADMIN."""
        with self._lock:
            if self._mode != SystemMode.ACCESS:
                raise StateViolation(f"Enrollment already in progress ({self._mode.value})")
            if self.admin_uid is None:
                raise StateViolation("No administrator card configured")

            logger.info("[enroll] waiting for administrator card (%ds)", self.admin_wait_seconds)
            self._mode = SystemMode.AWAITING_ADMIN
            self._captured_uid = None
            self._start_phase(self.admin_wait_seconds)
            self._send(DeviceCommand.AWAIT_ADMIN)
            self.notifier.publish(
                NotificationType.ADMIN_REQUIRED, {"seconds_remaining": self._remaining}
            )
            self._publish_mode()
            return self.state()

    def handle_uid(self, uid: str) -> bool:
        """
        Offer a tapped uid to the enrollment flow. Returns True when the tap
        was consumed (admin wait or capture); False means the caller should
        treat it as a normal access request.
        """
        with self._lock:
            if self._mode == SystemMode.AWAITING_ADMIN:
                self.validate_admin_uid(uid)
                return True
            if self._mode == SystemMode.ENROLLING:
                self.capture_uid(uid)
                return True
            return False

    def validate_admin_uid(self, uid: str) -> bool:
        """AWAITING_ADMIN -> ENROLLING on the admin card, -> ACCESS on any other card."""
        uid = normalize_uid(uid)
        with self._lock:
            if self._mode != SystemMode.AWAITING_ADMIN:
                logger.warning("[enroll] admin validation outside admin wait; ignored")
                return False

            if self.is_admin_uid(uid):
                logger.info("[enroll] administrator validated; enrollment open (%ds)",
                            self.enrollment_seconds)
                self._mode = SystemMode.ENROLLING
                self._start_phase(self.enrollment_seconds)
                self._send(DeviceCommand.ENTER_ENROLLMENT)
                self.notifier.publish(
                    NotificationType.ADMIN_APPROVED,
                    {"approved": True, "message": "Administrator validated"},
                )
                self._publish_mode()
                return True

            logger.warning("[enroll] card %s is not the administrator card", uid)
            self._end_phase(send_access=False)
            self._send(DeviceCommand.ADMIN_REJECTED)
            self.notifier.publish(
                NotificationType.ADMIN_REJECTED,
                {"uid": uid, "message": "Card is not the administrator card"},
            )
            self._publish_mode()
            return False

    def capture_uid(self, uid: str) -> Optional[str]:
        """
        ENROLLING: remember uid until the administrator names it.
        Known uids and the admin card are refused with an enrollment-error
        notification and leave the state untouched.
        """
        uid = normalize_uid(uid)
        with self._lock:
            if self._mode != SystemMode.ENROLLING:
                logger.warning("[enroll] capture outside enrollment; ignored")
                return None

            refusal = None
            if self.is_admin_uid(uid):
                refusal = IsAdminCredential(uid)
            elif self.users.is_registered(uid):
                refusal = AlreadyRegistered(uid)
            if refusal is not None:
                logger.warning("[enroll] %s", refusal)
                self.notifier.publish(
                    NotificationType.ENROLLMENT_ERROR,
                    {"uid": uid, "message": str(refusal), "reason": type(refusal).__name__},
                )
                return None

            self._captured_uid = uid
            logger.info("[enroll] captured %s, waiting for a name", uid)
            self.notifier.publish(NotificationType.UID_CAPTURED, {"uid": uid})
            self._publish_mode()
            return uid

    def confirm_enrollment(self, uid: str, name: str) -> Credential:
        """ENROLLING (uid captured) -> ACCESS, persisting the credential."""
        uid = normalize_uid(uid)
        with self._lock:
            if self._mode != SystemMode.ENROLLING:
                raise StateViolation("The station is not in enrollment mode")
            if self._captured_uid is None or self._captured_uid != uid:
                raise StateViolation("UID does not match the captured card")
            if self.is_admin_uid(uid):
                raise IsAdminCredential(uid)
            name = validate_display_name(name)

            cred = self.users.register(uid, name)

            payload = confirm_payload(name if self.send_name_on_confirm else None)
            if len(payload) == 1:
                self._send(DeviceCommand.CONFIRM)
            elif not self.device.send_message(payload):
                logger.warning("[enroll] confirmation %r not delivered", payload)
            self.notifier.publish(
                NotificationType.ENROLLMENT_COMPLETE, cred.model_dump(mode="json")
            )
            self._end_phase(send_access=True)
            self._publish_mode()
            logger.info("[enroll] completed %s - %s", uid, name)
            return cred

    def cancel(self) -> EnrollmentState:
        """Any mode -> ACCESS. No-op when already in ACCESS."""
        with self._lock:
            if self._mode == SystemMode.ACCESS:
                return self.state()
            logger.info("[enroll] cancelled from %s", self._mode.value)
            self._end_phase(send_access=True)
            self._publish_mode()
            return self.state()

    def shutdown(self) -> None:
        """Drop timers without talking to the device (port is going away)."""
        with self._lock:
            self._cancel_timers()
            self._generation += 1
            self._mode = SystemMode.ACCESS
            self._captured_uid = None
            self._remaining = 0

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def _start_phase(self, seconds: int) -> None:
        self._cancel_timers()
        self._generation += 1
        generation = self._generation
        self._remaining = seconds
        self._timeout_task = self.scheduler.schedule(
            seconds, lambda: self._on_timeout(generation)
        )
        self._countdown_task = self.scheduler.schedule_periodic(
            1.0, lambda: self._on_tick(generation)
        )

    def _end_phase(self, send_access: bool) -> None:
        self._cancel_timers()
        self._generation += 1
        self._mode = SystemMode.ACCESS
        self._captured_uid = None
        self._remaining = 0
        if send_access:
            self._send(DeviceCommand.ACCESS_MODE)

    def _cancel_timers(self) -> None:
        for task in (self._timeout_task, self._countdown_task):
            if task is not None:
                task.cancel()
        self._timeout_task = None
        self._countdown_task = None

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._mode == SystemMode.ACCESS:
                return
            logger.info("[enroll] %s timed out", self._mode.value)
            self._end_phase(send_access=True)
            self._publish_mode()

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._mode == SystemMode.ACCESS:
                return
            self._remaining = max(0, self._remaining - 1)
            if self._remaining == 0:
                self._on_timeout(generation)
                return
            self._publish_mode()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _send(self, command: DeviceCommand) -> None:
        if not self.device.send_command(command):
            logger.warning("[enroll] command %s not delivered", command.value)

    def _publish_mode(self) -> None:
        self.notifier.publish(
            NotificationType.ENROLLMENT_MODE_CHANGED, self.state().model_dump(mode="json")
        )
