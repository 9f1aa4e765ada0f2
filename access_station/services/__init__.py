# =======================================================================================
# access_station/services/__init__.py - Services Package
# =======================================================================================
from .notification_service import NotificationHub
from .sync_service import MirrorService
from .user_service import UserService
from .enrollment_service import EnrollmentService
from .access_control import AccessControlService
from .serial_service import SerialService
from .resilience_service import ResilienceService

__all__ = [
    "NotificationHub", "MirrorService", "UserService", "EnrollmentService",
    "AccessControlService", "SerialService", "ResilienceService",
]
