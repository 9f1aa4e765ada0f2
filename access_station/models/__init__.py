# =======================================================================================
# access_station/models/__init__.py - Models Package
# =======================================================================================
from .schemas import *
from .enums import *

__all__ = [
    "Credential", "AccessEvent", "SessionState", "EnrollmentState", "Notification",
    "DayStats", "BatchRun", "PortInfo", "ProbeResult", "HealthResponse",
    "OperationResult", "StartSessionRequest", "ReconnectRequest",
    "RenameSessionRequest", "ConfirmEnrollmentRequest", "BatchScheduleRequest",
    "AccessStatus", "SystemMode", "DeviceCommand", "NotificationType",
]
