# =======================================================================================
# access_station/models/enums.py - Enums and Constants
# =======================================================================================
from enum import Enum


class AccessStatus(str, Enum):
    """Outcome recorded for one tag presentation."""
    GRANTED = "GRANTED"
    DENIED = "DENIED"
    UNKNOWN = "UNKNOWN"


class SystemMode(str, Enum):
    """Process-wide operating mode of the station."""
    ACCESS = "ACCESS"
    AWAITING_ADMIN = "AWAITING_ADMIN"
    ENROLLING = "ENROLLING"


class DeviceCommand(str, Enum):
    """Single-character commands for serial communication (host -> device)."""
    GRANTED = "1"
    DENIED = "0"
    ENTER_ENROLLMENT = "E"
    ACCESS_MODE = "A"
    AWAIT_ADMIN = "W"
    ADMIN_REJECTED = "X"
    CONFIRM = "K"
    PROBE = "P"


class NotificationType(str, Enum):
    """Event types delivered to external viewers."""
    NEW_RECORD = "new-record"
    ENROLLMENT_MODE_CHANGED = "enrollment-mode-changed"
    UID_CAPTURED = "uid-captured"
    ENROLLMENT_COMPLETE = "enrollment-complete"
    ENROLLMENT_ERROR = "enrollment-error"
    ADMIN_REQUIRED = "admin-required"
    ADMIN_APPROVED = "admin-approved"
    ADMIN_REJECTED = "admin-rejected"
    USER_DELETED = "user-deleted"
    BATCH_STARTED = "batch-started"
    BATCH_COMPLETED = "batch-completed"
    SESSION_STATUS = "session-status"
    WRITE_ERROR = "write-error"
