# =======================================================================================
# access_station/models/schemas.py - Pydantic Models
# =======================================================================================
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .enums import AccessStatus, SystemMode, NotificationType
from ..utils.validators import normalize_uid

# ========== Domain ==========

class Credential(BaseModel):
    """An enrolled uid -> name mapping."""
    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., description="Normalized tag identifier")
    name: str
    registered_at: Optional[datetime] = None

    @field_validator("uid")
    @classmethod
    def _normalize_uid(cls, v: str) -> str:
        return normalize_uid(v)


class AccessEvent(BaseModel):
    """One tag presentation. Appended, never updated."""
    model_config = ConfigDict(frozen=True)

    uid: str
    timestamp: datetime
    status: AccessStatus
    station_id: int = 1
    user_name: Optional[str] = None

    @field_validator("uid")
    @classmethod
    def _normalize_uid(cls, v: str) -> str:
        return normalize_uid(v)


class SessionState(BaseModel):
    """Capture session bound to one serial port and one log file."""
    port_name: str
    session_name: str
    started_at: datetime
    active: bool = True
    record_count: int = 0
    log_path: Optional[str] = None

    @classmethod
    def start(cls, port_name: str, session_name: str) -> "SessionState":
        return cls(port_name=port_name, session_name=session_name, started_at=datetime.now())


class EnrollmentState(BaseModel):
    """Snapshot of the enrollment/admin state machine."""
    mode: SystemMode = SystemMode.ACCESS
    seconds_remaining: int = 0
    captured_uid: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.mode != SystemMode.ACCESS


class Notification(BaseModel):
    """Typed message fanned out to observers."""
    type: NotificationType
    data: Any = None
    timestamp: datetime = Field(default_factory=datetime.now)


# ========== Dashboard ==========

class DayStats(BaseModel):
    total: int
    granted: int
    denied: int
    last_access: str


class BatchRun(BaseModel):
    last_run: Optional[datetime] = None
    records: int = 0
    success: bool = False
    error: Optional[str] = None
    scheduled_time: str
    mirrored_events: Optional[int] = None
    mirrored_users: Optional[int] = None


class PortInfo(BaseModel):
    device: str
    description: Optional[str] = None


class ProbeResult(BaseModel):
    port_name: str
    success: bool
    firmware: Optional[str] = None
    message: str


class HealthResponse(BaseModel):
    status: str                 # "ok" | "error"
    sessionActive: bool
    mode: SystemMode
    message: Optional[str] = None


# ========== Requests / results ==========

class OperationResult(BaseModel):
    """Explicit success/failure value returned by administrative operations."""
    success: bool
    message: str
    data: Any = None


class StartSessionRequest(BaseModel):
    port_name: str = Field(..., min_length=1, description="Serial port, e.g. /dev/ttyACM0 or COM3")
    session_name: str = Field(..., min_length=1, description="Label used for the log file name")


class ReconnectRequest(BaseModel):
    port_name: str = Field(..., min_length=1)


class RenameSessionRequest(BaseModel):
    session_name: str = Field(..., min_length=1)


class ConfirmEnrollmentRequest(BaseModel):
    uid: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=64)


class BatchScheduleRequest(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)
