# =======================================================================================
# access_station/config.py - Configuration Management
# =======================================================================================
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

def _env_int(name: str, default: int) -> int:
    """Helper to parse integer environment variables."""
    v = os.getenv(name)
    return int(v) if v and v.strip().lstrip("-").isdigit() else default

def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    try:
        return float(v) if v else default
    except ValueError:
        return default

def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")

class Config:
    # API Settings
    API_DEBUG: bool = _env_bool("API_DEBUG", False)
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = _env_int("API_PORT", 8000)

    # Relational mirror (best effort)
    DB_URL: str = os.getenv("DB_URL", "sqlite:///./access_station.db")
    DB_POOL_SIZE: int = _env_int("DB_POOL_SIZE", 10)
    DB_MAX_OVERFLOW: int = _env_int("DB_MAX_OVERFLOW", 20)
    MIRROR_ENABLED: bool = _env_bool("MIRROR_ENABLED", True)

    # Serial Communication
    SERIAL_BAUD: int = _env_int("SERIAL_BAUD", 115200)
    SERIAL_DATA_BITS: int = _env_int("SERIAL_DATA_BITS", 8)
    SERIAL_STOP_BITS: int = _env_int("SERIAL_STOP_BITS", 1)
    SERIAL_PARITY: str = os.getenv("SERIAL_PARITY", "N")
    SERIAL_TIMEOUT: float = _env_float("SERIAL_TIMEOUT", 1.0)
    # Boards reset on DTR; "A" is sent once this delay has passed
    SERIAL_ACTIVATION_DELAY: float = _env_float("SERIAL_ACTIVATION_DELAY", 2.0)
    PROBE_TIMEOUT: float = _env_float("PROBE_TIMEOUT", 3.0)

    # Station
    STATION_ID: int = _env_int("STATION_ID", 1)
    ADMIN_UID: str = os.getenv("ADMIN_UID", "EB-EE-C0-01")

    # Enrollment
    ADMIN_WAIT_SECONDS: int = _env_int("ADMIN_WAIT_SECONDS", 15)
    ENROLLMENT_SECONDS: int = _env_int("ENROLLMENT_SECONDS", 20)
    ENROLLMENT_SEND_NAME: bool = _env_bool("ENROLLMENT_SEND_NAME", True)

    # Files
    DATA_LOGS_PATH: str = os.getenv("DATA_LOGS_PATH", "./data_logs")
    BACKUP_LOGS_PATH: str = os.getenv("BACKUP_LOGS_PATH", "./data_logs_backup")
    HISTORY_PATH: str = os.getenv("HISTORY_PATH", "./history")
    POINTER_PATH: str = os.getenv("POINTER_PATH", "./data_logs/.file_tracker.dat")
    USER_REGISTRY_PATH: str = os.getenv("USER_REGISTRY_PATH", "./data_logs/user_registry.csv")
    BACKUP_USER_REGISTRY_PATH: str = os.getenv(
        "BACKUP_USER_REGISTRY_PATH", "./data_logs_backup/user_registry_backup.csv"
    )

    # Runtime
    TODAY_CACHE_SIZE: int = _env_int("TODAY_CACHE_SIZE", 5000)
    RESILIENCE_INTERVAL: float = _env_float("RESILIENCE_INTERVAL", 30.0)
    BATCH_HOUR: int = _env_int("BATCH_HOUR", 22)
    BATCH_MINUTE: int = _env_int("BATCH_MINUTE", 0)

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(Config, key):
                raise AttributeError(f"Unknown config key: {key}")
            setattr(self, key, value)

    def admin_uid(self) -> Optional[str]:
        uid = (self.ADMIN_UID or "").strip().upper()
        return uid or None

config = Config()
