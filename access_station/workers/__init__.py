# =======================================================================================
# access_station/workers/__init__.py - Workers Package
# =======================================================================================
from .serial_worker import SerialTransport
from .scheduler import ScheduledTask, TaskScheduler

__all__ = ["SerialTransport", "ScheduledTask", "TaskScheduler"]
