# =======================================================================================
# access_station/storage/__init__.py - Local File Storage
# =======================================================================================
from .mirrored_file import MirroredFile
from .pointer import PointerSidecar, PointerRecord
from .access_log import DurableAccessLog
from .user_registry import UserRegistry

__all__ = ["MirroredFile", "PointerSidecar", "PointerRecord", "DurableAccessLog", "UserRegistry"]
