# =======================================================================================
# access_station/utils/__init__.py - Utils Package
# =======================================================================================
from .exceptions import *
from .validators import *

__all__ = [
    "AccessStationError", "PortUnavailable", "WriteError", "StateViolation",
    "AlreadyRegistered", "IsAdminCredential", "ValidationError",
    "normalize_uid", "validate_display_name", "validate_session_label",
]
