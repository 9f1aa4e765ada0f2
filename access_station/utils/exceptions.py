# =======================================================================================
# access_station/utils/exceptions.py - Custom Exceptions
# =======================================================================================
class AccessStationError(Exception):
    """Base exception for the access station."""
    pass

class PortUnavailable(AccessStationError):
    """Raised when the serial port is missing or already held by another process."""

    def __init__(self, port_name: str, reason: str = "cannot open port"):
        self.port_name = port_name
        self.reason = reason
        super().__init__(f"Serial port {port_name} unavailable: {reason}")

class WriteError(AccessStationError):
    """Raised when the access log or registry cannot be written to disk."""

    def __init__(self, path, cause: Exception = None):
        self.path = str(path) if path is not None else None
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot write {self.path or '<no active file>'}{detail}")

class StateViolation(AccessStationError):
    """Raised when an operation is not allowed in the current mode or session state."""
    pass

class AlreadyRegistered(AccessStationError):
    """Raised when capturing a uid that is already in the registry."""

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"Device already registered: {uid}")

class IsAdminCredential(AccessStationError):
    """Raised when the administrator card is presented for enrollment."""

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"The administrator card cannot be enrolled: {uid}")

class ValidationError(AccessStationError):
    """Raised when an administrative request carries invalid input."""
    pass
