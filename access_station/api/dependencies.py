# =======================================================================================
# access_station/api/dependencies.py - FastAPI Dependencies
# =======================================================================================
from fastapi import HTTPException, Request

from ..models.schemas import OperationResult
from ..station import Station
from ..utils.exceptions import (
    AccessStationError, AlreadyRegistered, IsAdminCredential, StateViolation,
)

_CONFLICTS = (StateViolation, AlreadyRegistered, IsAdminCredential)


def get_station(request: Request) -> Station:
    """Dependency returning the Station built at startup."""
    station = getattr(request.app.state, "station", None)
    if station is None:
        raise HTTPException(status_code=503, detail="Station not started")
    return station


def failure(e: AccessStationError) -> HTTPException:
    """Translate a service error into an HTTP error carrying an OperationResult."""
    status = 409 if isinstance(e, _CONFLICTS) else 400
    body = OperationResult(success=False, message=str(e), data={"error": type(e).__name__})
    return HTTPException(status_code=status, detail=body.model_dump())
