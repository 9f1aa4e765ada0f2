# =======================================================================================
# access_station/api/routes/session.py - Port and Session Endpoints
# =======================================================================================
from typing import List, Optional

from fastapi import APIRouter, Depends

from ...models.schemas import (
    OperationResult, PortInfo, ProbeResult, ReconnectRequest, RenameSessionRequest,
    SessionState, StartSessionRequest,
)
from ...station import Station
from ...utils.exceptions import AccessStationError
from ..dependencies import failure, get_station

router = APIRouter()


@router.get("/ports", response_model=List[PortInfo])
def list_ports(station: Station = Depends(get_station)):
    return station.serial.list_ports()


@router.post("/ports/test", response_model=ProbeResult)
def test_port(request: ReconnectRequest, station: Station = Depends(get_station)):
    """Open the port, send the probe and wait for PONG."""
    return station.serial.probe_port(request.port_name)


@router.post("/session/start", response_model=OperationResult)
def start_session(request: StartSessionRequest, station: Station = Depends(get_station)):
    try:
        session = station.access.start_session(request.port_name, request.session_name)
    except AccessStationError as e:
        raise failure(e)
    return OperationResult(success=True, message="Session started", data=session.model_dump(mode="json"))


@router.post("/session/reconnect", response_model=OperationResult)
def reconnect_session(request: ReconnectRequest, station: Station = Depends(get_station)):
    try:
        session = station.access.reconnect_session(request.port_name)
    except AccessStationError as e:
        raise failure(e)
    return OperationResult(success=True, message="Session reconnected", data=session.model_dump(mode="json"))


@router.post("/session/rename", response_model=OperationResult)
def rename_session(request: RenameSessionRequest, station: Station = Depends(get_station)):
    try:
        session = station.access.rename_session(request.session_name)
    except AccessStationError as e:
        raise failure(e)
    return OperationResult(success=True, message="Session renamed", data=session.model_dump(mode="json"))


@router.post("/session/stop", response_model=OperationResult)
def stop_session(station: Station = Depends(get_station)):
    stopped = station.access.stop_session()
    return OperationResult(
        success=True,
        message="Session stopped" if stopped else "No active session",
        data={"stopped": stopped},
    )


@router.get("/session/status", response_model=Optional[SessionState])
def session_status(station: Station = Depends(get_station)):
    return station.access.session_status()
