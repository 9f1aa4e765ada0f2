# =======================================================================================
# access_station/api/routes/enrollment.py - Enrollment Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends

from ...models.schemas import ConfirmEnrollmentRequest, EnrollmentState, OperationResult
from ...station import Station
from ...utils.exceptions import AccessStationError
from ..dependencies import failure, get_station

router = APIRouter()


@router.post("/enrollment/start", response_model=OperationResult)
def start_enrollment(station: Station = Depends(get_station)):
    """Ask the device to wait for the administrator card."""
    try:
        state = station.enrollment.start_enrollment()
    except AccessStationError as e:
        raise failure(e)
    return OperationResult(success=True, message="Waiting for administrator card", data=state.model_dump(mode="json"))


@router.post("/enrollment/confirm", response_model=OperationResult)
def confirm_enrollment(request: ConfirmEnrollmentRequest, station: Station = Depends(get_station)):
    try:
        cred = station.enrollment.confirm_enrollment(request.uid, request.name)
    except AccessStationError as e:
        raise failure(e)
    return OperationResult(success=True, message=f"{cred.name} registered", data=cred.model_dump(mode="json"))


@router.post("/enrollment/cancel", response_model=OperationResult)
def cancel_enrollment(station: Station = Depends(get_station)):
    state = station.enrollment.cancel()
    return OperationResult(success=True, message="Back to access mode", data=state.model_dump(mode="json"))


@router.get("/enrollment/state", response_model=EnrollmentState)
def enrollment_state(station: Station = Depends(get_station)):
    return station.enrollment.state()
