# =======================================================================================
# access_station/api/routes/sync.py - Batch Mirror Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from ...models.schemas import BatchRun, BatchScheduleRequest, OperationResult
from ...station import Station
from ..dependencies import get_station

router = APIRouter()


def _batch(station: Station):
    if station.batch is None:
        raise HTTPException(
            status_code=409,
            detail=OperationResult(success=False, message="Relational mirror is disabled").model_dump(),
        )
    return station.batch


@router.post("/batch/run", response_model=OperationResult)
def run_batch(station: Station = Depends(get_station)):
    """Mirror every closed log now. The active log is left alone."""
    batch = _batch(station)
    try:
        records = batch.run()
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=500,
            detail=OperationResult(success=False, message=f"Database error: {e}").model_dump(),
        )
    status = batch.status()
    return OperationResult(success=status.success, message=f"{records} records mirrored", data=status.model_dump(mode="json"))


@router.post("/batch/schedule", response_model=OperationResult)
def schedule_batch(request: BatchScheduleRequest, station: Station = Depends(get_station)):
    scheduled = _batch(station).reschedule(request.hour, request.minute)
    return OperationResult(success=True, message=f"Batch scheduled daily at {scheduled}")


@router.get("/batch/status", response_model=BatchRun)
def batch_status(station: Station = Depends(get_station)):
    return _batch(station).status()
