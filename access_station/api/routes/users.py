# =======================================================================================
# access_station/api/routes/users.py - User Management Endpoints
# =======================================================================================
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ...models.schemas import Credential, OperationResult
from ...station import Station
from ..dependencies import get_station

router = APIRouter()


@router.get("/users", response_model=List[Credential])
def list_users(station: Station = Depends(get_station)):
    return station.users.all_users()


@router.delete("/users/{uid}", response_model=OperationResult)
def delete_user(uid: str, station: Station = Depends(get_station)):
    if not station.users.delete(uid):
        raise HTTPException(
            status_code=404,
            detail=OperationResult(success=False, message=f"User {uid} not found").model_dump(),
        )
    return OperationResult(success=True, message=f"User {uid} deleted")
