# =======================================================================================
# access_station/api/routes/dashboard.py - Live Records and Statistics
# =======================================================================================
from typing import List

from fastapi import APIRouter, Depends, Query

from ...models.schemas import AccessEvent, DayStats
from ...station import Station
from ..dependencies import get_station

router = APIRouter()


@router.get("/records/today", response_model=List[AccessEvent])
def today_records(station: Station = Depends(get_station)):
    return station.access.today_records()


@router.get("/records/latest", response_model=List[AccessEvent])
def latest_records(
    limit: int = Query(10, ge=1, le=500, description="Number of records, newest first"),
    station: Station = Depends(get_station),
):
    return station.access.latest_records(limit)


@router.get("/stats/day", response_model=DayStats)
def day_stats(station: Station = Depends(get_station)):
    return station.access.day_stats()
