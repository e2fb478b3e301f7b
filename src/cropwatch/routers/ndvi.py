"""
NDVI router.

Simulated reading generation and reading analytics.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from cropwatch.analytics import summarize_readings
from cropwatch.dependencies import get_caller, get_store
from cropwatch.models import GenerateReadingRequest
from cropwatch.ndvi import generate_reading
from cropwatch.store import Caller, SupabaseStore

router = APIRouter()


@router.post("/generate-ndvi")
async def generate_ndvi(
    request: GenerateReadingRequest,
    caller: Caller = Depends(get_caller),
    store: SupabaseStore = Depends(get_store),
):
    """
    Simulate one NDVI reading for a farm owned by the caller.

    Args:
        request: GenerateReadingRequest with the farm id

    Returns:
        The stored reading and the farm name
    """
    farm, reading = await generate_reading(caller, store, request.farm_id)
    return {
        "success": True,
        "message": f"NDVI analysis complete for {farm.name}",
        "reading": {
            "id": reading.id,
            "ndvi_value": reading.ndvi_value,
            "health_status": reading.health_status,
            "farm_name": farm.name,
        },
    }


@router.get("/analytics")
async def get_analytics(
    days: int = Query(30, ge=1, le=365, description="Trailing window in days"),
    farm_id: Optional[str] = Query(None, description="Restrict to one farm"),
    store: SupabaseStore = Depends(get_store),
):
    """Trend, health distribution and averages over the caller's readings."""
    since = datetime.now(timezone.utc).date() - timedelta(days=days)
    if farm_id:
        farm_ids = [farm_id]
    else:
        farm_ids = [farm.id for farm in await store.list_farms(columns="id,name")]
    readings = await store.list_readings(farm_ids, since=since, newest_first=False)
    return {"days": days, "farm_id": farm_id, **summarize_readings(readings)}
