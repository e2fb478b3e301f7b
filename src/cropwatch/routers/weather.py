"""
Weather router.

Current conditions and 7-day forecast for each of the caller's farms.
"""
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Depends, Query

from cropwatch.dependencies import get_http_client, get_store
from cropwatch.store import SupabaseStore
from cropwatch.weather import get_farms_weather

router = APIRouter()


@router.get("/weather")
async def get_weather(
    forecast: bool = Query(True, description="Include the 7-day forecast"),
    store: SupabaseStore = Depends(get_store),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    farms = await store.list_farms(columns="id,name,location_lat,location_lng")
    if not farms:
        return {"weather": [], "message": "No farms found"}
    weather = await get_farms_weather(farms, client, forecast=forecast)
    return {
        "weather": [w.model_dump() for w in weather],
        "fetched_at": datetime.now(timezone.utc).isoformat(),
    }
