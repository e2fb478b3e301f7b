"""
Alerts router.

Runs the NDVI analysis and manages the caller's alert inbox.
"""
from fastapi import APIRouter, Depends
import logging

from cropwatch.analyzer import analyze_farms
from cropwatch.dependencies import get_caller, get_store
from cropwatch.errors import NotFoundError
from cropwatch.store import Caller, SupabaseStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze-ndvi")
async def analyze_ndvi(
    caller: Caller = Depends(get_caller),
    store: SupabaseStore = Depends(get_store),
):
    """
    Analyze the caller's recent NDVI readings and create alerts.

    Returns:
        Counts of farms analyzed, readings processed and alerts created
    """
    result = await analyze_farms(caller, store)
    if result.farms_analyzed == 0:
        return {"message": "No farms found", **result.model_dump()}
    return {"message": "Analysis complete", **result.model_dump()}


@router.get("/alerts")
async def list_alerts(store: SupabaseStore = Depends(get_store)):
    """
    All alerts of the caller, newest first.

    Returns:
        Alerts with their farm name, plus unread and critical-unread counts
    """
    alerts = await store.list_alerts()
    unread = [alert for alert in alerts if not alert.is_read]
    return {
        "alerts": [alert.model_dump(mode="json") for alert in alerts],
        "unread_count": len(unread),
        "critical_unread_count": sum(1 for alert in unread if alert.severity == "critical"),
    }


@router.post("/alerts/read-all")
async def mark_all_read(store: SupabaseStore = Depends(get_store)):
    alerts = await store.list_alerts()
    unread = [alert.id for alert in alerts if alert.id and not alert.is_read]
    updated = await store.mark_alerts_read(unread)
    return {"updated": updated}


@router.post("/alerts/{alert_id}/read")
async def mark_read(alert_id: str, store: SupabaseStore = Depends(get_store)):
    if not await store.mark_alerts_read([alert_id]):
        raise NotFoundError("Alert not found")
    return {"id": alert_id, "is_read": True}


@router.delete("/alerts/{alert_id}")
async def delete_alert(alert_id: str, store: SupabaseStore = Depends(get_store)):
    if not await store.delete_alert(alert_id):
        raise NotFoundError("Alert not found")
    logger.info(f"Deleted alert {alert_id}")
    return {"id": alert_id, "deleted": True}
