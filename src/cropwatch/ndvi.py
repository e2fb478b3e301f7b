"""
Simulated NDVI readings.

Values are drawn from a crop-specific range until a real imagery pipeline
replaces this module; the health bucketing is fixed.
"""
from datetime import datetime, timezone
import logging
import random

from cropwatch.errors import NotFoundError
from cropwatch.models import Reading
from cropwatch.store import Caller, SupabaseStore

logger = logging.getLogger(__name__)

SATELLITE_SOURCE = "Sentinel-2 (Simulated)"

# Typical NDVI band (min, max) per crop type
CROP_NDVI_RANGES = {
    "Wheat": (0.45, 0.85),
    "Corn": (0.50, 0.90),
    "Rice": (0.40, 0.80),
    "Soybeans": (0.45, 0.85),
    "Cotton": (0.35, 0.75),
    "Barley": (0.40, 0.80),
    "Oats": (0.40, 0.80),
    "Sugarcane": (0.50, 0.90),
    "Vegetables": (0.35, 0.75),
    "Fruits": (0.45, 0.85),
    "Other": (0.30, 0.80),
}

# (lower bound, status), checked top down
HEALTH_BUCKETS = [
    (0.70, "Excellent"),
    (0.50, "Good"),
    (0.30, "Moderate"),
    (0.20, "Poor"),
]


def simulate_ndvi(crop_type, rng=random) -> float:
    low, high = CROP_NDVI_RANGES.get(crop_type or "Other", CROP_NDVI_RANGES["Other"])
    return round(low + rng.random() * (high - low), 2)


def health_status_for(ndvi_value: float) -> str:
    for lower, status in HEALTH_BUCKETS:
        if ndvi_value >= lower:
            return status
    return "Critical"


async def generate_reading(caller: Caller, store: SupabaseStore, farm_id: str, rng=random):
    """
    Simulate and persist one reading for a farm owned by the caller.

    Returns:
        (farm, created reading)

    Raises:
        NotFoundError: Farm missing or owned by someone else
    """
    logger.info(f"Generating NDVI reading for farm: {farm_id}, user: {caller.user_id}")
    farm = await store.get_farm(farm_id)
    if farm is None:
        raise NotFoundError("Farm not found or access denied")

    value = simulate_ndvi(farm.crop_type, rng)
    status = health_status_for(value)
    logger.info(f"Generated NDVI: {value}, Health: {status} for {farm.name}")

    reading = await store.insert_reading(Reading(
        farm_id=farm.id,
        ndvi_value=value,
        health_status=status,
        reading_date=datetime.now(timezone.utc).date(),
        satellite_source=SATELLITE_SOURCE,
    ))
    logger.info(f"NDVI reading created: {reading.id}")
    return farm, reading
