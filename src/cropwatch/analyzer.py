"""
NDVI alert analysis.

Turns each farm's readings from the trailing window into alert records:

- no readings in the window            -> no_data (info)
- latest NDVI below 0.20               -> critical_ndvi (critical)
- latest NDVI in [0.20, 0.40)          -> low_ndvi (warning)
- latest health status Poor/Critical   -> health_status (warning/critical)
- latest NDVI more than 0.15 below the
  mean of the up-to-3 previous readings -> declining_trend (warning)

Candidates whose (farm_id, alert_type) pair was already created today are
dropped before the single batch insert.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Tuple
import logging

from cropwatch import config
from cropwatch.errors import ExternalServiceError, ParseError
from cropwatch.models import Alert, AnalysisResult, Farm, Reading
from cropwatch.store import Caller, SupabaseStore

logger = logging.getLogger(__name__)

CRITICAL_NDVI_THRESHOLD = 0.20
LOW_NDVI_THRESHOLD = 0.40
DECLINE_THRESHOLD = 0.15
TREND_LOOKBACK = 3


def evaluate_farm(farm: Farm, readings: List[Reading], user_id: str) -> List[Alert]:
    """
    Build candidate alerts for one farm.

    Args:
        farm: Farm being analyzed
        readings: The farm's readings inside the window, newest first
        user_id: Owner the alerts are created for

    Returns:
        Candidate alerts, at most one per alert type
    """
    name = farm.name or "Unknown Farm"

    def make(alert_type, severity, message):
        return Alert(
            user_id=user_id,
            farm_id=farm.id,
            alert_type=alert_type,
            severity=severity,
            message=message,
        )

    if not readings:
        return [make(
            "no_data", "info",
            f"Info: {name} has no NDVI readings in the last {config.ALERT_WINDOW_DAYS} days. "
            "Consider scheduling a satellite capture or manual inspection.",
        )]

    alerts = []
    latest = readings[0]

    if latest.ndvi_value < CRITICAL_NDVI_THRESHOLD:
        alerts.append(make(
            "critical_ndvi", "critical",
            f"Critical alert: {name} has very low NDVI ({latest.ndvi_value:.2f}). "
            "Immediate inspection recommended for potential crop failure or severe stress.",
        ))
    elif latest.ndvi_value < LOW_NDVI_THRESHOLD:
        alerts.append(make(
            "low_ndvi", "warning",
            f"Warning: {name} shows low NDVI ({latest.ndvi_value:.2f}). "
            "Consider checking irrigation, nutrient levels, or pest presence.",
        ))

    if len(readings) >= 2:
        previous = readings[1:1 + TREND_LOOKBACK]
        avg_previous = sum(r.ndvi_value for r in previous) / len(previous)
        decline = avg_previous - latest.ndvi_value
        if decline > DECLINE_THRESHOLD:
            alerts.append(make(
                "declining_trend", "warning",
                f"Trend alert: {name} shows significant NDVI decline ({decline * 100:.1f}% drop). "
                "Monitor closely for developing issues.",
            ))

    if latest.health_status in ("Poor", "Critical"):
        alerts.append(make(
            "health_status",
            "critical" if latest.health_status == "Critical" else "warning",
            f'Health alert: {name} is classified as "{latest.health_status}". '
            "Review satellite imagery and consider field inspection.",
        ))

    return alerts


def deduplicate(candidates: Iterable[Alert], existing_keys: Iterable[Tuple[str, str]]) -> List[Alert]:
    """Drop candidates whose (farm_id, alert_type) is already taken, keeping first occurrence."""
    seen = set(existing_keys)
    fresh = []
    for alert in candidates:
        if alert.key in seen:
            continue
        seen.add(alert.key)
        fresh.append(alert)
    return fresh


def start_of_day(today: date) -> datetime:
    """Dedup window start: midnight UTC of ``today``."""
    return datetime.combine(today, time.min, tzinfo=timezone.utc)


async def analyze_farms(
    caller: Caller,
    store: SupabaseStore,
    today: Optional[date] = None,
) -> AnalysisResult:
    """
    Analyze every farm of the caller and insert new alerts.

    Readings are fetched per farm so one failing farm does not abort the
    others; such farms are logged, skipped and counted in ``farms_failed``.

    Args:
        caller: Authenticated owner
        store: Store bound to the same caller
        today: Override for the current UTC date (tests)

    Returns:
        AnalysisResult with aggregate counts

    Raises:
        ExternalServiceError: Farms, today's alerts or the insert could not be reached
    """
    today = today or datetime.now(timezone.utc).date()
    window_start = today - timedelta(days=config.ALERT_WINDOW_DAYS)

    logger.info(f"Analyzing NDVI readings for user: {caller.user_id}")
    farms = await store.list_farms(columns="id,name")
    result = AnalysisResult(farms_analyzed=len(farms))
    if not farms:
        return result

    candidates: List[Alert] = []
    for farm in farms:
        try:
            readings = await store.list_readings([farm.id], since=window_start)
            readings = sorted(readings, key=lambda r: r.reading_date, reverse=True)
            candidates.extend(evaluate_farm(farm, readings, caller.user_id))
        except (ExternalServiceError, ParseError) as e:
            logger.warning(f"Skipping farm {farm.id} ({farm.name}): {e}")
            result.farms_failed += 1
            continue
        result.readings_processed += len(readings)

    existing_keys = await store.list_alert_keys(created_since=start_of_day(today))
    new_alerts = deduplicate(candidates, existing_keys)
    logger.info(
        f"{len(candidates)} candidate alerts, {len(candidates) - len(new_alerts)} already raised today"
    )

    if new_alerts:
        result.alerts_created = await store.insert_alerts(new_alerts)
        logger.info(f"Created {result.alerts_created} new alerts")

    return result
