"""NDVI trend and health-distribution summaries for the analytics view."""
from typing import Any, Dict, List, Optional

import pandas as pd

from cropwatch.models import Reading


def change_pct(values: List[float]) -> Optional[float]:
    """Percent change of the last value against the one before; None without a usable baseline."""
    if len(values) < 2 or not values[-2]:
        return None
    return round((values[-1] - values[-2]) / values[-2] * 100, 1)


def summarize_readings(readings: List[Reading]) -> Dict[str, Any]:
    """
    Summarize readings for charting.

    Returns:
        Dict with ``trend`` (mean NDVI per date, ascending), ``health_distribution``
        (count per status), ``average_ndvi``, ``latest_ndvi``, ``ndvi_change_pct``
        and ``total_readings``
    """
    if not readings:
        return {
            "trend": [],
            "health_distribution": {},
            "average_ndvi": None,
            "latest_ndvi": None,
            "ndvi_change_pct": None,
            "total_readings": 0,
        }

    df = pd.DataFrame([r.model_dump() for r in readings])
    df["reading_date"] = pd.to_datetime(df["reading_date"])
    df = df.sort_values("reading_date", kind="stable")

    trend = (
        df.groupby("reading_date")["ndvi_value"]
        .agg(ndvi="mean", readings="count")
        .reset_index()
    )

    return {
        "trend": [
            {
                "date": row.reading_date.date().isoformat(),
                "ndvi": round(float(row.ndvi), 4),
                "readings": int(row.readings),
            }
            for row in trend.itertuples(index=False)
        ],
        "health_distribution": {
            status: int(count) for status, count in df["health_status"].value_counts().items()
        },
        "average_ndvi": round(float(df["ndvi_value"].mean()), 4),
        "latest_ndvi": float(df["ndvi_value"].iloc[-1]),
        "ndvi_change_pct": change_pct(df["ndvi_value"].tolist()),
        "total_readings": int(len(df)),
    }
