"""
pytest configuration for CropWatch test suite

This file configures pytest settings and provides shared fixtures.
"""

import pytest
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

# Add src/ to Python path so tests run without an install
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from cropwatch.errors import ExternalServiceError
from cropwatch.models import Alert, Farm, Reading
from cropwatch.store import Caller


FIXED_TODAY = date(2026, 10, 19)
FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


# Test configuration
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


class FakeStore:
    """In-memory stand-in for SupabaseStore, scoped to one caller."""

    def __init__(self, caller, farms=None, readings=None, alerts=None, now=FIXED_NOW):
        self.caller = caller
        self.farms = list(farms or [])
        self.readings = list(readings or [])
        self.alerts = list(alerts or [])
        self.now = now
        self.failing_farms = set()
        self.insert_calls = 0

    async def list_farms(self, columns="*"):
        return [f for f in self.farms if f.user_id in (None, self.caller.user_id)]

    async def get_farm(self, farm_id):
        for farm in await self.list_farms():
            if farm.id == farm_id:
                return farm
        return None

    async def list_readings(self, farm_ids, since, newest_first=True):
        if set(farm_ids) & self.failing_farms:
            raise ExternalServiceError("database unavailable")
        rows = [r for r in self.readings if r.farm_id in farm_ids and r.reading_date >= since]
        return sorted(rows, key=lambda r: r.reading_date, reverse=newest_first)

    async def insert_reading(self, reading):
        stored = reading.model_copy(update={"id": f"reading-{len(self.readings) + 1}"})
        self.readings.append(stored)
        return stored

    async def list_alerts(self):
        names = {f.id: f.name for f in self.farms}
        rows = [
            a.model_copy(update={"farm_name": names.get(a.farm_id)})
            for a in self.alerts if a.user_id == self.caller.user_id
        ]
        return sorted(rows, key=lambda a: a.created_at, reverse=True)

    async def list_alert_keys(self, created_since):
        return {
            a.key for a in self.alerts
            if a.user_id == self.caller.user_id and a.created_at >= created_since
        }

    async def insert_alerts(self, alerts):
        self.insert_calls += 1
        for alert in alerts:
            self.alerts.append(alert.model_copy(update={
                "id": f"alert-{len(self.alerts) + 1}",
                "created_at": self.now,
            }))
        return len(alerts)

    async def mark_alerts_read(self, alert_ids):
        updated = 0
        for i, a in enumerate(self.alerts):
            if a.id in alert_ids and a.user_id == self.caller.user_id:
                self.alerts[i] = a.model_copy(update={"is_read": True})
                updated += 1
        return updated

    async def delete_alert(self, alert_id):
        before = len(self.alerts)
        self.alerts = [
            a for a in self.alerts
            if not (a.id == alert_id and a.user_id == self.caller.user_id)
        ]
        return before - len(self.alerts)


def make_reading(farm_id, value, days_ago=0, status=None, today=FIXED_TODAY):
    from cropwatch.ndvi import health_status_for
    return Reading(
        id=f"{farm_id}-{days_ago}",
        farm_id=farm_id,
        ndvi_value=value,
        health_status=status or health_status_for(value),
        reading_date=today - timedelta(days=days_ago),
    )


def make_alert(farm_id, alert_type, created_at, user_id="user-1", severity="warning"):
    return Alert(
        id=f"{farm_id}-{alert_type}",
        user_id=user_id,
        farm_id=farm_id,
        alert_type=alert_type,
        severity=severity,
        message="existing",
        created_at=created_at,
    )


# Shared fixtures
@pytest.fixture
def caller():
    """Fixture providing an authenticated caller"""
    return Caller(user_id="user-1", access_token="token-abc")


@pytest.fixture
def farms():
    """Fixture providing two farms owned by the caller"""
    return [
        Farm(id="farm-1", name="North Field", crop_type="Corn", user_id="user-1",
             location_lat=41.6, location_lng=-93.6),
        Farm(id="farm-2", name="River Plot", crop_type="Wheat", user_id="user-1",
             location_lat=42.0, location_lng=-93.5),
    ]


@pytest.fixture
def store(caller, farms):
    """Fixture providing an empty FakeStore with the caller's farms"""
    return FakeStore(caller, farms=farms)


@pytest.fixture
def sample_stream_frames():
    """Fixture providing a complete streamed reply"""
    return [
        b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n',
        b'data: {"choices":[{"delta":{"content":"lo"}}]}\n',
        b'data: [DONE]\n',
    ]


@pytest.fixture
def sample_weather_payload():
    """Fixture providing a sample Open-Meteo forecast response"""
    return {
        "latitude": 41.6,
        "longitude": -93.6,
        "current": {
            "time": "2026-10-19T09:00",
            "temperature_2m": 14.2,
            "relative_humidity_2m": 71,
            "precipitation": 0.0,
            "wind_speed_10m": 12.5,
            "weather_code": 2,
        },
        "daily": {
            "time": ["2026-10-19", "2026-10-20"],
            "temperature_2m_max": [17.1, 15.0],
            "temperature_2m_min": [6.3, 8.9],
            "weather_code": [2, 63],
            "precipitation_sum": [0.0, 7.4],
        },
    }
