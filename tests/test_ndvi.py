"""
Unit tests for simulated NDVI readings
"""

import asyncio
import random

import pytest

from cropwatch.errors import NotFoundError
from cropwatch.ndvi import (
    CROP_NDVI_RANGES,
    SATELLITE_SOURCE,
    generate_reading,
    health_status_for,
    simulate_ndvi,
)


class FixedRandom:
    """rng stand-in returning a fixed value from random()."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


@pytest.mark.unit
class TestHealthStatus:
    """Test NDVI health buckets"""

    @pytest.mark.parametrize("value,expected", [
        (0.95, "Excellent"),
        (0.70, "Excellent"),
        (0.69, "Good"),
        (0.50, "Good"),
        (0.30, "Moderate"),
        (0.29, "Poor"),
        (0.20, "Poor"),
        (0.19, "Critical"),
        (0.0, "Critical"),
    ])
    def test_buckets(self, value, expected):
        assert health_status_for(value) == expected


@pytest.mark.unit
class TestSimulateNdvi:
    """Test crop-specific value ranges"""

    def test_range_bounds(self):
        assert simulate_ndvi("Corn", FixedRandom(0.0)) == 0.50
        assert simulate_ndvi("Corn", FixedRandom(0.999)) == 0.90

    def test_unknown_crop_uses_default_range(self):
        low, high = CROP_NDVI_RANGES["Other"]
        assert simulate_ndvi("Quinoa", FixedRandom(0.0)) == low
        assert simulate_ndvi(None, FixedRandom(0.0)) == low

    def test_values_stay_in_range(self):
        rng = random.Random(42)
        for crop, (low, high) in CROP_NDVI_RANGES.items():
            for _ in range(50):
                value = simulate_ndvi(crop, rng)
                assert low <= value <= high
                assert value == round(value, 2)


@pytest.mark.unit
class TestGenerateReading:
    """Test reading generation against the in-memory store"""

    def test_reading_is_stored(self, caller, store):
        farm, reading = asyncio.run(generate_reading(caller, store, "farm-2", rng=FixedRandom(0.5)))

        assert farm.name == "River Plot"
        assert reading.id is not None
        assert reading.ndvi_value == 0.65
        assert reading.health_status == "Good"
        assert reading.satellite_source == SATELLITE_SOURCE
        assert store.readings == [reading]

    def test_unknown_farm(self, caller, store):
        with pytest.raises(NotFoundError) as exc_info:
            asyncio.run(generate_reading(caller, store, "farm-404"))

        assert exc_info.value.status_code == 404
        assert store.readings == []
