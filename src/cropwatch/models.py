"""
Pydantic models for API request/response validation.

Rows read from the managed backend and payloads from the weather and
model providers are validated against these models at the boundary.
"""
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


HealthStatus = Literal["Excellent", "Good", "Moderate", "Poor", "Critical"]
AlertType = Literal["critical_ndvi", "low_ndvi", "declining_trend", "health_status", "no_data"]
Severity = Literal["critical", "warning", "info"]
Role = Literal["user", "assistant"]


class Farm(BaseModel):
    """Farm row owned by a user."""
    id: str
    name: str
    crop_type: Optional[str] = None
    user_id: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None


class Reading(BaseModel):
    """One NDVI reading for a farm."""
    id: Optional[str] = None
    farm_id: str
    ndvi_value: float = Field(..., ge=0.0, le=1.0)
    health_status: HealthStatus
    reading_date: date
    satellite_source: Optional[str] = None


class Alert(BaseModel):
    """Alert row. ``id``, ``is_read`` and ``created_at`` are filled by the store; ``farm_name`` is joined in on read."""
    id: Optional[str] = None
    user_id: str
    farm_id: str
    alert_type: AlertType
    severity: Severity
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None
    farm_name: Optional[str] = None

    @property
    def key(self):
        return (self.farm_id, self.alert_type)


class AnalysisResult(BaseModel):
    farms_analyzed: int = 0
    readings_processed: int = 0
    alerts_created: int = 0
    farms_failed: int = 0


class GenerateReadingRequest(BaseModel):
    """Request model for /generate-ndvi endpoint."""
    farm_id: str = Field(..., min_length=1, description="Farm to simulate a reading for")


class DailyForecast(BaseModel):
    date: str
    temp_max: Optional[float] = None
    temp_min: Optional[float] = None
    weather_code: Optional[int] = None
    weather_description: str
    precipitation_sum: Optional[float] = None


class WeatherData(BaseModel):
    farm_id: Optional[str] = None
    farm_name: Optional[str] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    precipitation: Optional[float] = None
    wind_speed: Optional[float] = None
    weather_code: Optional[int] = None
    weather_description: str
    forecast: List[DailyForecast] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """Individual chat message model."""
    role: Role
    content: str
    message_id: Optional[str] = None


class AdvisorRequest(BaseModel):
    """Request model for /crop-advisor endpoint."""
    messages: List[ChatMessage] = Field(..., min_length=1)
