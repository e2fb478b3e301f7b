"""
Per-farm weather from Open-Meteo.

Current conditions plus an optional 7-day forecast, reshaped from the
provider's column-oriented schema into WeatherData rows.
"""
from typing import List, Optional
import logging

import httpx
from pydantic import BaseModel, ValidationError

from cropwatch import config
from cropwatch.errors import ExternalServiceError, ParseError
from cropwatch.models import DailyForecast, Farm, WeatherData
from cropwatch.utils.http_utils import request_json

logger = logging.getLogger(__name__)

FORECAST_DAYS = 7

# WMO weather interpretation codes
WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather_code(code: Optional[int]) -> str:
    return WEATHER_CODES.get(code, "Unknown")


class _Current(BaseModel):
    temperature_2m: Optional[float] = None
    relative_humidity_2m: Optional[float] = None
    precipitation: Optional[float] = None
    wind_speed_10m: Optional[float] = None
    weather_code: Optional[int] = None


class _Daily(BaseModel):
    time: List[str]
    temperature_2m_max: List[Optional[float]]
    temperature_2m_min: List[Optional[float]]
    weather_code: List[Optional[int]]
    precipitation_sum: List[Optional[float]]


class _ForecastPayload(BaseModel):
    current: _Current
    daily: Optional[_Daily] = None


def reshape_forecast(payload) -> WeatherData:
    """
    Convert an Open-Meteo response body into WeatherData.

    Raises:
        ParseError: Body does not match the expected schema
    """
    try:
        data = _ForecastPayload.model_validate(payload)
    except ValidationError as e:
        raise ParseError(f"Unexpected weather payload: {e.errors()[0]['msg']}") from e

    forecast = []
    if data.daily is not None:
        daily = data.daily
        days = zip(
            daily.time,
            daily.temperature_2m_max,
            daily.temperature_2m_min,
            daily.weather_code,
            daily.precipitation_sum,
        )
        for day, temp_max, temp_min, code, precip in days:
            forecast.append(DailyForecast(
                date=day,
                temp_max=temp_max,
                temp_min=temp_min,
                weather_code=code,
                weather_description=describe_weather_code(code),
                precipitation_sum=precip,
            ))

    current = data.current
    return WeatherData(
        temperature=current.temperature_2m,
        humidity=current.relative_humidity_2m,
        precipitation=current.precipitation,
        wind_speed=current.wind_speed_10m,
        weather_code=current.weather_code,
        weather_description=describe_weather_code(current.weather_code),
        forecast=forecast,
    )


async def fetch_weather(
    client: httpx.AsyncClient,
    lat: float,
    lon: float,
    forecast: bool = True,
    url: str = config.WEATHER_API_URL,
) -> WeatherData:
    params = {
        "latitude": lat,
        "longitude": lon,
        "current": "temperature_2m,relative_humidity_2m,precipitation,wind_speed_10m,weather_code",
        "timezone": "auto",
    }
    if forecast:
        params["daily"] = "temperature_2m_max,temperature_2m_min,weather_code,precipitation_sum"
        params["forecast_days"] = FORECAST_DAYS
    payload = await request_json(client, "GET", url, service="weather", params=params)
    return reshape_forecast(payload)


async def get_farms_weather(
    farms: List[Farm],
    client: httpx.AsyncClient,
    forecast: bool = True,
) -> List[WeatherData]:
    """
    Weather for each farm, looked up one farm at a time.

    Farms without coordinates or whose lookup fails are logged and skipped.
    """
    results = []
    for farm in farms:
        if farm.location_lat is None or farm.location_lng is None:
            logger.warning(f"Farm {farm.name} has no coordinates, skipping weather")
            continue
        try:
            logger.info(f"Fetching weather for {farm.name}")
            weather = await fetch_weather(client, farm.location_lat, farm.location_lng, forecast=forecast)
        except (ExternalServiceError, ParseError) as e:
            logger.warning(f"Weather lookup failed for {farm.name}: {e}")
            continue
        weather.farm_id = farm.id
        weather.farm_name = farm.name
        results.append(weather)
    return results
