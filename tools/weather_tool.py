"""Open-Meteo weather lookups and the ``get-weather`` agent tool."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from errors import LocationNotFoundError, WeatherServiceError
from tools.base_tool import Tool
from utils.structured_logger import get_logger

logger = get_logger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
CURRENT_FIELDS = (
    "temperature_2m,apparent_temperature,relative_humidity_2m,"
    "wind_speed_10m,wind_gusts_10m,weather_code"
)
REQUEST_TIMEOUT = 10.0

WEATHER_CONDITIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
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


class Location(BaseModel):
    latitude: float
    longitude: float
    name: str


class WeatherSnapshot(BaseModel):
    """Current conditions for a resolved location."""

    model_config = ConfigDict(populate_by_name=True)

    temperature: float
    feels_like: float = Field(alias="feelsLike")
    humidity: float
    wind_speed: float = Field(alias="windSpeed")
    wind_gust: float = Field(alias="windGust")
    conditions: str
    location: str


class DailyForecast(BaseModel):
    """Aggregated forecast used by the weather workflow."""

    model_config = ConfigDict(populate_by_name=True)

    date: str
    max_temp: float = Field(alias="maxTemp")
    min_temp: float = Field(alias="minTemp")
    precipitation_chance: float = Field(alias="precipitationChance")
    condition: str
    location: str


class WeatherToolInput(BaseModel):
    location: str = Field(description="City name")


def get_weather_condition(code: int) -> str:
    """Map a WMO weather code to a human-readable label."""
    return WEATHER_CONDITIONS.get(code, "Unknown")


async def fetch_json(
    client: httpx.AsyncClient, url: str, params: dict[str, Any] | None = None
) -> dict[str, Any]:
    response = await client.get(url, params=params)
    if response.is_error:
        logger.warning(
            "weather.fetch_failed", url=str(response.request.url), status=response.status_code
        )
        raise WeatherServiceError(f"Failed to fetch data from {response.request.url}")
    return response.json()


async def geocode(client: httpx.AsyncClient, location: str) -> Location:
    """Resolve ``location`` to the first geocoding match."""
    data = await fetch_json(client, GEOCODING_URL, {"name": location, "count": 1})
    results = data.get("results") or []
    if not results:
        raise LocationNotFoundError(f"Location '{location}' not found")
    return Location.model_validate(results[0])


async def get_weather(
    location: str, client: httpx.AsyncClient | None = None
) -> WeatherSnapshot:
    """Return current weather for a city name.

    A new ``httpx.AsyncClient`` is opened for the lookup unless one is passed in.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as own_client:
            return await get_weather(location, own_client)

    logger.info("weather.lookup", location=location)
    place = await geocode(client, location)
    data = await fetch_json(
        client,
        FORECAST_URL,
        {
            "latitude": place.latitude,
            "longitude": place.longitude,
            "current": CURRENT_FIELDS,
        },
    )
    current = data["current"]
    return WeatherSnapshot(
        temperature=current["temperature_2m"],
        feels_like=current["apparent_temperature"],
        humidity=current["relative_humidity_2m"],
        wind_speed=current["wind_speed_10m"],
        wind_gust=current["wind_gusts_10m"],
        conditions=get_weather_condition(current["weather_code"]),
        location=place.name,
    )


async def get_daily_forecast(
    city: str, client: httpx.AsyncClient | None = None
) -> DailyForecast:
    """Return today's temperature range and peak precipitation chance."""
    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as own_client:
            return await get_daily_forecast(city, own_client)

    logger.info("weather.forecast", city=city)
    place = await geocode(client, city)
    data = await fetch_json(
        client,
        FORECAST_URL,
        {
            "latitude": place.latitude,
            "longitude": place.longitude,
            "current": "precipitation,weather_code",
            "timezone": "auto",
            "hourly": "precipitation_probability,temperature_2m",
            "forecast_days": 1,
        },
    )
    hourly = data["hourly"]
    # Open-Meteo reports hours without a value as null
    temperatures = [value for value in hourly.get("temperature_2m") or [] if value is not None]
    precipitation = [
        value for value in hourly.get("precipitation_probability") or [] if value is not None
    ]
    if not temperatures:
        raise WeatherServiceError(f"No temperature forecast available for '{place.name}'")
    return DailyForecast(
        date=datetime.now(timezone.utc).isoformat(),
        max_temp=max(temperatures),
        min_temp=min(temperatures),
        precipitation_chance=max(precipitation, default=0),
        condition=get_weather_condition(data["current"]["weather_code"]),
        location=place.name,
    )


async def _execute(params: WeatherToolInput) -> WeatherSnapshot:
    return await get_weather(params.location)


weather_tool = Tool(
    id="get-weather",
    description="Get current weather for a location",
    input_model=WeatherToolInput,
    execute=_execute,
    output_model=WeatherSnapshot,
)
