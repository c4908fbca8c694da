"""
Weather data provider using the Open-Meteo geocoding and forecast APIs.
"""
import logging
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import BaseModel, model_validator

from .config import GEOCODING_TIMEOUT, GEOCODING_URL, WEATHER_TIMEOUT, WEATHER_URL
from .metrics import upstream_requests

logger = logging.getLogger(__name__)

CURRENT_FIELDS = [
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "is_day",
    "precipitation",
    "rain",
    "weather_code",
    "cloud_cover",
    "wind_speed_10m",
    "wind_direction_10m",
    "wind_gusts_10m",
]

DAILY_FIELDS = [
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_sum",
    "precipitation_hours",
    "wind_speed_10m_max",
    "wind_gusts_10m_max",
    "wind_direction_10m_dominant",
]


class WeatherError(Exception):
    """Base class for failures raised by the weather provider."""


class UpstreamError(WeatherError):
    """Network failure or non-success HTTP status from an Open-Meteo API."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class LocationNotFoundError(WeatherError):
    """Geocoding returned no match for the requested place name."""

    def __init__(self, city: str):
        super().__init__(f"City not found: {city}")
        self.city = city


class Location(BaseModel):
    latitude: float
    longitude: float
    name: Optional[str] = None
    country: Optional[str] = None
    admin1: Optional[str] = None  # State/province


# Readings keep the upstream number type so integral values render as sent
Number = Union[int, float]


class CurrentConditions(BaseModel):
    temperature_2m: Number
    relative_humidity_2m: int
    apparent_temperature: Number
    is_day: Optional[int] = None
    precipitation: Number
    rain: Number = 0.0
    weather_code: int
    cloud_cover: int
    wind_speed_10m: Number
    wind_direction_10m: Number
    wind_gusts_10m: Number


class DailyForecast(BaseModel):
    time: List[str]
    weather_code: List[int]
    temperature_2m_max: List[Number]
    temperature_2m_min: List[Number]
    precipitation_sum: List[Number]
    precipitation_hours: List[Number]
    wind_speed_10m_max: List[Number]
    wind_gusts_10m_max: List[Number]
    wind_direction_10m_dominant: List[Number]

    @model_validator(mode="after")
    def check_series_aligned(self):
        """Every daily series must line up with the dates."""
        days = len(self.time)
        for field in DAILY_FIELDS:
            if len(getattr(self, field)) != days:
                raise ValueError(f"Daily series '{field}' does not match {days} dates")
        return self


class WeatherProvider:
    def __init__(self, geocoding_url: str = GEOCODING_URL, weather_url: str = WEATHER_URL):
        self.geocoding_url = geocoding_url
        self.weather_url = weather_url

    def _fetch_json(
        self, api: str, url: str, params: Dict[str, Any], timeout: int
    ) -> Dict[str, Any]:
        """GET url and decode the JSON body, raising UpstreamError on failure."""
        try:
            response = requests.get(url, params=params, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            reason = e.response.reason if e.response is not None else None
            upstream_requests.labels(api=api, status=str(status_code)).inc()
            logger.error(f"{api} API error: {status_code} {reason}")
            raise UpstreamError(
                f"API Error: {status_code} {reason}", status_code=status_code, reason=reason
            ) from e
        except requests.RequestException as e:
            upstream_requests.labels(api=api, status="network_error").inc()
            logger.error(f"{api} API request failed: {e}")
            raise UpstreamError(f"Failed to reach {api} API: {e}") from e

        upstream_requests.labels(api=api, status=str(response.status_code)).inc()
        return data

    def geocode(self, city: str) -> Location:
        """Resolve a place name to its best-matching location."""
        params = {"name": city, "count": 1, "language": "en", "format": "json"}
        data = self._fetch_json("geocoding", self.geocoding_url, params, GEOCODING_TIMEOUT)

        results = data.get("results")
        if not results:
            raise LocationNotFoundError(city)

        location = Location.model_validate(results[0])
        logger.debug(f"Geocoded '{city}' to {location.latitude},{location.longitude}")
        return location

    def current_conditions(self, latitude: float, longitude: float) -> CurrentConditions:
        """Fetch the current weather snapshot for coordinates."""
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": ",".join(CURRENT_FIELDS),
            "temperature_unit": "celsius",
        }
        data = self._fetch_json("weather", self.weather_url, params, WEATHER_TIMEOUT)
        return CurrentConditions.model_validate(data.get("current"))

    def forecast(self, latitude: float, longitude: float, days: int) -> DailyForecast:
        """Fetch a daily forecast series of the given length for coordinates."""
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "daily": ",".join(DAILY_FIELDS),
            "timezone": "auto",
            "forecast_days": days,
            "temperature_unit": "celsius",
        }
        data = self._fetch_json("weather", self.weather_url, params, WEATHER_TIMEOUT)
        return DailyForecast.model_validate(data.get("daily"))
