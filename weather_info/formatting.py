"""
Markdown rendering of weather snapshots and forecasts.
"""
import math
from datetime import date, datetime
from typing import List, Optional

from .config import CURRENT_GUST_RATIO, FORECAST_GUST_RATIO
from .provider import CurrentConditions, DailyForecast, Location

WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
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

COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def describe_weather_code(code: int) -> str:
    """Human-readable description of a WMO weather code."""
    return WEATHER_CODES.get(code, f"Unknown (code: {code})")


def compass_direction(degrees: float) -> str:
    """16-point compass label for a bearing in degrees."""
    # Halves round up
    index = int(math.floor(degrees / 22.5 + 0.5)) % 16
    return COMPASS_POINTS[index]


def location_label(location: Location) -> str:
    if location.name:
        if location.country:
            return f"{location.name}, {location.country}"
        return location.name
    return f"Coordinates ({location.latitude:.4f}, {location.longitude:.4f})"


def _gust_clause(speed: float, gusts: float, ratio: float) -> str:
    if gusts > speed * ratio:
        return f" with gusts up to {gusts} km/h"
    return ""


def _updated_line(now: Optional[datetime]) -> str:
    now = now or datetime.now()
    return f"*Updated: {now.strftime(TIMESTAMP_FORMAT)}*"


def format_current_weather(
    weather: CurrentConditions, location: Location, now: Optional[datetime] = None
) -> str:
    """Render current conditions as a markdown report."""
    description = describe_weather_code(weather.weather_code)
    direction = compass_direction(weather.wind_direction_10m)
    gusts = _gust_clause(weather.wind_speed_10m, weather.wind_gusts_10m, CURRENT_GUST_RATIO)
    rain = f" (Rain: {weather.rain} mm)" if weather.rain > 0 else ""

    lines = [
        f"# Current Weather for {location_label(location)}",
        "",
        f"**Conditions:** {description}",
        f"**Temperature:** {weather.temperature_2m}°C "
        f"(Feels like: {weather.apparent_temperature}°C)",
        f"**Humidity:** {weather.relative_humidity_2m}%",
        f"**Wind:** {weather.wind_speed_10m} km/h {direction}{gusts}",
        f"**Cloud Cover:** {weather.cloud_cover}%",
        f"**Precipitation:** {weather.precipitation} mm{rain}",
        "",
        _updated_line(now),
    ]
    return "\n".join(lines) + "\n"


def format_forecast(
    forecast: DailyForecast, location: Location, days: int, now: Optional[datetime] = None
) -> str:
    """Render a daily forecast as a markdown report, one section per day."""
    lines: List[str] = [
        f"# {days}-Day Weather Forecast for {location_label(location)}",
        "",
    ]

    for i, day in enumerate(forecast.time):
        day_date = date.fromisoformat(day)
        direction = compass_direction(forecast.wind_direction_10m_dominant[i])
        gusts = _gust_clause(
            forecast.wind_speed_10m_max[i],
            forecast.wind_gusts_10m_max[i],
            FORECAST_GUST_RATIO,
        )

        lines.extend(
            [
                f"## {day_date:%A}, {day_date.isoformat()}",
                f"**Conditions:** {describe_weather_code(forecast.weather_code[i])}",
                f"**Temperature:** {forecast.temperature_2m_min[i]}°C to "
                f"{forecast.temperature_2m_max[i]}°C",
                f"**Precipitation:** {forecast.precipitation_sum[i]} mm over "
                f"{forecast.precipitation_hours[i]} hours",
                f"**Wind:** {forecast.wind_speed_10m_max[i]} km/h {direction}{gusts}",
                "",
            ]
        )

    lines.append(_updated_line(now))
    return "\n".join(lines)
