"""
Weather tool and resource handlers.

City lookups are served from the cache when possible; on a miss the city is
geocoded, weather is fetched and rendered, and the report is cached.
Coordinate lookups are always fetched live.
"""
import asyncio
import logging
from typing import Dict

from pydantic import BaseModel, Field, field_validator

from .cache import CURRENT, FORECAST, WeatherCache, current_cache_key, forecast_cache_key
from .config import (
    DEFAULT_FORECAST_DAYS,
    EXAMPLE_CITIES,
    MAX_FORECAST_DAYS,
    MIN_FORECAST_DAYS,
)
from .formatting import format_current_weather, format_forecast
from .metrics import error_counter
from .provider import Location, WeatherError, WeatherProvider
from .registry import McpRegistry, ResourceDefinition, TextResult, ToolDefinition

logger = logging.getLogger(__name__)


class WeatherService:
    """Handlers for the weather operations, sharing one provider and cache."""

    def __init__(self, provider: WeatherProvider, cache: WeatherCache):
        self.provider = provider
        self.cache = cache

    async def get_weather(self, city: str) -> str:
        """Current conditions for a city, or an error report."""
        _check_city(city)
        cache_key = current_cache_key(city)

        entry = self.cache.get(CURRENT, cache_key)
        if entry is not None:
            logger.debug(f"Cache hit for current weather '{cache_key}'")
            return entry.text

        try:
            location = await asyncio.to_thread(self.provider.geocode, city)
            weather = await asyncio.to_thread(
                self.provider.current_conditions, location.latitude, location.longitude
            )
        except WeatherError as e:
            return _error_report("weather", e)

        report = format_current_weather(weather, location)
        self.cache.set(CURRENT, cache_key, report)
        return report

    async def get_forecast(self, city: str, days: int = DEFAULT_FORECAST_DAYS) -> str:
        """Multi-day forecast for a city, or an error report."""
        _check_city(city)
        if not MIN_FORECAST_DAYS <= days <= MAX_FORECAST_DAYS:
            raise ValueError(
                f"Forecast days must be between {MIN_FORECAST_DAYS} and {MAX_FORECAST_DAYS}"
            )
        cache_key = forecast_cache_key(city, days)

        entry = self.cache.get(FORECAST, cache_key)
        if entry is not None:
            logger.debug(f"Cache hit for forecast '{cache_key}'")
            return entry.text

        try:
            location = await asyncio.to_thread(self.provider.geocode, city)
            forecast = await asyncio.to_thread(
                self.provider.forecast, location.latitude, location.longitude, days
            )
        except WeatherError as e:
            return _error_report("forecast", e)

        report = format_forecast(forecast, location, days)
        self.cache.set(FORECAST, cache_key, report)
        return report

    async def get_weather_by_coordinates(self, latitude: float, longitude: float) -> str:
        """Current conditions for coordinates; never cached."""
        if not -90 <= latitude <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise ValueError("Longitude must be between -180 and 180")

        try:
            weather = await asyncio.to_thread(
                self.provider.current_conditions, latitude, longitude
            )
        except WeatherError as e:
            return _error_report("weather", e)

        return format_current_weather(
            weather, Location(latitude=latitude, longitude=longitude)
        )


def _check_city(city: str) -> None:
    if not city or not city.strip():
        raise ValueError("City name must not be empty")


def _error_report(kind: str, error: WeatherError) -> str:
    logger.error(f"Error retrieving {kind}: {error}", exc_info=True)
    error_counter.labels(error_type=type(error).__name__, component="handler").inc()
    return f"Error retrieving {kind}: {error}"


# Tool argument models
class CityArgs(BaseModel):
    city: str = Field(..., min_length=1, description="The city name to get weather for")

    @field_validator("city")
    @classmethod
    def city_not_blank(cls, v):
        if not v.strip():
            raise ValueError("City name must not be empty")
        return v


class ForecastArgs(CityArgs):
    days: int = Field(
        default=DEFAULT_FORECAST_DAYS,
        ge=MIN_FORECAST_DAYS,
        le=MAX_FORECAST_DAYS,
        description="Number of days for forecast (default: 7, max: 14)",
    )


class CoordinatesArgs(BaseModel):
    latitude: float = Field(..., ge=-90, le=90, description="Latitude of the location (-90 to 90)")
    longitude: float = Field(
        ..., ge=-180, le=180, description="Longitude of the location (-180 to 180)"
    )


def register_weather_handlers(registry: McpRegistry, service: WeatherService) -> McpRegistry:
    """Register the weather tools and the currentweather resource."""

    async def handle_get_weather(args: CityArgs) -> TextResult:
        return TextResult(await service.get_weather(args.city))

    async def handle_get_forecast(args: ForecastArgs) -> TextResult:
        return TextResult(await service.get_forecast(args.city, args.days))

    async def handle_get_weather_by_coordinates(args: CoordinatesArgs) -> TextResult:
        return TextResult(
            await service.get_weather_by_coordinates(args.latitude, args.longitude)
        )

    async def handle_current_weather(uri: str, params: Dict[str, str]) -> TextResult:
        return TextResult(await service.get_weather(params["city"]))

    registry.register_tools(
        [
            ToolDefinition(
                name="get_weather",
                description="Get current weather conditions for a city",
                arguments=CityArgs,
                handler=handle_get_weather,
            ),
            ToolDefinition(
                name="get_forecast",
                description="Get a multi-day weather forecast for a city",
                arguments=ForecastArgs,
                handler=handle_get_forecast,
            ),
            ToolDefinition(
                name="get_weather_by_coordinates",
                description=(
                    "Get current weather conditions for specific latitude "
                    "and longitude coordinates"
                ),
                arguments=CoordinatesArgs,
                handler=handle_get_weather_by_coordinates,
            ),
        ]
    )

    registry.register_resource(
        ResourceDefinition(
            name="currentweather",
            uri_template="currentweather://{city}",
            description="Current weather conditions for a city",
            handler=handle_current_weather,
            examples=[{"city": city} for city in EXAMPLE_CITIES],
        )
    )
    return registry
