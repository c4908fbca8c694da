"""
Unit tests for the weather handlers and their cache dispatch.
"""
import asyncio
from datetime import date, timedelta
from unittest.mock import Mock

import pytest

from weather_info.cache import CURRENT, FORECAST, WeatherCache
from weather_info.handlers import WeatherService
from weather_info.provider import (
    CurrentConditions,
    DailyForecast,
    Location,
    LocationNotFoundError,
    UpstreamError,
    WeatherProvider,
)

LONDON = Location(latitude=51.5085, longitude=-0.1257, name="London", country="United Kingdom")


def make_conditions() -> CurrentConditions:
    return CurrentConditions(
        temperature_2m=15.2,
        relative_humidity_2m=78,
        apparent_temperature=13.9,
        precipitation=0.0,
        rain=0.0,
        weather_code=3,
        cloud_cover=90,
        wind_speed_10m=10.0,
        wind_direction_10m=225,
        wind_gusts_10m=12.0,
    )


def make_forecast(days: int) -> DailyForecast:
    start = date(2025, 10, 20)
    return DailyForecast(
        time=[(start + timedelta(days=i)).isoformat() for i in range(days)],
        weather_code=[0] * days,
        temperature_2m_max=[20.0] * days,
        temperature_2m_min=[10.0] * days,
        precipitation_sum=[0.0] * days,
        precipitation_hours=[0.0] * days,
        wind_speed_10m_max=[10.0] * days,
        wind_gusts_10m_max=[12.0] * days,
        wind_direction_10m_dominant=[90] * days,
    )


def make_provider() -> Mock:
    provider = Mock(spec=WeatherProvider)
    provider.geocode.return_value = LONDON
    provider.current_conditions.return_value = make_conditions()
    provider.forecast.side_effect = lambda lat, lon, days: make_forecast(days)
    return provider


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestGetWeather:
    def setup_method(self):
        """Setup test fixtures."""
        self.provider = make_provider()
        self.clock = FakeClock()
        self.cache = WeatherCache(time_func=self.clock)
        self.service = WeatherService(self.provider, self.cache)

    def test_cache_miss_fetches_and_caches(self):
        """Test a miss geocodes, fetches, renders and stores the report."""
        report = asyncio.run(self.service.get_weather("London"))

        assert report.startswith("# Current Weather for London, United Kingdom")
        self.provider.geocode.assert_called_once_with("London")
        self.provider.current_conditions.assert_called_once_with(51.5085, -0.1257)
        assert self.cache.get(CURRENT, "london").text == report

    def test_second_call_served_from_cache(self):
        """Test a repeat within the window is byte-identical and makes no fetch."""
        first = asyncio.run(self.service.get_weather("London"))
        second = asyncio.run(self.service.get_weather("London"))

        assert first == second
        assert self.provider.geocode.call_count == 1
        assert self.provider.current_conditions.call_count == 1

    def test_cache_key_ignores_case(self):
        asyncio.run(self.service.get_weather("London"))
        asyncio.run(self.service.get_weather("LONDON"))

        assert self.provider.geocode.call_count == 1

    def test_expired_entry_refetched(self):
        """Test an entry older than 30 minutes triggers a new fetch."""
        asyncio.run(self.service.get_weather("London"))
        self.clock.now += 30 * 60

        asyncio.run(self.service.get_weather("London"))

        assert self.provider.current_conditions.call_count == 2

    def test_city_not_found(self):
        """Test an unknown city becomes an error report, not an exception."""
        self.provider.geocode.side_effect = LocationNotFoundError("Nowhereland")

        report = asyncio.run(self.service.get_weather("Nowhereland"))

        assert report.startswith("Error retrieving weather:")
        assert "Nowhereland" in report
        self.provider.current_conditions.assert_not_called()

    def test_upstream_failure(self):
        self.provider.current_conditions.side_effect = UpstreamError(
            "API Error: 502 Bad Gateway", status_code=502, reason="Bad Gateway"
        )

        report = asyncio.run(self.service.get_weather("London"))

        assert report == "Error retrieving weather: API Error: 502 Bad Gateway"

    def test_error_report_not_cached(self):
        """Test failures are retried on the next call instead of cached."""
        self.provider.geocode.side_effect = [UpstreamError("API Error: 500 Oops"), LONDON]

        first = asyncio.run(self.service.get_weather("London"))
        second = asyncio.run(self.service.get_weather("London"))

        assert first.startswith("Error retrieving weather:")
        assert second.startswith("# Current Weather for London")

    def test_empty_city_rejected(self):
        with pytest.raises(ValueError):
            asyncio.run(self.service.get_weather("  "))
        self.provider.geocode.assert_not_called()


class TestGetForecast:
    def setup_method(self):
        """Setup test fixtures."""
        self.provider = make_provider()
        self.cache = WeatherCache()
        self.service = WeatherService(self.provider, self.cache)

    def test_default_seven_days(self):
        report = asyncio.run(self.service.get_forecast("London"))

        assert report.startswith("# 7-Day Weather Forecast for London, United Kingdom")
        self.provider.forecast.assert_called_once_with(51.5085, -0.1257, 7)
        assert self.cache.get(FORECAST, "london_7").text == report

    @pytest.mark.parametrize("days", [1, 14])
    def test_day_bounds_accepted(self, days):
        report = asyncio.run(self.service.get_forecast("London", days))

        assert report.count("## ") == days

    @pytest.mark.parametrize("days", [0, 15])
    def test_day_bounds_rejected_before_fetch(self, days):
        """Test out-of-range day counts fail before any upstream call."""
        with pytest.raises(ValueError):
            asyncio.run(self.service.get_forecast("London", days))

        self.provider.geocode.assert_not_called()
        self.provider.forecast.assert_not_called()

    def test_day_counts_cached_separately(self):
        """Test different day counts for one city are distinct entries."""
        three = asyncio.run(self.service.get_forecast("London", 3))
        five = asyncio.run(self.service.get_forecast("London", 5))
        again = asyncio.run(self.service.get_forecast("london", 3))

        assert three != five
        assert again == three
        assert self.provider.forecast.call_count == 2

    def test_forecast_does_not_share_current_cache(self):
        asyncio.run(self.service.get_weather("London"))
        asyncio.run(self.service.get_forecast("London"))

        self.provider.current_conditions.assert_called_once()
        self.provider.forecast.assert_called_once()

    def test_city_not_found(self):
        self.provider.geocode.side_effect = LocationNotFoundError("Nowhereland")

        report = asyncio.run(self.service.get_forecast("Nowhereland", 3))

        assert report == "Error retrieving forecast: City not found: Nowhereland"


class TestGetWeatherByCoordinates:
    def setup_method(self):
        """Setup test fixtures."""
        self.provider = make_provider()
        self.cache = WeatherCache()
        self.service = WeatherService(self.provider, self.cache)

    def test_labelled_by_coordinates(self):
        report = asyncio.run(self.service.get_weather_by_coordinates(48.856613, 2.352222))

        assert report.startswith("# Current Weather for Coordinates (48.8566, 2.3522)")
        self.provider.geocode.assert_not_called()

    def test_boundary_accepted(self):
        report = asyncio.run(self.service.get_weather_by_coordinates(90, 180))

        assert report.startswith("# Current Weather for Coordinates (90.0000, 180.0000)")

    @pytest.mark.parametrize(
        "latitude,longitude", [(90.0001, 0), (-90.0001, 0), (0, 180.0001), (0, -181)]
    )
    def test_out_of_range_rejected_before_fetch(self, latitude, longitude):
        with pytest.raises(ValueError):
            asyncio.run(self.service.get_weather_by_coordinates(latitude, longitude))

        self.provider.current_conditions.assert_not_called()

    def test_never_cached(self):
        """Test every coordinate lookup is a live fetch."""
        asyncio.run(self.service.get_weather_by_coordinates(10, 20))
        asyncio.run(self.service.get_weather_by_coordinates(10, 20))

        assert self.provider.current_conditions.call_count == 2
        assert len(self.cache) == 0

    def test_upstream_failure(self):
        self.provider.current_conditions.side_effect = UpstreamError("Failed to reach weather API")

        report = asyncio.run(self.service.get_weather_by_coordinates(10, 20))

        assert report == "Error retrieving weather: Failed to reach weather API"


class TestConcurrentMisses:
    def test_overlapping_misses_last_writer_wins(self):
        """Test concurrent misses for one city both fetch and leave one valid entry."""
        provider = make_provider()
        cache = WeatherCache()
        service = WeatherService(provider, cache)

        async def both():
            return await asyncio.gather(
                service.get_weather("London"), service.get_weather("London")
            )

        first, second = asyncio.run(both())

        assert first.startswith("# Current Weather for London")
        assert second.startswith("# Current Weather for London")
        assert 1 <= provider.geocode.call_count <= 2
        assert len(cache) == 1
