"""
Configuration constants for the Weather Information MCP server.
"""

SERVER_NAME = "Weather Information Server"
SERVER_VERSION = "1.0.0"

# Open-Meteo endpoints
GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
WEATHER_URL = "https://api.open-meteo.com/v1/forecast"

# Per-request socket timeouts (seconds)
GEOCODING_TIMEOUT = 10
WEATHER_TIMEOUT = 15

# Rendered reports stay valid for 30 minutes
CACHE_TTL_SECONDS = 30 * 60

DEFAULT_FORECAST_DAYS = 7
MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 14

# Gust clause thresholds (gusts must exceed speed * ratio)
CURRENT_GUST_RATIO = 1.5
FORECAST_GUST_RATIO = 1.3

EXAMPLE_CITIES = ["London", "New York", "Tokyo", "Paris", "Sydney"]
