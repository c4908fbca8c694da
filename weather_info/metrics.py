"""
Prometheus metrics for the Weather Information MCP server.

There is no HTTP listener; the exposition text is served in-band through
the ``metrics://prometheus`` resource.
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

# Application info metric
app_info = Info(
    "weatherinfo_app_info",
    "Application information for the Weather Information server",
)

# MCP tool metrics
mcp_tool_calls = Counter(
    "weatherinfo_mcp_tool_calls_total",
    "Total number of MCP tool calls",
    ["tool_name", "status"],
)

mcp_tool_duration = Histogram(
    "weatherinfo_mcp_tool_duration_seconds",
    "MCP tool call duration in seconds",
    ["tool_name"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

mcp_resource_reads = Counter(
    "weatherinfo_mcp_resource_reads_total",
    "Total number of MCP resource reads",
    ["resource_name", "status"],
)

# Cache metrics
cache_lookups = Counter(
    "weatherinfo_cache_lookups_total",
    "Cache lookups by namespace and outcome",
    ["namespace", "result"],
)

cache_evictions = Counter(
    "weatherinfo_cache_evictions_total",
    "Entries evicted to respect the cache capacity",
    ["namespace"],
)

# Upstream API metrics
upstream_requests = Counter(
    "weatherinfo_upstream_requests_total",
    "Requests made to the Open-Meteo APIs",
    ["api", "status"],
)

# Error metrics
error_counter = Counter(
    "weatherinfo_errors_total",
    "Total number of errors",
    ["error_type", "component"],
)


def set_app_info(version: str, host: str):
    """Set application information."""
    app_info.info({"version": version, "host": host, "application": "weather-info"})


def get_metrics() -> bytes:
    """Get all metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
