#!/usr/bin/env python3
"""
Weather Information MCP Server - stdio transport.
"""
import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from .cache import WeatherCache
from .config import CACHE_TTL_SECONDS, SERVER_NAME, SERVER_VERSION
from .handlers import WeatherService, register_weather_handlers
from .logging_config import HOST_ID, setup_logging
from .metrics import get_content_type, get_metrics, set_app_info
from .provider import WeatherProvider
from .registry import McpRegistry, PassthroughResult, ResourceDefinition

logger = logging.getLogger(__name__)

METRICS_URI = "metrics://prometheus"


async def handle_metrics(uri: str, params: Dict[str, str]) -> PassthroughResult:
    """Prometheus exposition text, labelled with its exposition content type."""
    return PassthroughResult(
        types.ReadResourceResult(
            contents=[
                types.TextResourceContents(
                    uri=uri,
                    mimeType=get_content_type(),
                    text=get_metrics().decode("utf-8"),
                )
            ]
        )
    )


def build_registry(service: WeatherService) -> McpRegistry:
    registry = McpRegistry()
    register_weather_handlers(registry, service)
    registry.register_resource(
        ResourceDefinition(
            name="metrics",
            uri_template=METRICS_URI,
            description="Prometheus metrics for this server",
            handler=handle_metrics,
            mime_type=get_content_type(),
        )
    )
    return registry


def build_server(service: WeatherService) -> Server:
    """Create the MCP server with all weather tools and resources registered."""
    server = Server(SERVER_NAME, version=SERVER_VERSION)
    return build_registry(service).bind(server)


async def serve(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Weather Information MCP Server")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--cache-max-entries",
        type=int,
        default=None,
        help="Maximum cached reports per namespace (default: unbounded)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the MCP server."""
    args = parse_args(argv)
    setup_logging(args.log_level)
    set_app_info(version=SERVER_VERSION, host=HOST_ID)

    cache = WeatherCache(ttl_seconds=CACHE_TTL_SECONDS, max_entries=args.cache_max_entries)
    service = WeatherService(WeatherProvider(), cache)
    server = build_server(service)

    logger.info("Weather MCP Server started")
    try:
        asyncio.run(serve(server))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Failed to run server: {e}", exc_info=True)
        sys.exit(1)

    logger.info("Weather MCP Server stopped")


if __name__ == "__main__":
    main()
