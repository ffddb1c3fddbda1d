"""Expose the weather lookup via the Model Context Protocol (MCP)."""

from __future__ import annotations

import argparse
from typing import Any

from mcp.server.fastmcp import FastMCP

from tools.weather_tool import get_daily_forecast, get_weather


def build_weather_mcp(name: str = "weather") -> FastMCP:
    """Create an MCP server with current-weather and forecast tools."""
    server = FastMCP(name=name)

    @server.tool(name="get-weather")
    async def current_weather(location: str) -> dict[str, Any]:
        """Get current weather for a location (city name)."""
        snapshot = await get_weather(location)
        return snapshot.model_dump(by_alias=True)

    @server.tool(name="get-forecast")
    async def daily_forecast(city: str) -> dict[str, Any]:
        """Get today's temperature range and precipitation chance for a city."""
        forecast = await get_daily_forecast(city)
        return forecast.model_dump(by_alias=True)

    return server


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run an MCP server for weather lookups")
    parser.add_argument("--name", default="weather", help="Name for the MCP server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol to use",
    )
    args = parser.parse_args()
    build_weather_mcp(args.name).run(transport=args.transport)
