"""MCP tool implementations."""

from noise_mcp.tools.historical import aggregate, get_historical_readings
from noise_mcp.tools.readings import get_latest_readings, get_recent_readings

__all__ = [
    "aggregate",
    "get_historical_readings",
    "get_latest_readings",
    "get_recent_readings",
]
