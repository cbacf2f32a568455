"""MCP Server for the noise monitoring database."""

import asyncio
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from noise_mcp.config import settings
from noise_mcp.db import NoiseStore
from noise_mcp.errors import QueryFailure, ValidationError
from noise_mcp.tool_schema import missing_required, yaml_to_tools
from noise_mcp.tools import historical as historical_tool
from noise_mcp.tools import readings as readings_tool

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def create_server(store: NoiseStore | None) -> Server:
    """Build the MCP server with its tools bound to ``store``.

    ``store`` is None when the database was unreachable at startup; tool
    calls then answer with a database error.
    """
    mcp = Server(settings.server_name)

    @mcp.list_tools()
    async def list_tools() -> list[Tool]:
        """List available MCP tools."""
        return yaml_to_tools()

    @mcp.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        """Handle tool calls."""
        logger.info(f"Tool called: {name} with arguments: {arguments}")
        arguments = arguments or {}

        missing = missing_required(name, arguments)
        if missing:
            return _text(f"Invalid request: missing {', '.join(missing)}")

        try:
            return _text(await dispatch(store, name, arguments))
        except ValidationError as e:
            logger.info(f"{name} rejected: {e}")
            return _text(f"Invalid request: {e}")
        except QueryFailure as e:
            logger.error(f"{name} failed: {e}")
            return _text("Error: database query failed")
        except Exception as e:
            logger.error(f"{name} failed: {e}")
            return _text(f"Error: {e}")

    return mcp


async def dispatch(store: NoiseStore | None, name: str, arguments: dict) -> str:
    """Run tool ``name`` against ``store`` and return its formatted response."""
    if store is None:
        raise QueryFailure("Database not connected")

    if name == "get_historical_readings":
        result = await historical_tool.get_historical_readings(
            store,
            range=arguments.get("range"),
            breakdown=arguments.get("breakdown"),
            start_date=arguments.get("start_date"),
            end_date=arguments.get("end_date"),
            date=arguments.get("date"),
            device_id=arguments.get("device_id"),
        )
        return historical_tool.format_historical_response(result)

    elif name == "get_recent_readings":
        limit = arguments.get("limit", settings.recent_readings_limit)
        readings = await readings_tool.get_recent_readings(store, limit=limit)
        return readings_tool.format_readings_response(readings, "Recent readings")

    elif name == "get_latest_readings":
        readings = await readings_tool.get_latest_readings(
            store, since=arguments.get("since")
        )
        return readings_tool.format_readings_response(readings, "New readings")

    else:
        return f"Unknown tool: {name}"


async def run_server():
    """Run the MCP server using stdio transport."""
    logger.info(f"Starting {settings.server_name} v{settings.server_version}")

    store = await NoiseStore.connect(settings)
    if await store.check_connection():
        logger.info("Database connection verified")
    else:
        logger.warning("Database connection check failed - tools may not work")

    mcp = create_server(store)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await mcp.run(
                read_stream,
                write_stream,
                mcp.create_initialization_options(),
            )
    finally:
        await store.close()


def main():
    """Entry point for the MCP server."""
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
