# gemini_calendar/mcp_server.py
"""
MCP server exposing the clock tool over streamable HTTP.

Lets other MCP clients ask for the current UTC time with the same
name, description and output format the chat uses.
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from gemini_calendar.timefmt import now_utc, to_rfc3339
from gemini_calendar.tool_registry import TIME_NOW, build_default_registry

logger = logging.getLogger(__name__)


def current_time_utc() -> str:
    """Current instant in UTC as RFC3339."""
    return to_rfc3339(now_utc())


def build_mcp_server() -> FastMCP:
    descriptor = build_default_registry().get(TIME_NOW)
    server = FastMCP(name="Telling current time")
    server.tool(name=descriptor.name, description=descriptor.description)(current_time_utc)
    return server


def run_mcp_server(host: str = "127.0.0.1", port: int = 8080) -> None:
    server = build_mcp_server()
    logger.info("Starting MCP server on %s:%d", host, port)
    server.run(transport="streamable-http", host=host, port=port)
