"""Exposes the RCON tools over MCP stdio and HTTP."""

from .router import configure_tool_router
from .stdio import StdioServer, run_stdio_server
from .tools import TOOLS, RCONTools, UnknownToolError

__all__ = [
    "TOOLS",
    "RCONTools",
    "StdioServer",
    "UnknownToolError",
    "configure_tool_router",
    "run_stdio_server",
]
