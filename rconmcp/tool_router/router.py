"""Router exposing the RCON tools over HTTP.

Endpoints are plain ``def`` functions so FastAPI runs every request on its
threadpool; a slow RCON round trip only blocks its own request.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from rconmcp.rconclient import (
    DuplicateSessionError,
    RCONClientAuthenticationFailedError,
    RCONClientError,
    RCONClientProtocolError,
    RCONClientStateError,
    RCONClientTransportError,
    SessionError,
    SessionNotFoundError,
)

from .tools import (
    TOOLS,
    ConnectArguments,
    DisconnectArguments,
    ExecuteArguments,
    ListSessionsArguments,
    RCONTools,
)

LOGGER = logging.getLogger(__name__)

_ArgsT = TypeVar("_ArgsT")


class ToolResult(BaseModel):
    text: str


def _status_for(error: Exception) -> int:
    """Pick the HTTP status code reported for a tool error."""
    if isinstance(error, DuplicateSessionError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, SessionNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, RCONClientAuthenticationFailedError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(error, RCONClientStateError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, (RCONClientTransportError, RCONClientProtocolError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST


def _run_tool(
    operation: Callable[[_ArgsT], str], arguments: _ArgsT
) -> ToolResult:
    """Run a tool and translate its errors into HTTP errors."""
    try:
        return ToolResult(text=operation(arguments))
    except (RCONClientError, SessionError, ValueError) as e:
        LOGGER.warning("Tool call failed: %s", e)
        raise HTTPException(status_code=_status_for(e), detail=str(e)) from e


def configure_tool_router(router: APIRouter, tools: RCONTools) -> APIRouter:
    """Configure the tool router with necessary dependencies.

    :param router: The FastAPI APIRouter to configure
    :param tools: The RCONTools instance serving the requests
    :return: The configured APIRouter
    """

    @router.get("/tools")
    def list_tools() -> list[dict[str, Any]]:
        return [tool.describe() for tool in TOOLS]

    @router.post("/tools/rcon_connect")
    def rcon_connect(arguments: ConnectArguments) -> ToolResult:
        return _run_tool(tools.connect, arguments)

    @router.post("/tools/rcon_disconnect")
    def rcon_disconnect(arguments: DisconnectArguments) -> ToolResult:
        return _run_tool(tools.disconnect, arguments)

    @router.post("/tools/rcon_execute")
    def rcon_execute(arguments: ExecuteArguments) -> ToolResult:
        return _run_tool(tools.execute, arguments)

    @router.post("/tools/rcon_list_sessions")
    def rcon_list_sessions() -> ToolResult:
        return _run_tool(tools.list_sessions, ListSessionsArguments())

    return router
