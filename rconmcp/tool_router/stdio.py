"""Model Context Protocol server speaking JSON-RPC 2.0 over stdio.

Requests arrive one JSON object per line on stdin and responses leave the
same way on stdout. Only the subset of MCP needed for tools is implemented:
``initialize``, ``ping``, ``tools/list`` and ``tools/call``.

Each ``tools/call`` runs on a worker thread so a slow RCON server does not
hold up calls for other sessions; responses may therefore be written out of
request order, which JSON-RPC allows since every response carries its id.
"""

from __future__ import annotations

import io
import json
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import IO, TYPE_CHECKING, Any

from pydantic import ValidationError

from rconmcp.rconclient import RCONClientError, SessionError

from .tools import TOOLS, UnknownToolError

if TYPE_CHECKING:
    from .tools import RCONTools

LOGGER = logging.getLogger(__name__)

SERVER_NAME = "rcon-mcp-server"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def make_response(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def make_error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def format_tool_result(text: str, *, is_error: bool = False) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


class StdioServer:
    """Serves RCONTools to one MCP client over a pair of text streams."""

    def __init__(
        self,
        tools: RCONTools,
        stdin: IO[str],
        stdout: IO[str],
        worker_count: int = 8,
    ) -> None:
        """Initialize the server.

        :param tools: The tools to serve
        :param stdin: Stream the requests are read from
        :param stdout: Stream the responses are written to
        :param worker_count: Maximum number of tool calls running at once
        """
        self.tools = tools
        self._stdin = stdin
        self._stdout = stdout
        self._write_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=worker_count,
            thread_name_prefix="rcon-tool",
        )

    def serve(self) -> None:
        """Process requests until stdin is closed, then wait for running calls."""
        try:
            for raw_line in self._stdin:
                line = raw_line.strip()
                if not line:
                    continue

                try:
                    request = json.loads(line)
                except json.JSONDecodeError as e:
                    LOGGER.warning("Invalid JSON received: %s", e)
                    self._write(make_error(None, PARSE_ERROR, f"Parse error: {e}"))
                    continue

                if not isinstance(request, dict):
                    self._write(make_error(None, INVALID_REQUEST, "Invalid request"))
                    continue

                if request.get("method") == "tools/call":
                    self._executor.submit(self._respond, request)
                else:
                    self._respond(request)
        finally:
            self._executor.shutdown(wait=True)

        LOGGER.info("stdin closed, shutting down")

    def handle_request(self, request: dict[str, Any]) -> dict[str, Any] | None:
        """Build the response for one JSON-RPC request.

        :param request: The decoded request object
        :return: The response object, or None for notifications
        """
        method = request.get("method")
        params = request.get("params") or {}
        request_id = request.get("id")
        is_notification = "id" not in request

        if not isinstance(params, dict):
            if is_notification:
                return None
            msg = "Invalid params: expected an object"
            return make_error(request_id, INVALID_PARAMS, msg)

        if method == "initialize":
            result = {
                "protocolVersion": params.get("protocolVersion", PROTOCOL_VERSION),
                "capabilities": {"tools": {}},
                "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            }
        elif method == "ping":
            result = {}
        elif method == "tools/list":
            result = {"tools": [tool.describe() for tool in TOOLS]}
        elif method == "tools/call":
            return self._call_tool(request_id, params)
        elif is_notification:
            # notifications/initialized and friends need no answer
            return None
        else:
            return make_error(request_id, METHOD_NOT_FOUND, f"Unknown method: {method}")

        if is_notification:
            return None
        return make_response(request_id, result)

    def _call_tool(self, request_id: Any, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")

        try:
            text = self.tools.call(str(name), arguments)
        except UnknownToolError as e:
            return make_error(request_id, METHOD_NOT_FOUND, str(e))
        except ValidationError as e:
            return make_error(
                request_id,
                INVALID_PARAMS,
                f"Invalid arguments for {name}: {e}",
            )
        except (RCONClientError, SessionError, ValueError) as e:
            LOGGER.info("Tool %s failed: %s", name, e)
            return make_response(
                request_id,
                format_tool_result(f"{name} failed: {e}", is_error=True),
            )

        return make_response(request_id, format_tool_result(text))

    def _respond(self, request: dict[str, Any]) -> None:
        try:
            response = self.handle_request(request)
        except Exception:
            LOGGER.exception("Unexpected error handling %s", request.get("method"))
            response = make_error(request.get("id"), INTERNAL_ERROR, "Internal error")

        if response is not None:
            self._write(response)

    def _write(self, response: dict[str, Any]) -> None:
        with self._write_lock:
            self._stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
            self._stdout.flush()


def run_stdio_server(tools: RCONTools, worker_count: int) -> None:
    """Serve the tools on the process's stdin/stdout, then close every session.

    :param tools: The tools to serve
    :param worker_count: Maximum number of tool calls running at once
    """
    # Force UTF-8 regardless of the platform's default encoding
    stdin = io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8", errors="replace")
    stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", line_buffering=True)

    LOGGER.info("RCON MCP server is ready")
    StdioServer(tools, stdin, stdout, worker_count).serve()

    try:
        tools.registry.disconnect_all()
    except ExceptionGroup as group:
        LOGGER.warning(
            "Failed to disconnect all sessions cleanly: %s",
            group.exceptions,
        )
