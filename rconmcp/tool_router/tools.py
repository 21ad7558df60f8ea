"""The four RCON tools exposed to tool-invocation clients.

:class:`RCONTools` is transport independent: the stdio and HTTP transports
both validate their input into the argument models below and call the same
methods. Errors are raised unchanged for the transport to report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from rconmcp.rconclient import RCONClientError

if TYPE_CHECKING:
    from collections.abc import Callable

    from rconmcp.rconclient import Session, SessionRegistry

LOGGER = logging.getLogger(__name__)

NO_SESSIONS_TEXT = "No active RCON sessions"


class UnknownToolError(LookupError):
    """Raised when a client calls a tool that does not exist."""

    pass


class ConnectArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(
        min_length=1,
        description="Unique identifier for this RCON session",
    )
    name: str = Field(
        default="",
        description="Friendly name for this connection (optional)",
    )
    address: str = Field(description="RCON server address (host:port)")
    password: str = Field(description="RCON server password")


class DisconnectArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(description="Session ID to disconnect")


class ExecuteArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(description="Session ID to use for execution")
    command: str = Field(description="Command to execute on the RCON server")


class ListSessionsArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")


@dataclass(frozen=True)
class ToolDefinition:
    """Describes one tool for discovery and dispatch.

    :param name: The tool's name on the wire
    :param description: One-line description shown to clients
    :param arguments: Pydantic model validating the tool's arguments
    :param operation: Name of the RCONTools method implementing the tool
    """

    name: str
    description: str
    arguments: type[BaseModel]
    operation: str

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the tool's arguments."""
        return self.arguments.model_json_schema()

    def describe(self) -> dict[str, Any]:
        """Return the tool descriptor used by ``tools/list``."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="rcon_connect",
        description="Connect to an RCON server and authenticate",
        arguments=ConnectArguments,
        operation="connect",
    ),
    ToolDefinition(
        name="rcon_disconnect",
        description="Disconnect from an RCON server",
        arguments=DisconnectArguments,
        operation="disconnect",
    ),
    ToolDefinition(
        name="rcon_execute",
        description="Execute a command on an RCON server",
        arguments=ExecuteArguments,
        operation="execute",
    ),
    ToolDefinition(
        name="rcon_list_sessions",
        description="List all active RCON sessions",
        arguments=ListSessionsArguments,
        operation="list_sessions",
    ),
)

TOOLS_BY_NAME: dict[str, ToolDefinition] = {tool.name: tool for tool in TOOLS}


class RCONTools:
    """Implements the RCON tools on top of a session registry."""

    def __init__(self, registry: SessionRegistry) -> None:
        """Bind the tools to a registry.

        :param registry: The registry holding every live session
        """
        self.registry = registry

    def connect(self, arguments: ConnectArguments) -> str:
        """Create a session, connect it and authenticate.

        If connecting or authenticating fails, the session created here is
        removed again; a newer session registered under the same id by
        another caller in the meantime is left alone.

        :param arguments: The validated tool arguments
        :return: Confirmation text naming the address and session
        :raises DuplicateSessionError: if the session id is already in use
        :raises RCONClientError: if connecting or authenticating fails
        """
        session = self.registry.create_session(
            arguments.session_id,
            arguments.name,
            arguments.address,
        )

        try:
            session.client.connect(arguments.address)
            session.client.authenticate(arguments.password)
        except Exception:
            self._rollback(session)
            raise

        LOGGER.info(
            "Session %s connected to %s",
            arguments.session_id,
            arguments.address,
        )
        return (
            f"Connected to RCON server at {arguments.address} "
            f"(session: {arguments.session_id})"
        )

    def disconnect(self, arguments: DisconnectArguments) -> str:
        """Disconnect a session and remove it from the registry.

        :param arguments: The validated tool arguments
        :return: Confirmation text naming the session
        :raises SessionNotFoundError: if the session does not exist
        :raises RCONClientCloseError: if the socket could not be closed
        """
        self.registry.remove_session(arguments.session_id)
        return f"Disconnected session: {arguments.session_id}"

    def execute(self, arguments: ExecuteArguments) -> str:
        """Run a command on a session's server and return the raw output.

        :param arguments: The validated tool arguments
        :return: The response body, untrimmed
        :raises SessionNotFoundError: if the session does not exist
        :raises RCONClientError: if the client refuses or the exchange fails
        """
        session = self.registry.get_session(arguments.session_id)
        return session.client.execute(arguments.command)

    def list_sessions(self, arguments: ListSessionsArguments) -> str:  # noqa: ARG002
        """Describe every registered session, one line each.

        :param arguments: The validated tool arguments (none)
        :return: Session listing text
        """
        sessions = self.registry.list_sessions()

        if not sessions:
            return NO_SESSIONS_TEXT

        lines = ["Active RCON sessions:"]
        lines.extend(
            f"- {session.session_id} ({session.display_name}): "
            f"{session.address} - {session.status}"
            for session in sessions
        )
        return "\n".join(lines) + "\n"

    def call(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Validate raw arguments and run the named tool.

        :param name: The tool's name on the wire, e.g. ``rcon_execute``
        :param arguments: The tool's arguments as decoded from JSON
        :return: The tool's text result
        :raises UnknownToolError: if no tool has that name
        :raises pydantic.ValidationError: if the arguments do not fit the tool
        """
        tool = TOOLS_BY_NAME.get(name)
        if tool is None:
            msg = f"Unknown tool: {name}"
            raise UnknownToolError(msg)

        validated = tool.arguments.model_validate(arguments or {})
        operation: Callable[[Any], str] = getattr(self, tool.operation)
        return operation(validated)

    def _rollback(self, session: Session) -> None:
        try:
            self.registry.discard_session(session)
        except RCONClientError:
            LOGGER.warning(
                "Failed to clean up session %s after failed connect",
                session.session_id,
                exc_info=True,
            )
