"""Command line entry point for the RCON MCP server."""

import argparse
import sys

import uvicorn

from rconmcp.app import configure_fastapi_app
from rconmcp.config import configure_logging, load_config_from_env
from rconmcp.rconclient import SessionRegistry
from rconmcp.tool_router import RCONTools, run_stdio_server

DESCRIPTION = """\
RCON MCP Server is a Model Context Protocol (MCP) server that provides
tools for connecting to and managing RCON (Remote Console) servers.

Available tools:
- rcon_connect: Connect to an RCON server
- rcon_disconnect: Disconnect from an RCON server
- rcon_execute: Execute commands on an RCON server
- rcon_list_sessions: List all active RCON sessions
"""


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its ``serve`` subcommand."""
    parser = argparse.ArgumentParser(
        prog="rcon-mcp-server",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Start the RCON MCP server.")
    serve.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Serve MCP over stdio (default) or the tools over HTTP.",
    )
    serve.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to the environment configuration file.",
    )
    serve.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to run the HTTP server on.",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the HTTP server on.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the RCON MCP server.

    :param argv: Command line arguments, ``sys.argv[1:]`` if not given
    :return: The process exit status
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "serve":
        parser.print_help()
        return 1

    config = load_config_from_env(args.env_file)
    configure_logging(config)

    registry = SessionRegistry(config.client_factory)

    if args.transport == "http":
        app = configure_fastapi_app(config, registry)
        uvicorn.run(app, host=args.host, port=args.port)
    else:
        run_stdio_server(RCONTools(registry), config.tool_worker_count)

    return 0


if __name__ == "__main__":
    sys.exit(main())
