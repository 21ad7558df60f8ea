"""FastAPI application factory for the RCON tools."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI

from .config import AppConfig, load_config_from_env
from .rconclient import SessionRegistry
from .tool_router import RCONTools, configure_tool_router

LOGGER = logging.getLogger(__name__)


def configure_fastapi_app(
    config: AppConfig,
    registry: SessionRegistry | None = None,
) -> FastAPI:
    """Build the HTTP application serving the RCON tools.

    :param config: Server settings
    :param registry: Session registry to serve, a new one if not given
    :return: The FastAPI application
    """
    if registry is None:
        registry = SessionRegistry(config.client_factory)

    tools = RCONTools(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Any, Any]:  # noqa: ARG001
        """Close every remaining RCON session when the server stops."""
        LOGGER.info("RCON MCP server is starting")

        yield

        LOGGER.info("RCON MCP server is shutting down")
        try:
            registry.disconnect_all()
        except ExceptionGroup as group:
            LOGGER.warning(
                "Failed to disconnect all sessions cleanly: %s",
                group.exceptions,
            )

    app = FastAPI(
        title="RCON MCP Server",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(configure_tool_router(APIRouter(), tools), tags=["tools"])

    @app.get("/")
    def read_root() -> str:
        return "RCON MCP Server"

    return app


def create_app(env_file: str | None = None) -> FastAPI:
    """Build the HTTP application from environment settings.

    :param env_file: Optional .env file loaded before reading the environment
    :return: The FastAPI application
    """
    config = load_config_from_env(env_file)
    return configure_fastapi_app(config)
