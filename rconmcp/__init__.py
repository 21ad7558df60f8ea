"""RCON MCP server package."""

from .app import configure_fastapi_app, create_app
from .config import AppConfig, configure_logging, load_config_from_env

__all__ = [
    "AppConfig",
    "configure_fastapi_app",
    "configure_logging",
    "create_app",
    "load_config_from_env",
]
