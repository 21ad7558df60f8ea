"""Settings for the RCON MCP server.

Every setting is read from the process environment, optionally seeded from a
``.env`` file, and validated when :class:`AppConfig` is constructed.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, TypeVar

from dotenv import load_dotenv

from rconmcp.rconclient import RCONClient

if TYPE_CHECKING:
    from collections.abc import Callable

LOGGER = logging.getLogger(__name__)

_NumberT = TypeVar("_NumberT", int, float)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(app_config: AppConfig) -> None:
    """Send log records to stderr at the configured level.

    stdout is left alone because the stdio transport writes protocol
    messages there. Unknown level names fall back to INFO.

    :param app_config: Settings holding the level name, if any
    """
    level = logging.INFO
    unknown_level = False
    if app_config.logging_level:
        named_level = logging.getLevelName(app_config.logging_level.upper())
        if isinstance(named_level, int):
            level = named_level
        else:
            unknown_level = True

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)

    if unknown_level:
        LOGGER.warning("Unknown log level %r, using INFO", app_config.logging_level)


@dataclass
class AppConfig:
    """Server settings, each defaulting to an environment variable.

    Explicit keyword arguments override the environment, which tests use to
    build a config without touching ``os.environ``:

    .. code-block:: python

        config = AppConfig(connect_timeout=1.0, io_timeout=1.0)
        registry = SessionRegistry(config.client_factory)
    """

    DEFAULT_TIMEOUT: ClassVar[float] = 10.0
    DEFAULT_TOOL_WORKER_COUNT: ClassVar[int] = 8

    logging_level: str | None = field(
        default_factory=lambda: os.getenv("LOGGING_LEVEL"),
    )

    # Per-client socket deadlines, in seconds
    connect_timeout: float = field(
        default_factory=lambda: AppConfig._read_env(
            "RCON_CONNECT_TIMEOUT",
            float,
            AppConfig.DEFAULT_TIMEOUT,
        ),
    )
    io_timeout: float = field(
        default_factory=lambda: AppConfig._read_env(
            "RCON_IO_TIMEOUT",
            float,
            AppConfig.DEFAULT_TIMEOUT,
        ),
    )

    # Threads serving stdio tool calls
    tool_worker_count: int = field(
        default_factory=lambda: AppConfig._read_env(
            "TOOL_WORKER_COUNT",
            int,
            AppConfig.DEFAULT_TOOL_WORKER_COUNT,
        ),
    )

    def __post_init__(self) -> None:
        """Reject non-positive timeouts and worker counts."""
        if self.connect_timeout <= 0:
            msg = "RCON_CONNECT_TIMEOUT must be a positive number"
            raise ValueError(msg)
        if self.io_timeout <= 0:
            msg = "RCON_IO_TIMEOUT must be a positive number"
            raise ValueError(msg)
        if self.tool_worker_count <= 0:
            msg = "TOOL_WORKER_COUNT must be a positive integer"
            raise ValueError(msg)

    @property
    def client_factory(self) -> Callable[[], RCONClient]:
        """A zero-argument callable building clients with these timeouts."""
        return partial(
            RCONClient,
            connect_timeout=self.connect_timeout,
            io_timeout=self.io_timeout,
        )

    @staticmethod
    def _read_env(
        key: str, convert: type[_NumberT], default: _NumberT
    ) -> _NumberT:
        """Read a numeric environment variable.

        :param key: Name of the environment variable
        :param convert: ``int`` or ``float``
        :param default: Returned when the variable is unset or empty
        :raises ValueError: if the value does not parse as ``convert``
        """
        raw = os.getenv(key)
        if not raw:
            return default

        try:
            return convert(raw)
        except ValueError as e:
            kind = "an integer" if convert is int else "a number"
            msg = f"Environment variable {key} must be {kind}, got: {raw}"
            raise ValueError(msg) from e


def load_config_from_env(env_file: str | Path | None = None) -> AppConfig:
    """Build the settings, seeding the environment from a .env file first.

    Variables already set in the environment win over the file.

    :param env_file: Path of the .env file; ignored when missing
    :return: The validated settings
    """
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            LOGGER.info("Loading environment variables from %s", env_path)
            load_dotenv(env_path)
        else:
            LOGGER.debug("No .env file found at %s", env_path)

    return AppConfig()
