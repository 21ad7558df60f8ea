"""Thread-safe registry of named RCON sessions.

The registry is bookkeeping only: it never speaks the protocol itself.
Structural changes (create, remove, disconnect all) take the registry's lock
exclusively, lookups take it shared. Once a caller holds a :class:`Session`,
work on its client is guarded by the client's own lock, so commands on
different sessions run in parallel.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .connection import RCONClient
from .rcon_exceptions import (
    DuplicateSessionError,
    RCONClientCloseError,
    SessionNotFoundError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

LOGGER = logging.getLogger(__name__)

UNNAMED_SESSION = "unnamed"
STATUS_DISCONNECTED = "disconnected"
STATUS_CONNECTED = "connected (not authenticated)"
STATUS_AUTHENTICATED = "connected & authenticated"


class ReadWriteLock:
    """A lock allowing many concurrent readers or one exclusive writer.

    Waiting writers block new readers so a steady stream of lookups cannot
    starve session creation or removal.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock in shared mode for the duration of the block."""
        with self._condition:
            while self._writer or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock in exclusive mode for the duration of the block."""
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


@dataclass
class Session:
    """A named binding between a caller-chosen identifier and one client.

    :param session_id: Unique identifier chosen by the caller
    :param name: Optional friendly name, may be empty
    :param address: Server address in ``host:port`` form
    :param client: The RCON client owned by this session
    :param created_at: When the session was created
    """

    session_id: str
    name: str
    address: str
    client: RCONClient
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def display_name(self) -> str:
        """The session's name, or ``"unnamed"`` if none was given."""
        return self.name or UNNAMED_SESSION

    @property
    def status(self) -> str:
        """Human readable connection state of the session's client."""
        if not self.client.is_connected():
            return STATUS_DISCONNECTED
        if self.client.is_authenticated():
            return STATUS_AUTHENTICATED
        return STATUS_CONNECTED


class SessionRegistry:
    """Thread-safe mapping from session identifiers to live sessions."""

    def __init__(
        self,
        client_factory: Callable[[], RCONClient] = RCONClient,
    ) -> None:
        """Initialize an empty registry.

        :param client_factory: Creates the disconnected client for each new session
        """
        self._client_factory = client_factory
        self._sessions: dict[str, Session] = {}
        self._lock = ReadWriteLock()

    def create_session(self, session_id: str, name: str, address: str) -> Session:
        """Register a new session with a fresh, disconnected client.

        Connecting and authenticating the client is left to the caller.

        :param session_id: Unique identifier for the session
        :param name: Optional friendly name, may be empty
        :param address: Server address in ``host:port`` form
        :return: The newly registered session
        :raises DuplicateSessionError: if the identifier is already registered
        """
        with self._lock.write():
            if session_id in self._sessions:
                msg = f"Session with ID {session_id} already exists"
                raise DuplicateSessionError(msg)

            session = Session(
                session_id=session_id,
                name=name,
                address=address,
                client=self._client_factory(),
            )
            self._sessions[session_id] = session

        LOGGER.info("Created session %s for %s", session_id, address)
        return session

    def get_session(self, session_id: str) -> Session:
        """Look up a live session.

        :param session_id: Identifier of the session
        :return: The registered session itself, not a copy
        :raises SessionNotFoundError: if no such session exists
        """
        with self._lock.read():
            session = self._sessions.get(session_id)

        if session is None:
            msg = f"Session with ID {session_id} not found"
            raise SessionNotFoundError(msg)

        return session

    def list_sessions(self) -> list[Session]:
        """Return a snapshot of all registered sessions in no particular order."""
        with self._lock.read():
            return list(self._sessions.values())

    def remove_session(self, session_id: str) -> None:
        """Disconnect a session's client if needed and unregister the session.

        The entry is removed even when closing the connection fails.

        :param session_id: Identifier of the session
        :raises SessionNotFoundError: if no such session exists
        :raises RCONClientCloseError: if the client's socket could not be closed
        """
        with self._lock.write():
            session = self._sessions.get(session_id)
            if session is None:
                msg = f"Session with ID {session_id} not found"
                raise SessionNotFoundError(msg)

            try:
                if session.client.is_connected():
                    session.client.disconnect()
            finally:
                del self._sessions[session_id]
                LOGGER.info("Removed session %s", session_id)

    def discard_session(self, session: Session) -> bool:
        """Unregister a session only if it is still the one registered.

        A no-op when the identifier was removed or taken by a newer session
        in the meantime. The session's client is disconnected either way.

        :param session: The session previously returned by :meth:`create_session`
        :return: True if the registry entry was removed
        :raises RCONClientCloseError: if the client's socket could not be closed
        """
        with self._lock.write():
            registered = self._sessions.get(session.session_id) is session
            if registered:
                del self._sessions[session.session_id]
                LOGGER.info("Removed session %s", session.session_id)

        session.client.disconnect()
        return registered

    def disconnect_all(self) -> None:
        """Disconnect every session and clear the registry.

        Every connected client is disconnected even if some fail; the failures
        are raised together afterwards.

        :raises ExceptionGroup: of RCONClientCloseError, one per failed session,
            each naming its session and chaining the original error
        """
        errors: list[RCONClientCloseError] = []

        with self._lock.write():
            for session_id, session in self._sessions.items():
                if not session.client.is_connected():
                    continue
                try:
                    session.client.disconnect()
                except RCONClientCloseError as e:
                    msg = f"Failed to disconnect session {session_id}: {e}"
                    LOGGER.warning("Failed to disconnect session %s: %s", session_id, e)
                    error = RCONClientCloseError(msg)
                    error.__cause__ = e
                    errors.append(error)

            count = len(self._sessions)
            self._sessions = {}

        LOGGER.info("Cleared %d sessions", count)

        if errors:
            msg = "Failed to disconnect one or more sessions"
            raise ExceptionGroup(msg, errors)
