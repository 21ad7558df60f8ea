"""RCON communication client.

One :class:`RCONClient` owns one TCP connection to one RCON server and walks
it through ``disconnected -> connected -> authenticated``. The client never
reconnects or re-authenticates in place; callers throw a disconnected client
away and create a new one.

All methods are synchronous/blocking and thread-safe. Every public method
holds the client's lock for its full duration, so at most one packet exchange
is in flight per connection. The protocol correlates responses by order only,
so two writers on one socket would corrupt the framing.

Usage:

.. code-block:: python

    client = RCONClient()
    client.connect("127.0.0.1:25575")
    client.authenticate(password)
    client.execute("list")
    client.disconnect()
"""

from __future__ import annotations

import logging
import socket
import threading
import time

from .rcon_exceptions import (
    RCONClientAlreadyAuthenticatedError,
    RCONClientAlreadyConnectedError,
    RCONClientAuthenticationFailedError,
    RCONClientCloseError,
    RCONClientConnectionError,
    RCONClientNotAuthenticatedError,
    RCONClientNotConnectedError,
    RCONClientResponseMismatchError,
    RCONClientTransportError,
    RCONClientUnexpectedResponseError,
)
from .types import (
    AUTH_FAILED_REQUEST_ID,
    LENGTH_PREFIX_SIZE,
    RCONPacket,
    RCONPacketType,
    decode_packet_length,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

_PORT_UPPER_BOUND = 65536
_INT32_MAX = 2**31 - 1
_INT32_MIN = -(2**31)


def parse_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` address into its parts.

    IPv6 hosts may be given in brackets, e.g. ``[::1]:25575``.

    :param address: The address to split
    :return: A tuple of (host, port)
    :raises ValueError: if the address is not of the form host:port
    """
    host, separator, port_str = address.rpartition(":")
    if not separator or not host or not port_str.isdigit():
        msg = f"Address must be of the form host:port, got: {address!r}"
        raise ValueError(msg)

    port = int(port_str)
    if not 0 < port < _PORT_UPPER_BOUND:
        msg = f"Port out of range in address: {address!r}"
        raise ValueError(msg)

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    return host, port


class RCONClient:
    """Client that manages an RCON connection to a server."""

    def __init__(
        self,
        connect_timeout: float = DEFAULT_TIMEOUT,
        io_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize a disconnected client with request ID starting at 1.

        :param connect_timeout: Seconds to wait for the TCP dial
        :param io_timeout: Seconds to wait for each socket read or write
        """
        self._lock = threading.Lock()
        self._socket: socket.socket | None = None
        self._request_id: int = 1
        self._connected = False
        self._authenticated = False
        self._connect_timeout = connect_timeout
        self._io_timeout = io_timeout

    def connect(self, address: str) -> None:
        """Open the TCP connection to an RCON server.

        :param address: Server address in ``host:port`` form
        :raises RCONClientAlreadyConnectedError: if the client is already connected
        :raises RCONClientConnectionError: if the address is invalid or the dial fails
        """
        with self._lock:
            if self._connected:
                msg = "Already connected"
                raise RCONClientAlreadyConnectedError(msg)

            try:
                host, port = parse_address(address)
                rcon_socket = socket.create_connection(
                    (host, port),
                    timeout=self._connect_timeout,
                )
            except (OSError, ValueError) as e:
                msg = f"Failed to connect to {address}: {e}"
                raise RCONClientConnectionError(msg) from e

            rcon_socket.settimeout(self._io_timeout)
            self._socket = rcon_socket
            self._connected = True

        LOGGER.debug("RCON client connected to %s", address)

    def authenticate(self, password: str) -> None:
        """Log in to the RCON server with the given password.

        Must be called after :meth:`connect` and before :meth:`execute`.
        A failed attempt leaves the client connected but unauthenticated.

        :param password: The RCON password
        :raises RCONClientNotConnectedError: if the client is not connected
        :raises RCONClientAlreadyAuthenticatedError: if already authenticated
        :raises RCONClientAuthenticationFailedError: if the server rejects the password
        :raises RCONClientUnexpectedResponseError: if the response id is unknown
        :raises RCONClientTransportError: if the socket fails or times out
        """
        with self._lock:
            if not self._connected:
                msg = "Not connected"
                raise RCONClientNotConnectedError(msg)

            if self._authenticated:
                msg = "Already authenticated"
                raise RCONClientAlreadyAuthenticatedError(msg)

            request = RCONPacket(
                request_id=self._next_request_id(),
                packet_type=RCONPacketType.AUTH_PACKET,
                body=password,
            )
            self._send_packet(request, "auth packet")
            response = self._read_packet("auth response")

            if response.request_id == AUTH_FAILED_REQUEST_ID:
                msg = "Authentication failed: invalid password"
                raise RCONClientAuthenticationFailedError(msg)

            if response.request_id != request.request_id:
                msg = (
                    "Authentication failed: unexpected response ID "
                    f"{response.request_id} (expected {request.request_id})"
                )
                raise RCONClientUnexpectedResponseError(msg)

            self._authenticated = True

        LOGGER.debug("RCON client authenticated")

    def execute(self, command: str) -> str:
        """Send a command and return the server's response body verbatim.

        Exactly one response packet is read per command; output that a server
        splits across several packets is not reassembled.

        :param command: The command to send to the RCON server
        :return: The body of the response packet, possibly empty
        :raises RCONClientNotConnectedError: if the client is not connected
        :raises RCONClientNotAuthenticatedError: if the client is not authenticated
        :raises RCONClientResponseMismatchError: if the response id differs from
            the request id
        :raises RCONClientTransportError: if the socket fails or times out
        """
        with self._lock:
            if not self._connected:
                msg = "Not connected"
                raise RCONClientNotConnectedError(msg)

            if not self._authenticated:
                msg = "Not authenticated"
                raise RCONClientNotAuthenticatedError(msg)

            request = RCONPacket(
                request_id=self._next_request_id(),
                packet_type=RCONPacketType.COMMAND_PACKET,
                body=command,
            )
            LOGGER.debug("Payload: %s", command)
            self._send_packet(request, "command")
            response = self._read_packet("response")

            if response.request_id != request.request_id:
                msg = (
                    f"Response ID mismatch: got {response.request_id}, "
                    f"expected {request.request_id}"
                )
                raise RCONClientResponseMismatchError(msg)

            return response.body

    def disconnect(self) -> None:
        """Close the connection and reset the client to disconnected.

        Safe to call repeatedly or on a client that never connected. Local
        state is cleared even when closing the socket fails.

        :raises RCONClientCloseError: if the socket could not be closed
        """
        with self._lock:
            if not self._connected:
                return

            rcon_socket = self._socket
            self._socket = None
            self._connected = False
            self._authenticated = False

            try:
                if rcon_socket is not None:
                    rcon_socket.close()
            except OSError as e:
                msg = f"Failed to close connection: {e}"
                raise RCONClientCloseError(msg) from e

        LOGGER.debug("RCON client disconnected")

    def is_connected(self) -> bool:
        """Return True if the client holds an open connection."""
        with self._lock:
            return self._connected

    def is_authenticated(self) -> bool:
        """Return True if the client has authenticated with the server."""
        with self._lock:
            return self._authenticated

    def _next_request_id(self) -> int:
        """Return the next request id, wrapping like a signed 32-bit integer."""
        request_id = self._request_id
        self._request_id = (
            request_id + 1 if request_id < _INT32_MAX else _INT32_MIN
        )
        return request_id

    def _send_packet(self, packet: RCONPacket, description: str) -> None:
        """Write one packet to the socket under the write timeout.

        :param packet: The packet to send
        :param description: What is being sent, for error messages
        :raises RCONClientTransportError: if the write fails or times out
        """
        data = packet.encode()

        LOGGER.debug("Request ID: %d", packet.request_id)
        LOGGER.debug("Packet type: %d", packet.packet_type)

        rcon_socket = self._require_socket()
        try:
            # sendall bounds the whole write by the socket timeout
            rcon_socket.settimeout(self._io_timeout)
            rcon_socket.sendall(data)
        except OSError as e:
            msg = f"Failed to send {description}: {e}"
            raise RCONClientTransportError(msg) from e

    def _read_packet(self, description: str) -> RCONPacket:
        """Read one packet from the socket before the read deadline.

        The deadline covers the whole packet, not each ``recv`` call, so a
        server trickling bytes cannot stretch the read past ``io_timeout``.

        :param description: What is being read, for error messages
        :return: The decoded packet
        :raises RCONClientInvalidPacketSizeError: if the declared length is invalid
        :raises RCONClientTransportError: if the read fails, times out or the
            stream closes mid-packet
        """
        deadline = time.monotonic() + self._io_timeout
        length = decode_packet_length(
            self._recv_exactly(LENGTH_PREFIX_SIZE, description, deadline),
        )
        response = RCONPacket.from_payload(
            self._recv_exactly(length, description, deadline),
        )

        LOGGER.debug(
            "Response: ID=%d, type=%d, body=%s",
            response.request_id,
            response.packet_type,
            response.body,
        )

        return response

    def _recv_exactly(self, size: int, description: str, deadline: float) -> bytes:
        """Read exactly ``size`` bytes before ``deadline`` or fail.

        :param deadline: ``time.monotonic()`` value by which the read must end
        :raises RCONClientTransportError: on timeout, socket error or early EOF
        """
        rcon_socket = self._require_socket()
        all_bytes = bytearray()
        while len(all_bytes) < size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                msg = (
                    f"Failed to read {description}: timed out after "
                    f"{len(all_bytes)} of {size} bytes"
                )
                raise RCONClientTransportError(msg)

            try:
                rcon_socket.settimeout(remaining)
                chunk = rcon_socket.recv(size - len(all_bytes))
            except OSError as e:
                msg = f"Failed to read {description}: {e}"
                raise RCONClientTransportError(msg) from e

            if not chunk:
                msg = (
                    f"Failed to read {description}: connection closed after "
                    f"{len(all_bytes)} of {size} bytes"
                )
                raise RCONClientTransportError(msg)

            all_bytes += chunk
        return bytes(all_bytes)

    def _require_socket(self) -> socket.socket:
        if self._socket is None:
            msg = "Not connected"
            raise RCONClientNotConnectedError(msg)
        return self._socket
