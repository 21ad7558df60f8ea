"""Pytest configuration and shared fixtures.

Provides an in-process fake RCON server for end-to-end tests and a scripted
mock socket for packet-level tests.
"""

from __future__ import annotations

import socket
import socketserver
import struct
import sys
import threading
import time
from collections.abc import Iterator
from io import BytesIO
from pathlib import Path

import pytest

# Add the project root to Python path so tests can import rconmcp uninstalled
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

from rconmcp.rconclient import RCONPacket, RCONPacketType  # noqa: E402

TEST_PASSWORD = "secret"  # noqa: S105


class FakeRCONHandler(socketserver.BaseRequestHandler):
    """Answers RCON packets until the client hangs up."""

    server: FakeRCONServer

    def handle(self) -> None:
        while True:
            header = self._recv_exactly(4)
            if header is None:
                return
            payload = self._recv_exactly(struct.unpack("<i", header)[0])
            if payload is None:
                return
            reply = self.server.reply(RCONPacket.from_payload(payload)).encode()
            if not self._send(reply):
                return

    def _send(self, data: bytes) -> bool:
        try:
            if self.server.drip_delay is None:
                self.request.sendall(data)
                return True
            for index in range(len(data)):
                self.request.sendall(data[index : index + 1])
                time.sleep(self.server.drip_delay)
        except OSError:
            return False
        return True

    def _recv_exactly(self, size: int) -> bytes | None:
        data = b""
        while len(data) < size:
            try:
                chunk = self.request.recv(size - len(data))
            except OSError:
                return None
            if not chunk:
                return None
            data += chunk
        return data


class FakeRCONServer(socketserver.ThreadingTCPServer):
    """RCON server that echoes every command back uppercased.

    :param password: Password to accept, or None to accept any password
    :param drip_delay: If set, replies are sent one byte at a time with this
        many seconds between bytes
    """

    daemon_threads = True
    block_on_close = False
    allow_reuse_address = True

    def __init__(
        self,
        password: str | None = None,
        drip_delay: float | None = None,
    ) -> None:
        super().__init__(("127.0.0.1", 0), FakeRCONHandler)
        self.password = password
        self.drip_delay = drip_delay

    @property
    def address(self) -> str:
        host, port = self.server_address[:2]
        return f"{host}:{port}"

    def reply(self, packet: RCONPacket) -> RCONPacket:
        if packet.packet_type == RCONPacketType.AUTH_PACKET:
            accepted = self.password is None or packet.body == self.password
            return RCONPacket(
                request_id=packet.request_id if accepted else -1,
                packet_type=RCONPacketType.AUTH_RESPONSE_PACKET,
            )
        return RCONPacket(
            request_id=packet.request_id,
            packet_type=RCONPacketType.RESPONSE_PACKET,
            body=packet.body.upper(),
        )


class MockSocket:
    """Mock socket replaying scripted server bytes and recording writes."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = BytesIO(data)
        self.sent = BytesIO()
        self.timeout: float | None = None
        self.closed = False
        self.recv_error: OSError | None = None
        self.send_error: OSError | None = None
        self.close_error: OSError | None = None

    def settimeout(self, timeout: float | None) -> None:
        self.timeout = timeout

    def sendall(self, data: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.write(data)

    def recv(self, size: int) -> bytes:
        if self.recv_error is not None:
            raise self.recv_error
        return self._data.read(size)

    def close(self) -> None:
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


def create_response_data(responses: list[tuple[str, int, int]]) -> bytes:
    """Create mock server bytes from (body, packet type, request id) tuples."""
    return b"".join(
        RCONPacket(request_id=request_id, packet_type=packet_type, body=body).encode()
        for body, packet_type, request_id in responses
    )


def _run_server(server: FakeRCONServer) -> Iterator[FakeRCONServer]:
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def rcon_server() -> Iterator[FakeRCONServer]:
    """Fake RCON server accepting any password."""
    yield from _run_server(FakeRCONServer())


@pytest.fixture
def protected_rcon_server() -> Iterator[FakeRCONServer]:
    """Fake RCON server accepting only TEST_PASSWORD."""
    yield from _run_server(FakeRCONServer(password=TEST_PASSWORD))


@pytest.fixture
def closed_address() -> str:
    """An address on which nothing is listening."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        port = listener.getsockname()[1]
    return f"127.0.0.1:{port}"


@pytest.fixture
def dripping_rcon_server() -> Iterator[FakeRCONServer]:
    """Fake RCON server that sends its replies one byte every 0.2 seconds."""
    yield from _run_server(FakeRCONServer(drip_delay=0.2))
