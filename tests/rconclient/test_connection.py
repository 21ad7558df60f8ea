"""Unit tests for the RCON client connection module.

This module tests the RCONClient state machine (connect, authenticate,
execute, disconnect), request/response correlation, packet validation and
the failure modes of the underlying socket. Packet-level cases run against a
scripted mock socket; end-to-end cases run against the fake server fixture.
"""

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from unittest.mock import patch

import pytest
from conftest import (
    TEST_PASSWORD,
    FakeRCONServer,
    MockSocket,
    create_response_data,
)

from rconmcp.rconclient.connection import RCONClient, parse_address
from rconmcp.rconclient.rcon_exceptions import (
    RCONClientAlreadyAuthenticatedError,
    RCONClientAlreadyConnectedError,
    RCONClientAuthenticationFailedError,
    RCONClientCloseError,
    RCONClientConnectionError,
    RCONClientInvalidPacketSizeError,
    RCONClientNotAuthenticatedError,
    RCONClientNotConnectedError,
    RCONClientResponseMismatchError,
    RCONClientTransportError,
    RCONClientUnexpectedResponseError,
)
from rconmcp.rconclient.types import RCONPacket, RCONPacketType

ADDRESS = "127.0.0.1:25575"
AUTH_OK = ("", RCONPacketType.AUTH_RESPONSE_PACKET, 1)


@contextmanager
def connected_client(
    responses: list[tuple[str, int, int]] | None = None,
    raw: bytes = b"",
) -> Iterator[tuple[RCONClient, MockSocket]]:
    """Yield a client connected to a mock socket replaying the given data."""
    mock_socket = MockSocket(create_response_data(responses or []) + raw)
    with patch("socket.create_connection", return_value=mock_socket):
        client = RCONClient(connect_timeout=3, io_timeout=4)
        client.connect(ADDRESS)
        yield client, mock_socket


def sent_packets(mock_socket: MockSocket) -> list[RCONPacket]:
    """Decode every packet the client wrote to the mock socket."""
    data = mock_socket.sent.getvalue()
    packets = []
    while data:
        length = int.from_bytes(data[:4], "little", signed=True)
        packets.append(RCONPacket.decode(data[: 4 + length]))
        data = data[4 + length :]
    return packets


class TestParseAddress:
    """Test suite for host:port parsing."""

    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            ("127.0.0.1:25575", ("127.0.0.1", 25575)),
            ("mc.example.com:27015", ("mc.example.com", 27015)),
            ("[::1]:25575", ("::1", 25575)),
        ],
    )
    def test_valid_addresses(self, address: str, expected: tuple[str, int]) -> None:
        assert parse_address(address) == expected

    @pytest.mark.parametrize(
        "address",
        ["localhost", "localhost:", ":25575", "host:abc", "host:0", "host:70000"],
    )
    def test_invalid_addresses(self, address: str) -> None:
        with pytest.raises(ValueError, match="host:port|out of range"):
            parse_address(address)


class TestRCONClientConnect:
    """Test suite for opening the TCP connection."""

    def test_new_client_is_disconnected(self) -> None:
        client = RCONClient()

        assert not client.is_connected()
        assert not client.is_authenticated()

    def test_connect_dials_with_timeouts(self) -> None:
        mock_socket = MockSocket()
        with patch(
            "socket.create_connection",
            return_value=mock_socket,
        ) as create_connection:
            client = RCONClient(connect_timeout=3, io_timeout=4)
            client.connect(ADDRESS)

        create_connection.assert_called_once_with(("127.0.0.1", 25575), timeout=3)
        assert mock_socket.timeout == 4
        assert client.is_connected()
        assert not client.is_authenticated()

    def test_connect_twice_fails(self) -> None:
        with connected_client() as (client, _), pytest.raises(
            RCONClientAlreadyConnectedError,
        ):
            client.connect(ADDRESS)

    def test_dial_failure_is_wrapped(self) -> None:
        refused = ConnectionRefusedError("Connection refused")
        with patch("socket.create_connection", side_effect=refused):
            client = RCONClient()
            with pytest.raises(RCONClientConnectionError) as exc_info:
                client.connect(ADDRESS)

        assert exc_info.value.__cause__ is refused
        assert not client.is_connected()

    def test_dial_timeout_is_wrapped(self) -> None:
        with patch("socket.create_connection", side_effect=TimeoutError("timed out")):
            client = RCONClient()
            with pytest.raises(RCONClientConnectionError, match="timed out"):
                client.connect(ADDRESS)

    def test_invalid_address_is_a_connection_error(self) -> None:
        client = RCONClient()

        with pytest.raises(RCONClientConnectionError):
            client.connect("not-an-address")

        assert not client.is_connected()

    def test_connect_to_closed_port_fails(self, closed_address: str) -> None:
        client = RCONClient(connect_timeout=2)

        with pytest.raises(RCONClientConnectionError):
            client.connect(closed_address)


class TestRCONClientAuthentication:
    """Test suite for RCON client authentication behavior."""

    def test_authenticate_requires_connection(self) -> None:
        with pytest.raises(RCONClientNotConnectedError):
            RCONClient().authenticate(TEST_PASSWORD)

    def test_successful_authentication(self) -> None:
        with connected_client([AUTH_OK]) as (client, mock_socket):
            client.authenticate(TEST_PASSWORD)

            assert client.is_authenticated()
            assert sent_packets(mock_socket) == [
                RCONPacket(1, RCONPacketType.AUTH_PACKET, TEST_PASSWORD),
            ]

    def test_invalid_password_is_reported(self) -> None:
        responses = [("", RCONPacketType.AUTH_RESPONSE_PACKET, -1)]
        with connected_client(responses) as (client, _):
            with pytest.raises(RCONClientAuthenticationFailedError):
                client.authenticate("wrong")

            assert client.is_connected()
            assert not client.is_authenticated()

    def test_invalid_password_sentinel_wins_over_request_id(self) -> None:
        """A -1 response is a bad password even when ids would never match."""
        responses = [("", RCONPacketType.RESPONSE_PACKET, -1)]
        with connected_client(responses) as (client, _), pytest.raises(
            RCONClientAuthenticationFailedError,
        ):
            client.authenticate("wrong")

    def test_unexpected_response_id(self) -> None:
        responses = [("", RCONPacketType.AUTH_RESPONSE_PACKET, 99)]
        with connected_client(responses) as (client, _):
            with pytest.raises(RCONClientUnexpectedResponseError, match="99"):
                client.authenticate(TEST_PASSWORD)

            assert not client.is_authenticated()

    def test_authenticate_twice_fails(self) -> None:
        with connected_client([AUTH_OK]) as (client, _):
            client.authenticate(TEST_PASSWORD)

            with pytest.raises(RCONClientAlreadyAuthenticatedError):
                client.authenticate(TEST_PASSWORD)

    def test_authentication_against_server(
        self,
        protected_rcon_server: FakeRCONServer,
    ) -> None:
        client = RCONClient()
        client.connect(protected_rcon_server.address)

        with pytest.raises(RCONClientAuthenticationFailedError):
            client.authenticate("wrong")

        client.disconnect()


class TestRCONClientCommandExecution:
    """Test suite for RCON client command execution functionality."""

    def test_execute_requires_connection(self) -> None:
        with pytest.raises(RCONClientNotConnectedError):
            RCONClient().execute("list")

    def test_execute_requires_authentication(self) -> None:
        with connected_client() as (client, _), pytest.raises(
            RCONClientNotAuthenticatedError,
        ):
            client.execute("list")

    def test_execute_after_failed_authentication_fails(self) -> None:
        responses = [("", RCONPacketType.AUTH_RESPONSE_PACKET, -1)]
        with connected_client(responses) as (client, _):
            with pytest.raises(RCONClientAuthenticationFailedError):
                client.authenticate("wrong")

            with pytest.raises(RCONClientNotAuthenticatedError):
                client.execute("list")

    def test_execute_returns_body_verbatim(self) -> None:
        body = "There are 2 players online:\nAlex, Steve\n  "
        responses = [AUTH_OK, (body, RCONPacketType.RESPONSE_PACKET, 2)]
        with connected_client(responses) as (client, mock_socket):
            client.authenticate(TEST_PASSWORD)

            assert client.execute("list") == body
            assert sent_packets(mock_socket)[1] == RCONPacket(
                2,
                RCONPacketType.COMMAND_PACKET,
                "list",
            )

    def test_execute_returns_empty_body(self) -> None:
        responses = [AUTH_OK, ("", RCONPacketType.RESPONSE_PACKET, 2)]
        with connected_client(responses) as (client, _):
            client.authenticate(TEST_PASSWORD)

            assert client.execute("save-all") == ""

    def test_request_ids_increase_per_packet(self) -> None:
        responses = [
            AUTH_OK,
            ("a", RCONPacketType.RESPONSE_PACKET, 2),
            ("b", RCONPacketType.RESPONSE_PACKET, 3),
        ]
        with connected_client(responses) as (client, mock_socket):
            client.authenticate(TEST_PASSWORD)
            client.execute("first")
            client.execute("second")

            ids = [packet.request_id for packet in sent_packets(mock_socket)]
            assert ids == [1, 2, 3]

    def test_response_id_mismatch(self) -> None:
        responses = [AUTH_OK, ("well formed", RCONPacketType.RESPONSE_PACKET, 7)]
        with connected_client(responses) as (client, _):
            client.authenticate(TEST_PASSWORD)

            with pytest.raises(RCONClientResponseMismatchError):
                client.execute("list")

    def test_execute_against_server(self, rcon_server: FakeRCONServer) -> None:
        client = RCONClient()
        client.connect(rcon_server.address)
        client.authenticate(TEST_PASSWORD)

        assert client.execute("status") == "STATUS"
        assert client.execute("say hi") == "SAY HI"

        client.disconnect()

    def test_concurrent_executes_are_serialized(
        self,
        rcon_server: FakeRCONServer,
    ) -> None:
        """Each caller gets its own response when sharing one connection."""
        client = RCONClient()
        client.connect(rcon_server.address)
        client.authenticate(TEST_PASSWORD)

        results: dict[int, str] = {}
        errors: list[Exception] = []

        def run(index: int) -> None:
            try:
                results[index] = client.execute(f"command {index}")
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=run, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []
        assert results == {i: f"COMMAND {i}" for i in range(20)}

        client.disconnect()


class TestRCONClientPacketValidation:
    """Test suite for malformed and interrupted server responses."""

    @pytest.mark.parametrize("length", [9, 4097])
    def test_out_of_bounds_length_is_rejected(self, length: int) -> None:
        raw = length.to_bytes(4, "little", signed=True) + b"\x00" * 16
        with connected_client(raw=raw) as (client, _), pytest.raises(
            RCONClientInvalidPacketSizeError,
        ):
            client.authenticate(TEST_PASSWORD)

    def test_short_read_is_a_transport_error(self) -> None:
        truncated = create_response_data([AUTH_OK])[:-3]
        with connected_client(raw=truncated) as (client, _):
            with pytest.raises(RCONClientTransportError, match="connection closed"):
                client.authenticate(TEST_PASSWORD)

            assert not client.is_authenticated()

    def test_closed_stream_before_response(self) -> None:
        with connected_client() as (client, _), pytest.raises(
            RCONClientTransportError,
        ):
            client.authenticate(TEST_PASSWORD)

    def test_read_timeout_is_a_transport_error(self) -> None:
        with connected_client() as (client, mock_socket):
            mock_socket.recv_error = TimeoutError("timed out")

            with pytest.raises(RCONClientTransportError) as exc_info:
                client.authenticate(TEST_PASSWORD)

            assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_write_failure_is_a_transport_error(self) -> None:
        with connected_client() as (client, mock_socket):
            mock_socket.send_error = BrokenPipeError("Broken pipe")

            with pytest.raises(RCONClientTransportError, match="auth packet"):
                client.authenticate(TEST_PASSWORD)

    def test_read_deadline_covers_the_whole_packet(
        self,
        dripping_rcon_server: FakeRCONServer,
    ) -> None:
        """A reply trickling in under the per-recv timeout still times out."""
        client = RCONClient(io_timeout=0.5)
        client.connect(dripping_rcon_server.address)

        started = time.monotonic()
        with pytest.raises(RCONClientTransportError, match="timed out"):
            client.authenticate(TEST_PASSWORD)
        elapsed = time.monotonic() - started

        assert elapsed < 1.5
        assert not client.is_authenticated()
        client.disconnect()

    def test_each_read_gets_a_fresh_deadline(self) -> None:
        responses = [AUTH_OK, ("ok", RCONPacketType.RESPONSE_PACKET, 2)]
        with connected_client(responses) as (client, mock_socket):
            client.authenticate(TEST_PASSWORD)
            assert 0 < mock_socket.timeout <= 4

            assert client.execute("list") == "ok"
            assert 0 < mock_socket.timeout <= 4


class TestRCONClientDisconnect:
    """Test suite for tearing down the connection."""

    def test_disconnect_never_connected_client(self) -> None:
        client = RCONClient()

        client.disconnect()
        client.disconnect()

        assert not client.is_connected()
        assert not client.is_authenticated()

    def test_disconnect_resets_state(self) -> None:
        with connected_client([AUTH_OK]) as (client, mock_socket):
            client.authenticate(TEST_PASSWORD)

            client.disconnect()
            client.disconnect()

            assert mock_socket.closed
            assert not client.is_connected()
            assert not client.is_authenticated()

    def test_execute_after_disconnect_fails(self) -> None:
        with connected_client([AUTH_OK]) as (client, _):
            client.authenticate(TEST_PASSWORD)
            client.disconnect()

            with pytest.raises(RCONClientNotConnectedError):
                client.execute("list")

    def test_close_failure_still_clears_state(self) -> None:
        with connected_client([AUTH_OK]) as (client, mock_socket):
            client.authenticate(TEST_PASSWORD)
            mock_socket.close_error = OSError("close failed")

            with pytest.raises(RCONClientCloseError):
                client.disconnect()

            assert not client.is_connected()
            assert not client.is_authenticated()
            client.disconnect()

    def test_client_can_connect_again_after_disconnect(
        self,
        rcon_server: FakeRCONServer,
    ) -> None:
        client = RCONClient()
        client.connect(rcon_server.address)
        client.disconnect()

        client.connect(rcon_server.address)
        client.authenticate(TEST_PASSWORD)

        assert client.execute("list") == "LIST"
        client.disconnect()


class TestRequestIdGeneration:
    """Test suite for the request id counter."""

    def test_ids_start_at_one(self) -> None:
        client = RCONClient()

        assert client._next_request_id() == 1
        assert client._next_request_id() == 2

    def test_ids_wrap_like_int32(self) -> None:
        client = RCONClient()
        client._request_id = 2**31 - 1

        assert client._next_request_id() == 2**31 - 1
        assert client._next_request_id() == -(2**31)
        assert client._next_request_id() == -(2**31) + 1
