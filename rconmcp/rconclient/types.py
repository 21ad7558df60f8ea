"""Defines RCON packet types and the RCON packet wire codec.

Packet format reference: https://developer.valvesoftware.com/wiki/Source_RCON_Protocol

Every packet is laid out as little-endian 32-bit integers followed by the
body and two null bytes::

    length (4) | request id (4) | type (4) | body (n) | 0x00 0x00

``length`` counts everything after itself, so an empty body gives 10.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from .rcon_exceptions import RCONClientInvalidPacketSizeError

# request id (4) + packet type (4) + 2 null bytes (2)
PACKET_METADATA_SIZE = 10
MIN_PACKET_SIZE = PACKET_METADATA_SIZE
MAX_PACKET_SIZE = 4096
LENGTH_PREFIX_SIZE = 4

# Request id the server echoes back when the password is wrong
AUTH_FAILED_REQUEST_ID = -1

_INT32 = struct.Struct("<i")
_HEADER = struct.Struct("<iii")


class RCONPacketType(IntEnum):
    """Types for an RCON TCP packet.

    ``COMMAND_PACKET`` and ``AUTH_RESPONSE_PACKET`` share the wire value 2;
    the protocol tells them apart by direction (outgoing command versus
    incoming authentication acknowledgement), so the enum keeps the second
    name as an alias of the first.

    :cvar RESPONSE_PACKET: Command output sent by the server
    :cvar COMMAND_PACKET: Command execution request
    :cvar AUTH_RESPONSE_PACKET: Authentication acknowledgement from the server
    :cvar AUTH_PACKET: Authentication request carrying the password
    """

    RESPONSE_PACKET = 0
    COMMAND_PACKET = 2
    AUTH_RESPONSE_PACKET = 2
    AUTH_PACKET = 3


def check_packet_length(length: int) -> int:
    """Validate a declared packet length.

    :param length: The length read from a packet's 4-byte prefix
    :return: The same length, if it is within bounds
    :raises RCONClientInvalidPacketSizeError: if the length is below 10 or above 4096
    """
    if length < MIN_PACKET_SIZE or length > MAX_PACKET_SIZE:
        msg = f"Invalid packet size: {length}"
        raise RCONClientInvalidPacketSizeError(msg)
    return length


def decode_packet_length(prefix: bytes) -> int:
    """Decode and validate the 4-byte little-endian length prefix.

    :param prefix: Exactly four bytes read from the stream
    :return: The declared length of the rest of the packet
    :raises RCONClientInvalidPacketSizeError: if the length is out of bounds
    """
    return check_packet_length(_INT32.unpack(prefix)[0])


@dataclass(frozen=True)
class RCONPacket:
    """A single RCON protocol message.

    :param request_id: Correlates a request with its response
    :param packet_type: Integer type tag, usually an RCONPacketType
    :param body: Password, command or command output
    """

    request_id: int
    packet_type: int
    body: str = ""

    def encode(self) -> bytes:
        """Format the packet to be sent to the RCON server.

        :return: The formatted packet as bytes, length prefix included
        :raises ValueError: if the body contains a null character
        """
        if "\x00" in self.body:
            msg = "Packet body must not contain null characters"
            raise ValueError(msg)

        body_bytes = self.body.encode("utf-8")

        return (
            _HEADER.pack(
                len(body_bytes) + PACKET_METADATA_SIZE,
                self.request_id,
                int(self.packet_type),
            )
            + body_bytes
            + b"\x00\x00"
        )

    @classmethod
    def from_payload(cls, payload: bytes) -> RCONPacket:
        """Parse the part of a packet that follows the length prefix.

        Bytes that are not valid UTF-8 are replaced rather than rejected so
        that servers sending legacy encodings still produce readable output.

        :param payload: Exactly ``length`` bytes read after the prefix
        :return: The decoded packet
        :raises RCONClientInvalidPacketSizeError: if the payload is out of bounds
        """
        check_packet_length(len(payload))

        request_id: int = _INT32.unpack_from(payload, 0)[0]
        packet_type: int = _INT32.unpack_from(payload, 4)[0]
        body = payload[8:-2].decode("utf-8", errors="replace")

        return cls(request_id=request_id, packet_type=packet_type, body=body)

    @classmethod
    def decode(cls, data: bytes) -> RCONPacket:
        """Parse one complete packet, length prefix included.

        :param data: The full packet bytes
        :return: The decoded packet
        :raises RCONClientInvalidPacketSizeError: if the declared length is out of
            bounds or does not match the number of bytes given
        """
        if len(data) < LENGTH_PREFIX_SIZE:
            msg = f"Packet too short for a length prefix: {len(data)} bytes"
            raise RCONClientInvalidPacketSizeError(msg)

        length = decode_packet_length(data[:LENGTH_PREFIX_SIZE])
        payload = data[LENGTH_PREFIX_SIZE:]
        if len(payload) != length:
            msg = f"Packet declares {length} bytes but carries {len(payload)}"
            raise RCONClientInvalidPacketSizeError(msg)
        return cls.from_payload(payload)
