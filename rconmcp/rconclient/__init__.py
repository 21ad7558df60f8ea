"""Provides the blocking RCON protocol client and the session registry."""

from .connection import RCONClient, parse_address
from .rcon_exceptions import (
    DuplicateSessionError,
    RCONClientAlreadyAuthenticatedError,
    RCONClientAlreadyConnectedError,
    RCONClientAuthenticationFailedError,
    RCONClientCloseError,
    RCONClientConnectionError,
    RCONClientError,
    RCONClientInvalidPacketSizeError,
    RCONClientNotAuthenticatedError,
    RCONClientNotConnectedError,
    RCONClientProtocolError,
    RCONClientResponseMismatchError,
    RCONClientStateError,
    RCONClientTransportError,
    RCONClientUnexpectedResponseError,
    SessionError,
    SessionNotFoundError,
)
from .session import Session, SessionRegistry
from .types import RCONPacket, RCONPacketType

__all__ = [
    "DuplicateSessionError",
    "RCONClient",
    "RCONClientAlreadyAuthenticatedError",
    "RCONClientAlreadyConnectedError",
    "RCONClientAuthenticationFailedError",
    "RCONClientCloseError",
    "RCONClientConnectionError",
    "RCONClientError",
    "RCONClientInvalidPacketSizeError",
    "RCONClientNotAuthenticatedError",
    "RCONClientNotConnectedError",
    "RCONClientProtocolError",
    "RCONClientResponseMismatchError",
    "RCONClientStateError",
    "RCONClientTransportError",
    "RCONClientUnexpectedResponseError",
    "RCONPacket",
    "RCONPacketType",
    "Session",
    "SessionError",
    "SessionNotFoundError",
    "SessionRegistry",
    "parse_address",
]
