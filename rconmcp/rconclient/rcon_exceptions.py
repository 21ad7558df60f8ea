"""Custom exceptions for the RCON client module.

Errors are grouped by category so callers can tell caller misuse of the
client state machine apart from network failures and from exchanges that
were delivered but semantically wrong.
"""


class RCONClientError(Exception):
    """Base class for every error raised by the RCON client."""

    pass


class RCONClientStateError(RCONClientError):
    """Raised when an operation is not allowed in the client's current state."""

    pass


class RCONClientAlreadyConnectedError(RCONClientStateError):
    """Raised when connecting a client that already holds a connection."""

    pass


class RCONClientNotConnectedError(RCONClientStateError):
    """Raised when the TCP socket is None, indicating no connection."""

    pass


class RCONClientAlreadyAuthenticatedError(RCONClientStateError):
    """Raised when authenticating a client that is already authenticated."""

    pass


class RCONClientNotAuthenticatedError(RCONClientStateError):
    """Raised when the client is not authenticated with the RCON server."""

    pass


class RCONClientTransportError(RCONClientError):
    """Raised when a socket operation fails, times out, or the stream ends early."""

    pass


class RCONClientConnectionError(RCONClientTransportError):
    """Raised when the TCP connection to the RCON server cannot be opened."""

    pass


class RCONClientCloseError(RCONClientTransportError):
    """Raised when closing the TCP socket fails."""

    pass


class RCONClientProtocolError(RCONClientError):
    """Raised when a packet arrived but does not follow the RCON protocol."""

    pass


class RCONClientInvalidPacketSizeError(RCONClientProtocolError):
    """Raised when a packet declares a length outside the allowed bounds."""

    pass


class RCONClientAuthenticationFailedError(RCONClientProtocolError):
    """Raised when authentication with the RCON server fails due to incorrect password."""

    pass


class RCONClientUnexpectedResponseError(RCONClientProtocolError):
    """Raised when an authentication response carries an unknown request id."""

    pass


class RCONClientResponseMismatchError(RCONClientProtocolError):
    """Raised when a command response does not echo the command's request id."""

    pass


class SessionError(Exception):
    """Base class for session registry bookkeeping errors."""

    pass


class DuplicateSessionError(SessionError):
    """Raised when creating a session under an identifier already in use."""

    pass


class SessionNotFoundError(SessionError):
    """Raised when no session is registered under the requested identifier."""

    pass
