from __future__ import annotations

# ==== Engine error taxonomy ====
# Application-level failures (Error / Failed results) are return values, not exceptions.


class IsabelleClientError(Exception):
    """Base class for every error raised by the client engine."""


class IsabelleConnectionError(IsabelleClientError):
    """Socket open/read/write failure. Fatal to the in-flight call."""


class ConnectionClosed(IsabelleConnectionError):
    """Peer closed the socket before a full line arrived."""


class AuthenticationError(IsabelleClientError):
    """Handshake did not yield an OK-prefixed line."""


class ProtocolError(IsabelleClientError):
    """A classified payload could not be decoded into its expected type.

    Attributes:
        text: The raw payload as received (before the empty -> null rule).
        diagnostic: The underlying parse/validation message.
    """

    def __init__(self, text: str, diagnostic: str) -> None:
        self.text = text
        self.diagnostic = diagnostic
        super().__init__(f"{diagnostic}: {text!r}")


class ServerLaunchError(IsabelleClientError):
    """The server launcher could not start or parse the server banner."""


class ProcessLaunchError(IsabelleClientError):
    """``isabelle process`` could not be started."""


class UnwrapError(ValueError):
    """unwrap() called on a non-success result variant."""
