from __future__ import annotations

import logging
import socket
from typing import Optional

from isabelle_client.client.errors import (
    AuthenticationError,
    ConnectionClosed,
    IsabelleConnectionError,
    ProtocolError,
)
from isabelle_client.client.protocol import ENCODING
from isabelle_client.reporting.transcript import REDACTED, TranscriptLogger

logger = logging.getLogger(__name__)


class Connection:
    """One TCP socket, line-buffered reads, whole-line writes.

    A connection serves exactly one logical call and is closed afterwards.
    """

    def __init__(
        self,
        sock: socket.socket,
        *,
        peer: str = "",
        transcript: Optional[TranscriptLogger] = None,
    ) -> None:
        self._sock = sock
        self._reader = sock.makefile("rb")
        self.peer = peer
        self.transcript = transcript

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        *,
        connect_timeout_s: Optional[float] = None,
        transcript: Optional[TranscriptLogger] = None,
    ) -> "Connection":
        try:
            sock = socket.create_connection((host, port), timeout=connect_timeout_s)
        except OSError as e:
            raise IsabelleConnectionError(f"Could not connect to {host}:{port}: {e}") from e
        # No read deadline: dispatch loops block until the server answers.
        sock.settimeout(None)
        return cls(sock, peer=f"{host}:{port}", transcript=transcript)

    def write_line(self, line: str, *, redact: bool = False) -> None:
        payload = (line.rstrip("\n") + "\n").encode(ENCODING)
        try:
            # sendall either writes every byte or raises
            self._sock.sendall(payload)
        except OSError as e:
            raise IsabelleConnectionError(f"Write to {self.peer} failed: {e}") from e
        if self.transcript is not None:
            self.transcript.record(peer=self.peer, direction="send", line=REDACTED if redact else line)

    def read_line(self) -> str:
        try:
            lineb = self._reader.readline()
        except OSError as e:
            raise IsabelleConnectionError(f"Read from {self.peer} failed: {e}") from e
        if not lineb.endswith(b"\n"):
            # Peer closed without a full line.
            raise ConnectionClosed(f"Connection to {self.peer} closed")
        try:
            line = lineb[:-1].decode(ENCODING)
        except UnicodeDecodeError as e:
            raise ProtocolError(repr(lineb), str(e)) from e
        if self.transcript is not None:
            self.transcript.record(peer=self.peer, direction="recv", line=line)
        return line

    def close(self) -> None:
        try:
            self._reader.close()
        finally:
            self._sock.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def handshake(conn: Connection, password: str) -> None:
    """Perform the one-shot password exchange on a fresh connection."""
    try:
        conn.write_line(password, redact=True)
        res = conn.read_line()
    except (IsabelleConnectionError, ProtocolError) as e:
        # an undecodable reply counts as a non-OK line
        raise AuthenticationError(f"Handshake failed: {e}") from e
    logger.debug("Handshake result: %s", res.strip())
    if not res.startswith("OK"):
        raise AuthenticationError("Handshake failed")
    logger.debug("Handshake ok")
