from __future__ import annotations

import socket
import threading
from typing import Callable, Iterator, List, Optional, Tuple

import pytest

from isabelle_client.client.transport import Connection

# (command name, raw json args) -> response lines to send back
Script = Callable[[str, str], List[str]]

PASSWORD = "s3cret"


def _split_command(line: str) -> Tuple[str, str]:
    name, _, args = line.partition(" ")
    return name, args.strip()


class FakeIsabelleServer:
    """Scripted Isabelle-like TCP server (thread-per-connection).

    Each connection performs the password handshake, then reads one command
    line and writes back whatever lines the script returns for it.
    """

    def __init__(self, script: Script, *, password: str = PASSWORD) -> None:
        self.script = script
        self.password = password
        self.received: List[str] = []
        self._stop = threading.Event()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen()
        self._sock.settimeout(0.5)
        self.host, self.port = self._sock.getsockname()[:2]
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)

    def start(self) -> "FakeIsabelleServer":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2.0)
        self._sock.close()

    def _send(self, conn: socket.socket, lines: List[str]) -> None:
        conn.sendall("".join(line + "\n" for line in lines).encode("utf-8"))

    def _handle(self, conn: socket.socket) -> None:
        with conn, conn.makefile("rb") as reader:
            pw = reader.readline().decode("utf-8").rstrip("\n")
            self.received.append(pw)
            if pw != self.password:
                self._send(conn, ["ERROR \"Bad password\""])
                return
            self._send(conn, ["OK \"server_id\""])

            line = reader.readline().decode("utf-8")
            if not line:
                return
            line = line.rstrip("\n")
            self.received.append(line)
            name, args = _split_command(line)
            self._send(conn, self.script(name, args))

    def serve_forever(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()


@pytest.fixture
def fake_server() -> Iterator[Callable[[Script], FakeIsabelleServer]]:
    servers: List[FakeIsabelleServer] = []

    def _make(script: Script, *, password: str = PASSWORD) -> FakeIsabelleServer:
        srv = FakeIsabelleServer(script, password=password).start()
        servers.append(srv)
        return srv

    yield _make
    for srv in servers:
        srv.stop()


class WirePair:
    """Client Connection over a socketpair with a scripted server end."""

    def __init__(self) -> None:
        self._client_sock, self._server_sock = socket.socketpair()
        self.conn = Connection(self._client_sock, peer="socketpair")
        self._written: Optional[bytes] = None

    def feed(self, *lines: str) -> None:
        self._server_sock.sendall("".join(line + "\n" for line in lines).encode("utf-8"))

    def feed_raw(self, data: bytes) -> None:
        self._server_sock.sendall(data)

    def close_server(self) -> None:
        self._server_sock.shutdown(socket.SHUT_WR)

    def written(self) -> bytes:
        """Everything the client wrote; closes the client end first."""
        if self._written is None:
            self.conn.close()
            chunks = []
            while True:
                chunk = self._server_sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
            self._written = b"".join(chunks)
        return self._written

    def close(self) -> None:
        self.conn.close()
        self._server_sock.close()


@pytest.fixture
def wire() -> Iterator[WirePair]:
    w = WirePair()
    yield w
    w.close()
