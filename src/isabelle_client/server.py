"""Start or discover a named Isabelle server process.

``isabelle server -n NAME`` prints one banner line of the form::

    server "NAME" = 127.0.0.1:4711 (password "...")

and either keeps running (new instance) or exits right away (an instance of
that name was already running). Both cases yield the same port/password.
"""
from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from isabelle_client.client.errors import ServerLaunchError

logger = logging.getLogger(__name__)

ISABELLE_EXE = "isabelle"
DEFAULT_SERVER_NAME = "isabelle"

_BANNER_RE = re.compile(r'.* = (.*):(\d+) \(password "(.*)"\)')


@dataclass(frozen=True)
class ServerInfo:
    address: str
    port: int
    password: str


def parse_banner(line: str) -> ServerInfo:
    s = line.replace("\\", "").strip()
    m = _BANNER_RE.match(s)
    if m is None:
        raise ServerLaunchError(f"Unexpected server banner: {s!r}")
    return ServerInfo(address=m.group(1), port=int(m.group(2)), password=m.group(3))


class IsabelleServer:
    """A running Isabelle server instance."""

    def __init__(self, name: str, info: ServerInfo, process: Optional[subprocess.Popen] = None) -> None:
        self.name = name
        self.info = info
        # None when the server was already running before run_server()
        self.process = process

    @property
    def address(self) -> str:
        return self.info.address

    @property
    def port(self) -> int:
        return self.info.port

    @property
    def password(self) -> str:
        return self.info.password

    def exit(self) -> None:
        """Stop the named server, and kill the child if this process spawned it."""
        exit_server(self.name)
        proc, self.process = self.process, None
        if proc is not None and proc.poll() is None:
            proc.kill()
            proc.wait()


def _server_cmd(name: str, *extra: str) -> List[str]:
    return [ISABELLE_EXE, "server", "-n", name, *extra]


def run_server(name: Optional[str] = None) -> IsabelleServer:
    """Start a named server, or attach to the already-running one.

    The server is not stopped when this process exits; call
    ``IsabelleServer.exit`` or ``exit_server``.
    """
    name = name or DEFAULT_SERVER_NAME
    try:
        proc = subprocess.Popen(_server_cmd(name), stdout=subprocess.PIPE, text=True)
    except OSError as e:
        raise ServerLaunchError(f"Could not run {ISABELLE_EXE!r}: {e}") from e

    assert proc.stdout is not None
    banner = proc.stdout.readline()
    try:
        info = parse_banner(banner)
    except ServerLaunchError:
        if proc.poll() is None:
            proc.kill()
        raise
    logger.debug("Server %r at %s:%d", name, info.address, info.port)

    if proc.poll() is None:
        return IsabelleServer(name, info, proc)
    return IsabelleServer(name, info, None)


def exit_server(name: str) -> int:
    """Run ``isabelle server -n NAME -x``; returns its exit status."""
    try:
        return subprocess.run(_server_cmd(name, "-x"), check=False).returncode
    except OSError as e:
        raise ServerLaunchError(f"Could not run {ISABELLE_EXE!r}: {e}") from e
