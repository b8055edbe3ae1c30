from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional, Type, TypeVar, Union

from isabelle_client.client.commands import (
    CancelArgs,
    PurgeTheoryArgs,
    SessionBuildArgs,
    SessionStopArgs,
    UseTheoriesArgs,
)
from isabelle_client.client.protocol import Command, ResponseKind, classify, decode_payload
from isabelle_client.client.results import (
    AsyncResult,
    Error,
    Failed,
    FailedResult,
    Finished,
    Message,
    Ok,
    PurgeTheoryResults,
    SessionBuildResults,
    SessionStartResult,
    SessionStopResult,
    SyncResult,
    Task,
    UseTheoryResults,
)
from isabelle_client.client.transport import Connection, handshake
from isabelle_client.reporting.transcript import TranscriptLogger

logger = logging.getLogger(__name__)

R = TypeVar("R")
E = TypeVar("E")
F = TypeVar("F")

NoteHandler = Callable[[Any], None]

DEFAULT_HOST = "127.0.0.1"


class AsyncState(str, Enum):
    AWAITING_ACCEPTANCE = "AWAITING_ACCEPTANCE"
    AWAITING_COMPLETION = "AWAITING_COMPLETION"
    DONE = "DONE"


def _log_note(note: Any) -> None:
    logger.debug("NOTE %s", note)


def dispatch_sync(
    conn: Connection,
    cmd: Command,
    result_type: Type[R],
    error_type: Type[E],
) -> SyncResult[R, E]:
    """Send ``cmd`` and read until the terminal OK / ERROR line.

    Every other line in between (stray diagnostics) is skipped.
    """
    conn.write_line(cmd.encode())
    while True:
        c = classify(conn.read_line())
        if c.kind is ResponseKind.OK:
            return Ok(decode_payload(c.rest, result_type))
        if c.kind is ResponseKind.ERROR:
            return Error(decode_payload(c.rest, error_type))
        logger.debug("Skipping %s line while awaiting %s reply: %s", c.kind.value, cmd.name, c.rest)


def dispatch_async(
    conn: Connection,
    cmd: Command,
    result_type: Type[R],
    context_type: Optional[Type[F]] = None,
    *,
    on_note: Optional[NoteHandler] = None,
    note_type: Type[Any] = Any,  # type: ignore[assignment]
) -> AsyncResult[R, F]:
    """Start an async task with ``cmd`` and block until it finishes or fails.

    Phase 1 is a sync dispatch yielding the task id; an ERROR there ends the
    call with ``Error(Message)``. Phase 2 reads NOTE lines (each handed to
    ``on_note``) until a FINISHED or FAILED line arrives.
    """
    notify = on_note or _log_note
    state = AsyncState.AWAITING_ACCEPTANCE

    accepted: SyncResult[Task, Message] = dispatch_sync(conn, cmd, Task, Message)
    if isinstance(accepted, Error):
        logger.debug("%s: %s -> %s (rejected)", cmd.name, state.value, AsyncState.DONE.value)
        return accepted

    task = accepted.value.task
    logger.debug("%s: %s -> %s (task %s)", cmd.name, state.value, AsyncState.AWAITING_COMPLETION.value, task)
    state = AsyncState.AWAITING_COMPLETION

    while True:
        c = classify(conn.read_line())
        if c.kind is ResponseKind.NOTE:
            notify(decode_payload(c.rest, note_type))
            continue
        if c.kind is ResponseKind.FINISHED:
            result: AsyncResult[R, F] = Finished(decode_payload(c.rest, result_type))
        elif c.kind is ResponseKind.FAILED:
            result = Failed(FailedResult.decode(c.rest, context_type))
        else:
            # UNRECOGNIZED, or a stray OK/ERROR after acceptance
            logger.debug("Skipping %s line for task %s: %s", c.kind.value, task, c.rest)
            continue
        logger.debug("%s: %s -> %s (%s)", cmd.name, state.value, AsyncState.DONE.value, c.kind.value)
        return result


class IsabelleClient:
    """Client for an Isabelle server.

    Every command opens its own connection, performs the password handshake
    and closes the connection when the call returns. Calls block; run them on
    separate threads for concurrency.
    """

    def __init__(
        self,
        port: int,
        password: str,
        host: Optional[str] = None,
        *,
        connect_timeout_s: Optional[float] = None,
        transcript: Optional[TranscriptLogger] = None,
    ) -> None:
        self.host = host or DEFAULT_HOST
        self.port = port
        self.password = password
        self.connect_timeout_s = connect_timeout_s
        self.transcript = transcript

    def connect(self) -> Connection:
        """Open a new authenticated connection."""
        conn = Connection.open(
            self.host,
            self.port,
            connect_timeout_s=self.connect_timeout_s,
            transcript=self.transcript,
        )
        try:
            handshake(conn, self.password)
        except BaseException:
            conn.close()
            raise
        return conn

    def call_sync(
        self,
        name: str,
        args: Any = None,
        *,
        result_type: Type[R] = Any,  # type: ignore[assignment]
        error_type: Type[E] = Any,  # type: ignore[assignment]
    ) -> SyncResult[R, E]:
        with self.connect() as conn:
            return dispatch_sync(conn, Command(name, args), result_type, error_type)

    def call_async(
        self,
        name: str,
        args: Any = None,
        *,
        result_type: Type[R] = Any,  # type: ignore[assignment]
        context_type: Optional[Type[F]] = None,
        on_note: Optional[NoteHandler] = None,
        note_type: Type[Any] = Any,  # type: ignore[assignment]
    ) -> AsyncResult[R, F]:
        with self.connect() as conn:
            return dispatch_async(
                conn, Command(name, args), result_type, context_type, on_note=on_note, note_type=note_type
            )

    # ==== Sync commands ====

    def echo(self, value: Any) -> SyncResult[Any, Any]:
        """Identity function: returns its argument as result."""
        return self.call_sync("echo", value, result_type=Any, error_type=Any)

    def shutdown(self) -> SyncResult[None, Any]:
        """Force a shutdown of the server process.

        Stops all open sessions and closes the server socket; pending commands
        on other connections may be disrupted.
        """
        return self.call_sync("shutdown", result_type=type(None), error_type=Any)

    def cancel(self, task: Union[str, Task]) -> SyncResult[None, Any]:
        """Ask the server to stop ``task``.

        Advisory only: the server may ignore it, and an in-flight async call
        keeps blocking until FINISHED/FAILED arrives.
        """
        task_id = task.task if isinstance(task, Task) else task
        return self.call_sync("cancel", CancelArgs(task=task_id), result_type=type(None), error_type=Any)

    def purge_theories(self, args: PurgeTheoryArgs) -> SyncResult[PurgeTheoryResults, Any]:
        """Remove theories from a session; theories still in use are retained."""
        return self.call_sync("purge_theories", args, result_type=PurgeTheoryResults, error_type=Any)

    # ==== Async commands ====

    def session_build(
        self, args: SessionBuildArgs, *, on_note: Optional[NoteHandler] = None
    ) -> AsyncResult[SessionBuildResults, SessionBuildResults]:
        """Prepare a session image for interactive use of theories."""
        return self.call_async(
            "session_build",
            args,
            result_type=SessionBuildResults,
            context_type=SessionBuildResults,
            on_note=on_note,
        )

    def session_start(
        self, args: SessionBuildArgs, *, on_note: Optional[NoteHandler] = None
    ) -> AsyncResult[SessionStartResult, None]:
        """Start a PIDE session, building its image on demand."""
        return self.call_async("session_start", args, result_type=SessionStartResult, on_note=on_note)

    def session_stop(
        self, args: SessionStopArgs, *, on_note: Optional[NoteHandler] = None
    ) -> AsyncResult[SessionStopResult, SessionStopResult]:
        return self.call_async(
            "session_stop",
            args,
            result_type=SessionStopResult,
            context_type=SessionStopResult,
            on_note=on_note,
        )

    def use_theories(
        self, args: UseTheoriesArgs, *, on_note: Optional[NoteHandler] = None
    ) -> AsyncResult[UseTheoryResults, None]:
        """Add the current version of theory files to a session."""
        return self.call_async("use_theories", args, result_type=UseTheoryResults, on_note=on_note)
