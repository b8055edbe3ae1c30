"""Result model for the Isabelle server protocol.

Two layers live here:

- the outcome variants produced by the dispatchers (``Ok``/``Error`` for sync
  commands, ``Error``/``Finished``/``Failed`` for async commands);
- the payload schemas the server answers with, as pydantic models.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from isabelle_client.client.errors import ProtocolError, UnwrapError
from isabelle_client.client.protocol import decode_payload

R = TypeVar("R")
E = TypeVar("E")
F = TypeVar("F")


# ==== Common payloads ====


class Position(BaseModel):
    """Source position within Isabelle text."""

    line: Optional[int] = None
    offset: Optional[int] = None
    end_offset: Optional[int] = None
    file: Optional[str] = None
    id: Optional[int] = None


class Message(BaseModel):
    # main kinds: writeln (regular output), warning, error
    kind: str
    message: str
    pos: Optional[Position] = None


class Task(BaseModel):
    task: str


class TheoryProgress(BaseModel):
    """Typical NOTE payload while a session builds or theories load."""

    kind: str
    message: str
    session: str
    percentage: Optional[int] = None


class Timing(BaseModel):
    elapsed: float
    cpu: float
    gc: float


class NodeStatus(BaseModel):
    ok: bool
    total: int
    unprocessed: int
    running: int
    warned: int
    failed: int
    canceled: bool
    consolidated: bool
    percentage: int


class Export(BaseModel):
    name: str
    base64: bool
    body: str


# ==== Command results ====


class SessionBuildResult(BaseModel):
    session: str
    ok: bool
    return_code: int
    timeout: bool
    timing: Timing


class SessionBuildResults(BaseModel):
    ok: bool
    return_code: int
    sessions: List[SessionBuildResult]


class SessionStartResult(BaseModel):
    task: str
    session_id: str
    # default master_dir for use_theories / purge_theories; removed on session_stop
    tmp_dir: Optional[str] = None


class SessionStopResult(BaseModel):
    task: str
    ok: bool
    return_code: int


class NodeResults(BaseModel):
    node_name: str
    theory_name: str
    status: NodeStatus
    messages: List[Message]
    exports: List[Export]


class UseTheoryResults(BaseModel):
    task: str
    ok: bool
    errors: List[Message]
    nodes: List[NodeResults]


class PurgedTheory(BaseModel):
    node_name: str
    theory_name: str


class PurgeTheoryResults(BaseModel):
    """Result of ``purge_theories``.

    The system manual documents ``{purged: [String]}``; the server actually
    answers with node/theory pairs plus the retained theories, which is what
    this models.
    """

    purged: List[PurgedTheory] = []
    retained: List[PurgedTheory] = []


# ==== Outcome variants ====


@dataclass(frozen=True)
class FailedResult(Generic[F]):
    """Terminal failure of an accepted async task.

    On the wire the task id, the message and the command-specific context are
    flattened into a single JSON object.
    """

    task: Task
    message: Message
    context: Optional[F] = None

    @classmethod
    def decode(cls, text: str, context_type: Optional[Type[F]] = None) -> "FailedResult[F]":
        # task and message are required; both raise ProtocolError when absent
        task = decode_payload(text, Task)
        message = decode_payload(text, Message)

        context: Optional[F] = None
        if context_type is not None:
            # Missing or partial context is normal for early failures.
            try:
                context = decode_payload(text, context_type)
            except ProtocolError:
                context = None
        return cls(task=task, message=message, context=context)


@dataclass(frozen=True)
class Ok(Generic[R]):
    value: R
    ok: ClassVar[bool] = True

    def unwrap(self) -> R:
        return self.value


@dataclass(frozen=True)
class Error(Generic[E]):
    error: E
    ok: ClassVar[bool] = False

    def unwrap(self) -> Any:
        raise UnwrapError(f"called unwrap on Error result: {self.error!r}")


@dataclass(frozen=True)
class Finished(Generic[R]):
    value: R
    ok: ClassVar[bool] = True

    def unwrap(self) -> R:
        return self.value


@dataclass(frozen=True)
class Failed(Generic[F]):
    outcome: FailedResult[F]
    ok: ClassVar[bool] = False

    def unwrap(self) -> Any:
        raise UnwrapError(f"called unwrap on Failed result: {self.outcome.message.message}")


SyncResult = Union[Ok[R], Error[E]]
AsyncResult = Union[Error[Message], Finished[R], Failed[F]]
