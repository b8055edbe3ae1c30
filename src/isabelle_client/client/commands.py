from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel


class CancelArgs(BaseModel):
    task: str


class SessionBuildArgs(BaseModel):
    """Arguments for ``session_build`` and ``session_start``."""

    session: str
    preferences: Optional[str] = None
    # individual updates of the form name=value or name
    options: Optional[List[str]] = None
    # additional directories for ROOT / ROOTS files
    dirs: Optional[List[str]] = None
    # sessions whose theories join the session-qualified name space
    include_sessions: Optional[List[str]] = None

    @classmethod
    def for_session(cls, session: str) -> "SessionBuildArgs":
        return cls(session=session)


class SessionStopArgs(BaseModel):
    session_id: str


class UseTheoriesArgs(BaseModel):
    session_id: str
    theories: List[str]
    master_dir: Optional[str] = None
    unicode_symbols: Optional[bool] = None
    export_pattern: Optional[str] = None
    check_delay: Optional[float] = None
    check_limit: Optional[int] = None
    watchdog_timeout: Optional[float] = None
    nodes_status_delay: Optional[float] = None

    @classmethod
    def for_session(cls, session_id: str, theories: Sequence[str]) -> "UseTheoriesArgs":
        return cls(session_id=session_id, theories=list(theories))


class PurgeTheoryArgs(BaseModel):
    session_id: str
    theories: List[str]
    master_dir: Optional[str] = None
    all: Optional[bool] = None

    @classmethod
    def for_session(cls, session_id: str, theories: Sequence[str]) -> "PurgeTheoryArgs":
        return cls(session_id=session_id, theories=list(theories))
