from __future__ import annotations

import json
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from isabelle_client.client.protocol import classify

TRANSCRIPT_SCHEMA_VERSION = 1

REDACTED = "<redacted>"

# Stable key order (append-only evolution: only add new keys at the end)
TRANSCRIPT_KEYS: List[str] = [
    "schema_version",
    "timestamp",
    "peer",
    "direction",
    "kind",
    "line",
]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class WireEvent:
    schema_version: int
    timestamp: str
    peer: str
    direction: str  # "send" | "recv"
    kind: Optional[str]
    line: str

    @staticmethod
    def make(*, peer: str, direction: str, line: str, kind: Optional[str] = None) -> "WireEvent":
        text = line.rstrip("\n")
        if kind is None and direction == "recv":
            kind = classify(text).kind.value
        return WireEvent(
            schema_version=TRANSCRIPT_SCHEMA_VERSION,
            timestamp=_utc_now_iso(),
            peer=peer,
            direction=direction,
            kind=kind,
            line=text,
        )

    def to_jsonl_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return {k: d.get(k) for k in TRANSCRIPT_KEYS}


class TranscriptLogger:
    """Append-only wire transcript: one JSONL row per line crossing the socket.

    Independent calls may run on separate threads and share one transcript,
    so appends are serialized.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def log(self, ev: WireEvent) -> None:
        row = json.dumps(ev.to_jsonl_dict(), ensure_ascii=False) + "\n"
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(row)

    def record(self, *, peer: str, direction: str, line: str, kind: Optional[str] = None) -> None:
        self.log(WireEvent.make(peer=peer, direction=direction, line=line, kind=kind))


def read_transcript(path: Path) -> List[Dict[str, Any]]:
    """Read a transcript back into a list of dicts (replay/debug)."""
    rows: List[Dict[str, Any]] = []
    if not path.exists():
        return rows
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            rows.append(json.loads(line))
    return rows
