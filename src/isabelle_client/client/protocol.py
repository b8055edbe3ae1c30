from __future__ import annotations

import json
import logging
from functools import lru_cache
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from isabelle_client.client.errors import ProtocolError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENCODING = "utf-8"


class ResponseKind(str, Enum):
    OK = "OK"
    ERROR = "ERROR"
    FINISHED = "FINISHED"
    FAILED = "FAILED"
    NOTE = "NOTE"
    UNRECOGNIZED = "UNRECOGNIZED"


# Precedence order; first match wins. Matching is case-sensitive.
RESPONSE_PREFIXES: Tuple[Tuple[str, ResponseKind], ...] = (
    ("OK", ResponseKind.OK),
    ("ERROR", ResponseKind.ERROR),
    ("FINISHED", ResponseKind.FINISHED),
    ("FAILED", ResponseKind.FAILED),
    ("NOTE", ResponseKind.NOTE),
)


@dataclass(frozen=True)
class Command:
    name: str
    args: Optional[Any] = None

    def encode(self) -> str:
        return encode_command(self.name, self.args)

    def __str__(self) -> str:
        return self.encode().strip()


def _args_json(args: Any) -> str:
    if args is None:
        return ""
    if isinstance(args, BaseModel):
        return args.model_dump_json(exclude_none=True)
    # compact separators keep the payload on one line
    return json.dumps(args, ensure_ascii=False, separators=(",", ":"))


def encode_command(name: str, args: Optional[Any] = None) -> str:
    """Encode a command as one newline-terminated request line.

    Grammar: NAME SP [JSON] LF
    - NAME is sent as given (no case folding).
    - absent args encode as an empty string, not ``null``; the separating
      space is always present.
    """
    return f"{name} {_args_json(args)}\n"


@dataclass(frozen=True)
class Classified:
    kind: ResponseKind
    rest: str

    @property
    def is_recognized(self) -> bool:
        return self.kind is not ResponseKind.UNRECOGNIZED


def classify(line: str) -> Classified:
    """Classify one response line by its prefix token.

    Lines matching no prefix come back as UNRECOGNIZED with the stripped
    line as ``rest``; the server occasionally emits bare numeric lines.
    """
    s = line.strip()
    for prefix, kind in RESPONSE_PREFIXES:
        if s.startswith(prefix):
            return Classified(kind, s[len(prefix):].strip())
    return Classified(ResponseKind.UNRECOGNIZED, s)


@lru_cache(maxsize=None)
def _adapter(type_: Any) -> TypeAdapter:
    return TypeAdapter(type_)


def decode_payload(text: str, type_: Type[T]) -> T:
    """Decode the remainder of a classified line into ``type_``.

    The server sends an empty string for unit/empty payloads, so empty text
    is read as ``null``. Validation is strict: a payload of the wrong JSON
    type is rejected, never converted.
    """
    raw = text if text else "null"
    try:
        return _adapter(type_).validate_json(raw, strict=True)
    except ValidationError as e:
        raise ProtocolError(text, str(e)) from e
