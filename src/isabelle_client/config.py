from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    password: str
    server_name: str
    log_level: str
    connect_timeout_s: Optional[float]
    transcript_path: Optional[Path]


def load_settings() -> Settings:
    load_dotenv(override=False)

    host = os.getenv("ISABELLE_HOST", "127.0.0.1")
    port = int(os.getenv("ISABELLE_PORT", "0"))
    password = os.getenv("ISABELLE_PASSWORD", "")
    server_name = os.getenv("ISABELLE_SERVER_NAME", "isabelle")
    log_level = os.getenv("ISABELLE_LOG_LEVEL", "WARNING").upper()
    connect_timeout_s = float(os.getenv("ISABELLE_CONNECT_TIMEOUT_S", "0")) or None
    transcript = os.getenv("ISABELLE_TRANSCRIPT", "").strip()

    return Settings(
        host=host,
        port=port,
        password=password,
        server_name=server_name,
        log_level=log_level,
        connect_timeout_s=connect_timeout_s,
        transcript_path=Path(transcript) if transcript else None,
    )
