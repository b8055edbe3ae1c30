"""Run the raw ML process in batch mode (``isabelle process``).

No server is involved: the theories are loaded by a one-shot prover process
and its output is collected once it exits.
"""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from isabelle_client.client.errors import ProcessLaunchError
from isabelle_client import server

logger = logging.getLogger(__name__)


@dataclass
class ProcessArgs:
    # loaded in the given order (-T)
    theories: List[str] = field(default_factory=list)
    # extra session directories (-d)
    session_dirs: List[str] = field(default_factory=list)
    # logic session (-l); None means ISABELLE_LOGIC
    logic: Optional[str] = None
    # system option overrides (-o NAME=VALUE)
    options: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def load_theories(cls, theories: Sequence[str]) -> "ProcessArgs":
        return cls(theories=list(theories))

    def argv(self) -> List[str]:
        cmd = [server.ISABELLE_EXE, "process"]
        for t in self.theories:
            cmd += ["-T", t]
        for d in self.session_dirs:
            cmd += ["-d", d]
        if self.logic:
            cmd += ["-l", self.logic]
        for k, v in self.options.items():
            cmd += ["-o", f"{k}={v}"]
        return cmd


def batch_process(
    args: ProcessArgs,
    current_dir: Optional[Union[str, Path]] = None,
) -> subprocess.CompletedProcess:
    """Run ``isabelle process`` to completion and return its captured output.

    A non-zero exit status is not an error here; check ``returncode``.
    """
    cmd = args.argv()
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), current_dir)
    try:
        return subprocess.run(cmd, cwd=current_dir, capture_output=True, text=True, check=False)
    except OSError as e:
        raise ProcessLaunchError(f"Could not run {cmd[0]!r}: {e}") from e
