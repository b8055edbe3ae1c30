from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter

from isabelle_client.cli.args_loader import load_args
from isabelle_client.client.client import IsabelleClient
from isabelle_client.client.commands import (
    PurgeTheoryArgs,
    SessionBuildArgs,
    SessionStopArgs,
    UseTheoriesArgs,
)
from isabelle_client.client.errors import IsabelleClientError
from isabelle_client.client.results import Error, Failed, Finished, Ok
from isabelle_client.config import Settings, load_settings
from isabelle_client.process import ProcessArgs, batch_process
from isabelle_client.reporting.transcript import TranscriptLogger

M = TypeVar("M", bound=BaseModel)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ENGINE_ERROR = 2

_JSON = TypeAdapter(Any)


def _dumps(value: Any) -> str:
    return json.dumps(_JSON.dump_python(value, mode="json"), indent=2, ensure_ascii=False)


def _print_note(note: Any) -> None:
    print(f"[note] {json.dumps(_JSON.dump_python(note, mode='json'), ensure_ascii=False)}")


def _report(res: Any) -> int:
    if isinstance(res, (Ok, Finished)):
        print(_dumps(res.value))
        return EXIT_OK
    if isinstance(res, Error):
        print(f"[isabelle] ERROR {_dumps(res.error)}")
        return EXIT_FAILED
    if isinstance(res, Failed):
        out = res.outcome
        print(f"[isabelle] FAILED task={out.task.task} {out.message.kind}: {out.message.message}")
        if out.context is not None:
            print(_dumps(out.context))
        return EXIT_FAILED
    raise TypeError(f"unexpected result: {res!r}")


def _args_or(path: str, model: Type[M], **fallback: Any) -> M:
    if path:
        return load_args(Path(path), model)
    return model(**fallback)


def build_parser(s: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="isabelle-client", description="Client for the Isabelle server protocol")
    p.add_argument("--host", default=s.host)
    p.add_argument("--port", type=int, default=s.port)
    p.add_argument("--password", default=s.password)
    p.add_argument("--transcript", default=str(s.transcript_path or ""), help="Append wire lines to this JSONL file")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_srv = sub.add_parser("server", help="Start (or find) a named Isabelle server")
    p_srv.add_argument("--name", default=s.server_name)
    p_srv.add_argument("--exit", action="store_true", help="Stop the named server instead")

    p_echo = sub.add_parser("echo", help="Send a value and get it back")
    p_echo.add_argument("value")
    p_echo.add_argument("--json", action="store_true", help="Parse VALUE as JSON first")

    sub.add_parser("shutdown", help="Shut the server down")

    p_cancel = sub.add_parser("cancel", help="Ask the server to cancel a task")
    p_cancel.add_argument("task")

    for name, help_ in (("build", "Build a session image"), ("start", "Start a session")):
        sp = sub.add_parser(name, help=help_)
        sp.add_argument("session", nargs="?", default="")
        sp.add_argument("--args", default="", help="YAML/JSON file with SessionBuildArgs")

    p_stop = sub.add_parser("stop", help="Stop a session")
    p_stop.add_argument("session_id")

    p_use = sub.add_parser("use", help="Load theories into a session")
    p_use.add_argument("--args", required=True, help="YAML/JSON file with UseTheoriesArgs")

    p_purge = sub.add_parser("purge", help="Purge theories from a session")
    p_purge.add_argument("--args", required=True, help="YAML/JSON file with PurgeTheoryArgs")

    p_proc = sub.add_parser("process", help="Load theories with a batch-mode prover process (no server)")
    p_proc.add_argument("-T", dest="theories", action="append", default=[], metavar="THEORY")
    p_proc.add_argument("-d", dest="dirs", action="append", default=[], metavar="DIR")
    p_proc.add_argument("-l", dest="logic", default=None, metavar="LOGIC")
    p_proc.add_argument("-o", dest="options", action="append", default=[], metavar="NAME=VALUE")
    p_proc.add_argument("--cwd", default=None)

    return p


def _run_process(args: argparse.Namespace) -> int:
    options = dict(o.split("=", 1) for o in args.options)
    pargs = ProcessArgs(theories=args.theories, session_dirs=args.dirs, logic=args.logic, options=options)
    done = batch_process(pargs, args.cwd)
    print(done.stdout, end="")
    if done.stderr:
        print(done.stderr, end="", file=sys.stderr)
    return EXIT_OK if done.returncode == 0 else EXIT_FAILED


def run(args: argparse.Namespace, s: Settings) -> int:
    if args.cmd == "process":
        return _run_process(args)
    if args.cmd == "server":
        from isabelle_client.cli.run_server import main as _m

        argv = ["--name", args.name]
        if args.exit:
            argv.append("--exit")
        _m(argv)
        return EXIT_OK

    transcript = TranscriptLogger(Path(args.transcript)) if args.transcript else None
    client = IsabelleClient(
        args.port,
        args.password,
        args.host,
        connect_timeout_s=s.connect_timeout_s,
        transcript=transcript,
    )

    if args.cmd == "echo":
        value = json.loads(args.value) if args.json else args.value
        return _report(client.echo(value))
    if args.cmd == "shutdown":
        return _report(client.shutdown())
    if args.cmd == "cancel":
        return _report(client.cancel(args.task))
    if args.cmd == "build":
        return _report(client.session_build(_args_or(args.args, SessionBuildArgs, session=args.session), on_note=_print_note))
    if args.cmd == "start":
        return _report(client.session_start(_args_or(args.args, SessionBuildArgs, session=args.session), on_note=_print_note))
    if args.cmd == "stop":
        return _report(client.session_stop(SessionStopArgs(session_id=args.session_id), on_note=_print_note))
    if args.cmd == "use":
        return _report(client.use_theories(load_args(Path(args.args), UseTheoriesArgs), on_note=_print_note))
    if args.cmd == "purge":
        return _report(client.purge_theories(load_args(Path(args.args), PurgeTheoryArgs)))

    return EXIT_ENGINE_ERROR


def main(argv: Optional[list[str]] = None) -> None:
    s = load_settings()
    logging.basicConfig(level=s.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    p = build_parser(s)
    args = p.parse_args(argv)
    if args.cmd in ("build", "start") and not (args.session or args.args):
        p.error(f"{args.cmd}: give a SESSION or --args FILE")
    if args.cmd == "process" and any("=" not in o for o in args.options):
        p.error("process: -o expects NAME=VALUE")

    try:
        code = run(args, s)
    except (IsabelleClientError, ValueError, OSError) as e:
        print(f"[isabelle] {type(e).__name__}: {e}")
        code = EXIT_ENGINE_ERROR
    raise SystemExit(code)


if __name__ == "__main__":
    main()
