import subprocess
from pathlib import Path

import pytest

from isabelle_client.cli import main as cli
from isabelle_client.config import load_settings


def test_settings_from_env(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    monkeypatch.setenv("ISABELLE_HOST", "10.0.0.5")
    monkeypatch.setenv("ISABELLE_PORT", "4711")
    monkeypatch.setenv("ISABELLE_PASSWORD", "pw")
    monkeypatch.setenv("ISABELLE_LOG_LEVEL", "debug")
    monkeypatch.setenv("ISABELLE_CONNECT_TIMEOUT_S", "2.5")
    monkeypatch.setenv("ISABELLE_TRANSCRIPT", "wire.jsonl")
    s = load_settings()
    assert (s.host, s.port, s.password) == ("10.0.0.5", 4711, "pw")
    assert s.log_level == "DEBUG"
    assert s.connect_timeout_s == 2.5
    assert s.transcript_path == Path("wire.jsonl")


def test_settings_defaults(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    for k in ("ISABELLE_HOST", "ISABELLE_PORT", "ISABELLE_CONNECT_TIMEOUT_S", "ISABELLE_TRANSCRIPT"):
        monkeypatch.delenv(k, raising=False)
    s = load_settings()
    assert s.host == "127.0.0.1"
    assert s.connect_timeout_s is None
    assert s.transcript_path is None


def _script(name, args):
    if name == "echo":
        return ["OK " + args]
    if name == "session_stop":
        return ['OK {"task":"x"}', 'NOTE {"m":1}', 'FAILED {"task":"x","kind":"error","message":"nope"}']
    return ['ERROR "Bad command"']


def _run(monkeypatch, tmp_path, srv, *argv):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ISABELLE_TRANSCRIPT", raising=False)
    with pytest.raises(SystemExit) as ei:
        cli.main(["--port", str(srv.port), "--password", srv.password, *argv])
    return ei.value.code


def test_cli_echo_ok(monkeypatch, tmp_path, fake_server, capsys):
    srv = fake_server(_script)
    assert _run(monkeypatch, tmp_path, srv, "echo", "hello") == cli.EXIT_OK
    assert '"hello"' in capsys.readouterr().out


def test_cli_async_failed_exit_code(monkeypatch, tmp_path, fake_server, capsys):
    srv = fake_server(_script)
    assert _run(monkeypatch, tmp_path, srv, "stop", "sid") == cli.EXIT_FAILED
    out = capsys.readouterr().out
    assert "[note]" in out
    assert "FAILED task=x" in out


def test_cli_error_result_exit_code(monkeypatch, tmp_path, fake_server):
    srv = fake_server(_script)
    assert _run(monkeypatch, tmp_path, srv, "shutdown") == cli.EXIT_FAILED


def test_cli_bad_password_is_engine_error(monkeypatch, tmp_path, fake_server, capsys):
    srv = fake_server(_script, password="other")
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as ei:
        cli.main(["--port", str(srv.port), "--password", "wrong", "echo", "x"])
    assert ei.value.code == cli.EXIT_ENGINE_ERROR
    assert "AuthenticationError" in capsys.readouterr().out


@pytest.mark.parametrize("cmd", ["build", "start"])
def test_cli_session_command_needs_session_or_args(monkeypatch, tmp_path, cmd, capsys):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as ei:
        cli.main(["--port", "1", cmd])
    # argparse usage error
    assert ei.value.code == 2
    assert "SESSION or --args" in capsys.readouterr().err


def test_cli_missing_args_file_is_engine_error(monkeypatch, tmp_path, fake_server, capsys):
    srv = fake_server(_script)
    assert _run(monkeypatch, tmp_path, srv, "use", "--args", str(tmp_path / "missing.yaml")) == cli.EXIT_ENGINE_ERROR
    assert "FileNotFoundError" in capsys.readouterr().out


def test_cli_process_runs_batch(monkeypatch, tmp_path, capsys):
    calls = []

    def _batch(args, current_dir=None):
        calls.append((args.argv(), current_dir))
        return subprocess.CompletedProcess(args.argv(), 1, stdout="theory Foo\n", stderr="")

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "batch_process", _batch)
    with pytest.raises(SystemExit) as ei:
        cli.main(["process", "-T", "Foo", "-d", "/thys", "-o", "threads=2"])
    assert ei.value.code == cli.EXIT_FAILED
    assert calls == [(["isabelle", "process", "-T", "Foo", "-d", "/thys", "-o", "threads=2"], None)]
    assert capsys.readouterr().out == "theory Foo\n"


def test_cli_process_rejects_bad_option(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as ei:
        cli.main(["process", "-T", "Foo", "-o", "threads"])
    assert ei.value.code == 2
