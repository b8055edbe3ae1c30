from __future__ import annotations

import argparse

from isabelle_client.config import load_settings
from isabelle_client.server import exit_server, run_server


def main(argv: list[str] | None = None) -> None:
    s = load_settings()
    p = argparse.ArgumentParser(description="Start (or find) a named Isabelle server.")
    p.add_argument("--name", default=s.server_name)
    p.add_argument("--exit", action="store_true", help="Stop the named server instead")
    args = p.parse_args(argv)

    if args.exit:
        rc = exit_server(args.name)
        print(f"[server] {args.name!r} exit status {rc}")
        return

    server = run_server(args.name)
    state = "started" if server.process is not None else "already running"
    print(f"[server] {server.name!r} {state} at {server.address}:{server.port}")
    print(f"ISABELLE_HOST={server.address}")
    print(f"ISABELLE_PORT={server.port}")
    print(f"ISABELLE_PASSWORD={server.password}")


if __name__ == "__main__":
    main()
