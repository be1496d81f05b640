from __future__ import annotations

import argparse
import logging
import socket
import time

from app.config import load_config, setup_logging
from app.domain.command import IssuedVia
from app.domain.exceptions import RepositoryError
from infrastructure.database.repositories.commands import CommandLogRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


def send_command(client_id: str, percent: float, host: str = "127.0.0.1", port: int = 9090, timeout: float = 5.0) -> str:
    """Send one ingress line and return the server's reply line."""
    with socket.create_connection((host, port), timeout=timeout) as sock:
        sock.sendall(f"{client_id} {percent:.6f}\n".encode("utf-8"))
        reply = b""
        while not reply.endswith(b"\n"):
            chunk = sock.recv(64)
            if not chunk:
                break
            reply += chunk
    return reply.decode("utf-8", errors="replace")


def _open_store(database_path: str | None) -> SQLiteDatabaseHandler:
    config = load_config(database_path=database_path)
    database = SQLiteDatabaseHandler(config.database_path)
    database.init_db()
    return database


def _cmd_send(args: argparse.Namespace) -> int:
    print(f"[client] sending {args.percent:+.3f} via TCP to {args.host}:{args.port}")
    try:
        reply = send_command(args.client_id, args.percent, args.host, args.port, args.timeout)
    except OSError as exc:
        print(f"[client] connection failed: {exc}")
        return 1
    print(f"[tcp] reply: {reply}", end="" if reply.endswith("\n") else "\n")
    return 0 if reply.startswith("Parse successful") else 1


def _cmd_submit(args: argparse.Namespace) -> int:
    log = CommandLogRepository(_open_store(args.db))
    try:
        command_id = log.insert(args.client_id, args.percent, IssuedVia.LOCAL.value)
    except RepositoryError as exc:
        print(f"[client] submit failed: {exc}")
        return 1
    print(f"[client] queued command id={command_id} ({args.percent:+.3f}% from {args.client_id})")
    return 0


def _cmd_watch(args: argparse.Namespace) -> int:
    log = CommandLogRepository(_open_store(args.db))
    last_id = 0
    interval_s = args.interval_ms / 1000.0
    try:
        while True:
            try:
                commands = log.fetch_since(last_id)
            except RepositoryError as exc:
                print(f"[client] select failed: {exc}")
                time.sleep(interval_s)
                continue
            for cmd in commands:
                if args.client_id and cmd.client_id == args.client_id:
                    last_id = cmd.id
                    continue
                print(
                    f"[cmd] id={cmd.id} from={cmd.client_id} percent={cmd.percent_change:+.3f} "
                    f"via={cmd.issued_via} ts={cmd.submitted_at.isoformat()}"
                )
                last_id = cmd.id
            time.sleep(interval_s)
    except KeyboardInterrupt:
        return 0


def _cmd_status(args: argparse.Namespace) -> int:
    sample = TelemetryRepository(_open_store(args.db)).latest()
    if sample is None:
        print("No telemetry recorded yet. Is motorctl running?")
        return 1
    print(f"[{sample.timestamp.isoformat()}] {sample.log_line()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="motorctl-client", description="Talk to a running motor controller.")
    parser.add_argument("--debug", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    send = sub.add_parser("send", help="Send one command over the TCP ingress protocol")
    send.add_argument("client_id")
    send.add_argument("percent", type=float)
    send.add_argument("--host", default="127.0.0.1")
    send.add_argument("--port", type=int, default=9090)
    send.add_argument("--timeout", type=float, default=5.0)
    send.set_defaults(func=_cmd_send)

    submit = sub.add_parser("submit", help="Write a command straight into the command log")
    submit.add_argument("client_id")
    submit.add_argument("percent", type=float)
    submit.add_argument("--db")
    submit.set_defaults(func=_cmd_submit)

    watch = sub.add_parser("watch", help="Print commands as they are logged")
    watch.add_argument("--db")
    watch.add_argument("--interval-ms", type=int, default=250)
    watch.add_argument("--client-id", help="Hide commands issued by this client")
    watch.set_defaults(func=_cmd_watch)

    status = sub.add_parser("status", help="Print the latest telemetry sample")
    status.add_argument("--db")
    status.set_defaults(func=_cmd_status)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, level="WARNING", log_file=None)
    return args.func(args)


if __name__ == "__main__":
    import sys

    raise SystemExit(main(sys.argv[1:]))
