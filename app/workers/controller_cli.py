from __future__ import annotations

import argparse
import logging
import signal
import threading

from app.config import load_config, setup_logging
from app.domain.exceptions import ConfigurationError
from app.services.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="motorctl",
        description="Run the motor simulation, command arbitrator and TCP ingress listener.",
    )
    parser.add_argument("--db", dest="database_path", help="SQLite database path (MOTORCTL_DATABASE_PATH)")
    parser.add_argument("--host", dest="listen_host", help="TCP ingress bind address")
    parser.add_argument("--port", dest="listen_port", type=int, help="TCP ingress port (default 9090)")
    parser.add_argument("--telemetry-ms", dest="telemetry_interval_ms", type=int, help="Simulation period")
    parser.add_argument("--poll-ms", dest="command_poll_interval_ms", type=int, help="Arbitration period")
    parser.add_argument("--debounce-ms", dest="debounce_window_ms", type=int, help="Debounce window")
    parser.add_argument("--kp", dest="pid_kp", type=float)
    parser.add_argument("--ki", dest="pid_ki", type=float)
    parser.add_argument("--kd", dest="pid_kd", type=float)
    parser.add_argument("--seed", dest="random_seed", type=int, help="Seed the simulation noise")
    parser.add_argument(
        "--http",
        dest="http_enabled",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Serve the HTTP status API",
    )
    parser.add_argument("--http-port", dest="http_port", type=int)
    parser.add_argument(
        "--quiet-telemetry",
        dest="log_telemetry",
        action="store_const",
        const=False,
        default=None,
        help="Do not echo every telemetry sample to the log",
    )
    parser.add_argument("--debug", dest="DEBUG", action="store_const", const=True, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run every unit until SIGINT/SIGTERM."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(**vars(args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}")
        return 2
    setup_logging(debug=config.DEBUG, level=config.log_level, log_file=config.log_file)

    supervisor = ProcessSupervisor.build(config)

    def _signal_handler(signum: int, _frame: object) -> None:
        logger.info("Received %s, stopping...", signal.Signals(signum).name)
        supervisor.stop_event.set()

    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, _signal_handler)

    supervisor.start()
    logger.info(
        "Motor controller running: telemetry every %dms, polling commands every %dms, TCP port %d",
        config.telemetry_interval_ms,
        config.command_poll_interval_ms,
        config.listen_port,
    )
    try:
        supervisor.wait()
    finally:
        supervisor.shutdown()
    return 0


if __name__ == "__main__":
    import sys

    raise SystemExit(main(sys.argv[1:]))
