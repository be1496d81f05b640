# app/services/ingress_listener.py
"""
Ingress Listener
================
Line-based TCP front door for remote setpoint commands.

Protocol (one request per connection):
    client -> server : ``<client_id> <percent_change>`` (newline optional)
    server -> client : ``Parse successful\\n`` or ``Parse failed.\\n``
    the server then closes the connection.

The accept loop hands every connection to its own short-lived thread, so a
slow client never blocks new connections. There is no rate limiting here; the
arbitrator's debounce window is the only throttle. Accepted commands go to the
command log with ``issued_via="network"`` and nowhere else.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Any, Callable

from app.control_loops.periodic import LoopState
from app.domain.command import DEFAULT_CLIENT_ID, IssuedVia, parse_request_line
from app.domain.exceptions import IngressError, RepositoryError
from infrastructure.database.repositories.base import CommandLog

logger = logging.getLogger(__name__)

REPLY_SUCCESS = b"Parse successful\n"
REPLY_FAILURE = b"Parse failed.\n"
MAX_LINE_BYTES = 256


class IngressListener:
    """Accept loop plus one handler thread per connection."""

    name = "IngressListener"

    def __init__(
        self,
        command_log: CommandLog,
        *,
        host: str = "0.0.0.0",
        port: int = 9090,
        backlog: int = 5,
        read_timeout_s: float = 1.0,
        accept_timeout_s: float = 0.5,
        stop_event: threading.Event | None = None,
        setup: Callable[[], Any] | None = None,
        teardown: Callable[[], Any] | None = None,
    ) -> None:
        self.command_log = command_log
        self.host = host
        self.port = port
        self.backlog = backlog
        self.read_timeout_s = read_timeout_s
        self.accept_timeout_s = accept_timeout_s
        self._stop_event = stop_event or threading.Event()
        self._setup = setup
        self._teardown = teardown
        self._server: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._stats_lock = threading.Lock()
        self.ready = threading.Event()
        self.loop_state = LoopState.PENDING
        self.last_error: str | None = None
        self.accepted = 0
        self.succeeded = 0
        self.failed = 0

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self.run, name=self.name, daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def address(self) -> tuple[str, int] | None:
        """Bound (host, port); the real port when constructed with port 0."""
        if self._server is None:
            return None
        return self._server.getsockname()[:2]

    def bind(self) -> socket.socket:
        """Create, bind and listen on the server socket.

        Raises:
            IngressError: the address cannot be bound.
        """
        try:
            srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as exc:
            raise IngressError(f"socket creation failed: {exc}") from exc
        try:
            srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            srv.bind((self.host, self.port))
            srv.listen(self.backlog)
            srv.settimeout(self.accept_timeout_s)
        except OSError as exc:
            srv.close()
            raise IngressError(f"bind failed for {self.host}:{self.port}: {exc}") from exc
        self._server = srv
        self.port = srv.getsockname()[1]
        return srv

    # -------------------------------------------------------------------------
    # Core Logic
    # -------------------------------------------------------------------------

    def run(self) -> None:
        """Thread body: initialize, bind, then accept until stopped."""
        try:
            if self._setup is not None:
                self._setup()
            self.bind()
        except Exception as exc:
            self.loop_state = LoopState.FAILED
            self.last_error = str(exc)
            logger.error("%s failed to initialize, terminating this unit: %s", self.name, exc)
            return

        self.loop_state = LoopState.RUNNING
        host, port = self.address
        logger.info("📡 %s listening on %s:%s", self.name, host, port)
        self.ready.set()
        try:
            self._accept_loop()
        finally:
            self._close_server()
            self.loop_state = LoopState.STOPPED
            logger.info("🛑 %s stopped", self.name)

    def _accept_loop(self) -> None:
        assert self._server is not None
        while not self._stop_event.is_set():
            try:
                conn, addr = self._server.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stop_event.is_set():
                    break
                logger.warning("accept failed: %s", exc)
                continue
            peer = f"{addr[0]}:{addr[1]}"
            with self._stats_lock:
                self.accepted += 1
            threading.Thread(
                target=self.handle_connection,
                args=(conn, peer),
                name=f"ingress-{peer}",
                daemon=True,
            ).start()

    def handle_connection(self, conn: socket.socket, peer: str = "?") -> bool:
        """Serve exactly one request on ``conn`` and close it.

        Returns True when a command was logged.
        """
        ok = False
        try:
            line = self._read_line(conn)
            ok = self.process_line(line, peer)
            conn.sendall(REPLY_SUCCESS if ok else REPLY_FAILURE)
        except OSError as exc:
            logger.debug("Connection %s dropped: %s", peer, exc)
        finally:
            conn.close()
            self._release_thread_resources(peer)
        with self._stats_lock:
            if ok:
                self.succeeded += 1
            else:
                self.failed += 1
        return ok

    def _release_thread_resources(self, peer: str) -> None:
        """Run the per-connection teardown hook (closes this thread's store connection)."""
        if self._teardown is None:
            return
        try:
            self._teardown()
        except Exception as exc:
            logger.warning("Releasing resources for %s failed: %s", peer, exc)

    def process_line(self, line: str, peer: str = "?") -> bool:
        """Parse one request line and append it to the command log."""
        request = parse_request_line(line)
        if request is None:
            logger.info("Rejected unparseable request from %s: %r", peer, line[:64])
            return False
        try:
            command_id = self.command_log.insert(
                request.client_id or DEFAULT_CLIENT_ID,
                request.percent_change,
                IssuedVia.NETWORK.value,
            )
        except RepositoryError as exc:
            logger.warning("Could not log command from %s (%s): %s", peer, request.client_id, exc)
            return False
        logger.info(
            "📣 Command id=%s logged from %s via %s: %+.2f%%",
            command_id,
            request.client_id,
            peer,
            request.percent_change,
        )
        return True

    def _read_line(self, conn: socket.socket) -> str:
        """Read up to a newline, EOF, MAX_LINE_BYTES or an idle timeout."""
        conn.settimeout(self.read_timeout_s)
        buf = b""
        while b"\n" not in buf and len(buf) < MAX_LINE_BYTES:
            try:
                chunk = conn.recv(MAX_LINE_BYTES - len(buf))
            except socket.timeout:
                break
            if not chunk:
                break
            buf += chunk
        return buf.split(b"\n", 1)[0].decode("utf-8", errors="replace")

    def _close_server(self) -> None:
        if self._server is not None:
            try:
                self._server.close()
            except OSError as exc:
                logger.debug("Closing server socket failed: %s", exc)
            self._server = None

    def status(self) -> dict[str, Any]:
        with self._stats_lock:
            counts = {"accepted": self.accepted, "succeeded": self.succeeded, "failed": self.failed}
        return {
            "name": self.name,
            "state": self.loop_state,
            "alive": self.is_alive,
            "port": self.port,
            "last_error": self.last_error,
            **counts,
        }
