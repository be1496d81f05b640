"""
HTTP API Server
===============
Runs the Flask status API on werkzeug's threaded server as one more
supervised unit. A bind failure ends only this unit.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from werkzeug.serving import BaseWSGIServer, make_server

from app.control_loops.periodic import LoopState

logger = logging.getLogger(__name__)


class HttpApiServer:
    """Serve ``create_app(supervisor)`` until the shared stop event is set."""

    name = "HttpApiServer"

    def __init__(
        self,
        supervisor: Any,
        *,
        host: str = "127.0.0.1",
        port: int = 8000,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.supervisor = supervisor
        self.host = host
        self.port = port
        self._stop_event = stop_event or threading.Event()
        self._server: BaseWSGIServer | None = None
        self._thread: threading.Thread | None = None
        self._watcher: threading.Thread | None = None
        self.loop_state = LoopState.PENDING
        self.last_error: str | None = None

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self.run, name=self.name, daemon=True)
        self._thread.start()
        return self._thread

    def run(self) -> None:
        from app import create_app

        try:
            app = create_app(self.supervisor)
            self._server = make_server(self.host, self.port, app, threaded=True)
        except (OSError, SystemExit) as exc:
            # werkzeug exits the interpreter on a busy port; keep it to this unit
            self.loop_state = LoopState.FAILED
            self.last_error = str(exc)
            logger.error("%s failed to bind %s:%s, terminating this unit: %s", self.name, self.host, self.port, exc)
            return

        self.port = self._server.server_port
        self._watcher = threading.Thread(target=self._watch_stop, name=f"{self.name}-stop", daemon=True)
        self._watcher.start()

        self.loop_state = LoopState.RUNNING
        logger.info("🌐 %s serving on http://%s:%s", self.name, self.host, self.port)
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()
            self.loop_state = LoopState.STOPPED
            logger.info("🛑 %s stopped", self.name)

    def _watch_stop(self) -> None:
        self._stop_event.wait()
        if self._server is not None:
            self._server.shutdown()

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

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.loop_state,
            "alive": self.is_alive,
            "port": self.port,
            "last_error": self.last_error,
        }
