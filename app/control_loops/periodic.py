"""
Periodic Loop
=============
Shared lifecycle for the fixed-rate control loops.

Each loop runs in its own daemon thread, initializes its resources once
(``setup``), then calls ``tick()`` every ``interval_s`` seconds until the shared
stop event is set. A failed ``setup`` terminates only that loop; an exception
inside ``tick()`` is logged and the loop keeps running.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger(__name__)


class LoopState:
    PENDING = "pending"
    RUNNING = "running"
    FAILED = "failed"
    STOPPED = "stopped"


class PeriodicLoop(ABC):
    """Base class for ticker-driven worker threads."""

    name = "periodic-loop"

    def __init__(
        self,
        interval_s: float,
        *,
        stop_event: threading.Event | None = None,
        setup: Callable[[], Any] | None = None,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"{self.name}: interval must be positive, got {interval_s}")
        self.interval_s = float(interval_s)
        self._stop_event = stop_event or threading.Event()
        self._setup = setup
        self._thread: threading.Thread | None = None
        self.loop_state = LoopState.PENDING
        self.tick_count = 0
        self.error_count = 0
        self.last_error: str | None = None

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    def start(self) -> threading.Thread:
        """Start the worker thread (idempotent)."""
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
    def stop_event(self) -> threading.Event:
        return self._stop_event

    # -------------------------------------------------------------------------
    # Core Logic
    # -------------------------------------------------------------------------

    def run(self) -> None:
        """Thread body: setup once, then tick at a fixed rate."""
        if self._setup is not None:
            try:
                self._setup()
            except Exception as exc:
                self.loop_state = LoopState.FAILED
                self.last_error = str(exc)
                logger.error("%s failed to initialize, terminating this loop: %s", self.name, exc)
                return

        self.loop_state = LoopState.RUNNING
        logger.info("🚀 %s running every %.0fms", self.name, self.interval_s * 1000)

        while not self._stop_event.is_set():
            t_start = time.perf_counter()
            try:
                self.tick()
            except Exception as exc:
                self.error_count += 1
                self.last_error = str(exc)
                logger.exception("%s tick failed: %s", self.name, exc)
            self.tick_count += 1

            # Sleep the remainder of the period to keep a consistent rate
            elapsed = time.perf_counter() - t_start
            self._stop_event.wait(max(0.0, self.interval_s - elapsed))

        self.loop_state = LoopState.STOPPED
        logger.info("🛑 %s stopped after %d ticks", self.name, self.tick_count)

    @abstractmethod
    def tick(self) -> Any:
        """One iteration of the loop."""

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.loop_state,
            "alive": self.is_alive,
            "interval_ms": round(self.interval_s * 1000),
            "ticks": self.tick_count,
            "errors": self.error_count,
            "last_error": self.last_error,
        }
