"""
Command Arbitrator
==================
Drains pending commands from the command log and decides which of them reach
the motor setpoint.

Policy, per tick:
    1. Fetch every unprocessed command, oldest submission first.
    2. For each, in order, ask the debounce gate whether at least
       ``debounce_window_s`` has passed since the last applied command.
    3. Closed gate: leave the command pending (it is retried next tick and
       keeps its place in the order). Open gate: scale the setpoint, mark the
       command processed, record the application time.

Commands are never merged, dropped or cancelled. A failed fetch skips the
tick; a failed mark leaves the command pending, so it is applied again on a
later tick (at-least-once).

The gate's timestamp has its own lock and is never held together with the
motor state lock.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from app.control_loops.periodic import PeriodicLoop
from app.domain.command import PROCESSED_BY_CONTROLLER, Command
from app.domain.exceptions import RepositoryError
from app.domain.motor import MotorState
from app.utils.concurrency import synchronized
from app.utils.time import utc_now
from infrastructure.database.repositories.base import CommandLog

logger = logging.getLogger(__name__)


class DebounceGate:
    """Process-wide "last applied at" reading of a monotonic clock, with its own lock.

    Starts empty, so the first command is always eligible.
    """

    def __init__(self, window_s: float = 0.2, last_applied_at: float | None = None) -> None:
        self._lock = threading.Lock()
        self.window_s = float(window_s)
        self._last_applied_at = last_applied_at

    @synchronized
    def elapsed(self, now: float) -> float:
        if self._last_applied_at is None:
            return math.inf
        return now - self._last_applied_at

    def is_open(self, now: float) -> bool:
        return self.elapsed(now) >= self.window_s

    @synchronized
    def record(self, now: float) -> None:
        self._last_applied_at = now

    @property
    @synchronized
    def last_applied_at(self) -> float | None:
        return self._last_applied_at


@dataclass
class ArbitrationResult:
    """What one tick did with each pending command id."""

    applied: list[int] = field(default_factory=list)
    deferred: list[int] = field(default_factory=list)
    unmarked: list[int] = field(default_factory=list)
    fetch_failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied": self.applied,
            "deferred": self.deferred,
            "unmarked": self.unmarked,
            "fetch_failed": self.fetch_failed,
        }


class CommandArbitrator(PeriodicLoop):
    """Polls the command log and applies commands through the debounce gate."""

    name = "CommandArbitrator"

    def __init__(
        self,
        state: MotorState,
        command_log: CommandLog,
        *,
        interval_s: float = 0.1,
        debounce_window_s: float = 0.2,
        gate: DebounceGate | None = None,
        clock: Callable[[], float] = time.monotonic,
        stop_event: threading.Event | None = None,
        setup: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(interval_s, stop_event=stop_event, setup=setup)
        self.motor = state
        self.command_log = command_log
        self.gate = gate or DebounceGate(debounce_window_s)
        self._clock = clock
        self.applied_count = 0
        self.deferred_count = 0
        self.store_failures = 0

    def tick(self) -> ArbitrationResult:
        result = ArbitrationResult()
        try:
            pending = self.command_log.fetch_unprocessed()
        except RepositoryError as exc:
            self.store_failures += 1
            result.fetch_failed = True
            logger.warning("Fetching pending commands failed, retrying next tick: %s", exc)
            return result

        for command in pending:
            now = self._clock()
            if not self.gate.is_open(now):
                result.deferred.append(command.id)
                self.deferred_count += 1
                logger.debug(
                    "Deferred command id=%s (%.0fms since last applied)",
                    command.id,
                    self.gate.elapsed(now) * 1000,
                )
                continue

            result.applied.append(command.id)
            if not self._apply(command, now):
                result.unmarked.append(command.id)
        return result

    def _apply(self, command: Command, now: float) -> bool:
        """Apply one command; returns False if it could not be marked processed."""
        change = self.motor.apply_percent_change(command.percent_change)
        self.applied_count += 1

        marked = True
        try:
            self.command_log.mark_processed(command.id, PROCESSED_BY_CONTROLLER, utc_now())
        except RepositoryError as exc:
            self.store_failures += 1
            marked = False
            logger.warning("Command id=%s applied but not marked processed, it stays pending: %s", command.id, exc)
        self.gate.record(now)

        logger.info(
            "✅ Applied command id=%s from=%s percent=%+.2f set_point %.2f -> %.2f%s",
            command.id,
            command.client_id,
            command.percent_change,
            change.previous,
            change.current,
            " (clamped)" if change.clamped else "",
        )
        return marked

    def status(self) -> dict[str, Any]:
        status = super().status()
        status.update(
            {
                "debounce_window_ms": round(self.gate.window_s * 1000),
                "applied": self.applied_count,
                "deferred": self.deferred_count,
                "store_failures": self.store_failures,
            }
        )
        return status
