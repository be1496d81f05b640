"""
Store Contracts
===============

The control loops depend on two narrow contracts rather than on SQLite:

- :class:`CommandLog`: a durable at-least-once work queue of remote
  setpoint requests. The ingress side only inserts; the arbitrator only
  fetches pending entries and marks them processed.
- :class:`TelemetrySink`: a fire-and-forget, append-only sample store.

Both use ``typing.Protocol`` (structural subtyping), so the SQLite-backed
repositories satisfy them without inheritance and tests can pass any object
with matching methods::

    class FlakyLog:
        def insert(self, client_id, percent_change, issued_via, submitted_at=None): ...
        def fetch_unprocessed(self): ...
        def mark_processed(self, command_id, processed_by, processed_at): ...

Implementations signal store failures with
:class:`app.domain.exceptions.RepositoryError`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from app.domain.command import Command
from app.domain.motor import MotorSnapshot


@runtime_checkable
class CommandLog(Protocol):
    """Pending-work interface shared by ingress and arbitration."""

    def insert(
        self,
        client_id: str,
        percent_change: float,
        issued_via: str,
        submitted_at: datetime | None = None,
    ) -> int:
        """Append a new unprocessed command and return its id."""
        ...

    def fetch_unprocessed(self) -> list[Command]:
        """Every unprocessed command, oldest submission first."""
        ...

    def mark_processed(self, command_id: int, processed_by: str, processed_at: datetime) -> bool:
        """Mark a command processed; returns False if it already was."""
        ...


@runtime_checkable
class TelemetrySink(Protocol):
    """Append-only destination for telemetry samples."""

    def append(self, sample: MotorSnapshot) -> None: ...


__all__ = [
    "CommandLog",
    "TelemetrySink",
]
