from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from app.domain.command import Command
from app.utils.time import utc_now
from infrastructure.database.ops.commands import CommandOperations


def format_timestamp(dt: datetime) -> str:
    """Fixed-width UTC ISO string; lexicographic order equals time order."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


@dataclass(frozen=True)
class CommandLogRepository:
    """SQLite-backed :class:`~infrastructure.database.repositories.base.CommandLog`."""

    _backend: CommandOperations

    def insert(
        self,
        client_id: str,
        percent_change: float,
        issued_via: str,
        submitted_at: datetime | None = None,
    ) -> int:
        submitted = format_timestamp(submitted_at or utc_now())
        return self._backend.insert_command(client_id, float(percent_change), issued_via, submitted)

    def fetch_unprocessed(self) -> list[Command]:
        return [Command.from_row(row) for row in self._backend.get_unprocessed_commands()]

    def mark_processed(self, command_id: int, processed_by: str, processed_at: datetime) -> bool:
        return self._backend.mark_command_processed(command_id, processed_by, format_timestamp(processed_at))

    def get(self, command_id: int) -> Command | None:
        row = self._backend.get_command(command_id)
        return Command.from_row(row) if row else None

    def fetch_since(self, last_id: int, limit: int = 100) -> list[Command]:
        return [Command.from_row(row) for row in self._backend.get_commands_since(last_id, limit)]

    def recent(self, limit: int = 50, pending_only: bool = False) -> list[Command]:
        return [Command.from_row(row) for row in self._backend.get_recent_commands(limit, pending_only)]

    def statistics(self) -> dict[str, Any]:
        return self._backend.count_commands()
