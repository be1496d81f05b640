from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from app.domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)

_COMMAND_COLUMNS = (
    "id, client_id, percent_change, issued_via, submitted_at, processed, processed_at, processed_by"
)


class CommandOperations:
    """Database operations for the Commands table (the command log).

    Unlike read-mostly tables, failures here are raised as
    :class:`RepositoryError` so the arbitrator can leave a command pending and
    retry it on its next tick.
    """

    def insert_command(
        self,
        client_id: str,
        percent_change: float,
        issued_via: str,
        submitted_at: str,
    ) -> int:
        try:
            with self.connection() as db:
                cur = db.execute(
                    """
                    INSERT INTO Commands (client_id, percent_change, issued_via, submitted_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (client_id, percent_change, issued_via, submitted_at),
                )
                return int(cur.lastrowid)
        except sqlite3.Error as exc:
            raise RepositoryError(f"insert_command failed: {exc}", detail={"client_id": client_id}) from exc

    def get_unprocessed_commands(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Pending commands, oldest submission first (ties broken by id)."""
        query = f"SELECT {_COMMAND_COLUMNS} FROM Commands WHERE processed = 0 ORDER BY submitted_at ASC, id ASC"
        params: List[Any] = []
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        try:
            with self.connection() as db:
                return [dict(r) for r in db.execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            raise RepositoryError(f"get_unprocessed_commands failed: {exc}") from exc

    def mark_command_processed(self, command_id: int, processed_by: str, processed_at: str) -> bool:
        """Flip ``processed`` to 1. Returns False if it was already processed."""
        try:
            with self.connection() as db:
                cur = db.execute(
                    """
                    UPDATE Commands
                    SET processed = 1, processed_at = ?, processed_by = ?
                    WHERE id = ? AND processed = 0
                    """,
                    (processed_at, processed_by, command_id),
                )
                changed = cur.rowcount > 0
        except sqlite3.Error as exc:
            raise RepositoryError(
                f"mark_command_processed failed: {exc}", detail={"command_id": command_id}
            ) from exc
        if not changed:
            logger.debug("Command %s was already processed or does not exist", command_id)
        return changed

    def get_command(self, command_id: int) -> Optional[Dict[str, Any]]:
        try:
            with self.connection() as db:
                row = db.execute(f"SELECT {_COMMAND_COLUMNS} FROM Commands WHERE id = ?", (command_id,)).fetchone()
                return dict(row) if row else None
        except sqlite3.Error as exc:
            raise RepositoryError(f"get_command failed: {exc}", detail={"command_id": command_id}) from exc

    def get_commands_since(self, last_id: int, limit: int = 100) -> List[Dict[str, Any]]:
        """Commands with id greater than ``last_id`` in id order (for watchers)."""
        try:
            with self.connection() as db:
                rows = db.execute(
                    f"SELECT {_COMMAND_COLUMNS} FROM Commands WHERE id > ? ORDER BY id ASC LIMIT ?",
                    (last_id, limit),
                ).fetchall()
                return [dict(r) for r in rows]
        except sqlite3.Error as exc:
            raise RepositoryError(f"get_commands_since failed: {exc}") from exc

    def get_recent_commands(self, limit: int = 50, pending_only: bool = False) -> List[Dict[str, Any]]:
        query = f"SELECT {_COMMAND_COLUMNS} FROM Commands"
        if pending_only:
            query += " WHERE processed = 0"
        query += " ORDER BY id DESC LIMIT ?"
        try:
            with self.connection() as db:
                return [dict(r) for r in db.execute(query, (limit,)).fetchall()]
        except sqlite3.Error as exc:
            raise RepositoryError(f"get_recent_commands failed: {exc}") from exc

    def count_commands(self) -> Dict[str, int]:
        try:
            with self.connection() as db:
                row = db.execute(
                    "SELECT COUNT(*) AS total, COALESCE(SUM(processed = 0), 0) AS pending FROM Commands"
                ).fetchone()
                return {"total": int(row["total"]), "pending": int(row["pending"])}
        except sqlite3.Error as exc:
            raise RepositoryError(f"count_commands failed: {exc}") from exc
