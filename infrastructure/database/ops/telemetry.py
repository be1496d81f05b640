from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from app.domain.exceptions import RepositoryError


class TelemetryOperations:
    """Database operations for the append-only Telemetry table."""

    def insert_telemetry(self, sample: Dict[str, Any]) -> int:
        try:
            with self.connection() as db:
                cur = db.execute(
                    """
                    INSERT INTO Telemetry (
                        timestamp, gas_level, battery_level, motor_speed, set_point, motor_temp
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        sample["timestamp"],
                        sample["gas_level"],
                        sample["battery_level"],
                        sample["motor_speed"],
                        sample["set_point"],
                        sample["motor_temp"],
                    ),
                )
                return int(cur.lastrowid)
        except sqlite3.Error as exc:
            raise RepositoryError(f"insert_telemetry failed: {exc}") from exc

    def get_recent_telemetry(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent samples, newest first."""
        try:
            with self.connection() as db:
                rows = db.execute("SELECT * FROM Telemetry ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
                return [dict(r) for r in rows]
        except sqlite3.Error as exc:
            raise RepositoryError(f"get_recent_telemetry failed: {exc}") from exc

    def get_latest_telemetry(self) -> Optional[Dict[str, Any]]:
        rows = self.get_recent_telemetry(limit=1)
        return rows[0] if rows else None

    def count_telemetry(self) -> int:
        try:
            with self.connection() as db:
                return int(db.execute("SELECT COUNT(*) FROM Telemetry").fetchone()[0])
        except sqlite3.Error as exc:
            raise RepositoryError(f"count_telemetry failed: {exc}") from exc
