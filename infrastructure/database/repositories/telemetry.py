from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.domain.motor import MotorSnapshot
from app.utils.time import coerce_datetime
from infrastructure.database.ops.telemetry import TelemetryOperations
from infrastructure.database.repositories.commands import format_timestamp


def _snapshot_from_row(row: dict[str, Any]) -> MotorSnapshot:
    return MotorSnapshot(
        gas_level=row["gas_level"],
        battery_level=row["battery_level"],
        motor_speed=row["motor_speed"],
        set_point=row["set_point"],
        motor_temp=row["motor_temp"],
        timestamp=coerce_datetime(row["timestamp"]),
    )


@dataclass(frozen=True)
class TelemetryRepository:
    """SQLite-backed :class:`~infrastructure.database.repositories.base.TelemetrySink`."""

    _backend: TelemetryOperations

    def append(self, sample: MotorSnapshot) -> None:
        data = sample.to_dict()
        data["timestamp"] = format_timestamp(sample.timestamp)
        self._backend.insert_telemetry(data)

    def recent(self, limit: int = 50) -> list[MotorSnapshot]:
        return [_snapshot_from_row(row) for row in self._backend.get_recent_telemetry(limit)]

    def latest(self) -> MotorSnapshot | None:
        row = self._backend.get_latest_telemetry()
        return _snapshot_from_row(row) if row else None

    def count(self) -> int:
        return self._backend.count_telemetry()
