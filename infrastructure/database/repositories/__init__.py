"""Repository facades exposing typed accessors over low-level mixins.

Store contracts are available for type-checking and dependency injection::

    from infrastructure.database.repositories.base import CommandLog, TelemetrySink
"""

from infrastructure.database.repositories.base import CommandLog, TelemetrySink
from infrastructure.database.repositories.commands import CommandLogRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository

__all__ = [
    "CommandLog",
    "CommandLogRepository",
    "TelemetryRepository",
    "TelemetrySink",
]
