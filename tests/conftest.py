"""
Shared test fixtures for the motor controller test suite.

Provides:
- In-memory SQLite database with the command log and telemetry tables
- Repository instances wired to the test database
- A manually-advanced clock for deterministic debounce tests
- Helpers for failing stores

Usage:
    def test_example(command_log, clock):
        command_id = command_log.insert("alice", 5.0, "network")
        clock.advance(0.25)
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone

import pytest

from app.config import AppConfig
from app.domain.exceptions import RepositoryError
from app.domain.motor import MotorState
from infrastructure.database.repositories.commands import CommandLogRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging, keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)


class FakeClock:
    """Monotonic-style clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FailingTelemetrySink:
    """Telemetry sink whose every append fails."""

    def __init__(self) -> None:
        self.calls = 0

    def append(self, sample) -> None:
        self.calls += 1
        raise RepositoryError("telemetry store offline")


class RecordingTelemetrySink:
    def __init__(self) -> None:
        self.samples = []

    def append(self, sample) -> None:
        self.samples.append(sample)


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database, no cross-test contamination.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.init_db()
    yield handler
    handler.close_db()


@pytest.fixture()
def file_db_handler(tmp_path):
    """File-backed database for tests that write from several threads."""
    handler = SQLiteDatabaseHandler(str(tmp_path / "motor.db"))
    handler.init_db()
    yield handler
    handler.close_db()


# ========================== Repository Fixtures ============================


@pytest.fixture()
def command_log(db_handler):
    """CommandLogRepository backed by the in-memory DB."""
    return CommandLogRepository(db_handler)


@pytest.fixture()
def telemetry_repo(db_handler):
    """TelemetryRepository backed by the in-memory DB."""
    return TelemetryRepository(db_handler)


# ========================== Domain Fixtures ================================


@pytest.fixture()
def motor():
    """Fresh motor state with the documented initial values."""
    return MotorState()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def recording_sink():
    return RecordingTelemetrySink()


@pytest.fixture()
def failing_sink():
    return FailingTelemetrySink()


@pytest.fixture()
def test_config(tmp_path):
    """Config pointing at a temp database and ephemeral ports."""
    config = AppConfig()
    config.database_path = str(tmp_path / "motor.db")
    config.listen_host = "127.0.0.1"
    config.listen_port = 0
    config.http_enabled = False
    config.http_port = 0
    config.telemetry_interval_ms = 20
    config.command_poll_interval_ms = 10
    config.debounce_window_ms = 50
    config.random_seed = 7
    config.log_telemetry = False
    return config


# ========================== Helpers ========================================


def at(seconds_after: float, base: datetime | None = None) -> datetime:
    """UTC timestamp ``seconds_after`` a fixed base, for ordering tests."""
    base = base or datetime(2026, 1, 1, tzinfo=timezone.utc)
    return base + timedelta(seconds=seconds_after)


@pytest.fixture()
def submitted_at():
    return at
