import time
from datetime import timedelta

import pytest

from app.control_loops.command_arbitrator import CommandArbitrator, DebounceGate
from app.domain.exceptions import RepositoryError
from app.utils.time import utc_now


class FakeMonotonic:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FlakyCommandLog:
    """Wraps a real command log; the first ``mark_failures`` marks fail."""

    def __init__(self, inner, *, mark_failures=0, fetch_failures=0):
        self.inner = inner
        self.mark_failures = mark_failures
        self.fetch_failures = fetch_failures
        self.mark_calls = []

    def insert(self, *args, **kwargs):
        return self.inner.insert(*args, **kwargs)

    def fetch_unprocessed(self):
        if self.fetch_failures:
            self.fetch_failures -= 1
            raise RepositoryError("select failed")
        return self.inner.fetch_unprocessed()

    def mark_processed(self, command_id, processed_by, processed_at):
        self.mark_calls.append(command_id)
        if self.mark_failures:
            self.mark_failures -= 1
            raise RepositoryError("update failed")
        return self.inner.mark_processed(command_id, processed_by, processed_at)


def _arbitrator(motor, command_log, clock, window_s=0.2):
    return CommandArbitrator(motor, command_log, interval_s=0.1, debounce_window_s=window_s, clock=clock)


# ---------------------------------------------------------------------------
# DebounceGate
# ---------------------------------------------------------------------------


def test_gate_is_open_for_first_command():
    gate = DebounceGate(0.2)

    assert gate.last_applied_at is None
    assert gate.is_open(0.0)


def test_gate_closes_inside_window_and_reopens_at_boundary():
    gate = DebounceGate(0.2)
    gate.record(100.0)

    assert not gate.is_open(100.1)
    assert gate.is_open(100.2)
    assert gate.elapsed(100.3) == pytest.approx(0.3)


# ---------------------------------------------------------------------------
# Arbitration
# ---------------------------------------------------------------------------


def test_single_command_is_applied_and_marked(motor, command_log, clock):
    command_id = command_log.insert("alice", 10.0, "network")
    arbitrator = _arbitrator(motor, command_log, clock)

    result = arbitrator.tick()

    assert result.applied == [command_id]
    assert motor.set_point == pytest.approx(110.0)
    stored = command_log.get(command_id)
    assert stored.processed is True
    assert stored.processed_by == "controller"
    assert arbitrator.gate.last_applied_at == clock.now


def test_commands_inside_window_are_deferred_not_dropped(motor, command_log, clock, submitted_at):
    first = command_log.insert("alice", 10.0, "network", submitted_at(0.0))
    second = command_log.insert("bob", -100.0, "network", submitted_at(0.05))
    arbitrator = _arbitrator(motor, command_log, clock)

    result = arbitrator.tick()

    assert result.applied == [first]
    assert result.deferred == [second]
    assert motor.set_point == pytest.approx(110.0)
    assert command_log.get(second).processed is False

    clock.advance(0.1)
    result = arbitrator.tick()
    assert result.applied == []
    assert result.deferred == [second]

    clock.advance(0.15)
    result = arbitrator.tick()
    assert result.applied == [second]
    assert motor.set_point == 0.0
    assert command_log.fetch_unprocessed() == []


def test_oldest_submission_is_applied_first(motor, command_log, clock, submitted_at):
    # inserted out of order; submitted_at decides
    late = command_log.insert("late", 50.0, "network", submitted_at(5.0))
    early = command_log.insert("early", -50.0, "network", submitted_at(1.0))
    arbitrator = _arbitrator(motor, command_log, clock)

    assert arbitrator.tick().applied == [early]
    assert motor.set_point == pytest.approx(50.0)

    clock.advance(0.25)
    assert arbitrator.tick().applied == [late]
    assert motor.set_point == pytest.approx(75.0)


def test_each_command_applied_once_across_ticks(motor, command_log, clock, submitted_at):
    ids = [command_log.insert(f"c{i}", 1.0, "network", submitted_at(i)) for i in range(3)]
    arbitrator = _arbitrator(motor, command_log, clock)

    applied = []
    for _ in range(6):
        applied.extend(arbitrator.tick().applied)
        clock.advance(0.25)

    assert applied == ids
    assert motor.set_point == pytest.approx(100.0 * 1.01**3)


def test_zero_window_applies_everything_in_one_tick(motor, command_log, clock, submitted_at):
    ids = [command_log.insert("c", 10.0, "network", submitted_at(i)) for i in range(3)]
    arbitrator = _arbitrator(motor, command_log, clock, window_s=0.0)

    assert arbitrator.tick().applied == ids


def test_failed_mark_leaves_command_pending_and_reapplies(motor, command_log, clock):
    command_id = command_log.insert("alice", 10.0, "network")
    flaky = FlakyCommandLog(command_log, mark_failures=1)
    arbitrator = _arbitrator(motor, flaky, clock)

    result = arbitrator.tick()

    assert result.applied == [command_id]
    assert result.unmarked == [command_id]
    assert motor.set_point == pytest.approx(110.0)
    assert command_log.get(command_id).processed is False
    # the application still counts for the debounce window
    assert arbitrator.gate.last_applied_at == clock.now

    clock.advance(0.25)
    result = arbitrator.tick()

    assert result.applied == [command_id]
    assert result.unmarked == []
    assert command_log.get(command_id).processed is True
    assert flaky.mark_calls == [command_id, command_id]
    assert arbitrator.store_failures == 1


def test_fetch_failure_skips_tick(motor, command_log, clock):
    command_log.insert("alice", 10.0, "network")
    arbitrator = _arbitrator(motor, FlakyCommandLog(command_log, fetch_failures=1), clock)

    result = arbitrator.tick()

    assert result.fetch_failed is True
    assert motor.set_point == 100.0

    assert len(arbitrator.tick().applied) == 1
    assert motor.set_point == pytest.approx(110.0)


def test_status_reports_counters(motor, command_log, clock):
    command_log.insert("alice", 10.0, "network")
    command_log.insert("bob", 10.0, "network")
    arbitrator = _arbitrator(motor, command_log, clock)

    arbitrator.tick()
    status = arbitrator.status()

    assert status["applied"] == 1
    assert status["deferred"] == 1
    assert status["debounce_window_ms"] == 200
    assert status["state"] == "pending"


def test_burst_scenario_clamps_to_zero(motor, command_log, clock, submitted_at):
    arbitrator = _arbitrator(motor, command_log, clock)
    command_log.insert("alice", 10.0, "network", submitted_at(0.0))
    assert len(arbitrator.tick().applied) == 1
    assert motor.set_point == pytest.approx(110.0)

    clock.advance(0.05)
    late = command_log.insert("bob", -200.0, "network", submitted_at(0.05))
    assert arbitrator.tick().deferred == [late]
    assert motor.set_point == pytest.approx(110.0)

    clock.advance(0.2)
    assert arbitrator.tick().applied == [late]
    assert motor.set_point == 0.0


def test_default_clock_is_monotonic(motor, command_log):
    assert CommandArbitrator(motor, command_log)._clock is time.monotonic


def test_first_command_applies_on_a_freshly_started_clock(motor, command_log):
    # a monotonic clock can read less than one window right after boot
    clock = FakeMonotonic(0.05)
    command_id = command_log.insert("alice", 10.0, "network")
    arbitrator = _arbitrator(motor, command_log, clock)

    assert arbitrator.tick().applied == [command_id]
    assert arbitrator.gate.last_applied_at == 0.05


def test_processed_at_is_wall_time_not_gate_time(motor, command_log):
    command_id = command_log.insert("alice", 10.0, "network")
    arbitrator = _arbitrator(motor, command_log, FakeMonotonic(12.0))

    before = utc_now()
    arbitrator.tick()

    processed_at = command_log.get(command_id).processed_at
    assert before - timedelta(seconds=1) <= processed_at <= utc_now() + timedelta(seconds=1)

