"""
Motor Domain Objects
====================
The shared physical model of the simulated motor and the immutable snapshots
taken from it.

``MotorState`` is the single owner of the five physical fields. Every read and
write goes through one of its synchronized accessors, so a caller never sees
a partially-updated tuple and never holds the lock longer than one
read-modify-write.
"""

from __future__ import annotations

import random
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

from app.utils.concurrency import synchronized
from app.utils.time import utc_now

SET_POINT_MIN = 0.0
SET_POINT_MAX = 10000.0
LEVEL_MAX = 100.0


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


class SpeedController(Protocol):
    """Anything that turns a setpoint error into a control output."""

    def step(self, setpoint: float, measurement: float, dt: float) -> float: ...


@dataclass(frozen=True)
class MotorPhysics:
    """Constants of the simulated plant, applied once per simulation tick."""

    gas_drain_per_tick: float = 0.02
    battery_drain_per_tick: float = 0.01
    control_gain: float = 0.1  # scales PID output into acceleration
    disturbance_amplitude: float = 0.5  # uniform in [-a, a)
    base_temp: float = 20.0
    temp_per_speed: float = 0.01
    temp_noise_amplitude: float = 0.5


@dataclass(frozen=True)
class MotorSnapshot:
    """Point-in-time copy of the motor state; this is the telemetry sample."""

    gas_level: float
    battery_level: float
    motor_speed: float
    set_point: float
    motor_temp: float
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def log_line(self) -> str:
        return (
            f"Speed: {self.motor_speed:8.2f} | "
            f"SetPt: {self.set_point:8.2f} | "
            f"Temp: {self.motor_temp:6.2f} | "
            f"Gas: {self.gas_level:5.1f}% | "
            f"Battery: {self.battery_level:5.1f}%"
        )


@dataclass(frozen=True)
class SetPointChange:
    """Result of applying a percentage command to the setpoint."""

    previous: float
    current: float
    percent_change: float

    @property
    def clamped(self) -> bool:
        return self.current != self.previous + self.previous * (self.percent_change / 100.0)


class MotorState:
    """Thread-safe owner of the motor's physical fields."""

    def __init__(
        self,
        *,
        gas_level: float = 100.0,
        battery_level: float = 100.0,
        motor_speed: float = 0.0,
        set_point: float = 100.0,
        motor_temp: float = 40.0,
    ) -> None:
        self._lock = threading.Lock()
        self._gas_level = clamp(float(gas_level), 0.0, LEVEL_MAX)
        self._battery_level = clamp(float(battery_level), 0.0, LEVEL_MAX)
        self._motor_speed = max(0.0, float(motor_speed))
        self._set_point = clamp(float(set_point), SET_POINT_MIN, SET_POINT_MAX)
        self._motor_temp = float(motor_temp)

    @synchronized
    def snapshot(self) -> MotorSnapshot:
        return self._snapshot_unlocked()

    @property
    def set_point(self) -> float:
        return self.snapshot().set_point

    @synchronized
    def apply_percent_change(self, percent_change: float) -> SetPointChange:
        """Scale the setpoint by ``percent_change`` percent and clamp it."""
        previous = self._set_point
        self._set_point = clamp(previous + previous * (percent_change / 100.0), SET_POINT_MIN, SET_POINT_MAX)
        return SetPointChange(previous=previous, current=self._set_point, percent_change=percent_change)

    @synchronized
    def advance(
        self,
        controller: SpeedController,
        dt: float,
        rng: random.Random,
        physics: MotorPhysics = MotorPhysics(),
    ) -> MotorSnapshot:
        """Run one simulation tick and return the resulting snapshot."""
        self._gas_level = max(0.0, self._gas_level - physics.gas_drain_per_tick)
        self._battery_level = max(0.0, self._battery_level - physics.battery_drain_per_tick)

        control = controller.step(self._set_point, self._motor_speed, dt)
        amp = physics.disturbance_amplitude
        disturbance = rng.uniform(-amp, amp) if amp else 0.0
        self._motor_speed = max(0.0, self._motor_speed + (control * physics.control_gain + disturbance) * dt)

        noise = physics.temp_noise_amplitude
        temp_noise = rng.uniform(-noise, noise) if noise else 0.0
        self._motor_temp = physics.base_temp + self._motor_speed * physics.temp_per_speed + temp_noise

        return self._snapshot_unlocked()

    def _snapshot_unlocked(self) -> MotorSnapshot:
        return MotorSnapshot(
            gas_level=self._gas_level,
            battery_level=self._battery_level,
            motor_speed=self._motor_speed,
            set_point=self._set_point,
            motor_temp=self._motor_temp,
        )

    def __repr__(self) -> str:
        s = self.snapshot()
        return f"MotorState(speed={s.motor_speed:.2f}, set_point={s.set_point:.2f})"
