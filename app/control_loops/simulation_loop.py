"""
Simulation Loop
===============
Drives the simulated motor toward its setpoint at a fixed rate and publishes a
telemetry sample after every tick.

The physical update (resource decay, PID step, disturbance, temperature)
happens inside ``MotorState.advance`` under the state lock; the telemetry write
happens afterwards, outside the lock, so a slow or failing sink never delays
the physics.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Callable

from app.control_loops.periodic import PeriodicLoop
from app.controllers.control_algorithms import Controller, PIDController
from app.domain.motor import MotorPhysics, MotorSnapshot, MotorState
from infrastructure.database.repositories.base import TelemetrySink

logger = logging.getLogger(__name__)
telemetry_logger = logging.getLogger("app.telemetry")


class SimulationLoop(PeriodicLoop):
    """Fixed-rate PID simulation of the motor."""

    name = "SimulationLoop"

    def __init__(
        self,
        state: MotorState,
        sink: TelemetrySink | None,
        *,
        controller: Controller | None = None,
        interval_s: float = 0.2,
        rng: random.Random | None = None,
        physics: MotorPhysics | None = None,
        log_samples: bool = True,
        stop_event: threading.Event | None = None,
        setup: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(interval_s, stop_event=stop_event, setup=setup)
        self.motor = state
        self.sink = sink
        self.controller = controller or PIDController()
        self.rng = rng or random.Random()
        self.physics = physics or MotorPhysics()
        self.log_samples = log_samples
        self.sink_failures = 0
        self.last_sample: MotorSnapshot | None = None

    def tick(self) -> MotorSnapshot:
        sample = self.motor.advance(self.controller, self.interval_s, self.rng, self.physics)
        self.last_sample = sample
        self._emit(sample)
        return sample

    def _emit(self, sample: MotorSnapshot) -> None:
        if self.log_samples:
            telemetry_logger.info(sample.log_line())
        if self.sink is None:
            return
        try:
            self.sink.append(sample)
        except Exception as exc:
            self.sink_failures += 1
            logger.warning("Telemetry write failed (%d so far): %s", self.sink_failures, exc)

    def status(self) -> dict[str, Any]:
        status = super().status()
        status["sink_failures"] = self.sink_failures
        return status
