"""
Control Loops Package
=====================

Fixed-rate worker threads sharing one MotorState:

    Command Log ──► CommandArbitrator ──► MotorState ◄── SimulationLoop ──► Telemetry
                     (debounce gate)      (one lock)      (PID + noise)

- SimulationLoop: advances the physics and writes a telemetry sample per tick
- CommandArbitrator: applies pending commands oldest-first through the debounce gate
- PeriodicLoop: shared start/stop/tick lifecycle
"""

from app.control_loops.command_arbitrator import ArbitrationResult, CommandArbitrator, DebounceGate
from app.control_loops.periodic import LoopState, PeriodicLoop
from app.control_loops.simulation_loop import SimulationLoop

__all__ = [
    "ArbitrationResult",
    "CommandArbitrator",
    "DebounceGate",
    "LoopState",
    "PeriodicLoop",
    "SimulationLoop",
]
