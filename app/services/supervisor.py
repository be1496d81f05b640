"""
Process Supervisor
==================
Builds the shared motor state and command log, starts every unit in its own
thread and owns their lifetime.

Units:
    SimulationLoop      - PID physics + telemetry (default 200 ms)
    CommandArbitrator   - command log polling + debounce (default 100 ms)
    IngressListener     - TCP line protocol (default port 9090)
    HttpApiServer       - optional status API (``MOTORCTL_HTTP_ENABLED``)

A unit whose resource fails to initialize logs the failure and ends; the
others keep running. All units observe one shutdown event, set by
``shutdown()`` or by SIGINT/SIGTERM in the ``motorctl`` entry point.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from app.config import AppConfig
from app.control_loops.command_arbitrator import CommandArbitrator
from app.control_loops.simulation_loop import SimulationLoop
from app.controllers.control_algorithms import PIDController
from app.domain.motor import MotorState
from app.services.ingress_listener import IngressListener
from infrastructure.database.repositories.commands import CommandLogRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


class Unit(Protocol):
    name: str

    def start(self) -> threading.Thread: ...

    def stop(self, timeout: float = 5.0) -> None: ...

    def join(self, timeout: float | None = None) -> None: ...

    @property
    def is_alive(self) -> bool: ...

    def status(self) -> dict[str, Any]: ...


@dataclass
class ProcessSupervisor:
    """Aggregate and manage the controller's concurrent units."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    command_log: CommandLogRepository
    telemetry: TelemetryRepository
    motor: MotorState
    simulation: SimulationLoop
    arbitrator: CommandArbitrator
    ingress: IngressListener
    http_server: Optional[Any] = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    _started: bool = False

    @classmethod
    def build(cls, config: AppConfig, *, motor: MotorState | None = None) -> "ProcessSupervisor":
        """Construct every unit around one motor state and one command log.

        Nothing is opened or bound here; each unit initializes its own
        resource when its thread starts.
        """
        stop_event = threading.Event()
        database = SQLiteDatabaseHandler(config.database_path)
        command_log = CommandLogRepository(database)
        telemetry = TelemetryRepository(database)
        motor = motor or MotorState()

        simulation = SimulationLoop(
            motor,
            telemetry,
            controller=PIDController(config.pid_kp, config.pid_ki, config.pid_kd),
            interval_s=config.telemetry_interval_s,
            rng=random.Random(config.random_seed),
            log_samples=config.log_telemetry,
            stop_event=stop_event,
            setup=database.init_db,
        )
        arbitrator = CommandArbitrator(
            motor,
            command_log,
            interval_s=config.command_poll_interval_s,
            debounce_window_s=config.debounce_window_s,
            stop_event=stop_event,
            setup=database.init_db,
        )
        ingress = IngressListener(
            command_log,
            host=config.listen_host,
            port=config.listen_port,
            backlog=config.listen_backlog,
            stop_event=stop_event,
            setup=database.init_db,
            teardown=database.close_thread_connection,
        )

        supervisor = cls(
            config=config,
            database=database,
            command_log=command_log,
            telemetry=telemetry,
            motor=motor,
            simulation=simulation,
            arbitrator=arbitrator,
            ingress=ingress,
            stop_event=stop_event,
        )

        if config.http_enabled:
            from app.services.http_server import HttpApiServer

            supervisor.http_server = HttpApiServer(
                supervisor,
                host=config.http_host,
                port=config.http_port,
                stop_event=stop_event,
            )

        logger.info("ProcessSupervisor built (db=%s)", config.database_path)
        return supervisor

    @property
    def units(self) -> list[Unit]:
        units: list[Unit] = [self.simulation, self.arbitrator, self.ingress]
        if self.http_server is not None:
            units.append(self.http_server)
        return units

    def start(self) -> None:
        """Start every unit; a unit that fails to start does not stop the rest."""
        if self._started:
            return
        self.stop_event.clear()
        for unit in self.units:
            try:
                unit.start()
            except Exception as exc:
                logger.error("Could not start %s: %s", unit.name, exc)
        self._started = True
        logger.info("✓ Started %d units", len(self.units))

    def wait(self, poll_s: float = 1.0) -> None:
        """Block until shutdown is requested or every unit has ended."""
        while not self.stop_event.wait(poll_s):
            if not any(unit.is_alive for unit in self.units):
                logger.error("All units have terminated; supervisor exiting")
                return

    def shutdown(self, timeout: float = 5.0) -> None:
        """Signal every unit, join them and release the database."""
        logger.info("Shutting down units...")
        self.stop_event.set()
        for unit in self.units:
            try:
                unit.stop(timeout=timeout)
            except Exception as exc:
                logger.warning("Failed to stop %s cleanly: %s", unit.name, exc)
        self.database.close_db()
        self._started = False
        logger.info("ProcessSupervisor shutdown complete.")

    def status(self) -> dict[str, Any]:
        return {unit.name: unit.status() for unit in self.units}
