"""
Control Algorithms: PID control for the motor speed loop.

This module provides control algorithm implementations:
- Controller: abstract interface used by the simulation loop
- PIDController: classic proportional-integral-derivative control with an
  explicit time step
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Controller(ABC):
    """
    Abstract base class for all controllers.
    """

    @abstractmethod
    def step(self, setpoint: float, measurement: float, dt: float) -> float:
        """
        Computes the control output for one time step.

        Args:
            setpoint: The target value.
            measurement: The current measured value.
            dt: Elapsed time since the previous step, in seconds.

        Returns:
            The control output.
        """


class PIDController(Controller):
    """
    A PID controller class.

    Owned by exactly one control loop; its ``integral`` and ``previous_error``
    are loop-local state and are not shared across threads. The integral is
    never reset after construction.
    """

    def __init__(self, kp: float = 0.5, ki: float = 0.1, kd: float = 0.05):
        """
        Initializes the PIDController.

        Args:
            kp: Proportional gain
            ki: Integral gain
            kd: Derivative gain
        """
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.integral = 0.0
        self.previous_error = 0.0
        logger.debug("Created %r", self)

    def step(self, setpoint: float, measurement: float, dt: float) -> float:
        """
        Computes the PID control output.

        A zero (or negative) ``dt`` contributes no derivative term.
        """
        error = setpoint - measurement

        # Accumulate the integral term over elapsed time
        self.integral += error * dt

        derivative = (error - self.previous_error) / dt if dt > 0 else 0.0

        output = self.kp * error + self.ki * self.integral + self.kd * derivative

        self.previous_error = error

        return output

    def __repr__(self) -> str:
        return f"PIDController(kp={self.kp}, ki={self.ki}, kd={self.kd})"
