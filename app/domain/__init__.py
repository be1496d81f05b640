"""
Domain Package
==============
Value objects and shared state of the motor controller.

- motor: the lock-guarded physical model and its snapshots
- command: remote setpoint requests and the ingress line parser
- exceptions: the error hierarchy
"""

from .command import Command, IngressRequest, IssuedVia, parse_request_line
from .exceptions import (
    ConfigurationError,
    IngressError,
    MotorControlError,
    NotFoundError,
    RepositoryError,
    ValidationError,
)
from .motor import MotorPhysics, MotorSnapshot, MotorState, SetPointChange

__all__ = [
    # Commands
    "Command",
    "IngressRequest",
    "IssuedVia",
    "parse_request_line",
    # Motor
    "MotorPhysics",
    "MotorSnapshot",
    "MotorState",
    "SetPointChange",
    # Errors
    "ConfigurationError",
    "IngressError",
    "MotorControlError",
    "NotFoundError",
    "RepositoryError",
    "ValidationError",
]
