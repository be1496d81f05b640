"""
Controllers Package
====================

Control algorithms used by the simulation loop.
"""

from app.controllers.control_algorithms import Controller, PIDController

__all__ = [
    "Controller",
    "PIDController",
]
