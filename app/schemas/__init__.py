"""
Pydantic schemas for the status API.
"""

from app.schemas.commands import CommandListQuery, MotorStateResponse, SubmitCommandRequest

__all__ = [
    "CommandListQuery",
    "MotorStateResponse",
    "SubmitCommandRequest",
]
