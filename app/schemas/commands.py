"""
Command Schemas
===============

Pydantic models for the motor status API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.command import MAX_CLIENT_ID_LENGTH


class SubmitCommandRequest(BaseModel):
    """Body of ``POST /api/motor/commands``."""

    client_id: str = Field(..., min_length=1, max_length=MAX_CLIENT_ID_LENGTH, description="Submitting client")
    percent_change: float = Field(..., allow_inf_nan=False, description="Relative setpoint change in percent")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "client_id": "alice",
                "percent_change": 5.0,
            }
        }
    )

    @field_validator("client_id")
    @classmethod
    def _no_whitespace(cls, value: str) -> str:
        value = value.strip()
        if not value or any(ch.isspace() for ch in value):
            raise ValueError("client_id must be a single non-empty token")
        return value


class CommandListQuery(BaseModel):
    """Query parameters of ``GET /api/motor/commands``."""

    limit: int = Field(default=50, ge=1, le=1000)
    pending: bool = Field(default=False)


class MotorStateResponse(BaseModel):
    """Snapshot of the motor as returned by ``GET /api/motor/state``."""

    gas_level: float
    battery_level: float
    motor_speed: float
    set_point: float
    motor_temp: float
    timestamp: str

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> "MotorStateResponse":
        return cls(**snapshot.to_dict())
