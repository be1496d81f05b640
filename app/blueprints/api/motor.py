"""
Motor API
=========

Read-mostly HTTP view of the running controller:
- GET  /api/motor/state            current motor snapshot
- GET  /api/motor/commands         recent (or pending) commands
- GET  /api/motor/commands/<id>    one command
- POST /api/motor/commands         submit a command (``issued_via="http"``)
- GET  /api/motor/telemetry        recent telemetry samples

Submitted commands go through the command log like TCP ones; the
arbitrator applies them under the same debounce rule.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, request
from pydantic import ValidationError as SchemaValidationError

from app.domain.command import IssuedVia
from app.domain.exceptions import NotFoundError, ValidationError
from app.schemas.commands import CommandListQuery, MotorStateResponse, SubmitCommandRequest
from app.utils.http import error_response, safe_route, success_response

logger = logging.getLogger("motor_api")

motor_api = Blueprint("motor_api", __name__)

MAX_TELEMETRY_LIMIT = 1000


def _supervisor():
    return current_app.config["SUPERVISOR"]


def _invalid_request(ve: SchemaValidationError) -> Response:
    # ctx may hold the raised exception object, which is not JSON serializable
    errors = ve.errors(include_url=False, include_context=False)
    return error_response("Invalid request", 400, details={"errors": errors})


@motor_api.errorhandler(404)
def not_found(error):
    return error_response("Resource not found", 404)


@motor_api.errorhandler(405)
def method_not_allowed(error):
    return error_response("Method not allowed", 405)


@motor_api.get("/state")
@safe_route("Failed to read motor state")
def get_state() -> Response:
    snapshot = _supervisor().motor.snapshot()
    return success_response(MotorStateResponse.from_snapshot(snapshot).model_dump())


@motor_api.get("/commands")
@safe_route("Failed to list commands")
def list_commands() -> Response:
    try:
        query = CommandListQuery(
            limit=request.args.get("limit", 50),
            pending=request.args.get("pending", "false"),
        )
    except SchemaValidationError as ve:
        return _invalid_request(ve)

    log = _supervisor().command_log
    commands = log.recent(limit=query.limit, pending_only=query.pending)
    return success_response(
        {
            "commands": [c.to_dict() for c in commands],
            "count": len(commands),
            "totals": log.statistics(),
        }
    )


@motor_api.get("/commands/<int:command_id>")
@safe_route("Failed to read command")
def get_command(command_id: int) -> Response:
    command = _supervisor().command_log.get(command_id)
    if command is None:
        raise NotFoundError(f"Command {command_id} not found", detail={"command_id": command_id})
    return success_response(command.to_dict())


@motor_api.post("/commands")
@safe_route("Failed to submit command")
def submit_command() -> Response:
    raw = request.get_json(silent=True) or {}
    if not isinstance(raw, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        body = SubmitCommandRequest(**raw)
    except SchemaValidationError as ve:
        return _invalid_request(ve)

    command_id = _supervisor().command_log.insert(body.client_id, body.percent_change, IssuedVia.HTTP.value)
    logger.info("Command id=%s submitted over HTTP by %s: %+.2f%%", command_id, body.client_id, body.percent_change)
    return success_response({"id": command_id}, 201, message="Command queued")


@motor_api.get("/telemetry")
@safe_route("Failed to read telemetry")
def list_telemetry() -> Response:
    try:
        limit = int(request.args.get("limit", 50))
    except ValueError:
        raise ValidationError("limit must be an integer") from None
    limit = max(1, min(MAX_TELEMETRY_LIMIT, limit))
    samples = _supervisor().telemetry.recent(limit=limit)
    return success_response({"samples": [s.to_dict() for s in samples], "count": len(samples)})
