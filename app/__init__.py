from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

if TYPE_CHECKING:
    from app.services.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


def create_app(supervisor: "ProcessSupervisor", config_overrides: dict[str, Any] | None = None) -> Flask:
    """Build the status API around an already-built supervisor.

    The app never starts or stops units; it only reads the shared motor state
    and talks to the command log.
    """
    from app.blueprints.api.motor import motor_api
    from app.blueprints.status.routes import status_bp

    flask_app = Flask(__name__)
    flask_app.config.update(supervisor.config.as_flask_config())
    if config_overrides:
        flask_app.config.update(config_overrides)
    flask_app.config["SUPERVISOR"] = supervisor
    flask_app.json.sort_keys = False

    # Global JSON error handler for /api/ routes; domain exceptions carry
    # their own ``http_status``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        from app.domain.exceptions import MotorControlError
        from app.utils.http import error_response, safe_error

        if isinstance(exc, HTTPException):
            if not request.path.startswith("/api/"):
                return exc
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, MotorControlError):
            status = exc.http_status
            if status >= 500:
                return safe_error(exc, status, context=type(exc).__name__)
            return error_response(str(exc) or "Request failed", status)

        return safe_error(exc, 500, context="unhandled")

    flask_app.register_blueprint(status_bp)
    flask_app.register_blueprint(motor_api, url_prefix="/api/motor")

    logger.debug("Status API created with %d routes", len(list(flask_app.url_map.iter_rules())))
    return flask_app
