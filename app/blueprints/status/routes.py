from __future__ import annotations

from flask import Blueprint, current_app, jsonify

status_bp = Blueprint("status", __name__)


@status_bp.get("/status")
def status():
    supervisor = current_app.config["SUPERVISOR"]
    return jsonify({"status": "ok", "units": supervisor.status()}), 200
