"""Liveness and readiness probes. Public, no API key required."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from garagedoor.utils.http import error_response

status_bp = Blueprint("status", __name__)


@status_bp.get("/healthz")
def healthz():
    return jsonify({"result": "OK"}), 200


@status_bp.get("/readyz")
def readyz():
    """Ready once the door controller runs and has read the sensors at least once."""
    controller = current_app.config["CONTAINER"].door_controller
    if controller.is_running and controller.is_ready():
        return jsonify({"result": "OK"}), 200
    return error_response("Door controller not ready", 503)
