"""Door API
===========

Routes (all require the ``x-api-key`` header):
    POST /toggle  - Queue a relay pulse
    GET  /state   - Current door state
    GET  /status  - Controller, Socket.IO and MQTT diagnostics
"""

from __future__ import annotations

from flask import Blueprint, Response, current_app

from garagedoor.schemas.door import StateEnvelope
from garagedoor.utils.http import safe_route, success_response

door_api = Blueprint("door_api", __name__)


def _container():
    return current_app.config["CONTAINER"]


@door_api.post("/toggle")
@safe_route("Failed to toggle door")
def toggle() -> Response:
    _container().door_controller.request_toggle()
    return success_response()


@door_api.get("/state")
@safe_route("Failed to get door state")
def state() -> Response:
    controller = _container().door_controller
    payload = StateEnvelope(state=controller.get_state())
    return success_response(payload.model_dump(mode="json"))


@door_api.get("/status")
@safe_route("Failed to get service status")
def status() -> Response:
    return success_response({"status": _container().get_status()})
