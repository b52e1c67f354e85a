"""garagedoor.socketio.door_handlers

Socket.IO handlers for the ``/door`` namespace.

Clients authenticate on connect with the ``x-api-key`` header or with
``auth={"api_key": "..."}``. Once connected they receive a ``state`` event
``{"result": "ok", "state": ...}`` for every door state change, and may send
a ``command`` event ``{"command": "toggle" | "state"}``.
"""

import logging

from flask import current_app, request
from pydantic import ValidationError

from garagedoor.domain.exceptions import GarageDoorError, InvalidCommandError
from garagedoor.enums.door import DoorCommand
from garagedoor.extensions import socketio
from garagedoor.schemas.door import DoorCommandMessage
from garagedoor.security.api_keys import API_KEY_HEADER
from garagedoor.utils.emitters import SOCKETIO_NAMESPACE_DOOR
from garagedoor.utils.http import generic_message

logger = logging.getLogger(__name__)


def _container():
    return current_app.config["CONTAINER"]


@socketio.on("connect", namespace=SOCKETIO_NAMESPACE_DOOR)
def handle_door_connect(auth=None):
    api_key = request.headers.get(API_KEY_HEADER)
    if not api_key and isinstance(auth, dict):
        api_key = auth.get("api_key")

    container = _container()
    if not container.api_key_validator.validate(api_key):
        logger.warning(
            "Unauthorized Socket.IO connection from %s",
            request.headers.get("X-Forwarded-For", request.remote_addr),
        )
        return False

    container.state_emitter.attach(request.sid)
    logger.info("Client %s connected to %s", request.sid, SOCKETIO_NAMESPACE_DOOR)
    return None


@socketio.on("disconnect", namespace=SOCKETIO_NAMESPACE_DOOR)
def handle_door_disconnect(*_args):
    _container().state_emitter.detach(request.sid)
    logger.info("Client %s disconnected from %s", request.sid, SOCKETIO_NAMESPACE_DOOR)


def _parse_command(data) -> DoorCommand:
    try:
        return DoorCommandMessage.model_validate(data if isinstance(data, dict) else {}).command
    except ValidationError as e:
        raise InvalidCommandError("Unknown command") from e


@socketio.on("command", namespace=SOCKETIO_NAMESPACE_DOOR)
def handle_door_command(data):
    container = _container()
    try:
        command = _parse_command(data)
        if command is DoorCommand.TOGGLE:
            container.door_controller.request_toggle()
        else:
            container.door_controller.request_state()
    except GarageDoorError as e:
        logger.warning("Door command %r from %s rejected: %s", data, request.sid, e)
        # Only 4xx messages reach the client verbatim.
        message = str(e) if e.http_status < 500 else generic_message(e.http_status)
        container.state_emitter.emit_error(request.sid, message)
