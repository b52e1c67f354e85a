"""
WebSocket Emitters
==================

Delivers door state changes to connected Socket.IO clients.

Each connected client gets its own controller listener. The listener emits
the ``state`` event to that client's private room (its session id) only.
"""

import logging
import threading

from flask_socketio import SocketIO

from garagedoor.enums.door import DoorState
from garagedoor.schemas.door import ErrorEnvelope, StateEnvelope
from garagedoor.services.hardware.door_controller_service import DoorControllerService

logger = logging.getLogger("emitters")

SOCKETIO_NAMESPACE_DOOR = "/door"

WS_EVENT_STATE = "state"
WS_EVENT_ERROR = "error"


class DoorStateEmitter:
    """
    Bridges door controller listeners to Socket.IO clients.

    Attributes:
        sio: The SocketIO instance used to emit events.
        controller: The door controller whose state is pushed.
    """

    def __init__(self, sio: SocketIO, controller: DoorControllerService, namespace: str = SOCKETIO_NAMESPACE_DOOR):
        self.sio = sio
        self.controller = controller
        self.namespace = namespace
        self._listener_ids: dict[str, str] = {}
        self._lock = threading.Lock()

    def emit(self, event: str, payload: dict, room: str | None = None):
        try:
            logger.debug("Emitting event='%s' to namespace='%s' room='%s'", event, self.namespace, room or "broadcast")
            self.sio.emit(event, payload, to=room, namespace=self.namespace)
        except Exception as e:
            logger.exception("[Emitter] Failed to emit event '%s' to room '%s': %s", event, room, e)

    def emit_state(self, sid: str, state: str) -> None:
        payload = StateEnvelope(state=DoorState(state)).model_dump(mode="json")
        self.emit(WS_EVENT_STATE, payload, room=sid)

    def emit_error(self, sid: str, message: str) -> None:
        self.emit(WS_EVENT_ERROR, ErrorEnvelope(message=message).model_dump(), room=sid)

    def attach(self, sid: str) -> str:
        """Register a controller listener for client *sid*. Re-attaching replaces the old one."""
        with self._lock:
            previous = self._listener_ids.pop(sid, None)
            if previous is not None:
                self.controller.remove_state_listener(previous)
            listener_id = self.controller.add_state_listener(lambda state: self.emit_state(sid, state))
            self._listener_ids[sid] = listener_id
        logger.info("Client %s subscribed to door state", sid)
        return listener_id

    def detach(self, sid: str) -> None:
        with self._lock:
            listener_id = self._listener_ids.pop(sid, None)
            if listener_id is not None:
                self.controller.remove_state_listener(listener_id)
        if listener_id is not None:
            logger.info("Client %s unsubscribed from door state", sid)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._listener_ids)
