"""
MQTT Door Bridge
================
Exposes the door to Home Assistant as an MQTT cover.

Topics (``<prefix>`` is ``<discovery_prefix>/cover/<object_id>``):
    - ``<prefix>/action``: commands in (open, close, stop, toggle, state)
    - ``<prefix>/state``: door state out (open, closed, unknown)
    - ``<prefix>/config``: discovery document, published on every connect

The door has a single relay, so open, close and stop all pulse it.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from garagedoor.domain.exceptions import ControllerNotRunningError
from garagedoor.enums.door import DoorCommand, MQTTAction
from garagedoor.hardware.mqtt.mqtt_broker_wrapper import MQTTClientWrapper
from garagedoor.schemas.door import CoverDiscoveryPayload, DiscoveryDevice
from garagedoor.services.hardware.door_controller_service import DoorControllerService

logger = logging.getLogger(__name__)

MQTT_QOS = 1
READY_TIMEOUT_S = 5.0


class MQTTDoorBridgeService:
    def __init__(
        self,
        mqtt_client: MQTTClientWrapper,
        controller: DoorControllerService,
        discovery_prefix: str = "homeassistant",
        object_id: str = "garage_door",
        ready_timeout_s: float = READY_TIMEOUT_S,
    ):
        self.mqtt_client = mqtt_client
        self.controller = controller
        self.object_id = object_id
        self.ready_timeout_s = ready_timeout_s

        base = f"{discovery_prefix}/cover/{object_id}"
        self.action_topic = f"{base}/action"
        self.state_topic = f"{base}/state"
        self.discovery_topic = f"{base}/config"

        self._listener_id: str | None = None
        self._listener_lock = threading.Lock()
        self._announce_thread: threading.Thread | None = None

        mqtt_client.add_connect_hook(self._on_connected)
        mqtt_client.add_disconnect_hook(self._on_disconnected)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        self.mqtt_client.connect()

    def stop(self) -> None:
        self._remove_state_listener()
        self.mqtt_client.disconnect()

    def _on_connected(self) -> None:
        """Runs on every (re)connect: subscribe, re-register the listener, announce."""
        self.mqtt_client.subscribe(self.action_topic, self._on_action_message, qos=MQTT_QOS)
        self._register_state_listener()
        # Waiting for the first poll must not stall the paho network thread.
        self._announce_thread = threading.Thread(target=self._announce, name="MQTTDoorAnnounce", daemon=True)
        self._announce_thread.start()

    def _on_disconnected(self) -> None:
        self._remove_state_listener()

    def _announce(self) -> None:
        if not self.controller.wait_until_ready(self.ready_timeout_s):
            logger.warning("Initial door state not available after %.1fs; announcing anyway", self.ready_timeout_s)
        try:
            self.controller.request_state()
        except ControllerNotRunningError:
            logger.warning("Door controller is not running; initial state was not requested")
        self.publish_discovery()

    # -------------------------------------------------------------------------
    # State out
    # -------------------------------------------------------------------------

    def _register_state_listener(self) -> None:
        with self._listener_lock:
            if self._listener_id is not None:
                self.controller.remove_state_listener(self._listener_id)
            self._listener_id = self.controller.add_state_listener(self._publish_state)
        logger.info("Registered door state listener for MQTT topic %s", self.state_topic)

    def _remove_state_listener(self) -> None:
        with self._listener_lock:
            if self._listener_id is None:
                return
            self.controller.remove_state_listener(self._listener_id)
            self._listener_id = None
        logger.info("Removed MQTT door state listener")

    def _publish_state(self, state: str) -> None:
        if self.mqtt_client.publish(self.state_topic, state, qos=MQTT_QOS, retain=True):
            logger.debug("Published door state '%s' to %s", state, self.state_topic)
        else:
            logger.error("Failed to publish door state '%s'", state)

    def build_discovery_payload(self) -> dict[str, Any]:
        return CoverDiscoveryPayload(
            command_topic=self.action_topic,
            state_topic=self.state_topic,
            unique_id=self.object_id,
            device=DiscoveryDevice(identifiers=[self.object_id]),
            qos=MQTT_QOS,
        ).model_dump()

    def publish_discovery(self) -> bool:
        payload = json.dumps(self.build_discovery_payload())
        published = self.mqtt_client.publish(self.discovery_topic, payload, qos=MQTT_QOS, retain=True)
        if published:
            logger.info("Published Home Assistant discovery document to %s", self.discovery_topic)
        else:
            logger.error("Failed to publish Home Assistant discovery document")
        return published

    # -------------------------------------------------------------------------
    # Commands in
    # -------------------------------------------------------------------------

    def _on_action_message(self, client, userdata, msg) -> None:
        payload = msg.payload.decode("utf-8", errors="replace") if isinstance(msg.payload, bytes) else str(msg.payload)
        self.handle_command(payload)

    def handle_command(self, payload: str) -> bool:
        """
        Map an action payload onto the controller.

        Returns:
            False when the command is rejected (unknown, or controller stopped)
        """
        try:
            action = MQTTAction(payload.strip())
        except ValueError:
            logger.warning("Received unknown door command over MQTT: %r", payload)
            return False

        try:
            if action.to_command() is DoorCommand.TOGGLE:
                self.controller.request_toggle()
            else:
                self.controller.request_state()
        except ControllerNotRunningError as e:
            logger.warning("Rejected MQTT command '%s': %s", action.value, e)
            return False

        logger.debug("Forwarded MQTT command '%s' to the door controller", action.value)
        return True

    def get_status(self) -> dict[str, Any]:
        return {
            "action_topic": self.action_topic,
            "state_topic": self.state_topic,
            "listener_registered": self._listener_id is not None,
            "connection": self.mqtt_client.health.to_dict(),
        }
