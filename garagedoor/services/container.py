from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from garagedoor.config import AppConfig
from garagedoor.extensions import socketio
from garagedoor.hardware.adapters.door import IDoorAdapter, create_door_adapter
from garagedoor.hardware.mqtt.mqtt_broker_wrapper import MQTTClientWrapper
from garagedoor.security.api_keys import ApiKeyValidator
from garagedoor.services.application.mqtt_bridge_service import MQTTDoorBridgeService
from garagedoor.services.hardware.door_controller_service import DoorControllerService
from garagedoor.utils.emitters import DoorStateEmitter

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage the door service's components. One per process."""

    config: AppConfig
    adapter: IDoorAdapter
    door_controller: DoorControllerService
    api_key_validator: ApiKeyValidator
    state_emitter: DoorStateEmitter
    mqtt_client: Optional[MQTTClientWrapper] = None
    mqtt_bridge: Optional[MQTTDoorBridgeService] = None
    _shutdown_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _is_shutdown: bool = field(default=False, init=False, repr=False)

    @classmethod
    def build(
        cls, config: AppConfig, *, door_controller: DoorControllerService | None = None
    ) -> "ServiceContainer":
        """Construct the container.

        Args:
            config: Application configuration
            door_controller: Prebuilt controller to use instead of one driving
                the adapter selected by ``config.mode``
        """
        logger.info("Building ServiceContainer...")
        controller = door_controller or DoorControllerService(create_door_adapter(config))
        adapter = controller.adapter

        mqtt_client = None
        mqtt_bridge = None
        if config.mqtt_enabled:
            host, port, use_tls = config.mqtt_broker
            mqtt_client = MQTTClientWrapper(
                host,
                port,
                client_id=config.mqtt_client_id,
                username=config.mqtt_username,
                password=config.mqtt_password,
                use_tls=use_tls,
            )
            mqtt_bridge = MQTTDoorBridgeService(
                mqtt_client,
                controller,
                discovery_prefix=config.mqtt_discovery_prefix,
                object_id=config.mqtt_object_id,
            )
        else:
            logger.info("MQTT disabled by configuration")

        container = cls(
            config=config,
            adapter=adapter,
            door_controller=controller,
            api_key_validator=ApiKeyValidator(config.api_keys),
            state_emitter=DoorStateEmitter(socketio, controller),
            mqtt_client=mqtt_client,
            mqtt_bridge=mqtt_bridge,
        )
        logger.info("ServiceContainer built successfully.")
        return container

    def start(self) -> None:
        """Start the door controller, then connect to MQTT."""
        self.door_controller.start()
        if self.mqtt_bridge is not None:
            self.mqtt_bridge.start()

    def shutdown(self) -> None:
        """Release external resources before process exit. Runs once."""
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True

        if self.mqtt_bridge is not None:
            try:
                self.mqtt_bridge.stop()
            except Exception as e:
                logger.warning("Failed to stop MQTT bridge: %s", e)

        self.door_controller.stop()
        self.adapter.cleanup()
        logger.info("ServiceContainer shut down")

    def get_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "mode": self.config.mode,
            "controller": self.door_controller.get_status(),
            "websocket_clients": self.state_emitter.client_count,
            "mqtt": self.mqtt_bridge.get_status() if self.mqtt_bridge else None,
        }
        return status
