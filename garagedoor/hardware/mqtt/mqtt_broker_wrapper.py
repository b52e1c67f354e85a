"""
    Thin layer over the paho client used by the door bridge.

    paho owns the socket and reconnects on its own; this wrapper adds
    connect/disconnect hooks, topic fan-out to several callbacks and a
    small connection health record for the status endpoint.
"""

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Callable

import paho.mqtt.client as mqtt

from garagedoor.hardware.mqtt.client_factory import create_mqtt_client
from garagedoor.utils.time import iso_now

_mqtt_logger = logging.getLogger("garagedoor.mqtt")

MessageCallback = Callable[[mqtt.Client, object, mqtt.MQTTMessage], None]
Hook = Callable[[], None]


@dataclass
class BrokerHealth:
    """Connection and traffic counters, reported by ``GET /status``."""

    connected: bool = False
    connects: int = 0
    published: int = 0
    publish_failures: int = 0
    subscriptions: int = 0
    last_error: str | None = None
    last_error_at: str | None = None

    def fail(self, error) -> None:
        self.last_error = str(error)
        self.last_error_at = iso_now()

    def to_dict(self) -> dict:
        return asdict(self)


class MQTTClientWrapper:
    """
    Owns one paho client for the lifetime of the service.

    Connect hooks run on the paho network thread every time the session
    comes up, including automatic reconnects, so that is where
    subscriptions belong. Disconnect hooks run when an established
    session drops.
    """

    def __init__(
        self,
        broker: str,
        port: int,
        client_id: str = "",
        username: str = "",
        password: str = "",
        use_tls: bool = False,
        keepalive: int = 30,
    ):
        self.broker = broker
        self.port = port
        self.keepalive = keepalive
        self.client = create_mqtt_client(client_id=client_id, username=username, password=password, use_tls=use_tls)
        self.client.reconnect_delay_set(min_delay=1, max_delay=60)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        # Every message goes through the fan-out so subscribers never replace each other.
        self.client.on_message = self._dispatch_message

        self.connected = False
        self.health = BrokerHealth()
        self._started = False
        self._routes_lock = threading.Lock()
        self._routes: list[tuple[str, MessageCallback]] = []
        self._connect_hooks: list[Hook] = []
        self._disconnect_hooks: list[Hook] = []

    def add_connect_hook(self, hook: Hook) -> None:
        self._connect_hooks.append(hook)

    def add_disconnect_hook(self, hook: Hook) -> None:
        self._disconnect_hooks.append(hook)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        """Start the network loop; paho keeps (re)connecting until disconnect()."""
        if self._started:
            return
        self.health.connects += 1
        try:
            self.client.connect_async(self.broker, self.port, self.keepalive)
            self.client.loop_start()
        except (OSError, ValueError) as e:
            self.health.fail(e)
            _mqtt_logger.error("Cannot start MQTT session with %s:%s: %s", self.broker, self.port, e)
            return
        self._started = True
        _mqtt_logger.info("Connecting to MQTT broker %s:%s", self.broker, self.port)

    def disconnect(self) -> None:
        if not self._started:
            return
        try:
            self.client.disconnect()
            self.client.loop_stop()
        except Exception as e:
            self.health.fail(e)
            _mqtt_logger.error("Error while closing MQTT session: %s", e)
        else:
            _mqtt_logger.info("MQTT session with %s:%s closed", self.broker, self.port)
        finally:
            self._started = False
            self.connected = self.health.connected = False
            with self._routes_lock:
                self._routes.clear()

    def _on_connect(self, client, userdata, flags, rc):
        if rc != 0:
            reason = mqtt.connack_string(rc)
            self.health.connects += 1
            self.health.fail(f"connection refused: {reason}")
            _mqtt_logger.error("MQTT broker %s refused the connection: %s", self.broker, reason)
            return

        self.connected = self.health.connected = True
        self.health.last_error = self.health.last_error_at = None
        _mqtt_logger.info("MQTT session established with %s:%s", self.broker, self.port)
        self._run_hooks(self._connect_hooks, "connect")

    def _on_disconnect(self, client, userdata, rc):
        was_connected = self.connected
        self.connected = self.health.connected = False
        if rc != 0:
            self.health.fail(f"unexpected disconnect (rc={rc})")
            _mqtt_logger.warning("Lost MQTT session (rc=%s); paho will reconnect", rc)
        if was_connected:
            self._run_hooks(self._disconnect_hooks, "disconnect")

    @staticmethod
    def _run_hooks(hooks: list[Hook], kind: str) -> None:
        for hook in list(hooks):
            try:
                hook()
            except Exception as e:
                _mqtt_logger.error("MQTT %s hook %s failed: %s", kind, getattr(hook, "__name__", hook), e, exc_info=True)

    # -------------------------------------------------------------------------
    # Traffic
    # -------------------------------------------------------------------------

    def publish(self, topic: str, payload, qos: int = 0, retain: bool = False) -> bool:
        """Hand a message to paho. Returns False when offline or rejected."""
        if not self.connected:
            _mqtt_logger.warning("Not connected to MQTT; dropping publish to %s", topic)
            return False
        try:
            info = self.client.publish(topic, payload, qos=qos, retain=retain)
        except (OSError, ValueError) as e:
            self.health.publish_failures += 1
            self.health.fail(e)
            _mqtt_logger.error("Publishing to %s raised: %s", topic, e)
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self.health.publish_failures += 1
            _mqtt_logger.error("Publishing to %s failed with rc=%s", topic, info.rc)
            return False
        self.health.published += 1
        _mqtt_logger.debug("Published to %s: %s", topic, payload)
        return True

    def subscribe(self, topic: str, callback: MessageCallback, qos: int = 0) -> bool:
        """
        Subscribe and route matching messages to *callback*.
        Subscribing the same (topic, callback) pair again only renews the broker subscription.
        """
        if not self.connected:
            _mqtt_logger.warning("Not connected to MQTT; cannot subscribe to %s", topic)
            return False
        try:
            rc, _mid = self.client.subscribe(topic, qos=qos)
        except (OSError, ValueError) as e:
            self.health.fail(e)
            _mqtt_logger.error("Subscribing to %s raised: %s", topic, e)
            return False
        if rc != mqtt.MQTT_ERR_SUCCESS:
            _mqtt_logger.error("Subscribing to %s failed with rc=%s", topic, rc)
            return False

        with self._routes_lock:
            if (topic, callback) not in self._routes:
                self._routes.append((topic, callback))
            self.health.subscriptions = len({t for t, _ in self._routes})
        _mqtt_logger.info("Subscribed to %s (qos=%s)", topic, qos)
        return True

    def _dispatch_message(self, client, userdata, msg) -> None:
        """Deliver *msg* to every route whose filter matches, wildcards included."""
        with self._routes_lock:
            routes = list(self._routes)

        matched = [(sub, cb) for sub, cb in routes if mqtt.topic_matches_sub(sub, msg.topic)]
        if not matched:
            _mqtt_logger.warning("No handler for MQTT message on %s", msg.topic)
            return
        for sub, callback in matched:
            try:
                callback(client, userdata, msg)
            except Exception as e:
                _mqtt_logger.error("Handler for %s failed: %s", sub, e, exc_info=True)
