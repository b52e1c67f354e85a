import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from garagedoor.domain.exceptions import ControllerNotRunningError
from garagedoor.hardware.mqtt.mqtt_broker_wrapper import MQTTClientWrapper
from garagedoor.services.application.mqtt_bridge_service import MQTTDoorBridgeService
from tests.conftest import wait_for

ACTION_TOPIC = "homeassistant/cover/garage_door/action"
STATE_TOPIC = "homeassistant/cover/garage_door/state"
DISCOVERY_TOPIC = "homeassistant/cover/garage_door/config"


class DummyMessage:
    def __init__(self, topic: str, payload: bytes):
        self.topic = topic
        self.payload = payload


class DummyClient:
    def __init__(self):
        self.on_message = None
        self.on_connect = None
        self.on_disconnect = None
        self.subscriptions = []
        self.published = []
        self.loop_running = False

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        return None

    def connect_async(self, *_args, **_kwargs):
        return None

    def loop_start(self):
        self.loop_running = True

    def disconnect(self):
        return 0

    def loop_stop(self):
        self.loop_running = False

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))
        return (0, len(self.subscriptions))

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append(SimpleNamespace(topic=topic, payload=payload, qos=qos, retain=retain))
        return SimpleNamespace(rc=0)

    def on_topic(self, topic: str) -> list:
        return [p for p in list(self.published) if p.topic == topic]


def build_wrapper(dummy_client: DummyClient) -> MQTTClientWrapper:
    with patch(
        "garagedoor.hardware.mqtt.mqtt_broker_wrapper.create_mqtt_client",
        return_value=dummy_client,
    ):
        wrapper = MQTTClientWrapper(broker="test", port=1883)
    return wrapper


def connect(wrapper: MQTTClientWrapper) -> None:
    wrapper._on_connect(wrapper.client, None, {}, 0)


@pytest.fixture()
def dummy_client():
    return DummyClient()


@pytest.fixture()
def wrapper(dummy_client):
    return build_wrapper(dummy_client)


@pytest.fixture()
def bridge(wrapper, running_controller):
    bridge = MQTTDoorBridgeService(wrapper, running_controller, ready_timeout_s=1.0)
    yield bridge
    bridge.stop()


def announce(bridge: MQTTDoorBridgeService) -> None:
    connect(bridge.mqtt_client)
    bridge._announce_thread.join(2.0)


# ---------------------------------------------------------------------------
# Wrapper
# ---------------------------------------------------------------------------


def test_wrapper_fans_out_callbacks_without_overwrite(wrapper):
    connect(wrapper)
    events = []

    def action_cb(_client, _userdata, msg):
        events.append(("action", msg.topic, msg.payload))

    def any_cover_cb(_client, _userdata, msg):
        events.append(("cover", msg.topic))

    wrapper.subscribe(ACTION_TOPIC, action_cb)
    wrapper.subscribe("homeassistant/cover/+/action", any_cover_cb)

    wrapper._dispatch_message(wrapper.client, None, DummyMessage(ACTION_TOPIC, b"toggle"))

    assert ("action", ACTION_TOPIC, b"toggle") in events
    assert ("cover", ACTION_TOPIC) in events
    assert wrapper.client.on_message == wrapper._dispatch_message


def test_wrapper_does_not_publish_while_disconnected(wrapper, dummy_client):
    assert wrapper.publish(STATE_TOPIC, "open") is False
    assert dummy_client.published == []
    assert wrapper.health.connected is False


def test_wrapper_refused_connection_skips_hooks(wrapper):
    hook = MagicMock()
    wrapper.add_connect_hook(hook)

    wrapper._on_connect(wrapper.client, None, {}, 5)

    hook.assert_not_called()
    assert wrapper.connected is False
    assert wrapper.health.last_error is not None


def test_wrapper_connect_starts_network_loop_once(wrapper, dummy_client):
    wrapper.connect()
    wrapper.connect()

    assert dummy_client.loop_running is True
    assert wrapper.health.connects == 1

    wrapper.disconnect()
    assert dummy_client.loop_running is False


# ---------------------------------------------------------------------------
# Bridge topics and discovery
# ---------------------------------------------------------------------------


def test_bridge_topics_follow_discovery_prefix(wrapper):
    bridge = MQTTDoorBridgeService(wrapper, MagicMock(), discovery_prefix="ha", object_id="barn")

    assert bridge.action_topic == "ha/cover/barn/action"
    assert bridge.state_topic == "ha/cover/barn/state"
    assert bridge.discovery_topic == "ha/cover/barn/config"


def test_discovery_payload_describes_garage_cover(wrapper):
    bridge = MQTTDoorBridgeService(wrapper, MagicMock())

    assert bridge.build_discovery_payload() == {
        "name": "Garage Door",
        "command_topic": ACTION_TOPIC,
        "state_topic": STATE_TOPIC,
        "payload_open": "open",
        "payload_close": "close",
        "payload_stop": "stop",
        "state_open": "open",
        "state_closed": "closed",
        "device_class": "garage",
        "unique_id": "garage_door",
        "device": {
            "identifiers": ["garage_door"],
            "name": "Garage Door",
            "model": "Generic Garage Door",
            "manufacturer": "n/a",
        },
        "qos": 1,
    }


# ---------------------------------------------------------------------------
# Connect / reconnect
# ---------------------------------------------------------------------------


def test_connect_subscribes_and_announces(bridge, dummy_client, running_controller):
    announce(bridge)

    assert (ACTION_TOPIC, 1) in dummy_client.subscriptions
    assert running_controller.listener_count == 1

    discovery = dummy_client.on_topic(DISCOVERY_TOPIC)
    assert len(discovery) == 1
    assert discovery[0].retain is True
    assert json.loads(discovery[0].payload)["command_topic"] == ACTION_TOPIC

    assert wait_for(lambda: dummy_client.on_topic(STATE_TOPIC))
    state = dummy_client.on_topic(STATE_TOPIC)[0]
    assert (state.payload, state.qos, state.retain) == ("closed", 1, True)


def test_reconnect_does_not_duplicate_listener(bridge, running_controller):
    announce(bridge)
    announce(bridge)

    assert running_controller.listener_count == 1


def test_disconnect_removes_state_listener(bridge, wrapper, running_controller):
    announce(bridge)

    wrapper._on_disconnect(wrapper.client, None, 1)

    assert running_controller.listener_count == 0
    assert bridge.get_status()["listener_registered"] is False


def test_state_changes_are_published(bridge, dummy_client, running_controller):
    announce(bridge)

    running_controller.request_toggle()

    assert wait_for(lambda: any(p.payload == "open" for p in dummy_client.on_topic(STATE_TOPIC)))


def test_action_message_reaches_controller(bridge, wrapper, running_controller):
    announce(bridge)

    wrapper._dispatch_message(wrapper.client, None, DummyMessage(ACTION_TOPIC, b"open"))

    assert wait_for(lambda: running_controller.get_state_str() == "open")


def test_announce_proceeds_when_controller_never_ready(wrapper, dummy_client):
    controller = MagicMock()
    controller.wait_until_ready.return_value = False
    controller.request_state.side_effect = ControllerNotRunningError("stopped")
    bridge = MQTTDoorBridgeService(wrapper, controller, ready_timeout_s=0.01)

    announce(bridge)

    controller.wait_until_ready.assert_called_once_with(0.01)
    assert len(dummy_client.on_topic(DISCOVERY_TOPIC)) == 1


def test_stop_disconnects_and_unregisters(bridge, dummy_client, running_controller):
    bridge.start()
    announce(bridge)

    bridge.stop()

    assert running_controller.listener_count == 0
    assert dummy_client.loop_running is False


# ---------------------------------------------------------------------------
# Command mapping
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("payload", ["open", "close", "stop", "toggle", " toggle\n"])
def test_movement_commands_pulse_relay(wrapper, payload):
    controller = MagicMock()
    bridge = MQTTDoorBridgeService(wrapper, controller)

    assert bridge.handle_command(payload) is True

    controller.request_toggle.assert_called_once_with()
    controller.request_state.assert_not_called()


def test_state_command_requests_state(wrapper):
    controller = MagicMock()
    bridge = MQTTDoorBridgeService(wrapper, controller)

    assert bridge.handle_command("state") is True

    controller.request_state.assert_called_once_with()
    controller.request_toggle.assert_not_called()


@pytest.mark.parametrize("payload", ["", "OPEN", "explode"])
def test_unknown_command_is_ignored(wrapper, payload):
    controller = MagicMock()
    bridge = MQTTDoorBridgeService(wrapper, controller)

    assert bridge.handle_command(payload) is False

    controller.request_toggle.assert_not_called()
    controller.request_state.assert_not_called()


def test_command_on_stopped_controller_is_rejected(wrapper):
    controller = MagicMock()
    controller.request_toggle.side_effect = ControllerNotRunningError("stopped")
    bridge = MQTTDoorBridgeService(wrapper, controller)

    assert bridge.handle_command("toggle") is False
