"""
Helpers for constructing MQTT clients that work across paho-mqtt 1.x and 2.x.

The 2.x releases add a callback API version flag; the door service keeps the
v3.1.1 callback signatures (``on_connect(client, userdata, flags, rc)``).
"""

from __future__ import annotations

from typing import Any

import paho.mqtt.client as mqtt


def _legacy_callback_api_version() -> Any | None:
    callback_api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if callback_api_version is None:
        return None
    for attr in ("VERSION1", "V1"):
        if hasattr(callback_api_version, attr):
            return getattr(callback_api_version, attr)
    return None


def create_mqtt_client(
    client_id: str = "",
    *,
    username: str = "",
    password: str = "",
    use_tls: bool = False,
    **kwargs: Any,
) -> mqtt.Client:
    """
    Build an MQTT client with credentials and TLS applied.

    Args:
        client_id: Optional client identifier.
        username: Broker user; no credentials are sent when empty.
        password: Broker password, only used with ``username``.
        use_tls: Enable TLS with the system CA bundle.
        kwargs: Extra keyword arguments forwarded to the client constructor.
    """
    client_kwargs: dict[str, Any] = {"client_id": client_id or ""}
    client_kwargs["protocol"] = kwargs.pop("protocol", mqtt.MQTTv311)
    client_kwargs.update(kwargs)

    callback_value = _legacy_callback_api_version()
    if callback_value is not None:
        client_kwargs["callback_api_version"] = callback_value

    client = mqtt.Client(**client_kwargs)
    if username:
        client.username_pw_set(username, password or None)
    if use_tls:
        client.tls_set()
    return client
