"""Wire payloads for the HTTP, Socket.IO and MQTT surfaces."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from garagedoor.enums.door import DoorCommand, DoorState


class ResultEnvelope(BaseModel):
    result: Literal["ok"] = "ok"


class StateEnvelope(ResultEnvelope):
    state: DoorState


class ErrorEnvelope(BaseModel):
    result: Literal["nok"] = "nok"
    message: str


class DoorCommandMessage(BaseModel):
    """Inbound Socket.IO command, e.g. ``{"command": "toggle"}``."""

    model_config = ConfigDict(extra="ignore")

    command: DoorCommand


class DiscoveryDevice(BaseModel):
    identifiers: list[str]
    name: str = "Garage Door"
    model: str = "Generic Garage Door"
    manufacturer: str = "n/a"


class CoverDiscoveryPayload(BaseModel):
    """Home Assistant MQTT discovery document for a cover entity."""

    name: str = "Garage Door"
    command_topic: str
    state_topic: str
    payload_open: str = "open"
    payload_close: str = "close"
    payload_stop: str = "stop"
    state_open: str = DoorState.OPEN.value
    state_closed: str = DoorState.CLOSED.value
    device_class: str = "garage"
    unique_id: str
    device: DiscoveryDevice
    qos: int = Field(default=1, ge=0, le=2)
