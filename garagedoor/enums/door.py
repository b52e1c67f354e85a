from enum import Enum


class DoorState(str, Enum):
    """Logical door position derived from the two limit switches."""

    OPEN = "open"
    CLOSED = "closed"
    UNKNOWN = "unknown"

    @classmethod
    def from_sensors(cls, open_asserted: bool, closed_asserted: bool) -> "DoorState":
        """Map a sensor pair to a state; both or neither asserted is UNKNOWN."""
        if open_asserted and not closed_asserted:
            return cls.OPEN
        if closed_asserted and not open_asserted:
            return cls.CLOSED
        return cls.UNKNOWN


class DoorCommand(str, Enum):
    """Intents accepted by the door controller's command queue."""

    TOGGLE = "toggle"
    STATE = "state"


class MQTTAction(str, Enum):
    """Payloads accepted on the Home Assistant cover action topic."""

    OPEN = "open"
    CLOSE = "close"
    STOP = "stop"
    TOGGLE = "toggle"
    STATE = "state"

    def to_command(self) -> DoorCommand:
        # The door has a single relay, so every movement request is a pulse.
        if self is MQTTAction.STATE:
            return DoorCommand.STATE
        return DoorCommand.TOGGLE


class OperatingMode(str, Enum):
    """Selects the door adapter variant."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
