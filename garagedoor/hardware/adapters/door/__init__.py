"""
Door Adapters
=============
Hardware abstraction for the door's toggle relay and its two limit switches.

Adapter Types:
    - DoorSimulatorAdapter: deterministic in-memory door (development, tests)
    - GPIODoorAdapter: Raspberry Pi GPIO pins via RPi.GPIO (production)
"""

from .base_adapter import AdapterError, IDoorAdapter
from .factory import create_door_adapter
from .gpio_adapter import GPIODoorAdapter
from .simulator import DoorSimulatorAdapter

__all__ = [
    "AdapterError",
    "DoorSimulatorAdapter",
    "GPIODoorAdapter",
    "IDoorAdapter",
    "create_door_adapter",
]
