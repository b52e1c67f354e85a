"""
Enums Module
============

Enumeration types shared across the garage door service.
"""

from garagedoor.enums.door import DoorCommand, DoorState, MQTTAction, OperatingMode

__all__ = ["DoorCommand", "DoorState", "MQTTAction", "OperatingMode"]
