"""
Door Simulator Adapter
======================
In-memory door used off-hardware and in tests. It never fails.

The simulated door starts closed. A rising edge on the toggle output flips
both switches, so one relay pulse moves the door exactly once no matter how
long the output is held high.
"""

import logging
import threading

from .base_adapter import IDoorAdapter

logger = logging.getLogger(__name__)


class DoorSimulatorAdapter(IDoorAdapter):
    def __init__(self, toggle_pin: int = 0, open_pin: int = 0, closed_pin: int = 0):
        # Pins are kept for log output only.
        self.toggle_pin = toggle_pin
        self.open_pin = open_pin
        self.closed_pin = closed_pin
        self._lock = threading.Lock()
        self._toggle = False
        self._open = False
        self._closed = True

    def set_toggle(self, value: bool) -> None:
        with self._lock:
            rising = value and not self._toggle
            self._toggle = value
            if rising:
                self._open = not self._open
                self._closed = not self._closed
        logger.debug("Simulated toggle pin %s set to %s", self.toggle_pin, "HIGH" if value else "LOW")

    def read_open_sensor(self) -> bool:
        with self._lock:
            return self._open

    def read_closed_sensor(self) -> bool:
        with self._lock:
            return self._closed

    def reset(self) -> None:
        with self._lock:
            self._toggle = False
            self._open = False
            self._closed = True
        logger.info("Door simulator reset to closed")

    def force_sensors(self, open_asserted: bool, closed_asserted: bool) -> None:
        """Put the switches in an arbitrary combination, e.g. both asserted."""
        with self._lock:
            self._open = open_asserted
            self._closed = closed_asserted

    def get_adapter_name(self) -> str:
        return "simulator"
