"""
GPIO Door Adapter
=================
Drives the toggle relay and reads the limit switches through RPi.GPIO.

Pins use BCM numbering. A switch reads as asserted when its pin is HIGH.
"""

import logging

from garagedoor.domain.exceptions import UnsupportedOperationError

from .base_adapter import AdapterError, IDoorAdapter

logger = logging.getLogger(__name__)


class GPIODoorAdapter(IDoorAdapter):
    """
    Door adapter for a Raspberry Pi.

    Attributes:
        toggle_pin (int): Output pin wired to the relay.
        open_pin (int): Input pin of the "fully open" switch.
        closed_pin (int): Input pin of the "fully closed" switch.
    """

    def __init__(self, toggle_pin: int, open_pin: int, closed_pin: int):
        self.toggle_pin = toggle_pin
        self.open_pin = open_pin
        self.closed_pin = closed_pin
        self.GPIO = self._setup_gpio()
        if self.GPIO:
            try:
                self.GPIO.setmode(self.GPIO.BCM)
                self.GPIO.setup(self.toggle_pin, self.GPIO.OUT, initial=self.GPIO.LOW)
                self.GPIO.setup(self.open_pin, self.GPIO.IN)
                self.GPIO.setup(self.closed_pin, self.GPIO.IN)
            except (RuntimeError, ValueError) as e:
                logger.error("Failed to configure door GPIO pins: %s", e)
                self.GPIO = None
            else:
                logger.info(
                    "GPIO door adapter ready (toggle=%s, open=%s, closed=%s)",
                    self.toggle_pin,
                    self.open_pin,
                    self.closed_pin,
                )
        if not self.GPIO:
            logger.warning("GPIO is not available. Door I/O will fail until the service runs on a Raspberry Pi.")

    def _setup_gpio(self):
        """Imports GPIO only if running on Raspberry Pi."""
        try:
            import RPi.GPIO as GPIO  # type: ignore

            return GPIO
        except (ImportError, RuntimeError):
            logger.error("GPIO not available. Running in non-Raspberry Pi environment.")
            return None

    def _require_gpio(self):
        if not self.GPIO:
            raise AdapterError("GPIO is not initialized")
        return self.GPIO

    def set_toggle(self, value: bool) -> None:
        gpio = self._require_gpio()
        try:
            gpio.output(self.toggle_pin, gpio.HIGH if value else gpio.LOW)
        except (RuntimeError, ValueError) as e:
            raise AdapterError(f"Failed to write toggle pin {self.toggle_pin}: {e}") from e

    def _read(self, pin: int) -> bool:
        gpio = self._require_gpio()
        try:
            return gpio.input(pin) == gpio.HIGH
        except (RuntimeError, ValueError) as e:
            raise AdapterError(f"Failed to read pin {pin}: {e}") from e

    def read_open_sensor(self) -> bool:
        return self._read(self.open_pin)

    def read_closed_sensor(self) -> bool:
        return self._read(self.closed_pin)

    def reset(self) -> None:
        raise UnsupportedOperationError("reset is not supported by the GPIO door adapter")

    def get_adapter_name(self) -> str:
        return "gpio"

    def cleanup(self) -> None:
        """Releases the GPIO pin resources."""
        if self.GPIO:
            try:
                self.GPIO.cleanup([self.toggle_pin, self.open_pin, self.closed_pin])
                logger.info("Cleaned up door GPIO pins")
            except (RuntimeError, ValueError) as e:
                logger.error("Error cleaning up door GPIO pins: %s", e)
