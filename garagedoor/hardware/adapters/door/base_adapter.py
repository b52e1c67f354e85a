"""
Base Door Adapter Interface
===========================
Abstract interface that both door adapters implement.
"""

from abc import ABC, abstractmethod

from garagedoor.domain.exceptions import AdapterError

__all__ = ["AdapterError", "IDoorAdapter"]


class IDoorAdapter(ABC):
    """
    Abstract interface for the door's physical I/O.

    A door is wired with one output line (the toggle relay) and two input
    lines (the "fully open" and "fully closed" switches). A relay pulse is
    ``set_toggle(True)`` followed by ``set_toggle(False)``; timing is owned
    by the caller.

    Required Methods (must override):
        - set_toggle(): Drive the toggle output
        - read_open_sensor(): Read the "fully open" switch
        - read_closed_sensor(): Read the "fully closed" switch
        - reset(): Return to the canonical closed state

    Optional Methods:
        - cleanup(): Release pins on shutdown
    """

    @abstractmethod
    def set_toggle(self, value: bool) -> None:
        """
        Drive the toggle output high (True) or low (False).

        Raises:
            AdapterError: If the output could not be written
        """

    @abstractmethod
    def read_open_sensor(self) -> bool:
        """
        Returns:
            True when the "fully open" switch is asserted

        Raises:
            AdapterError: If the input could not be read
        """

    @abstractmethod
    def read_closed_sensor(self) -> bool:
        """
        Returns:
            True when the "fully closed" switch is asserted

        Raises:
            AdapterError: If the input could not be read
        """

    @abstractmethod
    def reset(self) -> None:
        """
        Return the door to its canonical closed state.

        Raises:
            UnsupportedOperationError: On adapters driving real hardware
        """

    @abstractmethod
    def get_adapter_name(self) -> str:
        """Short identifier used in logs and diagnostics."""

    def cleanup(self) -> None:
        """Release resources (optional). Called once on shutdown."""
        return None
