"""Chooses the door adapter variant from the configured operating mode."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from garagedoor.domain.exceptions import ConfigurationError
from garagedoor.enums.door import OperatingMode

from .base_adapter import IDoorAdapter
from .gpio_adapter import GPIODoorAdapter
from .simulator import DoorSimulatorAdapter

if TYPE_CHECKING:
    from garagedoor.config import AppConfig

logger = logging.getLogger(__name__)

_ADAPTERS: dict[OperatingMode, type[IDoorAdapter]] = {
    OperatingMode.DEVELOPMENT: DoorSimulatorAdapter,
    OperatingMode.PRODUCTION: GPIODoorAdapter,
}


def create_door_adapter(config: AppConfig) -> IDoorAdapter:
    """Build the adapter for ``config.mode``; an unknown mode is a ConfigurationError."""
    try:
        mode = OperatingMode(config.mode)
    except ValueError:
        raise ConfigurationError(f"Unknown mode: {config.mode!r}") from None

    adapter_cls = _ADAPTERS[mode]
    logger.info("Using %s for mode '%s'", adapter_cls.__name__, mode.value)
    return adapter_cls(
        toggle_pin=config.toggle_pin,
        open_pin=config.open_pin,
        closed_pin=config.closed_pin,
    )
