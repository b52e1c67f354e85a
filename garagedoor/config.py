"""
Configuration for the garage door service
=========================================
Door settings (operating mode, bind address, GPIO pins, API keys, MQTT) are
read once from ``config.yaml``. Logging and Socket.IO settings come from
environment variables. Also sets up the logging configuration.
"""

from __future__ import annotations

import logging
import os
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from garagedoor.domain.exceptions import ConfigurationError
from garagedoor.enums.door import OperatingMode

CONFIG_FILENAME = "config.yaml"
CONFIG_PATH_ENV = "GARAGEDOOR_CONFIG_PATH"

# All known configuration keys, and whether they are mandatory.
KNOWN_KEYS: dict[str, bool] = {
    "mode": True,
    "bind.host": True,
    "bind.port": True,
    "gpio.toggle_pin": True,
    "gpio.open_pin": True,
    "gpio.closed_pin": True,
    "api_keys": True,
    "mqtt.enabled": True,
    "mqtt.url": False,
    "mqtt.username": False,
    "mqtt.password": False,
    "mqtt.client_id": False,
    "mqtt.discovery_prefix": False,
    "mqtt.object_id": False,
}

# Dotted config key -> AppConfig field
_FIELD_FOR_KEY: dict[str, str] = {
    "mode": "mode",
    "bind.host": "bind_host",
    "bind.port": "bind_port",
    "gpio.toggle_pin": "toggle_pin",
    "gpio.open_pin": "open_pin",
    "gpio.closed_pin": "closed_pin",
    "api_keys": "api_keys",
    "mqtt.enabled": "mqtt_enabled",
    "mqtt.url": "mqtt_url",
    "mqtt.username": "mqtt_username",
    "mqtt.password": "mqtt_password",
    "mqtt.client_id": "mqtt_client_id",
    "mqtt.discovery_prefix": "mqtt_discovery_prefix",
    "mqtt.object_id": "mqtt_object_id",
}

MQTT_SCHEMES = {"mqtt", "tcp"}
MQTT_TLS_SCHEMES = {"mqtts", "ssl", "tls"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


@dataclass
class AppConfig:
    """Runtime configuration. Treated as read-only once the service has started."""

    api_keys: list[str]
    mode: str = OperatingMode.DEVELOPMENT.value
    bind_host: str = "127.0.0.1"
    bind_port: int = 8000
    toggle_pin: int = 17
    open_pin: int = 27
    closed_pin: int = 22

    mqtt_enabled: bool = False
    mqtt_url: str = ""
    mqtt_username: str = ""
    mqtt_password: str = ""
    mqtt_client_id: str = "garagedoor-service"
    mqtt_discovery_prefix: str = "homeassistant"
    mqtt_object_id: str = "garage_door"

    DEBUG: bool = field(default_factory=lambda: _env_bool("GARAGEDOOR_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("GARAGEDOOR_LOG_LEVEL", "INFO"))
    # Empty string disables the file handler.
    log_file: str = field(default_factory=lambda: os.getenv("GARAGEDOOR_LOG_FILE", "logs/garagedoor.log"))
    socketio_cors_origins: str = field(default_factory=lambda: os.getenv("GARAGEDOOR_SOCKETIO_CORS", "*"))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        valid_modes = {m.value for m in OperatingMode}
        if self.mode not in valid_modes:
            raise ConfigurationError("mode must be either 'development' or 'production'")

        if not isinstance(self.bind_host, str) or not self.bind_host.strip():
            raise ConfigurationError("bind.host must be a non-empty string")

        if not isinstance(self.bind_port, int) or isinstance(self.bind_port, bool) or not 0 <= self.bind_port <= 65535:
            raise ConfigurationError("bind.port must be a valid port number")

        for key, value in (
            ("gpio.toggle_pin", self.toggle_pin),
            ("gpio.open_pin", self.open_pin),
            ("gpio.closed_pin", self.closed_pin),
        ):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(f"{key} must be a valid pin number")

        if isinstance(self.api_keys, str):
            self.api_keys = [self.api_keys]
        if not self.api_keys:
            raise ConfigurationError("api_keys must contain at least one key")
        for digest in self.api_keys:
            if not isinstance(digest, str) or not digest.startswith("$2") or len(digest) != 60:
                raise ConfigurationError("api_keys must contain bcrypt digests")

        if not isinstance(self.mqtt_enabled, bool):
            raise ConfigurationError("mqtt.enabled must be true or false")
        if self.mqtt_enabled:
            if not self.mqtt_url:
                raise ConfigurationError("mqtt.url is mandatory when mqtt is enabled")
            parsed = urlparse(self.mqtt_url)
            if parsed.scheme not in MQTT_SCHEMES | MQTT_TLS_SCHEMES or not parsed.hostname:
                raise ConfigurationError(f"mqtt.url is not a valid broker url: {self.mqtt_url!r}")
            if not self.mqtt_object_id or not self.mqtt_discovery_prefix:
                raise ConfigurationError("mqtt.object_id and mqtt.discovery_prefix must not be empty")

        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigurationError(f"Unknown log level: {self.log_level!r}")

    @property
    def mqtt_broker(self) -> tuple[str, int, bool]:
        """``(host, port, use_tls)`` parsed from ``mqtt_url``."""
        parsed = urlparse(self.mqtt_url)
        use_tls = parsed.scheme in MQTT_TLS_SCHEMES
        return parsed.hostname or "localhost", parsed.port or (8883 if use_tls else 1883), use_tls

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> AppConfig:
        """Build a config from a parsed ``config.yaml`` document."""
        if not isinstance(data, dict):
            raise ConfigurationError("configuration file must contain a mapping")
        flat = _flatten(data)
        _verify_keys(flat)
        # An empty optional key (e.g. "username:") keeps its default.
        values = {
            _FIELD_FOR_KEY[key]: value
            for key, value in flat.items()
            if value is not None or KNOWN_KEYS[key]
        }
        return cls(**values)

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for the Flask application."""
        return {
            "ENV": self.mode,
            "DEBUG": self.DEBUG,
            "GARAGEDOOR_MODE": self.mode,
            "MQTT_ENABLED": self.mqtt_enabled,
            "SOCKETIO_CORS_ALLOWED_ORIGINS": self.socketio_cors_origins,
        }


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def _verify_keys(flat: dict[str, Any]) -> None:
    """Every mandatory key must be set and no unknown key may be present."""
    for key, mandatory in KNOWN_KEYS.items():
        if mandatory and key not in flat:
            raise ConfigurationError(f"configuration property {key} is mandatory")
    for key in flat:
        if key not in KNOWN_KEYS:
            raise ConfigurationError(f"configuration property {key} is unknown")


def resolve_config_path(path: str | os.PathLike | None = None) -> Path:
    """Locate ``config.yaml``: explicit path, then $GARAGEDOOR_CONFIG_PATH, then the working directory."""
    if path is not None:
        candidate = Path(path)
        return candidate / CONFIG_FILENAME if candidate.is_dir() else candidate

    search_dirs = []
    env_dir = os.getenv(CONFIG_PATH_ENV)
    if env_dir:
        search_dirs.append(Path(env_dir))
    search_dirs.append(Path.cwd())

    for directory in search_dirs:
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    raise ConfigurationError(
        f"{CONFIG_FILENAME} not found in: {', '.join(str(d) for d in search_dirs)}"
    )


def load_config(path: str | os.PathLike | None = None) -> AppConfig:
    """Read, verify and validate the configuration file."""
    config_path = resolve_config_path(path)
    try:
        with open(config_path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except OSError as e:
        raise ConfigurationError(f"cannot read {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"fatal error while parsing {config_path}: {e}") from e

    config = AppConfig.from_mapping(data)
    logging.getLogger("config_loader").info("Loaded configuration from %s (mode=%s)", config_path, config.mode)
    return config


def setup_logging(level: str = "INFO", log_file: str = "", debug: bool = False) -> None:
    """Setup logging configuration."""
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.getLevelName(level.upper())

    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "garagedoor_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "garagedoor_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "garagedoor_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if log_file and not has_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "garagedoor_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"garagedoor_console", "garagedoor_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)
