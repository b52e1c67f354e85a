from __future__ import annotations

import copy
import logging

import pytest
import yaml

from garagedoor.config import AppConfig, load_config, resolve_config_path, setup_logging
from garagedoor.domain.exceptions import ConfigurationError
from tests.conftest import TEST_API_KEY_DIGEST, make_config

VALID_DOCUMENT = {
    "mode": "development",
    "bind": {"host": "0.0.0.0", "port": 8080},
    "gpio": {"toggle_pin": 11, "open_pin": 21, "closed_pin": 22},
    "api_keys": [TEST_API_KEY_DIGEST],
    "mqtt": {"enabled": False},
}


def document(**changes):
    data = copy.deepcopy(VALID_DOCUMENT)
    for dotted, value in changes.items():
        node = data
        *parents, leaf = dotted.split("__")
        for key in parents:
            node = node.setdefault(key, {})
        if value is None:
            node.pop(leaf, None)
        else:
            node[leaf] = value
    return data


def write_config(directory, data) -> str:
    path = directory / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


def test_from_mapping_reads_every_section():
    config = AppConfig.from_mapping(document())

    assert config.mode == "development"
    assert (config.bind_host, config.bind_port) == ("0.0.0.0", 8080)
    assert (config.toggle_pin, config.open_pin, config.closed_pin) == (11, 21, 22)
    assert config.api_keys == [TEST_API_KEY_DIGEST]
    assert config.mqtt_enabled is False


@pytest.mark.parametrize("missing", ["mode", "bind__port", "gpio__closed_pin", "api_keys", "mqtt__enabled"])
def test_missing_mandatory_key_is_fatal(missing):
    with pytest.raises(ConfigurationError, match="mandatory"):
        AppConfig.from_mapping(document(**{missing: None}))


def test_unknown_key_is_fatal():
    with pytest.raises(ConfigurationError, match="gpio.relay_pin is unknown"):
        AppConfig.from_mapping(document(gpio__relay_pin=4))


@pytest.mark.parametrize(
    "changes, message",
    [
        ({"mode": "staging"}, "mode"),
        ({"bind": {"host": None, "port": 8000}}, "bind.host"),
        ({"bind__host": 5}, "bind.host"),
        ({"bind__host": "  "}, "bind.host"),
        ({"bind__port": 70000}, "bind.port"),
        ({"bind__port": "8000"}, "bind.port"),
        ({"gpio__toggle_pin": -1}, "gpio.toggle_pin"),
        ({"gpio__open_pin": True}, "gpio.open_pin"),
        ({"api_keys": []}, "api_keys"),
        ({"api_keys": ["plain-text-key"]}, "bcrypt"),
        ({"mqtt__enabled": "yes"}, "mqtt.enabled"),
    ],
)
def test_invalid_values_are_rejected(changes, message):
    with pytest.raises(ConfigurationError, match=message):
        AppConfig.from_mapping(document(**changes))


def test_single_api_key_string_is_accepted():
    config = AppConfig.from_mapping(document(api_keys=TEST_API_KEY_DIGEST))

    assert config.api_keys == [TEST_API_KEY_DIGEST]


def test_mqtt_url_required_when_enabled():
    with pytest.raises(ConfigurationError, match="mqtt.url is mandatory"):
        AppConfig.from_mapping(document(mqtt__enabled=True))


def test_mqtt_url_must_be_broker_url():
    with pytest.raises(ConfigurationError, match="mqtt.url"):
        AppConfig.from_mapping(document(mqtt__enabled=True, mqtt__url="http://broker"))


@pytest.mark.parametrize(
    "url, expected",
    [
        ("mqtt://broker.local", ("broker.local", 1883, False)),
        ("tcp://10.0.0.5:1884", ("10.0.0.5", 1884, False)),
        ("mqtts://broker.local", ("broker.local", 8883, True)),
        ("ssl://broker.local:9883", ("broker.local", 9883, True)),
    ],
)
def test_mqtt_broker_parsed_from_url(url, expected):
    config = AppConfig.from_mapping(document(mqtt__enabled=True, mqtt__url=url))

    assert config.mqtt_broker == expected


def test_empty_optional_mqtt_keys_keep_defaults():
    config = AppConfig.from_mapping(
        document(mqtt__enabled=True, mqtt__url="mqtt://broker", mqtt__username="", mqtt__client_id=None)
    )

    assert config.mqtt_client_id == "garagedoor-service"
    assert config.mqtt_object_id == "garage_door"


def test_env_overrides_logging_settings(monkeypatch):
    monkeypatch.setenv("GARAGEDOOR_LOG_LEVEL", "debug")
    monkeypatch.setenv("GARAGEDOOR_DEBUG", "true")

    config = make_config()

    assert config.log_level == "debug"
    assert config.DEBUG is True


def test_unknown_log_level_is_rejected(monkeypatch):
    monkeypatch.setenv("GARAGEDOOR_LOG_LEVEL", "chatty")

    with pytest.raises(ConfigurationError, match="log level"):
        make_config()


def test_load_config_from_explicit_path(tmp_path):
    path = write_config(tmp_path, document())

    config = load_config(path)

    assert config.bind_port == 8080


def test_load_config_from_env_directory(tmp_path, monkeypatch):
    write_config(tmp_path, document(bind__port=9000))
    monkeypatch.setenv("GARAGEDOOR_CONFIG_PATH", str(tmp_path))

    assert resolve_config_path() == tmp_path / "config.yaml"
    assert load_config().bind_port == 9000


def test_load_config_missing_file(tmp_path, monkeypatch):
    monkeypatch.delenv("GARAGEDOOR_CONFIG_PATH", raising=False)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigurationError, match="not found"):
        load_config()


def test_load_config_rejects_malformed_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("mode: [development\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="parsing"):
        load_config(path)


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(path)


def test_setup_logging_does_not_duplicate_handlers(tmp_path):
    log_file = str(tmp_path / "logs" / "door.log")

    setup_logging("INFO", log_file)
    setup_logging("INFO", log_file)

    names = [h.name for h in logging.getLogger().handlers]
    assert names.count("garagedoor_console") == 1
    assert names.count("garagedoor_file") == 1
    assert (tmp_path / "logs").is_dir()

    for handler in list(logging.getLogger().handlers):
        if handler.name == "garagedoor_file":
            logging.getLogger().removeHandler(handler)
            handler.close()
