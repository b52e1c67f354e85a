"""
Shared test fixtures for the garage door service test suite.

Provides:
- An AppConfig with a fast bcrypt digest of the key "test"
- A door simulator and a door controller with short timings
- A Flask app (and its container) wired to that controller

Usage:
    def test_example(running_controller):
        running_controller.request_toggle()
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Callable

import bcrypt
import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from garagedoor.config import AppConfig
from garagedoor.hardware.adapters.door.simulator import DoorSimulatorAdapter
from garagedoor.services.hardware.door_controller_service import DoorControllerService

# Keep test output clean
logging.getLogger("garagedoor").setLevel(logging.WARNING)

TEST_API_KEY = "test"
TEST_API_KEY_DIGEST = bcrypt.hashpw(TEST_API_KEY.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")

FAST_POLL_S = 0.01
FAST_SETTLE_S = 0.01


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> bool:
    """Poll *predicate* until it is truthy or *timeout* expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def make_config(**overrides) -> AppConfig:
    values = {
        "api_keys": [TEST_API_KEY_DIGEST],
        "mode": "development",
        "bind_host": "127.0.0.1",
        "bind_port": 8000,
        "toggle_pin": 11,
        "open_pin": 21,
        "closed_pin": 22,
        "log_file": "",
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture()
def app_config() -> AppConfig:
    return make_config()


@pytest.fixture()
def simulator() -> DoorSimulatorAdapter:
    return DoorSimulatorAdapter(toggle_pin=11, open_pin=21, closed_pin=22)


@pytest.fixture()
def controller(simulator):
    """Stopped controller with short poll and settle times. Always stopped on teardown."""
    ctrl = DoorControllerService(simulator, poll_interval_s=FAST_POLL_S, settle_s=FAST_SETTLE_S)
    yield ctrl
    ctrl.stop()


@pytest.fixture()
def running_controller(controller):
    controller.start()
    assert controller.wait_until_ready(2.0)
    return controller


@pytest.fixture()
def app(app_config, controller):
    from garagedoor import create_app

    flask_app = create_app(app_config, door_controller=controller)
    flask_app.config["TESTING"] = True
    container = flask_app.config["CONTAINER"]
    container.start()
    assert controller.wait_until_ready(2.0)
    yield flask_app
    container.shutdown()


@pytest.fixture()
def container(app):
    return app.config["CONTAINER"]


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"x-api-key": TEST_API_KEY}
