from __future__ import annotations

import atexit
import contextlib
import logging
import signal

from flask import Flask, request

from garagedoor.blueprints.api import door_api
from garagedoor.blueprints.status import status_bp
from garagedoor.config import AppConfig, load_config, setup_logging
from garagedoor.extensions import init_extensions, socketio
from garagedoor.middleware.api_auth import init_api_key_protection
from garagedoor.utils.http import exception_response


def create_app(config: AppConfig | None = None, *, bootstrap_runtime: bool = False, door_controller=None) -> Flask:
    """Build the Flask application and its ServiceContainer.

    Args:
        config: Configuration to use instead of reading ``config.yaml``.
        bootstrap_runtime: Start the door controller and MQTT, and install
            shutdown handlers for SIGINT/SIGTERM and interpreter exit.
        door_controller: Prebuilt door controller, e.g. one with short timings.
    """
    config = config or load_config()

    # Configure logging early so container startup is visible.
    setup_logging(level=config.log_level, log_file=config.log_file, debug=config.DEBUG)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    # Handlers must be declared before init_app so that every app instance gets them.
    from garagedoor.socketio import register_handlers

    register_handlers()

    # Socket.IO before the container: the state emitter emits through it.
    init_extensions(flask_app, config.socketio_cors_origins)

    from garagedoor.services.container import ServiceContainer

    container = ServiceContainer.build(config, door_controller=door_controller)
    flask_app.config["CONTAINER"] = container

    init_api_key_protection(flask_app)

    @flask_app.after_request
    def _log_request(response):
        logging.getLogger("garagedoor.http").info("%s %s -> %s", request.method, request.path, response.status_code)
        return response

    @flask_app.errorhandler(Exception)
    def _handle_error(exc):
        return exception_response(exc, context="unhandled")

    flask_app.register_blueprint(status_bp)
    flask_app.register_blueprint(door_api)

    if bootstrap_runtime:
        _install_shutdown_handlers(container)
        container.start()
    else:
        logging.info("Door runtime not started (bootstrap_runtime=False)")

    logging.getLogger(__name__).info("Garage door service initialized (mode=%s).", config.mode)
    return flask_app


def _install_shutdown_handlers(container) -> None:
    """Run ``container.shutdown()`` on SIGINT, SIGTERM and interpreter exit."""

    def _shutdown(reason: str) -> None:
        logging.info("Shutting down garage door service (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during shutdown: %s", exc)

    def _on_signal(signum: int, _frame: object) -> None:
        _shutdown(signal.Signals(signum).name)
        raise SystemExit(0)

    atexit.register(_shutdown, "atexit")
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Only possible from the main thread.
        with contextlib.suppress(OSError, ValueError):
            signal.signal(sig, _on_signal)


__all__ = ["create_app", "socketio"]
