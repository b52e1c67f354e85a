"""Socket.IO extension instance shared by the app factory and the handlers."""

import logging
import os

from flask import Flask
from flask_socketio import SocketIO

logger = logging.getLogger(__name__)


def _socketio_transports() -> list[str]:
    """Engine.IO transports, overridable with ``GARAGEDOOR_SOCKETIO_TRANSPORTS=polling``."""
    raw = os.getenv("GARAGEDOOR_SOCKETIO_TRANSPORTS", "")
    transports = [t.strip() for t in raw.split(",") if t.strip()]
    return transports or ["polling", "websocket"]


# Threading mode lets the door controller's threads emit directly.
socketio = SocketIO(
    async_mode="threading",
    logger=False,
    engineio_logger=False,
    ping_timeout=60,
    ping_interval=25,
    transports=_socketio_transports(),
)


def init_extensions(app: Flask, cors_origins: str) -> None:
    """Bind Socket.IO to *app*. ``cors_origins`` is ``"*"`` or a comma-separated list."""
    origins: str | list[str] = cors_origins or "*"
    if origins != "*":
        origins = [o.strip() for o in origins.split(",") if o.strip()]

    socketio.init_app(app, cors_allowed_origins=origins)
    logger.info("Socket.IO initialized (cors=%s)", origins)
