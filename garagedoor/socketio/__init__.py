"""
Socket.IO Event Handlers
========================

Namespaces:
- /door - door state push and commands

Usage:
    Import the handlers before socketio.init_app(). Flask-SocketIO only
    replays handlers declared while no server exists onto servers created
    by later init_app() calls.

    from garagedoor.socketio import register_handlers
    register_handlers()
"""

import logging

logger = logging.getLogger(__name__)


def register_handlers():
    """Declare all Socket.IO event handlers. Importing twice is a no-op."""
    # Import handlers to trigger @socketio.on() decorator registration
    from . import door_handlers  # noqa: F401

    logger.debug("Socket.IO handlers registered (door)")
