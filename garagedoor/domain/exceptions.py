"""Centralized exception hierarchy for the garage door service.

All domain and service exceptions inherit from :class:`GarageDoorError` so
that callers can catch a single base class when they need a broad safety net,
yet still match on specific subclasses where narrower handling is appropriate.

HTTP error handling (see ``garagedoor/utils/http.safe_route``) maps these to
the correct status codes automatically.

Hierarchy
---------
::

    GarageDoorError (base, 500)
    ├── ConfigurationError        (500, missing / invalid config)
    ├── DeviceError               (503, hardware communication)
    │   └── AdapterError          (503, adapter I/O failure)
    ├── UnsupportedOperationError (501, operation not available on this adapter)
    ├── ControllerNotRunningError (503, request on a stopped controller)
    ├── AuthenticationError       (401, missing / invalid API key)
    └── InvalidCommandError       (400, unknown textual command)
"""

from __future__ import annotations


class GarageDoorError(Exception):
    """Base exception for all garage door service errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, only returned to the
        HTTP client for 4xx statuses).
    detail:
        Optional machine-readable context dict for structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class AuthenticationError(GarageDoorError):
    """Missing or invalid API key (HTTP 401)."""

    http_status: int = 401


class InvalidCommandError(GarageDoorError):
    """Caller sent a command the door does not understand (HTTP 400)."""

    http_status: int = 400


# ── Server errors (5xx) ──────────────────────────────────────────────


class ConfigurationError(GarageDoorError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500


class DeviceError(GarageDoorError):
    """Hardware communication failure (HTTP 503)."""

    http_status: int = 503


class AdapterError(DeviceError):
    """A door adapter could not drive the toggle line or read a sensor."""


class UnsupportedOperationError(GarageDoorError):
    """The active adapter does not implement the requested operation (HTTP 501)."""

    http_status: int = 501


class ControllerNotRunningError(GarageDoorError):
    """A command was requested while the door controller is stopped (HTTP 503)."""

    http_status: int = 503
