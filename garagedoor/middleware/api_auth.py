"""
API Key Middleware
==================
Enforces the ``x-api-key`` header on every door endpoint.

Instead of decorating every endpoint, this middleware hooks into Flask's
``before_request`` pipeline and raises :class:`AuthenticationError` for
requests without a valid key. The global error handler renders it as a 401
JSON response. Liveness and readiness probes stay public.

Usage in ``create_app``::

    from garagedoor.middleware.api_auth import init_api_key_protection

    init_api_key_protection(flask_app)
"""

from __future__ import annotations

import logging

from flask import Flask, current_app, request

from garagedoor.domain.exceptions import AuthenticationError
from garagedoor.security.api_keys import API_KEY_HEADER

logger = logging.getLogger(__name__)

# Blueprints that are completely exempt from key checks.
_EXEMPT_BLUEPRINTS: frozenset[str] = frozenset({"status"})


def init_api_key_protection(app: Flask) -> None:
    """Register a ``before_request`` hook that requires a valid API key.

    Parameters
    ----------
    app:
        The Flask application instance. ``app.config["CONTAINER"]`` must
        provide an ``api_key_validator``.
    """

    @app.before_request
    def _enforce_api_key():
        if request.method == "OPTIONS":
            return None

        if request.blueprint in _EXEMPT_BLUEPRINTS:
            return None

        # Unknown routes fall through to the 404 handler.
        if request.endpoint is None:
            return None

        validator = current_app.config["CONTAINER"].api_key_validator
        if validator.validate(request.headers.get(API_KEY_HEADER)):
            return None

        logger.warning(
            "Unauthorized %s to %s from %s",
            request.method,
            request.path,
            request.headers.get("X-Forwarded-For", request.remote_addr),
        )
        raise AuthenticationError("Unauthorized")
