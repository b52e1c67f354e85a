"""JSON envelopes and exception-to-response mapping for the door API.

Every body carries ``result``: ``"ok"`` on success, ``"nok"`` with a
``message`` on failure. Client errors (4xx) echo the exception message;
server errors (5xx) are logged with their traceback and answered with a
generic message.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify
from werkzeug.exceptions import HTTPException

from garagedoor.domain.exceptions import GarageDoorError
from garagedoor.schemas.door import ErrorEnvelope, ResultEnvelope

_log = logging.getLogger(__name__)

_GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    401: "Unauthorized",
    404: "Resource not found",
    405: "Method not allowed",
    500: "An internal error occurred",
    501: "Not implemented",
    503: "Service unavailable",
}


def generic_message(status: int) -> str:
    return _GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500])


def success_response(data: dict[str, Any] | None = None, status: int = 200) -> Response:
    """``{"result": "ok", **data}``"""
    payload = ResultEnvelope().model_dump()
    payload.update(data or {})
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(message: str, status: int = 500) -> Response:
    """``{"result": "nok", "message": message}``"""
    response = jsonify(ErrorEnvelope(message=message).model_dump())
    response.status_code = status
    return response


def safe_error(exc: BaseException, status: int = 500, *, context: str = "") -> Response:
    """Log *exc* server-side and answer with the generic message for *status*."""
    _log.error("Request failed [%s] %s: %s", status, context, exc, exc_info=exc)
    return error_response(generic_message(status), status)


def exception_response(exc: Exception, *, context: str = "", fallback: str = "Request failed") -> Response:
    """Map any exception raised while serving a request to a JSON response.

    ``GarageDoorError`` subclasses use their ``http_status``, werkzeug
    ``HTTPException`` its ``code``; anything else is a 500.
    """
    if isinstance(exc, GarageDoorError):
        status, message = exc.http_status, str(exc)
    elif isinstance(exc, HTTPException):
        status, message = int(exc.code or 500), exc.description or ""
    else:
        status, message = 500, ""

    if status >= 500:
        return safe_error(exc, status, context=context or type(exc).__name__)
    return error_response(message or fallback, status)


def safe_route(error_message: str = "Request failed") -> Callable:
    """Route decorator: exceptions become JSON error responses via :func:`exception_response`.

    Usage::

        @door_api.post("/toggle")
        @safe_route("Failed to toggle door")
        def toggle():
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                return exception_response(exc, context=error_message, fallback=error_message)

        return wrapper

    return decorator
