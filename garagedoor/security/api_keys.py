"""
API Key Validation
==================
Checks a presented API key against the configured bcrypt digests.

bcrypt is deliberately slow, so keys that validated once are remembered for
the life of the process and later checks are a set lookup.
"""

import logging
import threading
from typing import Iterable

import bcrypt

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def hash_api_key(api_key: str, rounds: int = 12) -> str:
    """Produce a bcrypt digest suitable for the ``api_keys`` config list."""
    return bcrypt.hashpw(api_key.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


class ApiKeyValidator:
    def __init__(self, digests: Iterable[str]):
        self._digests = [d.encode("utf-8") for d in digests]
        self._validated: set[str] = set()
        self._lock = threading.Lock()

    def validate(self, api_key: str | None) -> bool:
        if not api_key:
            return False
        with self._lock:
            if api_key in self._validated:
                return True

        candidate = api_key.encode("utf-8")
        for digest in self._digests:
            try:
                matched = bcrypt.checkpw(candidate, digest)
            except ValueError as e:
                logger.error("Invalid bcrypt digest in api_keys: %s", e)
                continue
            if matched:
                with self._lock:
                    self._validated.add(api_key)
                return True
        return False

    @property
    def cached_count(self) -> int:
        with self._lock:
            return len(self._validated)
