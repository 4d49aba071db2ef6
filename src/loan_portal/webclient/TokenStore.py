from typing import Optional

import redis

from loan_portal.repositories.token_storage import TokenStorage
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)

# Failures of the durable medium that degrade the store to memory.
_STORAGE_ERRORS = (OSError, ValueError, redis.RedisError)


class TokenStore:
    """
    Holds at most one bearer token and mirrors it to a durable medium.

    The medium is optional. If it fails once, the store keeps working from
    memory for the rest of its life and never raises to callers.
    """

    def __init__(self, storage: Optional[TokenStorage] = None):
        self._storage = storage
        self._token: Optional[str] = None
        self._loaded = False

    @property
    def durable(self) -> bool:
        return self._storage is not None

    def get(self) -> Optional[str]:
        if not self._loaded:
            self._loaded = True
            if self._storage is not None:
                try:
                    self._token = self._storage.read()
                except _STORAGE_ERRORS as exc:
                    self._degrade("read", exc)
        return self._token

    def set(self, token: Optional[str]) -> None:
        if not token:
            self.clear()
            return
        self._token = token
        self._loaded = True
        if self._storage is not None:
            try:
                self._storage.write(token)
            except _STORAGE_ERRORS as exc:
                self._degrade("write", exc)

    def clear(self) -> None:
        self._token = None
        self._loaded = True
        if self._storage is not None:
            try:
                self._storage.remove()
            except _STORAGE_ERRORS as exc:
                self._degrade("remove", exc)

    def rebind(self, storage: Optional[TokenStorage]) -> None:
        """Move the current token to another medium and drop it from the old one."""
        token = self.get()
        self.clear()
        self._storage = storage
        if token:
            self.set(token)

    def _degrade(self, op: str, exc: Exception) -> None:
        log.warning(
            "token_store.degraded op=%s error_type=%s detail=%s",
            op,
            type(exc).__name__,
            str(exc),
        )
        self._storage = None
