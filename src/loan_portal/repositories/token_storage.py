from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Protocol

import redis

from loan_portal.configs.settings import Settings
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)


class TokenStorage(Protocol):
    """
    Durable medium behind a TokenStore.

    Implementations may raise OSError / redis errors; the TokenStore owns the
    degradation policy.
    """

    def read(self) -> Optional[str]: ...

    def write(self, token: str) -> None: ...

    def remove(self) -> None: ...


class FileTokenStorage:
    """One JSON file per browser session, holding exactly one key."""

    def __init__(self, directory: str | Path, session_id: str, key: str = "token"):
        self._path = Path(directory) / f"{session_id}.json"
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[str]:
        if not self._path.exists():
            return None
        payload = json.loads(self._path.read_text(encoding="utf-8"))
        value = payload.get(self._key)
        return value or None

    def write(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps({self._key: token}), encoding="utf-8")
        # replace() is atomic on POSIX, the old token never coexists with the new one
        tmp.replace(self._path)

    def remove(self) -> None:
        self._path.unlink(missing_ok=True)


class RedisTokenStorage:
    """Redis hash per browser session. Synchronous, so TokenStore operations never suspend."""

    def __init__(self, client: redis.Redis, session_id: str, key: str = "token"):
        self._client = client
        self._name = f"portal:session:{session_id}"
        self._key = key

    def read(self) -> Optional[str]:
        value = self._client.hget(self._name, self._key)
        return value or None

    def write(self, token: str) -> None:
        self._client.hset(self._name, self._key, token)

    def remove(self) -> None:
        self._client.delete(self._name)


_redis: redis.Redis | None = None


def _redis_client(settings: Settings) -> redis.Redis:
    global _redis
    if _redis is None:
        log.info("token_storage.redis.connect url=%s", settings.redis_url)
        _redis = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


def build_token_storage(settings: Settings, session_id: str) -> Optional[TokenStorage]:
    """Medium selected by `settings.token_storage`; None means in-memory only."""
    kind = settings.token_storage
    if kind == "file":
        return FileTokenStorage(settings.token_storage_dir, session_id, settings.token_storage_key)
    if kind == "redis":
        return RedisTokenStorage(_redis_client(settings), session_id, settings.token_storage_key)
    return None
