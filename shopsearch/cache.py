"""Result caching with Redis primary and in-memory fallback."""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

import redis

from .config import Settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "search"


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...


def _sha1(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def query_prefix(normalized_query: str) -> str:
    return f"{KEY_PREFIX}:{_sha1(normalized_query)}:"


def cache_key(normalized_query: str, options: Mapping[str, Any]) -> str:
    """``search:<sha1(query)>:<sha1(options)>`` so one query's pages share a prefix."""
    serialized = json.dumps(dict(options), sort_keys=True, default=str)
    return f"{query_prefix(normalized_query)}{_sha1(serialized)}"


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:  # pragma: no cover
            logger.warning("Redis get failed: %s", exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value))
        except redis.RedisError as exc:  # pragma: no cover
            logger.warning("Redis set failed: %s", exc)

    def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        try:
            for key in self.client.scan_iter(match=f"{prefix}*", count=100):
                deleted += self.client.delete(key)
        except redis.RedisError as exc:  # pragma: no cover
            logger.warning("Redis delete failed: %s", exc)
        return deleted


class InMemoryCache:
    def __init__(self, clock=time.time) -> None:
        self._store: Dict[str, tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._store.get(key)
            if not value:
                return None
            expires_at, payload = value
            if expires_at < self._clock():
                self._store.pop(key, None)
                return None
            return payload

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            self._store[key] = (self._clock() + ttl, value)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._store if key.startswith(prefix)]
            for key in doomed:
                del self._store[key]
        return len(doomed)


def build_cache(settings: Settings) -> CacheBackend | None:
    if not settings.cache_enabled:
        logger.info("Result cache disabled")
        return None
    try:
        client = redis.Redis(host=settings.redis_host, port=settings.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s:%s", settings.redis_host, settings.redis_port)
        return RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        return InMemoryCache()
