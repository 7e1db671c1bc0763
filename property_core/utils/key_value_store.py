"""
Expiring key-value stores.

``InMemoryKeyValueStore`` serves tests and single-process deployments;
``RedisKeyValueStore`` shares counters across processes.
"""

import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Optional, Tuple

import redis

from ..exceptions import ErrorCode, ExternalServiceError


class KeyValueStore(ABC):
    """String values with an optional time-to-live per key."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Value for ``key``, or None when absent or expired."""

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store ``value``; a TTL of None keeps it until deleted."""

    @abstractmethod
    def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        """
        Add one to the integer at ``key`` and return the new value.

        A missing key starts at zero. The TTL applies only when the key is
        created, so the window is measured from the first increment.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry else None

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = (str(value), self._expiry(ttl_seconds))

    def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                new_value, expires_at = 1, self._expiry(ttl_seconds)
            else:
                new_value, expires_at = int(entry[0]) + 1, entry[1]
            self._data[key] = (str(new_value), expires_at)
            return new_value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store; INCR is atomic on the server."""

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        if client is None:
            if not url:
                raise ValueError("RedisKeyValueStore needs a client or a url")
            client = redis.Redis.from_url(url, decode_responses=True)
        self.client = client

    @contextmanager
    def _redis_errors(self, command: str):
        try:
            yield
        except redis.RedisError as e:
            raise ExternalServiceError(
                f"Redis {command} failed: {e}",
                service_name="redis",
                error_code=ErrorCode.CONNECTION_ERROR,
                cause=e,
            ) from e

    def get(self, key: str) -> Optional[str]:
        with self._redis_errors("GET"):
            value = self.client.get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        with self._redis_errors("SET"):
            self.client.set(key, value, ex=ttl_seconds)

    def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        with self._redis_errors("INCR"):
            value = int(self.client.incr(key))
            if value == 1 and ttl_seconds:
                self.client.expire(key, ttl_seconds)
        return value

    def delete(self, key: str) -> None:
        with self._redis_errors("DEL"):
            self.client.delete(key)
