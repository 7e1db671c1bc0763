"""
Failed-login throttling.

Counts failed attempts per identifier (usually the email as typed; keys are
case-sensitive) in an expiring key-value store. A key is blocked once its
count reaches ``max_attempts``; the counter expires ``ttl_minutes`` after
the first failure.
"""

import logging
from typing import Optional

from ..config import get_config
from ..context.operation_context import operation
from ..utils.key_value_store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from ..utils.logger import get_logger

KEY_PREFIX = "login_attempts:"


def build_default_store() -> KeyValueStore:
    """Redis when ``security.redis_url`` is configured, in-memory otherwise."""
    redis_url = get_config().security.redis_url
    if redis_url:
        return RedisKeyValueStore(url=redis_url)
    return InMemoryKeyValueStore()


class LoginAttemptService:
    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        max_attempts: Optional[int] = None,
        ttl_minutes: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        security = get_config().security
        self.store = store if store is not None else build_default_store()
        self.max_attempts = max_attempts if max_attempts is not None else security.max_login_attempts
        self.ttl_minutes = (
            ttl_minutes if ttl_minutes is not None else security.login_attempt_ttl_minutes
        )
        self.logger = logger or get_logger()

    @staticmethod
    def _key(identifier: str) -> str:
        return f"{KEY_PREFIX}{identifier}"

    @operation()
    def record_failed_attempt(self, identifier: str) -> int:
        """Increment the counter for ``identifier`` and return the new count."""
        count = self.store.increment(self._key(identifier), ttl_seconds=self.ttl_minutes * 60)
        if count >= self.max_attempts:
            self.logger.warning(
                "Login blocked after repeated failures",
                extra={"attempts": count, "max_attempts": self.max_attempts},
            )
        return count

    def get_attempts(self, identifier: str) -> Optional[int]:
        """Current count, or None when nothing has been recorded."""
        value = self.store.get(self._key(identifier))
        return int(value) if value is not None else None

    def is_blocked(self, identifier: str) -> bool:
        return (self.get_attempts(identifier) or 0) >= self.max_attempts

    def get_remaining_attempts(self, identifier: str) -> int:
        return max(self.max_attempts - (self.get_attempts(identifier) or 0), 0)

    @operation()
    def reset_attempts(self, identifier: str) -> None:
        """Clear the counter. Safe to call when nothing was recorded."""
        self.store.delete(self._key(identifier))
