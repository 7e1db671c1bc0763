"""Tests for the expiring key-value stores."""

from unittest.mock import Mock

import pytest
import redis

from property_core.exceptions import ErrorCode, ExternalServiceError
from property_core.utils.key_value_store import InMemoryKeyValueStore, RedisKeyValueStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestInMemoryKeyValueStore:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        return InMemoryKeyValueStore(clock=clock)

    def test_set_and_get(self, store):
        store.set("k", "v")

        assert store.get("k") == "v"
        assert store.get("missing") is None

    def test_values_are_strings(self, store):
        store.set("k", 7)

        assert store.get("k") == "7"

    def test_ttl_expiry(self, store, clock):
        store.set("k", "v", ttl_seconds=60)

        clock.now = 59
        assert store.get("k") == "v"
        clock.now = 60
        assert store.get("k") is None

    def test_increment_keeps_first_expiry(self, store, clock):
        assert store.increment("n", ttl_seconds=100) == 1
        clock.now = 90
        assert store.increment("n", ttl_seconds=100) == 2

        clock.now = 100
        assert store.get("n") is None
        assert store.increment("n", ttl_seconds=100) == 1

    def test_increment_without_ttl(self, store, clock):
        store.increment("n")
        clock.now = 10**9

        assert store.get("n") == "1"

    def test_delete(self, store):
        store.set("k", "v")

        store.delete("k")
        store.delete("never-set")

        assert store.get("k") is None


class TestRedisKeyValueStore:
    @pytest.fixture
    def client(self):
        return Mock(spec=redis.Redis)

    @pytest.fixture
    def store(self, client):
        return RedisKeyValueStore(client=client)

    def test_needs_client_or_url(self):
        with pytest.raises(ValueError):
            RedisKeyValueStore()

    def test_get_decodes_bytes(self, store, client):
        client.get.return_value = b"3"

        assert store.get("login_attempts:a") == "3"

    def test_set_with_ttl(self, store, client):
        store.set("k", "v", ttl_seconds=30)

        client.set.assert_called_once_with("k", "v", ex=30)

    def test_first_increment_sets_expiry(self, store, client):
        client.incr.return_value = 1

        assert store.increment("k", ttl_seconds=900) == 1
        client.expire.assert_called_once_with("k", 900)

    def test_later_increments_keep_expiry(self, store, client):
        client.incr.return_value = 4

        assert store.increment("k", ttl_seconds=900) == 4
        client.expire.assert_not_called()

    def test_delete(self, store, client):
        store.delete("k")

        client.delete.assert_called_once_with("k")

    @pytest.mark.parametrize("method,args", [("get", ("k",)), ("increment", ("k", 60))])
    def test_redis_errors_become_external_service_errors(self, store, client, method, args):
        client.get.side_effect = redis.ConnectionError("refused")
        client.incr.side_effect = redis.ConnectionError("refused")

        with pytest.raises(ExternalServiceError) as exc_info:
            getattr(store, method)(*args)

        assert exc_info.value.error_code == ErrorCode.CONNECTION_ERROR
        assert exc_info.value.context["service_name"] == "redis"
        assert isinstance(exc_info.value.cause, redis.ConnectionError)
