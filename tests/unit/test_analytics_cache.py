"""
Unit tests for src/analytics/cache.py

Tests the report cache including:
- TTL expiry at the boundary (live strictly before expiry)
- Hit/miss statistics
- Key builders
- Redis backend serialisation through a mocked client
"""

import json
from unittest.mock import MagicMock

import pytest

from src.analytics.cache import (
    DASHBOARD_KEY,
    AnalyticsCache,
    RedisAnalyticsCache,
    create_cache,
    report_key,
    user_analytics_key,
)
from src.analytics.models import TopCompany


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    return AnalyticsCache(default_ttl=300, clock=fake_clock)


class TestAnalyticsCacheExpiry:
    """TTL semantics."""

    def test_value_live_just_before_expiry(self, cache, fake_clock):
        cache.set("k", {"v": 1}, ttl=5)
        fake_clock.advance(4.999)

        assert cache.get("k") == {"v": 1}

    def test_value_gone_just_after_expiry(self, cache, fake_clock):
        cache.set("k", {"v": 1}, ttl=5)
        fake_clock.advance(5.001)

        assert cache.get("k") is None
        assert "k" not in cache.keys()

    def test_value_gone_exactly_at_expiry(self, cache, fake_clock):
        cache.set("k", "value", ttl=5)
        fake_clock.advance(5)

        assert cache.get("k") is None

    def test_default_ttl_used_when_omitted(self, cache, fake_clock):
        cache.set("k", "value")
        fake_clock.advance(299)
        assert cache.get("k") == "value"

        fake_clock.advance(2)
        assert cache.get("k") is None

    def test_set_overwrites_and_resets_expiry(self, cache, fake_clock):
        cache.set("k", "old", ttl=5)
        fake_clock.advance(4)
        cache.set("k", "new", ttl=5)
        fake_clock.advance(4)

        assert cache.get("k") == "new"


class TestAnalyticsCacheOperations:
    """delete / clear / stats."""

    def test_missing_key_returns_none(self, cache):
        assert cache.get("missing") is None

    def test_delete(self, cache):
        cache.set("k", 1)

        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_clear_removes_everything(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert cache.keys() == []

    def test_stats_count_hits_and_misses(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("a")
        cache.get("b")

        stats = cache.get_stats()

        assert stats["backend"] == "memory"
        assert stats["size"] == 1
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hitRate"] == pytest.approx(66.67)

    def test_stats_without_lookups(self, cache):
        assert cache.get_stats()["hitRate"] == 0


class TestKeyBuilders:
    def test_static_and_user_keys(self):
        assert DASHBOARD_KEY == "dashboard_metrics"
        assert user_analytics_key("u1") == "user_analytics_u1"

    def test_report_key_independent_of_filter_order(self):
        first = report_key("user", {"userId": "u1", "companyName": "Acme"})
        second = report_key("user", {"companyName": "Acme", "userId": "u1"})

        assert first == second
        assert first.startswith("report_user_")


class TestRedisAnalyticsCache:
    """Redis backend with a mocked client."""

    @pytest.fixture
    def redis_client(self):
        return MagicMock()

    @pytest.fixture
    def redis_cache(self, redis_client):
        return RedisAnalyticsCache(prefix="test:", default_ttl=300, client=redis_client)

    def test_set_serialises_models_by_alias(self, redis_cache, redis_client):
        redis_cache.set("company", TopCompany(name="Acme", count=3, success_rate=33), ttl=600)

        key, seconds, payload = redis_client.setex.call_args[0]
        assert key == "test:company"
        assert seconds == 600
        assert json.loads(payload) == {"name": "Acme", "count": 3, "successRate": 33.0}

    def test_fractional_ttl_rounds_up(self, redis_cache, redis_client):
        redis_cache.set("k", 1, ttl=0.2)

        assert redis_client.setex.call_args[0][1] == 1

    def test_get_hit_and_miss(self, redis_cache, redis_client):
        redis_client.get.side_effect = [json.dumps({"v": 1}), None]

        assert redis_cache.get("k") == {"v": 1}
        assert redis_cache.get("k") is None
        assert redis_cache.get_stats()["hits"] == 1

    def test_clear_deletes_prefixed_keys(self, redis_cache, redis_client):
        redis_client.scan_iter.return_value = ["test:a", "test:b"]

        redis_cache.clear()

        redis_client.delete.assert_called_once_with("test:a", "test:b")


def test_create_cache_defaults_to_memory():
    assert isinstance(create_cache("memory"), AnalyticsCache)
