"""
Report cache for the analytics services.

Two backends share one contract (get / set / delete / clear / get_stats):

- AnalyticsCache: process-local dict of key -> (value, expiry). An entry is
  live while now < expiry; expired entries are removed on read.
- RedisAnalyticsCache: values JSON-serialised under a key prefix with SETEX
  expiry, for deployments running several API instances.

No negative caching and no stampede protection: concurrent misses on the
same key each recompute and the last writer wins.
"""

import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from src.common.config import Config
from src.common.logger import get_logger

logger = logging.getLogger(__name__)
metrics_logger = get_logger(__name__)

# Cache key builders
DASHBOARD_KEY = "dashboard_metrics"


def user_analytics_key(user_id: str) -> str:
    return f"user_analytics_{user_id}"


def company_analytics_key(company_name: str) -> str:
    return f"company_analytics_{company_name}"


def report_key(report_type: str, filters: Dict[str, Any]) -> str:
    encoded = json.dumps(filters or {}, sort_keys=True, default=str)
    return f"report_{report_type}_{encoded}"


@dataclass
class CacheEntry:
    """One cached value with its absolute expiry (clock seconds)."""
    data: Any
    expiry: float


class AnalyticsCache:
    """
    In-memory TTL cache.

    Args:
        default_ttl: TTL in seconds when set() is called without one
        clock: Returns the current time in seconds. Injected in tests.
    """

    def __init__(
        self,
        default_ttl: int = Config.DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is not None and self._clock() < entry.expiry:
            self._hits += 1
            metrics_logger.log_metric("cache_hit", 1)
            return entry.data

        if entry is not None:
            del self._entries[key]

        self._misses += 1
        metrics_logger.log_metric("cache_miss", 1)
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(data=value, expiry=self._clock() + ttl)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        metrics_logger.log_metric("cache_cleared", 1)

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def get_stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "backend": "memory",
            "size": len(self._entries),
            "keys": self.keys(),
            "hits": self._hits,
            "misses": self._misses,
            "hitRate": round(self._hits / lookups * 100, 2) if lookups else 0,
        }


class RedisAnalyticsCache:
    """
    Redis-backed cache with the same contract as AnalyticsCache.

    Values are stored as JSON. Pydantic models are dumped by alias so a
    cached report deserialises back through model_validate.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        prefix: str = Config.CACHE_KEY_PREFIX,
        default_ttl: int = Config.DEFAULT_CACHE_TTL,
        client=None,
    ):
        if client is None:
            import redis

            client = redis.from_url(redis_url or Config.REDIS_URL, decode_responses=True)
        self._client = client
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._hits = 0
        self._misses = 0

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        raw = self._client.get(self._key(key))
        if raw is None:
            self._misses += 1
            metrics_logger.log_metric("cache_miss", 1)
            return None

        self._hits += 1
        metrics_logger.log_metric("cache_hit", 1)
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json", by_alias=True)
        # SETEX needs whole seconds; round up so the entry never expires early
        seconds = max(1, math.ceil(ttl))
        self._client.setex(self._key(key), seconds, json.dumps(value, default=str))

    def delete(self, key: str) -> bool:
        return bool(self._client.delete(self._key(key)))

    def clear(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
        if keys:
            self._client.delete(*keys)
        metrics_logger.log_metric("cache_cleared", 1)

    def keys(self) -> List[str]:
        return [
            key[len(self._prefix):]
            for key in self._client.scan_iter(match=f"{self._prefix}*")
        ]

    def get_stats(self) -> Dict[str, Any]:
        keys = self.keys()
        lookups = self._hits + self._misses
        return {
            "backend": "redis",
            "size": len(keys),
            "keys": keys,
            "hits": self._hits,
            "misses": self._misses,
            "hitRate": round(self._hits / lookups * 100, 2) if lookups else 0,
        }


def create_cache(backend: Optional[str] = None):
    """Build the cache selected by CACHE_BACKEND ("memory" or "redis")."""
    backend = (backend or Config.CACHE_BACKEND).lower()
    if backend == "redis":
        logger.info("Using Redis analytics cache")
        return RedisAnalyticsCache()
    return AnalyticsCache()
