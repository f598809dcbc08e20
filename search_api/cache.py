"""
Redis-backed response cache.

Keys are ``<prefix>:<identifier>:<k=v&...>`` with parameters sorted so the
same request always hits the same entry. Every Redis error is logged and
treated as a miss; the cache never fails a request.
"""

import json
import logging

import redis

from search_api import telemetry
from search_api.config import CACHE_TTL, REDIS_URL

logger = logging.getLogger("cache")


class SearchCache:
    """JSON values in Redis with per-kind TTLs.

    Args:
        client: A ``redis.Redis`` instance, or ``None`` to disable caching.
    """

    def __init__(self, client=None):
        self.client = client

    @classmethod
    def from_env(cls) -> "SearchCache":
        if not REDIS_URL:
            logger.info("REDIS_URL not set, response cache disabled")
            return cls(None)
        client = redis.Redis.from_url(REDIS_URL, decode_responses=True, socket_timeout=5)
        logger.info("Response cache enabled")
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @staticmethod
    def generate_key(prefix: str, identifier: str, params: dict | None = None) -> str:
        key = f"{prefix}:{identifier}"
        if params:
            parts = [
                f"{k}={params[k]}" for k in sorted(params) if params[k] is not None
            ]
            if parts:
                key += ":" + "&".join(parts)
        return key

    @staticmethod
    def ttl_for(kind: str) -> int:
        return CACHE_TTL.get(kind, CACHE_TTL["default"])

    def get(self, key: str):
        if not self.enabled:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Cache get failed for %s: %s", key, e)
            telemetry.CACHE_LOOKUPS.labels(result="error").inc()
            return None

        if raw is None:
            telemetry.CACHE_LOOKUPS.labels(result="miss").inc()
            return None
        try:
            value = json.loads(raw)
        except ValueError as e:
            logger.warning("Cache entry %s is not valid JSON: %s", key, e)
            telemetry.CACHE_LOOKUPS.labels(result="error").inc()
            return None
        telemetry.CACHE_LOOKUPS.labels(result="hit").inc()
        return value

    def set(self, key: str, value, ttl: int | None = None) -> None:
        if not self.enabled:
            return
        try:
            self.client.setex(key, ttl or self.ttl_for("default"), json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Cache set failed for %s: %s", key, e)
