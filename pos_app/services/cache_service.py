"""
Redis cache for remote listings used by the POS screen.

Entries live under {prefix}:{module}:{signature}. When Redis is disabled or
unreachable every read misses and every write is skipped, so callers always
fall through to the remote source.
"""

import json
import logging
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)


class CacheService:
    """Cache-aside store keyed by query signature, invalidated per module."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled = False
        self._prefix = 'pos'
        self._default_ttl = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect using REDIS_URL; stay disabled when the ping fails."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'pos')
        self._default_ttl = app.config.get('CACHE_DEFAULT_TTL', 60)

        if not self._enabled:
            logger.info("[CACHE] Disabled via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                health_check_interval=30,
            )
            self.client.ping()
            logger.info(f"[CACHE] Connected to {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unavailable ({e}); listings will not be cached")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        if not self._enabled or self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def key_for(self, module: str, signature: str) -> str:
        return f"{self._prefix}:{module}:{signature}"

    def get(self, module: str, signature: str) -> Optional[Any]:
        if not self.is_available():
            return None
        try:
            raw = self.client.get(self.key_for(module, signature))
        except RedisError as e:
            logger.warning(f"[CACHE] Read failed for {module}:{signature}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"[CACHE] Corrupt entry {module}:{signature} ignored")
            return None

    def set(self, module: str, signature: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-compatible value (listings are raw API payloads)."""
        if not self.is_available():
            return False
        try:
            self.client.setex(self.key_for(module, signature), ttl or self._default_ttl, json.dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for {module}:{signature}: {e}")
            return False

    def memoize(self, module: str, signature: str, loader_fn: Callable[[], Any],
                ttl: Optional[int] = None) -> Any:
        """
        Return the cached value or load, store and return it.

        Loader errors propagate and nothing is stored, so the next call
        reaches the remote source again.
        """
        cached = self.get(module, signature)
        if cached is not None:
            logger.debug(f"[CACHE] Hit {module}:{signature}")
            return cached
        value = loader_fn()
        self.set(module, signature, value, ttl)
        return value

    def invalidate_module(self, module: str) -> int:
        """Delete every entry of a module; returns how many keys went away."""
        if not self.is_available():
            return 0
        pattern = self.key_for(module, '*')
        removed = 0
        cursor = 0
        try:
            while True:
                cursor, keys = self.client.scan(cursor, match=pattern, count=100)
                if keys:
                    pipe = self.client.pipeline()
                    for key in keys:
                        pipe.delete(key)
                    pipe.execute()
                    removed += len(keys)
                if cursor == 0:
                    break
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidation of {pattern} failed: {e}")
        return removed


def init_cache(app: Flask) -> None:
    """Attach the cache service to the app (app.extensions['cache'])."""
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['cache'] = CacheService(app)
