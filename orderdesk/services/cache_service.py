"""
Redis cache for the catalog lists an order form loads on every visit
(discounts, payment conditions).

Cache-aside: a hit returns the stored list, a miss runs the loader and
stores its result for the module's TTL. With Redis down or disabled every
lookup simply runs the loader.
"""

import logging
import json
from typing import Any, Optional, Callable
from datetime import datetime, date
from decimal import Decimal

import redis
from redis.exceptions import RedisError
from flask import Flask, current_app

logger = logging.getLogger(__name__)

_DECIMAL_TAG = '__decimal__'


def _encode(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return {_DECIMAL_TAG: str(obj)}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Cannot cache value of type {type(obj).__name__}")


def _decode(dct: dict) -> Any:
    if _DECIMAL_TAG in dct:
        return Decimal(dct[_DECIMAL_TAG])
    return dct


class CacheService:
    """
    Catalog list cache.

    Keys: {CACHE_KEY_PREFIX}:{module}:{key}, e.g. "orderdesk:discounts:active".
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled = False
        self._prefix = 'orderdesk'

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect to REDIS_URL unless CACHE_ENABLED is off; a failed ping disables the cache."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'orderdesk')

        if not self._enabled:
            logger.info("[CACHE] Disabled by config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Connected to {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable ({e}), running without cache")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        if not self._enabled or not self.client:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def key(self, module: str, key: str) -> str:
        return f"{self._prefix}:{module}:{key}"

    def get(self, module: str, key: str) -> Optional[Any]:
        """Cached value, or None on a miss or any Redis/decoding error."""
        if not self.is_available():
            return None
        try:
            raw = self.client.get(self.key(module, key))
            return None if raw is None else json.loads(raw, object_hook=_decode)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Read {module}:{key} failed: {e}")
            return None

    def set(self, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.is_available():
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(self.key(module, key), ttl, json.dumps(value, default=_encode))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write {module}:{key} failed: {e}")
            return False

    def memoize(self, module: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value or load, store and return it."""
        cached = self.get(module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(module, key, value, ttl)
        return value


def init_cache(app: Flask) -> CacheService:
    """Create the cache service for this app."""
    cache = CacheService(app)
    app.extensions['cache'] = cache
    return cache


def get_cache() -> CacheService:
    """Cache service of the current app."""
    cache = current_app.extensions.get('cache')
    if cache is None:
        raise RuntimeError("Cache not initialized.")
    return cache
