"""
Response cache for list endpoints.

Entries live in an aiocache memory backend under per-namespace key prefixes.
Each entry is stored together with its absolute expiry and handed to the
backend with the same TTL; an entry read past its expiry is dropped. Every
namespace carries a generation counter that invalidation bumps; ``get_or_set``
refuses to store a value whose computation started before the latest
invalidation.
"""

import asyncio
import hashlib
import inspect
import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from aiocache import Cache
from aiocache.serializers import JsonSerializer

from lrems_backend.permissions.predicate import RecordPredicate
from lrems_backend.settings import settings

logger = logging.getLogger(__name__)

BOOKS_NAMESPACE = "books:list"
MONITORING_NAMESPACE = "monitoring:list"

DEFAULT_TTL = 120


def build_cache_key(predicate: RecordPredicate, **params) -> str:
    """Key derived from the effective access and the request shape.

    Principals with identical effective access share a cache line.
    """
    key_source = json.dumps(
        {"predicate": predicate.canonical(), "params": params},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(key_source.encode()).hexdigest()


def default_ttls() -> Dict[str, int]:
    return {
        BOOKS_NAMESPACE: settings.BOOKS_CACHE_TTL,
        MONITORING_NAMESPACE: settings.MONITORING_CACHE_TTL,
    }


class ResponseCache:

    def __init__(
        self,
        backend: Optional[Cache] = None,
        ttls: Optional[Dict[str, int]] = None,
        enabled: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
        prefix: Optional[str] = None,
    ):
        # Memory backends may share storage between instances
        self._root = prefix or f"lrems:{uuid.uuid4().hex[:8]}"
        self._cache = backend if backend is not None else Cache(Cache.MEMORY, serializer=JsonSerializer())
        self._ttls = ttls if ttls is not None else default_ttls()
        self._enabled = settings.ENABLE_CACHE if enabled is None else enabled
        self._clock = clock

        self._lock = asyncio.Lock()
        self._epoch = 0
        self._generations: Dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _prefix(self, namespace: str) -> str:
        # Memory backend clears by prefix, the separator keeps "books:list" from matching "books:listing"
        return f"{self._root}:{namespace}:"

    def ttl_for(self, namespace: str) -> int:
        return self._ttls.get(namespace, DEFAULT_TTL)

    def generation(self, namespace: str) -> int:
        return self._epoch + self._generations.get(namespace, 0)

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        if not self._enabled:
            return None

        try:
            envelope = await self._cache.get(key, namespace=self._prefix(namespace))
        except Exception as e:
            logger.warning(f"Cache get failed for {namespace}: {e}")
            return None

        if envelope is None:
            logger.debug(f"Cache miss {namespace}:{key}")
            return None

        if envelope.get("expires_at", 0) <= self._clock():
            logger.debug(f"Cache entry expired {namespace}:{key}")
            try:
                await self._cache.delete(key, namespace=self._prefix(namespace))
            except Exception as e:
                logger.warning(f"Cache delete failed for {namespace}: {e}")
            return None

        logger.debug(f"Cache hit {namespace}:{key}")
        return envelope.get("value")

    async def set(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None, generation: Optional[int] = None) -> bool:
        """Store ``value``.

        When ``generation`` is given the value is only stored if the namespace
        was not invalidated since that generation was read. Returns whether the
        value was stored.
        """
        if not self._enabled:
            return False

        ttl = ttl if ttl is not None else self.ttl_for(namespace)

        async with self._lock:
            if generation is not None and generation != self.generation(namespace):
                logger.debug(f"Discarding stale result for {namespace}:{key}")
                return False

            envelope = {"value": value, "expires_at": self._clock() + ttl}

            try:
                await self._cache.set(key, envelope, ttl=ttl, namespace=self._prefix(namespace))
            except Exception as e:
                logger.warning(f"Cache set failed for {namespace}: {e}")
                return False

        return True

    async def invalidate_namespace(self, namespace: str):
        async with self._lock:
            self._generations[namespace] = self._generations.get(namespace, 0) + 1
            try:
                await self._cache.clear(namespace=self._prefix(namespace))
            except Exception as e:
                logger.warning(f"Cache invalidation failed for {namespace}: {e}")

        logger.debug(f"Invalidated cache namespace {namespace}")

    async def clear_all(self):
        async with self._lock:
            self._epoch += 1
            try:
                await self._cache.clear(namespace=f"{self._root}:")
            except Exception as e:
                logger.warning(f"Cache clear failed: {e}")

        logger.info("Response cache cleared")

    async def get_or_set(
        self,
        namespace: str,
        key: str,
        compute: Callable[[], Union[Any, Awaitable[Any]]],
        ttl: Optional[int] = None,
    ) -> Tuple[Any, bool]:
        """Return ``(value, hit)``, computing and caching on a miss"""
        cached = await self.get(namespace, key)

        if cached is not None:
            return cached, True

        generation = self.generation(namespace)

        value = compute()
        if inspect.isawaitable(value):
            value = await value

        await self.set(namespace, key, value, ttl=ttl, generation=generation)

        return value, False

    async def close(self):
        try:
            await self._cache.close()
        except Exception as e:
            logger.warning(f"Cache close failed: {e}")
