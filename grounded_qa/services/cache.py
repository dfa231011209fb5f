"""Response caching services."""

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

import redis.asyncio as redis

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import CacheError
from grounded_qa.models.query import SearchFilters

logger = logging.getLogger(__name__)

ANONYMOUS_OWNER = "anonymous"


def build_cache_key(
    query: str,
    filters: Optional[SearchFilters] = None,
    user_id: Optional[str] = None,
) -> str:
    """
    Generate cache key for a query.

    Args:
        query: User query; trimmed and lowercased before hashing.
        filters: Source-type filters in effect.
        user_id: Caller identity, anonymous when absent.

    Returns:
        Cache key string.
    """
    normalized = query.strip().lower()
    query_hash = hashlib.md5(normalized.encode()).hexdigest()
    owner = user_id or ANONYMOUS_OWNER
    filter_part = (filters or SearchFilters()).cache_fragment()
    return f"{settings.cache_key_prefix}:{owner}:{filter_part}:{query_hash}"


@dataclass
class CacheEntry:
    """A cached response and when it was written."""

    key: str
    response: dict
    created_at: float
    owner_id: str = ANONYMOUS_OWNER


class ResponseCache(ABC):
    """Interface the query pipeline uses to memoize responses."""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        """Return the cached response, or None when absent or expired."""

    @abstractmethod
    async def put(self, key: str, response: dict, owner_id: Optional[str] = None) -> None:
        """Store a response under key."""

    async def connect(self) -> None:
        """Open backing connections, if any."""

    async def disconnect(self) -> None:
        """Release backing connections, if any."""


class InMemoryResponseCache(ResponseCache):
    """Process-local LRU cache with a fixed TTL."""

    def __init__(
        self,
        max_entries: Optional[int] = None,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the in-memory cache.

        Args:
            max_entries: Capacity before least-recently-used entries are evicted.
            ttl: Entry lifetime in seconds.
            clock: Time source, injectable for tests.
        """
        self.max_entries = max_entries or settings.cache_max_entries
        self.ttl = ttl if ttl is not None else settings.cache_ttl
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.created_at >= self.ttl:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.response

    async def put(self, key: str, response: dict, owner_id: Optional[str] = None) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                response=response,
                created_at=self._clock(),
                owner_id=owner_id or ANONYMOUS_OWNER,
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted}")


class RedisResponseCache(ResponseCache):
    """Redis-backed cache shared between service instances."""

    def __init__(self, ttl: Optional[int] = None) -> None:
        """Initialize the cache service."""
        self.client: Optional[redis.Redis] = None
        self.ttl = ttl or settings.cache_ttl

    async def connect(self) -> None:
        """Connect to Redis."""
        try:
            self.client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                max_connections=settings.redis_pool_size,
                socket_connect_timeout=5.0,
            )
            await self.client.ping()
        except Exception as e:
            raise CacheError(f"Failed to connect to Redis: {str(e)}") from e

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self.client:
            await self.client.close()

    async def get(self, key: str) -> Optional[dict]:
        """
        Get a cached response.

        Args:
            key: Cache key.

        Returns:
            Parsed response or None if not found.
        """
        if not self.client:
            return None
        try:
            value = await self.client.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed: {str(e)}")
            return None
        if not value:
            return None
        try:
            return json.loads(value)["response"]
        except (json.JSONDecodeError, KeyError, TypeError):
            return None

    async def put(self, key: str, response: dict, owner_id: Optional[str] = None) -> None:
        """
        Store a response; Redis expires it after the TTL.

        Args:
            key: Cache key.
            response: JSON-serializable response.
            owner_id: Caller identity recorded with the entry.
        """
        if not self.client:
            return
        payload = {
            "response": response,
            "owner_id": owner_id or ANONYMOUS_OWNER,
            "created_at": time.time(),
        }
        try:
            await self.client.setex(key, self.ttl, json.dumps(payload))
        except Exception as e:
            raise CacheError(f"Failed to set cache: {str(e)}") from e


def create_response_cache() -> ResponseCache:
    """Build the cache backend selected in settings."""
    if settings.cache_backend == "redis":
        return RedisResponseCache()
    return InMemoryResponseCache()
